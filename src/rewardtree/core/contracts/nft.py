"""
Non-Fungible Ownership Ledger.

Shared ERC721-style bookkeeping for the asset collections users stake and the
position tokens that represent staking positions:
- Ownership and balances
- Per-token and operator approvals
- Transfer events

Security features:
- Owner verification on all transfers
- Approval validation
- Zero address checks
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..addresses import derive_address, is_zero, normalize
from ..config import ZERO_ADDRESS
from ..exceptions import TokenError

logger = logging.getLogger(__name__)


@dataclass
class NFTEvent:
    """Represents an ownership event."""

    event_type: str  # "Transfer", "Approval", "ApprovalForAll"
    from_address: str
    to_address: str
    token_id: int
    approved: bool = False  # For ApprovalForAll
    timestamp: float = field(default_factory=time.time)


@dataclass
class NonFungibleLedger:
    """
    Ownership ledger for uniquely identified tokens.

    Token ids are assigned sequentially from 0.
    """

    name: str
    symbol: str

    address: str = ""

    # Token state
    owners: dict[int, str] = field(default_factory=dict)  # tokenId -> owner
    balances: dict[str, int] = field(default_factory=dict)  # owner -> count
    token_approvals: dict[int, str] = field(default_factory=dict)  # tokenId -> approved
    operator_approvals: dict[str, dict[str, bool]] = field(
        default_factory=dict
    )  # owner -> operator -> approved

    next_token_id: int = 0

    events: list[NFTEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address(f"nft:{self.name}:{self.symbol}")

    # ==================== View Functions ====================

    def balance_of(self, owner: str) -> int:
        """Get number of tokens owned by an address."""
        return self.balances.get(normalize(owner), 0)

    def owner_of(self, token_id: int) -> str:
        """
        Get the owner of a token.

        Raises:
            TokenError: If token doesn't exist
        """
        owner = self.owners.get(token_id)
        if not owner:
            raise TokenError(f"{self.symbol}: token {token_id} does not exist")
        return owner

    def exists(self, token_id: int) -> bool:
        return token_id in self.owners

    def get_approved(self, token_id: int) -> str:
        """Get approved address for a token (zero if none)."""
        self.owner_of(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        """Check if operator is approved for all tokens of owner."""
        return self.operator_approvals.get(normalize(owner), {}).get(
            normalize(operator), False
        )

    def is_approved_or_owner(self, caller: str, token_id: int) -> bool:
        """Check if caller is owner or approved for token."""
        caller_norm = normalize(caller)
        owner = self.owner_of(token_id)
        return (
            caller_norm == owner
            or self.get_approved(token_id) == caller_norm
            or self.is_approved_for_all(owner, caller_norm)
        )

    # ==================== State-Changing Functions ====================

    def approve(self, caller: str, to: str, token_id: int) -> bool:
        """
        Approve an address to transfer a specific token.

        Args:
            caller: Message sender
            to: Address to approve
            token_id: Token ID

        Returns:
            True if successful
        """
        owner = self.owner_of(token_id)
        caller_norm = normalize(caller)
        to_norm = normalize(to)

        if to_norm == owner:
            raise TokenError(f"{self.symbol}: approval to current owner")

        if caller_norm != owner and not self.is_approved_for_all(owner, caller_norm):
            raise TokenError(f"{self.symbol}: approve caller is not owner nor approved")

        self.token_approvals[token_id] = to_norm
        self.events.append(NFTEvent("Approval", owner, to_norm, token_id))
        return True

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        """
        Set or revoke operator approval for all tokens.

        Args:
            caller: Token owner
            operator: Operator address
            approved: Approval status

        Returns:
            True if successful
        """
        caller_norm = normalize(caller)
        operator_norm = normalize(operator)

        if operator_norm == caller_norm:
            raise TokenError(f"{self.symbol}: approve to caller")

        self.operator_approvals.setdefault(caller_norm, {})[operator_norm] = approved
        self.events.append(
            NFTEvent("ApprovalForAll", caller_norm, operator_norm, 0, approved=approved)
        )
        return True

    def transfer_from(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> bool:
        """
        Transfer a token.

        Args:
            caller: Message sender
            from_addr: Current owner
            to_addr: New owner
            token_id: Token ID

        Returns:
            True if successful
        """
        self._transfer(caller, from_addr, to_addr, token_id)
        return True

    # ==================== Internals ====================

    def _check_transfer(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> None:
        """Validate a transfer without changing state."""
        owner = self.owner_of(token_id)
        if owner != normalize(from_addr):
            raise TokenError(f"{self.symbol}: transfer from incorrect owner")

        if not self.is_approved_or_owner(caller, token_id):
            raise TokenError(f"{self.symbol}: caller is not owner nor approved")

        if is_zero(to_addr):
            raise TokenError(f"{self.symbol}: transfer to zero address")

    def _transfer(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> None:
        """Internal transfer logic."""
        self._check_transfer(caller, from_addr, to_addr, token_id)
        self._move(normalize(from_addr), normalize(to_addr), token_id)

    def _move(self, from_norm: str, to_norm: str, token_id: int) -> None:
        self.token_approvals.pop(token_id, None)

        self.balances[from_norm] = self.balances.get(from_norm, 1) - 1
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1
        self.owners[token_id] = to_norm

        self.events.append(NFTEvent("Transfer", from_norm, to_norm, token_id))

        logger.debug(
            "Token transfer",
            extra={
                "event": "nft.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": from_norm[:10],
                "to": to_norm[:10],
            }
        )

    def _mint_to(self, to: str) -> int:
        to_norm = normalize(to)
        if is_zero(to_norm):
            raise TokenError(f"{self.symbol}: mint to zero address")

        token_id = self.next_token_id
        self.next_token_id += 1

        self.owners[token_id] = to_norm
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1
        self.events.append(NFTEvent("Transfer", ZERO_ADDRESS, to_norm, token_id))

        logger.info(
            "Token minted",
            extra={
                "event": "nft.mint",
                "collection": self.symbol,
                "token_id": token_id,
                "to": to_norm[:10],
            }
        )
        return token_id
