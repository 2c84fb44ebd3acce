"""
Reward Token Ledger.

Fungible token that rewards are deposited and paid in. Provides the subset
of ERC20 semantics the distribution tree relies on:
- Balances and transfers
- Owner-only minting for funding accounts
- Transfer events

Security features:
- Zero address checks
- Balance underflow prevention
- Non-negative amounts only
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..addresses import derive_address, is_zero, normalize
from ..config import ZERO_ADDRESS
from ..exceptions import TokenError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass
class TokenEvent:
    """Represents a token event."""

    event_type: str  # "Transfer"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RewardToken:
    """
    Fungible reward token.

    All balances are held in-memory; the distribution tree only ever moves
    tokens out of a reward store through the store's own guarded transfer.
    """

    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    address: str = ""

    # Owner (for minting permissions)
    owner: str = ""

    balances: dict[str, int] = field(default_factory=dict)
    events: list[TokenEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize token after dataclass creation."""
        if not self.address:
            self.address = derive_address(f"token:{self.name}:{self.symbol}")
        self.owner = normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """
        Get the token balance of an account.

        Args:
            account: Address to check

        Returns:
            Token balance
        """
        return self.balances.get(normalize(account), 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        sender_norm = normalize(sender)
        recipient_norm = normalize(recipient)

        if is_zero(recipient_norm):
            raise TokenError(f"{self.symbol}: recipient is zero address")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"{self.symbol}: transfer amount exceeds balance "
                f"({amount} > {sender_balance})",
                details={"sender": sender_norm, "balance": sender_balance},
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount

        self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "Reward token transfer",
            extra={
                "event": "token.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Args:
            minter: Address calling mint (must be owner)
            to: Recipient of minted tokens
            amount: Amount to mint

        Returns:
            True if successful
        """
        if normalize(minter) != self.owner:
            raise UnauthorizedError(f"{self.symbol}: caller is not owner")

        to_norm = normalize(to)
        if is_zero(to_norm):
            raise TokenError(f"{self.symbol}: mint to zero address")
        self._validate_amount(amount)

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "Reward token mint",
            extra={
                "event": "token.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    # ==================== Helpers ====================

    def _validate_amount(self, amount: int) -> None:
        if amount < 0:
            raise TokenError(f"{self.symbol}: amount cannot be negative")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        """Emit Transfer event."""
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )
