"""
Staking Position Token.

Ownership ledger for the staking positions of one leaf. Every ownership change
first runs the leaf's transfer hook so pending rewards are settled with the
previous owner before the position's shares follow the token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..addresses import normalize
from ..exceptions import TokenError, UnauthorizedError
from .nft import NonFungibleLedger

logger = logging.getLogger(__name__)


class TransferHook(Protocol):
    """Ledger notified before a position changes owner."""

    def prepare_transfer(self, caller: str, from_addr: str, to_addr: str, position_id: int) -> None: ...


@dataclass
class PositionToken(NonFungibleLedger):
    """Ownership token for staking positions; only the minter creates tokens."""

    minter: str = ""
    ledger: Optional[TransferHook] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.minter = normalize(self.minter)

    def bind_ledger(self, ledger: TransferHook, minter: str) -> None:
        """Attach the leaf that owns this token; may happen once."""
        if self.ledger is not None:
            raise TokenError(f"{self.symbol}: ledger already bound")
        self.ledger = ledger
        self.minter = normalize(minter)

    def mint(self, caller: str, to: str) -> int:
        """
        Mint a position token.

        Args:
            caller: Must be the minter
            to: Position owner

        Returns:
            New position id
        """
        if normalize(caller) != self.minter:
            raise UnauthorizedError(f"{self.symbol}: caller is not the minter")
        return self._mint_to(to)

    def transfer_from(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> bool:
        """Transfer a position, settling rewards through the ledger first."""
        self._check_transfer(caller, from_addr, to_addr, token_id)
        if self.ledger is not None:
            self.ledger.prepare_transfer(self.address, from_addr, to_addr, token_id)
        self._move(normalize(from_addr), normalize(to_addr), token_id)
        return True

    def safe_transfer_from(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        data: bytes = b"",
    ) -> bool:
        """
        Safely transfer a position.

        Receiver contracts are not modelled, so this behaves like transfer_from.
        """
        return self.transfer_from(caller, from_addr, to_addr, token_id)
