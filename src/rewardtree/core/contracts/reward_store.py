"""
Reward Store.

Holds the reward tokens a root version distributes. Deposits are plain token
transfers to the store's address; only the root the store was deployed for
can move tokens out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..addresses import derive_address, normalize
from ..exceptions import InsufficientRewardBalanceError, UnauthorizedError
from .reward_token import RewardToken

logger = logging.getLogger(__name__)


@dataclass
class RewardStore:
    """External reward source bound to exactly one root version."""

    root: str
    token: RewardToken
    address: str = ""

    def __post_init__(self) -> None:
        self.root = normalize(self.root)
        if not self.address:
            self.address = derive_address(f"store:{self.root}")

    def balance(self) -> int:
        """Tokens currently held by the store."""
        return self.token.balance_of(self.address)

    def transfer_reward(self, caller: str, to: str, amount: int) -> bool:
        """
        Pay reward tokens out of the store.

        Args:
            caller: Must be the store's root
            to: Recipient
            amount: Amount to pay

        Returns:
            True if successful

        Raises:
            UnauthorizedError: If caller is not the root
            InsufficientRewardBalanceError: If amount exceeds the balance
        """
        if normalize(caller) != self.root:
            raise UnauthorizedError(
                "RewardStore: caller is not the root",
                details={"caller": normalize(caller), "root": self.root},
            )

        available = self.balance()
        if amount > available:
            raise InsufficientRewardBalanceError(
                f"RewardStore: amount exceeds balance ({amount} > {available})",
                details={"amount": amount, "balance": available},
            )

        self.token.transfer(self.address, to, amount)

        logger.info(
            "Reward paid from store",
            extra={
                "event": "store.transfer_reward",
                "store": self.address[:10],
                "to": normalize(to)[:10],
                "amount": amount,
            }
        )
        return True
