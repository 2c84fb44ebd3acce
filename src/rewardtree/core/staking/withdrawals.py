"""
Locked withdrawal queue.

Assets displaced from a slot (by unstake or replace) wait here until their
unlock time. Claims remove entries with swap-with-last-and-shrink, which only
keeps the remaining indices meaningful when they are processed from highest
to lowest, so claim indices must be strictly descending.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Sequence

from ..exceptions import WithdrawalIndexOrderError, WithdrawalLockedError

if TYPE_CHECKING:
    from .slots import AssetRef


@dataclass(frozen=True)
class LockedWithdrawal:
    asset: "AssetRef"
    position_id: int
    unlock_time: int

    def is_unlocked(self, now: int) -> bool:
        return now >= self.unlock_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "position_id": self.position_id,
            "unlock_time": self.unlock_time,
        }


@dataclass
class LockedWithdrawalQueue:
    """Per-position list of locked withdrawals."""

    entries: List[LockedWithdrawal] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> LockedWithdrawal:
        return self.entries[index]

    def __iter__(self) -> Iterator[LockedWithdrawal]:
        return iter(self.entries)

    def append(self, entry: LockedWithdrawal) -> None:
        self.entries.append(entry)

    def validate_claim(self, indices: Sequence[int], now: int) -> List[LockedWithdrawal]:
        """
        Check a claim request in full before anything is removed.

        Args:
            indices: Queue indices, strictly descending
            now: Current timestamp

        Returns:
            The entries that will be removed, in claim order

        Raises:
            WithdrawalIndexOrderError: If an index is out of range, repeated,
                or not smaller than the previous one
            WithdrawalLockedError: If an entry is still locked
        """
        claimed = []
        previous = len(self.entries)
        for index in indices:
            if index < 0 or index >= previous:
                raise WithdrawalIndexOrderError(
                    f"Withdrawal index {index} must be below {previous}",
                    details={"index": index, "bound": previous},
                )
            entry = self.entries[index]
            if not entry.is_unlocked(now):
                raise WithdrawalLockedError(
                    f"Withdrawal {index} is locked until {entry.unlock_time}",
                    details={"index": index, "unlock_time": entry.unlock_time, "now": now},
                )
            claimed.append(entry)
            previous = index
        return claimed

    def pop_descending(self, indices: Sequence[int]) -> None:
        """Remove validated indices, highest first, by swapping in the last entry."""
        for index in indices:
            last = len(self.entries) - 1
            if index != last:
                self.entries[index] = self.entries[last]
            self.entries.pop()
