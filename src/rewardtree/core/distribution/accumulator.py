"""
Reward accumulators.

Two pieces of lazy pull-based accounting used by the distribution tree:

- WeightedSplit: a routing version's child weights. Each amount pulled into the
  node is split immediately as ``amount * weight // total_weight`` per child
  and credited until the child draws it. The truncated remainder is dust and
  stays stranded at this node.
- RewardAccumulator: a monotonically non-decreasing per-share value scaled by
  REWARD_PRECISION plus one settlement snapshot per participant. Pending
  reward is ``shares * (cumulative_per_share - snapshot) // REWARD_PRECISION``.

All arithmetic is integer arithmetic with floor division.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..config import REWARD_PRECISION
from ..exceptions import DuplicateChildError, LedgerError

logger = logging.getLogger(__name__)


@dataclass
class WeightedSplit:
    """Ordered child weights of one routing version and their credits."""

    children: List[Tuple[str, int]] = field(default_factory=list)
    total_weight: int = 0
    credited: Dict[str, int] = field(default_factory=dict)
    total_split: int = 0
    dust: int = 0

    def add_child(self, child: str, weight: int) -> None:
        if weight <= 0:
            raise LedgerError(f"Child weight must be positive, got {weight}")
        if self.weight_of(child) is not None:
            raise DuplicateChildError(
                f"Child {child[:10]} already added",
                details={"child": child},
            )
        self.children.append((child, weight))
        self.total_weight += weight
        self.credited[child] = 0

    def weight_of(self, child: str) -> Optional[int]:
        for address, weight in self.children:
            if address == child:
                return weight
        return None

    def share_of(self, amount: int, child: str) -> int:
        """Floor share of ``amount`` attributable to ``child``."""
        weight = self.weight_of(child)
        if not weight or self.total_weight == 0:
            return 0
        return amount * weight // self.total_weight

    def split(self, amount: int) -> None:
        """Credit a newly pulled amount to every child."""
        if amount <= 0 or self.total_weight == 0:
            return
        distributed = 0
        for child, weight in self.children:
            portion = amount * weight // self.total_weight
            self.credited[child] += portion
            distributed += portion
        self.total_split += amount
        self.dust += amount - distributed

    def preview_credit(self, child: str, incoming: int) -> int:
        """Credit ``child`` would hold after ``incoming`` were split."""
        return self.credited.get(child, 0) + self.share_of(incoming, child)

    def draw(self, child: str) -> int:
        """Hand a child its whole credit."""
        amount = self.credited.get(child, 0)
        if amount:
            self.credited[child] = 0
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "children": [{"child": c, "weight": w} for c, w in self.children],
            "total_weight": self.total_weight,
            "credited": dict(self.credited),
            "total_split": self.total_split,
            "dust": self.dust,
        }


@dataclass
class RewardAccumulator:
    """Per-share accumulator of one node version."""

    cumulative_per_share: int = 0
    total_pulled: int = 0
    snapshots: Dict[str, int] = field(default_factory=dict)

    def projected(self, amount: int, total_shares: int) -> int:
        """Value ``cumulative_per_share`` would take after incorporating ``amount``."""
        if total_shares <= 0 or amount <= 0:
            return self.cumulative_per_share
        return self.cumulative_per_share + amount * REWARD_PRECISION // total_shares

    def incorporate(self, amount: int, total_shares: int) -> None:
        """
        Fold a pulled amount into the per-share value.

        Callers must not pull while ``total_shares`` is zero; the amount would
        have no one to accrue to.
        """
        if total_shares <= 0:
            raise LedgerError("Cannot incorporate rewards without shares")
        self.cumulative_per_share = self.projected(amount, total_shares)
        self.total_pulled += amount

    def pending(self, participant: str, shares: int, cumulative: Optional[int] = None) -> int:
        """Reward accrued by ``participant`` since its last settlement."""
        if cumulative is None:
            cumulative = self.cumulative_per_share
        snapshot = self.snapshots.get(participant, 0)
        return shares * (cumulative - snapshot) // REWARD_PRECISION

    def settle(self, participant: str, shares: int) -> int:
        """Return the pending reward and advance the snapshot to the current value."""
        owed = self.pending(participant, shares)
        self.snapshots[participant] = self.cumulative_per_share
        return owed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cumulative_per_share": self.cumulative_per_share,
            "total_pulled": self.total_pulled,
            "participants": len(self.snapshots),
        }
