"""
Slot staking.

- Requirements: asset whitelist and trait-based slot admission
- Slots: positions, slots and request tuples
- Withdrawals: time-locked queue of displaced assets
- Leaf: the distribution leaf that owns all of the above
"""

from .leaf import LeafNode
from .requirements import RequirementChecker, SlotRequirement, TraitRequirement
from .slots import (
    AssetRef,
    PositionView,
    Slot,
    StakedAsset,
    StakeRequest,
    StakingPosition,
    UnstakeRequest,
)
from .withdrawals import LockedWithdrawal, LockedWithdrawalQueue

__all__ = [
    "AssetRef",
    "LeafNode",
    "LockedWithdrawal",
    "LockedWithdrawalQueue",
    "PositionView",
    "RequirementChecker",
    "Slot",
    "SlotRequirement",
    "StakedAsset",
    "StakeRequest",
    "StakingPosition",
    "TraitRequirement",
    "UnstakeRequest",
]
