"""
RewardTree - Hierarchical Reward Distribution and Slot Staking Ledger

An in-process ledger that funnels rewards deposited at a root down a weighted
tree of distribution nodes to the users staking assets in leaf nodes.

Main Components:
- Distribution: Root, routing and leaf nodes with lazy pull-based accounting
- Staking: Slot-based staking positions with admission requirements
- Withdrawals: Time-locked queue for displaced staked assets
- Contracts: Reward token, reward store, asset collections, position tokens
- Access Control: Role gating for privileged operations
"""

__version__ = "0.1.0"
__author__ = "RewardTree Development Team"

from .core.contracts import PositionToken, RewardStore, RewardToken, StakeableCollection
from .core.defi import Role
from .core.distribution import DistributionRoot, RoutingNode, VersionState
from .core.distribution.tree import DistributionNode, DistributionTree
from .core.exceptions import LedgerError
from .core.staking import (
    LeafNode,
    RequirementChecker,
    SlotRequirement,
    StakeRequest,
    TraitRequirement,
    UnstakeRequest,
)

__all__ = [
    "DistributionNode",
    "DistributionRoot",
    "DistributionTree",
    "LeafNode",
    "LedgerError",
    "PositionToken",
    "RequirementChecker",
    "RewardStore",
    "RewardToken",
    "Role",
    "RoutingNode",
    "SlotRequirement",
    "StakeRequest",
    "StakeableCollection",
    "TraitRequirement",
    "UnstakeRequest",
    "VersionState",
]
