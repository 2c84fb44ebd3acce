"""
Reward distribution.

- Accumulators: weighted splits and per-share accounting
- Nodes: root and routing variants of the pull protocol

The registry lives in ``rewardtree.core.distribution.tree``.
"""

from .accumulator import RewardAccumulator, WeightedSplit
from .nodes import (
    DistributionRoot,
    NodeKind,
    RoutingNode,
    VersionConfig,
    VersionState,
)

__all__ = [
    "DistributionRoot",
    "NodeKind",
    "RewardAccumulator",
    "RoutingNode",
    "VersionConfig",
    "VersionState",
    "WeightedSplit",
]
