"""
Distribution Tree Registry.

Owns every node of a deployment by address and the global record of reward
sources already bound to a root version. Nodes refer to each other only by
address and resolve links through ``get_node``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..addresses import normalize
from ..contracts.position_token import PositionToken
from ..contracts.reward_store import RewardStore
from ..contracts.reward_token import RewardToken
from ..exceptions import RewardSourceAlreadyBoundError, UnknownNodeError
from ..staking.leaf import LeafNode
from ..staking.requirements import RequirementChecker, SlotRequirement
from .nodes import DistributionRoot, NodeKind, RoutingNode

logger = logging.getLogger(__name__)

DistributionNode = Union[DistributionRoot, RoutingNode, LeafNode]


@dataclass(eq=False)
class DistributionTree:
    """Arena of distribution nodes plus reward-source bindings."""

    nodes: Dict[str, DistributionNode] = field(default_factory=dict, repr=False)

    # source address -> (root address, version)
    source_bindings: Dict[str, Tuple[str, int]] = field(default_factory=dict)

    # root address -> reward token
    root_tokens: Dict[str, RewardToken] = field(default_factory=dict)

    # ==================== Factories ====================

    def create_root(self, admin: str, token: RewardToken) -> DistributionRoot:
        """Deploy a root paying rewards in ``token``."""
        root = DistributionRoot(tree=self, admin=admin)
        self.root_tokens[root.address] = token
        return self._register(root)

    def create_routing_node(self, admin: str) -> RoutingNode:
        return self._register(RoutingNode(tree=self, admin=admin))

    def create_leaf(
        self,
        admin: str,
        requirement_checker: RequirementChecker,
        slot_requirements: Sequence[SlotRequirement],
        unstake_lock_period: Optional[int] = None,
        name: str = "Position",
    ) -> LeafNode:
        """
        Deploy a leaf together with its position token.

        Args:
            admin: Leaf admin (also holds governance)
            requirement_checker: Whitelist and admission predicate
            slot_requirements: One requirement per slot of every position
            unstake_lock_period: Lock for displaced assets (config default if None)
            name: Position token name

        Returns:
            The registered leaf
        """
        position_token = PositionToken(name=name, symbol=f"{name[:4].upper()}POS")
        kwargs = {}
        if unstake_lock_period is not None:
            kwargs["unstake_lock_period"] = unstake_lock_period

        leaf = LeafNode(
            tree=self,
            admin=admin,
            requirement_checker=requirement_checker,
            slot_requirements=list(slot_requirements),
            position_token=position_token,
            **kwargs,
        )
        position_token.bind_ledger(leaf, leaf.address)
        return self._register(leaf)

    def create_reward_store(self, root: DistributionRoot) -> RewardStore:
        """Deploy a reward store that only ``root`` may pay out of."""
        token = self.root_tokens.get(root.address)
        if token is None:
            raise UnknownNodeError(
                f"Root {root.address[:10]} is not registered",
                details={"root": root.address},
            )
        return RewardStore(root=root.address, token=token)

    # ==================== Registry ====================

    def get_node(self, address: str) -> DistributionNode:
        node = self.nodes.get(normalize(address))
        if node is None:
            raise UnknownNodeError(
                f"Unknown node {address[:10]}",
                details={"address": normalize(address)},
            )
        return node

    def list_nodes(self, kind: Optional[NodeKind] = None) -> List[DistributionNode]:
        return [node for node in self.nodes.values() if kind is None or node.kind is kind]

    def root_of(self, node: str, version: int) -> Optional[DistributionRoot]:
        """Follow a version's parent links up to its root, if the chain is complete."""
        current = self.get_node(node)
        while current.kind is not NodeKind.ROOT:
            parent = current.parents.get(version)
            if parent is None:
                return None
            current = self.get_node(parent)
        return current

    # ==================== Reward Sources ====================

    def source_binding(self, source: str) -> Optional[Tuple[str, int]]:
        return self.source_bindings.get(normalize(source))

    def bind_source(self, source: str, root: str, version: int) -> None:
        """
        Record that a reward source feeds a root version.

        Raises:
            RewardSourceAlreadyBoundError: If the source is bound anywhere
        """
        source_norm = normalize(source)
        existing = self.source_bindings.get(source_norm)
        if existing is not None:
            logger.warning(
                "Reward source rebind rejected",
                extra={
                    "event": "tree.source_rebind_rejected",
                    "reward_source": source_norm[:10],
                    "bound_root": existing[0][:10],
                    "bound_version": existing[1],
                }
            )
            raise RewardSourceAlreadyBoundError(
                f"Reward source {source_norm[:10]} already bound to version {existing[1]}",
                details={"source": source_norm, "root": existing[0], "version": existing[1]},
            )

        self.source_bindings[source_norm] = (normalize(root), version)
        logger.info(
            "Reward source bound",
            extra={
                "event": "tree.source_bound",
                "reward_source": source_norm[:10],
                "root": normalize(root)[:10],
                "version": version,
            }
        )

    def _register(self, node):
        self.nodes[node.address] = node
        logger.info(
            "Node registered",
            extra={
                "event": "tree.node_registered",
                "node": node.address[:10],
                "kind": node.kind.value,
            }
        )
        return node
