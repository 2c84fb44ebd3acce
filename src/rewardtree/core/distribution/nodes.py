"""
Distribution tree nodes.

The tree has three node kinds behind one pull interface:

- DistributionRoot: pulls newly arrived funds from the reward store bound to
  an active version and splits them across its children by weight.
- RoutingNode: pulls its credit from its parent and splits it across its own
  children by weight.
- LeafNode (see ``rewardtree.core.staking.leaf``): pulls its credit into a
  per-share accumulator and pays users.

Nodes never hold references to each other. Parents keep child addresses and
weights; children keep their parent address per version; every hop goes
through the tree registry.

Version lifecycle: Configuring -> Active. Children are only added while
Configuring. A routing version that is still Configuring neither pulls nor
releases funds; whatever its parent credits to it waits at the parent until
the version is activated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional, Union

from ..addresses import derive_address, normalize
from ..contracts.reward_store import RewardStore
from ..defi.access_control import Role, RoleBasedAccessControl, requires_role
from ..exceptions import (
    LedgerError,
    UnauthorizedError,
    VersionBindingError,
    VersionNotConfiguringError,
)
from .accumulator import RewardAccumulator, WeightedSplit

if TYPE_CHECKING:
    from ..staking.leaf import LeafNode
    from .tree import DistributionTree

logger = logging.getLogger(__name__)


class VersionState(Enum):
    CONFIGURING = "configuring"
    ACTIVE = "active"


class NodeKind(Enum):
    ROOT = "root"
    ROUTING = "routing"
    LEAF = "leaf"


@dataclass
class VersionConfig:
    """Configuration and accounting of one routing version."""

    version: int
    state: VersionState = VersionState.CONFIGURING
    split: WeightedSplit = field(default_factory=WeightedSplit)
    accumulator: RewardAccumulator = field(default_factory=RewardAccumulator)
    activated_at: Optional[float] = None

    # Root only: bound store and the part of its balance already pulled
    reward_source: Optional[RewardStore] = None
    last_pulled_balance: int = 0

    @property
    def is_active(self) -> bool:
        return self.state is VersionState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "version": self.version,
            "state": self.state.value,
            "split": self.split.to_dict(),
            "accumulator": self.accumulator.to_dict(),
            "reward_source": self.reward_source.address if self.reward_source else None,
            "activated_at": self.activated_at,
        }
        if self.reward_source is not None:
            data["last_pulled_balance"] = self.last_pulled_balance
        return data


def bind_upward(child: Union["RoutingNode", "LeafNode"], version: int, parent_address: str) -> str:
    """
    Validate and record a child's link to its parent for a version.

    Args:
        child: Node being bound
        version: Version id
        parent_address: Parent node address

    Returns:
        Normalized parent address

    Raises:
        VersionBindingError: If the version is already bound on the child, the
            parent does not list the child, or the link would close a cycle
        VersionNotConfiguringError: If the parent version or the child's own
            version is already Active
        UnknownNodeError: If the parent is not registered
    """
    parent_norm = normalize(parent_address)
    if version in child.parents:
        raise VersionBindingError(
            f"Version {version} already bound to {child.parents[version][:10]}",
            details={"version": version, "parent": child.parents[version]},
        )

    own = getattr(child, "versions", {}).get(version)
    if own is not None and own.is_active:
        raise VersionNotConfiguringError(
            f"Version {version} of {child.address[:10]} is already active",
            details={"node": child.address, "version": version},
        )

    parent = child.tree.get_node(parent_norm)
    if parent.kind is NodeKind.LEAF:
        raise VersionBindingError("A leaf cannot be a parent", details={"parent": parent_norm})

    config = parent.versions.get(version)
    if config is None or config.split.weight_of(child.address) is None:
        raise VersionBindingError(
            f"Parent {parent_norm[:10]} does not list this node in version {version}",
            details={"version": version, "parent": parent_norm},
        )
    if config.is_active:
        raise VersionNotConfiguringError(
            f"Version {version} of parent {parent_norm[:10]} is already active",
            details={"node": parent_norm, "version": version},
        )

    cursor: Optional[str] = parent_norm
    while cursor is not None:
        if cursor == child.address:
            raise VersionBindingError(
                "Binding would create a cycle",
                details={"version": version, "parent": parent_norm},
            )
        cursor = getattr(child.tree.get_node(cursor), "parents", {}).get(version)

    child.parents[version] = parent_norm
    logger.info(
        "Version bound",
        extra={
            "event": "tree.version_bound",
            "child": child.address[:10],
            "parent": parent_norm[:10],
            "version": version,
        }
    )
    return parent_norm


@dataclass(eq=False)
class _WeightedNode:
    """Shared behaviour of the root and routing variants."""

    kind: ClassVar[NodeKind]

    tree: "DistributionTree" = field(repr=False)
    admin: str = ""
    address: str = ""
    versions: Dict[int, VersionConfig] = field(default_factory=dict)
    access: RoleBasedAccessControl = field(init=False)

    def __post_init__(self) -> None:
        self.admin = normalize(self.admin)
        if not self.address:
            self.address = derive_address(f"{self.kind.value}:{self.admin}")
        self.address = normalize(self.address)
        self.access = RoleBasedAccessControl(admin_address=self.admin)

    # ==================== Configuration ====================

    @requires_role(Role.ADMIN)
    def add_child(self, caller: str, version: int, child: str, weight: int) -> bool:
        """
        Append a weighted child to a version.

        Args:
            caller: Must hold the admin role
            version: Version id (created on first use)
            child: Registered node address
            weight: Positive weight

        Raises:
            VersionNotConfiguringError: If the version is already Active
            DuplicateChildError: If the child is already listed
            UnknownNodeError: If the child is not registered in the tree
        """
        child_norm = normalize(child)
        config = self.versions.get(version)
        if config is not None and config.is_active:
            raise VersionNotConfiguringError(
                f"Version {version} is already active",
                details={"node": self.address, "version": version},
            )
        self.tree.get_node(child_norm)
        if child_norm == self.address:
            raise LedgerError("A node cannot be its own child")

        if config is None:
            config = VersionConfig(version=version)
            config.split.add_child(child_norm, weight)
            self.versions[version] = config
        else:
            config.split.add_child(child_norm, weight)

        logger.info(
            "Child added",
            extra={
                "event": "tree.child_added",
                "node": self.address[:10],
                "child": child_norm[:10],
                "version": version,
                "weight": weight,
            }
        )
        return True

    def _require_configuring(self, version: int) -> VersionConfig:
        config = self.versions.get(version)
        if config is None or config.is_active:
            raise VersionNotConfiguringError(
                f"Version {version} is not configuring",
                details={"node": self.address, "version": version},
            )
        return config

    def _mark_active(self, config: VersionConfig) -> None:
        config.state = VersionState.ACTIVE
        config.activated_at = time.time()
        logger.info(
            "Version activated",
            extra={
                "event": "tree.version_activated",
                "node": self.address[:10],
                "kind": self.kind.value,
                "version": config.version,
                "total_weight": config.split.total_weight,
            }
        )

    # ==================== Pull Protocol ====================

    def is_active(self, version: int) -> bool:
        config = self.versions.get(version)
        return config is not None and config.is_active

    def get_version(self, version: int) -> Optional[VersionConfig]:
        return self.versions.get(version)

    def draw(self, caller: str, version: int) -> int:
        """
        Pull new funds into this node and hand the calling child its credit.

        Args:
            caller: The child drawing its credit
            version: Version id

        Returns:
            Amount now owed to the child
        """
        if not self.is_active(version):
            return 0
        self._pull(version)
        return self.versions[version].split.draw(normalize(caller))

    def peek(self, version: int, child: str) -> int:
        """Read-only counterpart of ``draw``."""
        if not self.is_active(version):
            return 0
        config = self.versions[version]
        return config.split.preview_credit(normalize(child), self._preview_incoming(version))

    def _pull(self, version: int) -> None:
        incoming = self._take_incoming(version)
        if incoming > 0:
            config = self.versions[version]
            config.split.split(incoming)
            logger.debug(
                "Funds pulled",
                extra={
                    "event": "tree.pulled",
                    "node": self.address[:10],
                    "version": version,
                    "amount": incoming,
                }
            )

    def _take_incoming(self, version: int) -> int:
        raise NotImplementedError

    def _preview_incoming(self, version: int) -> int:
        raise NotImplementedError

    def _require_child(self, caller: str, version: int) -> None:
        config = self.versions.get(version)
        if config is None or config.split.weight_of(normalize(caller)) is None:
            raise UnauthorizedError(
                f"Caller {caller[:10]} is not a child of version {version}",
                details={"caller": normalize(caller), "version": version},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "kind": self.kind.value,
            "admin": self.admin,
            "versions": {v: c.to_dict() for v, c in self.versions.items()},
        }


@dataclass(eq=False)
class DistributionRoot(_WeightedNode):
    """Entry point where reward funds enter the tree, one store per version."""

    kind: ClassVar[NodeKind] = NodeKind.ROOT

    @requires_role(Role.ADMIN)
    def activate_version(self, caller: str, version: int, reward_source: RewardStore) -> bool:
        """
        Activate a root version and bind its reward source for good.

        Args:
            caller: Must hold the admin role
            version: Configuring version id
            reward_source: Store deployed for this root

        Raises:
            VersionNotConfiguringError: If the version is unknown or active
            RewardSourceAlreadyBoundError: If the store is bound anywhere
        """
        config = self._require_configuring(version)
        if reward_source.root != self.address:
            raise LedgerError(
                "Reward source was deployed for another root",
                details={"source": reward_source.address, "root": reward_source.root},
            )
        self.tree.bind_source(reward_source.address, self.address, version)

        config.reward_source = reward_source
        self._mark_active(config)
        return True

    def pay_out(self, caller: str, version: int, to: str, amount: int) -> None:
        """Pay a user from the version's reward source on behalf of a child."""
        self._require_child(caller, version)
        config = self.versions[version]
        if amount <= 0:
            return
        config.reward_source.transfer_reward(self.address, to, amount)
        config.last_pulled_balance -= amount

    def _take_incoming(self, version: int) -> int:
        config = self.versions[version]
        incoming = self._preview_incoming(version)
        if incoming > 0:
            config.last_pulled_balance += incoming
            config.accumulator.total_pulled += incoming
        return incoming

    def _preview_incoming(self, version: int) -> int:
        config = self.versions[version]
        return max(config.reward_source.balance() - config.last_pulled_balance, 0)


@dataclass(eq=False)
class RoutingNode(_WeightedNode):
    """Intermediate node forwarding weighted shares of its parent's funds."""

    kind: ClassVar[NodeKind] = NodeKind.ROUTING

    parents: Dict[int, str] = field(default_factory=dict)

    @requires_role(Role.ADMIN)
    def bind_version(self, caller: str, version: int, parent: str) -> bool:
        """Record which parent this node belongs to in a version."""
        bind_upward(self, version, parent)
        return True

    @requires_role(Role.ADMIN)
    def activate_version(self, caller: str, version: int) -> bool:
        """Activate a routing version so it starts pulling and releasing funds."""
        config = self._require_configuring(version)
        self._mark_active(config)
        return True

    def pay_out(self, caller: str, version: int, to: str, amount: int) -> None:
        """Forward a payout request towards the root."""
        self._require_child(caller, version)
        parent = self._parent(version)
        if parent is None:
            raise VersionBindingError(
                f"Version {version} is not bound to a parent",
                details={"node": self.address, "version": version},
            )
        parent.pay_out(self.address, version, to, amount)

    def _parent(self, version: int):
        parent = self.parents.get(version)
        return self.tree.get_node(parent) if parent else None

    def _take_incoming(self, version: int) -> int:
        parent = self._parent(version)
        if parent is None:
            return 0
        incoming = parent.draw(self.address, version)
        self.versions[version].accumulator.total_pulled += incoming
        return incoming

    def _preview_incoming(self, version: int) -> int:
        parent = self._parent(version)
        if parent is None:
            return 0
        return parent.peek(version, self.address)
