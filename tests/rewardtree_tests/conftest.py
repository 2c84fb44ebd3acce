"""
Shared fixtures for the RewardTree ledger tests.

Every test gets a frozen clock (``time.time`` patched through monkeypatch) so
timelocks are driven explicitly, and a ``deployment`` helper that wires the
reward token, root, reward store, requirement checker and asset collection
the same way a real deployment does.
"""

import pytest

from rewardtree.core.contracts.collection import StakeableCollection
from rewardtree.core.contracts.reward_token import RewardToken
from rewardtree.core.distribution.tree import DistributionTree
from rewardtree.core.staking.requirements import RequirementChecker, SlotRequirement
from rewardtree.core.staking.slots import StakeRequest

ADMIN = "0xAdmin"
USER1 = "0xUser1"
USER2 = "0xUser2"
USER3 = "0xUser3"
VERSION = 1
START_TIME = 1_700_000_000


class FrozenClock:
    """Stand-in for ``time.time`` that only moves when told to."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class Deployment:
    """Root, store and collection plus helpers to grow a tree under them."""

    def __init__(self):
        self.tree = DistributionTree()
        self.token = RewardToken(name="Reward", symbol="RWD", owner=ADMIN)
        self.checker = RequirementChecker(admin=ADMIN)
        self.collection = StakeableCollection(name="Assets", symbol="AST", owner=ADMIN)
        self.checker.whitelist_asset_contract(ADMIN, self.collection.address)

        self.root = self.tree.create_root(ADMIN, self.token)
        self.store = self.tree.create_reward_store(self.root)

    def leaf(self, slots=3, lock_period=0, requirements=None):
        if requirements is None:
            requirements = [SlotRequirement() for _ in range(slots)]
        return self.tree.create_leaf(
            ADMIN, self.checker, requirements, unstake_lock_period=lock_period
        )

    def routing(self):
        return self.tree.create_routing_node(ADMIN)

    def attach(self, parent, child, weight, version=VERSION):
        parent.add_child(ADMIN, version, child.address, weight)
        child.bind_version(ADMIN, version, parent.address)

    def activate(self, *routing_nodes, version=VERSION):
        for node in routing_nodes:
            node.activate_version(ADMIN, version)
        self.root.activate_version(ADMIN, version, self.store)

    def fund(self, amount):
        self.token.mint(ADMIN, self.store.address, amount)

    def mint(self, user, weight=None, traits=(), collection=None):
        collection = collection or self.collection
        return collection.mint(ADMIN, user, traits=traits, weight=weight)

    def stake(self, leaf, user, position, slots, weights=None, replace=False, traits=None):
        """Mint one asset per slot to ``user`` and stake them into ``position``."""
        self.collection.set_approval_for_all(user, leaf.address, True)
        requests = []
        for i, slot in enumerate(slots):
            token_id = self.mint(
                user,
                weight=weights[i] if weights else None,
                traits=traits[i] if traits else (),
            )
            requests.append(StakeRequest(self.collection, token_id, slot))
        leaf.stake_to_position(user, position, requests, replace=replace)
        return [request.token_id for request in requests]

    def rewards(self, leaf, users, version=VERSION):
        return [leaf.get_current_reward_amount(user, version) for user in users]


@pytest.fixture
def clock(monkeypatch):
    """Freeze ``time.time`` at a fixed start time."""
    frozen = FrozenClock(START_TIME)
    monkeypatch.setattr("time.time", frozen)
    return frozen


@pytest.fixture
def deployment(clock):
    return Deployment()


@pytest.fixture
def two_leaf_tree(deployment):
    """Root version 1 split 2000/8000 between two three-slot leaves."""
    leaf1 = deployment.leaf()
    leaf2 = deployment.leaf()
    deployment.attach(deployment.root, leaf1, 2000)
    deployment.attach(deployment.root, leaf2, 8000)
    deployment.activate()
    return deployment, leaf1, leaf2
