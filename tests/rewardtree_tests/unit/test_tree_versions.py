"""
Tree construction and version lifecycle tests.

Versions move Configuring -> Active once; reward sources bind exactly once
across the whole tree; routing versions that are not yet active hold their
share back until activated.
"""

import pytest

from rewardtree.core.config import REWARD_PRECISION
from rewardtree.core.distribution.nodes import NodeKind, VersionState
from rewardtree.core.exceptions import (
    DuplicateChildError,
    LedgerError,
    RewardSourceAlreadyBoundError,
    UnauthorizedError,
    UnknownNodeError,
    VersionBindingError,
    VersionNotConfiguringError,
)

ADMIN = "0xAdmin"
USER1 = "0xUser1"


class TestRewardSourceBinding:
    def test_source_cannot_be_bound_twice(self, two_leaf_tree):
        deployment, leaf1, _ = two_leaf_tree
        root = deployment.root
        root.add_child(ADMIN, 2, leaf1.address, 1000)

        with pytest.raises(RewardSourceAlreadyBoundError):
            root.activate_version(ADMIN, 2, deployment.store)

        assert deployment.tree.source_binding(deployment.store.address) == (root.address, 1)
        assert root.get_version(2).state is VersionState.CONFIGURING
        assert root.get_version(1).reward_source is deployment.store

    def test_binding_is_global_across_roots(self, deployment):
        leaf = deployment.leaf()
        other_root = deployment.tree.create_root(ADMIN, deployment.token)
        other_store = deployment.tree.create_reward_store(other_root)
        other_root.add_child(ADMIN, 1, leaf.address, 1000)
        other_root.add_child(ADMIN, 2, leaf.address, 1000)
        other_root.activate_version(ADMIN, 1, other_store)

        with pytest.raises(RewardSourceAlreadyBoundError):
            other_root.activate_version(ADMIN, 2, other_store)

    def test_store_of_another_root_is_rejected(self, deployment):
        leaf = deployment.leaf()
        other_root = deployment.tree.create_root(ADMIN, deployment.token)
        other_root.add_child(ADMIN, 1, leaf.address, 1000)

        with pytest.raises(LedgerError):
            other_root.activate_version(ADMIN, 1, deployment.store)

        assert deployment.tree.source_binding(deployment.store.address) is None

    def test_activation_requires_admin(self, deployment):
        leaf = deployment.leaf()
        deployment.root.add_child(ADMIN, 1, leaf.address, 1000)

        with pytest.raises(UnauthorizedError):
            deployment.root.activate_version(USER1, 1, deployment.store)


class TestVersionLifecycle:
    def test_add_child_to_active_version_fails(self, two_leaf_tree):
        deployment, _, _ = two_leaf_tree
        leaf3 = deployment.leaf()

        with pytest.raises(VersionNotConfiguringError):
            deployment.root.add_child(ADMIN, 1, leaf3.address, 1000)

        assert deployment.root.get_version(1).split.total_weight == 10_000

    def test_duplicate_child_fails(self, deployment):
        leaf = deployment.leaf()
        deployment.root.add_child(ADMIN, 1, leaf.address, 1000)

        with pytest.raises(DuplicateChildError):
            deployment.root.add_child(ADMIN, 1, leaf.address, 500)

        assert deployment.root.get_version(1).split.total_weight == 1000

    def test_unknown_child_fails(self, deployment):
        with pytest.raises(UnknownNodeError):
            deployment.root.add_child(ADMIN, 1, "0xNotANode", 1000)

        assert deployment.root.get_version(1) is None

    def test_non_positive_weight_fails(self, deployment):
        leaf = deployment.leaf()

        with pytest.raises(LedgerError):
            deployment.root.add_child(ADMIN, 1, leaf.address, 0)

        assert deployment.root.get_version(1) is None

    def test_add_child_requires_admin(self, deployment):
        leaf = deployment.leaf()

        with pytest.raises(UnauthorizedError):
            deployment.root.add_child(USER1, 1, leaf.address, 1000)

    def test_activate_unknown_version_fails(self, deployment):
        with pytest.raises(VersionNotConfiguringError):
            deployment.root.activate_version(ADMIN, 7, deployment.store)

        routing = deployment.routing()
        with pytest.raises(VersionNotConfiguringError):
            routing.activate_version(ADMIN, 7)

    def test_activate_twice_fails(self, deployment):
        routing = deployment.routing()
        leaf = deployment.leaf()
        routing.add_child(ADMIN, 1, leaf.address, 1000)
        routing.activate_version(ADMIN, 1)

        with pytest.raises(VersionNotConfiguringError):
            routing.activate_version(ADMIN, 1)

        assert routing.is_active(1)

    def test_version_config_to_dict(self, two_leaf_tree):
        deployment, leaf1, _ = two_leaf_tree

        data = deployment.root.get_version(1).to_dict()

        assert data["state"] == "active"
        assert data["reward_source"] == deployment.store.address
        assert data["split"]["children"][0] == {"child": leaf1.address, "weight": 2000}
        assert data["last_pulled_balance"] == 0
        assert "last_pulled_balance" not in data["accumulator"]

    def test_root_tracks_pulled_store_balance(self, two_leaf_tree):
        deployment, leaf1, _ = two_leaf_tree
        deployment.stake(leaf1, USER1, leaf1.create_position(USER1), [0])
        deployment.fund(10_000)

        assert leaf1.claim_reward(USER1, 1) == 2000

        config = deployment.root.get_version(1)
        # Pulled 10000, paid 2000 of it out
        assert config.last_pulled_balance == 8000
        assert deployment.store.balance() == 8000

    def test_routing_version_dict_has_no_store_fields(self, deployment):
        routing = deployment.routing()
        leaf = deployment.leaf()
        routing.add_child(ADMIN, 1, leaf.address, 1000)

        data = routing.get_version(1).to_dict()

        assert data["reward_source"] is None
        assert "last_pulled_balance" not in data


class TestVersionBinding:
    def test_bind_requires_listing_at_parent(self, deployment):
        leaf = deployment.leaf()

        with pytest.raises(VersionBindingError):
            leaf.bind_version(ADMIN, 1, deployment.root.address)

        assert leaf.parents == {}

    def test_bind_twice_fails(self, deployment):
        leaf = deployment.leaf()
        routing = deployment.routing()
        deployment.root.add_child(ADMIN, 1, leaf.address, 1000)
        routing.add_child(ADMIN, 1, leaf.address, 1000)
        leaf.bind_version(ADMIN, 1, deployment.root.address)

        with pytest.raises(VersionBindingError):
            leaf.bind_version(ADMIN, 1, routing.address)

        assert leaf.parents == {1: deployment.root.address}

    def test_leaf_cannot_be_parent(self, deployment):
        leaf1 = deployment.leaf()
        leaf2 = deployment.leaf()

        with pytest.raises(VersionBindingError):
            leaf2.bind_version(ADMIN, 1, leaf1.address)

    def test_cycle_is_rejected(self, deployment):
        routing1 = deployment.routing()
        routing2 = deployment.routing()
        routing1.add_child(ADMIN, 1, routing2.address, 1)
        routing2.add_child(ADMIN, 1, routing1.address, 1)
        routing2.bind_version(ADMIN, 1, routing1.address)

        with pytest.raises(VersionBindingError):
            routing1.bind_version(ADMIN, 1, routing2.address)

    def test_bind_into_active_parent_version_fails(self, deployment):
        leaf = deployment.leaf()
        deployment.root.add_child(ADMIN, 1, leaf.address, 1000)
        deployment.root.activate_version(ADMIN, 1, deployment.store)

        with pytest.raises(VersionNotConfiguringError):
            leaf.bind_version(ADMIN, 1, deployment.root.address)

        assert leaf.parents == {}
        assert leaf.get_accumulator(1) is None

    def test_active_routing_version_cannot_be_bound(self, deployment):
        routing = deployment.routing()
        leaf = deployment.leaf()
        deployment.root.add_child(ADMIN, 1, routing.address, 1000)
        routing.add_child(ADMIN, 1, leaf.address, 1000)
        routing.activate_version(ADMIN, 1)

        with pytest.raises(VersionNotConfiguringError):
            routing.bind_version(ADMIN, 1, deployment.root.address)

        assert routing.parents == {}

    def test_bind_requires_admin(self, deployment):
        leaf = deployment.leaf()
        deployment.root.add_child(ADMIN, 1, leaf.address, 1000)

        with pytest.raises(UnauthorizedError):
            leaf.bind_version(USER1, 1, deployment.root.address)


class TestInactiveRoutingVersion:
    """A routing version that is still Configuring yields nothing and loses nothing."""

    @pytest.fixture
    def chain(self, deployment):
        routing = deployment.routing()
        leaf = deployment.leaf()
        deployment.attach(deployment.root, routing, 10_000)
        deployment.attach(routing, leaf, 10_000)
        deployment.activate()
        deployment.stake(leaf, USER1, leaf.create_position(USER1), [0])
        return deployment, routing, leaf

    def test_inactive_routing_yields_zero(self, chain):
        deployment, _, leaf = chain
        deployment.fund(10_000)

        assert leaf.get_current_reward_amount(USER1, 1) == 0
        assert leaf.claim_reward(USER1, 1) == 0
        assert deployment.store.balance() == 10_000

    def test_funds_wait_until_activation(self, chain):
        deployment, routing, leaf = chain
        deployment.fund(10_000)
        leaf.claim_reward(USER1, 1)

        routing.activate_version(ADMIN, 1)

        assert leaf.get_current_reward_amount(USER1, 1) == 10_000
        assert leaf.claim_reward(USER1, 1) == 10_000
        assert deployment.store.balance() == 0


class TestMultipleVersions:
    def test_leaf_participates_in_two_versions(self, deployment):
        leaf = deployment.leaf()
        root = deployment.root
        store2 = deployment.tree.create_reward_store(root)
        deployment.attach(root, leaf, 1000, version=1)
        deployment.attach(root, leaf, 1000, version=2)
        root.activate_version(ADMIN, 1, deployment.store)
        root.activate_version(ADMIN, 2, store2)
        position_id = leaf.create_position(USER1)
        deployment.stake(leaf, USER1, position_id, [0])

        deployment.fund(10_000)
        deployment.token.mint(ADMIN, store2.address, 5000)

        assert leaf.get_current_reward_amount(USER1, 1) == 10_000
        assert leaf.get_current_reward_amount(USER1, 2) == 5000

        # A share change settles every bound version
        deployment.stake(leaf, USER1, position_id, [1])

        assert deployment.token.balance_of(USER1) == 15_000
        assert deployment.store.balance() == 0
        assert store2.balance() == 0
        assert leaf.get_accumulator(1).cumulative_per_share == 10 * REWARD_PRECISION
        assert leaf.get_accumulator(2).cumulative_per_share == 5 * REWARD_PRECISION
        assert leaf.get_accumulator(3) is None


class TestDust:
    def test_floor_remainder_stays_in_store(self, deployment):
        leaves = [deployment.leaf() for _ in range(3)]
        for leaf in leaves:
            deployment.attach(deployment.root, leaf, 1)
        deployment.activate()
        for leaf in leaves:
            deployment.stake(leaf, USER1, leaf.create_position(USER1), [0])

        deployment.fund(10)
        paid = sum(leaf.claim_reward(USER1, 1) for leaf in leaves)

        assert paid == 9
        assert deployment.root.get_version(1).split.dust == 1
        assert deployment.store.balance() == 1


class TestRegistry:
    def test_list_nodes_by_kind(self, two_leaf_tree):
        deployment, leaf1, leaf2 = two_leaf_tree
        routing = deployment.routing()

        tree = deployment.tree
        assert tree.list_nodes(NodeKind.LEAF) == [leaf1, leaf2]
        assert tree.list_nodes(NodeKind.ROUTING) == [routing]
        assert tree.list_nodes(NodeKind.ROOT) == [deployment.root]
        assert len(tree.list_nodes()) == 4

    def test_get_node_normalizes_address(self, two_leaf_tree):
        deployment, leaf1, _ = two_leaf_tree

        assert deployment.tree.get_node(leaf1.address.upper().replace("0X", "0x")) is leaf1

    def test_get_unknown_node(self, deployment):
        with pytest.raises(UnknownNodeError):
            deployment.tree.get_node("0xmissing")

    def test_leaf_position_token_is_wired(self, deployment):
        leaf = deployment.leaf()

        assert leaf.position_token.ledger is leaf
        assert leaf.position_token.minter == leaf.address
