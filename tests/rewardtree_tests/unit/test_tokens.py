"""
Unit tests for the non-fungible ledgers: asset collections and position tokens.
"""

import pytest

from rewardtree.core import config
from rewardtree.core.contracts.collection import StakeableCollection
from rewardtree.core.contracts.position_token import PositionToken
from rewardtree.core.exceptions import TokenError, UnauthorizedError

ADMIN = "0xAdmin"
USER1 = "0xUser1"
USER2 = "0xUser2"
LEDGER = "0xLedger"


class RecordingLedger:
    def __init__(self, token):
        self.token = token
        self.calls = []

    def prepare_transfer(self, caller, from_addr, to_addr, position_id):
        # Ownership must not have moved yet
        self.calls.append((caller, from_addr, to_addr, position_id, self.token.owner_of(position_id)))


@pytest.fixture
def collection():
    return StakeableCollection(name="Assets", symbol="AST", owner=ADMIN)


class TestStakeableCollection:
    def test_mint_assigns_sequential_ids(self, collection):
        assert collection.mint(ADMIN, USER1) == 0
        assert collection.mint(ADMIN, USER1) == 1
        assert collection.balance_of(USER1) == 2

    def test_mint_records_traits_and_weight(self, collection):
        token_id = collection.mint(ADMIN, USER1, traits=[3, 1], weight=2500)

        assert collection.traits_of(token_id) == [3, 1]
        assert collection.weight_of(token_id) == 2500

    def test_default_weight_comes_from_config(self, collection, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_ASSET_WEIGHT", 1234)

        token_id = collection.mint(ADMIN, USER1)

        assert collection.weight_of(token_id) == 1234

    def test_mint_is_owner_only(self, collection):
        with pytest.raises(UnauthorizedError):
            collection.mint(USER1, USER1)

    def test_mint_rejects_non_positive_weight(self, collection):
        with pytest.raises(TokenError):
            collection.mint(ADMIN, USER1, weight=0)

    def test_owner_of_unknown_token(self, collection):
        with pytest.raises(TokenError):
            collection.owner_of(99)
        assert not collection.exists(99)

    def test_operator_transfer(self, collection):
        token_id = collection.mint(ADMIN, USER1)
        collection.set_approval_for_all(USER1, LEDGER, True)

        collection.transfer_from(LEDGER, USER1, LEDGER, token_id)

        assert collection.owner_of(token_id) == LEDGER.lower()
        assert collection.balance_of(USER1) == 0

    def test_single_token_approval_is_cleared_on_transfer(self, collection):
        token_id = collection.mint(ADMIN, USER1)
        collection.approve(USER1, USER2, token_id)
        assert collection.get_approved(token_id) == USER2.lower()

        collection.transfer_from(USER2, USER1, USER2, token_id)

        assert collection.get_approved(token_id) == "0x" + "0" * 40

    def test_transfer_requires_approval(self, collection):
        token_id = collection.mint(ADMIN, USER1)

        with pytest.raises(TokenError):
            collection.transfer_from(USER2, USER1, USER2, token_id)

        assert collection.owner_of(token_id) == USER1.lower()


class TestPositionToken:
    def test_only_minter_mints(self):
        token = PositionToken(name="Position", symbol="POS", minter=LEDGER)

        with pytest.raises(UnauthorizedError):
            token.mint(USER1, USER1)

        assert token.mint(LEDGER, USER1) == 0

    def test_ledger_binds_once(self):
        token = PositionToken(name="Position", symbol="POS")
        ledger = RecordingLedger(token)
        token.bind_ledger(ledger, LEDGER)

        with pytest.raises(TokenError):
            token.bind_ledger(ledger, LEDGER)

    @pytest.mark.parametrize("method", ["transfer_from", "safe_transfer_from"])
    def test_transfer_runs_hook_before_moving(self, method):
        token = PositionToken(name="Position", symbol="POS")
        ledger = RecordingLedger(token)
        token.bind_ledger(ledger, LEDGER)
        position_id = token.mint(LEDGER, USER1)

        getattr(token, method)(USER1, USER1, USER2, position_id)

        assert ledger.calls == [(token.address, USER1, USER2, 0, USER1.lower())]
        assert token.owner_of(position_id) == USER2.lower()

    def test_rejected_transfer_skips_hook(self):
        token = PositionToken(name="Position", symbol="POS")
        ledger = RecordingLedger(token)
        token.bind_ledger(ledger, LEDGER)
        position_id = token.mint(LEDGER, USER1)

        with pytest.raises(TokenError):
            token.transfer_from(USER2, USER1, USER2, position_id)

        assert ledger.calls == []
