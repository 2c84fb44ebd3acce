"""
Slot ledger types.

A staking position is a fixed-length row of slots, each gated by the
requirement configured on its leaf. The position's shares are always derived
from the weights of its current occupants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

from ..contracts.collection import StakeableCollection
from .requirements import SlotRequirement
from .withdrawals import LockedWithdrawal


@dataclass(frozen=True)
class AssetRef:
    """Reference to one token of an asset contract."""

    contract: str
    token_id: int
    collection: StakeableCollection = field(compare=False, repr=False, hash=False)

    @classmethod
    def of(cls, collection: StakeableCollection, token_id: int) -> "AssetRef":
        return cls(collection.address, token_id, collection)

    def to_dict(self) -> Dict[str, Any]:
        return {"contract": self.contract, "token_id": self.token_id}


@dataclass(frozen=True)
class StakedAsset:
    """An asset in custody together with the weight it was admitted at."""

    asset: AssetRef
    weight: int


@dataclass
class Slot:
    index: int
    requirement: SlotRequirement
    occupant: Optional[StakedAsset] = None


@dataclass
class StakingPosition:
    """Slots of one position plus its derived share count."""

    id: int
    slots: List[Slot] = field(default_factory=list)
    shares: int = 0

    def recompute_shares(self) -> int:
        """Recompute shares from the slot occupants and return the delta."""
        shares = sum(slot.occupant.weight for slot in self.slots if slot.occupant)
        delta = shares - self.shares
        self.shares = shares
        return delta


class StakeRequest(NamedTuple):
    collection: StakeableCollection
    token_id: int
    slot_id: int


class UnstakeRequest(NamedTuple):
    collection: StakeableCollection
    token_id: int
    slot_id: int


@dataclass
class PositionView:
    """Read-only snapshot of a position."""

    id: int
    owner: str
    shares: int
    slots: List[Optional[StakedAsset]]
    locked_withdrawals: List[LockedWithdrawal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "shares": self.shares,
            "slots": [
                {**occupant.asset.to_dict(), "weight": occupant.weight} if occupant else None
                for occupant in self.slots
            ],
            "locked_withdrawals": [entry.to_dict() for entry in self.locked_withdrawals],
        }
