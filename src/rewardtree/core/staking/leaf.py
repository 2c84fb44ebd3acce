"""
Staking Leaf.

The leaf is the distribution node users interact with. It owns:
- Staking positions (ownership tracked by the leaf's PositionToken)
- The slot ledger of every position
- One locked-withdrawal queue per position
- Per-user shares and one RewardAccumulator per bound version

Reward flow:
- Before any user's shares change, the leaf pulls its credit from the parent
  of every bound version and pays that user's pending reward.
- Claims pull, settle and pay through the parent chain to the root's store.
- Previews run the same chain read-only and return the same number a claim
  would pay.

Security features:
- Reentrancy guard on every mutating operation
- Whole-batch validation before any state change
- Asset custody calls only after ledger state is final; if one fails, the
  leaf state is restored and assets already moved are handed back
- Transfer hook accepted only from the leaf's own PositionToken
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional, Sequence, Tuple

from .. import config
from ..addresses import derive_address, normalize
from ..contracts.position_token import PositionToken
from ..defi.access_control import Role, RoleBasedAccessControl, requires_role
from ..distribution.accumulator import RewardAccumulator
from ..distribution.nodes import NodeKind, bind_upward
from ..exceptions import (
    AssetMismatchError,
    InvalidSlotError,
    LedgerError,
    PositionNotFoundError,
    ReentrancyError,
    SlotOccupiedWithoutReplaceError,
    UnauthorizedError,
)
from .requirements import RequirementChecker, SlotRequirement
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

if TYPE_CHECKING:
    from ..distribution.tree import DistributionTree

logger = logging.getLogger(__name__)

# (version, user, amount)
Payout = Tuple[int, str, int]

# (asset, from, to)
CustodyMove = Tuple[AssetRef, str, str]


@dataclass
class _Checkpoint:
    """Leaf state an operation restores when a custody call fails."""

    position_id: int
    occupants: List[Optional[StakedAsset]]
    shares: int
    withdrawals: List[LockedWithdrawal]
    user_shares: Dict[str, int]
    total_shares: int
    snapshots: Dict[int, Dict[str, int]]


@dataclass(eq=False)
class LeafNode:
    """
    Distribution leaf holding staking positions.

    Shares of a position are the sum of the weights of the assets in its
    slots; a user's shares are the sum over the positions they own here.
    """

    kind: ClassVar[NodeKind] = NodeKind.LEAF

    tree: "DistributionTree" = field(repr=False)
    admin: str
    requirement_checker: RequirementChecker
    slot_requirements: List[SlotRequirement]
    position_token: PositionToken

    unstake_lock_period: int = field(default_factory=lambda: config.DEFAULT_UNSTAKE_LOCK_PERIOD)
    address: str = ""

    # Slot ledger
    positions: Dict[int, StakingPosition] = field(default_factory=dict)
    withdrawals: Dict[int, LockedWithdrawalQueue] = field(default_factory=dict)

    # Share accounting
    user_shares: Dict[str, int] = field(default_factory=dict)
    total_shares: int = 0

    # version -> accumulator / parent address
    accumulators: Dict[int, RewardAccumulator] = field(default_factory=dict)
    parents: Dict[int, str] = field(default_factory=dict)

    access: RoleBasedAccessControl = field(init=False)

    # Reentrancy guard
    _locked: bool = False

    def __post_init__(self) -> None:
        self.admin = normalize(self.admin)
        if not self.address:
            self.address = derive_address(f"leaf:{self.admin}")
        self.address = normalize(self.address)
        self.slot_requirements = list(self.slot_requirements)
        self.access = RoleBasedAccessControl(admin_address=self.admin)

    # ==================== Configuration ====================

    @requires_role(Role.ADMIN)
    def bind_version(self, caller: str, version: int, parent: str) -> bool:
        """
        Attach this leaf to a parent for a version.

        Args:
            caller: Must hold the admin role
            version: Version id listed at the parent
            parent: Parent node address

        Raises:
            VersionBindingError: If the version is already bound or the parent
                does not list this leaf
        """
        self._require_not_locked()
        bind_upward(self, version, parent)
        self.accumulators[version] = RewardAccumulator()
        return True

    @requires_role(Role.GOVERNANCE)
    def set_unstake_lock_period(self, caller: str, seconds: int) -> bool:
        """Change the lock applied to assets displaced from now on."""
        if seconds < 0:
            raise LedgerError(f"Lock period must be non-negative, got {seconds}")

        previous = self.unstake_lock_period
        self.unstake_lock_period = seconds

        logger.info(
            "Unstake lock period changed",
            extra={
                "event": "leaf.lock_period_changed",
                "leaf": self.address[:10],
                "previous": previous,
                "seconds": seconds,
            }
        )
        return True

    # ==================== Positions ====================

    def create_position(self, caller: str) -> int:
        """
        Open an empty position owned by the caller.

        Returns:
            Position id (ids are numbered per leaf from 0)
        """
        self._require_not_locked()

        try:
            self._locked = True

            position_id = self.position_token.mint(self.address, caller)
            self.positions[position_id] = StakingPosition(
                id=position_id,
                slots=[Slot(index, req) for index, req in enumerate(self.slot_requirements)],
            )
            self.withdrawals[position_id] = LockedWithdrawalQueue()

            logger.info(
                "Position created",
                extra={
                    "event": "leaf.position_created",
                    "leaf": self.address[:10],
                    "position_id": position_id,
                    "owner": normalize(caller)[:10],
                }
            )
            return position_id

        finally:
            self._locked = False

    def stake_to_position(
        self,
        caller: str,
        position_id: int,
        requests: Sequence[StakeRequest],
        replace: bool = False,
    ) -> int:
        """
        Stake assets into slots of a position.

        Args:
            caller: Position owner, also the owner of every asset
            position_id: Target position
            requests: (collection, token_id, slot_id) entries
            replace: Move current occupants to the locked-withdrawal queue
                instead of failing

        Returns:
            The position's shares after staking

        Raises:
            UnauthorizedError: If the caller does not own the position or an
                asset, or the leaf is not approved to take custody
            InvalidSlotError: If a slot is out of range or rejects the asset
            AssetNotWhitelistedError: If an asset contract is not whitelisted
            SlotOccupiedWithoutReplaceError: If a slot is taken and replace is off
            TokenError: If an asset contract refuses custody; the stake is
                rolled back and nothing is paid
        """
        self._require_not_locked()

        try:
            self._locked = True

            owner = self._require_position_owner(caller, position_id)
            position = self.positions[position_id]

            staged = [slot.occupant for slot in position.slots]
            admitted: List[AssetRef] = []
            displaced: List[StakedAsset] = []

            for request in requests:
                slot = self._slot(position, request.slot_id)
                collection = request.collection
                asset = AssetRef.of(collection, request.token_id)

                self.requirement_checker.require_admissible(
                    collection, request.token_id, slot.requirement
                )
                if collection.owner_of(request.token_id) != owner or asset in admitted:
                    raise UnauthorizedError(
                        f"Caller does not own asset {request.token_id}",
                        details={"contract": asset.contract, "token_id": asset.token_id},
                    )
                if not collection.is_approved_or_owner(self.address, request.token_id):
                    raise UnauthorizedError(
                        "Leaf is not approved to take custody of the asset",
                        details={"contract": asset.contract, "token_id": asset.token_id},
                    )

                occupant = staged[slot.index]
                if occupant is not None:
                    if not replace:
                        raise SlotOccupiedWithoutReplaceError(
                            f"Slot {slot.index} of position {position_id} is occupied",
                            details={"position_id": position_id, "slot_id": slot.index},
                        )
                    displaced.append(occupant)

                staged[slot.index] = StakedAsset(asset, collection.weight_of(request.token_id))
                admitted.append(asset)

            checkpoint = self._checkpoint(position_id)
            payouts = self._settle([owner])
            delta = self._apply_slots(position, staged, owner)
            self._lock_displaced(position_id, displaced)

            try:
                self._move_custody([(asset, owner, self.address) for asset in admitted])
            except Exception as e:
                self._restore(checkpoint, e)
                raise

            logger.info(
                "Assets staked",
                extra={
                    "event": "leaf.staked",
                    "leaf": self.address[:10],
                    "position_id": position_id,
                    "owner": owner[:10],
                    "staked": len(admitted),
                    "displaced": len(displaced),
                    "share_delta": delta,
                }
            )

            self._pay(payouts)
            return position.shares

        finally:
            self._locked = False

    def unstake_from_position(
        self,
        caller: str,
        position_id: int,
        requests: Sequence[UnstakeRequest],
    ) -> int:
        """
        Move staked assets out of their slots into the locked-withdrawal queue.

        Args:
            caller: Position owner
            position_id: Source position
            requests: (collection, token_id, slot_id) entries naming the
                current occupants

        Returns:
            The position's shares after unstaking

        Raises:
            AssetMismatchError: If a slot does not hold the named asset
        """
        self._require_not_locked()

        try:
            self._locked = True

            owner = self._require_position_owner(caller, position_id)
            position = self.positions[position_id]

            staged = [slot.occupant for slot in position.slots]
            removed: List[StakedAsset] = []

            for request in requests:
                slot = self._slot(position, request.slot_id)
                occupant = staged[slot.index]
                target = AssetRef.of(request.collection, request.token_id)
                if occupant is None or occupant.asset != target:
                    raise AssetMismatchError(
                        f"Slot {slot.index} does not hold asset {request.token_id}",
                        details={
                            "position_id": position_id,
                            "slot_id": slot.index,
                            "contract": target.contract,
                            "token_id": target.token_id,
                        },
                    )
                staged[slot.index] = None
                removed.append(occupant)

            payouts = self._settle([owner])
            delta = self._apply_slots(position, staged, owner)
            self._lock_displaced(position_id, removed)

            logger.info(
                "Assets unstaked",
                extra={
                    "event": "leaf.unstaked",
                    "leaf": self.address[:10],
                    "position_id": position_id,
                    "owner": owner[:10],
                    "unstaked": len(removed),
                    "share_delta": delta,
                }
            )

            self._pay(payouts)
            return position.shares

        finally:
            self._locked = False

    def claim_locked_withdrawals(
        self,
        caller: str,
        position_id: int,
        indices: Sequence[int],
    ) -> List[LockedWithdrawal]:
        """
        Return unlocked assets to the position owner.

        Args:
            caller: Position owner
            position_id: Position whose queue is claimed
            indices: Queue indices in strictly descending order

        Returns:
            The claimed entries

        Raises:
            WithdrawalIndexOrderError: If indices are not strictly descending
                or out of range
            WithdrawalLockedError: If an entry is still locked
            TokenError: If an asset contract refuses the return; every entry
                stays queued
        """
        self._require_not_locked()

        try:
            self._locked = True

            owner = self._require_position_owner(caller, position_id)
            queue = self.withdrawals[position_id]

            claimed = queue.validate_claim(indices, self._now())
            checkpoint = self._checkpoint(position_id)
            queue.pop_descending(indices)

            try:
                self._move_custody([(entry.asset, self.address, owner) for entry in claimed])
            except Exception as e:
                self._restore(checkpoint, e)
                raise

            logger.info(
                "Locked withdrawals claimed",
                extra={
                    "event": "leaf.withdrawals_claimed",
                    "leaf": self.address[:10],
                    "position_id": position_id,
                    "count": len(claimed),
                    "remaining": len(queue),
                }
            )
            return claimed

        finally:
            self._locked = False

    # ==================== Rewards ====================

    def claim_reward(self, user: str, version: int) -> int:
        """
        Pay a user's pending reward for a version.

        Anyone may trigger the claim; the reward always goes to ``user``.
        A zero amount settles the snapshot without a transfer.

        Returns:
            Amount paid
        """
        self._require_not_locked()

        try:
            self._locked = True

            user_norm = normalize(user)
            accumulator = self.accumulators.get(version)
            if accumulator is None:
                return 0

            self._pull(version)
            owed = accumulator.settle(user_norm, self.user_shares.get(user_norm, 0))
            self._pay([(version, user_norm, owed)])
            return owed

        finally:
            self._locked = False

    def get_current_reward_amount(self, user: str, version: int) -> int:
        """Amount ``claim_reward`` would pay right now, computed without side effects."""
        accumulator = self.accumulators.get(version)
        if accumulator is None:
            return 0

        cumulative = accumulator.cumulative_per_share
        parent = self._parent(version)
        if parent is not None and self.total_shares > 0:
            cumulative = accumulator.projected(
                parent.peek(version, self.address), self.total_shares
            )

        user_norm = normalize(user)
        return accumulator.pending(user_norm, self.user_shares.get(user_norm, 0), cumulative)

    # ==================== Transfer Hook ====================

    def prepare_transfer(self, caller: str, from_addr: str, to_addr: str, position_id: int) -> None:
        """
        Settle both parties and move a position's shares ahead of an ownership change.

        Raises:
            UnauthorizedError: If not called by this leaf's position token
        """
        if normalize(caller) != self.position_token.address:
            raise UnauthorizedError(
                "Transfer hook may only be called by the position token",
                details={"caller": normalize(caller)},
            )
        self._require_not_locked()

        try:
            self._locked = True

            position = self._position(position_id)
            from_norm = normalize(from_addr)
            to_norm = normalize(to_addr)

            payouts = self._settle([from_norm, to_norm])
            self._adjust_user_shares(from_norm, -position.shares)
            self._adjust_user_shares(to_norm, position.shares)

            logger.info(
                "Position transfer settled",
                extra={
                    "event": "leaf.position_transferred",
                    "leaf": self.address[:10],
                    "position_id": position_id,
                    "from": from_norm[:10],
                    "to": to_norm[:10],
                    "shares": position.shares,
                }
            )

            self._pay(payouts)

        finally:
            self._locked = False

    # ==================== View Functions ====================

    def get_position_view(self, position_id: int) -> PositionView:
        position = self._position(position_id)
        return PositionView(
            id=position_id,
            owner=self.position_token.owner_of(position_id),
            shares=position.shares,
            slots=[slot.occupant for slot in position.slots],
            locked_withdrawals=list(self.withdrawals[position_id]),
        )

    def user_shares_of(self, user: str) -> int:
        return self.user_shares.get(normalize(user), 0)

    def get_accumulator(self, version: int) -> Optional[RewardAccumulator]:
        return self.accumulators.get(version)

    # ==================== Internals ====================

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError(
                "Leaf is locked",
                details={"leaf": self.address},
                recoverable=False,
            )

    @staticmethod
    def _now() -> int:
        return int(time.time())

    def _position(self, position_id: int) -> StakingPosition:
        position = self.positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(
                f"Position {position_id} does not exist",
                details={"position_id": position_id},
            )
        return position

    def _require_position_owner(self, caller: str, position_id: int) -> str:
        self._position(position_id)
        owner = self.position_token.owner_of(position_id)
        if normalize(caller) != owner:
            raise UnauthorizedError(
                f"Caller {caller[:10]} does not own position {position_id}",
                details={"caller": normalize(caller), "position_id": position_id},
            )
        return owner

    @staticmethod
    def _slot(position: StakingPosition, slot_id: int) -> Slot:
        if slot_id < 0 or slot_id >= len(position.slots):
            raise InvalidSlotError(
                f"Slot {slot_id} out of range (position has {len(position.slots)})",
                details={"position_id": position.id, "slot_id": slot_id},
            )
        return position.slots[slot_id]

    def _apply_slots(
        self,
        position: StakingPosition,
        staged: List[Optional[StakedAsset]],
        owner: str,
    ) -> int:
        for slot, occupant in zip(position.slots, staged):
            slot.occupant = occupant
        delta = position.recompute_shares()
        self._adjust_user_shares(owner, delta)
        return delta

    def _adjust_user_shares(self, user: str, delta: int) -> None:
        if not delta:
            return
        self.user_shares[user] = self.user_shares.get(user, 0) + delta
        self.total_shares += delta

    def _lock_displaced(self, position_id: int, displaced: Sequence[StakedAsset]) -> None:
        unlock_time = self._now() + self.unstake_lock_period
        queue = self.withdrawals[position_id]
        for staked in displaced:
            queue.append(LockedWithdrawal(staked.asset, position_id, unlock_time))

    def _parent(self, version: int):
        parent = self.parents.get(version)
        return self.tree.get_node(parent) if parent else None

    def _pull(self, version: int) -> None:
        # With no shares there is nobody to accrue to; the credit waits at the parent.
        if self.total_shares <= 0:
            return
        parent = self._parent(version)
        if parent is None:
            return
        incoming = parent.draw(self.address, version)
        if incoming > 0:
            self.accumulators[version].incorporate(incoming, self.total_shares)
            logger.debug(
                "Leaf pulled rewards",
                extra={
                    "event": "leaf.pulled",
                    "leaf": self.address[:10],
                    "version": version,
                    "amount": incoming,
                    "total_shares": self.total_shares,
                }
            )

    def _settle(self, users: Sequence[str]) -> List[Payout]:
        """Pull every bound version and settle ``users`` at their current shares."""
        payouts = []
        for version, accumulator in self.accumulators.items():
            self._pull(version)
            for user in users:
                owed = accumulator.settle(user, self.user_shares.get(user, 0))
                if owed > 0:
                    payouts.append((version, user, owed))
        return payouts

    def _move_custody(self, moves: Sequence[CustodyMove]) -> None:
        """
        Move assets in order, handing back the ones already moved if one fails.

        Moving an asset back out of an owner's wallet relies on the operator
        approval the owner granted the leaf for staking.
        """
        done: List[CustodyMove] = []
        try:
            for asset, from_addr, to_addr in moves:
                asset.collection.transfer_from(self.address, from_addr, to_addr, asset.token_id)
                done.append((asset, from_addr, to_addr))
        except Exception:
            for asset, from_addr, to_addr in reversed(done):
                asset.collection.transfer_from(self.address, to_addr, from_addr, asset.token_id)
            raise

    def _checkpoint(self, position_id: int) -> _Checkpoint:
        position = self.positions[position_id]
        return _Checkpoint(
            position_id=position_id,
            occupants=[slot.occupant for slot in position.slots],
            shares=position.shares,
            withdrawals=list(self.withdrawals[position_id].entries),
            user_shares=dict(self.user_shares),
            total_shares=self.total_shares,
            snapshots={v: dict(acc.snapshots) for v, acc in self.accumulators.items()},
        )

    def _restore(self, checkpoint: _Checkpoint, error: Exception) -> None:
        # Credit pulled meanwhile stays incorporated; restored snapshots keep it owed.
        position = self.positions[checkpoint.position_id]
        for slot, occupant in zip(position.slots, checkpoint.occupants):
            slot.occupant = occupant
        position.shares = checkpoint.shares
        self.withdrawals[checkpoint.position_id].entries = list(checkpoint.withdrawals)
        self.user_shares = dict(checkpoint.user_shares)
        self.total_shares = checkpoint.total_shares
        for version, snapshots in checkpoint.snapshots.items():
            self.accumulators[version].snapshots = snapshots

        logger.warning(
            "Custody transfer failed, leaf state restored",
            extra={
                "event": "leaf.custody_failed",
                "leaf": self.address[:10],
                "position_id": checkpoint.position_id,
                "error": str(error),
            }
        )

    def _pay(self, payouts: Sequence[Payout]) -> None:
        for version, user, amount in payouts:
            if amount <= 0:
                continue
            self._parent(version).pay_out(self.address, version, user, amount)
            logger.info(
                "Reward paid",
                extra={
                    "event": "leaf.reward_paid",
                    "leaf": self.address[:10],
                    "version": version,
                    "user": user[:10],
                    "amount": amount,
                }
            )
