"""
Ledger exception hierarchy for RewardTree.

Every rejected operation raises a typed exception derived from LedgerError.
A failed call leaves the ledger untouched, so callers may correct their
inputs and retry.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried with other inputs
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Authorization Errors ====================


class UnauthorizedError(LedgerError):
    """Raised when the caller lacks the ownership or role an operation needs.

    Examples: staking into a position owned by someone else, changing the
    lock period without the governance role, or invoking the transfer hook
    from anything but the position token.
    """
    pass


class ReentrancyError(LedgerError):
    """Raised when an external callback re-enters a guarded operation."""
    pass


# ==================== Staking Errors ====================


class InvalidSlotError(LedgerError):
    """Raised when a slot index is out of range or the asset fails the slot's requirements."""
    pass


class AssetNotWhitelistedError(LedgerError):
    """Raised when an asset contract is not on the admissibility list."""
    pass


class SlotOccupiedWithoutReplaceError(LedgerError):
    """Raised when staking into an occupied slot with replace disabled."""
    pass


class AssetMismatchError(LedgerError):
    """Raised when an unstake target slot does not hold the specified asset."""
    pass


class PositionNotFoundError(LedgerError):
    """Raised when a staking position id is unknown to the leaf."""
    pass


# ==================== Withdrawal Errors ====================


class WithdrawalLockedError(LedgerError):
    """Raised when a locked withdrawal is claimed before its unlock time."""
    pass


class WithdrawalIndexOrderError(LedgerError):
    """Raised when claim indices are not strictly descending or out of range."""
    pass


# ==================== Distribution Tree Errors ====================


class RewardSourceAlreadyBoundError(LedgerError):
    """Raised when a reward source is bound to a second root version."""
    pass


class VersionNotConfiguringError(LedgerError):
    """Raised when a structural change targets a version that is not Configuring."""
    pass


class DuplicateChildError(LedgerError):
    """Raised when a child is added twice to the same version."""
    pass


class VersionBindingError(LedgerError):
    """Raised when a child cannot be bound to a parent version.

    Examples: the version is already bound on the child, or the parent does
    not list the child in that version.
    """
    pass


class UnknownNodeError(LedgerError):
    """Raised when a node address is not registered in the tree."""
    pass


# ==================== Token Errors ====================


class TokenError(LedgerError):
    """Raised by token ledgers (reward token, collections, position tokens)."""
    pass


class InsufficientRewardBalanceError(TokenError):
    """Raised when a reward store is asked to pay more than it holds."""
    pass


__all__ = [
    "LedgerError",
    "UnauthorizedError",
    "ReentrancyError",
    "InvalidSlotError",
    "AssetNotWhitelistedError",
    "SlotOccupiedWithoutReplaceError",
    "AssetMismatchError",
    "PositionNotFoundError",
    "WithdrawalLockedError",
    "WithdrawalIndexOrderError",
    "RewardSourceAlreadyBoundError",
    "VersionNotConfiguringError",
    "DuplicateChildError",
    "VersionBindingError",
    "UnknownNodeError",
    "TokenError",
    "InsufficientRewardBalanceError",
]
