"""
Role-Based Access Control for Ledger Contracts.

Gates privileged operations (tree configuration, lock-period changes,
asset whitelisting) behind roles held by caller addresses.

Security features:
- Only admins can grant/revoke roles
- Audit trail for all role changes
- Denied calls are logged before raising
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Set

from ..exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


class Role(Enum):
    """Standard roles for ledger access control."""
    ADMIN = "admin"
    GOVERNANCE = "governance"


@dataclass
class RoleBasedAccessControl:
    """
    Role registry for a single contract.

    The admin address receives every standard role at construction and is
    the only address allowed to grant or revoke roles afterwards.
    """

    # Admin address (can grant/revoke roles)
    admin_address: str = ""

    # Role assignments: role -> set of addresses
    roles: Dict[str, Set[str]] = field(default_factory=dict)

    # Audit log
    role_changes: list = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize roles."""
        for role in Role:
            if role.value not in self.roles:
                self.roles[role.value] = set()

        if self.admin_address:
            self.admin_address = self.admin_address.lower()
            for role in Role:
                self.roles[role.value].add(self.admin_address)

    def grant_role(self, caller: str, role: str, address: str) -> bool:
        """
        Grant a role to an address.

        Args:
            caller: Must hold the admin role
            role: Role to grant
            address: Address to grant role to

        Returns:
            True if role granted

        Raises:
            UnauthorizedError: If caller is not admin
        """
        self.verify_role_simple(caller, Role.ADMIN.value)

        address_norm = address.lower()
        if role not in self.roles:
            self.roles[role] = set()
        self.roles[role].add(address_norm)

        self.role_changes.append({
            "action": "grant",
            "role": role,
            "address": address_norm,
            "admin": caller.lower(),
            "timestamp": time.time(),
        })

        logger.info(
            "Role granted",
            extra={
                "event": "rbac.role_granted",
                "role": role,
                "address": address_norm[:10],
                "admin": caller.lower()[:10],
            }
        )

        return True

    def revoke_role(self, caller: str, role: str, address: str) -> bool:
        """
        Revoke a role from an address.

        Args:
            caller: Must hold the admin role
            role: Role to revoke
            address: Address to revoke role from

        Returns:
            True if role revoked

        Raises:
            UnauthorizedError: If caller is not admin
        """
        self.verify_role_simple(caller, Role.ADMIN.value)

        address_norm = address.lower()
        if role in self.roles:
            self.roles[role].discard(address_norm)

        self.role_changes.append({
            "action": "revoke",
            "role": role,
            "address": address_norm,
            "admin": caller.lower(),
            "timestamp": time.time(),
        })

        logger.info(
            "Role revoked",
            extra={
                "event": "rbac.role_revoked",
                "role": role,
                "address": address_norm[:10],
                "admin": caller.lower()[:10],
            }
        )

        return True

    def has_role(self, role: str, address: str) -> bool:
        """Check if an address has a role."""
        return address.lower() in self.roles.get(role, set())

    def verify_role_simple(self, caller: str, role: str) -> None:
        """
        Verify role and raise if unauthorized.

        Args:
            caller: Address making the call
            role: Required role

        Raises:
            UnauthorizedError: If caller does not hold the role
        """
        if not self.has_role(role, caller):
            logger.warning(
                "Access denied: role not assigned",
                extra={
                    "event": "rbac.role_not_assigned",
                    "address": caller.lower()[:10],
                    "required_role": role,
                }
            )
            raise UnauthorizedError(
                f"Unauthorized: caller {caller[:10]} does not have role '{role}'",
                details={"caller": caller.lower(), "role": role},
            )

    def get_role_members(self, role: str) -> Set[str]:
        """Get all addresses with a given role."""
        return self.roles.get(role, set()).copy()

    def get_user_roles(self, address: str) -> Set[str]:
        """Get all roles assigned to an address."""
        address_norm = address.lower()
        return {
            role
            for role, members in self.roles.items()
            if address_norm in members
        }


def requires_role(role: Role):
    """
    Decorator to require a role on the first positional argument (caller).

    The decorated object must expose its registry as ``self.access``.

    Usage:
        @requires_role(Role.GOVERNANCE)
        def set_unstake_lock_period(self, caller: str, seconds: int):
            ...
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, caller: str, *args, **kwargs):
            self.access.verify_role_simple(caller, role.value)
            return func(self, caller, *args, **kwargs)
        return wrapper
    return decorator
