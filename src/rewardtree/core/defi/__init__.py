"""
Access control for privileged ledger operations.

Tree configuration is gated by the admin role; lock-period changes and asset
whitelisting are gated by the governance role.
"""

from .access_control import Role, RoleBasedAccessControl, requires_role

__all__ = [
    "Role",
    "RoleBasedAccessControl",
    "requires_role",
]
