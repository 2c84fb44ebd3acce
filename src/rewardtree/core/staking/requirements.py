"""
Slot admission requirements.

A slot carries a set of trait requirements. An asset is admissible for the
slot when its contract is whitelisted and, for every requirement, the asset's
trait at ``trait_id`` is one of the accepted values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..addresses import normalize
from ..contracts.collection import StakeableCollection
from ..defi.access_control import Role, RoleBasedAccessControl, requires_role
from ..exceptions import AssetNotWhitelistedError, InvalidSlotError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraitRequirement:
    """Accepted values for one trait index."""

    trait_id: int
    accepted_values: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "accepted_values", tuple(self.accepted_values))

    def accepts(self, traits: Sequence[int]) -> bool:
        if self.trait_id < 0 or self.trait_id >= len(traits):
            return False
        return traits[self.trait_id] in self.accepted_values


@dataclass(frozen=True)
class SlotRequirement:
    """Requirement set of a slot; empty admits any whitelisted asset."""

    requirements: tuple[TraitRequirement, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "requirements", tuple(self.requirements))


@dataclass
class RequirementChecker:
    """Whitelist of asset contracts plus the slot admission predicate."""

    admin: str = ""
    whitelist: set[str] = field(default_factory=set)
    access: RoleBasedAccessControl = field(init=False)

    def __post_init__(self) -> None:
        self.access = RoleBasedAccessControl(admin_address=self.admin)

    @requires_role(Role.GOVERNANCE)
    def whitelist_asset_contract(self, caller: str, contract: str) -> bool:
        """Admit an asset contract for staking (governance only)."""
        self.whitelist.add(normalize(contract))
        logger.info(
            "Asset contract whitelisted",
            extra={"event": "requirements.whitelisted", "contract": normalize(contract)[:10]},
        )
        return True

    @requires_role(Role.GOVERNANCE)
    def remove_from_whitelist(self, caller: str, contract: str) -> bool:
        """Stop admitting an asset contract; already staked assets stay staked."""
        self.whitelist.discard(normalize(contract))
        logger.info(
            "Asset contract removed from whitelist",
            extra={"event": "requirements.unlisted", "contract": normalize(contract)[:10]},
        )
        return True

    def is_whitelisted(self, contract: str) -> bool:
        return normalize(contract) in self.whitelist

    @staticmethod
    def meets(traits: Sequence[int], requirement: SlotRequirement) -> bool:
        """Pure admission predicate over a trait vector."""
        return all(req.accepts(traits) for req in requirement.requirements)

    def require_admissible(
        self,
        collection: StakeableCollection,
        token_id: int,
        requirement: SlotRequirement,
    ) -> None:
        """
        Check that an asset may occupy a slot with the given requirement.

        Raises:
            AssetNotWhitelistedError: If the asset contract is not whitelisted
            InvalidSlotError: If the asset's traits fail the requirement
        """
        if not self.is_whitelisted(collection.address):
            raise AssetNotWhitelistedError(
                f"Asset contract {collection.address[:10]} is not whitelisted",
                details={"contract": collection.address},
            )
        if not self.meets(collection.traits_of(token_id), requirement):
            raise InvalidSlotError(
                f"Asset {token_id} does not meet the slot requirements",
                details={"contract": collection.address, "token_id": token_id},
            )
