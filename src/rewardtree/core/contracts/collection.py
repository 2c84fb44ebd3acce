"""
Stakeable Asset Collection.

Non-fungible asset contract whose tokens carry a trait vector and a rarity
weight. The weight is fixed at mint time and becomes the number of shares an
asset contributes while staked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .. import config
from ..addresses import normalize
from ..exceptions import TokenError, UnauthorizedError
from .nft import NonFungibleLedger

logger = logging.getLogger(__name__)


@dataclass
class StakeableCollection(NonFungibleLedger):
    """Asset contract with per-token traits and weights."""

    # Owner (for minting permissions)
    owner: str = ""

    traits: dict[int, list[int]] = field(default_factory=dict)
    weights: dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.owner = normalize(self.owner)

    def mint(
        self,
        minter: str,
        to: str,
        traits: Sequence[int] = (),
        weight: Optional[int] = None,
    ) -> int:
        """
        Mint a new asset.

        Args:
            minter: Address calling mint (must be owner)
            to: Recipient address
            traits: Trait values indexed by trait id
            weight: Rarity weight (defaults to DEFAULT_ASSET_WEIGHT)

        Returns:
            Minted token ID
        """
        if normalize(minter) != self.owner:
            raise UnauthorizedError(f"{self.symbol}: caller is not owner")

        weight = config.DEFAULT_ASSET_WEIGHT if weight is None else weight
        if weight <= 0:
            raise TokenError(f"{self.symbol}: weight must be positive")

        token_id = self._mint_to(to)
        self.traits[token_id] = list(traits)
        self.weights[token_id] = weight
        return token_id

    def traits_of(self, token_id: int) -> list[int]:
        self.owner_of(token_id)
        return list(self.traits.get(token_id, []))

    def weight_of(self, token_id: int) -> int:
        self.owner_of(token_id)
        return self.weights[token_id]
