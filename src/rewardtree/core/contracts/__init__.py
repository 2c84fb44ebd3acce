"""
Token contracts the ledger moves value through.

- RewardToken: fungible token rewards are paid in
- RewardStore: reward source bound to a root version
- StakeableCollection: non-fungible assets with traits and weights
- PositionToken: ownership of staking positions
"""

from .collection import StakeableCollection
from .nft import NFTEvent, NonFungibleLedger
from .position_token import PositionToken, TransferHook
from .reward_store import RewardStore
from .reward_token import RewardToken, TokenEvent

__all__ = [
    "NFTEvent",
    "NonFungibleLedger",
    "PositionToken",
    "RewardStore",
    "RewardToken",
    "StakeableCollection",
    "TokenEvent",
    "TransferHook",
]
