"""
RewardTree Core Module

Core functionality for the reward distribution ledger including:
- Reward accumulators and the distribution tree
- Staking positions, slots and locked withdrawals
- Token contracts the ledger moves value through
- Configuration, logging and the exception hierarchy
"""

__all__ = []
