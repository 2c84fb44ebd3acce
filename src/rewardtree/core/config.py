"""
RewardTree Configuration

Ledger-wide constants, overridable through environment variables.

All variables use the REWARDTREE_ prefix:
- REWARDTREE_UNSTAKE_LOCK_PERIOD: default lock (seconds) for displaced assets
- REWARDTREE_DEFAULT_ASSET_WEIGHT: weight of assets minted without one
- REWARDTREE_LOG_LEVEL / REWARDTREE_LOG_FILE / REWARDTREE_ENV: logging setup
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting from the environment.

    Args:
        env_var: Environment variable name
        default: Value used when the variable is unset or blank
        minimum: Smallest accepted value

    Returns:
        Parsed integer

    Raises:
        ConfigurationError: If the value is not an integer or below minimum
    """
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}"
        ) from exc

    if value < minimum:
        raise ConfigurationError(
            f"{env_var} must be >= {minimum}, got {value}"
        )

    logger.debug(
        "Configuration override applied",
        extra={"event": "config.override", "env_var": env_var, "value": value},
    )
    return value


# Fixed-point scale of the per-share accumulators
REWARD_PRECISION = 10**18

DEFAULT_UNSTAKE_LOCK_PERIOD = _get_int("REWARDTREE_UNSTAKE_LOCK_PERIOD", 0)
DEFAULT_ASSET_WEIGHT = _get_int("REWARDTREE_DEFAULT_ASSET_WEIGHT", 1000, minimum=1)

LOG_LEVEL = os.getenv("REWARDTREE_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_FILE = os.getenv("REWARDTREE_LOG_FILE", "").strip()
ENVIRONMENT = os.getenv("REWARDTREE_ENV", "development").strip() or "development"

ZERO_ADDRESS = "0x" + "0" * 40
