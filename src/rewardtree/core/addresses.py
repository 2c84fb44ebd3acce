"""Address derivation and normalization helpers shared by all contracts."""

from __future__ import annotations

import hashlib
import itertools
import time

from .config import ZERO_ADDRESS

_deployment_nonce = itertools.count()


def derive_address(label: str) -> str:
    """Derive a fresh 20-byte hex address for a newly deployed contract.

    A process-wide deployment nonce keeps addresses unique even when the
    clock is frozen.
    """
    seed = f"{label}:{next(_deployment_nonce)}:{time.time()}".encode()
    digest = hashlib.sha3_256(seed).digest()
    return f"0x{digest[-20:].hex()}"


def normalize(address: str) -> str:
    """Normalize address to lowercase."""
    return address.lower()


def is_zero(address: str) -> bool:
    return not address or normalize(address) == ZERO_ADDRESS
