# starledger/__init__.py
"""
Star Ledger: append-only, hash-linked registry of star ownership claims.
Every claim is bound to a Bitcoin address through a time-boxed signed challenge.
"""

from starledger.core.types import Block, Genesis, StarClaim, OwnedStar
from starledger.chain.manager import ChainManager
from starledger.chain.ownership import OwnershipVerifier
from starledger.registry import StarRegistry

__version__ = "0.1.0-dev"

__all__ = [
    "Block",
    "Genesis",
    "StarClaim",
    "OwnedStar",
    "ChainManager",
    "OwnershipVerifier",
    "StarRegistry",
]
