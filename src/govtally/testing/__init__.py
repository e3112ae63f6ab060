"""
Test support for govtally: an in-memory ledger and transaction builders.
"""

from .builders import make_hash, make_regular_tx, make_tspend_tx, make_vote_tx
from .ledger import InMemoryLedger

__all__ = [
    "InMemoryLedger",
    "make_hash",
    "make_regular_tx",
    "make_tspend_tx",
    "make_vote_tx",
]
