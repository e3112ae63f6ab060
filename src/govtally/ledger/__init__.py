"""
Ledger access for govtally.

Typed transaction/block records, the abstract data source consumed by the
treasury services, and a dcrd JSON-RPC implementation.
"""

from .rpc import DcrdRPCClient
from .source import LedgerDataSource
from .types import (
    BlockRecord,
    LedgerCallStats,
    ScriptPubKey,
    TransactionRecord,
    TxInput,
    TxOutput,
)

__all__ = [
    "LedgerDataSource",
    "DcrdRPCClient",
    "BlockRecord",
    "TransactionRecord",
    "TxInput",
    "TxOutput",
    "ScriptPubKey",
    "LedgerCallStats",
]
