"""
Ledger data source interface.

The scanner, the mempool prober and the vote tally engine only ever talk to
the chain through this interface. Implementations raise `LedgerError` for
every failed call; callers decide whether a failure is skippable.
"""

from abc import ABC, abstractmethod
from typing import List

from .types import BlockRecord, LedgerCallStats, TransactionRecord


class LedgerDataSource(ABC):
    """Asynchronous read access to chain and mempool data."""

    def __init__(self):
        self.stats = LedgerCallStats()

    @abstractmethod
    async def current_height(self) -> int:
        """Height of the current chain tip."""
        pass

    @abstractmethod
    async def block_hash_at(self, height: int) -> str:
        """Hash of the main-chain block at `height`."""
        pass

    @abstractmethod
    async def block_by_hash(self, block_hash: str) -> BlockRecord:
        """Block summary including regular and stake transaction ids."""
        pass

    @abstractmethod
    async def transaction_by_hash(self, tx_id: str) -> TransactionRecord:
        """Verbose transaction detail, confirmed or in mempool."""
        pass

    @abstractmethod
    async def mempool_tx_ids(self) -> List[str]:
        """Ids of every transaction currently in the mempool."""
        pass

    @abstractmethod
    async def block_header_time(self, block_hash: str) -> int:
        """Unix timestamp from the block header."""
        pass

    @abstractmethod
    async def treasury_balance(self) -> int:
        """Current treasury balance in atoms."""
        pass

    async def block_at(self, height: int) -> BlockRecord:
        """Convenience lookup: hash at `height`, then the block itself."""
        block_hash = await self.block_hash_at(height)
        return await self.block_by_hash(block_hash)

    async def close(self) -> None:
        """Release connections held by the data source."""
        pass

    async def __aenter__(self) -> "LedgerDataSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
