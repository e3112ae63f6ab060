"""
Treasury service facade.

`TreasuryService` owns one ledger data source and the components built on it:
the mempool prober, the historical scanner and the vote tally engine with its
shared job registry, progress store and result cache. HTTP handlers and other
callers go through it rather than through module-level state.
"""

from typing import List, Optional, Tuple

from ..config import ATOMS_PER_COIN, GovTallyConfig
from ..errors import GovTallyError
from ..ledger.rpc import DcrdRPCClient
from ..ledger.source import LedgerDataSource
from ..logging import get_logger
from .jobs import ManagedJob
from .mempool import MempoolProber
from .models import (
    ScanProgress,
    ScanResults,
    SpendRecord,
    TreasuryInfo,
    VoteTallyProgress,
    VotingTally,
)
from .scanner import HistoricalScanner
from .state import JobRegistry, ProgressStore, ResultCache
from .tally import VoteTallyEngine

logger = get_logger(__name__)


class TreasuryService:
    """Entry point for treasury spend scanning and vote tallying."""

    def __init__(
        self,
        ledger: Optional[LedgerDataSource],
        config: Optional[GovTallyConfig] = None,
    ):
        self.ledger = ledger
        self.config = config or GovTallyConfig()
        treasury = self.config.treasury

        self.jobs = JobRegistry()
        self.progress = ProgressStore()
        self.cache = ResultCache(
            max_entries=treasury.cache_max_entries,
            ttl_seconds=treasury.cache_ttl_seconds,
        )

        self.prober = MempoolProber(ledger)
        self.scanner = HistoricalScanner(ledger, treasury)
        self.tally = VoteTallyEngine(
            ledger,
            treasury,
            jobs=self.jobs,
            progress=self.progress,
            cache=self.cache,
        )

    @classmethod
    def from_config(cls, config: Optional[GovTallyConfig] = None) -> "TreasuryService":
        """Build a service backed by a dcrd RPC client."""
        config = config or GovTallyConfig()
        config.validate()
        return cls(DcrdRPCClient(config.ledger), config)

    # Historical scan

    async def trigger_historical_scan(self, start_height: int) -> ManagedJob:
        """Start a background scan; see `HistoricalScanner.trigger`."""
        return self.scanner.trigger(start_height)

    def get_scan_progress(self) -> ScanProgress:
        return self.scanner.progress()

    def get_scan_results(self) -> ScanResults:
        return self.scanner.results()

    def cancel_scan(self) -> bool:
        return self.scanner.cancel()

    # Mempool

    async def probe_mempool(self) -> List[SpendRecord]:
        return await self.prober.probe()

    # Vote tallies

    async def get_tally(
        self, tx_hash: str, block_height: int, expiry: int, in_mempool: bool
    ) -> VotingTally:
        return await self.tally.get_tally(tx_hash, block_height, expiry, in_mempool)

    def get_tally_progress(self, tx_hash: str) -> Tuple[Optional[VoteTallyProgress], bool]:
        return self.tally.get_progress(tx_hash)

    def cancel_tally(self, tx_hash: str) -> bool:
        return self.tally.cancel(tx_hash)

    # Overview

    async def fetch_treasury_info(self) -> TreasuryInfo:
        """Treasury balance and active spends.

        Either half degrades to an empty value when the ledger cannot provide
        it, so this never raises for ledger trouble.
        """
        balance = 0.0
        active_spends: List[SpendRecord] = []

        if self.ledger is None:
            logger.warning("No ledger data source configured; treasury info is empty")
            return TreasuryInfo(balance=balance, active_spends=active_spends)

        try:
            balance = await self.ledger.treasury_balance() / ATOMS_PER_COIN
        except GovTallyError as e:
            logger.warning(f"Failed to get treasury balance: {e}")

        try:
            active_spends = await self.prober.probe()
        except GovTallyError as e:
            logger.warning(f"Failed to probe mempool for treasury spends: {e}")

        return TreasuryInfo(balance=balance, active_spends=active_spends)

    # Lifecycle

    async def shutdown(self) -> None:
        """Cancel background jobs, wait for them and close the ledger."""
        scan_cancelled = self.scanner.cancel()
        tallies_cancelled = self.tally.cancel_all()
        if scan_cancelled or tallies_cancelled:
            logger.info(
                f"Cancelling background jobs (scan: {scan_cancelled}, "
                f"tallies: {tallies_cancelled})"
            )
        await self.scanner.wait()
        await self.tally.wait()
        if self.ledger is not None:
            await self.ledger.close()

    async def __aenter__(self) -> "TreasuryService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
