"""
Historical treasury spend scanner.

Walks the chain from a start height to the tip captured when the scan begins
and collects every treasury spend it meets. One scan runs at a time per
scanner; callers poll `progress()` for status and for the spends found since
their previous poll.
"""

import asyncio
import threading
from dataclasses import replace
from typing import List, Optional

from ..config import TreasuryConfig
from ..errors import DataSourceUnavailableError, LedgerError, ScanInProgressError, ScanStartError
from ..ledger.source import LedgerDataSource
from ..ledger.types import BlockRecord, TransactionRecord
from ..logging import LogContext, get_logger
from .detector import is_treasury_spend, spend_amount_and_payee
from .jobs import CancellationToken, ManagedJob
from .models import ScanProgress, ScanResults, SpendHistoryRecord, utc_from_timestamp

logger = get_logger(__name__)

_CONTEXT = LogContext(component="scanner", operation="historical_scan")


def build_history_record(tx: TransactionRecord, block: BlockRecord) -> SpendHistoryRecord:
    """Describe a treasury spend mined in `block`."""
    amount, payee = spend_amount_and_payee(tx)
    return SpendHistoryRecord(
        tx_hash=tx.txid or "",
        amount=amount,
        payee=payee,
        block_height=block.height,
        block_hash=block.hash,
        timestamp=utc_from_timestamp(block.time),
        # Not the real vote outcome; see the vote tally engine for that
        vote_result="approved",
    )


class HistoricalScanner:
    """Single-flight background scan over a block range."""

    def __init__(
        self, ledger: Optional[LedgerDataSource], config: Optional[TreasuryConfig] = None
    ):
        self.ledger = ledger
        self.config = config or TreasuryConfig()
        self._lock = threading.RLock()
        self._running = False
        self._cancelled = False
        self._current_height = 0
        self._total_height = 0
        self._found_count = 0
        self._results: List[SpendHistoryRecord] = []
        self._new_spends: List[SpendHistoryRecord] = []
        self._job: Optional[ManagedJob] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def trigger(self, start_height: int) -> ManagedJob:
        """Start a scan from `start_height` and return without waiting.

        Must be called from a running event loop.

        Raises:
            DataSourceUnavailableError: no ledger is configured.
            ScanInProgressError: a scan is already running.
        """
        if self.ledger is None:
            raise DataSourceUnavailableError()
        loop = asyncio.get_running_loop()

        start_height = max(start_height, self.config.activation_height)
        with self._lock:
            if self._running:
                raise ScanInProgressError()
            self._running = True
            self._cancelled = False
            self._current_height = start_height
            self._total_height = 0
            self._found_count = 0
            self._results = []
            self._new_spends = []

            try:
                self._job = ManagedJob.launch(
                    f"historical-scan-{start_height}",
                    lambda token: self._scan(token, start_height),
                    loop=loop,
                )
            except RuntimeError:
                self._running = False
                raise
            return self._job

    async def _scan(self, token: CancellationToken, start_height: int) -> None:
        try:
            try:
                tip = await self.ledger.current_height()
            except LedgerError as e:
                error = ScanStartError(
                    f"Cannot get chain tip for scan: {e}", start_height=start_height, cause=e
                )
                logger.error(str(error), context=_CONTEXT)
                return

            with self._lock:
                self._total_height = tip

            logger.info(
                f"Starting historical treasury spend scan from block {start_height} to {tip}",
                context=_CONTEXT,
            )

            for height in range(start_height, tip + 1):
                if token.cancelled:
                    with self._lock:
                        self._cancelled = True
                    logger.info(f"Historical scan cancelled at block {height}", context=_CONTEXT)
                    return

                await self._scan_height(height)

                with self._lock:
                    self._current_height = height

            logger.info(
                f"Historical treasury spend scan complete. Found {self._found_count} treasury spends",
                context=_CONTEXT,
            )
        finally:
            with self._lock:
                self._running = False

    async def _scan_height(self, height: int) -> None:
        try:
            block = await self.ledger.block_at(height)
        except LedgerError as e:
            logger.warning(
                f"Failed to get block at height {height}: {e}",
                context=replace(_CONTEXT, block_height=height),
            )
            return

        for tx_id in block.all_tx_ids:
            try:
                tx = await self.ledger.transaction_by_hash(tx_id)
            except LedgerError as e:
                logger.debug(f"Skipping transaction {tx_id}: {e}", context=_CONTEXT)
                continue

            if not is_treasury_spend(tx):
                continue

            if tx.txid is None:
                tx = replace(tx, txid=tx_id)
            record = build_history_record(tx, block)
            with self._lock:
                self._results.append(record)
                self._new_spends.append(record)
                self._found_count += 1
            logger.info(
                f"Treasury spend found at height {block.height}: {record.tx_hash} "
                f"(amount: {record.amount:.2f})",
                context=_CONTEXT,
            )

    def progress(self) -> ScanProgress:
        """Snapshot the scan and drain the spends found since the last call."""
        floor = self.config.activation_height
        with self._lock:
            percent = 0.0
            if self._total_height > floor:
                percent = (
                    (self._current_height - floor) / (self._total_height - floor) * 100
                )
                percent = min(100.0, max(0.0, percent))

            if self._running:
                message = "Scanning blockchain for treasury spends..."
            elif self._cancelled:
                message = f"Scan cancelled. Found {self._found_count} treasury spends"
            elif self._found_count > 0:
                message = f"Scan complete. Found {self._found_count} treasury spends"
            else:
                message = "No scan in progress"

            new_spends = self._new_spends
            self._new_spends = []

            return ScanProgress(
                is_scanning=self._running,
                current_height=self._current_height,
                total_height=self._total_height,
                progress=percent,
                found_count=self._found_count,
                new_spends=new_spends,
                message=message,
            )

    def results(self) -> ScanResults:
        """Every spend found by the current or last scan."""
        with self._lock:
            return tuple(self._results)

    def cancel(self) -> bool:
        """Ask a running scan to stop; False if none is running."""
        with self._lock:
            if not self._running or self._job is None:
                return False
            self._job.cancel()
            return True

    async def wait(self) -> None:
        """Wait for the current scan, if any, to finish."""
        with self._lock:
            job = self._job
        if job is not None:
            await job.wait()
