"""
Vote tally engine for treasury spends.

Stakeholders vote on a treasury spend through the vote transactions mined
during its voting window. Counting them means fetching every stake
transaction in up to a few thousand blocks, which takes far longer than a
request should, so for mined spends the count runs as a background job:

* a finished tally is cached and served directly;
* while a job runs, callers get an estimate built from its live progress;
* otherwise the first caller registers the hash, launches the job and gets a
  zero placeholder back. Registration happens before the job exists, so two
  racing callers can never start two jobs for one hash.

Spends still in the mempool are counted inline on every call. Their window is
still open, so a cached answer would be stale by the next block.

Windows wider than `TreasuryConfig.max_scan_span` are cut down to their most
recent blocks. Votes cast earlier than that are not counted.
"""

import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..config import TreasuryConfig
from ..errors import DataSourceUnavailableError, InvalidTallyRequestError, LedgerError
from ..ledger.source import LedgerDataSource
from ..logging import LogContext, get_logger
from .detector import is_vote_transaction
from .jobs import CancellationToken, ManagedJob
from .models import VoteTallyProgress, VotingTally, VotingWindow, utc_from_timestamp
from .state import JobRegistry, ProgressStore, ResultCache
from .votebits import VoteChoice, parse_spend_vote

logger = get_logger(__name__)

ProgressHook = Callable[[int, int, int, int], None]


class VoteTallyEngine:
    """Counts yes/no votes on treasury spends."""

    def __init__(
        self,
        ledger: Optional[LedgerDataSource],
        config: Optional[TreasuryConfig] = None,
        jobs: Optional[JobRegistry] = None,
        progress: Optional[ProgressStore] = None,
        cache: Optional[ResultCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ledger = ledger
        self.config = config or TreasuryConfig()
        self.jobs = jobs or JobRegistry()
        self.progress = progress or ProgressStore()
        self.cache = cache or ResultCache(
            max_entries=self.config.cache_max_entries,
            ttl_seconds=self.config.cache_ttl_seconds,
        )
        self._clock = clock

    @staticmethod
    def _key(tx_hash: str) -> str:
        return tx_hash.lower()

    # Public API

    async def get_tally(
        self, tx_hash: str, block_height: int, expiry: int, in_mempool: bool
    ) -> VotingTally:
        """Return the tally for `tx_hash`, starting a count if needed.

        Only the mempool case waits on the ledger; every other path returns
        immediately.

        Raises:
            DataSourceUnavailableError: a count is needed but no ledger is
                configured.
            InvalidTallyRequestError: a mined spend below the activation
                height, whose voting window would be empty.
            LedgerError: mempool case only, when the chain tip is unavailable.
        """
        key = self._key(tx_hash)

        if not in_mempool:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        if self.jobs.is_running(key):
            return self._running_snapshot(key, block_height, in_mempool)

        if in_mempool:
            return await self._compute_mempool_tally(tx_hash, expiry)

        if self.ledger is None:
            raise DataSourceUnavailableError()

        activation = self.config.activation_height
        if block_height < activation:
            raise InvalidTallyRequestError(
                f"block height {block_height} is below treasury activation at {activation}",
                block_height=block_height,
            )

        if not self.jobs.try_register(key):
            # Lost the race to another caller; its job is now running
            return self._running_snapshot(key, block_height, in_mempool)

        self.progress.remove(key)
        try:
            job = ManagedJob.launch(
                f"vote-tally-{key[:16]}",
                lambda token: self._run_job(token, key, tx_hash, block_height),
            )
        except RuntimeError:
            self.jobs.deregister(key)
            raise
        self.jobs.attach(key, job)

        return self._placeholder(block_height, in_mempool)

    def get_progress(self, tx_hash: str) -> Tuple[Optional[VoteTallyProgress], bool]:
        """Latest progress record for `tx_hash` and whether one exists."""
        progress = self.progress.get(self._key(tx_hash))
        return progress, progress is not None

    def cancel(self, tx_hash: str) -> bool:
        """Ask the running job for `tx_hash` to stop; False if none runs."""
        job = self.jobs.get(self._key(tx_hash))
        if job is None:
            return False
        job.cancel()
        return True

    def cancel_all(self) -> int:
        jobs = self.jobs.jobs()
        for job in jobs:
            job.cancel()
        return len(jobs)

    async def wait(self, tx_hash: Optional[str] = None) -> None:
        """Wait for the job for `tx_hash`, or for every running job."""
        if tx_hash is not None:
            job = self.jobs.get(self._key(tx_hash))
            jobs: List[ManagedJob] = [job] if job is not None else []
        else:
            jobs = self.jobs.jobs()
        for job in jobs:
            await job.wait()

    # Voting windows

    def confirmed_window(self, block_height: int) -> VotingWindow:
        """Voting window of a spend mined at `block_height`."""
        start = max(
            block_height - self.config.voting_interval, self.config.activation_height
        )
        return VotingWindow(start=start, end=block_height, complete=True)

    def mempool_window(self, chain_tip: int, expiry: int) -> VotingWindow:
        """Voting window of a spend still in the mempool."""
        start = max(chain_tip - self.config.voting_interval, 0)
        return VotingWindow(start=start, end=expiry, complete=False)

    # Snapshots

    def _placeholder(self, block_height: int, in_mempool: bool) -> VotingTally:
        window = self.confirmed_window(block_height).bounded(self.config.max_scan_span)
        return VotingTally(
            voting_start_block=window.start,
            voting_end_block=window.end,
            voting_complete=False,
            in_mempool=in_mempool,
        )

    def _running_snapshot(self, key: str, block_height: int, in_mempool: bool) -> VotingTally:
        progress = self.progress.get(key)
        if progress is None:
            return self._placeholder(block_height, in_mempool)

        # Rough start estimate from how far the job has got
        scanned = (
            progress.current_block - block_height + self.config.voting_interval
        ) * (progress.progress / 100.0)
        return VotingTally(
            voting_start_block=progress.current_block - int(scanned),
            voting_end_block=block_height,
            yes_votes=progress.yes_votes,
            no_votes=progress.no_votes,
            votes_cast=progress.yes_votes + progress.no_votes,
            voting_complete=not progress.is_parsing,
            in_mempool=in_mempool,
        )

    # Counting

    async def _stake_tx_ids(self, height: int) -> Tuple[str, ...]:
        try:
            block = await self.ledger.block_at(height)
        except LedgerError as e:
            logger.debug(f"Skipping block {height}: {e}")
            return ()
        return block.stx

    async def count_votes(
        self,
        tx_hash: str,
        window: VotingWindow,
        token: Optional[CancellationToken] = None,
        on_block: Optional[ProgressHook] = None,
    ) -> Tuple[int, int, bool]:
        """Count yes/no votes on `tx_hash` in `window`.

        Returns ``(yes, no, finished)``; `finished` is False when `token` was
        cancelled before the last block. `on_block(processed, height, yes,
        no)` runs after every block.
        """
        yes_votes = no_votes = 0
        for processed, height in enumerate(window.heights(), start=1):
            if token is not None and token.cancelled:
                return yes_votes, no_votes, False

            for stx_id in await self._stake_tx_ids(height):
                try:
                    tx = await self.ledger.transaction_by_hash(stx_id)
                except LedgerError as e:
                    logger.debug(f"Skipping stake transaction {stx_id}: {e}")
                    continue

                if not is_vote_transaction(tx):
                    continue

                choice = parse_spend_vote(tx, tx_hash)
                if choice is VoteChoice.YES:
                    yes_votes += 1
                elif choice is VoteChoice.NO:
                    no_votes += 1

            if on_block is not None:
                on_block(processed, height, yes_votes, no_votes)

        return yes_votes, no_votes, True

    async def block_timestamps(
        self, window: VotingWindow
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Header times of the window's first and last block (None on failure)."""
        times: List[Optional[datetime]] = []
        for height in (window.start, window.end):
            try:
                block_hash = await self.ledger.block_hash_at(height)
                times.append(utc_from_timestamp(await self.ledger.block_header_time(block_hash)))
            except LedgerError as e:
                logger.debug(f"No timestamp for block {height}: {e}")
                times.append(None)
        return times[0], times[1]

    def build_tally(
        self,
        window: VotingWindow,
        yes_votes: int,
        no_votes: int,
        in_mempool: bool,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> VotingTally:
        """Derive approval, turnout and quorum from raw counts."""
        votes_cast = yes_votes + no_votes
        approval_rate = yes_votes / votes_cast * 100 if votes_cast > 0 else 0.0

        # Fixed votes-per-block estimate rather than the real ticket pool size
        eligible_votes = window.blocks * self.config.votes_per_block
        turnout_rate = votes_cast / eligible_votes * 100 if eligible_votes > 0 else 0.0

        quorum_required = eligible_votes // self.config.quorum_divisor
        return VotingTally(
            voting_start_block=window.start,
            voting_end_block=window.end,
            yes_votes=yes_votes,
            no_votes=no_votes,
            votes_cast=votes_cast,
            eligible_votes=eligible_votes,
            quorum_required=quorum_required,
            quorum_achieved=votes_cast >= quorum_required,
            approval_rate=approval_rate,
            turnout_rate=turnout_rate,
            voting_complete=window.complete,
            in_mempool=in_mempool,
            voting_start_time=start_time,
            voting_end_time=end_time,
        )

    async def _compute_mempool_tally(self, tx_hash: str, expiry: int) -> VotingTally:
        if self.ledger is None:
            raise DataSourceUnavailableError()

        chain_tip = await self.ledger.current_height()
        window = self.mempool_window(chain_tip, expiry).bounded(self.config.max_scan_span)
        yes_votes, no_votes, _ = await self.count_votes(tx_hash, window)
        start_time, end_time = await self.block_timestamps(window)
        return self.build_tally(
            window, yes_votes, no_votes, in_mempool=True, start_time=start_time, end_time=end_time
        )

    async def _run_job(
        self, token: CancellationToken, key: str, tx_hash: str, block_height: int
    ) -> None:
        context = LogContext(component="tally", operation="count_votes", tx_hash=tx_hash)
        try:
            window = self.confirmed_window(block_height).bounded(self.config.max_scan_span)
            total_blocks = window.blocks
            interval = self.config.progress_interval

            self.progress.put(
                key,
                VoteTallyProgress(
                    is_parsing=True,
                    progress=0.0,
                    current_block=window.start,
                    total_blocks=total_blocks,
                    estimated_seconds=total_blocks // 10,
                    message="Starting vote count...",
                ),
            )
            logger.info(
                f"Counting votes for treasury spend {tx_hash} over blocks "
                f"{window.start}-{window.end}",
                context=context,
            )
            started = self._clock()

            def report(processed: int, height: int, yes_votes: int, no_votes: int) -> None:
                if processed % interval != 0 and height != window.end:
                    return
                elapsed = self._clock() - started
                remaining = window.end - height
                self.progress.put(
                    key,
                    VoteTallyProgress(
                        is_parsing=True,
                        progress=processed / total_blocks * 100,
                        current_block=height,
                        total_blocks=total_blocks,
                        yes_votes=yes_votes,
                        no_votes=no_votes,
                        estimated_seconds=int(elapsed / processed * remaining),
                        message=f"Scanning block {height} of {window.end}...",
                    ),
                )

            yes_votes, no_votes, finished = await self.count_votes(
                tx_hash, window, token=token, on_block=report
            )

            if not finished:
                latest = self.progress.get(key)
                if latest is not None:
                    self.progress.put(
                        key,
                        replace(latest, is_parsing=False, estimated_seconds=0,
                                message="Vote counting cancelled"),
                    )
                logger.info(f"Vote counting cancelled for {tx_hash}", context=context)
                return

            start_time, end_time = await self.block_timestamps(window)
            tally = self.build_tally(
                window,
                yes_votes,
                no_votes,
                in_mempool=False,
                start_time=start_time,
                end_time=end_time,
            )
            self.cache.put(key, tally)
            self.progress.put(
                key,
                VoteTallyProgress(
                    is_parsing=False,
                    progress=100.0,
                    current_block=window.end,
                    total_blocks=total_blocks,
                    yes_votes=yes_votes,
                    no_votes=no_votes,
                    estimated_seconds=0,
                    message="Vote counting complete",
                ),
            )
            logger.info(
                f"Vote counting complete for treasury spend {tx_hash}: {yes_votes} yes, "
                f"{no_votes} no ({tally.approval_rate:.1f}% approval)",
                context=context,
            )
        finally:
            self.jobs.deregister(key)
