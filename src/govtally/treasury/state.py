"""
Shared state for vote tally jobs.

Three independent containers, each behind its own lock: the registry of
running jobs, the per-hash progress records and the finished-result cache.
Locks are held only for the read or the check-and-set itself, never across
ledger calls, so jobs for different hashes never wait on each other.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from .jobs import ManagedJob
from .models import VoteTallyProgress, VotingTally


class JobRegistry:
    """Hashes with an active tally job, at most one job per hash."""

    def __init__(self):
        self._jobs: Dict[str, Optional[ManagedJob]] = {}
        self._lock = threading.RLock()

    def try_register(self, key: str) -> bool:
        """Claim `key`; False if a job already holds it."""
        with self._lock:
            if key in self._jobs:
                return False
            self._jobs[key] = None
            return True

    def attach(self, key: str, job: ManagedJob) -> None:
        """Associate the launched job with a registered key."""
        with self._lock:
            if key in self._jobs:
                self._jobs[key] = job

    def deregister(self, key: str) -> None:
        with self._lock:
            self._jobs.pop(key, None)

    def is_running(self, key: str) -> bool:
        with self._lock:
            return key in self._jobs

    def get(self, key: str) -> Optional[ManagedJob]:
        with self._lock:
            return self._jobs.get(key)

    def active(self) -> List[str]:
        with self._lock:
            return list(self._jobs)

    def jobs(self) -> List[ManagedJob]:
        with self._lock:
            return [job for job in self._jobs.values() if job is not None]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class ProgressStore:
    """Latest progress record per hash."""

    def __init__(self):
        self._progress: Dict[str, VoteTallyProgress] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[VoteTallyProgress]:
        with self._lock:
            return self._progress.get(key)

    def put(self, key: str, progress: VoteTallyProgress) -> None:
        with self._lock:
            self._progress[key] = progress

    def remove(self, key: str) -> None:
        with self._lock:
            self._progress.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._progress)


class ResultCache:
    """Finished tallies for confirmed spends.

    An entry is never replaced once written. The cache is bounded: beyond
    `max_entries` the oldest entry is evicted, and with `ttl_seconds` set an
    entry older than that reads as absent.
    """

    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[VotingTally, float]]" = OrderedDict()
        self._lock = threading.RLock()

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds

    def get(self, key: str) -> Optional[VotingTally]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            tally, stored_at = entry
            if self._expired(stored_at):
                del self._entries[key]
                return None
            return tally

    def put(self, key: str, tally: VotingTally) -> VotingTally:
        """Store `tally` unless a live entry exists; return the stored value."""
        with self._lock:
            existing = self.get(key)
            if existing is not None:
                return existing

            self._entries[key] = (tally, self._clock())
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
            return tally

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
