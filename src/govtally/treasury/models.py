"""
Treasury spend and vote tally records.

Records serialise with camelCase keys so they can be returned unchanged by
the HTTP layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def utc_from_timestamp(timestamp: Optional[int]) -> Optional[datetime]:
    """Convert a unix timestamp to an aware UTC datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class SpendRecord:
    """A treasury spend waiting in the mempool for its vote to finish."""

    tx_hash: str
    amount: float
    payee: str
    expiry_height: int
    current_height: int
    blocks_remaining: int
    status: str = "voting"
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "amount": self.amount,
            "payee": self.payee,
            "expiryHeight": self.expiry_height,
            "currentHeight": self.current_height,
            "blocksRemaining": self.blocks_remaining,
            "status": self.status,
            "detectedAt": _iso(self.detected_at),
        }


@dataclass(frozen=True)
class SpendHistoryRecord:
    """A treasury spend found in a mined block."""

    tx_hash: str
    amount: float
    payee: str
    block_height: int
    block_hash: str
    timestamp: Optional[datetime]
    vote_result: str = "approved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "amount": self.amount,
            "payee": self.payee,
            "blockHeight": self.block_height,
            "blockHash": self.block_hash,
            "timestamp": _iso(self.timestamp),
            "voteResult": self.vote_result,
        }


@dataclass
class ScanProgress:
    """Snapshot of the historical scan."""

    is_scanning: bool
    current_height: int
    total_height: int
    progress: float
    found_count: int
    new_spends: List[SpendHistoryRecord]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isScanning": self.is_scanning,
            "currentHeight": self.current_height,
            "totalHeight": self.total_height,
            "progress": self.progress,
            "tspendFound": self.found_count,
            "newTSpends": [record.to_dict() for record in self.new_spends],
            "message": self.message,
        }


@dataclass(frozen=True)
class VotingTally:
    """Vote counts and derived statistics for one treasury spend."""

    voting_start_block: int
    voting_end_block: int
    yes_votes: int = 0
    no_votes: int = 0
    votes_cast: int = 0
    eligible_votes: int = 0
    quorum_required: int = 0
    quorum_achieved: bool = False
    approval_rate: float = 0.0
    turnout_rate: float = 0.0
    voting_complete: bool = False
    in_mempool: bool = False
    voting_start_time: Optional[datetime] = None
    voting_end_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "votingStartBlock": self.voting_start_block,
            "votingEndBlock": self.voting_end_block,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "votesCast": self.votes_cast,
            "eligibleVotes": self.eligible_votes,
            "quorumRequired": self.quorum_required,
            "quorumAchieved": self.quorum_achieved,
            "approvalRate": self.approval_rate,
            "turnoutRate": self.turnout_rate,
            "votingComplete": self.voting_complete,
            "inMempool": self.in_mempool,
            "votingStartTime": _iso(self.voting_start_time),
            "votingEndTime": _iso(self.voting_end_time),
        }


@dataclass(frozen=True)
class VoteTallyProgress:
    """Live progress of a background tally job."""

    is_parsing: bool
    progress: float
    current_block: int
    total_blocks: int
    yes_votes: int = 0
    no_votes: int = 0
    estimated_seconds: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isParsing": self.is_parsing,
            "progress": self.progress,
            "currentBlock": self.current_block,
            "totalBlocks": self.total_blocks,
            "yesVotes": self.yes_votes,
            "noVotes": self.no_votes,
            "estimatedTime": self.estimated_seconds,
            "message": self.message,
        }


@dataclass(frozen=True)
class VotingWindow:
    """Inclusive block range over which votes are counted."""

    start: int
    end: int
    complete: bool

    @property
    def blocks(self) -> int:
        return max(0, self.end - self.start + 1)

    def heights(self) -> range:
        return range(self.start, self.end + 1)

    def bounded(self, max_span: int) -> "VotingWindow":
        """Keep the most recent `max_span` blocks of a wider window."""
        if self.blocks <= max_span:
            return self
        return VotingWindow(start=self.end - max_span + 1, end=self.end, complete=self.complete)


@dataclass
class TreasuryInfo:
    """Treasury balance and the spends currently being voted on."""

    balance: float
    active_spends: List[SpendRecord]
    last_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": self.balance,
            "activeTSpends": [spend.to_dict() for spend in self.active_spends],
            "lastUpdate": _iso(self.last_update),
        }


ScanResults = Tuple[SpendHistoryRecord, ...]
