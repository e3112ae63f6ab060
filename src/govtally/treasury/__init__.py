"""
Treasury spend scanning and vote tallying for govtally.

This module provides:
- Treasury spend detection and vote payload decoding
- Mempool probing for spends still being voted on
- A single-flight historical scanner
- A background vote tally engine with a bounded result cache
- `TreasuryService`, the facade tying them to one ledger data source
"""

from .detector import (
    as_transaction_record,
    is_treasury_spend,
    is_vote_transaction,
    spend_amount_and_payee,
)
from .jobs import CancellationToken, ManagedJob
from .mempool import MempoolProber, build_spend_record
from .models import (
    ScanProgress,
    ScanResults,
    SpendHistoryRecord,
    SpendRecord,
    TreasuryInfo,
    VoteTallyProgress,
    VotingTally,
    VotingWindow,
)
from .scanner import HistoricalScanner, build_history_record
from .service import TreasuryService
from .state import JobRegistry, ProgressStore, ResultCache
from .tally import VoteTallyEngine
from .votebits import (
    VoteChoice,
    decode_vote_bits,
    encode_vote_bits,
    parse_spend_vote,
    reverse_hex_bytes,
)

__all__ = [
    # Detection
    "as_transaction_record",
    "is_treasury_spend",
    "is_vote_transaction",
    "spend_amount_and_payee",
    # Vote payloads
    "VoteChoice",
    "decode_vote_bits",
    "encode_vote_bits",
    "parse_spend_vote",
    "reverse_hex_bytes",
    # Records
    "SpendRecord",
    "SpendHistoryRecord",
    "ScanProgress",
    "ScanResults",
    "VotingTally",
    "VoteTallyProgress",
    "VotingWindow",
    "TreasuryInfo",
    # Components
    "MempoolProber",
    "build_spend_record",
    "HistoricalScanner",
    "build_history_record",
    "VoteTallyEngine",
    "TreasuryService",
    # Shared state
    "JobRegistry",
    "ProgressStore",
    "ResultCache",
    "CancellationToken",
    "ManagedJob",
]
