"""govtally error handling.

Structured exceptions shared by the ledger data sources and the treasury
scan/tally services.
"""

from .exceptions import (
    ConfigurationError,
    DataSourceUnavailableError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    GovTallyError,
    InvalidTallyRequestError,
    LedgerError,
    ScanInProgressError,
    ScanStartError,
    create_ledger_error,
)

__all__ = [
    "GovTallyError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "ConfigurationError",
    "DataSourceUnavailableError",
    "LedgerError",
    "InvalidTallyRequestError",
    "ScanInProgressError",
    "ScanStartError",
    "create_ledger_error",
]
