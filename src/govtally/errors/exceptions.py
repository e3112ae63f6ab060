"""Exception hierarchy for govtally.

This module defines the structured exceptions raised by the ledger data
sources and the treasury scan/tally services, so callers can tell a missing
data source apart from a transient ledger failure or a rejected trigger.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    CONFIGURATION = "configuration"
    LEDGER = "ledger"
    SCAN = "scan"
    TALLY = "tally"
    VALIDATION = "validation"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    component: Optional[str] = None
    operation: Optional[str] = None
    tx_hash: Optional[str] = None
    block_height: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "component": self.component,
            "operation": self.operation,
            "tx_hash": self.tx_hash,
            "block_height": self.block_height,
            "metadata": self.metadata,
        }


class GovTallyError(Exception):
    """Base exception for all govtally errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ConfigurationError(GovTallyError):
    """Invalid configuration value."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class DataSourceUnavailableError(GovTallyError):
    """No ledger data source is configured."""

    def __init__(self, message: str = "ledger data source not available", **kwargs):
        super().__init__(
            message,
            error_code="DATA_SOURCE_UNAVAILABLE",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )


class LedgerError(GovTallyError):
    """A ledger data source call failed."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(
            message, category=ErrorCategory.LEDGER, retryable=True, **kwargs
        )
        self.method = method
        self.endpoint = endpoint
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert ledger error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "method": self.method,
                "endpoint": self.endpoint,
                "status_code": self.status_code,
            }
        )
        return data


class ScanInProgressError(GovTallyError):
    """A historical scan is already running."""

    def __init__(self, message: str = "scan already in progress", **kwargs):
        super().__init__(
            message,
            error_code="SCAN_IN_PROGRESS",
            category=ErrorCategory.SCAN,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )


class ScanStartError(GovTallyError):
    """A historical scan could not obtain its chain tip."""

    def __init__(self, message: str, start_height: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            error_code="SCAN_START_FAILED",
            category=ErrorCategory.SCAN,
            retryable=True,
            **kwargs,
        )
        self.start_height = start_height

    def to_dict(self) -> Dict[str, Any]:
        """Convert scan start error to dictionary."""
        data = super().to_dict()
        data.update({"start_height": self.start_height})
        return data


class InvalidTallyRequestError(GovTallyError):
    """A tally was requested for a height outside any voting window."""

    def __init__(self, message: str, block_height: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            error_code="INVALID_TALLY_REQUEST",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            **kwargs,
        )
        self.block_height = block_height

    def to_dict(self) -> Dict[str, Any]:
        """Convert tally request error to dictionary."""
        data = super().to_dict()
        data.update({"block_height": self.block_height})
        return data


def create_ledger_error(
    method: str, cause: Optional[Exception] = None, endpoint: Optional[str] = None
) -> LedgerError:
    """Create a ledger error for a failed data source call."""
    message = f"Ledger call '{method}' failed"
    if cause is not None:
        message = f"{message}: {cause}"

    return LedgerError(message=message, method=method, endpoint=endpoint, cause=cause)
