"""Core logging interfaces and data structures for govtally.

Background scans and tally jobs log from asyncio tasks while request handlers
log from the caller side, so every entry carries a `LogContext` naming the
component and operation it came from.
"""

import json
import os
import sys
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """Log levels."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_LEVEL_ORDER = {level: index for index, level in enumerate(LogLevel)}


@dataclass
class LogContext:
    """Log context information."""

    component: Optional[str] = None
    operation: Optional[str] = None
    tx_hash: Optional[str] = None
    block_height: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "component": self.component,
            "operation": self.operation,
            "tx_hash": self.tx_hash,
            "block_height": self.block_height,
            "metadata": self.metadata,
        }

    def merged_with(self, other: Optional["LogContext"]) -> "LogContext":
        """Overlay `other` on top of this context."""
        if other is None:
            return self
        return LogContext(
            component=other.component or self.component,
            operation=other.operation or self.operation,
            tx_hash=other.tx_hash or self.tx_hash,
            block_height=(
                other.block_height
                if other.block_height is not None
                else self.block_height
            ),
            metadata={**self.metadata, **other.metadata},
        )


@dataclass
class LogEntry:
    """Log entry data structure."""

    timestamp: float
    level: LogLevel
    message: str
    logger_name: str
    context: LogContext
    exception: Optional[BaseException] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    thread_id: Optional[int] = None
    process_id: Optional[int] = None

    def __post_init__(self):
        if self.thread_id is None:
            self.thread_id = threading.get_ident()
        if self.process_id is None:
            self.process_id = os.getpid()

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "logger_name": self.logger_name,
            "context": self.context.to_dict(),
            "exception": str(self.exception) if self.exception else None,
            "extra": self.extra,
            "thread_id": self.thread_id,
            "process_id": self.process_id,
        }

    def to_json(self) -> str:
        """Convert log entry to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class LogConfig:
    """Log configuration."""

    def __init__(
        self,
        name: str = "govtally",
        level: LogLevel = LogLevel.INFO,
        format_type: str = "text",
        handlers: List[str] = None,
        stream: Any = None,
    ):
        self.name = name
        self.level = level
        self.format_type = format_type
        self.handlers = handlers or ["console"]
        self.stream = stream


class LogFormatter(ABC):
    """Abstract log formatter."""

    @abstractmethod
    def format(self, entry: LogEntry) -> str:
        """Format log entry."""
        pass


class LogHandler(ABC):
    """Abstract log handler."""

    def __init__(self, name: str = None):
        self.name = name or self.__class__.__name__
        self.formatter: Optional[LogFormatter] = None
        self.level: LogLevel = LogLevel.DEBUG
        self._lock = threading.RLock()

    def set_formatter(self, formatter: LogFormatter) -> None:
        """Set formatter."""
        with self._lock:
            self.formatter = formatter

    def set_level(self, level: LogLevel) -> None:
        """Set log level."""
        with self._lock:
            self.level = level

    def should_handle(self, entry: LogEntry) -> bool:
        """Check if handler should handle the entry."""
        with self._lock:
            return _LEVEL_ORDER[entry.level] >= _LEVEL_ORDER[self.level]

    @abstractmethod
    def emit(self, entry: LogEntry) -> None:
        """Emit log entry."""
        pass

    def handle(self, entry: LogEntry) -> None:
        """Handle log entry."""
        if self.should_handle(entry):
            self.emit(entry)

    def close(self) -> None:
        """Release handler resources."""
        pass


class LogManager:
    """Log manager for orchestrating logging operations."""

    def __init__(self, config: LogConfig = None):
        self.config = config or LogConfig()
        self.loggers: Dict[str, "GovTallyLogger"] = {}
        self.handlers: Dict[str, LogHandler] = {}
        self._lock = threading.RLock()
        self._context = LogContext()

        self._setup_defaults()

    def _setup_defaults(self) -> None:
        """Setup default logging components."""
        from .formatters import JSONFormatter, TextFormatter
        from .handlers import ConsoleHandler

        if self.config.format_type == "json":
            formatter: LogFormatter = JSONFormatter()
        else:
            formatter = TextFormatter()

        console = ConsoleHandler(self.config.stream or sys.stderr)
        console.set_formatter(formatter)
        self.add_handler("console", console)

    def get_logger(self, name: str) -> "GovTallyLogger":
        """Get logger."""
        with self._lock:
            if name not in self.loggers:
                logger = GovTallyLogger(name, self)
                logger.set_level(self.config.level)
                self.loggers[name] = logger
            return self.loggers[name]

    def add_handler(self, name: str, handler: LogHandler) -> None:
        """Add handler."""
        with self._lock:
            self.handlers[name] = handler
            if name not in self.config.handlers:
                self.config.handlers.append(name)

    def remove_handler(self, name: str) -> None:
        """Remove handler."""
        with self._lock:
            handler = self.handlers.pop(name, None)
            if name in self.config.handlers:
                self.config.handlers.remove(name)
        if handler is not None:
            handler.close()

    def set_context(self, context: LogContext) -> None:
        """Set global context."""
        with self._lock:
            self._context = context

    def get_context(self) -> LogContext:
        """Get global context."""
        with self._lock:
            return self._context

    def log(
        self,
        level: LogLevel,
        message: str,
        logger_name: str = "root",
        context: LogContext = None,
        exception: BaseException = None,
        extra: Dict[str, Any] = None,
    ) -> None:
        """Log a message."""
        with self._lock:
            entry = LogEntry(
                timestamp=time.time(),
                level=level,
                message=message,
                logger_name=logger_name,
                context=self._context.merged_with(context),
                exception=exception,
                extra=extra or {},
            )

            for handler_name in self.config.handlers:
                if handler_name in self.handlers:
                    self.handlers[handler_name].handle(entry)

    def shutdown(self) -> None:
        """Shutdown log manager."""
        with self._lock:
            for handler in self.handlers.values():
                handler.close()

            self.loggers.clear()
            self.handlers.clear()


class GovTallyLogger:
    """Named logger bound to a `LogManager`."""

    def __init__(self, name: str, manager: LogManager):
        self.name = name
        self.manager = manager
        self.level = LogLevel.INFO
        self._lock = threading.RLock()

    def set_level(self, level: LogLevel) -> None:
        """Set log level."""
        with self._lock:
            self.level = level

    def is_enabled_for(self, level: LogLevel) -> bool:
        """Check if logger is enabled for level."""
        with self._lock:
            return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.level]

    def log(
        self,
        level: LogLevel,
        message: str,
        context: LogContext = None,
        exception: BaseException = None,
        extra: Dict[str, Any] = None,
    ) -> None:
        """Log a message."""
        if self.is_enabled_for(level):
            self.manager.log(
                level=level,
                message=message,
                logger_name=self.name,
                context=context,
                exception=exception,
                extra=extra,
            )

    def trace(self, message: str, **kwargs) -> None:
        """Log trace message."""
        self.log(LogLevel.TRACE, message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self.log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self.log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self.log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        """Log critical message."""
        self.log(LogLevel.CRITICAL, message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log the exception currently being handled."""
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            kwargs["exception"] = exc_info[1]
        self.log(LogLevel.ERROR, message, **kwargs)


# Global log manager instance
_global_manager: Optional[LogManager] = None
_global_lock = threading.Lock()


def get_logger(name: str = "govtally") -> GovTallyLogger:
    """Get logger instance."""
    global _global_manager
    with _global_lock:
        if _global_manager is None:
            _global_manager = LogManager()
        manager = _global_manager
    return manager.get_logger(name)


def setup_logging(config: LogConfig) -> LogManager:
    """Setup logging with configuration.

    Loggers obtained before this call keep working: they are re-pointed at the
    new manager and take its level.
    """
    global _global_manager
    with _global_lock:
        previous = _global_manager
        _global_manager = LogManager(config)
        if previous is not None:
            for name, logger in previous.loggers.items():
                logger.manager = _global_manager
                logger.set_level(config.level)
                _global_manager.loggers[name] = logger
        return _global_manager


def shutdown_logging() -> None:
    """Shutdown logging."""
    global _global_manager
    with _global_lock:
        if _global_manager is not None:
            _global_manager.shutdown()
            _global_manager = None
