"""Log handlers for govtally."""

import sys
import threading
from typing import Any, Dict, List

from .core import LogEntry, LogHandler


class ConsoleHandler(LogHandler):
    """Console log handler."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr
        self._lock = threading.RLock()

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to console."""
        with self._lock:
            if self.stream is None:
                return
            if self.formatter:
                formatted = self.formatter.format(entry)
            else:
                formatted = f"{entry.timestamp} [{entry.level.value.upper()}] {entry.logger_name}: {entry.message}"

            self.stream.write(formatted + "\n")
            self.stream.flush()

    def close(self) -> None:
        """Detach from the stream; standard streams are left open."""
        with self._lock:
            if self.stream not in (None, sys.stdout, sys.stderr):
                self.stream.close()
            self.stream = None


class MemoryHandler(LogHandler):
    """Keeps the most recent entries in memory."""

    def __init__(self, max_size: int = 1000):
        super().__init__()
        self.max_size = max_size
        self.buffer: List[Dict[str, Any]] = []
        self._lock = threading.RLock()

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to memory."""
        with self._lock:
            record = entry.to_dict()
            if self.formatter:
                record["formatted"] = self.formatter.format(entry)
            self.buffer.append(record)

            if len(self.buffer) > self.max_size:
                self.buffer.pop(0)

    def get_logs(self) -> List[Dict[str, Any]]:
        """Get all logs from memory."""
        with self._lock:
            return self.buffer.copy()

    def clear_logs(self) -> None:
        """Clear all logs from memory."""
        with self._lock:
            self.buffer.clear()

    def close(self) -> None:
        """Close handler."""
        with self._lock:
            self.buffer.clear()
