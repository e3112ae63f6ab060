"""
Background job handles.

Scans and tally jobs are fire-and-forget asyncio tasks. `ManagedJob` keeps a
reference to the task (so it is not garbage collected mid-flight), logs any
exception the task ends with, and carries a `CancellationToken` that the job
checks between blocks.
"""

import asyncio
import threading
from typing import Awaitable, Callable, Optional

from ..logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag, safe to set from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class ManagedJob:
    """An asyncio task plus its cancellation token."""

    def __init__(self, name: str, task: asyncio.Task, token: CancellationToken):
        self.name = name
        self.task = task
        self.token = token

    @classmethod
    def launch(
        cls,
        name: str,
        job: Callable[[CancellationToken], Awaitable[None]],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "ManagedJob":
        """Start `job(token)` as a task on the running (or given) loop."""
        loop = loop or asyncio.get_running_loop()
        token = CancellationToken()
        task = loop.create_task(job(token), name=name)
        managed = cls(name, task, token)
        task.add_done_callback(managed._on_done)
        return managed

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"Job {self.name} was cancelled by the event loop")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Job {self.name} failed: {error}", exception=error)

    def cancel(self) -> None:
        """Ask the job to stop at its next block boundary."""
        self.token.cancel()

    @property
    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> None:
        """Wait for the job to finish; its own failures are not re-raised."""
        await asyncio.gather(self.task, return_exceptions=True)
