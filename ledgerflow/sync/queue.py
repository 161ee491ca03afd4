"""
Remote Sync Queue

DESIGN DECISION: Remote writes happen AFTER the local commit and never
block it. Each write is scheduled as an asyncio task; a failure is logged,
audited and kept for a later retry. Local state is never rolled back
because the remote store was unavailable.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from ledgerflow.audit import AuditLogger

logger = structlog.get_logger(__name__)

SyncFactory = Callable[[], Awaitable[Any]]


class FailedSync(BaseModel):
    """A remote write that raised; kept so it can be replayed."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    factory: SyncFactory
    error: str
    attempts: int = 1


class RemoteSyncQueue:
    """
    Fire-and-forget queue of remote store writes.

    Usage:
        queue.enqueue("insert_voucher", lambda: remote.insert_voucher(row))
        await queue.drain()
    """

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit = audit_logger
        self._tasks: set[asyncio.Task] = set()
        self.failed: list[FailedSync] = []

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def _run(self, name: str, factory: SyncFactory, attempts: int) -> None:
        try:
            await factory()
            logger.debug("remote_sync_succeeded", operation=name)
        except Exception as e:
            logger.warning("remote_sync_failed", operation=name, error=str(e), attempts=attempts)
            self.failed.append(FailedSync(
                name=name,
                factory=factory,
                error=str(e),
                attempts=attempts,
            ))
            if self._audit:
                await self._audit.log_remote_sync_failed(name, str(e))

    def enqueue(self, name: str, factory: SyncFactory, attempts: int = 1) -> asyncio.Task:
        """Schedule a remote write on the running loop."""
        task = asyncio.get_running_loop().create_task(self._run(name, factory, attempts))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled write, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def retry_failed(self) -> int:
        """
        Replay every failed write once.

        Returns:
            Number of writes that failed again
        """
        failed, self.failed = self.failed, []
        for item in failed:
            self.enqueue(item.name, item.factory, attempts=item.attempts + 1)
        await self.drain()
        return len(self.failed)
