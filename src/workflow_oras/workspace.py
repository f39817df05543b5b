"""Extraction directory allocation."""

import asyncio
import logging
import os
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator

from .exceptions import BackendUnavailableError, ExecutionContextError

if TYPE_CHECKING:
    from .host import Run

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


def workspace_suffix() -> str:
    """Separator between a job workspace and its sibling directories."""
    return os.getenv("WORKFLOW_ORAS_WORKSPACE_SUFFIX", "@")


def download_folder(run: "Run") -> Path:
    """Directory next to the job workspace used to unpack artifacts.

    Raises:
        ExecutionContextError: If the job is not a top-level item
        BackendUnavailableError: If the job has no workspace
    """
    item = run.parent
    if not item.top_level:
        raise ExecutionContextError("Cannot check out in non-top-level build")
    if item.workspace is None:
        raise BackendUnavailableError(
            f"No workspace available for {item.full_name}; the node may be offline"
        )
    return item.workspace.with_name(f"{item.workspace.name}{workspace_suffix()}cps")


@dataclass(frozen=True)
class Lease:
    """Exclusive hold on a directory."""

    path: Path


async def _acquire(lock: threading.Lock) -> None:
    """Acquire ``lock`` without blocking the event loop."""
    if lock.acquire(blocking=False):
        return
    loop = asyncio.get_event_loop()
    while True:
        attempt = loop.run_in_executor(None, lock.acquire, True, _POLL_INTERVAL)
        try:
            acquired = await asyncio.shield(attempt)
        except asyncio.CancelledError:
            if await attempt:
                lock.release()
            raise
        if acquired:
            return


class WorkspaceList:
    """Tracks which directories are in use on a computer.

    A second allocation of the same path waits until the first lease is
    released. Leases may be taken from different threads, each running its
    own event loop.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._locks: dict[Path, threading.Lock] = {}
        self._holders: dict[Path, int] = {}

    def in_use(self, path: Path) -> bool:
        with self._mutex:
            lock = self._locks.get(path.absolute())
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def allocate(self, path: Path) -> AsyncIterator[Lease]:
        key = path.absolute()
        with self._mutex:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            await _acquire(lock)
            try:
                logger.debug("Acquired lease on %s", key)
                yield Lease(path=key)
            finally:
                lock.release()
                logger.debug("Released lease on %s", key)
        finally:
            with self._mutex:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]
