"""Mutual exclusion between operations that target the same database."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from .._utils import logger


class DatabaseLocks:
    """One asyncio lock per database identity.

    With ``enabled=False`` every acquisition succeeds immediately and runs may
    overlap on the same database and temp directory.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_locked(self, identity: str) -> bool:
        lock = self._locks.get(identity)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, identity: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return

        lock = self._locks.setdefault(identity, asyncio.Lock())
        if lock.locked():
            logger.info(f"Waiting for running operation on {identity} to finish")
        async with lock:
            yield
