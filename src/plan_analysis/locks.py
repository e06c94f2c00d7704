"""Per-property mutual exclusion for the read-modify-write of analysis records."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from plan_analysis.errors import ConflictError
from plan_analysis.logging import get_logger

logger = get_logger(__name__)


class PropertyLockRegistry:
    """One ``asyncio.Lock`` per property id, created on demand and dropped when idle."""

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize the registry.

        Args:
            timeout: Seconds a request waits for the property's lock before
                giving up with ConflictError.
        """
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, property_id: str) -> bool:
        """Whether a reconcile-and-store cycle is in flight for the property."""
        lock = self._locks.get(property_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, property_id: str) -> AsyncIterator[None]:
        """Hold the property's lock for the duration of the block.

        Raises:
            ConflictError: If the lock is not acquired within the timeout.
        """
        lock = self._get_lock(property_id)
        self._waiters[property_id] = self._waiters.get(property_id, 0) + 1
        try:
            if lock.locked():
                logger.info("waiting_for_property_lock", property_id=property_id)
            try:
                async with asyncio.timeout(self._timeout):
                    await lock.acquire()
            except TimeoutError as e:
                logger.warning(
                    "property_lock_timeout",
                    property_id=property_id,
                    timeout_seconds=self._timeout,
                )
                raise ConflictError(
                    f"Another analysis for property {property_id} is still being saved; "
                    "retry the request"
                ) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[property_id] -= 1
            if self._waiters[property_id] == 0:
                del self._waiters[property_id]
                self._locks.pop(property_id, None)
