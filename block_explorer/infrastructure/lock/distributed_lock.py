"""
Redis-backed Distributed Lock

STAGE-LOCK: Cross-instance mutual exclusion

Mutual exclusion for a named critical section across explorer instances.
Redis is the arbiter:

- acquire: SET key id EX ttl NX
- release: delete only if the key still holds our id (Lua)
- renew:   expire only if the key still holds our id (Lua)

The stored id is the only ownership proof. This is atomic on a single Redis
node; against a clustered or replicated Redis the lock is best-effort and the
TTL is the backstop.

Every operation degrades to False on a Redis failure. Lock coordination
problems are logged, never raised.
"""

import asyncio
import os
import socket
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from block_explorer.core.config.constants import LockOutcome
from block_explorer.core.logging.logger import get_logger, log_stage
from block_explorer.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)


class LockStore(Protocol):
    """The Redis primitives the lock relies on."""

    async def set(self, key: str, value: str, ttl: int | None = None, nx: bool = False) -> bool: ...

    async def get(self, key: str) -> str | None: ...

    async def ttl(self, key: str) -> int: ...

    async def compare_and_delete(self, key: str, expected: str) -> bool: ...

    async def compare_and_expire(self, key: str, expected: str, ttl: int) -> bool: ...


@dataclass
class LockStatus:
    """
    Diagnostic view of a lock key. Never use it to decide ownership.

    ttl is the raw Redis TTL: -1 for a key without expiry, -2 when missing.
    """

    locked: bool
    holder: str | None = None
    ttl: int | None = None


class DistributedLock:
    """
    Named locks with TTL expiry and optional auto-renewal.

    Usage:
        lock = DistributedLock(redis_client)
        lock_id = lock.generate_lock_id()
        if await lock.acquire("tari:lock:updater", lock_id, ttl_seconds=300):
            try:
                ...
            finally:
                await lock.release("tari:lock:updater", lock_id)
    """

    def __init__(
        self,
        store: LockStore,
        renew_ratio: float = 0.7,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self._renew_ratio = renew_ratio
        self._sleep = sleep
        self._renewals: dict[str, asyncio.Task] = {}
        self._metrics = get_metrics_collector()

    @staticmethod
    def generate_lock_id() -> str:
        """
        Identifier of this acquisition: host, process and time in ms.
        """
        return f"{socket.gethostname()}-{os.getpid()}-{time.time_ns() // 1_000_000}"

    async def acquire(
        self, lock_key: str, lock_id: str, ttl_seconds: int = 300, auto_renew: bool = True
    ) -> bool:
        """
        STAGE-LOCK.ACQUIRE

        Returns:
            True if this caller now holds the lock
        """
        try:
            acquired = await self._store.set(lock_key, lock_id, ttl=ttl_seconds, nx=True)
        except Exception as e:
            log_stage(
                logger, "LOCK.ACQUIRE", "Error acquiring lock", level="error",
                lock_key=lock_key, error=str(e),
            )
            self._metrics.record_lock_operation("acquire", LockOutcome.ERROR.value)
            return False

        if not acquired:
            holder = None
            try:
                holder = await self._store.get(lock_key)
            except Exception as e:
                logger.debug("Could not read lock holder", stage="LOCK.ACQUIRE", error=str(e))
            log_stage(
                logger, "LOCK.ACQUIRE", "Lock already held", level="debug",
                lock_key=lock_key, holder=holder,
            )
            self._metrics.record_lock_operation("acquire", LockOutcome.CONTENDED.value)
            return False

        log_stage(
            logger, "LOCK.ACQUIRE", "Lock acquired",
            lock_key=lock_key, lock_id=lock_id, ttl_seconds=ttl_seconds,
        )
        self._metrics.record_lock_operation("acquire", LockOutcome.ACQUIRED.value)

        if auto_renew:
            self._start_auto_renewal(lock_key, lock_id, ttl_seconds)
        return True

    async def release(self, lock_key: str, lock_id: str) -> bool:
        """
        STAGE-LOCK.RELEASE

        Stops auto-renewal first, then deletes the key if we still own it.
        """
        self._stop_auto_renewal(lock_key)

        try:
            released = await self._store.compare_and_delete(lock_key, lock_id)
        except Exception as e:
            log_stage(
                logger, "LOCK.RELEASE", "Error releasing lock", level="error",
                lock_key=lock_key, error=str(e),
            )
            self._metrics.record_lock_operation("release", LockOutcome.ERROR.value)
            return False

        if released:
            log_stage(logger, "LOCK.RELEASE", "Lock released", lock_key=lock_key, lock_id=lock_id)
            self._metrics.record_lock_operation("release", LockOutcome.RELEASED.value)
        else:
            log_stage(
                logger, "LOCK.RELEASE", "Lock not owned, nothing released", level="warning",
                lock_key=lock_key, lock_id=lock_id,
            )
            self._metrics.record_lock_operation("release", LockOutcome.NOT_OWNER.value)
        return released

    async def renew(self, lock_key: str, lock_id: str, ttl_seconds: int = 300) -> bool:
        """
        STAGE-LOCK.RENEW

        Extend the TTL if we still own the lock. False means it was lost.
        """
        try:
            renewed = await self._store.compare_and_expire(lock_key, lock_id, ttl_seconds)
        except Exception as e:
            log_stage(
                logger, "LOCK.RENEW", "Error renewing lock", level="error",
                lock_key=lock_key, error=str(e),
            )
            self._metrics.record_lock_operation("renew", LockOutcome.ERROR.value)
            return False

        if renewed:
            logger.debug("Lock renewed", stage="LOCK.RENEW", lock_key=lock_key, ttl_seconds=ttl_seconds)
            self._metrics.record_lock_operation("renew", LockOutcome.RENEWED.value)
        else:
            log_stage(
                logger, "LOCK.RENEW", "Lock lost, renewal refused", level="warning",
                lock_key=lock_key, lock_id=lock_id,
            )
            self._metrics.record_lock_operation("renew", LockOutcome.NOT_OWNER.value)
        return renewed

    async def status(self, lock_key: str) -> LockStatus:
        try:
            holder = await self._store.get(lock_key)
            ttl = await self._store.ttl(lock_key)
        except Exception as e:
            log_stage(
                logger, "LOCK.STATUS", "Error reading lock status", level="error",
                lock_key=lock_key, error=str(e),
            )
            return LockStatus(locked=False)

        return LockStatus(locked=holder is not None, holder=holder, ttl=ttl)

    def is_renewing(self, lock_key: str) -> bool:
        task = self._renewals.get(lock_key)
        return task is not None and not task.done()

    # -------------------------------------------------------------------------
    # Auto-renewal
    # -------------------------------------------------------------------------

    def _start_auto_renewal(self, lock_key: str, lock_id: str, ttl_seconds: int) -> None:
        self._stop_auto_renewal(lock_key)
        interval = ttl_seconds * self._renew_ratio
        self._renewals[lock_key] = asyncio.create_task(
            self._renew_loop(lock_key, lock_id, ttl_seconds, interval),
            name=f"lock-renewal:{lock_key}",
        )

    async def _renew_loop(self, lock_key: str, lock_id: str, ttl_seconds: int, interval: float) -> None:
        while True:
            await self._sleep(interval)
            if not await self.renew(lock_key, lock_id, ttl_seconds):
                log_stage(
                    logger, "LOCK.RENEW", "Stopping auto-renewal", level="warning",
                    lock_key=lock_key,
                )
                break
        if self._renewals.get(lock_key) is asyncio.current_task():
            del self._renewals[lock_key]

    def _stop_auto_renewal(self, lock_key: str) -> None:
        task = self._renewals.pop(lock_key, None)
        if task is not None and not task.done():
            task.cancel()

    async def cleanup(self) -> None:
        """
        Cancel every renewal task. Called on shutdown.
        """
        tasks = list(self._renewals.values())
        self._renewals.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Lock renewals cancelled", stage="LOCK.CLEANUP", count=len(tasks))
