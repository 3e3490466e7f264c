"""
Background Updater for the index snapshot

STAGE-UPD: Periodic snapshot refresh

Keeps a precomputed index snapshot fresh so the front page rarely pays for the
full aggregation on the request path.

Cycle (update()):
1. In-process guard: a cycle already running makes this call a no-op
2. Distributed lock: only one instance refreshes at a time; losing the race
   is a normal outcome, not an error
3. Bounded retries with a fixed delay (tenacity); None from the snapshot
   builder counts as a failure
4. On success the snapshot and timestamp are replaced and the snapshot is
   published to the shared Redis cache; on exhaustion the previous snapshot
   stays in place
5. finally: release the lock (if it was acquired), clear the guard

The schedule is a single asyncio task that waits the interval, runs a cycle
and loops until stop() is called. A failing cycle never ends the schedule.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_fixed

from block_explorer.core.config.constants import HEALTH_STALENESS_SECONDS, UpdateOutcome
from block_explorer.core.exceptions import SnapshotUnavailableError
from block_explorer.core.logging.logger import get_logger, log_stage
from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.infrastructure.cache.cache_service import CacheService
from block_explorer.infrastructure.lock.distributed_lock import DistributedLock
from block_explorer.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)

IndexDataFn = Callable[[int, int], Awaitable[dict[str, Any] | None]]
TipHeightFn = Callable[[], Awaitable[int | None]]


@dataclass
class UpdaterSnapshot:
    """What get_data() hands out. Either field may be None."""

    index_data: dict[str, Any] | None
    last_update: datetime | None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackgroundUpdater:
    """
    Usage:
        updater = BackgroundUpdater(builder.build, lock, lock_key=keys.lock("background_updater:main"))
        await updater.start()
        ...
        if updater.is_healthy(0, 20):
            snapshot = updater.get_data().index_data
        ...
        await updater.stop()
    """

    def __init__(
        self,
        index_data_fn: IndexDataFn,
        lock: DistributedLock,
        lock_key: str,
        *,
        update_interval: float = 60.0,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        lock_ttl: int = 300,
        from_: int = 0,
        limit: int = 20,
        tip_height_fn: TipHeightFn | None = None,
        skip_unchanged_tip: bool = False,
        snapshot_store: CacheService | None = None,
        cache_keys: CacheKeys | None = None,
        snapshot_ttl: int = 300,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self._index_data_fn = index_data_fn
        self._lock = lock
        self._lock_key = lock_key
        self._update_interval = update_interval
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._lock_ttl = lock_ttl
        self._from = from_
        self._limit = limit
        self._tip_height_fn = tip_height_fn
        self._skip_unchanged_tip = skip_unchanged_tip
        self._snapshot_store = snapshot_store
        self._cache_keys = cache_keys
        self._snapshot_ttl = snapshot_ttl
        self._clock = clock
        self._sleep = sleep
        self._metrics = get_metrics_collector()

        self._data: dict[str, Any] | None = None
        self._last_successful_update: datetime | None = None
        self._last_tip_height: int | None = None
        self._last_outcome: UpdateOutcome | None = None
        self._is_updating = False

        self._stopped = asyncio.Event()
        self._schedule_task: asyncio.Task | None = None

    @property
    def is_updating(self) -> bool:
        return self._is_updating

    @property
    def window(self) -> tuple[int, int]:
        return self._from, self._limit

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """
        Run one cycle now, then keep refreshing every update_interval.
        """
        log_stage(
            logger, "UPD.START", "Starting background updater",
            interval_seconds=self._update_interval, from_=self._from, limit=self._limit,
        )
        self._stopped.clear()
        await self.update()
        self.schedule_next_update()

    def schedule_next_update(self) -> None:
        if self._stopped.is_set():
            return
        if self._schedule_task is not None and not self._schedule_task.done():
            return
        self._schedule_task = asyncio.create_task(self._run_schedule(), name="background-updater")

    async def _run_schedule(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._update_interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                await self.update()
            except Exception:
                # A failing cycle must not end the schedule.
                logger.exception("Unexpected error in update cycle", stage="UPD.SCHEDULE")

    async def stop(self) -> None:
        """
        Stop the schedule. A cycle in flight is cancelled; its finally block
        still releases the lock.
        """
        self._stopped.set()
        task = self._schedule_task
        self._schedule_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        log_stage(logger, "UPD.STOP", "Background updater stopped")

    # -------------------------------------------------------------------------
    # Update cycle
    # -------------------------------------------------------------------------

    async def update(self) -> None:
        """
        STAGE-UPD.1: One refresh cycle
        """
        if self._is_updating:
            logger.debug("Update already in progress, skipping", stage="UPD.1")
            self._metrics.record_update_cycle(UpdateOutcome.SKIPPED.value)
            return
        # Set before the first await.
        self._is_updating = True

        lock_id = self._lock.generate_lock_id()
        acquired = False
        try:
            acquired = await self._lock.acquire(
                self._lock_key, lock_id, ttl_seconds=self._lock_ttl, auto_renew=True
            )
            if not acquired:
                log_stage(
                    logger, "UPD.1", "Another instance is updating, skipping cycle",
                    lock_key=self._lock_key,
                )
                self._record_outcome(UpdateOutcome.LOCKED_ELSEWHERE)
                return

            await self._update_with_retries()
        finally:
            if acquired:
                await self._lock.release(self._lock_key, lock_id)
            self._is_updating = False

    async def _update_with_retries(self) -> None:
        start = time.perf_counter()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_fixed(self._retry_delay),
            after=self._log_failed_attempt,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    outcome = await self._attempt()
        except Exception as e:
            log_stage(
                logger, "UPD.3", "Update failed, keeping previous snapshot", level="error",
                attempts=self._max_retries, error=str(e),
            )
            self._record_outcome(UpdateOutcome.EXHAUSTED)
            return

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if outcome is UpdateOutcome.UNCHANGED:
            log_stage(
                logger, "UPD.2", "Chain tip unchanged, snapshot kept",
                tip_height=self._last_tip_height, duration_ms=duration_ms,
            )
        else:
            log_stage(
                logger, "UPD.2", "Index snapshot updated",
                from_=self._from, limit=self._limit, duration_ms=duration_ms,
            )
            await self._publish_snapshot()
        self._record_outcome(outcome)

    async def _attempt(self) -> UpdateOutcome:
        tip_height = None
        if self._skip_unchanged_tip and self._tip_height_fn is not None:
            tip_height = await self._tip_height_fn()
            if (
                self._data is not None
                and tip_height is not None
                and tip_height == self._last_tip_height
            ):
                self._last_successful_update = self._clock()
                return UpdateOutcome.UNCHANGED

        data = await self._index_data_fn(self._from, self._limit)
        if data is None:
            raise SnapshotUnavailableError(
                "Received null data", details={"from": self._from, "limit": self._limit}
            )

        self._data = data
        self._last_successful_update = self._clock()
        self._last_tip_height = tip_height
        return UpdateOutcome.SUCCESS

    def _log_failed_attempt(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log_stage(
            logger, "UPD.RETRY", "Update attempt failed", level="warning",
            attempt=retry_state.attempt_number,
            max_retries=self._max_retries,
            error=str(exc),
            error_type=type(exc).__name__,
        )

    async def _publish_snapshot(self) -> None:
        if self._snapshot_store is None or self._cache_keys is None:
            return
        key = self._cache_keys.recent_blocks(self._from, self._limit)
        stored = await self._snapshot_store.set(key, self._data, ttl_seconds=self._snapshot_ttl)
        if not stored:
            logger.warning("Snapshot not shared through Redis", stage="UPD.2", key=key)

    def _record_outcome(self, outcome: UpdateOutcome) -> None:
        self._last_outcome = outcome
        self._metrics.record_update_cycle(outcome.value)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_data(self) -> UpdaterSnapshot:
        return UpdaterSnapshot(index_data=self._data, last_update=self._last_successful_update)

    def is_healthy(self, from_: int, limit: int) -> bool:
        """
        True only when the window matches, a cycle has succeeded, and that was
        less than HEALTH_STALENESS_SECONDS ago.
        """
        if from_ != self._from or limit != self._limit:
            return False
        if self._last_successful_update is None:
            return False
        age = (self._clock() - self._last_successful_update).total_seconds()
        return age < HEALTH_STALENESS_SECONDS

    def status(self) -> dict[str, Any]:
        age = None
        if self._last_successful_update is not None:
            age = round((self._clock() - self._last_successful_update).total_seconds(), 3)
            self._metrics.set_snapshot_age(age)
        return {
            "healthy": self.is_healthy(self._from, self._limit),
            "is_updating": self._is_updating,
            "last_update": (
                self._last_successful_update.isoformat() if self._last_successful_update else None
            ),
            "age_seconds": age,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "from": self._from,
            "limit": self._limit,
            "interval_seconds": self._update_interval,
            "max_retries": self._max_retries,
        }
