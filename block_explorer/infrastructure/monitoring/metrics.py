"""
Metrics Collector with Prometheus Integration

- Memo cache hit/miss counters
- Distributed lock operations by outcome
- Background update cycles by outcome
- Seconds since the last successful snapshot
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Info,
    generate_latest,
)

from block_explorer.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

APP_INFO = Info(
    'explorer_app',
    'Block explorer build information'
)

CACHE_HITS = Counter(
    'explorer_memo_cache_hits_total',
    'Memoizing cache hits'
)

CACHE_MISSES = Counter(
    'explorer_memo_cache_misses_total',
    'Memoizing cache misses'
)

LOCK_OPERATIONS = Counter(
    'explorer_lock_operations_total',
    'Distributed lock operations',
    ['operation', 'outcome']
)

UPDATE_CYCLES = Counter(
    'explorer_update_cycles_total',
    'Background update cycles',
    ['outcome']
)

SNAPSHOT_AGE = Gauge(
    'explorer_snapshot_age_seconds',
    'Seconds since the last successful snapshot update'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    STAGE-M: Metrics collection

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_hit()
        metrics.record_lock_operation("acquire", "contended")
    """

    def set_app_info(self, app_name: str, version: str, environment: str) -> None:
        APP_INFO.info({'app_name': app_name, 'version': version, 'environment': environment})

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self) -> None:
        CACHE_HITS.inc()

    def record_cache_miss(self) -> None:
        CACHE_MISSES.inc()

    # =========================================================================
    # Lock / Updater Metrics
    # =========================================================================

    def record_lock_operation(self, operation: str, outcome: str) -> None:
        LOCK_OPERATIONS.labels(operation=operation, outcome=outcome).inc()

    def record_update_cycle(self, outcome: str) -> None:
        UPDATE_CYCLES.labels(outcome=outcome).inc()

    def set_snapshot_age(self, seconds: float) -> None:
        SNAPSHOT_AGE.set(seconds)

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST


_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
        logger.info("Metrics collector initialized", stage="M.0")
    return _metrics
