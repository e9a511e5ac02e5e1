"""Prometheus metrics for the progression engine

Exposes metrics for awards, optimistic-concurrency conflicts, retries and
snapshot repairs. Metrics are exposed on HTTP endpoint for scraping by
Prometheus.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Total awards counter
# Labels: action_kind, status (success/not_found/exhausted/error)
awards_total = Counter(
    'progression_awards_total',
    'Total number of award transactions',
    ['action_kind', 'status']
)

# Award duration histogram (load → commit, including retries)
award_duration = Histogram(
    'progression_award_duration_seconds',
    'Duration of award transactions in seconds',
    ['action_kind'],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float('inf'))
)

# Conditional write conflicts counter
award_conflicts_total = Counter(
    'progression_award_conflicts_total',
    'Total number of conditional write conflicts',
    ['action_kind']
)

# Snapshot repairs counter
# Labels: structure (history/history_reconciled/streak/activity_counters/earned_achievements/score/tier/document)
snapshot_repairs_total = Counter(
    'progression_snapshot_repairs_total',
    'Total number of repaired snapshot sub-structures',
    ['structure']
)


def record_award(action_kind: str, status: str, duration: float) -> None:
    """
    Record an award transaction outcome.

    Args:
        action_kind: Action that triggered the award
        status: success, not_found, exhausted or error
        duration: Transaction duration in seconds
    """
    try:
        awards_total.labels(action_kind=action_kind, status=status).inc()
        award_duration.labels(action_kind=action_kind).observe(duration)
        logger.debug(f"[METRICS] Award {action_kind}: {status}, duration: {duration:.3f}s")
    except Exception as e:
        logger.error(f"Failed to record award metrics: {e}")


def record_conflict(action_kind: str) -> None:
    """
    Record a lost conditional write.

    Args:
        action_kind: Action whose write conflicted
    """
    try:
        award_conflicts_total.labels(action_kind=action_kind).inc()
        logger.debug(f"[METRICS] Conditional write conflict for {action_kind}")
    except Exception as e:
        logger.error(f"Failed to record conflict: {e}")


def record_snapshot_repair(structure: str) -> None:
    """
    Record a repaired snapshot sub-structure.

    Args:
        structure: Name of the repaired sub-structure
    """
    try:
        snapshot_repairs_total.labels(structure=structure).inc()
        logger.debug(f"[METRICS] Snapshot repair: {structure}")
    except Exception as e:
        logger.error(f"Failed to record snapshot repair: {e}")
