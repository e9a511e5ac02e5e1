"""
Snapshot validation and repair

A snapshot written by an older schema (or corrupted by hand edits) can be
missing sub-structures or violate the progression invariants. Instead of
failing an award over schema drift, the loaded document is normalized once,
right after it is read:

- malformed sub-structures are reset to their defaults
- invalid history / badge entries are dropped, duplicate badges removed
- history is re-sorted by timestamp
- score is reconciled to sum(history), tier to the level curve; when history
  is missing or had entries dropped, a higher stored score is kept by
  appending one SCORE_RECONCILIATION entry for the difference

Each repair is logged and counted; it is never surfaced to the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple
import logging

from pydantic import ValidationError as PydanticValidationError

from src.exceptions import SnapshotValidationError
from src.gamification.level_curve import tier_for
from src.gamification.metrics import record_snapshot_repair
from src.models.progression import (
    ActionKind,
    ActivityCounters,
    EarnedAchievement,
    ProgressionSnapshot,
    RewardEvent,
    StreakState,
)

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_snapshot(snapshot: ProgressionSnapshot, user_id: str = None) -> None:
    """
    Check the structural invariants of a snapshot

    Raises:
        SnapshotValidationError: first violated invariant
    """
    def fail(invariant: str, message: str) -> None:
        raise SnapshotValidationError(
            message=message,
            invariant=invariant,
            user_id=user_id,
            operation="validate_snapshot",
        )

    if snapshot.score < 0:
        fail("score_non_negative", f"Invalid score {snapshot.score}: cannot be negative")

    history_total = sum(event.amount for event in snapshot.history)
    if snapshot.score != history_total:
        fail("score_matches_history", f"Score {snapshot.score} does not match history total {history_total}")

    expected_tier = tier_for(snapshot.score)
    if snapshot.tier != expected_tier:
        fail("tier_matches_score", f"Level inconsistency: expected {expected_tier}, got {snapshot.tier}")

    for name, count in snapshot.activity_counters.model_dump().items():
        if count < 0:
            fail("counters_non_negative", f"Invalid activity count for {name}: {count}")

    streak = snapshot.streak
    if streak.current_length < 0 or streak.longest_length < 0:
        fail("streak_non_negative", "Invalid streak data: streaks cannot be negative")
    if streak.longest_length < streak.current_length:
        fail(
            "longest_streak_bound",
            f"Longest streak {streak.longest_length} is shorter than current {streak.current_length}"
        )

    badge_ids = [achievement.id for achievement in snapshot.earned_achievements]
    if len(badge_ids) != len(set(badge_ids)):
        fail("unique_achievements", "Duplicate badges detected in progression data")

    timestamps = [as_utc(event.timestamp) for event in snapshot.history]
    if any(later < earlier for earlier, later in zip(timestamps, timestamps[1:])):
        fail("history_sorted", "XP history is not properly sorted by timestamp")


def load_snapshot(raw: Any, user_id: str) -> Tuple[ProgressionSnapshot, bool]:
    """
    Parse a stored document, repairing it if it fails validation

    Args:
        raw: Stored document (dict, ProgressionSnapshot or None)
        user_id: Owner, for logging

    Returns:
        (snapshot, repaired)
    """
    if raw is None:
        return ProgressionSnapshot.initial(), False

    try:
        if isinstance(raw, ProgressionSnapshot):
            snapshot = raw.model_copy(deep=True)
        else:
            snapshot = ProgressionSnapshot.model_validate(raw)
        validate_snapshot(snapshot, user_id=user_id)
        return snapshot, False
    except (PydanticValidationError, SnapshotValidationError) as e:
        logger.warning(f"Progression data validation failed for user {user_id}, repairing: {e}")

    if isinstance(raw, ProgressionSnapshot):
        raw = raw.model_dump()

    snapshot, repairs = normalize_snapshot(raw)
    for repair in repairs:
        record_snapshot_repair(repair)
    logger.warning(f"Repaired progression data for user {user_id}: {', '.join(repairs) or 'none'}")
    return snapshot, True


def normalize_snapshot(raw: Any) -> Tuple[ProgressionSnapshot, List[str]]:
    """
    Rebuild a valid snapshot from a possibly malformed document

    Returns:
        (snapshot, names of the sub-structures that were repaired)
    """
    repairs: List[str] = []

    if not isinstance(raw, dict):
        return ProgressionSnapshot.initial(), ["document"]

    history, history_lossy = _normalize_history(raw.get("history"), repairs)
    streak = _normalize_streak(raw.get("streak"), repairs)
    counters = _normalize_counters(raw.get("activity_counters"), repairs)
    earned = _normalize_achievements(raw.get("earned_achievements"), repairs)

    history_total = sum(event.amount for event in history)
    stored_score = raw.get("score")
    if (
        history_lossy
        and isinstance(stored_score, int)
        and not isinstance(stored_score, bool)
        and stored_score > history_total
    ):
        # Keep XP the lost history no longer accounts for
        history.append(_reconciliation_event(stored_score - history_total, history))
        repairs.append("history_reconciled")

    score = sum(event.amount for event in history)
    if stored_score != score:
        repairs.append("score")

    tier = tier_for(score)
    if raw.get("tier") != tier:
        repairs.append("tier")

    snapshot = ProgressionSnapshot(
        score=score,
        tier=tier,
        streak=streak,
        activity_counters=counters,
        earned_achievements=earned,
        history=history,
    )
    return snapshot, repairs


def _normalize_history(raw_history: Any, repairs: List[str]) -> Tuple[List[RewardEvent], bool]:
    """Returns (valid events sorted by time, whether any history was lost)"""
    if not isinstance(raw_history, list):
        repairs.append("history")
        return [], True

    events = []
    dropped = 0
    for entry in raw_history:
        try:
            event = entry if isinstance(entry, RewardEvent) else RewardEvent.model_validate(entry)
        except PydanticValidationError:
            dropped += 1
            continue
        events.append(event.model_copy(update={"timestamp": as_utc(event.timestamp)}))

    if dropped:
        repairs.append("history")
        logger.warning(f"Dropped {dropped} malformed history entries")

    ordered = sorted(events, key=lambda event: event.timestamp)
    if ordered != events and "history" not in repairs:
        repairs.append("history")
    return ordered, dropped > 0


def _reconciliation_event(amount: int, history: List[RewardEvent]) -> RewardEvent:
    # Stamped no earlier than the last entry so history stays sorted
    timestamp = history[-1].timestamp if history else datetime.now(timezone.utc)
    return RewardEvent(
        amount=amount,
        action_kind=ActionKind.SCORE_RECONCILIATION,
        timestamp=timestamp,
        metadata={"reason": "history_missing_or_invalid"},
    )


def _normalize_streak(raw_streak: Any, repairs: List[str]) -> StreakState:
    try:
        streak = StreakState.model_validate(raw_streak)
    except PydanticValidationError:
        repairs.append("streak")
        return StreakState()

    if streak.longest_length < streak.current_length:
        repairs.append("streak")
        streak = streak.model_copy(update={"longest_length": streak.current_length})
    return streak


def _normalize_counters(raw_counters: Any, repairs: List[str]) -> ActivityCounters:
    if not isinstance(raw_counters, dict):
        repairs.append("activity_counters")
        return ActivityCounters()

    values: Dict[str, int] = {}
    salvaged = True
    for name in ActivityCounters.model_fields:
        value = raw_counters.get(name, 0)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            values[name] = value
        else:
            values[name] = 0
            salvaged = False

    if not salvaged:
        repairs.append("activity_counters")
    return ActivityCounters(**values)


def _normalize_achievements(raw_earned: Any, repairs: List[str]) -> List[EarnedAchievement]:
    if not isinstance(raw_earned, list):
        repairs.append("earned_achievements")
        return []

    earned = []
    seen = set()
    for entry in raw_earned:
        try:
            achievement = entry if isinstance(entry, EarnedAchievement) else EarnedAchievement.model_validate(entry)
        except PydanticValidationError:
            if "earned_achievements" not in repairs:
                repairs.append("earned_achievements")
            continue
        if achievement.id in seen:
            if "earned_achievements" not in repairs:
                repairs.append("earned_achievements")
            continue
        seen.add(achievement.id)
        earned.append(achievement)

    return earned
