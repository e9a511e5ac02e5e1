"""
Award Transaction

Applies one reward event to a user's progression end-to-end:

1. Load the snapshot (or start from the default one) and repair it if needed
2. Work out the XP for the action (streak bonuses come from the streak tracker)
3. Compute the new score and level
4. Append the history entry and bump the activity counter
5. Evaluate badges on the post-award snapshot and record new ones
6. Conditional write against the loaded version; on conflict reload and
   start over from step 2 with exponential backoff, up to max_attempts
7. Return the AwardResult

There is no in-process lock: the store's compare-and-swap is the only
serialization point, so awards for the same user may run in several
processes at once without losing an update.
"""

from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple, Union
import asyncio
import logging
import time

from src import config
from src.exceptions import (
    ConcurrencyError,
    ConflictExhaustedError,
    RecordNotFoundError,
)
from src.gamification.achievement_system import ACHIEVEMENT_CATALOG, evaluate_achievements
from src.gamification.level_curve import tier_for
from src.gamification.metrics import record_award, record_conflict
from src.gamification.snapshot_repair import load_snapshot
from src.gamification.store import ProgressionStore
from src.gamification.streak_system import advance_streak
from src.gamification.xp_system import apply_activity, get_xp_for_action, parse_action_kind
from src.models.progression import (
    Achievement,
    ActionKind,
    AwardResult,
    EarnedAchievement,
    ProgressionSnapshot,
    RewardEvent,
)
from src.resilience.retry import calculate_backoff, is_retryable_error

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def apply_award(
    snapshot: ProgressionSnapshot,
    action_kind: ActionKind,
    metadata: Optional[Dict[str, Any]],
    now: datetime,
    today: date,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG
) -> Tuple[Optional[ProgressionSnapshot], AwardResult]:
    """
    Compute the post-award snapshot without touching storage

    Returns:
        (new snapshot, result); the snapshot is None when there is nothing to
        write (a login streak already counted today)
    """
    previous_tier = tier_for(snapshot.score)
    streak = snapshot.streak
    streak_milestone = None

    if action_kind == ActionKind.LOGIN_STREAK_BONUS:
        advance = advance_streak(snapshot.streak, today)
        if not advance.changed:
            return None, AwardResult(
                amount_awarded=0,
                new_score=snapshot.score,
                tier_changed=False,
                previous_tier=previous_tier,
                new_tier=previous_tier,
                action_kind=action_kind,
            )
        streak = advance.new_streak
        amount = get_xp_for_action(action_kind, streak_bonus=advance.bonus_amount)
        if amount > 0:
            streak_milestone = streak.current_length
            metadata = {**(metadata or {}), "streak_milestone": streak_milestone}
    else:
        amount = get_xp_for_action(action_kind)

    new_score = snapshot.score + amount
    new_tier = tier_for(new_score)

    history = list(snapshot.history)
    if amount > 0:
        history.append(RewardEvent(
            amount=amount,
            action_kind=action_kind,
            timestamp=now,
            metadata=metadata,
        ))

    candidate = snapshot.model_copy(update={
        "score": new_score,
        "tier": new_tier,
        "streak": streak,
        "activity_counters": apply_activity(snapshot.activity_counters, action_kind),
        "history": history,
    })

    newly_earned = evaluate_achievements(candidate, catalog)
    if newly_earned:
        candidate = candidate.model_copy(update={
            "earned_achievements": list(snapshot.earned_achievements) + [
                EarnedAchievement.from_achievement(achievement, now)
                for achievement in newly_earned
            ],
        })

    return candidate, AwardResult(
        amount_awarded=amount,
        new_score=new_score,
        tier_changed=new_tier != previous_tier,
        previous_tier=previous_tier,
        new_tier=new_tier,
        achievements_earned=newly_earned,
        action_kind=action_kind,
        streak_milestone=streak_milestone,
    )


class AwardTransaction:
    """
    Optimistic-concurrency award loop over a ProgressionStore

    Args:
        store: Persistence collaborator
        catalog: Achievement catalog (defaults to the built-in one)
        max_attempts: Conditional write attempts before giving up
        base_delay: Backoff before the first retry, in seconds
        max_delay: Backoff cap, in seconds
        clock: Returns the current aware datetime
        sleep: Awaitable sleep, replaced in tests
    """

    def __init__(
        self,
        store: ProgressionStore,
        catalog: Optional[Sequence[Achievement]] = None,
        max_attempts: int = config.AWARD_MAX_ATTEMPTS,
        base_delay: float = config.AWARD_BASE_DELAY,
        max_delay: float = config.AWARD_MAX_DELAY,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.store = store
        self.catalog = tuple(catalog) if catalog is not None else ACHIEVEMENT_CATALOG
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.clock = clock
        self.sleep = sleep

    async def award(
        self,
        user_id: str,
        action_kind: Union[ActionKind, str],
        metadata: Optional[Dict[str, Any]] = None,
        today: Optional[date] = None
    ) -> AwardResult:
        """
        Award XP to a user for an action

        Args:
            user_id: User's ID
            action_kind: Action that earned XP
            metadata: Optional context stored on the history entry
            today: Calendar day for streak handling (defaults to the clock's date)

        Returns:
            AwardResult

        Raises:
            ValidationError: unknown action kind
            RecordNotFoundError: no user context exists
            ConflictExhaustedError: concurrent writers kept winning
        """
        action = parse_action_kind(action_kind)
        started = time.perf_counter()

        try:
            result = await self._award_with_retry(user_id, action, metadata, today)
        except RecordNotFoundError:
            record_award(action.value, "not_found", time.perf_counter() - started)
            raise
        except ConflictExhaustedError:
            record_award(action.value, "exhausted", time.perf_counter() - started)
            raise
        except Exception:
            record_award(action.value, "error", time.perf_counter() - started)
            raise

        record_award(action.value, "success", time.perf_counter() - started)
        return result

    async def _award_with_retry(
        self,
        user_id: str,
        action: ActionKind,
        metadata: Optional[Dict[str, Any]],
        today: Optional[date]
    ) -> AwardResult:
        for attempt in range(self.max_attempts):
            try:
                result = await self._attempt(user_id, action, metadata, today)
                return result.model_copy(update={"attempts": attempt + 1})

            except Exception as e:
                if not is_retryable_error(e):
                    raise

                record_conflict(action.value)

                # Last attempt: give up loudly
                if attempt + 1 == self.max_attempts:
                    break

                backoff = calculate_backoff(attempt, self.base_delay, self.max_delay)
                logger.info(
                    f"[AWARD] Conflict for user {user_id} ({action.value}), "
                    f"attempt {attempt + 1}/{self.max_attempts}, retrying after {backoff:.3f}s"
                )
                await self.sleep(backoff)

        raise ConflictExhaustedError(
            message=f"Award of {action.value} to user {user_id} failed after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            action_kind=action.value,
            user_id=user_id,
            operation="award",
        )

    async def _attempt(
        self,
        user_id: str,
        action: ActionKind,
        metadata: Optional[Dict[str, Any]],
        today: Optional[date]
    ) -> AwardResult:
        stored = await self.store.load(user_id)
        snapshot, repaired = load_snapshot(stored.data if stored else None, user_id)
        expected_version = stored.version if stored else None

        now = self.clock()
        new_snapshot, result = apply_award(
            snapshot,
            action,
            metadata,
            now=now,
            today=today or now.date(),
            catalog=self.catalog,
        )

        if new_snapshot is None:
            logger.debug(f"Streak already counted today for user {user_id}, nothing to write")
            return result

        committed = await self.store.conditional_write(user_id, expected_version, new_snapshot)
        if not committed:
            raise ConcurrencyError(
                message=f"Progression for user {user_id} changed since version {expected_version}",
                expected_version=expected_version,
                user_id=user_id,
                operation="award",
            )

        logger.info(
            f"Awarded {result.amount_awarded} XP to user {user_id} for {action.value}. "
            f"Total: {result.new_score} XP, Level: {result.new_tier}"
            + (" (repaired snapshot)" if repaired else "")
        )

        if result.tier_changed:
            logger.info(f"User {user_id} leveled up from {result.previous_tier} to {result.new_tier}!")

        for achievement in result.achievements_earned:
            logger.info(f"User {user_id} unlocked achievement: {achievement.id} ({achievement.name})")

        return result
