"""
Notification Coalescer

Buffers award results for a short window and turns each burst into one
presentation event.

State machine:
- IDLE: nothing buffered, no timer pending
- BUFFERING: at least one result buffered; every submit() restarts the
  window (debounce). When the window elapses the buffer is flushed and the
  coalescer returns to IDLE.

A flush drains the whole buffer at once and presents, in order:
1. one tier change (first previous tier, highest new tier)
2. one payload per newly earned achievement
3. exactly one reward payload: single if one XP gain was buffered,
   batched (total + breakdown) otherwise

Runs on a single event loop thread: the timer is a loop.call_later handle,
so two flushes can never overlap. flush() can be forced (e.g. on navigation
away); buffered rewards are presented, never dropped.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set
import asyncio
import logging

from src import config
from src.models.notifications import (
    AchievementEarnedPayload,
    BatchedRewardPayload,
    NotificationPayload,
    RewardContribution,
    SingleRewardPayload,
    TierChangePayload,
)
from src.models.progression import Achievement, AwardResult

logger = logging.getLogger(__name__)


class CoalescerState(str, Enum):
    IDLE = "idle"
    BUFFERING = "buffering"


class NotificationCoalescer:
    """
    Debounced batching of award results for one UI session

    Args:
        sink: Presentation callback, called once per payload (may be async)
        window_seconds: Debounce window
        loop: Event loop driving the timer (defaults to the running loop)
    """

    def __init__(
        self,
        sink: Callable[[NotificationPayload], Any],
        window_seconds: float = config.NOTIFICATION_WINDOW_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.sink = sink
        self.window_seconds = window_seconds
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._sink_tasks: Set[asyncio.Task] = set()
        self._reset()

    def _reset(self) -> None:
        self._contributions: List[RewardContribution] = []
        self._tier_change: Optional[TierChangePayload] = None
        self._achievements: Dict[str, Achievement] = {}
        self._state = CoalescerState.IDLE

    @property
    def state(self) -> CoalescerState:
        return self._state

    @property
    def pending_total(self) -> int:
        """XP buffered but not yet presented"""
        return sum(contribution.amount for contribution in self._contributions)

    def submit(self, result: AwardResult) -> None:
        """Buffer an award result and restart the window"""
        buffered = False

        if result.amount_awarded > 0:
            self._contributions.append(RewardContribution(
                action_kind=result.action_kind,
                amount=result.amount_awarded,
                streak_milestone=result.streak_milestone,
            ))
            buffered = True

        if result.tier_changed:
            if self._tier_change is None:
                self._tier_change = TierChangePayload(
                    previous_tier=result.previous_tier,
                    new_tier=result.new_tier,
                )
            elif result.new_tier > self._tier_change.new_tier:
                self._tier_change = self._tier_change.model_copy(update={"new_tier": result.new_tier})
            buffered = True

        for achievement in result.achievements_earned:
            self._achievements.setdefault(achievement.id, achievement)
            buffered = True

        # Nothing to show (e.g. a login already counted today)
        if not buffered:
            return

        self._restart_timer()
        self._state = CoalescerState.BUFFERING

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.window_seconds, self._on_window_elapsed)

    def _on_window_elapsed(self) -> None:
        self._timer = None
        self.flush()

    def flush(self) -> List[NotificationPayload]:
        """
        Present everything buffered now and return to IDLE

        Returns:
            Payloads handed to the sink, in presentation order
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._state == CoalescerState.IDLE:
            return []

        # Drain before presenting so a sink that submits starts a new batch
        contributions = self._contributions
        tier_change = self._tier_change
        achievements = list(self._achievements.values())
        self._reset()

        payloads: List[NotificationPayload] = []
        if tier_change is not None:
            payloads.append(tier_change)

        payloads.extend(AchievementEarnedPayload(achievement=achievement) for achievement in achievements)

        if len(contributions) == 1:
            payloads.append(SingleRewardPayload(
                action_kind=contributions[0].action_kind,
                amount=contributions[0].amount,
                streak_milestone=contributions[0].streak_milestone,
            ))
        elif contributions:
            payloads.append(BatchedRewardPayload(
                total=sum(contribution.amount for contribution in contributions),
                breakdown=contributions,
            ))

        logger.debug(
            f"Flushing {len(payloads)} notifications "
            f"({len(contributions)} XP gains, {len(achievements)} achievements)"
        )

        for payload in payloads:
            self._present(payload)

        return payloads

    def close(self) -> List[NotificationPayload]:
        """Forced flush for session teardown"""
        return self.flush()

    def _present(self, payload: NotificationPayload) -> None:
        try:
            outcome = self.sink(payload)
            if asyncio.iscoroutine(outcome):
                self._schedule(outcome)
        except Exception as e:
            # Presentation is fire-and-forget; keep delivering the rest
            logger.error(f"Notification sink failed for {payload.kind}: {e}", exc_info=e)

    def _schedule(self, coro) -> None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # Teardown outside any loop: deliver before returning
                asyncio.run(coro)
                return

        # The loop only keeps weak references to tasks
        task = loop.create_task(coro)
        self._sink_tasks.add(task)
        task.add_done_callback(self._sink_tasks.discard)
        task.add_done_callback(self._log_sink_failure)

    @property
    def pending_presentations(self) -> int:
        """Async sink calls still running"""
        return len(self._sink_tasks)

    @staticmethod
    def _log_sink_failure(task: "asyncio.Future") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async notification sink failed: {error}", exc_info=error)
