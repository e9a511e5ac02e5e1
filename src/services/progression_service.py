"""
ProgressionService - Progression Business Logic

Entry point for the rest of the review dashboard: awarding XP for user
actions, daily logins, and read-only views of a user's progression.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from src.gamification.achievement_system import ACHIEVEMENT_CATALOG, get_achievement_progress
from src.gamification.award_transaction import AwardTransaction
from src.gamification.level_curve import get_level_progress
from src.gamification.progress_indicators import MAX_SUGGESTIONS, get_progress_suggestions
from src.gamification.snapshot_repair import as_utc, load_snapshot
from src.gamification.store import ProgressionStore
from src.models.progression import Achievement, ActionKind, AwardResult, ProgressionSnapshot

logger = logging.getLogger(__name__)


class ProgressionService:
    """
    Service for progression features.

    Responsibilities:
    - Awarding XP for actions (via AwardTransaction)
    - Daily login streaks
    - Progression summaries and XP history
    - Progress suggestions ("almost Level 4", next streak milestone)
    """

    def __init__(
        self,
        store: ProgressionStore,
        catalog: Optional[Sequence[Achievement]] = None,
        transaction: Optional[AwardTransaction] = None
    ):
        """
        Initialize ProgressionService.

        Args:
            store: Progression store
            catalog: Achievement catalog (defaults to the built-in one)
            transaction: Preconfigured AwardTransaction (built from store/catalog if omitted)
        """
        self.store = store
        self.catalog = tuple(catalog) if catalog is not None else ACHIEVEMENT_CATALOG
        self.transaction = transaction or AwardTransaction(store, catalog=self.catalog)
        logger.debug("ProgressionService initialized")

    async def award(
        self,
        user_id: str,
        action_kind: Union[ActionKind, str],
        metadata: Optional[Dict[str, Any]] = None
    ) -> AwardResult:
        """Award XP to a user for an action"""
        return await self.transaction.award(user_id, action_kind, metadata)

    async def record_daily_login(self, user_id: str, today: Optional[date] = None) -> AwardResult:
        """
        Advance the user's login streak for today.

        Pays the milestone bonus when the streak lands on 3, 7 or 14 days.
        Calling it again on the same day changes nothing.
        """
        return await self.transaction.award(user_id, ActionKind.LOGIN_STREAK_BONUS, today=today)

    async def get_snapshot(self, user_id: str) -> ProgressionSnapshot:
        """
        Current snapshot, repaired in memory if needed (nothing is written).

        Raises:
            RecordNotFoundError: no user context exists
        """
        stored = await self.store.load(user_id)
        snapshot, _ = load_snapshot(stored.data if stored else None, user_id)
        return snapshot

    async def get_progression_summary(self, user_id: str) -> Dict[str, Any]:
        """
        Get a user's progression for the dashboard.

        Returns:
            {
                'score': int,
                'tier': int,
                'level_progress': dict,
                'streak': dict,
                'activity_counters': dict,
                'earned_achievements': list,
                'achievement_progress': list
            }
        """
        snapshot = await self.get_snapshot(user_id)

        return {
            'score': snapshot.score,
            'tier': snapshot.tier,
            'level_progress': get_level_progress(snapshot.score),
            'streak': snapshot.streak.model_dump(mode="json"),
            'activity_counters': snapshot.activity_counters.model_dump(),
            'earned_achievements': [
                earned.model_dump(mode="json") for earned in snapshot.earned_achievements
            ],
            'achievement_progress': [
                {
                    'id': item.achievement.id,
                    'name': item.achievement.name,
                    'progress': item.progress,
                    'target': item.target,
                    'earned': item.earned,
                }
                for item in get_achievement_progress(snapshot, self.catalog)
            ],
        }

    async def get_xp_history(
        self,
        user_id: str,
        days: int = 7,
        now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Get XP history entries from the last `days` days, newest first.
        """
        snapshot = await self.get_snapshot(user_id)
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)

        recent = [event for event in snapshot.history if as_utc(event.timestamp) >= cutoff]
        recent.reverse()
        return [event.model_dump(mode="json") for event in recent]

    async def get_progress_suggestions(
        self,
        user_id: str,
        limit: int = MAX_SUGGESTIONS
    ) -> List[Dict[str, Any]]:
        """Get what the user is closest to achieving next"""
        snapshot = await self.get_snapshot(user_id)
        return get_progress_suggestions(snapshot, self.catalog, limit)
