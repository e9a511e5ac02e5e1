"""
Daily Login Streak Tracking

Streak rules:
- First activation starts the streak at day 1
- Activity on the next calendar day continues the streak
- Activity on the same day is not reprocessed
- A gap of 2+ days resets the streak to 1 (best streak is kept)

Milestone bonuses are paid only on the exact milestone day:
- 3 days: 5 XP
- 7 days: 10 XP
- 14 days: 15 XP
"""

from typing import Optional
from datetime import date, datetime
import logging

from src.models.progression import StreakAdvance, StreakState

logger = logging.getLogger(__name__)

STREAK_MILESTONES: dict[int, int] = {3: 5, 7: 10, 14: 15}


def calculate_streak_bonus(streak_length: int) -> int:
    """Bonus XP for reaching exactly a milestone length, otherwise 0"""
    return STREAK_MILESTONES.get(streak_length, 0)


def next_streak_milestone(streak_length: int) -> Optional[int]:
    """Next milestone above the current length, or None past the last one"""
    for milestone in sorted(STREAK_MILESTONES):
        if milestone > streak_length:
            return milestone
    return None


def advance_streak(streak: StreakState, today: date) -> StreakAdvance:
    """
    Compute the next streak state for an activity on `today`

    Must be applied at most once per calendar day; a second call on the same
    day returns the streak unchanged with changed=False.

    Args:
        streak: Current streak state
        today: Calendar date of the activity

    Returns:
        StreakAdvance with the new streak and any milestone bonus
    """
    if isinstance(today, datetime):
        today = today.date()

    last_date = streak.last_active_date
    if isinstance(last_date, datetime):
        last_date = last_date.date()

    # First ever activity
    if last_date is None:
        current = 1

    else:
        gap_days = (today - last_date).days

        # Same day (or a clock that went backwards): nothing to do
        if gap_days <= 0:
            return StreakAdvance(
                new_streak=streak.model_copy(),
                bonus_eligible=False,
                bonus_amount=0,
                changed=False,
            )

        if gap_days == 1:
            current = streak.current_length + 1
        else:
            current = 1
            logger.debug(
                f"Streak broken: was {streak.current_length} days, gap was {gap_days} days"
            )

    new_streak = StreakState(
        current_length=current,
        longest_length=max(streak.longest_length, current),
        last_active_date=today,
    )

    bonus = calculate_streak_bonus(current)

    return StreakAdvance(
        new_streak=new_streak,
        bonus_eligible=bonus > 0,
        bonus_amount=bonus,
        changed=True,
    )
