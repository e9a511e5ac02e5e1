"""
Progression engine for ReviewQuest

Converts user actions into XP, levels and badges:
- Level curve (XP thresholds → level)
- Daily login streak tracking with milestone bonuses
- Badge catalog evaluation
- Atomic award transactions over a compare-and-swap store
"""

from src.gamification.level_curve import tier_for, score_to_next_tier, get_level_progress
from src.gamification.streak_system import advance_streak, calculate_streak_bonus
from src.gamification.achievement_system import evaluate_achievements, get_achievement_progress
from src.gamification.award_transaction import AwardTransaction

__all__ = [
    "tier_for",
    "score_to_next_tier",
    "get_level_progress",
    "advance_streak",
    "calculate_streak_bonus",
    "evaluate_achievements",
    "get_achievement_progress",
    "AwardTransaction",
]
