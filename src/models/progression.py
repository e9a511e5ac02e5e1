"""Progression (XP, level, streak, badge) Pydantic models"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """User actions that award XP"""
    QUEST_CREATED = "QUEST_CREATED"
    QUEST_IN_PROGRESS = "QUEST_IN_PROGRESS"
    QUEST_COMPLETED = "QUEST_COMPLETED"
    APP_ADDED = "APP_ADDED"
    REVIEW_INTERACTION = "REVIEW_INTERACTION"
    LOGIN_STREAK_BONUS = "LOGIN_STREAK_BONUS"
    SCORE_RECONCILIATION = "SCORE_RECONCILIATION"  # Written by snapshot repair only


class AchievementCategory(str, Enum):
    """Badge categories"""
    MILESTONE = "MILESTONE"  # XP-based
    ACHIEVEMENT = "ACHIEVEMENT"  # Activity-based
    STREAK = "STREAK"  # Consecutive login days
    COLLECTION = "COLLECTION"  # Tracked apps


class ActivityCounters(BaseModel):
    """Per-action activity counts (never decrease)"""
    quests_created: int = Field(default=0, ge=0)
    quests_in_progress: int = Field(default=0, ge=0)
    quests_completed: int = Field(default=0, ge=0)
    apps_added: int = Field(default=0, ge=0)
    review_interactions: int = Field(default=0, ge=0)


class StreakState(BaseModel):
    """Daily login streak"""
    current_length: int = Field(default=0, ge=0)
    longest_length: int = Field(default=0, ge=0)
    last_active_date: Optional[date] = None


class RewardEvent(BaseModel):
    """One XP history entry (immutable once appended)"""
    model_config = ConfigDict(frozen=True)

    amount: int = Field(ge=0)
    action_kind: ActionKind
    timestamp: datetime
    metadata: Optional[dict[str, Any]] = None


class AchievementRequirement(BaseModel):
    """A single predicate over the snapshot"""
    model_config = ConfigDict(frozen=True)

    type: Literal["score", "activity_count", "streak"]
    value: int = Field(ge=0)
    field: Optional[str] = None  # counter name for activity_count


class Achievement(BaseModel):
    """Badge definition from the static catalog"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: AchievementCategory
    icon_url: Optional[str] = None
    requirements: tuple[AchievementRequirement, ...]


class EarnedAchievement(BaseModel):
    """Badge recorded on a user's snapshot"""
    id: str
    name: str
    description: str
    category: AchievementCategory
    earned_at: datetime

    @classmethod
    def from_achievement(cls, achievement: Achievement, earned_at: datetime) -> "EarnedAchievement":
        return cls(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            category=achievement.category,
            earned_at=earned_at,
        )


class AchievementProgress(BaseModel):
    """Progress toward a catalog achievement"""
    achievement: Achievement
    progress: int
    target: int
    earned: bool


class ProgressionSnapshot(BaseModel):
    """Complete progression state for one user"""
    score: int = Field(default=0, ge=0)
    tier: int = Field(default=1, ge=1)
    streak: StreakState = Field(default_factory=StreakState)
    activity_counters: ActivityCounters = Field(default_factory=ActivityCounters)
    earned_achievements: list[EarnedAchievement] = Field(default_factory=list)
    history: list[RewardEvent] = Field(default_factory=list)

    @classmethod
    def initial(cls) -> "ProgressionSnapshot":
        """Default state for a user with no progression yet"""
        return cls()

    @property
    def earned_ids(self) -> set[str]:
        return {achievement.id for achievement in self.earned_achievements}


class StreakAdvance(BaseModel):
    """Outcome of advancing a streak by one day"""
    new_streak: StreakState
    bonus_eligible: bool = False
    bonus_amount: int = 0
    changed: bool = True


class AwardResult(BaseModel):
    """Result of a single award, returned to the caller and the UI"""
    amount_awarded: int
    new_score: int
    tier_changed: bool
    previous_tier: int
    new_tier: int
    achievements_earned: list[Achievement] = Field(default_factory=list)
    action_kind: ActionKind
    attempts: int = 1
    streak_milestone: Optional[int] = None  # Streak length when a milestone bonus was paid
