"""Presentation payloads emitted by the notification coalescer"""
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from src.models.progression import ActionKind, Achievement


class RewardContribution(BaseModel):
    """One buffered XP gain"""
    action_kind: ActionKind
    amount: int
    streak_milestone: Optional[int] = None


class SingleRewardPayload(BaseModel):
    kind: Literal["single_reward"] = "single_reward"
    action_kind: ActionKind
    amount: int
    streak_milestone: Optional[int] = None  # Set for login streak milestone bonuses


class BatchedRewardPayload(BaseModel):
    """Total plus the ordered per-action breakdown"""
    kind: Literal["batched_reward"] = "batched_reward"
    total: int
    breakdown: list[RewardContribution] = Field(default_factory=list)


class TierChangePayload(BaseModel):
    kind: Literal["tier_change"] = "tier_change"
    previous_tier: int
    new_tier: int


class AchievementEarnedPayload(BaseModel):
    kind: Literal["achievement_earned"] = "achievement_earned"
    achievement: Achievement


NotificationPayload = Union[
    SingleRewardPayload,
    BatchedRewardPayload,
    TierChangePayload,
    AchievementEarnedPayload,
]
