"""
XP Award Table

XP Award Rules:
- Quest created: 10 XP
- Quest started: 5 XP
- Quest completed: 15 XP
- App added: 20 XP
- Review interaction: 8 XP
- Login streak bonus: variable, paid on streak milestones (see streak_system)

SCORE_RECONCILIATION entries are written by snapshot repair and cannot be
awarded by callers.
"""

from typing import Union

from src.exceptions import ValidationError
from src.models.progression import ActionKind, ActivityCounters

ACTION_XP_VALUES: dict[ActionKind, int] = {
    ActionKind.QUEST_CREATED: 10,
    ActionKind.QUEST_IN_PROGRESS: 5,
    ActionKind.QUEST_COMPLETED: 15,
    ActionKind.APP_ADDED: 20,
    ActionKind.REVIEW_INTERACTION: 8,
    ActionKind.LOGIN_STREAK_BONUS: 0,  # Variable based on streak length
    ActionKind.SCORE_RECONCILIATION: 0,  # Carries XP from documents without history
}

# Counter incremented by each action (streak bonuses count nothing)
ACTIVITY_COUNTER_FIELDS: dict[ActionKind, str] = {
    ActionKind.QUEST_CREATED: "quests_created",
    ActionKind.QUEST_IN_PROGRESS: "quests_in_progress",
    ActionKind.QUEST_COMPLETED: "quests_completed",
    ActionKind.APP_ADDED: "apps_added",
    ActionKind.REVIEW_INTERACTION: "review_interactions",
}

AWARDABLE_ACTIONS = frozenset(ActionKind) - {ActionKind.SCORE_RECONCILIATION}


def parse_action_kind(action_kind: Union[ActionKind, str]) -> ActionKind:
    """Coerce a caller-supplied action kind, rejecting unknown values"""
    try:
        parsed = ActionKind(action_kind)
    except ValueError:
        raise ValidationError(
            message=f"Unknown action kind: {action_kind}",
            field="action_kind",
            value=action_kind,
        )

    if parsed not in AWARDABLE_ACTIONS:
        raise ValidationError(
            message=f"Action kind {parsed.value} cannot be awarded",
            field="action_kind",
            value=action_kind,
        )
    return parsed


def get_xp_for_action(action_kind: ActionKind, streak_bonus: int = 0) -> int:
    """
    Calculate XP amount for an action

    Args:
        action_kind: Action performed
        streak_bonus: Milestone bonus, only used for LOGIN_STREAK_BONUS

    Returns:
        XP amount to award
    """
    if action_kind == ActionKind.LOGIN_STREAK_BONUS:
        return max(streak_bonus, 0)
    return ACTION_XP_VALUES[action_kind]


def apply_activity(counters: ActivityCounters, action_kind: ActionKind) -> ActivityCounters:
    """Return counters with the action's entry incremented"""
    field = ACTIVITY_COUNTER_FIELDS.get(action_kind)
    if field is None:
        return counters.model_copy()
    return counters.model_copy(update={field: getattr(counters, field) + 1})
