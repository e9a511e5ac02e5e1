"""
Progress indicators

Suggestions shown next to the XP bar: levels and badges the user is close
to, the next streak milestone, and activities worth doing next.

Priorities:
- high: 90%+ of the way to a level/badge, or 2 days or less from a streak milestone
- medium: 70%+ of the way, or further from a streak milestone
- low: general encouragement
"""

from math import ceil
from typing import Any, Dict, List, Sequence

from src.gamification.achievement_system import ACHIEVEMENT_CATALOG, get_achievement_progress
from src.gamification.level_curve import get_level_progress
from src.gamification.streak_system import next_streak_milestone
from src.gamification.xp_system import ACTION_XP_VALUES
from src.models.progression import Achievement, ActionKind, ProgressionSnapshot

CLOSE_TO_COMPLETION_THRESHOLD = 0.7
VERY_CLOSE_THRESHOLD = 0.9
MAX_SUGGESTIONS = 5
APP_COLLECTION_TARGET = 3

_PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def _suggestion(
    id: str,
    type: str,
    title: str,
    description: str,
    progress: int,
    target: int,
    priority: str,
    estimated_actions: int,
    message: str
) -> Dict[str, Any]:
    return {
        "id": id,
        "type": type,
        "title": title,
        "description": description,
        "progress": progress,
        "target": target,
        "priority": priority,
        "estimated_actions": estimated_actions,
        "motivational_message": message,
    }


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


def get_progress_suggestions(
    snapshot: ProgressionSnapshot,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG,
    limit: int = MAX_SUGGESTIONS
) -> List[Dict[str, Any]]:
    """
    Build progress suggestions for a snapshot

    Returns:
        Up to `limit` suggestions, highest priority first, then closest to
        completion first
    """
    suggestions = []
    suggestions.extend(_level_suggestions(snapshot))
    suggestions.extend(_badge_suggestions(snapshot, catalog))
    suggestions.extend(_streak_suggestions(snapshot))
    suggestions.extend(_activity_suggestions(snapshot))

    suggestions.sort(
        key=lambda s: (_PRIORITY_ORDER[s["priority"]], s["progress"] / max(s["target"], 1)),
        reverse=True,
    )
    return suggestions[:limit]


def _level_suggestions(snapshot: ProgressionSnapshot) -> List[Dict[str, Any]]:
    level = get_level_progress(snapshot.score)
    if level["is_max_tier"] or level["tier_span"] == 0:
        return []

    ratio = level["score_in_tier"] / level["tier_span"]
    if ratio < CLOSE_TO_COMPLETION_THRESHOLD:
        return []

    next_tier = level["tier"] + 1
    remaining = level["score_to_next_tier"]
    quest_xp = ACTION_XP_VALUES[ActionKind.QUEST_COMPLETED]

    return [_suggestion(
        id=f"level-{next_tier}",
        type="level",
        title=f"Almost Level {next_tier}!",
        description=f"You're close to reaching Level {next_tier}",
        progress=level["score_in_tier"],
        target=level["tier_span"],
        priority="high" if ratio >= VERY_CLOSE_THRESHOLD else "medium",
        estimated_actions=ceil(remaining / quest_xp),
        message=f"Just {remaining} XP away from Level {next_tier}!",
    )]


def _badge_suggestions(
    snapshot: ProgressionSnapshot,
    catalog: Sequence[Achievement]
) -> List[Dict[str, Any]]:
    suggestions = []
    for item in get_achievement_progress(snapshot, catalog):
        if item.earned or item.target == 0:
            continue

        ratio = item.progress / item.target
        if ratio < CLOSE_TO_COMPLETION_THRESHOLD or ratio >= 1:
            continue

        remaining = item.target - item.progress
        suggestions.append(_suggestion(
            id=f"badge-{item.achievement.id}",
            type="badge",
            title=f"Close to {item.achievement.name}",
            description=item.achievement.description,
            progress=item.progress,
            target=item.target,
            priority="high" if ratio >= VERY_CLOSE_THRESHOLD else "medium",
            estimated_actions=remaining,
            message=f"{remaining} more to unlock {item.achievement.name}!",
        ))
    return suggestions


def _streak_suggestions(snapshot: ProgressionSnapshot) -> List[Dict[str, Any]]:
    current = snapshot.streak.current_length

    if current == 0:
        return [_suggestion(
            id="streak-start",
            type="streak",
            title="Start a login streak",
            description="Log in daily to build a streak and earn bonus XP",
            progress=0,
            target=3,
            priority="low",
            estimated_actions=3,
            message="Start a 3-day streak to earn your first streak bonus!",
        )]

    if current < 2:
        return []

    milestone = next_streak_milestone(current)
    if milestone is None:
        return []

    remaining = milestone - current
    return [_suggestion(
        id=f"streak-{milestone}",
        type="streak",
        title=f"{_plural(remaining, 'day')} to streak milestone",
        description=f"Reach a {milestone}-day login streak for bonus XP",
        progress=current,
        target=milestone,
        priority="high" if remaining <= 2 else "medium",
        estimated_actions=remaining,
        message=f"{_plural(remaining, 'more day')} for a streak bonus!",
    )]


def _activity_suggestions(snapshot: ProgressionSnapshot) -> List[Dict[str, Any]]:
    counters = snapshot.activity_counters
    suggestions = []

    open_quests = max(counters.quests_in_progress - counters.quests_completed, 0)
    if open_quests > 0:
        quest_xp = ACTION_XP_VALUES[ActionKind.QUEST_COMPLETED]
        suggestions.append(_suggestion(
            id="complete-quests",
            type="activity",
            title="Complete your in-progress quests",
            description=f"You have {_plural(open_quests, 'quest')} waiting to be completed",
            progress=0,
            target=open_quests,
            priority="medium",
            estimated_actions=open_quests,
            message=f"Complete your quests to earn {open_quests * quest_xp} XP!",
        ))

    if counters.apps_added < APP_COLLECTION_TARGET and "app-collector" not in snapshot.earned_ids:
        remaining = APP_COLLECTION_TARGET - counters.apps_added
        suggestions.append(_suggestion(
            id="add-apps",
            type="activity",
            title="Add more apps to track",
            description="Track more apps to earn XP and unlock the App Collector badge",
            progress=counters.apps_added,
            target=APP_COLLECTION_TARGET,
            priority="low",
            estimated_actions=remaining,
            message=f"Add {_plural(remaining, 'more app')} to earn the App Collector badge!",
        ))

    return suggestions
