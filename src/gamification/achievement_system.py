"""
Achievement System

Evaluates the static badge catalog against a progression snapshot.

Categories:
- Milestone (total XP)
- Achievement (quest completion counts)
- Streak (longest login streak)
- Collection (tracked apps)

Evaluation is pure: it never records anything. Callers merge the returned
badges into the snapshot before evaluating again, so a badge is only ever
returned once per user.
"""

from typing import Iterable, List, Optional, Sequence
from pathlib import Path
import json
import logging

from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.exceptions import ConfigurationError
from src.models.progression import (
    Achievement,
    AchievementCategory,
    AchievementProgress,
    AchievementRequirement,
    ProgressionSnapshot,
)

logger = logging.getLogger(__name__)


def _badge(id: str, name: str, description: str, category: AchievementCategory,
           *requirements: AchievementRequirement) -> Achievement:
    return Achievement(
        id=id,
        name=name,
        description=description,
        category=category,
        requirements=tuple(requirements),
    )


ACHIEVEMENT_CATALOG: tuple[Achievement, ...] = (
    _badge("getting-started", "Getting Started", "Earned your first 100 XP",
           AchievementCategory.MILESTONE,
           AchievementRequirement(type="score", value=100)),
    _badge("quest-explorer", "Quest Explorer", "Reached 500 XP",
           AchievementCategory.MILESTONE,
           AchievementRequirement(type="score", value=500)),
    _badge("review-master", "Review Master", "Reached 1000 XP",
           AchievementCategory.MILESTONE,
           AchievementRequirement(type="score", value=1000)),
    _badge("platform-expert", "Platform Expert", "Reached 2500 XP",
           AchievementCategory.MILESTONE,
           AchievementRequirement(type="score", value=2500)),
    _badge("quest-warrior", "Quest Warrior", "Completed 10 quests",
           AchievementCategory.ACHIEVEMENT,
           AchievementRequirement(type="activity_count", value=10, field="quests_completed")),
    _badge("dedicated-user", "Dedicated User", "Maintained a 7-day login streak",
           AchievementCategory.STREAK,
           AchievementRequirement(type="streak", value=7)),
    _badge("app-collector", "App Collector", "Added 3 or more apps to track",
           AchievementCategory.COLLECTION,
           AchievementRequirement(type="activity_count", value=3, field="apps_added")),
    _badge("quest-legend", "Quest Legend", "Completed 50 quests",
           AchievementCategory.ACHIEVEMENT,
           AchievementRequirement(type="activity_count", value=50, field="quests_completed")),
)


class AchievementCatalogFile(BaseModel):
    """Versioned on-disk catalog"""
    version: int
    achievements: List[Achievement]


def load_catalog(path: Path) -> tuple[Achievement, ...]:
    """
    Load a versioned achievement catalog from JSON

    Expected format:
        {"version": 2, "achievements": [{"id": ..., "requirements": [...]}, ...]}

    Raises:
        ConfigurationError: file missing, unparsable, or with duplicate ids
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        catalog_file = AchievementCatalogFile.model_validate(raw)
    except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
        raise ConfigurationError(
            f"Invalid achievement catalog at {path}: {e}",
            config_key="ACHIEVEMENT_CATALOG_PATH",
            cause=e,
        )

    ids = [achievement.id for achievement in catalog_file.achievements]
    if len(ids) != len(set(ids)):
        raise ConfigurationError(
            f"Duplicate achievement ids in catalog at {path}",
            config_key="ACHIEVEMENT_CATALOG_PATH",
        )

    logger.info(
        f"Loaded achievement catalog v{catalog_file.version} "
        f"with {len(ids)} achievements from {path}"
    )
    return tuple(catalog_file.achievements)


def evaluate_achievements(
    snapshot: ProgressionSnapshot,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG
) -> List[Achievement]:
    """
    Return catalog achievements newly satisfied by the snapshot

    An achievement is returned iff it is not already in
    snapshot.earned_achievements and all of its requirements hold.
    """
    earned_ids = snapshot.earned_ids
    newly_earned = []

    for achievement in catalog:
        if achievement.id in earned_ids:
            continue

        if _requirements_met(achievement.requirements, snapshot):
            newly_earned.append(achievement)

    return newly_earned


def _requirements_met(
    requirements: Iterable[AchievementRequirement],
    snapshot: ProgressionSnapshot
) -> bool:
    return all(_check_requirement(requirement, snapshot) for requirement in requirements)


def _check_requirement(requirement: AchievementRequirement, snapshot: ProgressionSnapshot) -> bool:
    if requirement.type == "score":
        return snapshot.score >= requirement.value

    if requirement.type == "activity_count":
        count = _activity_count(requirement, snapshot)
        return count is not None and count >= requirement.value

    if requirement.type == "streak":
        return snapshot.streak.longest_length >= requirement.value

    logger.warning(f"Unknown requirement type: {requirement.type}")
    return False


def _activity_count(requirement: AchievementRequirement, snapshot: ProgressionSnapshot) -> Optional[int]:
    if not requirement.field:
        logger.warning("Activity count requirement missing field")
        return None

    count = getattr(snapshot.activity_counters, requirement.field, None)
    if count is None:
        logger.warning(f"Unknown activity counter: {requirement.field}")
    return count


def _current_value(requirement: AchievementRequirement, snapshot: ProgressionSnapshot) -> int:
    if requirement.type == "score":
        return snapshot.score
    if requirement.type == "activity_count":
        return _activity_count(requirement, snapshot) or 0
    if requirement.type == "streak":
        return snapshot.streak.longest_length
    return 0


def get_achievement_progress(
    snapshot: ProgressionSnapshot,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG
) -> List[AchievementProgress]:
    """
    Progress toward every catalog achievement

    Uses the first requirement of each achievement; progress is capped at
    the target.
    """
    earned_ids = snapshot.earned_ids
    progress_list = []

    for achievement in catalog:
        if not achievement.requirements:
            progress, target = 0, 1
        else:
            primary = achievement.requirements[0]
            target = primary.value
            progress = min(_current_value(primary, snapshot), target)

        progress_list.append(AchievementProgress(
            achievement=achievement,
            progress=progress,
            target=target,
            earned=achievement.id in earned_ids,
        ))

    return progress_list


def get_achievement_by_id(
    achievement_id: str,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG
) -> Optional[Achievement]:
    for achievement in catalog:
        if achievement.id == achievement_id:
            return achievement
    return None


def get_achievements_by_category(
    category: AchievementCategory,
    catalog: Sequence[Achievement] = ACHIEVEMENT_CATALOG
) -> List[Achievement]:
    return [achievement for achievement in catalog if achievement.category == category]
