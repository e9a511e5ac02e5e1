"""Unit tests for Achievement System (src/gamification/achievement_system.py)"""
import json
import pytest
from datetime import datetime, timezone

from src.exceptions import ConfigurationError
from src.gamification.achievement_system import (
    ACHIEVEMENT_CATALOG,
    evaluate_achievements,
    get_achievement_by_id,
    get_achievement_progress,
    get_achievements_by_category,
    load_catalog,
)
from src.models.progression import (
    Achievement,
    AchievementCategory,
    AchievementRequirement,
    ActivityCounters,
    EarnedAchievement,
    StreakState,
)


EARNED_AT = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _ids(achievements):
    return [achievement.id for achievement in achievements]


# ============================================================================
# Catalog Tests
# ============================================================================

def test_catalog_has_unique_ids():
    """Test built-in catalog ids are unique"""
    ids = _ids(ACHIEVEMENT_CATALOG)
    assert len(ids) == len(set(ids)) == 8


def test_get_achievement_by_id():
    """Test lookup by id"""
    badge = get_achievement_by_id("quest-warrior")

    assert badge is not None
    assert badge.category == AchievementCategory.ACHIEVEMENT
    assert get_achievement_by_id("missing") is None


def test_get_achievements_by_category():
    """Test milestone badges are the four XP thresholds"""
    milestones = get_achievements_by_category(AchievementCategory.MILESTONE)

    assert _ids(milestones) == ["getting-started", "quest-explorer", "review-master", "platform-expert"]


# ============================================================================
# Evaluation Tests
# ============================================================================

def test_evaluate_fresh_snapshot_earns_nothing(snapshot_factory):
    """Test a new user has no badges"""
    assert evaluate_achievements(snapshot_factory()) == []


def test_evaluate_score_milestone(snapshot_factory):
    """Test 100 XP earns Getting Started"""
    snapshot = snapshot_factory(amounts=[60, 40])

    assert _ids(evaluate_achievements(snapshot)) == ["getting-started"]


def test_evaluate_multiple_in_catalog_order(snapshot_factory):
    """Test several badges can be earned at once"""
    snapshot = snapshot_factory(
        amounts=[500],
        activity_counters=ActivityCounters(apps_added=3),
    )

    assert _ids(evaluate_achievements(snapshot)) == ["getting-started", "quest-explorer", "app-collector"]


def test_evaluate_is_idempotent_after_merge(snapshot_factory):
    """Test merged badges are never returned again"""
    snapshot = snapshot_factory(amounts=[150])
    first = evaluate_achievements(snapshot)

    merged = snapshot.model_copy(update={
        "earned_achievements": [EarnedAchievement.from_achievement(a, EARNED_AT) for a in first],
    })

    assert _ids(first) == ["getting-started"]
    assert evaluate_achievements(merged) == []


def test_evaluate_streak_uses_longest(snapshot_factory):
    """Test Dedicated User counts the best streak, not the current one"""
    snapshot = snapshot_factory(streak=StreakState(current_length=1, longest_length=7))

    assert "dedicated-user" in _ids(evaluate_achievements(snapshot))


def test_evaluate_requirements_are_conjunctive(snapshot_factory):
    """Test all requirements must hold"""
    combo = Achievement(
        id="combo",
        name="Combo",
        description="100 XP and 2 completed quests",
        category=AchievementCategory.ACHIEVEMENT,
        requirements=(
            AchievementRequirement(type="score", value=100),
            AchievementRequirement(type="activity_count", value=2, field="quests_completed"),
        ),
    )

    only_score = snapshot_factory(amounts=[100])
    both = snapshot_factory(amounts=[100], activity_counters=ActivityCounters(quests_completed=2))

    assert evaluate_achievements(only_score, [combo]) == []
    assert _ids(evaluate_achievements(both, [combo])) == ["combo"]


def test_evaluate_unknown_counter_never_matches(snapshot_factory):
    """Test a requirement on an unknown counter is not satisfied"""
    odd = Achievement(
        id="odd",
        name="Odd",
        description="Unknown counter",
        category=AchievementCategory.ACHIEVEMENT,
        requirements=(AchievementRequirement(type="activity_count", value=0, field="nope"),),
    )

    assert evaluate_achievements(snapshot_factory(), [odd]) == []


# ============================================================================
# Progress Tests
# ============================================================================

def test_get_achievement_progress_caps_at_target(snapshot_factory):
    """Test progress never exceeds the target"""
    snapshot = snapshot_factory(amounts=[300])
    progress = {item.achievement.id: item for item in get_achievement_progress(snapshot)}

    assert progress["getting-started"].progress == 100
    assert progress["getting-started"].target == 100
    assert progress["quest-explorer"].progress == 300
    assert progress["quest-explorer"].target == 500


def test_get_achievement_progress_marks_earned(snapshot_factory):
    """Test earned badges are flagged"""
    badge = get_achievement_by_id("getting-started")
    snapshot = snapshot_factory(
        amounts=[100],
        earned_achievements=[EarnedAchievement.from_achievement(badge, EARNED_AT)],
    )
    progress = {item.achievement.id: item for item in get_achievement_progress(snapshot)}

    assert progress["getting-started"].earned is True
    assert progress["quest-explorer"].earned is False


# ============================================================================
# Catalog Loading Tests
# ============================================================================

def test_load_catalog_from_json(tmp_path):
    """Test a versioned catalog file is loaded"""
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({
        "version": 2,
        "achievements": [{
            "id": "first-review",
            "name": "First Review",
            "description": "Interacted with a review",
            "category": "ACHIEVEMENT",
            "requirements": [{"type": "activity_count", "value": 1, "field": "review_interactions"}],
        }],
    }))

    catalog = load_catalog(path)

    assert len(catalog) == 1
    assert catalog[0].id == "first-review"
    assert catalog[0].requirements[0].field == "review_interactions"


def test_load_catalog_missing_file(tmp_path):
    """Test a missing file raises ConfigurationError"""
    with pytest.raises(ConfigurationError):
        load_catalog(tmp_path / "missing.json")


def test_load_catalog_invalid_json(tmp_path):
    """Test unparsable JSON raises ConfigurationError"""
    path = tmp_path / "catalog.json"
    path.write_text("{not json")

    with pytest.raises(ConfigurationError):
        load_catalog(path)


def test_load_catalog_duplicate_ids(tmp_path):
    """Test duplicate ids are rejected"""
    entry = {
        "id": "dup",
        "name": "Dup",
        "description": "Duplicate",
        "category": "MILESTONE",
        "requirements": [{"type": "score", "value": 10}],
    }
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"version": 1, "achievements": [entry, entry]}))

    with pytest.raises(ConfigurationError) as exc_info:
        load_catalog(path)

    assert exc_info.value.config_key == "ACHIEVEMENT_CATALOG_PATH"
