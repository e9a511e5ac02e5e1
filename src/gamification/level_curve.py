"""
Level Curve

Maps accumulated XP to a level using a fixed threshold table.

Leveling Curve:
- Level 1: 0 XP
- Level 2: 100 XP
- Level 3: 250 XP
- Level 4: 500 XP
- Level 5: 1000 XP
- ...
- Level 11: 10000 XP (max level, no further progression)
"""

from typing import Any, Dict

# XP required to reach each level; index 0 is level 1
LEVEL_THRESHOLDS: tuple[int, ...] = (
    0,      # Level 1
    100,    # Level 2
    250,    # Level 3
    500,    # Level 4
    1000,   # Level 5
    1750,   # Level 6
    2750,   # Level 7
    4000,   # Level 8
    5500,   # Level 9
    7500,   # Level 10
    10000,  # Level 11
)

MAX_TIER: int = len(LEVEL_THRESHOLDS)


def tier_for(score: int) -> int:
    """
    Calculate level from total XP

    Negative or non-integer scores clamp to level 1.
    """
    if not isinstance(score, int) or isinstance(score, bool) or score < 0:
        return 1

    for index in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        if score >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def is_max_tier(tier: int) -> bool:
    """True once no further level exists"""
    return tier >= MAX_TIER


def score_to_next_tier(score: int) -> int:
    """XP still needed for the next level, or 0 at max level"""
    tier = tier_for(score)
    if is_max_tier(tier):
        return 0
    current = score if isinstance(score, int) and score > 0 else 0
    return LEVEL_THRESHOLDS[tier] - current


def get_level_progress(score: int) -> Dict[str, Any]:
    """
    Describe progress within the current level

    Returns:
        {
            'tier': int,
            'is_max_tier': bool,
            'tier_start': int,
            'score_in_tier': int,
            'tier_span': int,  # 0 at max level
            'score_to_next_tier': int
        }
    """
    tier = tier_for(score)
    current = score if isinstance(score, int) and score > 0 else 0
    tier_start = LEVEL_THRESHOLDS[tier - 1]
    max_tier = is_max_tier(tier)
    tier_span = 0 if max_tier else LEVEL_THRESHOLDS[tier] - tier_start

    return {
        "tier": tier,
        "is_max_tier": max_tier,
        "tier_start": tier_start,
        "score_in_tier": current - tier_start,
        "tier_span": tier_span,
        "score_to_next_tier": score_to_next_tier(score),
    }
