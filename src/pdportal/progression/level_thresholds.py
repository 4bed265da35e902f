"""Level thresholds and computation.

These values MUST match the frontend progression dashboard exactly.
Level 10 is a hard ceiling: experience beyond 2700 XP no longer raises the level.
"""

from __future__ import annotations

from pdportal.errors import InvalidInputError

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "xp_required": 0, "cumulative": 0},
    {"level": 2, "xp_required": 100, "cumulative": 100},
    {"level": 3, "xp_required": 150, "cumulative": 250},
    {"level": 4, "xp_required": 200, "cumulative": 450},
    {"level": 5, "xp_required": 250, "cumulative": 700},
    {"level": 6, "xp_required": 300, "cumulative": 1000},
    {"level": 7, "xp_required": 350, "cumulative": 1350},
    {"level": 8, "xp_required": 400, "cumulative": 1750},
    {"level": 9, "xp_required": 450, "cumulative": 2200},
    {"level": 10, "xp_required": 500, "cumulative": 2700},
]

MIN_LEVEL = LEVEL_THRESHOLDS[0]["level"]
MAX_LEVEL = LEVEL_THRESHOLDS[-1]["level"]

_CUMULATIVE = {t["level"]: t["cumulative"] for t in LEVEL_THRESHOLDS}


def level_for(experience: int) -> int:
    """Highest level whose cumulative threshold is <= experience."""
    if experience < 0:
        msg = "Experience cannot be negative"
        raise InvalidInputError(msg)

    level = MIN_LEVEL
    for threshold in LEVEL_THRESHOLDS:
        if experience >= threshold["cumulative"]:
            level = threshold["level"]
    return level


def xp_to_next_level(experience: int, level: int) -> int:
    """XP still needed to reach ``level + 1``; 0 at max level."""
    next_threshold = _CUMULATIVE.get(level + 1)
    if next_threshold is None:
        return 0
    return max(0, next_threshold - experience)


def progress_percent(experience: int, level: int) -> float:
    """Progress through the current level in [0, 100].

    Clamped even when ``experience`` is inconsistent with ``level``.
    """
    level = max(level, MIN_LEVEL)
    next_threshold = _CUMULATIVE.get(level + 1)
    if next_threshold is None:
        return 100.0

    current_threshold = _CUMULATIVE.get(level, 0)
    span = next_threshold - current_threshold
    progress = (experience - current_threshold) / span * 100
    return min(100.0, max(0.0, progress))


def compute_level(experience: int) -> dict:
    """Full level summary for API responses."""
    level = level_for(experience)
    return {
        "level": level,
        "experience": experience,
        "xp_into_level": experience - _CUMULATIVE[level],
        "xp_to_next_level": xp_to_next_level(experience, level),
        "progress_percent": round(progress_percent(experience, level), 2),
        "next_level": min(level + 1, MAX_LEVEL),
        "is_max_level": level == MAX_LEVEL,
    }
