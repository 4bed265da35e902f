"""Static achievement catalog and trigger evaluation.

The catalog is a closed set; it is configuration, not user data, so it lives in
code rather than in an editable table. Only unlock rows are persisted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AchievementType(enum.StrEnum):
    FIRST_SESSION = "first_session"
    FIVE_SESSIONS = "five_sessions"
    TEN_SESSIONS = "ten_sessions"
    LEVEL_5 = "level_5"
    LEVEL_10 = "level_10"
    WEEKLY_STREAK = "weekly_streak"
    PERFECT_ATTENDANCE = "perfect_attendance"


@dataclass(frozen=True)
class AchievementDefinition:
    type: AchievementType
    title: str
    description: str
    badge_color: str


ACHIEVEMENT_CATALOG: dict[AchievementType, AchievementDefinition] = {
    AchievementType.FIRST_SESSION: AchievementDefinition(
        AchievementType.FIRST_SESSION, "First Steps", "Registered for your first PD session", "#3b82f6",
    ),
    AchievementType.FIVE_SESSIONS: AchievementDefinition(
        AchievementType.FIVE_SESSIONS, "Learner", "Registered for 5 PD sessions", "#8b5cf6",
    ),
    AchievementType.TEN_SESSIONS: AchievementDefinition(
        AchievementType.TEN_SESSIONS, "Scholar", "Registered for 10 PD sessions", "#ec4899",
    ),
    AchievementType.LEVEL_5: AchievementDefinition(
        AchievementType.LEVEL_5, "Rising Star", "Reached level 5", "#f59e0b",
    ),
    AchievementType.LEVEL_10: AchievementDefinition(
        AchievementType.LEVEL_10, "Master", "Reached level 10", "#fbbf24",
    ),
    AchievementType.WEEKLY_STREAK: AchievementDefinition(
        AchievementType.WEEKLY_STREAK, "On Fire", "Maintained a 7-day attendance streak", "#ef4444",
    ),
    AchievementType.PERFECT_ATTENDANCE: AchievementDefinition(
        AchievementType.PERFECT_ATTENDANCE, "Perfect", "Attended all offered sessions in a month", "#10b981",
    ),
}

# (achievement, metric, threshold). PERFECT_ATTENDANCE has no automatic trigger.
# Thresholds are ">=" so a batched jump past an exact value cannot skip a milestone;
# the unique (user_id, achievement_type) insert keeps each unlock one-time.
ACHIEVEMENT_TRIGGERS: list[tuple[AchievementType, str, int]] = [
    (AchievementType.FIRST_SESSION, "session_count", 1),
    (AchievementType.FIVE_SESSIONS, "session_count", 5),
    (AchievementType.TEN_SESSIONS, "session_count", 10),
    (AchievementType.LEVEL_5, "level", 5),
    (AchievementType.LEVEL_10, "level", 10),
    (AchievementType.WEEKLY_STREAK, "streak", 7),
]


def get_definition(achievement_type: str) -> AchievementDefinition | None:
    try:
        return ACHIEVEMENT_CATALOG[AchievementType(achievement_type)]
    except ValueError:
        return None


def triggered_achievements(session_count: int, level: int, streak: int) -> list[AchievementType]:
    """Achievements whose trigger is met by the given progression state, in catalog order."""
    metrics = {"session_count": session_count, "level": level, "streak": streak}
    return [
        achievement
        for achievement, metric, threshold in ACHIEVEMENT_TRIGGERS
        if metrics[metric] >= threshold
    ]
