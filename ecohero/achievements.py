"""
Achievement tracking: progress counters towards badge thresholds with a
one-way unlock latch.
"""

import logging
import math
import datetime

from .error_utils import InvalidProgressError
from .pydantic_models import Achievement, AchievementMetric, EcoActivity

_METRIC_SOURCES = {
    AchievementMetric.CARBON: "carbonSavedKg",
    AchievementMetric.WATER: "waterSavedLiters",
    AchievementMetric.LAND: "landSavedSqMeters",
    AchievementMetric.PLASTIC: "plasticSavedItems",
}


def record_achievement_progress(achievement: Achievement, amount: float, now: datetime.datetime) -> Achievement:
    """
    Add progress towards an achievement, unlocking it once the requirement is met.
    Unlocked achievements are returned unchanged, so `unlockedDate` is set exactly once.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount < 0:
        raise InvalidProgressError(
            f"Invalid progress amount for achievement {achievement.badgeId}: {amount!r}",
            details={"badgeId": achievement.badgeId, "amount": repr(amount)},
        )
    if achievement.isUnlocked:
        return achievement

    progress = achievement.progressCurrent + amount
    update = {"progressCurrent": progress}
    if progress >= achievement.progressRequired:
        update.update({"isUnlocked": True, "unlockedDate": now})
        logging.info(f"Achievement '{achievement.badgeId}' unlocked for user {achievement.userId}")

    return achievement.model_copy(update=update)

def unlock_achievement(achievement: Achievement, now: datetime.datetime) -> Achievement:
    """Unlock without touching progress; a no-op for unlocked achievements."""
    if achievement.isUnlocked:
        return achievement
    logging.info(f"Achievement '{achievement.badgeId}' unlocked directly for user {achievement.userId}")
    return achievement.model_copy(update={"isUnlocked": True, "unlockedDate": now})

def progress_amount_for(achievement: Achievement, activity: EcoActivity) -> float:
    """How much a logged activity counts towards an achievement."""
    if achievement.metric == AchievementMetric.CHALLENGE:
        return 0
    if achievement.category is not None and achievement.category != activity.category:
        return 0
    if achievement.metric == AchievementMetric.ACTIVITIES:
        return 1
    return getattr(activity, _METRIC_SOURCES[achievement.metric])
