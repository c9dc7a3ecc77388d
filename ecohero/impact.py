"""
Impact accumulation: folds a logged activity into a user's lifetime totals and
derives experience points, level and daily streak.
"""

import logging
import datetime

from timezone_utils import resolve_timezone, calendar_days_between
from .error_utils import InvalidActivityError, OwnershipError
from .pydantic_models import EcoActivity, UserProfile

XP_PER_LEVEL = 100
MAX_LEVEL = 50  # Highest titled level; leveling itself is unbounded

LEVEL_TITLES = [
    (50, "Earth Guardian"),
    (40, "Environmental Legend"),
    (30, "Eco Hero"),
    (20, "Sustainability Champion"),
    (15, "Planet Protector"),
    (10, "Eco Warrior"),
    (5, "Earth Friend"),
    (2, "Green Starter"),
]

_METRIC_FIELDS = ("carbonSavedKg", "waterSavedLiters", "landSavedSqMeters", "plasticSavedItems")


def calculate_experience_points(activity: EcoActivity) -> float:
    """XP earned for an activity. Land, distance, duration and category do not score."""
    return (activity.carbonSavedKg * 10
            + activity.waterSavedLiters * 0.01
            + activity.plasticSavedItems * 5)

def xp_required_for_next_level(level: int) -> int:
    """Cumulative XP at which `level` is left."""
    return level * XP_PER_LEVEL

def level_progress_percentage(profile: UserProfile) -> float:
    """Progress towards the next level, 0-100."""
    xp_for_current = (profile.currentLevel - 1) * XP_PER_LEVEL
    progress_xp = profile.experiencePoints - xp_for_current
    return max(0, min(100, (progress_xp / XP_PER_LEVEL) * 100))

def level_title(level: int) -> str:
    for minimum, title in LEVEL_TITLES:
        if level >= minimum:
            return title
    return "Eco Beginner"

def validate_activity(profile: UserProfile, activity: EcoActivity):
    for field in _METRIC_FIELDS:
        value = getattr(activity, field)
        # `not value >= 0` also catches NaN
        if value is None or not value >= 0:
            raise InvalidActivityError(
                f"Activity {activity.id} has invalid {field}: {value}",
                details={"field": field, "value": value},
            )
    if activity.userId and activity.userId != profile.userId:
        raise OwnershipError(
            f"Activity {activity.id} belongs to {activity.userId}, not {profile.userId}",
            details={"activityUserId": activity.userId, "profileUserId": profile.userId},
        )

def _level_after(level: int, experience_points: float) -> int:
    while experience_points >= level * XP_PER_LEVEL:
        level += 1
    return level

def _streak_update(profile: UserProfile, now: datetime.datetime) -> dict:
    """Fields to change for the streak, compared by calendar day in the user's timezone."""
    if profile.lastActivityDate is None:
        # First activity
        return {"streak": 1, "longestStreak": max(profile.longestStreak, 1), "lastActivityDate": now}

    tz = resolve_timezone(profile.timezone)
    days_difference = calendar_days_between(profile.lastActivityDate, now, tz)

    if days_difference == 0:
        # Same day, no change to streak
        return {}
    if days_difference == 1:
        streak = profile.streak + 1
        return {
            "streak": streak,
            "longestStreak": max(profile.longestStreak, streak),
            "lastActivityDate": now,
        }
    # Streak broken (or the clock went backwards)
    return {"streak": 1, "longestStreak": max(profile.longestStreak, 1), "lastActivityDate": now}

def apply_activity(profile: UserProfile, activity: EcoActivity, now: datetime.datetime) -> UserProfile:
    """
    Apply one logged activity to a profile and return the updated profile.

    Order matters: totals first, then XP, then level-ups against the new XP
    total, then the streak against the previous `lastActivityDate`.

    Args:
        profile: the activity owner's current profile
        activity: the logged activity
        now: time the activity is being applied

    Returns:
        UserProfile: a new profile value; the input is not modified
    """
    validate_activity(profile, activity)

    points = calculate_experience_points(activity)
    experience_points = profile.experiencePoints + points
    level = _level_after(profile.currentLevel, experience_points)

    update = {
        "totalCarbonSavedKg": profile.totalCarbonSavedKg + activity.carbonSavedKg,
        "totalWaterSavedLiters": profile.totalWaterSavedLiters + activity.waterSavedLiters,
        "totalLandSavedSqMeters": profile.totalLandSavedSqMeters + activity.landSavedSqMeters,
        "totalPlasticSavedItems": profile.totalPlasticSavedItems + activity.plasticSavedItems,
        "totalActivitiesLogged": profile.totalActivitiesLogged + 1,
        "experiencePoints": experience_points,
        "currentLevel": level,
    }
    update.update(_streak_update(profile, now))

    if level > profile.currentLevel:
        logging.info(f"User {profile.userId} leveled up: {profile.currentLevel} -> {level} ({experience_points:.2f} XP)")
    if update.get("streak", profile.streak) != profile.streak:
        logging.info(f"User {profile.userId} streak: {profile.streak} -> {update['streak']}")

    return profile.model_copy(update=update)
