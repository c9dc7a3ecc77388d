"""
Progress engine entry point. One logged activity is applied to the profile,
then offered to the user's achievements and active challenges, exactly once.
"""

import logging
import datetime
from typing import Iterable, List

from .achievements import progress_amount_for, record_achievement_progress, unlock_achievement
from .challenges import check_challenge_expiration, join_challenge, record_challenge_progress
from .impact import apply_activity, calculate_experience_points
from .pydantic_models import (
    Achievement, ActivityOutcome, Challenge, ChallengeStatus, EcoActivity, UserProfile
)

__all__ = [
    'apply_activity',
    'record_achievement_progress',
    'join_challenge',
    'record_challenge_progress',
    'check_challenge_expiration',
    'log_activity',
]


def _challenge_counts(challenge: Challenge, activity: EcoActivity) -> bool:
    return challenge.category is None or challenge.category == activity.category

def log_activity(
    profile: UserProfile,
    activity: EcoActivity,
    achievements: Iterable[Achievement],
    challenges: Iterable[Challenge],
    now: datetime.datetime,
) -> ActivityOutcome:
    """
    Apply a logged activity to every piece of progress it affects.

    Challenges are checked for expiration before progress is counted, so an
    activity logged after a deadline never completes it. Completing a challenge
    unlocks the achievement its `badgeId` points at and reports its reward XP;
    the reward is not added to the profile, whose XP comes from activities only.
    """
    updated_profile = apply_activity(profile, activity, now)
    points = calculate_experience_points(activity)

    updated_achievements: List[Achievement] = []
    unlocked_badges: List[str] = []
    for achievement in achievements:
        amount = progress_amount_for(achievement, activity)
        updated = achievement
        if amount > 0:
            updated = record_achievement_progress(achievement, amount, now)
            if updated.isUnlocked and not achievement.isUnlocked:
                unlocked_badges.append(updated.badgeId)
        updated_achievements.append(updated)

    updated_challenges: List[Challenge] = []
    completed_ids: List[str] = []
    failed_ids: List[str] = []
    reward_xp = 0
    for challenge in challenges:
        updated = check_challenge_expiration(challenge, now)
        if updated.status == ChallengeStatus.FAILED and challenge.status != ChallengeStatus.FAILED:
            failed_ids.append(updated.id)
        elif updated.status == ChallengeStatus.IN_PROGRESS and _challenge_counts(updated, activity):
            updated = record_challenge_progress(updated, now)
            if updated.status == ChallengeStatus.COMPLETED:
                completed_ids.append(updated.id)
                reward_xp += updated.rewardXP
                if updated.badgeId:
                    unlocked_badges.extend(_unlock_badge(updated_achievements, updated.badgeId, now))
        updated_challenges.append(updated)

    if unlocked_badges or completed_ids or failed_ids:
        logging.info(f"Activity {activity.id} for user {profile.userId}: unlocked={unlocked_badges} "
                     f"completed={completed_ids} failed={failed_ids}")

    return ActivityOutcome(
        profile=updated_profile,
        achievements=updated_achievements,
        challenges=updated_challenges,
        pointsEarned=points,
        levelsGained=updated_profile.currentLevel - profile.currentLevel,
        unlockedBadgeIds=unlocked_badges,
        completedChallengeIds=completed_ids,
        failedChallengeIds=failed_ids,
        rewardXPEarned=reward_xp,
    )

def _unlock_badge(achievements: List[Achievement], badge_id: str, now: datetime.datetime) -> List[str]:
    """Unlock every locked achievement with this badge id in place; return the badge ids unlocked."""
    unlocked = []
    for index, achievement in enumerate(achievements):
        if achievement.badgeId == badge_id and not achievement.isUnlocked:
            achievements[index] = unlock_achievement(achievement, now)
            unlocked.append(badge_id)
    if not unlocked and not any(a.badgeId == badge_id for a in achievements):
        logging.warning(f"Completed challenge links to unknown badge '{badge_id}'")
    return unlocked
