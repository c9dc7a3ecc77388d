"""Tests for impact accumulation: totals, XP, iterative leveling and daily streaks."""

import datetime

import pytest
from pydantic import ValidationError

from conftest import make_activity
from ecohero.error_utils import InvalidActivityError, OwnershipError
from ecohero.impact import (
    apply_activity,
    calculate_experience_points,
    level_progress_percentage,
    level_title,
    xp_required_for_next_level,
)
from ecohero.pydantic_models import ActivityCategory, EcoActivity, UserProfile

DAY = datetime.timedelta(days=1)


# =============================================================================
# TOTALS
# =============================================================================

def test_initial_profile_values(profile):
    assert profile.currentLevel == 1
    assert profile.experiencePoints == 0
    assert profile.streak == 0
    assert profile.longestStreak == 0
    assert profile.totalActivitiesLogged == 0
    assert profile.lastActivityDate is None
    assert profile.soundEnabled and profile.hapticsEnabled and profile.notificationsEnabled

def test_accumulates_all_four_metrics(profile, now):
    activity = make_activity(carbonSavedKg=2.5, waterSavedLiters=50, landSavedSqMeters=3.5, plasticSavedItems=5)
    updated = apply_activity(profile, activity, now)

    assert updated.totalCarbonSavedKg == pytest.approx(2.5)
    assert updated.totalWaterSavedLiters == pytest.approx(50)
    assert updated.totalLandSavedSqMeters == pytest.approx(3.5)
    assert updated.totalPlasticSavedItems == 5
    assert updated.totalActivitiesLogged == 1

def test_input_profile_is_not_modified(profile, now):
    apply_activity(profile, make_activity(carbonSavedKg=5), now)
    assert profile.totalCarbonSavedKg == 0
    assert profile.experiencePoints == 0
    assert profile.lastActivityDate is None

def test_multiple_activities_accumulate(profile, now):
    profile = apply_activity(profile, make_activity(carbonSavedKg=1.0), now)
    profile = apply_activity(profile, make_activity(carbonSavedKg=0.5), now)
    assert profile.totalCarbonSavedKg == pytest.approx(1.5)
    assert profile.totalActivitiesLogged == 2


# =============================================================================
# EXPERIENCE POINTS
# =============================================================================

def test_xp_formula():
    activity = make_activity(carbonSavedKg=2, waterSavedLiters=1000, landSavedSqMeters=40, plasticSavedItems=4,
                             category=ActivityCategory.TRANSPORT, distance=12, duration=30)
    # 2*10 + 1000*0.01 + 4*5; land, distance, duration and category score nothing
    assert calculate_experience_points(activity) == pytest.approx(50)

def test_xp_is_exact_sum_over_activities(profile, now):
    activities = [
        make_activity(carbonSavedKg=0.082, waterSavedLiters=3, plasticSavedItems=1),
        make_activity(waterSavedLiters=90),
        make_activity(carbonSavedKg=3.2, waterSavedLiters=4000, landSavedSqMeters=3.5),
        make_activity(),
    ]
    previous = 0
    for activity in activities:
        profile = apply_activity(profile, activity, now)
        assert profile.experiencePoints >= previous
        previous = profile.experiencePoints
    assert profile.experiencePoints == pytest.approx(sum(calculate_experience_points(a) for a in activities))


# =============================================================================
# LEVELING
# =============================================================================

def test_250_points_reaches_level_3(profile, now):
    updated = apply_activity(profile, make_activity(carbonSavedKg=25), now)
    assert updated.experiencePoints == pytest.approx(250)
    assert updated.currentLevel == 3

def test_exactly_100_points_levels_up(profile, now):
    assert apply_activity(profile, make_activity(carbonSavedKg=10), now).currentLevel == 2

def test_just_below_threshold_stays(profile, now):
    assert apply_activity(profile, make_activity(carbonSavedKg=9.9), now).currentLevel == 1

def test_level_thresholds_use_total_xp(profile, now):
    profile = apply_activity(profile, make_activity(carbonSavedKg=15), now)
    assert (profile.currentLevel, profile.experiencePoints) == (2, pytest.approx(150))
    profile = apply_activity(profile, make_activity(carbonSavedKg=5), now)
    assert profile.currentLevel == 3

def test_large_activity_gives_many_levels(profile, now):
    # 1000 XP clears thresholds 100..1000
    assert apply_activity(profile, make_activity(carbonSavedKg=100), now).currentLevel == 11

def test_level_helpers(profile):
    assert xp_required_for_next_level(1) == 100
    assert xp_required_for_next_level(4) == 400
    assert level_progress_percentage(profile.model_copy(update={"currentLevel": 2, "experiencePoints": 150})) == 50
    assert level_title(1) == "Eco Beginner"
    assert level_title(4) == "Green Starter"
    assert level_title(12) == "Eco Warrior"
    assert level_title(35) == "Eco Hero"
    assert level_title(75) == "Earth Guardian"


# =============================================================================
# STREAKS
# =============================================================================

def test_first_activity_starts_streak(profile, now):
    updated = apply_activity(profile, make_activity(), now)
    assert updated.streak == 1
    assert updated.longestStreak == 1
    assert updated.lastActivityDate == now

def test_streak_sequence(profile, now):
    streaks = []
    for when in (now, now + DAY, now + DAY + datetime.timedelta(hours=3), now + 3 * DAY):
        profile = apply_activity(profile, make_activity(), when)
        streaks.append(profile.streak)
    assert streaks == [1, 2, 2, 1]
    assert profile.longestStreak == 2

def test_same_day_keeps_last_activity_date(profile, now):
    profile = apply_activity(profile, make_activity(), now)
    later = now + datetime.timedelta(hours=5)
    updated = apply_activity(profile, make_activity(), later)
    assert updated.lastActivityDate == now

def test_consecutive_days_across_midnight(profile):
    late = datetime.datetime(2025, 11, 15, 23, 59, tzinfo=datetime.timezone.utc)
    early = datetime.datetime(2025, 11, 16, 0, 1, tzinfo=datetime.timezone.utc)
    profile = apply_activity(profile, make_activity(), late)
    assert apply_activity(profile, make_activity(), early).streak == 2

def test_clock_skew_resets_streak(profile, now):
    profile = apply_activity(profile, make_activity(), now)
    profile = apply_activity(profile, make_activity(), now + DAY)
    updated = apply_activity(profile, make_activity(), now - DAY)
    assert updated.streak == 1
    assert updated.longestStreak == 2
    assert updated.lastActivityDate == now - DAY

def test_streak_uses_profile_timezone():
    jakarta = UserProfile(userId="u1", email="u1@example.com", displayName="U1", timezone="Asia/Jakarta")
    # 20:00 UTC on the 15th is already the 16th in Jakarta (UTC+7)
    first = datetime.datetime(2025, 11, 15, 10, 0, tzinfo=datetime.timezone.utc)
    second = datetime.datetime(2025, 11, 15, 20, 0, tzinfo=datetime.timezone.utc)
    jakarta = apply_activity(jakarta, make_activity(user_id="u1"), first)
    assert apply_activity(jakarta, make_activity(user_id="u1"), second).streak == 2

def test_unknown_timezone_rejected_at_construction():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        UserProfile(userId="u1", email="u1@example.com", displayName="U1", timezone="Mars/Olympus")

def test_unset_timezone_uses_default(now):
    profile = UserProfile(userId="u1", email="u1@example.com", displayName="U1")
    profile = apply_activity(profile, make_activity(user_id="u1"), now)
    assert apply_activity(profile, make_activity(user_id="u1"), now + DAY).streak == 2

def test_longest_streak_never_decreases(profile, now):
    for day in range(4):
        profile = apply_activity(profile, make_activity(), now + day * DAY)
    assert profile.longestStreak == 4
    profile = apply_activity(profile, make_activity(), now + 10 * DAY)
    assert profile.streak == 1
    assert profile.longestStreak == 4


# =============================================================================
# PRECONDITIONS
# =============================================================================

def test_negative_metric_rejected_at_construction():
    with pytest.raises(ValidationError):
        EcoActivity(category=ActivityCategory.WATER, description="Leak", waterSavedLiters=-5)

def test_negative_metric_rejected_by_apply(profile, now):
    activity = EcoActivity.model_construct(category=ActivityCategory.OTHER, description="Bad", carbonSavedKg=-1.0)
    with pytest.raises(InvalidActivityError) as exc_info:
        apply_activity(profile, activity, now)
    assert exc_info.value.error_code == "INVALID_ACTIVITY"

def test_nan_metric_rejected_by_apply(profile, now):
    activity = EcoActivity.model_construct(category=ActivityCategory.OTHER, description="Bad",
                                           waterSavedLiters=float("nan"))
    with pytest.raises(InvalidActivityError):
        apply_activity(profile, activity, now)

def test_activity_of_another_user_rejected(profile, now):
    with pytest.raises(OwnershipError):
        apply_activity(profile, make_activity(user_id="someone-else", carbonSavedKg=1), now)

def test_activity_without_owner_is_accepted(profile, now):
    assert apply_activity(profile, make_activity(user_id=None, carbonSavedKg=1), now).totalCarbonSavedKg == 1

def test_activity_is_immutable():
    activity = make_activity(carbonSavedKg=1)
    with pytest.raises(ValidationError):
        activity.carbonSavedKg = 5
