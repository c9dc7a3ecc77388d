import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple

from timezone_utils import ensure_aware
from .pydantic_models import Achievement, EcoActivity, ImpactStats, UserProfile


class ReportPeriod(str, Enum):
    WEEK = "This Week"
    MONTH = "This Month"
    YEAR = "This Year"
    ALL_TIME = "All Time"


def _shift_months(dt: datetime.datetime, months: int) -> datetime.datetime:
    month_index = dt.month - 1 + months
    year, month = dt.year + month_index // 12, month_index % 12 + 1
    # Clamp to the last valid day, e.g. Mar 31 -> Feb 28
    next_month = datetime.date(year + month // 12, month % 12 + 1, 1)
    last_day = (next_month - datetime.timedelta(days=1)).day
    return dt.replace(year=year, month=month, day=min(dt.day, last_day))

def period_range(period: ReportPeriod, now: datetime.datetime) -> Tuple[Optional[datetime.datetime], datetime.datetime]:
    """(start, end) of a report period ending at `now`; start is None for all time."""
    if period == ReportPeriod.WEEK:
        return now - datetime.timedelta(days=7), now
    if period == ReportPeriod.MONTH:
        return _shift_months(now, -1), now
    if period == ReportPeriod.YEAR:
        return _shift_months(now, -12), now
    return None, now

def summarize_activities(
    profile: UserProfile,
    activities: Iterable[EcoActivity],
    period: ReportPeriod,
    now: datetime.datetime,
    achievements: Iterable[Achievement] = (),
) -> ImpactStats:
    start, end = period_range(period, ensure_aware(now))
    in_period = [
        a for a in activities
        if (start is None or ensure_aware(a.timestamp) >= start) and ensure_aware(a.timestamp) <= end
    ]
    return ImpactStats(
        carbonSavedKg=sum(a.carbonSavedKg for a in in_period),
        waterSavedLiters=sum(a.waterSavedLiters for a in in_period),
        landSavedSqMeters=sum(a.landSavedSqMeters for a in in_period),
        plasticSavedItems=sum(a.plasticSavedItems for a in in_period),
        activitiesLogged=len(in_period),
        currentStreak=profile.streak,
        currentLevel=profile.currentLevel,
        achievementsUnlocked=sum(1 for a in achievements if a.isUnlocked),
        period=period.value,
    )

def generate_share_text(profile: UserProfile) -> str:
    """Share text for social media."""
    return (
        "🌍 My Eco Hero Impact 🌱\n"
        "\n"
        f"🌿 {profile.totalCarbonSavedKg:.1f} kg CO₂ saved\n"
        f"💧 {profile.totalWaterSavedLiters:.0f} L water conserved\n"
        f"♻️ {profile.totalPlasticSavedItems} plastic items avoided\n"
        f"🔥 {profile.streak} day streak\n"
        f"⭐️ Level {profile.currentLevel}\n"
        "\n"
        "Join me in making a difference! #EcoHero #Sustainability"
    )
