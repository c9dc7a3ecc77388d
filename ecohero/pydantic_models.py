import datetime
import uuid
import pytz
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _new_id() -> str:
    return str(uuid.uuid4())

def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# --- ENUMERATIONS ---
class ActivityCategory(str, Enum):
    MEALS = "Meals"
    TRANSPORT = "Transport"
    PLASTIC = "Plastic"
    ENERGY = "Energy"
    WATER = "Water"
    LIFESTYLE = "Lifestyle"
    OTHER = "Other"

class AchievementTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"

class AchievementMetric(str, Enum):
    ACTIVITIES = "activities"
    CARBON = "carbon"
    WATER = "water"
    LAND = "land"
    PLASTIC = "plastic"
    CHALLENGE = "challenge"  # Unlocked only by completing a linked challenge

class ChallengeType(str, Enum):
    WEEKLY = "Weekly"
    DAILY = "Daily"
    MILESTONE = "Milestone"

class ChallengeStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"

TERMINAL_STATUSES = (ChallengeStatus.COMPLETED, ChallengeStatus.FAILED)


# --- ACTIVITY ---
class EcoActivity(BaseModel):
    """One logged eco action. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    timestamp: datetime.datetime = Field(default_factory=_utcnow)
    category: ActivityCategory
    description: str
    notes: Optional[str] = None

    # Impact metrics
    carbonSavedKg: float = Field(default=0, ge=0)
    waterSavedLiters: float = Field(default=0, ge=0)
    landSavedSqMeters: float = Field(default=0, ge=0)
    plasticSavedItems: int = Field(default=0, ge=0)

    # Optional data
    distance: Optional[float] = Field(default=None, ge=0)  # km, transport only
    duration: Optional[int] = Field(default=None, ge=0)  # minutes
    photoPath: Optional[str] = None

    userId: Optional[str] = None

    # Sync status
    isSynced: bool = False
    remoteId: Optional[str] = None

class ActivityImpact(BaseModel):
    carbonSavedKg: float = Field(default=0, ge=0)
    waterSavedLiters: float = Field(default=0, ge=0)
    landSavedSqMeters: float = Field(default=0, ge=0)
    plasticSavedItems: int = Field(default=0, ge=0)

class ImpactEquivalents(BaseModel):
    treesPlanted: float
    bottlesOfWater: float  # 500ml bottles
    plasticBags: float
    carMilesSaved: float


# --- USER PROFILE ---
class UserProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    userId: str
    email: str
    displayName: str
    joinDate: datetime.datetime = Field(default_factory=_utcnow)
    avatarPath: Optional[str] = None
    timezone: Optional[str] = None  # IANA name used for streak days

    # Cumulative impact metrics
    totalCarbonSavedKg: float = Field(default=0, ge=0)
    totalWaterSavedLiters: float = Field(default=0, ge=0)
    totalLandSavedSqMeters: float = Field(default=0, ge=0)
    totalPlasticSavedItems: int = Field(default=0, ge=0)
    totalActivitiesLogged: int = Field(default=0, ge=0)

    # Gamification
    currentLevel: int = Field(default=1, ge=1)
    experiencePoints: float = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    longestStreak: int = Field(default=0, ge=0)

    # Settings
    soundEnabled: bool = True
    hapticsEnabled: bool = True
    notificationsEnabled: bool = True

    lastActivityDate: Optional[datetime.datetime] = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value):
        if value:
            try:
                pytz.timezone(value)
            except pytz.exceptions.UnknownTimeZoneError:
                raise ValueError(f"Unknown timezone: {value}") from None
        return value

    @model_validator(mode="after")
    def _longest_streak_covers_current(self):
        if self.longestStreak < self.streak:
            raise ValueError("longestStreak must be greater than or equal to streak")
        return self


# --- ACHIEVEMENTS ---
class Achievement(BaseModel):
    id: str = Field(default_factory=_new_id)
    badgeId: str  # Unique identifier for the badge type
    title: str
    description: str
    tier: AchievementTier
    iconName: Optional[str] = None
    category: Optional[ActivityCategory] = None  # None means cross-category
    metric: AchievementMetric = AchievementMetric.ACTIVITIES

    # Unlock criteria
    isUnlocked: bool = False
    unlockedDate: Optional[datetime.datetime] = None
    progressCurrent: float = Field(default=0, ge=0)
    progressRequired: float = Field(gt=0)

    userId: Optional[str] = None

    @property
    def progressPercentage(self) -> float:
        return min((self.progressCurrent / self.progressRequired) * 100, 100)


# --- CHALLENGES ---
# A challenge deadline is one of three explicit variants instead of a nullable date.
class DeadlineNotSet(BaseModel):
    kind: Literal["not_set"] = "not_set"

class OpenEnded(BaseModel):
    kind: Literal["open_ended"] = "open_ended"

class DueBy(BaseModel):
    kind: Literal["due_by"] = "due_by"
    at: datetime.datetime

Deadline = Annotated[Union[DeadlineNotSet, OpenEnded, DueBy], Field(discriminator="kind")]

class Challenge(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str
    type: ChallengeType
    category: Optional[ActivityCategory] = None
    iconName: Optional[str] = None

    # Challenge criteria
    targetCount: int = Field(gt=0)  # Number of activities or days
    currentProgress: int = Field(default=0, ge=0)

    # Timing
    startDate: Optional[datetime.datetime] = None
    deadline: Deadline = Field(default_factory=DeadlineNotSet)
    isActive: bool = False
    status: ChallengeStatus = ChallengeStatus.NOT_STARTED

    # Rewards
    rewardXP: float = Field(default=0, ge=0)
    badgeId: Optional[str] = None

    # User participation
    userId: Optional[str] = None
    joinedDate: Optional[datetime.datetime] = None

    @property
    def endDate(self) -> Optional[datetime.datetime]:
        if isinstance(self.deadline, DueBy):
            return self.deadline.at
        return None

    @property
    def isTerminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# --- ENGINE RESULTS ---
class ActivityOutcome(BaseModel):
    """Everything one logged activity changed."""
    profile: UserProfile
    achievements: List[Achievement] = []
    challenges: List[Challenge] = []
    pointsEarned: float = 0
    levelsGained: int = 0
    unlockedBadgeIds: List[str] = []
    completedChallengeIds: List[str] = []
    failedChallengeIds: List[str] = []
    rewardXPEarned: float = 0

class ImpactStats(BaseModel):
    carbonSavedKg: float = 0
    waterSavedLiters: float = 0
    landSavedSqMeters: float = 0
    plasticSavedItems: int = 0
    activitiesLogged: int = 0
    currentStreak: int = 0
    currentLevel: int = 1
    achievementsUnlocked: int = 0
    period: str
