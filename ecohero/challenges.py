"""
Challenge lifecycle: Not Started -> In Progress -> Completed | Failed.
Completed and Failed are terminal. Expiration is pulled by a caller with an
explicit `now`; challenges never expire on their own.
"""

import logging
import datetime
from typing import Optional

from timezone_utils import ensure_aware
from .error_utils import ChallengeStateError
from .pydantic_models import (
    Challenge, ChallengeStatus, ChallengeType, DeadlineNotSet, DueBy, OpenEnded
)

CHALLENGE_DURATIONS = {
    ChallengeType.DAILY: datetime.timedelta(days=1),
    ChallengeType.WEEKLY: datetime.timedelta(days=7),
}


def _deadline_for(challenge_type: ChallengeType, now: datetime.datetime):
    if challenge_type == ChallengeType.MILESTONE:
        return OpenEnded()
    return DueBy(at=now + CHALLENGE_DURATIONS[challenge_type])

def join_challenge(challenge: Challenge, user_id: str, now: datetime.datetime) -> Challenge:
    """
    Start a challenge for a user.

    Only a Not Started challenge can be joined; use `retry_challenge` to start
    over after a failure.

    Raises:
        ChallengeStateError: when the challenge was already joined
    """
    if challenge.status != ChallengeStatus.NOT_STARTED:
        raise ChallengeStateError(
            f"Cannot join challenge '{challenge.title}' with status '{challenge.status.value}'",
            details={"challengeId": challenge.id, "status": challenge.status.value},
        )

    logging.info(f"User {user_id} joined challenge '{challenge.title}' ({challenge.type.value})")
    return challenge.model_copy(update={
        "userId": user_id,
        "joinedDate": now,
        "startDate": now,
        "isActive": True,
        "status": ChallengeStatus.IN_PROGRESS,
        "deadline": _deadline_for(challenge.type, now),
    })

def record_challenge_progress(challenge: Challenge, now: datetime.datetime) -> Challenge:
    """Count one qualifying activity. Ignored unless the challenge is In Progress."""
    if challenge.status != ChallengeStatus.IN_PROGRESS:
        return challenge

    progress = challenge.currentProgress + 1
    update = {"currentProgress": progress}
    if progress >= challenge.targetCount:
        update.update({"status": ChallengeStatus.COMPLETED, "isActive": False})
        logging.info(f"Challenge '{challenge.title}' completed by user {challenge.userId}")

    return challenge.model_copy(update=update)

def check_challenge_expiration(challenge: Challenge, now: datetime.datetime) -> Challenge:
    """Fail an In Progress challenge whose deadline passed before reaching its target."""
    if challenge.status != ChallengeStatus.IN_PROGRESS:
        return challenge

    deadline = challenge.deadline
    if isinstance(deadline, (DeadlineNotSet, OpenEnded)):
        return challenge
    if isinstance(deadline, DueBy):
        if ensure_aware(now) > ensure_aware(deadline.at) and challenge.currentProgress < challenge.targetCount:
            logging.info(f"Challenge '{challenge.title}' expired for user {challenge.userId} "
                         f"at {challenge.currentProgress}/{challenge.targetCount}")
            return challenge.model_copy(update={"status": ChallengeStatus.FAILED, "isActive": False})
        return challenge
    raise TypeError(f"Unknown deadline variant: {deadline!r}")

def abandon_challenge(challenge: Challenge) -> Challenge:
    if challenge.status != ChallengeStatus.IN_PROGRESS:
        raise ChallengeStateError(
            f"Cannot abandon challenge '{challenge.title}' with status '{challenge.status.value}'",
            details={"challengeId": challenge.id, "status": challenge.status.value},
        )
    logging.info(f"Challenge '{challenge.title}' abandoned by user {challenge.userId}")
    return challenge.model_copy(update={"status": ChallengeStatus.FAILED, "isActive": False})

def reset_challenge(challenge: Challenge) -> Challenge:
    return challenge.model_copy(update={
        "currentProgress": 0,
        "status": ChallengeStatus.NOT_STARTED,
        "isActive": False,
        "startDate": None,
        "deadline": DeadlineNotSet(),
        "joinedDate": None,
    })

def retry_challenge(challenge: Challenge, user_id: str, now: datetime.datetime) -> Challenge:
    """Reset a challenge and join it again."""
    return join_challenge(reset_challenge(challenge), user_id, now)

def hours_until_deadline(challenge: Challenge, now: datetime.datetime) -> Optional[float]:
    deadline = challenge.deadline
    if isinstance(deadline, DueBy):
        return (ensure_aware(deadline.at) - ensure_aware(now)).total_seconds() / 3600
    return None

def time_remaining(challenge: Challenge, now: datetime.datetime) -> Optional[str]:
    """Human-readable time left, or None when the challenge has no running deadline."""
    if challenge.status != ChallengeStatus.IN_PROGRESS or not isinstance(challenge.deadline, DueBy):
        return None

    remaining = (ensure_aware(challenge.deadline.at) - ensure_aware(now)).total_seconds()
    if remaining <= 0:
        return "Expired"

    hours = int(remaining / 3600)
    days = hours // 24
    if days > 0:
        return f"{days}d {hours % 24}h left"
    if hours > 0:
        minutes = int((remaining % 3600) / 60)
        return f"{hours}h {minutes}m left"
    return f"{int(remaining / 60)}m left"
