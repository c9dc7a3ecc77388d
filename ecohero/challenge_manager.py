"""
Store-backed challenge management: expiration sweeps, joins, progress and
queries, with optional hooks into a notification service.
"""

import logging
import datetime
from collections import defaultdict
from contextlib import nullcontext
from typing import Dict, List, Optional

from dependencies import EXPIRING_SOON_HOURS
from timezone_utils import ensure_aware
from .challenges import (
    abandon_challenge,
    check_challenge_expiration,
    hours_until_deadline,
    join_challenge,
    record_challenge_progress,
    retry_challenge,
)
from .error_utils import LockNotAcquiredError
from .pydantic_models import Challenge, ChallengeStatus, DueBy
from .store import EntityStore

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)
_FAR_PAST = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _deadline_sort_key(challenge: Challenge, missing=_FAR_FUTURE):
    end = challenge.endDate
    return ensure_aware(end) if end else missing


class ChallengeManager:
    """
    Runs challenge lifecycle operations against an EntityStore.

    `notifier` is any object exposing `notify_challenge_expired`,
    `schedule_challenge_expiring` and `cancel_challenge_notifications`.
    """

    def __init__(self, store: EntityStore, notifier=None, user_lock=None):
        self.store = store
        self.notifier = notifier
        # Callable returning a context manager that serializes writes to one user's entities
        self.user_lock = user_lock or (lambda user_id: nullcontext())
        # Challenges expiring within the sweep window
        self.expiring_challenges: List[Challenge] = []
        # Recently failed challenges, kept until the user has seen them
        self.recently_failed_challenges: List[Challenge] = []

    # --- Expiration Management ---
    def check_all_expirations(self, now: datetime.datetime, within_hours: int = EXPIRING_SOON_HOURS) -> Dict:
        """
        Check every In Progress challenge for expiration and upcoming deadlines.

        Challenges are grouped by owner and re-read under that owner's lock
        before being checked, so progress saved after the listing is never
        overwritten. Owners whose lock is busy are skipped until the next sweep.
        """
        active = self.store.list_challenges(status=ChallengeStatus.IN_PROGRESS)
        by_user = defaultdict(list)
        for challenge in active:
            by_user[challenge.userId].append(challenge.id)

        expired, expiring_soon, skipped_users = [], [], []
        for user_id, challenge_ids in by_user.items():
            try:
                with self.user_lock(user_id):
                    for challenge_id in challenge_ids:
                        self._check_one(challenge_id, now, within_hours, expired, expiring_soon)
            except LockNotAcquiredError:
                logger.info(f"User {user_id} is busy, leaving their challenges for the next sweep")
                skipped_users.append(user_id)

        self.recently_failed_challenges = expired
        self.expiring_challenges = expiring_soon

        logger.info(f"Checked {len(active)} challenges, {len(expired)} expired, {len(expiring_soon)} expiring soon, "
                    f"{len(skipped_users)} user(s) skipped")
        return {
            "checked": len(active),
            "expired": [c.id for c in expired],
            "expiringSoon": [c.id for c in expiring_soon],
            "skippedUsers": skipped_users,
        }

    def _check_one(self, challenge_id, now, within_hours, expired, expiring_soon):
        challenge = self.store.get_challenge(challenge_id)
        if challenge is None:
            return
        updated = check_challenge_expiration(challenge, now)

        if updated.status == ChallengeStatus.FAILED and challenge.status != ChallengeStatus.FAILED:
            self.store.save_challenge(updated)
            expired.append(updated)
            if self.notifier:
                self.notifier.notify_challenge_expired(challenge_id=updated.id, title=updated.title)
            return

        hours_left = hours_until_deadline(updated, now)
        if updated.status == ChallengeStatus.IN_PROGRESS and hours_left is not None and 0 < hours_left <= within_hours:
            expiring_soon.append(updated)
            if self.notifier:
                self.notifier.schedule_challenge_expiring(
                    challenge_id=updated.id,
                    title=updated.title,
                    deadline=updated.endDate,
                    hours_before=max(1, int(hours_left)),
                )

    def get_expiring_challenges(self, within_hours: int, now: datetime.datetime) -> List[Challenge]:
        cutoff = ensure_aware(now) + datetime.timedelta(hours=within_hours)
        return [
            c for c in self.store.list_challenges(status=ChallengeStatus.IN_PROGRESS)
            if isinstance(c.deadline, DueBy) and ensure_aware(now) < ensure_aware(c.deadline.at) <= cutoff
        ]

    def clear_recently_failed(self):
        self.recently_failed_challenges = []

    # --- Challenge Actions ---
    def join(self, challenge: Challenge, user_id: str, now: datetime.datetime) -> Challenge:
        joined = join_challenge(challenge, user_id, now)
        if isinstance(joined.deadline, DueBy) and self.notifier:
            self.notifier.schedule_challenge_expiring(
                challenge_id=joined.id,
                title=joined.title,
                deadline=joined.deadline.at,
                hours_before=24,
            )
        self.store.save_challenge(joined)
        return joined

    def update_progress(self, challenge: Challenge, now: datetime.datetime, increment: int = 1) -> Challenge:
        """Count `increment` qualifying activities. In Progress challenges only."""
        if challenge.status != ChallengeStatus.IN_PROGRESS:
            logger.warning(f"Ignoring progress for challenge '{challenge.title}' with status '{challenge.status.value}'")
            return challenge

        updated = challenge
        for _ in range(increment):
            updated = record_challenge_progress(updated, now)

        if updated.status == ChallengeStatus.COMPLETED and self.notifier:
            self.notifier.cancel_challenge_notifications(challenge_id=updated.id)

        self.store.save_challenge(updated)
        return updated

    def abandon(self, challenge: Challenge) -> Challenge:
        abandoned = abandon_challenge(challenge)
        if self.notifier:
            self.notifier.cancel_challenge_notifications(challenge_id=abandoned.id)
        self.store.save_challenge(abandoned)
        return abandoned

    def retry(self, challenge: Challenge, user_id: str, now: datetime.datetime) -> Challenge:
        retried = retry_challenge(challenge, user_id, now)
        self.store.save_challenge(retried)
        return retried

    # --- Challenge Queries ---
    def get_active_challenges(self, user_id: str) -> List[Challenge]:
        challenges = self.store.list_challenges(user_id=user_id, status=ChallengeStatus.IN_PROGRESS)
        return sorted(challenges, key=_deadline_sort_key)

    def get_available_challenges(self, user_id: Optional[str] = None) -> List[Challenge]:
        return self.store.list_challenges(user_id=user_id, status=ChallengeStatus.NOT_STARTED)

    def get_completed_challenges(self, user_id: str) -> List[Challenge]:
        challenges = self.store.list_challenges(user_id=user_id, status=ChallengeStatus.COMPLETED)
        return sorted(challenges, key=lambda c: _deadline_sort_key(c, missing=_FAR_PAST), reverse=True)
