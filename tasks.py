# FILE: ecohero-progress/tasks.py

import logging
import uuid
from contextlib import contextmanager
from functools import partial
from pydantic import ValidationError

from celery_worker import celery_app
from dependencies import PROFILE_LOCK_SECONDS, get_redis_connection, release_lock
from timezone_utils import get_current_datetime
from ecohero.cache_utils import get_profile_lock_key
from ecohero.challenge_manager import ChallengeManager
from ecohero.error_utils import EcoHeroError, LockNotAcquiredError, StoreError
from ecohero.gamification import log_activity
from ecohero.pydantic_models import EcoActivity
from ecohero.store import RedisStore

EXPIRY_SWEEP_LOCK_KEY = "lock:challenge_expiry"

# --- LAZY INITIALIZED CLIENTS ---
_store = None
def get_store():
    global _store
    if _store is None:
        _store = RedisStore(get_redis_connection())
    return _store

# --- LOCKING ---
def acquire_profile_lock(redis_client, user_id):
    """Claim the profile for this worker. Returns the token needed to release it."""
    token = str(uuid.uuid4())
    # nx=True means set only if the key does not exist; ex lets a crashed worker's lock lapse.
    if not redis_client.set(get_profile_lock_key(user_id), token, ex=PROFILE_LOCK_SECONDS, nx=True):
        raise LockNotAcquiredError(f"Profile {user_id} is locked by another worker")
    return token

def release_profile_lock(redis_client, user_id, token):
    if not release_lock(redis_client, get_profile_lock_key(user_id), token):
        logging.warning(f"Profile lock for {user_id} expired before it was released")

@contextmanager
def profile_lock(redis_client, user_id):
    """Hold the per-profile lock for the duration of the block."""
    token = acquire_profile_lock(redis_client, user_id)
    try:
        yield token
    finally:
        release_profile_lock(redis_client, user_id, token)

# --- HELPER FUNCTIONS ---
def process_logged_activity(store, redis_client, user_id, activity_json, now):
    """Apply one logged activity for a user and persist every entity it changed."""
    try:
        activity = EcoActivity.model_validate_json(activity_json)
    except ValidationError as e:
        logging.error(f"Rejected malformed activity for user {user_id}: {e}")
        return {"status": "REJECTED", "error_code": "INVALID_ACTIVITY",
                "details": e.errors(include_url=False, include_context=False)}

    with profile_lock(redis_client, user_id):
        try:
            if store.get_activity(activity.id) is not None:
                logging.warning(f"Activity {activity.id} for user {user_id} was already applied. Skipping.")
                return {"status": "DUPLICATE", "activityId": activity.id}

            profile = store.require_profile(user_id)
            achievements = store.list_achievements(user_id)
            challenges = store.list_challenges(user_id=user_id)

            outcome = log_activity(profile, activity, achievements, challenges, now)

            # The stored activity marks the event as applied, so it goes in with the rest
            store.save_outcome(activity, outcome.profile, outcome.achievements, outcome.challenges)
        except EcoHeroError as e:
            if isinstance(e, StoreError):
                raise
            return {"status": "REJECTED", **e.to_dict()}

    logging.info(f"Applied activity {activity.id} for user {user_id}: +{outcome.pointsEarned:.2f} XP, "
                 f"level {outcome.profile.currentLevel}, streak {outcome.profile.streak}")
    return {
        "status": "APPLIED",
        "activityId": activity.id,
        "pointsEarned": outcome.pointsEarned,
        "currentLevel": outcome.profile.currentLevel,
        "levelsGained": outcome.levelsGained,
        "streak": outcome.profile.streak,
        "unlockedBadgeIds": outcome.unlockedBadgeIds,
        "completedChallengeIds": outcome.completedChallengeIds,
        "failedChallengeIds": outcome.failedChallengeIds,
        "rewardXPEarned": outcome.rewardXPEarned,
    }

def run_expiration_sweep(store, redis_client, now, notifier=None):
    """Expire overdue challenges. Only one sweep runs at a time, and each user is swept under their profile lock."""
    token = str(uuid.uuid4())
    if not redis_client.set(EXPIRY_SWEEP_LOCK_KEY, token, ex=60, nx=True):
        logging.warning("Challenge expiration sweep is already in progress. Skipping.")
        return {"status": "SKIPPED"}
    try:
        manager = ChallengeManager(store, notifier, user_lock=partial(profile_lock, redis_client))
        summary = manager.check_all_expirations(now)
    finally:
        # Always release the lock when done
        release_lock(redis_client, EXPIRY_SWEEP_LOCK_KEY, token)
    return {"status": "OK", **summary}

# --- TASKS ---
@celery_app.task(bind=True, name="apply_logged_activity_task", max_retries=5, default_retry_delay=2, acks_late=True,
                 autoretry_for=(StoreError,), retry_backoff=True)
def apply_logged_activity_task(self, user_id, activity_json):
    try:
        return process_logged_activity(get_store(), get_redis_connection(), user_id, activity_json, get_current_datetime())
    except LockNotAcquiredError as e:
        logging.info(f"Profile {user_id} busy, retrying activity later.")
        raise self.retry(exc=e)

@celery_app.task(name="check_challenge_expirations_task")
def check_challenge_expirations_task():
    try:
        return run_expiration_sweep(get_store(), get_redis_connection(), get_current_datetime())
    except Exception as e:
        logging.error(f"An error occurred during the challenge expiration sweep: {e}", exc_info=True)
        raise
