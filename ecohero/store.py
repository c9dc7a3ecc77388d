"""
Entity stores for the progress engine.

The engine itself never touches storage; the worker loads entities through an
EntityStore, runs the engine, and saves the returned values. Entities are kept
as pydantic JSON so every optional field and enum value survives a round trip.
"""

import logging
from typing import Dict, List, Optional

import redis

from .cache_utils import (
    ACTIVE_CHALLENGES_KEY,
    ALL_CHALLENGES_KEY,
    get_achievement_key,
    get_activity_key,
    get_challenge_key,
    get_profile_key,
    get_user_achievements_key,
    get_user_activities_key,
    get_user_challenges_key,
)
from .error_utils import NotFoundError, StoreError
from .pydantic_models import Achievement, Challenge, ChallengeStatus, EcoActivity, UserProfile


class EntityStore:
    """Loads and saves the four entity types by identifier."""

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def save_profile(self, profile: UserProfile):
        raise NotImplementedError

    def get_activity(self, activity_id: str) -> Optional[EcoActivity]:
        raise NotImplementedError

    def save_activity(self, activity: EcoActivity):
        raise NotImplementedError

    def list_activities(self, user_id: str) -> List[EcoActivity]:
        raise NotImplementedError

    def get_achievement(self, achievement_id: str) -> Optional[Achievement]:
        raise NotImplementedError

    def save_achievement(self, achievement: Achievement):
        raise NotImplementedError

    def list_achievements(self, user_id: str) -> List[Achievement]:
        raise NotImplementedError

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        raise NotImplementedError

    def save_challenge(self, challenge: Challenge):
        raise NotImplementedError

    def list_challenges(self, user_id: Optional[str] = None,
                        status: Optional[ChallengeStatus] = None) -> List[Challenge]:
        raise NotImplementedError

    # --- Shared helpers ---
    def require_profile(self, user_id: str) -> UserProfile:
        profile = self.get_profile(user_id)
        if profile is None:
            raise NotFoundError(f"Profile for user {user_id} not found")
        return profile

    def require_challenge(self, challenge_id: str) -> Challenge:
        challenge = self.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        return challenge

    def save_all(self, profile: Optional[UserProfile] = None, achievements=(), challenges=()):
        if profile is not None:
            self.save_profile(profile)
        for achievement in achievements:
            self.save_achievement(achievement)
        for challenge in challenges:
            self.save_challenge(challenge)

    def save_outcome(self, activity: EcoActivity, profile: UserProfile, achievements=(), challenges=()):
        """
        Persist everything one applied activity changed.
        The activity is the duplicate marker, so it is written last: a failed
        write leaves the event unapplied and a retry applies it again.
        """
        self.save_all(profile, achievements, challenges)
        self.save_activity(activity)


def _filter_challenges(challenges, user_id, status):
    return [
        c for c in challenges
        if (user_id is None or c.userId == user_id) and (status is None or c.status == status)
    ]


class InMemoryStore(EntityStore):
    """Process-local store. Values are serialized, so callers never share instances with it."""

    def __init__(self):
        self._profiles: Dict[str, str] = {}
        self._activities: Dict[str, str] = {}
        self._achievements: Dict[str, str] = {}
        self._challenges: Dict[str, str] = {}

    def get_profile(self, user_id):
        raw = self._profiles.get(user_id)
        return UserProfile.model_validate_json(raw) if raw else None

    def save_profile(self, profile):
        self._profiles[profile.userId] = profile.model_dump_json()

    def get_activity(self, activity_id):
        raw = self._activities.get(activity_id)
        return EcoActivity.model_validate_json(raw) if raw else None

    def save_activity(self, activity):
        self._activities[activity.id] = activity.model_dump_json()

    def list_activities(self, user_id):
        activities = [EcoActivity.model_validate_json(raw) for raw in self._activities.values()]
        return sorted((a for a in activities if a.userId == user_id), key=lambda a: a.timestamp)

    def get_achievement(self, achievement_id):
        raw = self._achievements.get(achievement_id)
        return Achievement.model_validate_json(raw) if raw else None

    def save_achievement(self, achievement):
        self._achievements[achievement.id] = achievement.model_dump_json()

    def list_achievements(self, user_id):
        achievements = [Achievement.model_validate_json(raw) for raw in self._achievements.values()]
        return [a for a in achievements if a.userId == user_id]

    def get_challenge(self, challenge_id):
        raw = self._challenges.get(challenge_id)
        return Challenge.model_validate_json(raw) if raw else None

    def save_challenge(self, challenge):
        self._challenges[challenge.id] = challenge.model_dump_json()

    def list_challenges(self, user_id=None, status=None):
        challenges = [Challenge.model_validate_json(raw) for raw in self._challenges.values()]
        return _filter_challenges(challenges, user_id, status)


class RedisStore(EntityStore):
    """Redis-backed store: one JSON string per entity plus per-user index sets."""

    def __init__(self, redis_client):
        if redis_client is None:
            raise StoreError("Redis client is not configured.")
        self.redis = redis_client

    def _get(self, key, model):
        try:
            raw = self.redis.get(key)
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Failed to read {key}: {e}") from e
        return model.model_validate_json(raw) if raw else None

    def _get_many(self, ids, key_func, model):
        if not ids:
            return []
        try:
            cached_results = self.redis.mget([key_func(entity_id) for entity_id in ids])
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Failed to read {len(ids)} entities: {e}") from e
        return [model.model_validate_json(raw) for raw in cached_results if raw]

    def _members(self, key):
        try:
            return sorted(self.redis.smembers(key))
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Failed to read index {key}: {e}") from e

    def _execute(self, pipe, description):
        try:
            pipe.execute()
        except redis.exceptions.RedisError as e:
            raise StoreError(f"Failed to write {description}: {e}") from e

    @staticmethod
    def _queue(pipe, key, entity, index_keys=(), removed_from=()):
        pipe.set(key, entity.model_dump_json())
        for index_key in index_keys:
            pipe.sadd(index_key, entity.id)
        for index_key in removed_from:
            pipe.srem(index_key, entity.id)

    # --- Queued writes, shared by single saves and save_outcome ---
    def _queue_profile(self, pipe, profile):
        self._queue(pipe, get_profile_key(profile.userId), profile)

    def _queue_activity(self, pipe, activity):
        index_keys = [get_user_activities_key(activity.userId)] if activity.userId else []
        self._queue(pipe, get_activity_key(activity.id), activity, index_keys)

    def _queue_achievement(self, pipe, achievement):
        index_keys = [get_user_achievements_key(achievement.userId)] if achievement.userId else []
        self._queue(pipe, get_achievement_key(achievement.id), achievement, index_keys)

    def _queue_challenge(self, pipe, challenge):
        index_keys = [ALL_CHALLENGES_KEY]
        if challenge.userId:
            index_keys.append(get_user_challenges_key(challenge.userId))
        removed_from = []
        if challenge.status == ChallengeStatus.IN_PROGRESS:
            index_keys.append(ACTIVE_CHALLENGES_KEY)
        else:
            removed_from.append(ACTIVE_CHALLENGES_KEY)
        self._queue(pipe, get_challenge_key(challenge.id), challenge, index_keys, removed_from)

    def _save_one(self, queue_func, entity, description):
        pipe = self.redis.pipeline()
        queue_func(pipe, entity)
        self._execute(pipe, description)

    def save_outcome(self, activity, profile, achievements=(), challenges=()):
        """All writes for one activity in a single MULTI/EXEC, duplicate marker last."""
        pipe = self.redis.pipeline(transaction=True)
        self._queue_profile(pipe, profile)
        for achievement in achievements:
            self._queue_achievement(pipe, achievement)
        for challenge in challenges:
            self._queue_challenge(pipe, challenge)
        self._queue_activity(pipe, activity)
        self._execute(pipe, f"outcome of activity {activity.id}")

    def get_profile(self, user_id):
        return self._get(get_profile_key(user_id), UserProfile)

    def save_profile(self, profile):
        self._save_one(self._queue_profile, profile, get_profile_key(profile.userId))

    def get_activity(self, activity_id):
        return self._get(get_activity_key(activity_id), EcoActivity)

    def save_activity(self, activity):
        self._save_one(self._queue_activity, activity, get_activity_key(activity.id))

    def list_activities(self, user_id):
        ids = self._members(get_user_activities_key(user_id))
        activities = self._get_many(ids, get_activity_key, EcoActivity)
        return sorted(activities, key=lambda a: a.timestamp)

    def get_achievement(self, achievement_id):
        return self._get(get_achievement_key(achievement_id), Achievement)

    def save_achievement(self, achievement):
        self._save_one(self._queue_achievement, achievement, get_achievement_key(achievement.id))

    def list_achievements(self, user_id):
        ids = self._members(get_user_achievements_key(user_id))
        return [a for a in self._get_many(ids, get_achievement_key, Achievement) if a.userId == user_id]

    def get_challenge(self, challenge_id):
        return self._get(get_challenge_key(challenge_id), Challenge)

    def save_challenge(self, challenge):
        self._save_one(self._queue_challenge, challenge, get_challenge_key(challenge.id))

    def list_challenges(self, user_id=None, status=None):
        if user_id:
            index_key = get_user_challenges_key(user_id)
        elif status == ChallengeStatus.IN_PROGRESS:
            index_key = ACTIVE_CHALLENGES_KEY
        else:
            index_key = ALL_CHALLENGES_KEY
        ids = self._members(index_key)
        challenges = self._get_many(ids, get_challenge_key, Challenge)
        logging.debug(f"Loaded {len(challenges)} challenge(s) from {index_key}")
        return _filter_challenges(challenges, user_id, status)
