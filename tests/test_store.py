import datetime
from unittest.mock import MagicMock

import pytest
import redis

from conftest import make_activity
from ecohero.cache_utils import (
    ACTIVE_CHALLENGES_KEY, ALL_CHALLENGES_KEY, get_activity_key, get_challenge_key, get_profile_key,
    get_user_challenges_key,
)
from ecohero.challenges import join_challenge
from ecohero.error_utils import NotFoundError, StoreError
from ecohero.pydantic_models import (
    Achievement, AchievementTier, Challenge, ChallengeStatus, ChallengeType, DueBy, OpenEnded
)
from ecohero.store import RedisStore

USER_ID = "test-user-123"


def make_challenge(title="Weekly", challenge_type=ChallengeType.WEEKLY):
    return Challenge(title=title, description=title, type=challenge_type, targetCount=3, userId=USER_ID)


class TestInMemoryStore:

    def test_profile_round_trip(self, store, profile):
        store.save_profile(profile)
        assert store.get_profile(USER_ID) == profile

    def test_missing_entities(self, store):
        assert store.get_profile("nobody") is None
        assert store.get_challenge("nothing") is None
        with pytest.raises(NotFoundError):
            store.require_profile("nobody")
        with pytest.raises(NotFoundError):
            store.require_challenge("nothing")

    def test_deadline_variant_survives(self, store, now):
        weekly = join_challenge(make_challenge(), USER_ID, now)
        milestone = join_challenge(make_challenge("Milestone", ChallengeType.MILESTONE), USER_ID, now)
        store.save_all(challenges=[weekly, milestone])

        loaded = store.get_challenge(weekly.id)
        assert isinstance(loaded.deadline, DueBy)
        assert loaded.endDate == now + datetime.timedelta(days=7)
        assert isinstance(store.get_challenge(milestone.id).deadline, OpenEnded)

    def test_returned_values_are_copies(self, store, profile):
        store.save_profile(profile)
        loaded = store.get_profile(USER_ID)
        loaded.streak = 5
        loaded.longestStreak = 5
        assert store.get_profile(USER_ID).streak == 0

    def test_activities_sorted_by_timestamp(self, store, now):
        later = make_activity().model_copy(update={"timestamp": now + datetime.timedelta(hours=2)})
        earlier = make_activity().model_copy(update={"timestamp": now})
        other = make_activity(user_id="someone")
        for activity in (later, earlier, other):
            store.save_activity(activity)
        assert [a.id for a in store.list_activities(USER_ID)] == [earlier.id, later.id]

    def test_list_challenges_filters(self, store, now):
        joined = join_challenge(make_challenge("Joined"), USER_ID, now)
        idle = make_challenge("Idle")
        store.save_all(challenges=[joined, idle])

        assert len(store.list_challenges()) == 2
        assert [c.title for c in store.list_challenges(status=ChallengeStatus.IN_PROGRESS)] == ["Joined"]
        assert store.list_challenges(user_id="someone") == []

    def test_list_achievements_by_user(self, store):
        mine = Achievement(badgeId="a", title="A", description="A", tier=AchievementTier.BRONZE,
                           progressRequired=1, userId=USER_ID)
        theirs = mine.model_copy(update={"id": "other", "userId": "someone"})
        store.save_all(achievements=[mine, theirs])
        assert store.list_achievements(USER_ID) == [mine]


class TestRedisStore:

    def test_requires_client(self):
        with pytest.raises(StoreError):
            RedisStore(None)

    def test_get_profile(self, profile):
        client = MagicMock()
        client.get.return_value = profile.model_dump_json()

        assert RedisStore(client).get_profile(USER_ID) == profile
        client.get.assert_called_once_with(get_profile_key(USER_ID))

    def test_get_missing_returns_none(self):
        client = MagicMock()
        client.get.return_value = None
        assert RedisStore(client).get_challenge("missing") is None

    def test_save_challenge_updates_indexes(self, now):
        client = MagicMock()
        pipe = client.pipeline.return_value
        challenge = join_challenge(make_challenge(), USER_ID, now)

        RedisStore(client).save_challenge(challenge)

        pipe.set.assert_called_once_with(get_challenge_key(challenge.id), challenge.model_dump_json())
        pipe.sadd.assert_any_call(ALL_CHALLENGES_KEY, challenge.id)
        pipe.sadd.assert_any_call(get_user_challenges_key(USER_ID), challenge.id)
        pipe.sadd.assert_any_call(ACTIVE_CHALLENGES_KEY, challenge.id)
        pipe.srem.assert_not_called()
        pipe.execute.assert_called_once()

    def test_list_challenges_uses_user_index(self, now):
        challenge = join_challenge(make_challenge(), USER_ID, now)
        client = MagicMock()
        client.smembers.return_value = {challenge.id}
        client.mget.return_value = [challenge.model_dump_json()]

        result = RedisStore(client).list_challenges(user_id=USER_ID, status=ChallengeStatus.IN_PROGRESS)

        assert result == [challenge]
        client.smembers.assert_called_once_with(get_user_challenges_key(USER_ID))
        client.mget.assert_called_once_with([get_challenge_key(challenge.id)])

    def test_empty_index_skips_mget(self):
        client = MagicMock()
        client.smembers.return_value = set()
        assert RedisStore(client).list_challenges() == []
        client.mget.assert_not_called()

    def test_redis_errors_become_store_errors(self):
        client = MagicMock()
        client.get.side_effect = redis.exceptions.ConnectionError("down")
        with pytest.raises(StoreError) as exc_info:
            RedisStore(client).get_profile(USER_ID)
        assert exc_info.value.error_code == "STORE_ERROR"

    def test_failed_write_becomes_store_error(self, profile):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = redis.exceptions.TimeoutError("slow")
        with pytest.raises(StoreError):
            RedisStore(client).save_profile(profile)

    def test_terminal_challenge_leaves_active_index(self, now):
        client = MagicMock()
        pipe = client.pipeline.return_value
        challenge = join_challenge(make_challenge(), USER_ID, now).model_copy(
            update={"status": ChallengeStatus.FAILED, "isActive": False})

        RedisStore(client).save_challenge(challenge)

        pipe.srem.assert_called_once_with(ACTIVE_CHALLENGES_KEY, challenge.id)
        assert (ACTIVE_CHALLENGES_KEY, challenge.id) not in [c.args for c in pipe.sadd.call_args_list]

    def test_sweep_listing_reads_active_index_only(self):
        client = MagicMock()
        client.smembers.return_value = set()

        RedisStore(client).list_challenges(status=ChallengeStatus.IN_PROGRESS)

        client.smembers.assert_called_once_with(ACTIVE_CHALLENGES_KEY)

    def test_save_outcome_is_one_transaction_with_activity_last(self, profile, now):
        client = MagicMock()
        pipe = client.pipeline.return_value
        activity = make_activity(carbonSavedKg=1)
        challenge = join_challenge(make_challenge(), USER_ID, now)

        RedisStore(client).save_outcome(activity, profile, [], [challenge])

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.execute.assert_called_once()
        written = [c.args[0] for c in pipe.set.call_args_list]
        assert written == [get_profile_key(USER_ID), get_challenge_key(challenge.id), get_activity_key(activity.id)]

    def test_failed_outcome_write_becomes_store_error(self, profile):
        client = MagicMock()
        client.pipeline.return_value.execute.side_effect = redis.exceptions.ConnectionError("down")
        with pytest.raises(StoreError):
            RedisStore(client).save_outcome(make_activity(), profile)


def test_in_memory_outcome_writes_activity_last(store, profile):
    class FailingChallengeStore(type(store)):
        def save_challenge(self, challenge):
            raise StoreError("write failed")

    failing = FailingChallengeStore()
    activity = make_activity()
    with pytest.raises(StoreError):
        failing.save_outcome(activity, profile, [], [make_challenge()])
    assert failing.get_activity(activity.id) is None
