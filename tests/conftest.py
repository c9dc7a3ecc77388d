import datetime

import pytest

from ecohero.pydantic_models import ActivityCategory, EcoActivity, UserProfile
from ecohero.store import InMemoryStore

UTC = datetime.timezone.utc


@pytest.fixture
def now():
    return datetime.datetime(2025, 11, 15, 10, 0, tzinfo=UTC)

@pytest.fixture
def profile():
    return UserProfile(userId="test-user-123", email="test@example.com",
                       displayName="Test User", timezone="UTC")

@pytest.fixture
def store():
    return InMemoryStore()


def make_activity(category=ActivityCategory.OTHER, user_id="test-user-123", **metrics):
    return EcoActivity(category=category, description="Test activity", userId=user_id, **metrics)


class FakeLockRedis:
    """Just enough of redis for SET NX / GET / DELETE locking and the compare-and-delete script."""

    def __init__(self):
        self.values = {}
        self.scripts = []

    def register_script(self, script):
        self.scripts.append(script)

        def compare_and_delete(keys, args):
            if self.values.get(keys[0]) == args[0]:
                del self.values[keys[0]]
                return 1
            return 0
        return compare_and_delete

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    def get(self, key):
        return self.values.get(key)

    def delete(self, key):
        self.values.pop(key, None)
