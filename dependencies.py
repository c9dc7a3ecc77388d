"""
Shared configuration and resources for the EcoHero progress worker.
Centralizes environment settings and the Redis connection so tasks and
scripts import them from one place.
"""

import logging
import os
import threading
import redis
from redis.retry import Retry
from redis.backoff import ExponentialBackoff
from dotenv import load_dotenv

load_dotenv()

# --- Environment variables ---
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', REDIS_URL)
ECOHERO_TIMEZONE = os.environ.get('ECOHERO_TIMEZONE', 'UTC')
CHALLENGE_EXPIRY_SWEEP_SECONDS = int(os.environ.get('CHALLENGE_EXPIRY_SWEEP_SECONDS', 900))
EXPIRING_SOON_HOURS = int(os.environ.get('EXPIRING_SOON_HOURS', 24))
PROFILE_LOCK_SECONDS = int(os.environ.get('PROFILE_LOCK_SECONDS', 30))

# Thread-local storage for Redis connections
_redis_local = threading.local()

def get_redis_connection():
    """
    Get a thread-safe Redis connection from the pool with retry logic.
    Returns None when Redis is unreachable so callers can fail fast.
    """
    if getattr(_redis_local, 'connection', None) is None:
        try:
            retry = Retry(ExponentialBackoff(), retries=3)
            connection_pool = redis.ConnectionPool.from_url(
                REDIS_URL,
                decode_responses=True,
                retry=retry,
                max_connections=20,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=10
            )
            connection = redis.Redis(connection_pool=connection_pool)
            connection.ping()
            _redis_local.connection = connection
            logging.info("Redis connection pool initialized successfully")
        except redis.exceptions.ConnectionError as e:
            logging.error(f"Failed to connect to Redis: {e}")
            _redis_local.connection = None

    return _redis_local.connection

# Compare-and-delete in one round trip, so an expired lock that another worker
# has since claimed is never released by the previous holder.
RELEASE_LOCK_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

def release_lock(redis_client, key, token):
    """Delete `key` only if it still holds `token`. Returns True when released."""
    release = redis_client.register_script(RELEASE_LOCK_SCRIPT)
    return bool(release(keys=[key], args=[token]))
