from celery import Celery
from dotenv import load_dotenv

# --- CELERY WORKER INITIALIZATION ---

# 1. Load environment variables. This MUST happen before anything else.
load_dotenv()

from dependencies import CELERY_BROKER_URL, CHALLENGE_EXPIRY_SWEEP_SECONDS
from logging_config import setup_logging

setup_logging()

# 2. Create the Celery app instance.
celery_app = Celery('tasks',
                    broker=CELERY_BROKER_URL,
                    include=['tasks']) # This tells Celery to look for tasks in tasks.py

celery_app.conf.update(
    task_track_started=True,
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
)

# 3. Challenges have no timer of their own; beat polls them for expiration.
celery_app.conf.beat_schedule = {
    'check-challenge-expirations': {
        'task': 'check_challenge_expirations_task',
        'schedule': CHALLENGE_EXPIRY_SWEEP_SECONDS,
    },
}
