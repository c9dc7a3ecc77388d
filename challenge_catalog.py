import logging
import argparse
import datetime
import uuid

from ecohero.pydantic_models import (
    Achievement, AchievementMetric, AchievementTier, ActivityCategory, Challenge, ChallengeType
)

# --- CATALOG ---
# Templates are plain dicts; every user gets fresh entities built from them.
CHALLENGE_TEMPLATES = [
    {
        "title": "Meatless Week",
        "description": "Go vegetarian or vegan for 7 consecutive days",
        "type": ChallengeType.WEEKLY,
        "category": ActivityCategory.MEALS,
        "iconName": "leaf.fill",
        "targetCount": 7,
        "rewardXP": 500,
        "badgeId": "meatless_week",
    },
    {
        "title": "Car-Free Week",
        "description": "Avoid using a car for 7 days",
        "type": ChallengeType.WEEKLY,
        "category": ActivityCategory.TRANSPORT,
        "iconName": "bicycle",
        "targetCount": 7,
        "rewardXP": 600,
        "badgeId": "car_free_week",
    },
    {
        "title": "Plastic-Free Challenge",
        "description": "Avoid single-use plastics for 7 days",
        "type": ChallengeType.WEEKLY,
        "category": ActivityCategory.PLASTIC,
        "iconName": "bag.fill",
        "targetCount": 7,
        "rewardXP": 450,
        "badgeId": "plastic_free",
    },
    {
        "title": "5 Eco Actions",
        "description": "Log 5 eco-friendly activities this week",
        "type": ChallengeType.WEEKLY,
        "iconName": "star.fill",
        "targetCount": 5,
        "rewardXP": 250,
    },
]

ACHIEVEMENT_TEMPLATES = [
    {"badgeId": "first_step", "title": "First Step", "description": "Log your first eco activity",
     "tier": AchievementTier.BRONZE, "iconName": "leaf", "progressRequired": 1},
    {"badgeId": "eco_regular", "title": "Eco Regular", "description": "Log 25 eco activities",
     "tier": AchievementTier.SILVER, "iconName": "calendar", "progressRequired": 25},
    {"badgeId": "green_commuter", "title": "Green Commuter", "description": "Log 10 transport activities",
     "tier": AchievementTier.SILVER, "iconName": "bicycle", "category": ActivityCategory.TRANSPORT,
     "progressRequired": 10},
    {"badgeId": "carbon_cutter", "title": "Carbon Cutter", "description": "Save 50 kg of CO₂",
     "tier": AchievementTier.SILVER, "iconName": "cloud", "metric": AchievementMetric.CARBON,
     "progressRequired": 50},
    {"badgeId": "water_guardian", "title": "Water Guardian", "description": "Save 10,000 liters of water",
     "tier": AchievementTier.GOLD, "iconName": "drop.fill", "metric": AchievementMetric.WATER,
     "progressRequired": 10000},
    {"badgeId": "plastic_fighter", "title": "Plastic Fighter", "description": "Avoid 100 plastic items",
     "tier": AchievementTier.GOLD, "iconName": "bag", "metric": AchievementMetric.PLASTIC,
     "progressRequired": 100},
    {"badgeId": "planet_protector", "title": "Planet Protector", "description": "Save 500 kg of CO₂",
     "tier": AchievementTier.PLATINUM, "iconName": "globe", "metric": AchievementMetric.CARBON,
     "progressRequired": 500},
    # Badges awarded by completing the matching challenge
    {"badgeId": "meatless_week", "title": "Meatless Week", "description": "Complete the Meatless Week challenge",
     "tier": AchievementTier.GOLD, "iconName": "leaf.fill", "metric": AchievementMetric.CHALLENGE,
     "progressRequired": 1},
    {"badgeId": "car_free_week", "title": "Car-Free Week", "description": "Complete the Car-Free Week challenge",
     "tier": AchievementTier.GOLD, "iconName": "bicycle", "metric": AchievementMetric.CHALLENGE,
     "progressRequired": 1},
    {"badgeId": "plastic_free", "title": "Plastic-Free", "description": "Complete the Plastic-Free Challenge",
     "tier": AchievementTier.GOLD, "iconName": "bag.fill", "metric": AchievementMetric.CHALLENGE,
     "progressRequired": 1},
]


def instantiate_challenges(user_id):
    """Fresh, Not Started challenges for one user."""
    return [Challenge(userId=user_id, **template) for template in CHALLENGE_TEMPLATES]

def instantiate_achievements(user_id):
    return [Achievement(userId=user_id, **template) for template in ACHIEVEMENT_TEMPLATES]

def seed_user(store, user_id):
    """
    Stores the catalog entities a user does not have yet.
    Existing achievements are matched by badge id and challenges by title, so
    running this twice never duplicates or resets progress.
    """
    existing_badges = {a.badgeId for a in store.list_achievements(user_id)}
    existing_titles = {c.title for c in store.list_challenges(user_id=user_id)}

    new_achievements = [a for a in instantiate_achievements(user_id) if a.badgeId not in existing_badges]
    new_challenges = [c for c in instantiate_challenges(user_id) if c.title not in existing_titles]
    store.save_all(achievements=new_achievements, challenges=new_challenges)

    logging.info(f"Seeded user {user_id}: {len(new_achievements)} achievement(s), {len(new_challenges)} challenge(s)")
    return new_achievements, new_challenges


if __name__ == '__main__':
    from logging_config import setup_logging
    from dependencies import get_redis_connection, release_lock
    from ecohero.store import RedisStore

    setup_logging()

    parser = argparse.ArgumentParser(description='Seed EcoHero achievements and challenges for a user.')
    parser.add_argument('--user-id', type=str, required=True)
    args = parser.parse_args()

    redis_client = get_redis_connection()
    if redis_client is None:
        print("Error: Redis is not reachable. Check REDIS_URL.")
        raise SystemExit(1)

    lock_key = f"lock:seed:{args.user_id}"
    # nx=True means set only if the key does not exist. ex=60 means expire after 60 seconds.
    lock_token = str(uuid.uuid4())
    is_lock_acquired = redis_client.set(lock_key, lock_token, ex=60, nx=True)
    if not is_lock_acquired:
        print(f"[{datetime.datetime.now()}] Seeding for {args.user_id} is already in progress. Exiting.")
        logging.warning(f"Seeding for {args.user_id} is already in progress. Exiting.")
        raise SystemExit(1)

    try:
        achievements, challenges = seed_user(RedisStore(redis_client), args.user_id)
        print(f"[{datetime.datetime.now()}] Success! Added {len(achievements)} achievements and {len(challenges)} challenges.")
    finally:
        release_lock(redis_client, lock_key, lock_token)
