ALL_CHALLENGES_KEY = "challenges:all"
# In Progress challenges only; the expiration sweep reads this set
ACTIVE_CHALLENGES_KEY = "challenges:in_progress"

def get_profile_key(user_id):
    """Generates the standard Redis key for a user profile."""
    return f"profile:{user_id}"

def get_activity_key(activity_id):
    return f"activity:{activity_id}"

def get_achievement_key(achievement_id):
    return f"achievement:{achievement_id}"

def get_challenge_key(challenge_id):
    return f"challenge:{challenge_id}"

def get_user_achievements_key(user_id):
    """Set of achievement ids owned by a user."""
    return f"user_achievements:{user_id}"

def get_user_challenges_key(user_id):
    """Set of challenge ids owned by a user."""
    return f"user_challenges:{user_id}"

def get_user_activities_key(user_id):
    return f"user_activities:{user_id}"

def get_profile_lock_key(user_id):
    return f"lock:profile:{user_id}"
