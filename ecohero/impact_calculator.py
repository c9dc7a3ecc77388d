"""
Preset environmental impact figures for common eco activities, plus
human-friendly equivalents for a given impact.
"""

from typing import Optional

from .pydantic_models import ActivityCategory, ActivityImpact, EcoActivity, ImpactEquivalents

TREE_ANNUAL_CO2_KG = 21.0
WATER_BOTTLE_LITERS = 0.5
CAR_CO2_PER_MILE_KG = 0.12


# --- Meals ---
def vegetarian_meal_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=2.5, waterSavedLiters=3000, landSavedSqMeters=2.8)

def vegan_meal_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=3.2, waterSavedLiters=4000, landSavedSqMeters=3.5)

def local_food_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.5, waterSavedLiters=100, landSavedSqMeters=0.1)

# --- Transport (per km instead of driving) ---
def biking_impact(distance_km: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.12 * distance_km)

def walking_impact(distance_km: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.12 * distance_km)

def public_transport_impact(distance_km: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.08 * distance_km)

def carpooling_impact(distance_km: float) -> ActivityImpact:
    """Assumes two or more people sharing the car."""
    return ActivityImpact(carbonSavedKg=0.06 * distance_km)

# --- Plastic ---
def reusable_bottle_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.082, waterSavedLiters=3, plasticSavedItems=1)

def reusable_bag_impact(count: int = 1) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.04 * count, plasticSavedItems=count)

def reusable_cup_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.011, waterSavedLiters=0.5, plasticSavedItems=1)

def avoid_plastic_utensils_impact(count: int = 1) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.02 * count, plasticSavedItems=count)

# --- Energy ---
def led_bulb_impact(hours_per_day: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.045 * hours_per_day)

def unplug_devices_impact() -> ActivityImpact:
    # Average phantom load savings per day
    return ActivityImpact(carbonSavedKg=0.5)

def cold_water_laundry_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=2.2)

# --- Water ---
def shorter_shower_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.3, waterSavedLiters=50)

def fix_leaky_faucet_impact() -> ActivityImpact:
    return ActivityImpact(waterSavedLiters=90)

# --- Other ---
def recycling_impact(weight_kg: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.7 * weight_kg)

def composting_impact(weight_kg: float) -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=0.5 * weight_kg, landSavedSqMeters=0.1 * weight_kg)

def plant_tree_impact() -> ActivityImpact:
    return ActivityImpact(carbonSavedKg=TREE_ANNUAL_CO2_KG)


def get_equivalents(impact: ActivityImpact) -> ImpactEquivalents:
    return ImpactEquivalents(
        treesPlanted=impact.carbonSavedKg / TREE_ANNUAL_CO2_KG,
        bottlesOfWater=impact.waterSavedLiters / WATER_BOTTLE_LITERS,
        plasticBags=float(impact.plasticSavedItems),
        carMilesSaved=impact.carbonSavedKg / CAR_CO2_PER_MILE_KG,
    )

def build_activity(
    category: ActivityCategory,
    description: str,
    impact: ActivityImpact,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    distance: Optional[float] = None,
    duration: Optional[int] = None,
    **extra,
) -> EcoActivity:
    """Create an EcoActivity carrying the metrics of a preset impact."""
    if category != ActivityCategory.TRANSPORT:
        distance = None
    return EcoActivity(
        category=category,
        description=description,
        notes=notes or None,
        distance=distance,
        duration=duration,
        userId=user_id,
        **impact.model_dump(),
        **extra,
    )

def mark_synced(activity: EcoActivity, remote_id: str) -> EcoActivity:
    """The only change an activity accepts after creation."""
    return activity.model_copy(update={"isSynced": True, "remoteId": remote_id})
