"""
Crop reference tables used by the analytical engine.
Index thresholds, weather tolerances, yield baselines and market figures
for the crops grown on Italian farms, plus helpers that apply the
wheat fallback for unknown crops.
"""

from __future__ import annotations

from typing import Any, Mapping

FALLBACK_CROP = "wheat"

# --- Vegetation / moisture / chlorophyll index thresholds ---
CROP_THRESHOLDS = {
    "wheat": {
        "ndvi": {"excellent": 0.8, "good": 0.65, "moderate": 0.45, "critical": 0.3},
        "ndmi": {"optimal": 0.4, "stress_threshold": 0.25, "critical_threshold": 0.15},
        "reci": {"high_nitrogen": 3.0, "medium_nitrogen": 2.0, "low_nitrogen": 1.2},
    },
    "wine": {
        "ndvi": {"excellent": 0.75, "good": 0.6, "moderate": 0.4, "critical": 0.25},
        "ndmi": {"optimal": 0.35, "stress_threshold": 0.2, "critical_threshold": 0.1},
        "reci": {"high_nitrogen": 2.5, "medium_nitrogen": 1.8, "low_nitrogen": 1.0},
    },
    "olive": {
        "ndvi": {"excellent": 0.7, "good": 0.55, "moderate": 0.35, "critical": 0.2},
        "ndmi": {"optimal": 0.3, "stress_threshold": 0.18, "critical_threshold": 0.08},
        "reci": {"high_nitrogen": 2.2, "medium_nitrogen": 1.5, "low_nitrogen": 0.9},
    },
    "sunflower": {
        "ndvi": {"excellent": 0.85, "good": 0.7, "moderate": 0.5, "critical": 0.35},
        "ndmi": {"optimal": 0.45, "stress_threshold": 0.3, "critical_threshold": 0.2},
        "reci": {"high_nitrogen": 3.2, "medium_nitrogen": 2.2, "low_nitrogen": 1.4},
    },
}

# --- Weather tolerances ---
CROP_WEATHER_THRESHOLDS = {
    "wheat": {
        "temperature_optimal_min": 15,
        "temperature_optimal_max": 25,
        "temperature_stress_cold": 5,
        "temperature_stress_heat": 32,
        "precipitation_min_monthly": 40,
        "precipitation_max_daily": 30,
        "humidity_optimal_range": (60, 75),
        "wind_damage_threshold": 15,
        "gdd_base": 5,
        "gdd_required_maturity": 1800,
    },
    "wine": {
        "temperature_optimal_min": 18,
        "temperature_optimal_max": 28,
        "temperature_stress_cold": 8,
        "temperature_stress_heat": 35,
        "precipitation_min_monthly": 30,
        "precipitation_max_daily": 25,
        "humidity_optimal_range": (55, 70),
        "wind_damage_threshold": 12,
        "gdd_base": 10,
        "gdd_required_maturity": 1400,
    },
    "olive": {
        "temperature_optimal_min": 16,
        "temperature_optimal_max": 30,
        "temperature_stress_cold": 0,
        "temperature_stress_heat": 38,
        "precipitation_min_monthly": 25,
        "precipitation_max_daily": 40,
        "humidity_optimal_range": (50, 65),
        "wind_damage_threshold": 18,
        "gdd_base": 7,
        "gdd_required_maturity": 1200,
    },
    "sunflower": {
        "temperature_optimal_min": 20,
        "temperature_optimal_max": 30,
        "temperature_stress_cold": 10,
        "temperature_stress_heat": 35,
        "precipitation_min_monthly": 50,
        "precipitation_max_daily": 35,
        "humidity_optimal_range": (65, 80),
        "wind_damage_threshold": 20,
        "gdd_base": 8,
        "gdd_required_maturity": 1500,
    },
}

# --- Yield baselines (t/ha), market prices (EUR/t), production costs (EUR/ha) ---
HISTORICAL_YIELDS = {
    "wheat": {"average": 5.8, "excellent": 8.5, "poor": 3.2},
    "corn": {"average": 11.2, "excellent": 16.0, "poor": 6.5},
    "barley": {"average": 4.9, "excellent": 7.2, "poor": 2.8},
    "rice": {"average": 6.7, "excellent": 9.8, "poor": 4.1},
    "soybean": {"average": 3.1, "excellent": 4.5, "poor": 1.8},
    "sunflower": {"average": 2.8, "excellent": 4.0, "poor": 1.5},
    "rapeseed": {"average": 3.2, "excellent": 4.8, "poor": 1.9},
    "wine": {"average": 12.5, "excellent": 18.0, "poor": 7.0},  # grapes
    "olive": {"average": 4.2, "excellent": 6.5, "poor": 2.0},
}

MARKET_PRICES = {
    "wheat": 250,
    "corn": 220,
    "barley": 230,
    "rice": 580,
    "soybean": 450,
    "sunflower": 420,
    "rapeseed": 480,
    "wine": 800,
    "olive": 3200,  # olive oil equivalent
}

PRODUCTION_COSTS = {
    "wheat": 800,
    "corn": 1200,
    "barley": 750,
    "rice": 1500,
    "soybean": 650,
    "sunflower": 600,
    "rapeseed": 850,
    "wine": 8000,
    "olive": 2500,
}

# --- Expected NDVI by calendar month ---
SEASONAL_EXPECTED_NDVI = {
    "wheat": {
        1: 0.20, 2: 0.25, 3: 0.35, 4: 0.55, 5: 0.75, 6: 0.65,
        7: 0.45, 8: 0.25, 9: 0.15, 10: 0.35, 11: 0.25, 12: 0.20,
    },
    "wine": {
        1: 0.15, 2: 0.20, 3: 0.25, 4: 0.45, 5: 0.65, 6: 0.75,
        7: 0.70, 8: 0.65, 9: 0.50, 10: 0.35, 11: 0.20, 12: 0.15,
    },
    "olive": {
        1: 0.25, 2: 0.25, 3: 0.30, 4: 0.50, 5: 0.65, 6: 0.70,
        7: 0.65, 8: 0.60, 9: 0.55, 10: 0.45, 11: 0.35, 12: 0.30,
    },
}

# --- Italian / alternate names ---
CROP_ALIASES = {
    "grano": "wheat",
    "frumento": "wheat",
    "vite": "wine",
    "vigneto": "wine",
    "grape": "wine",
    "olivo": "olive",
    "ulivo": "olive",
    "girasole": "sunflower",
    "mais": "corn",
    "maize": "corn",
    "orzo": "barley",
    "riso": "rice",
    "soia": "soybean",
    "colza": "rapeseed",
}


def normalise_crop(crop: str | None) -> str:
    """Lower-case a crop name and map Italian or alternate names to table keys."""
    if not crop:
        return FALLBACK_CROP
    key = str(crop).strip().lower().replace(" ", "_")
    return CROP_ALIASES.get(key, key)


def crop_thresholds(crop: str | None) -> Mapping[str, Mapping[str, float]]:
    return CROP_THRESHOLDS.get(normalise_crop(crop), CROP_THRESHOLDS[FALLBACK_CROP])


def weather_thresholds(crop: str | None, fallback: bool = True) -> Mapping[str, Any] | None:
    """
    Weather tolerances for a crop. With ``fallback=False`` unknown crops
    return None so callers can treat the index as not applicable.
    """
    key = normalise_crop(crop)
    if key in CROP_WEATHER_THRESHOLDS:
        return CROP_WEATHER_THRESHOLDS[key]
    return CROP_WEATHER_THRESHOLDS[FALLBACK_CROP] if fallback else None


def expected_ndvi(crop: str | None, month: int) -> float:
    key = normalise_crop(crop)
    table = SEASONAL_EXPECTED_NDVI.get(key, SEASONAL_EXPECTED_NDVI[FALLBACK_CROP])
    return float(table.get(month, 0.5))


def yield_baseline(crop: str | None) -> Mapping[str, float]:
    return HISTORICAL_YIELDS.get(normalise_crop(crop), HISTORICAL_YIELDS[FALLBACK_CROP])


def market_price(crop: str | None) -> float:
    return float(MARKET_PRICES.get(normalise_crop(crop), MARKET_PRICES[FALLBACK_CROP]))


def production_cost(crop: str | None) -> float:
    return float(PRODUCTION_COSTS.get(normalise_crop(crop), PRODUCTION_COSTS[FALLBACK_CROP]))


__all__ = [
    "CROP_THRESHOLDS",
    "CROP_WEATHER_THRESHOLDS",
    "HISTORICAL_YIELDS",
    "MARKET_PRICES",
    "PRODUCTION_COSTS",
    "SEASONAL_EXPECTED_NDVI",
    "FALLBACK_CROP",
    "normalise_crop",
    "crop_thresholds",
    "weather_thresholds",
    "expected_ndvi",
    "yield_baseline",
    "market_price",
    "production_cost",
]
