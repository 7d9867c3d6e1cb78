"""Phenology heuristics: NDVI growth stages, BBCH tables and GDD progress."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Sequence

from campo_agent.crop_tables import FALLBACK_CROP, normalise_crop

STAGE_NDVI = {
    "germination": 0.15,
    "tillering": 0.3,
    "jointing": 0.5,
    "heading": 0.65,
    "flowering": 0.75,
    "grain_filling": 0.6,
    "maturity": 0.35,
}


def estimate_growth_stage(
    ndvi_now: float | None,
    days_from_planting: int | None,
    slope: float = 0.0,
    max_ndvi: float = 0.0,
) -> str:
    """Classify the current growth stage from the latest NDVI and its slope."""

    if ndvi_now is None:
        return "unknown"
    days = days_from_planting if days_from_planting is not None else 0
    if ndvi_now < 0.2 and days < 25:
        return "germination"
    if 0.2 <= ndvi_now < 0.45 or 25 <= days < 60:
        return "tillering"
    if 0.45 <= ndvi_now < 0.6 or 60 <= days < 90:
        return "jointing"
    if 0.6 <= ndvi_now < 0.7 and slope > 0:
        return "heading"
    if 0.7 <= ndvi_now <= 0.8 and abs(ndvi_now - max_ndvi) <= 0.05:
        return "flowering"
    if 0.55 <= ndvi_now < 0.7 and slope < 0:
        return "grain_filling"
    # Without a planting date a low late-season NDVI still reads as maturity.
    if ndvi_now < 0.4 and (days_from_planting if days_from_planting is not None else 999) > 120:
        return "maturity"
    return "stable"


def expected_stage_ndvi(stage: str | None) -> float:
    return STAGE_NDVI.get(stage or "", 0.5)


# -------------------------------------------------------
# BBCH stages
# -------------------------------------------------------

@dataclass(frozen=True)
class PhenologicalStage:
    bbch_code: int
    stage_name: str
    description: str
    expected_duration_days: int
    critical_factors: tuple[str, ...]


def _stage(code: int, name: str, description: str, days: int, *factors: str) -> PhenologicalStage:
    return PhenologicalStage(code, name, description, days, tuple(factors))


CROP_PHENOLOGY: dict[str, list[PhenologicalStage]] = {
    "wheat": [
        _stage(10, "Germinazione", "Prime foglie emergenti", 14, "Umidità suolo", "Temperatura"),
        _stage(21, "Accestimento", "Sviluppo germogli laterali", 35, "Azoto", "Temperatura"),
        _stage(31, "Levata", "Allungamento stelo", 21, "Acqua", "Nutrienti"),
        _stage(51, "Spigatura", "Emergenza spiga", 14, "Stress idrico", "Funghi"),
        _stage(65, "Fioritura", "Antesi completa", 10, "Temperatura", "Umidità"),
        _stage(75, "Riempimento", "Granella lattiginosa", 21, "Acqua", "Temperatura"),
        _stage(87, "Maturazione", "Granella dura", 14, "Siccità", "Malattie"),
    ],
    "sunflower": [
        _stage(12, "Cotiledoni", "Prime foglie vere", 10, "Umidità", "Temperatura"),
        _stage(16, "Foglie", "6-8 foglie vere", 25, "Azoto", "Acqua"),
        _stage(51, "Bottone", "Infiorescenza visibile", 20, "Fosforo", "Potassio"),
        _stage(61, "Fioritura", "Prime lingule aperte", 15, "Impollinazione", "Acqua"),
        _stage(69, "Fine fioritura", "Caduta petali", 10, "Stress idrico"),
        _stage(75, "Riempimento", "Riempimento acheni", 30, "Acqua", "Potassio"),
        _stage(87, "Maturazione", "Acheni maturi", 15, "Siccità fisiologica"),
    ],
    "wine": [
        _stage(9, "Gemma gonfia", "Rottura gemme", 14, "Temperatura", "Gelate"),
        _stage(15, "Foglie separate", "3-4 foglie distese", 21, "Peronospora", "Oidio"),
        _stage(57, "Grappoli separati", "Infiorescenze ben separate", 14, "Botrite", "Nutrizione"),
        _stage(65, "Fioritura", "50% cappucci caduti", 10, "Allegagione", "Meteo"),
        _stage(79, "Invaiatura", "Inizio colorazione", 21, "Stress idrico", "Maturazione"),
        _stage(85, "Maturazione", "Zuccheri ottimali", 14, "Qualità", "Raccolta"),
    ],
    "olive": [
        _stage(11, "Germogliamento", "Schiusura gemme", 20, "Temperatura", "Potatura"),
        _stage(15, "Foglie giovani", "Sviluppo vegetativo", 40, "Azoto", "Irrigazione"),
        _stage(57, "Mignolatura", "Infiorescenze sviluppate", 15, "Alternanza", "Nutrizione"),
        _stage(65, "Fioritura", "Antesi", 10, "Impollinazione", "Vento"),
        _stage(71, "Allegagione", "Frutti allegati", 30, "Cascola", "Acqua"),
        _stage(81, "Indurimento", "Indurimento nocciolo", 45, "Stress idrico", "Mosca"),
        _stage(85, "Invaiatura", "Inizio colorazione", 30, "Maturazione", "Qualità olio"),
    ],
}

GDD_REQUIREMENTS: dict[str, list[int]] = {
    "wheat": [150, 400, 800, 1200, 1400, 1800, 2200],
    "sunflower": [120, 350, 650, 950, 1100, 1500, 1800],
    "wine": [100, 300, 600, 900, 1400, 1800],
    "olive": [200, 500, 900, 1100, 1300, 1800, 2400],
}

DAILY_GDD_FALLBACK = 15
DEFAULT_PLANTING_OFFSET_DAYS = 90


@dataclass
class PhenologyAnalysis:
    current_stage: PhenologicalStage
    estimated_progress: int
    days_since_planting: int
    expected_days_to_next_stage: int
    gdd_accumulated: int
    gdd_required_next_stage: int
    confidence: str
    alerts: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def calculate_gdd(temp_min: float, temp_max: float, base_temp: float) -> float:
    return max(0.0, (temp_min + temp_max) / 2 - base_temp)


def _base_temperature(crop: str) -> float:
    if crop == "wheat":
        return 0.0
    if crop == "wine":
        return 10.0
    return 5.0


def analyze_phenology(
    points: Sequence,
    crop: str,
    planting_date: date | None,
    weather=None,
    reference_date: date | None = None,
) -> PhenologyAnalysis:
    """Place the crop on its BBCH scale from accumulated growing degree days.

    GDD is extrapolated from the period's mean daily temperatures when a
    weather aggregate is supplied, otherwise from a flat 15 GDD per day.
    Missing planting dates default to 90 days before ``reference_date``.
    """

    crop = normalise_crop(crop)
    stages = CROP_PHENOLOGY.get(crop, CROP_PHENOLOGY[FALLBACK_CROP])
    requirements = GDD_REQUIREMENTS.get(crop, GDD_REQUIREMENTS[FALLBACK_CROP])
    ref = reference_date or date.today()
    planted = planting_date or ref - timedelta(days=DEFAULT_PLANTING_OFFSET_DAYS)
    days_since = (ref - planted).days

    tmin = getattr(weather, "temperature_min", None) if weather is not None else None
    tmax = getattr(weather, "temperature_max", None) if weather is not None else None
    if tmin and tmax:
        gdd = calculate_gdd(tmin, tmax, _base_temperature(crop)) * days_since
    else:
        gdd = float(days_since * DAILY_GDD_FALLBACK)

    index = 0
    for i, threshold in enumerate(requirements):
        if gdd >= threshold:
            index = i
    # Wine has one fewer GDD threshold than BBCH stages.
    index = min(index, len(stages) - 1)
    stage = stages[index]

    next_requirement = requirements[index + 1] if index + 1 < len(requirements) else requirements[-1]
    if index < len(requirements) - 1:
        progress = (gdd - requirements[index]) / (next_requirement - requirements[index]) * 100
    else:
        progress = 100.0

    recent = [p.ndvi for p in list(points)[-5:] if p.ndvi is not None]
    ndvi_increasing = len(recent) > 1 and recent[-1] > recent[0]

    confidence = "medium"
    if len(points) > 10 and weather is not None and getattr(weather, "temperature_avg", None):
        confidence = "high"
    elif len(points) < 5 or planting_date is None:
        confidence = "low"

    alerts: list[str] = []
    recommendations: list[str] = []
    if index >= 3 and not ndvi_increasing:
        alerts.append("NDVI in calo durante fase critica")
    if days_since > 120 and index < 3:
        alerts.append("Sviluppo fenologico ritardato")
        recommendations.append("Verifica nutrizione e irrigazione")

    for factor in stage.critical_factors:
        if factor == "Azoto" and index <= 2:
            recommendations.append("Monitora livelli azoto per crescita vegetativa")
        elif factor == "Acqua" and index >= 3:
            recommendations.append("Assicura irrigazione adeguata in fase riproduttiva")

    return PhenologyAnalysis(
        current_stage=stage,
        estimated_progress=round(progress),
        days_since_planting=days_since,
        expected_days_to_next_stage=max(0, math.ceil((next_requirement - gdd) / DAILY_GDD_FALLBACK)),
        gdd_accumulated=round(gdd),
        gdd_required_next_stage=next_requirement,
        confidence=confidence,
        alerts=alerts,
        recommendations=recommendations,
    )


# -------------------------------------------------------
# Calendar stages for the insight feed
# -------------------------------------------------------

def month_to_stage(month: int, crop: str | None = None) -> str:
    """Map ``month`` to a broad seasonal stage for the crop."""

    crop = normalise_crop(crop)
    if crop == "wheat":
        # Autumn-sown cereal.
        if month in (10, 11):
            return "semina / emergenza"
        if month in (12, 1, 2):
            return "accestimento"
        if month in (3, 4):
            return "levata"
        if month in (5, 6):
            return "spigatura / riempimento"
        return "raccolta / post-raccolta"
    if crop in ("wine", "olive"):
        if month in (12, 1, 2):
            return "riposo vegetativo"
        if month in (3, 4):
            return "germogliamento"
        if month in (5, 6):
            return "fioritura / allegagione"
        if month in (7, 8):
            return "sviluppo frutti"
        return "maturazione / raccolta"
    if month in (12, 1, 2):
        return "preparazione terreno"
    if month in (3, 4):
        return "emergenza"
    if month in (5, 6, 7):
        return "crescita vegetativa"
    if month in (8, 9):
        return "fase riproduttiva"
    return "raccolta / post-raccolta"


__all__ = [
    "STAGE_NDVI",
    "estimate_growth_stage",
    "expected_stage_ndvi",
    "PhenologicalStage",
    "PhenologyAnalysis",
    "CROP_PHENOLOGY",
    "GDD_REQUIREMENTS",
    "calculate_gdd",
    "analyze_phenology",
    "month_to_stage",
]
