"""Crop-aware interpretation of NDVI/NDMI readings and their recent trend."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from campo_agent.crop_tables import crop_thresholds
from engine.series import VegetationPoint, as_date, index_values
from engine.summary import FieldSummary


@dataclass
class HealthStatus:
    level: str
    description: str
    recommendations: list[str] = field(default_factory=list)


@dataclass
class WaterStressAlert:
    level: str
    icon: str
    title: str
    description: str
    actions: list[str]
    urgency: int


@dataclass
class SeasonalContext:
    season: str
    month: int
    expected_phase: str
    optimal_ndvi: float
    optimal_ndmi: float


@dataclass
class IrrigationRecommendation:
    urgency: str
    timing: str
    amount: str
    frequency: str
    reasoning: list[str] = field(default_factory=list)
    weather_considerations: list[str] = field(default_factory=list)


@dataclass
class TemporalAnalysis:
    trend_direction: str
    velocity_level: str
    seasonal_comparison: str
    projected_value_7d: float
    projected_value_14d: float
    confidence: int


def get_health_status(ndvi: float, crop: str) -> HealthStatus:
    ndvi_t = crop_thresholds(crop)["ndvi"]
    if ndvi >= ndvi_t["excellent"]:
        return HealthStatus(
            "excellent",
            "Vegetazione eccellente",
            ["Continua il programma attuale", "Monitora per mantenere lo stato"],
        )
    if ndvi >= ndvi_t["good"]:
        return HealthStatus(
            "good",
            "Vegetazione in buona salute",
            ["Mantieni irrigazione regolare", "Controlla zone meno vigorose"],
        )
    if ndvi >= ndvi_t["moderate"]:
        return HealthStatus(
            "moderate",
            "Vegetazione moderata",
            ["Aumenta frequenza irrigazione", "Verifica nutrizione", "Monitora stress"],
        )
    return HealthStatus(
        "critical",
        "Vegetazione in stress severo",
        ["Irrigazione immediata", "Ispezione campo urgente", "Verifica sistema radicale"],
    )


def get_water_stress_alert(ndmi: float, trend: float | None, crop: str) -> WaterStressAlert:
    """Grade water stress from NDMI; a steep 14-day drop raises an early warning."""

    ndmi_t = crop_thresholds(crop)["ndmi"]
    if ndmi >= ndmi_t["optimal"]:
        if trend is not None and trend < -10:
            return WaterStressAlert(
                level="early",
                icon="⚠️",
                title="Allerta Precoce",
                description="NDMI in calo rapido, possibile stress in sviluppo",
                actions=["Programma irrigazione preventiva", "Monitora da vicino"],
                urgency=2,
            )
        return WaterStressAlert(
            level="none",
            icon="✅",
            title="Stato Idrico Ottimale",
            description="Livello di umidità adeguato per la coltura",
            actions=["Mantieni programma irrigazione attuale"],
            urgency=1,
        )
    if ndmi >= ndmi_t["stress_threshold"]:
        return WaterStressAlert(
            level="moderate",
            icon="🔶",
            title="Stress Idrico Moderato",
            description="Iniziali segni di deficit idrico",
            actions=["Aumenta frequenza irrigazione", "Verifica uniformità irrigua"],
            urgency=3,
        )
    if ndmi >= ndmi_t["critical_threshold"]:
        return WaterStressAlert(
            level="severe",
            icon="🔴",
            title="Stress Idrico Severo",
            description="Deficit idrico significativo",
            actions=["Irrigazione immediata", "Ridurre stress aggiuntivi", "Monitoraggio continuo"],
            urgency=4,
        )
    return WaterStressAlert(
        level="critical",
        icon="🚨",
        title="Emergenza Idrica",
        description="Stress idrico critico - rischio danni permanenti",
        actions=["Intervento urgente", "Irrigazione intensiva", "Ispezione immediata campo"],
        urgency=5,
    )


def get_seasonal_context(crop: str, reference_date: date | str | None = None) -> SeasonalContext:
    thresholds = crop_thresholds(crop)
    month = (as_date(reference_date) or date.today()).month

    if 3 <= month <= 5:
        return SeasonalContext("spring", month, "Crescita attiva", thresholds["ndvi"]["good"], thresholds["ndmi"]["optimal"])
    if 6 <= month <= 8:
        # More water stress is tolerated in summer.
        return SeasonalContext(
            "summer", month, "Massimo sviluppo", thresholds["ndvi"]["excellent"], thresholds["ndmi"]["stress_threshold"]
        )
    if 9 <= month <= 11:
        return SeasonalContext("autumn", month, "Maturazione", thresholds["ndvi"]["moderate"], thresholds["ndmi"]["optimal"])
    return SeasonalContext("winter", month, "Dormienza/Riposo", thresholds["ndvi"]["moderate"], thresholds["ndmi"]["optimal"])


_IRRIGATION_PLANS = {
    "none": ("none", "Prossima irrigazione programmata", "Normale (20-30mm)", "Secondo programma",
             ["Livello idrico ottimale"]),
    "early": ("low", "Entro 7-10 giorni", "Preventiva (15-25mm)", "Anticipa leggermente",
              ["Trend NDMI in calo", "Prevenzione stress"]),
    "moderate": ("medium", "Entro 3-5 giorni", "Moderata (25-35mm)", "Aumenta del 20%",
                 ["Stress idrico rilevato", "Recupero necessario"]),
    "severe": ("high", "Entro 24-48 ore", "Abbondante (35-50mm)", "Irrigazioni ravvicinate",
               ["Stress severo", "Rischio danni"]),
    "critical": ("immediate", "Immediatamente", "Emergenza (50+ mm)", "Multiple irrigazioni",
                 ["Emergenza idrica", "Rischio perdite gravi"]),
}


def _format_mm(value: float) -> str:
    return f"{value:g}"


def get_irrigation_recommendation(
    summary: FieldSummary,
    crop: str,
    reference_date: date | str | None = None,
) -> IrrigationRecommendation:
    """Irrigation urgency, timing and volume from water stress and weather risk."""

    ndmi = summary.ndmi_data.current_value or 0.0
    stress = get_water_stress_alert(ndmi, summary.ndmi_data.trend_14_days, crop)
    seasonal = get_seasonal_context(crop, summary.meta.get("end_date") or reference_date)

    deficit = summary.weather_risks.precipitation_deficit_mm or 0.0
    heat = summary.weather_risks.heat_stress_risk or "low"

    urgency, timing, amount, frequency, reasoning = _IRRIGATION_PLANS[stress.level]
    considerations: list[str] = []
    if deficit > 20:
        considerations.append(f"Deficit {_format_mm(deficit)}mm nelle ultime settimane")
    if heat == "high":
        considerations.append("Stress termico elevato")
        timing = re.sub(r"\d+", lambda m: str(max(1, int(m.group()) - 1)), timing, count=1)
    if seasonal.season == "summer":
        considerations.append("Stagione estiva - maggiore fabbisogno idrico")

    return IrrigationRecommendation(
        urgency=urgency,
        timing=timing,
        amount=amount,
        frequency=frequency,
        reasoning=list(reasoning),
        weather_considerations=considerations,
    )


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def analyze_temporal_trends(
    points: Sequence[VegetationPoint],
    indicator: str,
    crop: str,
) -> TemporalAnalysis | None:
    """Compare the latest five observations with the start of the series.

    Returns ``None`` with fewer than three usable values. Short series
    compare the last five against the first half of the series.
    """

    values = index_values(points, indicator)
    n = len(values)
    if n < 3:
        return None

    recent = values[-5:]
    earlier = values[: min(5, n - 5)] if n > 5 else values[: max(1, n // 2)]
    recent_avg = _mean(recent)
    earlier_avg = _mean(earlier)

    change = recent_avg - earlier_avg
    if earlier_avg:
        change_pct = abs(change / earlier_avg * 100)
    else:
        change_pct = 0.0 if change == 0 else 100.0

    if change > 0.02:
        direction = "improving"
    elif change < -0.02:
        direction = "declining"
    else:
        direction = "stable"

    if change_pct > 15:
        velocity = "rapid"
    elif change_pct > 5:
        velocity = "moderate"
    else:
        velocity = "slow"

    daily = change / 14
    return TemporalAnalysis(
        trend_direction=direction,
        velocity_level=velocity,
        seasonal_comparison="normal",
        projected_value_7d=round(max(0.0, min(1.0, recent_avg + daily * 7)), 3),
        projected_value_14d=round(max(0.0, min(1.0, recent_avg + daily * 14)), 3),
        confidence=min(95, 60 + n * 2),
    )


__all__ = [
    "HealthStatus",
    "WaterStressAlert",
    "SeasonalContext",
    "IrrigationRecommendation",
    "TemporalAnalysis",
    "get_health_status",
    "get_water_stress_alert",
    "get_seasonal_context",
    "get_irrigation_recommendation",
    "analyze_temporal_trends",
]
