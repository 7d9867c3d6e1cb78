"""Composite vegetation health index from index, weather and soil moisture scores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from campo_agent.crop_tables import normalise_crop
from engine.series import VegetationPoint, as_date, index_values
from engine.summary import FieldSummary, SoilMoisture, WeatherRisks

DATA_SOURCE = "EOS Data Analytics + Technical Analysis"


@dataclass
class HealthFactors:
    ndvi_contribution: float
    ndmi_contribution: float
    weather_contribution: float
    soil_moisture_contribution: float | None
    temporal_trend: str
    data_points: int


@dataclass
class TechnicalIndicators:
    current_ndvi: float
    ndvi_range: dict[str, float]
    current_ndmi: float
    water_stress_level: str
    vegetation_vigor: str


@dataclass
class VegetationHealthAnalysis:
    health_index: float
    confidence_level: int
    health_class: str
    eos_factors: HealthFactors
    technical_indicators: TechnicalIndicators
    recommendations: list[str] = field(default_factory=list)
    meta: dict[str, object] = field(default_factory=dict)


def _ndvi_score(ndvi: float) -> float:
    for threshold, score in ((0.8, 95), (0.7, 80), (0.6, 65), (0.5, 50), (0.4, 35), (0.3, 20)):
        if ndvi >= threshold:
            return float(score)
    return 10.0


def _ndmi_score(ndmi: float) -> tuple[float, str]:
    if ndmi >= 0.5:
        return 90.0, "none"
    if ndmi >= 0.4:
        return 75.0, "mild"
    if ndmi >= 0.3:
        return 55.0, "moderate"
    if ndmi >= 0.2:
        return 35.0, "moderate"
    return 15.0, "severe"


def _weather_score(risks: WeatherRisks) -> float:
    score = 75.0
    stress_days = risks.temperature_stress_days or 0
    deficit = risks.precipitation_deficit_mm or 0.0

    if stress_days > 15:
        score -= 25
    elif stress_days > 10:
        score -= 15
    elif stress_days > 5:
        score -= 8

    if deficit > 75:
        score -= 20
    elif deficit > 50:
        score -= 12
    elif deficit > 25:
        score -= 6

    if risks.heat_stress_risk == "high":
        score -= 15
    elif risks.heat_stress_risk == "medium":
        score -= 8

    if risks.frost_risk_forecast_7d:
        score -= 10
    return max(5.0, min(100.0, score))


def _soil_score(soil: SoilMoisture) -> float:
    root_zone = soil.root_zone_moisture or 0.0
    deficit = soil.water_deficit or 0.0
    ratio = root_zone / soil.field_capacity if soil.field_capacity else 0.0
    if ratio >= 0.8:
        score = 95.0
    elif ratio >= 0.6:
        score = 80.0
    elif ratio >= 0.4:
        score = 60.0
    elif ratio >= 0.2:
        score = 35.0
    else:
        score = 15.0

    if deficit > 10:
        score -= 15
    elif deficit > 5:
        score -= 8
    return max(5.0, min(100.0, score))


def _health_class(index: float) -> str:
    if index >= 80:
        return "excellent"
    if index >= 65:
        return "good"
    if index >= 50:
        return "average"
    if index >= 35:
        return "below_average"
    return "poor"


def _temporal_trend(ndvi_values: Sequence[float]) -> str:
    if len(ndvi_values) < 3:
        return "unknown"
    recent = ndvi_values[-3:]
    older = ndvi_values[:-3]
    if not older:
        return "unknown"
    diff = sum(recent) / len(recent) - sum(older) / len(older)
    if diff > 0.05:
        return "improving"
    if diff < -0.05:
        return "declining"
    return "stable"


def analyze_vegetation_health(
    summary: FieldSummary,
    crop: str,
    points: Sequence[VegetationPoint],
    reference_date: date | str | None = None,
) -> VegetationHealthAnalysis:
    """Blend NDVI, NDMI, weather and soil scores into a 0-100 health index.

    Weights are 35/25/25/15 when soil moisture is available and 45/30/25
    otherwise.
    """

    ndvi_values = index_values(points, "ndvi")
    current_ndvi = summary.ndvi_data.current_value or 0.0
    current_ndmi = summary.ndmi_data.current_value or 0.0
    avg_ndvi = sum(ndvi_values) / len(ndvi_values) if ndvi_values else current_ndvi
    max_ndvi = max(ndvi_values) if ndvi_values else current_ndvi
    min_ndvi = min(ndvi_values) if ndvi_values else current_ndvi

    ndvi_score = _ndvi_score(current_ndvi)
    ndmi_score, water_stress = _ndmi_score(current_ndmi)
    weather_score = _weather_score(summary.weather_risks)
    soil = summary.soil_moisture
    soil_score = _soil_score(soil) if soil is not None else None

    if soil_score is not None:
        health_index = ndvi_score * 0.35 + ndmi_score * 0.25 + weather_score * 0.25 + soil_score * 0.15
    else:
        health_index = ndvi_score * 0.45 + ndmi_score * 0.30 + weather_score * 0.25

    if avg_ndvi >= 0.7:
        vigor = "high"
    elif avg_ndvi >= 0.5:
        vigor = "medium"
    else:
        vigor = "low"

    trend = _temporal_trend(ndvi_values)

    n = len(points)
    confidence = 70
    if n >= 8:
        confidence += 20
    elif n >= 5:
        confidence += 15
    elif n >= 3:
        confidence += 10
    elif n >= 1:
        confidence += 5
    if current_ndvi > 0.1:
        confidence += 5
    if current_ndmi > 0.1:
        confidence += 5
    if soil is not None:
        confidence += 10
    confidence = max(40, min(95, confidence))

    risks = summary.weather_risks
    recommendations: list[str] = []
    if water_stress == "severe":
        recommendations.append("🚨 Stress idrico severo: irrigazione urgente necessaria")
    elif water_stress == "moderate":
        recommendations.append("💧 Stress idrico moderato: aumentare frequenza irrigazione")

    plan = soil.irrigation_recommendation if soil is not None else None
    if plan:
        if plan.get("timing") == "immediate":
            recommendations.append(f"💧 EOS raccomanda irrigazione immediata: {plan.get('volume_mm')}mm")
        elif plan.get("timing") == "within_3_days":
            recommendations.append(f"📅 EOS suggerisce irrigazione entro 3 giorni: {plan.get('volume_mm')}mm")

    if current_ndvi < 0.4:
        recommendations.append("🌱 NDVI basso: verificare nutrizione e gestione delle infestanti")
    elif current_ndvi < 0.6:
        recommendations.append("📈 NDVI sotto-ottimale: considerare fertilizzazione azotata")

    if (risks.temperature_stress_days or 0) > 10:
        recommendations.append("🌡️ Stress termico rilevato: monitorare e proteggere la coltura")
    if (risks.precipitation_deficit_mm or 0) > 50:
        recommendations.append("☔ Deficit pluviometrico significativo: programmare irrigazione supplementare")

    if trend == "declining":
        recommendations.append("📉 Tendenza NDVI in calo: investigare cause e intervenire rapidamente")
    elif trend == "improving":
        recommendations.append("📈 Tendenza NDVI positiva: mantenere pratiche attuali")

    analysis_date = as_date(reference_date) or date.today()
    return VegetationHealthAnalysis(
        health_index=round(health_index, 1),
        confidence_level=confidence,
        health_class=_health_class(health_index),
        eos_factors=HealthFactors(
            ndvi_contribution=round(ndvi_score, 1),
            ndmi_contribution=round(ndmi_score, 1),
            weather_contribution=round(weather_score, 1),
            soil_moisture_contribution=round(soil_score, 1) if soil_score is not None else None,
            temporal_trend=trend,
            data_points=n,
        ),
        technical_indicators=TechnicalIndicators(
            current_ndvi=round(current_ndvi, 3),
            ndvi_range={"min": round(min_ndvi, 3), "max": round(max_ndvi, 3), "avg": round(avg_ndvi, 3)},
            current_ndmi=round(current_ndmi, 3),
            water_stress_level=water_stress,
            vegetation_vigor=vigor,
        ),
        recommendations=recommendations,
        meta={
            "crop_type": normalise_crop(crop),
            "analysis_date": analysis_date.isoformat(),
            "data_source": DATA_SOURCE,
            "time_series_length": n,
        },
    )


__all__ = [
    "HealthFactors",
    "TechnicalIndicators",
    "VegetationHealthAnalysis",
    "analyze_vegetation_health",
]
