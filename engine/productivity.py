"""Province-level productivity forecast: historical baseline adjusted by satellite and weather signals."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from campo_agent.crop_tables import normalise_crop
from engine.series import VegetationPoint, index_values
from engine.summary import WeatherData

CROP_CODES = {
    "wheat": "WHEAT",
    "sunflower": "SUNFLOWER",
    "corn": "MAIZE",
    "rice": "RICE",
    "olive": "OLIVE",
    "wine": "GRAPE",
    "tomato": "TOMATO",
    "potato": "POTATO",
    "soybean": "SOYBEAN",
    "barley": "BARLEY",
}

# (min, optimal, max) NDVI for a productive canopy.
OPTIMAL_NDVI_RANGES = {
    "wheat": (0.65, 0.8, 0.95),
    "sunflower": (0.7, 0.85, 0.95),
    "corn": (0.7, 0.85, 0.95),
    "rice": (0.6, 0.8, 0.9),
    "olive": (0.55, 0.7, 0.85),
}

BASELINE_FALLBACK_QT_HA = 3.5

_HISTORY_COLUMNS = {
    "ref_area_code": "area_code",
    "ref_area_name": "area_name",
    "type_of_crop_code": "crop_code",
    "type_of_crop_label": "crop_label",
    "time_period_year": "year",
}
_REQUIRED_HISTORY = ("area_code", "crop_code", "productivity_qt_ha", "year")


def _optional(value: object, default: float = 0.0) -> float:
    if value is None or pd.isna(value):
        return default
    return float(value)


def _text(value: object) -> str:
    return "" if value is None or pd.isna(value) else str(value)


@dataclass
class ProductivityRecord:
    area_code: str
    area_name: str
    crop_code: str
    crop_label: str
    productivity_qt_ha: float
    production_qt: float
    area_ha: float
    year: int


@dataclass
class HistoricalTrend:
    average: float
    trend: str
    trend_percentage: float
    recent_average: float


@dataclass
class SatelliteAdjustments:
    ndvi_factor: float
    ndmi_factor: float
    weather_factor: float
    combined_adjustment: float


@dataclass
class RiskFactor:
    factor: str
    impact: str
    magnitude: float


@dataclass
class ProductivityPrediction:
    predicted_productivity_qt_ha: float
    confidence_level: int
    baseline: dict[str, object]
    satellite_adjustments: SatelliteAdjustments
    risk_factors: list[RiskFactor] = field(default_factory=list)
    comparison: dict[str, float] = field(default_factory=dict)


def load_productivity_history(path: Path | str) -> list[ProductivityRecord]:
    """Read province productivity statistics from CSV."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Productivity history not found: {path}")
    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns=_HISTORY_COLUMNS)
    missing = [col for col in _REQUIRED_HISTORY if col not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")

    records: list[ProductivityRecord] = []
    for row in df.to_dict(orient="records"):
        # Rows without a published value.
        if pd.isna(row["productivity_qt_ha"]) or pd.isna(row["year"]):
            continue
        records.append(
            ProductivityRecord(
                area_code=str(row["area_code"]).strip().upper(),
                area_name=_text(row.get("area_name")),
                crop_code=str(row["crop_code"]).strip().upper(),
                crop_label=_text(row.get("crop_label")),
                productivity_qt_ha=float(row["productivity_qt_ha"]),
                production_qt=_optional(row.get("production_qt")),
                area_ha=_optional(row.get("area_ha")),
                year=int(row["year"]),
            )
        )
    return records


def crop_code(crop: str) -> str:
    key = normalise_crop(crop)
    return CROP_CODES.get(key, key.upper())


def historical_productivity(
    records: Sequence[ProductivityRecord],
    province: str,
    crop: str,
) -> list[ProductivityRecord]:
    """Records for one province and crop, oldest year first."""

    code = crop_code(crop)
    province = province.strip().upper()
    selected = [r for r in records if r.area_code == province and r.crop_code == code]
    return sorted(selected, key=lambda r: r.year)


def analyze_historical_trend(records: Sequence[ProductivityRecord]) -> HistoricalTrend:
    if not records:
        return HistoricalTrend(0.0, "stable", 0.0, 0.0)

    values = [r.productivity_qt_ha or 0.0 for r in records]
    average = sum(values) / len(values)
    recent = list(records)[-5:]
    recent_values = [r.productivity_qt_ha or 0.0 for r in recent]
    recent_average = sum(recent_values) / len(recent_values)
    if len(recent) < 3:
        return HistoricalTrend(average, "stable", 0.0, recent_average)

    years = np.array([r.year for r in recent], dtype=float)
    if np.ptp(years) == 0 or average == 0:
        return HistoricalTrend(average, "stable", 0.0, recent_average)
    slope = float(np.polyfit(years, np.array(recent_values, dtype=float), 1)[0])
    trend_pct = slope / average * 100

    if abs(trend_pct) < 1:
        trend = "stable"
    elif trend_pct > 0:
        trend = "increasing"
    else:
        trend = "decreasing"
    return HistoricalTrend(average, trend, trend_pct, recent_average)


def calculate_satellite_adjustments(
    points: Sequence[VegetationPoint],
    weather: WeatherData | None,
    crop: str,
) -> SatelliteAdjustments:
    """Scale factors from recent NDVI/NDMI against crop optima and period weather."""

    recent = list(points)[-5:]
    ndvi_values = index_values(recent, "ndvi")
    if not ndvi_values:
        return SatelliteAdjustments(1.0, 1.0, 1.0, 0.0)

    avg_ndvi = sum(ndvi_values) / len(ndvi_values)
    low, optimal, high = OPTIMAL_NDVI_RANGES.get(normalise_crop(crop), OPTIMAL_NDVI_RANGES["wheat"])
    if avg_ndvi >= optimal:
        ndvi_factor = min(1.2, 1 + (avg_ndvi - optimal) / (high - optimal) * 0.2)
    elif avg_ndvi >= low:
        ndvi_factor = 0.8 + (avg_ndvi - low) / (optimal - low) * 0.2
    else:
        ndvi_factor = max(0.6, 0.8 * (avg_ndvi / low))

    ndmi_values = index_values(recent, "ndmi")
    avg_ndmi = sum(ndmi_values) / len(ndmi_values) if ndmi_values else 0.0
    if avg_ndmi > 0.4:
        ndmi_factor = 1.1
    elif avg_ndmi > 0.2:
        ndmi_factor = 1.0
    elif avg_ndmi > 0.1:
        ndmi_factor = 0.9
    else:
        ndmi_factor = 0.8

    weather_factor = 1.0
    if weather is not None:
        if weather.temperature_max > 35:
            weather_factor *= 0.85
        elif weather.temperature_max > 30:
            weather_factor *= 0.95
        if weather.precipitation_total < 20:
            weather_factor *= 0.9
        elif weather.precipitation_total > 100:
            weather_factor *= 0.95
        if weather.humidity_avg < 40:
            weather_factor *= 0.95

    combined = (ndvi_factor * 0.5 + ndmi_factor * 0.3 + weather_factor * 0.2 - 1) * 100
    return SatelliteAdjustments(ndvi_factor, ndmi_factor, weather_factor, combined)


def assess_risk_factors(
    points: Sequence[VegetationPoint],
    weather: WeatherData | None,
    trend: HistoricalTrend,
) -> list[RiskFactor]:
    risks: list[RiskFactor] = []

    ndvi_values = index_values(points, "ndvi")
    if len(points) > 3 and ndvi_values:
        mean = sum(ndvi_values) / len(ndvi_values)
        variance = sum((v - mean) ** 2 for v in ndvi_values) / len(ndvi_values)
        cv = math.sqrt(variance) / mean if mean else 0.0
        if cv > 0.15:
            risks.append(RiskFactor("Alta variabilità NDVI nel campo", "negative", min(15.0, cv * 100)))

    ndmi_recent = index_values(list(points)[-3:], "ndmi")
    if ndmi_recent:
        avg_ndmi = sum(ndmi_recent) / len(ndmi_recent)
        if avg_ndmi < 0.1:
            risks.append(RiskFactor("Stress idrico severo", "negative", 20.0))
        elif avg_ndmi > 0.4:
            risks.append(RiskFactor("Ottimo stato idrico", "positive", 10.0))

    if weather is not None:
        if weather.temperature_max > 35:
            risks.append(RiskFactor("Temperature estreme", "negative", 15.0))
        if weather.precipitation_total < 10:
            risks.append(RiskFactor("Deficit precipitazioni", "negative", 12.0))
        if weather.wind_speed_max > 15:
            risks.append(RiskFactor("Venti forti", "negative", 8.0))

    if trend.trend == "increasing" and trend.trend_percentage > 2:
        risks.append(RiskFactor("Trend storico positivo", "positive", min(10.0, trend.trend_percentage)))
    elif trend.trend == "decreasing" and trend.trend_percentage < -2:
        risks.append(RiskFactor("Trend storico negativo", "negative", min(10.0, abs(trend.trend_percentage))))
    return risks


def generate_productivity_prediction(
    records: Sequence[ProductivityRecord],
    province: str,
    crop: str,
    points: Sequence[VegetationPoint],
    weather: WeatherData | None,
) -> ProductivityPrediction:
    """Forecast province productivity (qt/ha) for the field's crop."""

    history = historical_productivity(records, province, crop)
    trend = analyze_historical_trend(history)
    adjustments = calculate_satellite_adjustments(points, weather, crop)
    risks = assess_risk_factors(points, weather, trend)

    baseline = trend.average or BASELINE_FALLBACK_QT_HA
    adjusted = baseline * (1 + adjustments.combined_adjustment / 100)
    risk_sum = sum(r.magnitude if r.impact == "positive" else -r.magnitude for r in risks)
    final = adjusted * (1 + risk_sum / 100)

    confidence = 70
    if len(history) > 5:
        confidence += 15
    if len(points) > 10:
        confidence += 10
    if weather is not None:
        confidence += 5
    confidence = min(95, max(30, confidence))

    vs_regional = (final - trend.average) / trend.average * 100 if trend.average else 0.0
    last = history[-1].productivity_qt_ha if history else 0.0
    vs_last_year = (final - last) / last * 100 if last else 0.0
    if history:
        below = sum(1 for r in history if r.productivity_qt_ha < final)
        percentile = below / len(history) * 100
    else:
        percentile = 50.0

    return ProductivityPrediction(
        predicted_productivity_qt_ha=round(final, 1),
        confidence_level=confidence,
        baseline={
            "historical_average": round(trend.average, 1),
            "years_of_data": len(history),
            "trend_direction": trend.trend,
            "trend_percentage": round(trend.trend_percentage, 1),
        },
        satellite_adjustments=SatelliteAdjustments(
            ndvi_factor=round(adjustments.ndvi_factor, 2),
            ndmi_factor=round(adjustments.ndmi_factor, 2),
            weather_factor=round(adjustments.weather_factor, 2),
            combined_adjustment=round(adjustments.combined_adjustment, 1),
        ),
        risk_factors=risks,
        comparison={
            "vs_regional_average": round(vs_regional, 1),
            "vs_last_year": round(vs_last_year, 1),
            "percentile_rank": round(percentile),
        },
    )


__all__ = [
    "CROP_CODES",
    "ProductivityRecord",
    "HistoricalTrend",
    "SatelliteAdjustments",
    "RiskFactor",
    "ProductivityPrediction",
    "load_productivity_history",
    "crop_code",
    "historical_productivity",
    "analyze_historical_trend",
    "calculate_satellite_adjustments",
    "assess_risk_factors",
    "generate_productivity_prediction",
]
