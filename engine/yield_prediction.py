"""Yield and margin projection from index vigour, water status and weather risk."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from campo_agent.crop_tables import market_price, production_cost, yield_baseline
from engine.series import VegetationPoint, as_date, index_values
from engine.summary import FieldSummary


@dataclass
class YieldFactors:
    ndvi_contribution: float
    ndmi_contribution: float
    weather_impact: float
    seasonal_adjustment: float


@dataclass
class EconomicProjection:
    expected_revenue_eur_ha: int
    market_price_eur_ton: float
    production_cost_eur_ha: float
    net_profit_eur_ha: int


@dataclass
class YieldPrediction:
    predicted_yield_ton_ha: float
    confidence_level: int
    yield_class: str
    factors: YieldFactors
    historical_comparison: dict[str, float]
    economic_projection: EconomicProjection
    recommendations: list[str] = field(default_factory=list)


def _ndvi_multiplier(peak: float) -> float:
    if peak >= 0.8:
        return 1.4
    if peak >= 0.7:
        return 1.2
    if peak >= 0.6:
        return 1.0
    if peak >= 0.4:
        return 0.8
    return 0.6


def _ndmi_multiplier(ndmi: float) -> float:
    if ndmi >= 0.5:
        return 1.2
    if ndmi >= 0.4:
        return 1.0
    if ndmi >= 0.3:
        return 0.85
    if ndmi >= 0.2:
        return 0.7
    return 0.5


def _seasonal_multiplier(month: int) -> float:
    if 4 <= month <= 6:
        return 1.05
    if 7 <= month <= 9:
        return 1.0
    return 0.95


def _yield_class(relative: float) -> str:
    if relative >= 1.3:
        return "excellent"
    if relative >= 1.1:
        return "good"
    if relative >= 0.9:
        return "average"
    if relative >= 0.7:
        return "below_average"
    return "poor"


def calculate_yield_prediction(
    summary: FieldSummary,
    crop: str,
    points: Sequence[VegetationPoint],
    reference_date: date | str | None = None,
) -> YieldPrediction:
    """Scale the crop's historical average yield by a weighted condition multiplier.

    The multiplier blends peak-NDVI vigour (40%), current NDMI (30%),
    weather risk (20%) and the position in the growing season (10%).
    """

    baseline = yield_baseline(crop)
    ndvi_values = index_values(points, "ndvi")
    current_ndvi = summary.ndvi_data.current_value or 0.0
    current_ndmi = summary.ndmi_data.current_value or 0.0
    avg_ndvi = sum(ndvi_values) / len(ndvi_values) if ndvi_values else current_ndvi
    peak_ndvi = max(ndvi_values) if ndvi_values else current_ndvi

    ndvi_m = _ndvi_multiplier(peak_ndvi)
    ndmi_m = _ndmi_multiplier(current_ndmi)

    risks = summary.weather_risks
    stress_days = risks.temperature_stress_days or 0
    deficit = risks.precipitation_deficit_mm or 0.0
    weather_m = 1.0
    if stress_days > 10:
        weather_m -= 0.15
    elif stress_days > 5:
        weather_m -= 0.08
    if deficit > 50:
        weather_m -= 0.12
    elif deficit > 25:
        weather_m -= 0.06
    if risks.heat_stress_risk == "high":
        weather_m -= 0.1
    elif risks.heat_stress_risk == "medium":
        weather_m -= 0.05
    if risks.frost_risk_forecast_7d:
        weather_m -= 0.08

    month = (as_date(reference_date) or date.today()).month
    seasonal_m = _seasonal_multiplier(month)

    overall = ndvi_m * 0.4 + ndmi_m * 0.3 + weather_m * 0.2 + seasonal_m * 0.1
    predicted = baseline["average"] * overall
    relative = predicted / baseline["average"]
    yield_class = _yield_class(relative)

    n = len(points)
    confidence = 75
    if n >= 8:
        confidence += 15
    elif n >= 5:
        confidence += 10
    elif n >= 3:
        confidence += 5
    if current_ndvi > 0.1:
        confidence += 5
    if avg_ndvi > 0.3:
        confidence += 5
    if stress_days > 15:
        confidence -= 10
    if deficit > 75:
        confidence -= 10
    confidence = max(45, min(95, confidence))

    price = market_price(crop)
    cost = production_cost(crop)
    revenue = predicted * price

    recommendations: list[str] = []
    if ndmi_m < 0.8:
        recommendations.append("Intensificare l'irrigazione per ridurre lo stress idrico")
    if ndvi_m < 0.9:
        recommendations.append("Considerare fertilizzazione aggiuntiva per migliorare la vigoria")
    if stress_days > 5:
        recommendations.append("Monitorare stress termico e considerare strategie di ombreggiamento")
    if yield_class == "excellent":
        recommendations.append("Condizioni ottime - mantenere pratiche attuali")
    elif yield_class == "poor":
        recommendations.append("Interventi urgenti necessari per salvare il raccolto")

    # No field history is kept, so both comparisons use the crop average.
    vs_average = round((relative - 1) * 100, 1)
    return YieldPrediction(
        predicted_yield_ton_ha=round(predicted, 2),
        confidence_level=confidence,
        yield_class=yield_class,
        factors=YieldFactors(
            ndvi_contribution=round(ndvi_m * 40, 1),
            ndmi_contribution=round(ndmi_m * 30, 1),
            weather_impact=round(weather_m * 20, 1),
            seasonal_adjustment=round(seasonal_m * 10, 1),
        ),
        historical_comparison={"vs_field_average": vs_average, "vs_regional_average": vs_average},
        economic_projection=EconomicProjection(
            expected_revenue_eur_ha=int(round(revenue)),
            market_price_eur_ton=price,
            production_cost_eur_ha=cost,
            net_profit_eur_ha=int(round(revenue - cost)),
        ),
        recommendations=recommendations,
    )


__all__ = [
    "YieldFactors",
    "EconomicProjection",
    "YieldPrediction",
    "calculate_yield_prediction",
]
