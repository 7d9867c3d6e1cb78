"""Weather stress indices, alerts and GDD-based growth progress."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from campo_agent.crop_tables import normalise_crop, weather_thresholds
from engine.series import as_date
from engine.summary import WeatherData, WeatherForecast

AVERAGE_DAILY_GDD = 15
MAX_RECOMMENDATIONS = 8


@dataclass
class WeatherStressAlert:
    type: str
    severity: str
    title: str
    description: str
    icon: str
    recommendations: list[str] = field(default_factory=list)
    economic_impact: float | None = None
    duration_days: int | None = None
    confidence: int = 0


@dataclass
class GrowthProgress:
    progress_percentage: float
    expected_stage: str
    days_to_maturity: int
    optimal_timing: bool


def calculate_growing_degree_days(temperature_min: float, temperature_max: float, base_temp: float) -> float:
    return max(0.0, (temperature_min + temperature_max) / 2 - base_temp)


def calculate_heat_stress_index(temperature_max: float, humidity: float, crop: str) -> float:
    thresholds = weather_thresholds(crop, fallback=False)
    if thresholds is None:
        return 0.0
    excess = max(0.0, temperature_max - thresholds["temperature_stress_heat"])
    humidity_factor = 1.3 if humidity > thresholds["humidity_optimal_range"][1] else 1.0
    return min(100.0, excess * humidity_factor * 10)


def calculate_cold_stress_index(temperature_min: float, crop: str) -> float:
    thresholds = weather_thresholds(crop, fallback=False)
    if thresholds is None:
        return 0.0
    deficit = max(0.0, thresholds["temperature_stress_cold"] - temperature_min)
    return min(100.0, deficit * 15)


def _graded(value: float, high: float, critical: float) -> str:
    if value > critical:
        return "critical"
    if value > high:
        return "high"
    return "medium"


def analyze_weather_stress(weather: WeatherData, crop: str) -> list[WeatherStressAlert]:
    """Return heat, cold, drought, excess-water and wind alerts for the period."""

    thresholds = weather_thresholds(crop)
    alerts: list[WeatherStressAlert] = []

    if weather.heat_stress_index > 30:
        alerts.append(
            WeatherStressAlert(
                type="heat",
                severity=_graded(weather.heat_stress_index, 50, 70),
                title="Stress Termico Rilevato",
                description=f"Temperature elevate ({weather.temperature_max:g}°C) stanno causando stress alla coltura",
                icon="thermometer",
                recommendations=[
                    "Aumentare frequenza irrigazione nelle ore serali",
                    "Considerare ombreggiamento temporaneo se possibile",
                    "Monitorare segni di appassimento fogliare",
                    "Evitare trattamenti nelle ore più calde",
                ],
                economic_impact=weather.heat_stress_index * 15,
                confidence=85,
            )
        )

    if weather.cold_stress_index > 20:
        alerts.append(
            WeatherStressAlert(
                type="cold",
                severity=_graded(weather.cold_stress_index, 40, 60),
                title="Stress da Freddo",
                description=f"Temperature basse ({weather.temperature_min:g}°C) possono danneggiare la coltura",
                icon="snowflake",
                recommendations=[
                    "Implementare sistemi di protezione antigelo",
                    "Considerare irrigazione preventiva",
                    "Monitorare previsioni per interventi tempestivi",
                    "Valutare coperture temporanee per piante giovani",
                ],
                economic_impact=weather.cold_stress_index * 12,
                confidence=80,
            )
        )

    if weather.water_balance < -30:
        alerts.append(
            WeatherStressAlert(
                type="drought",
                severity=_graded(-weather.water_balance, 45, 60),
                title="Deficit Idrico",
                description=f"Bilancio idrico negativo ({weather.water_balance:g}mm) indica carenza d'acqua",
                icon="droplets",
                recommendations=[
                    "Pianificare irrigazione immediata",
                    "Ottimizzare efficienza sistema irriguo",
                    "Considerare pacciamatura per ridurre evaporazione",
                    "Monitorare NDMI per stress idrico precoce",
                ],
                economic_impact=abs(weather.water_balance) * 8,
                confidence=90,
            )
        )

    if weather.precipitation_total > thresholds["precipitation_max_daily"] * 3:
        alerts.append(
            WeatherStressAlert(
                type="excess_water",
                severity="medium",
                title="Eccesso Idrico",
                description=f"Precipitazioni eccessive ({weather.precipitation_total:g}mm) possono causare problemi",
                icon="cloud-rain",
                recommendations=[
                    "Verificare drenaggio del campo",
                    "Monitorare ristagni idrici",
                    "Valutare rischio malattie fungine",
                    "Pianificare interventi preventivi fitosanitari",
                ],
                economic_impact=weather.precipitation_total * 2,
                confidence=75,
            )
        )

    wind_limit = thresholds["wind_damage_threshold"]
    if weather.wind_speed_max > wind_limit:
        alerts.append(
            WeatherStressAlert(
                type="wind",
                severity="high" if weather.wind_speed_max > wind_limit * 1.5 else "medium",
                title="Stress da Vento",
                description=f"Venti forti ({weather.wind_speed_max:g}m/s) possono danneggiare le piante",
                icon="wind",
                recommendations=[
                    "Verificare stabilità delle piante",
                    "Controllare sistemi di supporto",
                    "Valutare danni meccanici alle foglie",
                    "Posticipare trattamenti se vento persiste",
                ],
                economic_impact=weather.wind_speed_max * 5,
                confidence=70,
            )
        )

    return alerts


def calculate_optimal_growth_progress(
    gdd_accumulated: float,
    crop: str,
    reference_date: date | str | None = None,
) -> GrowthProgress:
    required = weather_thresholds(crop)["gdd_required_maturity"]
    progress = gdd_accumulated / required * 100

    stage = "Germinazione"
    if progress > 80:
        stage = "Maturazione"
    elif progress > 60:
        stage = "Riempimento granella"
    elif progress > 40:
        stage = "Fioritura"
    elif progress > 20:
        stage = "Accestimento"
    elif progress > 10:
        stage = "Emergenza"

    remaining = max(0.0, required - gdd_accumulated)
    month = (as_date(reference_date) or date.today()).month
    if normalise_crop(crop) == "wheat":
        optimal = month >= 10 or month <= 6
    else:
        optimal = 3 <= month <= 9

    return GrowthProgress(
        progress_percentage=min(100.0, progress),
        expected_stage=stage,
        days_to_maturity=math.ceil(remaining / AVERAGE_DAILY_GDD),
        optimal_timing=optimal,
    )


def generate_weather_based_recommendations(
    weather: WeatherData,
    forecast: Sequence[WeatherForecast],
    crop: str,
) -> list[str]:
    recommendations: list[str] = []

    critical = [a for a in analyze_weather_stress(weather, crop) if a.severity == "critical"]
    if critical:
        recommendations.append("🚨 INTERVENTO URGENTE RICHIESTO:")
        for alert in critical:
            recommendations.extend(alert.recommendations[:2])

    if forecast:
        if any(day.stress_probability > 60 for day in forecast[:3]):
            recommendations.append("📅 Prossimi giorni critici - prepararsi:")
            recommendations.append("Verificare sistemi irrigazione/protezione")
            recommendations.append("Pianificare interventi preventivi")
        rainy = [day for day in forecast[:7] if day.precipitation > 5]
        if len(rainy) > 3:
            recommendations.append("🌧️ Periodo piovoso in arrivo:")
            recommendations.append("Posticipare trattamenti fitosanitari")
            recommendations.append("Verificare drenaggio del campo")

    if -10 < weather.water_balance < 10:
        recommendations.append("💧 Bilancio idrico equilibrato - ottimizzare:")
        recommendations.append("Mantenere regime irriguo attuale")
        recommendations.append("Monitorare evoluzione NDMI")

    return recommendations[:MAX_RECOMMENDATIONS]


__all__ = [
    "WeatherStressAlert",
    "GrowthProgress",
    "calculate_growing_degree_days",
    "calculate_heat_stress_index",
    "calculate_cold_stress_index",
    "analyze_weather_stress",
    "calculate_optimal_growth_progress",
    "generate_weather_based_recommendations",
]
