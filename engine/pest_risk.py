"""Phytosanitary risk from pathogen weather windows and canopy vulnerability."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from campo_agent.crop_tables import FALLBACK_CROP, normalise_crop
from engine.series import VegetationPoint, index_values
from engine.summary import WeatherData


@dataclass(frozen=True)
class WeatherTrigger:
    temp_min: float
    temp_max: float
    humidity_min: float
    rainfall_mm: float


CROP_PEST_PROFILES = {
    "wheat": {
        "weather_triggers": {
            "Septoria": WeatherTrigger(15, 25, 80, 15),
            "Ruggine": WeatherTrigger(15, 22, 85, 20),
            "Fusariosi": WeatherTrigger(20, 30, 75, 10),
            "Oidio": WeatherTrigger(15, 28, 50, 5),
        },
        "ndvi_vulnerability_threshold": 0.6,
    },
    "wine": {
        "weather_triggers": {
            "Peronospora": WeatherTrigger(12, 25, 85, 25),
            "Oidio": WeatherTrigger(20, 27, 40, 0),
            "Botrite": WeatherTrigger(15, 25, 90, 30),
            "Escoriosi": WeatherTrigger(8, 15, 80, 20),
        },
        "ndvi_vulnerability_threshold": 0.65,
    },
    "olive": {
        "weather_triggers": {
            "Occhio di pavone": WeatherTrigger(15, 24, 85, 20),
            "Rogna": WeatherTrigger(20, 30, 60, 10),
            "Lebbra": WeatherTrigger(18, 26, 75, 15),
            "Mosca olearia": WeatherTrigger(22, 30, 70, 5),
        },
        "ndvi_vulnerability_threshold": 0.55,
    },
    "sunflower": {
        "weather_triggers": {
            "Sclerotinia": WeatherTrigger(15, 25, 80, 25),
            "Alternaria": WeatherTrigger(25, 35, 60, 5),
            "Peronospora": WeatherTrigger(12, 22, 90, 30),
            "Verticillium": WeatherTrigger(20, 28, 70, 10),
        },
        "ndvi_vulnerability_threshold": 0.7,
    },
}

FUNGI = ("Septoria", "Ruggine", "Fusariosi", "Oidio", "Peronospora", "Botrite", "Sclerotinia", "Alternaria")
INSECTS = ("Mosca olearia", "Afidi", "Tripidi")
# Ventilation dries the canopy and suppresses these pathogens.
WIND_SENSITIVE = ("Oidio", "Botrite")

TREATMENTS = {
    "Septoria": ("Fungicida triazolico", "45-60 €/ha"),
    "Ruggine": ("Fungicida strobilurina", "40-55 €/ha"),
    "Fusariosi": ("Fungicida tebuconazolo", "50-70 €/ha"),
    "Oidio": ("Fungicida zolfo bagnabile", "25-35 €/ha"),
    "Peronospora": ("Fungicida rameico", "30-45 €/ha"),
    "Botrite": ("Fungicida botricida", "60-80 €/ha"),
    "Sclerotinia": ("Fungicida iprodione", "55-75 €/ha"),
    "Mosca olearia": ("Insetticida deltametrina", "35-50 €/ha"),
}
DEFAULT_TREATMENT = ("Fungicida generico", "40-60 €/ha")


@dataclass
class PathogenWeatherRisk:
    pathogen: str
    risk_score: float
    conditions_met: list[str] = field(default_factory=list)


@dataclass
class VegetationVulnerability:
    vulnerability_score: float
    indicators: list[str] = field(default_factory=list)


@dataclass
class PestDiseaseRisk:
    risk_type: str
    pathogen_name: str
    risk_level: str
    probability: float
    severity_potential: float
    weather_conditions: list[str]
    ndvi_indicators: list[str]
    prevention_window_days: int
    economic_impact_percent: int


@dataclass
class PreventiveTreatment:
    product_type: str
    timing: str
    priority: str
    cost_estimate: str


@dataclass
class PhytosanitaryAnalysis:
    overall_risk_score: int
    dominant_risks: list[PestDiseaseRisk]
    weather_stress_factors: list[str]
    vegetation_vulnerability: list[str]
    immediate_actions: list[str]
    preventive_treatments: list[PreventiveTreatment]


def _profile(crop: str) -> dict:
    return CROP_PEST_PROFILES.get(normalise_crop(crop), CROP_PEST_PROFILES[FALLBACK_CROP])


def calculate_weather_risk(weather: WeatherData, crop: str) -> list[PathogenWeatherRisk]:
    """Score each pathogen of the crop against the period's weather, highest first."""

    results: list[PathogenWeatherRisk] = []
    for pathogen, trigger in _profile(crop)["weather_triggers"].items():
        conditions: list[str] = []
        score = 0.0
        if trigger.temp_min <= weather.temperature_avg <= trigger.temp_max:
            conditions.append("Temperatura favorevole")
            score += 30
        if weather.humidity_avg >= trigger.humidity_min:
            conditions.append("Umidità elevata")
            score += 25
        if weather.precipitation_total >= trigger.rainfall_mm:
            conditions.append("Precipitazioni sufficienti")
            score += 25
        if weather.wind_speed_avg > 5 and pathogen in WIND_SENSITIVE:
            score -= 15
            conditions.append("Ventilazione riduce rischio")
        results.append(PathogenWeatherRisk(pathogen, max(0.0, min(100.0, score)), conditions))
    return sorted(results, key=lambda r: -r.risk_score)


def assess_vegetation_vulnerability(points: Sequence[VegetationPoint], crop: str) -> VegetationVulnerability:
    recent = list(points)[-5:]
    ndvi = index_values(recent, "ndvi")
    if not ndvi:
        return VegetationVulnerability(0.0, [])

    threshold = _profile(crop)["ndvi_vulnerability_threshold"]
    indicators: list[str] = []
    score = 0.0

    avg_ndvi = sum(ndvi) / len(ndvi)
    if avg_ndvi < threshold:
        score += 30
        indicators.append("NDVI sotto soglia critica")

    variance = sum((v - avg_ndvi) ** 2 for v in ndvi) / len(ndvi)
    if variance > 0.01:
        score += 20
        indicators.append("Elevata variabilità NDVI")

    if len(ndvi) >= 3 and (ndvi[-1] - ndvi[0]) / len(ndvi) < -0.01:
        score += 25
        indicators.append("Trend NDVI in diminuzione")

    ndmi = index_values(recent, "ndmi")
    if ndmi and sum(ndmi) / len(ndmi) < 0.2:
        score += 15
        indicators.append("Stress idrico aumenta vulnerabilità")

    return VegetationVulnerability(min(100.0, score), indicators)


def _pathogen_type(pathogen: str) -> str:
    if any(name in pathogen for name in FUNGI):
        return "fungi"
    if any(name in pathogen for name in INSECTS):
        return "insects"
    return "abiotic"


def _risk_level(score: float) -> str:
    if score >= 70:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 30:
        return "medium"
    return "low"


def analyze_phytosanitary_risk(
    points: Sequence[VegetationPoint],
    weather: WeatherData,
    crop: str,
) -> PhytosanitaryAnalysis:
    weather_risks = calculate_weather_risk(weather, crop)
    vulnerability = assess_vegetation_vulnerability(points, crop)

    dominant: list[PestDiseaseRisk] = []
    for risk in weather_risks[:3]:
        level = _risk_level(risk.risk_score)
        dominant.append(
            PestDiseaseRisk(
                risk_type=_pathogen_type(risk.pathogen),
                pathogen_name=risk.pathogen,
                risk_level=level,
                probability=risk.risk_score,
                severity_potential=min(100.0, risk.risk_score + vulnerability.vulnerability_score * 0.3),
                weather_conditions=risk.conditions_met,
                ndvi_indicators=list(vulnerability.indicators),
                prevention_window_days={"critical": 3, "high": 7}.get(level, 14),
                economic_impact_percent={"critical": 25, "high": 15}.get(level, 8),
            )
        )

    mean_weather = sum(r.risk_score for r in weather_risks) / len(weather_risks)
    overall = round(mean_weather * 0.7 + vulnerability.vulnerability_score * 0.3)

    actions: list[str] = []
    critical = [r for r in dominant if r.risk_level == "critical"]
    if critical:
        actions.append(f"Trattamento urgente contro {critical[0].pathogen_name}")
        actions.append("Intensifica monitoraggio campo")

    treatments: list[PreventiveTreatment] = []
    for risk in dominant:
        product, cost = TREATMENTS.get(risk.pathogen_name, DEFAULT_TREATMENT)
        if risk.prevention_window_days <= 3:
            timing = "Immediato"
        elif risk.prevention_window_days <= 7:
            timing = "Entro settimana"
        else:
            timing = "Programmato"
        priority = {"critical": "high", "high": "medium"}.get(risk.risk_level, "low")
        treatments.append(PreventiveTreatment(product, timing, priority, cost))

    return PhytosanitaryAnalysis(
        overall_risk_score=overall,
        dominant_risks=dominant,
        weather_stress_factors=[r.pathogen for r in weather_risks if r.risk_score > 40],
        vegetation_vulnerability=list(vulnerability.indicators),
        immediate_actions=actions,
        preventive_treatments=treatments,
    )


__all__ = [
    "CROP_PEST_PROFILES",
    "WeatherTrigger",
    "PathogenWeatherRisk",
    "VegetationVulnerability",
    "PestDiseaseRisk",
    "PreventiveTreatment",
    "PhytosanitaryAnalysis",
    "calculate_weather_risk",
    "assess_vegetation_vulnerability",
    "analyze_phytosanitary_risk",
]
