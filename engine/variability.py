"""Vigor zones, field uniformity and scouting plans derived from the NDVI series."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from engine.series import VegetationPoint, index_values

# Ordered from most to least vigorous.
VIGOR_THRESHOLDS = {
    "very_high": 0.8,
    "high": 0.7,
    "medium": 0.6,
    "low": 0.4,
    "very_low": 0.0,
}
VIGOR_LEVELS = list(VIGOR_THRESHOLDS)

MAIN_ZONE_SHARE = 60
LOWER_ZONE_SHARE = 25
HIGHER_ZONE_SHARE = 15

_PRIORITY = {"very_low": "immediate", "low": "high", "medium": "medium", "high": "low", "very_high": "low"}
_SCOUTING = {"very_low": "daily", "low": "weekly", "medium": "biweekly", "high": "biweekly", "very_high": "monthly"}
_INSPECTION_DAYS = {"daily": 1, "weekly": 7, "biweekly": 14, "monthly": 30}
_DESCRIPTIONS = {
    "very_high": "Vigore eccellente - Condizioni ottimali",
    "high": "Vigore elevato - Performance superiori",
    "medium": "Vigore normale - Sviluppo standard",
    "low": "Vigore ridotto - Necessita interventi",
    "very_low": "Vigore critico - Intervento urgente",
}
_ACTIONS = {
    "very_low": [
        "Analisi suolo urgente",
        "Verifica sistema irrigazione",
        "Controllo malattie e parassiti",
        "Fertilizzazione correttiva immediata",
    ],
    "low": [
        "Fertilizzazione azotata supplementare",
        "Aumento frequenza irrigazione",
        "Monitoraggio stress abiotici",
        "Trattamenti fogliari nutritivi",
    ],
    "medium": [
        "Mantenimento programma standard",
        "Monitoraggio regolare",
        "Ottimizzazione input secondo necessità",
    ],
    "high": [
        "Conferma programma attuale",
        "Monitoraggio per mantenimento livelli",
        "Possibile riduzione input",
    ],
    "very_high": [
        "Mantenimento condizioni ottimali",
        "Monitoraggio per prevenire eccessi",
        "Modello di riferimento per altre zone",
    ],
}
_FOCUS = {
    "very_low": ["Sintomi stress", "Malattie", "Parassiti", "Condizioni suolo"],
    "low": ["Nutrizione", "Irrigazione", "Sviluppo vegetativo"],
    "medium": ["Uniformità", "Stato generale"],
    "high": ["Mantenimento condizioni", "Possibili eccessi"],
    "very_high": ["Stabilità performance", "Parametri qualitativi"],
}


@dataclass
class VigorZone:
    zone_id: str
    vigor_class: str
    avg_ndvi: float
    area_percentage: float
    description: str
    management_priority: str
    recommended_actions: list[str]
    scouting_frequency: str


@dataclass
class SpatialTrends:
    dominant_pattern: str
    variability_coefficient: float
    hot_spots: int
    cold_spots: int


@dataclass
class VariabilityAnalysis:
    overall_uniformity: int
    vigor_zones: list[VigorZone]
    spatial_trends: SpatialTrends
    management_recommendations: dict[str, list[str]]
    economic_optimization: dict[str, object]


@dataclass
class InspectionItem:
    zone_id: str
    next_inspection_days: int
    inspection_type: str
    focus_areas: list[str]


@dataclass
class ScoutingPlan:
    priority_zones: list[str]
    inspection_schedule: list[InspectionItem] = field(default_factory=list)
    resource_allocation: dict[str, int] = field(default_factory=dict)


def vigor_class(ndvi: float) -> str:
    for level, threshold in VIGOR_THRESHOLDS.items():
        if ndvi >= threshold:
            return level
    return "very_low"


def _zone(level: str, ndvi: float, share: float, role: str) -> VigorZone:
    return VigorZone(
        zone_id=f"zone_{level}_{role}",
        vigor_class=level,
        avg_ndvi=round(ndvi, 3),
        area_percentage=share,
        description=_DESCRIPTIONS[level],
        management_priority=_PRIORITY[level],
        recommended_actions=list(_ACTIONS[level]),
        scouting_frequency=_SCOUTING[level],
    )


def classify_vigor_zones(points: Sequence[VegetationPoint], crop: str) -> list[VigorZone]:
    """Approximate spatial vigor classes from the recent field-mean NDVI.

    Only the field mean is observed, so the split is synthetic: a main zone
    in the class of the recent mean plus a stressed zone one class below and
    a vigorous zone one class above. When the main class sits at either end
    of the scale the missing neighbour's share goes to the main zone.
    """

    recent = index_values(list(points)[-3:], "ndvi")
    if not recent:
        return []
    avg = sum(recent) / len(recent)
    main = vigor_class(avg)
    position = VIGOR_LEVELS.index(main)

    main_share = MAIN_ZONE_SHARE
    neighbours: list[VigorZone] = []
    if position + 1 < len(VIGOR_LEVELS):
        neighbours.append(_zone(VIGOR_LEVELS[position + 1], avg * 0.8, LOWER_ZONE_SHARE, "lower"))
    else:
        main_share += LOWER_ZONE_SHARE
    if position > 0:
        neighbours.append(_zone(VIGOR_LEVELS[position - 1], min(0.95, avg * 1.15), HIGHER_ZONE_SHARE, "higher"))
    else:
        main_share += HIGHER_ZONE_SHARE
    return [_zone(main, avg, main_share, "main"), *neighbours]


def analyze_field_variability(points: Sequence[VegetationPoint], crop: str) -> VariabilityAnalysis:
    zones = classify_vigor_zones(points, crop)

    values = index_values(list(points)[-5:], "ndvi")
    avg = sum(values) / len(values) if values else 0.0
    variance = sum((v - avg) ** 2 for v in values) / len(values) if values else 0.0
    coefficient = variance / (avg * avg) if avg else 0.0
    uniformity = max(0.0, 100 - coefficient * 1000)

    low_zones = [z for z in zones if z.vigor_class in ("low", "very_low")]
    high_zones = [z for z in zones if z.vigor_class in ("high", "very_high")]

    pattern = "uniform"
    if coefficient > 0.15:
        pattern = "patchy"
    elif coefficient > 0.08:
        pattern = "gradient"

    zone_specific = [
        f"Zona {z.vigor_class}: {z.recommended_actions[0]}"
        for z in zones
        if z.management_priority in ("immediate", "high")
    ]
    field_level = [
        "Implementare gestione a rateo variabile" if uniformity < 70 else "Mantenere gestione uniforme",
        "Priorità su zone a basso vigore" if low_zones else "Ottimizzazione generale performance",
    ]
    monitoring = [f"Controllo giornaliero zona {z.vigor_class}" for z in zones if z.scouting_frequency == "daily"]
    monitoring += [f"Controllo settimanale zona {z.vigor_class}" for z in zones if z.scouting_frequency == "weekly"]

    high_potential = sum(z.area_percentage for z in high_zones)
    return VariabilityAnalysis(
        overall_uniformity=round(uniformity),
        vigor_zones=zones,
        spatial_trends=SpatialTrends(
            dominant_pattern=pattern,
            variability_coefficient=round(coefficient, 3),
            hot_spots=len(high_zones),
            cold_spots=len(low_zones),
        ),
        management_recommendations={
            "zone_specific": zone_specific,
            "field_level": field_level,
            "monitoring_priorities": monitoring[:3],
        },
        economic_optimization={
            "high_potential_areas_percent": round(high_potential),
            "investment_priorities": [
                "Recupero zone sottoperformanti" if low_zones else "Ottimizzazione zone standard",
                "Miglioramento condizioni generali" if high_potential < 30 else "Mantenimento zone eccellenti",
            ],
            "expected_improvement_percent": min(25.0, max(5.0, (100 - uniformity) / 2)),
        },
    )


def _inspection_type(level: str) -> str:
    if level in ("very_low", "low"):
        return "detailed"
    if level == "medium":
        return "sampling"
    return "visual"


def generate_scouting_plan(analysis: VariabilityAnalysis, crop: str) -> ScoutingPlan:
    zones = analysis.vigor_zones
    urgent = [z for z in zones if z.management_priority in ("immediate", "high")]
    medium = [z for z in zones if z.management_priority == "medium"]

    schedule = [
        InspectionItem(
            zone_id=z.zone_id,
            next_inspection_days=_INSPECTION_DAYS[z.scouting_frequency],
            inspection_type=_inspection_type(z.vigor_class),
            focus_areas=list(_FOCUS[z.vigor_class]),
        )
        for z in zones
    ]

    total = len(zones)
    high_pct = round(len(urgent) / total * 60) if total else 0
    medium_pct = round(len(medium) / total * 30) if total else 0
    low_pct = 100 - high_pct - medium_pct
    return ScoutingPlan(
        priority_zones=[z.zone_id for z in urgent],
        inspection_schedule=schedule,
        resource_allocation={
            "high_priority_time_percent": max(20, high_pct),
            "medium_priority_time_percent": max(15, medium_pct),
            "low_priority_time_percent": max(10, low_pct),
        },
    )


__all__ = [
    "VIGOR_THRESHOLDS",
    "VigorZone",
    "SpatialTrends",
    "VariabilityAnalysis",
    "InspectionItem",
    "ScoutingPlan",
    "vigor_class",
    "classify_vigor_zones",
    "analyze_field_variability",
    "generate_scouting_plan",
]
