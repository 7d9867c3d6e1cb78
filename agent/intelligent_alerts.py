"""Multi-factor field alerts with yield-loss and intervention economics."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from campo_agent.crop_tables import expected_ndvi, normalise_crop
from engine.eos_analysis import get_water_stress_alert
from engine.nitrogen_analysis import get_nitrogen_alert
from engine.series import VegetationPoint, as_date, index_values
from engine.summary import FieldSummary

DEFAULT_MARKET_PRICE = 250.0
AVERAGE_YIELD_T_HA = 5
SEVERITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
SEVERITY_WEIGHT = {"low": 5, "medium": 15, "high": 25, "critical": 40}
IMMEDIATE_HOURS = 48


@dataclass
class AlertImpact:
    yield_loss_percent: float
    economic_loss_eur_ha: float
    time_sensitive: bool = True


@dataclass
class AlertRecommendation:
    action: str
    urgency_hours: int
    cost_eur_ha: float
    expected_roi: float


@dataclass
class AlertTrigger:
    threshold_value: float
    current_value: float
    trend_direction: str


@dataclass
class CriticalAlert:
    id: str
    type: str
    severity: str
    title: str
    description: str
    impact: AlertImpact
    recommendation: AlertRecommendation
    triggers: AlertTrigger
    created_at: str


@dataclass
class EconomicSummary:
    potential_loss: float = 0.0
    intervention_cost: float = 0.0
    net_benefit: float = 0.0


@dataclass
class AlertsBundle:
    critical_alerts: list[CriticalAlert] = field(default_factory=list)
    total_risk_score: int = 0
    immediate_actions: list[str] = field(default_factory=list)
    economic_summary: EconomicSummary = field(default_factory=EconomicSummary)


def _stable_id(*parts: str) -> str:
    raw = "|".join([p or "" for p in parts])
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:14]


def _loss_eur(loss_percent: float, price: float) -> float:
    return loss_percent * 0.01 * AVERAGE_YIELD_T_HA * price


def _water_alert(summary: FieldSummary, crop: str, price: float, key: str, created: str) -> CriticalAlert | None:
    ndmi = summary.ndmi_data.current_value or 0.0
    if ndmi >= 0.2:
        return None
    water = get_water_stress_alert(ndmi, None, crop)
    if water.urgency < 3:
        return None
    loss = water.urgency * 5
    return CriticalAlert(
        id=f"water_{_stable_id('water_stress', key)}",
        type="water_stress",
        severity="critical" if water.urgency >= 4 else "high",
        title="Stress Idrico Rilevato",
        description=f"NDMI: {ndmi:.3f} - {water.description}",
        impact=AlertImpact(loss, _loss_eur(loss, price)),
        recommendation=AlertRecommendation(
            action="Irrigazione immediata 25-35mm",
            urgency_hours=24 if water.urgency >= 4 else 48,
            cost_eur_ha=45,
            expected_roi=3.5,
        ),
        triggers=AlertTrigger(0.25, ndmi, "worsening"),
        created_at=created,
    )


def _nitrogen_alert(
    points: Sequence[VegetationPoint], crop: str, price: float, key: str, created: str
) -> CriticalAlert | None:
    if not points or not points[-1].reci:
        return None
    current = points[-1].reci
    previous = points[-2].reci if len(points) > 1 else None
    nitrogen = get_nitrogen_alert(current, previous, crop)
    if nitrogen.severity not in ("critical", "warning"):
        return None
    critical = nitrogen.severity == "critical"
    loss = 20 if critical else 10
    return CriticalAlert(
        id=f"nitrogen_{_stable_id('nitrogen_deficiency', key)}",
        type="nitrogen_deficiency",
        severity="critical" if critical else "medium",
        title=nitrogen.title,
        description=nitrogen.description,
        impact=AlertImpact(loss, _loss_eur(loss, price)),
        recommendation=AlertRecommendation(
            action=nitrogen.action,
            urgency_hours=nitrogen.urgency_days * 24,
            cost_eur_ha=75,
            expected_roi=2.8,
        ),
        triggers=AlertTrigger(1.2, current, "worsening" if previous and current < previous else "stable"),
        created_at=created,
    )


def _growth_alert(
    points: Sequence[VegetationPoint], crop: str, price: float, month: int, key: str, created: str
) -> CriticalAlert | None:
    if len(points) < 3:
        return None
    recent = index_values(list(points)[-3:], "ndvi")
    if not recent:
        return None
    avg_recent = sum(recent) / len(recent)
    expected = expected_ndvi(crop, month)
    if avg_recent >= expected * 0.8:
        return None
    gap = (expected - avg_recent) / expected
    return CriticalAlert(
        id=f"growth_{_stable_id('growth_anomaly', key)}",
        type="growth_anomaly",
        severity="high" if avg_recent < expected * 0.6 else "medium",
        title="Anomalia nella Crescita",
        description=f"NDVI medio recente: {avg_recent:.3f} vs atteso: {expected:.3f}",
        impact=AlertImpact(gap * 100, gap * AVERAGE_YIELD_T_HA * price),
        recommendation=AlertRecommendation(
            action="Ispezione campo + analisi fogliare",
            urgency_hours=72,
            cost_eur_ha=35,
            expected_roi=4.2,
        ),
        triggers=AlertTrigger(expected * 0.8, avg_recent, "worsening" if recent[-1] < recent[0] else "stable"),
        created_at=created,
    )


def _weather_alert(summary: FieldSummary, price: float, key: str, created: str) -> CriticalAlert | None:
    risks = summary.weather_risks
    stress_days = risks.temperature_stress_days or 0
    if risks.heat_stress_risk != "high" and stress_days <= 3:
        return None
    return CriticalAlert(
        id=f"weather_{_stable_id('weather_risk', key)}",
        type="weather_risk",
        severity="high",
        title="Rischio Stress Termico",
        description=f"Rilevato alto rischio di stress da calore con {stress_days} giorni critici",
        impact=AlertImpact(8, _loss_eur(8, price)),
        recommendation=AlertRecommendation(
            action="Irrigazione preventiva + ombreggiamento",
            urgency_hours=48,
            cost_eur_ha=60,
            expected_roi=2.1,
        ),
        triggers=AlertTrigger(3, stress_days, "worsening"),
        created_at=created,
    )


def generate_intelligent_alerts(
    summary: FieldSummary,
    points: Sequence[VegetationPoint],
    crop: str,
    market_price: float = DEFAULT_MARKET_PRICE,
    reference_date: date | str | None = None,
) -> AlertsBundle:
    """Run the water, nitrogen, growth and weather checks and total their risk.

    Alert ids hash the alert type, crop and reference date so repeated runs
    over the same inputs produce the same ids.
    """

    crop = normalise_crop(crop)
    ref = as_date(reference_date) or date.today()
    created = ref.isoformat()
    key = f"{crop}|{created}"
    points = list(points)

    candidates = [
        _water_alert(summary, crop, market_price, key, created),
        _nitrogen_alert(points, crop, market_price, key, created),
        _growth_alert(points, crop, market_price, ref.month, key, created),
        _weather_alert(summary, market_price, key, created),
    ]
    alerts = [alert for alert in candidates if alert is not None]

    economic = EconomicSummary()
    for alert in alerts:
        economic.potential_loss += alert.impact.economic_loss_eur_ha
        economic.intervention_cost += alert.recommendation.cost_eur_ha
        economic.net_benefit += alert.impact.economic_loss_eur_ha - alert.recommendation.cost_eur_ha

    actions: list[str] = []
    for alert in alerts:
        action = alert.recommendation.action
        if alert.recommendation.urgency_hours <= IMMEDIATE_HOURS and action not in actions:
            actions.append(action)

    return AlertsBundle(
        critical_alerts=sorted(alerts, key=lambda a: -SEVERITY_ORDER[a.severity]),
        total_risk_score=min(100, sum(SEVERITY_WEIGHT[a.severity] for a in alerts)),
        immediate_actions=actions,
        economic_summary=economic,
    )


def prioritize_alerts(alerts: Sequence[CriticalAlert]) -> list[CriticalAlert]:
    """Order by severity, then economic loss (largest first), then urgency."""

    return sorted(
        alerts,
        key=lambda a: (
            -SEVERITY_ORDER[a.severity],
            -a.impact.economic_loss_eur_ha,
            a.recommendation.urgency_hours,
        ),
    )


__all__ = [
    "AlertImpact",
    "AlertRecommendation",
    "AlertTrigger",
    "CriticalAlert",
    "EconomicSummary",
    "AlertsBundle",
    "generate_intelligent_alerts",
    "prioritize_alerts",
]
