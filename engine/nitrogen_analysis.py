"""Nitrogen status from the red-edge chlorophyll index (ReCI)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from campo_agent.crop_tables import crop_thresholds

FERTILIZER_COST_PER_KG = 1.2
APPLICATION_COST = 25.0
DAYS_TO_HARVEST = 120
YIELD_IMPROVEMENT = {"deficient": 0.20, "low": 0.15, "medium": 0.08, "high": 0.02}


@dataclass
class FertilizationPlan:
    needed: bool
    timing: str
    amount: str
    types: list[str] = field(default_factory=list)


@dataclass
class NitrogenStatus:
    level: str
    description: str
    recommendations: list[str]
    fertilization: FertilizationPlan


@dataclass
class NitrogenAlert:
    severity: str
    title: str
    description: str
    action: str
    economic_impact: str
    urgency_days: int


@dataclass
class FertilizationROI:
    cost: float
    expected_benefit: float
    roi: float
    payback_days: float


def get_nitrogen_status(reci: float, crop: str) -> NitrogenStatus:
    reci_t = crop_thresholds(crop)["reci"]
    if reci >= reci_t["high_nitrogen"]:
        return NitrogenStatus(
            "high",
            "Livelli di azoto ottimali",
            ["Mantieni il programma di fertilizzazione attuale", "Monitora per evitare eccessi"],
            FertilizationPlan(False, "Non necessaria", "0 kg/ha", []),
        )
    if reci >= reci_t["medium_nitrogen"]:
        return NitrogenStatus(
            "medium",
            "Livelli di azoto moderati",
            ["Considera fertilizzazione supplementare", "Monitora l'evoluzione nelle prossime settimane"],
            FertilizationPlan(True, "Entro 10-15 giorni", "30-50 kg/ha", ["Urea", "Nitrato di ammonio"]),
        )
    if reci >= reci_t["low_nitrogen"]:
        return NitrogenStatus(
            "low",
            "Carenza di azoto moderata",
            ["Fertilizzazione azotata necessaria", "Considera applicazione fogliare per risultati rapidi"],
            FertilizationPlan(
                True, "Entro 7 giorni", "50-80 kg/ha", ["Urea", "Nitrato di ammonio", "Fertilizzante fogliare"]
            ),
        )
    return NitrogenStatus(
        "deficient",
        "Carenza severa di azoto",
        [
            "Intervento urgente necessario",
            "Combina fertilizzazione al suolo e fogliare",
            "Monitora giornalmente l'evoluzione",
        ],
        FertilizationPlan(
            True,
            "Immediata (entro 2-3 giorni)",
            "80-120 kg/ha",
            ["Urea", "Nitrato di ammonio", "Fertilizzante fogliare", "Fertilizzante liquido"],
        ),
    )


def get_nitrogen_alert(current_reci: float, previous_reci: float | None, crop: str) -> NitrogenAlert:
    """Alert severity from the current level and the change since the previous reading."""

    status = get_nitrogen_status(current_reci, crop)
    trend = current_reci - previous_reci if previous_reci else 0.0
    reading = f"ReCI: {current_reci:.2f}"

    if status.level == "deficient" or (status.level == "low" and trend < -0.1):
        return NitrogenAlert(
            severity="critical",
            title="Carenza Azoto Critica",
            description=f"{reading} - Livelli di azoto insufficienti per crescita ottimale",
            action="Fertilizzazione urgente necessaria",
            economic_impact=(
                "Perdita potenziale: 15-25% della resa" if trend < -0.1 else "Perdita potenziale: 10-15% della resa"
            ),
            urgency_days=3,
        )
    if status.level == "low" or trend < -0.05:
        return NitrogenAlert(
            severity="warning",
            title="Attenzione: Livelli Azoto Bassi",
            description=f"{reading} - Tendenza verso carenza nutrizionale",
            action="Pianifica fertilizzazione entro 7 giorni",
            economic_impact="Perdita potenziale: 5-10% della resa",
            urgency_days=7,
        )
    if status.level == "medium" and trend > 0:
        return NitrogenAlert(
            severity="info",
            title="Nutrizione in Miglioramento",
            description=f"{reading} - Livelli di azoto in crescita",
            action="Continua monitoraggio",
            economic_impact="Trend positivo per ottimizzazione resa",
            urgency_days=14,
        )
    return NitrogenAlert(
        severity="none",
        title="Livelli Azoto Stabili",
        description=f"{reading} - Situazione nutrizionale sotto controllo",
        action="Mantieni programma attuale",
        economic_impact="Nessun impatto negativo previsto",
        urgency_days=30,
    )


def _mean_amount(amount: str) -> float:
    match = re.search(r"(\d+)-?(\d+)?", amount)
    if not match:
        return 50.0
    low = int(match.group(1))
    high = int(match.group(2)) if match.group(2) else low
    return (low + high) / 2


def calculate_fertilization_roi(
    status: NitrogenStatus,
    expected_yield_t_ha: float,
    price_eur_t: float,
) -> FertilizationROI:
    """Cost, benefit and payback of the recommended nitrogen application."""

    if not status.fertilization.needed:
        return FertilizationROI(0.0, 0.0, 0.0, 0.0)

    cost = _mean_amount(status.fertilization.amount) * FERTILIZER_COST_PER_KG + APPLICATION_COST
    improvement = YIELD_IMPROVEMENT.get(status.level, 0.0)
    benefit = expected_yield_t_ha * improvement * price_eur_t * 1000
    roi = (benefit - cost) / cost
    payback = cost / (benefit / DAYS_TO_HARVEST) if benefit > 0 else float(DAYS_TO_HARVEST)
    return FertilizationROI(
        cost=cost,
        expected_benefit=benefit,
        roi=roi,
        payback_days=min(payback, float(DAYS_TO_HARVEST)),
    )


__all__ = [
    "FertilizationPlan",
    "NitrogenStatus",
    "NitrogenAlert",
    "FertilizationROI",
    "get_nitrogen_status",
    "get_nitrogen_alert",
    "calculate_fertilization_roi",
]
