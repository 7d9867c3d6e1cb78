"""Declarative threshold rules evaluated against one snapshot row at a time.

Default rules cover the field indices and the summary-level stress figures.
Field profiles may add rules or replace a default by reusing its id::

    rules:
      - id: spring_rain_deficit
        label: Deficit di pioggia in fase di levata
        critical: true
        when:
          all:
            - {var: precipitation_deficit_mm, op: ">", value: 50}
          any:
            - {var: ndmi, op: "<", value: 0.3}
"""

from __future__ import annotations

import math
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

RuleOverrides = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]

SNAPSHOT_KEYS = (
    "ndvi",
    "ndmi",
    "reci",
    "ndvi_trend_30d",
    "ndmi_trend_14d",
    "temperature_stress_days",
    "precipitation_deficit_mm",
    "soil_moisture_index",
)

_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "abs>": lambda value, threshold: abs(value) > threshold,
}


def _number(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


@dataclass
class RuleCondition:
    var: str
    op: str
    value: Any

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RuleCondition":
        if "var" not in payload:
            raise KeyError(f"Rule condition missing required key: 'var' ({payload!r})")
        return cls(var=str(payload["var"]), op=str(payload.get("op", "<")), value=payload.get("value"))

    def matches(self, row: Mapping[str, Any]) -> bool:
        value = _number(row.get(self.var))
        if value is None:
            return False
        if self.op == "between":
            if not isinstance(self.value, (list, tuple)) or len(self.value) != 2:
                return False
            low, high = _number(self.value[0]), _number(self.value[1])
            return low is not None and high is not None and low <= value <= high
        compare = _COMPARATORS.get(self.op)
        threshold = _number(self.value)
        if compare is None or threshold is None:
            return False
        return compare(value, threshold)


@dataclass
class Rule:
    id: str
    label: str
    conditions_all: list[RuleCondition] = field(default_factory=list)
    conditions_any: list[RuleCondition] = field(default_factory=list)
    critical: bool = False

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Any]) -> "Rule":
        if not isinstance(spec, Mapping):
            raise ValueError(f"Rule override must be a mapping, got {spec!r}")
        if not spec.get("id"):
            raise KeyError("Rule override missing required key: 'id'")
        when = spec.get("when") or {}
        return cls(
            id=str(spec["id"]),
            label=str(spec.get("label", spec["id"])),
            conditions_all=[RuleCondition.from_mapping(c) for c in when.get("all", [])],
            conditions_any=[RuleCondition.from_mapping(c) for c in when.get("any", [])],
            critical=bool(spec.get("critical", False)),
        )

    def matches(self, row: Mapping[str, Any]) -> bool:
        if not all(cond.matches(row) for cond in self.conditions_all):
            return False
        return not self.conditions_any or any(cond.matches(row) for cond in self.conditions_any)

    def describe(self, row: Mapping[str, Any]) -> str:
        """Label followed by the observed value of each ``all`` condition."""
        parts = [self.label]
        for cond in self.conditions_all:
            value = _number(row.get(cond.var))
            if value is not None:
                parts.append(f"{cond.var}={value:.2f}")
        return "; ".join(parts)


@dataclass(frozen=True)
class RuleHit:
    rule_id: str
    message: str
    critical: bool


def _threshold(rule_id: str, label: str, var: str, op: str, value: float, critical: bool = False) -> Rule:
    return Rule(rule_id, label, [RuleCondition(var, op, value)], critical=critical)


DEFAULT_RULES: list[Rule] = [
    _threshold("canopy_collapse", "NDVI sotto la soglia critica", "ndvi", "<", 0.3, critical=True),
    _threshold("water_stress", "NDMI indica stress idrico grave", "ndmi", "<", 0.15, critical=True),
    _threshold("vigor_decline", "NDVI in calo nell'ultimo mese", "ndvi_trend_30d", "<", -15.0),
    _threshold("moisture_decline", "NDMI in rapido calo", "ndmi_trend_14d", "<", -20.0),
    _threshold("low_nitrogen", "ReCI basso, possibile carenza di azoto", "reci", "<", 1.2),
    _threshold("heat_stress", "Giorni di stress termico ripetuti", "temperature_stress_days", ">=", 5),
    _threshold("rain_deficit", "Deficit di pioggia negli ultimi 30 giorni", "precipitation_deficit_mm", ">", 40.0),
    _threshold(
        "soil_dryness", "Umidità del suolo sotto la soglia sostenibile", "soil_moisture_index", "<", 0.3, critical=True
    ),
]

CRITICAL_RULES = frozenset(rule.id for rule in DEFAULT_RULES if rule.critical)


def load_rules(rule_overrides: RuleOverrides = None) -> list[Rule]:
    """Default rules with profile overrides applied by id, new ids appended."""

    raw: Iterable[Mapping[str, Any]] = ()
    if isinstance(rule_overrides, Mapping):
        raw = rule_overrides["rules"] if "rules" in rule_overrides else [rule_overrides]
    elif rule_overrides:
        raw = rule_overrides

    rules = {rule.id: rule for rule in DEFAULT_RULES}
    for spec in raw:
        rule = Rule.from_mapping(spec)
        rules[rule.id] = rule
    return list(rules.values())


def critical_rule_ids(rule_overrides: RuleOverrides = None) -> set[str]:
    return {rule.id for rule in load_rules(rule_overrides) if rule.critical}


def evaluate_rules_row(row: Mapping[str, Any], rule_overrides: RuleOverrides = None) -> list[RuleHit]:
    """Evaluate every rule against *row* and return the hits in rule order."""

    values = {str(key): value for key, value in row.items()}
    return [
        RuleHit(rule.id, rule.describe(values), rule.critical)
        for rule in load_rules(rule_overrides)
        if rule.matches(values)
    ]


__all__ = [
    "CRITICAL_RULES",
    "DEFAULT_RULES",
    "SNAPSHOT_KEYS",
    "Rule",
    "RuleCondition",
    "RuleHit",
    "critical_rule_ids",
    "evaluate_rules_row",
    "load_rules",
]
