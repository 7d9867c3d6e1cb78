"""Agent-facing helpers for insight, rule and alert generation."""

from __future__ import annotations

from .insight_engine import build_field_report, build_insights
from .intelligent_alerts import generate_intelligent_alerts, prioritize_alerts
from .rule_engine import apply_rules

__all__ = [
    "apply_rules",
    "build_field_report",
    "build_insights",
    "generate_intelligent_alerts",
    "prioritize_alerts",
]
