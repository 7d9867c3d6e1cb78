"""Rule evaluation for a single snapshot, shaped for JSON consumers."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from agent.rules.engine import evaluate_rules_row


def apply_rules(
    snapshot_row: Mapping[str, Any] | Sequence[tuple[str, Any]],
    profile: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Return ``{"id", "message", "critical"}`` for each rule the snapshot triggers.

    ``profile`` may be a field profile (``rules``) or loaded field metadata
    (``rule_overrides``).
    """

    row = dict(snapshot_row)
    overrides = None
    if profile:
        overrides = profile.get("rule_overrides") or profile.get("rules")
    return [
        {"id": hit.rule_id, "message": hit.message, "critical": hit.critical}
        for hit in evaluate_rules_row(row, overrides)
    ]


__all__ = ["apply_rules"]
