"""Metadata helpers used throughout the insight engine pipeline."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, TypedDict

from campo_agent.config import get_field_current_dir, load_field_profile
from campo_agent.crop_tables import market_price, normalise_crop
from engine.geometry import calculate_area_ha, polygon_centroid
from engine.series import as_date
from engine.utils.phenology import month_to_stage


class FieldMetadata(TypedDict, total=False):
    """Normalized metadata payload for a field."""

    field_key: str
    field_name: str
    crop: str
    province: str | None
    planting_date: str | None
    market_price: float
    polygon: list[list[float]]
    area_ha: float
    centroid: tuple[float, float]
    notes: str | None
    rule_overrides: list[dict[str, Any]]


def load_field_metadata(field: str, profile: Mapping[str, Any] | None = None) -> FieldMetadata:
    """Load metadata for *field*, applying defaults for crop and price."""

    if profile is None:
        profile = load_field_profile(field)
    meta: Mapping[str, Any] = profile.get("field_meta", {}) or {}

    crop = normalise_crop(meta.get("crop"))
    planting = as_date(meta.get("planting_date"))
    polygon = [list(map(float, vertex)) for vertex in meta.get("polygon", []) or []]
    province = meta.get("province")

    payload: FieldMetadata = {
        "field_key": str(meta.get("key", field)),
        "field_name": str(meta.get("name", field.replace("_", " ").title())),
        "crop": crop,
        "province": str(province).upper() if province else None,
        "planting_date": planting.isoformat() if planting else None,
        "market_price": float(meta.get("market_price") or market_price(crop)),
        "polygon": polygon,
        "notes": meta.get("notes"),
        "rule_overrides": list(profile.get("rules", []) or []),
    }
    if polygon:
        payload["area_ha"] = calculate_area_ha(polygon)
        centroid = polygon_centroid(polygon)
        if centroid:
            payload["centroid"] = centroid
    return payload


def update_metadata(field: str, new_entries: Mapping[str, Any], data_root: Path | None = None) -> Path:
    """Persist *new_entries* into ``metadata.json`` under the field's current data directory.

    Later runs and external tools can read the cached ``metadata.json``
    alongside the index series without re-deriving it from the profile.
    """

    target = get_field_current_dir(field, data_root) / "metadata.json"
    existing: Dict[str, Any] = {}
    if target.exists():
        try:
            existing = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError:  # pragma: no cover - partial write from an interrupted run
            existing = {}
    existing.update(dict(new_entries))
    target.write_text(json.dumps(existing, indent=2, sort_keys=True, default=str), encoding="utf-8")
    return target


def load_phenology_hints(metadata: FieldMetadata, reference_date: date | None = None) -> Mapping[str, Any]:
    """Seasonal stage calendar for the field's crop."""

    crop = metadata.get("crop")
    stage_map = {f"{month:02d}": month_to_stage(month, crop) for month in range(1, 13)}
    month = (reference_date or date.today()).month
    return {
        "crop": crop,
        "stage_by_month": stage_map,
        "current_stage": stage_map[f"{month:02d}"],
    }


__all__ = [
    "FieldMetadata",
    "load_field_metadata",
    "load_phenology_hints",
    "update_metadata",
]
