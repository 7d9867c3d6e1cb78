"""Satellite index time series: loading, frames and small lookups."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

INDEX_KEYS = ("ndvi", "ndmi", "reci")


@dataclass
class VegetationPoint:
    date: date
    ndvi: float | None
    ndmi: float | None
    reci: float | None = None

    def get(self, key: str) -> float | None:
        return getattr(self, key.lower(), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "NDVI": self.ndvi,
            "NDMI": self.ndmi,
            "ReCI": self.reci,
        }


def _clean(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def as_date(value: date | str | None) -> date | None:
    """Coerce ISO strings, datetimes and timestamps to a plain ``date``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        raise ValueError(f"Invalid date: {value!r}")
    return parsed.date()


def points_from_records(records: Iterable[Mapping[str, Any]]) -> list[VegetationPoint]:
    """Build a date-sorted series from plain records (``date``, ``NDVI``, ``NDMI``, ``ReCI``)."""

    points: list[VegetationPoint] = []
    for record in records:
        lowered = {str(k).strip().lower(): v for k, v in record.items()}
        parsed = pd.to_datetime(lowered.get("date"), errors="coerce")
        if parsed is None or pd.isna(parsed):
            continue
        points.append(
            VegetationPoint(
                date=parsed.date(),
                ndvi=_clean(lowered.get("ndvi")),
                ndmi=_clean(lowered.get("ndmi")),
                reci=_clean(lowered.get("reci")),
            )
        )
    points.sort(key=lambda p: p.date)
    return points


def load_vegetation_series(path: Path | str) -> list[VegetationPoint]:
    """Load an index series from CSV or JSON."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Vegetation series not found: {path}")

    if path.suffix.lower() == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, Mapping):
            payload = payload.get("time_series") or payload.get("ndvi_series") or []
        df = pd.DataFrame.from_records(list(payload))
    else:
        df = pd.read_csv(path)

    df.columns = [str(c).strip().lower() for c in df.columns]
    if "ndvi" not in df.columns:
        raise ValueError(f"{path} has no NDVI column (columns: {', '.join(df.columns)})")
    if "date" not in df.columns:
        raise ValueError(f"{path} has no date column")
    for key in ("ndmi", "reci"):
        if key not in df.columns:
            df[key] = float("nan")
    return points_from_records(df.to_dict(orient="records"))


def series_frame(points: Sequence[VegetationPoint]) -> pd.DataFrame:
    """Return a date-indexed frame with ``ndvi``, ``ndmi`` and ``reci`` columns."""

    frame = pd.DataFrame(
        {
            "date": [pd.Timestamp(p.date) for p in points],
            "ndvi": [p.ndvi for p in points],
            "ndmi": [p.ndmi for p in points],
            "reci": [p.reci for p in points],
        },
        columns=["date", *INDEX_KEYS],
    )
    for key in INDEX_KEYS:
        frame[key] = pd.to_numeric(frame[key], errors="coerce")
    return frame.set_index("date").sort_index()


def index_values(points: Sequence[VegetationPoint], key: str) -> list[float]:
    values = (p.get(key) for p in points)
    return [float(v) for v in values if v is not None]


def nearest_value(points: Sequence[VegetationPoint], offset_days: int, key: str) -> float | None:
    """Value closest to ``offset_days`` before the last observation.

    Observations within a week of the target win; otherwise the value is
    interpolated between the observations that bracket the target.
    """

    if not points:
        return None
    target = points[-1].date - timedelta(days=offset_days)

    best: tuple[int, float] | None = None
    for point in points:
        value = point.get(key)
        if value is None:
            continue
        distance = abs((point.date - target).days)
        if distance <= 7 and (best is None or distance < best[0]):
            best = (distance, value)
    if best is not None:
        return best[1]

    before: VegetationPoint | None = None
    after: VegetationPoint | None = None
    for point in points:
        if point.date <= target:
            before = point
        else:
            after = point
            break
    if before is None or after is None:
        return None
    v1, v2 = before.get(key), after.get(key)
    if v1 is None or v2 is None:
        return None
    span = (after.date - before.date).days
    ratio = (target - before.date).days / span if span else 0.0
    return v1 + (v2 - v1) * ratio


def pct_change(now: float | None, prev: float | None) -> float | None:
    if now is None or prev is None or prev == 0:
        return None
    return round((now - prev) / abs(prev) * 100, 1)


def average_in_days(points: Sequence[VegetationPoint], days: int, key: str) -> float | None:
    """Mean of ``key`` over the trailing window, or the whole series if the window is sparse."""

    if not points:
        return None
    start = points[-1].date - timedelta(days=days)
    window = [p for p in points if p.date >= start]
    use = window if len(window) >= 2 else list(points)
    values = index_values(use, key)
    if not values:
        return None
    return round(sum(values) / len(values), 2)


__all__ = [
    "VegetationPoint",
    "as_date",
    "INDEX_KEYS",
    "points_from_records",
    "load_vegetation_series",
    "series_frame",
    "index_values",
    "nearest_value",
    "pct_change",
    "average_in_days",
]
