"""Field polygon helpers."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

EARTH_RADIUS_M = 6378137.0


def calculate_area_ha(coords: Sequence[Sequence[float]]) -> float:
    """Polygon area in hectares from ``[lon, lat]`` vertices.

    Uses an equirectangular projection at the mean latitude, accurate for
    field-sized polygons. Open rings are closed before projecting.
    """

    if not coords or len(coords) < 4:
        return 0.0
    pts = np.asarray(coords, dtype=float)[:, :2]
    if not np.array_equal(pts[0], pts[-1]):
        pts = np.vstack([pts, pts[:1]])

    mean_lat = math.radians(float(pts[:, 1].mean()))
    x = np.radians(pts[:, 0]) * EARTH_RADIUS_M * math.cos(mean_lat)
    y = np.radians(pts[:, 1]) * EARTH_RADIUS_M
    shoelace = float(np.sum(x[:-1] * y[1:] - x[1:] * y[:-1]))
    return round(abs(shoelace) / 2 / 10_000, 2)


def polygon_centroid(coords: Sequence[Sequence[float]]) -> tuple[float, float] | None:
    """Mean vertex as ``(lat, lon)``, or None for an empty ring."""

    if not coords:
        return None
    pts = np.asarray(coords, dtype=float)[:, :2]
    if len(pts) > 1 and np.array_equal(pts[0], pts[-1]):
        pts = pts[:-1]
    lon, lat = pts.mean(axis=0)
    return float(lat), float(lon)


__all__ = ["calculate_area_ha", "polygon_centroid"]
