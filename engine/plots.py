"""Preview charts for the field index series."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from campo_agent.crop_tables import crop_thresholds  # noqa: E402
from engine.series import VegetationPoint, series_frame  # noqa: E402


def plot_ndvi_ndmi(
    points: Sequence[VegetationPoint],
    crop: str,
    out_path: Path | str,
    title: str | None = None,
    plot_format: str = "png",
) -> Path | None:
    """Draw NDVI and NDMI over time with the crop's stress thresholds.

    Returns the written path, or None when the series has no observations.
    """

    df = series_frame(points)
    if df.empty:
        return None

    thresholds = crop_thresholds(crop)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    plt.figure(figsize=(10, 4))
    plt.plot(df.index, df["ndvi"], color="green", linewidth=1.4, marker="o", markersize=3, label="NDVI")
    plt.plot(df.index, df["ndmi"], color="steelblue", linewidth=1.2, marker="o", markersize=3, label="NDMI")
    plt.axhline(thresholds["ndvi"]["critical"], color="darkred", linestyle="--", linewidth=0.8, label="NDVI critico")
    plt.axhline(
        thresholds["ndmi"]["stress_threshold"], color="orange", linestyle=":", linewidth=0.8, label="NDMI stress"
    )
    plt.title(title or f"NDVI / NDMI – {crop}")
    plt.xlabel("Data")
    plt.ylabel("Indice")
    plt.legend(loc="lower left", fontsize=8)
    plt.tight_layout()
    save_kwargs = {"dpi": 150} if plot_format.lower() == "png" else {}
    plt.savefig(out_path, **save_kwargs)
    plt.close()
    return out_path


__all__ = ["plot_ndvi_ndmi"]
