#!/usr/bin/env python3
"""Distil the raw index series into an annotated per-observation table."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import numpy as np
import pandas as pd

from campo_agent.config import load_field_profile, load_input_registry
from campo_agent.crop_tables import crop_thresholds, normalise_crop
from engine.series import load_vegetation_series, series_frame

OUTPUT_DIR = Path("outputs")
ROLLING_WINDOW = 3


# -------------------------------------------------------
# 🗣️ Plain-Language Insight Generator
# -------------------------------------------------------

def generate_plain_language(row: Mapping[str, Any], crop: str = "wheat") -> str:
    """
    Translate one observation's index readings into a short Italian note
    against the crop's thresholds.
    """

    thresholds = crop_thresholds(crop)
    ndvi_t, ndmi_t, reci_t = thresholds["ndvi"], thresholds["ndmi"], thresholds["reci"]

    msgs = []
    ndvi = row.get("ndvi", np.nan)
    ndmi = row.get("ndmi", np.nan)
    reci = row.get("reci", np.nan)
    ndvi_delta = row.get("ndvi_delta", np.nan)

    # 🌿 Vegetation vigour
    if pd.notna(ndvi) and ndvi < ndvi_t["critical"]:
        msgs.append("⚠️ NDVI critico: vegetazione in forte stress.")
    elif pd.notna(ndvi) and ndvi < ndvi_t["moderate"]:
        msgs.append("🪴 NDVI basso: crescita rallentata o stress in corso.")
    elif pd.notna(ndvi) and ndvi >= ndvi_t["excellent"]:
        msgs.append("🌱 Vigore vegetativo eccellente.")
    else:
        msgs.append("🌾 Vegetazione nella norma per il periodo.")

    # 📈 Change since the previous pass
    if pd.notna(ndvi_delta) and ndvi_delta < -0.05:
        msgs.append("📉 NDVI in calo rispetto all'osservazione precedente.")
    elif pd.notna(ndvi_delta) and ndvi_delta > 0.05:
        msgs.append("📈 NDVI in crescita rispetto all'osservazione precedente.")

    # 💧 Canopy moisture
    if pd.notna(ndmi) and ndmi < ndmi_t["critical_threshold"]:
        msgs.append("🚨 NDMI critico: stress idrico grave.")
    elif pd.notna(ndmi) and ndmi < ndmi_t["stress_threshold"]:
        msgs.append("💧 NDMI sotto soglia: possibile stress idrico.")
    elif pd.notna(ndmi) and ndmi >= ndmi_t["optimal"]:
        msgs.append("💧 Stato idrico adeguato.")

    # 🧪 Chlorophyll / nitrogen
    if pd.notna(reci) and reci < reci_t["low_nitrogen"]:
        msgs.append("🧪 ReCI basso: possibile carenza di azoto.")

    return " ".join(msgs).strip()


def attach_insight_text(df: pd.DataFrame, crop: str = "wheat") -> pd.DataFrame:
    """Attach plain-language text summaries for each observation."""
    if "insight_text" not in df.columns:
        df["insight_text"] = df.apply(lambda row: generate_plain_language(row, crop), axis=1) if len(df) else []
    return df


def build_observation_table(frame: pd.DataFrame, crop: str = "wheat") -> pd.DataFrame:
    """Add deltas, a rolling NDVI mean and insight text to a series frame."""

    df = frame.reset_index().copy()
    df["date"] = pd.to_datetime(df["date"]).dt.strftime("%Y-%m-%d")
    df["ndvi_delta"] = df["ndvi"].diff().round(3)
    df["ndmi_delta"] = df["ndmi"].diff().round(3)
    df["ndvi_rolling_mean"] = df["ndvi"].rolling(ROLLING_WINDOW, min_periods=1).mean().round(3)
    return attach_insight_text(df, crop)


# -------------------------------------------------------
# 🌾 Field Distillation
# -------------------------------------------------------

def distill_field(
    field: str,
    *,
    profiles_dir: Path | None = None,
    data_root: Path | None = None,
    output_dir: Path | None = None,
) -> str:
    """Distil the vegetation series for *field* into ``observations.csv``."""

    profile = load_field_profile(field, profiles_dir)
    crop = normalise_crop((profile.get("field_meta") or {}).get("crop"))
    registry = load_input_registry(field, profile)
    if "vegetation" not in registry:
        raise KeyError(f"Field '{field}' has no 'vegetation' input configured")

    points = load_vegetation_series(registry["vegetation"].path(field, data_root))
    if not points:
        raise ValueError(f"Vegetation series for '{field}' has no dated observations")
    table = build_observation_table(series_frame(points), crop)

    out_dir = Path(output_dir or OUTPUT_DIR) / field
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / "observations.csv"
    table.to_csv(output_path, index=False)
    return str(output_path)


__all__ = ["distill_field", "build_observation_table", "generate_plain_language", "attach_insight_text"]
