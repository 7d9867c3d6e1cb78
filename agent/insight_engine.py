"""Orchestrates distillation, field analyses, rule tagging and report output."""

from __future__ import annotations

import json
import math
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from engine.distill_insights import OUTPUT_DIR, distill_field
from engine.eos_analysis import (
    analyze_temporal_trends,
    get_health_status,
    get_irrigation_recommendation,
    get_seasonal_context,
    get_water_stress_alert,
)
from engine.nitrogen_analysis import calculate_fertilization_roi, get_nitrogen_alert, get_nitrogen_status
from engine.pest_risk import analyze_phytosanitary_risk
from engine.plots import plot_ndvi_ndmi
from engine.productivity import generate_productivity_prediction, load_productivity_history
from engine.series import VegetationPoint, as_date, load_vegetation_series
from engine.summary import FieldSummary, derive_field_summary, to_dict
from engine.utils.metadata import FieldMetadata, load_field_metadata, load_phenology_hints, update_metadata
from engine.utils.phenology import analyze_phenology
from engine.variability import analyze_field_variability, generate_scouting_plan
from engine.vegetation_health import analyze_vegetation_health
from engine.weather_analysis import (
    analyze_weather_stress,
    calculate_optimal_growth_progress,
    generate_weather_based_recommendations,
)
from engine.yield_prediction import calculate_yield_prediction
from campo_agent.config import InputSpec, load_field_profile, load_input_registry
from campo_agent.crop_tables import yield_baseline
from agent.intelligent_alerts import generate_intelligent_alerts, prioritize_alerts
from agent.rules.engine import SNAPSHOT_KEYS, evaluate_rules_row


def build_insights(
    field: str,
    *,
    profiles_dir: Path | None = None,
    data_root: Path | None = None,
    output_dir: Path | None = None,
    reference_date: date | str | None = None,
) -> tuple[str, str, str | None]:
    """Run every analysis for *field* and write the feed, report, alerts and chart.

    Returns ``(feed_path, report_path, alerts_path)``; ``alerts_path`` is None
    when nothing critical fired. Without ``reference_date`` the analyses are
    anchored on the last observation date.
    """

    profile = load_field_profile(field, profiles_dir)
    metadata = load_field_metadata(field, profile)
    registry = load_input_registry(field, profile)
    crop = metadata["crop"]

    observations_path = Path(
        distill_field(field, profiles_dir=profiles_dir, data_root=data_root, output_dir=output_dir)
    )
    observations = pd.read_csv(observations_path)
    points = load_vegetation_series(registry["vegetation"].path(field, data_root))
    ref = as_date(reference_date) or points[-1].date
    points = [p for p in points if p.date <= ref]
    if not points:
        raise ValueError(f"No observations for '{field}' on or before {ref.isoformat()}")

    weather_df = _read_frame(registry.get("weather"), field, data_root)
    forecast_df = _read_frame(registry.get("forecast"), field, data_root)
    soil = _read_json(registry.get("soil_moisture"), field, data_root)

    summary = derive_field_summary(
        points,
        crop,
        reference_date=ref,
        planting_date=metadata.get("planting_date"),
        weather_history=weather_df,
        forecast=forecast_df,
        soil_moisture=soil,
    )

    history_path = _existing_path(registry.get("productivity_history"), field, data_root)
    history = load_productivity_history(history_path) if history_path else []

    report = build_field_report(summary, metadata, points, ref, history)

    rule_overrides = metadata.get("rule_overrides")
    phenology = load_phenology_hints(metadata, ref)

    out_dir = observations_path.parent
    records = []
    alerts: list[str] = []
    observations = observations[pd.to_datetime(observations["date"]).dt.date <= ref]
    last_index = observations.index[-1] if len(observations) else None

    for idx, row in observations.iterrows():
        row_dict = row.to_dict()
        snapshot = _snapshot_row(row_dict, summary if idx == last_index else None)
        hits = evaluate_rules_row(snapshot, rule_overrides)
        alerts.extend(_format_alert(field, hit.rule_id, hit.message, row_dict) for hit in hits if hit.critical)

        records.append(
            {
                "date": row_dict.get("date"),
                "crop_type": crop,
                "field_name": metadata.get("field_name"),
                "stage": _phenology_stage(str(row_dict.get("date")), phenology),
                "ndvi": row_dict.get("ndvi"),
                "ndmi": row_dict.get("ndmi"),
                "reci": row_dict.get("reci"),
                "ndvi_delta": row_dict.get("ndvi_delta"),
                "rule_hits": ",".join(hit.rule_id for hit in hits),
                "insight_text": _render_insight(row_dict, [hit.message for hit in hits]),
            }
        )

    for alert in report["alerts"]["critical_alerts"]:
        if alert["severity"] in ("critical", "high"):
            alerts.append(f"[{field}] {alert['type']}: {alert['title']} - {alert['description']}")

    feed_df = pd.DataFrame.from_records(records)
    feed_path = out_dir / "insight_feed.csv"
    feed_df.to_csv(feed_path, index=False)

    report_path = out_dir / "field_report.json"
    report_path.write_text(json.dumps(report, indent=2, ensure_ascii=False, default=str), encoding="utf-8")

    chart = plot_ndvi_ndmi(points, crop, out_dir / "ndvi_ndmi.png", title=f"NDVI / NDMI – {metadata['field_name']}")

    alerts_path: Path | None = None
    if alerts:
        alerts_path = out_dir / "alerts.txt"
        unique_alerts = _unique_preserve_order(alerts)
        alerts_path.write_text("\n".join(unique_alerts) + "\n", encoding="utf-8")

    update_metadata(
        field,
        {
            "crop": crop,
            "area_ha": metadata.get("area_ha"),
            "observation_count": len(points),
            "last_observation": points[-1].date.isoformat(),
            "last_reference_date": ref.isoformat(),
            "current_stage": summary.phenology.current_stage,
            "chart": str(chart) if chart else None,
        },
        data_root,
    )

    return str(feed_path), str(report_path), str(alerts_path) if alerts_path else None


def build_field_report(
    summary: FieldSummary,
    metadata: FieldMetadata,
    points: Sequence[VegetationPoint],
    reference_date: date,
    history: Sequence[Any] = (),
) -> dict[str, Any]:
    """Run every analysis over one summary and return a JSON-ready report."""

    crop = metadata["crop"]
    price = float(metadata.get("market_price") or 0.0)
    ndvi_now = summary.ndvi_data.current_value
    ndmi_now = summary.ndmi_data.current_value
    weather = summary.weather

    eos = {
        "health_status": get_health_status(ndvi_now, crop) if ndvi_now is not None else None,
        "water_stress": (
            get_water_stress_alert(ndmi_now, summary.ndmi_data.trend_14_days, crop) if ndmi_now is not None else None
        ),
        "seasonal_context": get_seasonal_context(crop, reference_date),
        "irrigation": get_irrigation_recommendation(summary, crop, reference_date),
        "ndvi_trend": analyze_temporal_trends(points, "ndvi", crop),
        "ndmi_trend": analyze_temporal_trends(points, "ndmi", crop),
    }

    weather_section = None
    if weather is not None:
        weather_section = {
            "stress_alerts": analyze_weather_stress(weather, crop),
            "growth_progress": calculate_optimal_growth_progress(weather.growing_degree_days, crop, reference_date),
            "recommendations": generate_weather_based_recommendations(weather, weather.forecast, crop),
        }

    nitrogen = None
    reci_points = [p for p in points if p.reci is not None]
    if reci_points:
        current = reci_points[-1].reci
        previous = reci_points[-2].reci if len(reci_points) > 1 else None
        status = get_nitrogen_status(current, crop)
        nitrogen = {
            "status": status,
            "alert": get_nitrogen_alert(current, previous, crop),
            "roi": calculate_fertilization_roi(status, yield_baseline(crop)["average"], price),
        }

    productivity = None
    province = metadata.get("province")
    if history and province:
        productivity = generate_productivity_prediction(history, province, crop, points, weather)

    variability = analyze_field_variability(points, crop)
    bundle = generate_intelligent_alerts(summary, points, crop, price, reference_date)
    bundle.critical_alerts = prioritize_alerts(bundle.critical_alerts)

    planted = as_date(metadata.get("planting_date"))
    return to_dict(
        {
            "field": dict(metadata),
            "reference_date": reference_date.isoformat(),
            "summary": summary,
            "eos": eos,
            "weather": weather_section,
            "nitrogen": nitrogen,
            "vegetation_health": analyze_vegetation_health(summary, crop, points, reference_date),
            "yield_prediction": calculate_yield_prediction(summary, crop, points, reference_date),
            "productivity": productivity,
            "phenology": analyze_phenology(points, crop, planted, weather, reference_date),
            "phytosanitary": analyze_phytosanitary_risk(points, weather, crop) if weather is not None else None,
            "variability": variability,
            "scouting_plan": generate_scouting_plan(variability, crop),
            "alerts": bundle,
        }
    )


def _snapshot_row(row: Mapping[str, Any], summary: FieldSummary | None) -> dict[str, Any]:
    snapshot: dict[str, Any] = {key: None for key in SNAPSHOT_KEYS}
    for key in ("ndvi", "ndmi", "reci"):
        snapshot[key] = row.get(key)
    if summary is not None:
        snapshot["ndvi_trend_30d"] = summary.ndvi_data.trend_30_days
        snapshot["ndmi_trend_14d"] = summary.ndmi_data.trend_14_days
        snapshot["temperature_stress_days"] = summary.weather_risks.temperature_stress_days
        snapshot["precipitation_deficit_mm"] = summary.weather_risks.precipitation_deficit_mm
        if summary.soil_moisture is not None:
            snapshot["soil_moisture_index"] = summary.soil_moisture.soil_moisture_index
    return snapshot


def _existing_path(spec: InputSpec | None, field: str, data_root: Path | None) -> Path | None:
    if spec is None:
        return None
    path = spec.path(field, data_root)
    if path.exists():
        return path
    if spec.required:
        raise FileNotFoundError(f"Required input '{spec.name}' not found: {path}")
    return None


def _read_frame(spec: InputSpec | None, field: str, data_root: Path | None) -> pd.DataFrame | None:
    path = _existing_path(spec, field, data_root)
    return pd.read_csv(path) if path else None


def _read_json(spec: InputSpec | None, field: str, data_root: Path | None) -> Mapping[str, Any] | None:
    path = _existing_path(spec, field, data_root)
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Input '{spec.name}' is not valid JSON: {path}") from exc


def _render_insight(row: Mapping[str, Any], rule_messages: Sequence[str]) -> str:
    text = str(row.get("insight_text") or "").strip()
    if rule_messages:
        text = f"{text} Regole: " + "; ".join(rule_messages)
    return text.strip()


def _phenology_stage(day: str, phenology: Mapping[str, object]) -> str:
    stage_map = phenology.get("stage_by_month") if isinstance(phenology, Mapping) else None
    if isinstance(stage_map, Mapping):
        stage = stage_map.get(day[5:7])
        if stage:
            return str(stage)
    return str(phenology.get("current_stage", "")) if phenology else ""


def _unique_preserve_order(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def _format_alert(field: str, rule_id: str, message: str, row: Mapping[str, Any]) -> str:
    summary_parts = [f"[{field}] {rule_id}:", message, f"({row.get('date')})"]
    ndvi = row.get("ndvi")
    if isinstance(ndvi, float) and not math.isnan(ndvi):
        summary_parts.append(f"NDVI={ndvi:.2f}")
    return " ".join(summary_parts)


__all__ = ["build_insights", "build_field_report", "OUTPUT_DIR"]
