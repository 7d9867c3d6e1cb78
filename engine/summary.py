"""Field summary records and their derivation from local index and weather data."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Sequence

import pandas as pd

from campo_agent.crop_tables import normalise_crop
from engine.series import (
    VegetationPoint,
    as_date,
    average_in_days,
    nearest_value,
    pct_change,
    points_from_records,
)
from engine.utils.phenology import estimate_growth_stage, expected_stage_ndvi

UNIFORMITY_FALLBACK = 0.75
NDMI_CRITICAL_THRESHOLD = 0.3
HISTORY_WINDOW_DAYS = 30
FORECAST_WINDOW_DAYS = 7


@dataclass
class NdviData:
    current_value: float | None = None
    trend_30_days: float | None = None
    field_average: float | None = None
    uniformity_score: float | None = None


@dataclass
class NdmiData:
    current_value: float | None = None
    water_stress_level: str | None = None
    trend_14_days: float | None = None
    critical_threshold: float = NDMI_CRITICAL_THRESHOLD


@dataclass
class SoilMoistureForecast:
    date: str
    surface_moisture: float
    root_zone_moisture: float
    stress_probability: float
    irrigation_need: bool


@dataclass
class SoilMoisture:
    surface_moisture: float
    root_zone_moisture: float
    field_capacity: float
    soil_moisture_index: float | None = None
    evapotranspiration_actual: float | None = None
    evapotranspiration_potential: float | None = None
    water_deficit: float = 0.0
    drought_stress_level: str | None = None
    historical_percentile: float | None = None
    wilting_point: float | None = None
    available_water_content: float | None = None
    irrigation_recommendation: dict[str, Any] | None = None
    forecast_7d: list[SoilMoistureForecast] = field(default_factory=list)


@dataclass
class PhenologyState:
    current_stage: str | None = None
    days_from_planting: int | None = None
    expected_harvest_days: int | None = None
    development_rate: str | None = None


@dataclass
class WeatherRisks:
    temperature_stress_days: int | None = None
    precipitation_deficit_mm: float | None = None
    frost_risk_forecast_7d: bool = False
    heat_stress_risk: str | None = None
    water_deficit_cumulative: float | None = None


@dataclass
class WeatherForecast:
    date: str
    temperature_min: float
    temperature_max: float
    precipitation: float
    humidity: float
    wind_speed: float
    cloudiness: float
    stress_probability: float


@dataclass
class WeatherData:
    temperature_avg: float
    temperature_min: float
    temperature_max: float
    precipitation_total: float
    humidity_avg: float = 0.0
    humidity_min: float = 0.0
    humidity_max: float = 0.0
    wind_speed_avg: float = 0.0
    wind_speed_max: float = 0.0
    solar_radiation: float = 0.0
    sunshine_hours: float = 0.0
    cloudiness: float = 0.0
    pressure: float = 1013.0
    growing_degree_days: float = 0.0
    heat_stress_index: float = 0.0
    cold_stress_index: float = 0.0
    water_balance: float = 0.0
    evapotranspiration: float = 0.0
    alerts: list[str] = field(default_factory=list)
    forecast: list[WeatherForecast] = field(default_factory=list)
    historical_comparison: dict[str, float] | None = None


@dataclass
class FieldSummary:
    ndvi_data: NdviData = field(default_factory=NdviData)
    ndmi_data: NdmiData = field(default_factory=NdmiData)
    phenology: PhenologyState = field(default_factory=PhenologyState)
    weather_risks: WeatherRisks = field(default_factory=WeatherRisks)
    soil_moisture: SoilMoisture | None = None
    weather: WeatherData | None = None
    ndvi_series: list[VegetationPoint] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)


def to_dict(record: Any) -> Any:
    """Recursively convert records to JSON-ready structures."""

    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        if isinstance(record, VegetationPoint):
            return record.to_dict()
        return {f.name: to_dict(getattr(record, f.name)) for f in dataclasses.fields(record)}
    if isinstance(record, Mapping):
        return {str(k): to_dict(v) for k, v in record.items()}
    if isinstance(record, (list, tuple)):
        return [to_dict(v) for v in record]
    if isinstance(record, (date, datetime)):
        return record.isoformat()
    if isinstance(record, float) and math.isnan(record):
        return None
    return record


def _pick(cls, payload: Mapping[str, Any] | None, exclude: tuple[str, ...] = ()):
    """Build ``cls`` from the known, non-null keys of *payload*.

    Nulls fall back to the field default; a required field that is absent
    or null raises ``KeyError`` naming it.
    """

    fields = [f for f in dataclasses.fields(cls) if f.name not in exclude]
    data = {f.name: payload[f.name] for f in fields if payload and payload.get(f.name) is not None}
    missing = [
        f.name
        for f in fields
        if f.name not in data and f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
    ]
    if missing:
        raise KeyError(f"{cls.__name__} record missing: {', '.join(missing)}")
    return cls(**data)


def soil_moisture_from_mapping(payload: Mapping[str, Any]) -> SoilMoisture:
    soil = _pick(SoilMoisture, payload, exclude=("forecast_7d",))
    soil.forecast_7d = [_pick(SoilMoistureForecast, row) for row in payload.get("forecast_7d") or []]
    return soil


def weather_from_mapping(payload: Mapping[str, Any]) -> WeatherData:
    weather = _pick(WeatherData, payload, exclude=("forecast",))
    weather.forecast = [_pick(WeatherForecast, row) for row in payload.get("forecast") or []]
    return weather


def summary_from_mapping(payload: Mapping[str, Any]) -> FieldSummary:
    """Build a :class:`FieldSummary` from the plain JSON shape of a summary."""

    soil = payload.get("soil_moisture")
    weather = payload.get("weather")
    return FieldSummary(
        ndvi_data=_pick(NdviData, payload.get("ndvi_data")),
        ndmi_data=_pick(NdmiData, payload.get("ndmi_data")),
        phenology=_pick(PhenologyState, payload.get("phenology")),
        weather_risks=_pick(WeatherRisks, payload.get("weather_risks")),
        soil_moisture=soil_moisture_from_mapping(soil) if soil else None,
        weather=weather_from_mapping(weather) if weather else None,
        ndvi_series=points_from_records(payload.get("ndvi_series") or []),
        meta=dict(payload.get("meta") or {}),
    )


# -------------------------------------------------------
# Weather aggregation
# -------------------------------------------------------

_WEATHER_COLUMNS = {
    "rain": "precipitation",
    "precip": "precipitation",
    "tmin": "temperature_min",
    "tmax": "temperature_max",
    "wind": "wind_speed",
}


def _normalise_weather_frame(frame: pd.DataFrame) -> pd.DataFrame:
    df = frame.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns={k: v for k, v in _WEATHER_COLUMNS.items() if k in df.columns and v not in df.columns})
    for col in df.columns:
        if col == "date":
            df[col] = pd.to_datetime(df[col], errors="coerce")
        else:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    if "date" in df.columns:
        df = df.sort_values("date")
    return df


def _column(df: pd.DataFrame, name: str) -> pd.Series:
    if name in df.columns:
        return df[name]
    return pd.Series([float("nan")] * len(df), index=df.index, dtype=float)


def _row_number(row: Mapping[str, Any], key: str) -> float:
    value = row.get(key)
    if value is None or pd.isna(value):
        return 0.0
    return float(value)


def build_forecast(frame: pd.DataFrame | None, limit: int = 7) -> list[WeatherForecast]:
    if frame is None or frame.empty:
        return []
    df = _normalise_weather_frame(frame).head(limit)
    forecast: list[WeatherForecast] = []
    for row in df.to_dict(orient="records"):
        tmin = _row_number(row, "temperature_min")
        tmax = _row_number(row, "temperature_max")
        wind = _row_number(row, "wind_speed")
        stress = (50 if tmax > 32 else 0) + (30 if tmin < 5 else 0) + (20 if wind > 15 else 0)
        when = row.get("date")
        forecast.append(
            WeatherForecast(
                date=when.date().isoformat() if when is not None and not pd.isna(when) else "",
                temperature_min=tmin,
                temperature_max=tmax,
                precipitation=_row_number(row, "precipitation"),
                humidity=_row_number(row, "humidity"),
                wind_speed=wind,
                cloudiness=_row_number(row, "cloudiness"),
                stress_probability=float(min(100, max(0, stress))),
            )
        )
    return forecast


def summarize_weather(daily: pd.DataFrame, forecast: pd.DataFrame | None = None) -> WeatherData:
    """Aggregate a daily weather frame into period indicators."""

    if daily is None or daily.empty:
        raise ValueError("Weather history is empty; cannot summarise an empty period.")
    df = _normalise_weather_frame(daily)
    days = len(df)

    tmin_s = _column(df, "temperature_min")
    tmax_s = _column(df, "temperature_max")
    valid_t = tmin_s.notna() & tmax_s.notna()
    daily_mean = ((tmin_s + tmax_s) / 2)[valid_t]

    temperature_avg = round(float(daily_mean.mean()), 1) if valid_t.any() else 0.0
    temperature_min = round(float(tmin_s[valid_t].min()), 1) if valid_t.any() else 0.0
    temperature_max = round(float(tmax_s[valid_t].max()), 1) if valid_t.any() else 0.0
    gdd = round(float((daily_mean - 5).clip(lower=0).sum()), 1)
    stress_days = int(((tmax_s > 32) | (tmin_s < 5))[valid_t].sum())

    precipitation_total = round(float(_column(df, "precipitation").fillna(0).sum()), 1)
    humidity = _column(df, "humidity").dropna()
    wind = _column(df, "wind_speed").dropna()
    solar = _column(df, "solar_radiation").dropna()

    heat_stress_index = min(100.0, (temperature_max - 32) * 10) if temperature_max > 32 else 0.0
    cold_stress_index = min(100.0, (5 - temperature_min) * 15) if temperature_min < 5 else 0.0

    evapotranspiration = max(0.0, (temperature_avg - 5) * 0.5 * days)
    water_balance = round(precipitation_total - evapotranspiration, 1)
    wind_max = round(float(wind.max()), 1) if not wind.empty else 0.0

    alerts: list[str] = []
    if heat_stress_index > 30:
        alerts.append("Stress termico elevato rilevato")
    if cold_stress_index > 20:
        alerts.append("Rischio stress da freddo")
    if water_balance < -30:
        alerts.append("Deficit idrico significativo")
    if wind_max > 15:
        alerts.append("Venti forti possono causare danni")
    if precipitation_total > 80:
        alerts.append("Precipitazioni eccessive - rischio ristagni")

    pressure = _column(df, "pressure")
    return WeatherData(
        temperature_avg=temperature_avg,
        temperature_min=temperature_min,
        temperature_max=temperature_max,
        precipitation_total=precipitation_total,
        humidity_avg=round(float(humidity.mean()), 1) if not humidity.empty else 0.0,
        humidity_min=round(float(humidity.min()), 1) if not humidity.empty else 0.0,
        humidity_max=round(float(humidity.max()), 1) if not humidity.empty else 0.0,
        wind_speed_avg=round(float(wind.mean()), 1) if not wind.empty else 0.0,
        wind_speed_max=wind_max,
        solar_radiation=round(float(solar.mean()), 1) if not solar.empty else 0.0,
        sunshine_hours=round(float(_column(df, "sunshine_hours").fillna(0).sum()) / days, 1),
        cloudiness=round(float(_column(df, "cloudiness").fillna(0).sum()) / days, 1),
        pressure=round(float(pressure.fillna(0).sum()) / days, 1) if pressure.notna().any() else 1013.0,
        growing_degree_days=gdd,
        heat_stress_index=round(heat_stress_index, 1),
        cold_stress_index=round(cold_stress_index, 1),
        water_balance=water_balance,
        evapotranspiration=round(evapotranspiration, 1),
        alerts=alerts,
        forecast=build_forecast(forecast),
        historical_comparison={
            "temperature_vs_normal": round(temperature_avg - 18, 1),
            "precipitation_vs_normal": round(precipitation_total - 45, 1),
            "stress_days_count": stress_days,
        },
    )


# -------------------------------------------------------
# Summary derivation
# -------------------------------------------------------

def _water_stress_level(ndmi: float | None) -> str | None:
    if ndmi is None:
        return None
    if ndmi >= 0.4:
        return "none"
    if ndmi >= 0.3:
        return "mild"
    if ndmi >= 0.2:
        return "moderate"
    return "severe"


def _heat_threshold(crop: str) -> float:
    if crop == "wheat":
        return 30.0
    if crop == "wine":
        return 35.0
    return 36.0


def _expected_harvest_days(crop: str) -> int:
    if crop == "wheat":
        return 200
    if crop == "wine":
        return 240
    return 300


def history_window(
    frame: pd.DataFrame | None, reference_date: date, days: int = HISTORY_WINDOW_DAYS
) -> pd.DataFrame | None:
    """Daily rows in ``(reference_date - days, reference_date]``, or None when none remain."""

    if frame is None or frame.empty:
        return None
    df = _normalise_weather_frame(frame)
    if "date" in df.columns:
        start = pd.Timestamp(reference_date - timedelta(days=days))
        end = pd.Timestamp(reference_date)
        df = df[(df["date"] > start) & (df["date"] <= end)]
    return None if df.empty else df


def forecast_window(
    frame: pd.DataFrame | None, reference_date: date, days: int = FORECAST_WINDOW_DAYS
) -> pd.DataFrame | None:
    """Forecast rows in ``[reference_date, reference_date + days]``, or None when none remain."""

    if frame is None or frame.empty:
        return None
    df = _normalise_weather_frame(frame)
    if "date" in df.columns:
        start = pd.Timestamp(reference_date)
        end = pd.Timestamp(reference_date + timedelta(days=days))
        df = df[(df["date"] >= start) & (df["date"] <= end)]
    return None if df.empty else df


def derive_weather_risks(
    crop: str,
    reference_date: date,
    weather_history: pd.DataFrame | None = None,
    forecast: pd.DataFrame | None = None,
) -> WeatherRisks:
    """Stress days, rainfall deficit and frost/heat outlook around ``reference_date``."""

    crop = normalise_crop(crop)
    heat_threshold = _heat_threshold(crop)
    risks = WeatherRisks(frost_risk_forecast_7d=False, heat_stress_risk="low")

    df = history_window(weather_history, reference_date)
    if df is not None:
        precip_30d = float(_column(df, "precipitation").fillna(0).sum())
        target = 40.0 if reference_date.month in (11, 12, 1, 2, 3) else 70.0
        risks.temperature_stress_days = int((_column(df, "temperature_max") > heat_threshold).sum())
        risks.precipitation_deficit_mm = round(target - precip_30d, 1)

    fc = forecast_window(forecast, reference_date)
    if fc is not None:
        risks.frost_risk_forecast_7d = bool((_column(fc, "temperature_min") < 0).any())
        hot_days = int((_column(fc, "temperature_max") > heat_threshold).sum())
        if hot_days >= 4:
            risks.heat_stress_risk = "high"
        elif hot_days >= 2:
            risks.heat_stress_risk = "medium"
    return risks


def derive_field_summary(
    points: Sequence[VegetationPoint],
    crop: str,
    reference_date: date | str | None = None,
    planting_date: date | str | None = None,
    weather_history: pd.DataFrame | None = None,
    forecast: pd.DataFrame | None = None,
    soil_moisture: SoilMoisture | Mapping[str, Any] | None = None,
) -> FieldSummary:
    """Derive the field summary consumed by every analysis from local records."""

    crop = normalise_crop(crop)
    ref = as_date(reference_date) or date.today()
    planted = as_date(planting_date)
    points = list(points)
    last = points[-1] if points else None

    ndvi_now = last.ndvi if last else None
    ndmi_now = last.ndmi if last else None

    ndvi_data = NdviData(
        current_value=ndvi_now,
        trend_30_days=pct_change(ndvi_now, nearest_value(points, 30, "ndvi")),
        field_average=average_in_days(points, 30, "ndvi"),
        uniformity_score=UNIFORMITY_FALLBACK if points else None,
    )
    ndmi_data = NdmiData(
        current_value=ndmi_now,
        water_stress_level=_water_stress_level(ndmi_now),
        trend_14_days=pct_change(ndmi_now, nearest_value(points, 14, "ndmi")),
    )

    days_from_planting = max(0, (ref - planted).days) if planted else None
    ndvi_values = [p.ndvi for p in points if p.ndvi is not None]
    slope = ndvi_values[-1] - ndvi_values[-2] if len(ndvi_values) >= 2 else 0.0
    stage = estimate_growth_stage(
        ndvi_now,
        days_from_planting,
        slope=slope,
        max_ndvi=max(ndvi_values) if ndvi_values else 0.0,
    )
    development_rate = "normal"
    if ndvi_now is not None:
        threshold = expected_stage_ndvi(stage)
        if ndvi_now > threshold * 1.12:
            development_rate = "early"
        elif ndvi_now < threshold * 0.88:
            development_rate = "delayed"

    weather = None
    history = history_window(weather_history, ref)
    if history is not None:
        weather = summarize_weather(history, forecast_window(forecast, ref))

    soil = soil_moisture
    if isinstance(soil_moisture, Mapping):
        soil = soil_moisture_from_mapping(soil_moisture)

    return FieldSummary(
        ndvi_data=ndvi_data,
        ndmi_data=ndmi_data,
        phenology=PhenologyState(
            current_stage=stage,
            days_from_planting=days_from_planting,
            expected_harvest_days=_expected_harvest_days(crop),
            development_rate=development_rate,
        ),
        weather_risks=derive_weather_risks(crop, ref, weather_history, forecast),
        soil_moisture=soil,  # type: ignore[arg-type]
        weather=weather,
        ndvi_series=points,
        meta={
            "start_date": points[0].date.isoformat() if points else None,
            "end_date": ref.isoformat(),
            "sensor_used": "Sentinel-2 L2A",
            "observation_count": len(points),
            "crop_type": crop,
        },
    )


__all__ = [
    "NdviData",
    "NdmiData",
    "SoilMoisture",
    "SoilMoistureForecast",
    "PhenologyState",
    "WeatherRisks",
    "WeatherForecast",
    "WeatherData",
    "FieldSummary",
    "to_dict",
    "summary_from_mapping",
    "soil_moisture_from_mapping",
    "weather_from_mapping",
    "build_forecast",
    "summarize_weather",
    "history_window",
    "forecast_window",
    "derive_weather_risks",
    "derive_field_summary",
]
