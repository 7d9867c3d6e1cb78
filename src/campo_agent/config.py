from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

ROOT = Path(__file__).resolve().parents[2]
FIELD_PROFILES_DIR = ROOT / "fields" / "profiles"
DATA_ROOT = ROOT / "data"


def _ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_field_config_path(field: str, profiles_dir: Path | None = None) -> Path:
    """Return the path to the field profile, accepting both naming schemes."""
    base_dir = Path(profiles_dir) if profiles_dir is not None else FIELD_PROFILES_DIR
    candidates = [
        base_dir / f"insight.{field}.yml",
        base_dir / f"{field}.yml",
        base_dir / f"{field}.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    raise FileNotFoundError(
        f"No profile found for '{field}'. Looked in: "
        + ", ".join(str(c) for c in candidates)
    )


def _resolve_profile(path: Path) -> Dict[str, Any]:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Profile {path} must be a mapping, got {type(raw).__name__}")
    raw = dict(raw)
    if "extends" in raw:
        base_path = Path(raw["extends"])
        if not base_path.is_absolute():
            base_path = path.parent / base_path
        if not base_path.exists():
            raise FileNotFoundError(f"Profile {path} extends missing file {base_path}")
        base = _resolve_profile(base_path)
        for key, value in raw.items():
            if key == "extends":
                continue
            if isinstance(value, Mapping) and isinstance(base.get(key), Mapping):
                merged = dict(base[key])
                merged.update(value)
                base[key] = merged
            else:
                base[key] = value
        raw = base
    return raw


def load_field_profile(field: str, profiles_dir: Path | None = None) -> Dict[str, Any]:
    """Load a field profile and resolve ``extends`` inheritance."""
    profile_path = resolve_field_config_path(field, profiles_dir)
    cfg = _resolve_profile(profile_path)
    cfg.setdefault("field_meta", {})
    cfg["field_meta"].setdefault("key", field)
    cfg["field_meta"].setdefault("profile_path", str(profile_path))
    return cfg


def get_field_data_root(field: str, data_root: Path | None = None) -> Path:
    """Return the root data directory for a field, creating it if needed."""
    return _ensure_directory(Path(data_root or DATA_ROOT) / field)


def get_field_current_dir(field: str, data_root: Path | None = None) -> Path:
    """Return the "current" directory that pipeline stages read inputs from."""
    return _ensure_directory(get_field_data_root(field, data_root) / "current")


@dataclass
class InputSpec:
    """Normalized definition for a configured field input file."""

    name: str
    file: str
    required: bool = True
    kind: str = "csv"
    description: str | None = None

    def path(self, field: str, data_root: Path | None = None) -> Path:
        return get_field_current_dir(field, data_root) / self.file


DEFAULT_INPUTS: Dict[str, Dict[str, Any]] = {
    "vegetation": {"file": "vegetation.csv", "required": True},
    "weather": {"file": "weather_daily.csv", "required": False},
    "forecast": {"file": "weather_forecast.csv", "required": False},
    "soil_moisture": {"file": "soil_moisture.json", "required": False, "kind": "json"},
    "productivity_history": {"file": "productivity_history.csv", "required": False},
}


def load_input_registry(field: str, profile: Mapping[str, Any] | None = None) -> Dict[str, InputSpec]:
    """Return the per-field input registry, defaults overlaid by the profile."""

    if profile is None:
        profile = load_field_profile(field)
    configured: Mapping[str, Any] = profile.get("inputs", {}) or {}

    raw: Dict[str, Dict[str, Any]] = {name: dict(cfg) for name, cfg in DEFAULT_INPUTS.items()}
    for name, cfg in configured.items():
        if cfg is None:
            raw.pop(name, None)
            continue
        if not isinstance(cfg, Mapping):
            raise ValueError(f"Input '{name}' must be a mapping, got {cfg!r}")
        raw.setdefault(name, {}).update(cfg)

    registry: Dict[str, InputSpec] = {}
    for name, cfg in raw.items():
        try:
            file_name = str(cfg["file"])
        except KeyError as exc:
            raise KeyError(f"Input '{name}' missing required config key: {exc}") from exc
        registry[name] = InputSpec(
            name=name,
            file=file_name,
            required=bool(cfg.get("required", True)),
            kind=str(cfg.get("kind", Path(file_name).suffix.lstrip(".") or "csv")),
            description=cfg.get("description"),
        )
    return registry


__all__ = [
    "FIELD_PROFILES_DIR",
    "DATA_ROOT",
    "resolve_field_config_path",
    "load_field_profile",
    "get_field_data_root",
    "get_field_current_dir",
    "load_input_registry",
    "InputSpec",
    "DEFAULT_INPUTS",
]
