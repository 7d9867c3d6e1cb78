"""Core package utilities for the Campo field insight agent."""

from .config import (
    FIELD_PROFILES_DIR,
    resolve_field_config_path,
    load_field_profile,
    load_input_registry,
)

__all__ = [
    "FIELD_PROFILES_DIR",
    "resolve_field_config_path",
    "load_field_profile",
    "load_input_registry",
]
