"""Utility helpers consumed by the insight engine."""

from __future__ import annotations

from .metadata import load_field_metadata, load_phenology_hints, update_metadata

__all__ = ["load_field_metadata", "load_phenology_hints", "update_metadata"]
