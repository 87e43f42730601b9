"""Configuration management with Pydantic models."""

from .settings import (
    DEFAULT_PROPERTY_MAP,
    MonitorSettings,
    PropertyMap,
    TrackedProperties,
    extend_for_api_version,
)

__all__ = [
    "MonitorSettings",
    "PropertyMap",
    "TrackedProperties",
    "DEFAULT_PROPERTY_MAP",
    "extend_for_api_version",
]
