"""Utility functions and helpers."""

from .collector import PropertyCollectorClient
from .logging import setup_logging
from .health import start_health_server, stop_health_server

__all__ = ["PropertyCollectorClient", "setup_logging", "start_health_server", "stop_health_server"]
