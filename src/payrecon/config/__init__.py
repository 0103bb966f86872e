"""Application configuration helpers."""

from __future__ import annotations

from .engine import EngineSettings, MatchingSettings, get_engine_settings, get_matching_settings
from .errors import ConfigurationError
from .logging import configure_logging, get_log_level

__all__ = [
    "ConfigurationError",
    "EngineSettings",
    "MatchingSettings",
    "configure_logging",
    "get_engine_settings",
    "get_log_level",
    "get_matching_settings",
]
