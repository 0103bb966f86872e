"""Engine and policy tuning read from ``PAYRECON_*`` environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from .env import env_decimal, env_float, env_int, env_optional_int, env_str

DEFAULT_EVENT_QUEUE_SIZE: Final[int] = 256
DEFAULT_TREND_WINDOW: Final[int] = 5
DEFAULT_HISTORY_LIMIT: Final[int] = 1000


@dataclass(frozen=True, slots=True)
class EngineSettings:
    engine_id: str | None = None
    max_workers: int | None = None
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    trend_window: int = DEFAULT_TREND_WINDOW
    history_limit: int = DEFAULT_HISTORY_LIMIT


@dataclass(frozen=True, slots=True)
class MatchingSettings:
    standard_threshold: float = 0.7
    flexible_threshold: float = 0.6
    amount_tolerance: Decimal = Decimal("0.01")
    auto_resolve_threshold: Decimal = Decimal("1.00")


def get_engine_settings() -> EngineSettings:
    defaults = EngineSettings()
    return EngineSettings(
        engine_id=env_str("PAYRECON_ENGINE_ID"),
        max_workers=env_optional_int("PAYRECON_MAX_WORKERS"),
        event_queue_size=env_int("PAYRECON_EVENT_QUEUE_SIZE", defaults.event_queue_size),
        trend_window=env_int("PAYRECON_TREND_WINDOW", defaults.trend_window),
        history_limit=env_int("PAYRECON_HISTORY_LIMIT", defaults.history_limit),
    )


def get_matching_settings() -> MatchingSettings:
    defaults = MatchingSettings()
    return MatchingSettings(
        standard_threshold=env_float("PAYRECON_STANDARD_THRESHOLD", defaults.standard_threshold),
        flexible_threshold=env_float("PAYRECON_FLEXIBLE_THRESHOLD", defaults.flexible_threshold),
        amount_tolerance=env_decimal("PAYRECON_AMOUNT_TOLERANCE", defaults.amount_tolerance),
        auto_resolve_threshold=env_decimal(
            "PAYRECON_AUTO_RESOLVE_THRESHOLD", defaults.auto_resolve_threshold
        ),
    )
