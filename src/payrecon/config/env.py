"""Environment variable readers for configuration."""

from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation

from .errors import ConfigurationError


def _raw(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_str(name: str, default: str | None = None) -> str | None:
    return _raw(name) or default


def env_int(name: str, default: int, *, minimum: int = 1) -> int:
    value = env_optional_int(name, minimum=minimum)
    return default if value is None else value


def env_optional_int(name: str, *, minimum: int = 1) -> int | None:
    raw = _raw(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


def env_float(name: str, default: float, *, low: float = 0.0, high: float = 1.0) -> float:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if not low <= value <= high:
        raise ConfigurationError(f"{name} must be within [{low}, {high}], got {value}")
    return value


def env_decimal(name: str, default: Decimal) -> Decimal:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a decimal amount, got {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"{name} must be a non-negative amount, got {raw!r}")
    return value
