"""
12-Factor configuration helper.

Every tool reads its config from environment variables.
This module provides typed helpers that tools can use; it holds no
settings of its own.
"""

from __future__ import annotations

import os

from common.errors import ConfigError


def env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def env_int(key: str, default: int = 0) -> int:
    raw = os.environ.get(key, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def env_float(key: str, default: float = 0.0) -> float:
    raw = os.environ.get(key, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def env_bool(key: str, default: bool = False) -> bool:
    return os.environ.get(key, str(default)).lower() in ("1", "true", "yes")


def env_list(key: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    """Comma-separated list; blank items are dropped."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())
