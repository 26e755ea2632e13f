"""Runtime configuration for the conversation lifecycle engine.

Settings are read from the environment once and cached. Tests that change
environment variables must call :func:`reset_settings_cache` afterwards.
"""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache

DEFAULT_RATING_PROMPT = (
    "🤔 ¿Te fue útil la información que te proporcioné? ¿Pudiste resolver tu "
    "consulta del 1 al 5? (1 = No me ayudó, 5 = Me ayudó mucho)"
)


def _to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _split_markers(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class EngineSettings:
    """Timing rules, timeouts and wiring options for the engine."""

    database_url: str | None = None
    help_delay_seconds: int = 120
    help_window_seconds: int = 120
    idle_after_seconds: int = 300
    help_markers: tuple[str, ...] = ("enlace",)
    rating_prompt: str = DEFAULT_RATING_PROMPT
    sweep_interval_seconds: int = 60
    scheduler_enabled: bool = False
    store_timeout_seconds: float = 5.0
    metric_timeout_seconds: float = 10.0
    on_time_max_turns: int = 2


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Load settings from the environment with development defaults."""

    return EngineSettings(
        database_url=os.getenv("DATABASE_URL") or None,
        help_delay_seconds=int(os.getenv("SWEEP_HELP_DELAY_SECONDS", "120")),
        help_window_seconds=int(os.getenv("SWEEP_HELP_WINDOW_SECONDS", "120")),
        idle_after_seconds=int(os.getenv("SWEEP_IDLE_AFTER_SECONDS", "300")),
        help_markers=_split_markers(os.getenv("SWEEP_HELP_MARKERS", "enlace")),
        rating_prompt=os.getenv("RATING_PROMPT", DEFAULT_RATING_PROMPT),
        sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", "60")),
        scheduler_enabled=_to_bool(os.getenv("SWEEP_SCHEDULER_ENABLED")),
        store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
        metric_timeout_seconds=float(os.getenv("METRIC_TIMEOUT_SECONDS", "10")),
        on_time_max_turns=int(os.getenv("ON_TIME_MAX_TURNS", "2")),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()


__all__ = ["EngineSettings", "get_settings", "reset_settings_cache"]
