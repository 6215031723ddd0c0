"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_MAX_MESSAGES = 20_000
DEFAULT_CHANNEL_CAPACITY = 4096
DEFAULT_REFRESH_INTERVAL = 0.05  # seconds, one refresh per frame
DEFAULT_VALUE_MAX_DEPTH = 32
DEFAULT_RETRY_DELAY = 2.0


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass
class InspectorSettings:
    """Tunables for the ingestion and query core."""

    max_messages: int = DEFAULT_MAX_MESSAGES
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    value_max_depth: int = DEFAULT_VALUE_MAX_DEPTH
    retry_delay: float = DEFAULT_RETRY_DELAY
    grouping_keys: list[str] = field(default_factory=lambda: ["none"])
    filter_text: str = ""
    view_mode: str = "session"

    @classmethod
    def from_env(cls) -> "InspectorSettings":
        """Build settings from DBUDDY_* environment variables."""
        grouping = os.getenv("DBUDDY_GROUPING", "none")
        view_mode = os.getenv("DBUDDY_VIEW", "session").strip().lower()
        if view_mode not in ("session", "system", "both"):
            raise ConfigError(
                f"DBUDDY_VIEW must be session, system or both, got {view_mode!r}"
            )

        return cls(
            max_messages=_env_int("DBUDDY_MAX_MESSAGES", DEFAULT_MAX_MESSAGES),
            channel_capacity=_env_int(
                "DBUDDY_CHANNEL_CAPACITY", DEFAULT_CHANNEL_CAPACITY
            ),
            refresh_interval=_env_float(
                "DBUDDY_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL
            ),
            value_max_depth=_env_int(
                "DBUDDY_VALUE_MAX_DEPTH", DEFAULT_VALUE_MAX_DEPTH
            ),
            retry_delay=_env_float("DBUDDY_RETRY_DELAY", DEFAULT_RETRY_DELAY),
            grouping_keys=[k.strip() for k in grouping.split(",") if k.strip()]
            or ["none"],
            filter_text=os.getenv("DBUDDY_FILTER", ""),
            view_mode=view_mode,
        )
