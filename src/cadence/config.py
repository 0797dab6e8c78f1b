"""Configuration management for Cadence."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.recurrence import HorizonPolicy
from .core.streaks import CELEBRATION_MILESTONES, DAY_STREAK_LOOKBACK_DAYS, STREAK_LOOKBACK_DAYS

logger = logging.getLogger(__name__)

CADENCE_HOME = Path(os.environ.get("CADENCE_HOME", Path.home() / "cadence"))
CONFIG_FILE = CADENCE_HOME / "config" / "cadence.conf"
DATA_DIR = CADENCE_HOME / "data"

_POLICY = HorizonPolicy()


@dataclass
class Config:
    """Cadence configuration."""

    backend_url: str = ""
    backend_key: str = ""
    backend_token: str = ""
    backend_user_id: str = ""
    store_path: str = ""
    timezone: str = "UTC"
    rollover_time: str = "00:00"
    materialize_time: str = "00:05"
    streak_check_time: str = "21:00"
    # Expansion policy
    daily_horizon_months: int = _POLICY.daily_months
    weekly_horizon_months: int = _POLICY.weekly_months
    monthly_horizon_months: int = _POLICY.monthly_months
    default_horizon_days: int = _POLICY.default_days
    max_expansion_steps: int = _POLICY.max_steps
    # Streaks
    streak_lookback_days: int = STREAK_LOOKBACK_DAYS
    day_streak_lookback_days: int = DAY_STREAK_LOOKBACK_DAYS
    celebration_milestones: list[int] = field(default_factory=lambda: list(CELEBRATION_MILESTONES))

    def horizon_policy(self) -> HorizonPolicy:
        return HorizonPolicy(
            daily_months=self.daily_horizon_months,
            weekly_months=self.weekly_horizon_months,
            monthly_months=self.monthly_horizon_months,
            default_days=self.default_horizon_days,
            max_steps=self.max_expansion_steps,
        )

    def resolved_store_path(self) -> Path:
        if self.store_path:
            return Path(self.store_path).expanduser()
        return DATA_DIR / "cadence.json"


_INT_KEYS = {
    "daily_horizon_months",
    "weekly_horizon_months",
    "monthly_horizon_months",
    "default_horizon_days",
    "max_expansion_steps",
    "streak_lookback_days",
    "day_streak_lookback_days",
}


def _strip_value(value: str) -> str:
    # Handle quoted values with inline comments: "value" # comment
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from cadence.conf, then apply CADENCE_* environment overrides."""
    config = Config()
    path = path or CONFIG_FILE

    lines = path.read_text().splitlines() if path.exists() else []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        _apply(config, key.strip().lower(), _strip_value(value.strip()))

    for env_key, value in os.environ.items():
        if env_key.startswith("CADENCE_") and env_key != "CADENCE_HOME":
            _apply(config, env_key[len("CADENCE_"):].lower(), value)

    return config


def _apply(config: Config, key: str, value: str) -> None:
    match key:
        case "backend_url":
            config.backend_url = value.rstrip("/")
        case "backend_key":
            config.backend_key = value
        case "backend_token":
            config.backend_token = value
        case "backend_user_id":
            config.backend_user_id = value
        case "store_path":
            config.store_path = value
        case "timezone":
            config.timezone = value
        case "rollover_time":
            config.rollover_time = value
        case "materialize_time":
            config.materialize_time = value
        case "streak_check_time":
            config.streak_check_time = value
        case "celebration_milestones":
            try:
                config.celebration_milestones = sorted(int(m.strip()) for m in value.split(",") if m.strip())
            except ValueError:
                logger.warning(f"Invalid CELEBRATION_MILESTONES, keeping defaults: {value}")
        case _ if key in _INT_KEYS:
            try:
                setattr(config, key, int(value))
            except ValueError:
                logger.warning(f"Invalid integer for {key.upper()}, keeping default: {value}")
