"""
config/settings.py — Telegram Forwarder Runtime Settings

Merges config.yaml (feature switches, thresholds, intervals) with .env
(secrets: bot token and chat id). Pydantic-powered — all fields are
validated and typed.

  - Section models reject out-of-range values at parse time
    (battery thresholds outside 0–100, non-positive intervals)
  - validate_all() performs cross-field startup validation and raises
    ConfigError with a human-readable, numbered list of every problem
  - load_settings() respects FORWARDER_CONFIG as a fallback when no
    explicit config_path argument is given
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_DEVICE_BACKENDS = {"termux", "none"}


def _positive(name: str, v: float) -> float:
    if v <= 0:
        raise ValueError(f"{name} must be > 0, got {v}")
    return v


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class FeaturesConfig(BaseModel):
    """Per-feature enable switches. Defaults follow the Android app."""
    sms_forwarding: bool = True
    missed_calls: bool = False
    battery_notify: bool = False
    enhanced_battery_alerts: bool = True
    bot_polling: bool = False

    notify_boot_completed: bool = True
    notify_app_updated: bool = True
    notify_power_connected: bool = False
    notify_power_disconnected: bool = False
    notify_airplane_mode_on: bool = False
    notify_airplane_mode_off: bool = False
    notify_wifi_connected: bool = False
    notify_wifi_disconnected: bool = False
    notify_bluetooth_connected: bool = False
    notify_bluetooth_disconnected: bool = False


class BatteryConfig(BaseModel):
    low_threshold: float = 20.0
    high_threshold: float = 90.0

    @field_validator("low_threshold", "high_threshold")
    @classmethod
    def _valid_percentage(cls, v: float) -> float:
        if not (0.0 <= v <= 100.0):
            raise ValueError("battery thresholds must be between 0 and 100")
        return v


class PollingConfig(BaseModel):
    long_poll_timeout_seconds: int = 30
    http_timeout_seconds: float = 40.0
    idle_interval_seconds: float = 10.0
    batch_pause_seconds: float = 0.5
    backoff_floor_seconds: float = 2.0
    backoff_ceiling_seconds: float = 60.0

    @field_validator(
        "long_poll_timeout_seconds",
        "http_timeout_seconds",
        "idle_interval_seconds",
        "backoff_floor_seconds",
        "backoff_ceiling_seconds",
    )
    @classmethod
    def _positive_interval(cls, v: float, info: ValidationInfo) -> float:
        return _positive(f"polling.{info.field_name}", v)

    @field_validator("batch_pause_seconds")
    @classmethod
    def _non_negative_pause(cls, v: float) -> float:
        if v < 0:
            raise ValueError("polling.batch_pause_seconds must be >= 0")
        return v


class StorageConfig(BaseModel):
    sqlite_path: str = "./data/sqlite/forwarder.db"
    retention_minutes: float = 30.0
    cleanup_interval_minutes: float = 15.0

    @field_validator("retention_minutes", "cleanup_interval_minutes")
    @classmethod
    def _positive_minutes(cls, v: float, info: ValidationInfo) -> float:
        return _positive(f"storage.{info.field_name}", v)


class DeviceConfig(BaseModel):
    backend: str = "termux"
    battery_sample_seconds: float = 60.0
    wifi_sample_seconds: float = 30.0
    sms_sample_seconds: float = 15.0
    command_timeout_seconds: float = 20.0

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in _VALID_DEVICE_BACKENDS:
            raise ValueError(
                f"device.backend '{v}' is not supported. "
                f"Supported: {sorted(_VALID_DEVICE_BACKENDS)}"
            )
        return v

    @field_validator(
        "battery_sample_seconds",
        "wifi_sample_seconds",
        "sms_sample_seconds",
        "command_timeout_seconds",
    )
    @classmethod
    def _positive_sample(cls, v: float, info: ValidationInfo) -> float:
        return _positive(f"device.{info.field_name}", v)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 20
    backup_count: int = 5
    console_output: bool = True
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    Telegram Forwarder runtime settings.

    Priority (highest to lowest):
      1. Environment variables
      2. .env file
      3. config.yaml
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # -- Secrets from .env ---------------------------------------------------
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[str] = Field(default=None, alias="TELEGRAM_CHAT_ID")

    # -- Structured config (from config.yaml) --------------------------------
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    battery: BatteryConfig = Field(default_factory=BatteryConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("telegram_bot_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("telegram_chat_id", mode="before")
    @classmethod
    def _coerce_chat_id(cls, v: Any) -> Optional[str]:
        if v in (None, "", "null"):
            return None
        return str(v).strip() or None

    @field_validator("features", mode="before")
    @classmethod
    def _coerce_features(cls, v: Any) -> Any:
        return FeaturesConfig(**v) if isinstance(v, dict) else v

    @field_validator("battery", mode="before")
    @classmethod
    def _coerce_battery(cls, v: Any) -> Any:
        return BatteryConfig(**v) if isinstance(v, dict) else v

    @field_validator("polling", mode="before")
    @classmethod
    def _coerce_polling(cls, v: Any) -> Any:
        return PollingConfig(**v) if isinstance(v, dict) else v

    @field_validator("storage", mode="before")
    @classmethod
    def _coerce_storage(cls, v: Any) -> Any:
        return StorageConfig(**v) if isinstance(v, dict) else v

    @field_validator("device", mode="before")
    @classmethod
    def _coerce_device(cls, v: Any) -> Any:
        return DeviceConfig(**v) if isinstance(v, dict) else v

    @field_validator("logging", mode="before")
    @classmethod
    def _coerce_logging(cls, v: Any) -> Any:
        return LoggingConfig(**v) if isinstance(v, dict) else v

    # -- Convenience properties ----------------------------------------------

    @property
    def has_credentials(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def log_json_format(self) -> bool:
        return self.logging.json_format

    @property
    def log_console_output(self) -> bool:
        return self.logging.console_output

    def missing_credentials(self) -> list[str]:
        """Return the env var names of missing Telegram secrets."""
        missing = []
        if not self.telegram_bot_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.telegram_chat_id:
            missing.append("TELEGRAM_CHAT_ID")
        return missing

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time;
        this method catches cross-field problems they can't see.
        """
        errors: list[str] = []

        # ── Battery thresholds ───────────────────────────────────────────────
        if self.battery.low_threshold >= self.battery.high_threshold:
            errors.append(
                f"battery.low_threshold ({self.battery.low_threshold}) must be "
                f"below battery.high_threshold ({self.battery.high_threshold})."
            )

        # ── HTTP timeout must outlast the long poll ──────────────────────────
        if self.polling.http_timeout_seconds <= self.polling.long_poll_timeout_seconds:
            errors.append(
                f"polling.http_timeout_seconds ({self.polling.http_timeout_seconds}) "
                f"must be greater than polling.long_poll_timeout_seconds "
                f"({self.polling.long_poll_timeout_seconds}) or every idle poll "
                f"will time out."
            )

        # ── Backoff range ────────────────────────────────────────────────────
        if self.polling.backoff_floor_seconds > self.polling.backoff_ceiling_seconds:
            errors.append(
                "polling.backoff_floor_seconds must not exceed "
                "polling.backoff_ceiling_seconds."
            )

        # ── Cleanup must run at least once per retention window ──────────────
        if self.storage.cleanup_interval_minutes > self.storage.retention_minutes:
            errors.append(
                "storage.cleanup_interval_minutes must not exceed "
                "storage.retention_minutes."
            )

        # ── Report all errors together ───────────────────────────────────────
        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\nTelegram Forwarder startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader
# ─────────────────────────────────────────────────────────────────────────────

_KNOWN_SECTIONS = {"features", "battery", "polling", "storage", "device", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. FORWARDER_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("FORWARDER_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    resolved_path = _resolve_config_path(config_path)
    yaml_data = _load_yaml(resolved_path)

    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    return Settings(**init_kwargs)

