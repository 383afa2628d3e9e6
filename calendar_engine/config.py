"""Settings management using Pydantic for type validation and configuration.

Values come from, in increasing priority: field defaults, a YAML file,
``CALENDAR_ENGINE_*`` environment variables (or a ``.env`` file) and explicit
keyword arguments.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import WeekStart

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"
ENV_PREFIX = "CALENDAR_ENGINE_"


class EngineSettings(BaseSettings):
    """Engine settings with environment variable support."""

    # Recurrence expansion
    horizon_days: int = Field(
        default=365, ge=1, description="Expansion horizon for rules without an end date"
    )
    max_occurrences: int = Field(
        default=1000, ge=1, description="Hard cap on occurrences produced for one rule"
    )

    # Calendar view
    week_start: WeekStart = Field(default=WeekStart.SUNDAY, description="First day of the week view")

    # Persistence
    store_path: Path = Field(
        default_factory=lambda: Path.cwd() / "data" / "events.json",
        description="JSON file backing the local event store",
    )
    api_base_url: Optional[str] = Field(
        default=None, description="Base URL of a remote event API (enables the HTTP store)"
    )
    store_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout applied to every persistence call"
    )

    # Reminders
    notification_interval_seconds: float = Field(
        default=1.0, gt=0, description="Reminder tick period"
    )

    # Server
    server_host: str = Field(default="127.0.0.1", description="Host address for the REST server")
    server_port: int = Field(default=3000, description="Port for the REST server")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @classmethod
    def load(cls, config_file: Optional[Path] = None, **overrides: Any) -> "EngineSettings":
        """Build settings, layering a YAML file beneath environment variables.

        Args:
            config_file: Explicit YAML path. Defaults to ``config.yaml`` in the
                working directory when that file exists.
            **overrides: Values that take precedence over everything else

        Returns:
            Populated EngineSettings
        """
        yaml_values = _read_yaml_config(config_file)
        settings = cls(**overrides)

        # Environment variables and explicit overrides win over YAML values
        explicit = {name: getattr(settings, name) for name in settings.model_fields_set}
        from_yaml = {key: value for key, value in yaml_values.items() if key not in explicit}
        if not from_yaml:
            return settings
        return cls(**from_yaml, **explicit)


def _read_yaml_config(config_file: Optional[Path]) -> dict[str, Any]:
    """Load a flat mapping of settings from YAML, or {} when there is none."""
    path = config_file or Path.cwd() / DEFAULT_CONFIG_FILE
    if not path.exists():
        if config_file is not None:
            logger.warning("Config file %s not found; using defaults", path)
        return {}

    with path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if not data:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: YAML root must be a mapping")

    known = {key: value for key, value in data.items() if key in EngineSettings.model_fields}
    ignored = sorted(set(data) - set(known))
    if ignored:
        logger.warning("Ignoring unknown settings in %s: %s", path, ", ".join(ignored))
    logger.debug("Loaded %d settings from %s", len(known), path)
    return known
