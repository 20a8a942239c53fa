"""
Statsd Agent - Configuration

Loads agent settings from a YAML file. Bad or missing values never stop the
agent: each invalid field is reported and replaced by its default.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

logger = structlog.get_logger(__name__)

SettingsT = TypeVar("SettingsT", bound="SectionSettings")


class SectionSettings(BaseModel):
    """Frozen settings section built field by field from raw config."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_mapping(cls: Type[SettingsT], raw: Optional[Dict[str, Any]], section: str = "") -> SettingsT:
        """Validate each key on its own, substituting defaults for bad values."""
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            _report(ConfigError(f"Section '{section}' must be a mapping"), section=section)
            return cls()

        accepted: Dict[str, Any] = {}
        for key, value in raw.items():
            field = str(key).lower()
            if field not in cls.model_fields:
                logger.debug("Ignoring unknown setting", section=section, key=key)
                continue
            try:
                cls.model_validate({field: value})
            except ValidationError as e:
                error = ConfigError(f"Invalid value for {section}.{field}: {value!r}")
                _report(error, section=section, key=field, details=e.errors()[0]["msg"])
                continue
            accepted[field] = value

        return cls.model_validate(accepted)


class StatsdSettings(SectionSettings):
    """Collector address, namespace and polling interval."""
    host: str = "127.0.0.1"
    port: int = Field(default=8125, ge=1, le=65535)
    namespace: Optional[str] = None
    interval: float = Field(default=1.0, gt=0)

    @field_validator("host")
    @classmethod
    def _host_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("host must not be empty")
        return value

    @field_validator("namespace")
    @classmethod
    def _namespace_encodable(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().strip(".")
        if not value:
            raise ValueError("namespace must not be empty")
        if not value.isascii() or any(ch in value for ch in ":|@\n"):
            raise ValueError("namespace must not contain ':', '|', '@' or newlines")
        return value


class DatabaseSettings(SectionSettings):
    """Core database holding per-host call, channel and registration rows."""
    path: Optional[str] = None
    hostname: Optional[str] = None


class LoggingSettings(SectionSettings):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value}")
        return value


class AgentConfig(BaseModel):
    """Complete agent configuration."""

    model_config = ConfigDict(frozen=True)

    statsd: StatsdSettings = Field(default_factory=StatsdSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, raw: Any) -> "AgentConfig":
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            _report(ConfigError("Configuration document must be a mapping"))
            return cls()

        sections = {str(key).lower(): value for key, value in raw.items()}
        return cls(
            statsd=StatsdSettings.from_mapping(sections.get("statsd"), "statsd"),
            database=DatabaseSettings.from_mapping(sections.get("database"), "database"),
            logging=LoggingSettings.from_mapping(sections.get("logging"), "logging"),
        )


def load_config(config_path: str) -> AgentConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    path = Path(config_path)
    if not path.exists():
        logger.warning("Config file not found, using defaults", path=config_path)
        return AgentConfig()

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        _report(ConfigError(f"Cannot read {config_path}: {e}"), path=config_path)
        return AgentConfig()

    config = AgentConfig.from_mapping(raw)
    logger.info("Configuration loaded", path=config_path)
    return config


def _report(error: ConfigError, **context: Any) -> None:
    logger.warning("Invalid configuration, using defaults", error=str(error), **context)
