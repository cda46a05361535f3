"""Outcome runtime configuration management.

Configuration is loaded from multiple sources with the following priority
(highest to lowest):
1. Explicit overrides (CLI arguments, keyword arguments)
2. Environment variables (with OUTCOME_ prefix)
3. Configuration files (outcome.config.yaml)
4. Default values

Example usage:
    from outcome_runtime.core.settings import get_settings

    settings = get_settings()
    print(settings.gates.default_sla_hours)

Environment variable support:
    OUTCOME_LOG_LEVEL=DEBUG
    OUTCOME_GATES__DEFAULT_SLA_HOURS=8
    OUTCOME_GATES__DASHBOARD_URL=https://runtime.example.com
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ["outcome.config.yaml", "outcome.config.yml"]

_NESTED_SECTIONS = [
    "statistics",
    "monitor",
    "kill_switch",
    "gates",
    "portfolio",
    "logging",
]

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find a configuration file in the start directory or its parents.

    Args:
        start_dir: Directory to start search from.
            Defaults to current working directory.

    Returns:
        Path to config file if found, None otherwise.
    """
    search_dir = start_dir or Path.cwd()

    for _ in range(10):
        for filename in CONFIG_FILE_NAMES:
            config_path = search_dir / filename
            if config_path.exists():
                return config_path

        parent = search_dir.parent
        if parent == search_dir:
            break
        search_dir = parent

    return None


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Unreadable or malformed files are logged and treated as empty.
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
            return config if isinstance(config, dict) else {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return {}
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return {}


class StatisticsSettings(BaseSettings):
    """Sequential test settings."""

    ci_z_score: float = Field(
        default=1.96,
        gt=0.0,
        description="z multiplier for the interval reported with each "
        "significance check",
    )
    default_mixture_variance: float = Field(
        default=1.0,
        gt=0.0,
        description="Mixing variance used when a plan sets neither mixture_variance "
        "nor a non-zero threshold",
    )


class MonitorSettings(BaseSettings):
    """Signal monitor settings."""

    metric_window_hours: float = Field(
        default=168.0,
        gt=0.0,
        description="Trailing window for current metric values (7 days)",
    )
    constraint_window_hours: float = Field(
        default=1.0,
        gt=0.0,
        description="Trailing window for constraint checks",
    )
    default_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Connector call timeout when a connector config sets none",
    )


class KillSwitchSettings(BaseSettings):
    """Auto kill-switch settings."""

    enabled: bool = Field(default=True, description="Whether kills are executed")
    guard_window_hours: float = Field(
        default=24.0,
        gt=0.0,
        description="Trailing window for guard constraint fetches",
    )


class GateSettings(BaseSettings):
    """Human gate settings."""

    default_sla_hours: float = Field(
        default=24.0,
        gt=0.0,
        description="SLA used when a gate is created without one",
    )
    reminder_percent: float = Field(
        default=50.0,
        gt=0.0,
        lt=100.0,
        description="Share of the SLA after which a single reminder is sent",
    )
    dashboard_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build gate links in notifications",
    )
    reset_sla_on_delegation: bool = Field(
        default=False,
        description="Measure a delegated gate's SLA from the escalation time "
        "instead of the original creation time",
    )

    @field_validator("dashboard_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class PortfolioSettings(BaseSettings):
    """Portfolio selection settings."""

    max_concurrent: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Maximum experiments selected to run concurrently",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(default="INFO", description="Log level")
    json_output: bool | None = Field(
        default=None,
        description="Output logs in JSON format (auto-detect when unset)",
    )
    file: str | None = Field(default=None, description="Log file path (optional)")
    module_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-module log level overrides",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in _VALID_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {_VALID_LEVELS}")
        return upper_v


class OutcomeRuntimeSettings(BaseSettings):
    """Main outcome runtime settings.

    Example:
        settings = OutcomeRuntimeSettings(_skip_file_loading=True)
        print(settings.kill_switch.guard_window_hours)

        settings = OutcomeRuntimeSettings(gates={"default_sla_hours": 4})
    """

    model_config = SettingsConfigDict(
        env_prefix="OUTCOME_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    log_level: str = Field(default="INFO", description="Application log level")

    statistics: StatisticsSettings = Field(default_factory=StatisticsSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    kill_switch: KillSwitchSettings = Field(default_factory=KillSwitchSettings)
    gates: GateSettings = Field(default_factory=GateSettings)
    portfolio: PortfolioSettings = Field(default_factory=PortfolioSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in _VALID_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {_VALID_LEVELS}")
        return upper_v

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, data: Any) -> Any:
        """Merge values from outcome.config.yaml underneath explicit data."""
        if not isinstance(data, dict):
            return data

        if data.get("_skip_file_loading"):
            data = dict(data)
            data.pop("_skip_file_loading", None)
            return data

        config_path = _find_config_file()
        if not config_path:
            return data

        file_config = _load_yaml_config(config_path)
        if not file_config:
            return data

        logger.debug("Loaded configuration from %s", config_path)
        merged = {**file_config, **data}
        for section in _NESTED_SECTIONS:
            file_section = file_config.get(section)
            if isinstance(file_section, dict):
                explicit = data.get(section)
                merged[section] = {
                    **file_section,
                    **(explicit if isinstance(explicit, dict) else {}),
                }
        return merged


def get_settings(
    config_file: Path | None = None,
    **overrides: Any,
) -> OutcomeRuntimeSettings:
    """Build a settings instance.

    Args:
        config_file: Optional explicit path to a configuration file. When
            given, automatic discovery is skipped.
        **overrides: Explicit configuration overrides.

    Returns:
        Configured settings.
    """
    if config_file and config_file.exists():
        file_config = _load_yaml_config(config_file)
        merged = {**file_config, **overrides, "_skip_file_loading": True}
        return OutcomeRuntimeSettings(**merged)

    return OutcomeRuntimeSettings(**overrides)


@lru_cache
def get_cached_settings() -> OutcomeRuntimeSettings:
    """Get a cached settings instance.

    The cache can be cleared with ``get_cached_settings.cache_clear()``.
    """
    return get_settings()


def generate_example_config(output_path: Path | None = None) -> str:
    """Generate an example configuration file.

    Args:
        output_path: Optional path to write the example to.

    Returns:
        Example configuration as a YAML string.
    """
    example = """\
# Outcome runtime configuration
# Environment variables override these values with the OUTCOME_ prefix
# Example: OUTCOME_GATES__DEFAULT_SLA_HOURS=8

log_level: INFO

statistics:
  ci_z_score: 1.96
  default_mixture_variance: 1.0

monitor:
  metric_window_hours: 168      # current value window (7 days)
  constraint_window_hours: 1
  default_timeout_seconds: 30

kill_switch:
  enabled: true
  guard_window_hours: 24

gates:
  default_sla_hours: 24
  reminder_percent: 50
  dashboard_url: http://localhost:3000
  reset_sla_on_delegation: false

portfolio:
  max_concurrent: 3

logging:
  level: INFO
  # json_output: true
  # file: /var/log/outcome-runtime.log
  # module_levels:
  #   outcome_runtime.signals: DEBUG
"""

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            f.write(example)
        logger.info("Generated example config at %s", output_path)

    return example
