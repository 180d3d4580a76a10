"""
Pydantic Settings Configuration
=================================

Type-safe configuration for the approval gateway.
Validates all values at startup and fails fast with clear error messages.
"""

from typing import List, Optional
from pathlib import Path
from importlib import metadata
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
import yaml

from execgate.core.exceptions import ConfigurationError


DEFAULT_APPROVAL_TIMEOUT_MS = 120_000


def _project_version() -> str:
    """Resolve the project version from package metadata."""
    try:
        return metadata.version("execgate")
    except metadata.PackageNotFoundError:
        return "0.0.0-dev"


class ApprovalsConfig(BaseModel):
    """Approval wait configuration"""
    default_timeout_ms: int = Field(
        DEFAULT_APPROVAL_TIMEOUT_MS, ge=1, description="Wait applied when a request carries no timeoutMs"
    )
    max_timeout_ms: int = Field(3_600_000, ge=1, description="Upper bound on any single approval wait")

    @model_validator(mode='after')
    def validate_bounds(self) -> "ApprovalsConfig":
        if self.default_timeout_ms > self.max_timeout_ms:
            raise ValueError("approvals.default_timeout_ms must not exceed approvals.max_timeout_ms")
        return self

    def effective_timeout_ms(self, requested: Optional[int]) -> int:
        """Timeout for a request: the requested value, else the default, capped at the max."""
        timeout_ms = self.default_timeout_ms if requested is None else requested
        return max(1, min(timeout_ms, self.max_timeout_ms))

    model_config = ConfigDict(extra='forbid')


class EventsConfig(BaseModel):
    """Broadcast channel configuration"""
    enable_history: bool = Field(False, description="Keep recent approval events in memory")
    max_history: int = Field(1000, ge=1, le=100_000, description="Maximum number of events kept")

    model_config = ConfigDict(extra='forbid')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("json", description="Log format (json, text)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v_lower

    model_config = ConfigDict(extra='forbid')


class Settings(BaseSettings):
    """
    Main gateway settings with type validation.

    Configuration is loaded from:
    1. YAML config file (if provided)
    2. Environment variables with EXECGATE_ prefix (override)
    3. Default values (fallback)

    Environment variable mapping uses double-underscore nesting:
      EXECGATE_APPROVALS__DEFAULT_TIMEOUT_MS
      EXECGATE_EVENTS__ENABLE_HISTORY
      EXECGATE_LOGGING__LEVEL
    """

    approvals: ApprovalsConfig = Field(default_factory=ApprovalsConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    version: str = Field(default_factory=_project_version, description="Project version")

    model_config = SettingsConfigDict(
        env_prefix='EXECGATE_',
        env_nested_delimiter='__',
        extra='forbid',
        validate_assignment=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment first so it overrides values loaded from YAML
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValidationError: If configuration is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables only."""
        return cls()


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate gateway settings.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    try:
        if config_path:
            return Settings.from_yaml(config_path)
        return Settings.from_env()
    except FileNotFoundError as e:
        raise ConfigurationError(str(e), {'path': str(config_path)}) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file is not valid YAML: {e}", {'path': str(config_path)}) from e
    except ValidationError as e:
        errors: List[str] = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(f"  - {msg}" for msg in errors),
            {'errors': errors},
        ) from e


__all__ = [
    'DEFAULT_APPROVAL_TIMEOUT_MS',
    'Settings',
    'ApprovalsConfig',
    'EventsConfig',
    'LoggingConfig',
    'load_settings',
]
