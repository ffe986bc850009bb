"""
Configuration management using Pydantic models.

Configuration is read once at startup from ``config.yaml`` and environment
variables, then handed explicitly to the service, API and CLI layers.
"""

import os
from datetime import time
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InvalidTimezoneError
from .domain.models import BusinessHours
from .domain.timeutil import ensure_timezone
from .services.windows import RELATIVE_RANGES


class BusinessHoursConfig(BaseModel):
    """Daily business-hours window, in local time of the requested zone."""
    start: time = time(9, 0)
    end: time = time(17, 0)

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the configured window opens before it closes."""
        if self.end <= self.start:
            raise ValueError("business_hours.end must be later than business_hours.start")
        return self

    def to_domain(self) -> BusinessHours:
        return BusinessHours(start_time=self.start, end_time=self.end)


class DefaultsConfig(BaseModel):
    """Default settings for search and booking."""
    duration_minutes: int = 30
    limit: int = 12
    max_limit: int = 200
    range: str = "month"
    summary: str = "Consultation"
    description: str = ""
    lead_minutes: int = 1

    @field_validator("duration_minutes", "limit", "max_limit")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure counts and durations are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("lead_minutes")
    @classmethod
    def validate_lead(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"lead_minutes must not be negative, got {value}")
        return value

    @field_validator("range")
    @classmethod
    def validate_range(cls, value: str) -> str:
        value = value.lower()
        if value not in RELATIVE_RANGES:
            raise ValueError(f"Default range must be one of week, fortnight, month, got '{value}'")
        return value


class GoogleConfig(BaseModel):
    """Service-account credentials for the Google Calendar API."""
    client_email: str = ""
    private_key: str = ""
    timeout_seconds: float = 30

    @field_validator("private_key")
    @classmethod
    def unescape_private_key(cls, value: str) -> str:
        """Keys pasted into env vars usually carry literal '\\n' sequences."""
        return value.replace("\\n", "\n")

    def is_configured(self) -> bool:
        return bool(self.client_email and self.private_key)


class ServerConfig(BaseModel):
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Application configuration."""
    calendar_id: Optional[str] = None
    timezone: str = "America/Chicago"
    api_secret: str = ""
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Only real IANA zones are accepted, no fixed-offset fallback."""
        try:
            return ensure_timezone(value)
        except InvalidTimezoneError as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load(cls, config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Load the YAML file if present, then apply environment overrides.

        An explicitly given path must exist; the default path is optional so
        the service can be configured from the environment alone.
        """
        if config_path is not None:
            config = cls.load_from_yaml(config_path)
        else:
            default_path = get_default_config_path()
            config = cls.load_from_yaml(default_path) if default_path.exists() else cls()

        return config.with_env_overrides(os.environ if environ is None else environ)

    def with_env_overrides(self, environ: Mapping[str, str]) -> "AppConfig":
        """Return a copy with values taken from the process environment."""
        data = self.model_dump()

        if environ.get("DEFAULT_CALENDAR_ID"):
            data["calendar_id"] = environ["DEFAULT_CALENDAR_ID"]
        if environ.get("DEFAULT_TZ"):
            data["timezone"] = environ["DEFAULT_TZ"]
        if "API_SECRET" in environ:
            data["api_secret"] = environ["API_SECRET"]
        if environ.get("GOOGLE_CLIENT_EMAIL"):
            data["google"]["client_email"] = environ["GOOGLE_CLIENT_EMAIL"]
        if environ.get("GOOGLE_PRIVATE_KEY"):
            data["google"]["private_key"] = environ["GOOGLE_PRIVATE_KEY"]
        if environ.get("PORT"):
            data["server"]["port"] = int(environ["PORT"])

        return AppConfig(**data)

    def build_business_hours(self) -> BusinessHours:
        return self.business_hours.to_domain()


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
