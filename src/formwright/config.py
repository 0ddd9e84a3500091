"""Configuration file loading and validation."""

import logging
from pathlib import Path
from typing import Dict
from zoneinfo import ZoneInfo, available_timezones

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .consts import (
    AUTOSAVE_DELAY,
    DATABASE_PATH,
    LOG_FILE_DEFAULT,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW,
    TEXT_PARSE_DELAY,
)
from .errors import ConfigException

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Record store configuration."""

    path: str = Field(default=DATABASE_PATH)


class WebConfig(BaseModel):
    """Web service configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    debug: bool = Field(default=False)


class RateLimitConfig(BaseModel):
    """Public submission rate limiting."""

    enabled: bool = True
    max_requests: int = Field(default=RATE_LIMIT_MAX_REQUESTS, ge=1)
    window_seconds: int = Field(default=RATE_LIMIT_WINDOW, ge=1)


class EditorConfig(BaseModel):
    """Builder session timings."""

    autosave_delay: float = Field(default=AUTOSAVE_DELAY, gt=0)
    text_parse_delay: float = Field(default=TEXT_PARSE_DELAY, gt=0)


class AuthConfig(BaseModel):
    """API keys accepted on management endpoints, mapped to owner ids."""

    api_keys: Dict[str, str] = Field(default_factory=dict)

    @field_validator("api_keys")
    @classmethod
    def validate_api_keys(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key, owner in v.items():
            if not key.strip():
                raise ValueError("API keys cannot be empty")
            if not owner or not owner.strip():
                raise ValueError(f"API key {key[:2]}*** has no owner")
        return v


class Config(BaseSettings):
    """Application configuration."""

    timezone: str = Field(default="UTC")
    log_file: str = Field(default=LOG_FILE_DEFAULT)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    editor: EditorConfig = Field(default_factory=EditorConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = SettingsConfigDict(
        env_prefix="FORMWRIGHT_",
        env_nested_delimiter="__",
    )

    @field_validator("timezone", mode="before")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in available_timezones():
            raise ValueError(
                f"Invalid timezone configuration: '{v}'. "
                "Please use a valid IANA timezone identifier"
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from specified path."""
        path = Path(config_path)
        if not path.exists():
            raise ConfigException(f"Configuration file not found: {config_path}")

        class _Config(cls):
            model_config = SettingsConfigDict(
                toml_file=str(path),
                env_prefix="FORMWRIGHT_",
                env_nested_delimiter="__",
            )

        try:
            return _Config()
        except ValidationError as e:
            error_lines = ["Configuration validation failed:"]
            for error in e.errors():
                loc = " -> ".join(str(item) for item in error["loc"])
                error_lines.append(f"  - {loc}: {error['msg']}")
            raise ConfigException("\n".join(error_lines)) from e

    def get_timezone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def owner_for_api_key(self, api_key: str | None) -> str | None:
        if not api_key:
            return None
        return self.auth.api_keys.get(api_key)
