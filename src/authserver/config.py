"""Server settings using pydantic-settings.

Values come from, in increasing priority: defaults, an optional JSON config
file, AUTHSERVER_* environment variables, and explicit overrides (CLI flags).
List values in the environment are JSON, e.g.
AUTHSERVER_ALLOWED_ORIGINS='["https://app.example"]'.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, List, Optional, Tuple, Type, Union

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

ENV_PREFIX = "AUTHSERVER_"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Runtime settings for the API service.

    Environment variables:
        AUTHSERVER_SYSTEM_DB: System database path (users, resources, roles, grants)
        AUTHSERVER_TOKEN_DB: Token database path
        AUTHSERVER_API_BIND: Interface the API listens on (default: 127.0.0.1)
        AUTHSERVER_API_PORT: Port the API listens on (default: 3001)
        AUTHSERVER_TLS_CERT: TLS certificate file; TLS is on when cert and key are set
        AUTHSERVER_TLS_KEY: TLS private key file
        AUTHSERVER_ALLOWED_ORIGINS: JSON list of CORS origins (default: ["*"])
        AUTHSERVER_TOKEN_TTL_SECONDS: Lifetime of issued tokens (default: 3600)
        AUTHSERVER_LOG_LEVEL: loguru level name (default: INFO)
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    system_db: Path = Path("authserver.db")
    token_db: Path = Path("authserver-tokens.db")
    api_bind: str = "127.0.0.1"
    api_port: int = Field(default=3001, ge=1, le=65535)
    tls_cert: Optional[Path] = None
    tls_key: Optional[Path] = None
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    token_ttl_seconds: int = Field(default=3600, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # First source wins
        return init_settings, env_settings, JsonConfigSettingsSource(settings_cls)

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)

    @property
    def tls_enabled(self) -> bool:
        return self.tls_cert is not None and self.tls_key is not None

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None, **overrides: Any) -> "Settings":
        """
        Build settings from a config file, the environment and overrides.

        Args:
            path: Optional JSON config file
            **overrides: Explicit values; None values are ignored

        Returns:
            Validated Settings

        Raises:
            pydantic.ValidationError: If a value is invalid
            FileNotFoundError: If path is given but missing
        """
        settings_cls = cls
        if path is not None:
            path = Path(path)
            if not path.is_file():
                raise FileNotFoundError(f"Config file not found: {path}")
            settings_cls = type(cls.__name__, (cls,), {
                "__module__": cls.__module__,
                "model_config": SettingsConfigDict(json_file=path),
            })

        return settings_cls(**{k: v for k, v in overrides.items() if v is not None})
