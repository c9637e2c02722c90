"""Configuration management using pydantic-settings.

All environment variables are loaded and validated here.
Sensitive data (API keys, passwords) are marked as sensitive to prevent logging.
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field has a default so the tool runs without any configuration;
    TMDB and the seedbox are only used when their credentials are present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_path: str = Field(
        default="data/getme.db",
        description="Path to the SQLite database holding tracked shows",
    )

    download_dir: str = Field(
        default="/tmp/getme",
        description="Directory where .torrent files are saved",
    )

    # Acquisition
    search_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for all search engines on one query",
        gt=0,
    )

    episode_batch_size: int = Field(
        default=50,
        description="Maximum number of episodes searched per run",
        ge=1,
    )

    discover_templates: bool = Field(
        default=True,
        description="Try alternative query shapes when a show has no remembered one",
    )

    # Search engines
    piratebay_enabled: bool = Field(default=True, description="Query PirateBay")

    piratebay_api_url: str = Field(
        default="https://apibay.org",
        description="PirateBay JSON API base URL",
    )

    torapi_enabled: bool = Field(default=True, description="Query TorAPI")

    torapi_base_url: str = Field(
        default="https://torapi.vercel.app",
        description="TorAPI gateway base URL",
    )

    # Optional: Metadata
    tmdb_api_key: SecretStr | None = Field(
        default=None,
        description="The Movie Database API key (required for 'getme add')",
    )

    # Optional: Seedbox (Deluge Web UI)
    seedbox_host: str | None = Field(
        default=None,
        description="Deluge Web UI URL, e.g. http://seedbox:8112",
    )

    seedbox_password: SecretStr | None = Field(
        default=None,
        description="Deluge Web UI password",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    environment: str = Field(
        default="development",
        description="Environment name (development, production)",
    )

    check_interval_hours: int = Field(
        default=6,
        description="Hours between acquisition runs in daemon mode",
        ge=1,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is development or production."""
        allowed = {"development", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v_lower

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def has_seedbox(self) -> bool:
        """Check if seedbox is configured."""
        return all([self.seedbox_host, self.seedbox_password])

    @property
    def has_tmdb(self) -> bool:
        """Check if TMDB lookups are possible."""
        return self.tmdb_api_key is not None

    def get_safe_dict(self) -> dict[str, str | int | float | bool | None]:
        """Get configuration as dict with sensitive values masked.

        Returns:
            Dictionary with SecretStr values shown as '***'
        """
        result = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)

            if isinstance(value, SecretStr):
                result[field_name] = "***"
            else:
                result[field_name] = value

        return result


# Global settings instance
settings = Settings()
