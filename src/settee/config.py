"""Configuration settings for Settee.

Values are read from ``SETTEE_*`` environment variables or a ``.env`` file.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SETTEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # CouchDB server
    couch_url: str = "http://127.0.0.1:5984"
    couch_username: str | None = None
    couch_password: str | None = None
    request_timeout: float = 30.0

    # Field carrying the model type name inside every document
    model_type_key: str = "type"

    # Design documents
    auto_update_design_doc: bool = True
    design_refresh_seconds: float = Field(default=0.0, ge=0.0)  # 0 = never re-fetch

    # View logger
    log_dir: Path | None = None
    verbosity: int = Field(default=0, ge=0, le=2)

    @property
    def couch_auth(self) -> tuple[str, str] | None:
        """Basic-auth credentials, when both halves are configured."""
        if self.couch_username and self.couch_password:
            return (self.couch_username, self.couch_password)
        return None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Lazy proxy for settings that loads on first access."""

    def __getattr__(self, name: str) -> object:
        return getattr(get_settings(), name)


settings: Settings = _SettingsProxy()  # type: ignore[assignment]
