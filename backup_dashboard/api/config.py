"""Configuration for FastAPI application."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # API Configuration
    api_prefix: str = ""
    api_title: str = "Backup & Restore Dashboard"
    api_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Basic auth; unset credentials reject every request
    admin_user: Optional[str] = None
    admin_pass: Optional[str] = None

    @field_validator("api_prefix")
    @classmethod
    def normalize_prefix(cls, v):
        """Strip trailing slashes so routers can be mounted under the prefix."""
        v = v.rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )


settings = Settings()
