"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Read from ``COMPLAINT_WORKFLOW_*`` environment variables or a ``.env``
    file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMPLAINT_WORKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_name: str = Field(default="workflow-api", description="Reported by health checks")
    data_file: Path = Field(default=Path("items.json"), description="JSON collection file")
    host: str = Field(default="0.0.0.0", description="API bind host")
    port: int = Field(default=5174, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origins (comma-separated)",
    )
    allow_amplify_origins: bool = Field(
        default=True,
        description="Also allow any https://*.amplifyapp.com origin",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    default_actor: str = Field(
        default="mahi",
        min_length=1,
        description="Actor passed to the engine when a request names none",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v!r}")
        return level

    @property
    def allowed_origins_list(self) -> List[str]:
        """Configured origins, blanks dropped."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
