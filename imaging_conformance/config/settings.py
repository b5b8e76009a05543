"""Application settings loaded from environment variables."""
from functools import lru_cache
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # WebSocket
    ws_heartbeat_interval: int = Field(default=30, description="WebSocket heartbeat interval in seconds")

    # Conformance
    revalidation_debounce_seconds: float = Field(
        default=0.3,
        ge=0.0,
        description="Quiescence window before a triggered re-validation runs"
    )
    definitions_dir: str = Field(
        default="data/definitions",
        description="Directory of JSON evaluation definitions, one file per trial criteria type"
    )
    default_trial_criteria_type: str = Field(
        default="recist",
        description="Trial criteria type selected at startup"
    )
    measurements_ready_on_start: bool = Field(
        default=False,
        description="Initial value of the measurements-ready flag gating auto re-validation"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
