"""
Configuration for the task management API.

Values come from environment variables (or a local .env file). Names are not
prefixed so MONGODB_URI, JWT_SECRET, PORT and FRONTEND_URL keep their usual
meaning for deployments.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    mongodb_uri: str = Field(default="mongodb://localhost:27017/task_manager")
    database_name: str = Field(default="task_manager", description="Used when the URI names no database")

    # Auth
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_algorithm: str = Field(default="HS256")
    access_token_ttl_hours: int = Field(default=24, gt=0)
    refresh_token_ttl_days: int = Field(default=7, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # HTTP
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    frontend_url: str = Field(default="http://localhost:3000", description="Allowed CORS origin")

    # Fixed-window rate limiting, per client address
    rate_limit_max_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: int = Field(default=15 * 60, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    service_name: str = Field(default="Task Management API")
    service_version: str = Field(default="1.0.0")


@lru_cache
def get_settings() -> Settings:
    return Settings()
