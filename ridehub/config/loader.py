# ridehub/config/loader.py
"""
Project configuration loader.
config/config.json is the single source of truth.
Secrets are overridden from environment variables.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# PATHS
# =============================================================================

def get_project_root() -> Path:
    """Returns the project root directory."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Returns the path to the configuration file."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Loads config.json into a dict."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# CONFIGURATION SECTIONS
# =============================================================================

class SystemSettings(BaseModel):
    """System settings."""
    PROJECT_NAME: str = "ridehub"
    VERSION: str = "0.3.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class ServerSettings(BaseModel):
    """HTTP / WebSocket server settings."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    API_PREFIX: str = "/api/v1"
    WS_PATH: str = "/ws"


class LoggingSettings(BaseModel):
    """Logging settings."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/ridehub.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DatabaseSettings(BaseModel):
    """PostgreSQL settings."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ridehub"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Reads the password from the environment when not set."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """PostgreSQL DSN."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class AuthSettings(BaseModel):
    """Access token settings."""
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    @field_validator("JWT_SECRET", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Reads the signing secret from the environment when not set."""
        if not v:
            return os.getenv("JWT_SECRET", "")
        return v


# =============================================================================
# ROOT SETTINGS
# =============================================================================

class Settings(BaseSettings):
    """
    Application settings.
    Aggregates every configuration section.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)

    @classmethod
    def from_config_json(cls, config_data: dict[str, Any] | None = None) -> "Settings":
        """
        Builds Settings from config.json.
        Secrets and deployment-specific values are overridden from the environment.
        """
        if config_data is None:
            config_data = load_config_json()

        # Keys starting with _comment_ are documentation only
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "ridehub"),
                VERSION=filtered_data.get("VERSION", "0.3.0"),
                DEBUG=filtered_data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", filtered_data.get("ENVIRONMENT", "development")),
            ),
            server=ServerSettings(
                HOST=os.getenv("HOST", filtered_data.get("HOST", "0.0.0.0")),
                PORT=int(os.getenv("PORT", filtered_data.get("PORT", 8000))),
                API_PREFIX=filtered_data.get("API_PREFIX", "/api/v1"),
                WS_PATH=filtered_data.get("WS_PATH", "/ws"),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", filtered_data.get("LOG_LEVEL", "DEBUG")),
                LOG_TO_FILE=os.getenv("LOG_TO_FILE", filtered_data.get("LOG_TO_FILE", True)),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/ridehub.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=filtered_data.get("LOG_BACKUP_COUNT", 5),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", filtered_data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", filtered_data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", filtered_data.get("DB_NAME", "ridehub")),
                DB_USER=os.getenv("DB_USER", filtered_data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", filtered_data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=filtered_data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=filtered_data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=filtered_data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=filtered_data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=filtered_data.get("DB_RETRY_DELAY", 1.0),
            ),
            auth=AuthSettings(
                JWT_SECRET=os.getenv("JWT_SECRET", filtered_data.get("JWT_SECRET", "")),
                JWT_ALGORITHM=filtered_data.get("JWT_ALGORITHM", "HS256"),
                JWT_EXPIRE_MINUTES=filtered_data.get("JWT_EXPIRE_MINUTES", 60 * 24 * 7),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Returns the cached application settings.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
