"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1024, le=65535)
    debug: bool = Field(default=False)
    workers: int = Field(default=1, ge=1, le=8)

    # Security
    cors_origins: List[str] = Field(default=["http://localhost:5173", "http://localhost:3000"])

    # Authentication (Bearer JWT)
    jwt_secret_key: str = Field(min_length=32)
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=10080, ge=5)  # 7 days

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/workflows.db")
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=20, ge=5, le=100)
    database_max_overflow: int = Field(default=30, ge=10, le=100)

    # Broker Configuration
    redis_url: Optional[str] = Field(default=None)
    redis_enabled: bool = Field(default=False)

    # Job Queue
    queue_name: str = Field(default="workflows", min_length=1)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_delay: float = Field(default=1.0, ge=0.0, le=60.0)  # seconds
    worker_enabled: bool = Field(default=True)
    worker_poll_interval: float = Field(default=1.0, ge=0.05, le=60.0)
    queue_reclaim_idle: float = Field(default=300.0, ge=0.0, le=86400.0)  # seconds before a stalled delivery is reclaimed
    dlq_enabled: bool = Field(default=True)

    # AI Provider
    openai_api_key: Optional[str] = Field(default=None)
    ai_model: str = Field(default="gpt-3.5-turbo")
    ai_timeout: int = Field(default=30, ge=5, le=300)
    ai_max_retries: int = Field(default=2, ge=0, le=5)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "forbid",
        "env_parse_none_str": "none",
    }
