"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: TETHER_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TETHER_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("store"), description="Data storage directory")
    db_name: str = Field(default="tether.db", description="SQLite database name")
    lock_name: str = Field(default="tether.pid", description="Single-instance lock file name")
    log_name: str = Field(default="tether.log", description="Log file name")

    # Scheduling
    default_timezone: str = Field(
        default="America/Chicago", description="IANA zone used when a task omits one"
    )
    task_sync_interval_seconds: int = Field(
        default=60, description="How often timers are reconciled with stored task status"
    )
    shutdown_grace_seconds: float = Field(
        default=30.0, description="How long shutdown waits for in-flight firings before cancelling"
    )

    # Maintenance
    decay_interval_hours: float = Field(default=24.0, description="Memory decay sweep interval")
    wal_checkpoint_interval_hours: float = Field(default=6.0, description="WAL checkpoint interval")

    # Conversation
    command_prefix: str = Field(default="/", description="Prefix marking chat commands")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def lock_path(self) -> Path:
        return self.data_dir / self.lock_name

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_name


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
