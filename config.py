"""Configuration management via pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote search API
    search_url: str = "https://api.wallapop.com/api/v3/general/search"
    item_link_base: str = "http://p.wallapop.com/i"
    request_timeout_seconds: float = 10.0
    request_delay_seconds: float = 1.0
    geo_table_path: Path | None = None

    # Database
    database_path: Path = Field(default=Path("./data/watcher.db"))

    # Rotation
    cycle_interval_seconds: float = 5.0
    dedup_ttl_hours: float = 6.0
    dedup_purge_interval_minutes: int = 60

    # Notifications
    default_chat: str = ""
    webhook_url: str | None = None
    webhook_headers: str | None = None

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Field(default=Path("./logs"))


settings = Settings()
