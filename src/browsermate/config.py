from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    name: str = "BrowserMate"
    env: str = "development"
    debug: bool = True
    port: int = 8000
    log_level: str = "INFO"
    # Emit JSON log lines instead of the human-readable format
    structured_logs: bool = False
    # Transport settings for FastMCP: "stdio" (default), "http", or "sse"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "127.0.0.1"


class StorageConfig(BaseModel):
    """Key-value persistence configuration values."""

    backend: Literal["memory", "sql"] = "sql"
    url: str = "sqlite+pysqlite:///browsermate.db"
    # Seconds before a storage read gives up and falls back to a default
    read_timeout: float = Field(default=2.0, gt=0)


class SourcesConfig(BaseModel):
    """Which browser sources may reach the generation context."""

    bookmarks: bool = True
    history: bool = True
    reading_list: bool = True

    def is_enabled(self, item_type: str) -> bool:
        """Return whether documents of `item_type` may be forwarded."""
        if item_type == "bookmark":
            return self.bookmarks
        if item_type == "history":
            return self.history
        if item_type == "reading-list":
            return self.reading_list
        return True


class SearchConfig(BaseModel):
    """Search and context budget configuration values."""

    # Maximum number of results forwarded to the generation step
    max_results: int = Field(default=20, ge=1)
    default_limit: int = Field(default=20, ge=1)


class SyncConfig(BaseModel):
    """Periodic sync configuration values."""

    enabled: bool = False
    interval_minutes: int = Field(default=30, ge=1)
    history_days: int = Field(default=7, ge=1)
    history_max_results: int = Field(default=1000, ge=1)


class ChromeConfig(BaseModel):
    """Chrome profile locations used by the bundled source adapters."""

    profile_dir: Optional[str] = None  # e.g. ~/.config/google-chrome/Default
    reading_list_path: Optional[str] = None  # JSON export of the reading list


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSERMATE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    storage: StorageConfig = StorageConfig()
    sources: SourcesConfig = SourcesConfig()
    search: SearchConfig = SearchConfig()
    sync: SyncConfig = SyncConfig()
    chrome: ChromeConfig = ChromeConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    return Settings()  # type: ignore[call-arg]
