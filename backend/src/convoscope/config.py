"""
Convoscope settings.

Everything is read from environment variables or a local .env file. The
module-level `settings` instance is shared by the whole process.
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Default log directory.

    $XDG_STATE_HOME/convoscope/logs, else ~/.local/state/convoscope/logs,
    else ./logs when HOME is unset.
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "convoscope" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "convoscope" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Convoscope configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    postgres_db: str = "convoscope"
    postgres_user: str = "convoscope"
    postgres_password: str = "convoscope_dev_password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: str = Field(default="", alias="DATABASE_URL")

    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct database URL from components unless DATABASE_URL is set."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Ingestion API
    api_key: str = ""  # Shared secret expected in the x-api-key header

    # Dashboard session
    dashboard_username: str = ""
    dashboard_password: str = ""
    session_secret: str = ""
    session_cookie_name: str = "convoscope_session"
    session_max_age_seconds: int = 60 * 60 * 24 * 7  # 7 days

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # Empty means get_xdg_state_dir()
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True
    log_file_enabled: bool = True
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5
    log_to_stdout: bool = True  # Below WARNING
    log_to_stderr: bool = True  # WARNING and above

    @property
    def log_directory(self) -> Path:
        """LOG_DIR if set, otherwise the XDG state directory."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
