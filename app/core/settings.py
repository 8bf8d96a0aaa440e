"""Configuration and environment settings for the Expense Import Service."""

from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings for the Expense Import Service."""

    database_url: str = "sqlite:///jobs/imports.db"
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    progress_flush_every: int = 10
    preview_sample_rows: int = 5
    log_dir: str = "logs"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
