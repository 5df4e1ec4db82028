from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "codedrop"
    app_env: str = "dev"
    storage_dir: str = "uploads/blobs"
    database_path: str = "uploads/transfers.db"
    database_timeout_seconds: float = 5.0
    public_blob_path: str = "/files"
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "https://quick-share-ui.vercel.app",
            "http://localhost:5173",
        ]
    )
    max_upload_size_bytes: int = 20 * 1024 * 1024
    transfer_ttl_seconds: int = 600
    code_length: int = 6
    code_attempts: int = 5
    cleanup_token: str | None = None
    sweep_interval_seconds: float = 0
    log_level: str = "INFO"
    json_logs: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CODEDROP_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
