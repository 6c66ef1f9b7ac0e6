from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "bucketstore"
    app_env: str = "dev"
    log_level: str = "INFO"
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600
    storage_dir: str = "uploads/buckets"
    database_path: str = "uploads/metadata.db"
    max_upload_size_bytes: int = 10 * 1024 * 1024
    allowed_mime_types: list[str] = ["image/jpeg", "image/png", "application/pdf"]
    max_page_size: int = 100
    cors_origins: list[str] = []

    model_config = SettingsConfigDict(env_file=".env", env_prefix="BKS_")


@lru_cache
def get_settings() -> Settings:
    return Settings()
