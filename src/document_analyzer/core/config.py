from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    database_url: str = "sqlite:///./document_analyzer.db"

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path(".local_storage")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "document-analyzer"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    ai_extraction_enabled: bool = True
    ai_timeout_seconds: float = 30.0
    ai_max_chars: int = 12000

    tesseract_lang: str = "eng"
    ocr_timeout_seconds: float = 60.0

    upload_max_bytes: int = 10 * 1024 * 1024


settings = Settings()
