from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Expense Tracker"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Browser dev server origins allowed to call /api/*
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Object storage for receipts
    STORAGE_BACKEND: str = "memory"  # "memory" or "filesystem"
    STORAGE_DIR: str = ".storage"
    STORAGE_SIGNING_SECRET: str = "changeme"
    UPLOAD_URL_TTL: int = 300
    DOWNLOAD_URL_TTL: int = 3600
    PUBLIC_BASE_URL: Optional[str] = None

    # Built frontend assets; index.html falls back to the bundled template
    STATIC_DIR: str = "public"

    class Config:
        case_sensitive = True

settings = Settings()
