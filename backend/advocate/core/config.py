from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --------------------
    # App
    # --------------------
    PROJECT_NAME: str = "Advocate Connect"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # --------------------
    # Security / Auth
    # --------------------
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # --------------------
    # Database
    # --------------------
    DATABASE_URL: str
    DB_ECHO: bool = False

    # --------------------
    # Pagination
    # --------------------
    DEFAULT_PAGE_SIZE: int = 10
    HISTORY_PAGE_SIZE: int = 20
    MESSAGES_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # --------------------
    # Documents
    # --------------------
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()

if not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
