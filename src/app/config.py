from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "local"
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    FRONTEND_URL: Optional[str] = None
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
    )

    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None

    UPLOAD_FOLDER: str = "cooktopia/recipes"
    UPLOAD_MAX_BYTES: int = 2 * 1024 * 1024
    UPLOAD_MAX_FILES: int = 10

    FIREBASE_SERVICE_ACCOUNT_FILE: Optional[str] = None
    FIREBASE_ENABLE_FIRESTORE: bool = True

    @property
    def cloudinary_configured(self) -> bool:
        return all([self.CLOUDINARY_CLOUD_NAME, self.CLOUDINARY_API_KEY, self.CLOUDINARY_API_SECRET])

    def allowed_origins(self) -> list[str]:
        origins = [*self.FRONTEND_CORS_ORIGINS]
        if self.FRONTEND_URL:
            origins.append(self.FRONTEND_URL)
        return list(dict.fromkeys(origin for origin in origins if origin))
