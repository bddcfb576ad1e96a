from __future__ import annotations
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "funprints"

    # Mail is logged instead of sent while SMTP_HOST is unset
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_STARTTLS: bool = True
    MAIL_FROM: str = "Fun Prints <orders@funprints.in>"
    ADMIN_EMAIL: str = "admin@funprints.in"

    ADMIN_TOKEN: Optional[str] = None

    UPI_ID: str = "funprints@upi"
    UPI_NAME: str = "Fun Prints"
    WHATSAPP_NUMBER: str = "919000000000"

    PINCODE_API_URL: str = "https://api.postalpincode.in/pincode"
    PINCODE_TIMEOUT: float = 8.0

    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
