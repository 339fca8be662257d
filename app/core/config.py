"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./wedding_guests.db")

    # Photo storage
    USE_FIREBASE_STORAGE: bool = os.getenv("USE_FIREBASE_STORAGE", "false").lower() in ("1", "true", "yes")
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")
    FIREBASE_STORAGE_BUCKET: str | None = os.getenv("FIREBASE_STORAGE_BUCKET")
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    MEDIA_SIGNING_KEY: str = os.getenv("MEDIA_SIGNING_KEY", "media_signing_key_123")
    PHOTO_URL_TTL_SECONDS: int = 60

    # Security
    HOST_TOKEN: str = os.getenv("HOST_TOKEN", "host_token_123")

    # Payments
    STRIPE_SECRET_KEY: str | None = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: str | None = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_TIER_1: str | None = os.getenv("STRIPE_PRICE_TIER_1")
    STRIPE_PRICE_TIER_2: str | None = os.getenv("STRIPE_PRICE_TIER_2")
    STRIPE_PRICE_TIER_3: str | None = os.getenv("STRIPE_PRICE_TIER_3")
    STRIPE_STORAGE_RENEWAL_PRICE_ID: str | None = os.getenv("STRIPE_STORAGE_RENEWAL_PRICE_ID")

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # File limits
    MAX_PHOTO_SIZE: int = 10 * 1024 * 1024  # 10MiB

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    class Config:
        env_file = ".env"
        extra = "ignore"

    def stripe_price_for_tier(self, tier: int) -> str | None:
        return {
            1: self.STRIPE_PRICE_TIER_1,
            2: self.STRIPE_PRICE_TIER_2,
            3: self.STRIPE_PRICE_TIER_3,
        }.get(tier)

settings = Settings()
