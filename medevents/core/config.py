"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./medevents.db")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Firebase (push notifications)
    FIREBASE_CREDENTIALS_JSON: str | None = os.getenv("FIREBASE_CREDENTIALS_JSON")
    FIREBASE_CREDENTIALS_FILE: str | None = os.getenv("FIREBASE_CREDENTIALS_FILE")
    FIREBASE_CREDENTIALS_B64: str | None = os.getenv("FIREBASE_CREDENTIALS_B64")

    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")
    PRIVILEGED_ROLES: List[str] = ["admin", "meded_team", "ctf"]

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    EVENT_TIMEZONE: str = os.getenv("EVENT_TIMEZONE", "Europe/London")

    # Certificate issuance (empty URL -> local ledger issuer)
    CERTIFICATE_ISSUER_URL: str = os.getenv("CERTIFICATE_ISSUER_URL", "")
    ISSUER_TIMEOUT_SECONDS: int = int(os.getenv("ISSUER_TIMEOUT_SECONDS", "15"))

    # Post-event certificate sweep
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "false").lower() in ("1", "true", "yes")
    SWEEP_INTERVAL_MINUTES: int = int(os.getenv("SWEEP_INTERVAL_MINUTES", "15"))
    SWEEP_LOOKBACK_DAYS: int = int(os.getenv("SWEEP_LOOKBACK_DAYS", "7"))

    # Email (SMTP)
    SMTP_SERVER: str = os.getenv("SMTP_SERVER", "localhost")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")
    FROM_EMAIL: str = os.getenv("FROM_EMAIL", "noreply@medevents.local")
    FROM_NAME: str = os.getenv("FROM_NAME", "MedEd Events")
    SEND_EMAILS: bool = os.getenv("SEND_EMAILS", "false").lower() in ("1", "true", "yes")
    OPS_EMAIL: str = os.getenv("OPS_EMAIL", "")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
