"""
Application settings
Centralized configuration from environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Application
    APP_NAME: str = os.getenv("APP_NAME", "SkillShare API")
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = int(os.getenv("PORT", 8000))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME")
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "mongo")

    # Marketplace
    STARTING_CREDITS: int = int(os.getenv("STARTING_CREDITS", 100))
    REVALIDATE_BALANCE_ON_APPROVAL: bool = _flag("REVALIDATE_BALANCE_ON_APPROVAL", "true")

    # Auth
    TOKEN_TTL_DAYS: int = int(os.getenv("TOKEN_TTL_DAYS", 7))

    # CORS
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
