"""
Configuration loader for CarHub.
Loads environment variables from .env file.
"""
import os
from pathlib import Path
from typing import List
from dotenv import load_dotenv


# Load .env from the project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(ENV_PATH)


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: str | None, default: List[str]) -> List[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Application configuration."""
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017/carhub")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "carhub")

    # Bearer tokens
    JWT_SECRET: str = os.getenv("JWT_SECRET", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    TOKEN_TTL_HOURS: int = int(os.getenv("TOKEN_TTL_HOURS", "168"))
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # HTTP server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "5000"))
    CORS_ORIGINS: List[str] = _as_list(
        os.getenv("CORS_ORIGINS"),
        ["http://localhost:3000", "http://localhost:5176"],
    )
    # Seconds a single WebSocket send may take before it counts as failed
    WS_SEND_TIMEOUT: float = float(os.getenv("WS_SEND_TIMEOUT", "5"))

    # Periodic notification jobs (seconds)
    SCHEDULER_ENABLED: bool = _as_bool(os.getenv("SCHEDULER_ENABLED"), default=True)
    DAILY_DIGEST_INTERVAL: float = float(os.getenv("DAILY_DIGEST_INTERVAL", str(24 * 60 * 60)))
    MARKET_TRENDS_INTERVAL: float = float(os.getenv("MARKET_TRENDS_INTERVAL", str(60 * 60)))
    STALE_SCAN_INTERVAL: float = float(os.getenv("STALE_SCAN_INTERVAL", str(7 * 24 * 60 * 60)))
    VENDOR_SUMMARY_INTERVAL: float = float(os.getenv("VENDOR_SUMMARY_INTERVAL", str(24 * 60 * 60)))


# Singleton instance
config = Config()
