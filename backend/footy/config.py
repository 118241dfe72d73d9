"""
backend/footy/config.py

Purpose:
    Central settings loading for the settlement workers.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017/?replicaSet=rs0"
    MONGO_DB: str = "footy"

    # API-Football (api-sports.io v3)
    API_FOOTBALL_KEY: str = ""
    API_FOOTBALL_BASE_URL: str = "https://v3.football.api-sports.io"
    API_FOOTBALL_TIMEOUT_SECONDS: float = 15.0
    API_FOOTBALL_MAX_RETRIES: int = 2
    API_FOOTBALL_BASE_DELAY_SECONDS: float = 2.0
    API_FOOTBALL_MAX_IDS_PER_REQUEST: int = 20  # hard limit of the fixtures?ids= endpoint

    # Store limits
    STORE_MAX_BATCH_SIZE: int = 500
    STORE_TRANSACTION_ATTEMPTS: int = 3

    # Workers
    CONTEST_CONCURRENCY: int = 4
    LIVE_SYNC_INTERVAL_MINUTES: int = 1
    SETTLEMENT_INTERVAL_MINUTES: int = 5
    LIVE_SYNC_DEADLINE_SECONDS: float = 50.0  # must stay below the sync interval
    SETTLEMENT_DEADLINE_SECONDS: float = 240.0

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
