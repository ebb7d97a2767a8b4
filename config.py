# config.py
import logging
import os
from dataclasses import dataclass
from datetime import time

from dotenv import load_dotenv

from day_boundary import DayBoundary

load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_cutoff(value: str) -> time:
    """Parse 'HH:MM' into a time; raises ValueError on junk."""
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


@dataclass
class Settings:
    secret_key: str = "your-secret-key-change-this-in-production"
    firebase_credentials: str = "firebase-credentials.json"
    timezone: str = "Europe/London"
    reset_cutoff: time = time(0, 0)
    reset_workers: int = 8
    transaction_attempts: int = 5
    local_store_path: str = "local_store.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and .env, if present)."""
        return cls(
            secret_key=os.environ.get("SECRET_KEY", cls.secret_key),
            firebase_credentials=os.environ.get("FIREBASE_CREDENTIALS", cls.firebase_credentials),
            timezone=os.environ.get("HABIT_TIMEZONE", cls.timezone),
            reset_cutoff=_parse_cutoff(os.environ.get("RESET_CUTOFF", "00:00")),
            reset_workers=int(os.environ.get("RESET_WORKERS", cls.reset_workers)),
            transaction_attempts=int(os.environ.get("TRANSACTION_ATTEMPTS", cls.transaction_attempts)),
            local_store_path=os.environ.get("LOCAL_STORE_PATH", cls.local_store_path),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )

    @property
    def day_boundary(self) -> DayBoundary:
        return DayBoundary(timezone=self.timezone, cutoff=self.reset_cutoff)


def configure_logging(level: str = "INFO"):
    """Configure root logging once for the web app, CLI and scheduler."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


settings = Settings.from_env()
