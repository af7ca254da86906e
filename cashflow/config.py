from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///./cashflow.db"
DEFAULT_FRONTEND_ORIGIN = "http://localhost:3000"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    frontend_origin: str = DEFAULT_FRONTEND_ORIGIN
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            frontend_origin=os.getenv("FRONTEND_ORIGIN", DEFAULT_FRONTEND_ORIGIN),
            log_level=normalize_log_level(os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)),
        )


def normalize_log_level(value: str) -> str:
    normalized = value.strip().upper()
    if not isinstance(logging.getLevelName(normalized), int):
        return DEFAULT_LOG_LEVEL
    return normalized


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
