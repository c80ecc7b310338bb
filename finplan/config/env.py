from __future__ import annotations
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ApiConfig:
    api_key: str | None = None
    rate_limit_n: int = 5
    rate_limit_window_sec: float = 1.0


def get_api_config() -> ApiConfig:
    return ApiConfig(
        api_key=os.getenv("API_KEY") or None,
        rate_limit_n=int(os.getenv("RATE_LIMIT_N", "5")),
        rate_limit_window_sec=float(os.getenv("RATE_LIMIT_WINDOW_SEC", "1.0")),
    )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


def get_logging_config() -> LoggingConfig:
    return LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
