"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import List, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Config:
    api_url: str
    auth_url: str
    project_key: str
    client_id: str
    client_secret: str
    scopes: List[str]
    batch_size: int
    cache_capacity: int
    allow_uuid_keys: bool
    log_file: str
    log_level: str
    http_timeout: float
    retry_count: int
    retry_backoff: float


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return value


def load_config() -> Config:
    load_dotenv()

    return Config(
        api_url=_require_env("BACKEND_API_URL"),
        auth_url=_require_env("BACKEND_AUTH_URL"),
        project_key=_require_env("BACKEND_PROJECT_KEY"),
        client_id=_require_env("BACKEND_CLIENT_ID"),
        client_secret=_require_env("BACKEND_CLIENT_SECRET"),
        scopes=_parse_list(os.getenv("BACKEND_SCOPES", "")),
        batch_size=_positive_int("BATCH_SIZE", "30"),
        cache_capacity=_positive_int("CACHE_CAPACITY", "10000"),
        allow_uuid_keys=_parse_bool(os.getenv("ALLOW_UUID_KEYS")),
        log_file=os.getenv("LOG_FILE", "logs/sync.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
        retry_count=int(os.getenv("RETRY_COUNT", "3")),
        retry_backoff=float(os.getenv("RETRY_BACKOFF", "0.5")),
    )
