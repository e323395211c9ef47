from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_API_URL = "http://localhost:3001"
DEFAULT_DB_PATH = "maze.db"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3001
DEFAULT_STEP_DELAY = 0.15
DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    db_path: str = DEFAULT_DB_PATH
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    step_delay: float = DEFAULT_STEP_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def _number(environ: Mapping[str, str], name: str, default: float, cast: type) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        api_url=env.get("MAZE_API_URL", DEFAULT_API_URL).rstrip("/"),
        db_path=env.get("MAZE_DB_PATH", DEFAULT_DB_PATH),
        host=env.get("MAZE_HOST", DEFAULT_HOST),
        port=int(_number(env, "PORT", DEFAULT_PORT, int)),
        step_delay=_number(env, "MAZE_STEP_DELAY", DEFAULT_STEP_DELAY, float),
        request_timeout=_number(env, "MAZE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
        log_level=env.get("MAZE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
