"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"


def env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class Settings:
    question_data_dir: Path
    state_dir: Path
    default_quiz_size: int
    rate_limit_requests: int
    rate_limit_window_seconds: int


def load_settings() -> Settings:
    """Read settings fresh from the environment on every call."""
    return Settings(
        question_data_dir=Path(
            os.environ.get("QUESTION_DATA_DIR") or _PACKAGE_DATA_DIR
        ),
        state_dir=Path(os.environ.get("STATE_DIR", ".data/state")),
        default_quiz_size=env_int("DEFAULT_QUIZ_SIZE", 10, minimum=1),
        rate_limit_requests=env_int(
            "API_RATE_LIMIT_REQUESTS_PER_MINUTE", 60, minimum=0
        ),
        rate_limit_window_seconds=env_int(
            "API_RATE_LIMIT_WINDOW_SECONDS", 60, minimum=1
        ),
    )
