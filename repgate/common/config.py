from __future__ import annotations
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    camera_index: int = 0
    model_complexity: int = 1
    max_fps: float = 30.0
    show_window: bool = False
    log_level: str = "INFO"
    default_exercise: str = "pushups"


def get_settings() -> Settings:
    return Settings(
        camera_index=int(os.getenv("REPGATE_CAMERA_INDEX", "0")),
        model_complexity=int(os.getenv("REPGATE_MODEL_COMPLEXITY", "1")),
        max_fps=float(os.getenv("REPGATE_MAX_FPS", "30")),
        show_window=_env_bool("REPGATE_SHOW_WINDOW", False),
        log_level=os.getenv("REPGATE_LOG_LEVEL", "INFO").upper(),
        default_exercise=os.getenv("REPGATE_DEFAULT_EXERCISE", "pushups"),
    )


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
