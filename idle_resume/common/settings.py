"""Runtime settings resolved from the environment."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path

import structlog

from idle_resume.common.constants import (
    CHECK_COOLDOWN_MS,
    HTTP_TIMEOUT_SECS,
    IDLE_THRESHOLD_MS,
    MINUTE_MS,
    PROJECT_ROOT,
    TRAINING_COMMAND,
    TRAINING_FALLBACK_TOKEN_COST,
    TRAINING_STALE_THRESHOLD_MS,
    TRAINING_TRIGGER_COOLDOWN_MS,
)
from idle_resume.common.errors import ConfigurationError

_log = structlog.get_logger("settings")


def load_dotenv(env_path: Path | None = None) -> None:
    """Load variables from a .env file into os.environ (no overwrite)."""
    env_path = env_path or PROJECT_ROOT / ".env"
    if not env_path.is_file():
        return
    _log.info("dotenv_loaded", path=str(env_path))
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("\"'")
            os.environ.setdefault(key, value)


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value < 0:
        raise ConfigurationError(f"{name} must be a finite, non-negative number, got {raw!r}")
    return value


def _env_minutes(name: str, default_ms: int) -> int:
    return int(_env_number(name, default_ms / MINUTE_MS) * MINUTE_MS)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class TriggerSettings:
    """Thresholds and knobs for the trigger; each one is tuned independently."""

    idle_threshold_ms: int = IDLE_THRESHOLD_MS
    check_cooldown_ms: int = CHECK_COOLDOWN_MS
    stale_threshold_ms: int = TRAINING_STALE_THRESHOLD_MS
    trigger_cooldown_ms: int = TRAINING_TRIGGER_COOLDOWN_MS
    training_command: str = TRAINING_COMMAND
    fallback_token_cost: int = TRAINING_FALLBACK_TOKEN_COST
    http_timeout: float = HTTP_TIMEOUT_SECS
    log_dir: Path | None = None
    dedup_fail_closed: bool = False

    @classmethod
    def from_env(cls) -> TriggerSettings:
        log_dir = os.environ.get("IDLE_RESUME_LOG_DIR", "").strip()
        return cls(
            idle_threshold_ms=_env_minutes("IDLE_RESUME_IDLE_THRESHOLD_MINS", IDLE_THRESHOLD_MS),
            check_cooldown_ms=_env_minutes("IDLE_RESUME_CHECK_COOLDOWN_MINS", CHECK_COOLDOWN_MS),
            stale_threshold_ms=_env_minutes(
                "IDLE_RESUME_STALE_THRESHOLD_MINS", TRAINING_STALE_THRESHOLD_MS,
            ),
            trigger_cooldown_ms=_env_minutes(
                "IDLE_RESUME_TRIGGER_COOLDOWN_MINS", TRAINING_TRIGGER_COOLDOWN_MS,
            ),
            training_command=(
                os.environ.get("IDLE_RESUME_TRAINING_COMMAND", "").strip() or TRAINING_COMMAND
            ),
            fallback_token_cost=int(
                _env_number("IDLE_RESUME_FALLBACK_TOKEN_COST", TRAINING_FALLBACK_TOKEN_COST)
            ),
            http_timeout=_env_number("IDLE_RESUME_HTTP_TIMEOUT", HTTP_TIMEOUT_SECS),
            log_dir=Path(log_dir) if log_dir else None,
            dedup_fail_closed=_env_flag("IDLE_RESUME_DEDUP_FAIL_CLOSED"),
        )
