"""Training-timestamp fetch and staleness evaluation for one agent."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import structlog

from idle_resume.common.constants import (
    SOURCE_ARTICLES_PATH,
    TRAINING_KEYS,
    TRAINING_TIMESTAMPS_PATH,
)
from idle_resume.common.errors import NetworkError, TimestampFetchError
from idle_resume.common.http import http_get, join_url, normalize_base
from idle_resume.common.settings import TriggerSettings
from idle_resume.trigger.agent import AgentConfig

_KB_SUFFIX = re.compile(r"/kb$", re.IGNORECASE)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def resolve_kb_endpoint(kb_endpoint: str, path: str) -> str:
    """Resolve *path* under the KB API, inserting ``kb/`` unless already present."""
    normalized = normalize_base(kb_endpoint)
    if not normalized:
        return ""
    if _KB_SUFFIX.search(normalized):
        return join_url(normalized, path)
    return join_url(normalized, f"kb/{path}")


def resolve_training_endpoint(kb_endpoint: str) -> str:
    return resolve_kb_endpoint(kb_endpoint, TRAINING_TIMESTAMPS_PATH)


def resolve_source_articles_endpoint(kb_endpoint: str) -> str:
    return resolve_kb_endpoint(kb_endpoint, SOURCE_ARTICLES_PATH)


def parse_timestamp(value: Any) -> int | None:
    """Parse an ISO-8601 string to epoch milliseconds (naive values are UTC)."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def stale_keys(timestamps: dict, now: int, threshold_ms: int) -> list[str]:
    """Training keys that are missing, unparsable, or at least *threshold_ms* old."""
    stale: list[str] = []
    for key in TRAINING_KEYS:
        ts = parse_timestamp(timestamps.get(key))
        if ts is None or now - ts >= threshold_ms:
            stale.append(key)
    return stale


def is_training_stale(timestamps: dict, now: int, threshold_ms: int) -> bool:
    return bool(stale_keys(timestamps, now, threshold_ms))


@dataclass
class StalenessResult:
    stale: bool = False
    skipped: bool = False
    stale_keys: list[str] = field(default_factory=list)


class StalenessEvaluator:
    """Fetches ``last-taining-timestamps`` for an agent and judges freshness."""

    def __init__(
        self,
        settings: TriggerSettings | None = None,
        *,
        fetch: Callable[..., Any] = http_get,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings or TriggerSettings()
        self._fetch = fetch
        self._clock = clock
        self._log = structlog.get_logger("staleness")

    def _headers(self, agent: AgentConfig, auth_header: str | None) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if agent.kb_key:
            headers[agent.kb_key_name] = agent.kb_key
        if auth_header:
            headers["Authorization"] = auth_header
        return headers

    def fetch_timestamps(self, agent: AgentConfig, auth_header: str | None) -> dict:
        url = resolve_training_endpoint(agent.kb_endpoint)
        if not url:
            raise TimestampFetchError("Training timestamps endpoint is not configured.")
        try:
            payload = self._fetch(
                url,
                headers=self._headers(agent, auth_header),
                timeout=self._settings.http_timeout,
            )
        except NetworkError as exc:
            raise TimestampFetchError(f"Training timestamps request failed: {exc}") from exc
        except ValueError as exc:
            raise TimestampFetchError("Training timestamps response is invalid.") from exc
        if not isinstance(payload, dict):
            raise TimestampFetchError("Training timestamps response is invalid.")
        return payload

    def is_stale(self, agent: AgentConfig, auth_header: str | None = None) -> StalenessResult:
        """Judge one agent; unconfigured agents are skipped without I/O.

        Raises :class:`TimestampFetchError` when the timestamps cannot be read.
        """
        if not agent.is_configured:
            self._log.debug("agent_not_configured", agent_id=agent.id)
            return StalenessResult(skipped=True)

        timestamps = self.fetch_timestamps(agent, auth_header)
        keys = stale_keys(timestamps, self._clock(), self._settings.stale_threshold_ms)
        return StalenessResult(stale=bool(keys), stale_keys=keys)
