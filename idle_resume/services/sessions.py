"""Agent (session) listing from the user-data API or a local JSON file."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

import structlog

from idle_resume.common.errors import ConfigurationError, HttpStatusError
from idle_resume.common.http import http_get, normalize_base
from idle_resume.trigger.agent import AgentConfig

_log = structlog.get_logger("sessions")


def extract_sessions(payload: Any) -> list[dict]:
    """Sessions from a bare list, ``sessions``, ``profile.sessions`` or ``data.sessions``."""
    if not payload:
        return []
    if isinstance(payload, list):
        return [s for s in payload if isinstance(s, dict)]
    if not isinstance(payload, dict):
        return []

    candidates = [
        payload.get("sessions"),
        (payload.get("profile") or {}).get("sessions")
        if isinstance(payload.get("profile"), dict) else None,
        (payload.get("data") or {}).get("sessions")
        if isinstance(payload.get("data"), dict) else None,
    ]
    for candidate in candidates:
        if isinstance(candidate, list):
            return [s for s in candidate if isinstance(s, dict)]
    return []


def to_agents(payload: Any) -> list[AgentConfig]:
    return [AgentConfig.from_record(record) for record in extract_sessions(payload)]


def user_data_url(endpoint: str, user_id: str) -> str:
    """``<endpoint>/user-data/<id>``, or ``<endpoint>/<id>`` if it already ends in ``/user-data``."""
    base = normalize_base(endpoint)
    encoded = quote(user_id, safe="")
    if base.rsplit("/", 1)[-1] == "user-data":
        return f"{base}/{encoded}"
    return f"{base}/user-data/{encoded}"


class HttpAgentStore:
    """Lists a user's agents from the user-data API profile document."""

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        *,
        fetch: Callable[..., Any] = http_get,
        timeout: float = 15,
    ) -> None:
        self._endpoint = (
            endpoint if endpoint is not None else os.environ.get("USERDATA_API_ENDPOINT", "")
        ).strip()
        self._api_key = (
            api_key if api_key is not None else os.environ.get("USERDATA_API_KEY", "")
        ).strip()
        self._fetch = fetch
        self._timeout = timeout

    def list_agents(self, user_id: str) -> list[AgentConfig]:
        if not self._endpoint:
            raise ConfigurationError("USERDATA_API_ENDPOINT is not configured.")
        headers = {"accept": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        try:
            payload = self._fetch(
                user_data_url(self._endpoint, user_id), headers=headers, timeout=self._timeout,
            )
        except HttpStatusError as exc:
            if exc.status != 404:
                raise
            # No profile stored for this user yet.
            _log.debug("user_profile_not_found", user_id=user_id)
            return []
        agents = to_agents(payload)
        _log.debug("agents_listed", user_id=user_id, count=len(agents))
        return agents


class FileAgentStore:
    """Reads the same profile payload shape from a JSON file on every call."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def list_agents(self, user_id: str) -> list[AgentConfig]:
        payload = json.loads(self._path.read_text())
        return to_agents(payload)
