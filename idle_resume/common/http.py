"""Lightweight HTTP helpers (stdlib only)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from idle_resume.common.constants import HTTP_TIMEOUT_SECS
from idle_resume.common.errors import HttpStatusError, NetworkError

_UA = "IdleResumeTrigger/1.0"


@dataclass
class HttpResponse:
    """Status code plus the decoded body (JSON when parseable, else text)."""

    status: int
    payload: Any
    raw: str = ""


def parse_body(body: str) -> Any:
    """Decode *body* as JSON, falling back to the text itself (``None`` if empty)."""
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body


def normalize_base(url: str) -> str:
    return url.strip().rstrip("/")


def join_url(base: str, path: str) -> str:
    """Join *base* and *path* with exactly one slash."""
    left = normalize_base(base)
    right = str(path or "").strip().lstrip("/")
    if not left:
        return f"/{right}"
    if not right:
        return left
    return f"{left}/{right}"


def _request(
    url: str,
    *,
    method: str = "GET",
    data: bytes | None = None,
    headers: dict | None = None,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> HttpResponse:
    """Single request; non-2xx raises :class:`HttpStatusError`, transport failures :class:`NetworkError`."""
    hdr = {"User-Agent": _UA, **(headers or {})}
    req = Request(url, method=method, data=data, headers=hdr)
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
            return HttpResponse(status=resp.status, payload=parse_body(raw), raw=raw)
    except HTTPError as exc:
        try:
            raw = exc.read().decode("utf-8", errors="replace")
        except OSError:
            raw = ""
        raise HttpStatusError(url, exc.code, parse_body(raw)) from exc
    except (URLError, OSError) as exc:
        raise NetworkError(f"{method} {url} failed: {exc}") from exc


def http_get(url: str, headers: dict | None = None, timeout: float = HTTP_TIMEOUT_SECS) -> Any:
    """Perform an uncached GET and return the parsed JSON body.

    Raises ``ValueError`` when the body is not valid JSON.
    """
    hdr = {"Cache-Control": "no-store", **(headers or {})}
    resp = _request(url, method="GET", headers=hdr, timeout=timeout)
    return json.loads(resp.raw)


def http_post(
    url: str,
    headers: dict | None = None,
    body: bytes | None = None,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> HttpResponse:
    """Perform a POST request and return the response (body decoded leniently)."""
    return _request(
        url, method="POST", data=body if body is not None else b"",
        headers=headers, timeout=timeout,
    )


def http_put(
    url: str,
    headers: dict | None = None,
    body: bytes | None = None,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> HttpResponse:
    """Perform a PUT request and return the response (body decoded leniently)."""
    return _request(
        url, method="PUT", data=body if body is not None else b"",
        headers=headers, timeout=timeout,
    )


def error_message(payload: Any) -> str:
    """Pull a human-readable error out of a JSON or text error body."""
    if not payload:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        result = payload.get("result")
        message = payload.get("message")
        if message is None:
            message = payload.get("error")
        if message is None and isinstance(result, dict):
            message = result.get("error")
        if isinstance(message, str):
            return message
    return ""
