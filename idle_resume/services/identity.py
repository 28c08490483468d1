"""User identity and bearer-token resolution."""

from __future__ import annotations

import base64
import json
import os
import re
from typing import Any, Callable

import structlog

_BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)
_log = structlog.get_logger("identity")


def normalize_bearer_token(value: Any) -> str | None:
    """``"abc"`` -> ``"Bearer abc"``; an existing Bearer prefix is kept as-is."""
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    if _BEARER_PREFIX.match(text):
        return text
    return f"Bearer {text}"


def build_bearer_from_tokens(tokens: dict | None) -> str | None:
    """Prefer the ID token, fall back to the access token."""
    tokens = tokens or {}
    return normalize_bearer_token(tokens.get("idToken") or tokens.get("accessToken"))


def decode_token_subject(id_token: str | None) -> str | None:
    """``sub`` claim from a JWT payload (signature is not verified)."""
    if not id_token:
        return None
    parts = id_token.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    segment = parts[1].replace("-", "+").replace("_", "/")
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.b64decode(segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        _log.debug("token_subject_decode_failed", error=str(exc))
        return None
    sub = claims.get("sub") if isinstance(claims, dict) else None
    return str(sub) if sub else None


def derive_user_id(
    attributes: dict | None = None,
    user: dict | None = None,
    id_token: str | None = None,
) -> str | None:
    """Resolve the user id: attribute ``sub``, then the user object, then the token."""
    if attributes and attributes.get("sub"):
        return str(attributes["sub"])
    if user:
        if user.get("userId"):
            return str(user["userId"])
        if user.get("username"):
            return str(user["username"])
    return decode_token_subject(id_token)


class EnvIdentityProvider:
    """Identity read from ``IDLE_RESUME_*`` environment variables.

    The bearer captured at construction time serves as the cached fallback
    when live resolution yields nothing.
    """

    def __init__(self, environ: Callable[[], dict] = lambda: os.environ) -> None:
        self._environ = environ
        self._cached = self.resolve_bearer_token()

    def _tokens(self) -> dict[str, str]:
        env = self._environ()
        return {
            "idToken": env.get("IDLE_RESUME_ID_TOKEN", "").strip(),
            "accessToken": env.get("IDLE_RESUME_ACCESS_TOKEN", "").strip(),
        }

    @property
    def is_authenticated(self) -> bool:
        tokens = self._tokens()
        return bool(tokens["idToken"] or tokens["accessToken"])

    def resolve_user_id(self) -> str | None:
        env = self._environ()
        user_id = env.get("IDLE_RESUME_USER_ID", "").strip()
        return derive_user_id(
            user={"userId": user_id} if user_id else None,
            id_token=self._tokens()["idToken"],
        )

    def resolve_bearer_token(self) -> str | None:
        return build_bearer_from_tokens(self._tokens())

    def cached_bearer_token(self) -> str | None:
        return self._cached
