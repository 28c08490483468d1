"""Build a chat request body from a user-supplied JSON template.

Agents talk to arbitrary chat APIs, so the body shape comes from the
agent's ``chat_api_request_schema``. String leaves whose key looks like a
message carrier (``prompt``, ``message``, ``query``, ``input``) receive the
command; leaves whose key mentions ``user`` receive the user id. Anything
not placed that way is added at the top level as ``message`` / ``userId``.
"""

from __future__ import annotations

import json
from typing import Any

_MESSAGE_HINTS = ("prompt", "message", "query", "input")
_USER_HINT = "user"


def parse_schema(schema: Any) -> Any:
    """Normalise the stored template; blank or invalid JSON means no template."""
    if not schema:
        return None
    if isinstance(schema, str):
        text = schema.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None
    if isinstance(schema, (dict, list)):
        return schema
    return None


class _Filler:
    def __init__(self, message: str, user_id: str) -> None:
        self.message = message
        self.user_id = user_id
        self.placed_message = False
        self.placed_user = False

    def fill(self, template: Any) -> Any:
        if isinstance(template, list):
            return [self.fill(item) for item in template]
        if not isinstance(template, dict):
            return template

        copy: dict[str, Any] = {}
        for key, value in template.items():
            if isinstance(value, str):
                lower = str(key).lower()
                if any(hint in lower for hint in _MESSAGE_HINTS):
                    self.placed_message = True
                    copy[key] = self.message
                    continue
                if _USER_HINT in lower:
                    self.placed_user = True
                    copy[key] = self.user_id
                    continue
            copy[key] = self.fill(value)
        return copy


def synthesize(schema: Any, message: str, user_id: str) -> dict[str, Any]:
    """Return a fresh request body carrying *message* and *user_id*."""
    parsed = parse_schema(schema)
    filler = _Filler(message, user_id)
    payload: dict[str, Any] = filler.fill(parsed) if isinstance(parsed, dict) else {}

    if not filler.placed_message:
        payload["message"] = message
    if not filler.placed_user:
        payload["userId"] = user_id
    return payload
