"""Agent (session) configuration model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from idle_resume.common.constants import DEFAULT_KEY_NAME


def _first_text(cfg: dict, *names: str) -> str:
    """First non-empty value among *names*, stringified and trimmed."""
    for name in names:
        value = cfg.get(name)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


@dataclass(frozen=True)
class AgentConfig:
    """Read-only view of one user-owned agent's KB and chat integration."""

    id: str = ""
    name: str = ""
    kb_endpoint: str = ""        # base URL of the knowledge-base API
    kb_key_name: str = DEFAULT_KEY_NAME
    kb_key: str = ""
    chat_endpoint: str = ""      # full URL the training command is POSTed to
    chat_key_name: str = DEFAULT_KEY_NAME
    chat_key: str = ""
    chat_request_schema: Any = None

    @property
    def is_configured(self) -> bool:
        return bool(self.kb_endpoint and self.chat_endpoint)

    @classmethod
    def from_record(cls, record: dict) -> AgentConfig:
        """Build from a session record as stored by the agent store."""
        cfg = record.get("config") or {}
        if not isinstance(cfg, dict):
            cfg = {}
        return cls(
            id=str(record.get("id") or "").strip(),
            name=str(record.get("name") or "").strip(),
            kb_endpoint=_first_text(
                cfg,
                "agent_kb_endpoint",
                "agent_kb_url",
                "agent_kb_endpoint_url",
                "agent_kb_endpoint_base",
            ),
            kb_key_name=_first_text(cfg, "agent_kb_key_name", "agent_kb_api_key_name")
            or DEFAULT_KEY_NAME,
            kb_key=_first_text(cfg, "agent_kb_key", "agent_kb_api_key", "agent_kb_token"),
            chat_endpoint=_first_text(cfg, "chat_api_endpoint"),
            chat_key_name=_first_text(cfg, "chat_api_key_name") or DEFAULT_KEY_NAME,
            chat_key=_first_text(cfg, "chat_api_key"),
            chat_request_schema=cfg.get("chat_api_request_schema"),
        )
