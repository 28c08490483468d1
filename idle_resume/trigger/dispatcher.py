"""Training command dispatch and token-usage accounting."""

from __future__ import annotations

import json
import math
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import structlog

from idle_resume.common.constants import CHAT_ACCEPTED_STATUSES
from idle_resume.common.errors import DispatchError, HttpStatusError, NetworkError
from idle_resume.common.http import HttpResponse, error_message, http_post
from idle_resume.common.settings import TriggerSettings
from idle_resume.trigger.agent import AgentConfig
from idle_resume.trigger.schema import synthesize


class WalletRecorder(Protocol):
    def record_usage(self, user_id: str, usage: dict) -> Any: ...


@dataclass
class DispatchResult:
    status: int
    usage: dict = field(default_factory=dict)
    estimated: bool = False     # True when the fallback cost was charged


def extract_usage(response: Any) -> dict | None:
    """``usageMetadata`` from a sync reply or an async-job envelope's ``result``."""
    if not isinstance(response, dict):
        return None
    usage = response.get("usageMetadata")
    if usage is None and isinstance(response.get("result"), dict):
        usage = response["result"].get("usageMetadata")
    return usage if isinstance(usage, dict) else None


def _finite(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def derive_wallet_usage(usage: dict | None) -> dict | None:
    """Resolve a positive ``totalTokenCount``, or None when usage is unknown."""
    if not isinstance(usage, dict):
        return None
    total = _finite(usage.get("totalTokenCount"))
    if total is not None and total > 0:
        return {**usage, "totalTokenCount": _round_half_up(total)}
    prompt = _finite(usage.get("promptTokenCount")) or 0.0
    candidates = _finite(usage.get("candidatesTokenCount")) or 0.0
    if prompt + candidates > 0:
        return {**usage, "totalTokenCount": _round_half_up(prompt + candidates)}
    return None


class TrainingDispatcher:
    """POSTs the training command to an agent's chat endpoint and bills it."""

    def __init__(
        self,
        wallet: WalletRecorder | None = None,
        settings: TriggerSettings | None = None,
        *,
        post: Callable[..., Any] = http_post,
        audit_log: Any = None,
    ) -> None:
        self._wallet = wallet
        self._settings = settings or TriggerSettings()
        self._post = post
        self._audit = audit_log
        self._pending: list[threading.Thread] = []
        self._pending_lock = threading.Lock()
        self._log = structlog.get_logger("dispatcher")

    def build_payload(self, agent: AgentConfig, user_id: str) -> dict:
        command = self._settings.training_command
        payload = synthesize(agent.chat_request_schema, command, user_id)
        payload["user_id"] = user_id
        payload.setdefault("userId", user_id)
        payload.setdefault("message", command)
        return payload

    def build_headers(self, agent: AgentConfig, auth_header: str | None) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "Content-Type": "application/json",
        }
        if agent.chat_key:
            headers[agent.chat_key_name] = agent.chat_key
        if auth_header:
            headers["Authorization"] = auth_header
        return headers

    def send(self, agent: AgentConfig, user_id: str, auth_header: str | None) -> HttpResponse:
        """POST the command; raises :class:`DispatchError` unless it was accepted."""
        body = json.dumps(self.build_payload(agent, user_id)).encode()
        try:
            resp = self._post(
                agent.chat_endpoint,
                headers=self.build_headers(agent, auth_header),
                body=body,
                timeout=self._settings.http_timeout,
            )
        except HttpStatusError as exc:
            message = error_message(exc.payload) or f"Chat request failed (status {exc.status})"
            raise DispatchError(message, status=exc.status) from exc
        except NetworkError as exc:
            raise DispatchError(str(exc)) from exc

        if resp.status not in CHAT_ACCEPTED_STATUSES:
            message = error_message(resp.payload) or f"Chat request failed (status {resp.status})"
            raise DispatchError(message, status=resp.status)
        return resp

    def dispatch(
        self,
        agent: AgentConfig,
        user_id: str,
        auth_header: str | None = None,
    ) -> DispatchResult:
        """Send the training command and schedule the wallet charge.

        The wallet write runs on a daemon thread; its outcome never affects
        the returned result.
        """
        return self.account(agent, user_id, self.send(agent, user_id, auth_header))

    def account(self, agent: AgentConfig, user_id: str, resp: HttpResponse) -> DispatchResult:
        """Log an accepted dispatch and bill its token usage."""
        usage = derive_wallet_usage(extract_usage(resp.payload))
        estimated = usage is None
        if usage is None:
            usage = {"totalTokenCount": self._settings.fallback_token_cost}

        event = {
            "agent_id": agent.id,
            "status": resp.status,
            "total_tokens": usage["totalTokenCount"],
            "estimated": estimated,
        }
        self._log.info("training_command_sent", **event)
        if self._audit is not None:
            self._audit.info("training_command_sent", user_id=user_id, **event)

        self._record_usage_async(user_id, usage, agent.id)
        return DispatchResult(status=resp.status, usage=usage, estimated=estimated)

    # ── Wallet accounting ────────────────────────────────────────────────

    def _record_usage_async(self, user_id: str, usage: dict, agent_id: str) -> None:
        if self._wallet is None:
            self._log.debug("wallet_not_configured", agent_id=agent_id)
            return
        thread = threading.Thread(
            target=self._record_usage,
            args=(user_id, usage, agent_id),
            name=f"wallet-usage-{agent_id or 'agent'}",
            daemon=True,
        )
        with self._pending_lock:
            self._pending = [t for t in self._pending if t.is_alive()]
            self._pending.append(thread)
        thread.start()

    def _record_usage(self, user_id: str, usage: dict, agent_id: str) -> None:
        try:
            self._wallet.record_usage(user_id, usage)
        except Exception as exc:
            self._log.warning(
                "wallet_usage_record_failed",
                agent_id=agent_id,
                total_tokens=usage.get("totalTokenCount"),
                error=str(exc),
            )

    def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding wallet writes (call before process exit)."""
        with self._pending_lock:
            pending = list(self._pending)
            self._pending = []
        for thread in pending:
            thread.join(timeout=timeout)
