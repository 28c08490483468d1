"""Per-agent record of when a training command was last fired."""

from __future__ import annotations

from urllib.parse import quote

import redis
import structlog

from idle_resume.common.constants import TRAINING_TRIGGER_PREFIX
from idle_resume.common.redis import TimerStore, read_timestamp, write_timestamp
from idle_resume.common.settings import TriggerSettings
from idle_resume.trigger.agent import AgentConfig

# Characters encodeURIComponent leaves untouched besides alphanumerics and "_.-~"
_URI_COMPONENT_SAFE = "!*'()"

_log = structlog.get_logger("dedup")


class TriggerDedupStore:
    """At most one training trigger per agent per cooldown window.

    Records are written after a successful send, not after the remote
    training completes, and are never deleted. An unreadable record counts
    as "never fired" unless ``fail_closed`` is set, in which case the agent
    is treated as recently fired until the store answers again.
    """

    def __init__(
        self,
        store: TimerStore,
        settings: TriggerSettings | None = None,
        *,
        fail_closed: bool = False,
    ) -> None:
        self._store = store
        self._settings = settings or TriggerSettings()
        self._fail_closed = fail_closed

    @staticmethod
    def key_for(agent: AgentConfig) -> str:
        seed = agent.id or agent.chat_endpoint or "unknown"
        return f"{TRAINING_TRIGGER_PREFIX}{quote(seed, safe=_URI_COMPONENT_SAFE)}"

    def last_fired_at(self, agent: AgentConfig) -> int | None:
        return read_timestamp(self._store, self.key_for(agent), strict=self._fail_closed)

    def has_fired_recently(self, agent: AgentConfig, now: int) -> bool:
        try:
            last = self.last_fired_at(agent)
        except redis.RedisError as exc:
            _log.warning("trigger_record_unreadable", agent_id=agent.id, error=str(exc))
            return True
        return bool(last) and now - last < self._settings.trigger_cooldown_ms

    def mark_fired(self, agent: AgentConfig, now: int) -> None:
        write_timestamp(self._store, self.key_for(agent), now)
