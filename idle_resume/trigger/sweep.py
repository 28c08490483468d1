"""Single-flight sweep over all of a user's agents."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Protocol

import structlog

from idle_resume.trigger.agent import AgentConfig
from idle_resume.trigger.dedup import TriggerDedupStore
from idle_resume.trigger.dispatcher import TrainingDispatcher
from idle_resume.trigger.staleness import StalenessEvaluator, now_ms


class BearerSource(Protocol):
    def resolve_bearer_token(self) -> str | None: ...

    def cached_bearer_token(self) -> str | None: ...


class AgentLister(Protocol):
    def list_agents(self, user_id: str) -> list[AgentConfig]: ...


@dataclass
class SweepReport:
    agents: int = 0
    skipped: int = 0
    failed: int = 0
    fresh: int = 0
    deduped: int = 0
    dispatched: int = 0


class SweepOrchestrator:
    """Runs Evaluator → Dedup → Dispatcher for each agent, one at a time.

    A sweep requested while another is running is dropped, not queued.
    """

    def __init__(
        self,
        identity: BearerSource,
        agents: AgentLister,
        evaluator: StalenessEvaluator,
        dedup: TriggerDedupStore,
        dispatcher: TrainingDispatcher,
        *,
        clock: Callable[[], int] = now_ms,
        audit_log: Any = None,
    ) -> None:
        self._identity = identity
        self._agents = agents
        self._evaluator = evaluator
        self._dedup = dedup
        self._dispatcher = dispatcher
        self._clock = clock
        self._audit = audit_log
        self._running = threading.Lock()
        self._log = structlog.get_logger("sweep")

    @property
    def running(self) -> bool:
        return self._running.locked()

    def _resolve_auth_header(self) -> str | None:
        try:
            live = self._identity.resolve_bearer_token()
        except Exception as exc:
            self._log.debug("bearer_resolution_failed", error=str(exc))
            live = None
        return live or self._identity.cached_bearer_token()

    def run(self, user_id: str | None) -> SweepReport | None:
        """Sweep every agent owned by *user_id*; None if nothing ran."""
        if not user_id:
            self._log.info("sweep_aborted", reason="no_user_id")
            return None
        if not self._running.acquire(blocking=False):
            self._log.info("sweep_already_running", user_id=user_id)
            return None
        try:
            return self._sweep(user_id)
        except Exception as exc:
            self._log.warning("sweep_failed", user_id=user_id, error=str(exc))
            return None
        finally:
            self._running.release()

    def _sweep(self, user_id: str) -> SweepReport:
        auth_header = self._resolve_auth_header()
        agents = self._agents.list_agents(user_id)
        report = SweepReport(agents=len(agents))
        self._log.info("sweep_started", user_id=user_id, agents=len(agents))

        for agent in agents:
            self._process(agent, user_id, auth_header, report)

        self._log.info("sweep_finished", user_id=user_id, **asdict(report))
        if self._audit is not None:
            self._audit.info("sweep_finished", user_id=user_id, **asdict(report))
        return report

    def _process(
        self,
        agent: AgentConfig,
        user_id: str,
        auth_header: str | None,
        report: SweepReport,
    ) -> None:
        try:
            result = self._evaluator.is_stale(agent, auth_header)
        except Exception as exc:
            report.failed += 1
            self._log.warning(
                "training_timestamps_fetch_failed", agent_id=agent.id, error=str(exc),
            )
            return

        if result.skipped:
            report.skipped += 1
            return
        if not result.stale:
            report.fresh += 1
            return

        now = self._clock()
        if self._dedup.has_fired_recently(agent, now):
            report.deduped += 1
            self._log.debug("training_recently_triggered", agent_id=agent.id)
            return

        try:
            resp = self._dispatcher.send(agent, user_id, auth_header)
        except Exception as exc:
            report.failed += 1
            self._log.warning(
                "training_command_failed",
                agent_id=agent.id,
                status=getattr(exc, "status", None),
                error=str(exc),
            )
            return

        # Accepted: record the trigger before anything else can fail.
        self._dedup.mark_fired(agent, now)
        report.dispatched += 1

        try:
            self._dispatcher.account(agent, user_id, resp)
        except Exception as exc:
            self._log.warning("training_usage_accounting_failed", agent_id=agent.id, error=str(exc))
