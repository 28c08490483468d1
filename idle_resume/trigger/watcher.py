"""Lifecycle-signal binding: the only entry point the host shell talks to.

Signals mirror a client session's lifecycle: ``mount`` once the user is
authenticated, ``visible``/``focus``/``online`` when they come back, and
``hidden``/``page_hide`` when they leave (these only stamp activity).
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol

import structlog

from idle_resume.trigger.activity import ActivityGate
from idle_resume.trigger.staleness import now_ms
from idle_resume.trigger.sweep import SweepOrchestrator, SweepReport


class IdentitySource(Protocol):
    @property
    def is_authenticated(self) -> bool: ...

    def resolve_user_id(self) -> str | None: ...


class IdleResumeWatcher:
    """Routes lifecycle signals through the gate into the orchestrator.

    With ``background=True`` each due sweep runs on a daemon thread and the
    signal handler returns immediately; :meth:`join` waits for it.
    """

    def __init__(
        self,
        identity: IdentitySource,
        gate: ActivityGate,
        orchestrator: SweepOrchestrator,
        *,
        clock: Callable[[], int] = now_ms,
        online: bool = True,
        background: bool = False,
    ) -> None:
        self._identity = identity
        self._gate = gate
        self._orchestrator = orchestrator
        self._clock = clock
        self._online = online
        self._background = background
        self._thread: threading.Thread | None = None
        self._log = structlog.get_logger("watcher")

    @property
    def is_online(self) -> bool:
        return self._online

    # ── Signals ──────────────────────────────────────────────────────────

    def mount(self) -> SweepReport | None:
        if not self._identity.is_authenticated:
            return None
        return self.maybe_run_check()

    def visibility_changed(self, visible: bool) -> SweepReport | None:
        if not visible:
            self._gate.record_activity(self._clock())
            return None
        return self.maybe_run_check()

    def focus(self) -> SweepReport | None:
        return self.maybe_run_check()

    def online(self) -> SweepReport | None:
        self._online = True
        return self.maybe_run_check()

    def offline(self) -> None:
        self._online = False

    def page_hide(self) -> None:
        self._gate.record_activity(self._clock())

    # ── Gate + dispatch ──────────────────────────────────────────────────

    def maybe_run_check(self) -> SweepReport | None:
        """Evaluate the gate and, when due, run (or start) a sweep."""
        user_id = self._identity.resolve_user_id()
        authenticated = self._identity.is_authenticated and bool(user_id)
        if not self._gate.should_sweep_now(
            self._clock(), authenticated=authenticated, online=self._online,
        ):
            return None

        self._log.info("sweep_due", user_id=user_id)
        if not self._background:
            return self._orchestrator.run(user_id)

        self._thread = threading.Thread(
            target=self._orchestrator.run,
            args=(user_id,),
            name="idle-resume-sweep",
            daemon=True,
        )
        self._thread.start()
        return None

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)
