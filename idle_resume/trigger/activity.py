"""Activity and cooldown gate deciding when a staleness sweep is due.

The idle condition models *resumption*: every evaluation stamps
last-active-at, so a sweep fires when the user comes back after at least
``idle_threshold_ms`` of absence, never while they stay idle.
"""

from __future__ import annotations

import structlog

from idle_resume.common.constants import LAST_ACTIVE_KEY, LAST_CHECK_KEY
from idle_resume.common.redis import TimerStore, read_timestamp, write_timestamp
from idle_resume.common.settings import TriggerSettings


class ActivityGate:
    """Persisted last-active / last-check bookkeeping."""

    def __init__(self, store: TimerStore, settings: TriggerSettings | None = None) -> None:
        self._store = store
        self._settings = settings or TriggerSettings()
        self._log = structlog.get_logger("activity_gate")

    @property
    def last_active_at(self) -> int | None:
        return read_timestamp(self._store, LAST_ACTIVE_KEY)

    @property
    def last_check_at(self) -> int | None:
        return read_timestamp(self._store, LAST_CHECK_KEY)

    def record_activity(self, now: int) -> None:
        write_timestamp(self._store, LAST_ACTIVE_KEY, now)

    def record_check(self, now: int) -> None:
        write_timestamp(self._store, LAST_CHECK_KEY, now)

    def should_sweep_now(
        self,
        now: int,
        *,
        authenticated: bool = True,
        online: bool = True,
    ) -> bool:
        """Evaluate the gate; stamps last-active-at, and last-check-at when due."""
        if not authenticated or not online:
            self._log.debug("gate_closed", authenticated=authenticated, online=online)
            return False

        last_active = self.last_active_at
        last_check = self.last_check_at
        idle_long_enough = (
            not last_active or now - last_active >= self._settings.idle_threshold_ms
        )
        check_allowed = (
            not last_check or now - last_check >= self._settings.check_cooldown_ms
        )

        self.record_activity(now)

        if not idle_long_enough or not check_allowed:
            self._log.debug(
                "gate_not_due",
                idle_long_enough=idle_long_enough,
                check_allowed=check_allowed,
            )
            return False

        self.record_check(now)
        return True

    def clear(self) -> None:
        """Forget both timestamps (next evaluation is always due)."""
        self._store.clear(LAST_ACTIVE_KEY)
        self._store.clear(LAST_CHECK_KEY)
