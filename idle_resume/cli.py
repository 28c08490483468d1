"""CLI entrypoint for the idle-resume training trigger.

Architecture:
  1. Resolve identity (env tokens) and settings (env / .env)
  2. Deliver one lifecycle signal to the watcher
     - visible / focus / online / mount: gate -> sweep when due
     - hidden / page-hide: stamp last-active-at only
  3. A due sweep walks every agent sequentially:
     fetch training timestamps -> dedup check -> POST training command
  4. Wait for wallet writes before exiting
"""

from __future__ import annotations

import argparse
import textwrap
from dataclasses import asdict
from pathlib import Path

from idle_resume.common.console import C, fail, fmt_duration, fmt_timestamp, info, ok, warn
from idle_resume.common.errors import ConfigurationError
from idle_resume.common.logging import configure_structlog, get_audit_logger
from idle_resume.common.redis import MemoryTimerStore, RedisTimerStore
from idle_resume.common.settings import TriggerSettings, load_dotenv
from idle_resume.services.identity import EnvIdentityProvider
from idle_resume.services.sessions import FileAgentStore, HttpAgentStore
from idle_resume.services.wallet import WalletClient
from idle_resume.trigger.activity import ActivityGate
from idle_resume.trigger.dedup import TriggerDedupStore
from idle_resume.trigger.dispatcher import TrainingDispatcher
from idle_resume.trigger.staleness import StalenessEvaluator, now_ms
from idle_resume.trigger.sweep import SweepOrchestrator, SweepReport
from idle_resume.trigger.watcher import IdleResumeWatcher

_WALLET_DRAIN_SECS = 30.0

SIGNALS = ("mount", "visible", "focus", "online", "hidden", "page-hide")
COMMANDS = SIGNALS + ("sweep", "status", "reset")


def _print_report(report: SweepReport | None) -> None:
    if report is None:
        info("No sweep ran (gate closed, no identity, or a sweep already in flight).")
        return
    summary = asdict(report)
    ok("Sweep complete: " + "  ".join(f"{k}={v}" for k, v in summary.items()))
    if report.failed:
        warn(f"{report.failed} agent(s) failed; see log output above.")


def _print_status(gate: ActivityGate, settings: TriggerSettings) -> None:
    now = now_ms()
    print(f"{C.BOLD}Idle-resume state{C.NC}")
    print(f"  last active:  {fmt_timestamp(gate.last_active_at, now)}")
    print(f"  last check:   {fmt_timestamp(gate.last_check_at, now)}")
    print(f"{C.BOLD}Thresholds{C.NC}")
    print(f"  idle:              {fmt_duration(settings.idle_threshold_ms)}")
    print(f"  check cooldown:    {fmt_duration(settings.check_cooldown_ms)}")
    print(f"  staleness:         {fmt_duration(settings.stale_threshold_ms)}")
    print(f"  trigger cooldown:  {fmt_duration(settings.trigger_cooldown_ms)}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Idle-resume knowledge-base training trigger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              python3 run_trigger.py focus                   # user came back
              python3 run_trigger.py hidden                  # user left
              python3 run_trigger.py sweep --agents a.json   # force a sweep
              python3 run_trigger.py status
        """),
    )
    parser.add_argument("command", choices=COMMANDS, help="Lifecycle signal or action")
    parser.add_argument(
        "--agents", metavar="FILE", type=Path, default=None,
        help="Read agents from a JSON profile file instead of the user-data API",
    )
    parser.add_argument(
        "--memory", action="store_true",
        help="Keep timestamps in memory instead of Redis (state is lost on exit)",
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Report the network as offline (signals only stamp activity)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_structlog(verbose=args.verbose)
    load_dotenv()
    try:
        settings = TriggerSettings.from_env()
    except ConfigurationError as exc:
        fail(str(exc))

    store = MemoryTimerStore() if args.memory else RedisTimerStore()
    gate = ActivityGate(store, settings)

    if args.command == "status":
        _print_status(gate, settings)
        return
    if args.command == "reset":
        gate.clear()
        ok("Idle-resume timestamps cleared.")
        return

    audit_log = get_audit_logger(settings.log_dir)
    identity = EnvIdentityProvider()
    agents = (
        FileAgentStore(args.agents) if args.agents
        else HttpAgentStore(timeout=settings.http_timeout)
    )
    dispatcher = TrainingDispatcher(
        WalletClient(timeout=settings.http_timeout), settings, audit_log=audit_log,
    )
    orchestrator = SweepOrchestrator(
        identity,
        agents,
        StalenessEvaluator(settings),
        TriggerDedupStore(store, settings, fail_closed=settings.dedup_fail_closed),
        dispatcher,
        audit_log=audit_log,
    )
    watcher = IdleResumeWatcher(identity, gate, orchestrator, online=not args.offline)

    if args.command == "sweep":
        user_id = identity.resolve_user_id()
        if not user_id:
            fail("No user identity: set IDLE_RESUME_ID_TOKEN or IDLE_RESUME_USER_ID.")
        report = orchestrator.run(user_id)
    elif args.command == "mount":
        report = watcher.mount()
    elif args.command in ("visible", "hidden"):
        report = watcher.visibility_changed(args.command == "visible")
    elif args.command == "focus":
        report = watcher.focus()
    elif args.command == "online":
        report = watcher.online()
    else:
        watcher.page_hide()
        report = None

    if args.command in ("hidden", "page-hide"):
        ok("Activity stamped.")
    else:
        _print_report(report)

    dispatcher.drain(timeout=_WALLET_DRAIN_SECS)
