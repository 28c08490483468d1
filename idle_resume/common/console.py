"""ANSI colour codes and CLI output helpers."""

from __future__ import annotations

import sys
from datetime import datetime, timezone


class C:
    """ANSI colour codes (no-op if not a tty)."""

    _tty = sys.stdout.isatty()
    RED = "\033[0;31m" if _tty else ""
    GREEN = "\033[0;32m" if _tty else ""
    CYAN = "\033[0;36m" if _tty else ""
    YELLOW = "\033[1;33m" if _tty else ""
    BOLD = "\033[1m" if _tty else ""
    NC = "\033[0m" if _tty else ""


def info(msg: str) -> None:
    print(f"{C.CYAN}[INFO]{C.NC}  {msg}")


def ok(msg: str) -> None:
    print(f"{C.GREEN}[ OK ]{C.NC} {msg}")


def warn(msg: str) -> None:
    print(f"{C.YELLOW}[WARN]{C.NC} {msg}")


def fail(msg: str) -> None:
    print(f"{C.RED}[FAIL]{C.NC} {msg}", file=sys.stderr)
    sys.exit(1)


# ── Time formatting ──────────────────────────────────────────────────────────


def fmt_duration(ms: int) -> str:
    """``5400000`` -> ``"1h 30m"``."""
    minutes = max(0, int(ms)) // 60_000
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m"


def fmt_timestamp(ms: int | None, now: int) -> str:
    if not ms:
        return "never"
    stamp = datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat(timespec="seconds")
    return f"{stamp}  ({fmt_duration(now - ms)} ago)"
