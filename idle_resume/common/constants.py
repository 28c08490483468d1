"""Shared constants for the idle-resume training trigger."""

from pathlib import Path

# Project root = idle-resume/
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# ── Persisted key names ──────────────────────────────────────────────────────
STORAGE_PREFIX = "pluree:idle-resume"
LAST_ACTIVE_KEY = f"{STORAGE_PREFIX}:last-active-at"
LAST_CHECK_KEY = f"{STORAGE_PREFIX}:last-check-at"
TRAINING_TRIGGER_PREFIX = f"{STORAGE_PREFIX}:kb-training-trigger:"

# ── Timing (milliseconds, overridable via TriggerSettings) ──────────────────
MINUTE_MS = 60 * 1000
IDLE_THRESHOLD_MS = 60 * MINUTE_MS
CHECK_COOLDOWN_MS = 15 * MINUTE_MS
TRAINING_STALE_THRESHOLD_MS = 500 * MINUTE_MS
TRAINING_TRIGGER_COOLDOWN_MS = 60 * MINUTE_MS

# ── Training command ─────────────────────────────────────────────────────────
TRAINING_COMMAND = "update-kb-super-editor-knowledgE"
# Path segment as served by the KB API (sic)
TRAINING_TIMESTAMPS_PATH = "last-taining-timestamps"
SOURCE_ARTICLES_PATH = "source-articles"
TRAINING_KEYS = ("assistant", "kb_analyzer", "kb_creator", "kb_expert")
TRAINING_FALLBACK_TOKEN_COST = 50_000

# ── HTTP ─────────────────────────────────────────────────────────────────────
DEFAULT_KEY_NAME = "x-api-key"
HTTP_TIMEOUT_SECS = 15
CHAT_ACCEPTED_STATUSES = (200, 202)
