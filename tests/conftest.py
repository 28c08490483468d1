"""Shared fakes for the idle-resume tests."""

from datetime import datetime, timedelta, timezone

import pytest

from idle_resume.common.http import HttpResponse
from idle_resume.common.redis import MemoryTimerStore
from idle_resume.common.settings import TriggerSettings
from idle_resume.trigger.agent import AgentConfig

MINUTE = 60 * 1000
HOUR = 60 * MINUTE
T0 = 1_760_000_000_000  # fixed "now" in epoch milliseconds


def iso(ms):
    """Epoch milliseconds -> ISO-8601 string with a Z suffix."""
    stamp = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def fresh_timestamps(now, age_ms=HOUR):
    keys = ("assistant", "kb_analyzer", "kb_creator", "kb_expert")
    return {key: iso(now - age_ms) for key in keys}


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeIdentity:
    def __init__(self, user_id="user-123", bearer="Bearer live", cached="Bearer cached"):
        self.user_id = user_id
        self.bearer = bearer
        self.cached = cached
        self.is_authenticated = user_id is not None

    def resolve_user_id(self):
        return self.user_id

    def resolve_bearer_token(self):
        if isinstance(self.bearer, Exception):
            raise self.bearer
        return self.bearer

    def cached_bearer_token(self):
        return self.cached


class FakeAgentStore:
    def __init__(self, agents):
        self.agents = list(agents)
        self.calls = []

    def list_agents(self, user_id):
        self.calls.append(user_id)
        return list(self.agents)


class FakeWallet:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def record_usage(self, user_id, usage):
        self.calls.append((user_id, usage))
        if self.error:
            raise self.error
        return {"user_id": user_id}


class FakeFetch:
    """Stand-in for ``http_get``: maps URL -> payload (or exception)."""

    def __init__(self, responses=None, default=None):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []

    def __call__(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        result = self.responses.get(url, self.default)
        if isinstance(result, Exception):
            raise result
        return result


class FakePost:
    """Stand-in for ``http_post``: returns queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses) or [HttpResponse(status=200, payload={})]
        self.calls = []

    def __call__(self, url, headers=None, body=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "body": body, "timeout": timeout})
        result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(result, Exception):
            raise result
        return result


def make_agent(**overrides):
    fields = {
        "id": "agent-1",
        "name": "Support bot",
        "kb_endpoint": "https://kb.example.com/api",
        "kb_key": "kb-secret",
        "chat_endpoint": "https://chat.example.com/chat/send",
        "chat_key": "chat-secret",
    }
    fields.update(overrides)
    return AgentConfig(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryTimerStore()


@pytest.fixture
def settings():
    return TriggerSettings()
