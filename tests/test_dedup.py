"""Per-agent trigger dedup store."""

from unittest.mock import MagicMock

import redis

from conftest import HOUR, T0, make_agent
from idle_resume.common.constants import TRAINING_TRIGGER_PREFIX
from idle_resume.common.redis import RedisTimerStore
from idle_resume.trigger.dedup import TriggerDedupStore


def test_key_prefers_agent_id(store):
    agent = make_agent(id="abc 1/2")
    assert TriggerDedupStore.key_for(agent) == f"{TRAINING_TRIGGER_PREFIX}abc%201%2F2"


def test_key_falls_back_to_chat_endpoint():
    agent = make_agent(id="", chat_endpoint="https://chat.example.com/chat?x=1")
    assert TriggerDedupStore.key_for(agent) == (
        f"{TRAINING_TRIGGER_PREFIX}https%3A%2F%2Fchat.example.com%2Fchat%3Fx%3D1"
    )


def test_key_falls_back_to_constant():
    agent = make_agent(id="", chat_endpoint="")
    assert TriggerDedupStore.key_for(agent) == f"{TRAINING_TRIGGER_PREFIX}unknown"


def test_key_keeps_uri_component_safe_characters():
    agent = make_agent(id="a-b_c.d!e~f*g'h(i)")
    assert TriggerDedupStore.key_for(agent).endswith("a-b_c.d!e~f*g'h(i)")


def test_never_fired_is_not_recent(store, settings):
    assert not TriggerDedupStore(store, settings).has_fired_recently(make_agent(), T0)


def test_mark_twice_then_recent_until_cooldown_elapses(store, settings):
    dedup = TriggerDedupStore(store, settings)
    agent = make_agent()

    dedup.mark_fired(agent, T0)
    dedup.mark_fired(agent, T0 + 10)

    assert dedup.has_fired_recently(agent, T0 + 20)
    assert dedup.has_fired_recently(agent, T0 + 10 + HOUR - 1)
    assert not dedup.has_fired_recently(agent, T0 + 10 + HOUR)


def test_agents_are_tracked_independently(store, settings):
    dedup = TriggerDedupStore(store, settings)
    dedup.mark_fired(make_agent(id="one"), T0)

    assert not dedup.has_fired_recently(make_agent(id="two"), T0 + 1)
    assert store.get(f"{TRAINING_TRIGGER_PREFIX}one") == str(T0)


def test_corrupt_record_counts_as_never_fired(store, settings):
    dedup = TriggerDedupStore(store, settings)
    store.set(dedup.key_for(make_agent()), "garbage")

    assert not dedup.has_fired_recently(make_agent(), T0)


def _unreachable_store():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    return RedisTimerStore(client)


def test_redis_outage_reads_as_never_fired_by_default(settings):
    dedup = TriggerDedupStore(_unreachable_store(), settings)

    assert not dedup.has_fired_recently(make_agent(), T0)


def test_redis_outage_blocks_dispatch_when_fail_closed(settings):
    dedup = TriggerDedupStore(_unreachable_store(), settings, fail_closed=True)

    assert dedup.has_fired_recently(make_agent(), T0)


def test_fail_closed_still_honours_missing_records(store, settings):
    dedup = TriggerDedupStore(store, settings, fail_closed=True)

    assert not dedup.has_fired_recently(make_agent(), T0)
