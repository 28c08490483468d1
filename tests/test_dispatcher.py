"""Training command dispatch and usage accounting."""

import json

import pytest

from conftest import FakePost, FakeWallet, make_agent
from idle_resume.common.errors import DispatchError, HttpStatusError, NetworkError
from idle_resume.common.http import HttpResponse
from idle_resume.common.settings import TriggerSettings
from idle_resume.trigger.dispatcher import TrainingDispatcher, derive_wallet_usage, extract_usage

CMD = "update-kb-super-editor-knowledgE"


def _dispatcher(post, wallet=None, **settings):
    return TrainingDispatcher(wallet, TriggerSettings(**settings), post=post)


class TestUsageResolution:

    def test_total_is_preferred_and_rounded(self):
        usage = derive_wallet_usage({"totalTokenCount": 1234.5, "promptTokenCount": 1})
        assert usage == {"totalTokenCount": 1235, "promptTokenCount": 1}

    def test_prompt_plus_candidates_when_total_missing(self):
        usage = derive_wallet_usage({"promptTokenCount": 100, "candidatesTokenCount": 50})
        assert usage["totalTokenCount"] == 150

    def test_non_positive_total_falls_through_to_sum(self):
        usage = derive_wallet_usage({"totalTokenCount": 0, "promptTokenCount": 7})
        assert usage["totalTokenCount"] == 7

    @pytest.mark.parametrize("usage", [
        None,
        {},
        {"totalTokenCount": "n/a"},
        {"promptTokenCount": 0},
        {"totalTokenCount": 10**400},
    ])
    def test_unknown_usage(self, usage):
        assert derive_wallet_usage(usage) is None

    def test_usage_from_async_job_envelope(self):
        payload = {"async": True, "job_id": "j1", "result": {"usageMetadata": {"totalTokenCount": 9}}}
        assert extract_usage(payload) == {"totalTokenCount": 9}

    def test_usage_from_non_object_reply(self):
        assert extract_usage("accepted") is None


class TestPayloadAndHeaders:

    def test_identity_fields_are_forced(self):
        agent = make_agent(chat_request_schema={"prompt": "", "user": ""})

        body = _dispatcher(FakePost()).build_payload(agent, "u1")

        assert body == {"prompt": CMD, "user": "u1", "user_id": "u1", "userId": "u1", "message": CMD}

    def test_existing_user_id_field_is_overwritten(self):
        agent = make_agent(chat_request_schema={"query": "", "user_id": "template"})

        body = _dispatcher(FakePost()).build_payload(agent, "u1")

        assert body["user_id"] == "u1"
        assert body["query"] == CMD

    def test_configured_command_is_used(self):
        body = _dispatcher(FakePost(), training_command="retrain").build_payload(make_agent(), "u1")
        assert body["message"] == "retrain"

    def test_headers(self):
        headers = _dispatcher(FakePost()).build_headers(make_agent(chat_key_name="x-chat"), "Bearer t")

        assert headers == {
            "accept": "application/json",
            "Content-Type": "application/json",
            "x-chat": "chat-secret",
            "Authorization": "Bearer t",
        }


class TestDispatch:

    def test_success_posts_json_and_records_usage(self):
        post = FakePost(HttpResponse(status=200, payload={
            "text": "ok", "usageMetadata": {"promptTokenCount": 100, "candidatesTokenCount": 50},
        }))
        wallet = FakeWallet()
        dispatcher = _dispatcher(post, wallet)

        result = dispatcher.dispatch(make_agent(), "u1", "Bearer t")
        dispatcher.drain(timeout=5)

        assert post.calls[0]["url"] == "https://chat.example.com/chat/send"
        assert json.loads(post.calls[0]["body"])["message"] == CMD
        assert result.usage["totalTokenCount"] == 150
        assert not result.estimated
        assert wallet.calls == [("u1", result.usage)]

    def test_missing_usage_charges_fallback(self):
        wallet = FakeWallet()
        dispatcher = _dispatcher(FakePost(HttpResponse(status=202, payload="queued")), wallet)

        result = dispatcher.dispatch(make_agent(), "u1")
        dispatcher.drain(timeout=5)

        assert result.estimated
        assert result.usage == {"totalTokenCount": 50_000}
        assert wallet.calls[0][1]["totalTokenCount"] == 50_000

    def test_http_error_uses_server_message(self):
        post = FakePost(HttpStatusError("u", 500, {"error": "model overloaded"}))

        with pytest.raises(DispatchError, match="model overloaded") as info:
            _dispatcher(post).dispatch(make_agent(), "u1")
        assert info.value.status == 500

    def test_http_error_without_body(self):
        with pytest.raises(DispatchError, match=r"status 502"):
            _dispatcher(FakePost(HttpStatusError("u", 502))).dispatch(make_agent(), "u1")

    def test_transport_error(self):
        with pytest.raises(DispatchError, match="timed out"):
            _dispatcher(FakePost(NetworkError("timed out"))).dispatch(make_agent(), "u1")

    def test_unexpected_success_status_is_rejected(self):
        with pytest.raises(DispatchError, match=r"status 204"):
            _dispatcher(FakePost(HttpResponse(status=204, payload=None))).dispatch(make_agent(), "u1")

    def test_wallet_failure_does_not_surface(self):
        wallet = FakeWallet(error=RuntimeError("wallet down"))
        dispatcher = _dispatcher(FakePost(), wallet)

        result = dispatcher.dispatch(make_agent(), "u1")
        dispatcher.drain(timeout=5)

        assert result.status == 200
        assert len(wallet.calls) == 1

    def test_failed_dispatch_never_touches_wallet(self):
        wallet = FakeWallet()
        dispatcher = _dispatcher(FakePost(HttpStatusError("u", 500)), wallet)

        with pytest.raises(DispatchError):
            dispatcher.dispatch(make_agent(), "u1")
        dispatcher.drain(timeout=5)

        assert wallet.calls == []
