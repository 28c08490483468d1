"""Request body synthesis from per-agent schema templates."""

import copy
import json

import pytest

from idle_resume.trigger.schema import parse_schema, synthesize

CMD = "update-kb-super-editor-knowledgE"
UID = "user-123"


class TestParseSchema:

    @pytest.mark.parametrize("schema", [None, "", "   ", {}, [], 0])
    def test_empty_inputs_mean_no_template(self, schema):
        assert parse_schema(schema) is None

    def test_invalid_json_string_is_ignored(self):
        assert parse_schema("{not json") is None

    def test_json_string_is_parsed(self):
        assert parse_schema(' {"prompt": "x"} ') == {"prompt": "x"}

    def test_structured_value_is_used_directly(self):
        schema = {"query": "x"}
        assert parse_schema(schema) is schema


class TestSynthesize:

    @pytest.mark.parametrize("schema", [None, "", "{broken", "[1, 2]", 42])
    def test_no_usable_schema_yields_message_and_user(self, schema):
        assert synthesize(schema, CMD, UID) == {"message": CMD, "userId": UID}

    def test_nested_prompt_receives_command_without_top_level_message(self):
        schema = {"contents": [{"parts": [{"PROMPT": "placeholder"}]}], "temperature": 0.2}

        body = synthesize(schema, CMD, UID)

        assert body["contents"][0]["parts"][0]["PROMPT"] == CMD
        assert "message" not in body
        assert body["temperature"] == 0.2
        assert body["userId"] == UID

    def test_user_field_receives_user_id(self):
        body = synthesize(json.dumps({"query": "", "session": {"user_ref": ""}}), CMD, UID)

        assert body == {"query": CMD, "session": {"user_ref": UID}}

    def test_message_hint_wins_over_user_hint(self):
        body = synthesize({"userPrompt": "x"}, CMD, UID)

        assert body == {"userPrompt": CMD, "userId": UID}

    def test_non_string_values_are_not_overwritten(self):
        schema = {"max_input_tokens": 512, "user": None, "flags": [True, "raw"]}

        body = synthesize(schema, CMD, UID)

        assert body["max_input_tokens"] == 512
        assert body["user"] is None
        assert body["flags"] == [True, "raw"]
        assert body["message"] == CMD
        assert body["userId"] == UID

    def test_every_matching_field_is_filled(self):
        schema = {"input": "a", "history": [{"message": "b"}, {"message": "c"}]}

        body = synthesize(schema, CMD, UID)

        assert body["input"] == CMD
        assert [m["message"] for m in body["history"]] == [CMD, CMD]

    def test_template_is_not_mutated(self):
        schema = {"request": {"prompt": "template", "user_id": "template"}}
        original = copy.deepcopy(schema)

        synthesize(schema, CMD, UID)

        assert schema == original
