"""
Unit tests for strict-then-repair JSON parsing of provider output.
"""

import pytest

from resilience_layer.batching.exceptions import JSONParseError
from resilience_layer.batching.parsing import (
    RepairJSONParse,
    StrictJSONParse,
    drop_trailing_commas,
    parse_llm_json,
    quote_bare_keys,
    slice_outermost_json,
    strip_code_fences,
)


class TestStrictJSONParse:
    def test_object_and_array(self):
        parser = StrictJSONParse()
        assert parser.parse('{"decisions": []}') == {"decisions": []}
        assert parser.parse('[{"eventId": "e1"}]') == [{"eventId": "e1"}]

    def test_empty_content(self):
        with pytest.raises(JSONParseError) as exc_info:
            StrictJSONParse().parse("   ")
        assert exc_info.value.details["parse_error"] == "Empty content"

    def test_scalar_rejected(self):
        with pytest.raises(JSONParseError, match="not a JSON object or array"):
            StrictJSONParse().parse("42")

    def test_decode_error_keeps_snippet(self):
        with pytest.raises(JSONParseError) as exc_info:
            StrictJSONParse().parse("{broken")
        assert exc_info.value.details["content_snippet"] == "{broken"


class TestRepairTransforms:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_slice_outermost_json(self):
        assert slice_outermost_json('Sure! [{"a": 1}] Hope that helps.') == '[{"a": 1}]'
        assert slice_outermost_json("no json here") == "no json here"

    def test_drop_trailing_commas(self):
        assert drop_trailing_commas('{"a": [1, 2,], }') == '{"a": [1, 2]}'

    def test_quote_bare_keys(self):
        assert quote_bare_keys('{id: "1", isEvent: true}') == '{"id": "1", "isEvent": true}'

    def test_repair_applies_all_steps(self):
        content = '```json\nHere: {decisions: [{id: "r1", isEvent: true,},],}\n```'
        assert RepairJSONParse().parse(content) == {"decisions": [{"id": "r1", "isEvent": True}]}


class TestParseLLMJson:
    def test_strict_content_passes_through(self):
        assert parse_llm_json('[{"eventId": "e1", "speakers": []}]') == [{"eventId": "e1", "speakers": []}]

    def test_fenced_content_is_repaired(self):
        assert parse_llm_json('```json\n[{"eventId": "e1"},]\n```') == [{"eventId": "e1"}]

    @pytest.mark.parametrize("content", ["", "I could not find any speakers.", "42"])
    def test_unrepairable_content_raises(self, content):
        with pytest.raises(JSONParseError):
            parse_llm_json(content)
