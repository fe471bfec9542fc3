import pytest

from oramacore_client.core.errors import ParseFailure
from oramacore_client.util.json_parsing import parse_ai_response, safe_json_parse


def test_valid_json_is_returned_unchanged():
    assert safe_json_parse('{"content": "hi", "n": [1, 2]}') == {"content": "hi", "n": [1, 2]}
    assert safe_json_parse("[]") == []
    assert safe_json_parse('""') == ""


def test_truncated_string_value_is_closed():
    assert safe_json_parse('{"content": "Hello wor') == {"content": "Hello wor"}


def test_truncated_nested_structure_is_closed():
    assert safe_json_parse('{"a": {"b": [1, 2') == {"a": {"b": [1, 2]}}


def test_trailing_comma_is_removed():
    assert safe_json_parse('[1, 2,') == [1, 2]
    assert safe_json_parse('{"a": 1,') == {"a": 1}


def test_missing_closing_brace():
    assert safe_json_parse('{"done": true') == {"done": True}


def test_escaped_backslash_before_u_is_kept():
    assert safe_json_parse('{"content": "C:\\\\u') == {"content": "C:\\u"}
    assert safe_json_parse('{"a": "\\\\u12') == {"a": "\\u12"}


def test_trailing_data_after_complete_value_fails():
    with pytest.raises(ParseFailure):
        safe_json_parse('{"content": "a"} {"content": "b"}')


def test_garbage_raises_parse_failure():
    with pytest.raises(ParseFailure) as exc_info:
        safe_json_parse("hello world")
    assert exc_info.value.text == "hello world"

    with pytest.raises(ParseFailure):
        parse_ai_response("")


def test_parse_ai_response_matches_safe_parse():
    text = '{"content": "pon'
    assert parse_ai_response(text) == safe_json_parse(text)
