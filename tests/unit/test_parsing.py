"""Unit tests for lenient JSON argument parsing."""

from __future__ import annotations

import pytest

from llm_api.errors import ParseError
from llm_api.parsing import parse_lenient_json

pytestmark = pytest.mark.unit


def test_strict_json_parses_directly():
    assert parse_lenient_json('{"city": "Paris", "days": 3}') == {
        "city": "Paris",
        "days": 3,
    }


@pytest.mark.parametrize(
    "text",
    [
        '{"city": "Paris",}',
        "{'city': 'Paris'}",
        '{"city": "Paris"',
    ],
)
def test_common_model_mistakes_are_repaired(text):
    assert parse_lenient_json(text) == {"city": "Paris"}


@pytest.mark.parametrize("text", ["", "   "])
def test_blank_arguments_mean_no_arguments(text):
    assert parse_lenient_json(text) == {}


def test_unrecoverable_text_raises_parse_error():
    with pytest.raises(ParseError):
        parse_lenient_json("definitely not json")
