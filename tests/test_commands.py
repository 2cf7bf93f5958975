import pytest

from droidprep.core.commands import Command, extract_command_from_context, parse_command
from droidprep.core.context import normalize

from conftest import issue_comment_event, make_inputs, pull_request_event


@pytest.mark.parametrize(
    "text, expected",
    [
        ("@droid fill", Command.FILL),
        ("@droid review", Command.REVIEW),
        ("@droid review security", Command.REVIEW),
        ("@droid security", Command.SECURITY),
        ("@droid security --full", Command.SECURITY_FULL),
        ("@droid security --full please", Command.SECURITY_FULL),
        ("@droid", Command.DEFAULT),
        ("hey @droid, can you look?", Command.DEFAULT),
        ("@DROID REVIEW", Command.REVIEW),
    ],
)
def test_parse_command_detects_keyword(text, expected):
    parsed = parse_command(text)
    assert parsed is not None
    assert parsed.command == expected


def test_parse_command_without_trigger_returns_none():
    assert parse_command("please review this") is None
    assert parse_command("") is None
    assert parse_command(None) is None


def test_parse_command_requires_trigger_phrase():
    assert parse_command("android setup") is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("@droid\tfill", Command.FILL),
        ("@droid    fill", Command.FILL),
        ("@droid \t review", Command.REVIEW),
        ("@DrOiD FiLl", Command.FILL),
        ("@droid filled", Command.FILL),
        ("x@droid fill", Command.FILL),
        ("@droids please", Command.DEFAULT),
    ],
)
def test_parse_command_matches_keyword_prefix(text, expected):
    assert parse_command(text).command == expected


@pytest.mark.parametrize(
    "text",
    ["@droid hi there, then @droid fill", "@droid fill and thanks @droid"],
)
def test_fill_wins_over_bare_mention_in_either_order(text):
    assert parse_command(text).command == Command.FILL


def test_specific_command_wins_over_earlier_bare_mention():
    parsed = parse_command("@droid thanks! also @droid review when you can")
    assert parsed.command == Command.REVIEW


def test_fill_takes_precedence_over_review():
    parsed = parse_command("@droid review later, first @droid fill")
    assert parsed.command == Command.FILL


def test_security_hyphenated_word_is_not_security_command():
    parsed = parse_command("@droid security-hardening ideas")
    assert parsed.command != Command.SECURITY


def test_custom_trigger_phrase_is_escaped():
    parsed = parse_command("/bot+ review", trigger_phrase="/bot+")
    assert parsed.command == Command.REVIEW


def test_extract_from_comment_records_location_and_timestamp():
    context = normalize(issue_comment_event("@droid review"), make_inputs())
    parsed = extract_command_from_context(context)
    assert parsed.command == Command.REVIEW
    assert parsed.location == "comment"
    assert parsed.timestamp == "2025-01-02T10:00:00Z"


def test_extract_from_pull_request_body():
    context = normalize(pull_request_event(body="Summary\n\n@droid fill"), make_inputs())
    parsed = extract_command_from_context(context)
    assert parsed.command == Command.FILL
    assert parsed.location == "body"
    assert parsed.timestamp is None
