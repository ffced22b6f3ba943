from __future__ import annotations

from main_local import parse_command, parse_token


def test_parse_token():
    assert parse_token("140") == 140
    assert parse_token("1.5") == 1.5
    assert parse_token("true") is True
    assert parse_token("nil") is None
    assert parse_token("abc") == "abc"


def test_parse_command_keeps_quoted_tokens_as_strings():
    assert parse_command('/evaluate "song().transport.lpb = 8"') == (
        "/evaluate",
        ["song().transport.lpb = 8"],
    )
    assert parse_command('/x "42" 42') == ("/x", ["42", 42])
    assert parse_command("   ") == ("", [])
