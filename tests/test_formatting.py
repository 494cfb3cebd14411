"""Tests for role header rendering."""

from __future__ import annotations

from datetime import datetime

from parley.chat.formatting import HeaderFormat, render_template
from parley.chat.message_model import Role, Turn
from parley.services.settings import Settings


def test_default_header_uses_marker_name_and_prompt() -> None:
    header_format = HeaderFormat()

    assert header_format.header(Role.USER) == "## User:"
    assert header_format.header(Role.MODEL) == "## Gemini:"


def test_timestamp_prefix_is_included_when_enabled() -> None:
    header_format = HeaderFormat(timestamps=True)
    moment = datetime(2024, 5, 1, 9, 30, 15)

    assert header_format.header(Role.USER, moment) == "[2024-05-01 09:30:15] ## User:"


def test_custom_template_reorders_placeholders() -> None:
    header_format = HeaderFormat(template="<MARKER><ROLENAME> says<ROLEPROMPT>", role_prompt=" >")

    assert header_format.header(Role.MODEL) == "## Gemini says >"


def test_substitution_is_literal_and_ordered() -> None:
    # A role name containing a later placeholder is expanded again.
    rendered = render_template(
        "<ROLENAME><ROLEPROMPT>",
        {"<ROLENAME>": "<ROLEPROMPT>", "<ROLEPROMPT>": "!"},
    )

    assert rendered == "!!"


def test_from_settings_copies_display_options() -> None:
    settings = Settings(user_role_name="Me", model_role_name="Bot", role_marker="> ", timestamps_enabled=True)

    header_format = HeaderFormat.from_settings(settings)

    assert header_format.user_name == "Me"
    assert header_format.model_name == "Bot"
    assert header_format.marker == "> "
    assert header_format.timestamps is True


def test_format_turn_places_header_before_body() -> None:
    turn = Turn.from_text(Role.USER, "line one\r\nline two")

    assert HeaderFormat().format_turn(turn) == ["## User:", "line one", "line two"]


def test_header_pattern_matches_with_and_without_timestamp() -> None:
    pattern = HeaderFormat().header_pattern(Role.MODEL)

    assert pattern.match("## Gemini:")
    assert pattern.match("[2024-05-01 09:30:15] ## Gemini:")
    assert not pattern.match("## User:")
    assert not pattern.match("## Gemini: trailing text")
