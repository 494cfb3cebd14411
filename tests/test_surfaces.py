"""Tests for the display surface manager."""

from __future__ import annotations

from datetime import datetime

import pytest

from parley.chat.message_model import Role, SurfaceKind, Turn
from parley.chat.surfaces import (
    ASK_SURFACE_NAME,
    HIGHLIGHT_NAMESPACE,
    SEPARATOR,
    WAITING_PLACEHOLDER,
    DisplaySurfaceManager,
    chat_surface_name,
    strip_placeholder,
)
from parley.editor.host import MemoryEditorHost

SESSION_ID = "abcdef12-3456-7890-abcd-ef1234567890"


def _exchange(prompt: str, reply: str) -> list[Turn]:
    return [Turn.from_text(Role.USER, prompt), Turn.from_text(Role.MODEL, reply)]


def test_ask_surface_is_a_singleton(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    first = surfaces.ensure_surface(SurfaceKind.ASK)
    second = surfaces.ensure_surface(SurfaceKind.ASK)

    assert first is second
    assert host.buffer_name(first.buffer) == ASK_SURFACE_NAME


def test_first_ask_block_replaces_empty_buffer(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.ASK)

    surfaces.write_turns(surface, _exchange("question", "answer"))

    assert host.get_lines(surface.buffer) == ["## User:", "question", "", "## Gemini:", "answer"]


def test_newer_ask_blocks_go_on_top_with_separator(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.ASK)

    surfaces.write_turns(surface, _exchange("first", "one"))
    surfaces.write_turns(surface, _exchange("second", "two"))

    lines = host.get_lines(surface.buffer)
    assert lines[:5] == ["## User:", "second", "", "## Gemini:", "two"]
    assert lines[5:8] == ["", SEPARATOR, ""]
    assert lines[8:] == ["## User:", "first", "", "## Gemini:", "one"]


def test_chat_turns_are_appended_chronologically(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)

    surfaces.write_turn(surface, Role.USER, ["hello"])
    surfaces.write_turn(surface, Role.MODEL, ["hi there"])

    assert host.buffer_name(surface.buffer) == chat_surface_name(SESSION_ID) == "Gemini Chat [abcdef12]"
    assert host.get_lines(surface.buffer) == ["## User:", "hello", "", "## Gemini:", "hi there"]
    assert SEPARATOR not in host.get_lines(surface.buffer)


def test_chat_surface_requires_session_id(surfaces: DisplaySurfaceManager) -> None:
    with pytest.raises(ValueError):
        surfaces.ensure_surface(SurfaceKind.CHAT)


def test_colliding_prefixes_fall_back_to_full_id(surfaces: DisplaySurfaceManager) -> None:
    first = surfaces.ensure_surface(SurfaceKind.CHAT, "abcdef12-one")
    second = surfaces.ensure_surface(SurfaceKind.CHAT, "abcdef12-two")

    assert first.name == "Gemini Chat [abcdef12]"
    assert second.name == "Gemini Chat [abcdef12-two]"
    assert first.buffer != second.buffer


def test_write_leaves_buffer_unmodified(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)

    surfaces.write_turn(surface, Role.USER, ["hello"])

    assert host.is_modified(surface.buffer) is False


def test_headers_are_highlighted_by_role(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    surfaces.write_turns(surface, _exchange("hello", "hi"))

    highlights = host.highlights(surface.buffer, HIGHLIGHT_NAMESPACE)

    assert [(item.line, item.group) for item in highlights] == [
        (0, "ParleyUserHeader"),
        (3, "ParleyModelHeader"),
    ]


def test_highlighting_is_idempotent(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.ASK)
    surfaces.write_turns(surface, _exchange("hello", "hi"))
    before = host.highlights(surface.buffer, HIGHLIGHT_NAMESPACE)

    surfaces.apply_highlighting(surface)
    surfaces.apply_highlighting(surface)

    assert host.highlights(surface.buffer, HIGHLIGHT_NAMESPACE) == before


def test_timestamped_headers_are_highlighted(host: MemoryEditorHost) -> None:
    from parley.chat.formatting import HeaderFormat

    manager = DisplaySurfaceManager(host, HeaderFormat(timestamps=True))
    surface = manager.ensure_surface(SurfaceKind.ASK)
    manager.write_turn(surface, Role.USER, ["hello"], timestamp=datetime(2024, 1, 2, 3, 4, 5))

    assert host.get_lines(surface.buffer)[0] == "[2024-01-02 03:04:05] ## User:"
    assert [item.line for item in host.highlights(surface.buffer, HIGHLIGHT_NAMESPACE)] == [0]


def test_write_recreates_externally_deleted_buffer(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    surfaces.write_turn(surface, Role.USER, ["hello"])
    stale = surface.buffer
    host.delete_buffer(stale)

    surfaces.write_turn(surface, Role.USER, ["again"])

    assert surface.buffer != stale
    assert host.buffer_exists(surface.buffer)
    assert host.get_lines(surface.buffer) == ["## User:", "again"]


def test_focus_returns_to_origin_window(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    origin = host.current_position()
    surface = surfaces.ensure_surface(SurfaceKind.ASK)

    surfaces.write_turns(surface, _exchange("q", "a"))

    assert host.current_position() == origin
    assert host.is_displayed(surface.buffer)


def test_cursor_lands_on_newest_content(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    surfaces.write_turns(surface, _exchange("q", "a"))

    host.show_buffer(surface.buffer)

    assert host.current_position().line == len(host.get_lines(surface.buffer)) - 1


def test_placeholder_is_shown_and_cleared(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    surfaces.write_turn(surface, Role.USER, ["hello"])

    surfaces.show_placeholder(surface)
    assert host.get_lines(surface.buffer)[-1] == WAITING_PLACEHOLDER

    assert surfaces.clear_placeholder(surface) is True
    assert host.get_lines(surface.buffer) == ["## User:", "hello"]
    assert surfaces.clear_placeholder(surface) is False


def test_destroy_deletes_buffer_and_forgets_surface(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    buffer = surface.buffer

    surfaces.destroy(surface)

    assert not host.buffer_exists(buffer)
    assert surfaces.lookup_chat(SESSION_ID) is None
    assert surfaces.lines(surface) == []


def test_attached_tracks_window_visibility(surfaces: DisplaySurfaceManager, host: MemoryEditorHost) -> None:
    surface = surfaces.ensure_surface(SurfaceKind.CHAT, SESSION_ID)
    surfaces.show(surface)
    assert surfaces.is_attached(surface)

    host.close_window(host.window_for_buffer(surface.buffer))

    assert surfaces.is_alive(surface)
    assert not surfaces.is_attached(surface)


def test_strip_placeholder_only_removes_trailing_placeholder() -> None:
    assert strip_placeholder(["a", "", WAITING_PLACEHOLDER]) == ["a"]
    assert strip_placeholder([WAITING_PLACEHOLDER, "a"]) == [WAITING_PLACEHOLDER, "a"]
    assert strip_placeholder([WAITING_PLACEHOLDER]) == []
