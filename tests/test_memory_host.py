"""Tests for the headless editor host."""

from __future__ import annotations

import pytest

from parley.editor.host import EchoLevel, MemoryEditorHost


def test_starts_with_one_empty_buffer_in_a_window(host: MemoryEditorHost) -> None:
    buffer = host.current_buffer()

    assert host.buffer_name(buffer) == "[No Name]"
    assert host.get_lines(buffer) == [""]
    assert host.is_displayed(buffer)
    assert host.window_for_buffer(buffer) == host.current_window


def test_buffer_names_are_unique(host: MemoryEditorHost) -> None:
    host.create_buffer("notes")

    with pytest.raises(ValueError):
        host.create_buffer("notes")
    assert host.find_buffer("notes") is not None
    assert host.find_buffer("missing") is None


def test_set_lines_splices_and_marks_modified(host: MemoryEditorHost) -> None:
    buffer = host.create_buffer("scratch")
    host.set_lines(buffer, 0, -1, ["a", "b", "c"])
    host.set_modified(buffer, False)

    host.set_lines(buffer, 1, 2, ["x", "y"])

    assert host.get_lines(buffer) == ["a", "x", "y", "c"]
    assert host.is_modified(buffer)


def test_clearing_a_buffer_leaves_one_empty_line(host: MemoryEditorHost) -> None:
    buffer = host.create_buffer("scratch")
    host.set_text(buffer, "something")

    host.set_lines(buffer, 0, -1, [])

    assert host.get_lines(buffer) == [""]


def test_delete_buffer_closes_its_windows(host: MemoryEditorHost) -> None:
    buffer = host.create_buffer("scratch")
    host.show_buffer(buffer)

    host.delete_buffer(buffer)

    assert not host.buffer_exists(buffer)
    assert host.window_for_buffer(buffer) is None
    with pytest.raises(KeyError):
        host.get_lines(buffer)


def test_restore_position_ignores_closed_window(host: MemoryEditorHost) -> None:
    origin = host.current_position()
    other = host.create_buffer("other")
    host.show_buffer(other)
    host.close_window(origin.window)

    host.restore_position(origin)

    assert host.current_buffer() == other


def test_selection_is_linewise_and_inclusive(host: MemoryEditorHost) -> None:
    buffer = host.current_buffer()
    host.set_text(buffer, "one\ntwo\nthree")

    host.select_lines(buffer, 1, 2)

    assert host.selected_text() == "two\nthree"


def test_echo_and_popup_are_recorded(host: MemoryEditorHost) -> None:
    host.echo("hello")
    host.echo("careful", EchoLevel.WARNING)
    host.show_popup("Title", ["body"])

    assert [(record.message, record.level) for record in host.messages] == [
        ("hello", EchoLevel.INFO),
        ("careful", EchoLevel.WARNING),
    ]
    assert host.popups == [("Title", ["body"])]


def test_timers_fire_in_order_and_repeat(host: MemoryEditorHost) -> None:
    fired: list[str] = []
    host.start_timer(10, lambda: fired.append("slow"))
    fast = host.start_timer(4, lambda: fired.append("fast"))

    assert host.advance(10) == 3
    assert fired == ["fast", "fast", "slow"]

    assert host.stop_timer(fast) is True
    assert host.stop_timer(fast) is False


def test_timer_interval_must_be_positive(host: MemoryEditorHost) -> None:
    with pytest.raises(ValueError):
        host.start_timer(0, lambda: None)
