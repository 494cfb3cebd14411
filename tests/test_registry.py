"""Tests for the chat session registry."""

from __future__ import annotations

import pytest

from parley.ai.client import SessionEndResult, SessionStartResult
from parley.chat.registry import SessionRegistry, SurfaceStatus
from parley.chat.surfaces import DisplaySurfaceManager
from parley.editor.host import MemoryEditorHost
from parley.errors import AmbiguousSessionPrefix, RemoteFailure, SessionNotFound


def test_create_session_registers_and_becomes_current(registry: SessionRegistry, client) -> None:
    session = registry.create_session()

    assert session.id in registry
    assert registry.current_id == session.id
    assert registry.current_session() is session
    assert ("start_session", "TEST_API_KEY", "test-model") in client.calls


def test_create_session_failure_leaves_registry_untouched(registry: SessionRegistry, client) -> None:
    existing = registry.create_session()
    client.start_results.append(SessionStartResult(success=False, error="quota exceeded"))

    with pytest.raises(RemoteFailure) as excinfo:
        registry.create_session()

    assert excinfo.value.message == "quota exceeded"
    assert len(registry) == 1
    assert registry.current_id == existing.id


def test_resolve_prefix_returns_full_id(registry: SessionRegistry) -> None:
    session = registry.create_session()

    assert registry.resolve_prefix(session.id[:4]) == session.id
    assert registry.resolve_prefix(session.id) == session.id


def test_resolve_prefix_rejects_unknown_and_empty(registry: SessionRegistry) -> None:
    registry.create_session()

    with pytest.raises(SessionNotFound):
        registry.resolve_prefix("zzz")
    with pytest.raises(SessionNotFound):
        registry.resolve_prefix("")


def test_resolve_prefix_reports_ambiguity(registry: SessionRegistry, client) -> None:
    client.start_results.extend(
        [
            SessionStartResult(success=True, session_id="abc12345-0000"),
            SessionStartResult(success=True, session_id="abc19999-0000"),
        ]
    )
    registry.create_session()
    registry.create_session()

    with pytest.raises(AmbiguousSessionPrefix) as excinfo:
        registry.resolve_prefix("abc1")

    assert set(excinfo.value.candidates) == {"abc12345-0000", "abc19999-0000"}
    assert registry.resolve_prefix("abc123") == "abc12345-0000"


def test_exact_id_wins_over_longer_ids_it_prefixes(registry: SessionRegistry, client) -> None:
    client.start_results.extend(
        [
            SessionStartResult(success=True, session_id="1a2b3c4d"),
            SessionStartResult(success=True, session_id="1a2b3c4d-ef56"),
        ]
    )
    short = registry.create_session()
    registry.create_session()

    assert registry.resolve_prefix("1a2b3c4d") == short.id
    assert registry.switch("1a2b3c4d") is short
    with pytest.raises(AmbiguousSessionPrefix):
        registry.resolve_prefix("1a2b")


def test_unique_prefix_extends_past_shared_characters(registry: SessionRegistry, client) -> None:
    client.start_results.extend(
        [
            SessionStartResult(success=True, session_id="abc12345-0000"),
            SessionStartResult(success=True, session_id="abc12345-1111"),
            SessionStartResult(success=True, session_id="ffff0000-0000"),
        ]
    )
    for _ in range(3):
        registry.create_session()

    assert [row.id_prefix for row in registry.list_sessions()] == ["abc12345-0", "abc12345-1", "ffff0000"]
    assert registry.resolve_prefix("abc12345-1") == "abc12345-1111"


def test_switch_changes_current_and_shows_surface(
    registry: SessionRegistry, host: MemoryEditorHost, surfaces: DisplaySurfaceManager
) -> None:
    first = registry.create_session()
    second = registry.create_session()
    assert registry.current_id == second.id

    switched = registry.switch(first.prefix)

    assert switched is first
    assert registry.current_id == first.id
    assert surfaces.is_attached(first.surface)


def test_switch_unknown_prefix_keeps_current(registry: SessionRegistry) -> None:
    session = registry.create_session()

    with pytest.raises(SessionNotFound):
        registry.switch("nope")

    assert registry.current_id == session.id


def test_switch_recreates_closed_surface(registry: SessionRegistry, host: MemoryEditorHost) -> None:
    session = registry.create_session()
    stale = session.surface.buffer
    host.delete_buffer(stale)

    registry.switch(session.prefix)

    assert session.surface.buffer != stale
    assert host.is_displayed(session.surface.buffer)


def test_end_current_session_clears_current(registry: SessionRegistry, host: MemoryEditorHost, client) -> None:
    session = registry.create_session()
    buffer = session.surface.buffer

    message = registry.end(session.prefix)

    assert message == f"Session {session.id[:8]} closed"
    assert session.id not in registry
    assert registry.current_id == ""
    assert not host.buffer_exists(buffer)
    assert client.ended == [session.id]


def test_end_other_session_keeps_current(registry: SessionRegistry) -> None:
    first = registry.create_session()
    second = registry.create_session()

    registry.end(first.prefix)

    assert registry.current_id == second.id
    assert len(registry) == 1


def test_end_failure_leaves_registry_untouched(registry: SessionRegistry, host: MemoryEditorHost, client) -> None:
    session = registry.create_session()
    client.end_results[session.id] = SessionEndResult(success=False, error="backend down")

    with pytest.raises(RemoteFailure):
        registry.end(session.prefix)

    assert session.id in registry
    assert registry.current_id == session.id
    assert host.buffer_exists(session.surface.buffer)


def test_list_sessions_reports_surface_status(
    registry: SessionRegistry, host: MemoryEditorHost, surfaces: DisplaySurfaceManager
) -> None:
    shown = registry.create_session()
    hidden = registry.create_session()
    surfaces.show(shown.surface)

    rows = {row.id_prefix: row for row in registry.list_sessions()}

    assert rows[shown.prefix].surface_status is SurfaceStatus.ACTIVE
    assert rows[hidden.prefix].surface_status is SurfaceStatus.DETACHED
    assert rows[hidden.prefix].current is True
    assert rows[shown.prefix].current is False


def test_list_sessions_empty(registry: SessionRegistry) -> None:
    assert registry.list_sessions() == []


def test_prune_stale_drops_sessions_without_buffers(registry: SessionRegistry, host: MemoryEditorHost, client) -> None:
    keep = registry.create_session()
    gone = registry.create_session()
    host.delete_buffer(gone.surface.buffer)

    pruned = registry.prune_stale()

    assert pruned == [gone.id]
    assert list(registry) == [keep]
    assert registry.current_id == ""
    assert gone.id in client.ended


def test_prune_stale_tolerates_remote_failure(registry: SessionRegistry, host: MemoryEditorHost, client) -> None:
    session = registry.create_session()
    client.end_results[session.id] = SessionEndResult(success=False, error="gone already")
    host.delete_buffer(session.surface.buffer)

    assert registry.prune_stale() == [session.id]
    assert len(registry) == 0


def test_get_unknown_id_raises(registry: SessionRegistry) -> None:
    with pytest.raises(SessionNotFound):
        registry.get("missing")
