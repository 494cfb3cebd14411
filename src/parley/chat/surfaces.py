"""Display surfaces mirroring transcripts into editor buffers.

Two kinds of surface exist. The Ask surface is a process-wide singleton
reused by every single-turn query; its newest block sits at the top and
blocks are separated by a ``---`` rule. Each chat session owns a Chat
surface where turns are appended chronologically.

Surfaces hold buffer handles, never buffers. Before every write the handle
is checked against the host; a handle whose buffer was closed externally is
replaced by a freshly created buffer instead of being written to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from ..editor.host import BufferId, CursorPosition, EditorHost
from .formatting import HeaderFormat
from .message_model import Role, SurfaceKind, Turn

__all__ = [
    "ASK_SURFACE_NAME",
    "CHAT_SURFACE_PREFIX",
    "HIGHLIGHT_NAMESPACE",
    "SEPARATOR",
    "WAITING_PLACEHOLDER",
    "DisplaySurface",
    "DisplaySurfaceManager",
    "chat_surface_name",
    "session_prefix",
    "strip_placeholder",
]

LOGGER = logging.getLogger(__name__)

ASK_SURFACE_NAME = "Gemini Response"
CHAT_SURFACE_PREFIX = "Gemini Chat"
HIGHLIGHT_NAMESPACE = "parley-roles"
SEPARATOR = "---"
WAITING_PLACEHOLDER = "Waiting for Gemini response..."
PREFIX_LENGTH = 8
_HIGHLIGHT_GROUPS = {Role.USER: "ParleyUserHeader", Role.MODEL: "ParleyModelHeader"}


def session_prefix(session_id: str) -> str:
    """Return the short, user-facing form of ``session_id``."""

    return session_id[:PREFIX_LENGTH]


def chat_surface_name(session_id: str) -> str:
    return f"{CHAT_SURFACE_PREFIX} [{session_prefix(session_id)}]"


@dataclass(slots=True)
class DisplaySurface:
    """Handle pairing a transcript view with its backing buffer."""

    kind: SurfaceKind
    name: str
    buffer: BufferId | None = None
    session_id: str | None = None


class DisplaySurfaceManager:
    """Creates, reconciles and writes transcript surfaces on an editor host."""

    def __init__(self, host: EditorHost, header_format: HeaderFormat | None = None) -> None:
        self._host = host
        self._format = header_format or HeaderFormat()
        self._ask: DisplaySurface | None = None
        self._chats: Dict[str, DisplaySurface] = {}

    @property
    def host(self) -> EditorHost:
        return self._host

    @property
    def header_format(self) -> HeaderFormat:
        return self._format

    # ------------------------------------------------------------------
    # Surface lifecycle
    # ------------------------------------------------------------------
    def ensure_surface(self, kind: SurfaceKind, session_id: str | None = None) -> DisplaySurface:
        """Return the surface for ``kind``, (re)creating its buffer when missing."""

        if kind is SurfaceKind.ASK:
            if self._ask is None:
                self._ask = DisplaySurface(kind=SurfaceKind.ASK, name=ASK_SURFACE_NAME)
            surface = self._ask
        else:
            if not session_id:
                raise ValueError("Chat surfaces require a session id")
            surface = self._chats.get(session_id)
            if surface is None:
                name = chat_surface_name(session_id)
                if any(other.name == name for other in self._chats.values()):
                    # Another session shares the 8-character prefix.
                    name = f"{CHAT_SURFACE_PREFIX} [{session_id}]"
                surface = DisplaySurface(kind=SurfaceKind.CHAT, name=name, session_id=session_id)
                self._chats[session_id] = surface
        self._attach(surface)
        return surface

    @property
    def ask_surface(self) -> DisplaySurface | None:
        return self._ask

    def lookup_chat(self, session_id: str) -> DisplaySurface | None:
        return self._chats.get(session_id)

    def is_alive(self, surface: DisplaySurface) -> bool:
        """Return whether the surface's buffer still exists on the host."""

        return surface.buffer is not None and self._host.buffer_exists(surface.buffer)

    def is_attached(self, surface: DisplaySurface) -> bool:
        """Return whether the surface's buffer exists and is shown in a window."""

        return self.is_alive(surface) and self._host.is_displayed(surface.buffer)  # type: ignore[arg-type]

    def show(self, surface: DisplaySurface) -> None:
        """Display ``surface``, recreating its buffer first when it was closed."""

        self._attach(surface)
        self._host.show_buffer(surface.buffer)  # type: ignore[arg-type]

    def destroy(self, surface: DisplaySurface) -> None:
        """Delete the surface's buffer (when alive) and forget the surface."""

        if self.is_alive(surface):
            self._host.delete_buffer(surface.buffer)  # type: ignore[arg-type]
        surface.buffer = None
        if surface.kind is SurfaceKind.CHAT and surface.session_id:
            self._chats.pop(surface.session_id, None)
        elif surface is self._ask:
            self._ask = None

    def forget(self, session_id: str) -> None:
        """Drop the chat surface for ``session_id`` without touching the host."""

        self._chats.pop(session_id, None)

    def lines(self, surface: DisplaySurface) -> List[str]:
        if not self.is_alive(surface):
            return []
        return self._host.get_lines(surface.buffer)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def write_turn(
        self,
        surface: DisplaySurface,
        role: Role,
        body_lines: Sequence[str],
        *,
        timestamp: datetime | None = None,
    ) -> None:
        turn = Turn(role=role, body=tuple(body_lines), timestamp=timestamp or datetime.now())
        self.write_turns(surface, [turn])

    def write_turns(self, surface: DisplaySurface, turns: Iterable[Turn]) -> None:
        """Write ``turns`` as one block, top-first for Ask and bottom-last for Chat."""

        block: List[str] = []
        for turn in turns:
            if block:
                block.append("")
            block.extend(self._format.format_turn(turn))
        if not block:
            return

        origin = self._host.current_position()
        self._attach(surface)
        buffer = surface.buffer
        assert buffer is not None
        existing = self._host.get_lines(buffer)
        has_content = _has_content(existing)

        if surface.kind is SurfaceKind.ASK:
            if has_content:
                self._host.set_lines(buffer, 0, 0, block + ["", SEPARATOR, ""])
            else:
                self._host.set_lines(buffer, 0, -1, block)
            cursor_line = 0
        else:
            if has_content:
                start = len(existing)
                self._host.set_lines(buffer, start, start, [""] + block)
            else:
                self._host.set_lines(buffer, 0, -1, block)
            cursor_line = len(self._host.get_lines(buffer)) - 1

        self._finish_write(surface, origin, cursor_line)

    def show_placeholder(self, surface: DisplaySurface) -> None:
        """Append the waiting placeholder while a request is in flight."""

        origin = self._host.current_position()
        self._attach(surface)
        buffer = surface.buffer
        assert buffer is not None
        existing = self._host.get_lines(buffer)
        if _has_content(existing):
            start = len(existing)
            self._host.set_lines(buffer, start, start, ["", WAITING_PLACEHOLDER])
        else:
            self._host.set_lines(buffer, 0, -1, [WAITING_PLACEHOLDER])
        self._finish_write(surface, origin, len(self._host.get_lines(buffer)) - 1)

    def clear_placeholder(self, surface: DisplaySurface) -> bool:
        """Remove a trailing waiting placeholder; returns whether one was found."""

        if not self.is_alive(surface):
            return False
        buffer = surface.buffer
        assert buffer is not None
        lines = self._host.get_lines(buffer)
        trimmed = strip_placeholder(lines)
        if len(trimmed) == len(lines):
            return False
        self._host.set_lines(buffer, len(trimmed), -1, [])
        self._host.set_modified(buffer, False)
        self.apply_highlighting(surface)
        return True

    def apply_highlighting(self, surface: DisplaySurface) -> None:
        """Re-highlight every role header line; repeated calls yield the same set."""

        if not self.is_alive(surface):
            return
        buffer = surface.buffer
        assert buffer is not None
        self._host.clear_highlights(buffer, HIGHLIGHT_NAMESPACE)
        patterns = [(self._format.header_pattern(role), group) for role, group in _HIGHLIGHT_GROUPS.items()]
        for index, line in enumerate(self._host.get_lines(buffer)):
            for pattern, group in patterns:
                if pattern.match(line):
                    self._host.add_highlight(buffer, HIGHLIGHT_NAMESPACE, index, group)
                    break

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _attach(self, surface: DisplaySurface) -> None:
        if self.is_alive(surface):
            return
        if surface.buffer is not None:
            LOGGER.info("Surface %s lost its buffer; recreating", surface.name)
        existing = self._host.find_buffer(surface.name)
        surface.buffer = existing if existing is not None else self._host.create_buffer(surface.name)
        self._host.set_modified(surface.buffer, False)

    def _finish_write(self, surface: DisplaySurface, origin: CursorPosition, cursor_line: int) -> None:
        buffer = surface.buffer
        assert buffer is not None
        self._host.set_modified(buffer, False)
        self.apply_highlighting(surface)
        window = self._host.show_buffer(buffer)
        self._host.set_cursor(buffer, cursor_line)
        if origin.window != window:
            self._host.restore_position(origin)


def _has_content(lines: Sequence[str]) -> bool:
    return any(line.strip() for line in lines)


def strip_placeholder(lines: Sequence[str]) -> List[str]:
    """Return ``lines`` without a trailing waiting placeholder and its blank lead-in."""

    trimmed = list(lines)
    while trimmed and not trimmed[-1].strip():
        trimmed.pop()
    if trimmed and trimmed[-1].strip() == WAITING_PLACEHOLDER:
        trimmed.pop()
        if trimmed and not trimmed[-1].strip():
            trimmed.pop()
        return trimmed
    return list(lines)
