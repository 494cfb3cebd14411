"""Editor host primitives consumed by the chat layer, plus a headless host.

The chat layer never touches a widget toolkit directly. It talks to an
:class:`EditorHost`: named buffers of lines, windows that display them,
per-namespace line highlights, echo/popup messages and repeating timers.
:class:`MemoryEditorHost` implements the whole protocol in memory so the
layer can run (and be tested) without a GUI; its timers only fire when
:meth:`MemoryEditorHost.advance` is called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Protocol, Sequence

__all__ = [
    "BufferId",
    "WindowId",
    "TimerId",
    "EchoLevel",
    "CursorPosition",
    "Highlight",
    "EchoRecord",
    "EditorHost",
    "MemoryEditorHost",
]

LOGGER = logging.getLogger(__name__)

BufferId = int
WindowId = int
TimerId = int


class EchoLevel(str, Enum):
    """Severity used when echoing a message to the user."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class CursorPosition:
    """Window + buffer + cursor captured before a command moves focus."""

    window: WindowId
    buffer: BufferId
    line: int = 0
    column: int = 0


@dataclass(slots=True, frozen=True)
class Highlight:
    """A whole-line highlight applied by one namespace."""

    namespace: str
    line: int
    group: str


class EditorHost(Protocol):
    """Buffer, window, highlight and timer primitives of the hosting editor."""

    # Buffers -----------------------------------------------------------
    def create_buffer(self, name: str) -> BufferId: ...

    def find_buffer(self, name: str) -> BufferId | None: ...

    def buffer_exists(self, buffer: BufferId) -> bool: ...

    def delete_buffer(self, buffer: BufferId) -> None: ...

    def buffer_name(self, buffer: BufferId) -> str: ...

    def get_lines(self, buffer: BufferId) -> List[str]: ...

    def set_lines(self, buffer: BufferId, start: int, end: int, lines: Sequence[str]) -> None: ...

    def set_modified(self, buffer: BufferId, modified: bool) -> None: ...

    def is_modified(self, buffer: BufferId) -> bool: ...

    # Windows -----------------------------------------------------------
    def show_buffer(self, buffer: BufferId) -> WindowId: ...

    def is_displayed(self, buffer: BufferId) -> bool: ...

    def current_position(self) -> CursorPosition: ...

    def restore_position(self, position: CursorPosition) -> None: ...

    def set_cursor(self, buffer: BufferId, line: int) -> None: ...

    # Highlights --------------------------------------------------------
    def add_highlight(self, buffer: BufferId, namespace: str, line: int, group: str) -> None: ...

    def clear_highlights(self, buffer: BufferId, namespace: str) -> None: ...

    def highlights(self, buffer: BufferId, namespace: str | None = None) -> List[Highlight]: ...

    # Current editing context -------------------------------------------
    def current_buffer(self) -> BufferId: ...

    def selected_text(self) -> str: ...

    def insert_lines(self, lines: Sequence[str]) -> None: ...

    # Messages ----------------------------------------------------------
    def echo(self, message: str, level: EchoLevel = EchoLevel.INFO) -> None: ...

    def show_popup(self, title: str, lines: Sequence[str]) -> None: ...

    # Timers ------------------------------------------------------------
    def start_timer(self, interval: float, callback: Callable[[], None]) -> TimerId: ...

    def stop_timer(self, timer: TimerId) -> bool: ...


@dataclass(slots=True)
class _MemoryBuffer:
    name: str
    lines: List[str] = field(default_factory=lambda: [""])
    modified: bool = False
    highlights: List[Highlight] = field(default_factory=list)


@dataclass(slots=True)
class _MemoryWindow:
    buffer: BufferId
    line: int = 0
    column: int = 0


@dataclass(slots=True)
class _MemoryTimer:
    interval: float
    callback: Callable[[], None]
    remaining: float


@dataclass(slots=True)
class EchoRecord:
    """Message captured by :class:`MemoryEditorHost`."""

    message: str
    level: EchoLevel


class MemoryEditorHost:
    """In-memory :class:`EditorHost` implementation.

    The host starts with a single window showing an empty buffer named
    ``editor_buffer_name``. Buffers use editor line semantics: an empty
    buffer holds one empty line.
    """

    def __init__(self, *, editor_buffer_name: str = "[No Name]") -> None:
        self._buffers: Dict[BufferId, _MemoryBuffer] = {}
        self._windows: Dict[WindowId, _MemoryWindow] = {}
        self._timers: Dict[TimerId, _MemoryTimer] = {}
        self._next_buffer = 1
        self._next_window = 1000
        self._next_timer = 1
        self._selection: tuple[BufferId, int, int] | None = None
        self.messages: List[EchoRecord] = []
        self.popups: List[tuple[str, List[str]]] = []
        first = self.create_buffer(editor_buffer_name)
        self._current_window = self._open_window(first)

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------
    def create_buffer(self, name: str) -> BufferId:
        if self.find_buffer(name) is not None:
            raise ValueError(f"Buffer named {name!r} already exists")
        buffer_id = self._next_buffer
        self._next_buffer += 1
        self._buffers[buffer_id] = _MemoryBuffer(name=name)
        return buffer_id

    def find_buffer(self, name: str) -> BufferId | None:
        for buffer_id, buffer in self._buffers.items():
            if buffer.name == name:
                return buffer_id
        return None

    def buffer_exists(self, buffer: BufferId) -> bool:
        return buffer in self._buffers

    def delete_buffer(self, buffer: BufferId) -> None:
        if buffer not in self._buffers:
            raise KeyError(f"Unknown buffer: {buffer}")
        del self._buffers[buffer]
        for window_id in [wid for wid, win in self._windows.items() if win.buffer == buffer]:
            self.close_window(window_id)
        if self._selection is not None and self._selection[0] == buffer:
            self._selection = None

    def buffer_name(self, buffer: BufferId) -> str:
        return self._require(buffer).name

    def get_lines(self, buffer: BufferId) -> List[str]:
        return list(self._require(buffer).lines)

    def set_lines(self, buffer: BufferId, start: int, end: int, lines: Sequence[str]) -> None:
        target = self._require(buffer)
        stop = len(target.lines) if end < 0 else end
        updated = target.lines[:start] + list(lines) + target.lines[stop:]
        target.lines = updated or [""]
        target.modified = True

    def set_modified(self, buffer: BufferId, modified: bool) -> None:
        self._require(buffer).modified = bool(modified)

    def is_modified(self, buffer: BufferId) -> bool:
        return self._require(buffer).modified

    def set_text(self, buffer: BufferId, text: str) -> None:
        """Replace the whole buffer with ``text`` (test and scripting helper)."""

        self.set_lines(buffer, 0, -1, text.split("\n"))

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------
    def show_buffer(self, buffer: BufferId) -> WindowId:
        self._require(buffer)
        window_id = self.window_for_buffer(buffer)
        if window_id is None:
            window_id = self._open_window(buffer)
        self._current_window = window_id
        return window_id

    def is_displayed(self, buffer: BufferId) -> bool:
        return self.window_for_buffer(buffer) is not None

    def window_for_buffer(self, buffer: BufferId) -> WindowId | None:
        for window_id, window in self._windows.items():
            if window.buffer == buffer:
                return window_id
        return None

    def close_window(self, window: WindowId) -> None:
        """Close ``window`` the way a user closing a split would."""

        self._windows.pop(window, None)
        if self._current_window == window:
            self._current_window = next(iter(self._windows), -1)

    @property
    def current_window(self) -> WindowId:
        return self._current_window

    def current_position(self) -> CursorPosition:
        window = self._windows.get(self._current_window)
        if window is None:
            return CursorPosition(window=-1, buffer=-1)
        return CursorPosition(
            window=self._current_window,
            buffer=window.buffer,
            line=window.line,
            column=window.column,
        )

    def restore_position(self, position: CursorPosition) -> None:
        window = self._windows.get(position.window)
        if window is None or window.buffer != position.buffer:
            LOGGER.debug("Window %s no longer shows buffer %s; not restoring", position.window, position.buffer)
            return
        self._current_window = position.window
        window.line = position.line
        window.column = position.column

    def set_cursor(self, buffer: BufferId, line: int) -> None:
        lines = self._require(buffer).lines
        clamped = max(0, min(line, len(lines) - 1))
        for window in self._windows.values():
            if window.buffer == buffer:
                window.line = clamped
                window.column = 0

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------
    def add_highlight(self, buffer: BufferId, namespace: str, line: int, group: str) -> None:
        self._require(buffer).highlights.append(Highlight(namespace=namespace, line=line, group=group))

    def clear_highlights(self, buffer: BufferId, namespace: str) -> None:
        target = self._require(buffer)
        target.highlights = [item for item in target.highlights if item.namespace != namespace]

    def highlights(self, buffer: BufferId, namespace: str | None = None) -> List[Highlight]:
        items = self._require(buffer).highlights
        if namespace is None:
            return list(items)
        return [item for item in items if item.namespace == namespace]

    # ------------------------------------------------------------------
    # Current editing context
    # ------------------------------------------------------------------
    def current_buffer(self) -> BufferId:
        window = self._windows.get(self._current_window)
        if window is None:
            raise RuntimeError("No current window")
        return window.buffer

    def select_lines(self, buffer: BufferId, start: int, end: int) -> None:
        """Record a linewise visual selection of ``[start, end]`` (inclusive)."""

        self._require(buffer)
        self._selection = (buffer, start, end)

    def selected_text(self) -> str:
        if self._selection is None:
            return ""
        buffer, start, end = self._selection
        if buffer not in self._buffers:
            return ""
        return "\n".join(self._buffers[buffer].lines[start : end + 1])

    def insert_lines(self, lines: Sequence[str]) -> None:
        window = self._windows.get(self._current_window)
        if window is None:
            raise RuntimeError("No current window")
        row = window.line + 1
        self.set_lines(window.buffer, row, row, lines)
        window.line = row + max(0, len(lines) - 1)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def echo(self, message: str, level: EchoLevel = EchoLevel.INFO) -> None:
        self.messages.append(EchoRecord(message=message, level=level))

    def show_popup(self, title: str, lines: Sequence[str]) -> None:
        self.popups.append((title, list(lines)))

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def start_timer(self, interval: float, callback: Callable[[], None]) -> TimerId:
        if interval <= 0:
            raise ValueError("Timer interval must be positive")
        timer_id = self._next_timer
        self._next_timer += 1
        self._timers[timer_id] = _MemoryTimer(interval=interval, callback=callback, remaining=interval)
        return timer_id

    def stop_timer(self, timer: TimerId) -> bool:
        return self._timers.pop(timer, None) is not None

    def active_timers(self) -> tuple[TimerId, ...]:
        return tuple(self._timers)

    def advance(self, seconds: float) -> int:
        """Advance the fake clock, firing due timers; returns the callback count."""

        fired = 0
        elapsed = 0.0
        while True:
            due = [(timer.remaining, timer_id) for timer_id, timer in self._timers.items()]
            if not due:
                break
            wait, timer_id = min(due)
            if elapsed + wait > seconds:
                break
            elapsed += wait
            for timer in self._timers.values():
                timer.remaining -= wait
            timer = self._timers[timer_id]
            timer.remaining = timer.interval
            timer.callback()
            fired += 1
        for timer in self._timers.values():
            timer.remaining -= seconds - elapsed
        return fired

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, buffer: BufferId) -> _MemoryBuffer:
        try:
            return self._buffers[buffer]
        except KeyError:
            raise KeyError(f"Unknown buffer: {buffer}") from None

    def _open_window(self, buffer: BufferId) -> WindowId:
        window_id = self._next_window
        self._next_window += 1
        self._windows[window_id] = _MemoryWindow(buffer=buffer)
        return window_id
