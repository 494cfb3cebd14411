"""PySide6 implementation of :class:`~parley.editor.host.EditorHost`.

Buffers are ``QPlainTextEdit`` widgets; a buffer is "displayed" while its
widget sits in the tab strip. Closing a tab from the UI deletes the buffer,
which is exactly the external destruction the surface layer detects lazily.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

from PySide6.QtCore import QObject, QTimer
from PySide6.QtGui import QColor, QTextCursor, QTextFormat
from PySide6.QtWidgets import (
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QTabWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from .host import BufferId, CursorPosition, EchoLevel, Highlight, TimerId, WindowId

__all__ = ["QtEditorHost", "ParleyWindow"]

LOGGER = logging.getLogger(__name__)

_GROUP_COLORS: Dict[str, tuple[int, int, int]] = {
    "ParleyUserHeader": (214, 234, 248),
    "ParleyModelHeader": (222, 244, 222),
}
_DEFAULT_GROUP_COLOR = (240, 240, 240)
_PARAGRAPH_SEPARATOR = "\u2029"


@dataclass(slots=True)
class _QtBuffer:
    name: str
    editor: QPlainTextEdit
    modified: bool = False
    highlights: List[Highlight] = field(default_factory=list)


class QtEditorHost(QObject):
    """Editor host backed by a ``QTabWidget`` of plain-text editors."""

    def __init__(
        self,
        tabs: QTabWidget,
        *,
        status_callback: Callable[[str, EchoLevel], None] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._tabs = tabs
        self._tabs.setTabsClosable(True)
        self._tabs.tabCloseRequested.connect(self._handle_tab_close_requested)  # type: ignore[attr-defined]
        self._status_callback = status_callback
        self._buffers: Dict[BufferId, _QtBuffer] = {}
        self._timers: Dict[TimerId, QTimer] = {}
        self._next_buffer = 1
        self._next_timer = 1
        self._programmatic = False

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------
    def create_buffer(self, name: str) -> BufferId:
        if self.find_buffer(name) is not None:
            raise ValueError(f"Buffer named {name!r} already exists")
        editor = QPlainTextEdit()
        editor.setObjectName(name)
        buffer_id = self._next_buffer
        self._next_buffer += 1
        self._buffers[buffer_id] = _QtBuffer(name=name, editor=editor)
        editor.textChanged.connect(lambda bid=buffer_id: self._handle_text_changed(bid))  # type: ignore[attr-defined]
        return buffer_id

    def find_buffer(self, name: str) -> BufferId | None:
        for buffer_id, buffer in self._buffers.items():
            if buffer.name == name:
                return buffer_id
        return None

    def buffer_exists(self, buffer: BufferId) -> bool:
        return buffer in self._buffers

    def delete_buffer(self, buffer: BufferId) -> None:
        target = self._require(buffer)
        index = self._tabs.indexOf(target.editor)
        if index >= 0:
            self._tabs.removeTab(index)
        del self._buffers[buffer]
        target.editor.deleteLater()

    def buffer_name(self, buffer: BufferId) -> str:
        return self._require(buffer).name

    def get_lines(self, buffer: BufferId) -> List[str]:
        return self._require(buffer).editor.toPlainText().split("\n")

    def set_lines(self, buffer: BufferId, start: int, end: int, lines: Sequence[str]) -> None:
        target = self._require(buffer)
        current = target.editor.toPlainText().split("\n")
        stop = len(current) if end < 0 else end
        updated = current[:start] + list(lines) + current[stop:]
        self._programmatic = True
        try:
            target.editor.setPlainText("\n".join(updated))
        finally:
            self._programmatic = False
        target.modified = True
        self._render_highlights(target)

    def set_modified(self, buffer: BufferId, modified: bool) -> None:
        target = self._require(buffer)
        target.modified = bool(modified)
        target.editor.document().setModified(bool(modified))

    def is_modified(self, buffer: BufferId) -> bool:
        return self._require(buffer).modified

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------
    def show_buffer(self, buffer: BufferId) -> WindowId:
        target = self._require(buffer)
        if self._tabs.indexOf(target.editor) < 0:
            self._tabs.addTab(target.editor, target.name)
        self._tabs.setCurrentWidget(target.editor)
        return buffer

    def is_displayed(self, buffer: BufferId) -> bool:
        target = self._buffers.get(buffer)
        return target is not None and self._tabs.indexOf(target.editor) >= 0

    def current_position(self) -> CursorPosition:
        buffer = self._current_buffer_id()
        if buffer is None:
            return CursorPosition(window=-1, buffer=-1)
        cursor = self._buffers[buffer].editor.textCursor()
        return CursorPosition(
            window=buffer,
            buffer=buffer,
            line=cursor.blockNumber(),
            column=cursor.positionInBlock(),
        )

    def restore_position(self, position: CursorPosition) -> None:
        target = self._buffers.get(position.buffer)
        if target is None or self._tabs.indexOf(target.editor) < 0:
            return
        self._tabs.setCurrentWidget(target.editor)
        self._move_cursor(target.editor, position.line, position.column)

    def set_cursor(self, buffer: BufferId, line: int) -> None:
        self._move_cursor(self._require(buffer).editor, line, 0)

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------
    def add_highlight(self, buffer: BufferId, namespace: str, line: int, group: str) -> None:
        target = self._require(buffer)
        target.highlights.append(Highlight(namespace=namespace, line=line, group=group))
        self._render_highlights(target)

    def clear_highlights(self, buffer: BufferId, namespace: str) -> None:
        target = self._require(buffer)
        target.highlights = [item for item in target.highlights if item.namespace != namespace]
        self._render_highlights(target)

    def highlights(self, buffer: BufferId, namespace: str | None = None) -> List[Highlight]:
        items = self._require(buffer).highlights
        if namespace is None:
            return list(items)
        return [item for item in items if item.namespace == namespace]

    # ------------------------------------------------------------------
    # Current editing context
    # ------------------------------------------------------------------
    def current_buffer(self) -> BufferId:
        buffer = self._current_buffer_id()
        if buffer is None:
            raise RuntimeError("No buffer is open")
        return buffer

    def selected_text(self) -> str:
        buffer = self._current_buffer_id()
        if buffer is None:
            return ""
        selected = self._buffers[buffer].editor.textCursor().selectedText()
        return selected.replace(_PARAGRAPH_SEPARATOR, "\n")

    def insert_lines(self, lines: Sequence[str]) -> None:
        editor = self._buffers[self.current_buffer()].editor
        cursor = editor.textCursor()
        cursor.movePosition(QTextCursor.MoveOperation.EndOfBlock)
        cursor.insertText("\n" + "\n".join(lines))
        editor.setTextCursor(cursor)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def echo(self, message: str, level: EchoLevel = EchoLevel.INFO) -> None:
        LOGGER.debug("echo[%s]: %s", level.value, message)
        if self._status_callback is not None:
            self._status_callback(message, level)

    def show_popup(self, title: str, lines: Sequence[str]) -> None:
        QMessageBox.information(self._tabs, title, "\n".join(lines))

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def start_timer(self, interval: float, callback: Callable[[], None]) -> TimerId:
        if interval <= 0:
            raise ValueError("Timer interval must be positive")
        timer = QTimer(self)
        timer.setInterval(int(interval * 1000))
        timer.timeout.connect(callback)  # type: ignore[attr-defined]
        timer.start()
        timer_id = self._next_timer
        self._next_timer += 1
        self._timers[timer_id] = timer
        return timer_id

    def stop_timer(self, timer: TimerId) -> bool:
        qt_timer = self._timers.pop(timer, None)
        if qt_timer is None:
            return False
        qt_timer.stop()
        qt_timer.deleteLater()
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, buffer: BufferId) -> _QtBuffer:
        try:
            return self._buffers[buffer]
        except KeyError:
            raise KeyError(f"Unknown buffer: {buffer}") from None

    def _current_buffer_id(self) -> BufferId | None:
        widget = self._tabs.currentWidget()
        for buffer_id, buffer in self._buffers.items():
            if buffer.editor is widget:
                return buffer_id
        return None

    def _handle_text_changed(self, buffer: BufferId) -> None:
        if self._programmatic:
            return
        target = self._buffers.get(buffer)
        if target is not None:
            target.modified = True

    def _handle_tab_close_requested(self, index: int) -> None:
        widget = self._tabs.widget(index)
        for buffer_id, buffer in list(self._buffers.items()):
            if buffer.editor is widget:
                LOGGER.debug("Tab for buffer %s closed by user", buffer.name)
                self.delete_buffer(buffer_id)
                return
        self._tabs.removeTab(index)

    @staticmethod
    def _move_cursor(editor: QPlainTextEdit, line: int, column: int) -> None:
        document = editor.document()
        block = document.findBlockByNumber(max(0, min(line, document.blockCount() - 1)))
        cursor = QTextCursor(block)
        cursor.setPosition(block.position() + max(0, min(column, block.length() - 1)))
        editor.setTextCursor(cursor)
        editor.ensureCursorVisible()

    def _render_highlights(self, target: _QtBuffer) -> None:
        editor = target.editor
        document = editor.document()
        selections: list[Any] = []
        for item in target.highlights:
            block = document.findBlockByNumber(item.line)
            if not block.isValid():
                continue
            selection = QTextEdit.ExtraSelection()
            selection.cursor = QTextCursor(block)
            selection.format.setBackground(QColor(*_GROUP_COLORS.get(item.group, _DEFAULT_GROUP_COLOR)))
            selection.format.setProperty(QTextFormat.Property.FullWidthSelection, True)
            selections.append(selection)
        editor.setExtraSelections(selections)


class ParleyWindow(QMainWindow):
    """Main window: a tab strip of buffers above a command line."""

    def __init__(self, *, on_command: Callable[[str], None] | None = None) -> None:
        super().__init__()
        self.setWindowTitle("Parley")
        self._on_command = on_command
        self.tabs = QTabWidget(self)
        self.command_line = QLineEdit(self)
        self.command_line.setPlaceholderText("/ask, /chat, /list, /switch, /end, /save ...")
        self.command_line.returnPressed.connect(self._handle_return)  # type: ignore[attr-defined]

        container = QWidget(self)
        layout = QVBoxLayout(container)
        layout.addWidget(self.tabs)
        layout.addWidget(self.command_line)
        self.setCentralWidget(container)
        self.host = QtEditorHost(self.tabs, status_callback=self._show_status, parent=self)
        scratch = self.host.create_buffer("[No Name]")
        self.host.show_buffer(scratch)

    def set_command_handler(self, handler: Callable[[str], None]) -> None:
        self._on_command = handler

    def _handle_return(self) -> None:
        text = self.command_line.text().strip()
        if not text or self._on_command is None:
            return
        self.command_line.clear()
        self._on_command(text)

    def _show_status(self, message: str, level: EchoLevel) -> None:
        prefix = "" if level is EchoLevel.INFO else f"{level.value.upper()}: "
        self.statusBar().showMessage(f"{prefix}{message}", 10_000)
