"""User-facing commands: single-turn queries and chat session management.

Each command runs to completion synchronously. Remote and registry errors are
caught here, echoed to the user and turned into a failed
:class:`CommandResult`; they abort only the side effects of that command.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, TypeVar

from ..ai.client import RemoteGenerationClient
from ..editor.host import EchoLevel, EditorHost
from ..errors import ParleyError, RemoteFailure, SessionNotFound
from .message_model import DisplayMode, Role, SurfaceKind, Turn, split_lines
from .registry import SessionRegistry
from .surfaces import ASK_SURFACE_NAME, DisplaySurface, DisplaySurfaceManager, session_prefix
from .transcript import ASK_LABEL, TranscriptLogger, transcript_label
from .word_filter import WordReplacementFilter

__all__ = [
    "ChatCommands",
    "CommandRequest",
    "CommandResult",
    "CommandType",
    "execute_command",
    "parse_command",
]

LOGGER = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., "CommandResult"])


@dataclass(slots=True)
class CommandResult:
    """Outcome reported back to whatever invoked a command."""

    ok: bool
    message: str = ""
    data: Any = None
    error_code: str | None = None


def _reports_errors(func: _F) -> _F:
    @functools.wraps(func)
    def wrapper(self: "ChatCommands", *args: Any, **kwargs: Any) -> CommandResult:
        try:
            return func(self, *args, **kwargs)
        except ParleyError as exc:
            LOGGER.info("%s failed: %s", func.__name__, exc)
            level = EchoLevel.WARNING if exc.severity == "warning" else EchoLevel.ERROR
            self.host.echo(exc.message, level)
            return CommandResult(ok=False, message=exc.message, error_code=exc.error_code)

    return wrapper  # type: ignore[return-value]


@dataclass(slots=True)
class _Exchange:
    prompt: str
    reply: str
    started_at: datetime


class ChatCommands:
    """Command handlers wired to a registry, surfaces, logger and client."""

    def __init__(
        self,
        *,
        host: EditorHost,
        client: RemoteGenerationClient,
        surfaces: DisplaySurfaceManager,
        registry: SessionRegistry,
        logger: TranscriptLogger,
        word_filter: WordReplacementFilter | None = None,
        api_key_source: str,
        model: str,
    ) -> None:
        self.host = host
        self._client = client
        self._surfaces = surfaces
        self._registry = registry
        self._logger = logger
        self._filter = word_filter or WordReplacementFilter()
        self._api_key_source = api_key_source
        self._model = model

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def surfaces(self) -> DisplaySurfaceManager:
        return self._surfaces

    # ------------------------------------------------------------------
    # Single-turn queries
    # ------------------------------------------------------------------
    @_reports_errors
    def ask(
        self,
        prompt: str,
        mode: DisplayMode = DisplayMode.NEW_BUFFER,
        model: str | None = None,
    ) -> CommandResult:
        outgoing = self._filter.apply(prompt)
        if not outgoing.strip():
            return self._usage("Nothing to send")

        surface: DisplaySurface | None = None
        sent_at = datetime.now()
        if mode is DisplayMode.NEW_BUFFER:
            surface = self._surfaces.ensure_surface(SurfaceKind.ASK)
            self._surfaces.show_placeholder(surface)
        try:
            result = self._client.generate(outgoing, self._api_key_source, model or self._model)
        finally:
            if surface is not None:
                self._surfaces.clear_placeholder(surface)
        if not result.success:
            raise RemoteFailure(message=result.error or "Generation failed")

        self._render(mode, _Exchange(prompt=outgoing, reply=result.text, started_at=sent_at))
        return CommandResult(ok=True, data=result.text)

    def send_selection(
        self,
        instruction: str = "",
        mode: DisplayMode = DisplayMode.NEW_BUFFER,
        model: str | None = None,
    ) -> CommandResult:
        text = self.host.selected_text()
        if not text.strip():
            return self._usage("No text selected")
        return self.ask(_compose(instruction, text), mode=mode, model=model)

    def send_buffer(
        self,
        instruction: str = "",
        mode: DisplayMode = DisplayMode.NEW_BUFFER,
        model: str | None = None,
    ) -> CommandResult:
        buffer = self.host.current_buffer()
        text = "\n".join(self.host.get_lines(buffer))
        if not text.strip():
            return self._usage("Current buffer is empty")
        return self.ask(_compose(instruction, text), mode=mode, model=model)

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------
    @_reports_errors
    def chat_start(self) -> CommandResult:
        session = self._registry.create_session()
        message = f"Started chat session {self._registry.unique_prefix(session.id)}"
        self.host.echo(message)
        return CommandResult(ok=True, message=message, data=session.id)

    @_reports_errors
    def chat_send(self, message: str) -> CommandResult:
        outgoing = self._filter.apply(message)
        if not outgoing.strip():
            return self._usage("Nothing to send")

        session = self._registry.current_session()
        if session is None:
            session = self._registry.create_session()
            self.host.echo(f"Started chat session {self._registry.unique_prefix(session.id)}")
        surface = self._surfaces.ensure_surface(SurfaceKind.CHAT, session.id)
        session.surface = surface

        sent_at = datetime.now()
        self._surfaces.show_placeholder(surface)
        try:
            result = self._client.send_message(session.id, outgoing, self._api_key_source, self._model)
        finally:
            self._surfaces.clear_placeholder(surface)
        if not result.success:
            raise RemoteFailure(message=result.error or "Chat message failed")

        turns = [
            Turn.from_text(Role.USER, outgoing, timestamp=sent_at),
            Turn.from_text(Role.MODEL, result.text, timestamp=datetime.now()),
        ]
        self._surfaces.write_turns(surface, turns)
        for turn in turns:
            session.record(turn)
        return CommandResult(ok=True, data=result.text)

    @_reports_errors
    def chat_list(self) -> CommandResult:
        rows = self._registry.list_sessions()
        if not rows:
            message = "No active chat sessions"
        else:
            lines = [
                f"{'*' if row.current else ' '} {row.id_prefix}  {row.surface_status.value}  ({row.turn_count} turns)"
                for row in rows
            ]
            message = "\n".join(lines)
        self.host.echo(message)
        return CommandResult(ok=True, message=message, data=rows)

    @_reports_errors
    def chat_switch(self, prefix: str) -> CommandResult:
        session = self._registry.switch(prefix)
        message = f"Switched to chat session {self._registry.unique_prefix(session.id)}"
        self.host.echo(message)
        return CommandResult(ok=True, message=message, data=session.id)

    @_reports_errors
    def chat_end(self, prefix: str | None = None) -> CommandResult:
        target = prefix or self._registry.current_id
        if not target:
            raise SessionNotFound(message="No active chat session")
        remote_message = self._registry.end(target)
        message = remote_message or f"Ended chat session {session_prefix(target)}"
        self.host.echo(message)
        return CommandResult(ok=True, message=message)

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------
    @_reports_errors
    def save_ask(self) -> CommandResult:
        surface = self._surfaces.ask_surface
        if surface is None or not self._surfaces.is_alive(surface):
            message = "Nothing to save"
            self.host.echo(message)
            return CommandResult(ok=True, message=message)
        return self._save(surface, ASK_LABEL)

    @_reports_errors
    def save_chat(self, prefix: str | None = None) -> CommandResult:
        target = prefix or self._registry.current_id
        if not target:
            raise SessionNotFound(message="No active chat session")
        session = self._registry.get(self._registry.resolve_prefix(target))
        if not self._surfaces.is_alive(session.surface):
            return self._usage(f"Chat session {session.prefix} has no open transcript")
        return self._save(session.surface, transcript_label(self._registry.unique_prefix(session.id)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _save(self, surface: DisplaySurface, label: str) -> CommandResult:
        path = self._logger.save(surface, label)
        if path is None:
            message = "Nothing to save"
        else:
            message = f"Transcript saved to {path}"
        self.host.echo(message)
        return CommandResult(ok=True, message=message, data=path)

    def _render(self, mode: DisplayMode, exchange: _Exchange) -> None:
        lines = split_lines(exchange.reply)
        if mode is DisplayMode.NEW_BUFFER:
            surface = self._surfaces.ensure_surface(SurfaceKind.ASK)
            self._surfaces.write_turns(
                surface,
                [
                    Turn.from_text(Role.USER, exchange.prompt, timestamp=exchange.started_at),
                    Turn.from_text(Role.MODEL, exchange.reply, timestamp=datetime.now()),
                ],
            )
        elif mode is DisplayMode.POPUP:
            self.host.show_popup(ASK_SURFACE_NAME, lines)
        elif mode is DisplayMode.INSERT:
            self.host.insert_lines(lines)
        elif mode is DisplayMode.ECHO:
            self.host.echo(exchange.reply)
        else:  # pragma: no cover - closed enum
            raise ValueError(f"Unsupported display mode: {mode!r}")

    def _usage(self, message: str) -> CommandResult:
        self.host.echo(message, EchoLevel.WARNING)
        return CommandResult(ok=False, message=message, error_code="usage")


def _compose(instruction: str, text: str) -> str:
    instruction = instruction.strip()
    if not instruction:
        return text
    return f"{instruction}\n\n{text}"


# ----------------------------------------------------------------------
# Command-line parsing
# ----------------------------------------------------------------------
class CommandType(str, Enum):
    """Commands accepted from the editor's command line."""

    ASK = "ask"
    SELECTION = "selection"
    BUFFER = "buffer"
    CHAT = "chat"
    CHAT_START = "chat_start"
    CHAT_LIST = "chat_list"
    CHAT_SWITCH = "chat_switch"
    CHAT_END = "chat_end"
    SAVE_ASK = "save_ask"
    SAVE_CHAT = "save_chat"


@dataclass(slots=True)
class CommandRequest:
    """Parsed representation of a command-line string."""

    command: CommandType
    argument: str = ""
    mode: DisplayMode = DisplayMode.NEW_BUFFER
    raw: str = ""


_COMMAND_PREFIXES = ("/", ":")
_COMMAND_ALIASES = {
    "ask": CommandType.ASK,
    "gemini": CommandType.ASK,
    "selection": CommandType.SELECTION,
    "sel": CommandType.SELECTION,
    "buffer": CommandType.BUFFER,
    "buf": CommandType.BUFFER,
    "chat": CommandType.CHAT,
    "new": CommandType.CHAT_START,
    "chat-start": CommandType.CHAT_START,
    "list": CommandType.CHAT_LIST,
    "sessions": CommandType.CHAT_LIST,
    "switch": CommandType.CHAT_SWITCH,
    "end": CommandType.CHAT_END,
    "save": CommandType.SAVE_ASK,
    "save-chat": CommandType.SAVE_CHAT,
}
_MODE_FLAGS = {
    "--buffer": DisplayMode.NEW_BUFFER,
    "--popup": DisplayMode.POPUP,
    "--insert": DisplayMode.INSERT,
    "--echo": DisplayMode.ECHO,
}
_MODE_COMMANDS = {CommandType.ASK, CommandType.SELECTION, CommandType.BUFFER}


def parse_command(text: str) -> CommandRequest:
    """Parse ``/verb [--mode] argument`` into a :class:`CommandRequest`.

    Text without a command prefix is treated as a chat message. Only the
    leading flags are tokenized; the remaining argument is kept verbatim so
    prompts may contain quotes freely.
    """

    normalized = (text or "").strip()
    if not normalized:
        raise ValueError("Empty command")
    if not normalized.startswith(_COMMAND_PREFIXES):
        return CommandRequest(command=CommandType.CHAT, argument=normalized, raw=normalized)

    verb, _, rest = normalized[1:].lstrip().partition(" ")
    command = _COMMAND_ALIASES.get(verb.lower())
    if command is None:
        raise ValueError(f"Unknown command '{verb}'. Try /ask or /chat.")

    mode = DisplayMode.NEW_BUFFER
    rest = rest.strip()
    while rest.startswith("--"):
        flag, _, remainder = rest.partition(" ")
        if command not in _MODE_COMMANDS or flag not in _MODE_FLAGS:
            raise ValueError(f"Unknown flag '{flag}' for /{verb}")
        mode = _MODE_FLAGS[flag]
        rest = remainder.strip()
    return CommandRequest(command=command, argument=rest, mode=mode, raw=normalized)


def execute_command(commands: ChatCommands, request: CommandRequest) -> CommandResult:
    """Dispatch ``request`` to the matching :class:`ChatCommands` handler."""

    argument = request.argument
    if request.command is CommandType.ASK:
        return commands.ask(argument, mode=request.mode)
    if request.command is CommandType.SELECTION:
        return commands.send_selection(argument, mode=request.mode)
    if request.command is CommandType.BUFFER:
        return commands.send_buffer(argument, mode=request.mode)
    if request.command is CommandType.CHAT:
        return commands.chat_send(argument)
    if request.command is CommandType.CHAT_START:
        return commands.chat_start()
    if request.command is CommandType.CHAT_LIST:
        return commands.chat_list()
    if request.command is CommandType.CHAT_SWITCH:
        return commands.chat_switch(argument)
    if request.command is CommandType.CHAT_END:
        return commands.chat_end(argument or None)
    if request.command is CommandType.SAVE_ASK:
        return commands.save_ask()
    return commands.save_chat(argument or None)
