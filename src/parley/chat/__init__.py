"""Chat sessions, transcript surfaces and the commands that drive them."""

from .commands import ChatCommands, CommandRequest, CommandResult, CommandType, execute_command, parse_command
from .message_model import DisplayMode, Role, SurfaceKind, Turn
from .registry import SessionListing, SessionRegistry, SurfaceStatus
from .surfaces import DisplaySurface, DisplaySurfaceManager
from .transcript import AutoSaveReport, AutoSaveTimer, TranscriptLogger
from .word_filter import WordReplacementFilter, apply_replacements

__all__ = [
    "AutoSaveReport",
    "AutoSaveTimer",
    "ChatCommands",
    "CommandRequest",
    "CommandResult",
    "CommandType",
    "DisplayMode",
    "DisplaySurface",
    "DisplaySurfaceManager",
    "Role",
    "SessionListing",
    "SessionRegistry",
    "SurfaceKind",
    "SurfaceStatus",
    "TranscriptLogger",
    "Turn",
    "WordReplacementFilter",
    "apply_replacements",
    "execute_command",
    "parse_command",
]
