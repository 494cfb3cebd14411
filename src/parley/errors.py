"""Error types raised by the chat session and transcript layers.

Every error carries a machine-readable ``error_code`` plus a human-readable
``message`` so command handlers can surface failures without inspecting the
exception class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

__all__ = [
    "ErrorCode",
    "ParleyError",
    "RemoteFailure",
    "SessionNotFound",
    "AmbiguousSessionPrefix",
    "TranscriptIOError",
]


class ErrorCode:
    """Constants for error codes reported to the user."""

    REMOTE_FAILURE = "remote_failure"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    IO_FAILURE = "io_failure"


@dataclass
class ParleyError(Exception):
    """Base exception for failures that commands report instead of crashing.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable description, shown to the user verbatim.
        details: Additional structured information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "severity": self.severity,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class RemoteFailure(ParleyError):
    """The generation backend returned ``success=False`` or was unreachable."""

    error_code: str = field(default=ErrorCode.REMOTE_FAILURE)
    message: str = field(default="Remote request failed")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionNotFound(ParleyError):
    """A session id prefix did not match any registered session."""

    error_code: str = field(default=ErrorCode.NOT_FOUND)
    message: str = field(default="No chat session matches that id")
    details: dict[str, Any] = field(default_factory=dict)

    prefix: str = field(default="")

    def __post_init__(self) -> None:
        if self.prefix and self.message == "No chat session matches that id":
            self.message = f"No chat session matches '{self.prefix}'"
        super().__post_init__()


@dataclass
class AmbiguousSessionPrefix(ParleyError):
    """A session id prefix matched more than one registered session."""

    error_code: str = field(default=ErrorCode.AMBIGUOUS)
    message: str = field(default="Session id prefix is ambiguous")
    details: dict[str, Any] = field(default_factory=dict)

    prefix: str = field(default="")
    candidates: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.prefix and self.message == "Session id prefix is ambiguous":
            self.message = (
                f"Session id prefix '{self.prefix}' matches {len(self.candidates)} sessions; "
                f"type more characters ({', '.join(self.candidates)})"
            )
        if self.candidates:
            self.details.setdefault("candidates", list(self.candidates))
        super().__post_init__()


@dataclass
class TranscriptIOError(ParleyError):
    """A transcript log directory or file could not be written."""

    error_code: str = field(default=ErrorCode.IO_FAILURE)
    message: str = field(default="Unable to write transcript log")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"
