"""Transcript data models shared by the surface, registry and command layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Author of a transcript turn."""

    USER = "user"
    MODEL = "model"


class SurfaceKind(str, Enum):
    """The two transcript views the surface manager maintains."""

    ASK = "ask"
    CHAT = "chat"


class DisplayMode(str, Enum):
    """Where a single-turn response is rendered."""

    NEW_BUFFER = "new_buffer"
    POPUP = "popup"
    INSERT = "insert"
    ECHO = "echo"


@dataclass(slots=True, frozen=True)
class Turn:
    """One message in a transcript. Immutable once written."""

    role: Role
    body: tuple[str, ...]
    timestamp: datetime | None = None

    @classmethod
    def from_text(cls, role: Role, text: str, *, timestamp: datetime | None = None) -> "Turn":
        return cls(role=role, body=tuple(split_lines(text)), timestamp=timestamp)


@dataclass(slots=True)
class TurnLog:
    """Ordered turns recorded for one session."""

    turns: list[Turn] = field(default_factory=list)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)

    def __len__(self) -> int:
        return len(self.turns)


def split_lines(text: str) -> list[str]:
    """Split ``text`` into buffer lines, normalizing Windows newlines."""

    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
