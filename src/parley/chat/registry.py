"""In-memory registry of live chat sessions and their surfaces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List

from ..ai.client import RemoteGenerationClient
from ..errors import AmbiguousSessionPrefix, RemoteFailure, SessionNotFound
from .message_model import SurfaceKind, Turn, TurnLog
from .surfaces import PREFIX_LENGTH, DisplaySurface, DisplaySurfaceManager, session_prefix

__all__ = ["Session", "SessionListing", "SessionRegistry", "SurfaceStatus"]

LOGGER = logging.getLogger(__name__)


class SurfaceStatus(str, Enum):
    """Whether a session's surface is currently visible in the editor."""

    ACTIVE = "active"
    DETACHED = "detached"


@dataclass(slots=True)
class Session:
    """A live remote conversation and the surface mirroring it."""

    id: str
    surface: DisplaySurface
    log: TurnLog = field(default_factory=TurnLog)

    @property
    def prefix(self) -> str:
        return session_prefix(self.id)

    def record(self, turn: Turn) -> None:
        self.log.append(turn)


@dataclass(slots=True, frozen=True)
class SessionListing:
    """Row returned by :meth:`SessionRegistry.list_sessions`."""

    id_prefix: str
    surface_status: SurfaceStatus
    current: bool = False
    turn_count: int = 0


class SessionRegistry:
    """Maps session ids to surfaces and tracks the current session.

    The registry is only mutated after the remote side confirms a start or
    end, so a remote failure leaves it exactly as it was.
    """

    def __init__(
        self,
        client: RemoteGenerationClient,
        surfaces: DisplaySurfaceManager,
        *,
        api_key_source: str,
        model: str | None = None,
    ) -> None:
        self._client = client
        self._surfaces = surfaces
        self._api_key_source = api_key_source
        self._model = model
        self._sessions: Dict[str, Session] = {}
        self._current_id: str = ""

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def current_id(self) -> str:
        return self._current_id

    def current_session(self) -> Session | None:
        if not self._current_id:
            return None
        return self._sessions.get(self._current_id)

    def get(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(prefix=session_id) from None

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def list_sessions(self) -> List[SessionListing]:
        rows: List[SessionListing] = []
        for session in self._sessions.values():
            attached = self._surfaces.is_attached(session.surface)
            rows.append(
                SessionListing(
                    id_prefix=self.unique_prefix(session.id),
                    surface_status=SurfaceStatus.ACTIVE if attached else SurfaceStatus.DETACHED,
                    current=session.id == self._current_id,
                    turn_count=len(session.log),
                )
            )
        return rows

    def resolve_prefix(self, prefix: str) -> str:
        """Return the full session id matching ``prefix``.

        An exact full id always wins, even when it is also a prefix of another
        session's id. Otherwise exactly one id must start with ``prefix``.
        """

        if not prefix:
            raise SessionNotFound(prefix=prefix)
        if prefix in self._sessions:
            return prefix
        matches = [session_id for session_id in self._sessions if session_id.startswith(prefix)]
        if not matches:
            raise SessionNotFound(prefix=prefix)
        if len(matches) > 1:
            raise AmbiguousSessionPrefix(prefix=prefix, candidates=tuple(matches))
        return matches[0]

    def unique_prefix(self, session_id: str) -> str:
        """Return the shortest prefix (at least 8 characters) naming only ``session_id``.

        Falls back to the full id when every prefix of it is shared.
        """

        others = [other for other in self._sessions if other != session_id]
        for length in range(PREFIX_LENGTH, len(session_id) + 1):
            candidate = session_id[:length]
            if not any(other.startswith(candidate) for other in others):
                return candidate
        return session_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def create_session(self) -> Session:
        result = self._client.start_session(self._api_key_source, self._model)
        if not result.success:
            raise RemoteFailure(message=result.error or "Failed to start chat session")
        session_id = result.session_id
        surface = self._surfaces.ensure_surface(SurfaceKind.CHAT, session_id)
        session = Session(id=session_id, surface=surface)
        self._sessions[session_id] = session
        self._current_id = session_id
        LOGGER.info("Registered chat session %s (total sessions: %d)", session_id, len(self._sessions))
        return session

    def switch(self, prefix: str) -> Session:
        session_id = self.resolve_prefix(prefix)
        session = self._sessions[session_id]
        self._surfaces.show(session.surface)
        self._current_id = session_id
        LOGGER.debug("Switched current chat session to %s", session_id)
        return session

    def end(self, prefix: str) -> str:
        """End the session matching ``prefix``; returns the remote confirmation message."""

        session_id = self.resolve_prefix(prefix)
        result = self._client.end_session(session_id)
        if not result.success:
            raise RemoteFailure(message=result.error or f"Failed to end chat session {session_id}")
        session = self._sessions.pop(session_id)
        self._surfaces.destroy(session.surface)
        if self._current_id == session_id:
            self._current_id = ""
        LOGGER.info("Ended chat session %s (remaining sessions: %d)", session_id, len(self._sessions))
        return result.message

    def prune_stale(self) -> List[str]:
        """Drop sessions whose buffers were closed externally; returns their ids."""

        stale = [
            session.id for session in self._sessions.values() if not self._surfaces.is_alive(session.surface)
        ]
        for session_id in stale:
            self._sessions.pop(session_id)
            self._surfaces.forget(session_id)
            if self._current_id == session_id:
                self._current_id = ""
            LOGGER.info("Pruned chat session %s; its surface no longer exists", session_id)
            result = self._client.end_session(session_id)
            if not result.success:
                LOGGER.warning("Remote end of pruned session %s failed: %s", session_id, result.error)
        return stale
