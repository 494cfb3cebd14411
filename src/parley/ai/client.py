"""Synchronous generation client built around OpenAI-compatible endpoints.

Every call is a single blocking attempt. Failures never raise out of the
client: they are folded into result objects whose ``error`` string is shown
to the user unmodified.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Protocol

import httpx
from openai import OpenAI, OpenAIError

__all__ = [
    "ClientSettings",
    "GenerationResult",
    "SessionStartResult",
    "SessionEndResult",
    "RemoteGenerationClient",
    "OpenAIGenerationClient",
    "resolve_api_key",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the generation client."""

    base_url: str
    model: str
    request_timeout: float | None = 60.0
    default_headers: Dict[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True)
class GenerationResult:
    """Outcome of a single-turn generation or a chat message."""

    success: bool
    text: str = ""
    error: str = ""


@dataclass(slots=True)
class SessionStartResult:
    """Outcome of starting a multi-turn session."""

    success: bool
    session_id: str = ""
    error: str = ""


@dataclass(slots=True)
class SessionEndResult:
    """Outcome of ending a multi-turn session."""

    success: bool
    message: str = ""
    error: str = ""


class RemoteGenerationClient(Protocol):
    """Opaque, fallible RPCs consumed by the command layer."""

    def generate(self, prompt: str, api_key_source: str, model: str | None = None) -> GenerationResult:
        ...

    def start_session(self, api_key_source: str, model: str | None = None) -> SessionStartResult:
        ...

    def send_message(
        self, session_id: str, message: str, api_key_source: str, model: str | None = None
    ) -> GenerationResult:
        ...

    def end_session(self, session_id: str) -> SessionEndResult:
        ...


def resolve_api_key(source: str) -> str:
    """Return the API key named by ``source``.

    ``source`` is either a path to a file whose first non-empty line holds the
    key, or the name of an environment variable.
    """

    candidate = (source or "").strip()
    if not candidate:
        raise ValueError("No API key source configured")
    path = Path(candidate).expanduser()
    if path.is_file():
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                return line.strip()
        raise ValueError(f"API key file {path} is empty")
    value = os.environ.get(candidate, "").strip()
    if not value:
        raise ValueError(f"API key not found: no file or environment variable named {candidate}")
    return value


@dataclass(slots=True)
class _ChatHistory:
    model: str
    messages: List[Dict[str, str]] = field(default_factory=list)


class OpenAIGenerationClient:
    """Generation client speaking the chat-completions protocol.

    Chat sessions are identified by ids minted here; the full message history
    for a session is replayed to the endpoint on every send.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client_factory: Callable[[str], OpenAI] | None = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or self._build_client
        self._clients: Dict[str, OpenAI] = {}
        self._sessions: Dict[str, _ChatHistory] = {}

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    def active_session_ids(self) -> tuple[str, ...]:
        return tuple(self._sessions)

    # ------------------------------------------------------------------
    # RemoteGenerationClient API
    # ------------------------------------------------------------------
    def generate(self, prompt: str, api_key_source: str, model: str | None = None) -> GenerationResult:
        target_model = model or self._settings.model
        messages = [{"role": "user", "content": prompt}]
        try:
            text = self._complete(api_key_source, target_model, messages)
        except (OpenAIError, httpx.HTTPError, ValueError, OSError) as exc:
            LOGGER.warning("Generation via %s failed: %s", target_model, exc)
            return GenerationResult(success=False, error=str(exc))
        return GenerationResult(success=True, text=text)

    def start_session(self, api_key_source: str, model: str | None = None) -> SessionStartResult:
        try:
            self._client_for(api_key_source)
        except (OpenAIError, ValueError, OSError) as exc:
            LOGGER.warning("Unable to start chat session: %s", exc)
            return SessionStartResult(success=False, error=str(exc))
        session_id = str(uuid.uuid4())
        self._sessions[session_id] = _ChatHistory(model=model or self._settings.model)
        LOGGER.info("Started chat session %s", session_id)
        return SessionStartResult(success=True, session_id=session_id)

    def send_message(
        self, session_id: str, message: str, api_key_source: str, model: str | None = None
    ) -> GenerationResult:
        history = self._sessions.get(session_id)
        if history is None:
            return GenerationResult(success=False, error=f"Unknown chat session: {session_id}")
        target_model = model or history.model
        messages = history.messages + [{"role": "user", "content": message}]
        try:
            text = self._complete(api_key_source, target_model, messages)
        except (OpenAIError, httpx.HTTPError, ValueError, OSError) as exc:
            LOGGER.warning("Chat message for session %s failed: %s", session_id, exc)
            return GenerationResult(success=False, error=str(exc))
        history.messages = messages + [{"role": "assistant", "content": text}]
        return GenerationResult(success=True, text=text)

    def end_session(self, session_id: str) -> SessionEndResult:
        history = self._sessions.pop(session_id, None)
        if history is None:
            return SessionEndResult(success=False, error=f"Unknown chat session: {session_id}")
        LOGGER.info("Ended chat session %s after %d message(s)", session_id, len(history.messages))
        return SessionEndResult(success=True, message=f"Chat session {session_id[:8]} ended")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _complete(self, api_key_source: str, model: str, messages: List[Dict[str, str]]) -> str:
        client = self._client_for(api_key_source)
        LOGGER.debug("Requesting completion via %s with %d message(s)", model, len(messages))
        if self._settings.debug_logging:
            LOGGER.debug("Completion payload: %s", messages)
        response: Any = client.chat.completions.create(model=model, messages=messages)
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ValueError("Response contained no choices")
        content = getattr(choices[0].message, "content", None)
        return content or ""

    def _client_for(self, api_key_source: str) -> OpenAI:
        api_key = resolve_api_key(api_key_source)
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key)
            self._clients[api_key] = client
        return client

    def _build_client(self, api_key: str) -> OpenAI:
        headers = dict(self._settings.default_headers) if self._settings.default_headers else None
        return OpenAI(
            api_key=api_key,
            base_url=self._settings.base_url,
            timeout=self._settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )
