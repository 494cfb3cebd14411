"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from parley.ai.client import GenerationResult, SessionEndResult, SessionStartResult
from parley.chat.registry import SessionRegistry
from parley.chat.surfaces import DisplaySurfaceManager
from parley.chat.transcript import TranscriptLogger
from parley.editor.host import MemoryEditorHost


class FakeGenerationClient:
    """Scriptable stand-in for the remote generation backend."""

    def __init__(self) -> None:
        self.calls: List[tuple[Any, ...]] = []
        self.replies: List[GenerationResult] = []
        self.start_results: List[SessionStartResult] = []
        self.end_results: Dict[str, SessionEndResult] = {}
        self.ended: List[str] = []
        self._counter = 0

    def generate(self, prompt: str, api_key_source: str, model: str | None = None) -> GenerationResult:
        self.calls.append(("generate", prompt, api_key_source, model))
        if self.replies:
            return self.replies.pop(0)
        return GenerationResult(success=True, text=f"reply to {prompt}")

    def start_session(self, api_key_source: str, model: str | None = None) -> SessionStartResult:
        self.calls.append(("start_session", api_key_source, model))
        if self.start_results:
            return self.start_results.pop(0)
        self._counter += 1
        return SessionStartResult(success=True, session_id=f"{self._counter:08d}-feed-beef-cafe-{self._counter:012d}")

    def send_message(
        self, session_id: str, message: str, api_key_source: str, model: str | None = None
    ) -> GenerationResult:
        self.calls.append(("send_message", session_id, message, model))
        if self.replies:
            return self.replies.pop(0)
        return GenerationResult(success=True, text=f"echo: {message}")

    def end_session(self, session_id: str) -> SessionEndResult:
        self.calls.append(("end_session", session_id))
        self.ended.append(session_id)
        return self.end_results.pop(session_id, SessionEndResult(success=True, message=f"Session {session_id[:8]} closed"))


@pytest.fixture
def host() -> MemoryEditorHost:
    return MemoryEditorHost()


@pytest.fixture
def client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def surfaces(host: MemoryEditorHost) -> DisplaySurfaceManager:
    return DisplaySurfaceManager(host)


@pytest.fixture
def registry(client: FakeGenerationClient, surfaces: DisplaySurfaceManager) -> SessionRegistry:
    return SessionRegistry(client, surfaces, api_key_source="TEST_API_KEY", model="test-model")


@pytest.fixture
def transcripts(surfaces: DisplaySurfaceManager, tmp_path) -> TranscriptLogger:
    return TranscriptLogger(surfaces, tmp_path / "logs")
