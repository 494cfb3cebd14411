"""Remote generation client used by the chat commands."""

from .client import (
    ClientSettings,
    GenerationResult,
    OpenAIGenerationClient,
    RemoteGenerationClient,
    SessionEndResult,
    SessionStartResult,
    resolve_api_key,
)

__all__ = [
    "ClientSettings",
    "GenerationResult",
    "OpenAIGenerationClient",
    "RemoteGenerationClient",
    "SessionEndResult",
    "SessionStartResult",
    "resolve_api_key",
]
