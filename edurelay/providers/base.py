"""Abstract base class for upstream completion providers.

Defines the CompletionProvider interface the gateway talks to. The
gateway never calls an LLM SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from edurelay.schemas.config import GatewaySettings


class CompletionProvider(ABC):
    """Abstract interface for an OpenAI-compatible chat completion upstream.

    Initialized from the resolved GatewaySettings. Exposes identity and
    two calls: a streamed completion whose chunks are relayed to the
    caller, and a plain completion that returns the full text.
    """

    def __init__(self, settings: GatewaySettings) -> None:
        self._settings = settings

    # ── Identity ──────────────────────────────────────────────

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._settings.model

    @property
    def display_name(self) -> str:
        """Human-friendly model name for logs and the CLI."""
        return self._settings.display_name

    @property
    def settings(self) -> GatewaySettings:
        """The settings backing this provider."""
        return self._settings

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    async def open_stream(
        self, messages: list[dict[str, str]]
    ) -> AsyncIterator[dict[str, Any]]:
        """Start a streamed completion.

        Returns only once the upstream has accepted the request, so that
        rate-limit and billing failures surface before any byte is sent
        to the caller.

        Args:
            messages: Conversation in OpenAI format, system prompt included.

        Returns:
            An async iterator of ``chat.completion.chunk`` dicts.

        Raises:
            RelayError: ConfigurationError, RateLimited, CreditsExhausted
                or UpstreamFailure. Iteration may also raise RelayError.
        """

    @abstractmethod
    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Run a non-streamed completion and return the assistant text.

        Raises:
            RelayError: Same taxonomy as open_stream().
        """
