"""LiteLLM adapter implementing the CompletionProvider interface.

Routes completion requests to the configured OpenAI-compatible upstream
through LiteLLM. Handles API key checks, retry with exponential backoff
for transient failures, translation of upstream errors into the relay
error taxonomy, and re-encoding of stream chunks in the
``chat.completion.chunk`` wire shape.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from edurelay.errors import (
    ConfigurationError,
    CreditsExhausted,
    RateLimited,
    RelayError,
    UpstreamFailure,
)
from edurelay.providers.base import CompletionProvider
from edurelay.schemas.config import GatewaySettings

logger = logging.getLogger(__name__)

_BASE_BACKOFF = 1.0  # seconds

# Every exception type a LiteLLM call is expected to raise
_UPSTREAM_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    litellm.Timeout,
    litellm.APIError,
    litellm.APIConnectionError,
    litellm.AuthenticationError,
    litellm.BadRequestError,
    litellm.NotFoundError,
    litellm.PermissionDeniedError,
    litellm.RateLimitError,
    litellm.InternalServerError,
    litellm.ServiceUnavailableError,
)

# Failures worth another attempt before the first byte reaches the caller
_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.InternalServerError,
    litellm.ServiceUnavailableError,
)


def translate_upstream_error(error: BaseException) -> RelayError:
    """Map a LiteLLM/transport exception to a caller-facing RelayError.

    429 becomes RateLimited, 402 becomes CreditsExhausted, a rejected
    upstream key is a ConfigurationError, and everything else is an
    UpstreamFailure.
    """
    status = getattr(error, "status_code", None)
    if isinstance(error, litellm.RateLimitError) or status == 429:
        return RateLimited()
    if status == 402:
        return CreditsExhausted()
    if isinstance(error, litellm.AuthenticationError) or status == 401:
        return ConfigurationError("AI service credentials were rejected.")
    if isinstance(error, (TimeoutError, litellm.Timeout)):
        return UpstreamFailure("AI service timed out. Please try again.")
    return UpstreamFailure()


def _is_retryable(error: BaseException) -> bool:
    status = getattr(error, "status_code", None)
    if status in (401, 402, 429):
        return False
    return isinstance(error, _RETRYABLE_ERRORS)


def _short_error_reason(error: BaseException) -> str:
    """Extract a short reason from an upstream error for log lines."""
    status = getattr(error, "status_code", None)
    if isinstance(error, (TimeoutError, litellm.Timeout)):
        return "timeout"
    if status == 503 or isinstance(error, litellm.ServiceUnavailableError):
        return "service unavailable"
    if isinstance(error, litellm.InternalServerError):
        return "server error"
    if isinstance(error, litellm.APIConnectionError):
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider(CompletionProvider):
    """Upstream adapter powered by LiteLLM.

    This is the only place the gateway reaches the completion API.
    """

    def __init__(self, settings: GatewaySettings) -> None:
        super().__init__(settings)
        # Resolve API key from environment
        self._api_key = os.environ.get(settings.api_key_env, "")

    async def open_stream(
        self, messages: list[dict[str, str]]
    ) -> AsyncIterator[dict[str, Any]]:
        """Start a streamed completion via LiteLLM.

        The awaited acompletion() call performs the HTTP request, so 429
        and 402 are raised here rather than mid-stream.
        """
        kwargs = self._build_completion_kwargs(messages)
        kwargs["stream"] = True
        response = await self._call_with_retry(kwargs)
        logger.info(
            "Upstream stream opened | model=%s messages=%d",
            self._settings.model, len(messages),
        )
        return self._iter_chunks(response)

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Run a non-streamed completion and return the assistant text."""
        kwargs = self._build_completion_kwargs(messages)
        response = await self._call_with_retry(kwargs)
        return self._extract_content(response)

    async def _iter_chunks(self, response: Any) -> AsyncIterator[dict[str, Any]]:
        """Re-encode LiteLLM stream chunks, translating mid-stream failures."""
        try:
            async for chunk in response:
                yield chunk_to_payload(chunk, self._settings.model)
        except _UPSTREAM_ERRORS as e:
            logger.warning(
                "Upstream stream interrupted for %s (%s)",
                self._settings.display_name, _short_error_reason(e),
            )
            raise translate_upstream_error(e) from e
        except Exception as e:
            logger.warning(
                "Upstream stream failed for %s (%s)",
                self._settings.display_name, type(e).__name__,
            )
            raise UpstreamFailure() from e

    def _build_completion_kwargs(self, messages: list[dict[str, str]]) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        if not self._api_key:
            logger.error(
                "Upstream API key missing: %s is not set", self._settings.api_key_env
            )
            raise ConfigurationError()

        kwargs: dict = {
            "model": self._settings.model,
            "messages": messages,
            "timeout": float(self._settings.timeout),
            "api_key": self._api_key,
        }

        # Set custom API base if configured
        if self._settings.api_base:
            kwargs["api_base"] = self._settings.api_base

        return kwargs

    async def _call_with_retry(self, kwargs: dict) -> Any:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (server errors, connection failures,
        timeouts). Rate limits, billing and credential errors are raised
        immediately so the caller can tell the user.

        Raises:
            RelayError: The translated upstream failure.
        """
        attempts = self._settings.max_retries

        for attempt in range(attempts):
            try:
                return await litellm.acompletion(**kwargs)
            except _UPSTREAM_ERRORS as e:
                if not _is_retryable(e) or attempt == attempts - 1:
                    logger.warning(
                        "Upstream call to %s failed (%s)",
                        self._settings.display_name, _short_error_reason(e),
                    )
                    raise translate_upstream_error(e) from e

                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    attempts,
                    self._settings.display_name,
                    _short_error_reason(e),
                    backoff,
                )
                await asyncio.sleep(backoff)

        raise UpstreamFailure()

    def _extract_content(self, response: Any) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        if message is None:
            return ""
        return message.content or ""


def chunk_to_payload(chunk: Any, model: str = "") -> dict[str, Any]:
    """Encode a LiteLLM stream chunk as an OpenAI ``chat.completion.chunk`` dict.

    Only JSON-safe fields are copied; anything else on the chunk object
    is dropped.
    """
    choices: list[dict[str, Any]] = []
    for position, choice in enumerate(getattr(chunk, "choices", None) or []):
        delta = getattr(choice, "delta", None)
        delta_payload: dict[str, str] = {}
        role = getattr(delta, "role", None)
        if isinstance(role, str):
            delta_payload["role"] = role
        content = getattr(delta, "content", None)
        if isinstance(content, str):
            delta_payload["content"] = content

        index = getattr(choice, "index", position)
        finish_reason = getattr(choice, "finish_reason", None)
        choices.append({
            "index": index if isinstance(index, int) else position,
            "delta": delta_payload,
            "finish_reason": finish_reason if isinstance(finish_reason, str) else None,
        })

    chunk_id = getattr(chunk, "id", "")
    created = getattr(chunk, "created", 0)
    chunk_model = getattr(chunk, "model", model)
    return {
        "id": chunk_id if isinstance(chunk_id, str) else "",
        "object": "chat.completion.chunk",
        "created": created if isinstance(created, int) else 0,
        "model": chunk_model if isinstance(chunk_model, str) else model,
        "choices": choices,
    }
