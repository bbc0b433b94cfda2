"""Async HTTP client for the edurelay gateway.

Streams chat replies into a Conversation, sends question-paper analysis
requests and fetches career-news recommendations. Error responses are
mapped back to the relay error taxonomy; nothing is retried
automatically.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from edurelay.client.conversation import Conversation
from edurelay.client.documents import MAX_ANALYSIS_CHARS, ensure_within_limit
from edurelay.client.sse import SSEStreamParser
from edurelay.errors import (
    AuthenticationRequired,
    MalformedStreamFrame,
    RelayError,
    UpstreamFailure,
    error_from_response,
)
from edurelay.schemas.config import ClientSettings
from edurelay.schemas.streaming import StreamChunk

logger = logging.getLogger(__name__)

CHAT_PATH = "/functions/v1/ai-tutor"
ANALYSIS_PATH = "/functions/v1/analyze-question-paper"
NEWS_PATH = "/functions/v1/news-recommendations"

# Connect/write bounded, reads unbounded: replies may pause between deltas
_DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=None)

ChunkCallback = Callable[[StreamChunk], Any]

# Returned by _next_read when the abort event fires before the read completes
_CANCELLED = object()


async def _emit(on_chunk: ChunkCallback | None, chunk: StreamChunk) -> None:
    if on_chunk is None:
        return
    result = on_chunk(chunk)
    if asyncio.iscoroutine(result):
        await result


async def _next_read(reads: AsyncIterator[bytes], cancel: asyncio.Event | None) -> Any:
    """Await the next network read, racing it against ``cancel``.

    Returns the bytes read, None at end of stream, or _CANCELLED when the
    event fires first (including while the upstream is stalled).
    """
    if cancel is None:
        return await anext(reads, None)
    if cancel.is_set():
        return _CANCELLED

    read = asyncio.ensure_future(anext(reads, None))
    aborted = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({read, aborted}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        aborted.cancel()
        if not read.done():
            read.cancel()
            await asyncio.wait({read})

    if read.cancelled():
        return _CANCELLED
    return read.result()


async def _error_from(response: httpx.Response) -> RelayError:
    """Read an error response body and rebuild the gateway's error."""
    await response.aread()
    try:
        body = response.json()
    except ValueError:
        body = None
    return error_from_response(response.status_code, body)


class GatewayClient:
    """Client for the gateway's chat, analysis and news endpoints.

    Usage:
        async with GatewayClient(url, token) as client:
            await client.stream_reply(conversation, "hi", on_chunk=render)
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        max_analysis_chars: int = MAX_ANALYSIS_CHARS,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._access_token = access_token
        self._max_analysis_chars = max_analysis_chars
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=timeout or _DEFAULT_TIMEOUT,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> GatewayClient:
        return cls(
            settings.gateway_url,
            settings.access_token,
            max_analysis_chars=settings.max_analysis_chars,
            **kwargs,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        """Authorization header for the current session.

        Raises:
            AuthenticationRequired: If no session token is available.
        """
        if not self._access_token:
            raise AuthenticationRequired("Sign in to use the AI assistant.")
        return {"Authorization": f"Bearer {self._access_token}"}

    # ── Chat ─────────────────────────────────────────────────────

    async def stream_reply(
        self,
        conversation: Conversation,
        text: str,
        *,
        on_chunk: ChunkCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> StreamChunk:
        """Send ``text`` and stream the assistant's reply into ``conversation``.

        ``on_chunk`` fires after every delta (and once more with the final
        chunk) so the caller can re-render. Setting ``cancel`` interrupts the
        pending read, even a stalled one, and closes the upstream response;
        the partial reply is kept.

        Returns:
            The final StreamChunk (is_complete=True).

        Raises:
            AuthenticationRequired: No token or the gateway rejected it.
            RateLimited, CreditsExhausted: Shown to the user, never retried.
            UpstreamFailure, ConfigurationError: Generic failure.
            MalformedStreamFrame: The stream ended inside an unparseable frame.
        """
        headers = self._headers()
        request_messages = conversation.begin_turn(text)
        body = {"messages": [m.to_wire() for m in request_messages]}

        cancelled = False
        try:
            cancelled = await self._read_stream(body, headers, conversation, on_chunk, cancel)
        except httpx.HTTPError as e:
            logger.warning("Chat stream failed: %s", type(e).__name__)
            raise UpstreamFailure("Connection to the AI service was lost.") from e
        finally:
            final = conversation.end_turn(cancelled=cancelled)

        await _emit(on_chunk, final)
        return final

    async def _read_stream(
        self,
        body: dict[str, Any],
        headers: dict[str, str],
        conversation: Conversation,
        on_chunk: ChunkCallback | None,
        cancel: asyncio.Event | None,
    ) -> bool:
        """Run the read loop; returns True if cancelled."""
        parser = SSEStreamParser()

        async with self._client.stream("POST", CHAT_PATH, json=body, headers=headers) as response:
            if not response.is_success:
                raise await _error_from(response)

            reads = response.aiter_bytes()
            while True:
                data = await _next_read(reads, cancel)
                if data is _CANCELLED:
                    logger.info("Chat stream cancelled after %d pushbacks", parser.pushbacks)
                    return True
                if data is None:
                    break
                for delta in parser.feed(data):
                    await _emit(on_chunk, conversation.append_delta(delta))
                if parser.done:
                    break

        if parser.done:
            return False

        for delta in parser.finish():
            await _emit(on_chunk, conversation.append_delta(delta))
        if parser.pending:
            raise MalformedStreamFrame(parser.pending)
        return False

    # ── Question paper analysis ──────────────────────────────────

    async def analyze(self, content: str) -> str:
        """Send concatenated document text for analysis and return the result.

        Content over the ceiling is rejected before any network call.

        Raises:
            ValueError: If ``content`` is blank.
            PayloadTooLarge: If ``content`` exceeds the character ceiling.
        """
        if not content.strip():
            raise ValueError("Please paste or upload question paper content first")
        ensure_within_limit(content, self._max_analysis_chars)

        try:
            response = await self._client.post(
                ANALYSIS_PATH, json={"content": content}, headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamFailure("Failed to reach the AI service.") from e

        if not response.is_success:
            raise await _error_from(response)
        return response.json().get("analysis", "")

    # ── Career news ──────────────────────────────────────────────

    async def recommend_news(self, interests: str | None = None) -> list[dict[str, Any]]:
        """Return career-news rows ranked for ``interests``."""
        payload = {"userInterests": interests} if interests else {}
        try:
            response = await self._client.post(
                NEWS_PATH, json=payload, headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamFailure("Failed to reach the AI service.") from e

        if not response.is_success:
            raise await _error_from(response)
        return response.json().get("recommendations", [])
