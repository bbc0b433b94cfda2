"""Tests for edurelay.gateway.relay: SSE framing of relayed streams."""

from __future__ import annotations

import json

import pytest

from edurelay.errors import CreditsExhausted
from edurelay.gateway.relay import (
    DONE_FRAME,
    encode_error_frame,
    encode_frame,
    relay_stream,
)


async def _chunks(*payloads, error=None):
    for payload in payloads:
        yield payload
    if error is not None:
        raise error


async def _collect(stream) -> list[str]:
    return [frame async for frame in stream]


class TestEncoding:
    def test_encode_frame(self):
        frame = encode_frame({"choices": [{"delta": {"content": "ñ"}}]})
        assert frame == 'data: {"choices":[{"delta":{"content":"ñ"}}]}\n\n'

    def test_encode_error_frame(self):
        frame = encode_error_frame(CreditsExhausted())
        body = json.loads(frame[len("data: "):])
        assert body == {
            "error": {
                "message": "AI credits exhausted. Please contact admin.",
                "kind": "credits_exhausted",
            },
        }


class TestRelayStream:
    @pytest.mark.asyncio
    async def test_frames_then_done(self):
        frames = await _collect(relay_stream(_chunks({"a": 1}, {"b": 2})))
        assert frames == ['data: {"a":1}\n\n', 'data: {"b":2}\n\n', DONE_FRAME]

    @pytest.mark.asyncio
    async def test_empty_stream_still_done(self):
        assert await _collect(relay_stream(_chunks())) == [DONE_FRAME]

    @pytest.mark.asyncio
    async def test_error_ends_stream_without_done(self):
        frames = await _collect(
            relay_stream(_chunks({"a": 1}, error=CreditsExhausted()), user_id="u1"),
        )
        assert len(frames) == 2
        assert '"kind":"credits_exhausted"' in frames[1]
        assert DONE_FRAME not in frames

    @pytest.mark.asyncio
    async def test_unexpected_error_sends_upstream_failure_frame(self):
        frames = await _collect(
            relay_stream(_chunks({"a": 1}, error=RuntimeError("socket reset")), user_id="u1"),
        )
        assert len(frames) == 2
        body = json.loads(frames[1][len("data: "):])
        assert body["error"]["kind"] == "upstream_failure"
        assert "socket reset" not in frames[1]
        assert DONE_FRAME not in frames
