"""Server-Sent-Events framing for relayed completion streams."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from edurelay.errors import RelayError, UpstreamFailure

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def encode_frame(payload: dict[str, Any]) -> str:
    """Serialize one payload as a ``data:`` SSE record."""
    return f"data: {json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}\n\n"


def encode_error_frame(error: RelayError) -> str:
    """Frame carrying an error that happened after the stream started."""
    return encode_frame({"error": {"message": error.message, "kind": str(error.kind)}})


async def relay_stream(
    chunks: AsyncIterator[dict[str, Any]], *, user_id: str = ""
) -> AsyncIterator[str]:
    """Relay upstream chunks as SSE frames and finish with ``[DONE]``.

    A failure after the first frame cannot change the HTTP status any
    more, so it is sent as one error frame and the stream ends without
    the ``[DONE]`` sentinel.
    """
    start = time.monotonic()
    frames = 0
    try:
        async for payload in chunks:
            frames += 1
            yield encode_frame(payload)
    except RelayError as e:
        logger.warning(
            "RELAY interrupted | user=%s frames=%d kind=%s", user_id, frames, e.kind,
        )
        yield encode_error_frame(e)
        return
    except Exception:
        logger.exception("RELAY failed | user=%s frames=%d", user_id, frames)
        yield encode_error_frame(UpstreamFailure())
        return

    logger.info(
        "RELAY complete | user=%s frames=%d duration_ms=%d",
        user_id, frames, int((time.monotonic() - start) * 1000),
    )
    yield DONE_FRAME
