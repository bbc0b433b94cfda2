"""Incremental Server-Sent-Events parser for completion streams.

Turns an arbitrarily chunked byte stream into content deltas. Bytes are
decoded with an incremental UTF-8 decoder, so a multi-byte character
split across two reads is never corrupted, and complete lines are cut
from a text buffer one newline at a time.

A ``data:`` line whose JSON does not parse is pushed back onto the
front of the buffer and extraction stops until more bytes arrive. It is
never dropped.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any

from edurelay.errors import ErrorKind, RelayError, error_from_response
from edurelay.schemas.streaming import FrameKind, StreamFrame

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def classify_line(line: str) -> StreamFrame:
    """Classify one SSE line (without its trailing newline).

    Blank lines, ``:`` comments and lines without the ``data: `` prefix
    are IGNORED; ``data: [DONE]`` is DONE; anything else is DATA with
    the prefix stripped and the payload trimmed.
    """
    if line.endswith("\r"):
        line = line[:-1]
    if line.startswith(":") or line.strip() == "":
        return StreamFrame(kind=FrameKind.IGNORED)
    if not line.startswith(DATA_PREFIX):
        return StreamFrame(kind=FrameKind.IGNORED)

    payload = line[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return StreamFrame(kind=FrameKind.DONE)
    return StreamFrame(kind=FrameKind.DATA, payload=payload)


def extract_delta(parsed: Any) -> str:
    """Return ``choices[0].delta.content`` or an empty string."""
    if not isinstance(parsed, dict):
        return ""
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def _stream_error(parsed: Any) -> RelayError | None:
    """Error frame relayed by the gateway after the stream had started."""
    if not isinstance(parsed, dict):
        return None
    error = parsed.get("error")
    if not isinstance(error, dict):
        return None
    kind = error.get("kind") or str(ErrorKind.UPSTREAM_FAILURE)
    return error_from_response(500, {"error": error.get("message"), "kind": kind})


class SSEStreamParser:
    """Stateful parser fed with raw network reads.

    Usage:
        parser = SSEStreamParser()
        for data in reads:
            for delta in parser.feed(data):
                ...
            if parser.done:
                break
        tail = parser.finish()
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._done = False
        self.pushbacks = 0

    @property
    def done(self) -> bool:
        """True once the ``[DONE]`` sentinel has been seen."""
        return self._done

    @property
    def pending(self) -> str:
        """Text received but not yet consumed as a complete frame."""
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Consume one network read and return the content deltas it completed.

        Raises:
            RelayError: If the gateway relayed an error frame.
        """
        if self._done:
            return []
        self._buffer += self._decoder.decode(data, final=False)
        return self._drain()

    def finish(self) -> list[str]:
        """Flush the decoder at end of stream and process a final unterminated line.

        Whatever still cannot be parsed afterwards stays in ``pending``.
        """
        if self._done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer and not self._buffer.endswith("\n"):
            self._buffer += "\n"
        deltas = self._drain()
        if self._buffer.strip() == "":
            self._buffer = ""
        return deltas

    def _drain(self) -> list[str]:
        deltas: list[str] = []
        while not self._done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]

            frame = classify_line(line)
            if frame.kind == FrameKind.IGNORED:
                continue
            if frame.kind == FrameKind.DONE:
                self._done = True
                break

            try:
                parsed = json.loads(frame.payload)
            except json.JSONDecodeError:
                # Truncated frame: restore it and wait for the next read
                self._buffer = line + "\n" + self._buffer
                self.pushbacks += 1
                logger.debug("Incomplete SSE frame buffered (%d chars)", len(line))
                break

            error = _stream_error(parsed)
            if error is not None:
                raise error

            content = extract_delta(parsed)
            if content:
                deltas.append(content)
        return deltas
