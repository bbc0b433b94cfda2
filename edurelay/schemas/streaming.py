"""Streaming schemas for real-time token delivery.

Defines the StreamChunk model handed to render callbacks while an
assistant reply streams in, and the StreamFrame classification of a
single Server-Sent-Events line.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class StreamChunk(BaseModel):
    """A single chunk of streaming output from the gateway."""

    delta: str = Field(description="New text in this chunk")
    accumulated: str = Field(description="Full text accumulated so far")
    token_count: int = Field(ge=0, description="Running count of deltas received")
    is_complete: bool = Field(
        default=False, description="True on final chunk"
    )
    cancelled: bool = Field(
        default=False, description="True when the turn was aborted before the stream ended"
    )


class FrameKind(StrEnum):
    """What a single SSE line turned out to be."""

    DATA = "data"
    DONE = "done"
    IGNORED = "ignored"


class StreamFrame(BaseModel):
    """One classified SSE line.

    ``payload`` holds the text after the ``data: `` prefix for DATA frames
    and is empty otherwise.
    """

    kind: FrameKind
    payload: str = ""
