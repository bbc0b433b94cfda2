"""Client side of edurelay: SSE parsing, conversation state and the gateway client."""

from edurelay.client.chat import GatewayClient
from edurelay.client.conversation import (
    Conversation,
    Idle,
    StreamingTurn,
    TurnInProgressError,
)
from edurelay.client.sse import SSEStreamParser

__all__ = [
    "Conversation",
    "GatewayClient",
    "Idle",
    "SSEStreamParser",
    "StreamingTurn",
    "TurnInProgressError",
]
