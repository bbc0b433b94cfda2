"""edurelay schema definitions.

All Pydantic v2 models used by the gateway, the stream consumer and the CLI.
"""

from edurelay.schemas.config import ClientSettings, GatewaySettings
from edurelay.schemas.messages import (
    AnalysisRequest,
    AnalysisResponse,
    ChatMessage,
    ChatRequest,
    NewsRecommendationRequest,
    NewsRecommendationResponse,
    Persona,
    Role,
)
from edurelay.schemas.streaming import FrameKind, StreamChunk, StreamFrame

__all__ = [
    "AnalysisRequest",
    "AnalysisResponse",
    "ChatMessage",
    "ChatRequest",
    "ClientSettings",
    "FrameKind",
    "GatewaySettings",
    "NewsRecommendationRequest",
    "NewsRecommendationResponse",
    "Persona",
    "Role",
    "StreamChunk",
    "StreamFrame",
]
