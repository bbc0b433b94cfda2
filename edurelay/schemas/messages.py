"""Message schemas for the chat and analysis endpoints.

Defines the role-tagged ChatMessage, the persona identifiers, and the
request/response bodies accepted by the gateway.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Label written before each uploaded file inside analysis content
FILE_SEPARATOR_PREFIX = "=== File: "
FILE_SEPARATOR_TEMPLATE = FILE_SEPARATOR_PREFIX + "{name} ==="


class Role(StrEnum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Persona(StrEnum):
    """System-prompt personas known to both the client and the gateway."""

    TUTOR = "tutor"
    EXAM_PREP = "exam_prep"
    CAREER_GUIDANCE = "career_guidance"
    PYQ_ANALYSIS = "pyq_analysis"


class ChatMessage(BaseModel):
    """A single role-tagged message in a conversation."""

    role: Role = Field(description="Who wrote the message")
    content: str = Field(description="Message text")

    def to_wire(self) -> dict[str, str]:
        """OpenAI-format dict for upstream requests."""
        return {"role": str(self.role), "content": self.content}


class ChatRequest(BaseModel):
    """Body of POST /functions/v1/ai-tutor."""

    messages: list[ChatMessage] = Field(min_length=1, description="Ordered conversation")
    persona: Persona | None = Field(
        default=None,
        description="Persona whose prompt is prepended when no system message is sent",
    )


class AnalysisRequest(BaseModel):
    """Body of POST /functions/v1/analyze-question-paper."""

    content: str = Field(description="Concatenated question-paper text")


class AnalysisResponse(BaseModel):
    """Result of a document analysis."""

    analysis: str = Field(description="Full completion text")


class NewsRecommendationRequest(BaseModel):
    """Body of POST /functions/v1/news-recommendations."""

    user_interests: str | None = Field(
        default=None,
        validation_alias=AliasChoices("userInterests", "user_interests"),
        description="Free-text interests used to rank the news",
    )

    model_config = ConfigDict(populate_by_name=True)


class NewsRecommendationResponse(BaseModel):
    """Ranked career-news rows."""

    recommendations: list[dict[str, Any]] = Field(default_factory=list)
