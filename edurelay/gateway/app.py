"""edurelay gateway.

FastAPI application that fronts the AI completion upstream for the
learning platform: a streamed chat relay with persona prompts, a
question-paper analysis call and career-news recommendations. Every
endpoint requires a Supabase session bearer token.
"""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from supabase import Client

from edurelay import __version__
from edurelay.errors import InvalidRequest, PayloadTooLarge, RelayError
from edurelay.gateway.auth import get_supabase, verify_session
from edurelay.gateway.news import recommend_news
from edurelay.gateway.relay import relay_stream
from edurelay.personas import with_system_prompt
from edurelay.prompts import render_prompt
from edurelay.providers.base import CompletionProvider
from edurelay.providers.litellm_provider import LiteLLMProvider
from edurelay.schemas.config import GatewaySettings
from edurelay.schemas.messages import (
    FILE_SEPARATOR_PREFIX,
    AnalysisRequest,
    AnalysisResponse,
    ChatRequest,
    NewsRecommendationRequest,
    NewsRecommendationResponse,
)
from edurelay.settings import load_settings

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> GatewaySettings:
    """Settings the running app was created with."""
    return request.app.state.settings


def get_provider(request: Request) -> CompletionProvider:
    """Upstream provider shared by all requests of this app."""
    return request.app.state.provider


def create_app(
    settings: GatewaySettings | None = None,
    provider: CompletionProvider | None = None,
) -> FastAPI:
    """Create and configure the gateway application.

    Args:
        settings: Resolved settings. Defaults to load_settings().
        provider: Upstream provider. Defaults to a LiteLLMProvider built
                  from ``settings``.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="edurelay gateway",
        version=__version__,
    )
    app.state.settings = settings
    app.state.provider = provider or LiteLLMProvider(settings)

    wildcard = "*" in settings.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=not wildcard,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        logger.info(
            "Request failed | path=%s kind=%s status=%d",
            request.url.path, exc.kind, exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    # ── Chat relay ───────────────────────────────────────────────

    @app.post("/functions/v1/ai-tutor")
    async def ai_tutor(
        body: ChatRequest,
        user_id: str = Depends(verify_session),
        provider: CompletionProvider = Depends(get_provider),
        settings: GatewaySettings = Depends(get_settings),
    ) -> StreamingResponse:
        """Relay a streamed chat completion as Server-Sent Events."""
        persona = body.persona or settings.default_persona
        messages = with_system_prompt(body.messages, persona)

        # Upstream errors (429/402/config) raise here, before any byte is sent
        chunks = await provider.open_stream([m.to_wire() for m in messages])

        logger.info(
            "CHAT relay | user=%s persona=%s messages=%d",
            user_id, persona, len(messages),
        )
        return StreamingResponse(
            relay_stream(chunks, user_id=user_id),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # ── Question paper analysis ──────────────────────────────────

    @app.post("/functions/v1/analyze-question-paper", response_model=AnalysisResponse)
    async def analyze_question_paper(
        body: AnalysisRequest,
        user_id: str = Depends(verify_session),
        provider: CompletionProvider = Depends(get_provider),
        settings: GatewaySettings = Depends(get_settings),
    ) -> AnalysisResponse:
        """Analyze concatenated question-paper text in one completion."""
        content = body.content
        if not content.strip():
            raise InvalidRequest("Content is required")
        if len(content) > settings.max_analysis_chars:
            raise PayloadTooLarge(
                f"Content exceeds {settings.max_analysis_chars:,} characters."
            )

        file_count = content.count(FILE_SEPARATOR_PREFIX)
        system = render_prompt("question_paper_analysis", file_count=file_count)
        analysis = await provider.complete([
            {"role": "system", "content": system},
            {"role": "user", "content": content},
        ])

        logger.info(
            "ANALYSIS | user=%s chars=%d files=%d", user_id, len(content), file_count,
        )
        return AnalysisResponse(analysis=analysis)

    # ── Career news ──────────────────────────────────────────────

    @app.post(
        "/functions/v1/news-recommendations",
        response_model=NewsRecommendationResponse,
    )
    async def news_recommendations(
        body: NewsRecommendationRequest,
        user_id: str = Depends(verify_session),
        provider: CompletionProvider = Depends(get_provider),
        settings: GatewaySettings = Depends(get_settings),
        sb: Client = Depends(get_supabase),
    ) -> NewsRecommendationResponse:
        """Return the career-news rows most relevant to the caller's interests."""
        rows = await recommend_news(
            provider,
            sb,
            body.user_interests,
            limit=settings.news_limit,
            top_n=settings.news_top_n,
        )
        logger.info("NEWS | user=%s recommendations=%d", user_id, len(rows))
        return NewsRecommendationResponse(recommendations=rows)

    # ── Health ───────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "model": settings.display_name}

    return app
