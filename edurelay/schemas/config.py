"""Configuration schemas for the gateway and its clients."""

from __future__ import annotations

from pydantic import BaseModel, Field

from edurelay.schemas.messages import Persona


class GatewaySettings(BaseModel):
    """Resolved gateway configuration.

    Loaded from config/gateway.toml and overridden by EDURELAY_*
    environment variables. The upstream is any OpenAI-compatible chat
    completions endpoint reached through LiteLLM.
    """

    provider: str = Field(default="lovable", description="Upstream provider label for logs")
    model: str = Field(
        default="openai/google/gemini-2.5-flash",
        description="LiteLLM model identifier",
    )
    display_name: str = Field(default="Gemini 2.5 Flash", description="Human-friendly model name")
    api_key_env: str = Field(
        default="LOVABLE_API_KEY",
        description="Environment variable name holding the upstream API key",
    )
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    timeout: int = Field(default=120, gt=0, description="Upstream call timeout in seconds")
    max_retries: int = Field(
        default=3, ge=1, description="Attempts for transient upstream failures"
    )
    default_persona: Persona = Field(
        default=Persona.TUTOR, description="Persona used when the caller sends none"
    )
    max_analysis_chars: int = Field(
        default=100_000, gt=0, description="Ceiling on analysis content length"
    )
    news_limit: int = Field(default=20, gt=0, description="Career-news rows considered")
    news_top_n: int = Field(default=3, gt=0, description="Recommendations returned")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="CORS allow-list"
    )


class ClientSettings(BaseModel):
    """Where the CLI client finds the gateway and its credential."""

    gateway_url: str = Field(default="http://localhost:8000", description="Gateway base URL")
    access_token: str = Field(default="", description="Bearer token for the gateway")
    max_analysis_chars: int = Field(default=100_000, gt=0)
