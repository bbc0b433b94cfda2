"""Tests for edurelay.providers.litellm_provider: LiteLLM upstream adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from edurelay.errors import (
    ConfigurationError,
    CreditsExhausted,
    RateLimited,
    UpstreamFailure,
)
from edurelay.providers.litellm_provider import (
    LiteLLMProvider,
    chunk_to_payload,
    translate_upstream_error,
)
from edurelay.schemas.config import GatewaySettings

# Shorthand for the mock target
_ACOMP = "edurelay.providers.litellm_provider.litellm.acompletion"
_SLEEP = "edurelay.providers.litellm_provider.asyncio.sleep"

_MESSAGES = [{"role": "user", "content": "Explain photosynthesis"}]


# ── Helpers ───────────────────────────────────────────────────


def _make_settings(**overrides) -> GatewaySettings:
    defaults = {
        "model": "openai/google/gemini-2.5-flash",
        "display_name": "Gemini 2.5 Flash",
        "api_key_env": "LOVABLE_API_KEY",
        "api_base": "https://ai.gateway.lovable.dev/v1",
        "timeout": 60,
    }
    defaults.update(overrides)
    return GatewaySettings(**defaults)


def _make_provider(**overrides) -> LiteLLMProvider:
    with patch.dict("os.environ", {"LOVABLE_API_KEY": "sk-test"}):
        return LiteLLMProvider(_make_settings(**overrides))


def _make_response(content: str = "Hello") -> SimpleNamespace:
    """Build a mock LiteLLM ModelResponse-like object."""
    message = SimpleNamespace(content=content)
    choice = SimpleNamespace(message=message, finish_reason="stop", index=0)
    return SimpleNamespace(choices=[choice])


def _make_chunk(content: str | None, finish_reason: str | None = None) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, role="assistant")
    choice = SimpleNamespace(delta=delta, index=0, finish_reason=finish_reason)
    return SimpleNamespace(
        id="chatcmpl-1", created=1700000000, model="gemini-2.5-flash", choices=[choice],
    )


async def _chunk_stream(*chunks, error: Exception | None = None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def _rate_limit() -> litellm.RateLimitError:
    return litellm.RateLimitError(
        message="rate limited", model="test", llm_provider="openai",
    )


def _payment_required() -> litellm.APIError:
    return litellm.APIError(
        status_code=402, message="Payment required", llm_provider="openai", model="test",
    )


def _server_error() -> litellm.InternalServerError:
    return litellm.InternalServerError(
        message="server error", model="test", llm_provider="openai",
    )


# ── Initialization ───────────────────────────────────────────


class TestLiteLLMProviderInit:
    def test_reads_api_key_from_env(self):
        provider = _make_provider()
        assert provider._api_key == "sk-test"
        assert provider.model_id == "openai/google/gemini-2.5-flash"
        assert provider.display_name == "Gemini 2.5 Flash"

    def test_missing_api_key_is_empty_string(self):
        with patch.dict("os.environ", {}, clear=True):
            provider = LiteLLMProvider(_make_settings(api_key_env="EDURELAY_NO_SUCH_KEY"))
        assert provider._api_key == ""


# ── complete() ───────────────────────────────────────────────


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_content(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response("Chlorophyll absorbs light.")
            result = await provider.complete(_MESSAGES)
        assert result == "Chlorophyll absorbs light."

    @pytest.mark.asyncio
    async def test_request_kwargs(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await provider.complete(_MESSAGES)
        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "openai/google/gemini-2.5-flash"
        assert kwargs["messages"] == _MESSAGES
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "https://ai.gateway.lovable.dev/v1"
        assert kwargs["timeout"] == 60.0
        assert "stream" not in kwargs

    @pytest.mark.asyncio
    async def test_api_base_not_passed_when_empty(self):
        provider = _make_provider(api_base="")
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await provider.complete(_MESSAGES)
        assert "api_base" not in mock.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = SimpleNamespace(choices=[])
            assert await provider.complete(_MESSAGES) == ""

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self):
        with patch.dict("os.environ", {}, clear=True):
            provider = LiteLLMProvider(_make_settings())
        with patch(_ACOMP, new_callable=AsyncMock) as mock, pytest.raises(ConfigurationError):
            await provider.complete(_MESSAGES)
        mock.assert_not_called()


# ── open_stream() ────────────────────────────────────────────


class TestOpenStream:
    @pytest.mark.asyncio
    async def test_yields_openai_chunk_payloads(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _chunk_stream(
                _make_chunk("He"), _make_chunk("llo"), _make_chunk(None, "stop"),
            )
            chunks = await provider.open_stream(_MESSAGES)
            payloads = [p async for p in chunks]

        assert mock.call_args.kwargs["stream"] is True
        assert [p["choices"][0]["delta"].get("content") for p in payloads] == [
            "He", "llo", None,
        ]
        assert payloads[-1]["choices"][0]["finish_reason"] == "stop"
        assert all(p["object"] == "chat.completion.chunk" for p in payloads)

    @pytest.mark.asyncio
    async def test_rate_limit_raised_before_stream(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=_rate_limit())
        with patch(_ACOMP, mock_acomp), pytest.raises(RateLimited):
            await provider.open_stream(_MESSAGES)
        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_payment_required_raised_before_stream(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=_payment_required())
        with patch(_ACOMP, mock_acomp), pytest.raises(CreditsExhausted):
            await provider.open_stream(_MESSAGES)
        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_mid_stream_failure_translated(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _chunk_stream(_make_chunk("partial"), error=_server_error())
            chunks = await provider.open_stream(_MESSAGES)
            received = []
            with pytest.raises(UpstreamFailure):
                async for payload in chunks:
                    received.append(payload)
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unexpected_mid_stream_error_becomes_upstream_failure(self):
        provider = _make_provider()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _chunk_stream(
                _make_chunk("partial"), error=ValueError("bad chunk from provider"),
            )
            chunks = await provider.open_stream(_MESSAGES)
            received = []
            with pytest.raises(UpstreamFailure) as exc_info:
                async for payload in chunks:
                    received.append(payload)
        assert len(received) == 1
        assert isinstance(exc_info.value.__cause__, ValueError)


# ── Retry ────────────────────────────────────────────────────


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_on_server_error(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=[_server_error(), _make_response()])
        mock_sleep = AsyncMock()
        with patch(_ACOMP, mock_acomp), patch(_SLEEP, mock_sleep):
            result = await provider.complete(_MESSAGES)
        assert result == "Hello"
        assert mock_acomp.call_count == 2
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_backoff_doubles(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=[
            _server_error(),
            litellm.ServiceUnavailableError(
                message="unavailable", model="test", llm_provider="openai",
            ),
            _make_response(),
        ])
        mock_sleep = AsyncMock()
        with patch(_ACOMP, mock_acomp), patch(_SLEEP, mock_sleep):
            await provider.complete(_MESSAGES)
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_all_retries_exhausted(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=_server_error())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(UpstreamFailure),
        ):
            await provider.complete(_MESSAGES)
        assert mock_acomp.call_count == 3

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=_rate_limit())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock) as mock_sleep,
            pytest.raises(RateLimited),
        ):
            await provider.complete(_MESSAGES)
        assert mock_acomp.call_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self):
        provider = _make_provider()
        mock_acomp = AsyncMock(side_effect=litellm.AuthenticationError(
            message="bad key", model="test", llm_provider="openai",
        ))
        with patch(_ACOMP, mock_acomp), pytest.raises(ConfigurationError):
            await provider.complete(_MESSAGES)
        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_retried_then_reported(self):
        provider = _make_provider(max_retries=2)
        mock_acomp = AsyncMock(side_effect=TimeoutError())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(UpstreamFailure, match="timed out"),
        ):
            await provider.complete(_MESSAGES)
        assert mock_acomp.call_count == 2


# ── Error translation ────────────────────────────────────────


class TestTranslateUpstreamError:
    def test_rate_limit(self):
        assert isinstance(translate_upstream_error(_rate_limit()), RateLimited)

    def test_payment_required(self):
        assert isinstance(translate_upstream_error(_payment_required()), CreditsExhausted)

    def test_auth_error(self):
        error = litellm.AuthenticationError(message="x", model="m", llm_provider="openai")
        assert isinstance(translate_upstream_error(error), ConfigurationError)

    def test_other(self):
        result = translate_upstream_error(_server_error())
        assert type(result) is UpstreamFailure


# ── Chunk encoding ───────────────────────────────────────────


class TestChunkToPayload:
    def test_shape(self):
        payload = chunk_to_payload(_make_chunk("Hi"))
        assert payload == {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": "gemini-2.5-flash",
            "choices": [{
                "index": 0,
                "delta": {"role": "assistant", "content": "Hi"},
                "finish_reason": None,
            }],
        }

    def test_missing_fields_default(self):
        chunk = SimpleNamespace(choices=[SimpleNamespace(delta=None)])
        payload = chunk_to_payload(chunk, model="fallback")
        assert payload["model"] == "fallback"
        assert payload["id"] == ""
        assert payload["choices"] == [{"index": 0, "delta": {}, "finish_reason": None}]
