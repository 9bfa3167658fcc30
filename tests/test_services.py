# =============================================================================
# Unit Tests — Services
# =============================================================================
#
# Tests the LLM provider layer (factory, request shaping, outage mapping),
# keyword context windows, and stage model resolution. SDK clients are
# replaced with mocks; no network access or API keys needed.
# =============================================================================

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from context_finder.config import Settings
from context_finder.errors import CollaboratorUnavailableError, LLMUnavailableError
from context_finder.services import llm
from context_finder.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    strip_code_fences,
)
from context_finder.services.relational import (
    _escape_like,
    extract_keyword_contexts,
    query_terms,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _openai_response(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        model="gpt-test",
    )


def _openai_provider(create: AsyncMock) -> OpenAICompatibleProvider:
    provider = OpenAICompatibleProvider(api_key="test-key", model="gpt-test")
    provider._client = MagicMock()
    provider._client.chat.completions.create = create
    return provider


# ---------------------------------------------------------------------------
# Test: LLM Provider Factory
# ---------------------------------------------------------------------------


class TestLLMProviderFactory:
    """Tests for the LLM provider factory function."""

    def test_factory_raises_without_api_key(self):
        """Factory should raise ValueError when no API key is set."""
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "anthropic"
            ), patch.object(
                llm.settings, "llm_api_key", None
            ), patch.object(
                llm.settings, "anthropic_api_key", ""
            ):
                with pytest.raises(ValueError, match="API key"):
                    llm.get_llm_provider()
        finally:
            llm._provider = original

    def test_factory_defaults_to_openai_compatible(self):
        original = llm._provider
        llm._provider = None

        try:
            with patch.object(
                llm.settings, "llm_provider", "openai_compatible"
            ), patch.object(
                llm.settings, "llm_api_key", "test-key"
            ):
                assert isinstance(llm.get_llm_provider(), OpenAICompatibleProvider)
        finally:
            llm._provider = original


# ---------------------------------------------------------------------------
# Test: OpenAI-Compatible Provider
# ---------------------------------------------------------------------------


class TestOpenAICompatibleProvider:
    """Tests for request shaping and error translation."""

    def test_system_prompt_and_json_mode(self):
        create = AsyncMock(return_value=_openai_response('{"entities": []}'))
        provider = _openai_provider(create)

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "hi"}],
            system="extract",
            model="gpt-extract",
            response_format="json_object",
        ))

        kwargs = create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "extract"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "gpt-extract"
        assert response.content == '{"entities": []}'
        assert response.input_tokens == 12

    def test_text_mode_sends_no_response_format(self):
        create = AsyncMock(return_value=_openai_response("answer"))
        provider = _openai_provider(create)

        _run(provider.complete(messages=[{"role": "user", "content": "hi"}]))

        kwargs = create.call_args.kwargs
        assert "response_format" not in kwargs
        assert kwargs["model"] == "gpt-test"

    def test_connection_error_becomes_outage(self):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        provider = _openai_provider(create)

        with pytest.raises(LLMUnavailableError) as exc_info:
            _run(provider.complete(messages=[{"role": "user", "content": "hi"}]))

        assert exc_info.value.reason == "connection"

    def test_rate_limit_becomes_outage(self):
        request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
        error = openai.RateLimitError(
            "Too many requests",
            response=httpx.Response(429, request=request),
            body=None,
        )
        provider = _openai_provider(AsyncMock(side_effect=error))

        with pytest.raises(LLMUnavailableError) as exc_info:
            _run(provider.complete(messages=[{"role": "user", "content": "hi"}]))

        assert exc_info.value.reason == "rate_limited"


class TestAnthropicProvider:
    """Tests for the Claude request shape."""

    def test_json_mode_adds_system_instruction(self):
        provider = AnthropicProvider(api_key="test-key", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"entities": ["Acme"]}')],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=7, output_tokens=4),
        ))

        response = _run(provider.complete(
            messages=[{"role": "user", "content": "acme"}],
            system="extract",
            response_format="json_object",
        ))

        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("extract")
        assert "valid JSON" in kwargs["system"]
        assert response.content == '{"entities": ["Acme"]}'
        assert response.output_tokens == 4


# ---------------------------------------------------------------------------
# Test: Errors and Settings
# ---------------------------------------------------------------------------


class TestErrorsAndSettings:
    def test_unknown_reason_is_unavailable(self):
        assert CollaboratorUnavailableError("x", reason="weird").reason == "unavailable"

    def test_stage_model_falls_back_to_default(self):
        s = Settings(llm_model="base-model", llm_model_refiner="big-model")
        assert s.stage_model("refiner") == "big-model"
        assert s.stage_model("rephrase") == "base-model"


class TestStripCodeFences:
    def test_plain_json_untouched(self):
        assert strip_code_fences(' ["a"] ') == '["a"]'

    def test_fenced_json(self):
        assert strip_code_fences('```json\n{"entities": []}\n```') == '{"entities": []}'


# ---------------------------------------------------------------------------
# Test: Keyword Context Windows
# ---------------------------------------------------------------------------


class TestKeywordContexts:
    """Tests for the word windows cut around keyword matches."""

    def test_query_terms_drop_stopwords_and_punctuation(self):
        assert query_terms("Who signed the Acme contract?") == [
            "signed", "acme", "contract",
        ]

    def test_window_around_match(self):
        text = " ".join(f"w{i}" for i in range(20)) + " contract " + " ".join(
            f"x{i}" for i in range(20)
        )

        matches = extract_keyword_contexts("doc-1", text, "contract", 2, 3)

        assert len(matches) == 1
        assert matches[0].context_text == "w18 w19 contract x0 x1"
        assert matches[0].match_position == 20
        assert matches[0].total_matches == 1
        assert matches[0].data_id == "doc-1"

    def test_prefix_match(self):
        matches = extract_keyword_contexts(
            "d", "several Contracts were renewed", "contract", 1, 3,
        )
        assert matches[0].context_text == "several Contracts were"

    def test_overlapping_matches_share_a_window(self):
        matches = extract_keyword_contexts(
            "d", "acme acme filler filler filler filler acme", "acme", 1, 3,
        )
        assert [m.match_position for m in matches] == [0, 6]
        assert all(m.total_matches == 3 for m in matches)

    def test_max_matches_per_document(self):
        text = " ".join((["acme"] + ["pad"] * 10) * 5)
        matches = extract_keyword_contexts("d", text, "acme", 2, 3)
        assert len(matches) == 3

    def test_no_literal_match_returns_opening_window(self):
        matches = extract_keyword_contexts(
            "d", "one two three four five", "running", 1, 3,
        )
        assert len(matches) == 1
        assert matches[0].context_text == "one two three"
        assert matches[0].match_position == 0

    def test_empty_text(self):
        assert extract_keyword_contexts("d", "   ", "acme", 5, 3) == []

    def test_escape_like(self):
        assert _escape_like("50%_off\\") == "50\\%\\_off\\\\"
