# =============================================================================
# Multi-Provider LLM Abstraction — Pluggable AI Backend
# =============================================================================
#
# Provides a common interface for LLM completions, with concrete
# implementations for Anthropic (Claude) and OpenAI-compatible APIs.
#
# The retrieval pipeline makes three kinds of call through this interface:
#   - query rephrasing      → JSON array of two strings
#   - entity extraction     → JSON object with an "entities" array
#   - answer synthesis      → free text
# Each stage may use its own model, so `model` is a per-call argument.
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Matches the VectorIndex and RelationalStore protocols. Any class with
# the right `complete()` method works, including test fakes.
#
# DESIGN DECISION: Outages become LLMUnavailableError.
# Connection failures, timeouts, rate limits, auth rejections and 5xx
# responses are translated at this boundary so callers can tell an outage
# (propagate) from a bad completion (fall back locally) without importing
# either SDK.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — Claude via native Anthropic SDK
#   ├── OpenAICompatibleProvider — Any OpenAI-compatible API
#   └── get_llm_provider()       — Lazy singleton factory, reads from config
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from context_finder.config import settings
from context_finder.errors import LLMUnavailableError

logger = logging.getLogger(__name__)

ResponseFormat = Literal["text", "json_object"]

_JSON_INSTRUCTION = (
    "Respond with ONLY valid JSON. No markdown fences, no explanation."
)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the different response formats (Anthropic vs OpenAI)
    into a single structure that downstream code can consume.
    """

    content: str           # The generated text
    model: str             # Model identifier
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    Both Anthropic and OpenAI-compatible implementations must provide
    the `complete()` method. Checked statically by mypy.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: ResponseFormat = "text",
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
                Roles: "user", "assistant" (no "system"; use the system param).
            system: System prompt for the LLM.
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).
            model: Override the model for this call (default from config).
            response_format: "json_object" asks the provider for strict JSON
                output; "text" for free text.

        Returns:
            LLMResponse with generated text and usage metrics.

        Raises:
            LLMUnavailableError: The provider could not be reached or
                refused the request.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system". It also has no
    JSON response mode, so a JSON request is expressed as an extra
    system instruction.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized AnthropicProvider (model=%s)", self._model
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: ResponseFormat = "text",
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        import anthropic

        kwargs: dict = {
            "model": model or self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }

        system_parts = [p for p in (system,) if p]
        if response_format == "json_object":
            system_parts.append(_JSON_INSTRUCTION)
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise LLMUnavailableError(str(e), reason="rate_limited") from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise LLMUnavailableError(str(e), reason="auth") from e
        except anthropic.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise LLMUnavailableError(str(e), reason="connection") from e
        except anthropic.InternalServerError as e:
            raise LLMUnavailableError(str(e), reason="unavailable") from e

        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    OpenAI-compatible provider for any API that follows the OpenAI spec.

    Switching providers is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        LLM_MODEL=deepseek-chat
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
        response_format: ResponseFormat = "text",
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        import openai

        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        kwargs: dict = {
            "model": model or self._model,
            "messages": all_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": (
                temperature if temperature is not None else self._temperature
            ),
        }
        if response_format == "json_object":
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            raise LLMUnavailableError(str(e), reason="rate_limited") from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise LLMUnavailableError(str(e), reason="auth") from e
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise LLMUnavailableError(str(e), reason="connection") from e
        except openai.InternalServerError as e:
            raise LLMUnavailableError(str(e), reason="unavailable") from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        # Token counts: OpenAI uses different field names than Anthropic
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        return LLMResponse(
            content=content,
            model=response.model or kwargs["model"],
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """
    Factory that returns the configured LLM provider.

    Reads `llm_provider` from settings:
    - "anthropic" → AnthropicProvider (Claude)
    - "openai_compatible" → OpenAICompatibleProvider
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "anthropic":
            _provider = AnthropicProvider()
        else:
            _provider = OpenAICompatibleProvider()
    return _provider


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------


def strip_code_fences(raw: str) -> str:
    """
    Remove a surrounding markdown code fence from a model response.

    Models asked for bare JSON still occasionally wrap it in ```json
    fences; the payload inside is what callers want.
    """
    text = raw.strip()
    if text.startswith("```"):
        lines = [
            line for line in text.split("\n")
            if not line.strip().startswith("```")
        ]
        text = "\n".join(lines).strip()
    return text
