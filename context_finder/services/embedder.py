# =============================================================================
# Embedding Service — Query Concept Vectors (Provider-Agnostic)
# =============================================================================
#
# Turns a query concept (an expanded query or an entity name) into a
# vector for nearest-neighbor lookup. Uses any OpenAI-compatible
# embedding API; the model must match the one the corpus was indexed with.
#
# DESIGN DECISION: Sync client, called via asyncio.to_thread() by the
# vector stores. Keeps this module free of event-loop concerns.
# =============================================================================

from __future__ import annotations

import logging

from openai import OpenAI

from context_finder.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# API key resolution order:
#   1. OPENAI_API_KEY (explicit embedding key)
#   2. LLM_API_KEY (shared key)
# ---------------------------------------------------------------------------

_client: OpenAI | None = None


def _get_client() -> OpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        resolved_key = settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        _client = OpenAI(**client_kwargs)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def embed_query(text: str) -> list[float]:
    """
    Generate an embedding for a single query concept.

    Args:
        text: The concept text to embed.

    Returns:
        A single embedding vector.

    Raises:
        ValueError: If no API key is configured.
        openai.APIError: If the embedding API call fails.
    """
    create_kwargs: dict = {
        "model": settings.embedding_model,
        "input": [text],
    }
    if settings.embedding_dimensions:
        create_kwargs["dimensions"] = settings.embedding_dimensions

    response = _get_client().embeddings.create(**create_kwargs)
    return response.data[0].embedding
