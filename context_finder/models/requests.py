# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContextRequest(BaseModel):
    """
    Request body for POST /context.

    Example:
        {
            "query": "What did the onboarding doc say about Acme's contract?",
            "context": {"source": "chat"}
        }
    """

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Natural-language query answered from the user's private data",
        examples=["Who is the account owner for Acme Corp?"],
    )

    # Free-form caller context. Logged, never interpreted.
    context: dict[str, Any] | None = Field(
        default=None,
        description="Optional caller context",
    )

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {"query": "Who is the account owner for Acme Corp?"},
            ]
        }
    )
