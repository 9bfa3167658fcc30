# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Only the synthesized answer and its confidence leave the service. Raw
# evidence, store errors and model output stay internal.
# =============================================================================

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class ContextResponse(BaseModel):
    """Response for POST /context."""

    answer: str = Field(description="Synthesized answer")
    confidence: int = Field(
        ge=0,
        le=100,
        description="Confidence percentage derived from tool execution outcomes",
    )
    query: str = Field(description="The original query, echoed back")
