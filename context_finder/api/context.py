# =============================================================================
# Context API — Retrieval and Synthesis Endpoint
# =============================================================================
#
# FLOW:
#   1. Receive query (+ optional caller context) and the user id
#   2. Run the pipeline (execute tools → refine answer)
#   3. Return the answer and its confidence
#
# The heavy lifting happens in the agents package. This endpoint is
# request validation, error mapping and response shaping.
#
# ERROR MAPPING:
# Only collaborator outages escape the pipeline. They become a 503 with a
# generic, category-specific message. Anything unexpected becomes a 500
# with a generic message. Internal error text is logged, never returned.
# =============================================================================

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from context_finder.agents.orchestrator import run_retrieval_and_synthesis
from context_finder.api.deps import get_user_id
from context_finder.errors import CollaboratorUnavailableError
from context_finder.models.requests import ContextRequest
from context_finder.models.responses import ContextResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Context"])

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."

_OUTAGE_MESSAGES = {
    "rate_limited": (
        "Our AI service is currently busy. Please try again in a few minutes."
    ),
    "connection": "Connection issue detected. Please try again later.",
}


def user_facing_message(error: CollaboratorUnavailableError) -> str:
    """Map an outage to the message shown to the user."""
    return _OUTAGE_MESSAGES.get(error.reason, GENERIC_ERROR_MESSAGE)


@router.post(
    "/context",
    response_model=ContextResponse,
    summary="Answer a query from the user's private data",
    description=(
        "Searches the user's uploaded data by keyword, knowledge graph and "
        "vector similarity, then synthesizes a single answer with a "
        "confidence score."
    ),
)
async def context_endpoint(
    request: ContextRequest,
    user_id: str = Depends(get_user_id),
) -> ContextResponse:
    logger.info(
        "Context request: query='%s', user=%s, context_keys=%s",
        request.query[:80],
        user_id,
        sorted((request.context or {}).keys()),
    )

    start_time = time.monotonic()

    try:
        answer = await run_retrieval_and_synthesis(
            query=request.query,
            user_id=user_id,
        )
    except CollaboratorUnavailableError as e:
        logger.error("Collaborator unavailable (%s): %s", e.reason, e)
        raise HTTPException(
            status_code=503,
            detail=user_facing_message(e),
        ) from e
    except Exception as e:
        logger.exception("Context finder failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail=GENERIC_ERROR_MESSAGE,
        ) from e

    logger.info(
        "Context request completed in %dms with %d%% confidence",
        int((time.monotonic() - start_time) * 1000),
        answer.confidence,
    )

    return ContextResponse(
        answer=answer.content,
        confidence=answer.confidence,
        query=request.query,
    )
