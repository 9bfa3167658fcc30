# =============================================================================
# API Dependencies — Caller Identity
# =============================================================================
#
# Authentication happens upstream. The auth middleware validates the
# caller's token and forwards the resolved user id in the X-User-Id
# header; this dependency only requires that it is present.
#
# DESIGN DECISION: FastAPI dependency (not middleware).
# Endpoints opt in via Depends(get_user_id), and tests override it with
# app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)


async def get_user_id(
    x_user_id: str | None = Header(default=None),
) -> str:
    """
    Resolve the authenticated user id.

    Raises:
        HTTPException 401: The upstream auth layer did not supply a user id.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        logger.error("No user ID found in request headers")
        raise HTTPException(
            status_code=401,
            detail=(
                "User authentication required. Please ensure you are "
                "properly authenticated."
            ),
        )
    return user_id
