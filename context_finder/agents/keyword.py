# =============================================================================
# Keyword Search Adapter — Full-Text Matches with Context
# =============================================================================

from __future__ import annotations

import logging

from context_finder.config import settings
from context_finder.models.search import KeywordResult, SourceOutcome
from context_finder.services.relational import RelationalStore

logger = logging.getLogger(__name__)


class KeywordSearchAdapter:
    """Full-text lookup in the user's data, one result per context window."""

    def __init__(self, store: RelationalStore) -> None:
        self._store = store

    async def search(self, query: str, user_id: str) -> SourceOutcome:
        """
        Keyword search scoped to `user_id`.

        Store errors are logged and yield zero results; the outcome
        carries the error so the coordinator can tell "nothing matched"
        from "could not search".
        """
        logger.info("Keyword search: '%s' (user=%s)", query[:80], user_id)

        try:
            rows = await self._store.keyword_search_with_context(
                query=query,
                user_id=user_id,
                context_words=settings.keyword_context_words,
            )
        except Exception as e:
            logger.error("Keyword search failed: %s", e)
            return SourceOutcome(error=str(e))

        results = [
            KeywordResult(
                content=row.context_text or "",
                metadata={
                    "data_id": row.data_id,
                    "match_position": row.match_position,
                    "total_matches": row.total_matches,
                },
            )
            for row in rows
        ]

        logger.info("Keyword search: %d results", len(results))
        return SourceOutcome(results=results)
