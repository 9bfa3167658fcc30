# =============================================================================
# Vector Search — Expanded Queries and Entity-Driven Expansion
# =============================================================================
#
# Two lookups over the same tenant-isolated index:
#
#   VectorSearchAdapter     — one top-5 lookup per expanded query
#                             (original + up to two rephrasings)
#   EntityVectorExpansion   — one top-3 lookup per (entity, document) pair
#                             from the knowledge graph, restricted to that
#                             document
#
# Generic top-k search can miss passages about a confirmed entity inside
# the document it came from; the entity expansion recovers them.
#
# Both loops are sequential, and a failing lookup is logged and skipped
# without affecting the others.
# =============================================================================

from __future__ import annotations

import logging

from context_finder.config import settings
from context_finder.models.search import EntityWithDocument, SourceOutcome, VectorResult
from context_finder.services.vectorstore import VectorIndex

logger = logging.getLogger(__name__)


class VectorSearchAdapter:
    """Nearest-neighbor lookup for each expanded query."""

    def __init__(self, index: VectorIndex) -> None:
        self._index = index

    async def search(self, queries: list[str], user_id: str) -> SourceOutcome:
        """
        Run one lookup per query, in order.

        The outcome only records an error when every lookup failed;
        partial failures just contribute nothing.
        """
        logger.info("Vector search with %d queries (user=%s)", len(queries), user_id)

        results: list[VectorResult] = []
        errors: list[str] = []

        for q in queries:
            try:
                hits = await self._index.near_text(
                    concept=q,
                    tenant_id=user_id,
                    limit=settings.vector_top_k,
                )
            except Exception as e:
                logger.error("Vector search failed for query '%s': %s", q, e)
                errors.append(str(e))
                continue

            for hit in hits:
                results.append(VectorResult(
                    content=hit.content or "",
                    score=hit.certainty,
                    metadata={
                        "query": q,
                        "document_id": hit.document_id,
                        "distance": hit.distance,
                    },
                ))

        if queries and len(errors) == len(queries):
            return SourceOutcome(results=results, error=errors[-1])

        logger.info("Vector search: %d results", len(results))
        return SourceOutcome(results=results)


class EntityVectorExpansion:
    """Document-scoped lookups for entities confirmed by the knowledge graph."""

    def __init__(self, index: VectorIndex) -> None:
        self._index = index

    async def search(
        self,
        entities_with_documents: list[EntityWithDocument],
        user_id: str,
    ) -> list[VectorResult]:
        if not entities_with_documents:
            return []

        logger.info(
            "Searching %d entities with document IDs in vector index",
            len(entities_with_documents),
        )

        results: list[VectorResult] = []
        for pair in entities_with_documents:
            try:
                hits = await self._index.near_text(
                    concept=pair.entity,
                    tenant_id=user_id,
                    limit=settings.entity_vector_top_k,
                    where={"document_id": pair.document_id},
                )
            except Exception as e:
                logger.error(
                    "Entity vector search failed for '%s' in document '%s': %s",
                    pair.entity, pair.document_id, e,
                )
                continue

            for hit in hits:
                results.append(VectorResult(
                    content=hit.content or "",
                    score=hit.certainty,
                    metadata={
                        "entity": pair.entity,
                        "document_id": hit.document_id,
                        "from_knowledge_graph": True,
                        "distance": hit.distance,
                    },
                ))

        logger.info("Entity vector expansion: %d results", len(results))
        return results
