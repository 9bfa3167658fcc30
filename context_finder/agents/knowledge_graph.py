# =============================================================================
# Knowledge Graph Search Adapter — Entity Extraction + Graph Traversal
# =============================================================================
#
# Two phases:
#
# 1. EXTRACT — one LLM call pulls the named entities/concepts out of the
#    query ({"entities": [...]}). No entities, no graph search: the adapter
#    returns empty results without touching the store.
#
# 2. TRAVERSE — for each extracted name, sequentially:
#      a. find matching stored entities           → "entity" results
#      b. relationships in the entity's document  → "relationship" results
#      c. other entities in the same document     → "related_entity" results
#    Every matched entity also yields an (entity, document) pair that the
#    entity-driven vector expansion consumes after the join.
#
# DESIGN DECISION: Sequential traversal.
# All lookups hit the same per-tenant relational store. Running them one
# at a time bounds the load a single query can put on it, at the cost of
# latency.
#
# DESIGN DECISION: Accumulate and continue.
# Each traversal step either contributes rows or is skipped. A failing
# step is logged and never aborts the loop: a failed entity lookup skips
# that name, a failed relationship or related-entity lookup skips only
# that step's rows.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from context_finder.config import settings
from context_finder.models.search import (
    EntityWithDocument,
    KnowledgeGraphOutcome,
    KnowledgeGraphResult,
)
from context_finder.services.llm import LLMProvider, strip_code_fences
from context_finder.services.relational import (
    EntityRow,
    RelatedEntityRow,
    RelationalStore,
    RelationshipRow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EXTRACTION_SYSTEM = (
    "Extract all entities (people, places, concepts, organizations, etc.) "
    "from the user query. Return only a JSON object with an \"entities\" "
    "array containing entity names as strings. Example: "
    "{\"entities\": [\"artificial intelligence\", \"machine learning\", "
    "\"neural networks\"]}"
)


class KnowledgeGraphSearchAdapter:
    """Entity extraction followed by per-entity graph traversal."""

    def __init__(self, llm: LLMProvider, store: RelationalStore) -> None:
        self._llm = llm
        self._store = store

    async def search(self, query: str, user_id: str) -> KnowledgeGraphOutcome:
        """
        Search the user's knowledge graph for entities named in `query`.

        Returns:
            KnowledgeGraphOutcome with results, the stored entity names
            found, and the (entity, document) pairs for vector expansion.
        """
        logger.info("Knowledge graph search: '%s' (user=%s)", query[:80], user_id)

        try:
            extracted = await self.extract_entities(query)
        except Exception as e:
            logger.error("Entity extraction failed: %s", e)
            return KnowledgeGraphOutcome(error=f"entity extraction: {e}")

        logger.info("Extracted entities: %s", ", ".join(extracted) or "none")
        if not extracted:
            logger.info("No entities extracted, skipping knowledge graph search")
            return KnowledgeGraphOutcome()

        outcome = KnowledgeGraphOutcome()
        failed_lookups = 0

        for entity_name in extracted:
            matches = await self._step(
                f"entity lookup for '{entity_name}'",
                lambda: self._store.search_entities(
                    entity_name=entity_name, user_id=user_id,
                ),
            )
            if matches is None:
                failed_lookups += 1
                continue

            for match in matches:
                await self._traverse(match, user_id, outcome)

        # Reaching the store for no entity at all is an adapter failure,
        # not an empty graph.
        if failed_lookups == len(extracted):
            outcome.error = (
                f"entity lookup failed for all {len(extracted)} entities"
            )

        logger.info(
            "Knowledge graph found %d results for %d entities",
            len(outcome.results), len(outcome.entities),
        )
        return outcome

    async def extract_entities(self, query: str) -> list[str]:
        """
        Ask the LLM for the entities named in `query`.

        Raises on upstream errors and malformed responses; `search`
        treats either as "no entities".
        """
        response = await self._llm.complete(
            messages=[{"role": "user", "content": query}],
            system=_EXTRACTION_SYSTEM,
            model=settings.stage_model("extract_entities"),
            response_format="json_object",
        )
        parsed = json.loads(strip_code_fences(response.content) or "{}")
        if not isinstance(parsed, dict):
            raise ValueError("entity extraction response is not a JSON object")

        raw = parsed.get("entities")
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ValueError(
                f"entity extraction 'entities' is {type(raw).__name__}, not a list"
            )

        entities: list[str] = []
        for item in raw:
            if isinstance(item, str) and item.strip() and item.strip() not in entities:
                entities.append(item.strip())
        return entities

    # -----------------------------------------------------------------------
    # Traversal
    # -----------------------------------------------------------------------

    async def _traverse(
        self,
        entity: EntityRow,
        user_id: str,
        outcome: KnowledgeGraphOutcome,
    ) -> None:
        """Emit one stored entity plus its same-document neighbourhood."""
        outcome.entities.append(entity.entity_name)
        outcome.entities_with_documents.append(
            EntityWithDocument(entity=entity.entity_name, document_id=entity.data_id)
        )
        outcome.results.append(_entity_result(entity))

        relationships = await self._step(
            f"relationship lookup for '{entity.entity_name}'",
            lambda: self._store.search_relationships(
                entity_name=entity.entity_name,
                user_id=user_id,
                document_id=entity.data_id,
            ),
        )
        for rel in relationships or []:
            outcome.results.append(_relationship_result(rel))

        related = await self._step(
            f"related entity lookup for '{entity.entity_name}'",
            lambda: self._store.get_related_entities(
                entity_name=entity.entity_name,
                user_id=user_id,
                document_id=entity.data_id,
            ),
        )
        for rel_entity in related or []:
            outcome.results.append(_related_entity_result(rel_entity))

    @staticmethod
    async def _step(
        description: str,
        call: Callable[[], Awaitable[list[T]]],
    ) -> list[T] | None:
        """Run one traversal step. None means the step failed and was skipped."""
        try:
            return await call()
        except Exception as e:
            logger.error("Knowledge graph %s failed: %s", description, e)
            return None


# ---------------------------------------------------------------------------
# Result Builders
# ---------------------------------------------------------------------------


def _entity_result(entity: EntityRow) -> KnowledgeGraphResult:
    return KnowledgeGraphResult(
        content=(
            f"Entity: {entity.entity_name} ({entity.entity_type}): "
            f"{entity.entity_description or 'No description'}"
        ),
        metadata={
            "entity_name": entity.entity_name,
            "entity_type": entity.entity_type,
            "data_id": entity.data_id,
            "type": "entity",
        },
    )


def _relationship_result(rel: RelationshipRow) -> KnowledgeGraphResult:
    return KnowledgeGraphResult(
        content=f"Relationship: {rel.subject} → {rel.predicate} → {rel.object}",
        metadata={
            "relationship_source": rel.subject,
            "relationship_target": rel.object,
            "relationship_type": rel.predicate,
            "data_id": rel.data_id,
            "type": "relationship",
        },
    )


def _related_entity_result(entity: RelatedEntityRow) -> KnowledgeGraphResult:
    return KnowledgeGraphResult(
        content=f"Related Entity: {entity.entity_name} ({entity.entity_type})",
        metadata={
            "entity_name": entity.entity_name,
            "entity_type": entity.entity_type,
            "relationship_type": entity.relationship_type,
            "data_id": entity.data_id,
            "type": "related_entity",
        },
    )
