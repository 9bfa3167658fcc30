# =============================================================================
# Search Coordinator — Concurrent Fan-Out and Ordered Merge
# =============================================================================
#
# FLOW:
#   query ──▶ expand ──▶ ┌ keyword(query)            ┐
#                        ├ knowledge_graph(query)    ├─ join ─▶ entity expansion
#                        └ vector(query + rephrasings)┘         (graph pairs)
#
#   evidence = keyword + graph + vector + entity-vector   (this order)
#
# DESIGN DECISION: asyncio.gather as a join barrier.
# The three primary searches are independent and wait on I/O, so they run
# concurrently; the slowest one sets the latency of the phase. Entity
# expansion depends on the graph output and runs strictly after the join.
# Each adapter returns its own accumulator, so nothing is shared between
# the concurrent branches.
#
# DESIGN DECISION: Constructor injection.
# The coordinator receives the expander and the adapters; it never looks
# collaborators up. `build_coordinator()` wires the production ones.
#
# No deduplication, no reranking: the synthesizer merges overlapping
# evidence when it writes the answer.
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from context_finder.agents.expander import QueryExpander
from context_finder.agents.keyword import KeywordSearchAdapter
from context_finder.agents.knowledge_graph import KnowledgeGraphSearchAdapter
from context_finder.agents.vector import EntityVectorExpansion, VectorSearchAdapter
from context_finder.errors import AllSourcesFailedError
from context_finder.models.search import EvidenceSet, SearchResult
from context_finder.services.llm import LLMProvider
from context_finder.services.relational import RelationalStore
from context_finder.services.vectorstore import VectorIndex

logger = logging.getLogger(__name__)


class SearchCoordinator:
    """Runs all retrieval sources for one query and merges their evidence."""

    def __init__(
        self,
        expander: QueryExpander,
        keyword: KeywordSearchAdapter,
        knowledge_graph: KnowledgeGraphSearchAdapter,
        vector: VectorSearchAdapter,
        entity_expansion: EntityVectorExpansion,
    ) -> None:
        self._expander = expander
        self._keyword = keyword
        self._knowledge_graph = knowledge_graph
        self._vector = vector
        self._entity_expansion = entity_expansion

    async def search(self, query: str, user_id: str) -> EvidenceSet:
        """
        Retrieve evidence for `query` from every source.

        Raises:
            AllSourcesFailedError: keyword, graph and vector search all
                failed to reach their stores. Partial failures never raise.
        """
        rephrased = await self._expander.expand(query)
        all_queries = [query, *rephrased]
        logger.info("Generated %d query variations", len(all_queries))

        keyword, graph, vector = await asyncio.gather(
            self._keyword.search(query, user_id),
            self._knowledge_graph.search(query, user_id),
            self._vector.search(all_queries, user_id),
        )

        if keyword.failed and graph.failed and vector.failed:
            raise AllSourcesFailedError({
                "keyword": keyword.error or "",
                "knowledge_graph": graph.error or "",
                "vector": vector.error or "",
            })

        entity_vector = await self._entity_expansion.search(
            graph.entities_with_documents, user_id,
        )

        results: list[SearchResult] = [
            *keyword.results,
            *graph.results,
            *vector.results,
            *entity_vector,
        ]

        logger.info(
            "Total results: %d (keyword=%d, knowledge_graph=%d, vector=%d, "
            "entity_vector=%d)",
            len(results), len(keyword.results), len(graph.results),
            len(vector.results), len(entity_vector),
        )

        return EvidenceSet(
            results=results,
            query_variations=all_queries,
            source_counts={
                "keyword": len(keyword.results),
                "knowledge_graph": len(graph.results),
                "vector": len(vector.results) + len(entity_vector),
            },
        )


def build_coordinator(
    llm: LLMProvider,
    store: RelationalStore,
    index: VectorIndex,
) -> SearchCoordinator:
    """Wire a coordinator from the three collaborator interfaces."""
    return SearchCoordinator(
        expander=QueryExpander(llm),
        keyword=KeywordSearchAdapter(store),
        knowledge_graph=KnowledgeGraphSearchAdapter(llm, store),
        vector=VectorSearchAdapter(index),
        entity_expansion=EntityVectorExpansion(index),
    )
