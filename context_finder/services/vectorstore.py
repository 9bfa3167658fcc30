# =============================================================================
# Vector Store Abstraction — Tenant-Isolated Nearest-Neighbor Lookup
# =============================================================================
#
# One operation serves both the vector adapter and the entity-driven
# expansion:
#
#   near_text(concept, tenant_id, limit, where=None) → list[VectorHit]
#
# The concept text is embedded here, so callers only deal in text. Every
# lookup is scoped to one tenant (the user id); `where` adds equality
# filters on chunk metadata, e.g. {"document_id": "doc-42"}.
#
# CERTAINTY:
# Both backends use cosine distance d ∈ [0, 2]. Hits report
#   certainty = 1 - d / 2   (1.0 = identical direction, 0.5 = orthogonal)
# alongside the raw distance. Certainty is what the pipeline uses as a
# SearchResult score.
#
# DESIGN DECISION: Protocol (structural typing) over ABC (nominal typing).
# Any class with a matching `near_text()` works, including test fakes.
#
# ARCHITECTURE:
#   VectorIndex (Protocol)
#   ├── ChromaVectorStore — ChromaDB (in-process or client/server)
#   │   ├── add_chunks()  — sync, tags each chunk with tenant_id
#   │   └── near_text()   — async via asyncio.to_thread() wrapper
#   └── PgVectorStore     — PostgreSQL + pgvector extension
#       └── near_text()   — async via async_session_factory
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import chromadb
from sqlalchemy import select

from context_finder.config import settings
from context_finder.db.engine import async_session_factory
from context_finder.db.models import Chunk
from context_finder.services.embedder import embed_query

logger = logging.getLogger(__name__)

EmbedFunction = Callable[[str], list[float]]


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class VectorHit:
    """A single nearest-neighbor hit."""

    content: str
    certainty: float          # 0.0–1.0, higher = closer
    distance: float           # cosine distance, 0.0–2.0
    document_id: str | None
    metadata: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorIndex(Protocol):
    """Tenant-isolated nearest-neighbor query over a named index."""

    async def near_text(
        self,
        concept: str,
        tenant_id: str,
        limit: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """
        Find the chunks closest to `concept` within one tenant.

        Args:
            concept: Text to embed and search for.
            tenant_id: Tenant partition (the user id).
            limit: Maximum number of hits.
            where: Optional equality filters on chunk metadata.

        Returns:
            Hits ranked by certainty, highest first.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    DESIGN DECISION: Single collection, tenant isolation by metadata.
    Every chunk carries `tenant_id` and `document_id` in its metadata and
    every query filters on `tenant_id`. A collection per tenant would need
    user ids to satisfy Chroma's collection-name rules.

    ChromaDB supports both in-process and client/server modes:
    - In-process (default): No extra infra
    - Client/server: Set CHROMA_URL for Docker deployment
    """

    def __init__(
        self,
        collection_name: str | None = None,
        embed: EmbedFunction = embed_query,
    ) -> None:
        if settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.Client()

        self._embed = embed
        self._collection = self._client.get_or_create_collection(
            name=collection_name or settings.vector_collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_chunks(
        self,
        tenant_id: str,
        document_id: str,
        contents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict] | None = None,
    ) -> list[str]:
        """Store chunks tagged with their tenant and source document."""
        metadatas = metadatas or [{} for _ in contents]
        ids = [
            f"{tenant_id}:{document_id}:{meta.get('chunk_index', i)}"
            for i, meta in enumerate(metadatas)
        ]
        enriched = [
            _sanitise_chroma_metadata(
                {**meta, "tenant_id": tenant_id, "document_id": document_id}
            )
            for meta in metadatas
        ]

        self._collection.add(
            ids=ids,
            documents=contents,
            embeddings=embeddings,
            metadatas=enriched,
        )

        logger.info(
            "Stored %d chunks for tenant=%s document_id=%s in ChromaDB",
            len(ids), tenant_id, document_id,
        )
        return ids

    async def near_text(
        self,
        concept: str,
        tenant_id: str,
        limit: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """
        Similarity search in ChromaDB.

        The Chroma client and the embedder are synchronous, so the whole
        lookup runs in a worker thread to keep the event loop free.
        """

        def _sync_search() -> list[VectorHit]:
            embedding = self._embed(concept)
            results = self._collection.query(
                query_embeddings=[embedding],
                n_results=limit,
                where=_chroma_where(tenant_id, where),
                include=["documents", "metadatas", "distances"],
            )

            hits: list[VectorHit] = []
            if not (results and results["ids"] and results["ids"][0]):
                return hits

            for i, _ in enumerate(results["ids"][0]):
                distance = (
                    results["distances"][0][i] if results["distances"] else 0.0
                )
                metadata = (
                    results["metadatas"][0][i] if results["metadatas"] else {}
                ) or {}
                content = (
                    results["documents"][0][i] if results["documents"] else ""
                ) or ""
                hits.append(VectorHit(
                    content=content,
                    certainty=_certainty(distance),
                    distance=round(distance, 4),
                    document_id=metadata.get("document_id"),
                    metadata=dict(metadata),
                ))
            return hits

        return await asyncio.to_thread(_sync_search)


# ---------------------------------------------------------------------------
# Implementation 2: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed vector store on the `chunks` table.

    Tenant isolation is a `user_id` filter; `where` keys map onto chunk
    columns (`document_id`) or, failing that, onto the JSONB metadata.
    """

    def __init__(self, embed: EmbedFunction = embed_query) -> None:
        self._embed = embed

    async def near_text(
        self,
        concept: str,
        tenant_id: str,
        limit: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        embedding = await asyncio.to_thread(self._embed, concept)
        distance = Chunk.embedding.cosine_distance(embedding)

        stmt = (
            select(Chunk, distance.label("distance"))
            .where(Chunk.user_id == tenant_id)
            .where(Chunk.embedding.is_not(None))
            .order_by(distance)
            .limit(limit)
        )
        for key, value in (where or {}).items():
            if key == "document_id":
                stmt = stmt.where(Chunk.document_id == str(value))
            else:
                stmt = stmt.where(Chunk.metadata_[key].astext == str(value))

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug(
            "pgvector search returned %d rows (limit=%d, tenant=%s, where=%s)",
            len(rows), limit, tenant_id, where,
        )

        return [
            VectorHit(
                content=chunk.content,
                certainty=_certainty(dist),
                distance=round(dist, 4),
                document_id=chunk.document_id,
                metadata=chunk.metadata_ or {},
            )
            for chunk, dist in rows
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_store: ChromaVectorStore | PgVectorStore | None = None


def get_vector_store() -> ChromaVectorStore | PgVectorStore:
    """
    Factory that returns the configured vector store backend.

    Reads `vectorstore_type` from settings:
    - "chroma" → ChromaVectorStore (default)
    - "pgvector" → PgVectorStore
    """
    global _store
    if _store is None:
        if settings.vectorstore_type == "pgvector":
            logger.info("Using pgvector vector store")
            _store = PgVectorStore()
        else:
            logger.info("Using ChromaDB vector store")
            _store = ChromaVectorStore()
    return _store


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _certainty(distance: float) -> float:
    """Map cosine distance [0, 2] onto certainty [0, 1]."""
    return round(1.0 - distance / 2.0, 4)


def _chroma_where(
    tenant_id: str,
    where: dict[str, Any] | None,
) -> dict[str, Any]:
    """
    Build a Chroma where clause: tenant filter AND any extra equalities.

    Chroma rejects a bare multi-key dict, so more than one condition is
    wrapped in an explicit $and.
    """
    conditions: list[dict[str, Any]] = [{"tenant_id": tenant_id}]
    for key, value in (where or {}).items():
        conditions.append({key: value})
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Sanitise metadata for ChromaDB compatibility.

    ChromaDB requires all metadata values to be str, int, float, or bool.
    We convert:
    - list → comma-separated string
    - None → empty string
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            sanitised[key] = ""
        elif isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
