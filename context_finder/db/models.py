# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# The private corpus, as seen by the retrieval pipeline. Every table is
# partitioned by `user_id`; every query filters on it.
#
# SCHEMA OVERVIEW:
#
# ┌──────────────┐   ┌────────────────────────┐   ┌──────────────────────────┐
# │  user_data   │   │  knowledge_entities    │   │  knowledge_relationships │
# ├──────────────┤   ├────────────────────────┤   ├──────────────────────────┤
# │ id (PK)      │◀──│ data_id                │   │ data_id ─────────────────┼─▶ user_data.id
# │ user_id      │   │ user_id                │   │ user_id                  │
# │ title        │   │ entity_name            │   │ subject                  │
# │ content      │   │ entity_type            │   │ predicate                │
# │ created_at   │   │ entity_description     │   │ object                   │
# └──────────────┘   └────────────────────────┘   └──────────────────────────┘
#
# ┌──────────────────────────────────┐
# │  chunks (pgvector backend only)  │
# ├──────────────────────────────────┤
# │ id, user_id, document_id         │
# │ content, embedding (vector(N))   │
# │ metadata_ (jsonb)                │
# └──────────────────────────────────┘
#
# DESIGN DECISIONS:
#
# 1. Document identifiers are strings. They are produced by the ingestion
#    side (out of scope here) and are only unique within one user's data.
#
# 2. The knowledge graph is two flat tables, not a graph database. A
#    relationship is a (subject, predicate, object) triple scoped to the
#    document it was extracted from.
#
# 3. GIN full-text index on user_data.content backs keyword search.
# =============================================================================

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from context_finder.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class UserData(Base):
    """A piece of uploaded user content, searchable by keyword."""

    __tablename__ = "user_data"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<UserData(id={self.id!r}, user_id={self.user_id!r})>"


class KnowledgeEntity(Base):
    """A named concept extracted from one document."""

    __tablename__ = "knowledge_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    data_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_data.id", ondelete="CASCADE"), nullable=False
    )
    entity_name: Mapped[str] = mapped_column(String(500), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_knowledge_entities_user_name", "user_id", "entity_name"),
        Index("ix_knowledge_entities_user_doc", "user_id", "data_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<KnowledgeEntity(name={self.entity_name!r}, "
            f"type={self.entity_type!r}, data_id={self.data_id!r})>"
        )


class KnowledgeRelationship(Base):
    """A directed (subject, predicate, object) fact within one document."""

    __tablename__ = "knowledge_relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    data_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_data.id", ondelete="CASCADE"), nullable=False
    )
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    predicate: Mapped[str] = mapped_column(String(255), nullable=False)
    object: Mapped[str] = mapped_column(String(500), nullable=False)

    __table_args__ = (
        Index("ix_knowledge_relationships_user_doc", "user_id", "data_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<KnowledgeRelationship({self.subject!r} → {self.predicate!r} "
            f"→ {self.object!r})>"
        )


class Chunk(Base):
    """An embedded passage, used when VECTORSTORE_TYPE=pgvector."""

    __tablename__ = "chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    document_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding = mapped_column(Vector(settings.embedding_dimensions), nullable=True)

    # Trailing underscore avoids conflict with SQLAlchemy's `.metadata`
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )

    __table_args__ = (
        Index("ix_chunks_user_document", "user_id", "document_id"),
    )

    def __repr__(self) -> str:
        return f"<Chunk(id={self.id}, document_id={self.document_id!r})>"


# =============================================================================
# Database Indexes
# =============================================================================
#
# Full-text index backing keyword search. The expression must match the
# one used in SqlRelationalStore.keyword_search_with_context exactly, or
# PostgreSQL will not use the index.
# =============================================================================

user_data_fts_idx = Index(
    "ix_user_data_content_fts",
    func.to_tsvector("english", UserData.content),
    postgresql_using="gin",
)

# HNSW index on chunk embeddings, cosine distance to match the search
# operator used by PgVectorStore.
chunk_embedding_idx = Index(
    "ix_chunks_embedding_hnsw",
    Chunk.embedding,
    postgresql_using="hnsw",
    postgresql_with={"m": 16, "ef_construction": 64},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)
