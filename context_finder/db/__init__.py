# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, session factory, and ORM models.
#
# Key exports:
#   - async_session_factory: per-call session for store lookups
#   - Base: SQLAlchemy declarative base for ORM models
#   - UserData, KnowledgeEntity, KnowledgeRelationship, Chunk
# =============================================================================
