# =============================================================================
# Services Package — External Collaborators
# =============================================================================
# The retrieval pipeline depends on three collaborator contracts, each a
# Protocol with one or more concrete backends:
#   - llm.py: LLMProvider (Anthropic, OpenAI-compatible)
#   - relational.py: RelationalStore (PostgreSQL via async SQLAlchemy)
#   - vectorstore.py: VectorIndex (ChromaDB, pgvector)
#   - embedder.py: query-concept embeddings used by the vector stores
# =============================================================================
