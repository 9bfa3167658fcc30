# =============================================================================
# Context Finder — Multi-Source Retrieval over a Private Corpus
# =============================================================================
# Answers a natural-language query from a user's private corpus, indexed
# three ways (keyword, knowledge graph, vector embeddings), and returns a
# single synthesized answer with a confidence score.
#
# Package structure:
#   context_finder/
#   ├── api/          → FastAPI route handlers (context, health)
#   ├── agents/       → Retrieval adapters, search coordinator, tool
#   │                    executor, answer synthesizer, LangGraph pipeline
#   ├── db/           → Async database engine and ORM models
#   ├── models/       → Search result types + Pydantic V2 API schemas
#   └── services/     → Collaborators (LLM providers, relational store,
#                        vector stores, embeddings)
# =============================================================================
