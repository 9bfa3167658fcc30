# =============================================================================
# Agents Package — Retrieval Fusion Pipeline
# =============================================================================
#   - expander.py: query rephrasing for recall
#   - keyword.py: full-text search adapter
#   - knowledge_graph.py: entity extraction + graph traversal adapter
#   - vector.py: vector search adapter + entity-driven expansion
#   - coordinator.py: concurrent fan-out, join, ordered merge
#   - executor.py: tool plan execution, one SubExecution per tool
#   - synthesizer.py: confidence scoring + final answer
#   - orchestrator.py: LangGraph graph (execute → refine) and the
#     run_retrieval_and_synthesis() entry point
# =============================================================================
