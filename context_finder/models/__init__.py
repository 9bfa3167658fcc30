# =============================================================================
# Models Package — Search Types and Pydantic V2 Schemas
# =============================================================================
#   - search.py: internal dataclasses flowing through the pipeline
#     (SearchResult variants, EvidenceSet, SubExecution, RefinedAnswer)
#   - requests.py / responses.py: API contract, separate from the
#     internal types so either can change without touching the other
# =============================================================================
