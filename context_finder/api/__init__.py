# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - context.py: POST /context — retrieval + synthesis for one query
#   - deps.py: caller identity dependency (user id from upstream auth)
# =============================================================================
