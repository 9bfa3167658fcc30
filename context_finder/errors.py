# =============================================================================
# Error Types
# =============================================================================
#
# Most failures inside the retrieval pipeline are recovered where they
# happen (empty expansion, zero adapter contribution). Only two kinds of
# error cross module boundaries:
#
#   CollaboratorUnavailableError — an external service (LLM, store) is
#       unreachable, rate limiting, or rejecting credentials. This is the
#       only error that leaves the core; the API layer maps `reason` to a
#       generic user-facing message.
#
#   AllSourcesFailedError — every primary search failed. Raised by the
#       search coordinator and converted into a failed tool execution, so
#       the caller sees a "not found" answer with confidence 0.
# =============================================================================

from __future__ import annotations


class ContextFinderError(Exception):
    """Base class for errors raised by this package."""


class CollaboratorUnavailableError(ContextFinderError):
    """An external collaborator could not serve the request."""

    REASONS = ("rate_limited", "connection", "auth", "unavailable")

    def __init__(self, message: str, reason: str = "unavailable") -> None:
        if reason not in self.REASONS:
            reason = "unavailable"
        super().__init__(message)
        self.reason = reason


class LLMUnavailableError(CollaboratorUnavailableError):
    """The LLM completion service is unavailable."""


class AllSourcesFailedError(ContextFinderError):
    """Keyword, knowledge graph and vector search all failed."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(
            "All primary searches failed: "
            + ", ".join(sorted(errors))
        )
        self.errors = errors
