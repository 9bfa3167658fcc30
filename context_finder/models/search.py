# =============================================================================
# Search Result Types — Tagged Union over Retrieval Sources
# =============================================================================
#
# Every adapter produces SearchResult items. The source is fixed by the
# subclass, so consumers can match on the variant:
#
#   match result:
#       case KeywordResult(): ...
#       case KnowledgeGraphResult(): ...
#       case VectorResult(): ...
#
# Results are frozen once created. `score` is only set by vector hits and
# is the index's similarity certainty; it is never clamped or validated.
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar


class SearchSource(str, enum.Enum):
    """The three retrieval mechanisms."""

    KEYWORD = "keyword"
    KNOWLEDGE_GRAPH = "knowledge_graph"
    VECTOR = "vector"


@dataclass(frozen=True)
class SearchResult:
    """A single piece of retrieved evidence."""

    source: ClassVar[SearchSource]

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float | None = None


@dataclass(frozen=True)
class KeywordResult(SearchResult):
    source: ClassVar[SearchSource] = SearchSource.KEYWORD


@dataclass(frozen=True)
class KnowledgeGraphResult(SearchResult):
    source: ClassVar[SearchSource] = SearchSource.KNOWLEDGE_GRAPH


@dataclass(frozen=True)
class VectorResult(SearchResult):
    source: ClassVar[SearchSource] = SearchSource.VECTOR


@dataclass(frozen=True)
class EntityWithDocument:
    """An entity confirmed in the knowledge graph and the document it came from."""

    entity: str
    document_id: str


@dataclass
class SourceOutcome:
    """
    What one primary adapter contributed to a request.

    `error` is set when the adapter could not reach its backing store at
    all. Partial failures (one query, one entity) are logged and leave
    `error` unset.
    """

    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class KnowledgeGraphOutcome(SourceOutcome):
    """Graph adapter output: results plus what the entity expansion needs."""

    entities: list[str] = field(default_factory=list)
    entities_with_documents: list[EntityWithDocument] = field(default_factory=list)


@dataclass
class EvidenceSet:
    """
    Ordered evidence for one request.

    Order is keyword, graph, vector, entity-vector. No deduplication.
    """

    results: list[SearchResult]
    query_variations: list[str]
    source_counts: dict[str, int]

    @property
    def total_results(self) -> int:
        return len(self.results)


@dataclass
class SubExecution:
    """One attempted top-level tool invocation."""

    tool: str
    succeeded: bool
    data: EvidenceSet | None = None
    error: str | None = None
    elapsed: float = 0.0  # seconds


@dataclass
class RefinedAnswer:
    """The terminal artifact returned to the caller."""

    content: str
    confidence: int
