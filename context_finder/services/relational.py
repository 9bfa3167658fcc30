# =============================================================================
# Relational Store — Keyword Search and Knowledge Graph Lookups
# =============================================================================
#
# Four parameterized, user-scoped query operations back the keyword and
# knowledge graph adapters:
#
#   keyword_search_with_context(query, user_id, context_words)
#       → KeywordMatch rows: context window, word position, match count
#   search_entities(entity_name, user_id)
#       → EntityRow rows: name, type, description, source document
#   search_relationships(entity_name, user_id, document_id)
#       → RelationshipRow rows: subject, predicate, object
#   get_related_entities(entity_name, user_id, document_id)
#       → RelatedEntityRow rows: other entities in the same document
#
# DESIGN DECISION: Protocol (structural typing) over ABC, matching
# LLMProvider and VectorIndex. Adapters depend on the protocol; tests
# pass small fakes.
#
# DESIGN DECISION: PostgreSQL full-text search selects matching rows,
# Python cuts the context windows. ts_headline works on characters and
# fragments, not a fixed word count, so the windowing is done here where
# it is easy to test.
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import aliased

from context_finder.config import settings
from context_finder.db.engine import async_session_factory
from context_finder.db.models import KnowledgeEntity, KnowledgeRelationship, UserData

logger = logging.getLogger(__name__)

# Maximum user_data rows inspected per keyword search, best-ranked first.
_KEYWORD_ROW_LIMIT = 20

_STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "did", "do", "does",
    "for", "from", "has", "have", "how", "in", "is", "it", "me", "my", "of",
    "on", "or", "our", "the", "this", "to", "was", "we", "were", "what",
    "when", "where", "which", "who", "why", "with", "you", "your",
})

_NON_WORD = re.compile(r"[^\w]+")


# ---------------------------------------------------------------------------
# Row Types
# ---------------------------------------------------------------------------


@dataclass
class KeywordMatch:
    data_id: str
    context_text: str
    match_position: int      # word index of the match within the row
    total_matches: int       # matches of any query term within the row


@dataclass
class EntityRow:
    entity_name: str
    entity_type: str
    entity_description: str | None
    data_id: str


@dataclass
class RelationshipRow:
    subject: str
    predicate: str
    object: str
    data_id: str


@dataclass
class RelatedEntityRow:
    entity_name: str
    entity_type: str
    relationship_type: str | None
    data_id: str


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class RelationalStore(Protocol):
    """User-scoped lookups over the relational side of the corpus."""

    async def keyword_search_with_context(
        self,
        query: str,
        user_id: str,
        context_words: int = 50,
    ) -> list[KeywordMatch]:
        ...

    async def search_entities(
        self,
        entity_name: str,
        user_id: str,
    ) -> list[EntityRow]:
        ...

    async def search_relationships(
        self,
        entity_name: str,
        user_id: str,
        document_id: str,
    ) -> list[RelationshipRow]:
        ...

    async def get_related_entities(
        self,
        entity_name: str,
        user_id: str,
        document_id: str,
    ) -> list[RelatedEntityRow]:
        ...


# ---------------------------------------------------------------------------
# Implementation: PostgreSQL via async SQLAlchemy
# ---------------------------------------------------------------------------


class SqlRelationalStore:
    """
    PostgreSQL-backed relational store.

    Each call opens its own session; concurrent adapters never share one.
    Errors (connection, SQL) propagate to the adapter, which decides how
    much of its contribution to drop.
    """

    async def keyword_search_with_context(
        self,
        query: str,
        user_id: str,
        context_words: int = 50,
    ) -> list[KeywordMatch]:
        ts_vector = func.to_tsvector("english", UserData.content)
        ts_query = func.plainto_tsquery("english", query)

        stmt = (
            select(UserData.id, UserData.content)
            .where(UserData.user_id == user_id)
            .where(ts_vector.op("@@")(ts_query))
            .order_by(func.ts_rank(ts_vector, ts_query).desc())
            .limit(_KEYWORD_ROW_LIMIT)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        matches: list[KeywordMatch] = []
        for data_id, content in rows:
            matches.extend(
                extract_keyword_contexts(
                    data_id=data_id,
                    text=content,
                    query=query,
                    context_words=context_words,
                    max_matches=settings.keyword_max_matches_per_document,
                )
            )

        logger.debug(
            "Keyword search: %d rows, %d context windows (user=%s)",
            len(rows), len(matches), user_id,
        )
        return matches

    async def search_entities(
        self,
        entity_name: str,
        user_id: str,
    ) -> list[EntityRow]:
        pattern = f"%{_escape_like(entity_name)}%"
        exact_first = case(
            (func.lower(KnowledgeEntity.entity_name) == entity_name.lower(), 0),
            else_=1,
        )

        stmt = (
            select(KnowledgeEntity)
            .where(KnowledgeEntity.user_id == user_id)
            .where(KnowledgeEntity.entity_name.ilike(pattern, escape="\\"))
            .order_by(exact_first, KnowledgeEntity.entity_name)
            .limit(settings.kg_entity_match_limit)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            entities = result.scalars().all()

        return [
            EntityRow(
                entity_name=e.entity_name,
                entity_type=e.entity_type,
                entity_description=e.entity_description,
                data_id=e.data_id,
            )
            for e in entities
        ]

    async def search_relationships(
        self,
        entity_name: str,
        user_id: str,
        document_id: str,
    ) -> list[RelationshipRow]:
        name = entity_name.lower()
        stmt = (
            select(KnowledgeRelationship)
            .where(KnowledgeRelationship.user_id == user_id)
            .where(KnowledgeRelationship.data_id == document_id)
            .where(
                or_(
                    func.lower(KnowledgeRelationship.subject) == name,
                    func.lower(KnowledgeRelationship.object) == name,
                )
            )
            .order_by(KnowledgeRelationship.id)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            relationships = result.scalars().all()

        return [
            RelationshipRow(
                subject=r.subject,
                predicate=r.predicate,
                object=r.object,
                data_id=r.data_id,
            )
            for r in relationships
        ]

    async def get_related_entities(
        self,
        entity_name: str,
        user_id: str,
        document_id: str,
    ) -> list[RelatedEntityRow]:
        name = entity_name.lower()
        rel = aliased(KnowledgeRelationship)
        other = func.lower(KnowledgeEntity.entity_name)

        # Outer join picks up the predicate when the two entities are
        # directly linked; co-located entities without a link still appear.
        stmt = (
            select(KnowledgeEntity, rel.predicate)
            .outerjoin(
                rel,
                and_(
                    rel.user_id == user_id,
                    rel.data_id == KnowledgeEntity.data_id,
                    or_(
                        and_(func.lower(rel.subject) == name, func.lower(rel.object) == other),
                        and_(func.lower(rel.object) == name, func.lower(rel.subject) == other),
                    ),
                ),
            )
            .where(KnowledgeEntity.user_id == user_id)
            .where(KnowledgeEntity.data_id == document_id)
            .where(other != name)
            .order_by(KnowledgeEntity.entity_name)
        )

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            RelatedEntityRow(
                entity_name=entity.entity_name,
                entity_type=entity.entity_type,
                relationship_type=predicate,
                data_id=entity.data_id,
            )
            for entity, predicate in rows
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_store: SqlRelationalStore | None = None


def get_relational_store() -> SqlRelationalStore:
    """Return the shared relational store (stateless; sessions are per call)."""
    global _store
    if _store is None:
        _store = SqlRelationalStore()
    return _store


# ---------------------------------------------------------------------------
# Context Windows
# ---------------------------------------------------------------------------


def query_terms(query: str) -> list[str]:
    """Lowercased, punctuation-free query words minus stopwords."""
    terms = []
    for word in query.split():
        term = _NON_WORD.sub("", word.lower())
        if term and term not in _STOPWORDS and term not in terms:
            terms.append(term)
    return terms


def extract_keyword_contexts(
    data_id: str,
    text: str,
    query: str,
    context_words: int,
    max_matches: int,
) -> list[KeywordMatch]:
    """
    Cut word windows around query-term matches in `text`.

    A word matches when its normalised form starts with a query term, so
    "contracts" matches "contract" the way the full-text stemmer would.
    Each window spans `context_words` words on either side. A match that
    falls inside the previous window does not start a new one.

    When full-text search matched the row but no literal term is found
    (stemming differences), the opening window of the row is returned.

    Example:
        >>> extract_keyword_contexts("d1", "alpha beta gamma", "beta", 1, 3)
        [KeywordMatch(data_id='d1', context_text='alpha beta gamma',
                      match_position=1, total_matches=1)]
    """
    words = text.split()
    if not words:
        return []

    terms = query_terms(query)
    positions = [
        i for i, word in enumerate(words)
        if any(_NON_WORD.sub("", word.lower()).startswith(t) for t in terms)
    ]

    if not positions:
        return [
            KeywordMatch(
                data_id=data_id,
                context_text=" ".join(words[: context_words * 2 + 1]),
                match_position=0,
                total_matches=1,
            )
        ]

    matches: list[KeywordMatch] = []
    window_end = -1
    for pos in positions:
        if len(matches) >= max_matches:
            break
        if pos <= window_end:
            continue
        start = max(0, pos - context_words)
        window_end = pos + context_words
        matches.append(
            KeywordMatch(
                data_id=data_id,
                context_text=" ".join(words[start: window_end + 1]),
                match_position=pos,
                total_matches=len(positions),
            )
        )
    return matches


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so entity names match literally."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
