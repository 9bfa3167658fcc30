# =============================================================================
# Answer Synthesizer — Confidence Scoring and Final Answer
# =============================================================================
#
# Takes the original query and the tool sub-executions, and returns one
# RefinedAnswer:
#
#   - nothing succeeded → fixed "not found" text, confidence 0, no LLM call
#   - otherwise         → one LLM call over all successful evidence,
#                         confidence from calculate_confidence()
#
# CONFIDENCE:
# Computed from top-level sub-execution outcomes, not from per-source
# results. Success count sets a ceiling:
#
#   successes ≥ 3 → ≤ 95      successes = 2 → ≤ 85      successes = 1 → ≤ 70
#
# and the success rate applies underneath it. The score never reaches 100.
# With the single `database_query` tool the ceiling is 70; the higher
# tiers only come into play if more tools join the plan.
# =============================================================================

from __future__ import annotations

import logging

from context_finder.config import settings
from context_finder.errors import CollaboratorUnavailableError
from context_finder.models.search import (
    KeywordResult,
    KnowledgeGraphResult,
    RefinedAnswer,
    SearchResult,
    SubExecution,
    VectorResult,
)
from context_finder.services.llm import LLMProvider

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = (
    "I couldn't find the information needed to answer your query. "
    "Please try rephrasing."
)
EMPTY_ANSWER_MESSAGE = "Unable to generate response"

_SYNTHESIS_SYSTEM = """Create a comprehensive answer based on the \
retrieved information.

Instructions:
1. Answer the query directly
2. Combine all information coherently
3. Remove duplicates
4. Be conversational and helpful
5. Do NOT mention the tools, searches or databases used"""


def calculate_confidence(executions: list[SubExecution]) -> int:
    """
    Confidence percentage (0–95) from sub-execution outcomes.

    Examples:
        1 of 1 succeeded → 70
        2 of 2 succeeded → 85
        3 of 3 succeeded → 95
        2 of 4 succeeded → 50
    """
    total = len(executions)
    if total == 0:
        return 0

    successes = sum(1 for e in executions if e.succeeded)
    success_rate = successes / total * 100

    if successes >= 3:
        confidence = min(95.0, success_rate)
    elif successes == 2:
        confidence = min(85.0, success_rate)
    elif successes == 1:
        confidence = min(70.0, success_rate)
    else:
        confidence = success_rate

    return int(round(confidence))


class AnswerSynthesizer:
    """Writes the final answer from the evidence of successful tools."""

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def synthesize(
        self,
        query: str,
        executions: list[SubExecution],
    ) -> RefinedAnswer:
        """
        Produce the answer for `query`.

        Raises:
            CollaboratorUnavailableError: The LLM service is down. Any other
                synthesis failure falls back to a fixed message.
        """
        successful = [e for e in executions if e.succeeded]
        logger.info(
            "Synthesizing: %d of %d tool executions succeeded",
            len(successful), len(executions),
        )

        if not successful:
            logger.warning("No successful tool executions")
            return RefinedAnswer(content=NOT_FOUND_MESSAGE, confidence=0)

        user_message = (
            f'ORIGINAL QUERY: "{query}"\n\n'
            f"RETRIEVED INFORMATION:\n\n{format_evidence(successful)}\n\n"
            "Provide the answer:"
        )

        try:
            response = await self._llm.complete(
                messages=[{"role": "user", "content": user_message}],
                system=_SYNTHESIS_SYSTEM,
                model=settings.stage_model("refiner"),
                max_tokens=2000,
            )
            content = response.content.strip() or EMPTY_ANSWER_MESSAGE
        except CollaboratorUnavailableError:
            raise
        except Exception:
            logger.exception("Answer synthesis failed")
            content = EMPTY_ANSWER_MESSAGE

        confidence = calculate_confidence(executions)
        logger.info(
            "Synthesis complete: %d chars, %d%% confidence",
            len(content), confidence,
        )
        return RefinedAnswer(content=content, confidence=confidence)


# ---------------------------------------------------------------------------
# Evidence Formatting
# ---------------------------------------------------------------------------


def format_evidence(executions: list[SubExecution]) -> str:
    """
    Render successful evidence as numbered, labelled passages.

    Example output:
        [1] Document excerpt:
        ...the renewal terms for Acme Corp were agreed in March...

        ---

        [2] Knowledge graph:
        Relationship: Acme Corp → signed → Master Services Agreement
    """
    sections = []
    n = 0
    for execution in executions:
        if execution.data is None:
            continue
        for result in execution.data.results:
            n += 1
            sections.append(f"[{n}] {_label(result)}:\n{result.content}")
    if not sections:
        return "(no matching passages)"
    return "\n\n---\n\n".join(sections)


def _label(result: SearchResult) -> str:
    match result:
        case KeywordResult():
            return "Document excerpt"
        case KnowledgeGraphResult():
            return "Knowledge graph"
        case VectorResult() if result.metadata.get("from_knowledge_graph"):
            return f"Passage about {result.metadata.get('entity')}"
        case VectorResult():
            return "Related passage"
        case _:
            return "Evidence"
