# =============================================================================
# Query Expander — Alternate Phrasings for Recall
# =============================================================================
#
# A user's wording may not match the wording of their own documents in
# embedding space. Two rephrasings (synonyms, a different aspect of the
# question) give the vector search three shots instead of one.
#
# Expansion is best-effort: any failure returns [] and the pipeline
# continues with the original query alone.
# =============================================================================

from __future__ import annotations

import json
import logging

from context_finder.config import settings
from context_finder.services.llm import LLMProvider, strip_code_fences

logger = logging.getLogger(__name__)

MAX_REPHRASINGS = 2

_REPHRASE_PROMPT = """Rephrase this query in 2 different ways to capture \
different aspects and synonyms.
Original query: "{query}"

Return ONLY a JSON array with 2 rephrased versions:
["rephrased version 1", "rephrased version 2"]"""


class QueryExpander:
    """Produces up to two alternate phrasings of a query."""

    def __init__(self, llm: LLMProvider) -> None:
        self._llm = llm

    async def expand(self, query: str) -> list[str]:
        """
        Ask the LLM for alternate phrasings of `query`.

        Returns:
            0–2 non-empty strings, never the original query itself.
        """
        try:
            response = await self._llm.complete(
                messages=[{
                    "role": "user",
                    "content": _REPHRASE_PROMPT.format(query=query),
                }],
                model=settings.stage_model("rephrase"),
                max_tokens=400,
            )
            parsed = json.loads(strip_code_fences(response.content) or "[]")
        except Exception as e:
            logger.warning(
                "Failed to rephrase query, using original only: %s", e,
            )
            return []

        if not isinstance(parsed, list):
            logger.warning(
                "Rephrase response was %s, not a list; using original only",
                type(parsed).__name__,
            )
            return []

        rephrased = []
        for item in parsed:
            if not isinstance(item, str):
                continue
            text = item.strip()
            if text and text != query and text not in rephrased:
                rephrased.append(text)
        return rephrased[:MAX_REPHRASINGS]
