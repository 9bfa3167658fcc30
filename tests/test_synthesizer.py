# =============================================================================
# Unit Tests — Confidence Scoring and Answer Synthesis
# =============================================================================
#
# The LLM is an AsyncMock, so these run without API keys.
# =============================================================================

import asyncio
from unittest.mock import AsyncMock

import pytest

from context_finder.agents.synthesizer import (
    EMPTY_ANSWER_MESSAGE,
    NOT_FOUND_MESSAGE,
    AnswerSynthesizer,
    calculate_confidence,
    format_evidence,
)
from context_finder.errors import LLMUnavailableError
from context_finder.models.search import (
    EvidenceSet,
    KeywordResult,
    KnowledgeGraphResult,
    SubExecution,
    VectorResult,
)
from context_finder.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _executions(successes: int, total: int) -> list[SubExecution]:
    return [
        SubExecution(tool=f"tool_{i}", succeeded=i < successes)
        for i in range(total)
    ]


def _evidence() -> EvidenceSet:
    return EvidenceSet(
        results=[
            KeywordResult(content="the Acme Corp renewal was signed in March"),
            KnowledgeGraphResult(
                content="Relationship: Acme Corp → signed → Master Services Agreement",
                metadata={"type": "relationship"},
            ),
            VectorResult(content="Acme pays quarterly", score=0.8),
            VectorResult(
                content="Jane Doe owns the Acme account",
                score=0.7,
                metadata={"entity": "Acme Corp", "from_knowledge_graph": True},
            ),
        ],
        query_variations=["who owns acme?"],
        source_counts={"keyword": 1, "knowledge_graph": 1, "vector": 2},
    )


def _mock_llm(content: str = "Jane Doe owns the Acme account.") -> AsyncMock:
    llm = AsyncMock()
    llm.complete = AsyncMock(return_value=LLMResponse(
        content=content, model="fake-model", input_tokens=100, output_tokens=20,
    ))
    return llm


# ---------------------------------------------------------------------------
# Test: Confidence Scoring
# ---------------------------------------------------------------------------


class TestCalculateConfidence:
    """Tests for the success-count and success-rate confidence formula."""

    @pytest.mark.parametrize(
        "successes,total,expected",
        [
            (1, 1, 70),
            (2, 2, 85),
            (3, 3, 95),
            (2, 4, 50),
            (2, 3, 67),
            (1, 4, 25),
            (0, 3, 0),
            (5, 5, 95),
        ],
    )
    def test_known_values(self, successes, total, expected):
        assert calculate_confidence(_executions(successes, total)) == expected

    def test_no_executions(self):
        assert calculate_confidence([]) == 0

    def test_monotonic_in_successes_and_never_above_95(self):
        for total in range(1, 8):
            scores = [
                calculate_confidence(_executions(s, total))
                for s in range(total + 1)
            ]
            assert scores == sorted(scores)
            assert all(0 <= score <= 95 for score in scores)


# ---------------------------------------------------------------------------
# Test: Answer Synthesizer
# ---------------------------------------------------------------------------


class TestAnswerSynthesizer:
    """Tests for the single synthesis call and its fallbacks."""

    def test_nothing_succeeded_skips_llm(self):
        llm = _mock_llm()
        executions = [SubExecution(tool="database_query", succeeded=False, error="x")]

        answer = _run(AnswerSynthesizer(llm).synthesize("who owns acme?", executions))

        assert answer.content == NOT_FOUND_MESSAGE
        assert answer.confidence == 0
        llm.complete.assert_not_called()

    def test_success_makes_one_llm_call(self):
        llm = _mock_llm()
        executions = [SubExecution(
            tool="database_query", succeeded=True, data=_evidence(),
        )]

        answer = _run(AnswerSynthesizer(llm).synthesize("who owns acme?", executions))

        assert answer.content == "Jane Doe owns the Acme account."
        assert answer.confidence == 70
        llm.complete.assert_awaited_once()

        kwargs = llm.complete.call_args.kwargs
        assert kwargs["max_tokens"] == 2000
        assert "Do NOT mention" in kwargs["system"]
        prompt = kwargs["messages"][0]["content"]
        assert '"who owns acme?"' in prompt
        assert "Acme pays quarterly" in prompt

    def test_empty_output_uses_fallback_text(self):
        llm = _mock_llm(content="   ")
        executions = [SubExecution(tool="database_query", succeeded=True, data=_evidence())]

        answer = _run(AnswerSynthesizer(llm).synthesize("q", executions))

        assert answer.content == EMPTY_ANSWER_MESSAGE
        assert answer.confidence == 70

    def test_unexpected_llm_error_uses_fallback_text(self):
        llm = AsyncMock()
        llm.complete = AsyncMock(side_effect=KeyError("choices"))
        executions = [SubExecution(tool="database_query", succeeded=True, data=_evidence())]

        answer = _run(AnswerSynthesizer(llm).synthesize("q", executions))

        assert answer.content == EMPTY_ANSWER_MESSAGE
        assert answer.confidence == 70

    def test_llm_outage_propagates(self):
        llm = AsyncMock()
        llm.complete = AsyncMock(
            side_effect=LLMUnavailableError("429", reason="rate_limited"),
        )
        executions = [SubExecution(tool="database_query", succeeded=True, data=_evidence())]

        with pytest.raises(LLMUnavailableError):
            _run(AnswerSynthesizer(llm).synthesize("q", executions))

    def test_failed_tool_lowers_confidence(self):
        llm = _mock_llm()
        executions = [
            SubExecution(tool="database_query", succeeded=True, data=_evidence()),
            SubExecution(tool="web_search", succeeded=False, error="timeout"),
        ]

        answer = _run(AnswerSynthesizer(llm).synthesize("q", executions))

        assert answer.confidence == 50


# ---------------------------------------------------------------------------
# Test: Evidence Formatting
# ---------------------------------------------------------------------------


class TestFormatEvidence:
    """Tests for the numbered evidence block sent to the LLM."""

    def test_labels_each_source(self):
        text = format_evidence([
            SubExecution(tool="database_query", succeeded=True, data=_evidence()),
        ])

        assert "[1] Document excerpt:" in text
        assert "[2] Knowledge graph:" in text
        assert "[3] Related passage:" in text
        assert "[4] Passage about Acme Corp:" in text
        assert text.count("---") == 3

    def test_no_results(self):
        empty = EvidenceSet(results=[], query_variations=["q"], source_counts={})
        assert format_evidence([
            SubExecution(tool="database_query", succeeded=True, data=empty),
        ]) == "(no matching passages)"
