# =============================================================================
# LangGraph Orchestrator — Retrieval and Synthesis Pipeline
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ execute ──▶ refine ──▶ END
#
#   execute — runs the tool plan (database_query → search coordinator) and
#             records one SubExecution per tool
#   refine  — confidence scoring + answer synthesis
#
# DESIGN DECISION: Linear graph (no conditional edges).
# Both nodes always run; the "nothing found" short-circuit lives in the
# synthesizer. The concurrent fan-out happens inside the coordinator,
# not as parallel graph branches.
#
# DESIGN DECISION: Graph built from injected collaborators.
# `build_pipeline(executor, synthesizer)` compiles a graph around the
# objects it is given, so tests compile one around fakes. The default
# pipeline is built lazily from the configured LLM, relational store and
# vector store on first use, not at import time, so importing this module
# needs no API keys.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from context_finder.agents.coordinator import build_coordinator
from context_finder.agents.executor import (
    DatabaseQueryTool,
    ToolExecutor,
    database_query_plan,
)
from context_finder.agents.synthesizer import AnswerSynthesizer
from context_finder.models.search import RefinedAnswer, SubExecution
from context_finder.services.llm import get_llm_provider
from context_finder.services.relational import get_relational_store
from context_finder.services.vectorstore import get_vector_store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pipeline State Schema
# ---------------------------------------------------------------------------


class PipelineState(TypedDict, total=False):
    """
    State that flows through the graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    query: str
    user_id: str

    # --- Intermediate (set by execute) ---
    executions: list[SubExecution]

    # --- Output (set by refine) ---
    answer: str
    confidence: int


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------


def build_pipeline(executor: ToolExecutor, synthesizer: AnswerSynthesizer) -> Any:
    """Compile the execute → refine graph around the given collaborators."""

    async def execute_node(state: PipelineState) -> dict:
        plan = database_query_plan(state["query"])
        executions = await executor.execute_tools(plan, state["user_id"])
        return {"executions": executions}

    async def refine_node(state: PipelineState) -> dict:
        refined = await synthesizer.synthesize(
            state["query"], state.get("executions", []),
        )
        return {"answer": refined.content, "confidence": refined.confidence}

    builder = StateGraph(PipelineState)
    builder.add_node("execute", execute_node)
    builder.add_node("refine", refine_node)

    builder.add_edge(START, "execute")
    builder.add_edge("execute", "refine")
    builder.add_edge("refine", END)

    return builder.compile()


_pipeline: Any = None


def get_pipeline() -> Any:
    """Lazily build the pipeline from the configured collaborators."""
    global _pipeline
    if _pipeline is None:
        llm = get_llm_provider()
        coordinator = build_coordinator(
            llm=llm,
            store=get_relational_store(),
            index=get_vector_store(),
        )
        _pipeline = build_pipeline(
            executor=ToolExecutor([DatabaseQueryTool(coordinator)]),
            synthesizer=AnswerSynthesizer(llm),
        )
    return _pipeline


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_retrieval_and_synthesis(
    query: str,
    user_id: str,
    pipeline: Any = None,
) -> RefinedAnswer:
    """
    Answer `query` from `user_id`'s private data.

    Args:
        query: The natural-language query (non-empty).
        user_id: The authenticated user; scopes every store and index call.
        pipeline: Optional compiled graph; defaults to get_pipeline().

    Returns:
        RefinedAnswer with the answer text and a 0–95 confidence.

    Raises:
        CollaboratorUnavailableError: An external service is down. Every
            other failure is absorbed into the answer.
    """
    graph = pipeline or get_pipeline()

    logger.info("Context finder received: '%s' (user=%s)", query[:80], user_id)

    result = await graph.ainvoke({"query": query, "user_id": user_id})

    answer = RefinedAnswer(
        content=result.get("answer", ""),
        confidence=result.get("confidence", 0),
    )
    logger.info("Context finding completed with %d%% confidence", answer.confidence)
    return answer
