# =============================================================================
# Tool Executor — Top-Level Sub-Executions
# =============================================================================
#
# A request runs a ToolPlan. Today the plan always holds one tool,
# `database_query`, which is the search coordinator over the user's data.
# Each tool invocation becomes one SubExecution (success flag, evidence,
# error, elapsed time); those outcomes drive both the confidence score and
# the synthesizer's "nothing found" short-circuit.
#
# Error text recorded on a SubExecution is for logs only. It never reaches
# the user-visible answer.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Literal, Protocol

from context_finder.agents.coordinator import SearchCoordinator
from context_finder.errors import CollaboratorUnavailableError
from context_finder.models.search import EvidenceSet, SubExecution

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


@dataclass
class ToolCall:
    name: str
    query: str
    priority: int = 1
    reason: str = ""


@dataclass
class ToolPlan:
    tools: list[ToolCall] = field(default_factory=list)
    strategy: Literal["parallel", "sequential"] = "parallel"


def database_query_plan(query: str) -> ToolPlan:
    """The fixed plan: search the user's private data."""
    return ToolPlan(
        tools=[ToolCall(
            name=DatabaseQueryTool.name,
            query=query,
            priority=1,
            reason="Search user private data and uploaded documents",
        )],
        strategy="parallel",
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class Tool(Protocol):
    name: str

    async def run(self, query: str, user_id: str) -> EvidenceSet:
        ...


class DatabaseQueryTool:
    """Keyword, knowledge graph and vector search over the user's data."""

    name = "database_query"

    def __init__(self, coordinator: SearchCoordinator) -> None:
        self._coordinator = coordinator

    async def run(self, query: str, user_id: str) -> EvidenceSet:
        if not user_id:
            raise ValueError("user_id is required for database queries")
        logger.info("Database query: '%s'", query[:80])
        return await self._coordinator.search(query, user_id)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ToolExecutor:
    """Runs a ToolPlan and records one SubExecution per tool."""

    def __init__(self, tools: list[Tool]) -> None:
        self._tools = {tool.name: tool for tool in tools}

    async def execute_tools(self, plan: ToolPlan, user_id: str) -> list[SubExecution]:
        """
        Execute every tool in the plan.

        "parallel" plans run their tools concurrently; "sequential" plans
        run them in priority order. Failures are captured per tool, except
        collaborator outages, which propagate.
        """
        calls = sorted(plan.tools, key=lambda c: c.priority)
        logger.info(
            "Executing %d tool(s) (%s): %s",
            len(calls), plan.strategy, ", ".join(c.name for c in calls),
        )

        if plan.strategy == "parallel":
            return list(await asyncio.gather(
                *(self._execute(call, user_id) for call in calls)
            ))

        executions = []
        for call in calls:
            executions.append(await self._execute(call, user_id))
        return executions

    async def _execute(self, call: ToolCall, user_id: str) -> SubExecution:
        start = time.monotonic()
        tool = self._tools.get(call.name)
        if tool is None:
            return SubExecution(
                tool=call.name,
                succeeded=False,
                error=f"Tool not found: {call.name}",
                elapsed=time.monotonic() - start,
            )

        try:
            data = await tool.run(call.query, user_id)
        except CollaboratorUnavailableError:
            raise
        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error("Tool %s failed after %.2fs: %s", call.name, elapsed, e)
            return SubExecution(
                tool=call.name,
                succeeded=False,
                error=str(e),
                elapsed=elapsed,
            )

        elapsed = time.monotonic() - start
        logger.info(
            "Tool %s succeeded in %.2fs with %d results",
            call.name, elapsed, data.total_results,
        )
        return SubExecution(
            tool=call.name,
            succeeded=True,
            data=data,
            elapsed=elapsed,
        )
