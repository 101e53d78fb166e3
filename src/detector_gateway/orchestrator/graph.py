from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from langgraph.graph import END, StateGraph

from detector_gateway.orchestrator.nodes import (
    PipelineDeps,
    cache_lookup_node,
    fallback_provider_node,
    persist_node,
    primary_provider_node,
    quota_node,
    route_after_cache,
    route_after_fallback,
    route_after_primary,
    unavailable_node,
    validate_node,
)
from detector_gateway.orchestrator.state import ClassificationState


def build_graph(*, deps: PipelineDeps):
    """
    Returns a compiled LangGraph runnable.

    validate -> quota -> cache_lookup -> (finish | primary_provider)
    primary_provider -> (persist | fallback_provider)
    fallback_provider -> (persist | unavailable)
    persist -> finish
    """

    graph = StateGraph(ClassificationState)

    graph.add_node("validate", _bind_deps(validate_node, deps))
    graph.add_node("quota", _bind_deps(quota_node, deps))
    graph.add_node("cache_lookup", _bind_deps(cache_lookup_node, deps))
    graph.add_node("primary_provider", _bind_deps(primary_provider_node, deps))
    graph.add_node("fallback_provider", _bind_deps(fallback_provider_node, deps))
    graph.add_node("unavailable", unavailable_node)
    graph.add_node("persist", _bind_deps(persist_node, deps))
    graph.add_node("finish", _finish_node)

    graph.set_entry_point("validate")

    graph.add_edge("validate", "quota")
    graph.add_edge("quota", "cache_lookup")
    graph.add_conditional_edges(
        "cache_lookup",
        route_after_cache,
        {"finish": "finish", "primary_provider": "primary_provider"},
    )
    graph.add_conditional_edges(
        "primary_provider",
        route_after_primary,
        {"persist": "persist", "fallback_provider": "fallback_provider"},
    )
    graph.add_conditional_edges(
        "fallback_provider",
        route_after_fallback,
        {"persist": "persist", "unavailable": "unavailable"},
    )
    graph.add_edge("persist", "finish")
    graph.add_edge("unavailable", END)
    graph.add_edge("finish", END)

    return graph.compile()


def _bind_deps(
    fn: Callable[..., Awaitable[dict[str, Any]]],
    deps: PipelineDeps,
) -> Callable[[ClassificationState], Awaitable[dict[str, Any]]]:
    async def _wrapped(state: ClassificationState) -> dict[str, Any]:
        return await fn(state, deps=deps)

    return _wrapped


async def _finish_node(state: ClassificationState) -> dict[str, Any]:
    return {"source": state.get("source", "fresh")}
