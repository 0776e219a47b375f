# menucard/assistant/graph.py
"""
The "find a restaurant" chat flow as a LangGraph state graph:

    semantic ──(UpstreamUnavailable, fallback on)──> lexical
        │                                              │
        └──────────────> enrich <──────────────────────┘
                            │
                         assemble -> respond -> END

With SEARCH_MODE=lexical the flow starts at `lexical`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypedDict

from langgraph.graph import END, StateGraph

from menucard.catalog.models import Restaurant
from menucard.catalog.repository import RestaurantRepository
from menucard.errors import UpstreamUnavailable
from menucard.llm.chain import ChatModel
from menucard.retrieval.lexical import TextSearcher
from menucard.retrieval.semantic import SimilaritySearcher
from menucard.types import SearchResult

from .context import build_context
from .prompt import make_messages, make_system_prompt

log = logging.getLogger(__name__)

SearchMode = Literal["semantic", "lexical"]


class ChatState(TypedDict, total=False):
    question: str
    history: list[dict[str, str]]
    mode: SearchMode
    fallback_reason: str
    results: list[SearchResult]
    restaurants: dict[str, Restaurant]
    context: str
    messages: list[dict[str, str]]
    reply: str
    trace: list[dict[str, Any]]


@dataclass
class ChatDeps:
    semantic: Callable[[], SimilaritySearcher]
    lexical: TextSearcher
    repository: RestaurantRepository
    chat: ChatModel
    search_mode: SearchMode = "semantic"
    lexical_fallback: bool = True
    threshold: float = 0.75
    limit: int = 8
    text_limit: int = 10
    items_per_restaurant: int = 3
    max_tokens: int = 500
    temperature: float = 0.7


def build_graph(deps: ChatDeps):
    def node_semantic(state: ChatState) -> ChatState:
        try:
            results = deps.semantic().search(state["question"], threshold=deps.threshold, limit=deps.limit)
        except UpstreamUnavailable as e:
            if not deps.lexical_fallback:
                raise
            log.warning("Semantic search unavailable, falling back to lexical: %s", e)
            state["fallback_reason"] = str(e)
            state.setdefault("trace", []).append({"node": "semantic", "error": str(e)})
            return state
        state["mode"] = "semantic"
        state["results"] = results
        state.setdefault("trace", []).append({"node": "semantic", "results": len(results)})
        return state

    def node_lexical(state: ChatState) -> ChatState:
        results = deps.lexical.search_documents(state["question"], limit=deps.text_limit)
        state["mode"] = "lexical"
        state["results"] = results
        state.setdefault("trace", []).append({"node": "lexical", "results": len(results)})
        return state

    def node_enrich(state: ChatState) -> ChatState:
        ids = list(dict.fromkeys(r.restaurant_id for r in state["results"] if r.restaurant_id))
        state["restaurants"] = deps.repository.get_restaurants(ids)
        state.setdefault("trace", []).append(
            {"node": "enrich", "requested": len(ids), "resolved": len(state["restaurants"])}
        )
        return state

    def node_assemble(state: ChatState) -> ChatState:
        results = state["results"]
        context = build_context(results, state["restaurants"], items_per_restaurant=deps.items_per_restaurant)
        system = make_system_prompt(context, state["question"], has_results=bool(results))
        state["context"] = context
        state["messages"] = make_messages(system, state["question"], state.get("history"))
        return state

    def node_respond(state: ChatState) -> ChatState:
        state["reply"] = deps.chat.complete(
            state["messages"], max_tokens=deps.max_tokens, temperature=deps.temperature
        )
        state.setdefault("trace", []).append({"node": "respond"})
        return state

    g = StateGraph(ChatState)
    g.add_node("lexical", node_lexical)
    g.add_node("enrich", node_enrich)
    g.add_node("assemble", node_assemble)
    g.add_node("respond", node_respond)

    if deps.search_mode == "semantic":
        g.add_node("semantic", node_semantic)
        g.set_entry_point("semantic")
        g.add_conditional_edges(
            "semantic",
            lambda state: "lexical" if "results" not in state else "enrich",
            {"lexical": "lexical", "enrich": "enrich"},
        )
    else:
        # lighter deployment: no embedding provider involved at all
        g.set_entry_point("lexical")
    g.add_edge("lexical", "enrich")
    g.add_edge("enrich", "assemble")
    g.add_edge("assemble", "respond")
    g.add_edge("respond", END)
    return g.compile()
