# menucard/assistant/chat.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace

from .graph import ChatDeps, ChatState, build_graph

log = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)


@dataclass
class ChatReply:
    response: str
    restaurants_found: int
    search_results_count: int
    search_mode: str
    fallback_reason: str | None = None
    trace: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "response": self.response,
            "restaurants_found": self.restaurants_found,
            "search_results_count": self.search_results_count,
            "search_mode": self.search_mode,
            "fallback_reason": self.fallback_reason,
        }


class RestaurantAssistant:
    """Answers restaurant questions grounded in search results."""

    def __init__(self, deps: ChatDeps):
        self.deps = deps
        self._graph = build_graph(deps)

    def answer(self, message: str, history: list[dict[str, str]] | None = None) -> ChatReply:
        with _tracer.start_as_current_span("assistant.chat") as span:
            state: ChatState = {"question": message, "history": list(history or [])}
            final = self._graph.invoke(state)

            results = final.get("results", [])
            restaurants = {r.restaurant_id or r.metadata.get("restaurant_name") for r in results}
            restaurants.discard(None)
            reply = ChatReply(
                response=final.get("reply", ""),
                restaurants_found=len(restaurants),
                search_results_count=len(results),
                search_mode=final.get("mode", self.deps.search_mode),
                fallback_reason=final.get("fallback_reason"),
                trace=final.get("trace", []),
            )
            span.set_attribute("assistant.search_mode", reply.search_mode)
            span.set_attribute("assistant.results", reply.search_results_count)
            log.info(
                "Chat answered via %s search: %s results over %s restaurants",
                reply.search_mode, reply.search_results_count, reply.restaurants_found,
            )
            return reply
