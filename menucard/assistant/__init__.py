from .chat import ChatReply, RestaurantAssistant
from .context import NO_RESULTS, build_context
from .graph import ChatDeps, build_graph

__all__ = ["ChatReply", "RestaurantAssistant", "ChatDeps", "build_graph", "build_context", "NO_RESULTS"]
