from .chain import ChatChain, ChatModel, build_chat_chain
from .extraction import MenuExtractor, parse_menu_json

__all__ = ["ChatChain", "ChatModel", "build_chat_chain", "MenuExtractor", "parse_menu_json"]
