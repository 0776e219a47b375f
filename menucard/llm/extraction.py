# menucard/llm/extraction.py
"""
Menu image -> structured `MenuExtraction` through a vision chat model.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from menucard.catalog.models import MenuExtraction
from menucard.errors import MalformedUpstreamResponse

from .openrouter import OpenRouterChat

log = logging.getLogger(__name__)

EXTRACTION_RULES = """You are an expert at reading restaurant menus from images. Extract all menu items with their details in a structured JSON format.

Rules:
1. Extract restaurant name if visible
2. Organize items by categories (Appetizers, Main Courses, Desserts, Beverages, etc.)
3. For each item extract: name, description (if available), price
4. Identify dietary information (vegetarian, vegan, gluten-free, spicy, etc.)
5. Clean up text and fix any OCR errors
6. Return only valid JSON, no markdown or extra text

Response format:
{
  "restaurant_name": "Restaurant Name",
  "categories": [
    {
      "name": "Category Name",
      "items": [
        {
          "name": "Item Name",
          "description": "Item description",
          "price": "10.99",
          "dietary_info": ["vegetarian", "spicy"]
        }
      ]
    }
  ]
}"""

_FENCED = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE = re.compile(r"\{.*\}", re.DOTALL)


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def parse_menu_json(text: str) -> MenuExtraction:
    """
    Parse a model reply into a MenuExtraction.

    Tries the whole reply, then a ```json fenced block, then the outermost
    {...} span. Raises MalformedUpstreamResponse when none parses or the
    object does not have the menu shape.
    """
    if not text or not text.strip():
        raise MalformedUpstreamResponse("Empty menu extraction reply", raw=text)

    data = _loads_object(text.strip())
    if data is None:
        for pattern in (_FENCED, _BARE):
            m = pattern.search(text)
            if m:
                data = _loads_object(m.group(1) if m.groups() else m.group(0))
                if data is not None:
                    break
    if data is None:
        raise MalformedUpstreamResponse("Failed to parse menu extraction result", raw=text)

    try:
        return MenuExtraction.model_validate(data)
    except ValidationError as e:
        raise MalformedUpstreamResponse(f"Menu extraction has an invalid shape: {e}", raw=text) from e


class MenuExtractor:
    def __init__(self, chat: OpenRouterChat, model: str, *, max_tokens: int = 2000, temperature: float = 0.1):
        self.chat = chat
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def extract(self, image_url: str) -> MenuExtraction:
        messages = [
            {"role": "system", "content": EXTRACTION_RULES},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Please extract all menu items from this image and format them as JSON."},
                    {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
                ],
            },
        ]
        text = self.chat.complete(
            messages, max_tokens=self.max_tokens, temperature=self.temperature, model=self.model
        )
        menu = parse_menu_json(text)
        log.info(
            "Extracted %s categories / %s items from %s",
            len(menu.categories), sum(len(c.items) for c in menu.categories), image_url,
        )
        return menu
