# menucard/assistant/context.py
"""
Render search results as grounding context for the chat model.

Results are grouped per restaurant in first-seen order (i.e. best match
first). Each section carries the restaurant profile, the matched categories
and at most `items_per_restaurant` matched items. The number of sections is
bounded by the upstream result limit only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from menucard.catalog.models import Restaurant
from menucard.index.documents import UNNAMED_ITEM
from menucard.types import SearchResult

log = logging.getLogger(__name__)

NO_RESULTS = (
    "I couldn't find any restaurants that closely match your query. "
    "I'll provide general assistance."
)
ITEMS_PER_RESTAURANT = 3


@dataclass
class RestaurantSection:
    name: str
    profile: dict[str, Any] = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)

    def add(self, result: SearchResult) -> None:
        meta = result.metadata
        if result.content_type == "category":
            name = meta.get("category_name")
            if name and name not in self.categories:
                self.categories.append(name)
        elif result.content_type == "menu_item":
            key = (meta.get("item_name"), meta.get("item_price"), meta.get("item_description"))
            if all(key != (i.get("item_name"), i.get("item_price"), i.get("item_description")) for i in self.items):
                self.items.append(meta)
        elif result.content_type == "restaurant_info":
            # resolved profile wins; metadata only fills gaps
            for k, v in meta.items():
                self.profile.setdefault(k, v)

    def render(self, items_per_restaurant: int) -> str:
        lines = [f"**{self.name}**"]
        for label, key in (("Description", "description"), ("Address", "address"),
                           ("Phone", "phone"), ("Website", "website")):
            if self.profile.get(key):
                lines.append(f"{label}: {self.profile[key]}")
        if self.profile.get("slug"):
            lines.append(f"Menu Link: /menu/{self.profile['slug']}")
        if self.categories:
            lines.append(f"Categories: {', '.join(self.categories)}")
        if self.items:
            lines.append("Menu Items:")
            for item in self.items[:items_per_restaurant]:
                line = f"- {item.get('item_name') or UNNAMED_ITEM}"
                if item.get("item_price"):
                    line += f" ({item['item_price']})"
                if item.get("item_description"):
                    line += f": {item['item_description']}"
                lines.append(line)
        return "\n".join(lines)


def _profile(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "name": restaurant.name,
        "description": restaurant.description,
        "address": restaurant.address,
        "phone": restaurant.phone,
        "website": restaurant.website,
        "slug": restaurant.slug,
    }


def _fallback_name(result: SearchResult) -> str | None:
    meta = result.metadata
    return meta.get("name") if result.content_type == "restaurant_info" else meta.get("restaurant_name")


def group_by_restaurant(
    results: Iterable[SearchResult],
    restaurants: Mapping[str, Restaurant] | None = None,
) -> list[RestaurantSection]:
    """
    Sections keyed by restaurant id, or by name when a result carries no id.

    A result whose restaurant is missing from `restaurants` is still rendered
    from the metadata it carries; only results with neither id nor name are
    dropped.
    """
    resolving = restaurants is not None
    restaurants = restaurants or {}
    sections: dict[str, RestaurantSection] = {}
    for result in results:
        name = _fallback_name(result)
        key = result.restaurant_id or (f"name:{name}" if name else None)
        if key is None:
            log.warning("Dropping search result without restaurant identity: %r", result.content[:80])
            continue

        section = sections.get(key)
        if section is None:
            restaurant = restaurants.get(result.restaurant_id) if result.restaurant_id else None
            if restaurant is not None:
                section = RestaurantSection(name=restaurant.name, profile=_profile(restaurant))
            else:
                if result.restaurant_id and resolving:
                    log.warning(
                        "Restaurant %s not resolved; rendering from result metadata", result.restaurant_id
                    )
                section = RestaurantSection(name=name or "Unknown restaurant")
            sections[key] = section
        section.add(result)
    return list(sections.values())


def build_context(
    results: Iterable[SearchResult],
    restaurants: Mapping[str, Restaurant] | None = None,
    items_per_restaurant: int = ITEMS_PER_RESTAURANT,
) -> str:
    sections = group_by_restaurant(results, restaurants)
    if not sections:
        return NO_RESULTS
    return "\n\n".join(s.render(items_per_restaurant) for s in sections)
