# menucard/index/documents.py
"""
Decompose a restaurant and its menus into independently retrievable documents.

Three document types are produced:
- restaurant_info: one per restaurant, the profile as a short paragraph
- category: one per named menu category
- menu_item: one per item, whether or not its category is named

Pure function of its inputs: same restaurant + menus, same drafts, same order.
"""

from __future__ import annotations

from collections.abc import Iterable

from menucard.catalog.models import Menu, MenuCategory, MenuItem, Restaurant
from menucard.types import DocumentDraft

NO_ADDRESS = "address not specified"
UNNAMED_ITEM = "Unnamed item"
NO_DESCRIPTION = "No description"
NO_PRICE = "Price not specified"


def restaurant_info_text(restaurant: Restaurant) -> str:
    parts = [f"{restaurant.name}."]
    desc = (restaurant.description or "").strip()
    if desc:
        parts.append(desc if desc.endswith((".", "!", "?")) else f"{desc}.")
    parts.append(f"Located at {restaurant.address or NO_ADDRESS}.")
    if restaurant.phone:
        parts.append(f"Phone: {restaurant.phone}.")
    if restaurant.website:
        parts.append(f"Website: {restaurant.website}.")
    return " ".join(parts)


def category_text(category: MenuCategory, restaurant: Restaurant) -> str:
    return f"{category.name} category at {restaurant.name}"


def menu_item_text(item: MenuItem, restaurant: Restaurant) -> str:
    return (
        f"{item.name or UNNAMED_ITEM} - {item.description or NO_DESCRIPTION}"
        f" - Price: {item.price or NO_PRICE} at {restaurant.name}"
    )


def build_documents(restaurant: Restaurant, menus: Iterable[Menu]) -> list[DocumentDraft]:
    docs: list[DocumentDraft] = [
        DocumentDraft(
            restaurant_id=restaurant.id,
            content=restaurant_info_text(restaurant),
            content_type="restaurant_info",
            metadata={
                "name": restaurant.name,
                "description": restaurant.description,
                "address": restaurant.address,
                "phone": restaurant.phone,
                "website": restaurant.website,
                "slug": restaurant.slug,
            },
        )
    ]

    for menu in menus:
        for category in menu.extracted_data.categories:
            if category.name:
                docs.append(
                    DocumentDraft(
                        restaurant_id=restaurant.id,
                        content=category_text(category, restaurant),
                        content_type="category",
                        metadata={
                            "category_name": category.name,
                            "restaurant_name": restaurant.name,
                        },
                    )
                )
            for item in category.items:
                docs.append(
                    DocumentDraft(
                        restaurant_id=restaurant.id,
                        content=menu_item_text(item, restaurant),
                        content_type="menu_item",
                        metadata={
                            "item_name": item.name,
                            "item_description": item.description,
                            "item_price": item.price,
                            "category_name": category.name or None,
                            "restaurant_name": restaurant.name,
                        },
                    )
                )
    return docs
