# menucard/catalog/models.py
"""
Validated shapes for restaurants and menus.

`extractedData` arrives from a vision model or a manual editor and is stored
as JSON. It is parsed into these models at the persistence boundary so the
rest of the system never touches an untyped blob.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MenuItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    description: str | None = None
    # display string; "16.99", "$12", "market price" are all valid
    price: str | None = None
    dietary_info: list[str] = Field(default_factory=list)

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, bool):
            raise ValueError("price must be a string or number")
        if isinstance(v, float) and v.is_integer():
            return f"{int(v)}"
        if isinstance(v, (int, float)):
            return f"{v}"
        raise ValueError("price must be a string or number")

    @field_validator("dietary_info", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or []


class MenuCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    items: list[MenuItem] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name_none_as_empty(cls, v):
        return "" if v is None else v

    @field_validator("items", mode="before")
    @classmethod
    def _items_none_as_empty(cls, v):
        return v or []


class MenuExtraction(BaseModel):
    """The `extractedData` payload of a menu."""

    model_config = ConfigDict(extra="ignore")

    restaurant_name: str | None = None
    categories: list[MenuCategory] = Field(default_factory=list)

    @field_validator("categories", mode="before")
    @classmethod
    def _categories_none_as_empty(cls, v):
        return v or []

    def flattened_text(self) -> str:
        """All names, descriptions and prices as one lowercase string (lexical matching)."""
        parts: list[str] = []
        if self.restaurant_name:
            parts.append(self.restaurant_name)
        for cat in self.categories:
            parts.append(cat.name)
            for item in cat.items:
                parts.extend(p for p in (item.name, item.description, item.price) if p)
                parts.extend(item.dietary_info)
        return " ".join(p for p in parts if p).lower()


class Restaurant(BaseModel):
    id: str
    user_id: str
    name: str
    slug: str
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Menu(BaseModel):
    id: str
    restaurant_id: str | None
    user_id: str
    restaurant_name: str
    image_url: str | None = None
    extracted_data: MenuExtraction = Field(default_factory=MenuExtraction)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PublicRestaurant(Restaurant):
    """Restaurant card for the public listing pages."""

    menu_count: int = 0
    latest_menu: Menu | None = None
    distance_km: float | None = None
