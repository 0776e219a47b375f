"""
Persistence collaborator: restaurants, menus and their validated payloads.
"""

from .models import Menu, MenuCategory, MenuExtraction, MenuItem, PublicRestaurant, Restaurant
from .repository import RestaurantRepository, haversine_km, slugify
from .schema import connect, init_db

__all__ = [
    "Restaurant",
    "Menu",
    "MenuExtraction",
    "MenuCategory",
    "MenuItem",
    "PublicRestaurant",
    "RestaurantRepository",
    "slugify",
    "haversine_km",
    "connect",
    "init_db",
]
