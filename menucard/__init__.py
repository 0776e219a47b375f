"""
MenuCard search service.

Restaurants publish their menus; this package indexes restaurant and menu
content for semantic and lexical search and grounds a restaurant-finder chat
assistant on the results.
"""

__version__ = "0.1.0"
