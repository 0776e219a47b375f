# menucard/catalog/repository.py
"""
Persistence collaborator for restaurants and menus (SQLite).

Menus are joined to restaurants by `restaurant_id` only. Rows written by the
older (user_id, restaurant_name) model are brought forward by
`migrate_legacy_menus()`; until then they are invisible to reads.
"""

from __future__ import annotations

import json
import logging
import math
import re
import sqlite3
import uuid
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from menucard.errors import NotFound

from .models import Menu, MenuExtraction, PublicRestaurant, Restaurant
from .schema import DEFAULT_TIMEOUT_S, init_db, transaction

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_RESTAURANT_FIELDS = ("name", "description", "address", "phone", "website", "slug", "latitude", "longitude")


def slugify(name: str) -> str:
    """'Bella Vista!' -> 'bella-vista'"""
    return _SLUG_STRIP.sub("-", name.lower()).strip("-")


def clean_slug(slug: str) -> str:
    """Normalize an owner-chosen slug. Raises ValueError when nothing URL-safe remains."""
    cleaned = slugify(slug)
    if not cleaned:
        raise ValueError(f"slug {slug!r} has no letters or digits")
    return cleaned


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _restaurant_from_row(row: sqlite3.Row) -> Restaurant:
    return Restaurant(**dict(row))


def _menu_from_row(row: sqlite3.Row) -> Menu:
    """Raises ValidationError / JSONDecodeError for malformed `extracted_data`."""
    data = dict(row)
    data["extracted_data"] = MenuExtraction.model_validate(json.loads(data["extracted_data"]))
    return Menu(**data)


class RestaurantRepository:
    """
    CRUD over restaurants and menus.

    Every public method opens its own short-lived connection, so one instance
    is safe to share between threads. Driver errors surface as
    UpstreamUnavailable, slug collisions as Conflict.
    """

    def __init__(self, db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S):
        self.db_path = db_path
        self.timeout_s = timeout_s

    def session(self) -> AbstractContextManager[sqlite3.Connection]:
        return transaction(self.db_path, timeout_s=self.timeout_s)

    def init_schema(self) -> None:
        with self.session() as conn:
            init_db(conn)

    # ----- restaurants -----
    def save_restaurant(
        self,
        user_id: str,
        name: str,
        *,
        slug: str | None = None,
        description: str | None = None,
        address: str | None = None,
        phone: str | None = None,
        website: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> Restaurant:
        """
        Create a restaurant. Raises Conflict when the slug is taken.

        The slug is always normalized; a name with no Latin letters or digits
        falls back to `restaurant-<id prefix>`.
        """
        now = _now()
        rid = str(uuid.uuid4())
        if slug is not None:
            slug = clean_slug(slug)
        else:
            slug = slugify(name) or f"restaurant-{rid[:8]}"
        with self.session() as conn:
            conn.execute(
                """INSERT INTO restaurants(id, user_id, name, slug, description, address, phone,
                                           website, latitude, longitude, created_at, updated_at)
                   VALUES(?,?,?,?,?,?,?,?,?,?,?,?)""",
                (rid, user_id, name, slug, description, address, phone, website,
                 latitude, longitude, now, now),
            )
        logger.info("Saved restaurant %s (slug=%s)", rid, slug)
        return self.get_restaurant(rid)  # type: ignore[return-value]

    def update_restaurant(self, restaurant_id: str, updates: dict[str, Any]) -> Restaurant:
        """Apply the known fields in `updates`; unknown keys are ignored."""
        fields = {k: v for k, v in updates.items() if k in _RESTAURANT_FIELDS}
        for key in ("name", "slug"):
            if key in fields and not fields[key]:
                raise ValueError(f"{key} cannot be empty")
        if "slug" in fields:
            fields["slug"] = clean_slug(fields["slug"])
        if not fields:
            restaurant = self.get_restaurant(restaurant_id)
            if restaurant is None:
                raise NotFound("restaurant", restaurant_id)
            return restaurant

        assignments = ", ".join(f"{k}=?" for k in fields)
        with self.session() as conn:
            cur = conn.execute(
                f"UPDATE restaurants SET {assignments}, updated_at=? WHERE id=?",
                (*fields.values(), _now(), restaurant_id),
            )
            if cur.rowcount == 0:
                raise NotFound("restaurant", restaurant_id)
            if "name" in fields:
                # menus mirror the restaurant's display name
                conn.execute(
                    "UPDATE menus SET restaurant_name=? WHERE restaurant_id=?",
                    (fields["name"], restaurant_id),
                )
        logger.info("Updated restaurant %s: %s", restaurant_id, sorted(fields))
        return self.get_restaurant(restaurant_id)  # type: ignore[return-value]

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE id=?", (restaurant_id,)).fetchone()
        return _restaurant_from_row(row) if row else None

    def get_restaurants(self, restaurant_ids: list[str]) -> dict[str, Restaurant]:
        if not restaurant_ids:
            return {}
        placeholders = ",".join("?" * len(restaurant_ids))
        with self.session() as conn:
            rows = conn.execute(
                f"SELECT * FROM restaurants WHERE id IN ({placeholders})", list(restaurant_ids)
            ).fetchall()
        return {r["id"]: _restaurant_from_row(r) for r in rows}

    def get_restaurant_by_slug(self, slug: str) -> Restaurant | None:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM restaurants WHERE slug=?", (slug,)).fetchone()
        return _restaurant_from_row(row) if row else None

    def get_user_restaurant(self, user_id: str) -> Restaurant | None:
        with self.session() as conn:
            row = conn.execute(
                "SELECT * FROM restaurants WHERE user_id=? ORDER BY created_at LIMIT 1", (user_id,)
            ).fetchone()
        return _restaurant_from_row(row) if row else None

    def list_restaurants(self) -> list[Restaurant]:
        with self.session() as conn:
            rows = conn.execute("SELECT * FROM restaurants ORDER BY created_at, rowid").fetchall()
        return [_restaurant_from_row(r) for r in rows]

    # ----- menus -----
    def get_menus_for_restaurant(self, restaurant_id: str) -> list[Menu]:
        """Newest first. Menus whose payload fails validation are skipped and logged."""
        with self.session() as conn:
            rows = conn.execute(
                "SELECT * FROM menus WHERE restaurant_id=? ORDER BY created_at DESC, rowid DESC",
                (restaurant_id,),
            ).fetchall()
        return self._valid_menus(rows)

    def get_menu(self, menu_id: str) -> Menu | None:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM menus WHERE id=?", (menu_id,)).fetchone()
        if row is None:
            return None
        menus = self._valid_menus([row])
        return menus[0] if menus else None

    def upsert_menu(
        self,
        restaurant_id: str,
        user_id: str,
        extracted_data: MenuExtraction,
        image_url: str | None = None,
    ) -> Menu:
        """
        Replace the restaurant's active menu (or create it).
        The stored restaurant name always comes from the restaurant, never the payload.
        """
        restaurant = self.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound("restaurant", restaurant_id)

        payload = extracted_data.model_dump_json()
        now = _now()
        with self.session() as conn:
            row = conn.execute(
                "SELECT id FROM menus WHERE restaurant_id=? ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (restaurant_id,),
            ).fetchone()
            if row:
                menu_id = row["id"]
                conn.execute(
                    """UPDATE menus SET restaurant_name=?, image_url=COALESCE(?, image_url),
                                         extracted_data=?, updated_at=? WHERE id=?""",
                    (restaurant.name, image_url, payload, now, menu_id),
                )
            else:
                menu_id = str(uuid.uuid4())
                conn.execute(
                    """INSERT INTO menus(id, restaurant_id, user_id, restaurant_name, image_url,
                                         extracted_data, created_at, updated_at)
                       VALUES(?,?,?,?,?,?,?,?)""",
                    (menu_id, restaurant_id, user_id, restaurant.name, image_url, payload, now, now),
                )
        logger.info("Upserted menu %s for restaurant %s", menu_id, restaurant_id)
        return self.get_menu(menu_id)  # type: ignore[return-value]

    def insert_legacy_menu(
        self,
        user_id: str,
        restaurant_name: str,
        extracted_data: dict[str, Any],
        image_url: str | None = None,
    ) -> str:
        """Write a menu the way the name-joined model did (no restaurant_id)."""
        menu_id = str(uuid.uuid4())
        now = _now()
        with self.session() as conn:
            conn.execute(
                """INSERT INTO menus(id, restaurant_id, user_id, restaurant_name, image_url,
                                     extracted_data, created_at, updated_at)
                   VALUES(?,NULL,?,?,?,?,?,?)""",
                (menu_id, user_id, restaurant_name, image_url, json.dumps(extracted_data), now, now),
            )
        return menu_id

    def delete_menu(self, menu_id: str) -> str | None:
        """
        Delete a menu. Returns the owning restaurant id (None for unmigrated legacy rows).
        Raises NotFound if absent.
        """
        with self.session() as conn:
            row = conn.execute("SELECT restaurant_id FROM menus WHERE id=?", (menu_id,)).fetchone()
            if row is None:
                raise NotFound("menu", menu_id)
            conn.execute("DELETE FROM menus WHERE id=?", (menu_id,))
        logger.info("Deleted menu %s", menu_id)
        return row["restaurant_id"]

    def migrate_legacy_menus(self) -> int:
        """
        Attach name-joined menus to their restaurant by (user_id, name).
        Returns the number of menus migrated.
        """
        with self.session() as conn:
            cur = conn.execute(
                """UPDATE menus SET restaurant_id = (
                       SELECT r.id FROM restaurants r
                       WHERE r.user_id = menus.user_id AND r.name = menus.restaurant_name
                       ORDER BY r.created_at LIMIT 1)
                   WHERE restaurant_id IS NULL
                     AND EXISTS (SELECT 1 FROM restaurants r
                                 WHERE r.user_id = menus.user_id AND r.name = menus.restaurant_name)"""
            )
            migrated = cur.rowcount
            orphaned = conn.execute(
                "SELECT COUNT(*) FROM menus WHERE restaurant_id IS NULL"
            ).fetchone()[0]
        if orphaned:
            logger.warning("%s legacy menus have no matching restaurant and stay unlinked", orphaned)
        logger.info("Migrated %s legacy menus", migrated)
        return migrated

    # ----- public pages -----
    def list_public_restaurants(self) -> list[PublicRestaurant]:
        """Restaurants with at least one menu, newest first, with their latest menu."""
        out: list[PublicRestaurant] = []
        for restaurant in reversed(self.list_restaurants()):
            menus = self.get_menus_for_restaurant(restaurant.id)
            if not menus:
                continue
            out.append(
                PublicRestaurant(
                    **restaurant.model_dump(), menu_count=len(menus), latest_menu=menus[0]
                )
            )
        return out

    def get_public_restaurant_with_menus(self, slug: str) -> tuple[Restaurant | None, list[Menu]]:
        restaurant = self.get_restaurant_by_slug(slug)
        if restaurant is None:
            return None, []
        return restaurant, self.get_menus_for_restaurant(restaurant.id)

    def restaurants_near(self, lat: float, lng: float, radius_km: float = 10.0) -> list[PublicRestaurant]:
        """Restaurants with coordinates within `radius_km`, nearest first."""
        hits: list[PublicRestaurant] = []
        for restaurant in self.list_restaurants():
            if not restaurant.has_location:
                continue
            dist = haversine_km(lat, lng, restaurant.latitude, restaurant.longitude)  # type: ignore[arg-type]
            if dist > radius_km:
                continue
            menus = self.get_menus_for_restaurant(restaurant.id)
            hits.append(
                PublicRestaurant(
                    **restaurant.model_dump(),
                    menu_count=len(menus),
                    latest_menu=menus[0] if menus else None,
                    distance_km=round(dist, 3),
                )
            )
        hits.sort(key=lambda r: r.distance_km)  # type: ignore[arg-type, return-value]
        return hits

    # ----- helpers -----
    @staticmethod
    def _valid_menus(rows: list[sqlite3.Row]) -> list[Menu]:
        menus: list[Menu] = []
        for row in rows:
            try:
                menus.append(_menu_from_row(row))
            except (ValidationError, json.JSONDecodeError, TypeError) as e:
                logger.warning("Quarantined malformed menu %s: %s", row["id"], e)
        return menus
