# menucard/api.py
"""
HTTP surface: public restaurant/menu pages, owner writes, search, indexing
and the restaurant-finder chatbot.

Run with:  uvicorn menucard.api:create_app --factory
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
from pydantic import BaseModel, Field, field_validator, model_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from menucard.catalog.models import MenuCategory, MenuExtraction
from menucard.catalog.repository import clean_slug
from menucard.config import get_settings
from menucard.errors import MenuCardError
from menucard.http_errors import (
    generic_exception_handler,
    http_exception_handler,
    menucard_exception_handler,
    request_validation_exception_handler,
)
from menucard.obs.middleware import ObservabilityMiddleware
from menucard.obs.tracing import setup_logging, setup_tracing
from menucard.services import Services, build_services

log = logging.getLogger(__name__)


# --- Request Models ---
class RestaurantIn(BaseModel):
    user_id: str
    name: str = Field(min_length=1)
    slug: str | None = None
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("slug")
    @classmethod
    def _slug_is_url_safe(cls, v: str | None) -> str | None:
        return clean_slug(v) if v is not None else None


class RestaurantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    slug: str | None = None
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def _name_and_slug_not_null(cls, data: Any) -> Any:
        # omitted means "leave as is"; an explicit null would blank a required column
        if isinstance(data, dict):
            for key in ("name", "slug"):
                if key in data and data[key] is None:
                    raise ValueError(f"{key} cannot be null")
        return data

    @field_validator("slug")
    @classmethod
    def _slug_is_url_safe(cls, v: str | None) -> str | None:
        return clean_slug(v) if v is not None else None


class MenuIn(BaseModel):
    user_id: str
    restaurant_name: str | None = None
    categories: list[MenuCategory] = Field(default_factory=list)
    image_url: str | None = None


class ExtractReq(BaseModel):
    user_id: str
    image_url: str
    save: bool = True


class SearchReq(BaseModel):
    query: str
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    limit: int | None = Field(default=None, ge=1, le=100)


class IndexReq(BaseModel):
    restaurant_id: str | None = None


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatReq(BaseModel):
    message: str = Field(min_length=1)
    conversation_history: list[ChatTurn] = Field(default_factory=list)


def _dump(model: BaseModel | None) -> dict[str, Any] | None:
    return model.model_dump(mode="json") if model is not None else None


def create_app(services: Services | None = None) -> FastAPI:
    if services is None:
        load_dotenv()
        services = build_services(get_settings())
    settings = services.settings

    app = FastAPI(title="MenuCard")
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # dev/demo only
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_logging(settings.log_level)
    if settings.enable_tracing:
        setup_tracing(app)
    app.add_middleware(ObservabilityMiddleware)
    # expose /metrics (Prometheus text format)
    app.mount("/metrics", make_asgi_app())

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(MenuCardError, menucard_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    repo = services.repository

    def _reindex_quietly(restaurant_id: str) -> None:
        try:
            services.indexer.reindex_restaurant(restaurant_id)
        except MenuCardError as e:
            log.error("Background re-index of %s failed: %s", restaurant_id, e)

    # --- Public pages ---
    @app.get("/healthz")
    def health():
        return {"ok": True}

    @app.get("/restaurants")
    def list_restaurants():
        restaurants = repo.list_public_restaurants()
        return {"restaurants": [_dump(r) for r in restaurants], "count": len(restaurants)}

    @app.get("/restaurants/nearby")
    def nearby(
        lat: float = Query(ge=-90, le=90),
        lng: float = Query(ge=-180, le=180),
        radius_km: float = Query(10.0, gt=0, le=500),
    ):
        restaurants = repo.restaurants_near(lat, lng, radius_km)
        return {"restaurants": [_dump(r) for r in restaurants], "count": len(restaurants)}

    @app.get("/menu/{slug}")
    def public_menu(slug: str):
        restaurant, menus = repo.get_public_restaurant_with_menus(slug)
        if restaurant is None:
            raise HTTPException(status_code=404, detail=f"No restaurant with slug '{slug}'")
        return {"restaurant": _dump(restaurant), "menus": [_dump(m) for m in menus]}

    # --- Owner writes ---
    @app.post("/restaurants", status_code=201)
    def create_restaurant(req: RestaurantIn):
        restaurant = repo.save_restaurant(**req.model_dump())
        return {"success": True, "restaurant": _dump(restaurant)}

    @app.put("/restaurants/{restaurant_id}")
    def update_restaurant(restaurant_id: str, req: RestaurantUpdate):
        restaurant = repo.update_restaurant(restaurant_id, req.model_dump(exclude_unset=True))
        return {"success": True, "restaurant": _dump(restaurant)}

    @app.put("/restaurants/{restaurant_id}/menu")
    def upsert_menu(restaurant_id: str, req: MenuIn, background: BackgroundTasks, reindex: bool = False):
        data = MenuExtraction(restaurant_name=req.restaurant_name, categories=req.categories)
        menu = repo.upsert_menu(restaurant_id, req.user_id, data, image_url=req.image_url)
        if reindex:
            background.add_task(_reindex_quietly, restaurant_id)
        return {"success": True, "menu": _dump(menu)}

    @app.post("/restaurants/{restaurant_id}/menu/extract")
    def extract_menu(restaurant_id: str, req: ExtractReq, background: BackgroundTasks, reindex: bool = False):
        if repo.get_restaurant(restaurant_id) is None:
            raise HTTPException(status_code=404, detail=f"restaurant not found: {restaurant_id}")
        extraction = services.extractor.extract(req.image_url)
        if not req.save:
            return {"success": True, "extracted_data": _dump(extraction)}
        menu = repo.upsert_menu(restaurant_id, req.user_id, extraction, image_url=req.image_url)
        if reindex:
            background.add_task(_reindex_quietly, restaurant_id)
        return {"success": True, "extracted_data": _dump(extraction), "menu": _dump(menu)}

    @app.delete("/menus/{menu_id}")
    def delete_menu(menu_id: str, background: BackgroundTasks, reindex: bool = False):
        restaurant_id = repo.delete_menu(menu_id)
        if reindex and restaurant_id:
            background.add_task(_reindex_quietly, restaurant_id)
        return {"success": True, "restaurant_id": restaurant_id}

    # --- Search ---
    @app.post("/search")
    def search(req: SearchReq):
        results = services.searcher.search(req.query, threshold=req.threshold, limit=req.limit)
        return {"results": [r.to_dict() for r in results], "count": len(results)}

    @app.get("/search/text")
    def text_search(q: str = ""):
        restaurants = services.text_searcher.search(q)
        return {"restaurants": [_dump(r) for r in restaurants], "count": len(restaurants)}

    # --- Indexing ---
    @app.post("/index")
    def index(req: IndexReq):
        if req.restaurant_id:
            count = services.indexer.reindex_restaurant(req.restaurant_id)
            return {"success": True, "restaurant_id": req.restaurant_id, "documents": count}
        report = services.indexer.reindex_all()
        return {"success": not report.failed, **report.to_dict()}

    # --- Chatbot ---
    @app.post("/chatbot")
    def chatbot(req: ChatReq):
        history = [t.model_dump() for t in req.conversation_history]
        reply = services.assistant.answer(req.message, history)
        return reply.to_dict()

    return app
