import pytest

from conftest import bella_vista_menu
from menucard.catalog.models import MenuExtraction, MenuItem
from menucard.catalog.repository import haversine_km, slugify
from menucard.errors import Conflict, NotFound


def test_slugify():
    assert slugify("Bella Vista!") == "bella-vista"
    assert slugify("  Café & Co.  ") == "caf-co"


def test_save_and_lookup_by_slug(repo, bella_vista):
    assert bella_vista.slug == "bella-vista"
    assert repo.get_restaurant_by_slug("bella-vista").id == bella_vista.id
    assert repo.get_user_restaurant("owner-1").id == bella_vista.id
    assert repo.get_restaurant_by_slug("nope") is None


def test_duplicate_slug_conflicts(repo, bella_vista):
    with pytest.raises(Conflict):
        repo.save_restaurant("someone-else", "Bella Vista")


def test_update_restaurant_renames_menus(repo, bella_vista):
    updated = repo.update_restaurant(bella_vista.id, {"name": "Bella Vista Trattoria", "bogus": 1})
    assert updated.name == "Bella Vista Trattoria"
    menus = repo.get_menus_for_restaurant(bella_vista.id)
    assert menus[0].restaurant_name == "Bella Vista Trattoria"


def test_update_missing_restaurant(repo):
    with pytest.raises(NotFound):
        repo.update_restaurant("missing", {"name": "x"})


def test_upsert_keeps_one_active_menu(repo, bella_vista):
    repo.upsert_menu(bella_vista.id, "owner-1", bella_vista_menu(with_desserts=True))
    menus = repo.get_menus_for_restaurant(bella_vista.id)
    assert len(menus) == 1
    assert [c.name for c in menus[0].extracted_data.categories] == ["Pizzas", "Desserts"]


def test_upsert_menu_name_comes_from_restaurant(repo, bella_vista):
    data = MenuExtraction.model_validate({"restaurant_name": "Something Else", "categories": []})
    menu = repo.upsert_menu(bella_vista.id, "owner-1", data)
    assert menu.restaurant_name == "Bella Vista"


def test_upsert_menu_for_missing_restaurant(repo):
    with pytest.raises(NotFound):
        repo.upsert_menu("missing", "owner", MenuExtraction())


def test_numeric_prices_become_display_strings():
    data = MenuExtraction.model_validate(
        {"categories": [{"name": None, "items": [{"name": "Tea", "price": 3.5, "dietary_info": None}]}]}
    )
    item = data.categories[0].items[0]
    assert item.price == "3.5"
    assert item.dietary_info == []
    assert data.categories[0].name == ""


def test_malformed_menu_is_quarantined(repo, bella_vista):
    with repo.session() as conn:
        conn.execute(
            """INSERT INTO menus(id, restaurant_id, user_id, restaurant_name, extracted_data,
                                 created_at, updated_at)
               VALUES('bad', ?, 'owner-1', 'Bella Vista', '{"categories": "oops"}', '2000-01-01', '2000-01-01')""",
            (bella_vista.id,),
        )
    menus = repo.get_menus_for_restaurant(bella_vista.id)
    assert [m.id for m in menus] != [] and "bad" not in [m.id for m in menus]
    assert repo.get_menu("bad") is None


def test_migrate_legacy_menus(repo, bella_vista):
    linked = repo.insert_legacy_menu("owner-1", "Bella Vista", {"categories": []})
    orphan = repo.insert_legacy_menu("owner-9", "Nowhere Cafe", {"categories": []})

    assert linked not in [m.id for m in repo.get_menus_for_restaurant(bella_vista.id)]
    assert repo.migrate_legacy_menus() == 1
    assert linked in [m.id for m in repo.get_menus_for_restaurant(bella_vista.id)]
    assert repo.get_menu(orphan).restaurant_id is None


def test_delete_menu(repo, bella_vista):
    menu = repo.get_menus_for_restaurant(bella_vista.id)[0]
    assert repo.delete_menu(menu.id) == bella_vista.id
    assert repo.get_menus_for_restaurant(bella_vista.id) == []
    with pytest.raises(NotFound):
        repo.delete_menu(menu.id)


def test_public_listing_only_restaurants_with_menus(repo, bella_vista, sakura):
    repo.save_restaurant("owner-3", "Empty Kitchen")
    listing = repo.list_public_restaurants()
    assert [r.name for r in listing] == ["Sakura House", "Bella Vista"]
    assert listing[0].menu_count == 1
    assert listing[0].latest_menu is not None


def test_public_restaurant_with_menus(repo, bella_vista):
    restaurant, menus = repo.get_public_restaurant_with_menus("bella-vista")
    assert restaurant.id == bella_vista.id and len(menus) == 1
    assert repo.get_public_restaurant_with_menus("missing") == (None, [])


def test_restaurants_near(repo, bella_vista, sakura):
    repo.save_restaurant("owner-3", "No Location")
    near = repo.restaurants_near(40.7128, -74.0060, radius_km=20)
    assert [r.name for r in near] == ["Bella Vista", "Sakura House"]
    assert near[0].distance_km == pytest.approx(0.0, abs=1e-6)
    assert repo.restaurants_near(40.7128, -74.0060, radius_km=1)[0].name == "Bella Vista"
    assert len(repo.restaurants_near(40.7128, -74.0060, radius_km=1)) == 1


def test_haversine_known_distance():
    # Paris -> London is roughly 344 km
    assert haversine_km(48.8566, 2.3522, 51.5074, -0.1278) == pytest.approx(344, abs=5)


@pytest.mark.parametrize("price,shown", [(16.0, "16"), (16, "16"), (16.5, "16.5"), ("16.0", "16.0")])
def test_whole_prices_drop_the_fraction(price, shown):
    assert MenuItem.model_validate({"name": "Pizza", "price": price}).price == shown


def test_non_latin_names_get_distinct_fallback_slugs(repo):
    sushi = repo.save_restaurant("u1", "寿司")
    cafe = repo.save_restaurant("u2", "カフェ")
    assert sushi.slug == f"restaurant-{sushi.id[:8]}"
    assert cafe.slug == f"restaurant-{cafe.id[:8]}"
    assert repo.get_restaurant_by_slug(sushi.slug).id == sushi.id


def test_explicit_slug_is_normalized(repo):
    restaurant = repo.save_restaurant("u1", "Bella", slug="Bella Vista/../x?")
    assert restaurant.slug == "bella-vista-x"

    updated = repo.update_restaurant(restaurant.id, {"slug": "  Trattoria Bella!  "})
    assert updated.slug == "trattoria-bella"


@pytest.mark.parametrize("slug", ["", "???", "寿司"])
def test_unusable_explicit_slug_is_rejected(repo, bella_vista, slug):
    with pytest.raises(ValueError):
        repo.save_restaurant("u1", "Other", slug=slug)
    with pytest.raises(ValueError):
        repo.update_restaurant(bella_vista.id, {"slug": slug})
    assert repo.get_restaurant(bella_vista.id).slug == "bella-vista"
