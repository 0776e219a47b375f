from menucard.assistant.context import NO_RESULTS, build_context
from menucard.catalog.models import Restaurant
from menucard.types import SearchResult


def _item(rid, rname, name, price=None, desc=None, score=0.9):
    return SearchResult(
        restaurant_id=rid,
        content=f"{name} at {rname}",
        content_type="menu_item",
        metadata={
            "item_name": name,
            "item_price": price,
            "item_description": desc,
            "category_name": "Mains",
            "restaurant_name": rname,
        },
        similarity=score,
    )


def _category(rid, rname, name):
    return SearchResult(
        restaurant_id=rid,
        content=f"{name} category at {rname}",
        content_type="category",
        metadata={"category_name": name, "restaurant_name": rname},
        similarity=0.8,
    )


def test_groups_by_restaurant_and_caps_items():
    results = []
    for i in range(5):
        results.append(_item("r1", "Bella Vista", f"Pizza {i}", price="10"))
        results.append(_item("r2", "Sakura House", f"Roll {i}", price="8"))

    context = build_context(results)

    sections = context.split("\n\n")
    assert len(sections) == 2
    assert sections[0].startswith("**Bella Vista**")
    assert sections[1].startswith("**Sakura House**")
    for section in sections:
        assert sum(1 for line in section.splitlines() if line.startswith("- ")) == 3


def test_bella_vista_item_line():
    context = build_context(
        [_item("r1", "Bella Vista", "Margherita Pizza", "16.99", "Fresh mozzarella, tomato sauce, basil")]
    )
    assert "Margherita Pizza (16.99)" in context
    assert "- Margherita Pizza (16.99): Fresh mozzarella, tomato sauce, basil" in context


def test_no_results_fallback_sentence():
    assert build_context([]) == NO_RESULTS


def test_profile_lines_only_when_present():
    restaurant = Restaurant(
        id="r1", user_id="u", name="Bella Vista", slug="bella-vista", address="12 Harbour St"
    )
    context = build_context([_item("r1", "Bella Vista", "Calzone")], {"r1": restaurant})
    lines = context.splitlines()
    assert lines[0] == "**Bella Vista**"
    assert "Address: 12 Harbour St" in lines
    assert "Menu Link: /menu/bella-vista" in lines
    assert not any(line.startswith(("Phone:", "Website:", "Description:")) for line in lines)


def test_categories_line_is_deduplicated():
    context = build_context(
        [
            _category("r1", "Bella Vista", "Pizzas"),
            _category("r1", "Bella Vista", "Pizzas"),
            _category("r1", "Bella Vista", "Desserts"),
        ]
    )
    assert "Categories: Pizzas, Desserts" in context
    assert "Menu Items:" not in context


def test_unresolved_restaurant_is_rendered_from_metadata():
    context = build_context([_item("gone", "Old Trattoria", "Lasagne", "14")], restaurants={})
    assert "**Old Trattoria**" in context
    assert "- Lasagne (14)" in context


def test_results_without_ids_group_by_name():
    a = _item(None, "Legacy Diner", "Burger")
    b = _item(None, "Legacy Diner", "Fries")
    context = build_context([a, b])
    assert context.count("**Legacy Diner**") == 1


def test_item_without_price_or_description():
    context = build_context([_item("r1", "Bella Vista", "Focaccia")])
    assert "- Focaccia\n" in context + "\n"
    assert "Focaccia (" not in context
