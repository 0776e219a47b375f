from menucard.retrieval.lexical import TextSearcher


def test_pizza_matches_only_bella_vista(repo, bella_vista, sakura):
    results = TextSearcher(repo).search("pizza")
    assert [r.name for r in results] == ["Bella Vista"]


def test_match_is_case_insensitive_and_covers_profile_fields(repo, bella_vista, sakura):
    searcher = TextSearcher(repo)
    assert [r.name for r in searcher.search("CHERRY")] == ["Sakura House"]  # address
    assert [r.name for r in searcher.search("sushi BAR")] == ["Sakura House"]  # description
    assert [r.name for r in searcher.search("nigiri")] == ["Sakura House"]  # menu item


def test_empty_query_returns_empty_list(repo, bella_vista):
    assert TextSearcher(repo).search("") == []
    assert TextSearcher(repo).search("   ") == []


def test_no_match_returns_empty_list(repo, bella_vista):
    assert TextSearcher(repo).search("tacos") == []


def test_json_keys_are_not_searchable(repo, bella_vista):
    # the stored payload is JSON, but only its values are menu text
    assert TextSearcher(repo).search("categories") == []
    assert TextSearcher(repo).search("dietary_info") == []


def test_results_are_distinct_and_capped(repo):
    for i in range(5):
        r = repo.save_restaurant("owner", f"Pizza Place {i}")
        repo.upsert_menu(r.id, "owner", _pizza_menu())
    results = TextSearcher(repo, limit=3).search("pizza")
    assert len(results) == 3
    assert len({r.id for r in results}) == 3


def test_search_documents_shapes_matches_like_semantic_results(repo, bella_vista, sakura):
    docs = TextSearcher(repo).search_documents("pizza")
    assert {d.restaurant_id for d in docs} == {bella_vista.id}
    assert [d.content_type for d in docs] == ["restaurant_info", "category", "menu_item"]
    assert docs[2].metadata["item_name"] == "Margherita Pizza"
    assert all(d.similarity is None for d in docs)


def _pizza_menu():
    from menucard.catalog.models import MenuExtraction

    return MenuExtraction.model_validate({"categories": [{"name": "Pizza", "items": [{"name": "Cheese"}]}]})
