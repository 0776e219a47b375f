import threading

import pytest

from conftest import FakeEmbeddings, bella_vista_menu
from menucard.embed.providers import EmbeddingChain
from menucard.errors import ConfigurationError, NotFound, UpstreamUnavailable
from menucard.index.locks import KeyedLocks
from menucard.index.service import RestaurantIndexer, check_index_preconditions
from menucard.retrieval.semantic import SimilaritySearcher


@pytest.fixture
def indexer(repo, store, embeddings):
    return RestaurantIndexer(repo, store, embeddings, workers=2)


def test_reindex_is_idempotent(indexer, store, bella_vista):
    first = indexer.reindex_restaurant(bella_vista.id)
    contents = [d.content for d in store.list_documents(bella_vista.id)]
    second = indexer.reindex_restaurant(bella_vista.id)

    assert first == second == 3  # info + category + item
    assert [d.content for d in store.list_documents(bella_vista.id)] == contents
    assert store.count() == 3


def test_reindex_drops_stale_documents(indexer, repo, store, embeddings, bella_vista):
    repo.upsert_menu(bella_vista.id, "owner-1", bella_vista_menu(with_desserts=True))
    indexer.reindex_restaurant(bella_vista.id)
    searcher = SimilaritySearcher(embeddings, store)
    before = searcher.search("tiramisu dessert", threshold=0.5, limit=10)
    assert any(r.metadata.get("category_name") == "Desserts" for r in before)

    repo.upsert_menu(bella_vista.id, "owner-1", bella_vista_menu(with_desserts=False))
    indexer.reindex_restaurant(bella_vista.id)
    after = searcher.search("tiramisu dessert", threshold=0.5, limit=10)
    assert not any("Desserts" in (r.metadata.get("category_name") or "") for r in after)
    assert not any("Tiramisu" in r.content for r in after)


def test_unknown_restaurant_is_not_found(indexer):
    with pytest.raises(NotFound):
        indexer.reindex_restaurant("missing")


def test_failed_embedding_keeps_previous_documents(repo, store, bella_vista):
    good = RestaurantIndexer(repo, store, EmbeddingChain([FakeEmbeddings()]))
    good.reindex_restaurant(bella_vista.id)

    broken = RestaurantIndexer(repo, store, EmbeddingChain([FakeEmbeddings(down=True)]))
    with pytest.raises(UpstreamUnavailable):
        broken.reindex_restaurant(bella_vista.id)
    assert store.count(bella_vista.id) == 3


def test_reindex_all_isolates_failures(repo, store):
    ids = []
    for name in ("Alpha Pizza", "Broken Grill", "Gamma Sushi"):
        r = repo.save_restaurant("owner", name)
        ids.append(r.id)
    indexer = RestaurantIndexer(repo, store, EmbeddingChain([FakeEmbeddings(fail_on="Broken")]), workers=3)

    report = indexer.reindex_all()

    assert report.attempted == 3
    assert set(report.succeeded) == {ids[0], ids[2]}
    assert set(report.failed) == {ids[1]}
    assert store.count(ids[0]) == 1
    assert store.count(ids[1]) == 0
    assert store.count(ids[2]) == 1


def test_reindex_all_with_no_restaurants(indexer):
    report = indexer.reindex_all()
    assert report.attempted == 0 and not report.failed


def test_batches_stay_in_one_space(repo, store, bella_vista):
    # primary answers the first batch, then goes down; the backup produces
    # a different space and must not be mixed in
    primary = FakeEmbeddings(name="primary", space="space-a")
    backup = FakeEmbeddings(name="backup", space="space-b")
    original = primary.embed

    def flaky(texts):
        if primary.calls >= 1:
            primary.down = True
        return original(texts)

    primary.embed = flaky
    indexer = RestaurantIndexer(repo, store, EmbeddingChain([primary, backup]), batch_size=1)
    with pytest.raises(UpstreamUnavailable):
        indexer.reindex_restaurant(bella_vista.id)
    assert backup.calls == 0
    assert store.count(bella_vista.id) == 0


def test_same_restaurant_reindexes_are_serialized(repo, store, bella_vista):
    locks = KeyedLocks()
    indexer = RestaurantIndexer(repo, store, EmbeddingChain([FakeEmbeddings()]), locks=locks)
    errors = []

    def run():
        try:
            indexer.reindex_restaurant(bella_vista.id)
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=run) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert store.count(bella_vista.id) == 3
    assert len(locks) == 0


def test_preconditions_fail_fast_without_embedding_credentials(make_settings, repo):
    with pytest.raises(ConfigurationError):
        check_index_preconditions(make_settings(sqlite_path=repo.db_path))


def test_preconditions_fail_fast_without_database(make_settings, tmp_path):
    settings = make_settings(
        sqlite_path=str(tmp_path / "absent.db"), embedding_providers="local"
    )
    with pytest.raises(ConfigurationError):
        check_index_preconditions(settings)


def test_preconditions_pass(make_settings, repo):
    chain = check_index_preconditions(
        make_settings(sqlite_path=repo.db_path, openai_api_key="sk-test")
    )
    assert chain.names == ["openai"]
