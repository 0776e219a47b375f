import pytest

from conftest import FakeEmbeddings
from menucard.config import get_settings
from menucard.embed.providers import EmbeddingChain
from menucard.index import cli


@pytest.fixture
def no_credentials(make_settings):
    # make_settings clears every provider key from the environment
    make_settings()
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_migrate_only_needs_no_embedding_credentials(no_credentials, repo, bella_vista):
    legacy = repo.insert_legacy_menu("owner-1", "Bella Vista", {"categories": []})
    assert cli.main(["--migrate-legacy", "--db", repo.db_path]) == 0
    assert legacy in [m.id for m in repo.get_menus_for_restaurant(bella_vista.id)]


def test_reindex_without_credentials_exits_2(no_credentials, repo, bella_vista):
    assert cli.main(["--all", "--db", repo.db_path]) == 2


def test_missing_database_exits_2(no_credentials, tmp_path):
    assert cli.main(["--migrate-legacy", "--db", str(tmp_path / "absent.db")]) == 2


def test_reindex_all(no_credentials, repo, store, bella_vista, monkeypatch):
    monkeypatch.setattr(
        cli, "check_index_preconditions", lambda settings: EmbeddingChain([FakeEmbeddings()])
    )
    assert cli.main(["--all", "--db", repo.db_path]) == 0
    assert store.count(bella_vista.id) == 3
