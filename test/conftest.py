# test/conftest.py
import numpy as np
import pytest
from fastapi.testclient import TestClient

from menucard.api import create_app
from menucard.catalog.models import MenuExtraction
from menucard.catalog.repository import RestaurantRepository
from menucard.config import Settings
from menucard.embed.providers import EmbeddingChain, l2_normalize
from menucard.embed.store import VectorStore
from menucard.services import Services

# Keyword "concepts": a text's vector marks which concepts it mentions.
# Deterministic, offline, and close enough to semantic similarity for tests.
CONCEPTS = {
    "pizza": ("pizza", "margherita", "pepperoni", "mozzarella"),
    "italian": ("italian", "pasta", "basil", "tomato", "bella vista"),
    "vegetarian": ("vegetarian", "vegan", "veggie", "basil", "mozzarella", "tomato"),
    "cheap": ("cheap", "price", "affordable"),
    "sushi": ("sushi", "sashimi", "maki", "nigiri", "salmon"),
    "japanese": ("japanese", "tokyo", "miso", "ramen"),
    "dessert": ("dessert", "tiramisu", "gelato", "cake"),
    "drink": ("drink", "wine", "beer", "coffee"),
}

_ENV_KEYS = (
    "OPENAI_API_KEY", "OPENROUTER_API_KEY", "GROQ_API_KEY", "EMBEDDING_PROVIDERS",
    "CHAT_PROVIDERS", "SEARCH_MODE", "SQLITE_PATH", "VECTOR_BACKEND", "LEXICAL_FALLBACK",
)


def concept_vector(text: str) -> np.ndarray:
    t = text.lower()
    vec = [1.0 if any(k in t for k in kws) else 0.0 for kws in CONCEPTS.values()]
    vec.append(0.0 if any(vec) else 1.0)  # texts with no concept only match each other
    return np.array(vec, dtype=np.float32)


class FakeEmbeddings:
    def __init__(self, name="fake", space="fake:concepts", fail_on: str | None = None, down: bool = False):
        self.name = name
        self.space = space
        self.fail_on = fail_on
        self.down = down
        self.calls = 0

    def embed(self, texts):
        self.calls += 1
        if self.down:
            raise ConnectionError(f"{self.name} is down")
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise ConnectionError(f"{self.name} refused {self.fail_on!r}")
        return l2_normalize(np.vstack([concept_vector(t) for t in texts]))


class StubChat:
    name = "stub"

    def __init__(self, reply: str = "[stubbed reply]"):
        self.reply = reply
        self.calls = []

    def complete(self, messages, max_tokens=500, temperature=0.7):
        self.calls.append({"messages": messages, "max_tokens": max_tokens, "temperature": temperature})
        return self.reply


def bella_vista_menu(with_desserts: bool = False) -> MenuExtraction:
    categories = [
        {
            "name": "Pizzas",
            "items": [
                {
                    "name": "Margherita Pizza",
                    "price": "16.99",
                    "description": "Fresh mozzarella, tomato sauce, basil",
                    "dietary_info": ["vegetarian"],
                }
            ],
        }
    ]
    if with_desserts:
        categories.append(
            {"name": "Desserts", "items": [{"name": "Tiramisu", "price": "8.50", "description": "Espresso cake"}]}
        )
    return MenuExtraction.model_validate({"restaurant_name": "Bella Vista", "categories": categories})


def sakura_menu() -> MenuExtraction:
    return MenuExtraction.model_validate(
        {
            "categories": [
                {
                    "name": "Rolls",
                    "items": [
                        {"name": "Salmon Maki", "price": "9", "description": "Six pieces"},
                        {"name": "Nigiri Set", "price": "18", "description": "Chef's selection"},
                    ],
                }
            ]
        }
    )


@pytest.fixture
def make_settings(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    def _make(**overrides) -> Settings:
        values = {"sqlite_path": str(tmp_path / "menucard.db"), "env": "test"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def tmp_db(tmp_path):
    return str(tmp_path / "menucard.db")


@pytest.fixture
def repo(tmp_db):
    r = RestaurantRepository(tmp_db)
    r.init_schema()
    return r


@pytest.fixture
def store(repo, tmp_db):
    return VectorStore(tmp_db)


@pytest.fixture
def fake_embedder():
    return FakeEmbeddings()


@pytest.fixture
def embeddings(fake_embedder):
    return EmbeddingChain([fake_embedder])


@pytest.fixture
def bella_vista(repo):
    restaurant = repo.save_restaurant(
        "owner-1",
        "Bella Vista",
        description="Family Italian kitchen",
        address="12 Harbour St",
        phone="555-0101",
        latitude=40.7128,
        longitude=-74.0060,
    )
    repo.upsert_menu(restaurant.id, "owner-1", bella_vista_menu())
    return restaurant


@pytest.fixture
def sakura(repo):
    restaurant = repo.save_restaurant(
        "owner-2", "Sakura House", description="Sushi bar", address="9 Cherry Ln",
        latitude=40.7306, longitude=-73.9352,
    )
    repo.upsert_menu(restaurant.id, "owner-2", sakura_menu())
    return restaurant


@pytest.fixture
def stub_chat():
    return StubChat()


@pytest.fixture
def services(make_settings, repo, store, embeddings, stub_chat):
    settings = make_settings(sqlite_path=repo.db_path)
    return Services(settings, repository=repo, store=store, embeddings=embeddings, chat=stub_chat)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))
