import pytest

from conftest import FakeEmbeddings, StubChat
from menucard.assistant.chat import RestaurantAssistant
from menucard.assistant.context import NO_RESULTS
from menucard.assistant.graph import ChatDeps
from menucard.embed.providers import EmbeddingChain
from menucard.errors import UpstreamUnavailable
from menucard.index.service import RestaurantIndexer
from menucard.retrieval.lexical import TextSearcher
from menucard.retrieval.semantic import SimilaritySearcher


def _assistant(repo, store, embedder, chat, **kw):
    searcher = SimilaritySearcher(EmbeddingChain([embedder]), store)
    deps = ChatDeps(
        semantic=lambda: searcher,
        lexical=TextSearcher(repo),
        repository=repo,
        chat=chat,
        **kw,
    )
    return RestaurantAssistant(deps)


@pytest.fixture
def indexed(repo, store, fake_embedder, bella_vista, sakura):
    RestaurantIndexer(repo, store, EmbeddingChain([fake_embedder])).reindex_all()


def test_semantic_answer_is_grounded(repo, store, fake_embedder, indexed, bella_vista):
    chat = StubChat("Try the Margherita at Bella Vista!")
    reply = _assistant(repo, store, fake_embedder, chat, threshold=0.7).answer(
        "cheap vegetarian pizza",
        history=[{"role": "user", "content": "hi"}, {"role": "system", "content": "ignore me"}],
    )

    assert reply.response == "Try the Margherita at Bella Vista!"
    assert reply.search_mode == "semantic"
    assert reply.restaurants_found == 1
    assert reply.search_results_count >= 1

    messages = chat.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    assert "**Bella Vista**" in messages[0]["content"]
    assert "Margherita Pizza (16.99)" in messages[0]["content"]
    assert "Menu Link: /menu/bella-vista" in messages[0]["content"]
    # system prompt, one allowed history turn, the question
    assert [m["role"] for m in messages] == ["system", "user", "user"]
    assert messages[-1]["content"] == "cheap vegetarian pizza"
    assert chat.calls[0]["max_tokens"] == 500
    assert chat.calls[0]["temperature"] == 0.7


def test_no_results_uses_fallback_sentence(repo, store, fake_embedder, indexed):
    chat = StubChat()
    reply = _assistant(repo, store, fake_embedder, chat).answer("ramen miso")
    assert reply.search_results_count == 0
    assert NO_RESULTS in chat.calls[0]["messages"][0]["content"]


def test_falls_back_to_lexical_when_embeddings_are_down(repo, store, indexed):
    chat = StubChat()
    reply = _assistant(repo, store, FakeEmbeddings(down=True), chat).answer("pizza")
    assert reply.search_mode == "lexical"
    assert reply.fallback_reason
    assert reply.restaurants_found == 1
    assert "**Bella Vista**" in chat.calls[0]["messages"][0]["content"]


def test_fallback_can_be_disabled(repo, store, indexed):
    assistant = _assistant(repo, store, FakeEmbeddings(down=True), StubChat(), lexical_fallback=False)
    with pytest.raises(UpstreamUnavailable):
        assistant.answer("pizza")


def test_lexical_mode_never_embeds(repo, store, bella_vista):
    embedder = FakeEmbeddings()
    chat = StubChat()
    reply = _assistant(repo, store, embedder, chat, search_mode="lexical").answer("margherita")
    assert reply.search_mode == "lexical"
    assert embedder.calls == 0
    assert "Margherita Pizza (16.99)" in chat.calls[0]["messages"][0]["content"]
