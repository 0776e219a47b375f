# menucard/llm/chain.py
from __future__ import annotations

import logging
import time
from typing import Protocol

from menucard.config import Settings
from menucard.errors import ConfigurationError, UpstreamUnavailable
from menucard.obs.metrics import CHAT_LATENCY, PROVIDER_FAILURES

log = logging.getLogger(__name__)


class ChatModel(Protocol):
    name: str

    def complete(self, messages: list[dict[str, str]], max_tokens: int = 500, temperature: float = 0.7) -> str:
        ...


class ChatChain:
    """Ordered fallback over chat models; same contract as a single model."""

    name = "chain"

    def __init__(self, models: list[ChatModel]):
        if not models:
            raise ConfigurationError(
                "No chat model available. Configure OPENROUTER_API_KEY or GROQ_API_KEY"
            )
        self.models = list(models)

    @property
    def names(self) -> list[str]:
        return [m.name for m in self.models]

    def complete(self, messages: list[dict[str, str]], max_tokens: int = 500, temperature: float = 0.7) -> str:
        attempted: list[str] = []
        for model in self.models:
            attempted.append(model.name)
            t0 = time.perf_counter()
            try:
                text = model.complete(messages, max_tokens=max_tokens, temperature=temperature)
            except Exception as e:
                PROVIDER_FAILURES.labels(provider=model.name, capability="chat").inc()
                log.warning("Chat provider %s failed: %s", model.name, e)
                continue
            finally:
                CHAT_LATENCY.observe(time.perf_counter() - t0)
            return text
        raise UpstreamUnavailable("Failed to generate chat response", attempted=attempted)


def build_chat_chain(settings: Settings) -> ChatChain:
    """Models in CHAT_PROVIDERS order, skipping those without credentials."""
    models: list[ChatModel] = []
    for name in settings.chat_provider_names:
        if name == "openrouter":
            if settings.openrouter_api_key:
                from .openrouter import OpenRouterChat

                models.append(
                    OpenRouterChat(
                        settings.openrouter_api_key,
                        settings.openrouter_chat_model,
                        base_url=settings.openrouter_base_url,
                        app_url=settings.app_url,
                        app_name=settings.app_name,
                        timeout_s=settings.chat_timeout_s,
                    )
                )
        elif name == "groq":
            if settings.groq_api_key:
                from .groq_gen import GroqGenerator

                models.append(
                    GroqGenerator(settings.groq_model, settings.groq_api_key, timeout_s=settings.chat_timeout_s)
                )
        else:
            raise ConfigurationError(f"Unknown chat provider: {name}")
    return ChatChain(models)
