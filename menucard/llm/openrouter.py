# menucard/llm/openrouter.py
"""
OpenRouter chat completions through the OpenAI SDK (OpenAI-compatible API).
"""

from __future__ import annotations

from typing import Any

from openai import OpenAI

from menucard.errors import ConfigurationError, MalformedUpstreamResponse
from menucard.timeouts import call_with_timeout


class OpenRouterChat:
    name = "openrouter"

    def __init__(
        self,
        api_key: str | None,
        model: str = "openai/gpt-3.5-turbo",
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        app_url: str = "http://localhost:3000",
        app_name: str = "MenuCard",
        timeout_s: float = 30.0,
    ):
        if not api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")
        self.model = model
        self.timeout_s = timeout_s
        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_s,
            max_retries=1,
            # OpenRouter attributes traffic by these headers
            default_headers={"HTTP-Referer": app_url, "X-Title": app_name},
        )

    def complete(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int = 500,
        temperature: float = 0.7,
        *,
        model: str | None = None,
    ) -> str:
        resp = call_with_timeout(
            self.client.chat.completions.create,
            model=model or self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout_s=self.timeout_s,
            operation="openrouter chat",
        )
        if not resp.choices or resp.choices[0].message.content is None:
            raise MalformedUpstreamResponse("No response from OpenRouter API")
        return resp.choices[0].message.content.strip()
