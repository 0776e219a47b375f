from __future__ import annotations

from groq import Groq

from menucard.errors import ConfigurationError, MalformedUpstreamResponse
from menucard.timeouts import call_with_timeout


class GroqGenerator:
    """
    Groq API wrapper for chat completion.
    """

    name = "groq"

    def __init__(self, model: str = "llama-3.1-8b-instant", api_key: str | None = None, *, timeout_s: float = 30.0):
        if not api_key:
            raise ConfigurationError("Missing GROQ_API_KEY")
        self.model = model
        self.timeout_s = timeout_s
        self.client = Groq(api_key=api_key, timeout=timeout_s, max_retries=1)

    def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> str:
        resp = call_with_timeout(
            self.client.chat.completions.create,
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout_s=self.timeout_s,
            operation="groq chat",
        )
        if not resp.choices or resp.choices[0].message.content is None:
            raise MalformedUpstreamResponse("groq returned no choices")
        return resp.choices[0].message.content.strip()
