# menucard/errors.py
"""
Error taxonomy shared by every layer.

ConfigurationError and NotFound are raised to the caller as-is.
UpstreamUnavailable covers network-bound collaborators (embedding provider,
persistence, chat model); it carries the providers that were attempted so the
final failure of a fallback chain is explainable.
"""

from __future__ import annotations


class MenuCardError(Exception):
    """Base class for all service errors."""


class ConfigurationError(MenuCardError):
    """A required credential or provider is missing. Never retried."""


class NotFound(MenuCardError):
    """A referenced restaurant or menu does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class UpstreamUnavailable(MenuCardError):
    """An external collaborator failed or could not be reached."""

    def __init__(self, message: str, attempted: list[str] | None = None):
        super().__init__(message)
        self.attempted = list(attempted or [])

    def __str__(self) -> str:
        base = super().__str__()
        if self.attempted:
            return f"{base} (attempted: {', '.join(self.attempted)})"
        return base


class UpstreamTimeout(UpstreamUnavailable):
    """An external call exceeded its time budget."""


class MalformedUpstreamResponse(MenuCardError):
    """A model reply could not be parsed, even after recovery."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class Conflict(MenuCardError):
    """A write would violate a uniqueness rule (e.g. a taken slug)."""
