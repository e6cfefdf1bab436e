"""Failure kinds raised by source adapters.

Adapters raise these; the orchestrator catches ``SourceError`` and moves to the
next source. Only exhaustion of a whole fallback chain reaches the caller, and
it always does so as ``NotFoundError``.
"""

from __future__ import annotations


class SourceError(Exception):
    """Base class for every adapter-level failure."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.source}: {message}" if self.source else message


class NotFoundError(SourceError):
    """The source answered but holds no matching item."""


class TransportError(SourceError):
    """Network, DNS, TLS or non-2xx failure; the source could not be asked."""


class ParseError(SourceError):
    """Markup arrived but the expected structure was not in it."""


class ConfigurationMissingError(SourceError):
    """An optional source is disabled because its credentials are absent."""
