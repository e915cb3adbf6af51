"""Classification error types."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    """Failure categories reported by provider clients."""

    NO_API_KEY = "no_api_key"
    INVALID_URL = "invalid_url"
    HTTP_STATUS = "http_status"
    INVALID_RESPONSE = "invalid_response"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    TRANSPORT = "transport"


class ProviderError(Exception):
    """Raised when a single provider request fails.

    Attributes:
        kind: Failure category.
        provider: Provider identifier (``claude`` or ``gemini``).
        status: HTTP status code for ``http_status`` failures.
        message: Detail returned by the provider or the transport.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        provider: str,
        message: str = "",
        *,
        status: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.provider = provider
        self.status = status
        self.message = message
        super().__init__(self._render())

    @property
    def retryable(self) -> bool:
        """Return True for rate limits, server errors, bad bodies and network failures."""
        if self.kind is ProviderErrorKind.HTTP_STATUS:
            return self.status is not None and (self.status == 429 or self.status >= 500)
        return self.kind in {
            ProviderErrorKind.INVALID_RESPONSE,
            ProviderErrorKind.EMPTY_RESPONSE,
            ProviderErrorKind.TRANSPORT,
        }

    def _render(self) -> str:
        head = f"{self.provider}: {self.kind.value}"
        if self.status is not None:
            head = f"{head} (HTTP {self.status})"
        return f"{head}: {self.message}" if self.message else head


class ClassificationError(Exception):
    """Raised when no candidate of a batch could be classified."""

    def __init__(self, message: str, *, cause: ProviderError | None = None) -> None:
        super().__init__(message)
        self.cause = cause


__all__ = ["ProviderErrorKind", "ProviderError", "ClassificationError"]
