"""HTTP clients for the supported language-model providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Protocol

import httpx

from .errors import ProviderError, ProviderErrorKind
from .models import ModelTier

LOGGER = logging.getLogger(__name__)

CLAUDE_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
CLAUDE_API_VERSION = "2023-06-01"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class _ProviderInfo(NamedTuple):
    display_name: str
    fast_model: str
    precise_model: str
    key_prefix: str
    env_var: str


class AIProvider(str, Enum):
    """Language-model providers DotBrain can talk to."""

    CLAUDE = "claude"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return _PROVIDER_TABLE[self].display_name

    @property
    def fast_model(self) -> str:
        return _PROVIDER_TABLE[self].fast_model

    @property
    def precise_model(self) -> str:
        return _PROVIDER_TABLE[self].precise_model

    @property
    def key_prefix(self) -> str:
        """Return the prefix every valid API key of this provider starts with."""
        return _PROVIDER_TABLE[self].key_prefix

    @property
    def env_var(self) -> str:
        """Return the environment variable consulted when no stored key exists."""
        return _PROVIDER_TABLE[self].env_var

    @property
    def account(self) -> str:
        """Return the credential-store account name for this provider's key."""
        return f"{self.value}-api-key"

    @property
    def alternate(self) -> "AIProvider":
        return AIProvider.GEMINI if self is AIProvider.CLAUDE else AIProvider.CLAUDE

    def model_for(self, tier: ModelTier) -> str:
        return self.fast_model if tier == "fast" else self.precise_model

    def is_valid_key(self, key: str) -> bool:
        return key.startswith(self.key_prefix)


_PROVIDER_TABLE: dict[AIProvider, _ProviderInfo] = {
    AIProvider.CLAUDE: _ProviderInfo(
        "Claude",
        "claude-haiku-4-5-20251001",
        "claude-sonnet-4-5-20250929",
        "sk-ant-",
        "ANTHROPIC_API_KEY",
    ),
    AIProvider.GEMINI: _ProviderInfo(
        "Gemini",
        "gemini-2.5-flash",
        "gemini-2.5-pro",
        "AIza",
        "GEMINI_API_KEY",
    ),
}

# USD per million (input, output) tokens.
MODEL_PRICES: Dict[str, tuple[float, float]] = {
    "claude-haiku-4-5-20251001": (1.00, 5.00),
    "claude-sonnet-4-5-20250929": (3.00, 15.00),
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-pro": (1.25, 10.00),
}


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    """Text and token usage returned by one provider call."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0


def estimate_cost(model: str, response: ProviderResponse) -> float:
    """Return the USD cost of ``response``; unknown models cost nothing."""
    prices = MODEL_PRICES.get(model)
    if prices is None:
        return 0.0
    input_price, output_price = prices
    return (response.input_tokens * input_price + response.output_tokens * output_price) / 1_000_000


class ProviderClient(Protocol):
    """Interface implemented by the per-provider HTTP clients."""

    provider: AIProvider

    async def send(
        self, api_key: Optional[str], model: str, max_tokens: int, prompt: str
    ) -> ProviderResponse: ...


class _HTTPProviderClient:
    """Shared request and error mapping for JSON-over-HTTP providers."""

    provider: AIProvider

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        base_url: str | None = None,
    ) -> None:
        self._http_client = http_client
        self._timeout = timeout
        self._base_url = base_url

    async def _post(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        if self._http_client is not None:
            return await self._request(self._http_client, url, headers, body)
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
            return await self._request(client, url, headers, body)

    async def _request(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
    ) -> Dict[str, Any]:
        name = self.provider.value
        try:
            response = await client.post(url, headers=headers, json=body)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise ProviderError(ProviderErrorKind.INVALID_URL, name, str(exc)) from exc
        except httpx.TransportError as exc:
            raise ProviderError(ProviderErrorKind.TRANSPORT, name, str(exc)) from exc

        if response.status_code != 200:
            raise ProviderError(
                ProviderErrorKind.HTTP_STATUS,
                name,
                _error_message(response),
                status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, name, "response body is not JSON"
            ) from exc
        if not isinstance(payload, dict):
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, name, "response body is not a JSON object"
            )
        return payload

    def _require_key(self, api_key: Optional[str]) -> str:
        if not api_key:
            raise ProviderError(
                ProviderErrorKind.NO_API_KEY,
                self.provider.value,
                f"no API key configured for {self.provider.display_name}",
            )
        return api_key


class ClaudeClient(_HTTPProviderClient):
    """Anthropic Messages API client."""

    provider = AIProvider.CLAUDE

    async def send(
        self, api_key: Optional[str], model: str, max_tokens: int, prompt: str
    ) -> ProviderResponse:
        key = self._require_key(api_key)
        headers = {
            "x-api-key": key,
            "anthropic-version": CLAUDE_API_VERSION,
            "content-type": "application/json",
        }
        body = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        payload = await self._post(self._base_url or CLAUDE_MESSAGES_URL, headers, body)

        content = payload.get("content")
        if not isinstance(content, list):
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE, self.provider.value, "missing content blocks"
            )
        text = "".join(
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
        if not text.strip():
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.provider.value)

        usage = payload.get("usage") or {}
        return ProviderResponse(
            text=text,
            input_tokens=int(usage.get("input_tokens", 0) or 0),
            output_tokens=int(usage.get("output_tokens", 0) or 0),
        )


class GeminiClient(_HTTPProviderClient):
    """Google Generative Language API client."""

    provider = AIProvider.GEMINI

    async def send(
        self, api_key: Optional[str], model: str, max_tokens: int, prompt: str
    ) -> ProviderResponse:
        key = self._require_key(api_key)
        url = f"{self._base_url or GEMINI_BASE_URL}/{model}:generateContent"
        headers = {"x-goog-api-key": key, "content-type": "application/json"}
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_tokens},
        }
        payload = await self._post(url, headers, body)

        candidates = payload.get("candidates")
        if not isinstance(candidates, list):
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE, self.provider.value, "missing candidates"
            )
        if not candidates:
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.provider.value)
        first = candidates[0] if isinstance(candidates[0], dict) else {}
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise ProviderError(ProviderErrorKind.EMPTY_RESPONSE, self.provider.value)

        usage = payload.get("usageMetadata") or {}
        return ProviderResponse(
            text=text,
            input_tokens=int(usage.get("promptTokenCount", 0) or 0),
            output_tokens=int(usage.get("candidatesTokenCount", 0) or 0),
        )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:200]


def default_clients(
    *, http_client: httpx.AsyncClient | None = None, timeout: float = 60.0
) -> Dict[AIProvider, ProviderClient]:
    """Return one client per provider sharing ``http_client`` when given."""
    return {
        AIProvider.CLAUDE: ClaudeClient(http_client=http_client, timeout=timeout),
        AIProvider.GEMINI: GeminiClient(http_client=http_client, timeout=timeout),
    }


__all__ = [
    "AIProvider",
    "ProviderResponse",
    "ProviderClient",
    "ClaudeClient",
    "GeminiClient",
    "MODEL_PRICES",
    "estimate_cost",
    "default_clients",
]
