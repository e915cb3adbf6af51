"""Serialized AI request worker with retry, backoff, and provider fallback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Optional

from .errors import ProviderError
from .models import ModelTier
from .providers import AIProvider, ProviderClient, default_clients, estimate_cost

if TYPE_CHECKING:
    from dotbrain.credentials import CredentialStore
    from dotbrain.stats.store import StatisticsStore

LOGGER = logging.getLogger(__name__)

DEFAULT_PROVIDER = AIProvider.GEMINI

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class _Request:
    model: Optional[str]
    tier: Optional[ModelTier]
    max_tokens: int
    prompt: str


class AIService:
    """Send prompts to the selected provider one request at a time.

    Requests are queued and consumed by a single worker task. The worker reads
    the provider selection and credentials when it starts a request and
    finishes that request, fallback included, before taking the next one, so a
    selection change never affects a request already in flight.

    Attributes:
        max_retries: Attempts made against the current provider.
        backoff_base: Base delay in seconds; attempt ``n`` waits ``base * 2**n``.
    """

    def __init__(
        self,
        credentials: "CredentialStore",
        *,
        clients: Dict[AIProvider, ProviderClient] | None = None,
        statistics: "StatisticsStore | None" = None,
        default_provider: AIProvider | str = DEFAULT_PROVIDER,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        fast_max_tokens: int = 4096,
        precise_max_tokens: int = 2048,
        sleep: Sleeper | None = None,
    ) -> None:
        self.credentials = credentials
        self.clients = clients or default_clients()
        self.statistics = statistics
        self.default_provider = AIProvider(default_provider)
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.fast_max_tokens = fast_max_tokens
        self.precise_max_tokens = precise_max_tokens
        self._sleep: Sleeper = sleep or asyncio.sleep
        self._queue: asyncio.Queue[tuple[_Request, asyncio.Future[str]]] | None = None
        self._worker: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "AIService":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Provider selection                                                 #
    # ------------------------------------------------------------------ #

    @property
    def current_provider(self) -> AIProvider:
        """Return the persisted provider selection, or the configured default."""
        if self.statistics is not None:
            selected = self.statistics.selected_provider()
            if selected:
                try:
                    return AIProvider(selected)
                except ValueError:
                    LOGGER.warning("Ignoring unknown provider selection %r", selected)
        return self.default_provider

    @property
    def fast_model(self) -> str:
        return self.current_provider.fast_model

    @property
    def precise_model(self) -> str:
        return self.current_provider.precise_model

    def fallback_provider(self, primary: AIProvider) -> Optional[AIProvider]:
        """Return the alternate provider when it has credentials."""
        alternate = primary.alternate
        return alternate if self.credentials.get(alternate.account) else None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the worker task on the running loop if it is not running."""
        if self._worker is not None and not self._worker.done():
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run_worker(self._queue))

    async def close(self) -> None:
        """Stop the worker; the request in flight and queued ones are cancelled."""
        worker, queue = self._worker, self._queue
        self._worker = None
        self._queue = None
        if worker is None:
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        if queue is not None:
            while not queue.empty():
                _, future = queue.get_nowait()
                if not future.done():
                    future.cancel()

    async def send(self, model: str, max_tokens: int, prompt: str) -> str:
        """Send ``prompt`` to ``model`` and return the reply text.

        Raises:
            ProviderError: The last error of the current provider when every
                attempt, and the fallback, failed.
        """
        return await self._submit(_Request(model, None, max_tokens, prompt))

    async def send_fast(self, prompt: str, max_tokens: int | None = None) -> str:
        """Send using the fast tier of the provider selected at dispatch time."""
        return await self._submit(
            _Request(None, "fast", max_tokens or self.fast_max_tokens, prompt)
        )

    async def send_precise(self, prompt: str, max_tokens: int | None = None) -> str:
        """Send using the precise tier of the provider selected at dispatch time."""
        return await self._submit(
            _Request(None, "precise", max_tokens or self.precise_max_tokens, prompt)
        )

    # ------------------------------------------------------------------ #
    # Worker                                                             #
    # ------------------------------------------------------------------ #

    async def _submit(self, request: _Request) -> str:
        self.start()
        assert self._queue is not None
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        await self._queue.put((request, future))
        return await future

    async def _run_worker(self, queue: asyncio.Queue[tuple[_Request, asyncio.Future[str]]]) -> None:
        while True:
            request, future = await queue.get()
            try:
                if future.cancelled():
                    continue
                try:
                    result = await self._dispatch(request)
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                queue.task_done()

    async def _dispatch(self, request: _Request) -> str:
        provider = self.current_provider
        model = request.model or provider.model_for(request.tier or "fast")
        return await self._send_with_retry(provider, model, request.max_tokens, request.prompt)

    async def _send_with_retry(
        self, provider: AIProvider, model: str, max_tokens: int, prompt: str
    ) -> str:
        last_error: ProviderError | None = None

        for attempt in range(self.max_retries):
            try:
                return await self._send_direct(provider, model, max_tokens, prompt)
            except ProviderError as exc:
                last_error = exc
                if not exc.retryable:
                    LOGGER.debug("Non-retryable %s error: %s", provider.value, exc)
                    break
                if attempt < self.max_retries - 1:
                    delay = self.backoff_base * 2**attempt
                    LOGGER.info(
                        "Retrying %s in %.1fs after attempt %d failed: %s",
                        provider.value,
                        delay,
                        attempt + 1,
                        exc,
                    )
                    await self._sleep(delay)

        fallback = self.fallback_provider(provider)
        if fallback is not None:
            fallback_model = (
                fallback.fast_model if model == provider.fast_model else fallback.precise_model
            )
            LOGGER.warning("%s failed; falling back to %s", provider.value, fallback.value)
            try:
                return await self._send_direct(fallback, fallback_model, max_tokens, prompt)
            except ProviderError as exc:
                LOGGER.warning("Fallback to %s failed: %s", fallback.value, exc)

        assert last_error is not None
        raise last_error

    async def _send_direct(
        self, provider: AIProvider, model: str, max_tokens: int, prompt: str
    ) -> str:
        api_key = self.credentials.get(provider.account)
        response = await self.clients[provider].send(api_key, model, max_tokens, prompt)
        if self.statistics is not None:
            cost = estimate_cost(model, response)
            if cost:
                self.statistics.add_api_cost(cost)
        return response.text


__all__ = ["AIService", "DEFAULT_PROVIDER", "Sleeper"]
