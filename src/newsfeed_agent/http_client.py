"""HTTP GET execution with a per-attempt deadline and bounded retries."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from newsfeed_agent.errors import ApiError, ErrorKind, classify_response, is_transient

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 12.0
DEFAULT_RETRIES = 2
TRANSIENT_BACKOFF = 0.3
RATE_LIMIT_BACKOFF = 1.2


@dataclass(frozen=True)
class FetchRequest:
    """A fully resolved GET request.

    Params and headers are kept sorted so that two requests for the same
    resource always produce the same signature.
    """

    url: str
    params: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(
        cls,
        url: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> "FetchRequest":
        """Create a request, dropping params whose value is None."""
        clean_params = tuple(sorted(
            (str(k), str(v)) for k, v in (params or {}).items() if v is not None
        ))
        clean_headers = tuple(sorted(
            (str(k).lower(), str(v)) for k, v in (headers or {}).items()
        ))
        return cls(url=url, params=clean_params, headers=clean_headers)

    @property
    def full_url(self) -> str:
        return str(httpx.URL(self.url, params=self.params))

    @property
    def signature(self) -> str:
        """Stable identity of this request, used as the cache key basis."""
        lines = [f"GET {self.full_url}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        return "\n".join(lines)


class FetchExecutor:
    """Performs GET requests and returns decoded JSON.

    Redirects are followed. Timeouts, transport failures and HTTP 429 are
    retried up to ``retries`` times. Everything else fails on the first
    attempt.
    Every failure is raised as an ApiError.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self.timeout = timeout
        self.retries = retries
        self._sleep = sleep

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FetchExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def execute(self, request: FetchRequest) -> Any:
        """Fetch a request and return its JSON body.

        Raises:
            ApiError: When the request fails after the retry budget, or
                fails in a way that is not worth retrying.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            retry=retry_if_exception(is_transient),
            wait=self._backoff,
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._attempt(request)
        return self._decode(response)

    async def _attempt(self, request: FetchRequest) -> httpx.Response:
        try:
            response = await asyncio.wait_for(
                self._client.get(
                    request.url,
                    params=request.params,
                    headers=dict(request.headers),
                    timeout=self.timeout,
                    follow_redirects=True,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ApiError(ErrorKind.TIMEOUT, "Request timeout") from e
        except httpx.TransportError as e:
            raise ApiError(ErrorKind.NETWORK, "Network error") from e
        except httpx.HTTPError as e:
            raise ApiError(ErrorKind.UNKNOWN, str(e) or "Request failed") from e

        if not response.is_success:
            raise classify_response(
                response.status_code, response.headers, response.text
            )
        return response

    @staticmethod
    def _backoff(retry_state: RetryCallState) -> float:
        """Seconds to wait before the next attempt."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, ApiError) and exc.kind is ErrorKind.RATE_LIMIT:
            if exc.retry_after is not None and exc.retry_after > 0:
                return exc.retry_after
            return RATE_LIMIT_BACKOFF
        return TRANSIENT_BACKOFF

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                ErrorKind.UNKNOWN,
                "Invalid JSON response",
                http_status=response.status_code,
            ) from e
