"""Make API HTTP client with rate limiting and retries."""

import asyncio
import logging
import math
from typing import TYPE_CHECKING, Any

import httpx
from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field, field_validator

from makescout.api.errors import RATE_LIMITED_STATUS, TIMEOUT_STATUS, MakeApiError
from makescout.api.query import (
    Query,
    build_url,
    normalize_authorization,
    normalize_base_url,
)
from makescout.api.retry import RetryPolicy, parse_retry_after_ms
from makescout.utils.rate_limiter import RateLimiter

if TYPE_CHECKING:
    from makescout.config import Settings

logger = logging.getLogger(__name__)

MIN_TIMEOUT_MS = 1000
DEFAULT_TIMEOUT_MS = 20_000


class ClientConfig(BaseModel):
    """Connection settings for a MakeClient."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(description="Zone URL, e.g. https://eu1.make.com")
    authorization: str = Field(
        description="Authorization header value; a bare token gets 'Token ' prefixed"
    )
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS, description="Per-request deadline in milliseconds"
    )
    requests_per_minute: float | None = Field(
        default=None, description="Optional request quota applied from the start"
    )

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        return normalize_base_url(value)

    @field_validator("authorization")
    @classmethod
    def _normalize_authorization(cls, value: str) -> str:
        return normalize_authorization(value)

    @field_validator("timeout_ms")
    @classmethod
    def _clamp_timeout(cls, value: int) -> int:
        return max(MIN_TIMEOUT_MS, value)


class MakeClient:
    """Async JSON client for the Make REST API.

    Requests go through an optional per-minute rate limiter and are retried
    when the server answers 429. Every other failure is raised right away as
    a MakeApiError.
    """

    @beartype
    def __init__(
        self,
        config: ClientConfig,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Make client.

        Args:
            config: Base URL, credentials and timeout.
            retry_policy: Attempt budget and backoff. Defaults to 3 attempts.
            transport: Optional httpx transport, mainly for tests.
        """
        self._config = config
        self._retry = retry_policy or RetryPolicy()
        self._transport = transport
        self._timeout_ms = config.timeout_ms
        self._rate_limiter: RateLimiter | None = None
        self._client: httpx.AsyncClient | None = None
        if config.requests_per_minute is not None:
            self.set_rate_limit_per_minute(config.requests_per_minute)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "MakeClient":
        """Build a client from application settings."""
        config = ClientConfig(
            base_url=settings.base_url,
            authorization=settings.api_token,
            timeout_ms=settings.timeout_ms,
        )
        return cls(
            config,
            retry_policy=RetryPolicy(max_attempts=settings.max_attempts),
            transport=transport,
        )

    async def __aenter__(self) -> "MakeClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            transport=self._transport,
            headers={
                "Authorization": self._config.authorization,
                "Accept": "application/json",
            },
        )
        return self

    @beartype
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def rate_limiter(self) -> RateLimiter | None:
        return self._rate_limiter

    @beartype
    def set_timeout_ms(self, timeout_ms: int | float) -> None:
        """Change the per-request deadline.

        Non-positive or non-finite values are ignored; anything below one
        second is raised to one second.
        """
        if not math.isfinite(timeout_ms) or timeout_ms <= 0:
            return
        self._timeout_ms = max(MIN_TIMEOUT_MS, math.floor(timeout_ms))

    @beartype
    def set_rate_limit_per_minute(self, per_minute: int | float) -> None:
        """Enable or reconfigure request spacing for a per-minute quota."""
        if not math.isfinite(per_minute) or per_minute <= 0:
            return
        if self._rate_limiter is None:
            self._rate_limiter = RateLimiter(per_minute)
        else:
            self._rate_limiter.configure(per_minute)

    @beartype
    def url(self, path: str, query: Query | None = None) -> str:
        """Build the full request URL for ``path``."""
        return build_url(self._config.base_url, path, query)

    async def get_json(self, path: str, query: Query | None = None) -> Any:
        """GET ``path`` and return the decoded JSON body."""
        return await self._request_json("GET", path, query=query)

    async def post_json(
        self,
        path: str,
        query: Query | None = None,
        body: Any = None,
    ) -> Any:
        """POST ``body`` as JSON to ``path`` and return the decoded JSON body."""
        return await self._request_json("POST", path, query=query, body=body)

    async def _request_json(
        self,
        method: str,
        path: str,
        query: Query | None = None,
        body: Any = None,
    ) -> Any:
        """Send a request, honouring the rate limiter and the retry policy.

        Raises:
            MakeApiError: On timeout (408), repeated rate limiting (429), any
                other non-2xx status, or a 2xx body that is not valid JSON.
            httpx.RequestError: On transport failures other than timeouts.
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        url = self.url(path, query)
        max_attempts = self._retry.max_attempts

        for attempt in range(1, max_attempts + 1):
            if self._rate_limiter is not None:
                await self._rate_limiter.wait_turn()

            response = await self._send(method, url, path, body)
            status = response.status_code
            retry_after = response.headers.get("Retry-After")

            if self._retry.should_retry(status, attempt):
                delay_ms = self._retry.delay_ms(attempt, retry_after)
                logger.info(
                    "Rate limited (429) on %s %s, attempt %d/%d; retrying in %.0fms",
                    method,
                    path,
                    attempt,
                    max_attempts,
                    delay_ms,
                )
                await asyncio.sleep(delay_ms / 1000)
                continue

            if status == RATE_LIMITED_STATUS:
                raise MakeApiError(
                    f"Make API error (exhausted retries) ({method} {path})",
                    status=RATE_LIMITED_STATUS,
                    url=url,
                    body_text=_read_body_text(response),
                    retry_after_ms=parse_retry_after_ms(retry_after),
                )

            if not response.is_success:
                logger.warning("Make API error %d on %s %s", status, method, path)
                raise MakeApiError(
                    f"Make API error {status} ({method} {path})",
                    status=status,
                    url=url,
                    body_text=_read_body_text(response),
                    retry_after_ms=parse_retry_after_ms(retry_after),
                )

            try:
                return response.json()
            except ValueError as e:
                raise MakeApiError(
                    f"Make API returned invalid JSON ({method} {path})",
                    status=status,
                    url=url,
                    body_text=_read_body_text(response),
                ) from e

        # Only reachable with a policy whose should_retry lets the last attempt through.
        raise MakeApiError(
            f"Make API error (exhausted retries) ({method} {path})",
            status=RATE_LIMITED_STATUS,
            url=url,
        )

    async def _send(self, method: str, url: str, path: str, body: Any) -> httpx.Response:
        """Issue a single attempt, cancelling it once the deadline passes."""
        if not self._client:
            raise RuntimeError("Client not initialized.")

        timeout_s = self._timeout_ms / 1000
        try:
            return await asyncio.wait_for(
                self._client.request(
                    method,
                    url,
                    json=body,
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Request timed out after %dms: %s %s", self._timeout_ms, method, path)
            raise MakeApiError(
                f"Request timed out ({method} {path})",
                status=TIMEOUT_STATUS,
                url=url,
            ) from e


def _read_body_text(response: httpx.Response) -> str | None:
    """Best-effort response body, None if it cannot be decoded."""
    try:
        return response.text
    except (httpx.ResponseNotRead, LookupError, UnicodeDecodeError):
        logger.debug("Could not read response body from %s", response.url, exc_info=True)
        return None
