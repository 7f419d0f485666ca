"""Rate-limited, authenticated Web API request execution."""

import json
import logging
import math
from typing import Any, cast

import httpx

from spotbridge.config.settings import WebApiSettings
from spotbridge.core.cancellation import CancellationToken, CancellationTokenSource
from spotbridge.domain.exceptions import (
    ApiError,
    MalformedResponseError,
    MalformedThrottleResponseError,
)
from spotbridge.domain.ports import IAuthorizer
from spotbridge.infrastructure.observability.tracing import get_tracer
from spotbridge.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

TOO_MANY_REQUESTS = 429


class RequestExecutor:
    """Executes GET requests against the Web API.

    Every request:
    1. waits for the rate limiter,
    2. gets a bearer token from the authorizer,
    3. retries on 429 (honoring Retry-After + 1s, max 3 attempts),
    4. turns non-200 into ApiError and the body into a JSON object.
    """

    MAX_ATTEMPTS = 3
    RETRY_PADDING_SECONDS = 1.0

    # Hey future me, the executor does NOT own the authorizer, it only asks it for tokens.
    # `shutdown_token` is the backend-wide token (fired by WebApiBackend.finalize()): every
    # request is linked to it AND to the caller's token, so unloading the extension aborts
    # requests nobody would otherwise cancel.
    def __init__(
        self,
        authorizer: IAuthorizer,
        settings: WebApiSettings,
        rate_limiter: RateLimiter | None = None,
        client: httpx.AsyncClient | None = None,
        shutdown_token: CancellationToken | None = None,
    ) -> None:
        self.authorizer = authorizer
        self.settings = settings
        self.rate_limiter = rate_limiter or RateLimiter.from_settings(settings)
        self._client = client
        self._shutdown_token = shutdown_token or CancellationToken.none()

    # Lazy because httpx.AsyncClient must be created inside the running event loop
    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
                proxy=self.settings.proxy,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _relative_target(self, target: str) -> str:
        """Strip the API base from server-supplied absolute URLs (e.g. paging `next`)."""
        base = self.settings.base_url
        if target.startswith(base):
            return target[len(base) :]
        return target

    @staticmethod
    def _retry_delay(response: httpx.Response) -> float:
        """Seconds to wait before retrying a 429 response.

        Raises:
            MalformedThrottleResponseError: Missing or non-numeric Retry-After
        """
        value = response.headers.get("Retry-After")
        if value is None:
            raise MalformedThrottleResponseError(
                "Request failed with 429 error, but does not contain a `Retry-After` header"
            )
        try:
            delay = float(value.strip())
        except ValueError:
            delay = math.nan
        if not math.isfinite(delay) or delay < 0:
            raise MalformedThrottleResponseError(
                "Request failed with 429 error, but does not contain a valid number "
                f"in `Retry-After` header: {value!r}"
            )
        return delay

    async def get_response(
        self,
        target: str,
        params: dict[str, Any] | None,
        token: CancellationToken,
    ) -> httpx.Response:
        """Issue a GET, retrying on 429.

        After MAX_ATTEMPTS throttled responses the last 429 response is returned
        as is - we never loop forever against an overloaded server.

        Raises:
            Cancelled: If cancellation fires while waiting or in flight
            MalformedThrottleResponseError: 429 without a usable Retry-After
            httpx.HTTPError: Transport failures (not retried)
        """
        target = self._relative_target(target)
        if self.settings.log_requests:
            url = self._get_client().build_request("GET", target, params=params).url
            logger.info("webapi request: GET %s", url)

        with CancellationTokenSource.linked(token, self._shutdown_token) as source:
            request_token = source.token
            with tracer.start_as_current_span("webapi.request") as span:
                span.set_attribute("webapi.target", target)

                attempt = 0
                while True:
                    attempt += 1
                    await self.rate_limiter.acquire(request_token)
                    response = await self._send(target, params, request_token)
                    if response.status_code != TOO_MANY_REQUESTS:
                        break

                    delay = self._retry_delay(response)
                    if attempt >= self.MAX_ATTEMPTS:
                        logger.error(
                            "Rate limit reached: retry failed after %d attempts (%s)",
                            attempt,
                            target,
                        )
                        break

                    retry_in = delay + self.RETRY_PADDING_SECONDS
                    logger.warning(
                        "Rate limit reached: retrying in %.1fs (attempt %d/%d, %s)",
                        retry_in,
                        attempt,
                        self.MAX_ATTEMPTS,
                        target,
                    )
                    await request_token.sleep(retry_in)

                span.set_attribute("http.status_code", response.status_code)
                span.set_attribute("webapi.attempts", attempt)

        if self.settings.log_responses:
            logger.info("webapi response (%d):\n%s", response.status_code, response.text)
        return response

    async def _send(
        self,
        target: str,
        params: dict[str, Any] | None,
        token: CancellationToken,
    ) -> httpx.Response:
        access_token = await self.authorizer.get_access_token(token)
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return await token.run(
            self._get_client().get(target, params=params, headers=headers)
        )

    @staticmethod
    def parse_response(response: httpx.Response) -> dict[str, Any]:
        """Turn a response into a JSON object.

        Raises:
            ApiError: Status is not 200 (429 after exhausted retries included)
            MalformedResponseError: Body is not a JSON object
        """
        if response.status_code != 200:
            try:
                detail = json.dumps(response.json(), indent=2)
            except ValueError:
                detail = (
                    f"{response.http_version} {response.status_code} "
                    f"{response.reason_phrase}\n{response.text}"
                )
            raise ApiError(response.status_code, response.reason_phrase, detail)

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                "Malformed response: body is not valid json"
            ) from e
        if not isinstance(payload, dict):
            raise MalformedResponseError("Malformed response: json is not an object")
        return cast(dict[str, Any], payload)

    async def execute(
        self,
        target: str,
        params: dict[str, Any] | None,
        token: CancellationToken,
    ) -> dict[str, Any]:
        """GET `target` (API-relative path or absolute URL) and return the JSON object."""
        response = await self.get_response(target, params, token)
        return self.parse_response(response)

    # Image CDN downloads: no bearer token and no rate limit (different host), but the
    # same cancellation rules apply.
    async def download(self, url: str, token: CancellationToken) -> bytes:
        """Download raw bytes from an absolute URL.

        Raises:
            ApiError: Non-200 response
            Cancelled: If cancellation fires
        """
        with CancellationTokenSource.linked(token, self._shutdown_token) as source:
            response = await source.token.run(self._get_client().get(url))
        if response.status_code != 200:
            raise ApiError(
                response.status_code,
                response.reason_phrase,
                f"Failed to download {url}",
            )
        return response.content
