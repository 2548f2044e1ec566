"""HTTP request execution with bounded retry and linear backoff."""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from pesapal_gateway.config import PesapalSettings
from pesapal_gateway.models.exceptions import GatewayError


RetryPolicy = Callable[[GatewayError, int], bool]


def retry_all(error: GatewayError, attempt: int) -> bool:
    """Default policy: every failure is retried until attempts run out."""
    return True


def skip_client_errors(error: GatewayError, attempt: int) -> bool:
    """Stop retrying on 4xx responses; retry 5xx and network failures."""
    return not (error.status_code is not None and 400 <= error.status_code < 500)


@dataclass(frozen=True)
class RequestSpec:
    """
    One logical gateway call.

    Attributes:
        method: HTTP method
        path: Path relative to the API base URL (e.g. "/Auth/RequestToken")
        json: JSON body, if any
        params: Query parameters, if any
        bearer_token: Token for the Authorization header, if the call is authenticated
    """

    method: str
    path: str
    json: Any = None
    params: Mapping[str, str] | None = None
    bearer_token: str | None = field(default=None, repr=False)

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Request-ID": str(uuid.uuid4()),
        }
        if self.json is not None:
            headers["Content-Type"] = "application/json"
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of a single attempt, handed to the on_attempt hook."""

    method: str
    url: str
    attempt: int
    max_attempts: int
    succeeded: bool
    status_code: int | None = None
    error: GatewayError | None = None


def _error_body(response: httpx.Response) -> Any:
    """Parsed JSON error payload, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class RetryingRequestExecutor:
    """
    Executes gateway requests, retrying failed attempts.

    Up to ``retry_attempts`` attempts are made. After attempt ``n`` fails the
    executor waits ``retry_delay_seconds * n`` before the next one. When the
    retry policy declines or attempts run out, the last GatewayError is
    raised with its status code and body.

    Every failure is retried by default, including 4xx responses; pass
    ``retry_policy=skip_client_errors`` to stop early on those.
    """

    def __init__(
        self,
        base_url: str,
        retry_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy = retry_all,
        on_attempt: Callable[[AttemptRecord], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        http_client: httpx.AsyncClient | None = None,
        logger: Any = None,
    ):
        """
        Initialize the executor.

        Args:
            base_url: API base URL; request paths are appended to it
            retry_attempts: Total attempts per request (minimum 1)
            retry_delay_seconds: Base delay for linear backoff
            timeout_seconds: Per-attempt HTTP timeout
            retry_policy: Decides whether a failed attempt may be retried
            on_attempt: Optional hook called after every attempt
            sleep: Awaitable used for backoff waits
            http_client: Pre-built httpx client (one is created if omitted)
            logger: structlog-compatible logger (defaults to the module logger)
        """
        if retry_attempts < 1:
            raise ValueError(f"retry_attempts must be at least 1, got {retry_attempts}")

        self.base_url = base_url.rstrip("/")
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.retry_policy = retry_policy
        self.on_attempt = on_attempt
        self._sleep = sleep
        self.logger = logger or structlog.get_logger(__name__)
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: PesapalSettings, **kwargs: Any) -> "RetryingRequestExecutor":
        kwargs.setdefault(
            "retry_policy", retry_all if settings.retry_on_client_errors else skip_client_errors
        )
        return cls(
            base_url=settings.base_url,
            retry_attempts=settings.retry_attempts,
            retry_delay_seconds=settings.retry_delay_seconds,
            timeout_seconds=settings.request_timeout_seconds,
            **kwargs,
        )

    async def close(self) -> None:
        """Close the HTTP client connection pool."""
        await self.http_client.aclose()

    def backoff_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.retry_delay_seconds * attempt

    async def execute(self, spec: RequestSpec) -> Any:
        """
        Run ``spec`` and return the parsed JSON response body.

        Raises:
            GatewayError: From the final attempt, once retries are exhausted
                or the retry policy declines
        """
        url = f"{self.base_url}{spec.path}"
        last_error: GatewayError | None = None

        for attempt in range(1, self.retry_attempts + 1):
            self.logger.debug(
                "gateway_request_attempt",
                method=spec.method,
                url=url,
                attempt=attempt,
                max_attempts=self.retry_attempts,
            )

            try:
                status_code, data = await self._attempt(spec, url)
            except GatewayError as e:
                last_error = e
                self.logger.warning(
                    "gateway_request_attempt_failed",
                    method=spec.method,
                    url=url,
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                    status_code=e.status_code,
                    error=e.message,
                )
                self._report(
                    AttemptRecord(
                        method=spec.method,
                        url=url,
                        attempt=attempt,
                        max_attempts=self.retry_attempts,
                        succeeded=False,
                        status_code=e.status_code,
                        error=e,
                    )
                )

                if attempt >= self.retry_attempts:
                    break

                if not self.retry_policy(e, attempt):
                    self.logger.info(
                        "gateway_request_retry_skipped",
                        method=spec.method,
                        url=url,
                        attempt=attempt,
                        status_code=e.status_code,
                    )
                    break

                await self._sleep(self.backoff_delay(attempt))
                continue

            self.logger.debug(
                "gateway_request_succeeded", method=spec.method, url=url, attempt=attempt
            )
            self._report(
                AttemptRecord(
                    method=spec.method,
                    url=url,
                    attempt=attempt,
                    max_attempts=self.retry_attempts,
                    succeeded=True,
                    status_code=status_code,
                )
            )
            return data

        self.logger.error(
            "gateway_request_failed",
            method=spec.method,
            url=url,
            status_code=last_error.status_code,
            error=last_error.message,
        )
        raise last_error

    async def _attempt(self, spec: RequestSpec, url: str) -> tuple[int, Any]:
        try:
            response = await self.http_client.request(
                spec.method,
                url,
                headers=spec.build_headers(),
                json=spec.json,
                params=spec.params,
            )
        except httpx.TimeoutException as e:
            raise GatewayError("Pesapal request timeout") from e
        except httpx.RequestError as e:
            # Network errors, connection errors, etc.
            raise GatewayError(f"Pesapal request error: {e}") from e

        if not response.is_success:
            raise GatewayError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                body=_error_body(response),
            )

        try:
            return response.status_code, response.json()
        except ValueError as e:
            raise GatewayError(
                "Gateway returned a non-JSON response",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def _report(self, record: AttemptRecord) -> None:
        if self.on_attempt is not None:
            self.on_attempt(record)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
