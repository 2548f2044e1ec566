"""Bearer token lifecycle: acquisition, expiry tracking and single-flight refresh."""

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog

from pesapal_gateway.config import PesapalSettings
from pesapal_gateway.infrastructure.cache import TokenCache
from pesapal_gateway.infrastructure.encryption import TokenCipher
from pesapal_gateway.infrastructure.http import RequestSpec, RetryingRequestExecutor
from pesapal_gateway.models.exceptions import GatewayError, PesapalError
from pesapal_gateway.models.token import AccessToken, utcnow


TOKEN_PATH = "/Auth/RequestToken"
TOKEN_CACHE_KEY = "pesapal:access_token"


def _body_status(data: Any) -> int | None:
    """Status code the gateway embeds in 200 responses, if numeric."""
    if not isinstance(data, Mapping):
        return None
    try:
        return int(data.get("status"))
    except (TypeError, ValueError):
        return None


class TokenLifecycleManager:
    """
    Owns the current gateway token.

    ``ensure_valid_token`` resolves in this order:

    1. A live entry in the token cache (no network)
    2. The in-memory token, while inside its validity window
    3. The refresh already in flight, if any
    4. A new refresh, published so concurrent callers share it

    At most one refresh request is in flight at any time; every caller
    waiting on it observes the same token or the same error.

    When encryption is enabled the token is held encrypted in memory and in
    the cache and only decrypted on the way out.
    """

    def __init__(
        self,
        settings: PesapalSettings,
        executor: RetryingRequestExecutor,
        cache: TokenCache | None = None,
        cipher: TokenCipher | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: Any = None,
    ):
        """
        Initialize the manager.

        Args:
            settings: Client settings (credentials, lifetimes, cache/encryption switches)
            executor: Request executor used for the token call
            cache: Token cache; created when caching is enabled and none is given
            cipher: Token cipher; created when encryption is enabled and none is given
            clock: Returns the current UTC time
            logger: structlog-compatible logger (defaults to the module logger)
        """
        self._settings = settings
        self._executor = executor
        self._clock = clock
        self.logger = logger or structlog.get_logger(__name__)

        self._cache: TokenCache | None = None
        if settings.use_cache:
            self._cache = cache if cache is not None else TokenCache()

        self._cipher: TokenCipher | None = None
        if settings.encrypt_tokens:
            self._cipher = cipher or TokenCipher.from_settings(
                settings.consumer_secret, settings.token_encryption_key
            )

        self._token: AccessToken | None = None
        self._refresh_task: asyncio.Task[AccessToken] | None = None

    @property
    def current_token(self) -> AccessToken | None:
        """Snapshot of the token held in memory (value may be encrypted)."""
        return self._token

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    async def ensure_valid_token(self) -> str:
        """
        Return a token that is inside its validity window.

        Raises:
            GatewayError: If a refresh was needed and failed after all retries
            TokenDecryptionError: If the stored token cannot be decrypted
        """
        if self._cache is not None:
            cached = self._cache.get(TOKEN_CACHE_KEY)
            if cached is not None:
                return self._reveal(cached)

        token = self._token
        if token is not None and not token.is_expired(self._clock()):
            return self._reveal(token.value)

        token = await self._refresh_once()
        return self._reveal(token.value)

    async def request_token(self) -> str:
        """Force a refresh (joining one already in flight) and return the new token."""
        token = await self._refresh_once()
        return self._reveal(token.value)

    def invalidate(self) -> None:
        """Drop the in-memory token and its cache entry."""
        self._token = None
        if self._cache is not None:
            self._cache.delete(TOKEN_CACHE_KEY)
        self.logger.info("token_invalidated")

    async def _refresh_once(self) -> AccessToken:
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._refresh())
            task.add_done_callback(self._clear_refresh_task)
            self._refresh_task = task
        else:
            self.logger.debug("token_refresh_joined")

        # A cancelled waiter must not cancel the refresh other callers share.
        return await asyncio.shield(task)

    def _clear_refresh_task(self, task: "asyncio.Task[AccessToken]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _refresh(self) -> AccessToken:
        self.logger.info("token_refresh_started", env=self._settings.env)

        spec = RequestSpec(
            method="POST",
            path=TOKEN_PATH,
            json={
                "consumer_key": self._settings.consumer_key,
                "consumer_secret": self._settings.consumer_secret,
            },
        )

        try:
            data = await self._executor.execute(spec)

            raw_token = data.get("token") if isinstance(data, Mapping) else None
            if not raw_token or not isinstance(raw_token, str):
                raise GatewayError(
                    "Token response did not contain a token",
                    status_code=_body_status(data),
                    body=data,
                )

            stored = self._cipher.encrypt(raw_token) if self._cipher else raw_token
        except PesapalError as e:
            self.logger.error(
                "token_refresh_failed",
                error_kind=e.kind.value,
                status_code=e.status_code,
                error=e.message,
            )
            raise

        lifetime = self._settings.token_lifetime_seconds
        token = AccessToken.issue(
            stored,
            issued_at=self._clock(),
            lifetime_seconds=lifetime,
            encrypted=self._cipher is not None,
            previous=self._token,
        )
        self._token = token

        if self._cache is not None:
            self._cache.set(TOKEN_CACHE_KEY, stored, ttl_seconds=lifetime)

        self.logger.info(
            "token_refresh_succeeded",
            expires_at=token.expires_at.isoformat(),
            encrypted=token.encrypted,
        )
        return token

    def _reveal(self, stored: str) -> str:
        return self._cipher.decrypt(stored) if self._cipher else stored
