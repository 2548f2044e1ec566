"""Configuration management for the Pesapal gateway client."""

from typing import Any, Literal

import pydantic
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pesapal_gateway.models.exceptions import ConfigurationError

SANDBOX_BASE_URL = "https://cybqa.pesapal.com/pesapalv3/api"
PRODUCTION_BASE_URL = "https://pay.pesapal.com/v3/api"


class PesapalSettings(BaseSettings):
    """
    Client settings loaded from keyword arguments or PESAPAL_* environment variables.

    Build instances with ``load_settings``, which reports invalid values as
    ConfigurationError. Constructing the class directly raises
    ``pydantic.ValidationError`` instead.
    """

    model_config = SettingsConfigDict(
        env_prefix="PESAPAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Credentials
    consumer_key: str = Field(default="", description="Pesapal consumer key")
    consumer_secret: str = Field(default="", description="Pesapal consumer secret")
    callback_base_url: str = Field(
        default="",
        description="Base URL used to derive default callback/cancellation URLs",
    )

    # Environment
    env: Literal["sandbox", "production"] = Field(
        default="sandbox", description="Selects the sandbox or production API host"
    )

    # Retry policy
    retry_attempts: int = Field(default=3, ge=1, description="Attempts per logical request")
    retry_delay_ms: int = Field(
        default=1000, ge=0, description="Base delay for linear backoff in milliseconds"
    )
    retry_on_client_errors: bool = Field(
        default=True, description="Retry 4xx responses like any other failure"
    )
    request_timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")

    # Token handling
    use_cache: bool = Field(default=True, description="Cache tokens and IPN registrations")
    encrypt_tokens: bool = Field(default=False, description="Encrypt tokens at rest")
    token_encryption_key: str | None = Field(
        default=None,
        description="Hex-encoded 32-byte AES key (derived from the secret if unset)",
    )
    token_validity_seconds: int = Field(default=3600, gt=0, description="Gateway token lifetime")
    early_refresh_margin_seconds: int = Field(
        default=300, ge=0, description="Refresh this long before the token actually expires"
    )

    # Logging
    debug: bool = Field(default=False, description="Enable debug logging")
    log_format_json: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("callback_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_required(self) -> "PesapalSettings":
        missing = [
            name
            for name in ("consumer_key", "consumer_secret", "callback_base_url")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing required configuration parameters: {', '.join(missing)}")

        if self.early_refresh_margin_seconds >= self.token_validity_seconds:
            raise ValueError("early_refresh_margin_seconds must be smaller than token_validity_seconds")

        if self.token_encryption_key is not None:
            try:
                key = bytes.fromhex(self.token_encryption_key)
            except ValueError as e:
                raise ValueError(f"token_encryption_key must be hex: {e}") from e
            if len(key) != 32:
                raise ValueError(f"token_encryption_key must be 32 bytes, got {len(key)}")

        return self

    @property
    def base_url(self) -> str:
        """API base URL for the configured environment."""
        return SANDBOX_BASE_URL if self.env == "sandbox" else PRODUCTION_BASE_URL

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000

    @property
    def token_lifetime_seconds(self) -> int:
        """Seconds a freshly issued token is treated as valid."""
        return self.token_validity_seconds - self.early_refresh_margin_seconds


def load_settings(**overrides: Any) -> PesapalSettings:
    """
    Build validated settings.

    Keyword arguments take precedence over PESAPAL_* environment variables
    and the .env file.

    Raises:
        ConfigurationError: If required values are missing or invalid
    """
    try:
        return PesapalSettings(**overrides)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
