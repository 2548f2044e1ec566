"""Access token domain model."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccessToken:
    """
    Bearer token issued by the gateway.

    Instances are immutable: a refresh always produces a new AccessToken.
    ``value`` holds the encrypted representation when ``encrypted`` is True.

    Attributes:
        value: Token string, plain or encrypted
        issued_at: When the token was obtained
        expires_at: When the token stops being handed out (already includes
            the early refresh margin)
        encrypted: Whether ``value`` is ciphertext
    """

    value: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime
    encrypted: bool = False

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("token value cannot be empty")

        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is outside its validity window."""
        now = now or utcnow()
        return now >= self.expires_at

    def remaining_seconds(self, now: datetime | None = None) -> float:
        now = now or utcnow()
        return max((self.expires_at - now).total_seconds(), 0.0)

    @classmethod
    def issue(
        cls,
        value: str,
        issued_at: datetime,
        lifetime_seconds: int,
        encrypted: bool = False,
        previous: "AccessToken | None" = None,
    ) -> "AccessToken":
        """
        Create a token valid for ``lifetime_seconds`` from ``issued_at``.

        The new expiry is always strictly later than ``previous.expires_at``.
        """
        expires_at = issued_at + timedelta(seconds=lifetime_seconds)
        if previous is not None and expires_at <= previous.expires_at:
            expires_at = previous.expires_at + timedelta(microseconds=1)

        return cls(
            value=value,
            issued_at=issued_at,
            expires_at=expires_at,
            encrypted=encrypted,
        )
