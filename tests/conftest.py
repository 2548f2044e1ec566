"""Pytest configuration and shared fixtures for all tests.

This module provides shared test fixtures including:
- Client settings with test credentials
- Controllable wall and monotonic clocks
- A request executor whose HTTP transport and backoff sleep are mocked
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from pesapal_gateway.config import PesapalSettings, load_settings
from pesapal_gateway.infrastructure.http import RetryingRequestExecutor

TEST_SECRET = "test-consumer-secret"


class FakeClock:
    """Manually advanced clock usable as both wall clock and monotonic clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.elapsed = 0.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.elapsed

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.elapsed += seconds


def json_response(status_code: int, data: Any) -> httpx.Response:
    return httpx.Response(status_code, json=data)


def sign(body: bytes | str, secret: str = TEST_SECRET) -> str:
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def make_settings(**overrides: Any) -> PesapalSettings:
    values = {
        "consumer_key": "test-consumer-key",
        "consumer_secret": TEST_SECRET,
        "callback_base_url": "https://shop.example.com",
        "env": "sandbox",
    }
    values.update(overrides)
    return load_settings(**values)


@pytest.fixture
def settings():
    """Settings with test credentials and default retry policy."""
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    """Backoff sleep replacement that returns immediately."""
    return AsyncMock()


@pytest.fixture
def executor(settings, sleep):
    return RetryingRequestExecutor.from_settings(settings, sleep=sleep)


@pytest.fixture
def mock_request(executor):
    """Mocked httpx request method of the executor's client."""
    with patch.object(executor.http_client, "request", new_callable=AsyncMock) as mocked:
        yield mocked
