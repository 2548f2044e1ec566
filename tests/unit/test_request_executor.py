"""Unit tests for the retrying request executor."""

from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from conftest import json_response, make_settings
from pesapal_gateway.config import SANDBOX_BASE_URL
from pesapal_gateway.infrastructure.http import (
    RequestSpec,
    RetryingRequestExecutor,
    retry_all,
    skip_client_errors,
)
from pesapal_gateway.models.exceptions import ErrorKind, GatewayError

TOKEN_SPEC = RequestSpec(
    method="POST",
    path="/Auth/RequestToken",
    json={"consumer_key": "k", "consumer_secret": "s"},
)


class TestRetryingRequestExecutor:
    """Test suite for the retrying request executor."""

    @pytest.mark.asyncio
    async def test_execute_success(self, executor, mock_request, sleep):
        """Test a successful first attempt returns the parsed body."""
        mock_request.return_value = json_response(200, {"token": "abc", "status": "200"})

        result = await executor.execute(TOKEN_SPEC)

        assert result == {"token": "abc", "status": "200"}
        mock_request.assert_called_once()
        sleep.assert_not_awaited()

        call_args = mock_request.call_args
        assert call_args[0][0] == "POST"
        assert call_args[0][1] == f"{SANDBOX_BASE_URL}/Auth/RequestToken"
        assert call_args[1]["json"] == {"consumer_key": "k", "consumer_secret": "s"}
        assert call_args[1]["headers"]["Content-Type"] == "application/json"
        assert call_args[1]["headers"]["Accept"] == "application/json"
        assert "Authorization" not in call_args[1]["headers"]
        assert "X-Request-ID" in call_args[1]["headers"]

    @pytest.mark.asyncio
    async def test_bearer_token_and_query_params(self, executor, mock_request):
        mock_request.return_value = json_response(200, {"status_code": 1})

        await executor.execute(
            RequestSpec(
                method="GET",
                path="/Transactions/GetTransactionStatus",
                params={"orderTrackingId": "track-1"},
                bearer_token="tok",
            )
        )

        call_args = mock_request.call_args
        assert call_args[0][0] == "GET"
        assert call_args[1]["headers"]["Authorization"] == "Bearer tok"
        assert "Content-Type" not in call_args[1]["headers"]
        assert call_args[1]["params"] == {"orderTrackingId": "track-1"}
        assert call_args[1]["json"] is None

    @pytest.mark.asyncio
    async def test_permanent_failure_attempts_exactly_retry_attempts(
        self, executor, mock_request, sleep
    ):
        """Test a permanently failing request is tried 3 times with linear backoff."""
        mock_request.return_value = json_response(500, {"error": {"code": "server_error"}})

        with pytest.raises(GatewayError) as exc_info:
            await executor.execute(TOKEN_SPEC)

        assert mock_request.call_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

        error = exc_info.value
        assert error.kind is ErrorKind.GATEWAY
        assert error.status_code == 500
        assert error.body == {"error": {"code": "server_error"}}

    @pytest.mark.asyncio
    async def test_backoff_delays_are_non_decreasing(self, sleep):
        executor = RetryingRequestExecutor.from_settings(
            make_settings(retry_attempts=5, retry_delay_ms=250), sleep=sleep
        )

        with patch.object(executor.http_client, "request", new_callable=AsyncMock) as request:
            request.return_value = json_response(503, {})
            with pytest.raises(GatewayError):
                await executor.execute(TOKEN_SPEC)

        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays == [0.25, 0.5, 0.75, 1.0]
        assert delays == sorted(delays)

    @pytest.mark.asyncio
    async def test_error_body_falls_back_to_raw_text(self, executor, mock_request):
        mock_request.return_value = httpx.Response(502, text="<html>Bad Gateway</html>")

        with pytest.raises(GatewayError) as exc_info:
            await executor.execute(TOKEN_SPEC)

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "<html>Bad Gateway</html>"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, executor, mock_request, sleep):
        mock_request.side_effect = [
            json_response(500, {}),
            json_response(500, {}),
            json_response(200, {"token": "abc"}),
        ]

        result = await executor.execute(TOKEN_SPEC)

        assert result == {"token": "abc"}
        assert mock_request.call_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_error_is_retried_then_raised(self, executor, mock_request):
        """Test network/connection error surfaces as GatewayError without status."""
        mock_request.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(GatewayError, match="Pesapal request error") as exc_info:
            await executor.execute(TOKEN_SPEC)

        assert mock_request.call_count == 3
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout(self, executor, mock_request):
        """Test request timeout."""
        mock_request.side_effect = httpx.TimeoutException("Timeout")

        with pytest.raises(GatewayError, match="Pesapal request timeout"):
            await executor.execute(TOKEN_SPEC)

    @pytest.mark.asyncio
    async def test_client_errors_retried_by_default(self, executor, mock_request):
        mock_request.return_value = json_response(400, {"error": {"code": "invalid_request"}})

        with pytest.raises(GatewayError):
            await executor.execute(TOKEN_SPEC)

        assert mock_request.call_count == 3

    @pytest.mark.asyncio
    async def test_skip_client_errors_policy_stops_on_4xx(self, sleep):
        executor = RetryingRequestExecutor.from_settings(
            make_settings(retry_on_client_errors=False), sleep=sleep
        )
        assert executor.retry_policy is skip_client_errors

        with patch.object(executor.http_client, "request", new_callable=AsyncMock) as request:
            request.return_value = json_response(401, {"error": {"code": "unauthorized"}})
            with pytest.raises(GatewayError) as exc_info:
                await executor.execute(TOKEN_SPEC)

        assert request.call_count == 1
        sleep.assert_not_awaited()
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_skip_client_errors_policy_still_retries_5xx(self, sleep):
        executor = RetryingRequestExecutor.from_settings(
            make_settings(retry_on_client_errors=False), sleep=sleep
        )

        with patch.object(executor.http_client, "request", new_callable=AsyncMock) as request:
            request.return_value = json_response(500, {})
            with pytest.raises(GatewayError):
                await executor.execute(TOKEN_SPEC)

        assert request.call_count == 3

    @pytest.mark.asyncio
    async def test_non_json_success_response(self, executor, mock_request):
        mock_request.return_value = httpx.Response(200, text="not json")

        with pytest.raises(GatewayError, match="non-JSON") as exc_info:
            await executor.execute(TOKEN_SPEC)

        assert exc_info.value.body == "not json"

    @pytest.mark.asyncio
    async def test_on_attempt_hook_reports_every_attempt(self, settings, sleep):
        records = []
        executor = RetryingRequestExecutor.from_settings(
            settings, sleep=sleep, on_attempt=records.append
        )

        with patch.object(executor.http_client, "request", new_callable=AsyncMock) as request:
            request.side_effect = [json_response(500, {}), json_response(200, {"ok": True})]
            await executor.execute(TOKEN_SPEC)

        assert [r.attempt for r in records] == [1, 2]
        assert [r.succeeded for r in records] == [False, True]
        assert records[0].status_code == 500
        assert isinstance(records[0].error, GatewayError)
        assert records[1].status_code == 200
        assert records[1].error is None

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self, sleep):
        executor = RetryingRequestExecutor(
            base_url="https://api.example.com/", retry_attempts=1, sleep=sleep
        )

        with patch.object(executor.http_client, "request", new_callable=AsyncMock) as request:
            request.return_value = json_response(500, {})
            with pytest.raises(GatewayError):
                await executor.execute(TOKEN_SPEC)

            assert request.call_args[0][1] == "https://api.example.com/Auth/RequestToken"

        sleep.assert_not_awaited()

    def test_invalid_retry_attempts(self):
        with pytest.raises(ValueError):
            RetryingRequestExecutor(base_url="https://api.example.com", retry_attempts=0)

    def test_retry_policies(self):
        assert retry_all(GatewayError("boom", status_code=400), 1) is True
        assert skip_client_errors(GatewayError("boom", status_code=404), 1) is False
        assert skip_client_errors(GatewayError("boom", status_code=500), 1) is True
        assert skip_client_errors(GatewayError("boom"), 1) is True

    @pytest.mark.asyncio
    async def test_close(self, executor):
        """Test executor close method."""
        with patch.object(executor.http_client, "aclose", new_callable=AsyncMock) as mock_close:
            await executor.close()
            mock_close.assert_called_once()

    @pytest.mark.asyncio
    async def test_context_manager(self, settings):
        async with RetryingRequestExecutor.from_settings(settings) as executor:
            assert executor.http_client is not None

        assert executor.http_client.is_closed
