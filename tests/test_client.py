"""Tests for the Make API client."""

import asyncio
import json
import time

import httpx
import pytest
import respx

from makescout.api.client import ClientConfig, MakeClient
from makescout.api.errors import MakeApiError
from makescout.api.retry import RetryPolicy

BASE_URL = "https://eu1.make.com"

ORGS_URL = f"{BASE_URL}/api/v2/organizations"


class TestClientConfig:
    """Tests for ClientConfig normalization."""

    def test_normalizes_base_url_and_token(self) -> None:
        config = ClientConfig(base_url="eu1.make.com/", authorization="abc")

        assert config.base_url == "https://eu1.make.com"
        assert config.authorization == "Token abc"

    def test_keeps_explicit_scheme(self) -> None:
        config = ClientConfig(base_url="https://x.example", authorization="Bearer t")

        assert config.authorization == "Bearer t"

    def test_timeout_clamped_to_one_second(self) -> None:
        config = ClientConfig(base_url=BASE_URL, authorization="t", timeout_ms=10)

        assert config.timeout_ms == 1000

    def test_initial_rate_limit(self) -> None:
        config = ClientConfig(base_url=BASE_URL, authorization="t", requests_per_minute=120)

        client = MakeClient(config)

        assert client.rate_limiter is not None
        assert client.rate_limiter.min_interval_ms == 500

    def test_from_settings(self, test_settings) -> None:
        client = MakeClient.from_settings(test_settings)

        assert client.base_url == BASE_URL
        assert client.timeout_ms == 5_000


class TestSetters:
    """Tests for the runtime setters."""

    def test_set_timeout(self, make_client: MakeClient) -> None:
        make_client.set_timeout_ms(2500.7)

        assert make_client.timeout_ms == 2500

    def test_set_timeout_clamps_to_minimum(self, make_client: MakeClient) -> None:
        make_client.set_timeout_ms(250)

        assert make_client.timeout_ms == 1000

    @pytest.mark.parametrize("value", [0, -1, float("nan"), float("inf")])
    def test_set_timeout_ignores_invalid(self, make_client: MakeClient, value: float) -> None:
        make_client.set_timeout_ms(3000)

        make_client.set_timeout_ms(value)

        assert make_client.timeout_ms == 3000

    def test_rate_limiter_created_lazily(self, make_client: MakeClient) -> None:
        assert make_client.rate_limiter is None

        make_client.set_rate_limit_per_minute(60)
        limiter = make_client.rate_limiter

        assert limiter is not None
        assert limiter.min_interval_ms == 1000

        make_client.set_rate_limit_per_minute(240)

        assert make_client.rate_limiter is limiter
        assert limiter.min_interval_ms == 250

    @pytest.mark.parametrize("value", [0, -10, float("nan"), float("inf")])
    def test_rate_limit_ignores_invalid(self, make_client: MakeClient, value: float) -> None:
        make_client.set_rate_limit_per_minute(value)
        assert make_client.rate_limiter is None

        make_client.set_rate_limit_per_minute(120)
        make_client.set_rate_limit_per_minute(value)
        assert make_client.rate_limiter.min_interval_ms == 500


class TestRequests:
    """Tests for GET/POST requests."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_json(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(
            return_value=httpx.Response(200, json={"organizations": []})
        )

        async with make_client as client:
            data = await client.get_json("/api/v2/organizations")

        assert data == {"organizations": []}
        request = route.calls[0].request
        assert request.headers["Authorization"] == "Token test-token"
        assert request.headers["Accept"] == "application/json"
        assert "Content-Type" not in request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_json_query(self, make_client: MakeClient) -> None:
        route = respx.get(f"{BASE_URL}/x").mock(return_value=httpx.Response(200, json={}))

        async with make_client as client:
            await client.get_json("/x", {"a": [1, 2], "b": None})

        assert str(route.calls[0].request.url) == f"{BASE_URL}/x?a=1&a=2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_json_body(self, make_client: MakeClient) -> None:
        route = respx.post(f"{BASE_URL}/api/v2/things").mock(
            return_value=httpx.Response(200, json={"ok": True})
        )

        async with make_client as client:
            data = await client.post_json("/api/v2/things", body={"name": "n", "n": 1})

        request = route.calls[0].request
        assert data == {"ok": True}
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"name": "n", "n": 1}

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_without_body(self, make_client: MakeClient) -> None:
        route = respx.post(f"{BASE_URL}/api/v2/scenarios/1/start").mock(
            return_value=httpx.Response(200, json={"scenario": {"id": 1, "isActive": True}})
        )

        async with make_client as client:
            await client.post_json("/api/v2/scenarios/1/start")

        request = route.calls[0].request
        assert request.content == b""
        assert "Content-Type" not in request.headers

    @pytest.mark.asyncio
    async def test_client_not_initialized_error(self, make_client: MakeClient) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            await make_client.get_json("/api/v2/organizations")


class TestRetries:
    """Tests for 429 handling."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_exhausted_retries(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(
            return_value=httpx.Response(429, headers={"Retry-After": "0"}, text="slow down")
        )

        async with make_client as client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/api/v2/organizations")

        assert exc_info.value.status == 429
        assert "exhausted retries" in str(exc_info.value)
        assert exc_info.value.url == ORGS_URL
        assert exc_info.value.body_text == "slow down"
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_after_then_success(self, make_client: MakeClient) -> None:
        route = respx.get(f"{BASE_URL}/x")
        route.side_effect = [
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(200, json={"ok": True}),
        ]

        async with make_client as client:
            start = time.monotonic()
            data = await client.get_json("/x")
            elapsed = time.monotonic() - start

        assert data == {"ok": True}
        assert route.call_count == 2
        assert 0.95 <= elapsed < 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_backoff_without_retry_after(
        self, make_client: MakeClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        delays: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        monkeypatch.setattr("makescout.api.client.asyncio.sleep", fake_sleep)
        route = respx.get(f"{BASE_URL}/x")
        route.side_effect = [
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json=[1, 2]),
        ]

        async with make_client as client:
            data = await client.get_json("/x")

        assert data == [1, 2]
        assert len(delays) == 2
        assert 0.25 <= delays[0] < 0.5
        assert 0.5 <= delays[1] < 0.75

    @pytest.mark.asyncio
    @respx.mock
    async def test_final_429_carries_retry_after(self, client_config: ClientConfig) -> None:
        respx.get(f"{BASE_URL}/x").mock(
            return_value=httpx.Response(429, headers={"Retry-After": "0"})
        )
        client = MakeClient(client_config, retry_policy=RetryPolicy(max_attempts=1))

        async with client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/x")

        assert exc_info.value.status == 429
        assert exc_info.value.retry_after_ms == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_body_resent_unchanged(self, make_client: MakeClient) -> None:
        route = respx.post(f"{BASE_URL}/x")
        route.side_effect = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={}),
        ]

        async with make_client as client:
            await client.post_json("/x", body={"a": [1, 2]})

        assert route.call_count == 2
        assert route.calls[0].request.content == route.calls[1].request.content

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limiter_spaces_attempts(self, make_client: MakeClient) -> None:
        respx.get(f"{BASE_URL}/x").mock(return_value=httpx.Response(200, json={}))
        make_client.set_rate_limit_per_minute(1200)  # 50ms

        async with make_client as client:
            await client.get_json("/x")
            start = time.monotonic()
            await client.get_json("/x")
            elapsed = time.monotonic() - start

        assert elapsed >= 0.045


class TestErrors:
    """Tests for terminal failures."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_forbidden_not_retried(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(
            return_value=httpx.Response(403, text='{"message":"Permission denied"}')
        )

        async with make_client as client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/api/v2/organizations")

        err = exc_info.value
        assert err.status == 403
        assert err.is_auth_error
        assert err.body_text == '{"message":"Permission denied"}'
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_not_retried(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(
            return_value=httpx.Response(503, headers={"Retry-After": "7"}, text="down")
        )

        async with make_client as client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/api/v2/organizations")

        assert exc_info.value.status == 503
        assert exc_info.value.retry_after_ms == 7000
        assert "Make API error 503 (GET /api/v2/organizations)" in str(exc_info.value)
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_timeout_maps_to_408(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(side_effect=httpx.ReadTimeout)

        async with make_client as client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/api/v2/organizations")

        assert exc_info.value.status == 408
        assert exc_info.value.is_timeout
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_slow_response_times_out(self, client_config: ClientConfig) -> None:
        calls: list[httpx.Request] = []

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            await asyncio.sleep(5)
            return httpx.Response(200, json={})

        client = MakeClient(client_config, transport=httpx.MockTransport(slow_handler))
        client.set_timeout_ms(1000)

        async with client:
            start = time.monotonic()
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/slow")
            elapsed = time.monotonic() - start

        assert exc_info.value.status == 408
        assert len(calls) == 1
        assert elapsed < 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_propagates(self, make_client: MakeClient) -> None:
        route = respx.get(ORGS_URL).mock(side_effect=httpx.ConnectError)

        async with make_client as client:
            with pytest.raises(httpx.ConnectError):
                await client.get_json("/api/v2/organizations")

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_json_wrapped(self, make_client: MakeClient) -> None:
        respx.get(ORGS_URL).mock(return_value=httpx.Response(200, text="<html>oops</html>"))

        async with make_client as client:
            with pytest.raises(MakeApiError) as exc_info:
                await client.get_json("/api/v2/organizations")

        assert exc_info.value.status == 200
        assert exc_info.value.body_text == "<html>oops</html>"
        assert isinstance(exc_info.value.__cause__, ValueError)
