"""Unit tests for the retrying JSON fetcher"""

import asyncio
import time

import httpx
import pytest

from registry_mirror.services.fetcher import NetworkError, RegistryFetcher, backoff_delay_ms

URL = "https://registry.example.com/r/button.json"


def _counting_transport(responses):
    """Transport returning the given responses in order, then repeating the last"""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses[min(len(calls) - 1, len(responses) - 1)]

    return httpx.MockTransport(handler), calls


class TestBackoff:
    """Test backoff schedule"""

    def test_first_attempt_is_immediate(self):
        assert backoff_delay_ms(1000, 0) == 0

    def test_doubles_per_attempt(self):
        assert [backoff_delay_ms(100, k) for k in (1, 2, 3, 4)] == [100, 200, 400, 800]


class TestFetchJson:
    """Test retry behavior of fetch_json"""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        transport, calls = _counting_transport([httpx.Response(200, json={"name": "button"})])

        async with RegistryFetcher(transport=transport) as fetcher:
            data = await fetcher.fetch_json(URL, retries=3, base_delay=0)

        assert data == {"name": "button"}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sends_default_headers(self):
        transport, calls = _counting_transport([httpx.Response(200, json={})])

        async with RegistryFetcher(transport=transport) as fetcher:
            await fetcher.fetch_json(URL, headers={"X-Extra": "1"})

        headers = calls[0].headers
        assert headers["accept"] == "application/json"
        assert headers["user-agent"].startswith("registry-mirror")
        assert headers["x-extra"] == "1"

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self):
        transport, calls = _counting_transport(
            [httpx.Response(503), httpx.Response(500), httpx.Response(200, json=[1, 2])]
        )

        async with RegistryFetcher(transport=transport) as fetcher:
            data = await fetcher.fetch_json(URL, retries=3, base_delay=1)

        assert data == [1, 2]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_exhausts_attempts_with_backoff(self):
        """retries=2 means 3 attempts and at least 100 + 200 ms of sleeping"""
        transport, calls = _counting_transport([httpx.Response(500)])

        start = time.monotonic()
        async with RegistryFetcher(transport=transport) as fetcher:
            with pytest.raises(NetworkError) as exc_info:
                await fetcher.fetch_json(URL, retries=2, base_delay=100)
        elapsed = time.monotonic() - start

        assert len(calls) == 3
        assert elapsed >= 0.3
        assert exc_info.value.attempts == 3
        assert exc_info.value.url == URL

    @pytest.mark.asyncio
    async def test_reports_only_last_error(self):
        transport, _ = _counting_transport([httpx.Response(500), httpx.Response(404)])

        async with RegistryFetcher(transport=transport) as fetcher:
            with pytest.raises(NetworkError) as exc_info:
                await fetcher.fetch_json(URL, retries=1, base_delay=0)

        assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)
        assert "404" in exc_info.value.message
        assert "500" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self):
        transport, calls = _counting_transport(
            [httpx.Response(200, text="<html>oops</html>"), httpx.Response(200, json={"ok": 1})]
        )

        async with RegistryFetcher(transport=transport) as fetcher:
            data = await fetcher.fetch_json(URL, retries=1, base_delay=0)

        assert data == {"ok": 1}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with RegistryFetcher(transport=httpx.MockTransport(handler)) as fetcher:
            with pytest.raises(NetworkError, match="connection refused"):
                await fetcher.fetch_json(URL, retries=2, base_delay=0)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_zero_retries_is_single_attempt(self):
        transport, calls = _counting_transport([httpx.Response(500)])

        async with RegistryFetcher(transport=transport) as fetcher:
            with pytest.raises(NetworkError):
                await fetcher.fetch_json(URL, retries=0, base_delay=1000)

        assert len(calls) == 1


class TestFetchJsonWithTimeout:
    """Test the single-attempt timeout variant"""

    @pytest.mark.asyncio
    async def test_returns_json(self):
        transport, _ = _counting_transport([httpx.Response(200, json={"name": "x"})])

        async with RegistryFetcher(transport=transport) as fetcher:
            assert await fetcher.fetch_json_with_timeout(URL, 1000) == {"name": "x"}

    @pytest.mark.asyncio
    async def test_times_out_without_retry(self):
        calls = []

        async def slow_handler(request):
            calls.append(request)
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        async with RegistryFetcher(transport=httpx.MockTransport(slow_handler)) as fetcher:
            with pytest.raises(NetworkError) as exc_info:
                await fetcher.fetch_json_with_timeout(URL, 50)

        assert len(calls) == 1
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self):
        transport, calls = _counting_transport([httpx.Response(502)])

        async with RegistryFetcher(transport=transport) as fetcher:
            with pytest.raises(NetworkError):
                await fetcher.fetch_json_with_timeout(URL, 1000)

        assert len(calls) == 1
