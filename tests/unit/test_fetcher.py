"""Tests for the resilient JSON fetcher.

Covers:
- FetchStrategy URL building (direct, prefix, wrap)
- proxy list parsing
- direct success, HTML-masquerade rejection, non-2xx handling
- fallback through the ordered proxy list
- exhausted attempts surface the last error
"""

from __future__ import annotations

from unittest.mock import PropertyMock, patch
from urllib.parse import quote

import httpx
import pytest

from geo_enrichment.core.exceptions import NetworkError, ParseError
from geo_enrichment.core.fetcher import (
    DIRECT,
    FetchStrategy,
    ResilientFetcher,
    parse_json_body,
    parse_proxy_specs,
)

TARGET = "https://services.example.test/arcgis/rest/services/Layer/FeatureServer/0/query?f=json&where=1%3D1"
PROXY_1 = FetchStrategy(kind="prefix", base="https://proxy-one.test/")
PROXY_2 = FetchStrategy(kind="wrap", base="https://proxy-two.test/raw?url=")


class TestFetchStrategy:
    def test_direct_returns_url_unchanged(self) -> None:
        assert DIRECT.build_url(TARGET) == TARGET

    def test_prefix_concatenates(self) -> None:
        assert PROXY_1.build_url(TARGET) == "https://proxy-one.test/" + TARGET

    def test_wrap_url_encodes(self) -> None:
        built = PROXY_2.build_url(TARGET)
        assert built == "https://proxy-two.test/raw?url=" + quote(TARGET, safe="")
        assert "?f=json" not in built

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown fetch strategy"):
            FetchStrategy(kind="tunnel", base="https://x/")

    def test_proxy_without_base_rejected(self) -> None:
        with pytest.raises(ValueError, match="requires a base URL"):
            FetchStrategy(kind="prefix")


class TestParseProxySpecs:
    def test_parses_ordered_list(self) -> None:
        specs = parse_proxy_specs("prefix:https://p1.test/, wrap:https://p2.test/raw?url=")
        assert specs == (
            FetchStrategy(kind="prefix", base="https://p1.test/"),
            FetchStrategy(kind="wrap", base="https://p2.test/raw?url="),
        )

    def test_blank_entries_ignored(self) -> None:
        assert parse_proxy_specs(" , ") == ()

    def test_missing_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="must look like"):
            parse_proxy_specs("https//no-kind")

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="unknown kind"):
            parse_proxy_specs("socks:https://p.test/")


class TestParseJsonBody:
    def test_valid_json(self) -> None:
        assert parse_json_body('{"features": []}') == {"features": []}

    @pytest.mark.parametrize("body", ["<html><body>oops</body></html>", "  <!DOCTYPE html><html></html>"])
    def test_html_rejected(self, body: str) -> None:
        with pytest.raises(ParseError, match="HTML") as exc_info:
            parse_json_body(body, url="https://x.test/")
        assert exc_info.value.url == "https://x.test/"
        assert exc_info.value.snippet.lower().startswith(("<html", "<!doctype"))

    def test_invalid_json_rejected(self) -> None:
        with pytest.raises(ParseError, match="Invalid JSON"):
            parse_json_body("{not json")


class TestResilientFetcher:
    def test_direct_success_makes_one_request(self, mock_fetcher) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"ok": True})

        fetcher = mock_fetcher(handler, proxies=(PROXY_1, PROXY_2), use_proxies=True)
        assert fetcher.fetch_json(TARGET) == {"ok": True}
        assert len(seen) == 1

    def test_second_proxy_succeeds_after_two_failures(self, mock_fetcher) -> None:
        """Direct URL fails, proxy 1 masks an error as HTML, proxy 2 returns JSON."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            seen.append(url)
            if url.startswith("https://proxy-one.test/"):
                return httpx.Response(200, text="<html>blocked</html>")
            if url.startswith("https://proxy-two.test/"):
                return httpx.Response(200, json={"features": [1, 2]})
            return httpx.Response(503)

        fetcher = mock_fetcher(handler, proxies=(PROXY_1, PROXY_2), use_proxies=True)
        assert fetcher.fetch_json(TARGET) == {"features": [1, 2]}
        assert len(seen) == 3
        assert seen[1].startswith("https://proxy-one.test/")
        assert seen[2].startswith("https://proxy-two.test/")

    def test_proxies_skipped_when_disabled(self, mock_fetcher) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        fetcher = mock_fetcher(handler, proxies=(PROXY_1, PROXY_2), use_proxies=False)
        with pytest.raises(NetworkError) as exc_info:
            fetcher.fetch_json(TARGET)
        assert calls == 1
        assert exc_info.value.status_code == 500

    def test_exhausted_raises_last_error(self, mock_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith("https://proxy-two.test/"):
                return httpx.Response(200, text="not json at all")
            return httpx.Response(502)

        fetcher = mock_fetcher(handler, proxies=(PROXY_1, PROXY_2), use_proxies=True)
        with pytest.raises(ParseError) as exc_info:
            fetcher.fetch_json(TARGET)
        assert exc_info.value.retryable is True
        assert exc_info.value.code == "FETCH_PARSE_FAILED"

    def test_transport_error_is_network_error(self, mock_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = mock_fetcher(handler)
        with pytest.raises(NetworkError, match="Request failed") as exc_info:
            fetcher.fetch_json(TARGET)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_timeout_is_ordinary_failure(self, mock_fetcher) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith("https://proxy-one.test/"):
                return httpx.Response(200, json={"via": "proxy"})
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = mock_fetcher(handler, proxies=(PROXY_1,), use_proxies=True)
        assert fetcher.fetch_json(TARGET) == {"via": "proxy"}

    def test_fixed_delay_between_attempts(self) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        fetcher = ResilientFetcher(
            proxies=(PROXY_1, PROXY_2),
            use_proxies=True,
            retry_delay_s=0.2,
            client=client,
        )
        with patch("geo_enrichment.core.fetcher.time.sleep") as mock_sleep, pytest.raises(NetworkError):
            fetcher.fetch_json(TARGET)
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.2)

    def test_strategies_order(self) -> None:
        fetcher = ResilientFetcher(proxies=(PROXY_1, PROXY_2), use_proxies=True)
        try:
            assert fetcher.strategies == [DIRECT, PROXY_1, PROXY_2]
        finally:
            fetcher.close()

    def test_no_caching(self, mock_fetcher) -> None:
        counter = iter(range(10))

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"n": next(counter)})

        fetcher = mock_fetcher(handler)
        assert fetcher.fetch_json(TARGET) == {"n": 0}
        assert fetcher.fetch_json(TARGET) == {"n": 1}

    def test_no_strategies_raises_network_error(self, mock_fetcher) -> None:
        fetcher = mock_fetcher(lambda request: httpx.Response(200, json={}))
        with (
            patch.object(ResilientFetcher, "strategies", new_callable=PropertyMock, return_value=[]),
            pytest.raises(NetworkError, match="No fetch strategies configured") as exc_info,
        ):
            fetcher.fetch_json(TARGET)
        assert exc_info.value.url == TARGET
