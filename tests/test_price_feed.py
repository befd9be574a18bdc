"""
Tests for the CoinGecko price client
"""

import httpx
from decimal import Decimal

from online_banking.price_feed import CoinGeckoClient, MockPriceFeed


def make_client(handler, retries=3):
    sleeps = []
    client = CoinGeckoClient(base_url="https://prices.test/api/v3/", retries=retries, sleep=sleeps.append)
    client._client = httpx.Client(transport=httpx.MockTransport(handler))
    return client, sleeps


class TestCoinGeckoClient:
    """Test price lookups against a mocked transport"""

    def test_price_lookup(self):
        """Test the request shape and Decimal parsing"""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"bitcoin": {"eur": 61234.5}})

        client, _ = make_client(handler)

        assert client.get_btc_price("EUR") == Decimal("61234.5")
        assert seen[0].url.path == "/api/v3/simple/price"
        assert seen[0].url.params["ids"] == "bitcoin"
        assert seen[0].url.params["vs_currencies"] == "eur"

    def test_error_status(self):
        """Test non-200 responses yield no price"""
        client, _ = make_client(lambda request: httpx.Response(429, text="rate limited"))

        assert client.get_btc_price() is None

    def test_missing_currency(self):
        """Test an unknown currency yields no price"""
        client, _ = make_client(lambda request: httpx.Response(200, json={"bitcoin": {}}))

        assert client.get_btc_price("XYZ") is None

    def test_network_error(self):
        """Test transport errors are contained"""
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client, _ = make_client(handler)

        assert client.get_btc_price() is None

    def test_retry_backs_off(self):
        """Test retries sleep longer after each failure"""
        responses = iter([
            httpx.Response(500),
            httpx.Response(500),
            httpx.Response(200, json={"bitcoin": {"usd": 50000}}),
        ])
        client, sleeps = make_client(lambda request: next(responses))

        assert client.get_btc_price_with_retry() == Decimal("50000")
        assert sleeps == [1, 2]

    def test_retry_gives_up(self):
        """Test no sleep follows the final attempt"""
        client, sleeps = make_client(lambda request: httpx.Response(503), retries=2)

        assert client.get_btc_price_with_retry() is None
        assert sleeps == [1]


class TestMockPriceFeed:
    """Test the fixed-price feed"""

    def test_counts_calls(self):
        """Test the fixed price is returned and calls counted"""
        feed = MockPriceFeed(price=Decimal("42000"))

        assert feed.get_btc_price_with_retry("USD") == Decimal("42000")
        assert feed.calls == 1
