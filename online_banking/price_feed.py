"""
Price Feed Client Module

REST client for the CoinGecko simple price API, used to value Bitcoin
transfers and swaps in the customer's currency.
"""

import httpx
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

logger = logging.getLogger("bankline.price_feed")


class PriceUnavailableError(Exception):
    """Raised when a live price is required but could not be fetched"""
    pass


class CoinGeckoClient:
    """Fetches spot prices from CoinGecko"""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 8.0,
        retries: int = 3,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self._sleep = sleep
        self._client = httpx.Client(timeout=timeout)

    def get_btc_price(self, currency: str = "USD") -> Optional[Decimal]:
        """Price of one BTC in the given currency, or None if unavailable"""
        code = currency.lower()
        try:
            response = self._client.get(
                f"{self.base_url}/simple/price",
                params={"ids": "bitcoin", "vs_currencies": code},
                headers={"Accept": "application/json"}
            )
            if response.status_code != 200:
                logger.warning(f"CoinGecko returned {response.status_code}: {response.text}")
                return None
            price = response.json().get("bitcoin", {}).get(code)
            if not price:
                logger.warning(f"CoinGecko has no BTC price for {code}")
                return None
            return Decimal(str(price))
        except (httpx.HTTPError, ValueError, InvalidOperation) as e:
            logger.error(f"CoinGecko price lookup failed: {e}")
            return None

    def get_btc_price_with_retry(self, currency: str = "USD") -> Optional[Decimal]:
        """get_btc_price with linear backoff between attempts"""
        for attempt in range(1, self.retries + 1):
            price = self.get_btc_price(currency)
            if price is not None:
                return price
            if attempt < self.retries:
                self._sleep(attempt)
        return None

    def close(self):
        """Close the HTTP client"""
        self._client.close()


class MockPriceFeed(CoinGeckoClient):
    """Fixed-price feed for testing and offline development"""

    def __init__(self, price: Optional[Decimal] = Decimal("50000"), **kwargs):
        super().__init__(**kwargs)
        self.price = price
        self.calls = 0

    def get_btc_price(self, currency: str = "USD") -> Optional[Decimal]:
        self.calls += 1
        return self.price
