"""Financial Modeling Prep (FMP) market data client.

Quotes, intraday bars and daily history over HTTPS, with an exception
taxonomy that separates retryable failures (network, 429, 5xx) from
permanent ones (bad key, 4xx, malformed JSON).
"""

import logging
from typing import Any
from urllib.parse import quote

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
    after_log,
)

from foliohub.data_normalization import (
    normalize_daily_bars,
    normalize_intraday_bars,
    normalize_quotes,
    normalize_symbol,
    to_weekly,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://financialmodelingprep.com"
INTRADAY_INTERVALS = ("5min", "1hour")


class AuthenticationError(Exception):
    """Raised when FMP rejects the API key (401/403)."""

    pass


class NetworkError(Exception):
    """Raised when FMP cannot be reached (timeout, DNS, TLS, refused)."""

    pass


class APIError(Exception):
    """Raised when FMP returns a retryable error response (429, 5xx)."""

    pass


class ClientError(Exception):
    """Raised when FMP returns a non-retryable client error (400, 402, 404, etc.)."""

    pass


# Every failure a single upstream fetch can raise
FETCH_ERRORS = (AuthenticationError, NetworkError, APIError, ClientError)


class FMPClient:
    """Client for the FMP REST API.

    The API key travels as the `apikey` query parameter. Calls made with
    retry=True back off exponentially on NetworkError and APIError.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
    ):
        """Initialize API client.

        Args:
            api_key: FMP API key
            base_url: Scheme and host of the API (default: https://financialmodelingprep.com)
            timeout: Request timeout in seconds (default: 30)

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError("FMP_API_KEY missing")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def check_connection(self, timeout: int = 5) -> dict[str, Any]:
        """Quick key/reachability check without retries.

        Returns:
            Normalized quote map for SPY

        Raises:
            AuthenticationError: If the API key is rejected
            NetworkError: If FMP is not reachable
            ClientError: For client errors (400, 404, etc.)
            APIError: For retryable API errors (429, 5xx)
        """
        payload = self._get_no_retry(
            "/stable/quote", params={"symbol": "SPY"}, timeout=timeout
        )
        return normalize_quotes(payload)

    def get_quotes(
        self, symbols: list[str], retry: bool = True
    ) -> dict[str, dict[str, float | None]]:
        """Get live quotes for several symbols in one call.

        Args:
            symbols: Tickers; normalized and de-duplicated
            retry: Back off and retry on retryable failures

        Returns:
            {"AAPL": {"price", "previous_close", "change_pct"}, ...}

        Raises:
            ValueError: If no usable symbol is given
            AuthenticationError, NetworkError, ClientError, APIError
        """
        cleaned = list(dict.fromkeys(s for s in map(normalize_symbol, symbols) if s))
        if not cleaned:
            raise ValueError("No symbols provided")

        payload = self._request(
            "/stable/quote", params={"symbol": ",".join(cleaned)}, retry=retry
        )
        if not isinstance(payload, list):
            raise ClientError("Unexpected FMP quote payload shape")
        return normalize_quotes(payload)

    def get_intraday_history(
        self,
        symbol: str,
        interval: str,
        limit: int | None = None,
        retry: bool = True,
    ) -> list[tuple[str, float]]:
        """Get intraday bars for one symbol.

        Args:
            symbol: Ticker
            interval: "5min" or "1hour"
            limit: Keep only the most recent `limit` bars
            retry: Back off and retry on retryable failures

        Returns:
            Ascending (timestamp, close) bars

        Raises:
            ValueError: If symbol is empty or interval unsupported
            AuthenticationError, NetworkError, ClientError, APIError
        """
        symbol = normalize_symbol(symbol)
        if not symbol:
            raise ValueError("symbol required")
        if interval not in INTRADAY_INTERVALS:
            raise ValueError(
                f"Unsupported interval {interval!r}; expected one of {INTRADAY_INTERVALS}"
            )

        payload = self._request(
            f"/api/v3/historical-chart/{interval}/{quote(symbol)}",
            retry=retry,
        )
        return normalize_intraday_bars(payload, limit=limit)

    def get_daily_history(
        self, symbol: str, retry: bool = True
    ) -> list[dict[str, Any]]:
        """Get the full daily close history for one symbol.

        Returns:
            Ascending {"date", "adj_close", "close", "volume"} bars
        """
        symbol = normalize_symbol(symbol)
        if not symbol:
            raise ValueError("symbol required")

        payload = self._request(
            f"/api/v3/historical-price-full/{quote(symbol)}",
            params={"serietype": "line"},
            retry=retry,
        )
        return normalize_daily_bars(payload)

    def get_weekly_history(self, symbol: str) -> list[dict[str, Any]]:
        """Daily history resampled to weeks ending on the last trading day."""
        return to_weekly(self.get_daily_history(symbol))

    def _request(
        self, endpoint: str, params: dict[str, Any] | None = None, retry: bool = True
    ) -> Any:
        if retry:
            return self._get(endpoint, params=params)
        return self._get_no_retry(endpoint, params=params)

    def _send(self, endpoint: str, params: dict[str, Any] | None, timeout: int) -> Any:
        """Issue the GET and translate the outcome into data or an exception.

        Raises:
            AuthenticationError: 401/403
            ClientError: 404, other 4xx, or invalid JSON
            APIError: 429 or 5xx
            NetworkError: Transport failures
        """
        url = f"{self.base_url}{endpoint}"
        query = dict(params or {})
        query["apikey"] = self.api_key

        try:
            response = self.session.get(url, params=query, timeout=timeout)
        except requests.exceptions.SSLError as e:
            # SSLError must be caught before ConnectionError (it's a subclass)
            raise NetworkError(f"SSL error for {endpoint}") from e
        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"Request timeout for {endpoint} after {timeout}s"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"FMP not reachable at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network error for {endpoint}: {str(e)}") from e

        logger.debug(f"Response status: {response.status_code} for {endpoint}")

        if response.status_code == 401:
            raise AuthenticationError(
                "FMP rejected the API key. Check FMP_API_KEY in .env."
            )
        elif response.status_code == 403:
            raise AuthenticationError(
                f"FMP plan does not include {endpoint}. Check FMP_API_KEY in .env."
            )
        elif response.status_code == 404:
            raise ClientError(f"Endpoint not found: {endpoint}")
        elif response.status_code == 429:
            raise APIError(f"Rate limit exceeded for {endpoint}")
        elif response.status_code >= 500:
            raise APIError(f"Server error {response.status_code} for {endpoint}")
        elif response.status_code >= 400:
            raise ClientError(
                f"Client error {response.status_code} for {endpoint}: "
                f"{response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise ClientError(f"Invalid JSON response from {endpoint}: {str(e)}") from e

    def _get_no_retry(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        timeout: int | None = None,
    ) -> Any:
        """GET once; used where a failure should degrade rather than wait."""
        request_timeout = timeout if timeout is not None else self.timeout
        return self._send(endpoint, params, request_timeout)

    @retry(
        retry=retry_if_exception_type((NetworkError, APIError)),
        # AuthenticationError and ClientError are permanent
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        reraise=True,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        after=after_log(logger, logging.INFO),
    )
    def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET with exponential backoff on NetworkError and APIError."""
        logger.info(f"Making API request: GET {endpoint}")
        data = self._send(endpoint, params, self.timeout)
        logger.info(f"Successfully received response from {endpoint}")
        return data
