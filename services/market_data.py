"""
Market data service for quotes and exchange rates.
Uses yfinance for data, tenacity for retry logic, and lru_cache to avoid
refetching within a process.
"""

import yfinance as yf
import pandas as pd
import logging
from functools import lru_cache
from typing import Dict, Optional

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

# yfinance suffix for locally listed tickers, by quote currency
EXCHANGE_SUFFIX = {
    "BRL": ".SA",
}


def normalize_symbol(symbol: str, currency: str) -> str:
    """
    Convert a ticker to yfinance format based on its quote currency.

    Examples:
        >>> normalize_symbol("PETR4", "BRL")
        'PETR4.SA'
        >>> normalize_symbol("AAPL", "USD")
        'AAPL'
    """
    symbol = symbol.strip().upper()
    suffix = EXCHANGE_SUFFIX.get(currency.upper())
    if suffix is None or "." in symbol:
        return symbol
    return f"{symbol}{suffix}"


class MarketDataService:
    """
    Service for fetching quotes and FX rates.
    Lookups never raise: failures are logged and reported as None.
    """

    @staticmethod
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(Exception),
        reraise=True
    )
    def _fetch_ticker_info(yf_symbol: str) -> Dict:
        """Fetch ticker info with retry logic."""
        ticker = yf.Ticker(yf_symbol)
        return ticker.info

    @staticmethod
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(Exception),
        reraise=True
    )
    def _fetch_ticker_history(yf_symbol: str, period: str = "1d") -> pd.DataFrame:
        """Fetch ticker history with retry logic."""
        ticker = yf.Ticker(yf_symbol)
        return ticker.history(period=period)

    @staticmethod
    def _last_close(yf_symbol: str) -> Optional[float]:
        hist = MarketDataService._fetch_ticker_history(yf_symbol, period="1d")
        if hist is None or hist.empty:
            return None
        close = float(hist['Close'].iloc[-1])
        return close if close > 0 else None

    @staticmethod
    @lru_cache(maxsize=256)
    def get_current_price(symbol: str, currency: str = "BRL") -> Optional[float]:
        """Fetch the current unit price of a listed asset."""
        try:
            yf_symbol = normalize_symbol(symbol, currency)
            price = MarketDataService._last_close(yf_symbol)

            if price is None:
                info = MarketDataService._fetch_ticker_info(yf_symbol)
                price = info.get('currentPrice') or info.get('regularMarketPrice') or info.get('previousClose')

            if price:
                return float(price)
            logger.warning(f"No price available for {yf_symbol}")
            return None

        except Exception as e:
            logger.error(f"Error fetching price for {symbol}: {e}")
            return None

    @staticmethod
    @lru_cache(maxsize=32)
    def get_exchange_rate(from_currency: str, to_currency: str = "BRL") -> Optional[float]:
        """
        Fetch the exchange rate between two currencies.

        Returns:
            Rate as float, 1.0 for the same currency, or None if unavailable

        Examples:
            get_exchange_rate("USD", "BRL") -> 5.4
        """
        if from_currency == to_currency:
            return 1.0

        # yfinance FX ticker format: FROMTO=X
        ticker_symbol = f"{from_currency}{to_currency}=X"
        try:
            rate = MarketDataService._last_close(ticker_symbol)
            if rate is not None:
                return rate

            logger.warning(f"Could not get exchange rate for {ticker_symbol}")
            return None

        except Exception as e:
            logger.error(f"Error fetching exchange rate {from_currency}->{to_currency}: {e}")
            return None

    @staticmethod
    def clear_cache():
        """Clear the LRU caches."""
        MarketDataService.get_current_price.cache_clear()
        MarketDataService.get_exchange_rate.cache_clear()
        logger.info("Market data cache cleared")
