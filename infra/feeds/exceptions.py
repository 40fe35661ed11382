"""
Candle feed exceptions and error sanitizing.

Upstream errors can echo request URLs, API keys or signatures back to the
caller. ``sanitize_error`` strips those before a message leaves the service.
"""

from __future__ import annotations

import re

__all__ = ["FeedError", "sanitize_error"]

_API_KEY_HEADER = re.compile(r"X-MBX-APIKEY\s*[:=]?\s*[^\s,;]+", re.IGNORECASE)
_SECRET_PARAM = re.compile(
    r"\b(api[_-]?key|apikey|secret|signature|token)\s*[=:]\s*[^\s&,;]+",
    re.IGNORECASE,
)
_QUERY_STRING = re.compile(r"(https?://[^\s?]+)\?\S*")


class FeedError(Exception):
    """Base exception for candle feed errors.

    Raised when a candle source cannot deliver data because of
    connectivity issues, rejected requests or malformed responses.
    """

    def __init__(self, message: str, symbol: str | None = None) -> None:
        """Initialize feed error.

        Args:
            message: Error description.
            symbol: Symbol being fetched, if applicable.
        """
        super().__init__(message)
        self.message = message
        self.symbol = symbol

    def __str__(self) -> str:
        """String representation of the error."""
        if self.symbol:
            return f"FeedError ({self.symbol}): {self.message}"
        return f"FeedError: {self.message}"


def sanitize_error(error: BaseException | str) -> str:
    """Error text with credentials and query strings removed."""
    text = error.message if isinstance(error, FeedError) else str(error)
    text = _QUERY_STRING.sub(r"\1", text)
    text = _API_KEY_HEADER.sub("X-MBX-APIKEY ***", text)
    text = _SECRET_PARAM.sub(r"\1=***", text)
    return text.strip() or "upstream_error"
