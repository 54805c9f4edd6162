"""Riot API adapter package.

This package contains the rate limiter, retry driver and API client used by
the match-tracker polling engines.
"""

from .client import RiotAPIClient, parse_league_entry, parse_lol_match, parse_tft_match
from .errors import FatalAPIError, NotFoundError, RiotAPIError, TransientAPIError
from .rate_limiter import RateLimiter, RateWindow
from .retry import Fail, FailureKind, Ok, RetryAfter, RetryDriver, RetryPolicy

__all__ = [
    # Client
    "RiotAPIClient",
    "parse_league_entry",
    "parse_lol_match",
    "parse_tft_match",
    # Rate limiting and retries
    "RateLimiter",
    "RateWindow",
    "RetryDriver",
    "RetryPolicy",
    "Ok",
    "RetryAfter",
    "Fail",
    "FailureKind",
    # Exceptions
    "RiotAPIError",
    "NotFoundError",
    "TransientAPIError",
    "FatalAPIError",
]
