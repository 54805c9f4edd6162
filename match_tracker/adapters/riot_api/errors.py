"""Riot API error taxonomy."""

from typing import Optional


class RiotAPIError(Exception):
    """Base exception for Riot API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RiotAPIError):
    """The provider reports no such account or match."""

    pass


class TransientAPIError(RiotAPIError):
    """Network failure, timeout or 5xx that outlived the retry budget."""

    pass


class FatalAPIError(RiotAPIError):
    """Invalid credentials or malformed request; retrying cannot help."""

    pass
