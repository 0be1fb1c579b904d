from __future__ import annotations


class GoalbotError(Exception):
    """Base error for the goal bot."""


class UpstreamError(GoalbotError):
    """An external HTTP source returned a bad status, timed out, or sent malformed data."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NHLAPIError(UpstreamError):
    pass


class OddsAPIError(UpstreamError):
    pass


class DeadlineExceeded(GoalbotError):
    """The tick's overall deadline passed before a step could start."""


class DiscordError(UpstreamError):
    pass
