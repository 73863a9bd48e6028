class LinkPortError(Exception):
    """Base class for LinkPort domain errors."""


class RateLimited(LinkPortError):
    """Operation was rate limited by provider. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TemporaryFailure(LinkPortError):
    """Transient provider or network failure. Retrying may succeed."""


class PermanentFailure(LinkPortError):
    """Non-retriable failure due to invalid input or authorization issues."""


class NotFound(LinkPortError):
    """Requested resource was not found."""


class InvalidUrl(LinkPortError):
    """Playlist URL is malformed."""


class UnsupportedPlatform(LinkPortError):
    """Platform could not be detected or is not supported."""


class PlaylistParseError(LinkPortError):
    """Source playlist could not be extracted."""
