"""Cache-layer exceptions. Typed, no HTTP. None of these escape get/set/invalidate."""


class CacheError(Exception):
    """Base for all cache-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CacheWriteError(CacheError):
    """Raised when the backing store rejects or cannot receive a write. Recovered inside CacheLayer."""


class CacheReadError(CacheError):
    """Raised when the backing store cannot serve a read. Recovered inside CacheLayer as a miss."""


class InvalidTTLError(CacheError):
    """Raised when a caller passes a TTL that is not a positive integer number of seconds."""
