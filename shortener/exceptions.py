"""Error taxonomy for the shortening and resolution paths.

Every error carries the HTTP status it maps to and a ``public_message`` that is
safe to hand to clients. Storage errors never expose backend detail; the
original exception stays on ``__cause__`` for the logs.
"""

__all__ = [
    "DuplicateShortCodeError",
    "InvalidShortCodeError",
    "InvalidUrlError",
    "ShortCodeNotFoundError",
    "ShortenerError",
    "StorageConflictError",
    "StorageUnavailableError",
]


class ShortenerError(Exception):
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


class InvalidUrlError(ShortenerError):
    status_code = 400
    public_message = "Invalid URL format. Please include http:// or https://"


class InvalidShortCodeError(ShortenerError):
    status_code = 400
    public_message = "Invalid short code format"


class ShortCodeNotFoundError(ShortenerError):
    status_code = 404
    public_message = "Short URL not found"

    def __init__(self, short_code: str):
        super().__init__(f"No URL record for short code {short_code!r}")
        self.short_code = short_code


class DuplicateShortCodeError(ShortenerError):
    """Raised by the record store when the unique constraint on short_code fires."""

    def __init__(self, short_code: str):
        super().__init__(f"Short code {short_code!r} already exists")
        self.short_code = short_code


class StorageConflictError(ShortenerError):
    """A freshly allocated short code already existed.

    This only happens if the counter went backwards or was shared with another
    encoder, so it is reported as a server fault and never retried.
    """

    status_code = 500
    public_message = "Internal server error. Please try again."

    def __init__(self, short_code: str):
        super().__init__(f"Allocated short code {short_code!r} collides with an existing record")
        self.short_code = short_code


class StorageUnavailableError(ShortenerError):
    status_code = 503
    public_message = "Internal server error. Please try again."

    def __init__(self, operation: str):
        super().__init__(f"Storage unavailable during {operation}")
        self.operation = operation
