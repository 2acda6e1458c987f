class ValidationFailure(Exception):
    """User-correctable input problem. The in-progress draft is left untouched."""


class SearchFailure(Exception):
    """Transient catalog provider or network failure during lookup."""


class RateLimited(SearchFailure):
    """Catalog provider throttled the request. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class NotFound(Exception):
    """Requested catalog entry was not found."""


class PublicationFailure(Exception):
    """Backend rejected the submission or the network failed. Retrying may succeed."""
