"""
Error taxonomy for the aggregation pipeline.

Source-level errors fail one source and are absorbed by the orchestrator.
Record-level errors drop one record. Value disagreements during merge are
never raised; they are recorded on ``DataQuality``.
"""


class AggregatorError(Exception):
    """Base class for all aggregator errors."""
    pass


class SourceError(AggregatorError):
    """An error attributable to a single source."""

    def __init__(self, message: str, source_id: str | None = None):
        super().__init__(message)
        self.source_id = source_id


class NetworkError(SourceError):
    """Transient failure: connection error, timeout, HTTP 5xx. Retried."""

    def __init__(self, message: str, source_id: str | None = None, status_code: int | None = None):
        super().__init__(message, source_id)
        self.status_code = status_code


class RateLimitError(NetworkError):
    """Raised when rate limited by a data source. Retried with a longer backoff."""

    def __init__(
        self,
        message: str,
        source_id: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, source_id, status_code=429)
        self.retry_after = retry_after


class FormatChangeError(SourceError):
    """The source answered but its shape no longer matches expectations. Never retried."""
    pass


class SourceHTTPError(SourceError):
    """Non-transient HTTP failure (4xx other than 429)."""

    def __init__(self, message: str, source_id: str | None = None, status_code: int | None = None):
        super().__init__(message, source_id)
        self.status_code = status_code


class SourceTimeoutError(SourceError):
    """The global deadline elapsed before the source finished."""
    pass


class ValidationError(AggregatorError):
    """A single record is unusable (e.g. no name). Drops that record only."""

    def __init__(self, message: str, field: str | None = None, value=None):
        super().__init__(message)
        self.field = field
        self.value = value


class FatalRunError(AggregatorError):
    """No output can be assembled, e.g. zero sources succeeded."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


# Errors the orchestrator's retry policy applies to
TRANSIENT_ERRORS = (NetworkError,)
