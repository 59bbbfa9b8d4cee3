from typing import Optional


class TimelineError(Exception):
    """Base class for errors raised inside the timeline service."""


class TransientFetchError(TimelineError):
    """A source query kept failing after every retry."""

    def __init__(self, source: str, attempts: int, cause: Optional[BaseException]):
        self.source = source
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"fetch for source '{source}' failed after {attempts} attempts: {cause}"
        )


class PartialSourceFailure(TimelineError):
    """One source of a multi-source fetch contributed nothing this cycle."""

    def __init__(self, source: str, cause: BaseException):
        self.source = source
        self.cause = cause
        super().__init__(f"source '{source}' failed: {cause}")


class MalformedRecordError(TimelineError):
    """A raw record lacks a field a Sample cannot exist without."""

    def __init__(self, reason: str, record_id: Optional[str] = None):
        self.reason = reason
        self.record_id = record_id
        super().__init__(f"malformed record {record_id or '<unknown>'}: {reason}")


class SubscriptionError(TimelineError):
    """Setting up or consuming a push subscription failed."""
