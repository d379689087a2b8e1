"""
Exception hierarchy for event resolution and reconciliation.
"""
from typing import List, Optional


class TicketAggregatorError(Exception):
    """Base class for all errors raised by this package."""


class DateParseError(TicketAggregatorError, ValueError):
    """A scraped date string could not be parsed by any known dialect."""

    def __init__(self, text: str, source: Optional[str] = None, reason: str = None):
        self.text = text
        self.source = source
        self.reason = reason
        message = f"Unparseable date {text!r}"
        if source:
            message += f" from {source}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class AmbiguousMatchError(TicketAggregatorError):
    """Several stored events tie for the best match and differ materially."""

    def __init__(self, candidate_name: str, event_ids: List[str], score: float):
        self.candidate_name = candidate_name
        self.event_ids = list(event_ids)
        self.score = score
        super().__init__(
            f"Ambiguous match for {candidate_name!r}: events {', '.join(self.event_ids)} "
            f"tie at score {score:.3f}"
        )


class PersistenceError(TicketAggregatorError):
    """A read or write against the event store failed."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed" + (f": {detail}" if detail else ""))
