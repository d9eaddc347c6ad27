"""Error taxonomy for query translation and record mapping.

Every error carries the HTTP status the boundary layer answers with, so the
API layer never has to special-case individual error types.
"""

from __future__ import annotations


class PoolError(Exception):
    """Base class for request-scoped pool errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class QueryValidationError(PoolError):
    """Query does not follow the normalized query grammar."""

    status_code = 400


class UnsupportedCriterionError(PoolError):
    """Query uses a field criterion the upstream cannot search."""

    status_code = 501

    def __init__(self, criterion: str) -> None:
        self.criterion = criterion
        super().__init__(f"{_criterion_label(criterion)} queries are not supported")


class MalformedDateError(PoolError):
    """Date criterion fails the 4-digit year rule.

    Attributes:
        token: Offending year text.
        side: ``"start"`` / ``"end"`` for range criteria, otherwise ``None``.
    """

    status_code = 400

    def __init__(self, token: str, side: str | None = None) -> None:
        self.token = token
        self.side = side
        if side == "start":
            message = f"Starting year is invalid: {token!r}. Only 4 digit year is accepted in a date search"
        elif side == "end":
            message = f"Ending year is invalid: {token!r}. Only 4 digit year is accepted in a date search"
        else:
            message = f"Invalid year {token!r}. Only 4 digit year is accepted in a date search"
        super().__init__(message)


class DegenerateQueryError(PoolError):
    """No searchable content remains after translation."""

    status_code = 501

    def __init__(self, message: str = "At least 3 characters are required.") -> None:
        super().__init__(message)


class UpstreamFormatError(PoolError):
    """Upstream response could not be parsed into the expected shape."""

    status_code = 500


class UpstreamRequestError(PoolError):
    """Upstream HTTP request failed or returned a non-200 status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class EnrichmentFailure(PoolError):
    """Secondary, non-essential lookup failed. Never surfaced to callers."""


def _criterion_label(criterion: str) -> str:
    return criterion.replace("_", " ").title()
