"""
Error taxonomy for the preview service.

Each error carries the HTTP status it maps to and a short client-safe
message. Not-found is deliberately absent: an exhausted strategy chain is
a normal ResolutionResult, not an exception.
"""

from __future__ import annotations


class PreviewError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500
    public_message = "Server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class BadRequestError(PreviewError):
    """No usable identifier was supplied."""

    status_code = 400
    public_message = "Missing title or slug"


class UpstreamUnavailableError(PreviewError):
    """The document store could not be reached or a query failed."""

    status_code = 500
    public_message = "Database error"


class StoreNotConfiguredError(UpstreamUnavailableError):
    """No connection string is configured."""

    public_message = "MONGODB_URI not configured"


class InvalidPatternError(Exception):
    """A pattern-based query was structurally invalid.

    Raised by the store layer; the resolver treats it as "no match" for the
    strategy that produced the pattern.
    """


class RoutingFault(Exception):
    """Malformed path or query seen while routing. Never reaches the client."""
