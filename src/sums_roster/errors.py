from __future__ import annotations

from typing import Optional


class SumsClientError(RuntimeError):
    """
    Base class for every failure raised by the SUMS roster client.
    """


class TransportError(SumsClientError):
    """
    A remote browser command failed (connection drop, rejected command, or an element that had to
    exist was not found). The flow itself broke; this says nothing about the credentials.
    """

    def __init__(self, operation: str, message: str = "") -> None:
        self.operation = operation
        detail = f": {message}" if message else ""
        super().__init__(f"Browser command failed during {operation}{detail}")


class SessionCreateError(TransportError):
    """
    Could not connect to the automation endpoint or open a browser context on it.
    """


class SessionClosedError(TransportError):
    """
    The browser session has already been torn down (closed explicitly or after a fatal fault).
    """


class AuthRejectedError(SumsClientError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Authentication failed with message {reason!r}")


class NavigationTimeoutError(SumsClientError):
    """
    A bounded wait for a page state (e.g. the dashboard URL) expired.
    """

    def __init__(self, expected: str, timeout_ms: int, last_url: str = "") -> None:
        self.expected = expected
        self.timeout_ms = timeout_ms
        self.last_url = last_url
        super().__init__(
            f"Timed out after {timeout_ms}ms waiting for URL starting with {expected!r} (last url={last_url!r})"
        )


class ExtractionError(SumsClientError):
    """
    The member table could not be turned into a complete, valid roster.
    """

    def __init__(self, message: str, *, row_index: Optional[int] = None) -> None:
        self.row_index = row_index
        prefix = f"row {row_index}: " if row_index is not None else ""
        super().__init__(f"{prefix}{message}")


class NotAuthenticatedError(SumsClientError):
    """
    Raised when the roster is requested before a successful `authenticate()`.
    """


__all__ = [
    "SumsClientError",
    "TransportError",
    "SessionCreateError",
    "SessionClosedError",
    "AuthRejectedError",
    "NavigationTimeoutError",
    "ExtractionError",
    "NotAuthenticatedError",
]
