"""Custom exception hierarchy for pycontent."""

from __future__ import annotations


class ContentError(Exception):
    """Base exception for all pycontent errors."""


class ContentValidationError(ContentError, ValueError):
    """Bad caller input, detected before any IO takes place."""


class ContentConflictError(ContentError):
    """An id or target is already taken.

    Raised when a second store definition is registered under an id that is
    already bound, and when an optimistic change is started for a target that
    still has an unresolved one.
    """


class ContentParseError(ContentError):
    """A persisted snapshot could not be decoded.

    Contained at the persistence plugin boundary; callers of store actions
    never see it.
    """


class ContentRemoteError(ContentError):
    """Failure reported by (or while talking to) the remote content API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ContentAuthError(ContentRemoteError):
    """Login failed or the request was not authorized."""


class ContentNotFoundError(ContentError):
    """The requested resource, action or getter does not exist.

    Raised both locally (unknown store action/getter) and for remote 404s,
    in which case ``endpoint`` and ``status_code`` are populated.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ContentTransientError(ContentRemoteError):
    """Remote flakiness: network failure, 5xx, or a simulated failure.

    Safe to retry. Optimistic changes roll back on this error.
    """


class ContentTimeoutError(ContentTransientError, TimeoutError):
    """A remote call stalled past its configured timeout."""
