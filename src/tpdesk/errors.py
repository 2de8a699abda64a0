"""Error taxonomy for the task and workflow core.

Three kinds of failure reach callers:

- ``InvalidInputError``: caught before dispatch, no request was made.
- ``ApiError`` and its subclasses: the remote service failed or could not be
  reached. ``server_message`` holds the message the server sent, if any.
- ``OperationError``: raised by the stores when a mutation fails. Its
  ``message`` is the normalized text meant for display; the lower-level error
  is chained as ``__cause__``.
"""

from typing import Optional


class TpDeskError(Exception):
    """Base class for all errors raised by tpdesk."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(TpDeskError):
    """Client-side validation failed; nothing was sent."""


class ApiError(TpDeskError):
    """The remote service rejected a request or returned an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class TransportError(ApiError):
    """The request never produced a response (connection refused, timeout)."""


class UnauthorizedError(ApiError):
    """The session is no longer valid and could not be refreshed."""


class OperationError(TpDeskError):
    """A store operation failed; ``message`` is safe to show to the user."""


class ConfigError(TpDeskError):
    """The configuration file could not be read."""


def error_message(exc: BaseException, fallback: str) -> str:
    """
    Turn any error into a single human-readable message.

    Prefers the message supplied by the server, then the message of a
    validation error, then the per-operation fallback.

    Args:
        exc: The error to describe
        fallback: Generic message for this operation

    Returns:
        Message string
    """
    if isinstance(exc, ApiError) and exc.server_message:
        return exc.server_message
    if isinstance(exc, InvalidInputError):
        return exc.message
    return fallback
