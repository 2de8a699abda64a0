"""Explicit session context passed to the HTTP client."""

import logging
from collections.abc import Callable
from typing import Optional

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Holds the access token for the current user.

    The client reports an unrecoverable 401 through ``on_unauthorized``
    instead of a global logout event. The callback fires once per session
    loss, not once per failed request.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        user_id: Optional[str] = None,
        on_unauthorized: Optional[Callable[["SessionContext"], None]] = None,
    ) -> None:
        self.access_token = access_token
        self.user_id = user_id
        self.on_unauthorized = on_unauthorized

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the current token, if any."""
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def update_token(self, access_token: str) -> None:
        self.access_token = access_token
        logger.debug("Access token refreshed")

    def clear(self) -> None:
        """Drop the session and notify the owner."""
        was_authenticated = self.is_authenticated
        self.access_token = None
        self.user_id = None

        if was_authenticated and self.on_unauthorized:
            logger.info("Session expired, notifying owner")
            self.on_unauthorized(self)
