"""HTTP access to the engagement API."""

from tpdesk.api.client import ApiClient
from tpdesk.api.session import SessionContext

__all__ = ["ApiClient", "SessionContext"]
