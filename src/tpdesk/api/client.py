"""HTTP client for the engagement REST API."""

import logging
from typing import Any, Optional

import httpx

from tpdesk.api.session import SessionContext
from tpdesk.errors import ApiError, TransportError, UnauthorizedError

logger = logging.getLogger(__name__)

CONNECT_ERROR_MESSAGE = "Cannot connect to server. Please check your connection and try again."
TIMEOUT_MESSAGE = "Request timeout. Please try again."


class ApiClient:
    """
    Thin wrapper around ``httpx.AsyncClient``.

    Responsibilities:
    - Attach the session's bearer token
    - Refresh the token once on 401 and retry the request
    - Unwrap the ``{success, data, message, pagination}`` envelope
    - Translate every failure into an ``ApiError`` subclass
    """

    def __init__(
        self,
        config: dict,
        session: Optional[SessionContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            config: API configuration (``base_url``, ``timeout_seconds``, ...)
            session: Session context holding the access token
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.base_url = config.get("base_url", "http://localhost:5000/api")
        self.timeout_seconds = config.get("timeout_seconds", 30)
        self.refresh_path = config.get("refresh_path", "/auth/refresh")
        self.user_agent = config.get("user_agent", "tpdesk/0.1")
        self.session = session or SessionContext()

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers={"Content-Type": "application/json", "User-Agent": self.user_agent},
            transport=transport,
        )
        logger.info(f"API client initialized for {self.base_url}")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: Optional[dict] = None) -> dict:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[dict] = None) -> dict:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[dict] = None) -> dict:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> dict:
        return await self.request("DELETE", path)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """
        Send a request and return the decoded response envelope.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters
            json: JSON body

        Returns:
            Decoded envelope (empty dict for empty bodies)

        Raises:
            TransportError: No response was received
            UnauthorizedError: 401 that a token refresh could not fix
            ApiError: Any other error status or an unusable body
        """
        response = await self._send(method, path, params=params, json=json)

        if response.status_code == 401:
            if await self._refresh_token():
                logger.debug(f"Retrying {method} {path} with refreshed token")
                response = await self._send(method, path, params=params, json=json)

            if response.status_code == 401:
                server_message = self._server_message(response)
                self.session.clear()
                raise UnauthorizedError(
                    server_message or "Your session has expired. Please sign in again.",
                    status_code=401,
                    server_message=server_message,
                )

        if response.status_code >= 400:
            server_message = self._server_message(response)
            logger.warning(
                f"API error: {method} {path} -> {response.status_code} ({server_message or 'no message'})"
            )
            raise ApiError(
                server_message or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
            )

        return self._decode(response, method, path)

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> httpx.Response:
        logger.debug(f"API request: {method} {path} params={params}")
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self.session.auth_headers(),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"API timeout: {method} {path}")
            raise TransportError(TIMEOUT_MESSAGE) from e
        except httpx.TransportError as e:
            logger.warning(f"API connection error: {method} {path}: {e}")
            raise TransportError(CONNECT_ERROR_MESSAGE) from e

        logger.debug(f"API response: {method} {path} -> {response.status_code}")
        return response

    async def _refresh_token(self) -> bool:
        """
        Exchange the refresh cookie for a new access token.

        Returns:
            True if a new token was stored
        """
        logger.info("Attempting token refresh")
        try:
            response = await self._client.post(self.refresh_path, json={})
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh failed: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"Token refresh rejected with status {response.status_code}")
            return False

        try:
            token = response.json()["data"]["accessToken"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Token refresh response did not contain an access token")
            return False

        self.session.update_token(token)
        return True

    def _decode(self, response: httpx.Response, method: str, path: str) -> dict:
        if response.status_code == 204 or not response.content:
            return {}

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                f"Malformed response from {method} {path}", status_code=response.status_code
            ) from e

        if not isinstance(body, dict):
            raise ApiError(
                f"Unexpected response shape from {method} {path}", status_code=response.status_code
            )

        if body.get("success") is False:
            server_message = body.get("message")
            raise ApiError(
                server_message or f"{method} {path} was not successful",
                status_code=response.status_code,
                server_message=server_message,
            )

        return body

    @staticmethod
    def _server_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            if isinstance(message, str) and message.strip():
                return message
        return None
