"""Base Haystack daemon API client.

Provides the shared HTTP session, request envelope parsing, and error
classification used by the workspace and search clients.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Config
from .models import DaemonResponse
from .network_error_handler import (
    DaemonAPIError,
    DaemonConnectionError,
    DaemonProtocolError,
    DaemonTimeoutError,
    NetworkErrorHandler,
)

logger = logging.getLogger(__name__)


class WorkspaceNotOpenError(DaemonAPIError):
    """Exception raised when an operation needs a workspace and none is open."""

    def __init__(self, message: str = "No workspace folder is opened"):
        super().__init__(message)


class DaemonAPIClient:
    """Base API client for the local Haystack daemon."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Daemon API base URL, e.g. http://127.0.0.1:13134/api/v1
            timeout: Request timeout in seconds
            session: Optional externally owned HTTP client
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._network_error_handler = NetworkErrorHandler()

    @classmethod
    def from_config(cls, config: Config, **kwargs):
        return cls(config.daemon.base_url, timeout=config.daemon.timeout, **kwargs)

    @property
    def session(self) -> httpx.AsyncClient:
        """Get or create the HTTP session."""
        if self._session is None or self._session.is_closed:
            timeouts = httpx.Timeout(
                connect=5.0,  # daemon is local, fail fast when it is down
                read=self.timeout,
                write=10.0,
                pool=5.0,
            )
            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            )
            self._session = httpx.AsyncClient(
                timeout=timeouts,
                limits=limits,
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def post(
        self, endpoint: str, payload: Optional[Dict[str, Any]] = None
    ) -> DaemonResponse:
        """POST a JSON payload and parse the daemon response envelope.

        The envelope is returned as-is, including non-zero codes; callers
        decide whether a given code is a failure.

        Raises:
            DaemonConnectionError: If the daemon cannot be reached
            DaemonTimeoutError: If the request times out
            DaemonProtocolError: On HTTP error statuses or malformed bodies
        """
        url = f"{self.base_url}{endpoint}"

        try:
            response = await self.session.post(url, json=payload or {})
            response.raise_for_status()
        except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as e:
            logger.debug(f"Request to {url} failed: {e}")
            try:
                self._network_error_handler.classify_network_error(e)
            except DaemonAPIError as daemon_error:
                raise daemon_error from e
            raise
        except httpx.HTTPError as e:
            raise DaemonConnectionError(f"Request to {url} failed: {e}") from e

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise DaemonProtocolError(
                f"Invalid JSON from {endpoint}", status_code=response.status_code
            ) from e

        if not isinstance(body, dict) or "code" not in body:
            raise DaemonProtocolError(
                f"Unexpected response shape from {endpoint}",
                status_code=response.status_code,
            )

        return DaemonResponse.model_validate(body)

    async def post_checked(
        self, endpoint: str, payload: Optional[Dict[str, Any]] = None
    ) -> DaemonResponse:
        """POST and raise ``DaemonAPIError`` if the daemon reports failure."""
        result = await self.post(endpoint, payload)
        if not result.ok:
            raise DaemonAPIError(
                result.message or f"Request to {endpoint} failed", code=result.code
            )
        return result

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.is_closed:
            await self._session.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


__all__ = [
    "DaemonAPIClient",
    "DaemonAPIError",
    "DaemonConnectionError",
    "DaemonProtocolError",
    "DaemonTimeoutError",
    "WorkspaceNotOpenError",
]
