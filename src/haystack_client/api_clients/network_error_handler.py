"""Network Error Handler for the Haystack daemon API client.

Classifies raw httpx failures into daemon error types and provides user
guidance for the CLI when the local daemon cannot be reached.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, cast

import httpx

logger = logging.getLogger(__name__)


@dataclass
class UserGuidance:
    """User guidance information for network errors."""

    error_type: str
    troubleshooting_steps: List[str]
    additional_notes: List[str] = field(default_factory=list)

    def format_for_console(self) -> str:
        """Format guidance for rich console output."""
        content = []
        content.append(f"[bold red]Error Type:[/bold red] {self.error_type}")
        content.append("")
        content.append("[bold yellow]Troubleshooting Steps:[/bold yellow]")

        for i, step in enumerate(self.troubleshooting_steps, 1):
            content.append(f"{i}. {step}")

        if self.additional_notes:
            content.append("")
            content.append("[bold blue]Additional Notes:[/bold blue]")
            for note in self.additional_notes:
                content.append(f"• {note}")

        return "\n".join(content)


class DaemonAPIError(Exception):
    """Base exception for daemon API errors.

    ``code`` carries the daemon's application-level status code when the
    failure was reported by the daemon itself.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        user_guidance: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.user_guidance = user_guidance or ""


class DaemonConnectionError(DaemonAPIError):
    """Exception raised when the daemon cannot be reached."""

    pass


class DaemonTimeoutError(DaemonConnectionError):
    """Exception raised when a daemon request times out."""

    pass


class DaemonProtocolError(DaemonAPIError):
    """Exception raised for HTTP error statuses or malformed response bodies."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        user_guidance: Optional[str] = None,
    ):
        super().__init__(message, user_guidance=user_guidance)
        self.status_code = status_code


class UserGuidanceProvider:
    """Provides user guidance for different daemon error scenarios."""

    def __init__(self):
        self._guidance_mapping = {
            DaemonConnectionError: self._get_connection_error_guidance,
            DaemonTimeoutError: self._get_timeout_guidance,
            DaemonProtocolError: self._get_protocol_error_guidance,
        }

    def get_guidance(self, error: Exception) -> UserGuidance:
        """Get user guidance for a specific error."""
        guidance_func = self._guidance_mapping.get(
            type(error), self._get_generic_guidance
        )
        return cast(UserGuidance, guidance_func(error))

    def _get_connection_error_guidance(
        self, error: DaemonConnectionError
    ) -> UserGuidance:
        return UserGuidance(
            error_type="Daemon Connection Error",
            troubleshooting_steps=[
                "Check that the Haystack daemon is running (haystack-client status)",
                "Start it with: haystack-client server start",
                "Verify the configured daemon host and port",
                "Check that no other process is bound to the daemon port",
            ],
            additional_notes=[
                "The daemon listens on a local loopback address only",
            ],
        )

    def _get_timeout_guidance(self, error: DaemonTimeoutError) -> UserGuidance:
        return UserGuidance(
            error_type="Daemon Timeout Error",
            troubleshooting_steps=[
                "The daemon may be busy indexing a large workspace",
                "Try again in a few moments",
                "Narrow the search with --include/--exclude or lower limits",
            ],
        )

    def _get_protocol_error_guidance(self, error: DaemonProtocolError) -> UserGuidance:
        return UserGuidance(
            error_type="Daemon Protocol Error",
            troubleshooting_steps=[
                "The daemon returned an unexpected response",
                "Check that the installed daemon version matches this client",
                "Reinstall the daemon with: haystack-client install --force",
            ],
        )

    def _get_generic_guidance(self, error: Exception) -> UserGuidance:
        return UserGuidance(
            error_type="Unknown Daemon Error",
            troubleshooting_steps=[
                "Check that the Haystack daemon is running",
                "Try again in a few moments",
            ],
        )


class NetworkErrorHandler:
    """Handles network error classification for daemon requests."""

    def __init__(self):
        self.guidance_provider = UserGuidanceProvider()
        self._connection_error_patterns = [
            r"connection.*refused",
            r"connection.*reset",
            r"network.*is.*unreachable",
            r"no.*route.*to.*host",
        ]

    def classify_network_error(self, error: Exception) -> None:
        """Classify a network error and raise the matching daemon exception.

        Args:
            error: The original httpx exception

        Raises:
            DaemonTimeoutError, DaemonConnectionError or DaemonProtocolError
        """
        error_message = str(error).lower()

        if isinstance(error, httpx.TimeoutException):
            self._handle_timeout_error(error_message)
        elif isinstance(error, httpx.ConnectError):
            self._handle_connect_error(error, error_message)
        elif isinstance(error, httpx.HTTPStatusError):
            self._handle_http_status_error(error)
        elif isinstance(error, (httpx.NetworkError, httpx.RemoteProtocolError)):
            self._raise_with_guidance(DaemonConnectionError(f"Network error: {error}"))
        else:
            self._raise_with_guidance(
                DaemonConnectionError(f"Unknown network error: {error}")
            )

    def _raise_with_guidance(self, error: DaemonAPIError) -> None:
        guidance = self.guidance_provider.get_guidance(error)
        error.user_guidance = guidance.format_for_console()
        raise error

    def _handle_connect_error(
        self, error: httpx.ConnectError, error_message: str
    ) -> None:
        if any(
            re.search(pattern, error_message)
            for pattern in self._connection_error_patterns
        ):
            self._raise_with_guidance(
                DaemonConnectionError(
                    "Cannot connect to the Haystack daemon. Check if it is running."
                )
            )

        self._raise_with_guidance(DaemonConnectionError(f"Connection failed: {error}"))

    def _handle_timeout_error(self, error_message: str) -> None:
        if "connect" in error_message:
            message = "Connection to the Haystack daemon timed out."
        else:
            message = "Request to the Haystack daemon timed out."
        self._raise_with_guidance(DaemonTimeoutError(message))

    def _handle_http_status_error(self, error: httpx.HTTPStatusError) -> None:
        status_code = error.response.status_code
        self._raise_with_guidance(
            DaemonProtocolError(
                f"Daemon returned HTTP {status_code}", status_code=status_code
            )
        )
