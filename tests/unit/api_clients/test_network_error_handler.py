"""Unit tests for network error classification and user guidance."""

import httpx
import pytest

from haystack_client.api_clients.network_error_handler import (
    DaemonConnectionError,
    DaemonProtocolError,
    DaemonTimeoutError,
    NetworkErrorHandler,
    UserGuidanceProvider,
)


class TestNetworkErrorHandler:
    """Test mapping of httpx failures to daemon errors."""

    def setup_method(self):
        self.handler = NetworkErrorHandler()

    def test_connection_refused(self):
        with pytest.raises(DaemonConnectionError) as exc_info:
            self.handler.classify_network_error(
                httpx.ConnectError("[Errno 111] Connection refused")
            )

        assert "Check if it is running" in str(exc_info.value)
        assert "Troubleshooting Steps" in exc_info.value.user_guidance

    def test_timeout(self):
        with pytest.raises(DaemonTimeoutError):
            self.handler.classify_network_error(httpx.ReadTimeout("timed out"))

    def test_http_status(self):
        request = httpx.Request("POST", "http://127.0.0.1:13134/api/v1/search/content")
        response = httpx.Response(503, request=request)
        error = httpx.HTTPStatusError("unavailable", request=request, response=response)

        with pytest.raises(DaemonProtocolError) as exc_info:
            self.handler.classify_network_error(error)

        assert exc_info.value.status_code == 503

    def test_remote_protocol_error(self):
        with pytest.raises(DaemonConnectionError):
            self.handler.classify_network_error(
                httpx.RemoteProtocolError("peer closed connection")
            )


class TestUserGuidanceProvider:
    """Test guidance selection per error type."""

    def test_connection_guidance_mentions_status_command(self):
        guidance = UserGuidanceProvider().get_guidance(DaemonConnectionError("down"))

        assert guidance.error_type == "Daemon Connection Error"
        assert any("haystack-client status" in step for step in guidance.troubleshooting_steps)

    def test_generic_guidance(self):
        guidance = UserGuidanceProvider().get_guidance(RuntimeError("boom"))

        assert guidance.troubleshooting_steps
        assert "Error Type:" in guidance.format_for_console()
