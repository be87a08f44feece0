"""API Client Abstractions for the Haystack daemon.

Provides HTTP client abstractions with no raw HTTP calls in business logic.
All HTTP functionality is contained within dedicated API client classes.
"""

from .base_client import (
    DaemonAPIClient,
    DaemonAPIError,
    DaemonConnectionError,
    DaemonProtocolError,
    DaemonTimeoutError,
    WorkspaceNotOpenError,
)
from .models import (
    DaemonResponse,
    FileMatch,
    LineMatch,
    SearchOptions,
    SearchQuery,
    SearchResponse,
    ServerStatus,
    WorkspaceInfo,
    WorkspaceStatus,
)
from .search_client import SearchClient
from .workspace_client import WorkspaceClient, is_already_exists

__all__ = [
    # Base client
    "DaemonAPIClient",
    "DaemonAPIError",
    "DaemonConnectionError",
    "DaemonProtocolError",
    "DaemonTimeoutError",
    "WorkspaceNotOpenError",
    # Models
    "DaemonResponse",
    "FileMatch",
    "LineMatch",
    "SearchOptions",
    "SearchQuery",
    "SearchResponse",
    "ServerStatus",
    "WorkspaceInfo",
    "WorkspaceStatus",
    # Clients
    "SearchClient",
    "WorkspaceClient",
    "is_already_exists",
]
