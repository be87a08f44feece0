"""Search Client for Haystack full-text search.

Issues structured content searches against the daemon and normalizes the
response, and reports indexing progress for the active workspace.
"""

import logging
from typing import Optional

from .base_client import DaemonAPIError, WorkspaceNotOpenError
from .models import (
    WORKSPACE_NOT_FOUND,
    SearchOptions,
    SearchQuery,
    SearchResponse,
    WorkspaceStatus,
)
from .workspace_client import WorkspaceClient

logger = logging.getLogger(__name__)

SEARCH_CONTENT = "/search/content"


class SearchClient(WorkspaceClient):
    """Client for search and workspace status of the active workspace."""

    def __init__(self, base_url: str, workspace_root: Optional[str] = None, **kwargs):
        """Initialize search client.

        Args:
            base_url: Daemon API base URL
            workspace_root: Root of the workspace being searched (may be set later)
            **kwargs: Passed through to DaemonAPIClient
        """
        super().__init__(base_url, **kwargs)
        self.workspace_root = workspace_root or ""

    def set_workspace_root(self, workspace_root: Optional[str]) -> None:
        self.workspace_root = workspace_root or ""

    async def search(
        self, query_text: str, options: Optional[SearchOptions] = None
    ) -> SearchResponse:
        """Search file contents of the active workspace.

        Args:
            query_text: Free-text query
            options: Case sensitivity, include/exclude globs and result limits

        Returns:
            Normalized response; a daemon-reported failure yields an empty,
            non-truncated result set carrying the daemon's code and message

        Raises:
            WorkspaceNotOpenError: If no workspace is open (no request is sent)
            ValueError: If the query is empty
            DaemonConnectionError: If the daemon cannot be reached
        """
        if not self.workspace_root:
            raise WorkspaceNotOpenError()

        if query_text is None or not query_text.strip():
            raise ValueError("Query cannot be empty")

        query = SearchQuery.build(
            self.workspace_root, query_text, options or SearchOptions()
        )
        result = await self.post(SEARCH_CONTENT, query.to_payload())

        if not result.ok:
            logger.info(
                f"Search returned no results: {result.message or 'Unknown reason'}"
            )

        response = SearchResponse.from_daemon(result)
        logger.debug(
            f"Search '{query_text}' matched {response.total_matches} lines in "
            f"{len(response.results)} files (truncated={response.truncated})"
        )
        return response

    async def get_workspace_status(self) -> WorkspaceStatus:
        """Report indexing progress of the active workspace.

        Never raises: connectivity problems and daemon failures are returned in
        ``WorkspaceStatus.error``. A "workspace not found" answer triggers one
        implicit create of the workspace.
        """
        if not self.workspace_root:
            return WorkspaceStatus(error="No workspace folder is opened")

        try:
            result = await self.get_workspace(self.workspace_root)
        except DaemonAPIError as e:
            return WorkspaceStatus(error=f"Failed to get workspace status: {e}")

        if result.code == WORKSPACE_NOT_FOUND:
            return await self._create_missing_workspace()

        if not result.ok:
            return WorkspaceStatus(
                error=result.message or "Failed to get workspace status"
            )

        data = result.data if isinstance(result.data, dict) else None
        if data is None:
            return WorkspaceStatus(error="Workspace not found")

        total_files = int(data.get("total_files") or 0)
        indexed_files = data.get("indexed_files")
        return WorkspaceStatus(
            indexing=bool(data.get("indexing", False)),
            total_files=total_files,
            indexed_files=total_files if indexed_files is None else int(indexed_files),
        )

    async def _create_missing_workspace(self) -> WorkspaceStatus:
        logger.info(f"Workspace {self.workspace_root} not found, creating it")
        try:
            created = await self.ensure_workspace(self.workspace_root)
        except DaemonAPIError as e:
            logger.warning(f"Implicit workspace creation failed: {e}")
            return WorkspaceStatus(error=f"Failed to create workspace: {e}")

        if not created:
            logger.debug("Workspace was created concurrently")
        return WorkspaceStatus(indexing=True)
