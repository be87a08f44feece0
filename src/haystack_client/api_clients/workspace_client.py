"""Workspace and document operations against the Haystack daemon."""

import logging
from typing import List

from .base_client import (
    DaemonAPIClient,
    DaemonAPIError,
    DaemonConnectionError,
    WorkspaceNotOpenError,
)
from .models import DaemonResponse, ServerStatus, WorkspaceInfo

logger = logging.getLogger(__name__)

WORKSPACE_CREATE = "/workspace/create"
WORKSPACE_GET = "/workspace/get"
WORKSPACE_SYNC = "/workspace/sync"
WORKSPACE_SYNC_ALL = "/workspace/sync-all"
WORKSPACE_LIST = "/workspace/list"
WORKSPACE_DELETE = "/workspace/delete"
DOCUMENT_UPDATE = "/document/update"
DOCUMENT_DELETE = "/document/delete"
SERVER_STATUS = "/server/status"


def is_already_exists(error: Exception) -> bool:
    """True if a create failure only reports that the workspace exists."""
    return isinstance(error, DaemonAPIError) and "already exists" in str(error).lower()


def _require_workspace(workspace: str) -> str:
    if not workspace or not str(workspace).strip():
        raise WorkspaceNotOpenError()
    return str(workspace)


class WorkspaceClient(DaemonAPIClient):
    """Client for workspace lifecycle and per-document index updates."""

    async def create_workspace(self, workspace: str) -> DaemonResponse:
        """Create (or re-create) a workspace, triggering a full index pass.

        Raises:
            WorkspaceNotOpenError: If ``workspace`` is empty
            DaemonAPIError: If the daemon reports failure, including "already exists"
        """
        workspace = _require_workspace(workspace)
        logger.debug(f"Creating workspace {workspace}")
        return await self.post_checked(WORKSPACE_CREATE, {"workspace": workspace})

    async def ensure_workspace(self, workspace: str) -> bool:
        """Create a workspace, treating "already exists" as success.

        Returns:
            True if the workspace was created, False if it already existed
        """
        try:
            await self.create_workspace(workspace)
            return True
        except DaemonAPIError as e:
            if is_already_exists(e):
                logger.debug(f"Workspace {workspace} already exists")
                return False
            raise

    async def get_workspace(self, workspace: str) -> DaemonResponse:
        """Fetch the raw workspace record; non-zero codes are returned, not raised."""
        workspace = _require_workspace(workspace)
        return await self.post(WORKSPACE_GET, {"workspace": workspace})

    async def sync_workspace(self, workspace: str) -> DaemonResponse:
        """Force a full reconciliation of one workspace."""
        workspace = _require_workspace(workspace)
        return await self.post_checked(WORKSPACE_SYNC, {"workspace": workspace})

    async def sync_all_workspaces(self) -> DaemonResponse:
        return await self.post_checked(WORKSPACE_SYNC_ALL)

    async def list_workspaces(self) -> List[WorkspaceInfo]:
        result = await self.post_checked(WORKSPACE_LIST)
        data = result.data if isinstance(result.data, dict) else {}
        return [WorkspaceInfo.model_validate(w) for w in data.get("workspaces") or []]

    async def delete_workspace(self, workspace: str) -> WorkspaceInfo:
        workspace = _require_workspace(workspace)
        result = await self.post_checked(WORKSPACE_DELETE, {"workspace": workspace})
        if isinstance(result.data, dict):
            return WorkspaceInfo.model_validate(result.data)
        return WorkspaceInfo(path=workspace)

    async def update_document(self, workspace: str, path: str) -> DaemonResponse:
        """Ask the daemon to re-read one file (path relative to the workspace)."""
        workspace = _require_workspace(workspace)
        return await self.post_checked(
            DOCUMENT_UPDATE, {"workspace": workspace, "path": path}
        )

    async def delete_document(self, workspace: str, path: str) -> DaemonResponse:
        """Drop one file (path relative to the workspace) from the index."""
        workspace = _require_workspace(workspace)
        return await self.post_checked(
            DOCUMENT_DELETE, {"workspace": workspace, "path": path}
        )

    async def get_server_status(self) -> ServerStatus:
        result = await self.post_checked(SERVER_STATUS)
        if isinstance(result.data, dict):
            return ServerStatus.model_validate(result.data)
        return ServerStatus()

    async def is_daemon_reachable(self) -> bool:
        """Probe the daemon; only connectivity failures count as unreachable."""
        try:
            await self.post(SERVER_STATUS)
        except DaemonConnectionError as e:
            logger.debug(f"Daemon not reachable: {e}")
            return False
        except DaemonAPIError as e:
            logger.debug(f"Daemon answered status probe with an error: {e}")
        return True
