"""
SyncCoordinator - keeps the daemon index in step with an editing session.

Saves are debounced per file so bursts (e.g. auto-save) collapse into a
single update call; creates and deletes are sent immediately. A periodic
reconciliation pass re-creates the workspace to repair drift from missed
events. Every daemon call failure is logged and swallowed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from ..api_clients.base_client import DaemonAPIError
from ..api_clients.workspace_client import WorkspaceClient, is_already_exists
from ..config import Config
from .workspace import PathLike, WorkspaceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_RECONCILE_INTERVAL_SECONDS = 24 * 60 * 60


@dataclass
class PendingUpdate:
    """Debounce record for one file path."""

    file_path: str
    task: "asyncio.Task[None]" = field(repr=False)
    firing: bool = False


class SyncCoordinator:
    """Propagates file save/create/delete events to the daemon."""

    def __init__(
        self,
        client: WorkspaceClient,
        workspace: Optional[WorkspaceDescriptor],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        reconcile_interval_seconds: float = DEFAULT_RECONCILE_INTERVAL_SECONDS,
    ):
        """
        Initialize sync coordinator.

        Args:
            client: Daemon workspace client used for all calls
            workspace: Active workspace, or None if no project is open
            debounce_seconds: Quiet period before a saved file is sent
            reconcile_interval_seconds: Interval between full reconciliation passes
        """
        self.client = client
        self.debounce_seconds = debounce_seconds
        self.reconcile_interval_seconds = reconcile_interval_seconds

        self._workspace = workspace
        self._known_roots: Set[str] = {workspace.workspace} if workspace else set()
        self._pending: Dict[str, PendingUpdate] = {}
        self._background: Set["asyncio.Task[Any]"] = set()
        self._reconcile_task: Optional["asyncio.Task[None]"] = None
        self._disposed = False

        # Statistics
        self.updates_sent = 0
        self.deletes_sent = 0
        self.workspaces_created = 0
        self.failures = 0

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: WorkspaceClient,
        workspace: Optional[WorkspaceDescriptor],
    ) -> "SyncCoordinator":
        return cls(
            client,
            workspace,
            debounce_seconds=config.sync.debounce_seconds,
            reconcile_interval_seconds=config.sync.reconcile_interval_seconds,
        )

    @property
    def workspace(self) -> Optional[WorkspaceDescriptor]:
        return self._workspace

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def pending_paths(self) -> Set[str]:
        return set(self._pending)

    # Lifecycle

    def start(self, initial_create: bool = True) -> None:
        """Start periodic reconciliation; optionally create the workspace now."""
        if self._disposed:
            raise RuntimeError("SyncCoordinator has been disposed")

        if self._reconcile_task is None:
            self._reconcile_task = asyncio.get_running_loop().create_task(
                self._reconcile_loop()
            )

        if initial_create and self._workspace is not None:
            self._spawn(self._create_workspace(self._workspace.workspace))

    def dispose(self) -> None:
        """Cancel every debounce timer and the reconciliation timer.

        Update calls that are already in flight are left to finish; their
        outcome is only logged.
        """
        self._disposed = True

        for record in list(self._pending.values()):
            if not record.firing:
                record.task.cancel()
        self._pending.clear()

        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
            self._reconcile_task = None

        logger.debug("SyncCoordinator disposed")

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.dispose()

    # Editor events

    def on_file_saved(self, path: PathLike) -> Optional["asyncio.Task[None]"]:
        """Debounce an update call for ``path``.

        A pending timer for the same path is cancelled and replaced, so at most
        one timer exists per path.
        """
        relative_path = self._relativize(path)
        if relative_path is None:
            return None

        existing = self._pending.get(relative_path)
        if existing is not None and not existing.firing:
            existing.task.cancel()

        task = asyncio.get_running_loop().create_task(
            self._debounced_update(relative_path)
        )
        self._pending[relative_path] = PendingUpdate(relative_path, task)
        return task

    def on_file_created(self, path: PathLike) -> Optional["asyncio.Task[None]"]:
        """Send an update call for a created or restored file right away."""
        relative_path = self._relativize(path)
        if relative_path is None:
            return None
        return self._spawn(self._send_update(relative_path))

    def on_file_deleted(self, path: PathLike) -> Optional["asyncio.Task[None]"]:
        """Send a delete call right away, dropping any pending update."""
        relative_path = self._relativize(path)
        if relative_path is None:
            return None

        existing = self._pending.pop(relative_path, None)
        if existing is not None and not existing.firing:
            existing.task.cancel()

        return self._spawn(self._send_delete(relative_path))

    def on_workspace_roots_changed(
        self, roots: Iterable[PathLike]
    ) -> Optional["asyncio.Task[None]"]:
        """Re-resolve the active workspace and create any newly added roots."""
        if self._disposed:
            return None

        roots = list(roots)
        resolved = [WorkspaceDescriptor.from_roots([root]) for root in roots]
        current = [d.workspace for d in resolved if d is not None]
        added = [w for w in current if w not in self._known_roots]
        self._known_roots = set(current)

        descriptor = WorkspaceDescriptor.from_roots(roots)
        if descriptor != self._workspace:
            logger.info(
                f"Active workspace changed to "
                f"{descriptor.workspace if descriptor else '<none>'}"
            )
            for record in list(self._pending.values()):
                if not record.firing:
                    record.task.cancel()
            self._pending.clear()
            self._workspace = descriptor

        if not added:
            return None
        return self._spawn(self._create_workspaces(added))

    async def reconcile(self) -> bool:
        """Re-create the workspace on the daemon to repair index drift.

        Falls back to a forced sync when the daemon reports the workspace
        already exists. Returns True when the daemon accepted either call.
        """
        if self._workspace is None:
            logger.debug("Skipping reconciliation: no workspace is open")
            return False

        workspace = self._workspace.workspace
        try:
            await self.client.create_workspace(workspace)
            self.workspaces_created += 1
            logger.info(f"Reconciled workspace {workspace}")
            return True
        except DaemonAPIError as e:
            if not is_already_exists(e):
                self.failures += 1
                logger.warning(f"Failed to reconcile workspace {workspace}: {e}")
                return False
        except Exception as e:
            self.failures += 1
            logger.warning(f"Failed to reconcile workspace {workspace}: {e}")
            return False

        try:
            await self.client.sync_workspace(workspace)
            logger.info(f"Synced existing workspace {workspace}")
            return True
        except Exception as e:
            self.failures += 1
            logger.warning(f"Failed to sync workspace {workspace}: {e}")
            return False

    def get_statistics(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        return {
            "workspace": self._workspace.workspace if self._workspace else None,
            "updates_sent": self.updates_sent,
            "deletes_sent": self.deletes_sent,
            "workspaces_created": self.workspaces_created,
            "failures": self.failures,
            "pending_updates": len(self._pending),
        }

    # Internals

    def _relativize(self, path: PathLike) -> Optional[str]:
        if self._disposed:
            logger.debug(f"Ignoring event for {path}: coordinator disposed")
            return None
        if self._workspace is None:
            logger.debug(f"Ignoring event for {path}: no workspace is open")
            return None

        relative_path = self._workspace.relative_path(path)
        if relative_path is None:
            logger.debug(f"Ignoring event for {path}: outside workspace")
        return relative_path

    def _spawn(self, coro) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _debounced_update(self, relative_path: str) -> None:
        record: Optional[PendingUpdate] = None
        try:
            await asyncio.sleep(self.debounce_seconds)
            record = self._pending.get(relative_path)
            if record is not None and record.task is asyncio.current_task():
                record.firing = True
            await self._send_update(relative_path)
        finally:
            current = self._pending.get(relative_path)
            if current is not None and current.task is asyncio.current_task():
                del self._pending[relative_path]

    async def _send_update(self, relative_path: str) -> None:
        workspace = self._workspace
        if workspace is None:
            return
        try:
            await self.client.update_document(workspace.workspace, relative_path)
            self.updates_sent += 1
            logger.debug(f"Updated document {relative_path}")
        except Exception as e:
            self.failures += 1
            logger.warning(f"Failed to update document {relative_path}: {e}")

    async def _send_delete(self, relative_path: str) -> None:
        workspace = self._workspace
        if workspace is None:
            return
        try:
            await self.client.delete_document(workspace.workspace, relative_path)
            self.deletes_sent += 1
            logger.debug(f"Deleted document {relative_path}")
        except Exception as e:
            self.failures += 1
            logger.warning(f"Failed to delete document {relative_path}: {e}")

    async def _create_workspace(self, workspace: str) -> None:
        try:
            created = await self.client.ensure_workspace(workspace)
            if created:
                self.workspaces_created += 1
                logger.info(f"Created workspace {workspace}")
        except Exception as e:
            self.failures += 1
            logger.warning(f"Failed to create workspace {workspace}: {e}")

    async def _create_workspaces(self, workspaces: Iterable[str]) -> None:
        for workspace in workspaces:
            await self._create_workspace(workspace)

    async def _reconcile_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reconcile_interval_seconds)
            await self.reconcile()
