"""Workspace synchronization between the editor session and the daemon."""

from .coordinator import PendingUpdate, SyncCoordinator
from .status_monitor import WorkspaceStatusMonitor
from .watch_handler import SyncWatchHandler
from .workspace import WorkspaceDescriptor

__all__ = [
    "PendingUpdate",
    "SyncCoordinator",
    "SyncWatchHandler",
    "WorkspaceDescriptor",
    "WorkspaceStatusMonitor",
]
