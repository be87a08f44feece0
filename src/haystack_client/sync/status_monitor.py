"""Periodic workspace indexing status polling."""

import asyncio
import logging
from typing import Callable, Optional

from ..api_clients.models import WorkspaceStatus
from ..api_clients.search_client import SearchClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0


class WorkspaceStatusMonitor:
    """Polls the daemon for indexing progress and reports it to a callback."""

    def __init__(
        self,
        search_client: SearchClient,
        callback: Callable[[WorkspaceStatus], None],
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.search_client = search_client
        self.callback = callback
        self.interval = interval
        self._task: Optional["asyncio.Task[None]"] = None
        self.last_status: Optional[WorkspaceStatus] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling; a no-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def refresh(self) -> WorkspaceStatus:
        """Fetch the status once and deliver it to the callback."""
        status = await self.search_client.get_workspace_status()
        self.last_status = status
        try:
            self.callback(status)
        except Exception as e:
            logger.warning(f"Status callback failed: {e}")
        return status

    async def _poll_loop(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self.interval)
