"""Launching the installed Haystack daemon."""

import asyncio
import logging
import subprocess
import sys
from pathlib import Path
from typing import List

from .api_clients.workspace_client import WorkspaceClient

logger = logging.getLogger(__name__)


def daemon_command(executable: Path) -> List[str]:
    return [str(executable), "server", "start"]


def start_daemon(executable: Path) -> subprocess.Popen:
    """
    Start the daemon as a detached background process.

    Args:
        executable: Installed daemon executable

    Raises:
        FileNotFoundError: If the executable is missing
    """
    if not executable.is_file():
        raise FileNotFoundError(f"Daemon executable not found: {executable}")

    kwargs = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        )
    else:
        kwargs["start_new_session"] = True

    logger.info(f"Starting daemon: {executable}")
    return subprocess.Popen(
        daemon_command(executable),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        cwd=str(executable.parent),
        **kwargs,
    )


async def wait_for_daemon(
    client: WorkspaceClient, timeout: float = 10.0, interval: float = 0.25
) -> bool:
    """Poll the daemon until it answers or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        if await client.is_daemon_reachable():
            return True
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)
