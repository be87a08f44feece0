"""Command line interface for the Haystack companion client."""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .api_clients import (
    DaemonAPIError,
    DaemonConnectionError,
    SearchClient,
    SearchOptions,
    SearchResponse,
    WorkspaceClient,
    WorkspaceStatus,
)
from .api_clients.network_error_handler import UserGuidanceProvider
from .config import Config, ConfigManager
from .daemon import start_daemon, wait_for_daemon
from .installer import BinaryLifecycleManager, InstallState
from .sync import (
    SyncCoordinator,
    SyncWatchHandler,
    WorkspaceDescriptor,
    WorkspaceStatusMonitor,
)
from .utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

console = Console()


def run_async(coro):
    """
    Run an async coroutine, handling both new event loops and existing ones.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No event loop running, we can use asyncio.run()
        return asyncio.run(coro)

    # A loop is already running (e.g. under test); run in a fresh thread
    result = None
    exception = None

    def run_in_new_loop():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    thread = threading.Thread(target=run_in_new_loop)
    thread.start()
    thread.join()

    if exception:
        raise exception
    return result


def _get_config(ctx) -> Config:
    return ctx.obj["config"]


def _resolve_workspace(path: Optional[str]) -> WorkspaceDescriptor:
    return WorkspaceDescriptor(Path(path or Path.cwd()).expanduser().resolve())


def _exit_with_daemon_error(error: DaemonAPIError) -> None:
    """Print a daemon failure (with guidance for connectivity) and exit 1."""
    if isinstance(error, DaemonConnectionError):
        guidance = UserGuidanceProvider().get_guidance(error)
        console.print(f"❌ {error}", style="red")
        console.print(guidance.format_for_console())
    else:
        console.print(f"❌ {error}", style="red")
    sys.exit(1)


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="haystack-client")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Companion client for the Haystack local code search daemon.

    \b
    GETTING STARTED:
      1. haystack-client install        # Download and unpack the daemon
      2. haystack-client server start   # Start the daemon
      3. haystack-client workspace create
      4. haystack-client search "term"  # Search the current directory

    \b
    CONFIGURATION:
      Config file: ~/.haystack-client/config.json
      Environment: HAYSTACK_DAEMON_HOST, HAYSTACK_DAEMON_PORT,
                   HAYSTACK_DATA_DIR, HAYSTACK_VERSION, HAYSTACK_LOG_LEVEL
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    config_manager = ConfigManager(Path(config) if config else None)
    try:
        loaded = config_manager.load()
    except ValueError as e:
        console.print(f"❌ {e}", style="red")
        sys.exit(1)

    ctx.obj["config_manager"] = config_manager
    ctx.obj["config"] = loaded

    level = logging.DEBUG if verbose else getattr(logging, loaded.log_level.upper())
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")

    # Configure logging to suppress noisy third-party messages
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    exception_logger = ExceptionLogger.initialize(loaded.storage.log_dir)
    exception_logger.install_thread_exception_hook()


@cli.command()
@click.option("--force", "-f", is_flag=True, help="Remove and reinstall the daemon")
@click.pass_context
def install(ctx, force: bool):
    """Install the daemon executable for this platform."""
    config = _get_config(ctx)

    def on_state_change(state: InstallState) -> None:
        console.print(f"  {state.value}", style="dim")

    manager = BinaryLifecycleManager(config, on_state_change=on_state_change)
    target = manager.get_platform()
    console.print(
        f"📦 Installing haystack {config.release.version} for {target.target_id}"
    )

    async def _install() -> InstallState:
        if force:
            return await manager.reinstall()
        return await manager.wait_until_ready()

    state = run_async(_install())

    attempts = manager.get_attempts()
    if attempts:
        table = Table(title="Sources")
        table.add_column("Source", style="cyan")
        table.add_column("Location")
        table.add_column("Result")
        for attempt in attempts:
            result = (
                "[green]ok[/green]"
                if attempt.succeeded
                else f"[red]{escape(attempt.error or '')}[/red]"
            )
            table.add_row(attempt.kind.value, attempt.location, result)
        console.print(table)

    if state is InstallState.INSTALLED:
        console.print(f"✅ Installed: {manager.get_executable_path()}", style="green")
        return

    console.print(
        f"❌ Install {state.value}: {manager.get_last_error() or 'unknown error'}",
        style="red",
    )
    sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show installation and daemon status."""
    config = _get_config(ctx)
    manager = BinaryLifecycleManager(config)
    target = manager.get_platform()
    executable = manager.get_executable_path()

    async def _probe():
        async with WorkspaceClient.from_config(config) as client:
            reachable = await client.is_daemon_reachable()
            server_status = None
            if reachable:
                try:
                    server_status = await client.get_server_status()
                except DaemonAPIError as e:
                    logger.debug(f"Server status unavailable: {e}")
            return reachable, server_status

    reachable, server_status = run_async(_probe())

    table = Table(title="Haystack Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    table.add_row(
        "Platform",
        "✅ Supported" if target.supported else "❌ Unsupported",
        target.target_id,
    )
    table.add_row(
        "Daemon executable",
        "✅ Installed" if executable.is_file() else "❌ Not installed",
        str(executable),
    )
    details = config.daemon.base_url
    if server_status is not None and server_status.version:
        details = f"{details} (v{server_status.version}, pid {server_status.pid})"
    table.add_row(
        "Daemon",
        "✅ Running" if reachable else "❌ Not reachable",
        details,
    )
    console.print(table)


def _display_search_results(response: SearchResponse) -> None:
    if not response.results:
        console.print("No results found.")
        return

    console.print(
        f"Found {response.total_matches} results in {len(response.results)} files:"
    )
    console.print("-" * 40)

    for result in response.results:
        console.print(f"File: {result.file_path}", style="bold", markup=False)
        for line in result.line_matches:
            console.print(
                f"→ {line.line_number:4d}: {line.content}",
                markup=False,
                highlight=False,
            )
        if result.file_truncated:
            console.print("  (Results truncated...)")
        console.print("-" * 40)

    if response.truncated:
        console.print("(Search results were truncated. Try narrowing your search.)")


@cli.command()
@click.argument("query")
@click.option("--workspace", "-w", type=click.Path(), help="Workspace root (default: cwd)")
@click.option("--case-sensitive", is_flag=True, help="Match case exactly")
@click.option("--include", "-i", help="Glob of files to include")
@click.option("--exclude", "-e", help="Glob of files to exclude")
@click.option("--limit", type=int, help="Maximum number of results")
@click.option("--limit-per-file", type=int, help="Maximum results per file")
@click.pass_context
def search(
    ctx,
    query: str,
    workspace: Optional[str],
    case_sensitive: bool,
    include: Optional[str],
    exclude: Optional[str],
    limit: Optional[int],
    limit_per_file: Optional[int],
):
    """Search file contents of a workspace."""
    config = _get_config(ctx)
    descriptor = _resolve_workspace(workspace)

    try:
        options = SearchOptions(
            case_sensitive=case_sensitive,
            include=include,
            exclude=exclude,
            max_results=config.search.max_results if limit is None else limit,
            max_results_per_file=(
                config.search.max_results_per_file
                if limit_per_file is None
                else limit_per_file
            ),
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    async def _search() -> SearchResponse:
        async with SearchClient.from_config(
            config, workspace_root=descriptor.workspace
        ) as client:
            return await client.search(query, options)

    try:
        response = run_async(_search())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="QUERY")
    except DaemonAPIError as e:
        _exit_with_daemon_error(e)
        return

    _display_search_results(response)


@cli.group()
def workspace():
    """Manage daemon workspaces."""


def _format_status(status: WorkspaceStatus) -> str:
    if status.error:
        return f"❌ {status.error}"
    if status.indexing:
        return f"⏳ Indexing ({status.indexed_files}/{status.total_files} files)"
    return f"✅ Indexed ({status.total_files} files)"


@workspace.command("status")
@click.argument("path", required=False, type=click.Path())
@click.pass_context
def workspace_status(ctx, path: Optional[str]):
    """Show indexing progress (creates the workspace if missing)."""
    config = _get_config(ctx)
    descriptor = _resolve_workspace(path)

    async def _status() -> WorkspaceStatus:
        async with SearchClient.from_config(
            config, workspace_root=descriptor.workspace
        ) as client:
            return await client.get_workspace_status()

    status = run_async(_status())
    console.print(f"{descriptor.workspace}: {_format_status(status)}")
    if status.error:
        sys.exit(1)


@workspace.command("create")
@click.argument("path", required=False, type=click.Path())
@click.pass_context
def workspace_create(ctx, path: Optional[str]):
    """Create a workspace and start indexing it."""
    config = _get_config(ctx)
    descriptor = _resolve_workspace(path)

    async def _create() -> bool:
        async with WorkspaceClient.from_config(config) as client:
            return await client.ensure_workspace(descriptor.workspace)

    try:
        created = run_async(_create())
    except DaemonAPIError as e:
        _exit_with_daemon_error(e)
        return

    if created:
        console.print(f"✅ Created workspace {descriptor.workspace}", style="green")
    else:
        console.print(f"Workspace {descriptor.workspace} already exists")


@workspace.command("sync")
@click.argument("path", required=False, type=click.Path())
@click.option("--all", "sync_all", is_flag=True, help="Sync every workspace")
@click.pass_context
def workspace_sync(ctx, path: Optional[str], sync_all: bool):
    """Force a full re-synchronization of a workspace."""
    config = _get_config(ctx)
    descriptor = None if sync_all else _resolve_workspace(path)

    async def _sync() -> None:
        async with WorkspaceClient.from_config(config) as client:
            if descriptor is None:
                await client.sync_all_workspaces()
            else:
                await client.sync_workspace(descriptor.workspace)

    try:
        run_async(_sync())
    except DaemonAPIError as e:
        _exit_with_daemon_error(e)
        return

    target = "all workspaces" if descriptor is None else descriptor.workspace
    console.print(f"✅ Sync started for {target}", style="green")


@workspace.command("list")
@click.pass_context
def workspace_list(ctx):
    """List workspaces known to the daemon."""
    config = _get_config(ctx)

    async def _list():
        async with WorkspaceClient.from_config(config) as client:
            return await client.list_workspaces()

    try:
        workspaces = run_async(_list())
    except DaemonAPIError as e:
        _exit_with_daemon_error(e)
        return

    if not workspaces:
        console.print("No workspaces found.")
        return

    table = Table(title="Workspaces")
    table.add_column("Path", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Indexing")
    table.add_column("Last full sync")
    for info in workspaces:
        table.add_row(
            info.path,
            str(info.total_files),
            "yes" if info.indexing else "no",
            info.last_full_sync or "-",
        )
    console.print(table)


@workspace.command("delete")
@click.argument("path", required=False, type=click.Path())
@click.pass_context
def workspace_delete(ctx, path: Optional[str]):
    """Delete a workspace and its index."""
    config = _get_config(ctx)
    descriptor = _resolve_workspace(path)

    async def _delete():
        async with WorkspaceClient.from_config(config) as client:
            return await client.delete_workspace(descriptor.workspace)

    try:
        run_async(_delete())
    except DaemonAPIError as e:
        _exit_with_daemon_error(e)
        return

    console.print(f"✅ Deleted workspace {descriptor.workspace}", style="green")


@cli.command()
@click.argument("path", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--debounce", type=float, help="Seconds to wait after a save")
@click.option("--show-status", is_flag=True, help="Print indexing progress")
@click.pass_context
def watch(ctx, path: Optional[str], debounce: Optional[float], show_status: bool):
    """Keep the daemon index in sync with file changes until Ctrl+C."""
    from watchdog.observers import Observer

    config = _get_config(ctx)
    descriptor = _resolve_workspace(path)
    debounce_seconds = config.sync.debounce_seconds if debounce is None else debounce

    last_status: dict = {}

    def on_status(status: WorkspaceStatus) -> None:
        line = _format_status(status)
        if last_status.get("line") != line:
            last_status["line"] = line
            console.print(line, style="dim")

    async def _watch() -> None:
        loop = asyncio.get_running_loop()
        async with SearchClient.from_config(
            config, workspace_root=descriptor.workspace
        ) as client:
            coordinator = SyncCoordinator(
                client,
                descriptor,
                debounce_seconds=debounce_seconds,
                reconcile_interval_seconds=config.sync.reconcile_interval_seconds,
            )
            handler = SyncWatchHandler(
                coordinator, loop, creation_window_seconds=debounce_seconds
            )
            monitor = WorkspaceStatusMonitor(
                client, on_status, interval=config.sync.status_poll_interval_seconds
            )

            observer = Observer()
            observer.schedule(handler, str(descriptor.root_path), recursive=True)
            observer.start()
            console.print(f"👀 Watching {descriptor.workspace} (Ctrl+C to stop)")

            try:
                async with coordinator:
                    if show_status:
                        monitor.start()
                    await asyncio.Event().wait()
            finally:
                monitor.stop()
                observer.stop()
                await asyncio.to_thread(observer.join)
                stats = coordinator.get_statistics()
                console.print(
                    f"Stopped. {stats['updates_sent']} updates, "
                    f"{stats['deletes_sent']} deletes, {stats['failures']} failures"
                )

    try:
        run_async(_watch())
    except KeyboardInterrupt:
        pass


@cli.group()
def server():
    """Control the local daemon process."""


@server.command("start")
@click.option("--timeout", default=10.0, help="Seconds to wait for the daemon")
@click.pass_context
def server_start(ctx, timeout: float):
    """Install (if needed) and start the daemon in the background."""
    config = _get_config(ctx)

    async def _start() -> Tuple[BinaryLifecycleManager, bool]:
        manager = BinaryLifecycleManager(config)
        state = await manager.wait_until_ready()
        if state is not InstallState.INSTALLED:
            return manager, False

        async with WorkspaceClient.from_config(config) as client:
            if await client.is_daemon_reachable():
                manager.report_daemon_reachability(True)
                console.print("Daemon already running")
                return manager, True

            start_daemon(manager.get_executable_path())
            reachable = await wait_for_daemon(client, timeout=timeout)
            manager.report_daemon_reachability(reachable)
            return manager, reachable

    try:
        manager, running = run_async(_start())
    except FileNotFoundError as e:
        console.print(f"❌ {e}", style="red")
        sys.exit(1)

    if running:
        console.print("✅ Daemon is running", style="green")
        return

    if manager.get_install_status() is not InstallState.INSTALLED:
        console.print(
            f"❌ Daemon is not installed ({manager.get_install_status().value}): "
            f"{manager.get_last_error() or 'unknown error'}",
            style="red",
        )
    else:
        console.print(
            f"❌ Daemon did not become reachable at {config.daemon.base_url}",
            style="red",
        )
    sys.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
