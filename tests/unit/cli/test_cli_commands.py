"""Unit tests for the haystack-client command line interface."""

import json
import threading

import httpx
import pytest
from click.testing import CliRunner
from rich.console import Console

from haystack_client.cli import cli
from haystack_client.config import Config, ConfigManager
from haystack_client.installer.platform_resolver import PlatformResolver
from haystack_client.utils.exception_logger import ExceptionLogger

BASE_URL = "http://127.0.0.1:13134/api/v1"
PRIMARY_ROOT = "https://primary.example.com/releases"
FALLBACK_ROOT = "https://fallback.example.com/releases"


@pytest.fixture(autouse=True)
def reset_exception_logger(monkeypatch):
    monkeypatch.setattr("haystack_client.cli.console", Console(width=300))
    original_hook = threading.excepthook
    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None
    threading.excepthook = original_hook


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in (
        "HAYSTACK_DAEMON_HOST",
        "HAYSTACK_DAEMON_PORT",
        "HAYSTACK_DATA_DIR",
        "HAYSTACK_VERSION",
        "HAYSTACK_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    path = tmp_path / "config.json"
    ConfigManager(path).save(
        Config(
            release={
                "version": "1.2.3",
                "primary_download_root": PRIMARY_ROOT,
                "fallback_download_root": FALLBACK_ROOT,
            },
            storage={
                "data_dir": tmp_path / "data",
                "bundled_dir": tmp_path / "bundled",
            },
        )
    )
    return path


@pytest.fixture
def workspace_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


def _invoke(config_file, *args):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args])


class TestSearchCommand:
    """Test search output formatting and error handling."""

    def test_prints_matches(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/search/content",
            json={
                "code": 0,
                "data": {
                    "results": [
                        {
                            "file": "a.go",
                            "lines": [
                                {
                                    "line": {
                                        "line_number": 10,
                                        "content": "func foo()",
                                        "match": [5, 9],
                                    }
                                }
                            ],
                            "truncate": True,
                        }
                    ],
                    "truncate": True,
                },
            },
        )

        result = _invoke(config_file, "search", "foo", "--workspace", str(workspace_dir))

        assert result.exit_code == 0, result.output
        assert "Found 1 results in 1 files" in result.output
        assert "File: a.go" in result.output
        assert "func foo()" in result.output
        assert "(Results truncated...)" in result.output
        assert "Try narrowing your search" in result.output

        body = json.loads(httpx_mock.get_request().content)
        assert body["workspace"] == str(workspace_dir.resolve())
        assert body["limit"] == {"max_results": 5000, "max_results_per_file": 1000}

    def test_passes_filters_and_limits(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/search/content",
            json={"code": 0, "data": {"results": []}},
        )

        result = _invoke(
            config_file,
            "search",
            "Foo",
            "--workspace",
            str(workspace_dir),
            "--case-sensitive",
            "--include",
            "*.go",
            "--limit",
            "10",
            "--limit-per-file",
            "2",
        )

        assert result.exit_code == 0, result.output
        body = json.loads(httpx_mock.get_request().content)
        assert body["case_sensitive"] is True
        assert body["filters"] == {"include": "*.go"}
        assert body["limit"] == {"max_results": 10, "max_results_per_file": 2}

    def test_no_results(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/search/content",
            json={"code": 2, "message": "index not ready"},
        )

        result = _invoke(config_file, "search", "foo", "--workspace", str(workspace_dir))

        assert result.exit_code == 0
        assert "No results found." in result.output

    def test_daemon_unreachable(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_exception(
            httpx.ConnectError("connection refused"), url=f"{BASE_URL}/search/content"
        )

        result = _invoke(config_file, "search", "foo", "--workspace", str(workspace_dir))

        assert result.exit_code == 1
        assert "Troubleshooting Steps" in result.output


class TestWorkspaceCommands:
    """Test workspace management subcommands."""

    def test_status_creates_missing_workspace(
        self, httpx_mock, config_file, workspace_dir
    ):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/workspace/get",
            json={"code": 1, "message": "workspace not found"},
        )
        httpx_mock.add_response(
            method="POST", url=f"{BASE_URL}/workspace/create", json={"code": 0}
        )

        result = _invoke(config_file, "workspace", "status", str(workspace_dir))

        assert result.exit_code == 0, result.output
        assert "Indexing" in result.output

    def test_status_unreachable_exits_nonzero(
        self, httpx_mock, config_file, workspace_dir
    ):
        httpx_mock.add_exception(
            httpx.ConnectError("connection refused"), url=f"{BASE_URL}/workspace/get"
        )

        result = _invoke(config_file, "workspace", "status", str(workspace_dir))

        assert result.exit_code == 1

    def test_create_existing_workspace(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/workspace/create",
            json={"code": 1, "message": "workspace already exists"},
        )

        result = _invoke(config_file, "workspace", "create", str(workspace_dir))

        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_list(self, httpx_mock, config_file):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/workspace/list",
            json={
                "code": 0,
                "data": {"workspaces": [{"id": "w1", "path": "/ws", "total_files": 3}]},
            },
        )

        result = _invoke(config_file, "workspace", "list")

        assert result.exit_code == 0, result.output
        assert "/ws" in result.output

    def test_sync_all(self, httpx_mock, config_file):
        httpx_mock.add_response(
            method="POST", url=f"{BASE_URL}/workspace/sync-all", json={"code": 0}
        )

        result = _invoke(config_file, "workspace", "sync", "--all")

        assert result.exit_code == 0
        assert "all workspaces" in result.output

    def test_delete_failure(self, httpx_mock, config_file, workspace_dir):
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/workspace/delete",
            json={"code": 1, "message": "workspace not found"},
        )

        result = _invoke(config_file, "workspace", "delete", str(workspace_dir))

        assert result.exit_code == 1
        assert "workspace not found" in result.output


class TestInstallAndStatus:
    """Test install and status commands."""

    @pytest.fixture
    def target(self):
        resolver = PlatformResolver()
        target = resolver.resolve()
        if not target.supported:
            pytest.skip("host platform has no release build")
        return resolver

    def test_install_from_cache(self, config_file, tmp_path, make_archive, target):
        target_id = target.resolve().target_id
        make_archive(
            tmp_path / "data" / "downloads" / f"haystack-{target_id}-1.2.3.zip",
            executable_name=target.executable_name("haystack"),
        )

        result = _invoke(config_file, "install")

        assert result.exit_code == 0, result.output
        assert "Installed" in result.output
        assert (tmp_path / "data" / "bin" / target.executable_name("haystack")).exists()

    def test_install_failure(self, httpx_mock, config_file, target):
        target_id = target.resolve().target_id
        archive = f"haystack-{target_id}-1.2.3.zip"
        httpx_mock.add_response(
            method="GET", url=f"{PRIMARY_ROOT}/1.2.3/{archive}", status_code=404
        )
        httpx_mock.add_response(
            method="GET", url=f"{FALLBACK_ROOT}/1.2.3/{archive}", status_code=404
        )

        result = _invoke(config_file, "install")

        assert result.exit_code == 1
        assert "error" in result.output

    def test_status_with_daemon_down(self, httpx_mock, config_file):
        httpx_mock.add_exception(
            httpx.ConnectError("connection refused"), url=f"{BASE_URL}/server/status"
        )

        result = _invoke(config_file, "status")

        assert result.exit_code == 0, result.output
        assert "Not reachable" in result.output
        assert "Not installed" in result.output


class TestGlobalOptions:
    def test_malformed_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{broken")

        result = CliRunner().invoke(cli, ["--config", str(path), "status"])

        assert result.exit_code == 1
        assert "Failed to load config" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "haystack-client" in result.output
