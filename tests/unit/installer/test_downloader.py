"""Unit tests for the streaming archive downloader."""

import httpx
import pytest

from haystack_client.installer.downloader import MAX_REDIRECTS, Downloader
from haystack_client.installer.exceptions import DownloadError, TooManyRedirectsError

ARCHIVE_URL = "https://primary.example.com/releases/1.2.3/haystack.zip"
MIRROR_URL = "https://cdn.example.com/objects/haystack.zip"


@pytest.mark.asyncio
class TestDownloader:
    """Test download, redirect, and cleanup behavior."""

    async def test_download_writes_file(self, httpx_mock, tmp_path):
        httpx_mock.add_response(method="GET", url=ARCHIVE_URL, content=b"archive-bytes")
        destination = tmp_path / "downloads" / "haystack.zip"

        result = await Downloader().download(ARCHIVE_URL, destination)

        assert result == destination
        assert destination.read_bytes() == b"archive-bytes"

    async def test_redirect_discards_partial_file_and_follows(
        self, httpx_mock, tmp_path
    ):
        httpx_mock.add_response(
            method="GET",
            url=ARCHIVE_URL,
            status_code=302,
            headers={"Location": MIRROR_URL},
            content=b"redirect body",
        )
        httpx_mock.add_response(method="GET", url=MIRROR_URL, content=b"real archive")
        destination = tmp_path / "haystack.zip"

        await Downloader().download(ARCHIVE_URL, destination)

        requested = [str(request.url) for request in httpx_mock.get_requests()]
        assert requested == [ARCHIVE_URL, MIRROR_URL]
        assert destination.read_bytes() == b"real archive"

    async def test_redirect_removes_destination_before_next_hop(
        self, httpx_mock, tmp_path
    ):
        destination = tmp_path / "haystack.zip"
        destination.write_bytes(b"stale partial download")
        seen_on_mirror = []

        def mirror(request):
            seen_on_mirror.append(destination.exists())
            return httpx.Response(200, content=b"real archive")

        httpx_mock.add_response(
            method="GET",
            url=ARCHIVE_URL,
            status_code=302,
            headers={"Location": MIRROR_URL},
        )
        httpx_mock.add_callback(mirror, method="GET", url=MIRROR_URL)

        await Downloader().download(ARCHIVE_URL, destination)

        assert seen_on_mirror == [False]
        assert destination.read_bytes() == b"real archive"

    async def test_relative_redirect_is_resolved(self, httpx_mock, tmp_path):
        httpx_mock.add_response(
            method="GET",
            url=ARCHIVE_URL,
            status_code=301,
            headers={"Location": "/mirror/haystack.zip"},
        )
        httpx_mock.add_response(
            method="GET",
            url="https://primary.example.com/mirror/haystack.zip",
            content=b"moved",
        )
        destination = tmp_path / "haystack.zip"

        await Downloader().download(ARCHIVE_URL, destination)

        assert destination.read_bytes() == b"moved"

    async def test_http_error_removes_partial_file(self, httpx_mock, tmp_path):
        httpx_mock.add_response(method="GET", url=ARCHIVE_URL, status_code=404)
        destination = tmp_path / "haystack.zip"
        destination.write_bytes(b"stale")

        with pytest.raises(DownloadError) as exc_info:
            await Downloader().download(ARCHIVE_URL, destination)

        assert exc_info.value.status_code == 404
        assert not destination.exists()

    async def test_network_error_removes_partial_file(self, httpx_mock, tmp_path):
        httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=ARCHIVE_URL)
        destination = tmp_path / "haystack.zip"

        with pytest.raises(DownloadError) as exc_info:
            await Downloader().download(ARCHIVE_URL, destination)

        assert not isinstance(exc_info.value, TooManyRedirectsError)
        assert exc_info.value.status_code is None
        assert not destination.exists()

    async def test_redirect_limit(self, httpx_mock, tmp_path):
        urls = [f"https://hop{i}.example.com/haystack.zip" for i in range(MAX_REDIRECTS + 2)]
        for current, following in zip(urls[: MAX_REDIRECTS + 1], urls[1:]):
            httpx_mock.add_response(
                method="GET",
                url=current,
                status_code=302,
                headers={"Location": following},
            )
        destination = tmp_path / "haystack.zip"

        with pytest.raises(TooManyRedirectsError):
            await Downloader().download(urls[0], destination)

        assert len(httpx_mock.get_requests()) == MAX_REDIRECTS + 1
        assert not destination.exists()

    async def test_progress_callback(self, httpx_mock, tmp_path):
        payload = b"x" * 1000
        httpx_mock.add_response(method="GET", url=ARCHIVE_URL, content=payload)
        progress = []

        downloader = Downloader(
            chunk_size=256, progress_callback=lambda done, total: progress.append(done)
        )
        await downloader.download(ARCHIVE_URL, tmp_path / "haystack.zip")

        assert progress
        assert progress[-1] == len(payload)

    async def test_failing_progress_callback_does_not_abort(self, httpx_mock, tmp_path):
        httpx_mock.add_response(method="GET", url=ARCHIVE_URL, content=b"payload")

        def broken(done, total):
            raise RuntimeError("display closed")

        destination = tmp_path / "haystack.zip"
        await Downloader(progress_callback=broken).download(ARCHIVE_URL, destination)

        assert destination.read_bytes() == b"payload"

    async def test_unwritable_download_directory(self, tmp_path):
        blocker = tmp_path / "downloads"
        blocker.write_bytes(b"not a directory")

        with pytest.raises(DownloadError, match="Could not create download directory"):
            await Downloader().download(ARCHIVE_URL, blocker / "haystack.zip")
