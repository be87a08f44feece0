"""Streaming archive downloader with bounded manual redirect handling."""

import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urljoin

import httpx

from .exceptions import DownloadError, TooManyRedirectsError

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
CHUNK_SIZE = 64 * 1024


class Downloader:
    """Fetches a URL into a local file.

    Redirects are followed by hand so that the partially written destination
    can be discarded before the next hop, and so the hop count is bounded.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_redirects: int = MAX_REDIRECTS,
        chunk_size: int = CHUNK_SIZE,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize downloader.

        Args:
            client: Shared HTTP client; a private one is created per download if omitted
            max_redirects: Maximum number of redirect hops to follow
            chunk_size: Streaming chunk size in bytes
            progress_callback: Called with (downloaded_bytes, total_bytes); total is 0 when unknown
        """
        self._client = client
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size
        self.progress_callback = progress_callback

    @staticmethod
    def _build_client() -> httpx.AsyncClient:
        timeouts = httpx.Timeout(
            connect=10.0,  # 10s connect timeout
            read=60.0,  # 60s between chunks
            write=10.0,
            pool=5.0,
        )
        return httpx.AsyncClient(timeout=timeouts, follow_redirects=False)

    async def download(self, url: str, destination: Path) -> Path:
        """Download ``url`` to ``destination``.

        Returns:
            The destination path

        Raises:
            TooManyRedirectsError: If more than ``max_redirects`` hops are needed
            DownloadError: On non-2xx responses, network errors, or I/O errors
        """
        destination = Path(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(
                f"Could not create download directory {destination.parent}", str(e)
            ) from e

        if self._client is not None:
            return await self._download(self._client, url, destination, hops=0)

        async with self._build_client() as client:
            return await self._download(client, url, destination, hops=0)

    async def _download(
        self, client: httpx.AsyncClient, url: str, destination: Path, hops: int
    ) -> Path:
        logger.debug(f"Downloading {url} -> {destination}")
        redirect_to: Optional[str] = None
        completed = False
        downloaded = 0

        try:
            async with client.stream("GET", url) as response:
                if 300 <= response.status_code < 400 and "location" in response.headers:
                    redirect_to = urljoin(str(response.url), response.headers["location"])
                elif not response.is_success:
                    raise DownloadError(
                        f"Download failed for {url}",
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                else:
                    total = int(response.headers.get("content-length") or 0)
                    with open(destination, "wb") as f:
                        async for chunk in response.aiter_bytes(self.chunk_size):
                            f.write(chunk)
                            downloaded += len(chunk)
                            self._report_progress(downloaded, total)
            completed = True
        except DownloadError:
            raise
        except httpx.HTTPError as e:
            raise DownloadError(f"Download failed for {url}", str(e)) from e
        except OSError as e:
            raise DownloadError(f"Could not write {destination}", str(e)) from e
        finally:
            if not completed or redirect_to is not None:
                _remove_partial(destination)

        if redirect_to is None:
            logger.info(f"Downloaded {url} ({downloaded} bytes)")
            return destination

        if hops >= self.max_redirects:
            raise TooManyRedirectsError(
                f"Too many redirects while downloading {url}",
                f"limit is {self.max_redirects}",
            )

        logger.debug(f"Following redirect {hops + 1} to {redirect_to}")
        return await self._download(client, redirect_to, destination, hops + 1)

    def _report_progress(self, downloaded: int, total: int) -> None:
        if not self.progress_callback:
            return
        try:
            self.progress_callback(downloaded, total)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial download {path}: {e}")
