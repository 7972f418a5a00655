# client.py
"""HTTP client for the update server: catalog retrieval and streamed archive downloads."""

import asyncio
import os
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
from loguru import logger

from .catalog import Catalog
from .codec import decode_catalog
from .context import CancellationToken
from .progress import ProgressSink
from .types import CatalogDecodeError, OperationCancelled, PathLike
from .utils import calculate_file_hash, hashes_match

CATALOG_NAME = "catalog.json"
DEFAULT_CHUNK_SIZE = 8192  # 8 KB


class UpdateClient:
    """
    Client for checking updates and fetching releases from a base URL.

    The client never retries; a failed request is reported once and the
    caller decides what to do. It owns its ``aiohttp.ClientSession`` unless one
    is injected.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        user_agent: str = "UpdateClient/1.0",
    ):
        """
        Initialize the update client.

        Args:
            base_url: The base URL of the update server.
            session: Optional pre-configured session (the caller keeps ownership).
            chunk_size: Size of the chunks read from the response body.
            user_agent: Value of the User-Agent header.
        """
        self.base_url = base_url.rstrip("/")
        self.chunk_size = chunk_size
        self._user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "UpdateClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    def url_for(self, relative_path: str) -> str:
        """Join a server-relative path onto the base URL."""
        return f"{self.base_url}/{relative_path.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self._user_agent},
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=60),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def fetch_catalog(self, cancel: Optional[CancellationToken] = None) -> Optional[Catalog]:
        """
        Fetch and decode ``catalog.json``.

        Returns:
            The catalog, or None on any network, HTTP or decoding failure and
            when cancellation was requested before the request went out.
        """
        if cancel is not None and cancel.cancelled:
            logger.info("Catalog fetch skipped: operation cancelled")
            return None
        url = self.url_for(CATALOG_NAME)
        try:
            async with self._get_session().get(url) as response:
                if response.status >= 400:
                    logger.error(
                        f"Failed to fetch catalog. Status Code: {response.status}, "
                        f"Reason: {response.reason}"
                    )
                    return None
                payload = await response.read()
            catalog = decode_catalog(payload)
            logger.info(f"Fetched catalog with {len(catalog.branches)} branch(es) from {url}")
            return catalog
        except CatalogDecodeError as e:
            logger.error(f"Catalog from {url} is invalid: {e}")
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching catalog from {url}: {e}")
            return None

    async def _probe_size(self, url: str) -> Optional[int]:
        async with self._get_session().head(url, allow_redirects=True) as response:
            if response.status >= 400 or response.content_length is None:
                logger.error(
                    f"Failed to retrieve file size. Status Code: {response.status}, "
                    f"Reason: {response.reason}"
                )
                return None
            return response.content_length

    async def download_archive(
        self,
        relative_path: str,
        dest_path: PathLike,
        progress: ProgressSink,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """
        Stream a release archive to ``dest_path``.

        The body is written to ``<dest>.part`` and only renamed onto
        ``dest_path`` once every byte announced by the HEAD probe has arrived.
        Any other exit removes both files.

        Args:
            relative_path: Server-relative archive path (``releasePath``).
            dest_path: Final location of the archive.
            progress: Progress surface; the percentage is only pushed when it grows.
            cancel: Cancellation token observed once per chunk.

        Returns:
            bool: True if the archive was downloaded completely.
        """
        url = self.url_for(relative_path)
        destination = Path(dest_path)
        part_path = destination.with_name(destination.name + ".part")
        progress.set_marquee(False)

        completed = False
        try:
            total_bytes = await self._probe_size(url)
            if total_bytes is None:
                return False

            async with self._get_session().get(url) as response:
                if response.status >= 400:
                    logger.error(
                        f"Failed to download archive. Status Code: {response.status}, "
                        f"Reason: {response.reason}"
                    )
                    return False

                destination.parent.mkdir(parents=True, exist_ok=True)
                total_read = 0
                last_reported = 0
                async with aiofiles.open(part_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        if cancel is not None:
                            cancel.raise_if_cancelled()
                        await f.write(chunk)
                        total_read += len(chunk)

                        percent = int(total_read * 100 / total_bytes) if total_bytes else 100
                        if percent > last_reported:
                            last_reported = percent
                            progress.set_percent(percent)
                            progress.line3 = f"{total_read // 1024:,} KB / {total_bytes // 1024:,} KB"

            if total_read != total_bytes:
                logger.error(f"Incomplete download from {url}: {total_read} of {total_bytes} bytes")
                return False

            os.replace(part_path, destination)
            completed = True
            logger.info(f"Successfully downloaded archive from {relative_path} to {destination}")
            return True
        except OperationCancelled:
            logger.info("Download was canceled by the user.")
            return False
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Error downloading archive from {relative_path}: {e}")
            return False
        finally:
            if not completed:
                part_path.unlink(missing_ok=True)
                destination.unlink(missing_ok=True)

    async def verify_archive(self, archive_path: PathLike, expected_hash: str) -> bool:
        """
        Compare the SHA-256 of a downloaded archive with the catalog's ``releaseHash``.

        Returns:
            bool: True if the hashes match.
        """
        calculated_hash = await asyncio.to_thread(calculate_file_hash, Path(archive_path))
        if not hashes_match(calculated_hash, expected_hash):
            logger.error(
                f"Archive hash mismatch for {archive_path}. "
                f"Expected: {expected_hash}, Got: {calculated_hash}"
            )
            return False
        return True
