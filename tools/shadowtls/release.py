"""Locate and download shadow-tls release binaries from GitHub.

Lookup order:
1. Map the host CPU to a release artifact (x86_64 / aarch64 only)
2. Ask the GitHub API for the latest release tag
3. Download shadow-tls-<artifact> for that tag and mark it executable

Network calls use aiohttp with a bounded timeout and are retried with
exponential backoff before failing.
"""

import asyncio
import logging
import os
import stat
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import aiohttp

from errors import DownloadError, NetworkError, UnsupportedPlatformError
from settings import Settings

logger = logging.getLogger(__name__)

USER_AGENT = "shadowtls-installer"

ARTIFACTS = {
    "x86_64": "x86_64-unknown-linux-musl",
    "aarch64": "aarch64-unknown-linux-musl",
}


@dataclass
class ReleaseInfo:
    version_tag: str
    architecture_artifact_name: str
    download_url: str


class _HTTPStatusError(Exception):
    def __init__(self, url: str, status: int):
        super().__init__(f"HTTP {status} for {url}")
        self.status = status


def resolve_artifact(machine: str) -> str:
    """Map `uname -m` output to the release artifact suffix."""
    try:
        return ARTIFACTS[machine]
    except KeyError:
        raise UnsupportedPlatformError(
            f"Unsupported architecture: {machine}",
        ) from None


async def _fetch_json(url: str, timeout: float) -> object:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }
    async with aiohttp.ClientSession(headers=headers) as session:
        async with session.get(
            url, timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if not 200 <= resp.status < 300:
                raise _HTTPStatusError(url, resp.status)
            return await resp.json(content_type=None)


async def _fetch_to_file(url: str, path: Path, timeout: float) -> int:
    """Stream `url` into `path`, return bytes written.

    `timeout` bounds connecting and each read, not the whole transfer.
    """
    written = 0
    client_timeout = aiohttp.ClientTimeout(
        total=None, sock_connect=timeout, sock_read=timeout,
    )
    async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
        async with session.get(url, timeout=client_timeout) as resp:
            if not 200 <= resp.status < 300:
                raise _HTTPStatusError(url, resp.status)
            with open(path, "wb") as f:
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    f.write(chunk)
                    written += len(chunk)
    return written


class ReleaseLocator:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _with_retries(self, fn: Callable, what: str, error_cls=NetworkError):
        attempts = max(1, self.settings.retries)
        delay = self.settings.retry_backoff
        last_error = None

        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except (aiohttp.ClientError, asyncio.TimeoutError, _HTTPStatusError) as e:
                last_error = "timeout" if isinstance(e, asyncio.TimeoutError) else str(e)
                logger.warning(
                    "%s failed (attempt %d/%d): %s", what, attempt, attempts, last_error,
                )
                if attempt < attempts:
                    time.sleep(delay)
                    delay *= 2

        raise error_cls(f"{what} failed after {attempts} attempts: {last_error}")

    def latest_version(self) -> str:
        """Return the latest release tag; an empty or missing tag is fatal."""
        url = self.settings.latest_release_api
        try:
            body = self._with_retries(
                lambda: asyncio.run(_fetch_json(url, self.settings.http_timeout)),
                "Latest release lookup",
            )
        except ValueError as e:
            raise NetworkError(f"Release API returned invalid JSON: {e}") from e

        tag = body.get("tag_name") if isinstance(body, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise NetworkError("Failed to get the latest version: no tag_name in response")
        return tag.strip()

    def download_url(self, version: str, artifact: str) -> str:
        if not version:
            raise NetworkError("Refusing to build a download URL without a version")
        return (
            f"{self.settings.release_download_base}/{version}/"
            f"{self.settings.binary_name}-{artifact}"
        )

    def locate(self, machine: str) -> ReleaseInfo:
        artifact = resolve_artifact(machine)
        version = self.latest_version()
        return ReleaseInfo(
            version_tag=version,
            architecture_artifact_name=artifact,
            download_url=self.download_url(version, artifact),
        )

    def download(self, url: str, target: Path) -> Path:
        """Download `url` to `target` and make it executable."""
        target = Path(target)
        part = target.with_name(target.name + ".part")
        done = False

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            size = self._with_retries(
                lambda: asyncio.run(
                    _fetch_to_file(url, part, self.settings.http_timeout),
                ),
                f"Download of {url}",
                DownloadError,
            )
            # rename works even while the old binary is running
            os.replace(part, target)
            target.chmod(
                target.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
            )
            done = True
        except OSError as e:
            raise DownloadError(f"Cannot write {target}: {e}") from e
        finally:
            if not done:
                with suppress(OSError):
                    part.unlink(missing_ok=True)

        logger.info("Downloaded %s (%d bytes) to %s", url, size, target)
        return target
