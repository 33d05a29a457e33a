"""Fetch source files from local disk, an IPFS gateway or a plain HTTP URL.

Network content is streamed into a staging file in the system temp
directory. The staging file is only created once the server has answered
with a success status, and it is removed again if writing fails, so a
returned :class:`FetchResult` always points at a complete file.
"""

from __future__ import annotations

import os
import posixpath
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse

import httpx

from ab2.exceptions import FetchError, UnsupportedProtocolError
from ab2.logging_config import get_logger
from ab2.settings import Settings

logger = get_logger("fetch")

LOCAL = "local"
IPFS = "ipfs"
HTTP = "http"
PROTOCOLS = (LOCAL, IPFS, HTTP)


@dataclass(frozen=True)
class FetchTarget:
    protocol: str
    path: str
    filetype: str = "csv"


@dataclass
class FetchResult:
    key: str
    local_path: Path
    temporary: bool = False

    def cleanup(self) -> None:
        """Remove the staging file, if this result owns one."""
        if not self.temporary:
            return
        try:
            self.local_path.unlink()
        except FileNotFoundError:
            pass
        else:
            logger.debug("Removed staging file {}", self.local_path)


def resolve_proxy(value: str | None) -> str | None:
    """Return the proxy URL to use, or None when the value is not an HTTP URL."""
    if value and value.startswith("http"):
        return value
    return None


def _staging_suffix(filename: str) -> str:
    # IPFS paths may contain slashes; only the last segment goes into the temp name
    name = posixpath.basename(filename.rstrip("/")) or "download"
    return f"-{name}"


def _build_request(method: str, url: str, **kwargs) -> httpx.Request:
    try:
        return httpx.Request(method, url, **kwargs)
    except (ValueError, httpx.InvalidURL) as exc:
        raise FetchError(f"Invalid URL {url}: {exc}", {"url": url}) from exc


class Fetcher:
    def __init__(
        self,
        settings: Settings,
        *,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ) -> None:
        self.settings = settings
        self.client_factory = client_factory

    def check(self, target: FetchTarget) -> None:
        """Reject targets whose protocol this fetcher cannot serve."""
        if target.protocol not in PROTOCOLS:
            raise UnsupportedProtocolError(
                "Not implemented",
                {"protocol": target.protocol, "supported": ", ".join(PROTOCOLS)},
            )

    def fetch(self, target: FetchTarget) -> FetchResult:
        self.check(target)
        if target.protocol == LOCAL:
            return self._from_local(target)
        if target.protocol == IPFS:
            return self._from_ipfs(target)
        return self._from_http(target)

    def _from_local(self, target: FetchTarget) -> FetchResult:
        path = Path(target.path)
        if not path.is_file():
            raise FetchError(f"Local file not found: {path}", {"path": str(path)})
        return FetchResult(key=path.name, local_path=path)

    def _from_ipfs(self, target: FetchTarget) -> FetchResult:
        gateway = self.settings.require("ipfs_gateway")
        key = f"{target.path}.{target.filetype}"
        request = _build_request("POST", gateway, params={"arg": target.path})
        with self.client_factory() as client:
            local_path = self._stream_to_temp(client, request, key)
        return FetchResult(key=key, local_path=local_path, temporary=True)

    def _from_http(self, target: FetchTarget) -> FetchResult:
        try:
            parsed = urlparse(target.path)
        except ValueError as exc:
            raise FetchError(f"Invalid URL {target.path}: {exc}", {"url": target.path}) from exc
        name = posixpath.basename(parsed.path.rstrip("/")) or parsed.netloc
        key = f"{name}.{target.filetype}"
        request = _build_request("GET", target.path)

        # like HTTPS_PROXY, the proxy only covers https:// sources
        proxy = resolve_proxy(self.settings.https_proxy) if parsed.scheme == "https" else None
        if proxy:
            logger.info("Fetching {} through proxy {}", target.path, proxy)
        with self.client_factory(proxy=proxy) as client:
            local_path = self._stream_to_temp(client, request, key)
        return FetchResult(key=key, local_path=local_path, temporary=True)

    def _stream_to_temp(self, client: httpx.Client, request: httpx.Request, filename: str) -> Path:
        source = str(request.url)
        logger.debug("{} {}", request.method, source)
        try:
            response = client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise FetchError(f"Request to {source} failed: {exc}", {"url": source}) from exc

        try:
            logger.debug("Response from {}: {} {}", source, response.status_code, response.reason_phrase)
            if not response.is_success:
                raise FetchError(
                    f"Error fetching {source} with status code {response.status_code}",
                    {"url": source, "status_code": str(response.status_code)},
                )
            return self._write_body(response, filename, source)
        finally:
            response.close()

    def _write_body(self, response: httpx.Response, filename: str, source: str) -> Path:
        try:
            fd, name = tempfile.mkstemp(suffix=_staging_suffix(filename))
        except OSError as exc:
            raise FetchError(f"Cannot create staging file for {filename}: {exc}", {"url": source}) from exc

        staging = Path(name)
        try:
            with os.fdopen(fd, "wb") as out:
                for chunk in response.iter_bytes():
                    out.write(chunk)
        except (OSError, httpx.HTTPError) as exc:
            staging.unlink(missing_ok=True)
            raise FetchError(
                f"Writing {source} to {staging} failed: {exc}",
                {"url": source, "path": str(staging)},
            ) from exc

        logger.info("Downloaded {} to {}", source, staging)
        return staging


__all__ = [
    "FetchTarget",
    "FetchResult",
    "Fetcher",
    "resolve_proxy",
    "PROTOCOLS",
    "LOCAL",
    "IPFS",
    "HTTP",
]
