"""Download remote build contexts over HTTP."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from provcli.errors import SourceResolutionError
from provcli.streams import ArchiveStream

logger = logging.getLogger(__name__)

# Connection timeout for context downloads; reads may take as long as needed
DOWNLOAD_CONNECT_TIMEOUT = 30.0


@dataclass
class Download:
    """An open response body and its advertised length, if any."""

    body: ArchiveStream
    content_length: Optional[int] = None


class Downloader(Protocol):
    """Anything that can open a URL as a byte stream."""

    def download(self, url: str) -> Download:
        ...  # noqa: PLR6301


class HttpDownloader:
    """Stream a URL with httpx.

    The returned body owns the HTTP connection; closing it releases the
    connection and the client.
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        self._transport = transport

    def download(self, url: str) -> Download:
        client = httpx.Client(
            transport=self._transport,
            follow_redirects=True,
            timeout=httpx.Timeout(None, connect=DOWNLOAD_CONNECT_TIMEOUT),
        )
        try:
            response = client.send(client.build_request("GET", url), stream=True)
        except httpx.HTTPError:
            client.close()
            raise

        if response.status_code >= 400:
            response.close()
            client.close()
            raise SourceResolutionError(
                f"Got HTTP status code >= 400: {response.status_code} {response.reason_phrase}"
            )

        length = response.headers.get("Content-Length")
        logger.debug("Downloading %s (%s bytes)", url, length or "unknown")

        def _close() -> None:
            try:
                response.close()
            finally:
                client.close()

        return Download(
            body=ArchiveStream(response.iter_bytes(), on_close=_close),
            content_length=int(length) if length and length.isdigit() else None,
        )
