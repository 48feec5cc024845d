"""HTTP client for the Providence server API.

Hosts are given as `<proto>://<addr>[/<base path>]` where proto is one of
tcp, http, https or unix. Every request path is prefixed with the base path
and the API version: `<base>/v<version><path>`.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Mapping, Optional
from urllib.parse import urlparse

import httpx

from provcli import __version__
from provcli.core.config import DEFAULT_API_VERSION, DEFAULT_HOST, ClientConfig
from provcli.errors import ConfigurationError, ResponseError, UploadError
from provcli.streams import iter_file

logger = logging.getLogger(__name__)

USER_AGENT = f"Providence-Client/{__version__}"

# Upload chunk size for the build context body
UPLOAD_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class EngineBuildOptions:
    """Query options for an engine build."""

    enginefile: str


class EngineBuildResponse:
    """A streamed build response; lines are read as they arrive."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    def iter_lines(self) -> Iterator[str]:
        """Yield response lines; a dropped connection raises ResponseError."""
        try:
            yield from self._response.iter_lines()
        except httpx.TransportError as exc:
            raise ResponseError(f"error reading response: {exc}") from exc


def parse_host(host: str) -> tuple[str, str, str]:
    """Split a host string into (proto, addr, base path)."""
    proto, sep, addr = host.partition("://")
    if not sep:
        raise ConfigurationError(f"unable to parse providence host `{host}`")

    base_path = ""
    if proto in ("tcp", "http", "https"):
        parsed = urlparse(f"{proto}://{addr}")
        addr = parsed.netloc
        base_path = parsed.path.rstrip("/")
    if not addr:
        raise ConfigurationError(f"unable to parse providence host `{host}`")
    return proto, addr, base_path


class APIClient:
    """Talks to a Providence server.

    transport is mostly useful in tests (httpx.MockTransport); by default a
    TCP transport is used, or a Unix socket transport for unix:// hosts.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        version: str = DEFAULT_API_VERSION,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[Mapping[str, str]] = None,
        connect_timeout: float = 30.0,
    ):
        self.host = host
        self.version = version
        self.proto, self.addr, self.base_path = parse_host(host)

        if self.proto == "unix":
            if transport is None:
                transport = httpx.HTTPTransport(uds=self.addr)
            base_url = "http://localhost"
        else:
            scheme = "https" if self.proto == "https" else "http"
            base_url = f"{scheme}://{self.addr}"

        self._http = httpx.Client(
            base_url=base_url,
            transport=transport,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
            # builds stream output for as long as they run
            timeout=httpx.Timeout(None, connect=connect_timeout),
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "APIClient":
        return cls(
            config.host,
            config.api_version,
            transport=transport,
            connect_timeout=config.connect_timeout,
        )

    def __enter__(self) -> "APIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def api_path(self, path: str) -> str:
        """Return the versioned request path for path."""
        if self.version:
            return f"{self.base_path}/v{self.version.lstrip('v')}{path}"
        return f"{self.base_path}{path}"

    @contextmanager
    def engine_build(
        self,
        build_context: BinaryIO,
        options: EngineBuildOptions,
    ) -> Iterator[EngineBuildResponse]:
        """POST a build context and yield the streamed response.

        The context is sent with chunked transfer encoding, read from
        build_context only as fast as the connection accepts it. The caller
        still owns build_context and must close it.
        """
        headers = {"Content-Type": "application/tar"}
        params = {"enginefile": options.enginefile}
        path = self.api_path("/engine")

        logger.debug("POST %s enginefile=%s", path, options.enginefile)
        request = self._http.build_request(
            "POST",
            path,
            params=params,
            headers=headers,
            content=iter_file(build_context, UPLOAD_CHUNK_SIZE),
        )
        # only failures before a response arrives are upload errors
        try:
            response = self._http.send(request, stream=True)
        except httpx.TransportError as exc:
            logger.debug("Transport error talking to %s: %s", self.host, exc)
            raise UploadError(
                f"Cannot connect to the Providence server at {self.host}."
            ) from exc

        try:
            if response.status_code >= 400:
                try:
                    response.read()
                except httpx.TransportError as exc:
                    raise UploadError(
                        f"Error response from server: {response.status_code} {response.reason_phrase}"
                    ) from exc
                raise UploadError(
                    f"Error response from server: {_error_message(response)}"
                )
            yield EngineBuildResponse(response)
        finally:
            response.close()


def _error_message(response: httpx.Response) -> str:
    """Extract the server's error text from a failed response."""
    text = response.text.strip()
    try:
        body = json.loads(text)
    except ValueError:
        return text or f"{response.status_code} {response.reason_phrase}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return text
