"""Read-once byte streams with an attached cleanup action.

An ArchiveStream is pulled by whoever consumes it (normally the HTTP
request body), so the producer never runs ahead of the network. Its
on_close callback is what removes temporary context directories. It runs
exactly once, as soon as the stream is exhausted or closed, no matter how
it ends: fully read, abandoned half-way, closed twice or garbage collected.
"""

import io
import logging
from itertools import chain
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

# Read size used when pulling from file objects
CHUNK_SIZE = 32 * 1024


class ArchiveStream(io.RawIOBase):
    """A readable raw stream over an iterator of byte chunks."""

    def __init__(
        self,
        chunks: Iterable[bytes],
        on_close: Optional[Callable[[], None]] = None,
    ):
        super().__init__()
        self._chunks: Iterator[bytes] = iter(chunks)
        self._pending = memoryview(b"")
        self._on_close = on_close

    @classmethod
    def from_file(
        cls,
        fileobj: BinaryIO,
        on_close: Optional[Callable[[], None]] = None,
        prefix: bytes = b"",
    ) -> "ArchiveStream":
        """Wrap a binary file object; closing the stream closes the file.

        prefix is replayed before the file's remaining content, which is how
        a peeked header is put back.
        """

        def _close() -> None:
            try:
                fileobj.close()
            finally:
                if on_close is not None:
                    on_close()

        chunks = chain([prefix] if prefix else [], iter_file(fileobj))
        return cls(chunks, on_close=_close)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        while not self._pending:
            chunk = next(self._chunks, None)
            if chunk is None:
                self._release()
                return 0
            self._pending = memoryview(chunk)
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            close_chunks = getattr(self._chunks, "close", None)
            if close_chunks is not None:
                close_chunks()
        finally:
            super().close()
            self._release()

    def _release(self) -> None:
        callback, self._on_close = self._on_close, None
        if callback is not None:
            callback()


def iter_file(fileobj: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a binary file's content in chunks until EOF."""
    while True:
        chunk = fileobj.read(chunk_size)
        if not chunk:
            return
        yield chunk


def peek_header(stream: BinaryIO, size: int) -> tuple[bytes, ArchiveStream]:
    """Read up to `size` leading bytes without losing them.

    Returns the header and a stream that yields the header again followed
    by the rest of the input. Fewer than `size` bytes are returned only when
    the input is shorter than that.
    """
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        data = stream.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    header = b"".join(parts)
    return header, ArchiveStream.from_file(stream, prefix=header)
