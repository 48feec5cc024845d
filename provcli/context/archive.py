"""Streaming tar packaging of a build context.

tar_directory() returns an ArchiveStream backed by a generator: headers and
file contents are produced only as the consumer reads, so memory use is
bounded by one chunk regardless of context size. Exclusion goes through
walk_context(), the same walk the validator performs.

is_archive() decides whether a stream of unknown content is already an
archive (compressed, or a plain tar) by looking at its first HEADER_SIZE
bytes.
"""

import enum
import logging
import os
import stat
import tarfile
import zlib
from pathlib import Path
from typing import Callable, Generator, Iterator, Optional, Sequence, Union

from provcli.context.patterns import PatternMatcher
from provcli.context.walk import ContextEntry, walk_context
from provcli.errors import PackagingError
from provcli.streams import CHUNK_SIZE, ArchiveStream

logger = logging.getLogger(__name__)

# Bytes needed to recognise any supported archive
HEADER_SIZE = tarfile.BLOCKSIZE

_BLOCK = tarfile.BLOCKSIZE
_RECORD = tarfile.RECORDSIZE

_COMPRESSION_MAGIC: dict[str, bytes] = {
    "bzip2": b"BZh",
    "gzip": b"\x1f\x8b\x08",
    "xz": b"\xfd7zXZ\x00",
    "zstd": b"\x28\xb5\x2f\xfd",
}


class Compression(str, enum.Enum):
    NONE = "none"
    GZIP = "gzip"


def detect_compression(header: bytes) -> Optional[str]:
    """Return the compression format named by header's magic bytes."""
    for name, magic in _COMPRESSION_MAGIC.items():
        if header.startswith(magic):
            return name
    return None


def is_archive(header: bytes) -> bool:
    """Return True if header starts a compressed stream or a tar archive."""
    if detect_compression(header) is not None:
        return True
    if len(header) < HEADER_SIZE:
        return False
    try:
        tarfile.TarInfo.frombuf(header[:HEADER_SIZE], "utf-8", "surrogateescape")
    except tarfile.HeaderError:
        return False
    return True


def tar_directory(
    root: Union[str, Path],
    compression: Compression = Compression.NONE,
    exclude_patterns: Sequence[str] = (),
    include_files: Sequence[str] = (".",),
    on_close: Optional[Callable[[], None]] = None,
) -> ArchiveStream:
    """Package root into a read-once tar stream.

    Excluded paths are omitted entirely. on_close runs exactly once, when
    the returned stream is exhausted or closed, whichever comes first.
    Invalid patterns are reported immediately; read failures surface as
    PackagingError while the stream is being consumed.
    """
    root = Path(root)
    matcher = PatternMatcher(exclude_patterns)
    chunks = _tar_chunks(root, matcher, include_files)
    if compression == Compression.GZIP:
        chunks = _gzip_chunks(chunks)
    logger.debug(
        "Packaging %s (compression=%s, %d exclude patterns)",
        root, compression.value, len(matcher.patterns),
    )
    return ArchiveStream(chunks, on_close=on_close)


def _tar_chunks(
    root: Path,
    matcher: PatternMatcher,
    include_files: Sequence[str],
) -> Generator[bytes, None, None]:
    written = 0
    entries = 0
    try:
        for entry in walk_context(root, matcher, include_files):
            info = _tar_info(entry)
            if info is None:
                continue
            header = info.tobuf(tarfile.PAX_FORMAT, "utf-8", "surrogateescape")
            written += len(header)
            yield header
            if info.isreg():
                for chunk in _file_chunks(entry, info.size):
                    written += len(chunk)
                    yield chunk
            entries += 1
    except OSError as exc:
        raise PackagingError(f"Error packaging build context: {exc}") from exc

    # End-of-archive marker, then pad to a whole record like tarfile does
    trailer = 2 * _BLOCK
    remainder = (written + trailer) % _RECORD
    if remainder:
        trailer += _RECORD - remainder
    yield b"\0" * trailer
    logger.debug("Packaged %d entries from %s", entries, root)


def _tar_info(entry: ContextEntry) -> Optional[tarfile.TarInfo]:
    st = entry.stat
    mode = st.st_mode
    info = tarfile.TarInfo(entry.rel_path)
    info.mode = stat.S_IMODE(mode)
    info.mtime = int(st.st_mtime)
    info.uid = st.st_uid
    info.gid = st.st_gid

    if stat.S_ISREG(mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
    elif stat.S_ISDIR(mode):
        info.type = tarfile.DIRTYPE
    elif stat.S_ISLNK(mode):
        info.type = tarfile.SYMTYPE
        info.linkname = os.readlink(entry.path)
    elif stat.S_ISFIFO(mode):
        info.type = tarfile.FIFOTYPE
    elif stat.S_ISCHR(mode) or stat.S_ISBLK(mode):
        info.type = tarfile.CHRTYPE if stat.S_ISCHR(mode) else tarfile.BLKTYPE
        info.devmajor = os.major(st.st_rdev)
        info.devminor = os.minor(st.st_rdev)
    else:
        # sockets and doors have no tar representation
        logger.debug("Skipping unsupported file type: %s", entry.rel_path)
        return None
    return info


def _file_chunks(entry: ContextEntry, size: int) -> Iterator[bytes]:
    remaining = size
    with open(entry.path, "rb") as f:
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                raise PackagingError(f"File shrank while being archived: {entry.rel_path}")
            remaining -= len(chunk)
            yield chunk
        if f.read(1):
            raise PackagingError(f"File grew while being archived: {entry.rel_path}")

    padding = -size % _BLOCK
    if padding:
        yield b"\0" * padding


def _gzip_chunks(chunks: Generator[bytes, None, None]) -> Iterator[bytes]:
    # wbits=31 selects the gzip container
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, 31)
    try:
        for chunk in chunks:
            data = compressor.compress(chunk)
            if data:
                yield data
        yield compressor.flush()
    finally:
        chunks.close()
