"""Parse .provignore files into exclude patterns.

Each non-comment, non-blank line is one pattern. Patterns are trimmed,
cleaned (redundant separators and "." / ".." segments collapsed) and
converted to forward slashes. Order is preserved.
"""

import logging
import os
import posixpath
from pathlib import Path
from typing import IO, Optional, Union

from provcli.errors import IgnoreFileError

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".provignore"

_UTF8_BOM = b"\xef\xbb\xbf"


def read_ignore_patterns(reader: Optional[IO]) -> list[str]:
    """Read an ignore file and return its exclude patterns.

    Accepts a binary or text stream. A UTF-8 byte-order mark is stripped
    from the first line only. A line whose first non-blank character is "#"
    is a comment, and no returned pattern ever starts with "#" ("./#x"
    cleans to "#x" and is dropped too).
    """
    if reader is None:
        return []

    excludes: list[str] = []
    try:
        for line_number, raw in enumerate(reader):
            line = _decode(raw, first=line_number == 0)
            pattern = line.strip()
            if not pattern or pattern.startswith("#"):
                continue
            pattern = _clean(pattern)
            if pattern.startswith("#"):
                continue
            excludes.append(pattern)
    except (OSError, UnicodeDecodeError) as exc:
        raise IgnoreFileError(f"Error reading {IGNORE_FILE_NAME}: {exc}") from exc

    return excludes


def load_ignore_patterns(context_dir: Union[str, Path]) -> list[str]:
    """Read <context_dir>/.provignore; a missing file means no excludes."""
    path = Path(context_dir) / IGNORE_FILE_NAME
    try:
        f = open(path, "rb")
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise IgnoreFileError(f"Error reading {IGNORE_FILE_NAME}: {exc}") from exc

    with f:
        excludes = read_ignore_patterns(f)
    logger.debug("Loaded %d exclude patterns from %s", len(excludes), path)
    return excludes


def _decode(raw: Union[bytes, str], first: bool) -> str:
    if isinstance(raw, bytes):
        if first and raw.startswith(_UTF8_BOM):
            raw = raw[len(_UTF8_BOM):]
        line = raw.decode("utf-8")
    else:
        line = raw
        if first and line.startswith("\ufeff"):
            line = line[1:]
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


def _clean(pattern: str) -> str:
    cleaned = os.path.normpath(pattern)
    if os.sep != "/":
        cleaned = cleaned.replace(os.sep, "/")
    cleaned = posixpath.normpath(cleaned)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned
