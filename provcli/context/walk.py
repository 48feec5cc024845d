"""Walk a context directory, applying exclude patterns.

Both the validator and the archive packager iterate the context through
walk_context(), so a file is validated if and only if it is archived.
"""

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from provcli.context.patterns import PatternMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextEntry:
    """One file, directory or special file that belongs in the context.

    rel_path is relative to the context root and uses forward slashes.
    """

    rel_path: str
    path: Path
    stat: os.stat_result

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.stat.st_mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.stat.st_mode)

    @property
    def is_fifo(self) -> bool:
        return stat.S_ISFIFO(self.stat.st_mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.stat.st_mode)


def walk_context(
    root: Path,
    matcher: PatternMatcher,
    includes: Sequence[str] = (".",),
) -> Iterator[ContextEntry]:
    """Yield the non-excluded entries under root in lexical order.

    Symlinks are reported, never followed. An excluded directory's subtree
    is skipped unless the matcher has exception patterns, in which case
    entries inside it may still be re-included. Entries that disappear
    during the walk are skipped; any other OSError propagates.
    """
    seen: set[str] = set()
    for include in includes:
        include_rel = _normalise_rel(include)
        start = root if include_rel == "." else root / include_rel
        try:
            start_stat = os.lstat(start)
        except FileNotFoundError:
            logger.debug("Include %s does not exist, skipping", include)
            continue

        if include_rel != ".":
            if include_rel not in seen:
                seen.add(include_rel)
                yield ContextEntry(include_rel, start, start_stat)
            if not stat.S_ISDIR(start_stat.st_mode):
                continue

        yield from _walk_dir(start, include_rel, matcher, seen)


def _walk_dir(
    directory: Path,
    rel_dir: str,
    matcher: PatternMatcher,
    seen: set[str],
) -> Iterator[ContextEntry]:
    try:
        names = sorted(os.listdir(directory))
    except FileNotFoundError:
        return

    for name in names:
        path = directory / name
        rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            continue

        is_dir = stat.S_ISDIR(st.st_mode)
        if matcher.matches(rel_path):
            if is_dir and matcher.has_exceptions:
                yield from _walk_dir(path, rel_path, matcher, seen)
            continue

        if rel_path not in seen:
            seen.add(rel_path)
            yield ContextEntry(rel_path, path, st)
        if is_dir:
            yield from _walk_dir(path, rel_path, matcher, seen)


def _normalise_rel(path: str) -> str:
    rel = os.path.normpath(path).replace(os.sep, "/")
    return rel.lstrip("/") or "."
