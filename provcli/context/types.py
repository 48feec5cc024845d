"""Types for build-context resolution.

ContextSource is the closed set of places a build context can come from.
Resolution produces either a BuildContextDescriptor (a directory still to be
validated and packaged) or an ArchiveContext (a stream that already is the
archive).
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from provcli.errors import SourceResolutionError
from provcli.streams import ArchiveStream

logger = logging.getLogger(__name__)

# Filename read by `prov engine build` when -f/--file is not given
DEFAULT_ENGINEFILE_NAME = "Enginefile"


@dataclass(frozen=True)
class LocalDirectory:
    """A directory on the local filesystem.

    enginefile, when set, is interpreted relative to the current working
    directory rather than the context directory.
    """

    path: str
    enginefile: Optional[str] = None


@dataclass(frozen=True)
class GitRepository:
    """A git URL, optionally with a `#ref:subdir` fragment."""

    url: str


@dataclass(frozen=True)
class RemoteResource:
    """An http(s) URL serving either an Enginefile or a tar archive."""

    url: str


@dataclass(frozen=True)
class InlineStream:
    """A raw byte stream, usually stdin."""

    stream: BinaryIO


ContextSource = Union[LocalDirectory, GitRepository, RemoteResource, InlineStream]


@dataclass(frozen=True)
class BuildContextDescriptor:
    """An absolute context directory and the Enginefile's path inside it.

    relative_enginefile always uses forward slashes and never starts with a
    parent-directory segment. temporary_root is set when the directory was
    synthesized for this build (e.g. a git clone) and must be removed once
    the archive made from it is closed.
    """

    context_dir: Path
    relative_enginefile: str
    temporary_root: Optional[Path] = None

    def __post_init__(self) -> None:
        rel = self.relative_enginefile
        if rel == ".." or rel.startswith("../") or Path(rel).is_absolute():
            raise SourceResolutionError(
                f"The Enginefile ({rel}) must be within the build context "
                f"({self.context_dir})"
            )

    def cleanup(self) -> None:
        """Remove the temporary root, if this context owns one."""
        if self.temporary_root is None:
            return
        logger.debug("Removing temporary context %s", self.temporary_root)
        shutil.rmtree(self.temporary_root, ignore_errors=True)


@dataclass
class ArchiveContext:
    """An already-packaged context and the Enginefile name inside it."""

    stream: ArchiveStream
    enginefile: str


ResolvedContext = Union[BuildContextDescriptor, ArchiveContext]
