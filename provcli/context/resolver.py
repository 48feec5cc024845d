"""Resolve a build-context source into something that can be uploaded.

Four kinds of source are supported:

  LocalDirectory  a directory on disk
  GitRepository   cloned into a temporary directory, then as LocalDirectory
  RemoteResource  downloaded, then as InlineStream
  InlineStream    an archive passed through as-is, or an Enginefile that is
                  wrapped into a one-file archive

Directory sources resolve to a BuildContextDescriptor: the absolute context
directory plus the Enginefile path relative to it, which must stay inside
the context. Stream sources resolve to an ArchiveContext.
"""

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path, PurePath
from typing import BinaryIO, Optional, Union, assert_never

import httpx

from provcli.client.progress import ProgressOutput, ProgressReader
from provcli.context.archive import HEADER_SIZE, Compression, is_archive, tar_directory
from provcli.context.types import (
    DEFAULT_ENGINEFILE_NAME,
    ArchiveContext,
    BuildContextDescriptor,
    ContextSource,
    GitRepository,
    InlineStream,
    LocalDirectory,
    RemoteResource,
    ResolvedContext,
)
from provcli.errors import GitNotFoundError, SourceResolutionError
from provcli.remote.download import Downloader, HttpDownloader
from provcli.remote.git import Cloner, GitCloner
from provcli.remote.urls import is_git_url, is_url
from provcli.streams import peek_header

logger = logging.getLogger(__name__)

STDIN_ARGUMENT = "-"


def parse_context_argument(arg: str, stdin: BinaryIO) -> ContextSource:
    """Turn the PATH | URL | - argument into a ContextSource."""
    if arg == STDIN_ARGUMENT:
        return InlineStream(stdin)
    if is_git_url(arg):
        return GitRepository(arg)
    if is_url(arg):
        return RemoteResource(arg)
    return LocalDirectory(arg)


def resolve_context(
    source: ContextSource,
    enginefile_name: Optional[str] = None,
    *,
    cloner: Optional[Cloner] = None,
    downloader: Optional[Downloader] = None,
    progress_output: Optional[ProgressOutput] = None,
) -> ResolvedContext:
    """Resolve any ContextSource.

    enginefile_name is the -f/--file value, if one was given. For a
    LocalDirectory it is relative to the working directory; for a git
    clone it is relative to the clone; for stream sources it names the
    Enginefile inside an archive.
    """
    match source:
        case LocalDirectory(path=path, enginefile=enginefile):
            return get_context_from_local_dir(path, enginefile or enginefile_name)
        case GitRepository(url=url):
            return get_context_from_git_url(url, enginefile_name, cloner or GitCloner())
        case RemoteResource(url=url):
            return get_context_from_url(
                url,
                enginefile_name,
                downloader or HttpDownloader(),
                progress_output,
            )
        case InlineStream(stream=stream):
            return get_context_from_reader(stream, enginefile_name)
        case _:
            assert_never(source)


def get_context_from_local_dir(
    local_dir: str,
    enginefile_name: Optional[str] = None,
) -> BuildContextDescriptor:
    """Use a local directory as the build context.

    An explicit Enginefile is made absolute against the current directory,
    not the context directory.
    """
    if not os.path.lexists(local_dir):
        raise SourceResolutionError(f'path "{local_dir}" not found')

    if enginefile_name:
        enginefile_name = os.path.abspath(enginefile_name)

    context_dir, rel_enginefile = get_enginefile_rel_path(local_dir, enginefile_name)
    return BuildContextDescriptor(context_dir, rel_enginefile)


def get_context_from_git_url(
    git_url: str,
    enginefile_name: Optional[str],
    cloner: Cloner,
) -> BuildContextDescriptor:
    """Clone a git repository and use it as the build context.

    The clone is removed again if the Enginefile cannot be resolved in it;
    otherwise the descriptor's temporary_root owns it.
    """
    try:
        cloned = cloner.clone(git_url)
    except GitNotFoundError:
        raise
    except (SourceResolutionError, OSError) as exc:
        raise SourceResolutionError(
            f"unable to 'git clone' to temporary context directory: {exc}"
        ) from exc

    try:
        context_dir, rel_enginefile = get_enginefile_rel_path(cloned.context_dir, enginefile_name)
    except BaseException:
        shutil.rmtree(cloned.root, ignore_errors=True)
        raise
    return BuildContextDescriptor(context_dir, rel_enginefile, temporary_root=cloned.root)


def get_context_from_url(
    remote_url: str,
    enginefile_name: Optional[str],
    downloader: Downloader,
    progress_output: Optional[ProgressOutput] = None,
) -> ArchiveContext:
    """Download a remote Enginefile or archive and use it as the context."""
    try:
        download = downloader.download(remote_url)
    except (SourceResolutionError, httpx.HTTPError, OSError) as exc:
        raise SourceResolutionError(
            f"unable to download remote context {remote_url}: {exc}"
        ) from exc

    body: BinaryIO = download.body
    if progress_output is not None:
        body = ProgressReader(
            download.body,
            progress_output,
            total=download.content_length,
            action=f"Downloading build context from remote url: {remote_url}",
        )
    return get_context_from_reader(body, enginefile_name)


def get_context_from_reader(
    reader: BinaryIO,
    enginefile_name: Optional[str] = None,
) -> ArchiveContext:
    """Read a stream as either a tar archive or an Enginefile.

    An archive is passed through untouched. Anything else is written to
    Enginefile in a new temporary directory, which is packaged
    uncompressed; that directory is removed once the returned stream is
    exhausted or closed.
    """
    try:
        header, stream = peek_header(reader, HEADER_SIZE)
    except OSError as exc:
        raise SourceResolutionError(f"failed to peek context header from STDIN: {exc}") from exc

    if is_archive(header):
        return ArchiveContext(stream, enginefile_name or DEFAULT_ENGINEFILE_NAME)

    tmp_dir = Path(tempfile.mkdtemp(prefix="providence-build-context-"))
    try:
        with stream, open(tmp_dir / DEFAULT_ENGINEFILE_NAME, "wb") as f:
            shutil.copyfileobj(stream, f)
        archive = tar_directory(
            tmp_dir,
            Compression.NONE,
            on_close=lambda: shutil.rmtree(tmp_dir, ignore_errors=True),
        )
    except BaseException:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise

    logger.debug("Wrapped Enginefile from stream into %s", tmp_dir)
    return ArchiveContext(archive, DEFAULT_ENGINEFILE_NAME)


def get_enginefile_rel_path(
    given_context_dir: Union[str, Path],
    given_enginefile: Optional[str],
) -> tuple[Path, str]:
    """Return the absolute context directory and the relative Enginefile path.

    Symlinks are resolved in both paths. Without an explicit Enginefile,
    "Enginefile" is used, or "enginefile" if only that one exists. The
    relative path uses forward slashes.
    """
    abs_context_dir = os.path.abspath(given_context_dir)

    # Symlink resolution does not work on Windows UNC paths (\\server\share),
    # so links are not followed there.
    if not _is_unc(abs_context_dir):
        try:
            abs_context_dir = os.fspath(Path(abs_context_dir).resolve(strict=True))
        except OSError as exc:
            raise SourceResolutionError(
                f"unable to evaluate symlinks in context path: {exc}"
            ) from exc

    try:
        st = os.lstat(abs_context_dir)
    except OSError as exc:
        raise SourceResolutionError(
            f"unable to stat context directory {abs_context_dir!r}: {exc}"
        ) from exc
    if not stat.S_ISDIR(st.st_mode):
        raise SourceResolutionError(f"context must be a directory: {abs_context_dir}")

    abs_enginefile = given_enginefile or ""
    if not abs_enginefile:
        abs_enginefile = os.path.join(abs_context_dir, DEFAULT_ENGINEFILE_NAME)

        # Accept the lowercase name too, but only if it is actually there
        if not os.path.lexists(abs_enginefile):
            alt_path = os.path.join(abs_context_dir, DEFAULT_ENGINEFILE_NAME.lower())
            if os.path.lexists(alt_path):
                abs_enginefile = alt_path

    if not os.path.isabs(abs_enginefile):
        abs_enginefile = os.path.join(abs_context_dir, abs_enginefile)

    if not os.path.lexists(abs_enginefile):
        raise SourceResolutionError(f'Cannot locate Enginefile: "{abs_enginefile}"')

    if not _is_unc(abs_enginefile):
        try:
            abs_enginefile = os.fspath(Path(abs_enginefile).resolve(strict=True))
        except OSError as exc:
            raise SourceResolutionError(
                f"unable to evaluate symlinks in Enginefile path: {exc}"
            ) from exc

    try:
        rel_enginefile = os.path.relpath(abs_enginefile, abs_context_dir)
    except ValueError as exc:
        # different drives on Windows
        raise SourceResolutionError(
            f"The Enginefile ({given_enginefile}) must be within the build context "
            f"({given_context_dir})"
        ) from exc

    if rel_enginefile == os.pardir or rel_enginefile.startswith(os.pardir + os.sep):
        raise SourceResolutionError(
            f"The Enginefile ({given_enginefile or abs_enginefile}) must be within "
            f"the build context ({given_context_dir})"
        )

    return Path(abs_context_dir), PurePath(rel_enginefile).as_posix()


def _is_unc(path: str) -> bool:
    return os.name == "nt" and path.startswith("\\\\")
