"""The `prov engine build` pipeline.

run_build() takes a context argument (PATH, URL or "-") through every stage:
resolve the source, validate and package a directory, upload the archive
and relay the server's messages.

In quiet mode nothing is written while the build runs. Progress and build
output are collected in memory; on success only the build output (the
server's final payload, normally the engine ID) reaches stdout, and on
failure whatever was collected is written to stderr.
"""

import io
import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, TextIO

from provcli.client.client import APIClient, EngineBuildOptions
from provcli.client.messages import display_messages, iter_server_messages
from provcli.client.progress import (
    LastProgressOutput,
    ProgressOutput,
    ProgressReader,
    StreamProgressOutput,
)
from provcli.context.archive import Compression, tar_directory
from provcli.context.ignore import load_ignore_patterns
from provcli.context.resolver import parse_context_argument, resolve_context
from provcli.context.types import ArchiveContext, BuildContextDescriptor
from provcli.context.validator import validate_context_directory
from provcli.errors import (
    ProvError,
    ServerError,
    SourceResolutionError,
    ValidationError,
)
from provcli.remote.download import Downloader
from provcli.remote.git import Cloner
from provcli.remote.urls import is_url
from provcli.streams import ArchiveStream

logger = logging.getLogger(__name__)

UPLOAD_ACTION = "Sending build context to Providence server"


@dataclass(frozen=True)
class BuildOptions:
    """Options of a single `prov engine build` invocation."""

    context: str
    enginefile_name: Optional[str] = None
    quiet: bool = False
    compress: bool = True


def run_build(
    options: BuildOptions,
    *,
    client: APIClient,
    stdin: BinaryIO,
    stdout: TextIO,
    stderr: TextIO,
    cloner: Optional[Cloner] = None,
    downloader: Optional[Downloader] = None,
) -> None:
    """Build an engine from options.context.

    Raises a ProvError subclass on failure; ServerError carries the exit
    status reported by the server.
    """
    progress_buffer: TextIO = stdout
    build_buffer: TextIO = stdout
    if options.quiet:
        progress_buffer = io.StringIO()
        build_buffer = io.StringIO()

    progress_output: ProgressOutput = StreamProgressOutput(progress_buffer)
    if options.quiet:
        progress_output = LastProgressOutput(progress_output)

    source = parse_context_argument(options.context, stdin)
    try:
        resolved = resolve_context(
            source,
            options.enginefile_name,
            cloner=cloner,
            downloader=downloader,
            progress_output=progress_output,
        )
    except (SourceResolutionError, OSError) as exc:
        if options.quiet and is_url(options.context):
            _dump(stderr, progress_buffer)
        raise SourceResolutionError(f"unable to prepare context: {exc}") from exc

    try:
        if isinstance(resolved, ArchiveContext):
            archive, enginefile = resolved.stream, resolved.enginefile
        else:
            archive = package_context(resolved, options.compress)
            enginefile = resolved.relative_enginefile

        logger.info("Uploading build context (enginefile=%s)", enginefile)
        # closed before any buffer is dumped, so the final progress line is in it
        with ProgressReader(archive, progress_output, action=UPLOAD_ACTION) as body:
            with client.engine_build(body, EngineBuildOptions(enginefile)) as response:
                display_messages(iter_server_messages(response.iter_lines()), build_buffer)
    except ServerError:
        if options.quiet:
            _dump(stderr, progress_buffer, build_buffer)
        raise
    except ProvError:
        if options.quiet:
            _dump(stderr, progress_buffer)
        raise

    if options.quiet:
        _dump(stdout, build_buffer)


def package_context(descriptor: BuildContextDescriptor, compress: bool = True) -> ArchiveStream:
    """Validate a context directory and start packaging it.

    The descriptor's temporary root, if any, is removed when the returned
    archive is closed, or straight away if packaging cannot start.
    """
    try:
        excludes = load_ignore_patterns(descriptor.context_dir)
        try:
            validate_context_directory(descriptor.context_dir, excludes)
        except ValidationError as exc:
            raise ValidationError(f"Error checking context: '{exc}'.", path=exc.path) from exc

        compression = Compression.GZIP if compress else Compression.NONE
        return tar_directory(
            descriptor.context_dir,
            compression,
            exclude_patterns=excludes,
            include_files=["."],
            on_close=descriptor.cleanup,
        )
    except BaseException:
        descriptor.cleanup()
        raise


def _dump(out: TextIO, *buffers: TextIO) -> None:
    for buffer in buffers:
        if isinstance(buffer, io.StringIO):
            out.write(buffer.getvalue())
    out.flush()
