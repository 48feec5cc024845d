"""Build-context resolution, validation and packaging."""

from provcli.context.archive import Compression, is_archive, tar_directory
from provcli.context.ignore import load_ignore_patterns, read_ignore_patterns
from provcli.context.patterns import PatternMatcher
from provcli.context.resolver import (
    get_context_from_git_url,
    get_context_from_local_dir,
    get_context_from_reader,
    get_context_from_url,
    get_enginefile_rel_path,
    parse_context_argument,
    resolve_context,
)
from provcli.context.types import (
    DEFAULT_ENGINEFILE_NAME,
    ArchiveContext,
    BuildContextDescriptor,
    ContextSource,
    GitRepository,
    InlineStream,
    LocalDirectory,
    RemoteResource,
)
from provcli.context.validator import validate_context_directory

__all__ = [
    "DEFAULT_ENGINEFILE_NAME",
    "ArchiveContext",
    "BuildContextDescriptor",
    "Compression",
    "ContextSource",
    "GitRepository",
    "InlineStream",
    "LocalDirectory",
    "PatternMatcher",
    "RemoteResource",
    "get_context_from_git_url",
    "get_context_from_local_dir",
    "get_context_from_reader",
    "get_context_from_url",
    "get_enginefile_rel_path",
    "is_archive",
    "load_ignore_patterns",
    "parse_context_argument",
    "read_ignore_patterns",
    "resolve_context",
    "tar_directory",
    "validate_context_directory",
]
