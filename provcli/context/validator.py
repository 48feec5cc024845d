"""Check that every file in a build context can be read.

Runs before anything is sent to the server so that an unreadable file is
reported up front instead of breaking the archive half-way through an
upload.
"""

import logging
import os
from pathlib import Path
from typing import Sequence, Union

from provcli.context.patterns import PatternMatcher
from provcli.context.walk import ContextEntry, walk_context
from provcli.errors import ValidationError

logger = logging.getLogger(__name__)


def get_context_root(src_path: Union[str, Path]) -> Path:
    """Return the absolute, symlink-free path of the context directory."""
    try:
        return Path(os.path.abspath(src_path)).resolve(strict=True)
    except OSError as exc:
        raise ValidationError(f"unable to get context root {src_path!r}: {exc}") from exc


def validate_context_directory(
    src_path: Union[str, Path],
    excludes: Sequence[str],
) -> None:
    """Raise ValidationError if a non-excluded file cannot be opened.

    Only regular files are opened: symlinks are never followed, so a
    dangling link is fine, and named pipes would block on open. A file
    deleted while the walk is running is ignored.
    """
    context_root = get_context_root(src_path)
    matcher = PatternMatcher(excludes)

    checked = 0
    try:
        for entry in walk_context(context_root, matcher):
            if _check_readable(entry):
                checked += 1
    except PermissionError as exc:
        raise ValidationError(f"can't stat '{exc.filename}'", path=exc.filename) from exc
    except OSError as exc:
        raise ValidationError(str(exc), path=exc.filename) from exc

    logger.debug("Validated %d files under %s", checked, context_root)


def _check_readable(entry: ContextEntry) -> bool:
    """Open a regular file once; return False if it was not checked."""
    # directories, links, pipes and sockets are never opened
    if not entry.is_regular:
        return False

    try:
        with open(entry.path, "rb"):
            pass
    except PermissionError as exc:
        raise ValidationError(
            f"no permission to read from '{entry.path}'", path=str(entry.path)
        ) from exc
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise ValidationError(str(exc), path=str(entry.path)) from exc
    return True
