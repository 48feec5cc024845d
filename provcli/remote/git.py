"""Clone git build contexts into temporary directories.

A git context URL may carry a fragment selecting a ref and a subdirectory:

    https://github.com/owner/repo.git#v1.2:engines/web

The ref is checked out after cloning and the subdirectory becomes the
build context. The whole clone is owned by the caller, who removes it when
the build is over.
"""

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlparse, urlunparse

from provcli.errors import GitNotFoundError, SourceResolutionError
from provcli.remote.urls import is_git_transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClonedRepository:
    """A clone on disk.

    root is the temporary directory holding the clone; context_dir is the
    directory to build from, equal to root unless a subdirectory was asked
    for in the URL fragment.
    """

    root: Path
    context_dir: Path


class Cloner(Protocol):
    """Anything that can turn a git URL into a local directory."""

    def clone(self, url: str) -> ClonedRepository:
        ...  # noqa: PLR6301


def redact_repo_url(url: str) -> str:
    """Return a git context URL safe to show in logs and error messages.

    Tokens and passwords in the userinfo become "***". The usual ssh user
    "git" carries no secret and is kept, as is a "#ref:subdir" fragment.
    """
    parsed = urlparse(url)
    if parsed.username is None or not parsed.hostname:
        return url
    if parsed.password is None and parsed.username == "git":
        return url

    user = f"{parsed.username}:***" if parsed.password is not None else "***"
    port = f":{parsed.port}" if parsed.port else ""
    return urlunparse(parsed._replace(netloc=f"{user}@{parsed.hostname}{port}"))


def split_git_url(url: str) -> tuple[str, str, str]:
    """Split a context URL into (repository URL, ref, subdirectory).

    A URL without a transport (e.g. "github.com/owner/repo") is given
    https://. ref and subdirectory are empty when not specified.
    """
    if not is_git_transport(url):
        url = "https://" + url

    repo, _, fragment = url.partition("#")
    ref, _, subdir = fragment.partition(":")
    return repo, ref, subdir


class GitCloner:
    """Clone with the system `git` binary."""

    def __init__(self, git: str = "git", timeout: Optional[float] = None):
        self.git = git
        self.timeout = timeout

    def clone(self, url: str) -> ClonedRepository:
        """Clone url into a fresh temporary directory.

        Shallow (depth 1) unless a ref is requested, since an arbitrary ref
        may not be reachable from a shallow history.
        """
        if shutil.which(self.git) is None:
            raise GitNotFoundError(f"unable to find '{self.git}'")

        repo, ref, subdir = split_git_url(url)
        root = Path(tempfile.mkdtemp(prefix="providence-build-git-"))
        try:
            cmd = ["clone", "--recursive"]
            if not ref:
                cmd += ["--depth", "1"]
            cmd += [repo, str(root)]

            logger.info("Cloning %s into %s", redact_repo_url(repo), root)
            self._run(cmd)

            if ref:
                logger.info("Checking out %s", ref)
                self._run(["checkout", ref], cwd=root)

            context_dir = self._context_dir(root, subdir)
        except BaseException:
            shutil.rmtree(root, ignore_errors=True)
            raise

        logger.info("Clone complete: %s", context_dir)
        return ClonedRepository(root=root, context_dir=context_dir)

    def _context_dir(self, root: Path, subdir: str) -> Path:
        if not subdir:
            return root

        real_root = root.resolve()
        candidate = (root / subdir).resolve()
        if candidate != real_root and real_root not in candidate.parents:
            raise SourceResolutionError(
                f"Error setting git context, {subdir!r} not within git root"
            )
        if not candidate.is_dir():
            raise SourceResolutionError(
                f"Error setting git context, not a directory: {candidate}"
            )
        return candidate

    def _run(self, args: list[str], cwd: Optional[Path] = None) -> None:
        try:
            result = subprocess.run(
                [self.git, *args],
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise SourceResolutionError(f"git {args[0]} timed out after {exc.timeout}s") from exc
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            # git echoes the remote URL, credentials included
            for arg in args:
                output = output.replace(arg, redact_repo_url(arg))
            raise SourceResolutionError(
                f"Error trying to use git: exit status {result.returncode} ({output})"
            )
