"""Error types raised by the build-context pipeline.

Every failure the CLI can report derives from ProvError. Library code raises
these and lets them propagate; only `provcli.cli.main` turns them into
stderr output and an exit status.
"""

from typing import Optional


class ProvError(Exception):
    """Base class for all Providence CLI errors."""

    exit_code = 1


class ConfigurationError(ProvError):
    """Raised for contradictory or invalid invocation configuration."""


class SourceResolutionError(ProvError):
    """Raised when a context path, URL or Enginefile cannot be resolved."""


class GitNotFoundError(SourceResolutionError):
    """Raised when a git context is requested but `git` is not installed."""


class IgnoreFileError(ProvError):
    """Raised when the .provignore file cannot be read."""


class InvalidPatternError(ProvError):
    """Raised for a malformed exclude pattern."""

    def __init__(self, pattern: str, message: str = ""):
        self.pattern = pattern
        super().__init__(message or f"Illegal exclude pattern: {pattern!r}")


class ValidationError(ProvError):
    """Raised when a non-excluded file in the context cannot be read.

    Carries the offending path when one is known.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class PackagingError(ProvError):
    """Raised when the context cannot be encoded into an archive."""


class UploadError(ProvError):
    """Raised when the build request fails before any response is streamed."""


class ResponseError(ProvError):
    """Raised when a line of the streamed response cannot be decoded."""


class ServerError(ProvError):
    """A terminal error decoded from the server's message stream.

    A status code of 0 is normalised to 1 so the process never exits
    successfully after a failed build.
    """

    def __init__(self, message: str, code: int = 0):
        self.message = message
        self.code = code or 1
        super().__init__(message)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.code
