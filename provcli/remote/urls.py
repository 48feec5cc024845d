"""Classify the PATH | URL argument of `prov engine build`."""

import re

_URL_PREFIXES = ("http://", "https://")
_GIT_PREFIXES = ("git://", "github.com/", "git@")

# A URL that ends in .git, optionally followed by a #ref:subdir fragment
_GIT_PATH_SUFFIX = re.compile(r"\.git(?:#.+)?$")


def is_url(value: str) -> bool:
    """Return True for an http(s) URL."""
    return value.startswith(_URL_PREFIXES)


def is_git_url(value: str) -> bool:
    """Return True for anything that should be fetched with `git clone`."""
    if is_url(value) and _GIT_PATH_SUFFIX.search(value):
        return True
    return value.startswith(_GIT_PREFIXES)


def is_git_transport(value: str) -> bool:
    """Return True if value already names a transport git understands."""
    return is_url(value) or value.startswith(("git://", "git@"))
