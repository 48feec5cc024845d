"""Exclude-pattern matching shared by validation and packaging.

Patterns use gitignore syntax (via pathspec) and always use forward slashes:

  *      any run of characters except "/"
  ?      any single character except "/"
  **     any number of directories ("a/**/b", "**/*.log", "build/**")
  [...]  character class, "[!...]" or "[^...]" negated
  \\x     the literal character x
  !pat   exception: re-include paths matched by earlier patterns

Every pattern is anchored to the context root, so "node_modules" does not
exclude "vendor/node_modules". The last matching pattern decides. A pattern
that matches one of a path's parent directories also matches the path, so
"build" excludes everything beneath build/.
"""

import posixpath
from typing import Optional, Sequence

from pathspec import PathSpec, lookup_pattern

from provcli.errors import InvalidPatternError

_gitignore = lookup_pattern("gitignore")


class PatternMatcher:
    """Compiled, ordered list of exclude patterns."""

    def __init__(self, patterns: Sequence[str]):
        self._sources: list[str] = []
        self.has_exceptions = False

        compiled = []
        for raw in patterns:
            pattern = raw.strip()
            if not pattern:
                continue
            negative = pattern.startswith("!")
            if negative:
                if len(pattern) == 1:
                    raise InvalidPatternError(pattern, "Illegal exclusion pattern: !")
                pattern = pattern[1:]
                self.has_exceptions = True
            self._sources.append(raw)

            body = _clean(pattern).lstrip("/")
            if body in ("", "."):
                # "/" and "." name the context root, which is never excluded
                continue
            line = ("!/" if negative else "/") + body
            try:
                compiled.append(_gitignore(line))
            except ValueError as exc:
                raise InvalidPatternError(raw, f"Illegal exclude pattern {raw!r}: {exc}") from exc

        self._spec = PathSpec(compiled)

    @property
    def patterns(self) -> list[str]:
        return list(self._sources)

    def __bool__(self) -> bool:
        return bool(self._sources)

    def matches(self, rel_path: str) -> bool:
        """Return True if rel_path (relative to the context root) is excluded."""
        path = _clean(rel_path).lstrip("/")
        if path in ("", "."):
            return False

        decision: Optional[bool] = None
        last_index = -1
        for candidate in _with_parents(path):
            result = self._spec.check_file(candidate)
            if result.index is not None and result.index > last_index:
                last_index = result.index
                decision = result.include
        return bool(decision)


def _with_parents(path: str) -> list[str]:
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(len(parts), 0, -1)]


def _clean(path: str) -> str:
    cleaned = posixpath.normpath(path)
    # normpath keeps a leading "//" as POSIX allows; a pattern has no use for it
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned
