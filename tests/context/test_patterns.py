"""Tests for exclude-pattern matching."""

import pytest

from provcli.context.patterns import PatternMatcher
from provcli.errors import InvalidPatternError


class TestPatternMatcher:
    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("*.log", "debug.log"),
            ("docs/*.md", "docs/intro.md"),
            ("?.txt", "a.txt"),
            ("**/*.pyc", "pkg/sub/mod.pyc"),
            ("**/*.pyc", "mod.pyc"),
            ("a/**/b", "a/x/y/b"),
            ("a/**/b", "a/b"),
            ("build/**", "build/out/bin"),
            ("[abc].txt", "b.txt"),
            ("[!abc].txt", "d.txt"),
            ("[a-c]x", "bx"),
            ("\\*.txt", "*.txt"),
            ("/secret", "secret"),
        ],
    )
    def test_matches(self, pattern, path):
        assert PatternMatcher([pattern]).matches(path)

    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("*.log", "logs/debug.log"),
            ("?.txt", "ab.txt"),
            ("[!abc].txt", "a.txt"),
            ("docs/*.md", "docs/sub/intro.md"),
            ("\\*.txt", "a.txt"),
            ("node_modules", "vendor/node_modules"),
        ],
    )
    def test_does_not_match(self, pattern, path):
        assert not PatternMatcher([pattern]).matches(path)

    def test_directory_pattern_excludes_descendants(self):
        matcher = PatternMatcher(["build"])
        assert matcher.matches("build")
        assert matcher.matches("build/a")
        assert matcher.matches("build/a/b")
        assert not matcher.matches("builds/a")

    def test_exception_reincludes(self):
        matcher = PatternMatcher(["*.md", "!README.md"])
        assert matcher.has_exceptions
        assert matcher.matches("CHANGES.md")
        assert not matcher.matches("README.md")

    def test_last_match_wins(self):
        matcher = PatternMatcher(["!keep.txt", "*.txt"])
        assert matcher.matches("keep.txt")

    def test_exception_inside_excluded_directory(self):
        matcher = PatternMatcher(["docs", "!docs/keep.txt"])
        assert matcher.matches("docs/drop.txt")
        assert not matcher.matches("docs/keep.txt")

    def test_dot_never_matches(self):
        assert not PatternMatcher(["*"]).matches(".")

    def test_empty_patterns_are_skipped(self):
        matcher = PatternMatcher(["", "   "])
        assert not matcher
        assert matcher.patterns == []
        assert not matcher.matches("anything")

    def test_patterns_keep_source_text(self):
        assert PatternMatcher(["*.log", "!a.log"]).patterns == ["*.log", "!a.log"]

    def test_bare_exclamation_is_invalid(self):
        with pytest.raises(InvalidPatternError) as exc_info:
            PatternMatcher(["!"])
        assert exc_info.value.pattern == "!"

    @pytest.mark.parametrize("pattern,path", [("[abc", "[abc"), ("a[/]b", "a[/]b")])
    def test_unterminated_class_is_literal(self, pattern, path):
        matcher = PatternMatcher([pattern])
        assert matcher.matches(path)
        assert not matcher.matches("a")

    def test_wildcard_directory_excludes_descendants(self):
        matcher = PatternMatcher(["docs/*"])
        assert matcher.matches("docs/sub")
        assert matcher.matches("docs/sub/intro.md")
        assert not matcher.matches("docs")

    def test_root_pattern_excludes_nothing(self):
        matcher = PatternMatcher(["/", "."])
        assert matcher.patterns == ["/", "."]
        assert not matcher.matches("Enginefile")

    def test_leading_slash_and_dot_segments_are_cleaned(self):
        matcher = PatternMatcher(["//tmp/../cache", "./logs"])
        assert matcher.matches("cache/a")
        assert matcher.matches("logs")
        assert not matcher.matches("tmp")
