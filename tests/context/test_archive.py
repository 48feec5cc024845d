"""Tests for streaming tar packaging."""

import gzip
import io
import os
import tarfile
from unittest.mock import patch

import pytest

from provcli.context.archive import (
    HEADER_SIZE,
    Compression,
    detect_compression,
    is_archive,
    tar_directory,
)
from provcli.context.patterns import PatternMatcher
from provcli.context.walk import walk_context
from provcli.errors import InvalidPatternError, PackagingError


@pytest.fixture
def context_dir(tmp_path):
    (tmp_path / "Enginefile").write_text("FROM base\n")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print('hi')\n")
    (tmp_path / "big.bin").write_bytes(os.urandom(100_000))
    (tmp_path / "debug.log").write_text("noise\n")
    return tmp_path


def _members(data: bytes) -> dict[str, tarfile.TarInfo]:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tar:
        return {m.name: m for m in tar.getmembers()}


class TestTarDirectory:
    def test_archives_whole_tree(self, context_dir):
        with tar_directory(context_dir) as stream:
            data = stream.read()
        assert set(_members(data)) == {"Enginefile", "src", "src/main.py", "big.bin", "debug.log"}

    def test_file_contents_round_trip(self, context_dir):
        with tar_directory(context_dir) as stream:
            data = stream.read()
        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            assert tar.extractfile("big.bin").read() == (context_dir / "big.bin").read_bytes()
            assert tar.extractfile("Enginefile").read() == b"FROM base\n"

    def test_output_is_whole_records(self, context_dir):
        with tar_directory(context_dir) as stream:
            data = stream.read()
        assert len(data) % tarfile.RECORDSIZE == 0

    def test_excludes(self, context_dir):
        with tar_directory(context_dir, exclude_patterns=["*.log", "src"]) as stream:
            data = stream.read()
        assert set(_members(data)) == {"Enginefile", "big.bin"}

    def test_gzip(self, context_dir):
        with tar_directory(context_dir, Compression.GZIP) as stream:
            data = stream.read()
        assert data[:2] == b"\x1f\x8b"
        assert "src/main.py" in _members(gzip.decompress(data))

    def test_symlink_and_fifo(self, context_dir):
        os.symlink("Enginefile", context_dir / "link")
        os.mkfifo(context_dir / "pipe")
        with tar_directory(context_dir) as stream:
            members = _members(stream.read())
        assert members["link"].issym()
        assert members["link"].linkname == "Enginefile"
        assert members["pipe"].isfifo()

    def test_matches_validation_walk(self, context_dir):
        patterns = ["src", "!src/main.py", "*.bin"]
        walked = {e.rel_path for e in walk_context(context_dir, PatternMatcher(patterns))}
        with tar_directory(context_dir, exclude_patterns=patterns) as stream:
            assert set(_members(stream.read())) == walked

    def test_on_close_runs_once(self, context_dir):
        calls = []
        stream = tar_directory(context_dir, on_close=lambda: calls.append(1))
        stream.read(10)
        stream.close()
        stream.close()
        assert calls == [1]

    def test_invalid_pattern_fails_immediately(self, context_dir):
        with pytest.raises(InvalidPatternError):
            tar_directory(context_dir, exclude_patterns=["!"])

    def test_unreadable_file(self, context_dir):
        def deny(path, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(path))

        stream = tar_directory(context_dir)
        with patch("provcli.context.archive.open", side_effect=deny, create=True):
            with pytest.raises(PackagingError, match="Permission denied"):
                stream.read()
        stream.close()


class TestIsArchive:
    def test_plain_tar(self, context_dir):
        with tar_directory(context_dir) as stream:
            header = stream.read(HEADER_SIZE)
        assert is_archive(header)

    @pytest.mark.parametrize(
        "header,name",
        [
            (b"\x1f\x8b\x08\x00rest", "gzip"),
            (b"BZh91AY", "bzip2"),
            (b"\xfd7zXZ\x00\x00", "xz"),
            (b"\x28\xb5\x2f\xfd\x00", "zstd"),
        ],
    )
    def test_compressed(self, header, name):
        assert detect_compression(header) == name
        assert is_archive(header)

    def test_enginefile_is_not_archive(self):
        assert not is_archive(b"FROM base\nRUN make\n")

    def test_text_padded_to_header_size_is_not_archive(self):
        assert not is_archive(b"FROM base\n".ljust(HEADER_SIZE, b" "))
