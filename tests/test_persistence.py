"""Tests for atomic file write operations."""

import os
import threading
import unittest.mock as mock
from pathlib import Path

import pytest

from mdstore.persistence import atomic_write, ensure_dir


def _temp_files(directory: Path, name: str):
    return list(directory.glob(f".{name}.tmp.*"))


def test_atomic_write_creates_file(tmp_path):
    """Test that atomic_write creates a file with correct content."""
    file_path = tmp_path / "test.txt"

    atomic_write(file_path, b"hello world")

    assert file_path.read_bytes() == b"hello world"


def test_atomic_write_accepts_str(tmp_path):
    """Test that str payloads are written as UTF-8."""
    file_path = tmp_path / "unicode.txt"
    content = "Café ☕ naïve"

    atomic_write(file_path, content)

    assert file_path.read_text(encoding="utf-8") == content


def test_atomic_write_overwrites_existing(tmp_path):
    """Test that atomic_write overwrites existing file."""
    file_path = tmp_path / "test.txt"

    atomic_write(file_path, "first")
    atomic_write(file_path, "second")

    assert file_path.read_text() == "second"


def test_atomic_write_accepts_string_path(tmp_path):
    file_path = tmp_path / "plain.txt"

    atomic_write(str(file_path), b"data")

    assert file_path.read_bytes() == b"data"


def test_atomic_write_creates_parent_directories(tmp_path):
    """Test that atomic_write creates nested parent directories."""
    file_path = tmp_path / "a" / "b" / "c" / "test.txt"

    atomic_write(file_path, "nested")

    assert file_path.read_text() == "nested"


def test_atomic_write_leaves_no_temp_files(tmp_path):
    """Test that only the target file remains after a successful write."""
    file_path = tmp_path / "test.txt"
    files_before = set(tmp_path.iterdir())

    atomic_write(file_path, "content")

    assert set(tmp_path.iterdir()) == files_before | {file_path}


def test_atomic_write_with_empty_content(tmp_path):
    file_path = tmp_path / "empty.txt"

    atomic_write(file_path, b"")

    assert file_path.exists()
    assert file_path.read_bytes() == b""


def test_atomic_write_with_large_content(tmp_path):
    file_path = tmp_path / "large.bin"
    content = os.urandom(1024) * 2048  # 2 MB

    atomic_write(file_path, content)

    assert file_path.read_bytes() == content


def test_atomic_write_rename_failure_preserves_target(tmp_path):
    """Test that the existing file survives a failed rename and no temp file is left."""
    file_path = tmp_path / "test.txt"
    file_path.write_text("Original content")

    with mock.patch("mdstore.persistence.os.replace", side_effect=OSError("Simulated crash")):
        with pytest.raises(OSError, match="Simulated crash"):
            atomic_write(file_path, "New content")

    assert file_path.read_text() == "Original content"
    assert _temp_files(tmp_path, "test.txt") == []


def test_atomic_write_write_failure_cleans_up(tmp_path):
    """Test that a failed write removes the temp file and leaves the target alone."""
    file_path = tmp_path / "test.txt"
    file_path.write_text("Original content")

    with mock.patch("mdstore.persistence.os.write", side_effect=OSError("Disk full")):
        with pytest.raises(OSError, match="Disk full"):
            atomic_write(file_path, "New content")

    assert file_path.read_text() == "Original content"
    assert _temp_files(tmp_path, "test.txt") == []


def test_atomic_write_fsync_failure_cleans_up(tmp_path):
    file_path = tmp_path / "test.txt"

    with mock.patch("mdstore.persistence.os.fsync", side_effect=OSError("I/O error")):
        with pytest.raises(OSError, match="I/O error"):
            atomic_write(file_path, "content")

    assert not file_path.exists()
    assert _temp_files(tmp_path, "test.txt") == []


def test_atomic_write_fails_when_parent_is_a_file(tmp_path):
    """Test that directory creation failure aborts before any temp file exists."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with mock.patch("mdstore.persistence.tempfile.mkstemp") as mkstemp:
        with pytest.raises(OSError):
            atomic_write(blocker / "test.txt", "content")

    mkstemp.assert_not_called()


def test_atomic_write_concurrent_reader_sees_complete_payloads(tmp_path):
    """A reader racing the writer only ever sees one of the written payloads."""
    file_path = tmp_path / "race.txt"
    payloads = [bytes([ord("a") + i]) * 200_000 for i in range(4)]
    atomic_write(file_path, payloads[0])

    stop = threading.Event()
    bad_reads = []

    def reader():
        while not stop.is_set():
            data = file_path.read_bytes()
            if data not in payloads:
                bad_reads.append(len(data))

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for i in range(100):
            atomic_write(file_path, payloads[i % len(payloads)])
    finally:
        stop.set()
        thread.join()

    assert bad_reads == []


class TestEnsureDir:
    """Test recursive directory creation."""

    def test_creates_directory(self, tmp_path):
        path = tmp_path / "newdir"

        result = ensure_dir(path)

        assert path.is_dir()
        assert result == path

    def test_idempotent(self, tmp_path):
        path = tmp_path / "newdir"

        ensure_dir(path)
        ensure_dir(path)

        assert path.is_dir()

    def test_nested(self, tmp_path):
        path = tmp_path / "a" / "b" / "c"

        ensure_dir(str(path))

        assert path.is_dir()

    def test_file_in_the_way(self, tmp_path):
        path = tmp_path / "occupied"
        path.write_text("file")

        with pytest.raises(OSError):
            ensure_dir(path)
