"""Tests for the zipflow command line."""

import logging
import zipfile

import pytest

from zipflow.common import ConfigLoader
from zipflow.unzip import LocalHeader
from zipflow.unzip.cli import build_parser, main, method_name, verify_extracted_file
from zipflow.unzip.errors import ChecksumMismatchError


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run commands without real config files and restore logging afterwards."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(ConfigLoader, "_load_system_config", lambda self: None)
    monkeypatch.setattr(ConfigLoader, "_load_user_config", lambda self: None)

    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def archive_path(tmp_path, builder):
    path = tmp_path / "photos.zip"
    path.write_bytes(builder.zipfile_archive({
        "album/": b"",
        "album/one.jpg": b"\xff\xd8" + b"1" * 3000,
        "notes.txt": b"some notes",
    }))
    return path


class TestListCommand:
    """Tests for `zipflow list`."""

    def test_lists_entries(self, archive_path, capsys):
        """Test one output line per entry with decoded sizes."""
        assert main(["list", str(archive_path)]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[1].split()[0] == "3002"
        assert lines[1].endswith("album/one.jpg")
        assert "deflated" in lines[2]
        assert lines[2].endswith("notes.txt")

    def test_small_chunks(self, archive_path, capsys):
        """Test that the chunk size option does not change the listing."""
        main(["list", str(archive_path)])
        expected = capsys.readouterr().out

        assert main(["--chunk-size", "7", "list", str(archive_path)]) == 0
        assert capsys.readouterr().out == expected

    def test_missing_archive(self, tmp_path):
        """Test that a missing archive fails."""
        assert main(["list", str(tmp_path / "missing.zip")]) == 1

    def test_corrupt_archive(self, tmp_path, builder):
        """Test that a checksum failure gives exit code 1."""
        path = tmp_path / "bad.zip"
        path.write_bytes(builder.archive(builder.entry(b"a.txt", b"abc", crc=7)))

        assert main(["list", str(path)]) == 1

    def test_log_file_from_environment(self, archive_path, tmp_path, monkeypatch):
        """Test that the logging section of the configuration is applied."""
        log_file = tmp_path / "logs" / "zipflow.log"
        monkeypatch.setenv("ZIPFLOW_LOGGING__FILE", str(log_file))

        assert main(["list", str(archive_path)]) == 0
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "Listed 3 entries" in log_file.read_text()


class TestExtractCommand:
    """Tests for `zipflow extract`."""

    def test_extracts_files(self, archive_path, tmp_path):
        """Test that files and directories are written."""
        target = tmp_path / "out"

        assert main(["extract", str(archive_path), "--target-dir", str(target)]) == 0

        assert (target / "album").is_dir()
        assert (target / "album" / "one.jpg").read_bytes() == b"\xff\xd8" + b"1" * 3000
        assert (target / "notes.txt").read_bytes() == b"some notes"

    def test_matches_zipfile_reader(self, archive_path, tmp_path):
        """Test extracted content against the standard library reader."""
        target = tmp_path / "out"
        main(["extract", str(archive_path), "--target-dir", str(target), "--no-verify"])

        with zipfile.ZipFile(archive_path) as zf:
            for name in zf.namelist():
                if not name.endswith("/"):
                    assert (target / name).read_bytes() == zf.read(name)

    def test_rejects_path_traversal(self, tmp_path, builder):
        """Test that entries escaping the target directory are refused."""
        path = tmp_path / "evil.zip"
        path.write_bytes(builder.archive(builder.entry(b"../evil.txt", b"pwned")))
        target = tmp_path / "out"

        assert main(["extract", str(path), "--target-dir", str(target)]) == 1
        assert not (tmp_path / "evil.txt").exists()

    def test_truncated_archive(self, tmp_path, builder):
        """Test that a truncated archive fails."""
        path = tmp_path / "short.zip"
        path.write_bytes(builder.entry(b"a.txt", b"abcdef")[:-3])

        assert main(["extract", str(path), "--target-dir", str(tmp_path / "out")]) == 1


class TestHelpers:
    """Tests for command helpers."""

    def test_method_name(self):
        """Test readable method names."""
        assert method_name(0) == "stored"
        assert method_name(12) == "bzip2"
        assert method_name(77) == "77"

    def test_help_lists_supported_methods(self):
        """Test that the help text names every registered engine."""
        help_text = build_parser().format_help()

        assert "deflated" in help_text
        assert "zstandard" in help_text

    def test_verify_extracted_file(self, tmp_path, builder):
        """Test CRC verification of a file on disk."""
        from zipflow.unzip.headers import parse_local_header

        header: LocalHeader = parse_local_header(builder.entry(b"a.txt", b"content"))
        path = tmp_path / "a.txt"
        path.write_bytes(b"content")
        verify_extracted_file(path, header)

        path.write_bytes(b"changed")
        with pytest.raises(ChecksumMismatchError):
            verify_extracted_file(path, header)
