"""Tests for orion_apply.core.editing.safety -- path containment and byte-exact writes."""

import pytest

from orion_apply.core.editing.safety import (
    read_if_exists,
    secure_delete,
    secure_write,
    validate_path,
)
from orion_apply.core.errors import PathEscapeError


class TestValidatePath:
    def test_inside_root(self, tmp_path):
        assert validate_path(tmp_path, "src/app.py") == (tmp_path / "src" / "app.py").resolve()

    def test_traversal_rejected(self, tmp_path):
        with pytest.raises(PathEscapeError):
            validate_path(tmp_path, "../outside.py")

    def test_absolute_path_rejected(self, tmp_path):
        with pytest.raises(PathEscapeError):
            validate_path(tmp_path, "/etc/passwd")

    def test_empty_rejected(self, tmp_path):
        with pytest.raises(PathEscapeError):
            validate_path(tmp_path, "  ")


class TestReadWrite:
    def test_write_creates_parents(self, tmp_path):
        secure_write(tmp_path, "pkg/mod.py", "x = 1\n")
        assert (tmp_path / "pkg" / "mod.py").read_text() == "x = 1\n"

    def test_crlf_round_trip(self, tmp_path):
        secure_write(tmp_path, "win.txt", "a\r\nb\r\n")
        assert (tmp_path / "win.txt").read_bytes() == b"a\r\nb\r\n"
        assert read_if_exists(tmp_path, "win.txt") == "a\r\nb\r\n"

    def test_read_missing(self, tmp_path):
        assert read_if_exists(tmp_path, "missing.py") is None

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        with pytest.raises(OSError):
            secure_write(tmp_path, "pkg", "x = 1\n")
        assert (tmp_path / "pkg").is_dir()
        assert not (tmp_path / ".pkg.orion-tmp").exists()

    def test_delete(self, tmp_path):
        (tmp_path / "old.py").write_text("x")
        assert secure_delete(tmp_path, "old.py") is True
        assert not (tmp_path / "old.py").exists()
        assert secure_delete(tmp_path, "old.py") is False
