# CUI // SP-CTI
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

"""Tests for tools.codemod.write_back — change-only, mode-preserving writes."""

import os
import stat

import pytest

from tools.codemod.errors import WriteError
from tools.codemod.write_back import load_source, write_source


def _write_bytes(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


class TestLoadSource:
    """load_source: UTF-8 read without newline translation."""

    def test_lf_file(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"const a = 1;\nconst b = 2;\n")
        source = load_source(str(path))
        assert source.text == "const a = 1;\nconst b = 2;\n"
        assert source.newline == "\n"
        assert source.modified is False

    def test_crlf_file_kept_verbatim(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"const a = 1;\r\nconst b = 2;\r\n")
        source = load_source(str(path))
        assert "\r\n" in source.text
        assert source.newline == "\r\n"

    def test_invalid_utf8_raises(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"\xff\xfe\x00bad")
        with pytest.raises(UnicodeDecodeError):
            load_source(str(path))


class TestWriteSource:
    """write_source: only changed buffers reach disk."""

    def test_unchanged_file_not_touched(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"<Box />\n")
        os.utime(path, (1_000_000, 1_000_000))
        source = load_source(str(path))
        assert write_source(source) is False
        assert path.stat().st_mtime == 1_000_000
        assert path.read_bytes() == b"<Box />\n"

    def test_changed_file_written(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"<Box isOpen />\n")
        source = load_source(str(path))
        source.text = "<Box open />\n"
        assert write_source(source) is True
        assert path.read_text(encoding="utf-8") == "<Box open />\n"

    def test_crlf_preserved_on_write(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"<Box isOpen />\r\n<Box />\r\n")
        source = load_source(str(path))
        source.text = source.text.replace("isOpen", "open")
        write_source(source)
        assert path.read_bytes() == b"<Box open />\r\n<Box />\r\n"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_mode_preserved(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"x\n")
        os.chmod(path, 0o640)
        source = load_source(str(path))
        source.text = "y\n"
        write_source(source)
        assert stat.S_IMODE(path.stat().st_mode) == 0o640

    def test_no_temp_files_left(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"x\n")
        source = load_source(str(path))
        source.text = "y\n"
        write_source(source)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.tsx"]

    def test_vanished_file_raises(self, tmp_path):
        path = _write_bytes(tmp_path / "a.tsx", b"x\n")
        source = load_source(str(path))
        source.text = "y\n"
        path.unlink()
        with pytest.raises(WriteError) as exc_info:
            write_source(source)
        assert exc_info.value.path == str(path)
        assert not path.exists()

    @pytest.mark.skipif(sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
                        reason="directory permissions not enforced")
    def test_read_only_directory_raises(self, tmp_path):
        locked = tmp_path / "locked"
        locked.mkdir()
        path = _write_bytes(locked / "a.tsx", b"x\n")
        source = load_source(str(path))
        source.text = "y\n"
        os.chmod(locked, 0o555)
        try:
            with pytest.raises(WriteError):
                write_source(source)
        finally:
            os.chmod(locked, 0o755)
        assert path.read_bytes() == b"x\n"
