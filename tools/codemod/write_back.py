#!/usr/bin/env python3
# CUI // SP-CTI
"""Write-Back — load source buffers and persist rewritten ones safely.

Files are read and written as UTF-8 with newline translation disabled,
so CRLF files stay CRLF. A buffer is written only when its text differs
from what was read; unchanged files keep their bytes and mtime.

Writes go to a temporary file in the same directory, inherit the
original file's permission bits and replace the original atomically.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from tools.codemod.errors import WriteError

logger = logging.getLogger("codemod.write_back")


@dataclass
class SourceFile:
    """One file's buffers for the duration of a run."""
    path: str
    original_text: str
    text: str
    newline: str = "\n"

    @property
    def modified(self) -> bool:
        return self.text != self.original_text


def load_source(path: str) -> SourceFile:
    """Read a file as UTF-8 without newline translation.

    Raises:
        OSError, UnicodeDecodeError: propagated to the per-file boundary.
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        text = f.read()
    crlf = text.count("\r\n")
    newline = "\r\n" if crlf and crlf >= text.count("\n") - crlf else "\n"
    return SourceFile(path=str(path), original_text=text, text=text, newline=newline)


def write_source(source: SourceFile) -> bool:
    """Write source.text back if it changed. Returns True when written.

    Raises:
        WriteError: the file vanished, is not writable, or the replace failed.
    """
    if not source.modified:
        return False

    target = Path(source.path)
    if not target.exists():
        raise WriteError(f"File disappeared before write-back: {target}", path=str(target))

    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".codemod", dir=str(target.parent))
    except OSError as exc:
        raise WriteError(f"Cannot write {target}: {exc}", path=str(target)) from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(source.text)
        shutil.copymode(str(target), tmp_path)
        os.replace(tmp_path, str(target))
    except OSError as exc:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise WriteError(f"Cannot write {target}: {exc}", path=str(target)) from exc

    logger.debug("Wrote %s (%d -> %d chars)", target, len(source.original_text), len(source.text))
    return True
