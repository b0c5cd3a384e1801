#!/usr/bin/env python3
# CUI // SP-CTI
"""Cross-platform helpers for the codemod tools.

Node tooling ships as .cmd shims on Windows and paths reported to the
catalog's patch globs must use forward slashes on every platform.

Usage:
    from tools.compat.platform_utils import (
        IS_WINDOWS, resolve_node_command, to_posix_relative, ensure_utf8_console,
    )
"""

import os
import platform
import sys
from pathlib import Path
from typing import List, Sequence


# ---------------------------------------------------------------------------
# Platform detection constants
# ---------------------------------------------------------------------------
PLATFORM_NAME: str = platform.system()   # "Windows", "Darwin", "Linux"
IS_WINDOWS: bool = PLATFORM_NAME == "Windows"

# Node launchers installed as <name>.cmd on Windows
NODE_LAUNCHERS = ("npx", "npm", "yarn", "pnpm", "tsc")


# ---------------------------------------------------------------------------
# Command utilities
# ---------------------------------------------------------------------------
def get_npx_cmd() -> str:
    """Return the correct npx command for the current platform.

    Windows requires npx.cmd; Unix uses npx directly.
    """
    return "npx.cmd" if IS_WINDOWS else "npx"


def resolve_node_command(command: Sequence[str]) -> List[str]:
    """Map the launcher of a Node command line to its platform form."""
    cmd = list(command)
    if cmd and IS_WINDOWS and cmd[0] in NODE_LAUNCHERS:
        cmd[0] = get_npx_cmd() if cmd[0] == "npx" else f"{cmd[0]}.cmd"
    return cmd


# ---------------------------------------------------------------------------
# Path utilities
# ---------------------------------------------------------------------------
def to_posix_relative(path: str, base: str) -> str:
    """Return path relative to base with forward slashes.

    Falls back to the path's own POSIX form when it lies outside base
    (or on another drive on Windows).
    """
    try:
        rel = os.path.relpath(path, base)
    except ValueError:
        return Path(path).as_posix()
    if rel.startswith(".."):
        return Path(path).as_posix()
    return Path(rel).as_posix()


# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------
def ensure_utf8_console():
    """Ensure stdout supports UTF-8 on Windows.

    Safe to call on any platform (no-op on Unix).
    """
    if not IS_WINDOWS:
        return
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, OSError):
        import io as _io
        sys.stdout = _io.TextIOWrapper(
            sys.stdout.buffer, encoding="utf-8", errors="replace"
        )
