# [TEMPLATE: CUI // SP-CTI]
"""
Codemod CLI Output Formatter
============================

Terminal rendering for the codemod tools' ``--human`` output (the
default; ``--json`` switches to machine output).

Colors are applied only when stdout is a terminal, unless FORCE_COLOR=1.
NO_COLOR disables them (https://no-color.org/).

Usage::

    from tools.cli.output_formatter import (
        format_table, format_banner, format_kv, format_section,
        format_list, format_diff, add_output_flags, should_use_json,
    )
"""

from __future__ import annotations

import argparse
import os
import re
import sys
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

# Ensure UTF-8 output on Windows (box-drawing chars).
from tools.compat.platform_utils import ensure_utf8_console
ensure_utf8_console()

# ---------------------------------------------------------------------------
# ANSI color support
# ---------------------------------------------------------------------------

def _is_tty() -> bool:
    """Return True if stdout is connected to a terminal."""
    try:
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


_COLORS_ENABLED: bool = (
    os.environ.get("FORCE_COLOR", "") == "1"
    or (_is_tty() and os.environ.get("NO_COLOR") is None)
)

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")


class _Ansi:
    """ANSI escape-code helpers.  All methods return plain text when color
    is disabled (piped output, NO_COLOR, etc.)."""

    _CODES = {
        "reset":     "\033[0m",
        "bold":      "\033[1m",
        "dim":       "\033[2m",
        "underline": "\033[4m",
        "red":       "\033[31m",
        "green":     "\033[32m",
        "yellow":    "\033[33m",
        "blue":      "\033[34m",
        "magenta":   "\033[35m",
        "cyan":      "\033[36m",
    }

    @classmethod
    def code(cls, name: str) -> str:
        if not _COLORS_ENABLED:
            return ""
        return cls._CODES.get(name, "")

    @classmethod
    def wrap(cls, text: str, *styles: str) -> str:
        """Wrap *text* with one or more ANSI styles."""
        if not _COLORS_ENABLED or not styles:
            return text
        prefix = "".join(cls._CODES.get(s, "") for s in styles)
        return f"{prefix}{text}{cls._CODES['reset']}"

    @classmethod
    def strip(cls, text: str) -> str:
        """Remove all ANSI escape sequences from *text*."""
        return _ANSI_RE.sub("", text)


C = _Ansi  # short alias

# ---------------------------------------------------------------------------
# Value-based auto-coloring
# ---------------------------------------------------------------------------

_VALUE_COLORS: List[Tuple[str, List[str]]] = [
    # (pattern_substring, [ansi_styles]); first match wins
    ("failed",       ["red", "bold"]),
    ("error",        ["red"]),
    ("ambiguous",    ["yellow", "bold"]),
    ("unstable",     ["yellow", "bold"]),
    ("unknown",      ["yellow"]),
    ("preserved",    ["blue"]),
    ("unchanged",    ["dim"]),
    ("skipped",      ["dim"]),
    ("modified",     ["green"]),
    ("would modify", ["green"]),
    ("clean",        ["green"]),
]


def _auto_color_value(value: str) -> str:
    """Apply color to *value* if it matches a known status pattern."""
    lower = value.lower().strip()
    for pattern, styles in _VALUE_COLORS:
        if pattern in lower:
            return C.wrap(value, *styles)
    return value


def _visible_len(text: str) -> int:
    """Return the display width of *text*, ignoring ANSI codes."""
    return len(C.strip(str(text)))

# ---------------------------------------------------------------------------
# 1. format_table
# ---------------------------------------------------------------------------

def format_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    title: Optional[str] = None,
) -> str:
    """Render a table with box-drawing characters and auto-width columns.

    Values matching known status patterns are automatically colorized.
    """
    str_rows = [[str(c) for c in row] for row in rows]

    widths = [len(h) for h in headers]
    for row in str_rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(cell))

    def _hline(left: str, mid: str, right: str, fill: str = "─") -> str:
        return left + mid.join(fill * (w + 2) for w in widths) + right

    def _row_str(cells: List[str], color_fn=None) -> str:
        parts = []
        for i, cell in enumerate(cells):
            w = widths[i] if i < len(widths) else 0
            display = color_fn(cell) if color_fn else cell
            parts.append(f" {display}{' ' * (w - len(cell))} ")
        return "│" + "│".join(parts) + "│"

    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    lines.append(_hline("┌", "┬", "┐"))
    lines.append(_row_str(list(headers), lambda c: C.wrap(c, "bold", "cyan")))
    lines.append(_hline("├", "┼", "┤"))
    for row in str_rows:
        lines.append(_row_str(row, _auto_color_value))
    lines.append(_hline("└", "┴", "┘"))
    return "\n".join(lines)

# ---------------------------------------------------------------------------
# 2. format_banner
# ---------------------------------------------------------------------------

_BANNER_STYLES = {
    "ok":      ("green",),
    "warning": ("yellow",),
    "failed":  ("red", "bold"),
    "info":    ("blue",),
}

_BANNER_ICONS = {"ok": "[OK]", "warning": "[!!]", "failed": "[XX]", "info": "[ii]"}


def format_banner(status: str, message: str) -> str:
    """Full-width colored status banner.

    Args:
        status: One of ok, warning, failed, info.
        message: Text to display inside the banner.
    """
    styles = _BANNER_STYLES.get(status.lower(), ("blue",))
    icon = _BANNER_ICONS.get(status.lower(), "[--]")
    width = max(60, len(message) + 12)
    rule = "═" * width
    inner = f"  {icon}  {message}"
    pad = width - _visible_len(inner)
    return "\n".join([
        C.wrap(rule, *styles),
        C.wrap(f"{inner}{' ' * max(pad, 0)}", *styles),
        C.wrap(rule, *styles),
    ])

# ---------------------------------------------------------------------------
# 3. format_kv
# ---------------------------------------------------------------------------

def format_kv(
    pairs: Union[Dict[str, Any], List[Tuple[str, Any]]],
    title: Optional[str] = None,
) -> str:
    """Key-value block with aligned colons and colored values."""
    items = list(pairs.items()) if isinstance(pairs, dict) else list(pairs)
    if not items:
        return ""

    max_key = max(len(str(k)) for k, _ in items)
    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    for key, val in items:
        k_str = str(key).ljust(max_key)
        lines.append(f"  {C.wrap(k_str, 'cyan')} : {_auto_color_value(str(val))}")
    return "\n".join(lines)

# ---------------------------------------------------------------------------
# 4. format_section
# ---------------------------------------------------------------------------

def format_section(title: str, width: int = 60) -> str:
    """Decorated section header with horizontal rules."""
    rule = "─" * width
    return "\n".join([
        C.wrap(rule, "dim"),
        C.wrap(f"  {title}", "bold", "magenta"),
        C.wrap(rule, "dim"),
    ])

# ---------------------------------------------------------------------------
# 5. format_list
# ---------------------------------------------------------------------------

def format_list(items: Sequence[str], numbered: bool = False, bullet: str = "•") -> str:
    """Bulleted or numbered list."""
    lines: List[str] = []
    for i, item in enumerate(items, start=1):
        prefix = f"  {i}." if numbered else f"  {bullet}"
        lines.append(f"{prefix} {_auto_color_value(str(item))}")
    return "\n".join(lines)

# ---------------------------------------------------------------------------
# 6. format_diff
# ---------------------------------------------------------------------------

def format_diff(diff_lines: Iterable[str]) -> str:
    """Colorize unified-diff lines (as produced by difflib.unified_diff)."""
    out: List[str] = []
    for line in diff_lines:
        line = line.rstrip("\r\n")
        if line.startswith(("+++", "---")):
            out.append(C.wrap(line, "bold"))
        elif line.startswith("@@"):
            out.append(C.wrap(line, "cyan"))
        elif line.startswith("+"):
            out.append(C.wrap(line, "green"))
        elif line.startswith("-"):
            out.append(C.wrap(line, "red"))
        else:
            out.append(line)
    return "\n".join(out)

# ---------------------------------------------------------------------------
# 7. CLI integration helpers
# ---------------------------------------------------------------------------

def add_output_flags(parser: argparse.ArgumentParser) -> None:
    """Add the ``--json`` / ``--human`` output switches to a parser.

    Human output is the default; ``--human`` is accepted for symmetry
    with the other tools.
    """
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--json", action="store_true", default=False,
                       help="Machine-readable JSON output")
    group.add_argument("--human", action="store_true", default=False,
                       help="Colorized terminal output (default)")


def should_use_json(args: argparse.Namespace) -> bool:
    """Return True if the ``--json`` flag is set on *args*."""
    return bool(getattr(args, "json", False))
