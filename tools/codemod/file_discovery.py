#!/usr/bin/env python3
# CUI // SP-CTI
"""File Discovery — enumerate candidate source files for a codemod run.

Walks one or more roots and returns absolute paths of files whose
extension matches the filter. Dependency and build directories, dot
directories and dotfiles are skipped. Symlinked directories are never
entered and symlinked files are never returned, so a linked dependency
tree cannot be rewritten by accident.

A root that does not exist or cannot be read is recorded as a
DiscoveryError and skipped; discovery continues with the other roots.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from tools.codemod.errors import DiscoveryError

logger = logging.getLogger("codemod.discovery")

DEFAULT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

EXCLUDE_DIRS = {
    "node_modules", ".next", "dist", "build", "out", "coverage",
    "public", ".git", ".turbo", ".cache",
}


@dataclass
class DiscoveryResult:
    """Ordered, de-duplicated file list plus per-root errors."""
    files: List[str] = field(default_factory=list)
    errors: List[DiscoveryError] = field(default_factory=list)
    skipped_large: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "files": list(self.files),
            "errors": [{"path": e.path, "message": str(e)} for e in self.errors],
            "skipped_large": list(self.skipped_large),
        }


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _accept_file(path: Path, extensions, max_file_size, result: DiscoveryResult) -> bool:
    if _is_hidden(path.name) or path.is_symlink():
        return False
    if path.suffix not in extensions:
        return False
    # .d.ts files are declarations, not rewrite targets
    if path.name.endswith(".d.ts"):
        return False
    try:
        size = path.stat().st_size
    except OSError as exc:
        logger.warning("Cannot stat %s: %s", path, exc)
        return False
    if max_file_size and size > max_file_size:
        logger.info("Skipping %s (%d bytes > %d)", path, size, max_file_size)
        result.skipped_large.append(str(path))
        return False
    return True


def _walk_root(root: Path, extensions, exclude_dirs, max_file_size, result: DiscoveryResult):
    walk_errors = []

    def _on_error(err):
        walk_errors.append(err)

    found = []
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False, onerror=_on_error):
        current = Path(dirpath)
        # Prune in place so os.walk never descends into excluded trees
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in exclude_dirs and not _is_hidden(d) and not (current / d).is_symlink()
        )
        for name in sorted(filenames):
            fpath = current / name
            if _accept_file(fpath, extensions, max_file_size, result):
                found.append(str(fpath.resolve()))

    for err in walk_errors:
        # An unreadable subdirectory is logged; only the root itself is a DiscoveryError
        if Path(getattr(err, "filename", "") or "") == root:
            result.errors.append(DiscoveryError(f"Cannot read root: {err}", path=str(root)))
        else:
            logger.warning("Skipping unreadable directory: %s", err)
    return found


def discover_files(
    roots: Iterable[str],
    extensions: Optional[Iterable[str]] = None,
    exclude_dirs: Optional[Iterable[str]] = None,
    max_file_size: int = 500000,
    priority_files: Optional[Iterable[str]] = None,
) -> DiscoveryResult:
    """Enumerate source files under roots.

    Args:
        roots: Directories (or single files) to scan.
        extensions: Allowed suffixes, e.g. [".ts", ".tsx"].
        exclude_dirs: Directory names pruned anywhere in the tree.
        max_file_size: Files larger than this many bytes are skipped.
        priority_files: Paths moved to the front of the result, in order,
            when they were discovered.

    Returns:
        DiscoveryResult with absolute, de-duplicated paths. Order is
        priority files first, then each root's files sorted by path.
    """
    roots = list(roots)
    exts = tuple(extensions or DEFAULT_EXTENSIONS)
    excluded = set(EXCLUDE_DIRS if exclude_dirs is None else exclude_dirs)
    result = DiscoveryResult()
    ordered: List[str] = []
    seen = set()

    for raw_root in roots:
        root = Path(raw_root)
        if not root.exists():
            logger.warning("Root does not exist, skipping: %s", root)
            result.errors.append(DiscoveryError(f"Root does not exist: {root}", path=str(root)))
            continue
        if root.is_file():
            candidates = []
            if _accept_file(root, exts, max_file_size, result):
                candidates = [str(root.resolve())]
        elif not os.access(root, os.R_OK | os.X_OK):
            logger.warning("Root is not readable, skipping: %s", root)
            result.errors.append(DiscoveryError(f"Root is not readable: {root}", path=str(root)))
            continue
        else:
            candidates = _walk_root(root.resolve(), exts, excluded, max_file_size, result)

        for path in candidates:
            if path not in seen:
                seen.add(path)
                ordered.append(path)

    front = []
    for raw in priority_files or []:
        resolved = str(Path(raw).resolve())
        if resolved in seen and resolved not in front:
            front.append(resolved)
    front_set = set(front)
    result.files = front + [p for p in ordered if p not in front_set]

    logger.info("Discovered %d file(s) under %d root(s)", len(result.files), len(roots))
    return result
