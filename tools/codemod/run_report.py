#!/usr/bin/env python3
# CUI // SP-CTI
"""Run Report — aggregate per-run statistics and render them.

A RunReport is created once per batch, filled in by the orchestrator as
files are processed (single writer) and emitted once at the end, either
as JSON or as a human summary. The only cross-run persistence is an
optional row appended to a Markdown progress log.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from tools.cli.output_formatter import (
    format_banner,
    format_kv,
    format_list,
    format_section,
    format_table,
)

logger = logging.getLogger("codemod.report")

PROGRESS_LOG_HEADER = (
    "# TypeScript Error Reduction Progress\n"
    "\n"
    "| Session | Errors Before | Errors After | Reduction | Percent |\n"
    "|---------|---------------|--------------|-----------|---------|\n"
)
_SESSION_RE = re.compile(r"^\|\s*Session\s+(\d+)\s*\|", re.MULTILINE)


@dataclass
class FileIssue:
    path: str
    reason: str

    def to_dict(self) -> dict:
        return {"path": self.path, "reason": self.reason}


@dataclass
class RunReport:
    """Aggregate statistics for one codemod run."""
    files_scanned: int = 0
    files_modified: int = 0
    per_rule_hits: Counter = field(default_factory=Counter)
    exclusions_preserved: int = 0
    error_count_before: Optional[int] = None
    error_count_after: Optional[int] = None
    modified_files: List[str] = field(default_factory=list)
    ambiguous_files: List[FileIssue] = field(default_factory=list)
    failed_files: List[FileIssue] = field(default_factory=list)
    discovery_errors: List[FileIssue] = field(default_factory=list)
    notes: Dict[str, List[str]] = field(default_factory=dict)
    dry_run: bool = False
    type_check_requested: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    elapsed_seconds: float = 0.0

    # -- recording --------------------------------------------------------

    def record_scanned(self):
        self.files_scanned += 1

    def record_modified(self, path: str, hits: Counter, preserved: int = 0):
        self.files_modified += 1
        self.modified_files.append(path)
        self.per_rule_hits.update(hits)
        self.exclusions_preserved += preserved

    def record_unchanged(self, preserved: int = 0):
        self.exclusions_preserved += preserved

    def record_ambiguous(self, path: str, reason: str):
        self.ambiguous_files.append(FileIssue(path, reason))

    def record_failed(self, path: str, reason: str):
        self.failed_files.append(FileIssue(path, reason))

    def record_discovery_error(self, path: str, reason: str):
        self.discovery_errors.append(FileIssue(path, reason))

    def record_notes(self, path: str, notes: List[str]):
        if notes:
            self.notes.setdefault(path, []).extend(notes)

    # -- derived ----------------------------------------------------------

    @property
    def delta(self) -> Optional[int]:
        """errors_before - errors_after, or None when either count is unknown."""
        if self.error_count_before is None or self.error_count_after is None:
            return None
        return self.error_count_before - self.error_count_after

    @property
    def percent_reduction(self) -> Optional[float]:
        if self.delta is None or not self.error_count_before:
            return None
        return round(self.delta / self.error_count_before * 100, 1)

    @property
    def has_failures(self) -> bool:
        return bool(self.ambiguous_files or self.failed_files or self.discovery_errors)

    def exit_code(self) -> int:
        """0 when every file was handled cleanly, 1 otherwise."""
        return 1 if self.has_failures else 0

    def to_dict(self) -> dict:
        return {
            "files_scanned": self.files_scanned,
            "files_modified": self.files_modified,
            "per_rule_hits": dict(sorted(self.per_rule_hits.items())),
            "exclusions_preserved": self.exclusions_preserved,
            "error_count_before": self.error_count_before,
            "error_count_after": self.error_count_after,
            "delta": self.delta,
            "percent_reduction": self.percent_reduction,
            "modified_files": list(self.modified_files),
            "ambiguous_files": [i.to_dict() for i in self.ambiguous_files],
            "failed_files": [i.to_dict() for i in self.failed_files],
            "discovery_errors": [i.to_dict() for i in self.discovery_errors],
            "notes": dict(self.notes),
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "exit_code": self.exit_code(),
        }

    # -- rendering --------------------------------------------------------

    def _count_label(self, value: Optional[int]) -> str:
        if value is None:
            return "unknown" if self.type_check_requested else "not run"
        return str(value)

    def render_summary(self) -> str:
        """Human-readable summary. Skipped and failed files are listed separately."""
        modified_label = "Files that would be modified" if self.dry_run else "Files modified"
        pairs = [
            ("Files scanned", self.files_scanned),
            (modified_label, self.files_modified),
            ("Ambiguous (skipped)", len(self.ambiguous_files)),
            ("Failed", len(self.failed_files)),
            ("Exclusions preserved", self.exclusions_preserved),
            ("Errors before", self._count_label(self.error_count_before)),
            ("Errors after", self._count_label(self.error_count_after)),
        ]
        if self.delta is not None:
            pct = self.percent_reduction
            pairs.append(("Reduction", f"{self.delta}" + (f" ({pct}%)" if pct is not None else "")))

        parts = [format_section("Codemod Run Summary"), format_kv(pairs)]

        if self.per_rule_hits:
            rows = [(rule_id, count) for rule_id, count in sorted(
                self.per_rule_hits.items(), key=lambda kv: (-kv[1], kv[0]))]
            parts.append(format_table(["Rule", "Hits"], rows, title="Rule hits"))

        if self.ambiguous_files:
            parts.append(format_section("Ambiguous files (left untouched)"))
            parts.append(format_list([f"{i.path}: ambiguous, {i.reason}" for i in self.ambiguous_files]))
        if self.failed_files:
            parts.append(format_section("Failed files"))
            parts.append(format_list([f"{i.path}: failed, {i.reason}" for i in self.failed_files]))
        if self.discovery_errors:
            parts.append(format_section("Discovery errors"))
            parts.append(format_list([f"{i.path}: error, {i.reason}" for i in self.discovery_errors]))

        if self.has_failures:
            parts.append(format_banner("failed", "Run finished with files needing manual review"))
        elif self.dry_run:
            parts.append(format_banner("info", "Dry run: no files were written"))
        else:
            parts.append(format_banner("ok", "Run finished cleanly"))
        return "\n\n".join(p for p in parts if p)


# ---------------------------------------------------------------------------
# Progress log
# ---------------------------------------------------------------------------

def next_session_number(log_text: str) -> int:
    numbers = [int(n) for n in _SESSION_RE.findall(log_text)]
    return max(numbers) + 1 if numbers else 1


def format_progress_row(session: int, before: Optional[int], after: Optional[int]) -> str:
    def _fmt(value):
        return "unknown" if value is None else str(value)

    if before is None or after is None:
        reduction, pct = "unknown", "unknown"
    else:
        reduction = str(before - after)
        pct = f"{(before - after) / before * 100:.1f}%" if before else "0.0%"
    return f"| Session {session} | {_fmt(before)} | {_fmt(after)} | {reduction} | {pct} |"


def append_progress_log(path: str, report: RunReport) -> str:
    """Append one session row to the Markdown progress log. Returns the row.

    The file and its table header are created on first use.
    """
    log_path = Path(path)
    existing = log_path.read_text(encoding="utf-8") if log_path.exists() else ""
    row = format_progress_row(
        next_session_number(existing), report.error_count_before, report.error_count_after
    )
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "a", encoding="utf-8") as f:
        if not existing:
            f.write(PROGRESS_LOG_HEADER)
        elif not existing.endswith("\n"):
            f.write("\n")
        f.write(row + "\n")
    logger.info("Appended progress row to %s: %s", log_path, row)
    return row
