#!/usr/bin/env python3
# CUI // SP-CTI
# Controlled by: Department of Defense
# CUI Category: CTI
# Distribution: D -- Authorized DoD Personnel Only
# POC: ICDEV System Administrator
"""Codemod Runner — batch orchestrator and CLI for the codemod engine.

One invocation is one independent batch job with a strictly sequential
state machine:

    Discover -> Extract/Rewrite (every file) -> WriteBack -> Report

process_file() is a pure function of (path, catalog, settings): it reads
one file and returns a FileResult with the rewritten buffer, touching
nothing on disk. Failures inside it are contained to that file. Only a
catalog or configuration error aborts the run (exit status 2); any
ambiguous, failed or undiscoverable input yields exit status 1 after the
summary has been printed.

Usage:
    python tools/codemod/codemod_runner.py --root src --dry-run --diff
    python tools/codemod/codemod_runner.py --root src --type-check --progress-log --json
"""

import argparse
import difflib
import json
import logging
import sys
import textwrap
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR))

from tools.cli.output_formatter import add_output_flags, format_diff, should_use_json  # noqa: E402
from tools.codemod.config import CodemodSettings, load_settings  # noqa: E402
from tools.codemod.errors import (  # noqa: E402
    CatalogError,
    ConfigurationError,
    ExtractionAmbiguity,
    WriteError,
)
from tools.codemod.file_discovery import discover_files  # noqa: E402
from tools.codemod.pattern_catalog import PatternCatalog, load_catalog  # noqa: E402
from tools.codemod.rule_engine import rewrite_until_stable  # noqa: E402
from tools.codemod.run_report import RunReport, append_progress_log  # noqa: E402
from tools.codemod.type_check import try_type_check  # noqa: E402
from tools.codemod.write_back import SourceFile, load_source, write_source  # noqa: E402
from tools.compat.platform_utils import to_posix_relative  # noqa: E402

logger = logging.getLogger("codemod.runner")

CUI_BANNER = "CUI // SP-CTI"

STATUS_MODIFIED = "modified"
STATUS_UNCHANGED = "unchanged"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_FAILED = "failed"


@dataclass
class FileResult:
    """Outcome of extracting and rewriting one file (nothing written yet)."""
    path: str
    rel_path: str
    status: str
    source: Optional[SourceFile] = None
    hits: Counter = field(default_factory=Counter)
    preserved: int = 0
    notes: List[str] = field(default_factory=list)
    passes: int = 0
    error: str = ""

    def unified_diff(self) -> List[str]:
        if self.source is None or not self.source.modified:
            return []
        return list(difflib.unified_diff(
            self.source.original_text.splitlines(keepends=True),
            self.source.text.splitlines(keepends=True),
            fromfile=f"a/{self.rel_path}",
            tofile=f"b/{self.rel_path}",
        ))

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status,
            "hits": dict(self.hits),
            "preserved": self.preserved,
            "notes": list(self.notes),
            "passes": self.passes,
            "error": self.error,
        }


def process_file(path: str, catalog: PatternCatalog, settings: CodemodSettings) -> FileResult:
    """Extract and rewrite one file in memory. Never raises."""
    rel_path = to_posix_relative(path, settings.project_dir)
    try:
        source = load_source(path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("%s: cannot read: %s", rel_path, exc)
        return FileResult(path, rel_path, STATUS_FAILED, error=f"cannot read: {exc}")

    try:
        rewritten = rewrite_until_stable(
            source.text,
            catalog,
            rel_path=rel_path,
            max_passes=settings.max_passes,
            allow_ambiguous=settings.rewrite_ambiguous_files,
            newline=source.newline,
        )
    except ExtractionAmbiguity as exc:
        logger.warning("%s: left untouched: %s", rel_path, exc)
        return FileResult(path, rel_path, STATUS_AMBIGUOUS, source=source, error=str(exc))
    except Exception as exc:  # contained to this file
        logger.exception("%s: rewrite failed", rel_path)
        return FileResult(path, rel_path, STATUS_FAILED, source=source,
                          error=f"{type(exc).__name__}: {exc}")

    source.text = rewritten.text
    return FileResult(
        path=path,
        rel_path=rel_path,
        status=STATUS_MODIFIED if source.modified else STATUS_UNCHANGED,
        source=source,
        hits=rewritten.hits,
        preserved=rewritten.preserved,
        notes=rewritten.notes,
        passes=rewritten.passes,
    )


def run_codemod(settings: CodemodSettings,
                catalog: Optional[PatternCatalog] = None) -> Tuple[RunReport, List[FileResult]]:
    """Run one complete batch and return the report plus per-file results.

    Raises:
        CatalogError: the catalog cannot be loaded or is invalid.
    """
    started = time.monotonic()
    if catalog is None:
        catalog = load_catalog(settings.catalog_path)

    report = RunReport(dry_run=settings.dry_run, type_check_requested=settings.type_check_enabled)

    # Discover
    discovery = discover_files(
        settings.roots,
        extensions=settings.extensions,
        exclude_dirs=settings.exclude_dirs or None,
        max_file_size=settings.max_file_size,
        priority_files=settings.priority_files,
    )
    for err in discovery.errors:
        report.record_discovery_error(err.path, str(err))

    if settings.type_check_enabled:
        report.error_count_before = try_type_check(
            settings.type_check_command, cwd=settings.type_check_cwd,
            error_pattern=settings.error_pattern, timeout=settings.type_check_timeout,
        )

    # Extract + Rewrite
    results: List[FileResult] = []
    for path in discovery.files:
        report.record_scanned()
        result = process_file(path, catalog, settings)
        report.record_notes(result.rel_path, result.notes)
        results.append(result)

    # WriteBack
    for result in results:
        if result.status == STATUS_AMBIGUOUS:
            report.record_ambiguous(result.rel_path, result.error)
        elif result.status == STATUS_FAILED:
            report.record_failed(result.rel_path, result.error)
        elif result.status == STATUS_UNCHANGED:
            report.record_unchanged(result.preserved)
        else:
            if not settings.dry_run:
                try:
                    write_source(result.source)
                except WriteError as exc:
                    logger.error("%s: %s", result.rel_path, exc)
                    result.status = STATUS_FAILED
                    result.error = str(exc)
                    report.record_failed(result.rel_path, str(exc))
                    continue
            report.record_modified(result.rel_path, result.hits, result.preserved)

    # Report
    if settings.type_check_enabled and not settings.dry_run:
        report.error_count_after = try_type_check(
            settings.type_check_command, cwd=settings.type_check_cwd,
            error_pattern=settings.error_pattern, timeout=settings.type_check_timeout,
        )
    elif settings.type_check_enabled:
        report.error_count_after = report.error_count_before

    if settings.progress_log_enabled and not settings.dry_run:
        try:
            append_progress_log(settings.progress_log_path, report)
        except OSError as exc:
            logger.error("Cannot append progress log %s: %s", settings.progress_log_path, exc)

    report.elapsed_seconds = time.monotonic() - started
    logger.info("Scanned %d file(s), modified %d, ambiguous %d, failed %d",
                report.files_scanned, report.files_modified,
                len(report.ambiguous_files), len(report.failed_files))
    return report, results


def _split_extensions(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [e.strip() for e in value.split(",") if e.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rewrite outdated frontend API usage in place using the pattern catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(f"""\
            Examples:
              python tools/codemod/codemod_runner.py --root src --dry-run --diff
              python tools/codemod/codemod_runner.py --root src --root app \\
                --ext .ts,.tsx --type-check --progress-log --json

            Exit status: 0 clean, 1 ambiguous/failed files, 2 invalid catalog or config.

            {CUI_BANNER}
        """),
    )
    parser.add_argument("--root", action="append", dest="roots",
                        help="Root directory or file to scan (repeatable, default: src)")
    parser.add_argument("--ext", help="Comma-separated extensions (default: .ts,.tsx,.js,.jsx)")
    parser.add_argument("--project-dir", help="Directory relative paths resolve against (default: cwd)")
    parser.add_argument("--config", help="Path to codemod_config.yaml")
    parser.add_argument("--catalog", help="Path to the pattern catalog (.json/.yaml)")
    parser.add_argument("--max-passes", type=int, help="Rewrite passes before a file is flagged")
    parser.add_argument("--dry-run", action="store_true", help="Compute rewrites without writing")
    parser.add_argument("--diff", action="store_true", help="Print a unified diff of each rewrite")
    parser.add_argument("--allow-ambiguous", action="store_true", default=None,
                        help="Rewrite files even when some regions could not be classified")
    parser.add_argument("--type-check", action="store_true", default=None,
                        help="Run the type checker before and after for an error delta")
    parser.add_argument("--progress-log", action="store_true", default=None,
                        help="Append a row to the Markdown progress log")
    parser.add_argument("--progress-log-path", help="Progress log location")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    add_output_flags(parser)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    use_json = should_use_json(args)

    try:
        settings = load_settings(
            args.config,
            project_dir=args.project_dir,
            roots=args.roots,
            extensions=_split_extensions(args.ext),
            catalog_path=args.catalog,
            max_passes=args.max_passes,
            dry_run=args.dry_run,
            show_diff=args.diff,
            rewrite_ambiguous_files=args.allow_ambiguous,
            type_check_enabled=args.type_check,
            progress_log_enabled=args.progress_log,
            progress_log_path=args.progress_log_path,
        )
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
        logger.error("Invalid configuration: %s", exc)
        if use_json:
            print(json.dumps({"error": str(exc), "exit_code": 2}, indent=2))
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format=settings.log_format,
    )

    try:
        report, results = run_codemod(settings)
    except CatalogError as exc:
        logger.error("Invalid pattern catalog: %s", exc)
        if use_json:
            print(json.dumps({"error": str(exc), "rule_id": exc.rule_id, "exit_code": 2}, indent=2))
        else:
            print(f"Invalid pattern catalog: {exc}", file=sys.stderr)
        return 2

    if use_json:
        payload = report.to_dict()
        payload["classification"] = CUI_BANNER
        if settings.show_diff:
            payload["diffs"] = {r.rel_path: "".join(r.unified_diff()) for r in results if r.unified_diff()}
        print(json.dumps(payload, indent=2))
    else:
        if settings.show_diff:
            for result in results:
                diff = result.unified_diff()
                if diff:
                    print(format_diff(diff))
                    print()
        print(report.render_summary())

    return report.exit_code()


if __name__ == "__main__":
    sys.exit(main())
