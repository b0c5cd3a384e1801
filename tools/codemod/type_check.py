#!/usr/bin/env python3
# CUI // SP-CTI
"""External type-check invocation for before/after diagnostic counts.

The checker is opaque: it is run as a subprocess and the number of
matches of ``error_pattern`` in its combined output is the diagnostic
count. A non-zero exit status is expected when diagnostics exist and is
not a failure. Failure to launch, a timeout, or output that contains
neither a match nor a clean exit raises ExternalCheckUnavailable; the
orchestrator reports the count as unknown.
"""

import logging
import re
import subprocess
from typing import Optional, Sequence

from tools.codemod.errors import ExternalCheckUnavailable
from tools.compat.platform_utils import resolve_node_command

logger = logging.getLogger("codemod.type_check")

DEFAULT_COMMAND = ("npx", "tsc", "--noEmit")
DEFAULT_ERROR_PATTERN = r"error TS\d+"


def count_diagnostics(output: str, error_pattern: str = DEFAULT_ERROR_PATTERN) -> int:
    """Count diagnostic lines in checker output."""
    return len(re.findall(error_pattern, output))


def run_type_check(command: Optional[Sequence[str]] = None, cwd: Optional[str] = None,
                   error_pattern: str = DEFAULT_ERROR_PATTERN, timeout: int = 300) -> int:
    """Run the type checker once and return its diagnostic count.

    Raises:
        ExternalCheckUnavailable: the command could not be started, timed
            out, or failed without producing any recognisable diagnostic.
    """
    cmd = resolve_node_command(command or DEFAULT_COMMAND)
    logger.info("Running type check: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise ExternalCheckUnavailable(f"Type checker not found: {cmd[0]}", command=cmd) from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalCheckUnavailable(f"Type check timed out after {timeout}s", command=cmd) from exc
    except OSError as exc:
        raise ExternalCheckUnavailable(f"Type check could not start: {exc}", command=cmd) from exc

    output = (proc.stdout or "") + (proc.stderr or "")
    count = count_diagnostics(output, error_pattern)
    if proc.returncode != 0 and count == 0:
        tail = output.strip().splitlines()[-1:] or ["<no output>"]
        raise ExternalCheckUnavailable(
            f"Type check exited {proc.returncode} without diagnostics: {tail[0][:200]}",
            command=cmd,
        )
    logger.info("Type check reported %d diagnostic(s)", count)
    return count


def try_type_check(command=None, cwd=None, error_pattern: str = DEFAULT_ERROR_PATTERN,
                   timeout: int = 300) -> Optional[int]:
    """run_type_check() that degrades to None ("unknown") instead of raising."""
    try:
        return run_type_check(command, cwd=cwd, error_pattern=error_pattern, timeout=timeout)
    except ExternalCheckUnavailable as exc:
        logger.warning("Diagnostic count unknown: %s", exc)
        return None
