# CUI // SP-CTI
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

"""Tests for tools.codemod.type_check — external diagnostic counting."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from tools.codemod.errors import ExternalCheckUnavailable
from tools.codemod.type_check import count_diagnostics, run_type_check, try_type_check

TSC_OUTPUT = (
    "src/a.tsx(3,5): error TS2322: Type 'string' is not assignable to type 'number'.\n"
    "src/b.tsx(10,1): error TS2304: Cannot find name 'Foo'.\n"
    "src/c.tsx(1,1): error TS7016: Could not find a declaration file.\n"
)


def _completed(returncode=0, stdout="", stderr=""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.stdout = stdout
    proc.stderr = stderr
    return proc


class TestCountDiagnostics:
    """count_diagnostics: pattern matching over checker output."""

    def test_counts_tsc_errors(self):
        assert count_diagnostics(TSC_OUTPUT) == 3

    def test_custom_pattern(self):
        assert count_diagnostics("E1\nE2\nwarn\n", r"^E\d") == 1
        assert count_diagnostics("E1 E2", r"E\d") == 2

    def test_empty_output(self):
        assert count_diagnostics("") == 0


class TestRunTypeCheck:
    """run_type_check: subprocess outcomes."""

    @patch("tools.codemod.type_check.subprocess.run")
    def test_nonzero_exit_with_diagnostics(self, mock_run):
        mock_run.return_value = _completed(2, stdout=TSC_OUTPUT)
        assert run_type_check(["npx", "tsc", "--noEmit"], cwd="/tmp") == 3
        args, kwargs = mock_run.call_args
        assert kwargs["cwd"] == "/tmp"
        assert kwargs["timeout"] == 300

    @patch("tools.codemod.type_check.subprocess.run")
    def test_clean_run(self, mock_run):
        mock_run.return_value = _completed(0, stdout="")
        assert run_type_check(["tsc"]) == 0

    @patch("tools.codemod.type_check.subprocess.run")
    def test_stderr_is_counted(self, mock_run):
        mock_run.return_value = _completed(1, stderr=TSC_OUTPUT)
        assert run_type_check(["tsc"]) == 3

    @patch("tools.codemod.type_check.subprocess.run")
    def test_failure_without_diagnostics(self, mock_run):
        mock_run.return_value = _completed(1, stderr="sh: tsc: command not found\n")
        with pytest.raises(ExternalCheckUnavailable, match="without diagnostics"):
            run_type_check(["tsc"])

    @patch("tools.codemod.type_check.subprocess.run", side_effect=FileNotFoundError("npx"))
    def test_missing_binary(self, mock_run):
        with pytest.raises(ExternalCheckUnavailable) as exc_info:
            run_type_check(["npx", "tsc"])
        assert exc_info.value.command[-1] == "tsc"

    @patch("tools.codemod.type_check.subprocess.run",
           side_effect=subprocess.TimeoutExpired(cmd="tsc", timeout=5))
    def test_timeout(self, mock_run):
        with pytest.raises(ExternalCheckUnavailable, match="timed out"):
            run_type_check(["tsc"], timeout=5)


class TestTryTypeCheck:
    """try_type_check: degrade to None instead of raising."""

    @patch("tools.codemod.type_check.subprocess.run", side_effect=OSError("denied"))
    def test_unknown_on_failure(self, mock_run):
        assert try_type_check(["tsc"]) is None

    @patch("tools.codemod.type_check.subprocess.run")
    def test_count_on_success(self, mock_run):
        mock_run.return_value = _completed(2, stdout=TSC_OUTPUT)
        assert try_type_check(["tsc"]) == 3
