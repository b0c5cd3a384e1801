#!/usr/bin/env python3
# CUI // SP-CTI
"""Codemod Engine — Structured Exception Hierarchy.

Every error carries the path it concerns and a ``fatal`` flag. Per-file
errors are caught at the file boundary by the orchestrator; only fatal
errors (catalog and configuration problems) end a run.

Usage:
    from tools.codemod.errors import CatalogError, ExtractionAmbiguity

    raise CatalogError("rule 'p1' renames isOpen to itself", rule_id="p1")
"""


class CodemodError(Exception):
    """Base exception for all codemod errors.

    Attributes:
        path: File or directory the error concerns ("" when not file-bound).
        fatal: Whether the error must abort the whole run.
    """

    def __init__(self, message: str, path: str = "", fatal: bool = False):
        super().__init__(message)
        self.path = path
        self.fatal = fatal


class DiscoveryError(CodemodError):
    """A configured root does not exist or cannot be read.

    Non-fatal: the root is skipped and discovery continues.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message, path=path, fatal=False)


class ExtractionAmbiguity(CodemodError):
    """A file region could not be classified safely.

    Raised when the extractor reported skipped spans (unbalanced brackets,
    truncated tags) or when rewriting does not converge. The file is left
    untouched and flagged in the run report.

    Attributes:
        spans: List of (start, end, reason) tuples for the unclassified regions.
    """

    def __init__(self, message: str, path: str = "", spans=None):
        super().__init__(message, path=path, fatal=False)
        self.spans = list(spans or [])


class WriteError(CodemodError):
    """Rewritten text could not be written back (permissions, file vanished)."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message, path=path, fatal=False)


class ExternalCheckUnavailable(CodemodError):
    """The type-check subprocess could not run or its output was unusable.

    Attributes:
        command: The command line that was attempted.
    """

    def __init__(self, message: str, command=None):
        super().__init__(message, fatal=False)
        self.command = list(command or [])


class DeclarationParseError(CodemodError):
    """An existing declarations file has no locatable merge points."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message, path=path, fatal=False)


class CatalogError(CodemodError):
    """The pattern catalog is structurally invalid. Always fatal.

    Attributes:
        rule_id: Identifier of the offending rule, when one can be named.
    """

    def __init__(self, message: str, path: str = "", rule_id: str = ""):
        super().__init__(message, path=path, fatal=True)
        self.rule_id = rule_id


class ConfigurationError(CodemodError):
    """Configuration file missing required structure. Always fatal."""

    def __init__(self, message: str, path: str = "", config_key: str = ""):
        super().__init__(message, path=path, fatal=True)
        self.config_key = config_key
