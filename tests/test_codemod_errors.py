# CUI // SP-CTI
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

"""Tests for tools.codemod.errors — structured exception hierarchy."""

import pytest

from tools.codemod.errors import (
    CatalogError,
    CodemodError,
    ConfigurationError,
    DeclarationParseError,
    DiscoveryError,
    ExternalCheckUnavailable,
    ExtractionAmbiguity,
    WriteError,
)


class TestHierarchy:
    """Every codemod error derives from CodemodError."""

    @pytest.mark.parametrize("cls", [
        DiscoveryError, ExtractionAmbiguity, WriteError,
        DeclarationParseError, CatalogError, ConfigurationError,
    ])
    def test_subclass_of_base(self, cls):
        assert issubclass(cls, CodemodError)
        assert issubclass(cls, Exception)

    def test_external_check_is_codemod_error(self):
        err = ExternalCheckUnavailable("tsc missing", command=["npx", "tsc"])
        assert isinstance(err, CodemodError)
        assert err.command == ["npx", "tsc"]

    def test_catch_by_base(self):
        with pytest.raises(CodemodError):
            raise WriteError("read-only", path="src/a.tsx")


class TestFatalFlag:
    """Only catalog and configuration errors end a run."""

    def test_catalog_error_is_fatal(self):
        err = CatalogError("bad rule", rule_id="p1")
        assert err.fatal is True
        assert err.rule_id == "p1"

    def test_configuration_error_is_fatal(self):
        err = ConfigurationError("bad section", config_key="codemod")
        assert err.fatal is True
        assert err.config_key == "codemod"

    @pytest.mark.parametrize("err", [
        DiscoveryError("missing", path="src"),
        ExtractionAmbiguity("unbalanced", path="a.tsx"),
        WriteError("denied", path="a.tsx"),
        DeclarationParseError("unbalanced", path="x.d.ts"),
        ExternalCheckUnavailable("timeout"),
    ])
    def test_per_file_errors_not_fatal(self, err):
        assert err.fatal is False


class TestAttributes:
    """Error payloads survive construction."""

    def test_message_and_path(self):
        err = DiscoveryError("Root does not exist: src", path="src")
        assert str(err) == "Root does not exist: src"
        assert err.path == "src"

    def test_ambiguity_spans_copied(self):
        spans = [(0, 5, "unclosed '{'")]
        err = ExtractionAmbiguity("1 region", spans=spans)
        spans.append((9, 10, "x"))
        assert err.spans == [(0, 5, "unclosed '{'")]

    def test_ambiguity_default_spans(self):
        assert ExtractionAmbiguity("x").spans == []
