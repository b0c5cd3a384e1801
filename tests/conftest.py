#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the codemod test suite.

Project-root conftest.py centralizes catalog construction and throwaway
frontend project trees so individual test files do not rebuild them.
"""

import json
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from tools.codemod.pattern_catalog import catalog_from_dict  # noqa: E402


# ---------------------------------------------------------------------------
# Minimal catalog (subset of context/codemod/pattern_catalog.json)
# ---------------------------------------------------------------------------
MINIMAL_CATALOG = {
    "version": "test",
    "rules": [
        {"id": "prop-isOpen", "scope": "prop", "from": "isOpen", "to": "open", "applies_to": "all"},
        {"id": "prop-isLoading", "scope": "prop", "from": "isLoading", "to": "loading", "applies_to": "all"},
        {"id": "prop-stack-spacing", "scope": "prop", "from": "spacing", "to": "gap",
         "applies_to": ["Stack", "HStack", "VStack"]},
        {"id": "import-grid", "scope": "import", "from": "pkg", "to": "pkg/grid",
         "applies_to": ["Grid", "GridItem"]},
        {"id": "icon-check", "scope": "identifier", "from": "CheckIcon", "to": "Check",
         "applies_to": ["@chakra-ui/icons"], "to_module": "lucide-react"},
        {"id": "icon-close", "scope": "identifier", "from": "CloseIcon", "to": "X",
         "applies_to": ["@chakra-ui/icons"], "to_module": "lucide-react"},
    ],
    "exclusions": [
        {"component": "Modal", "prop": "isOpen"},
        {"component": "NotificationList", "prop": "isLoading"},
    ],
    "self_closing": ["Spinner", "Input"],
    "patches": [
        {
            "id": "provider-value",
            "files": ["**/app/providers.tsx"],
            "find": "<ChakraProvider theme={theme}>",
            "replace": "<ChakraProvider theme={theme} value={{}}>",
        },
    ],
}

WELL_FORMED_COMPONENT = """import React from 'react';
import {{ Grid, GridItem, Box }} from 'pkg';

export function Panel{index}({{ open }}) {{
  return (
    <Box isOpen={{open}} onIsOpenChange={{() => {{}}}}>
      <Grid isLoading={{false}}>
        <GridItem />
      </Grid>
    </Box>
  );
}}
"""

UNBALANCED_COMPONENT = """import { Box } from 'pkg';

export function Broken() {
  return (
    <Box isOpen={open}>
      {items.map((item) => (
        <span>{item}</span>
    </Box>
  );
"""


@pytest.fixture
def catalog_data():
    """Fresh, mutable copy of the minimal catalog dict."""
    return json.loads(json.dumps(MINIMAL_CATALOG))


@pytest.fixture
def catalog(catalog_data):
    """Validated PatternCatalog built from the minimal catalog."""
    return catalog_from_dict(catalog_data, source_path="<test>")


@pytest.fixture
def catalog_file(tmp_path, catalog_data):
    """Minimal catalog written as JSON under tmp_path."""
    path = tmp_path / "pattern_catalog.json"
    path.write_text(json.dumps(catalog_data, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def make_project(tmp_path):
    """Factory: make_project({"src/a.tsx": "..."}) -> project root Path."""

    def _make(files):
        root = tmp_path / "project"
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        (root / "src").mkdir(parents=True, exist_ok=True)
        return root

    return _make


@pytest.fixture
def ten_file_project(make_project):
    """Nine well-formed components plus one with unbalanced braces."""
    files = {f"src/components/Panel{i}.tsx": WELL_FORMED_COMPONENT.format(index=i) for i in range(9)}
    files["src/components/Broken.tsx"] = UNBALANCED_COMPONENT
    return make_project(files)
