# CUI // SP-CTI
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

"""Tests for tools.codemod.rule_engine — catalog rules applied to extracted constructs."""

import pytest

from tools.codemod.errors import ExtractionAmbiguity
from tools.codemod.pattern_catalog import catalog_from_dict
from tools.codemod.rule_engine import (
    Replacement,
    apply_replacements,
    detect_newline,
    render_import,
    rewrite,
    rewrite_text,
    rewrite_until_stable,
)
from tools.codemod.construct_extractor import ImportSpecifier


def _imports(text):
    return [line for line in text.splitlines() if line.lstrip().startswith("import ")]


# ---------------------------------------------------------------------------
# Prop renames
# ---------------------------------------------------------------------------

class TestPropRenames:
    """Attribute-name renames with exclusions and tie-breaks."""

    def test_generic_rename(self, catalog):
        assert rewrite("<Button isLoading={saving}>Go</Button>", catalog) == \
            "<Button loading={saving}>Go</Button>"

    def test_value_text_untouched(self, catalog):
        text = "<Box isOpen={isOpen && other.isOpen} />"
        assert rewrite(text, catalog) == "<Box open={isOpen && other.isOpen} />"

    def test_exclusion_precedence(self, catalog):
        text = "<Modal isOpen={x}>\n  <Button isOpen={x} />\n</Modal>\n"
        result = rewrite_until_stable(text, catalog)
        assert "<Modal isOpen={x}>" in result.text
        assert "<Button open={x} />" in result.text
        assert result.preserved == 1

    def test_word_boundary(self, catalog):
        text = "<Modal onIsOpenChange={f} />\n<Box onIsOpenChange={f} isOpenState={s} />\n"
        assert rewrite(text, catalog) == text

    def test_specific_rule_only_on_listed_tags(self, catalog):
        text = "<HStack spacing={2} />\n<Grid spacing={2} />\n"
        out = rewrite(text, catalog)
        assert "<HStack gap={2} />" in out
        assert "<Grid spacing={2} />" in out

    def test_specific_beats_generic(self):
        catalog = catalog_from_dict({"rules": [
            {"id": "generic", "scope": "prop", "from": "spacing", "to": "space"},
            {"id": "stack", "scope": "prop", "from": "spacing", "to": "gap", "applies_to": ["Stack"]},
        ]})
        out = rewrite("<Stack spacing={1} />\n<Box spacing={1} />\n", catalog)
        assert out == "<Stack gap={1} />\n<Box space={1} />\n"

    def test_existing_target_attribute_kept(self, catalog):
        text = "<Button isLoading={a} loading={b} />"
        result = rewrite_until_stable(text, catalog)
        assert result.text == text
        assert any("already has 'loading'" in n for n in result.notes)

    def test_tag_after_slash_between_expressions(self, catalog):
        text = "<Text>{page}/{total} <Button isLoading={x} /></Text>\n"
        assert rewrite(text, catalog) == "<Text>{page}/{total} <Button loading={x} /></Text>\n"

    def test_brackets_in_children_text(self, catalog):
        text = "<Text>Step 1) open the menu :)</Text>\n<Box isOpen={x} />\n"
        result = rewrite_until_stable(text, catalog)
        assert result.text == "<Text>Step 1) open the menu :)</Text>\n<Box open={x} />\n"

    def test_props_in_strings_and_comments_untouched(self, catalog):
        text = "const doc = '<Box isOpen />';\n{/* <Box isOpen /> */}\n"
        assert rewrite(text, catalog) == text

    def test_hits_counted_per_rule(self, catalog):
        text = "<A isOpen />\n<B isOpen />\n<C isLoading />\n"
        result = rewrite_until_stable(text, catalog)
        assert result.hits["prop-isOpen"] == 2
        assert result.hits["prop-isLoading"] == 1


# ---------------------------------------------------------------------------
# Import splitting
# ---------------------------------------------------------------------------

class TestImportRewrites:
    """Import-path moves split statements without dropping symbols."""

    def test_exact_two_statement_split(self, catalog):
        out = rewrite("import { Grid, GridItem, Box } from 'pkg';\n", catalog)
        assert _imports(out) == [
            "import { Box } from 'pkg';",
            "import { Grid, GridItem } from 'pkg/grid';",
        ]

    def test_all_symbols_move(self, catalog):
        out = rewrite("import { Grid, GridItem } from 'pkg';\n", catalog)
        assert _imports(out) == ["import { Grid, GridItem } from 'pkg/grid';"]

    def test_default_import_stays(self, catalog):
        out = rewrite("import Pkg, { Grid } from 'pkg';\n", catalog)
        assert _imports(out) == ["import Pkg from 'pkg';", "import { Grid } from 'pkg/grid';"]

    def test_merge_into_existing_destination(self, catalog):
        text = "import { Grid } from 'pkg/grid';\nimport { GridItem, Box } from 'pkg';\n"
        out = rewrite(text, catalog)
        assert _imports(out) == ["import { Grid, GridItem } from 'pkg/grid';", "import { Box } from 'pkg';"]

    def test_duplicate_symbol_not_repeated(self, catalog):
        text = "import { Grid } from 'pkg/grid';\nimport { Grid, Box } from 'pkg';\n"
        out = rewrite(text, catalog)
        assert out.count("Grid") == 1

    def test_alias_preserved(self, catalog):
        out = rewrite("import { Grid as G, Box } from 'pkg';\n", catalog)
        assert "import { Grid as G } from 'pkg/grid';" in out

    def test_style_preserved(self, catalog):
        text = 'import {\n  Grid,\n  Box,\n} from "pkg"\n'
        out = rewrite(text, catalog)
        assert out == 'import {\n  Box,\n} from "pkg"\nimport {\n  Grid,\n} from "pkg/grid"\n'

    def test_type_only_stays_type_only(self, catalog):
        out = rewrite("import type { Grid, Box } from 'pkg';\n", catalog)
        assert _imports(out) == ["import type { Box } from 'pkg';", "import type { Grid } from 'pkg/grid';"]

    def test_commented_import_left_alone(self, catalog):
        text = "import { Grid, /* keep */ Box } from 'pkg';\n"
        result = rewrite_until_stable(text, catalog)
        assert result.text == text
        assert result.notes

    def test_crlf_newlines(self, catalog):
        text = "import { Grid, Box } from 'pkg';\r\nconst a = 1;\r\n"
        out = rewrite(text, catalog)
        assert "\r\nimport { Grid } from 'pkg/grid';\r\n" in out
        assert "\n" not in out.replace("\r\n", "")

    def test_explicit_newline_used_for_new_lines(self, catalog):
        text = "import { Grid, Box } from 'pkg';\n<Grid />\n"
        out = rewrite_until_stable(text, catalog, newline="\r\n").text
        assert out.startswith("import { Box } from 'pkg';\r\nimport { Grid } from 'pkg/grid';\n")

    def test_generic_module_move(self):
        catalog = catalog_from_dict({"rules": [
            {"id": "mv", "scope": "import", "from": "old-pkg", "to": "new-pkg"},
        ]})
        text = "import Thing, { a, b } from 'old-pkg';\nimport 'old-pkg';\n"
        out = rewrite(text, catalog)
        assert out == "import Thing, { a, b } from 'new-pkg';\nimport 'new-pkg';\n"


# ---------------------------------------------------------------------------
# Identifier renames
# ---------------------------------------------------------------------------

class TestIdentifierRenames:
    """Identifier renames update the import and every JSX usage together."""

    def test_icon_rename_and_move(self, catalog):
        text = (
            "import { CheckIcon, CloseIcon } from '@chakra-ui/icons';\n"
            "export const A = () => <Button leftIcon={<CheckIcon />} icon={CloseIcon}>"
            "<CloseIcon></CloseIcon></Button>;\n"
        )
        out = rewrite(text, catalog)
        assert _imports(out) == ["import { Check, X } from 'lucide-react';"]
        assert "leftIcon={<Check />}" in out
        assert "icon={X}" in out
        assert "<X></X>" in out
        assert "CheckIcon" not in out and "CloseIcon" not in out

    def test_partial_module_move(self, catalog):
        text = "import { CheckIcon, StarIcon } from '@chakra-ui/icons';\n<CheckIcon />\n"
        out = rewrite(text, catalog)
        assert _imports(out) == [
            "import { StarIcon } from '@chakra-ui/icons';",
            "import { Check } from 'lucide-react';",
        ]
        assert "<Check />" in out

    def test_stray_reference_skips_rename(self, catalog):
        text = ("import { CheckIcon } from '@chakra-ui/icons';\n"
                "const icons = [CheckIcon];\n<CheckIcon />\n")
        result = rewrite_until_stable(text, catalog)
        assert result.text == text
        assert any("referenced outside" in n for n in result.notes)

    def test_usage_after_slash_in_children_renamed(self, catalog):
        text = ("import { CheckIcon } from '@chakra-ui/icons';\n"
                "export const Progress = ({ done, total }) => (\n"
                "  <Text>{done}/{total} <CheckIcon /></Text>\n"
                ");\n")
        out = rewrite(text, catalog)
        assert _imports(out) == ["import { Check } from 'lucide-react';"]
        assert "  <Text>{done}/{total} <Check /></Text>\n" in out
        assert "CheckIcon" not in out

    def test_regex_literal_reference_skips_rename(self, catalog):
        text = ("import { CheckIcon } from '@chakra-ui/icons';\n"
                "const pattern = /CheckIcon/;\n<CheckIcon />\n")
        result = rewrite_until_stable(text, catalog)
        assert result.text == text
        assert any("line 2: 'CheckIcon' is referenced outside" in n for n in result.notes)

    def test_target_name_already_bound(self, catalog):
        text = ("import { CheckIcon } from '@chakra-ui/icons';\n"
                "import { Check } from './local';\n<CheckIcon /><Check />\n")
        result = rewrite_until_stable(text, catalog)
        assert result.text == text
        assert any("already bound" in n for n in result.notes)

    def test_merges_into_existing_lucide_import(self, catalog):
        text = ("import { Bell } from 'lucide-react';\n"
                "import { CheckIcon } from '@chakra-ui/icons';\n<CheckIcon /><Bell />\n")
        out = rewrite(text, catalog)
        assert _imports(out) == ["import { Bell, Check } from 'lucide-react';"]

    def test_aliased_import_keeps_local_name(self, catalog):
        text = "import { CheckIcon as Ok } from '@chakra-ui/icons';\n<Ok />\n"
        out = rewrite(text, catalog)
        assert _imports(out) == ["import { Check as Ok } from 'lucide-react';"]
        assert "<Ok />" in out

    def test_other_module_untouched(self, catalog):
        text = "import { CheckIcon } from './icons';\n<CheckIcon />\n"
        assert rewrite(text, catalog) == text


# ---------------------------------------------------------------------------
# Self-closing and patches
# ---------------------------------------------------------------------------

class TestSelfClosingAndPatches:
    """Markup normalization and per-file patches."""

    def test_empty_element_collapses(self, catalog):
        assert rewrite("<Spinner size='sm'></Spinner>", catalog) == "<Spinner size='sm' />"

    def test_non_empty_element_kept(self, catalog):
        text = "<Spinner>loading</Spinner>"
        assert rewrite(text, catalog) == text

    def test_space_before_slash(self, catalog):
        assert rewrite("<Input value={v}/>", catalog) == "<Input value={v} />"

    def test_unlisted_tag_untouched(self, catalog):
        text = "<Box></Box>"
        assert rewrite(text, catalog) == text

    def test_patch_applies_to_matching_file(self, catalog):
        text = "<ChakraProvider theme={theme}>{children}</ChakraProvider>\n"
        out = rewrite(text, catalog, rel_path="src/app/providers.tsx")
        assert "<ChakraProvider theme={theme} value={{}}>" in out
        assert rewrite(text, catalog, rel_path="src/app/page.tsx") == text

    def test_ambiguous_patch_skipped(self, catalog):
        text = "<ChakraProvider theme={theme}>\n<ChakraProvider theme={theme}>\n</ChakraProvider></ChakraProvider>\n"
        result = rewrite_until_stable(text, catalog, rel_path="src/app/providers.tsx")
        assert result.text == text
        assert any("expected one" in n for n in result.notes)


# ---------------------------------------------------------------------------
# Engine properties
# ---------------------------------------------------------------------------

SAMPLE = """import React from 'react';
import { Grid, GridItem, Box } from 'pkg';
import { CheckIcon } from '@chakra-ui/icons';

export function Panel({ open, loading }) {
  return (
    <Modal isOpen={open} onIsOpenChange={() => {}}>
      <Box isOpen={open}>
        <HStack spacing={4}>
          <Grid isLoading={loading}><GridItem /></Grid>
          <Spinner></Spinner>
          <CheckIcon />
        </HStack>
      </Box>
    </Modal>
  );
}
"""


class TestEngineProperties:
    """Idempotence, no-op files, ambiguity and queue application."""

    def test_idempotence(self, catalog):
        once = rewrite(SAMPLE, catalog)
        assert once != SAMPLE
        assert rewrite(once, catalog) == once

    def test_single_pass_is_enough(self, catalog):
        first = rewrite_text(SAMPLE, catalog)
        second = rewrite_text(first.text, catalog)
        assert second.changed is False

    def test_unmatched_file_unchanged(self, catalog):
        text = "export const add = (a: number, b: number) => a + b;\n"
        result = rewrite_until_stable(text, catalog)
        assert result.modified is False
        assert result.text is text or result.text == text

    def test_ambiguous_input_raises(self, catalog):
        with pytest.raises(ExtractionAmbiguity) as exc_info:
            rewrite_until_stable("function A() {\n  return <Box isOpen={x} />;\n", catalog, rel_path="a.tsx")
        assert exc_info.value.path == "a.tsx"
        assert exc_info.value.spans

    def test_ambiguous_input_allowed(self, catalog):
        result = rewrite_until_stable("function A() {\n  return <Box isOpen={x} />;\n", catalog,
                                      allow_ambiguous=True)
        assert "<Box open={x} />" in result.text

    def test_apply_replacements_descending(self):
        text = "abcdef"
        out, applied, rejected = apply_replacements(text, [
            Replacement(0, 1, "X", ("r1",)),
            Replacement(4, 6, "YZW", ("r2",)),
        ])
        assert out == "XbcdYZW"
        assert len(applied) == 2 and not rejected

    def test_overlap_rejected_first_wins(self):
        out, applied, rejected = apply_replacements("abcdef", [
            Replacement(1, 4, "X", ("first",)),
            Replacement(3, 5, "Y", ("second",)),
        ])
        assert out == "aXef"
        assert [r.rule_ids for r in rejected] == [("second",)]

    def test_detect_newline(self):
        assert detect_newline("a\r\nb\r\n") == "\r\n"
        assert detect_newline("a\nb") == "\n"
        assert detect_newline("") == "\n"

    def test_render_import_side_effect(self):
        assert render_import("pkg", []) == "import 'pkg';"

    def test_render_import_multiline(self):
        text = render_import("pkg", [ImportSpecifier("A"), ImportSpecifier("B", "C")],
                             multiline=True, indent="    ", trailing_comma=True)
        assert text == "import {\n    A,\n    B as C,\n} from 'pkg';"
