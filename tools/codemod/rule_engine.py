#!/usr/bin/env python3
# CUI // SP-CTI
"""Rule Engine — apply catalog rules to extracted constructs.

One pass works like this:

  1. Extract constructs from the current text (immutable for the pass).
  2. Run every rule family against the constructs and queue Replacement
     objects (start, end, text). Families run in a fixed order:
         prop renames -> identifier renames (JSX usages)
         -> import statements (identifier specifiers + import-path moves)
         -> self-closing normalization -> per-file patches
  3. Apply the queue in one splice, highest start offset first. A
     replacement overlapping one queued earlier is rejected and logged;
     the next pass sees the new text and picks it up again if it still
     applies.

rewrite_until_stable() repeats passes until one queues nothing. A file
that still changes after ``max_passes`` is reported as non-converging.

Exclusion decisions are made from the extracted constructs before any
text is mutated; nothing here re-scans a partially rewritten buffer.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from tools.codemod.construct_extractor import (
    ElementUsage,
    ExtractionResult,
    ImportSpecifier,
    ImportStatement,
    allows_jsx,
    extract_constructs,
)
from tools.codemod.errors import ExtractionAmbiguity
from tools.codemod.pattern_catalog import ALL, PatternCatalog, RenameRule

logger = logging.getLogger("codemod.rule_engine")

SELF_CLOSING_RULE = "self-closing"


@dataclass(frozen=True)
class Replacement:
    start: int
    end: int
    text: str
    rule_ids: Tuple[str, ...] = ()

    def overlaps(self, other: "Replacement") -> bool:
        if self.start == other.start:
            return True
        return self.start < other.end and other.start < self.end


@dataclass
class PassResult:
    text: str
    applied: List[Replacement] = field(default_factory=list)
    rejected: List[Replacement] = field(default_factory=list)
    preserved: int = 0
    notes: List[str] = field(default_factory=list)
    extraction: Optional[ExtractionResult] = None

    @property
    def changed(self) -> bool:
        return bool(self.applied)


@dataclass
class RewriteResult:
    """Outcome of rewriting one buffer to a fixpoint."""
    text: str
    original_text: str
    hits: Counter = field(default_factory=Counter)
    preserved: int = 0
    notes: List[str] = field(default_factory=list)
    passes: int = 0
    stable: bool = True
    skipped_spans: List[Tuple[int, int, str]] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return self.text != self.original_text

    def to_dict(self) -> dict:
        return {
            "modified": self.modified,
            "hits": dict(self.hits),
            "preserved": self.preserved,
            "notes": list(self.notes),
            "passes": self.passes,
            "stable": self.stable,
        }


class _PassContext:
    """Per-pass state shared by the rule-family collectors."""

    def __init__(self, text: str, extraction: ExtractionResult, catalog: PatternCatalog,
                 rel_path: str, newline: str):
        self.text = text
        self.extraction = extraction
        self.catalog = catalog
        self.rel_path = rel_path
        self.newline = newline
        self.queue: List[Replacement] = []
        self.preserved = 0
        self.notes: List[str] = []
        self.identifier_plans: Dict[Tuple[int, str], "_IdentifierPlan"] = {}

    def queue_replacement(self, start: int, end: int, text: str, *rule_ids: str):
        if self.text[start:end] == text:
            return
        self.queue.append(Replacement(start, end, text, tuple(rule_ids)))

    def note(self, message: str):
        if message not in self.notes:
            logger.info("%s: %s", self.rel_path or "<buffer>", message)
            self.notes.append(message)

    def line(self, pos: int) -> int:
        return self.extraction.line_of(pos)


def detect_newline(text: str) -> str:
    """Return the dominant newline convention of text ("\\n" if none)."""
    crlf = text.count("\r\n")
    lf = text.count("\n") - crlf
    return "\r\n" if crlf > lf else "\n"


# ---------------------------------------------------------------------------
# Family 1: prop renames
# ---------------------------------------------------------------------------

def _collect_prop_renames(ctx: _PassContext):
    catalog = ctx.catalog
    prop_sources = {r.from_name for r in catalog.rules_for("prop")}
    if not prop_sources:
        return
    for element in ctx.extraction.elements:
        present = set(element.attribute_names())
        targets: Set[str] = set()
        for attr in element.attributes:
            if attr.name not in prop_sources:
                continue
            rule = catalog.prop_rule_for(element.tag, attr.name)
            if rule is None:
                continue
            if catalog.is_excluded(element.tag, attr.name):
                ctx.preserved += 1
                continue
            if rule.to_name in present or rule.to_name in targets:
                ctx.note(
                    f"line {ctx.line(attr.name_start)}: <{element.tag}> already has "
                    f"'{rule.to_name}', kept '{attr.name}'"
                )
                continue
            targets.add(rule.to_name)
            ctx.queue_replacement(attr.name_start, attr.name_end, rule.to_name, rule.id)


# ---------------------------------------------------------------------------
# Family 2: identifier renames
# ---------------------------------------------------------------------------

@dataclass
class _IdentifierPlan:
    rule: RenameRule
    statement: ImportStatement
    specifier: ImportSpecifier
    dest_module: str
    rename_usages: bool


def _usage_positions(extraction: ExtractionResult, local: str) -> List[Tuple[int, int]]:
    """Spans of every JSX-position reference to ``local`` the engine can rewrite."""
    spans = []
    for element in extraction.elements:
        if element.tag == local:
            spans.append((element.name_start, element.name_end))
        for attr in element.attributes:
            value = attr.value
            if not value or not value.startswith("{") or not value.endswith("}"):
                continue
            inner = value[1:-1]
            if inner.strip() == local:
                offset = attr.value_start + 1 + (len(inner) - len(inner.lstrip()))
                spans.append((offset, offset + len(local)))
    for closing in extraction.closing_tags:
        if closing.tag == local:
            spans.append((closing.name_start, closing.name_end))
    return spans


def _binding_module(extraction: ExtractionResult, name: str) -> Optional[str]:
    for stmt in extraction.imports:
        if name in stmt.local_names():
            return stmt.module
    return None


def _plan_identifier_renames(ctx: _PassContext) -> Dict[Tuple[int, str], _IdentifierPlan]:
    """Decide which identifier renames are safe for this file.

    Keyed by (statement start, specifier name). A rename is skipped when
    the old name is referenced somewhere the engine cannot rewrite, or
    the new name is already bound to something else.
    """
    plans: Dict[Tuple[int, str], _IdentifierPlan] = {}
    if not ctx.catalog.rules_for("identifier"):
        return plans
    extraction = ctx.extraction
    declared = {c.name for c in extraction.components}

    for stmt in extraction.imports:
        for spec in stmt.specifiers:
            rule = ctx.catalog.identifier_rule_for(spec.name, stmt.module)
            if rule is None:
                continue
            where = f"line {ctx.line(stmt.start)}"
            if not stmt.rewritable:
                ctx.note(f"{where}: import of '{spec.name}' has comments or attributes, rename skipped")
                continue
            dest = rule.to_module or stmt.module
            rename_usages = spec.alias is None

            if rename_usages:
                explained = {s for s, _ in _usage_positions(extraction, spec.name)}
                stray = [
                    pos for pos in extraction.code_occurrences(spec.name)
                    if pos not in explained and not (stmt.start <= pos < stmt.end)
                ] + extraction.regex_occurrences(spec.name)
                if stray:
                    ctx.note(
                        f"line {ctx.line(stray[0])}: '{spec.name}' is referenced outside "
                        f"JSX and imports, rename to '{rule.to_name}' skipped"
                    )
                    continue

                bound_in = _binding_module(extraction, rule.to_name)
                if rule.to_name in declared or (
                    bound_in is None and extraction.code_occurrences(rule.to_name)
                ) or (bound_in is not None and bound_in != dest):
                    ctx.note(
                        f"{where}: '{rule.to_name}' is already bound in this file, "
                        f"rename of '{spec.name}' skipped"
                    )
                    continue

            plans[(stmt.start, spec.name)] = _IdentifierPlan(rule, stmt, spec, dest, rename_usages)
    return plans


def _collect_identifier_usages(ctx: _PassContext):
    ctx.identifier_plans = _plan_identifier_renames(ctx)
    for plan in ctx.identifier_plans.values():
        if not plan.rename_usages:
            continue
        for start, end in _usage_positions(ctx.extraction, plan.specifier.name):
            ctx.queue_replacement(start, end, plan.rule.to_name, plan.rule.id)


# ---------------------------------------------------------------------------
# Family 3: import statements
# ---------------------------------------------------------------------------

@dataclass
class _StatementPlan:
    statement: ImportStatement
    module: str
    specifiers: List[ImportSpecifier]
    default: Optional[str]
    namespace: Optional[str]
    rule_ids: List[str] = field(default_factory=list)
    # dest module -> specifiers for a new statement emitted after this one
    new_groups: "OrderedDict[str, List[ImportSpecifier]]" = field(default_factory=OrderedDict)
    changed: bool = False


def render_import(module: str, specifiers: List[ImportSpecifier], default: Optional[str] = None,
                  namespace: Optional[str] = None, type_only: bool = False, quote: str = "'",
                  semicolon: bool = True, multiline: bool = False, indent: str = "  ",
                  trailing_comma: bool = False, newline: str = "\n") -> str:
    """Render one import statement in the source file's style."""
    parts = []
    if default:
        parts.append(default)
    if namespace:
        parts.append(f"* as {namespace}")
    if specifiers:
        items = [s.render() for s in specifiers]
        if multiline:
            body = ("," + newline + indent).join(items)
            body = "{" + newline + indent + body + ("," if trailing_comma else "") + newline + "}"
        else:
            body = "{ " + ", ".join(items) + " }"
        parts.append(body)
    head = "import type " if type_only else "import "
    if parts:
        stmt = f"{head}{', '.join(parts)} from {quote}{module}{quote}"
    else:
        stmt = f"import {quote}{module}{quote}"
    return stmt + (";" if semicolon else "")


def _dedupe(specifiers: List[ImportSpecifier]) -> List[ImportSpecifier]:
    seen = set()
    out = []
    for spec in specifiers:
        if spec.local in seen:
            continue
        seen.add(spec.local)
        out.append(spec)
    return out


def _renamed(spec: ImportSpecifier, new_name: str) -> ImportSpecifier:
    alias = spec.alias if spec.alias and spec.alias != new_name else None
    return ImportSpecifier(name=new_name, alias=alias, is_type=spec.is_type)


def _move_target(catalog: PatternCatalog, module: str, name: str) -> Optional[RenameRule]:
    for rule in catalog.import_rules_for(module):
        if rule.applies(name):
            return rule
    return None


def _plan_statements(ctx: _PassContext) -> List[_StatementPlan]:
    catalog = ctx.catalog
    id_plans = ctx.identifier_plans
    plans: List[_StatementPlan] = []

    for stmt in ctx.extraction.imports:
        plan = _StatementPlan(stmt, stmt.module, [], stmt.default, stmt.namespace)
        plans.append(plan)
        if not stmt.rewritable:
            plan.specifiers = list(stmt.specifiers)
            if catalog.import_rules_for(stmt.module):
                ctx.note(f"line {ctx.line(stmt.start)}: import from '{stmt.module}' "
                         f"has comments or attributes, left unchanged")
            continue

        generic = next((r for r in catalog.import_rules_for(stmt.module) if r.applies_to == ALL), None)
        if generic and not stmt.has_clause:
            plan.module = generic.to_name
            plan.rule_ids.append(generic.id)
            plan.changed = True
            continue

        for spec in stmt.specifiers:
            target_spec, dest = spec, stmt.module
            id_plan = id_plans.get((stmt.start, spec.name))
            if id_plan is not None:
                target_spec = _renamed(spec, id_plan.rule.to_name)
                dest = id_plan.dest_module
                plan.rule_ids.append(id_plan.rule.id)
            move = _move_target(catalog, dest, target_spec.name)
            if move is not None:
                dest = move.to_name
                plan.rule_ids.append(move.id)
            if dest == stmt.module:
                plan.specifiers.append(target_spec)
                if target_spec != spec:
                    plan.changed = True
            else:
                plan.new_groups.setdefault(dest, []).append(target_spec)
                plan.changed = True

        if generic:
            # Whole-module move: default and namespace bindings travel too
            plan.specifiers.extend(plan.new_groups.pop(generic.to_name, []))
            plan.module = generic.to_name
            plan.changed = True
            if generic.id not in plan.rule_ids:
                plan.rule_ids.append(generic.id)

    return plans


def _merge_into_existing(plans: List[_StatementPlan]):
    """Fold moved groups into statements that already import from the destination."""
    by_module: Dict[Tuple[str, bool], _StatementPlan] = {}
    for plan in plans:
        stmt = plan.statement
        if stmt.rewritable and plan.namespace is None and stmt.has_clause:
            by_module.setdefault((plan.module, stmt.type_only), plan)

    created: Dict[Tuple[str, bool], _StatementPlan] = {}
    for plan in plans:
        type_only = plan.statement.type_only
        for dest in list(plan.new_groups):
            key = (dest, type_only)
            target = by_module.get(key)
            if target is not None and target is not plan:
                target.specifiers.extend(plan.new_groups.pop(dest))
                target.changed = True
                continue
            owner = created.get(key)
            if owner is not None and owner is not plan:
                owner.new_groups[dest].extend(plan.new_groups.pop(dest))
                continue
            created[key] = plan


def _statement_indent(text: str, start: int) -> str:
    line_start = text.rfind("\n", 0, start) + 1
    prefix = text[line_start:start]
    return prefix if prefix.strip() == "" else ""


def _removal_span(text: str, start: int, end: int) -> Tuple[int, int]:
    """Extend a statement span to swallow its whole line when it is alone on it."""
    line_start = text.rfind("\n", 0, start) + 1
    if text[line_start:start].strip():
        return start, end
    j = end
    while j < len(text) and text[j] in " \t":
        j += 1
    if text.startswith("\r\n", j):
        return line_start, j + 2
    if text.startswith("\n", j):
        return line_start, j + 1
    return start, end


def _collect_import_rewrites(ctx: _PassContext):
    plans = _plan_statements(ctx)
    _merge_into_existing(plans)

    for plan in plans:
        if not plan.changed and not plan.new_groups:
            continue
        stmt = plan.statement
        style = dict(type_only=stmt.type_only, quote=stmt.quote, semicolon=stmt.semicolon,
                     multiline=stmt.multiline, indent=stmt.indent,
                     trailing_comma=stmt.trailing_comma, newline=ctx.newline)
        specifiers = _dedupe(plan.specifiers)
        rendered = []
        keep_original = bool(specifiers or plan.default or plan.namespace or not stmt.has_clause)
        if keep_original:
            rendered.append(render_import(plan.module, specifiers, plan.default, plan.namespace, **style))
        for dest, group in plan.new_groups.items():
            rendered.append(render_import(dest, _dedupe(group), **style))

        rule_ids = tuple(OrderedDict.fromkeys(plan.rule_ids))
        if rendered:
            joiner = ctx.newline + _statement_indent(ctx.text, stmt.start)
            ctx.queue_replacement(stmt.start, stmt.end, joiner.join(rendered), *rule_ids)
        else:
            start, end = _removal_span(ctx.text, stmt.start, stmt.end)
            ctx.queue_replacement(start, end, "", *rule_ids)


# ---------------------------------------------------------------------------
# Family 4: self-closing normalization
# ---------------------------------------------------------------------------

def _matching_empty_close(ctx: _PassContext, element: ElementUsage):
    for closing in ctx.extraction.closing_tags:
        if closing.start < element.end:
            continue
        if closing.tag == element.tag and ctx.text[element.end:closing.start].strip() == "":
            return closing
        return None
    return None


def _collect_self_closing(ctx: _PassContext):
    names = ctx.catalog.self_closing
    if not names:
        return
    text = ctx.text
    for element in ctx.extraction.elements:
        if element.tag not in names:
            continue
        gt = element.end - 1
        if element.self_closing:
            slash = text.rfind("/", element.start, gt + 1)
            if slash > 0 and text[slash - 1] not in " \t\r\n":
                ctx.queue_replacement(slash, slash, " ", SELF_CLOSING_RULE)
            continue
        closing = _matching_empty_close(ctx, element)
        if closing is None:
            continue
        lead = "" if text[gt - 1] in " \t\r\n" else " "
        ctx.queue_replacement(gt, closing.end, lead + "/>", SELF_CLOSING_RULE)


# ---------------------------------------------------------------------------
# Family 5: per-file patches
# ---------------------------------------------------------------------------

def _collect_patches(ctx: _PassContext):
    for patch in ctx.catalog.patches_for(ctx.rel_path):
        matches = list(patch.compiled().finditer(ctx.text))
        if not matches:
            continue
        if patch.expect_unique and len(matches) > 1:
            ctx.note(f"patch '{patch.id}' matched {len(matches)} times, expected one; skipped")
            continue
        for m in matches:
            replacement = m.expand(patch.replace) if patch.regex else patch.replace
            ctx.queue_replacement(m.start(), m.end(), replacement, patch.id)


# ---------------------------------------------------------------------------
# Queue application
# ---------------------------------------------------------------------------

def apply_replacements(text: str, replacements: List[Replacement], rel_path: str = ""):
    """Splice replacements into text, highest start offset first.

    Replacements are accepted in queue order; one that overlaps an
    already accepted replacement is rejected. Returns
    (new_text, applied, rejected).
    """
    applied: List[Replacement] = []
    rejected: List[Replacement] = []
    for rep in replacements:
        clash = next((a for a in applied if rep.overlaps(a)), None)
        if clash is not None:
            logger.warning(
                "%s: rejected overlapping replacement %s at %d-%d (conflicts with %s)",
                rel_path or "<buffer>", ",".join(rep.rule_ids), rep.start, rep.end,
                ",".join(clash.rule_ids),
            )
            rejected.append(rep)
            continue
        applied.append(rep)

    out = text
    for rep in sorted(applied, key=lambda r: r.start, reverse=True):
        out = out[:rep.start] + rep.text + out[rep.end:]
    return out, applied, rejected


# Evaluated in order; each collector reads ctx.extraction and queues replacements
RULE_FAMILIES = (
    ("prop", _collect_prop_renames),
    ("identifier", _collect_identifier_usages),
    ("import", _collect_import_rewrites),
    ("self_closing", _collect_self_closing),
    ("patch", _collect_patches),
)


def collect_replacements(text: str, extraction: ExtractionResult, catalog: PatternCatalog,
                         rel_path: str = "", newline: Optional[str] = None) -> _PassContext:
    """Run every rule family against one extraction and return the filled context."""
    ctx = _PassContext(text, extraction, catalog, rel_path, newline or detect_newline(text))
    for _family, collector in RULE_FAMILIES:
        collector(ctx)
    return ctx


def rewrite_text(text: str, catalog: PatternCatalog, rel_path: str = "",
                 newline: Optional[str] = None,
                 extraction: Optional[ExtractionResult] = None) -> PassResult:
    """Compute a single rewrite pass over text. No disk I/O."""
    extraction = extraction or extract_constructs(text, jsx=allows_jsx(rel_path))
    ctx = collect_replacements(text, extraction, catalog, rel_path, newline)
    new_text, applied, rejected = apply_replacements(text, ctx.queue, rel_path)
    return PassResult(
        text=new_text,
        applied=applied,
        rejected=rejected,
        preserved=ctx.preserved,
        notes=ctx.notes,
        extraction=extraction,
    )


def rewrite_until_stable(text: str, catalog: PatternCatalog, rel_path: str = "",
                         max_passes: int = 3, allow_ambiguous: bool = False,
                         newline: Optional[str] = None) -> RewriteResult:
    """Rewrite text until a pass changes nothing.

    Raises:
        ExtractionAmbiguity: the input has unclassifiable regions (unless
            allow_ambiguous), a pass produced unbalanced text, or the
            buffer is still changing after max_passes.
    """
    newline = newline or detect_newline(text)
    jsx = allows_jsx(rel_path)
    extraction = extract_constructs(text, jsx=jsx)
    result = RewriteResult(text=text, original_text=text)
    result.skipped_spans = [s.as_tuple() for s in extraction.skipped]

    if extraction.ambiguous and not allow_ambiguous:
        first = extraction.skipped[0]
        raise ExtractionAmbiguity(
            f"{len(extraction.skipped)} unclassifiable region(s), first at line "
            f"{extraction.line_of(first.start)}: {first.reason}",
            path=rel_path,
            spans=result.skipped_spans,
        )
    baseline_skipped = len(extraction.skipped)

    current = text
    for pass_no in range(1, max_passes + 1):
        pass_result = rewrite_text(current, catalog, rel_path, newline, extraction)
        result.passes = pass_no
        if pass_no == 1:
            result.preserved = pass_result.preserved
        for note in pass_result.notes:
            if note not in result.notes:
                result.notes.append(note)
        if not pass_result.changed:
            result.stable = True
            break
        for rep in pass_result.applied:
            for rule_id in rep.rule_ids:
                result.hits[rule_id] += 1
        current = pass_result.text
        extraction = extract_constructs(current, jsx=jsx)
        if len(extraction.skipped) > baseline_skipped:
            raise ExtractionAmbiguity(
                f"pass {pass_no} produced text with unclassifiable regions",
                path=rel_path,
                spans=[s.as_tuple() for s in extraction.skipped],
            )
    else:
        verify = rewrite_text(current, catalog, rel_path, newline, extraction)
        result.stable = not verify.changed
        if not result.stable:
            raise ExtractionAmbiguity(
                f"rewrite did not converge after {max_passes} pass(es)",
                path=rel_path,
            )

    result.text = current
    return result


def rewrite(text: str, catalog: PatternCatalog, rel_path: str = "", max_passes: int = 3) -> str:
    """Convenience wrapper returning only the rewritten text."""
    return rewrite_until_stable(text, catalog, rel_path, max_passes).text
