#!/usr/bin/env python3
# CUI // SP-CTI
"""Pattern Catalog — declarative rewrite rules for the codemod engine.

The catalog is a versioned JSON (or YAML) artifact under
context/codemod/. It holds four families of data:

  rules         RenameRule entries, scope "prop" | "import" | "identifier"
  exclusions    (component, prop) pairs that keep their pre-rename form
  self_closing  component names whose empty elements collapse to <X />
  patches       known per-file find/replace fixes, keyed by path glob

The loader validates the whole table before any file is touched. Every
structural problem raises CatalogError, which is fatal for the run:
unknown scopes, identity renames, conflicting duplicates, rule chains
(one rule's output is another rule's input, which breaks idempotence),
and patches whose replacement would match their own find pattern.
"""

import fnmatch
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union

import yaml

from tools.codemod.errors import CatalogError

logger = logging.getLogger("codemod.catalog")

VALID_SCOPES = ("prop", "import", "identifier")
ALL = "all"

_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_TAG_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*$")
_PROP_RE = re.compile(r"^[A-Za-z_$][\w$-]*(?::[\w$-]+)?$")


@dataclass(frozen=True)
class RenameRule:
    """Directional rename. ``applies_to`` is a frozenset of names or "all".

    scope prop:        from/to are attribute names, applies_to = tag names
    scope import:      from/to are module paths,    applies_to = symbol names
    scope identifier:  from/to are identifiers,     applies_to = source modules
    """
    id: str
    from_name: str
    to_name: str
    applies_to: Union[str, frozenset] = ALL
    scope: str = "prop"
    to_module: str = ""

    @property
    def is_generic(self) -> bool:
        return self.applies_to == ALL

    def applies(self, name: str) -> bool:
        return self.is_generic or name in self.applies_to

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "from": self.from_name,
            "to": self.to_name,
            "applies_to": ALL if self.is_generic else sorted(self.applies_to),
            "to_module": self.to_module,
        }


@dataclass(frozen=True)
class ExclusionRule:
    component: str
    prop: str


@dataclass(frozen=True)
class PatchRule:
    """Known per-file fix. ``find`` is literal unless ``regex`` is set."""
    id: str
    files: Tuple[str, ...]
    find: str
    replace: str
    regex: bool = False
    expect_unique: bool = True

    def matches_path(self, rel_path: str) -> bool:
        rel = rel_path.replace("\\", "/")
        for pattern in self.files:
            if fnmatch.fnmatch(rel, pattern):
                return True
            # "**/x.tsx" also matches a top-level "x.tsx"
            if pattern.startswith("**/") and fnmatch.fnmatch(rel, pattern[3:]):
                return True
        return False

    def compiled(self):
        return re.compile(self.find if self.regex else re.escape(self.find))


@dataclass
class PatternCatalog:
    """Read-only rule table shared by every file in a run."""
    version: str = "0"
    rules: List[RenameRule] = field(default_factory=list)
    exclusions: Set[ExclusionRule] = field(default_factory=set)
    self_closing: frozenset = frozenset()
    patches: List[PatchRule] = field(default_factory=list)
    source_path: str = ""

    def rules_for(self, scope: str) -> List[RenameRule]:
        return [r for r in self.rules if r.scope == scope]

    def is_excluded(self, component: str, prop: str) -> bool:
        return ExclusionRule(component, prop) in self.exclusions

    def prop_rule_for(self, tag: str, prop: str) -> Optional[RenameRule]:
        """Return the rule renaming ``prop`` on ``tag``.

        A rule listing ``tag`` explicitly wins over a generic rule.
        """
        generic = None
        for rule in self.rules:
            if rule.scope != "prop" or rule.from_name != prop:
                continue
            if not rule.is_generic and tag in rule.applies_to:
                return rule
            if rule.is_generic and generic is None:
                generic = rule
        return generic

    def import_rules_for(self, module: str) -> List[RenameRule]:
        return [r for r in self.rules if r.scope == "import" and r.from_name == module]

    def identifier_rule_for(self, name: str, module: str) -> Optional[RenameRule]:
        generic = None
        for rule in self.rules:
            if rule.scope != "identifier" or rule.from_name != name:
                continue
            if not rule.is_generic and module in rule.applies_to:
                return rule
            if rule.is_generic and generic is None:
                generic = rule
        return generic

    def patches_for(self, rel_path: str) -> List[PatchRule]:
        return [p for p in self.patches if p.matches_path(rel_path)]

    def summary(self) -> Dict[str, int]:
        counts = {scope: len(self.rules_for(scope)) for scope in VALID_SCOPES}
        counts["exclusions"] = len(self.exclusions)
        counts["self_closing"] = len(self.self_closing)
        counts["patches"] = len(self.patches)
        return counts


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_applies_to(raw, rule_id: str):
    if raw is None or raw == ALL:
        return ALL
    if isinstance(raw, str):
        return frozenset([raw])
    if isinstance(raw, (list, tuple)) and all(isinstance(x, str) for x in raw):
        if not raw:
            raise CatalogError(f"Rule '{rule_id}' has an empty applies_to list", rule_id=rule_id)
        return frozenset(raw)
    raise CatalogError(f"Rule '{rule_id}' has invalid applies_to: {raw!r}", rule_id=rule_id)


def _parse_rule(raw: dict, index: int) -> RenameRule:
    if not isinstance(raw, dict):
        raise CatalogError(f"Rule #{index} is not a mapping")
    rule_id = str(raw.get("id") or f"rule-{index}")
    scope = raw.get("scope", "prop")
    if scope not in VALID_SCOPES:
        raise CatalogError(f"Rule '{rule_id}' has unknown scope '{scope}'", rule_id=rule_id)
    from_name = raw.get("from")
    to_name = raw.get("to")
    if not isinstance(from_name, str) or not isinstance(to_name, str) or not from_name or not to_name:
        raise CatalogError(f"Rule '{rule_id}' needs non-empty string 'from' and 'to'", rule_id=rule_id)
    if from_name == to_name:
        raise CatalogError(f"Rule '{rule_id}' renames '{from_name}' to itself", rule_id=rule_id)

    if scope == "prop" and not (_PROP_RE.match(from_name) and _PROP_RE.match(to_name)):
        raise CatalogError(f"Rule '{rule_id}' prop names must be identifiers", rule_id=rule_id)
    if scope == "identifier" and not (_IDENT_RE.match(from_name) and _IDENT_RE.match(to_name)):
        raise CatalogError(f"Rule '{rule_id}' identifier names must be identifiers", rule_id=rule_id)

    applies_to = _parse_applies_to(raw.get("applies_to"), rule_id)
    to_module = raw.get("to_module") or ""
    if to_module and scope != "identifier":
        raise CatalogError(f"Rule '{rule_id}': to_module is only valid for identifier rules", rule_id=rule_id)
    if scope == "identifier" and to_module and applies_to == ALL:
        raise CatalogError(
            f"Rule '{rule_id}': moving an identifier needs an explicit source module list",
            rule_id=rule_id,
        )
    if scope == "import" and applies_to != ALL:
        for symbol in applies_to:
            if not _IDENT_RE.match(symbol):
                raise CatalogError(f"Rule '{rule_id}': '{symbol}' is not a symbol name", rule_id=rule_id)
    if scope == "prop" and applies_to != ALL:
        for tag in applies_to:
            if not _TAG_RE.match(tag):
                raise CatalogError(f"Rule '{rule_id}': '{tag}' is not a tag name", rule_id=rule_id)

    return RenameRule(
        id=rule_id, from_name=from_name, to_name=to_name,
        applies_to=applies_to, scope=scope, to_module=to_module,
    )


def _parse_patch(raw: dict, index: int) -> PatchRule:
    if not isinstance(raw, dict):
        raise CatalogError(f"Patch #{index} is not a mapping")
    patch_id = str(raw.get("id") or f"patch-{index}")
    files = raw.get("files") or raw.get("file")
    if isinstance(files, str):
        files = [files]
    if not files or not all(isinstance(f, str) for f in files):
        raise CatalogError(f"Patch '{patch_id}' needs a 'files' glob list", rule_id=patch_id)
    find = raw.get("find")
    replace = raw.get("replace")
    if not isinstance(find, str) or not find or not isinstance(replace, str):
        raise CatalogError(f"Patch '{patch_id}' needs string 'find' and 'replace'", rule_id=patch_id)
    return PatchRule(
        id=patch_id,
        files=tuple(files),
        find=find,
        replace=replace,
        regex=bool(raw.get("regex", False)),
        expect_unique=bool(raw.get("expect_unique", True)),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _overlaps(a, b) -> bool:
    if a == ALL or b == ALL:
        return True
    return bool(a & b)


def _rule_key(rule: RenameRule) -> Tuple[str, ...]:
    return (rule.scope, rule.from_name)


def validate_catalog(catalog: PatternCatalog) -> None:
    """Raise CatalogError if the catalog could corrupt files or loop."""
    seen_ids: Set[str] = set()
    for rule in catalog.rules:
        if rule.id in seen_ids:
            raise CatalogError(f"Duplicate rule id '{rule.id}'", rule_id=rule.id)
        seen_ids.add(rule.id)

    by_source: Dict[Tuple[str, ...], List[RenameRule]] = {}
    for rule in catalog.rules:
        by_source.setdefault(_rule_key(rule), []).append(rule)

    # Conflicting duplicates: same source, overlapping scope, different target
    for group in by_source.values():
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                same_target = a.to_name == b.to_name and a.to_module == b.to_module
                if a.scope == "import":
                    # Import rules fan a module out by symbol; sets must be disjoint
                    if _overlaps(a.applies_to, b.applies_to):
                        raise CatalogError(
                            f"Import rules '{a.id}' and '{b.id}' both move symbols of '{a.from_name}'",
                            rule_id=b.id,
                        )
                    continue
                if same_target:
                    continue
                if a.is_generic != b.is_generic:
                    # Specific-over-generic is a legal tie-break
                    continue
                if _overlaps(a.applies_to, b.applies_to):
                    raise CatalogError(
                        f"Rules '{a.id}' and '{b.id}' rename '{a.from_name}' to different targets",
                        rule_id=b.id,
                    )

    # Chains: a rule's output must never be another rule's input
    for rule in catalog.rules:
        for other in by_source.get((rule.scope, rule.to_name), []):
            if rule.scope == "prop" and not _overlaps(rule.applies_to, other.applies_to):
                continue
            raise CatalogError(
                f"Rule '{rule.id}' produces '{rule.to_name}', which rule '{other.id}' rewrites again",
                rule_id=rule.id,
            )
        if rule.scope == "identifier" and rule.to_module and rule.applies(rule.to_module):
            raise CatalogError(
                f"Rule '{rule.id}' moves '{rule.from_name}' into a module it is read from",
                rule_id=rule.id,
            )
    for exclusion in catalog.exclusions:
        if not any(r.scope == "prop" and r.from_name == exclusion.prop for r in catalog.rules):
            logger.warning("Exclusion (%s, %s) matches no prop rule", exclusion.component, exclusion.prop)

    seen_patch_ids: Set[str] = set()
    for patch in catalog.patches:
        if patch.id in seen_patch_ids:
            raise CatalogError(f"Duplicate patch id '{patch.id}'", rule_id=patch.id)
        seen_patch_ids.add(patch.id)
        try:
            pattern = patch.compiled()
        except re.error as exc:
            raise CatalogError(f"Patch '{patch.id}' has an invalid regex: {exc}", rule_id=patch.id) from exc
        if pattern.search(patch.replace):
            raise CatalogError(
                f"Patch '{patch.id}' replacement matches its own find pattern",
                rule_id=patch.id,
            )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def catalog_from_dict(data: dict, source_path: str = "") -> PatternCatalog:
    """Build and validate a PatternCatalog from parsed JSON/YAML data."""
    if not isinstance(data, dict):
        raise CatalogError("Catalog root must be a mapping", path=source_path)

    raw_rules = data.get("rules", [])
    raw_exclusions = data.get("exclusions", [])
    raw_self_closing = data.get("self_closing", [])
    raw_patches = data.get("patches", [])
    for key, value in (("rules", raw_rules), ("exclusions", raw_exclusions),
                       ("self_closing", raw_self_closing), ("patches", raw_patches)):
        if not isinstance(value, list):
            raise CatalogError(f"Catalog '{key}' must be a list", path=source_path)

    rules = [_parse_rule(r, i) for i, r in enumerate(raw_rules)]

    exclusions = set()
    for i, raw in enumerate(raw_exclusions):
        if not isinstance(raw, dict) or not raw.get("component") or not raw.get("prop"):
            raise CatalogError(f"Exclusion #{i} needs 'component' and 'prop'", path=source_path)
        exclusions.add(ExclusionRule(str(raw["component"]), str(raw["prop"])))

    for name in raw_self_closing:
        if not isinstance(name, str) or not _TAG_RE.match(name):
            raise CatalogError(f"Invalid self_closing entry: {name!r}", path=source_path)

    patches = [_parse_patch(p, i) for i, p in enumerate(raw_patches)]

    catalog = PatternCatalog(
        version=str(data.get("version", "0")),
        rules=rules,
        exclusions=exclusions,
        self_closing=frozenset(raw_self_closing),
        patches=patches,
        source_path=source_path,
    )
    try:
        validate_catalog(catalog)
    except CatalogError as exc:
        exc.path = exc.path or source_path
        raise
    return catalog


def load_catalog(path: str) -> PatternCatalog:
    """Load a catalog file (.json, .yaml or .yml) and validate it."""
    catalog_path = Path(path)
    if not catalog_path.exists():
        raise CatalogError(f"Catalog not found: {catalog_path}", path=str(catalog_path))
    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            if catalog_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CatalogError(f"Cannot parse catalog {catalog_path}: {exc}", path=str(catalog_path)) from exc
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog {catalog_path}: {exc}", path=str(catalog_path)) from exc

    try:
        catalog = catalog_from_dict(data, source_path=str(catalog_path))
    except CatalogError as exc:
        exc.path = exc.path or str(catalog_path)
        raise
    logger.info("Loaded catalog v%s from %s: %s", catalog.version, catalog_path, catalog.summary())
    return catalog
