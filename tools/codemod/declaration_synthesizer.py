#!/usr/bin/env python3
# CUI // SP-CTI
# Controlled by: Department of Defense
# CUI Category: CTI
# Distribution: D -- Authorized DoD Personnel Only
# POC: ICDEV System Administrator
"""Declaration Synthesizer — ambient ``declare module`` blocks from usage.

Scans a source tree, records which props are passed to components that
are imported from modules the type checker cannot resolve (matched by
fnmatch patterns such as ``@chakra-ui/react/*``) and produces or updates
one ambient declaration block per module in a ``.d.ts`` file.

Declarations are permissive: every prop is typed ``any``
and each ``XProps`` interface keeps a ``[key: string]: any`` index
signature. The synthesizer cannot infer real prop types.

Merging never duplicates a block. A module already declared in the
output file gets missing components inserted into its block and missing
props inserted into the existing ``XProps`` interface. When the output
file cannot be parsed (unbalanced braces) a delimited block is written
at the end of the file instead, and later runs update that block in
place rather than appending another one.

Usage:
    python tools/codemod/declaration_synthesizer.py --root src \\
        --output src/types/module-declarations.d.ts --dry-run
"""

import argparse
import json
import logging
import re
import sys
import textwrap
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR))

from tools.cli.output_formatter import (  # noqa: E402
    add_output_flags,
    format_banner,
    format_kv,
    format_list,
    should_use_json,
)
from tools.codemod.config import load_settings  # noqa: E402
from tools.codemod.construct_extractor import extract_constructs  # noqa: E402
from tools.codemod.errors import ConfigurationError, DeclarationParseError, WriteError  # noqa: E402
from tools.codemod.file_discovery import discover_files  # noqa: E402
from tools.codemod.write_back import SourceFile, write_source  # noqa: E402

logger = logging.getLogger("codemod.declarations")

CUI_BANNER = "CUI // SP-CTI"

FILE_HEADER = (
    "/**\n"
    " * Ambient module declarations synthesized from observed component usage.\n"
    " * Props are typed permissively; tighten them by hand where needed.\n"
    " */\n"
)
FALLBACK_BEGIN = "// ---- codemod: synthesized declarations (begin) ----"
FALLBACK_END = "// ---- codemod: synthesized declarations (end) ----"

INDEX_SIGNATURE = "[key: string]: any;"

_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_DECLARE_RE = re.compile(r"""declare\s+module\s+(['"])([^'"\n]+)\1\s*\{""")
_INTERFACE_RE = re.compile(r"export\s+interface\s+([A-Za-z_$][\w$]*)Props\b[^{;]*\{")
_CONST_RE = re.compile(r"export\s+(?:declare\s+)?(?:const|function|class)\s+([A-Za-z_$][\w$]*)")
_MEMBER_RE = re.compile(r"""^[ \t]*(['"]?)([A-Za-z_$][\w$-]*)\1\??\s*:""", re.MULTILINE)
_INDEX_SIG_RE = re.compile(r"^[ \t]*\[\s*\w+\s*:\s*string\s*\]", re.MULTILINE)


# ---------------------------------------------------------------------------
# Usage collection
# ---------------------------------------------------------------------------

Usage = Dict[str, Dict[str, Set[str]]]


@dataclass
class UsageScan:
    """Observed (module -> component -> props) plus the files that could not be read."""
    usage: Usage = field(default_factory=dict)
    files_scanned: int = 0
    unreadable: List[Tuple[str, str]] = field(default_factory=list)

    def pairs(self) -> int:
        return sum(len(props) for comps in self.usage.values() for props in comps.values())


def module_matches(module: str, patterns: Sequence[str]) -> bool:
    if module.startswith("."):
        return False
    return any(fnmatch(module, p) for p in patterns)


def record_usage(text: str, patterns: Sequence[str], usage: Usage) -> None:
    """Add the component/prop pairs observed in one file's text to usage."""
    extraction = extract_constructs(text)
    local_to_source: Dict[str, Tuple[str, str]] = {}
    for stmt in extraction.imports:
        if not module_matches(stmt.module, patterns):
            continue
        for spec in stmt.specifiers:
            if not spec.is_type:
                local_to_source[spec.local] = (stmt.module, spec.name)

    for element in extraction.elements:
        source = local_to_source.get(element.tag)
        if source is None:
            continue
        module, component = source
        props = usage.setdefault(module, {}).setdefault(component, set())
        props.update(element.attribute_names())

    # Imported but never rendered still needs a declaration.
    for module, component in local_to_source.values():
        usage.setdefault(module, {}).setdefault(component, set())


def collect_usage(paths: Iterable[str], patterns: Sequence[str]) -> UsageScan:
    scan = UsageScan()
    for path in paths:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            scan.unreadable.append((str(path), str(exc)))
            continue
        scan.files_scanned += 1
        record_usage(text, patterns, scan.usage)
    return scan


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _prop_key(name: str) -> str:
    return name if _IDENT_RE.match(name) else f"'{name}'"


def _prop_lines(props: Iterable[str], indent: str) -> List[str]:
    return [f"{indent}{_prop_key(p)}?: any;" for p in sorted(set(props) - {"children"})]


@dataclass
class DeclarationEntry:
    """One module path and the components (with observed props) it must declare."""
    module: str
    components: Dict[str, Set[str]] = field(default_factory=dict)

    def render(self, inline_react: bool = False) -> str:
        lines = [f"declare module '{self.module}' {{"]
        if not inline_react:
            lines.append("  import { FC, ReactNode } from 'react';")
            lines.append("")
        for i, name in enumerate(sorted(self.components)):
            if i:
                lines.append("")
            lines.extend(render_component(name, self.components[name], "  ", inline_react))
        lines.append("}")
        return "\n".join(lines) + "\n"


def render_component(name: str, props: Iterable[str], indent: str = "  ",
                     inline_react: bool = False) -> List[str]:
    """Interface plus const declaration for one component.

    inline_react uses ``import('react')`` type references for blocks that
    do not import FC/ReactNode themselves.
    """
    fc = "import('react').FC" if inline_react else "FC"
    node = "import('react').ReactNode" if inline_react else "ReactNode"
    member = indent + "  "
    lines = [f"{indent}export interface {name}Props {{", f"{member}children?: {node};"]
    lines.extend(_prop_lines(props, member))
    lines.append(f"{member}{INDEX_SIGNATURE}")
    lines.append(f"{indent}}}")
    lines.append("")
    lines.append(f"{indent}export const {name}: {fc}<{name}Props>;")
    return lines


# ---------------------------------------------------------------------------
# Parsing existing declarations
# ---------------------------------------------------------------------------

@dataclass
class InterfaceBlock:
    component: str
    open_brace: int
    close_brace: int
    props: Set[str] = field(default_factory=set)
    index_signature_at: int = -1
    member_indent: str = "    "


@dataclass
class ModuleBlock:
    module: str
    start: int
    open_brace: int
    close_brace: int
    interfaces: Dict[str, InterfaceBlock] = field(default_factory=dict)
    exports: Set[str] = field(default_factory=set)
    imports_react: bool = False

    def declares(self, component: str) -> bool:
        return component in self.exports or component in self.interfaces


def _brace_pairs(text: str) -> Dict[int, int]:
    """Map each ``{`` offset to its ``}``, skipping comments and strings.

    Raises:
        DeclarationParseError: braces are unbalanced or a comment/string
            is unterminated.
    """
    pairs: Dict[int, int] = {}
    stack: List[int] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if text.startswith("//", i):
            nl = text.find("\n", i)
            i = n if nl == -1 else nl + 1
            continue
        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            if close == -1:
                raise DeclarationParseError("unterminated block comment", path="")
            i = close + 2
            continue
        if ch in "'\"`":
            j = i + 1
            while j < n and text[j] != ch:
                if text[j] == "\\":
                    j += 1
                elif text[j] == "\n" and ch != "`":
                    raise DeclarationParseError(f"unterminated string at offset {i}", path="")
                j += 1
            if j >= n:
                raise DeclarationParseError(f"unterminated string at offset {i}", path="")
            i = j + 1
            continue
        if ch == "{":
            stack.append(i)
        elif ch == "}":
            if not stack:
                raise DeclarationParseError(f"unmatched '}}' at offset {i}", path="")
            pairs[stack.pop()] = i
        i += 1
    if stack:
        raise DeclarationParseError(f"unclosed '{{' at offset {stack[-1]}", path="")
    return pairs


def parse_declarations(text: str) -> Dict[str, ModuleBlock]:
    """Locate every ``declare module`` block and its interfaces.

    Raises:
        DeclarationParseError: the text cannot be parsed to find merge points.
    """
    pairs = _brace_pairs(text)
    blocks: Dict[str, ModuleBlock] = {}
    for m in _DECLARE_RE.finditer(text):
        open_brace = m.end() - 1
        if open_brace not in pairs:
            # Inside a comment or string.
            continue
        module = m.group(2)
        close_brace = pairs[open_brace]
        if module in blocks:
            logger.warning("Module '%s' is declared more than once; merging into the first block", module)
            continue
        block = ModuleBlock(module, m.start(), open_brace, close_brace)
        body = text[open_brace + 1:close_brace]
        block.imports_react = bool(re.search(r"\bFC\b[^;]*from\s+['\"]react['\"]", body)) and "ReactNode" in body

        for im in _INTERFACE_RE.finditer(text, open_brace + 1, close_brace):
            i_open = im.end() - 1
            if i_open not in pairs:
                continue
            i_close = pairs[i_open]
            iface = InterfaceBlock(im.group(1), i_open, i_close)
            members = text[i_open + 1:i_close]
            for mm in _MEMBER_RE.finditer(members):
                iface.props.add(mm.group(2))
                iface.member_indent = re.match(r"[ \t]*", members[mm.start():]).group(0) or iface.member_indent
            sig = _INDEX_SIG_RE.search(members)
            if sig:
                iface.index_signature_at = i_open + 1 + sig.start()
            block.interfaces[iface.component] = iface
        for cm in _CONST_RE.finditer(text, open_brace + 1, close_brace):
            block.exports.add(cm.group(1))
        blocks[module] = block
    return blocks


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------

@dataclass
class SynthesisResult:
    text: str
    original_text: str
    added_modules: List[str] = field(default_factory=list)
    added_components: List[str] = field(default_factory=list)
    added_props: int = 0
    fallback: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return self.text != self.original_text

    def to_dict(self) -> dict:
        return {
            "modified": self.modified,
            "added_modules": self.added_modules,
            "added_components": self.added_components,
            "added_props": self.added_props,
            "fallback": self.fallback,
            "notes": self.notes,
        }


def _closing_anchor(text: str, close_brace: int) -> Tuple[int, str]:
    """Insertion point before a closing brace, plus the prefix the snippet needs."""
    line_start = text.rfind("\n", 0, close_brace) + 1
    if text[line_start:close_brace].strip():
        return close_brace, "\n"
    return line_start, ""


def _merge(text: str, usage: Usage, result: SynthesisResult) -> str:
    """Merge usage into parseable declaration text. Raises DeclarationParseError."""
    blocks = parse_declarations(text)
    inserts: List[Tuple[int, str]] = []
    appended: List[str] = []

    for module in sorted(usage):
        components = usage[module]
        block = blocks.get(module)
        if block is None:
            appended.append(DeclarationEntry(module, components).render())
            result.added_modules.append(module)
            continue

        new_components: List[str] = []
        for name in sorted(components):
            props = components[name]
            iface = block.interfaces.get(name)
            if iface is not None:
                missing = sorted(set(props) - iface.props - {"children"})
                if not missing:
                    continue
                anchor = iface.index_signature_at
                prefix = ""
                if anchor < 0:
                    anchor, prefix = _closing_anchor(text, iface.close_brace)
                lines = _prop_lines(missing, iface.member_indent)
                inserts.append((anchor, prefix + "\n".join(lines) + "\n"))
                result.added_props += len(missing)
            elif name in block.exports:
                if props:
                    result.notes.append(f"{module}: {name} is declared without a {name}Props interface; props not merged")
            else:
                new_components.append(name)
                result.added_components.append(f"{module}:{name}")

        if new_components:
            chunk: List[str] = []
            for name in new_components:
                chunk.append("")
                chunk.extend(render_component(name, components[name], "  ",
                                              inline_react=not block.imports_react))
            anchor, prefix = _closing_anchor(text, block.close_brace)
            inserts.append((anchor, prefix + "\n".join(chunk) + "\n"))

    for pos, snippet in sorted(inserts, key=lambda item: item[0], reverse=True):
        text = text[:pos] + snippet + text[pos:]

    if appended:
        if text and not text.endswith("\n"):
            text += "\n"
        for block_text in appended:
            text += ("\n" if text else "") + block_text
    return text


def _fallback(text: str, usage: Usage, result: SynthesisResult) -> str:
    """Write or refresh the delimited block at the end of an unparseable file."""
    result.fallback = True
    begin = text.find(FALLBACK_BEGIN)
    end = text.find(FALLBACK_END, begin + 1) if begin != -1 else -1

    if begin != -1 and end != -1:
        inner_start = text.find("\n", begin) + 1
        inner = text[inner_start:end]
        try:
            merged = _merge(inner, usage, result)
        except DeclarationParseError:
            merged = "\n".join(DeclarationEntry(m, usage[m]).render() for m in sorted(usage))
        return text[:inner_start] + merged + text[end:]

    body = "\n".join(DeclarationEntry(m, usage[m]).render() for m in sorted(usage))
    result.added_modules.extend(sorted(usage))
    prefix = text if not text or text.endswith("\n") else text + "\n"
    return f"{prefix}\n{FALLBACK_BEGIN}\n{body}{FALLBACK_END}\n"


def synthesize(existing_text: str, usage: Usage, path: str = "") -> SynthesisResult:
    """Produce the updated declarations text for usage.

    Never duplicates a ``declare module`` block. Falls back to a delimited
    block when existing_text cannot be parsed.
    """
    newline = "\r\n" if "\r\n" in existing_text else "\n"
    original = existing_text
    text = existing_text.replace("\r\n", "\n")
    result = SynthesisResult(text=original, original_text=original)
    if not usage:
        return result

    if not text.strip():
        text = FILE_HEADER

    try:
        merged = _merge(text, usage, result)
    except DeclarationParseError as exc:
        logger.warning("Cannot parse %s (%s); writing a delimited block instead", path or "declarations", exc)
        result.added_modules.clear()
        result.added_components.clear()
        result.added_props = 0
        merged = _fallback(text, usage, result)

    if newline != "\n":
        merged = merged.replace("\n", newline)
    result.text = merged
    return result


def write_declarations(path: str, result: SynthesisResult) -> bool:
    """Persist synthesized text. Returns True when the file was written."""
    if not result.modified:
        return False
    target = Path(path)
    if target.exists():
        return write_source(SourceFile(str(target), result.original_text, result.text))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(result.text)
    except OSError as exc:
        raise WriteError(f"Cannot create {target}: {exc}", path=str(target)) from exc
    return True


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Synthesize ambient module declarations from observed component usage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(f"""\
            Examples:
              python tools/codemod/declaration_synthesizer.py --root src --dry-run
              python tools/codemod/declaration_synthesizer.py --root src \\
                --output src/types/module-declarations.d.ts --pattern '@chakra-ui/react/*' --json

            {CUI_BANNER}
        """),
    )
    parser.add_argument("--root", action="append", dest="roots", help="Root to scan (repeatable)")
    parser.add_argument("--output", help="Declarations file to create or merge into")
    parser.add_argument("--pattern", action="append", dest="patterns",
                        help="fnmatch pattern for unresolved module paths (repeatable)")
    parser.add_argument("--config", help="Path to codemod_config.yaml")
    parser.add_argument("--project-dir", help="Directory relative paths resolve against")
    parser.add_argument("--dry-run", action="store_true", help="Print the result instead of writing")
    add_output_flags(parser)
    args = parser.parse_args(argv)
    use_json = should_use_json(args)

    try:
        settings = load_settings(
            args.config, project_dir=args.project_dir,
            roots=args.roots, declarations_output=args.output, module_patterns=args.patterns,
        )
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format=settings.log_format)

    discovery = discover_files(settings.roots, extensions=settings.extensions,
                               exclude_dirs=settings.exclude_dirs or None,
                               max_file_size=settings.max_file_size)
    scan = collect_usage(discovery.files, settings.module_patterns)

    output = Path(settings.declarations_output)
    try:
        existing = output.read_text(encoding="utf-8") if output.exists() else ""
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Cannot read {output}: {exc}", file=sys.stderr)
        return 1

    result = synthesize(existing, scan.usage, path=str(output))
    written = False
    if not args.dry_run:
        try:
            written = write_declarations(str(output), result)
        except WriteError as exc:
            logger.error("%s", exc)
            return 1

    failed = bool(discovery.errors or scan.unreadable)
    if use_json:
        payload = result.to_dict()
        payload.update({
            "output": str(output),
            "files_scanned": scan.files_scanned,
            "modules_observed": sorted(scan.usage),
            "component_prop_pairs": scan.pairs(),
            "written": written,
            "dry_run": args.dry_run,
            "classification": CUI_BANNER,
        })
        print(json.dumps(payload, indent=2))
    else:
        if args.dry_run and result.modified:
            print(result.text)
        print(format_kv([
            ("Files scanned", scan.files_scanned),
            ("Modules observed", len(scan.usage)),
            ("Modules added", len(result.added_modules)),
            ("Components added", len(result.added_components)),
            ("Props added", result.added_props),
            ("Output", str(output)),
        ], title="Declaration synthesis"))
        if result.notes:
            print(format_list(result.notes))
        if result.fallback:
            print(format_banner("warning", "Output could not be parsed; wrote a delimited block"))
        elif not result.modified:
            print(format_banner("ok", "Declarations already up to date (unchanged)"))
        else:
            print(format_banner("info" if args.dry_run else "ok",
                                "Dry run: nothing written" if args.dry_run else f"Wrote {output}"))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
