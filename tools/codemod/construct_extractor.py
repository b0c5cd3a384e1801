#!/usr/bin/env python3
# CUI // SP-CTI
"""Construct Extractor — pattern-based recognition of TS/JSX constructs.

Locates import statements, JSX opening and closing tags (with their
attribute lists) and component declarations in raw source text. There is
no language parser here: a single lexical pass marks comment, string,
template and regex-literal regions and pairs every bracket, then regular
expression anchors find constructs in the remaining code.

The lexical pass follows JSX nesting. Inside element children only
``{``, ``}`` and tags matter, so text such as ``{done}/{total}`` or
``Step 1)`` is neither read as a regex literal nor as a stray bracket.

Attribute values are delimited with the bracket pairs recorded by the
lexical pass, so ``onClick={() => { if (a) { b() } }}`` is one value and
never ends at the first ``}``.

extract_constructs() never raises. Regions it cannot classify (truncated
tags, unterminated attribute expressions, malformed import clauses,
unbalanced brackets across the file) come back as SkippedSpan entries and
every construct that could be recognised is still returned.
"""

import argparse
import json
import logging
import re
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR))

logger = logging.getLogger("codemod.extractor")

_PAIRS = {"{": "}", "(": ")", "[": "]", "${": "}"}
_SPECIAL_RE = re.compile(r"[/'\"`{}()\[\]<>]")
_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*")
_TAG_NAME_RE = re.compile(r"[A-Za-z_$][\w$]*(?:[.:-][A-Za-z_$][\w$]*)*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_$][\w$:.-]*")
_CLOSING_RE = re.compile(r"</\s*([A-Za-z_$][\w$]*(?:[.:-][A-Za-z_$][\w$]*)*)\s*>")
_IMPORT_RE = re.compile(r"^[ \t]*(import)\b", re.MULTILINE)
_SPECIFIER_RE = re.compile(
    r"^(type\s+)?([A-Za-z_$][\w$]*)(?:\s+as\s+([A-Za-z_$][\w$]*))?$"
)
_NAMESPACE_RE = re.compile(r"\*\s*as\s+([A-Za-z_$][\w$]*)")
_FROM_RE = re.compile(r"from\b")
_ATTRIBUTES_RE = re.compile(r"[ \t]*(?:with|assert)\s*\{")
_COMMENT_RE = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_WRAPPER_RE = re.compile(r"(?:React\.)?(?:memo|forwardRef)\b")

# Characters after which a "/" starts a regex literal rather than a division
_REGEX_PRECEDERS = set("(,=:[!&|?{};")
# Characters after which a "<" can open a JSX tag
_TAG_PRECEDERS = set("(,=:?&|[{};>")
# Type parameter lists such as <T,> or <T extends X>
_GENERIC_TAIL_RE = re.compile(r"\s*(?:,|=|extends\b)")

_DECLARATION_PATTERNS = [
    ("function", re.compile(
        r"^[ \t]*(export\s+(?:default\s+)?)?(?:async\s+)?function\s*\*?\s*([A-Z][\w$]*)",
        re.MULTILINE)),
    ("class", re.compile(
        r"^[ \t]*(export\s+(?:default\s+)?)?(?:abstract\s+)?class\s+([A-Z][\w$]*)",
        re.MULTILINE)),
    ("interface", re.compile(
        r"^[ \t]*(export\s+)?interface\s+([A-Z][\w$]*)", re.MULTILINE)),
    ("const", re.compile(
        r"^[ \t]*(export\s+)?(?:const|let|var)\s+([A-Z][\w$]*)\s*(?::[^=\n]+)?=\s*"
        r"(?=(?:React\.)?(?:memo|forwardRef)\b|\(|async\b|function\b|[A-Za-z_$][\w$]*\s*=>)",
        re.MULTILINE)),
]


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportSpecifier:
    name: str
    alias: Optional[str] = None
    is_type: bool = False

    @property
    def local(self) -> str:
        return self.alias or self.name

    def render(self) -> str:
        prefix = "type " if self.is_type else ""
        if self.alias and self.alias != self.name:
            return f"{prefix}{self.name} as {self.alias}"
        return f"{prefix}{self.name}"


@dataclass
class ImportStatement:
    """One ``import ... from '...'`` statement. Spans cover ``import`` to the end (``;`` included)."""
    module: str
    specifiers: List[ImportSpecifier] = field(default_factory=list)
    default: Optional[str] = None
    namespace: Optional[str] = None
    type_only: bool = False
    start: int = 0
    end: int = 0
    quote: str = "'"
    semicolon: bool = True
    multiline: bool = False
    indent: str = "  "
    trailing_comma: bool = False
    rewritable: bool = True

    @property
    def has_clause(self) -> bool:
        return bool(self.specifiers or self.default or self.namespace)

    def local_names(self) -> List[str]:
        names = [s.local for s in self.specifiers]
        if self.default:
            names.append(self.default)
        if self.namespace:
            names.append(self.namespace)
        return names

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Attribute:
    name: str
    value: Optional[str]
    name_start: int
    name_end: int
    value_start: int = -1
    value_end: int = -1


@dataclass
class ElementUsage:
    tag: str
    attributes: List[Attribute] = field(default_factory=list)
    start: int = 0
    end: int = 0
    name_start: int = 0
    name_end: int = 0
    self_closing: bool = False

    def attribute(self, name: str) -> Optional[Attribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def attribute_names(self) -> List[str]:
        return [a.name for a in self.attributes]


@dataclass
class ClosingTag:
    tag: str
    start: int
    end: int
    name_start: int
    name_end: int


@dataclass
class ComponentDeclaration:
    name: str
    kind: str
    exported: bool
    start: int
    end: int


@dataclass
class SkippedSpan:
    start: int
    end: int
    reason: str

    def as_tuple(self) -> Tuple[int, int, str]:
        return (self.start, self.end, self.reason)


@dataclass
class ExtractionResult:
    imports: List[ImportStatement] = field(default_factory=list)
    elements: List[ElementUsage] = field(default_factory=list)
    closing_tags: List[ClosingTag] = field(default_factory=list)
    components: List[ComponentDeclaration] = field(default_factory=list)
    skipped: List[SkippedSpan] = field(default_factory=list)
    text: str = field(default="", repr=False)
    code_mask: bytearray = field(default_factory=bytearray, repr=False)
    regex_spans: List[Tuple[int, int]] = field(default_factory=list, repr=False)

    @property
    def ambiguous(self) -> bool:
        return bool(self.skipped)

    def is_code(self, pos: int) -> bool:
        return 0 <= pos < len(self.code_mask) and not self.code_mask[pos]

    def code_occurrences(self, name: str) -> List[int]:
        """Offsets where ``name`` appears as a whole identifier in code.

        Occurrences inside comments, strings and after a ``.`` (member
        access) are not counted.
        """
        pattern = re.compile(r"(?<![\w$.])" + re.escape(name) + r"(?![\w$])")
        return [m.start() for m in pattern.finditer(self.text) if self.is_code(m.start())]

    def regex_occurrences(self, name: str) -> List[int]:
        """Offsets where ``name`` appears as raw text inside a regex literal."""
        pattern = re.compile(r"(?<![\w$])" + re.escape(name) + r"(?![\w$])")
        return [m.start() for start, end in self.regex_spans
                for m in pattern.finditer(self.text, start, end)]

    def line_of(self, pos: int) -> int:
        return self.text.count("\n", 0, pos) + 1

    def summary(self) -> Dict[str, int]:
        return {
            "imports": len(self.imports),
            "elements": len(self.elements),
            "closing_tags": len(self.closing_tags),
            "components": len(self.components),
            "skipped": len(self.skipped),
        }


# ---------------------------------------------------------------------------
# Lexical pass
# ---------------------------------------------------------------------------

class _LexicalScan:
    """Marks non-code regions and pairs brackets in one left-to-right pass.

    The stack holds bracket frames (``{ ( [ ${``) and JSX frames: ``<``
    and ``</`` while inside a tag, ``jsx`` while inside element children.
    Children text is literal: quotes, slashes and parentheses there are
    neither masked nor paired. Regex literal spans are kept separately in
    ``regex_spans``.
    """

    def __init__(self, text: str, jsx: bool = True):
        self.text = text
        self.n = len(text)
        self.jsx = jsx
        self.mask = bytearray(self.n)
        self.pairs: Dict[int, int] = {}
        self.regex_spans: List[Tuple[int, int]] = []
        self.skipped: List[SkippedSpan] = []
        self._stack: List[Tuple[str, int]] = []
        self._run()

    def _mark(self, start: int, end: int):
        if end > start:
            self.mask[start:end] = b"\x01" * (end - start)

    def _prev_significant(self, i: int) -> str:
        j = i - 1
        while j >= 0 and self.text[j] in " \t\r\n":
            j -= 1
        return self.text[j] if j >= 0 else ""

    def _after_return(self, i: int) -> bool:
        return self.text[max(0, i - 7):i].rstrip().endswith("return")

    def _regex_allowed(self, i: int) -> bool:
        prev = self._prev_significant(i)
        if prev == "" or prev in _REGEX_PRECEDERS:
            return True
        return self._after_return(i)

    def _tag_allowed(self, i: int) -> bool:
        """True when the "<" at i opens a JSX tag in expression position."""
        nxt = self.text[i + 1] if i + 1 < self.n else ""
        if nxt != ">":
            name = _TAG_NAME_RE.match(self.text, i + 1)
            if not name or _GENERIC_TAIL_RE.match(self.text, name.end()):
                return False
        prev = self._prev_significant(i)
        if prev == "" or prev in _TAG_PRECEDERS:
            return True
        return self._after_return(i)

    def _frame(self) -> str:
        return self._stack[-1][0] if self._stack else ""

    def _scan_regex(self, i: int) -> int:
        text, j, in_class = self.text, i + 1, False
        while j < self.n:
            c = text[j]
            if c == "\n":
                return -1
            if c == "\\":
                j += 2
                continue
            if c == "[":
                in_class = True
            elif c == "]":
                in_class = False
            elif c == "/" and not in_class:
                j += 1
                while j < self.n and text[j].isalpha():
                    j += 1
                return j
            j += 1
        return -1

    def _scan_quoted(self, i: int) -> int:
        text, quote, j = self.text, self.text[i], i + 1
        while j < self.n:
            c = text[j]
            if c == "\\":
                j += 2
                continue
            if c == quote:
                return j + 1
            if c == "\n":
                return -1
            j += 1
        return -1

    def _scan_template(self, j: int, opened_at: int) -> int:
        """Scan template text from j; return where code scanning resumes."""
        text = self.text
        start = j
        while j < self.n:
            c = text[j]
            if c == "\\":
                j += 2
                continue
            if c == "`":
                self._mark(start, j + 1)
                return j + 1
            if c == "$" and j + 1 < self.n and text[j + 1] == "{":
                self._mark(start, j)
                self._stack.append(("${", j + 1))
                return j + 2
            j += 1
        self._mark(start, self.n)
        self.skipped.append(SkippedSpan(opened_at, self.n, "unterminated template literal"))
        return self.n

    def _scan_comment(self, i: int) -> int:
        """Mark a comment starting at i; return its end, or -1 if none starts there."""
        text, n = self.text, self.n
        nxt = text[i + 1] if i + 1 < n else ""
        if nxt == "/" and not self._is_url_slashes(i):
            end = text.find("\n", i)
            end = n if end == -1 else end
            self._mark(i, end)
            return end
        if nxt == "*":
            end = text.find("*/", i + 2)
            if end == -1:
                self._mark(i, n)
                self.skipped.append(SkippedSpan(i, n, "unterminated block comment"))
                return n
            self._mark(i, end + 2)
            return end + 2
        return -1

    def _is_url_slashes(self, i: int) -> bool:
        # "https://" outside recognised children text is not a comment
        return i >= 2 and self.text[i - 1] == ":" and self.text[i - 2].isalpha()

    def _close_bracket(self, i: int) -> int:
        ch = self.text[i]
        frame = self._frame()
        if frame in _PAIRS and _PAIRS[frame] == ch:
            opener, pos = self._stack.pop()
            self.pairs[pos] = i
            if opener == "${":
                return self._scan_template(i + 1, pos)
        else:
            self.skipped.append(SkippedSpan(i, i + 1, f"unmatched '{ch}'"))
        return i + 1

    def _step_children(self, i: int) -> int:
        text, ch = self.text, self.text[i]
        if ch == "{":
            self._stack.append(("{", i))
        elif ch == "<":
            nxt = text[i + 1] if i + 1 < self.n else ""
            if nxt == "/":
                self._stack.append(("</", i))
            elif nxt == ">" or _TAG_NAME_RE.match(text, i + 1):
                self._stack.append(("<", i))
        elif ch == "}":
            self.skipped.append(SkippedSpan(i, i + 1, "unmatched '}'"))
        return i + 1

    def _step_tag(self, i: int) -> int:
        ch = self.text[i]
        if ch == "{":
            self._stack.append(("{", i))
            return i + 1
        if ch == "/":
            end = self._scan_comment(i)
            return i + 1 if end == -1 else end
        if ch in "'\"":
            end = self._scan_quoted(i)
            if end == -1:
                return i + 1
            self._mark(i, end)
            return end
        if ch == ">":
            kind, _ = self._stack.pop()
            if kind == "</":
                if self._frame() == "jsx":
                    self._stack.pop()
                else:
                    self.skipped.append(SkippedSpan(i, i + 1, "unmatched closing tag"))
            elif self._prev_significant(i) != "/":
                self._stack.append(("jsx", i))
            return i + 1
        if ch in ")]}":
            self.skipped.append(SkippedSpan(i, i + 1, f"unmatched '{ch}'"))
        return i + 1

    def _step_code(self, i: int) -> int:
        text, ch = self.text, self.text[i]
        nxt = text[i + 1] if i + 1 < self.n else ""

        if ch == "/":
            end = self._scan_comment(i)
            if end != -1:
                return end
            # "/>" closes a JSX tag even after "}"
            if nxt != ">" and self._regex_allowed(i):
                end = self._scan_regex(i)
                if end != -1:
                    self._mark(i, end)
                    self.regex_spans.append((i, end))
                    return end
            return i + 1

        if ch in "'\"":
            # A quote right after a letter is an apostrophe in unrecognised text
            if i > 0 and text[i - 1].isalnum():
                return i + 1
            end = self._scan_quoted(i)
            if end == -1:
                return i + 1
            self._mark(i, end)
            return end

        if ch == "`":
            return self._scan_template(i + 1, i)

        if ch == "<":
            if self.jsx and self._tag_allowed(i):
                self._stack.append(("<", i))
            return i + 1

        if ch == ">":
            return i + 1

        if ch in "{([":
            self._stack.append((ch, i))
            return i + 1

        return self._close_bracket(i)

    def _run(self):
        text, n, i = self.text, self.n, 0
        while i < n:
            m = _SPECIAL_RE.search(text, i)
            if not m:
                break
            i = m.start()
            frame = self._frame()
            if frame == "jsx":
                i = self._step_children(i)
            elif frame in ("<", "</"):
                i = self._step_tag(i)
            else:
                i = self._step_code(i)

        for opener, pos in self._stack:
            if opener in ("<", "</"):
                reason = "unterminated tag"
            elif opener == "jsx":
                reason = "unclosed JSX element"
            else:
                label = "{" if opener == "${" else opener
                reason = f"unclosed '{label}'"
            self.skipped.append(SkippedSpan(pos, n, reason))
        self._stack = []


# ---------------------------------------------------------------------------
# Import statements
# ---------------------------------------------------------------------------

def _skip_ws(text: str, i: int) -> int:
    n = len(text)
    while i < n:
        if text[i] in " \t\r\n":
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            break
    return i


def _line_end(text: str, i: int) -> int:
    end = text.find("\n", i)
    return len(text) if end == -1 else end


def _parse_specifiers(body: str):
    specs = []
    parts = body.split(",")
    trailing = bool(parts) and parts[-1].strip() == "" and len(parts) > 1
    for part in parts:
        part = " ".join(part.split())
        if not part:
            continue
        m = _SPECIFIER_RE.match(part)
        if not m:
            return None, trailing
        specs.append(ImportSpecifier(name=m.group(2), alias=m.group(3), is_type=bool(m.group(1))))
    return specs, trailing


def _parse_import(text: str, start: int, kw_end: int):
    """Parse one import statement. Returns (ImportStatement|None, SkippedSpan|None)."""
    n = len(text)
    i = _skip_ws(text, kw_end)
    if i >= n:
        return None, SkippedSpan(start, n, "truncated import")
    if text[i] in "(.":
        return None, None  # dynamic import() or import.meta

    stmt = ImportStatement(module="", start=start)

    def malformed(reason="malformed import clause"):
        return None, SkippedSpan(start, _line_end(text, i), reason)

    m = _IDENT_RE.match(text, i)
    if m and m.group(0) == "type":
        j = _skip_ws(text, m.end())
        nm = _IDENT_RE.match(text, j)
        if j < n and (text[j] in "{*" or (nm and nm.group(0) != "from")):
            stmt.type_only = True
            i = j

    if text[i] not in "'\"":
        m = _IDENT_RE.match(text, i)
        if m and text[i] not in "{*":
            stmt.default = m.group(0)
            i = _skip_ws(text, m.end())
            if i < n and text[i] == "=":
                return None, None  # import x = require("...")
            if i < n and text[i] == ",":
                i = _skip_ws(text, i + 1)
        if i < n and text[i] == "*":
            nm = _NAMESPACE_RE.match(text, i)
            if not nm:
                return malformed()
            stmt.namespace = nm.group(1)
            i = _skip_ws(text, nm.end())
        elif i < n and text[i] == "{":
            close = text.find("}", i)
            if close == -1:
                return None, SkippedSpan(start, n, "unterminated import clause")
            body = text[i + 1:close]
            if "//" in body or "/*" in body:
                stmt.rewritable = False
                body = _COMMENT_RE.sub("", body)
            specs, trailing = _parse_specifiers(body)
            if specs is None:
                return malformed()
            stmt.specifiers = specs
            stmt.trailing_comma = trailing
            if "\n" in text[i:close]:
                stmt.multiline = True
                indent = re.search(r"\n([ \t]+)\S", text[i:close])
                if indent:
                    stmt.indent = indent.group(1)
            i = _skip_ws(text, close + 1)
        if not stmt.has_clause:
            return malformed()
        fm = _FROM_RE.match(text, i)
        if not fm:
            return malformed()
        i = _skip_ws(text, fm.end())

    if i >= n or text[i] not in "'\"":
        return malformed("import without module path")
    quote = text[i]
    close = text.find(quote, i + 1)
    if close == -1 or "\n" in text[i + 1:close]:
        return malformed("unterminated module path")
    stmt.module = text[i + 1:close]
    stmt.quote = quote
    i = close + 1

    am = _ATTRIBUTES_RE.match(text, i)
    if am:
        close = text.find("}", am.end())
        if close == -1:
            return malformed("unterminated import attributes")
        stmt.rewritable = False
        i = close + 1

    j = i
    while j < n and text[j] in " \t":
        j += 1
    if j < n and text[j] == ";":
        stmt.semicolon = True
        stmt.end = j + 1
    else:
        stmt.semicolon = False
        stmt.end = i
    return stmt, None


def _extract_imports(text: str, scan: _LexicalScan, result: ExtractionResult):
    for m in _IMPORT_RE.finditer(text):
        kw_start = m.start(1)
        if scan.mask[kw_start]:
            continue
        stmt, skipped = _parse_import(text, kw_start, m.end(1))
        if skipped:
            logger.debug("Skipped import at %d: %s", kw_start, skipped.reason)
            result.skipped.append(skipped)
        elif stmt:
            result.imports.append(stmt)


# ---------------------------------------------------------------------------
# JSX tags
# ---------------------------------------------------------------------------

def _parse_tag(text: str, scan: _LexicalScan, start: int, name_match):
    """Parse an opening tag whose name was matched at start+1.

    Returns (ElementUsage|None, SkippedSpan|None). (None, None) means the
    text is not a tag (generic parameter list, comparison) and is ignored.
    """
    n = len(text)
    tag = name_match.group(0)
    attributes: List[Attribute] = []
    i = name_match.end()

    while True:
        i = _skip_ws(text, i)
        if i >= n:
            return None, SkippedSpan(start, n, "truncated tag")
        ch = text[i]
        if ch == ">":
            return ElementUsage(tag, attributes, start, i + 1,
                                name_match.start(), name_match.end(), False), None
        if ch == "/":
            j = _skip_ws(text, i + 1)
            if j >= n:
                return None, SkippedSpan(start, n, "truncated tag")
            if text[j] == ">":
                return ElementUsage(tag, attributes, start, j + 1,
                                    name_match.start(), name_match.end(), True), None
            return None, None
        if ch == "{":
            # {...spread} or {/* comment */}
            close = scan.pairs.get(i)
            if close is None:
                return None, SkippedSpan(start, n, "unterminated attribute expression")
            i = close + 1
            continue

        am = _ATTR_NAME_RE.match(text, i)
        if not am:
            return None, None
        attr = Attribute(name=am.group(0), value=None, name_start=am.start(), name_end=am.end())
        i = _skip_ws(text, am.end())
        if i < n and text[i] == "=":
            i = _skip_ws(text, i + 1)
            if i >= n:
                return None, SkippedSpan(start, n, "truncated tag")
            vch = text[i]
            if vch in "'\"":
                close = text.find(vch, i + 1)
                if close == -1:
                    return None, SkippedSpan(start, n, "unterminated attribute string")
                value_end = close + 1
            elif vch == "{":
                close = scan.pairs.get(i)
                if close is None:
                    return None, SkippedSpan(start, n, "unterminated attribute expression")
                value_end = close + 1
            elif vch == "<":
                return None, SkippedSpan(start, _line_end(text, i), "unsupported attribute value")
            else:
                return None, None
            attr.value = text[i:value_end]
            attr.value_start = i
            attr.value_end = value_end
            i = value_end
        attributes.append(attr)


def _extract_tags(text: str, scan: _LexicalScan, result: ExtractionResult):
    pos = text.find("<")
    n = len(text)
    while pos != -1:
        if scan.mask[pos] or pos + 1 >= n:
            pos = text.find("<", pos + 1)
            continue
        nxt = text[pos + 1]
        if nxt == "/":
            cm = _CLOSING_RE.match(text, pos)
            if cm:
                result.closing_tags.append(
                    ClosingTag(cm.group(1), pos, cm.end(), cm.start(1), cm.end(1)))
        elif pos == 0 or not (text[pos - 1].isalnum() or text[pos - 1] in "_$"):
            nm = _TAG_NAME_RE.match(text, pos + 1)
            if nm:
                element, skipped = _parse_tag(text, scan, pos, nm)
                if element:
                    result.elements.append(element)
                elif skipped:
                    logger.debug("Skipped tag at %d: %s", pos, skipped.reason)
                    result.skipped.append(skipped)
        pos = text.find("<", pos + 1)


# ---------------------------------------------------------------------------
# Component declarations
# ---------------------------------------------------------------------------

def _first_code_char(text: str, scan: _LexicalScan, chars: str, start: int, limit: int) -> int:
    for i in range(start, min(limit, len(text))):
        if text[i] in chars and not scan.mask[i]:
            return i
    return -1


def _body_end(text: str, scan: _LexicalScan, kind: str, decl_end: int) -> int:
    """Best-effort end offset of a declaration body."""
    search_from = decl_end
    openers = "{"
    if kind == "function":
        paren = _first_code_char(text, scan, "(", decl_end, decl_end + 200)
        if paren != -1 and paren in scan.pairs:
            search_from = scan.pairs[paren] + 1
    elif kind == "const":
        openers = "{("
        if _WRAPPER_RE.match(text, decl_end):
            openers = "("
        else:
            head = _first_code_char(text, scan, "(", decl_end, decl_end + 1)
            if head != -1 and head in scan.pairs:
                search_from = scan.pairs[head] + 1
            arrow = text.find("=>", search_from, search_from + 300)
            if arrow != -1:
                search_from = arrow + 2
    opener = _first_code_char(text, scan, openers, search_from, search_from + 2000)
    close = scan.pairs.get(opener) if opener != -1 else None
    return close + 1 if close is not None else _line_end(text, decl_end)


def _extract_components(text: str, scan: _LexicalScan, result: ExtractionResult):
    exported_later = set(re.findall(r"^\s*export\s+default\s+([A-Z][\w$]*)\s*;?\s*$", text, re.MULTILINE))
    for block in re.findall(r"^\s*export\s*\{([^}]*)\}", text, re.MULTILINE):
        for part in block.split(","):
            name = part.strip().split(" as ")[0].strip()
            if name:
                exported_later.add(name)

    seen = set()
    for kind, pattern in _DECLARATION_PATTERNS:
        for m in pattern.finditer(text):
            name, name_pos = m.group(2), m.start(2)
            if scan.mask[name_pos] or name_pos in seen:
                continue
            seen.add(name_pos)
            result.components.append(ComponentDeclaration(
                name=name,
                kind=kind,
                exported=bool(m.group(1)) or name in exported_later,
                start=text.rfind("\n", 0, name_pos) + 1,
                end=_body_end(text, scan, kind, m.end()),
            ))
    result.components.sort(key=lambda c: c.start)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def allows_jsx(path: str) -> bool:
    """Plain .ts modules cannot contain JSX, so "<" there is a type assertion or generic."""
    return not path.endswith((".ts", ".mts", ".cts"))


def extract_constructs(text: str, jsx: bool = True) -> ExtractionResult:
    """Extract imports, JSX tags and component declarations from text.

    Never raises. Unclassifiable regions are reported in ``skipped``.
    With jsx=False no "<" opens a JSX region during the lexical pass.
    """
    result = ExtractionResult(text=text)
    try:
        scan = _LexicalScan(text, jsx=jsx)
    except (IndexError, ValueError) as exc:  # pragma: no cover - lexer guards its own indices
        logger.warning("Lexical scan failed: %s", exc)
        result.skipped.append(SkippedSpan(0, len(text), f"lexical scan failed: {exc}"))
        return result

    result.code_mask = scan.mask
    result.regex_spans = scan.regex_spans
    result.skipped.extend(scan.skipped)
    _extract_imports(text, scan, result)
    _extract_tags(text, scan, result)
    _extract_components(text, scan, result)
    result.skipped.sort(key=lambda s: (s.start, s.end))
    return result


def main():
    parser = argparse.ArgumentParser(
        description="Print the constructs recognised in a TS/JSX source file",
    )
    parser.add_argument("file", help="Source file to inspect")
    parser.add_argument("--json", action="store_true", help="JSON output")
    args = parser.parse_args()

    text = Path(args.file).read_text(encoding="utf-8")
    result = extract_constructs(text, jsx=allows_jsx(args.file))

    if args.json:
        print(json.dumps({
            "file": args.file,
            "summary": result.summary(),
            "imports": [{"module": s.module, "symbols": [sp.render() for sp in s.specifiers],
                         "default": s.default, "namespace": s.namespace,
                         "line": result.line_of(s.start)} for s in result.imports],
            "elements": [{"tag": e.tag, "props": e.attribute_names(),
                          "self_closing": e.self_closing, "line": result.line_of(e.start)}
                         for e in result.elements],
            "components": [{"name": c.name, "kind": c.kind, "exported": c.exported,
                            "line": result.line_of(c.start)} for c in result.components],
            "skipped": [{"line": result.line_of(s.start), "reason": s.reason} for s in result.skipped],
        }, indent=2))
    else:
        print(f"{args.file}: {result.summary()}")
        for span in result.skipped:
            print(f"  line {result.line_of(span.start)}: skipped ({span.reason})")


if __name__ == "__main__":
    main()
