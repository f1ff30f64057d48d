"""
Declaration walkers for C sources.

Two backends produce the same DocComment records:
  - libclang (accurate types, signatures, member info)
  - regex fallback (works without clang installed, less precise)

Both hand raw comment text to the comment engine; when a backend has no
comment for a declaration, the text directly above it in the file is used
instead (libclang rarely attaches comments to macros).
"""

from __future__ import annotations

import ast
import fnmatch
import logging
import operator
import os
import re
from dataclasses import dataclass, field
from enum import Enum, auto

from .comments import extract_file_doc, extract_preceding_comment, normalize_comment

try:
    from clang.cindex import (
        CursorKind,
        Index,
        TranslationUnit,
        TranslationUnitLoadError,
    )

    CLANG_AVAILABLE = True
except ImportError:
    CLANG_AVAILABLE = False

log = logging.getLogger("cmarkdoc")

PARSERS = ("auto", "clang", "regex")


class SymbolKind(Enum):
    FUNCTION = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    TYPEDEF = auto()
    MACRO = auto()
    FIELD = auto()
    ENUM_CONSTANT = auto()


RECORD_KINDS = (SymbolKind.STRUCT, SymbolKind.UNION, SymbolKind.ENUM)

_RECORD_KEYWORDS = {
    "struct": SymbolKind.STRUCT,
    "union": SymbolKind.UNION,
    "enum": SymbolKind.ENUM,
}


@dataclass
class DocComment:
    name: str
    kind: SymbolKind
    comment: str | None = None
    signature: str = ""
    filename: str = ""
    line: int = 0
    members: list[DocComment] = field(default_factory=list)
    value: int | None = None


@dataclass
class SourceDoc:
    path: str
    file_doc: str | None = None
    docs: list[DocComment] = field(default_factory=list)


def read_source(path):
    with open(path, "rb") as f:
        return f.read()


def should_ignore(name, patterns):
    if not name or not patterns:
        return False
    return any(fnmatch.fnmatchcase(name, p) for p in patterns)


def _line_of(text, offset):
    return text.count("\n", 0, offset) + 1


# -- clang parser --

_KIND_MAP = {}

if CLANG_AVAILABLE:
    _KIND_MAP = {
        CursorKind.FUNCTION_DECL: SymbolKind.FUNCTION,
        CursorKind.STRUCT_DECL: SymbolKind.STRUCT,
        CursorKind.UNION_DECL: SymbolKind.UNION,
        CursorKind.ENUM_DECL: SymbolKind.ENUM,
        CursorKind.TYPEDEF_DECL: SymbolKind.TYPEDEF,
        CursorKind.MACRO_DEFINITION: SymbolKind.MACRO,
    }


def _cursor_name(cursor):
    name = cursor.spelling or ""
    if not name or "(unnamed" in name or "(anonymous" in name:
        return "(anonymous)"
    return name


def _token_text(cursor):
    """Rebuild the source text of ``cursor``, one space wherever the source had a gap."""
    parts = []
    prev_end = None
    for tok in cursor.get_tokens():
        ext = tok.extent
        if prev_end is not None and ext.start.offset > prev_end:
            parts.append(" ")
        parts.append(tok.spelling)
        prev_end = ext.end.offset
    return "".join(parts)


def _macro_text(cursor, name):
    text = _token_text(cursor)
    if text.startswith(name):
        return f"#define {text}"
    return f"#define {name} {text}".rstrip()


def _get_signature(cursor, kind, name):
    if kind == SymbolKind.FUNCTION:
        rtype = cursor.result_type.spelling if cursor.result_type else "void"
        params = []
        for ch in cursor.get_children():
            if ch.kind == CursorKind.PARM_DECL:
                params.append(f"{ch.type.spelling} {ch.spelling}".strip())
        return f"{rtype} {name}({', '.join(params)});"
    if kind == SymbolKind.TYPEDEF:
        underlying = cursor.underlying_typedef_type.spelling
        if "(*)" in underlying:
            # the declarator wraps the name, so print it as written
            return f"{_token_text(cursor)};"
        return f"typedef {underlying} {name};"
    if kind == SymbolKind.MACRO:
        return _macro_text(cursor, name)
    return ""


def _get_members(cursor):
    target = cursor.get_definition() or cursor
    members = []
    for ch in target.get_children():
        raw = ch.raw_comment
        comment = normalize_comment(raw) if raw else None
        if ch.kind == CursorKind.FIELD_DECL:
            members.append(
                DocComment(
                    name=ch.spelling,
                    kind=SymbolKind.FIELD,
                    comment=comment,
                    signature=f"{ch.type.spelling} {ch.spelling};",
                )
            )
        elif ch.kind == CursorKind.ENUM_CONSTANT_DECL:
            members.append(
                DocComment(
                    name=ch.spelling,
                    kind=SymbolKind.ENUM_CONSTANT,
                    comment=comment,
                    signature=f"{ch.spelling} = {ch.enum_value}",
                    value=ch.enum_value,
                )
            )
    return members


def _parse_cursor(cursor, data, filename):
    kind = _KIND_MAP.get(cursor.kind)
    if kind is None:
        return None
    name = _cursor_name(cursor)

    raw = cursor.raw_comment
    comment = normalize_comment(raw) if raw else None
    if comment is None:
        comment = extract_preceding_comment(data, cursor.extent.start.offset)

    doc = DocComment(
        name=name,
        kind=kind,
        comment=comment,
        signature=_get_signature(cursor, kind, name),
        filename=filename,
        line=cursor.location.line if cursor.location else 0,
    )
    if kind in RECORD_KINDS:
        doc.members = _get_members(cursor)
    return doc


def _walk(cursor, abspath):
    for ch in cursor.get_children():
        loc = ch.location
        if not loc or not loc.file or os.path.abspath(loc.file.name) != abspath:
            continue
        yield ch
        if ch.kind != CursorKind.FUNCTION_DECL:
            yield from _walk(ch, abspath)


def parse_file(filepath, clang_args=None, ignore=(), data=None):
    if not CLANG_AVAILABLE:
        raise RuntimeError("clang bindings not available, pip install libclang")

    idx = Index.create()
    args = list(clang_args or [])

    try:
        tu = idx.parse(
            filepath, args=args, options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
        )
    except TranslationUnitLoadError as exc:
        raise RuntimeError(f"Failed to parse {filepath}: {exc}") from exc

    if data is None:
        data = read_source(filepath)
    abspath = os.path.abspath(filepath)
    seen = set()
    docs = []
    for cursor in _walk(tu.cursor, abspath):
        if cursor.kind not in _KIND_MAP:
            continue
        usr = cursor.get_usr()
        if usr:
            if usr in seen:
                continue
            seen.add(usr)
        if should_ignore(_cursor_name(cursor), ignore):
            continue
        doc = _parse_cursor(cursor, data, filepath)
        if doc:
            docs.append(doc)
    return docs


# -- regex fallback --

_PREPROC_RE = re.compile(r"^[ \t]*#(?:[^\n]*\\\r?\n)*[^\n]*", re.MULTILINE)
_DEFINE_RE = re.compile(r"^[ \t]*#[ \t]*define[ \t]+(\w+)", re.MULTILINE)
_TRANSPARENT_RE = re.compile(r"^(?:extern|namespace(?:\s+\w+)?)$")
_RECORD_RE = re.compile(r"^(typedef\s+)?(struct|union|enum)\b\s*(\w+)?\s*\{(.*)\}\s*([^{}]*)$")
_ATTRIBUTE_RE = re.compile(r"__attribute__\s*\(\(.*?\)\)\s*")
_FUNC_PTR_RE = re.compile(r"\(\s*\*\s*(\w+)\s*\)")
_ARRAY_RE = re.compile(r"\[[^\]]*\]")
_BITFIELD_RE = re.compile(r":\s*\w+$")
_INT_LITERAL_RE = re.compile(r"\b(0[xX][0-9a-fA-F]+|0[bB][01]+|0[0-7]*|[1-9][0-9]*)[uUlL]*\b")
_CHAR_LITERAL_RE = re.compile(r"'(\\(?:x[0-9a-fA-F]+|[0-7]{1,3}|.)|[^\\'])'")


def _blank(chars, start, end):
    for i in range(start, end):
        if chars[i] != "\n":
            chars[i] = " "


def _mask_comments(source, strings=True):
    """Replace comments (and string/char literals) with spaces, keeping offsets."""
    chars = list(source)
    i, n = 0, len(source)
    while i < n:
        if source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end < 0 else end + 2
        elif source.startswith("//", i):
            end = source.find("\n", i)
            end = n if end < 0 else end
        elif source[i] in "\"'":
            quote = source[i]
            j = i + 1
            while j < n and source[j] != quote and source[j] != "\n":
                j += 2 if source[j] == "\\" else 1
            end = min(j + 1, n)
            if not strings:
                i = end
                continue
        else:
            i += 1
            continue
        _blank(chars, i, end)
        i = end
    return "".join(chars)


def _mask_preprocessor(text):
    return _PREPROC_RE.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _top_level_chunks(masked):
    """Yield ``(start, end, brace)`` for each top-level statement.

    ``end`` is the offset of the terminating ``;`` (or of the opening brace
    of a function body); ``brace`` is the first top-level ``{`` or None.
    """
    depth = 0
    transparent = 0
    start = None
    brace = None
    for i, ch in enumerate(masked):
        if depth == 0 and start is None:
            if ch.isspace() or ch == ";":
                continue
            if ch == "}":
                if transparent:
                    transparent -= 1
                continue
            start = i
        if ch == "{":
            if depth == 0:
                if _TRANSPARENT_RE.match(masked[start:i].strip()):
                    transparent += 1
                    start = None
                    continue
                brace = i
            depth += 1
        elif ch == "}":
            if depth == 0:
                if transparent:
                    transparent -= 1
                start = None
                continue
            depth -= 1
            if depth == 0 and _is_function_header(masked[start:brace]):
                yield start, brace, None
                start = brace = None
        elif ch == ";" and depth == 0:
            yield start, i, brace
            start = brace = None


def _is_function_header(header):
    head = header.lstrip()
    if head.startswith(("struct", "union", "enum", "typedef")):
        return "(" in head and not re.match(r"^(struct|union|enum)\b[^(]*$", head)
    return "(" in head and "=" not in head


def _split_top(text, sep, offset=0):
    """Split ``text`` on ``sep`` outside nested brackets, yielding ``(offset, part)``."""
    depth = 0
    begin = 0
    for i, ch in enumerate(text):
        if ch in "{([":
            depth += 1
        elif ch in "})]":
            depth -= 1
        elif ch == sep and depth == 0:
            yield offset + begin, text[begin:i]
            begin = i + 1
    yield offset + begin, text[begin:]


def _declarator_name(text):
    m = _FUNC_PTR_RE.search(text)
    if m:
        return m.group(1)
    text = _BITFIELD_RE.sub("", _ARRAY_RE.sub("", text)).strip()
    words = re.findall(r"\w+", text)
    return words[-1] if words else ""


_CHAR_ESCAPES = {
    "n": 10, "t": 9, "r": 13, "a": 7, "b": 8, "f": 12, "v": 11,
    "\\": 92, "'": 39, '"': 34, "?": 63,
}

_BINOPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: lambda a, b: int(a / b),
    ast.Mod: lambda a, b: a - b * int(a / b),
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitAnd: operator.and_,
    ast.BitXor: operator.xor,
}
_UNARYOPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Invert: operator.invert,
}


def _char_code(body):
    if not body.startswith("\\"):
        return ord(body)
    esc = body[1:]
    if esc[0] == "x":
        return int(esc[1:], 16)
    if esc[0] in "01234567":
        return int(esc, 8)
    return _CHAR_ESCAPES.get(esc, ord(esc))


def _int_literal(m):
    lit = m.group(1)
    if len(lit) > 1 and lit[0] == "0" and lit[1] not in "xXbB":
        return str(int(lit, 8))
    return str(int(lit, 0))


def _eval_int(node, names):
    if isinstance(node, ast.Expression):
        return _eval_int(node.body, names)
    if isinstance(node, ast.Constant) and type(node.value) is int:
        return node.value
    if isinstance(node, ast.Name) and names.get(node.id) is not None:
        return names[node.id]
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARYOPS:
        return _UNARYOPS[type(node.op)](_eval_int(node.operand, names))
    if isinstance(node, ast.BinOp) and type(node.op) in _BINOPS:
        left = _eval_int(node.left, names)
        right = _eval_int(node.right, names)
        return _BINOPS[type(node.op)](left, right)
    raise ValueError(f"not an integer constant: {ast.dump(node)}")


def _enum_value(expr, names=None):
    """Evaluate an enumerator initializer, or return None when it is not a plain constant.

    Handles integer and character literals, the arithmetic and bitwise
    operators, and references to enumerators defined earlier (``names``).
    """
    text = _CHAR_LITERAL_RE.sub(lambda m: str(_char_code(m.group(1))), expr)
    text = _INT_LITERAL_RE.sub(_int_literal, text)
    try:
        return _eval_int(ast.parse(text.strip(), mode="eval"), names or {})
    except (SyntaxError, ValueError, ZeroDivisionError):
        return None


class _RegexWalker:
    def __init__(self, data, filename, ignore):
        self.data = data
        # latin-1 keeps character offsets equal to byte offsets
        self.source = data.decode("latin-1")
        self.filename = filename
        self.ignore = ignore
        self.comments_only = _mask_comments(self.source, strings=False)
        # literals intact, comments and directives blanked
        self.code = _mask_preprocessor(self.comments_only)
        self.masked = _mask_preprocessor(_mask_comments(self.source))

    def _decode(self, text):
        return text.encode("latin-1").decode("utf-8", errors="replace")

    def _doc(self, name, kind, offset, signature, members=None):
        return DocComment(
            name=name,
            kind=kind,
            comment=extract_preceding_comment(self.data, offset),
            signature=self._decode(signature),
            filename=self.filename,
            line=_line_of(self.source, offset),
            members=members or [],
        )

    def _member_comment(self, offset):
        line_start = self.source.rfind("\n", 0, offset) + 1
        if self.masked[line_start:offset].strip():
            return None
        return extract_preceding_comment(self.data, offset)

    def macros(self):
        for m in _DEFINE_RE.finditer(self.comments_only):
            line = _PREPROC_RE.match(self.comments_only, m.start()).group(0)
            text = " ".join(re.sub(r"\\\r?\n", " ", line).split())
            hash_at = m.start() + (len(m.group(0)) - len(m.group(0).lstrip()))
            yield hash_at, self._doc(m.group(1), SymbolKind.MACRO, hash_at, text)

    def _members(self, kind, body_start, body_end):
        body = self.masked[body_start:body_end]
        sep = "," if kind == SymbolKind.ENUM else ";"
        members = []
        next_value = 0
        known = {}
        for offset, part in _split_top(body, sep, body_start):
            text = " ".join(part.split())
            if not text:
                continue
            first = offset + len(part) - len(part.lstrip())
            comment = self._member_comment(first)
            if kind == SymbolKind.ENUM:
                name = text.partition("=")[0].strip()
                raw = " ".join(self.code[offset : offset + len(part)].split())
                expr = raw.partition("=")[2].strip()
                value = _enum_value(expr, known) if expr else next_value
                next_value = value + 1 if value is not None else None
                known[name] = value
                if value is not None:
                    signature = f"{name} = {value}"
                elif expr:
                    signature = self._decode(f"{name} = {expr}")
                else:
                    signature = name
                members.append(
                    DocComment(
                        name=name,
                        kind=SymbolKind.ENUM_CONSTANT,
                        comment=comment,
                        signature=signature,
                        value=value,
                    )
                )
            else:
                members.append(
                    DocComment(
                        name=_declarator_name(text),
                        kind=SymbolKind.FIELD,
                        comment=comment,
                        signature=self._decode(f"{text};"),
                    )
                )
        return members

    def _records(self, start, end, brace, decl):
        m = _RECORD_RE.match(decl)
        is_typedef, keyword, tag, _, tail = m.groups()
        kind = _RECORD_KEYWORDS[keyword]
        alias = _declarator_name(tail.split(",")[0]) if tail.strip() else ""
        close = self.masked.rfind("}", brace, end)
        members = self._members(kind, brace + 1, close)
        name = tag or (alias if is_typedef else "") or "(anonymous)"
        yield self._doc(name, kind, start, "", members)
        if is_typedef and alias:
            target = f"{keyword} {tag}" if tag else f"{keyword} {{ ... }}"
            yield self._doc(alias, SymbolKind.TYPEDEF, start, f"typedef {target} {tail.strip()};")

    def declarations(self):
        for start, end, brace in _top_level_chunks(self.masked):
            decl = _ATTRIBUTE_RE.sub("", " ".join(self.masked[start:end].split())).strip()
            if _RECORD_RE.match(decl):
                for doc in self._records(start, end, brace, decl):
                    yield start, doc
                continue
            if decl.startswith("typedef "):
                name = _declarator_name(decl)
                if name:
                    yield start, self._doc(name, SymbolKind.TYPEDEF, start, f"{decl};")
                continue
            if decl.startswith(("struct ", "union ", "enum ")) and "(" not in decl:
                continue
            doc = self._function(start, decl)
            if doc:
                yield start, doc

    def _function(self, start, decl):
        paren = decl.find("(")
        if paren < 0 or "=" in decl[:paren]:
            return None
        pre = decl[:paren].rstrip()
        m = re.search(r"(\w+)$", pre)
        if not m or not pre[: m.start()].strip():
            return None
        return self._doc(m.group(1), SymbolKind.FUNCTION, start, f"{decl};")

    def walk(self):
        found = list(self.macros()) + list(self.declarations())
        found.sort(key=lambda item: item[0])
        seen = set()
        docs = []
        for _, doc in found:
            key = (doc.kind, doc.name)
            if key in seen or should_ignore(doc.name, self.ignore):
                continue
            if doc.name != "(anonymous)":
                seen.add(key)
            docs.append(doc)
        return docs


def parse_file_regex(filepath, ignore=(), data=None):
    if data is None:
        data = read_source(filepath)
    return _RegexWalker(data, filepath, ignore).walk()


def parse_source(filepath, clang_args=None, ignore=(), parser="auto"):
    """Parse one input file with the chosen backend.

    Returns a SourceDoc, or None when the file cannot be read or parsed.
    """
    try:
        data = read_source(filepath)
    except OSError as exc:
        log.error("cmarkdoc: cannot read %s: %s", filepath, exc)
        return None

    docs = None
    if parser == "clang" or (parser == "auto" and CLANG_AVAILABLE):
        try:
            docs = parse_file(filepath, clang_args=clang_args, ignore=ignore, data=data)
        except RuntimeError as exc:
            if parser == "clang":
                log.error("cmarkdoc: parse error %s: %s", filepath, exc)
                return None
            log.debug("cmarkdoc: clang failed on %s (%s), trying regex", filepath, exc)
    if docs is None:
        docs = parse_file_regex(filepath, ignore=ignore, data=data)

    return SourceDoc(path=filepath, file_doc=extract_file_doc(data), docs=docs)
