"""
Markdown renderer for parsed declarations.

Takes DocComment/SourceDoc objects from the parser and lays them out as one
Markdown document: a title, an index of macros, types and functions, and a
section per input file with anchored entries for every declaration.
"""

from __future__ import annotations

from .doxygen import shift_headings
from .parser import RECORD_KINDS, SymbolKind
from .textbuf import TextBuffer

_KIND_LABELS = {
    SymbolKind.FUNCTION: "Function",
    SymbolKind.STRUCT: "Struct",
    SymbolKind.UNION: "Union",
    SymbolKind.ENUM: "Enum",
    SymbolKind.TYPEDEF: "Typedef",
    SymbolKind.MACRO: "Macro",
}

_KIND_ANCHOR_PREFIX = {
    SymbolKind.FUNCTION: "function",
    SymbolKind.STRUCT: "type-struct",
    SymbolKind.UNION: "type-union",
    SymbolKind.ENUM: "type-enum",
    SymbolKind.TYPEDEF: "type-typedef",
    SymbolKind.MACRO: "macro",
}

_TYPE_KINDS = (SymbolKind.STRUCT, SymbolKind.UNION, SymbolKind.ENUM, SymbolKind.TYPEDEF)


def make_anchor(prefix, name):
    out = list(prefix.lower())
    if out and out[-1] != "-":
        out.append("-")
    last_dash = bool(out) and out[-1] == "-"
    for ch in name:
        if (ch.isascii() and ch.isalnum()) or ch == "_":
            out.append(ch.lower())
            last_dash = False
        elif not last_dash and out:
            out.append("-")
            last_dash = True
    anchor = "".join(out).rstrip("-")
    return anchor or "x"


def anchor_id(doc):
    prefix = _KIND_ANCHOR_PREFIX.get(doc.kind, "symbol")
    return make_anchor(prefix, doc.name or "anonymous")


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=3,
        language="c",
        show_location=True,
        source_uri="",
        title="API Documentation",
    ):
        self.heading_level = heading_level
        self.language = language
        self.show_location = show_location
        self.source_uri = source_uri
        self.title = title

    @property
    def section_level(self):
        return max(1, self.heading_level - 1)


def _heading(text, level):
    return f"{'#' * level} {text}"


def _location(doc, cfg):
    if not cfg.show_location or not doc.filename:
        return ""
    text = f"*Defined at*: `{doc.filename}:{doc.line}`"
    if cfg.source_uri:
        uri = cfg.source_uri.format(filename=doc.filename, line=doc.line)
        text += f" [[source]({uri})]"
    return text


def _member_line(member):
    line = f"- `{member.signature or member.name}`"
    if member.comment:
        line += " — " + member.comment.replace("\n", "\n  ")
    return line


def render_doc(doc, cfg=None):
    if cfg is None:
        cfg = RenderConfig()

    label = _KIND_LABELS.get(doc.kind, "Symbol")
    parts = [
        f'<a id="{anchor_id(doc)}"></a>',
        _heading(f"{label}: `{doc.name}`", cfg.heading_level),
        "",
    ]

    if doc.comment:
        parts += [doc.comment, ""]

    if doc.kind in RECORD_KINDS:
        if doc.members:
            parts += [_member_line(m) for m in doc.members]
            parts.append("")
    elif doc.signature:
        parts += [f"```{cfg.language}", doc.signature, "```", ""]

    loc = _location(doc, cfg)
    if loc:
        parts += [loc, ""]

    parts += ["---", ""]
    return "\n".join(parts)


def render_docs(docs, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    return "\n".join(render_doc(d, cfg) for d in docs)


def render_source(source, cfg=None, *, title=None):
    """Render one input file: a file heading, its file-level doc, then each entity."""
    if cfg is None:
        cfg = RenderConfig()
    out = TextBuffer()
    out.append(_heading(title or f"File: {source.path}", cfg.section_level))
    out.append("\n\n")
    if source.file_doc:
        out.append(shift_headings(source.file_doc))
        out.append("\n\n")
    out.append(render_docs(source.docs, cfg))
    return out.detach()


def render_single(sources, name, kind=None, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    for source in sources:
        for doc in source.docs:
            if doc.name == name and (kind is None or doc.kind == kind):
                return render_doc(doc, cfg)
    return f"<!-- cmarkdoc: symbol '{name}' not found -->\n"


def _index_section(title, entries, level, include_kind):
    lines = [_heading(title, level), ""]
    if not entries:
        lines.append("- (none)")
    for doc, href in entries:
        if include_kind:
            lines.append(f"- [{_KIND_LABELS[doc.kind]} `{doc.name}`]({href})")
        else:
            lines.append(f"- [`{doc.name}`]({href})")
    lines += ["", ""]
    return "\n".join(lines)


def render_index(sources, cfg=None, *, link=None):
    """Render the Macros / Types / Functions summary.

    ``link(source, doc)`` returns the page an entry lives on; entries link
    to an anchor on the current page when it is not given.
    """
    if cfg is None:
        cfg = RenderConfig()
    macros, types, functions = [], [], []
    for source in sources:
        for doc in source.docs:
            href = f"{link(source, doc) if link else ''}#{anchor_id(doc)}"
            if doc.kind == SymbolKind.MACRO:
                macros.append((doc, href))
            elif doc.kind in _TYPE_KINDS:
                types.append((doc, href))
            elif doc.kind == SymbolKind.FUNCTION:
                functions.append((doc, href))

    level = cfg.section_level
    return (
        _index_section("Macros", macros, level, False)
        + _index_section("Types", types, level, True)
        + _index_section("Functions", functions, level, False)
    )


def render_document(sources, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    out = TextBuffer()
    out.append(_heading(cfg.title, max(1, cfg.section_level - 1)))
    out.append("\n\n")
    out.append(render_index(sources, cfg))
    for source in sources:
        out.ensure_blank_separator()
        out.append(render_source(source, cfg))
    return out.detach()
