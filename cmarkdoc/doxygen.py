"""
Doxygen-style comment body to Markdown conversion.

Understands a deliberately small tag vocabulary (``@param``/``@params``,
``@return``/``@returns``, ``@note``, ``@warning`` and ``@code``/``@endcode``).
Anything else, unknown tags included, is kept as prose in whichever section
is active when it appears.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from .textbuf import TextBuffer


class Target(Enum):
    GENERAL = "general"
    PARAM = "param"
    RETURNS = "returns"
    NOTES = "notes"
    WARNINGS = "warnings"


class ActiveTarget(NamedTuple):
    kind: Target
    index: int = 0  # parameter slot, only meaningful for Target.PARAM


@dataclass
class Section:
    title: str
    text: TextBuffer = field(default_factory=TextBuffer)
    opened: bool = False

    def begin(self):
        if self.opened:
            self.text.trim_trailing_whitespace()
            self.text.ensure_blank_separator()
        self.opened = True
        return self.text


@dataclass
class ParamEntry:
    name: str
    description: TextBuffer = field(default_factory=TextBuffer)


# tag -> section, in render order
_SECTION_TAGS = (
    (("@return", "@returns"), Target.RETURNS, "Returns"),
    (("@note",), Target.NOTES, "Note"),
    (("@warning",), Target.WARNINGS, "Warning"),
)
_PARAM_TAGS = ("@param", "@params")


def _tag_rest(line, tags):
    """Return the text after one of ``tags`` or None when the line is not that tag."""
    for tag in tags:
        if not line.startswith(tag):
            continue
        rest = line[len(tag) :]
        if not rest or rest[0].isspace():
            return rest.lstrip(" \t")
    return None


def _code_lang(line):
    """Return ``(True, lang)`` for an ``@code`` line, ``(False, None)`` otherwise."""
    if not line.startswith("@code"):
        return False, None
    rest = line[5:]
    if rest and not rest[0].isspace() and rest[0] != "{":
        return False, None
    rest = rest.lstrip(" \t")
    if rest.startswith("{"):
        close = rest.find("}")
        if close > 1:
            return True, rest[1:close]
        return True, None
    return True, (rest.rstrip() or None)


class _CommentState:
    def __init__(self):
        self.general = TextBuffer()
        self.params: list[ParamEntry] = []
        self.sections = {target: Section(title) for _, target, title in _SECTION_TAGS}
        self.active = ActiveTarget(Target.GENERAL)

    def buffer(self):
        kind = self.active.kind
        if kind is Target.GENERAL:
            return self.general
        if kind is Target.PARAM:
            return self.params[self.active.index].description
        return self.sections[kind].text

    def open_param(self, rest):
        parts = rest.split(None, 1)
        entry = ParamEntry(parts[0] if parts else "")
        desc = parts[1].rstrip() if len(parts) > 1 else ""
        if desc:
            entry.description.append(desc)
            entry.description.append_char("\n")
        self.params.append(entry)
        self.active = ActiveTarget(Target.PARAM, len(self.params) - 1)

    def open_section(self, target, rest):
        buf = self.sections[target].begin()
        if rest:
            buf.append(rest)
            buf.append_char("\n")
        self.active = ActiveTarget(target)


def _indent_continuations(text):
    return text.replace("\n", "\n  ")


def doxygen_to_markdown(text):
    """Render a stripped comment body as Markdown.

    Returns None when the body yields no content at all, so callers can tell
    an undocumented entity from an empty string.
    """
    if not text:
        return None

    state = _CommentState()
    lines = iter(text.split("\n"))
    for line in lines:
        trim = line.lstrip(" \t")

        is_code, lang = _code_lang(trim)
        if is_code:
            code = TextBuffer()
            for code_line in lines:
                if code_line.strip() == "@endcode":
                    break
                code.append(code_line)
                code.append_char("\n")
            state.buffer().append_code_block(code.detach(), lang)
            continue

        rest = _tag_rest(trim, _PARAM_TAGS)
        if rest is not None:
            state.open_param(rest)
            continue

        for tags, target, _ in _SECTION_TAGS:
            rest = _tag_rest(trim, tags)
            if rest is not None:
                state.open_section(target, rest)
                break
        else:
            buf = state.buffer()
            if trim:
                buf.append(trim)
            elif not len(buf):
                # leading blank lines are dropped
                continue
            buf.append_char("\n")

    state.general.trim_trailing_whitespace()
    for section in state.sections.values():
        section.text.trim_trailing_whitespace()
    for param in state.params:
        param.description.trim_trailing_whitespace()

    out = TextBuffer()
    out.append(state.general.text)

    if state.params:
        out.ensure_blank_separator()
        out.append("#### Parameters\n\n")
        for param in state.params:
            out.append(f"**{param.name}** —")
            if len(param.description):
                out.append_char(" ")
                out.append(_indent_continuations(param.description.text))
            out.append_char("\n")

    for _, target, _ in _SECTION_TAGS:
        section = state.sections[target]
        if not section.opened or not len(section.text):
            continue
        out.ensure_blank_separator()
        out.append(f"#### {section.title}\n\n")
        out.append(section.text.text)

    out.trim_trailing_whitespace()
    return out.detach() or None


def shift_headings(markdown):
    """Push every ATX heading one level deeper (capped at 6), skipping fenced code."""
    if not markdown:
        return markdown
    out = []
    in_fence = False
    for line in markdown.split("\n"):
        stripped = line.lstrip(" \t")
        if stripped.startswith("```"):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence or not stripped.startswith("#"):
            out.append(line)
            continue
        indent = line[: len(line) - len(stripped)]
        hashes = len(stripped) - len(stripped.lstrip("#"))
        level = min(hashes + 1, 6)
        out.append(indent + "#" * level + stripped[hashes:])
    return "\n".join(out)
