"""
Locating and stripping C comments.

The locator works on the raw bytes of a whole file so that byte offsets
reported by libclang can be used directly. Only the matched span is ever
decoded; everything else stays a view over the file buffer.
"""

from __future__ import annotations

from dataclasses import dataclass

from .doxygen import doxygen_to_markdown

_NL = ord("\n")
_WHITESPACE = b" \t\r\n\v\f"
_BLANKS = b" \t"
_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class CommentSpan:
    """Half-open byte range ``[start, end)`` covering a comment, delimiters included."""

    start: int
    end: int

    def text(self, data):
        return data[self.start : self.end].decode("utf-8", errors="replace")


def _line_start(data, pos):
    return data.rfind(b"\n", 0, pos) + 1


def _skip_blanks(data, pos, end=None):
    end = len(data) if end is None else end
    while pos < end and data[pos] in _BLANKS:
        pos += 1
    return pos


def find_preceding_comment(data, offset):
    """Find the comment block sitting directly above ``offset``.

    A whitespace-only line between the comment and the declaration breaks
    the association and yields None.
    """
    if offset <= 0 or offset > len(data):
        return None

    idx = _line_start(data, offset)
    while idx > 0 and data[idx - 1] in _WHITESPACE:
        if data[idx - 1] == _NL:
            above = _line_start(data, idx - 1)
            if not data[above : idx - 1].strip():
                return None
        idx -= 1
    if idx == 0:
        return None
    end = idx

    if data.endswith(b"*/", 0, end):
        start = data.rfind(b"/*", 0, end - 2)
        if start < 0:
            return None
        return CommentSpan(start, end)

    start = None
    cur = end
    while cur > 0:
        line_start = _line_start(data, cur)
        first = _skip_blanks(data, line_start, cur)
        if not data.startswith(b"//", first) or first + 1 >= cur:
            break
        start = first
        cur = line_start
        if cur > 0 and data[cur - 1] == _NL:
            cur -= 1
    if start is None:
        return None
    return CommentSpan(start, end)


def find_leading_file_comment(data):
    """Find the comment that opens a file, after an optional BOM and blank space."""
    pos = len(_BOM) if data.startswith(_BOM) else 0
    while pos < len(data) and data[pos] in b" \t\r\n":
        pos += 1

    if data.startswith(b"/*", pos):
        close = data.find(b"*/", pos + 2)
        if close < 0:
            return None
        return CommentSpan(pos, close + 2)

    if not data.startswith(b"//", pos):
        return None

    cur = pos
    while True:
        nl = data.find(b"\n", cur)
        if nl < 0:
            return CommentSpan(pos, len(data))
        end = nl - 1 if nl > cur and data[nl - 1] == ord("\r") else nl
        nxt = _skip_blanks(data, nl + 1)
        if not data.startswith(b"//", nxt):
            return CommentSpan(pos, end)
        cur = nxt


def _strip_block_line(line, last):
    s = line.lstrip(" \t")
    if s.startswith("*"):
        s = s[1:]
        if s.startswith(" "):
            s = s[1:]
    if last:
        s = s.rstrip()
        if s.endswith("*/"):
            s = s[:-2].rstrip()
    if s == "/":
        return ""
    return s


def _strip_line_comment(line):
    s = line.lstrip(" \t")
    if s.startswith("//"):
        s = s[2:].lstrip("/")
        if s.startswith(" "):
            s = s[1:]
    return s


def strip_comment(raw):
    """Remove comment syntax from ``raw`` and return the plain text, or None if empty."""
    if not raw:
        return None
    is_block = raw.startswith("/*")
    if not is_block and not raw.startswith("//"):
        return raw.strip() or None

    body = raw
    if is_block:
        body = raw[2:].lstrip("*")
        if body.startswith(" "):
            body = body[1:]

    lines = body.split("\n")
    cleaned = []
    for i, line in enumerate(lines):
        if line.endswith("\r"):
            line = line[:-1]
        if is_block:
            cleaned.append(_strip_block_line(line, i == len(lines) - 1))
        else:
            cleaned.append(_strip_line_comment(line))

    while cleaned and not cleaned[0]:
        cleaned.pop(0)
    while cleaned and not cleaned[-1]:
        cleaned.pop()
    if not cleaned:
        return None
    return "\n".join(cleaned)


def normalize_comment(raw):
    text = strip_comment(raw)
    if text is None:
        return None
    return doxygen_to_markdown(text)


def extract_preceding_comment(data, offset):
    span = find_preceding_comment(data, offset)
    if span is None:
        return None
    return normalize_comment(span.text(data))


def extract_file_doc(data):
    span = find_leading_file_comment(data)
    if span is None:
        return None
    return normalize_comment(span.text(data))
