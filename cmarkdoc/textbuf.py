"""
Append-only text builder shared by the comment renderer and the document
assembler.
"""

from __future__ import annotations

_TRAILING_WS = " \t\r\n"


class TextBuffer:
    """Accumulates text in chunks and joins them lazily.

    ``capacity`` follows the doubling growth of a classic string builder
    (64, 128, 256, ...) so callers can reason about reservations, while the
    content itself lives in a list of chunks.
    """

    def __init__(self):
        self._parts: list[str] = []
        self._len = 0
        self._cap = 0

    def __len__(self):
        return self._len

    def __str__(self):
        return self.text

    @property
    def capacity(self):
        return self._cap

    @property
    def text(self):
        if len(self._parts) > 1:
            self._parts = ["".join(self._parts)]
        return self._parts[0] if self._parts else ""

    def reserve(self, extra):
        need = self._len + extra + 1
        if need <= self._cap:
            return
        cap = self._cap * 2 if self._cap else 64
        while cap < need:
            cap *= 2
        self._cap = cap

    def append(self, text):
        if not text:
            return
        self.reserve(len(text))
        self._parts.append(text)
        self._len += len(text)

    def append_char(self, ch):
        self.reserve(1)
        self._parts.append(ch)
        self._len += 1

    def _tail(self, n):
        out = ""
        for part in reversed(self._parts):
            out = part + out
            if len(out) >= n:
                break
        return out[-n:]

    def trim_trailing_whitespace(self):
        if not self._len:
            return
        trimmed = self.text.rstrip(_TRAILING_WS)
        self._parts = [trimmed] if trimmed else []
        self._len = len(trimmed)

    def ensure_blank_separator(self):
        if not self._len:
            return
        tail = self._tail(2)
        if tail == "\n\n":
            return
        if not tail.endswith("\n"):
            self.append_char("\n")
        if self._tail(2) != "\n\n":
            self.append_char("\n")

    def append_code_block(self, code, lang=None):
        code = code or ""
        self.ensure_blank_separator()
        self.append("```")
        if lang:
            self.append(lang[1:] if lang.startswith(".") else lang)
        self.append_char("\n")
        self.append(code)
        if not code.endswith("\n"):
            self.append_char("\n")
        self.append("```\n")

    def detach(self):
        out = self.text
        self._parts = []
        self._len = 0
        self._cap = 0
        return out
