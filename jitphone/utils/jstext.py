"""JavaScript text helpers shared by the optimizer, adapter and analyzer.

Rewrites in this project are textual. To keep them away from string contents
and comments, callers mask those spans with opaque placeholders, rewrite the
masked text, then restore the originals.
"""

from __future__ import annotations

import re

# Template text chunks use non-word delimiters so identifiers next to them keep their boundaries
_PLACEHOLDER = re.compile(r"__JS(LIT|COM)_(\d+)__|\x03(TPL)(\d+)\x04")


class MaskedCode:
    """Code with literals and/or comments swapped for placeholders."""

    def __init__(self, text: str, spans: list[str]):
        self.text = text
        self.spans = spans

    def restore(self, text: str | None = None, drop_comments: bool = False) -> str:
        """Put the original spans back into ``text`` (defaults to ``self.text``)."""

        def _replace(m: re.Match) -> str:
            if m.group(3):
                return self.spans[int(m.group(4))]
            original = self.spans[int(m.group(2))]
            if drop_comments and m.group(1) == "COM":
                return "\n" if "\n" in original else " "
            return original

        return _PLACEHOLDER.sub(_replace, self.text if text is None else text)


def _shift(m: re.Match, offset: int) -> str:
    if m.group(3):
        return f"\x03TPL{int(m.group(4)) + offset}\x04"
    return f"__JS{m.group(1)}_{int(m.group(2)) + offset}__"


def _string_end(code: str, i: int) -> int:
    """Index just past the quoted string starting at ``code[i]``."""
    quote = code[i]
    j = i + 1
    while j < len(code):
        ch = code[j]
        if ch == "\\":
            j += 2
            continue
        if ch == quote or ch == "\n":
            return j + 1
        j += 1
    return len(code)


def template_end(code: str, i: int) -> int:
    """Index just past the template literal starting at ``code[i]``."""
    j = i + 1
    while j < len(code):
        ch = code[j]
        if ch == "\\":
            j += 2
            continue
        if ch == "`":
            return j + 1
        if code.startswith("${", j):
            j = substitution_end(code, j + 2)
            continue
        j += 1
    return len(code)


def substitution_end(code: str, j: int) -> int:
    """Index just past the ``}`` closing a template substitution."""
    depth = 1
    while j < len(code):
        ch = code[j]
        if ch in "\"'":
            j = _string_end(code, j)
            continue
        if ch == "`":
            j = template_end(code, j)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    return len(code)


# A slash after one of these starts a regex literal rather than a division
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = re.compile(
    r"(?<![\w$.])(?:return|typeof|case|in|of|void|yield|await|delete|throw|instanceof|new|else|do)$"
)


def _regex_allowed(before: str) -> bool:
    before = before.rstrip()
    if not before:
        return True
    return before[-1] in _REGEX_PRECEDERS or bool(_REGEX_KEYWORDS.search(before))


def _regex_end(code: str, i: int) -> int:
    """Index just past the regex literal (and flags) at ``code[i]``, or -1."""
    j = i + 1
    in_class = False
    while j < len(code):
        ch = code[j]
        if ch == "\n":
            return -1
        if ch == "\\":
            j += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            j += 1
            while j < len(code) and (code[j].isalnum() or code[j] in "_$"):
                j += 1
            return j
        j += 1
    return -1


def mask(code: str, strings: bool = True, templates: bool | str = True, comments: bool = True) -> MaskedCode:
    """Replace string literals, template literals and comments with placeholders.

    ``templates="text"`` masks only the literal text of template literals and
    leaves their ``${...}`` expressions (themselves masked) open to rewriting.
    """
    out: list[str] = []
    spans: list[str] = []
    i = 0
    n = len(code)

    def _stash(kind: str, start: int, end: int) -> None:
        spans.append(code[start:end])
        if kind == "TPL":
            out.append(f"\x03TPL{len(spans) - 1}\x04")
        else:
            out.append(f"__JS{kind}_{len(spans) - 1}__")

    def _template_parts(start: int, end: int) -> None:
        chunk = start
        j = start + 1
        while j < end:
            if code[j] == "\\":
                j += 2
                continue
            if code.startswith("${", j):
                _stash("TPL", chunk, j + 2)
                close = substitution_end(code, j + 2)
                inner = mask(code[j + 2 : close - 1], strings, templates, comments)
                offset = len(spans)
                spans.extend(inner.spans)
                out.append(_PLACEHOLDER.sub(lambda m: _shift(m, offset), inner.text))
                chunk = close - 1
                j = close
                continue
            j += 1
        _stash("TPL", chunk, end)

    while i < n:
        ch = code[i]
        if ch in "\"'":
            end = _string_end(code, i)
            if strings:
                _stash("LIT", i, end)
            else:
                out.append(code[i:end])
            i = end
        elif ch == "`":
            end = template_end(code, i)
            if templates == "text":
                _template_parts(i, end)
            elif templates:
                _stash("LIT", i, end)
            else:
                out.append(code[i:end])
            i = end
        elif code.startswith("//", i):
            end = code.find("\n", i)
            end = n if end == -1 else end
            if comments:
                _stash("COM", i, end)
            else:
                out.append(code[i:end])
            i = end
        elif code.startswith("/*", i):
            close = code.find("*/", i + 2)
            end = n if close == -1 else close + 2
            if comments:
                _stash("COM", i, end)
            else:
                out.append(code[i:end])
            i = end
        elif ch == "/" and _regex_allowed("".join(out[-24:])) and _regex_end(code, i) != -1:
            end = _regex_end(code, i)
            if strings:
                _stash("LIT", i, end)
            else:
                out.append(code[i:end])
            i = end
        else:
            out.append(ch)
            i += 1
    return MaskedCode("".join(out), spans)


def strip_comments(code: str) -> str:
    masked = mask(code, strings=True, templates=True, comments=True)
    return masked.restore(drop_comments=True)


def collapse_whitespace(code: str) -> str:
    """Drop blank lines and indentation and squeeze runs of spaces.

    Line breaks are kept so automatic semicolon insertion still sees them.
    String contents are untouched.
    """
    masked = mask(code, strings=True, templates=True, comments=False)
    lines = []
    for line in masked.text.split("\n"):
        line = re.sub(r"[ \t]+", " ", line).strip()
        if line:
            lines.append(line)
    return masked.restore("\n".join(lines))


def find_block_end(text: str, open_index: int) -> int:
    """Index of the brace/paren/bracket closing ``text[open_index]`` in masked text."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    opener = text[open_index]
    closer = pairs[opener]
    depth = 0
    for pos in range(open_index, len(text)):
        ch = text[pos]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return pos
    return -1
