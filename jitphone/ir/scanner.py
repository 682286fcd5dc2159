"""Line scanner shared by the dialect parsers.

Parsers do not tokenize. They walk trimmed, comment-free source lines and use
a small brace-counting state machine (string-literal aware) to capture the
bodies of methods, functions and type declarations.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SourceLine:
    number: int  # 1-based line number in the original source
    text: str  # Trimmed text with comments removed


@dataclass
class Block:
    """Result of capturing a brace-delimited body."""

    body: str
    end: int  # Index (into the line list) of the last consumed line
    closed: bool  # Matching close brace was found
    opened: bool = True  # An opening brace was found at all
    trailing: str = ""  # Text after the closing brace on the same line


def blank_comments(source: str) -> str:
    """Replace ``//`` and ``/* */`` comments with spaces, keeping line breaks."""
    out: list[str] = []
    quote = None
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if quote:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(source[i + 1])
                i += 2
                continue
            if ch == quote or ch == "\n":
                quote = None
            i += 1
            continue
        if ch in "\"'":
            quote = ch
            out.append(ch)
            i += 1
            continue
        if source.startswith("//", i):
            end = source.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
            continue
        if source.startswith("/*", i):
            close = source.find("*/", i + 2)
            end = n if close == -1 else close + 2
            out.append("".join(c if c == "\n" else " " for c in source[i:end]))
            i = end
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def significant_lines(source: str) -> list[SourceLine]:
    """Trimmed, non-empty, comment-free lines with their original numbers."""
    cleaned = blank_comments(source.replace("\r\n", "\n").replace("\r", "\n"))
    lines = []
    for number, raw in enumerate(cleaned.split("\n"), start=1):
        text = raw.strip()
        if text:
            lines.append(SourceLine(number=number, text=text))
    return lines


def code_positions(text: str):
    """Yield ``(index, char)`` for characters outside string literals."""
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'`":
            quote = ch
        else:
            yield i, ch
        i += 1


def brace_delta(text: str) -> int:
    delta = 0
    for _, ch in code_positions(text):
        if ch == "{":
            delta += 1
        elif ch == "}":
            delta -= 1
    return delta


def _append(parts: list[str], fragment: str) -> None:
    fragment = fragment.strip()
    if fragment:
        parts.append(fragment)


def capture_block(lines: list[SourceLine], start: int) -> Block:
    """Capture the body opened on ``lines[start]`` (or the line after it).

    Returns the text between the outer braces, one statement line per line.
    If the braces never balance, the body runs to the end of input and
    ``closed`` is False.
    """
    depth = 0
    opened = False
    parts: list[str] = []
    for idx in range(start, len(lines)):
        text = lines[idx].text
        segment_start = 0
        for pos, ch in code_positions(text):
            if ch == "{":
                depth += 1
                if not opened:
                    opened = True
                    segment_start = pos + 1
            elif ch == "}" and opened:
                depth -= 1
                if depth == 0:
                    _append(parts, text[segment_start:pos])
                    return Block(
                        body="\n".join(parts),
                        end=idx,
                        closed=True,
                        trailing=text[pos + 1 :].strip(),
                    )
        if opened:
            _append(parts, text[segment_start:])
        elif idx > start:
            return Block(body="", end=start, closed=False, opened=False)
    return Block(body="\n".join(parts), end=len(lines) - 1, closed=False, opened=opened)


def split_top_level(text: str, sep: str = ",", brackets: str = "()[]{}<>") -> list[str]:
    """Split on ``sep`` where it is not nested inside brackets or strings."""
    openers = brackets[0::2]
    closers = brackets[1::2]
    parts: list[str] = []
    depth = 0
    last = 0
    for pos, ch in code_positions(text):
        if ch in openers:
            depth += 1
        elif ch in closers and depth > 0:
            # "->" is an arrow, not a closing angle bracket
            if not (ch == ">" and pos > 0 and text[pos - 1] == "-"):
                depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[last:pos].strip())
            last = pos + 1
    tail = text[last:].strip()
    if tail or parts:
        parts.append(tail)
    return [p for p in parts if p]


def find_closing(text: str, open_index: int) -> int:
    """Index of the bracket matching ``text[open_index]``, or -1."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    opener = text[open_index]
    closer = pairs[opener]
    depth = 0
    for pos, ch in code_positions(text[open_index:]):
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return open_index + pos
    return -1
