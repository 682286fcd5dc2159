"""Individual optimization passes.

Each pass is a pure text-to-text function that works on masked code, so
string literals, template literals and comments are never rewritten. Every
pass is idempotent: running it on its own output changes nothing.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable

from jitphone.utils.jstext import mask

HINT_PREFIX = "/* @jit:"
HOT_LOOP_MARKER = "/* @jit:hot-loop */"
_HINT = re.compile(r"/\* @jit:[^*]*\*/[ \n]?")

_STATEMENT_START = ";{}"


@dataclass
class OptimizationPass:
    name: str
    level: int  # Lowest optimization level that enables the pass
    apply: Callable[[str], str]
    description: str = ""


def strip_hints(code: str) -> str:
    """Remove compiler hint markers left by a previous optimization run."""
    return _HINT.sub("", code)


def _prev_char(text: str, index: int) -> str:
    """Closest non-whitespace character before ``index`` ("" at start)."""
    pos = index - 1
    while pos >= 0 and text[pos].isspace():
        pos -= 1
    return text[pos] if pos >= 0 else ""


def _next_char(text: str, index: int) -> str:
    pos = index
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return text[pos] if pos < len(text) else ""


def _at_statement_start(text: str, index: int) -> bool:
    prev = _prev_char(text, index)
    return prev == "" or prev in _STATEMENT_START


# --- Inline small functions ---

_SMALL_FUNCTION = re.compile(
    r"(?<![\w$.])function\s+([A-Za-z_$][\w$]*)\s*\(([^()]*)\)\s*\{\s*return\s+([^;{}]+?)\s*;\s*\}"
)
_CONTEXT_BOUND = re.compile(r"\b(?:this|arguments|super)\b|\bnew\.target\b")
MAX_INLINE_LENGTH = 50


def _declaration_count(text: str, name: str) -> int:
    escaped = re.escape(name)
    pattern = rf"\b(?:function\s+|class\s+|(?:var|let|const)\s+){escaped}(?![\w$])"
    return len(re.findall(pattern, text))


def inline_small_functions(code: str) -> str:
    """``function f(a) { return a * 2; }`` -> ``const f = (a) => a * 2;``.

    Only declarations at statement position whose name is not used earlier in
    the text qualify, since the arrow form is not hoisted.
    """
    masked = mask(code)
    text = masked.text
    pos = 0
    while True:
        m = _SMALL_FUNCTION.search(text, pos)
        if not m:
            break
        name, params, expr = m.group(1), m.group(2).strip(), m.group(3).strip()
        reference = re.compile(rf"(?<![\w$.]){re.escape(name)}(?![\w$])")
        if (
            len(expr) >= MAX_INLINE_LENGTH
            or not _at_statement_start(text, m.start())
            or _CONTEXT_BOUND.search(expr)
            or reference.search(text, 0, m.start())
            or re.search(rf"\bnew\s+{re.escape(name)}(?![\w$])", text)
            or _declaration_count(text, name) > 1
        ):
            pos = m.end()
            continue
        replacement = f"const {name} = ({params}) => {expr};"
        text = text[: m.start()] + replacement + text[m.end() :]
        pos = m.start() + len(replacement)
    return masked.restore(text)


# --- Constant folding ---

_NUM = r"(?:(?:0|[1-9]\d*)(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
_RUN = re.compile(rf"(?<![\w$.]){_NUM}(?:\s*[-+*/%]\s*{_NUM})+(?![\w$.])")
_TOKEN = re.compile(rf"\s*([-+*/%])?\s*({_NUM})")
_PAREN_NUMBER = re.compile(rf"\(\s*({_NUM})\s*\)")

# Operators of lower precedence than ``+``; a literal run next to them stands alone
_LEFT_FREE = "([,=?:;{}<>&|^"
_RIGHT_FREE = ")],;:?}<>=&|^!"
_LEFT_KEYWORD = re.compile(r"(?:^|[^\w$.])(?:return|case|throw)\s*$")


def _format_number(value: float) -> str | None:
    if not math.isfinite(value):
        return None
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        return None
    return text


def _evaluate_term(term: list[tuple[str | None, str]]) -> float | None:
    value = float(term[0][1])
    for op, number in term[1:]:
        operand = float(number)
        if op == "*":
            value *= operand
        elif operand == 0:
            return None
        elif op == "/":
            value /= operand
        else:
            value = math.fmod(value, operand)
    return value if math.isfinite(value) else None


def _split_terms(run: str) -> list[list[tuple[str | None, str, int, int]]]:
    """Group a literal run into additive terms of multiplicative tokens."""
    terms: list[list[tuple[str | None, str, int, int]]] = []
    for m in _TOKEN.finditer(run):
        token = (m.group(1), m.group(2), m.start(2), m.end(2))
        if m.group(1) in (None, "+", "-") or not terms:
            terms.append([token])
        else:
            terms[-1].append(token)
    return terms


def _fold_run(run: str, left_free: bool, right_free: bool, first_term_free: bool, last_term_free: bool) -> str:
    terms = _split_terms(run)
    if left_free and right_free:
        total = None
        for index, term in enumerate(terms):
            value = _evaluate_term([(op, num) for op, num, _, _ in term])
            if value is None:
                total = None
                break
            if index == 0:
                total = value
            elif term[0][0] == "-":
                total -= value
            else:
                total += value
        if total is not None:
            folded = _format_number(total)
            if folded is not None:
                return folded

    out = run
    for index in range(len(terms) - 1, -1, -1):
        term = terms[index]
        if len(term) < 2:
            continue
        if index == 0 and not first_term_free:
            continue
        if index == len(terms) - 1 and not last_term_free:
            continue
        value = _evaluate_term([(op, num) for op, num, _, _ in term])
        folded = _format_number(value) if value is not None else None
        if folded is None:
            continue
        out = out[: term[0][2]] + folded + out[term[-1][3] :]
    return out


def _fold_once(text: str) -> str:
    pieces = []
    last = 0
    for m in _RUN.finditer(text):
        prev = _prev_char(text, m.start())
        nxt = _next_char(text, m.end())
        keyword = _LEFT_KEYWORD.search(text[max(0, m.start() - 16) : m.start()])
        left_free = prev == "" or prev in _LEFT_FREE or keyword is not None
        right_free = nxt == "" or nxt in _RIGHT_FREE
        folded = _fold_run(
            m.group(0),
            left_free,
            right_free,
            first_term_free=prev not in ("*", "/", "%"),
            last_term_free=nxt != "*",
        )
        pieces.append(text[last : m.start()])
        pieces.append(folded)
        last = m.end()
    pieces.append(text[last:])
    return "".join(pieces)


def _unwrap_numbers(text: str) -> str:
    """``(7)`` -> ``7`` where the parentheses only group."""

    def _replace(m: re.Match) -> str:
        prev = _prev_char(text, m.start())
        if prev not in "-+*/%=(,[:?<>&|^!~" or prev == "":
            return m.group(0)
        after = text[m.end() : m.end() + 64].lstrip()
        if after.startswith(("**", ".", "[", "(")):
            return m.group(0)
        return m.group(1)

    return _PAREN_NUMBER.sub(_replace, text)


def constant_folding(code: str) -> str:
    """Pre-compute arithmetic on numeric literals.

    A whole run like ``5 + 3 * 2`` is folded only when nothing binds tighter
    on either side; otherwise only complete multiplicative terms inside it are
    folded (``x * 2 + 3 * 4`` -> ``x * 2 + 12``).
    """
    masked = mask(code)
    text = masked.text
    while True:
        folded = _unwrap_numbers(_fold_once(text))
        if folded == text:
            break
        text = folded
    return masked.restore(text)


# --- Dead code elimination ---

_TERMINATOR = re.compile(r"(?<![\w$.])(?:return|throw|break|continue)\b[^;{}]*;")
_UNSAFE_TO_DROP = re.compile(r"\b(?:case|default|function|var)\b|(?:^|[;{}])\s*[A-Za-z_$][\w$]*\s*:(?!:)")


def _block_end(text: str, start: int) -> int:
    """Index of the ``}`` closing the block that contains ``start``."""
    depth = 0
    for pos in range(start, len(text)):
        ch = text[pos]
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return pos
            depth -= 1
    return len(text)


def dead_code_elimination(code: str) -> str:
    """Drop statements that follow an unconditional jump in the same block."""
    masked = mask(code)
    text = masked.text
    pos = 0
    while True:
        m = _TERMINATOR.search(text, pos)
        if not m:
            break
        pos = m.end()
        if not _at_statement_start(text, m.start()):
            continue
        end = _block_end(text, m.end())
        region = text[m.end() : end]
        if not region.strip() or _UNSAFE_TO_DROP.search(region):
            continue
        trailing = region[len(region.rstrip()) :]
        text = text[: m.end()] + trailing + text[end:]
    return masked.restore(text)


# --- Loop recognition ---

_COUNTED_LOOP = re.compile(
    r"(?<![\w$.])for\s*\(\s*(?:let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*0\s*;"
    r"\s*\1\s*<\s*[^;]+;\s*(?:\1\s*\+\+|\+\+\s*\1|\1\s*\+=\s*1)\s*\)"
)
_TRAILING_COMMENT = re.compile(r"__JSCOM_(\d+)__\s*$")


def loop_recognition(code: str) -> str:
    """Mark simple counted loops with a hot-loop hint comment."""
    masked = mask(code)
    text = masked.text
    pieces = []
    last = 0
    for m in _COUNTED_LOOP.finditer(text):
        before = text[: m.start()]
        marker = _TRAILING_COMMENT.search(before)
        if marker and masked.spans[int(marker.group(1))] == HOT_LOOP_MARKER:
            continue
        pieces.append(text[last : m.start()])
        pieces.append(HOT_LOOP_MARKER + " ")
        last = m.start()
    pieces.append(text[last:])
    # The inserted markers are plain text, outside any placeholder
    return masked.restore("".join(pieces))


# --- Vectorization ---

_INDEXED_ASSIGNMENT_LOOP = re.compile(
    r"(?<![\w$.])for\s*\(\s*let\s+([A-Za-z_$][\w$]*)\s*=\s*0\s*;"
    r"\s*\1\s*<\s*([A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\.length\s*;"
    r"\s*(?:\1\s*\+\+|\+\+\s*\1|\1\s*\+=\s*1)\s*\)\s*"
    r"\{\s*([A-Za-z_$][\w$]*)\s*\[\s*\1\s*\]\s*=\s*([^;{}]+?)\s*;\s*\}"
)


def vectorization(code: str) -> str:
    """``for (let i = 0; i < a.length; i++) { b[i] = a[i] * 2; }`` -> ``b = a.map(...)``."""
    masked = mask(code)
    text = masked.text

    def _replace(m: re.Match) -> str:
        index, source, target, expr = m.groups()
        target_ref = re.compile(rf"(?<![\w$.]){re.escape(target)}(?![\w$])")
        if target_ref.search(expr) or re.search(rf"\bconst\s+{re.escape(target)}(?![\w$])", text):
            return m.group(0)
        item = "item" if not re.search(r"(?<![\w$.])item(?![\w$])", expr) else "__item"
        element = re.compile(rf"(?<![\w$.]){re.escape(source)}\s*\[\s*{re.escape(index)}\s*\]")
        body = element.sub(item, expr)
        return f"{target} = {source}.map(({item}, {index}) => {body});"

    return masked.restore(_INDEXED_ASSIGNMENT_LOOP.sub(_replace, text))


# --- Registry ---

PASSES: list[OptimizationPass] = [
    OptimizationPass(
        "inline-small-functions", 1, inline_small_functions,
        "Rewrite single-return functions as arrow constants",
    ),
    OptimizationPass("constant-folding", 1, constant_folding, "Pre-compute literal arithmetic"),
    OptimizationPass(
        "dead-code-elimination", 2, dead_code_elimination,
        "Remove statements after return/throw/break/continue",
    ),
    OptimizationPass("loop-recognition", 2, loop_recognition, "Mark simple counted loops as hot"),
    OptimizationPass("vectorization", 3, vectorization, "Turn indexed assignment loops into map calls"),
]

PASSES_BY_NAME = {p.name: p for p in PASSES}
