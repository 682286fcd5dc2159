"""Syntax downleveling toward ES5.

Passes rewrite template literals, arrow functions, default parameters,
destructuring declarations and block-scoped declarations, in that order.
Each works on masked text so string contents and comments are left alone.
Anything a pass does not recognize is kept as written.
"""

from __future__ import annotations

import re
from typing import Callable

from jitphone.ir.scanner import split_top_level
from jitphone.utils.jstext import find_block_end, mask, substitution_end, template_end

_IDENT = r"[A-Za-z_$][\w$]*"
_CONTROL_KEYWORDS = {"if", "for", "while", "switch", "catch", "with", "function", "return", "typeof", "new"}


def _prev_non_space(text: str, index: int) -> int:
    pos = index - 1
    while pos >= 0 and text[pos].isspace():
        pos -= 1
    return pos


def _skip_space(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


# --- Template literals ---


def _quote(chunk: str) -> str:
    return '"' + chunk + '"'


def _template_to_concatenation(template: str) -> str:
    if len(template) < 2 or not template.endswith("`"):
        return template
    pieces: list[str] = []
    chunk: list[str] = []
    j = 1
    end = len(template) - 1
    while j < end:
        ch = template[j]
        if ch == "\\":
            escaped = template[j + 1 : j + 2]
            chunk.append(escaped if escaped in ("`", "$") else template[j : j + 2])
            j += 2
            continue
        if template.startswith("${", j):
            close = substitution_end(template, j + 2)
            pieces.append(_quote("".join(chunk)))
            chunk = []
            expression = downlevel_templates(template[j + 2 : close - 1]).strip()
            pieces.append(f"({expression})")
            j = close
            continue
        if ch == '"':
            chunk.append('\\"')
        elif ch == "\n":
            chunk.append("\\n")
        elif ch == "\r":
            chunk.append("\\r")
        else:
            chunk.append(ch)
        j += 1
    pieces.append(_quote("".join(chunk)))

    kept = [p for i, p in enumerate(pieces) if i == 0 or p != '""']
    if len(kept) > 1 and kept[0] == '""' and kept[1].startswith('"'):
        kept = kept[1:]
    if len(kept) == 1:
        return kept[0]
    return "(" + " + ".join(kept) + ")"


# A template after one of these starts an operand, it is not a tag call
_OPERAND_KEYWORDS = frozenset(
    ["return", "typeof", "case", "in", "of", "void", "yield", "await", "delete", "throw", "instanceof", "else", "do"]
)


def _is_tagged(text: str, start: int) -> bool:
    prev = _prev_non_space(text, start)
    if prev < 0:
        return False
    if text[prev] in ")]":
        return True
    if not (text[prev].isalnum() or text[prev] in "_$"):
        return False
    m = re.search(rf"(?<![\w$.]){_IDENT}$", text[: prev + 1])
    return not (m and m.group(0) in _OPERAND_KEYWORDS)


def downlevel_templates(code: str) -> str:
    """`` `Hi ${name}!` `` -> ``("Hi " + (name) + "!")``. Tagged templates are kept."""
    masked = mask(code, strings=True, templates=False, comments=True)
    text = masked.text
    out: list[str] = []
    i = 0
    while True:
        start = text.find("`", i)
        if start == -1:
            out.append(text[i:])
            break
        out.append(text[i:start])
        # Template text is unmasked here, so find its end on the raw text
        end = template_end(text, start)
        template = text[start:end]
        out.append(template if _is_tagged(text, start) else _template_to_concatenation(template))
        i = end
    return masked.restore("".join(out))


# --- Arrow functions ---

_THIS = re.compile(r"(?<![\w$.])this(?![\w$])")


def _arrow_params(text: str, arrow: int) -> tuple[int, str] | None:
    """Start index and parameter text of the arrow whose ``=>`` is at ``arrow``."""
    pos = _prev_non_space(text, arrow)
    if pos < 0:
        return None
    if text[pos] == ")":
        depth = 0
        for j in range(pos, -1, -1):
            if text[j] == ")":
                depth += 1
            elif text[j] == "(":
                depth -= 1
                if depth == 0:
                    before = text[:j].rstrip()
                    if re.search(r"(?<![\w$.])async$", before):
                        return None
                    return j, text[j + 1 : pos].strip()
        return None
    m = re.search(rf"(?<![\w$.])({_IDENT})\s*$", text[:arrow])
    if not m or m.group(1) == "async":
        return None
    if re.search(r"(?<![\w$.])async\s*$", text[: m.start(1)]):
        return None
    return m.start(1), m.group(1)


def _expression_body_end(text: str, start: int) -> int:
    depth = 0
    for pos in range(start, len(text)):
        ch = text[pos]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                return pos
            depth -= 1
        elif depth == 0 and ch in ",;\n":
            return pos
    return len(text)


def downlevel_arrows(code: str) -> str:
    """``(a) => a * 2`` -> ``function (a) { return a * 2; }``.

    Bodies that use ``this`` are bound with ``.bind(this)``. Arrows are
    converted right to left so nested arrows are rewritten first.
    """
    masked = mask(code)
    text = masked.text
    search_end = len(text)
    while True:
        arrow = text.rfind("=>", 0, search_end)
        if arrow == -1:
            break
        search_end = arrow
        params = _arrow_params(text, arrow)
        if params is None:
            continue
        start, param_text = params
        body_start = _skip_space(text, arrow + 2)
        if body_start < len(text) and text[body_start] == "{":
            body_end = find_block_end(text, body_start)
            if body_end == -1:
                continue
            body = text[body_start : body_end + 1]
            end = body_end + 1
        else:
            end = _expression_body_end(text, body_start)
            expression = text[body_start:end].rstrip()
            if not expression:
                continue
            end = body_start + len(expression)
            body = "{ return " + expression + "; }"
        function = f"function ({param_text}) {body}"
        if _THIS.search(body):
            function = f"({function}).bind(this)"
        text = text[:start] + function + text[end:]
        search_end = start
    return masked.restore(text)


# --- Default parameters ---

_PARAMETER_LIST = re.compile(rf"(?:(?<![\w$.])function\b\s*(?:{_IDENT})?|(?<![\w$.])({_IDENT}))\s*\(")
_DEFAULT = re.compile(rf"^({_IDENT})\s*=(?![=>])\s*(.+)$", re.DOTALL)


def downlevel_default_parameters(code: str) -> str:
    """``function f(a, b = 1) {`` -> ``function f(a, b) { if (b === undefined) { b = 1; }``."""
    masked = mask(code)
    text = masked.text
    pos = 0
    while True:
        m = _PARAMETER_LIST.search(text, pos)
        if not m:
            break
        pos = m.end()
        if m.group(1) and m.group(1) in _CONTROL_KEYWORDS:
            continue
        open_paren = m.end() - 1
        close_paren = find_block_end(text, open_paren)
        if close_paren == -1:
            continue
        brace = _skip_space(text, close_paren + 1)
        if brace >= len(text) or text[brace] != "{":
            continue
        params = split_top_level(text[open_paren + 1 : close_paren], ",", brackets="()[]{}")
        names: list[str] = []
        defaults: list[str] = []
        for param in params:
            d = _DEFAULT.match(param)
            if d:
                names.append(d.group(1))
                defaults.append(f" if ({d.group(1)} === undefined) {{ {d.group(1)} = {d.group(2).strip()}; }}")
            else:
                names.append(param)
        if not defaults:
            continue
        replacement = "(" + ", ".join(names) + ")" + text[close_paren + 1 : brace + 1] + "".join(defaults)
        text = text[:open_paren] + replacement + text[brace + 1 :]
        pos = open_paren + len(replacement)
    return masked.restore(text)


# --- Destructuring ---

_PATTERN_DECLARATION = re.compile(r"(?<![\w$.])(var|let|const)\s*([\[{])")


def _fresh_name(text: str, counter: list[int]) -> str:
    while True:
        name = f"__ref{counter[0]}"
        counter[0] += 1
        if name not in text:
            return name


def _pattern_bindings(pattern: str, opener: str, ref: str) -> list[str] | None:
    inner = pattern[1:-1]
    if not inner.strip() or "..." in inner or re.search(r"^\s*,|,\s*,", inner):
        return None
    bindings = []
    for index, entry in enumerate(split_top_level(inner, ",", brackets="()[]{}")):
        if opener == "[":
            if not re.fullmatch(_IDENT, entry):
                return None
            bindings.append(f"{entry} = {ref}[{index}]")
            continue
        m = re.fullmatch(rf"({_IDENT})(?:\s*:\s*({_IDENT}))?", entry)
        if not m:
            return None
        bindings.append(f"{m.group(2) or m.group(1)} = {ref}.{m.group(1)}")
    return bindings


def downlevel_destructuring(code: str) -> str:
    """``const [a, b] = pair;`` -> ``const __ref0 = pair, a = __ref0[0], b = __ref0[1];``."""
    masked = mask(code)
    text = masked.text
    counter = [0]
    pos = 0
    while True:
        m = _PATTERN_DECLARATION.search(text, pos)
        if not m:
            break
        pos = m.end()
        close = find_block_end(text, m.start(2))
        if close == -1:
            continue
        equals = _skip_space(text, close + 1)
        if not text.startswith("=", equals) or text.startswith(("==", "=>"), equals):
            continue
        value_start = _skip_space(text, equals + 1)
        value_end = _expression_body_end(text, value_start)
        value = text[value_start:value_end].rstrip()
        ref = _fresh_name(text, counter)
        bindings = _pattern_bindings(text[m.start(2) : close + 1], m.group(2), ref)
        if not value or bindings is None:
            continue
        replacement = f"{m.group(1)} {ref} = {value}, " + ", ".join(bindings)
        text = text[: m.start()] + replacement + text[value_start + len(value) :]
        pos = m.start() + len(replacement)
    return masked.restore(text)


# --- Block scope ---

_BLOCK_SCOPED = re.compile(r"(?<![\w$.])(?:let|const)(?=\s+[A-Za-z_$\[{])")


def downlevel_block_scope(code: str) -> str:
    """``let``/``const`` -> ``var``."""
    masked = mask(code)
    return masked.restore(_BLOCK_SCOPED.sub("var", masked.text))


DOWNLEVEL_PASSES: list[tuple[str, Callable[[str], str]]] = [
    ("templates", downlevel_templates),
    ("arrow-functions", downlevel_arrows),
    ("default-parameters", downlevel_default_parameters),
    ("destructuring", downlevel_destructuring),
    ("block-scope", downlevel_block_scope),
]


def downlevel(code: str) -> tuple[str, list[str]]:
    """Run every downleveling pass; returns the code and the passes that changed it."""
    changed = []
    for name, apply in DOWNLEVEL_PASSES:
        result = apply(code)
        if result != code:
            changed.append(name)
            code = result
    return code, changed
