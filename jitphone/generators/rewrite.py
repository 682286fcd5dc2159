"""Ordered rewrite pipeline for method and function bodies.

A body is rewritten by running a fixed, ordered list of rules. Rule order is
part of the contract: later rules assume earlier ones already ran (for
example, Swift string interpolation is converted before type names are
substituted, and optional syntax is normalized before ``self`` becomes
``this``). Syntax no rule recognizes passes through unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from jitphone.utils.jstext import mask


@dataclass
class RewriteContext:
    """What a rule may know about the body it is rewriting."""

    properties: set[str] = field(default_factory=set)  # Members reachable through implicit self
    methods: set[str] = field(default_factory=set)
    parameters: set[str] = field(default_factory=set)
    enum_cases: dict[str, str] = field(default_factory=dict)  # case name -> enum name (unique cases only)
    known_properties: set[str] = field(default_factory=set)  # Property names declared anywhere in the module
    constructible: set[str] = field(default_factory=set)  # Class and struct names called like functions
    type_name: str = ""
    is_static: bool = False
    in_initializer: bool = False


@dataclass
class RewriteRule:
    name: str
    apply: Callable[[str, RewriteContext], str]


class RewritePipeline:
    """Applies rules in order; each rule sees the previous rule's output."""

    def __init__(self, rules: list[RewriteRule]):
        self.rules = list(rules)

    @property
    def rule_names(self) -> list[str]:
        return [r.name for r in self.rules]

    def rewrite(self, body: str, context: RewriteContext | None = None) -> str:
        context = context or RewriteContext()
        for rule in self.rules:
            body = rule.apply(body, context)
        return body


# --- Rule building helpers ---


def regex_rule(name: str, substitutions: list[tuple[str, str]], flags: int = 0, templates: bool | str = True) -> RewriteRule:
    """A rule made of regex substitutions applied outside string literals.

    ``templates="text"`` leaves template expressions visible so code inside
    ``${...}`` is rewritten too.
    """
    compiled = [(re.compile(pattern, flags), repl) for pattern, repl in substitutions]

    def _apply(text: str, ctx: RewriteContext) -> str:
        masked = mask(text, strings=True, templates=templates, comments=True)
        out = masked.text
        for pattern, repl in compiled:
            out = pattern.sub(repl, out)
        return masked.restore(out)

    return RewriteRule(name, _apply)


def masked(fn: Callable[[str, RewriteContext], str], templates: bool | str = True) -> Callable[[str, RewriteContext], str]:
    """Wrap ``fn`` so it only sees code outside string literals and comments."""

    def _apply(text: str, ctx: RewriteContext) -> str:
        m = mask(text, strings=True, templates=templates, comments=True)
        return m.restore(fn(m.text, ctx))

    return _apply


def per_line(fn: Callable[[str, RewriteContext], str]) -> Callable[[str, RewriteContext], str]:
    def _apply(text: str, ctx: RewriteContext) -> str:
        return "\n".join(fn(line, ctx) for line in text.split("\n"))

    return _apply


def local_names(text: str) -> set[str]:
    """Names declared inside a body (declarations, loop variables, arrow parameters)."""
    names: set[str] = set()
    for m in re.finditer(r"\b(?:let|const|var)\s+(\w+)", text):
        names.add(m.group(1))
    for m in re.finditer(r"\b(?:let|const|var)\s+[\[{]([^\]}]*)[\]}]", text):
        names.update(n.strip() for n in m.group(1).split(",") if n.strip())
    for m in re.finditer(r"\(([\w$\s,]*)\)\s*=>", text):
        names.update(n.strip() for n in m.group(1).split(",") if n.strip())
    for m in re.finditer(r"\b([\w$]+)\s*=>", text):
        names.add(m.group(1))
    for m in re.finditer(r"\bcatch\s*\(\s*(\w+)\s*\)", text):
        names.add(m.group(1))
    return names


def implicit_self(text: str, ctx: RewriteContext, receiver: str = "this") -> str:
    """Qualify bare member references with ``this``.

    Members shadowed by a parameter or local anywhere in the body are left
    alone. Static contexts are skipped.
    """
    if ctx.is_static or not (ctx.properties or ctx.methods):
        return text
    shadowed = ctx.parameters | local_names(text)
    for name in sorted(ctx.properties - shadowed):
        text = re.sub(rf"(?<![\w$.]){re.escape(name)}\b(?!\s*\()", f"{receiver}.{name}", text)
    for name in sorted(ctx.methods - shadowed):
        text = re.sub(rf"(?<![\w$.]){re.escape(name)}(?=\s*\()", f"{receiver}.{name}", text)
    return text


def statement_termination(text: str, ctx: RewriteContext) -> str:
    """Append semicolons to lines that end a simple statement."""
    out = []
    for line in text.split("\n"):
        stripped = line.rstrip()
        if (
            not stripped
            or stripped.endswith(("{", "}", ";", ",", "(", "[", ":", "?", "+", "-", "*", "/", "=", "&", "|", "."))
            or re.match(r"^\s*(case\b|default\s*:|else\b)", stripped)
        ):
            out.append(line)
        else:
            out.append(stripped + ";")
    return "\n".join(out)


def control_parentheses(line: str, ctx: RewriteContext) -> str:
    """``if cond {`` -> ``if (cond) {`` (also ``while``/``switch``/``else if``)."""
    m = re.match(r"^(\s*\}?\s*(?:else\s+)?)(if|while|switch)\s+", line)
    if not m:
        return line
    start = m.end()
    depth = 0
    brace = -1
    for pos in range(start, len(line)):
        ch = line[pos]
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "{" and depth == 0:
            brace = pos
            break
    if brace == -1:
        return line
    condition = line[start:brace].strip()
    if _fully_parenthesized(condition):
        return line
    return f"{m.group(1)}{m.group(2)} ({condition}) {line[brace:]}"


def _fully_parenthesized(text: str) -> bool:
    if not (text.startswith("(") and text.endswith(")")):
        return False
    depth = 0
    for pos, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and pos != len(text) - 1:
                return False
    return True


def strip_types(params: str) -> str:
    """``(a: Int, b: Int)`` / ``(int a, int b)`` -> ``a, b``."""
    names = []
    for part in params.strip().strip("()").split(","):
        part = part.strip()
        if not part:
            continue
        if ":" in part:
            part = part.split(":")[0].strip().split()[-1]
        else:
            part = re.split(r"[\s*]+", part)[-1]
        if part and part != "void":
            names.append(part)
    return ", ".join(names)
