"""Body rewrite rules for the Swift-style dialect, in application order."""

from __future__ import annotations

import re

from jitphone.generators.rewrite import (
    RewriteContext,
    RewritePipeline,
    RewriteRule,
    control_parentheses,
    implicit_self,
    masked,
    per_line,
    regex_rule,
    statement_termination,
    strip_types,
)
from jitphone.ir.scanner import find_closing, split_top_level
from jitphone.utils.jstext import find_block_end, mask

# Collection methods whose trailing closure becomes a callback argument
_CLOSURE_METHODS = {
    "map": "map",
    "filter": "filter",
    "reduce": "reduce",
    "forEach": "forEach",
    "sorted": "sort",
    "sort": "sort",
    "compactMap": "map",
    "flatMap": "flatMap",
    "first": "find",
    "contains": "some",
    "allSatisfy": "every",
    "firstIndex": "findIndex",
}
_STATEMENT_WORDS = {"for", "if", "while", "let", "var", "return", "guard", "switch", "else"}


# --- 1. Closures ---


def _closure_to_arrow(body: str, ctx: RewriteContext) -> str:
    body = body.strip()
    header = re.match(r"^(\([^()]*\)|[\w\s,]+?)\s*(?:->\s*[^{}]+?)?\s+in\b\s*(.*)$", body, re.DOTALL)
    if header and not (set(header.group(1).replace("(", " ").replace(",", " ").split()) & _STATEMENT_WORDS):
        params = strip_types(header.group(1))
        rest = header.group(2).strip()
    else:
        numbers = sorted({int(n) for n in re.findall(r"\$(\d+)", body)})
        params = ", ".join(f"${i}" for i in range(numbers[-1] + 1)) if numbers else ""
        rest = body
    rest = convert_closures(rest, ctx)
    if "\n" not in rest and ";" not in rest:
        expression = rest[len("return ") :] if rest.startswith("return ") else rest
        return f"({params}) => {expression}"
    return f"({params}) => {{\n{rest}\n}}"


def _closure_call(method: str, args: str, arrow: str) -> str:
    js = _CLOSURE_METHODS[method]
    if method == "reduce":
        return f".reduce({arrow}, {args})" if args else f".reduce({arrow})"
    if method in ("sorted", "sort"):
        comparator = f"(__a, __b) => (({arrow})(__a, __b) ? -1 : (({arrow})(__b, __a) ? 1 : 0))"
        prefix = ".slice()" if method == "sorted" else ""
        return f"{prefix}.sort({comparator})"
    if method == "compactMap":
        return f".map({arrow}).filter((__v) => __v != null)"
    return f".{js}({args}, {arrow})" if args else f".{js}({arrow})"


def _looks_like_closure(body: str) -> bool:
    body = body.strip()
    if re.search(r"\$\d", body):
        return True
    header = re.match(r"^(\([^()]*\)|[\w\s,]+?)\s*(?:->\s*[^{}]+?)?\s+in\b", body)
    return bool(header) and not (set(header.group(1).replace("(", " ").replace(",", " ").split()) & _STATEMENT_WORDS)


def convert_closures(text: str, ctx: RewriteContext) -> str:
    """Trailing closures and closure literals -> arrow functions."""
    trailing = re.compile(r"\.(\w+)\s*(\(([^()]*)\))?\s*\{")
    pos = 0
    while True:
        m = trailing.search(text, pos)
        if not m:
            break
        open_idx = m.end() - 1
        close_idx = find_closing(text, open_idx)
        if m.group(1) not in _CLOSURE_METHODS or close_idx == -1:
            pos = m.end()
            continue
        # `if xs.contains(x) {` opens a block, not a closure
        if m.group(2) and m.group(1) != "reduce" and not _looks_like_closure(text[open_idx + 1 : close_idx]):
            pos = m.end()
            continue
        arrow = _closure_to_arrow(text[open_idx + 1 : close_idx], ctx)
        call = _closure_call(m.group(1), (m.group(3) or "").strip(), arrow)
        text = text[: m.start()] + call + text[close_idx + 1 :]
        pos = m.start() + 1

    literal = re.compile(r"(?<=[(,=:])\s*\{")
    pos = 0
    while True:
        m = literal.search(text, pos)
        if not m:
            break
        open_idx = m.end() - 1
        close_idx = find_closing(text, open_idx)
        if close_idx == -1 or not _looks_like_closure(text[open_idx + 1 : close_idx]):
            pos = m.end()
            continue
        arrow = _closure_to_arrow(text[open_idx + 1 : close_idx], ctx)
        text = text[:open_idx] + arrow + text[close_idx + 1 :]
        pos = open_idx + 1
    return text


# --- 2. String interpolation ---


def _swift_string_end(text: str, i: int) -> int:
    j = i + 1
    while j < len(text):
        ch = text[j]
        if ch == "\\" and j + 1 < len(text) and text[j + 1] == "(":
            j = _interpolation_end(text, j + 2)
            continue
        if ch == "\\":
            j += 2
            continue
        if ch == '"':
            return j + 1
        if ch == "\n":
            return j
        j += 1
    return len(text)


def _interpolation_end(text: str, j: int) -> int:
    """Index just past the ``)`` closing an interpolation opened before ``j``."""
    depth = 1
    while j < len(text):
        ch = text[j]
        if ch == '"':
            j = _swift_string_end(text, j)
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    return len(text)


def _to_template(literal: str) -> str:
    content = literal[1:-1] if literal.endswith('"') and len(literal) > 1 else literal[1:]
    out = []
    j = 0
    while j < len(content):
        if content.startswith("\\(", j):
            end = _interpolation_end(content, j + 2)
            expression = content[j + 2 : end - 1]
            out.append("${" + interpolate(expression, None) + "}")
            j = end
            continue
        ch = content[j]
        if ch == "\\" and j + 1 < len(content):
            nxt = content[j + 1]
            out.append('"' if nxt == '"' else ch + nxt)
            j += 2
            continue
        if ch == "`":
            out.append("\\`")
        elif content.startswith("${", j):
            out.append("\\$")
        else:
            out.append(ch)
        j += 1
    return "`" + "".join(out) + "`"


def interpolate(text: str, ctx: RewriteContext | None) -> str:
    """``"Hi \\(name)"`` -> ``\\`Hi ${name}\\```; plain strings are untouched."""
    out = []
    i = 0
    while i < len(text):
        if text[i] == '"':
            end = _swift_string_end(text, i)
            literal = text[i:end]
            out.append(_to_template(literal) if "\\(" in literal else literal)
            i = end
        else:
            out.append(text[i])
            i += 1
    return "".join(out)


# --- 3. Range loops ---


def range_loops(line: str, ctx: RewriteContext) -> str:
    m = re.match(r"^(\s*)for\s+(\w+)\s+in\s+\((.+?)\s*(\.\.<|\.\.\.)\s*(.+?)\)\.reversed\(\)\s*\{(.*)$", line)
    if m:
        indent, var, lo, op, hi, rest = m.groups()
        start = f"{hi} - 1" if op == "..<" else hi
        return f"{indent}for (let {var} = {start}; {var} >= {lo}; {var}--) {{{rest}"
    m = re.match(
        r"^(\s*)for\s+(\w+)\s+in\s+stride\(\s*from:\s*(.+?),\s*(to|through):\s*(.+?),\s*by:\s*(.+?)\)\s*\{(.*)$", line
    )
    if m:
        indent, var, lo, kind, hi, step, rest = m.groups()
        descending = step.strip().startswith("-")
        op = (">" if descending else "<") + ("=" if kind == "through" else "")
        return f"{indent}for (let {var} = {lo}; {var} {op} {hi}; {var} += {step}) {{{rest}"
    m = re.match(r"^(\s*)for\s+\((\w+),\s*(\w+)\)\s+in\s+(.+?)\.enumerated\(\)\s*\{(.*)$", line)
    if m:
        indent, index, item, collection, rest = m.groups()
        return f"{indent}for (const [{index}, {item}] of {collection}.entries()) {{{rest}"
    m = re.match(r"^(\s*)for\s+(\w+)\s+in\s+(.+?)\s*(\.\.<|\.\.\.)\s*(.+?)\s*\{(.*)$", line)
    if m:
        indent, var, lo, op, hi, rest = m.groups()
        cmp = "<" if op == "..<" else "<="
        return f"{indent}for (let {var} = {lo}; {var} {cmp} {hi}; {var}++) {{{rest}"
    m = re.match(r"^(\s*)for\s+(\w+)\s+in\s+(.+?)(?:\s+where\s+(.+?))?\s*\{(.*)$", line)
    if m:
        indent, var, collection, where, rest = m.groups()
        guard = f" if (!({where})) continue;" if where else ""
        return f"{indent}for (const {var} of {collection}) {{{guard}{rest}"
    m = re.match(r"^(\s*)repeat\s*\{(.*)$", line)
    if m:
        return f"{m.group(1)}do {{{m.group(2)}"
    m = re.match(r"^(\s*)\}\s*while\s+(.+?)\s*;?\s*$", line)
    if m and not m.group(2).startswith("("):
        return f"{m.group(1)}}} while ({m.group(2)});"
    return line


# --- 4. Error handling ---

_TRY_EXPRESSION = re.compile(r"(?<![\w$.])try[?!]?\s+")
_DO_BLOCK = re.compile(r"(?<![\w$.])do\s*\{")
_CATCH_CLAUSE = re.compile(r"\s*catch\b([^{]*)\{")


def _catch_binding(pattern: str) -> str | None:
    m = re.fullmatch(r"(?:let|var)\s+(\w+)(?:\s+as\s+[\w.]+)?", pattern)
    return m.group(1) if m else None


def _catch_condition(pattern: str) -> str | None:
    m = re.fullmatch(r"is\s+([\w.]+)", pattern)
    if m:
        return f"error instanceof {m.group(1)}"
    if re.fullmatch(r"\.?[A-Za-z_][\w.]*", pattern):
        return f"error === {pattern}"
    return None


def _catch_chain(clauses: list[tuple[str, str]]) -> str:
    """Fold Swift's catch clauses into one JS ``catch`` dispatching on ``error``."""
    if len(clauses) == 1:
        pattern, body = clauses[0]
        binding = _catch_binding(pattern)
        if binding or not pattern:
            return f" catch ({binding or 'error'}) {{{body}}}"
    branches: list[tuple[str, str]] = []
    fallback = None
    for pattern, body in clauses:
        binding = _catch_binding(pattern)
        condition = _catch_condition(pattern) if pattern and not binding else None
        if condition is None:
            fallback = f" var {binding} = error;{body}" if binding else body
            break
        branches.append((condition, body))
    if not branches:
        return f" catch (error) {{{fallback}}}"
    chain = " else ".join(f"if ({condition}) {{{body}}}" for condition, body in branches)
    return f" catch (error) {{ {chain} else {{{fallback if fallback is not None else ' throw error; '}}} }}"


def _do_blocks(text: str) -> str:
    out: list[str] = []
    pos = 0
    while True:
        m = _DO_BLOCK.search(text, pos)
        if not m:
            break
        close = find_block_end(text, m.end() - 1)
        if close == -1:
            break
        out.append(text[pos : m.start()])
        body = _do_blocks(text[m.end() : close])
        clauses: list[tuple[str, str]] = []
        pos = close + 1
        while True:
            clause = _CATCH_CLAUSE.match(text, pos)
            clause_close = find_block_end(text, clause.end() - 1) if clause else -1
            if clause_close == -1:
                break
            clauses.append((clause.group(1).strip(), _do_blocks(text[clause.end() : clause_close])))
            pos = clause_close + 1
        if clauses:
            out.append("try {" + body + "}" + _catch_chain(clauses))
        elif re.match(r"\s*while\b", text[pos:]):
            # repeat-while, already rewritten to do/while
            out.append("do {" + body + "}")
        else:
            out.append("{" + body + "}")
    out.append(text[pos:])
    return "".join(out)


def error_handling(text: str, ctx: RewriteContext) -> str:
    """``do { try f() } catch X { } catch { }`` -> ``try { f() } catch (error) { if ... }``."""
    return _do_blocks(_TRY_EXPRESSION.sub("", text))


# --- 5. Optional binding ---


def _binding(cond: str):
    m = re.match(r"^(?:let|var)\s+(\w+)(?:\s*:\s*[^=]+?)?\s*=\s*(.+)$", cond)
    if m:
        return m.group(1), m.group(2).strip()
    m = re.match(r"^(?:let|var)\s+(\w+)$", cond)
    if m:
        return m.group(1), m.group(1)
    return None


def optional_binding(text: str, ctx: RewriteContext) -> str:
    hoisted: list[str] = []
    out = []
    for line in text.split("\n"):
        m = re.match(r"^(\s*)guard\s+(.+?)\s+else\s*\{(.*)$", line)
        if m:
            indent, conds, rest = m.groups()
            checks = []
            for cond in split_top_level(conds, brackets="()[]{}"):
                bound = _binding(cond)
                if bound is None:
                    checks.append(f"!({cond})")
                    continue
                name, value = bound
                if value != name:
                    keyword = "" if name in ctx.parameters else "const "
                    out.append(f"{indent}{keyword}{name} = {value};")
                checks.append(f"{name} == null")
            out.append(f"{indent}if ({' || '.join(checks)}) {{{rest}")
            continue

        m = re.match(r"^(\s*\}?\s*(?:else\s+)?)if\s+(.*\b(?:let|var)\s+\w+.*?)\s*\{(.*)$", line)
        if m:
            prefix, conds, rest = m.groups()
            checks = []
            for cond in split_top_level(conds, brackets="()[]{}"):
                bound = _binding(cond)
                if bound is None:
                    checks.append(f"({cond})")
                    continue
                name, value = bound
                if value == name:
                    checks.append(f"{name} != null")
                else:
                    if name not in ctx.parameters and name not in hoisted:
                        hoisted.append(name)
                    checks.append(f"({name} = {value}) != null")
            out.append(f"{prefix}if ({' && '.join(checks)}) {{{rest}")
            continue
        out.append(line)

    return "\n".join([f"let {name};" for name in hoisted] + out)


# --- 6. Declarations ---


def declarations(line: str, ctx: RewriteContext) -> str:
    m = re.match(r"^(\s*)(let|var)\s+(\w+|\([\w\s,]+\))\s*(?::\s*([^=]+?))?\s*(=.*)?$", line)
    if not m:
        return line
    indent, keyword, target, _type, init = m.groups()
    if target.startswith("("):
        target = "[" + ", ".join(n.strip() for n in target.strip("()").split(",")) + "]"
    js_keyword = "const" if keyword == "let" and init else "let"
    return f"{indent}{js_keyword} {target}{' ' + init if init else ''}"


# --- 7. Optionals ---


def _operand_start(text: str, end: int) -> int:
    """Start index of the postfix operand that ends just before ``end``."""
    i = end
    while i > 0:
        ch = text[i - 1]
        if ch in ")]":
            depth = 0
            j = i - 1
            while j >= 0:
                if text[j] in ")]":
                    depth += 1
                elif text[j] in "([":
                    depth -= 1
                    if depth == 0:
                        break
                j -= 1
            i = max(j, 0)
            continue
        if ch.isalnum() or ch in "_$.":
            i -= 1
            continue
        break
    return i


def _optional_chaining(text: str) -> str:
    member = re.compile(r"\?\.([A-Za-z_$][\w$]*)")
    for _ in range(200):
        m = member.search(text)
        if not m:
            break
        start = _operand_start(text, m.start())
        base = text[start : m.start()]
        end = m.end()
        if end < len(text) and text[end] == "(":
            close = find_closing(text, end)
            end = close + 1 if close != -1 else end
        access = f"{base}.{text[m.start() + 2 : end]}"
        text = f"{text[:start]}({base} == null ? undefined : {access}){text[end:]}"
    return text


def _nil_coalescing(text: str) -> str:
    pattern = re.compile(r"\s*\?\?\s*")
    for _ in range(200):
        m = pattern.search(text)
        if not m:
            break
        start = _operand_start(text, m.start())
        left = text[start : m.start()]
        right_match = re.match(r"([^,;)\]}\n]+?)(?=\s*(?:[,;)\]}\n]|$))", text[m.end() :])
        right = right_match.group(1) if right_match else ""
        end = m.end() + len(right)
        text = f"{text[:start]}({left} != null ? {left} : {right.strip()}){text[end:]}"
    return text


def optionals(text: str, ctx: RewriteContext) -> str:
    text = re.sub(r"\s+as[?!]?\s+[\w.<>\[\]:]+\??", "", text)
    text = re.sub(r"\b([\w.]+)\s+is\s+([A-Z]\w*)", r"\1 instanceof \2", text)
    text = _nil_coalescing(text)
    text = _optional_chaining(text)
    return re.sub(r"([\w$)\]])!(?!=)", r"\1", text)


# --- 9. Type names ---


def _conversion_calls(text: str, ctx: RewriteContext) -> str:
    pattern = re.compile(r"(?<![\w$.])(Int|Double|Float|CGFloat|Bool)\(")
    pos = 0
    while True:
        m = pattern.search(text, pos)
        if not m:
            return text
        open_idx = m.end() - 1
        close = find_closing(text, open_idx)
        if close == -1:
            pos = m.end()
            continue
        inner = text[open_idx + 1 : close]
        if m.group(1) == "Int":
            replacement = f"Math.trunc(Number({inner}))"
        elif m.group(1) == "Bool":
            replacement = f"Boolean({inner})"
        else:
            replacement = f"Number({inner})"
        text = text[: m.start()] + replacement + text[close + 1 :]
        pos = m.start() + len(replacement)


_TYPE_NAMES = [
    (r"\bnil\b", "null"),
    (r"\bInt\.max\b", "Number.MAX_SAFE_INTEGER"),
    (r"\bInt\.min\b", "Number.MIN_SAFE_INTEGER"),
    (r"\b(?:Double|Float|CGFloat)\.pi\b", "Math.PI"),
    (r"\b(?:Double|Float)\.infinity\b", "Infinity"),
    (r"\b(?:Double|Float)\.greatestFiniteMagnitude\b", "Number.MAX_VALUE"),
    (r"\bArray\(repeating:\s*([^,]+?),\s*count:\s*([^)]+)\)", r"new Array(\2).fill(\1)"),
    (r"\[[\w.]+\s*:\s*[\w.]+\]\(\)", "{}"),
    (r"\[[\w.]+\]\(\)", "[]"),
    (r"\[:\]", "{}"),
    (r"\bDictionary<[^>]+>\(\)", "{}"),
    (r"\bArray<[^>]+>\(\)", "[]"),
    (r"\bSet<[^>]+>\(\)", "new Set()"),
    (r"(?<!new )(?<![\w$.])Set\(", "new Set("),
    (r"\bString\(describing:\s*", "String("),
    (r"\bString\(format:\s*", "String.format("),
]


def _dictionary_literals(text: str) -> str:
    """``["a": 1, "b": 2]`` -> ``{"a": 1, "b": 2}``; subscripts are left alone."""
    pos = 0
    while True:
        open_idx = text.find("[", pos)
        if open_idx == -1:
            return text
        pos = open_idx + 1
        before = text[:open_idx].rstrip()
        if before and (before[-1].isalnum() or before[-1] in "_$)]"):
            continue
        close = find_closing(text, open_idx)
        if close == -1:
            continue
        entries = [e for e in split_top_level(text[open_idx + 1 : close], brackets="()[]{}") if e]
        if entries and all(len(split_top_level(e, sep=":", brackets="()[]{}")) == 2 and "?" not in e for e in entries):
            text = text[:open_idx] + "{" + text[open_idx + 1 : close] + "}" + text[close + 1 :]


def type_names(text: str, ctx: RewriteContext) -> str:
    for pattern, repl in _TYPE_NAMES:
        text = re.sub(pattern, repl, text)
    if ctx.type_name:
        text = re.sub(r"\bSelf\b", ctx.type_name, text)
    text = re.sub(r"(?<![\w$.])([A-Z]\w*)\(rawValue:\s*", r"\1.fromRawValue(", text)
    for name in sorted(ctx.constructible):
        text = re.sub(rf"(?<![\w$.])(?<!new ){re.escape(name)}(?:\.init)?\(", f"new {name}(", text)
    text = _dictionary_literals(text)
    return _conversion_calls(text, ctx)


# --- 10. Library API ---

# (member, pattern, replacement); skipped when the enclosing type defines the member
_MEMBER_MAPPINGS = [
    ("count", r"\.count\b(?!\s*\()", ".length"),
    ("append", r"\.append\(contentsOf:\s*", ".push(..."),
    ("append", r"\.append\(", ".push("),
    ("insert", r"\.insert\(([^,()]+),\s*at:\s*([^()]+)\)", r".splice(\2, 0, \1)"),
    ("remove", r"\.remove\(at:\s*([^()]+)\)", r".splice(\1, 1)[0]"),
    ("removeLast", r"\.removeLast\(\)", ".pop()"),
    ("removeFirst", r"\.removeFirst\(\)", ".shift()"),
    ("removeAll", r"\.removeAll\(\)", ".splice(0)"),
    ("contains", r"\.contains\(", ".includes("),
    ("first", r"\.first\b(?!\s*\()", "[0]"),
    ("last", r"\.last\b(?!\s*\()", ".slice(-1)[0]"),
    ("uppercased", r"\.uppercased\(\)", ".toUpperCase()"),
    ("lowercased", r"\.lowercased\(\)", ".toLowerCase()"),
    ("hasPrefix", r"\.hasPrefix\(", ".startsWith("),
    ("hasSuffix", r"\.hasSuffix\(", ".endsWith("),
    ("joined", r"\.joined\(separator:\s*", ".join("),
    ("joined", r"\.joined\(\)", '.join("")'),
    ("sorted", r"\.sorted\(\)", ".slice().sort((__a, __b) => (__a < __b ? -1 : (__b < __a ? 1 : 0)))"),
    ("reversed", r"\.reversed\(\)", ".slice().reverse()"),
    ("components", r"\.components\(separatedBy:\s*", ".split("),
    ("split", r"\.split\(separator:\s*", ".split("),
    ("trimmingCharacters", r"\.trimmingCharacters\(in:\s*[^()]*\)", ".trim()"),
    ("description", r"\.description\b(?!\s*\()", ".toString()"),
    # Enum cases are emitted as their raw values
    ("rawValue", r"\.rawValue\b", ""),
]

_FREE_FUNCTIONS = [
    (r"(?<![\w$.])print\(", "console.log("),
    (r"(?<![\w$.])fatalError\(", "throw new Error("),
    (r"(?<![\w$.])(?:assert|precondition)\(", "console.assert("),
    (r"(?<![\w$.])(sqrt|pow|abs|floor|ceil|round|sin|cos|tan|atan2|exp|log|min|max)\s*\(", r"Math.\1("),
]


def library_api(text: str, ctx: RewriteContext) -> str:
    own = ctx.properties | ctx.methods
    for pattern, repl in _FREE_FUNCTIONS:
        text = re.sub(pattern, repl, text)
    if "isEmpty" not in own:
        for _ in range(200):
            m = re.search(r"\.isEmpty\b", text)
            if not m:
                break
            start = _operand_start(text, m.start())
            receiver = text[start : m.start()]
            text = f"{text[:start]}({receiver}.length === 0){text[m.end():]}"
    for member, pattern, repl in _MEMBER_MAPPINGS:
        if member not in own:
            text = re.sub(pattern, repl, text)
    return text


# --- 11. Argument labels ---


def argument_labels(text: str, ctx: RewriteContext) -> str:
    """Drop ``label:`` prefixes from call arguments (not from object literals)."""
    innermost: list[str] = []
    stack: list[str] = []
    for ch in text:
        innermost.append(stack[-1] if stack else "")
        if ch in "([{":
            stack.append(ch)
        elif ch in ")]}" and stack:
            stack.pop()

    def _strip(m: re.Match) -> str:
        if innermost[m.start()] != "(" and not (m.start() > 0 and text[m.start() - 1] == "("):
            return m.group(0)
        return m.group(1)

    return re.sub(r"(?<=[(,])(\s*)[A-Za-z_]\w*\s*:(?!:)\s*", _strip, text)


# --- 13. Implicit enum members ---


def implicit_members(text: str, ctx: RewriteContext) -> str:
    if not ctx.enum_cases:
        return text

    def _qualify(m: re.Match) -> str:
        enum = ctx.enum_cases.get(m.group(1))
        return f"{enum}.{m.group(1)}" if enum else m.group(0)

    return re.sub(r"(?<![\w$)\].])\.([A-Za-z_]\w*)\b(?!\s*\()", _qualify, text)


# --- 15. Switch cases ---


def switch_cases(text: str, ctx: RewriteContext) -> str:
    """Add the ``break`` statements Swift's non-fallthrough cases imply."""
    out: list[str] = []
    switches: list[dict] = []
    depth = 0
    for line in text.split("\n"):
        stripped = line.strip()
        case = re.match(r"^(case\s+(.+?)|default)\s*:(?!:)(.*)$", stripped)
        if case and switches and switches[-1]["depth"] == depth:
            current = switches[-1]
            if current["open"] and not _ends_with_jump(out):
                out.append("break;")
            current["open"] = True
            if case.group(2):
                labels = [f"case {label}:" for label in split_top_level(case.group(2))]
                line = " ".join(labels) + case.group(3)
        out.append(line)
        if re.match(r"^switch\b", stripped) and stripped.endswith("{"):
            switches.append({"depth": depth + 1, "open": False})
        for _, ch in _code_chars(line):
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
        while switches and depth < switches[-1]["depth"]:
            switches.pop()
    return "\n".join(out)


def _code_chars(line: str):
    m = mask(line, strings=True, templates=True, comments=True)
    return enumerate(m.text)


def _ends_with_jump(lines: list[str]) -> bool:
    for line in reversed(lines):
        stripped = line.strip()
        if not stripped:
            continue
        tail = stripped.split(":", 1)[1] if re.match(r"^(case\b|default\s*:)", stripped) else stripped
        return bool(re.match(r"^\s*(return|break|throw|continue)\b", tail.strip()))
    return False


SWIFT_RULES = [
    RewriteRule("closures", convert_closures),
    RewriteRule("string-interpolation", interpolate),
    RewriteRule("range-loops", per_line(range_loops)),
    RewriteRule("error-handling", masked(error_handling)),
    RewriteRule("optional-binding", optional_binding),
    RewriteRule("declarations", per_line(declarations)),
    RewriteRule("optionals", masked(optionals)),
    regex_rule("self-this", [(r"\bself\b", "this")], templates="text"),
    RewriteRule("type-names", masked(type_names, templates="text")),
    RewriteRule("library-api", masked(library_api, templates="text")),
    RewriteRule("argument-labels", masked(argument_labels)),
    RewriteRule("implicit-self", masked(implicit_self, templates="text")),
    RewriteRule("implicit-members", masked(implicit_members, templates="text")),
    RewriteRule("control-parentheses", masked(per_line(control_parentheses))),
    RewriteRule("switch-cases", masked(switch_cases)),
    RewriteRule("statement-termination", statement_termination),
]


def swift_pipeline() -> RewritePipeline:
    return RewritePipeline(SWIFT_RULES)
