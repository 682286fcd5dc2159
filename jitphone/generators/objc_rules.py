"""Body rewrite rules for the Objective-C-style dialect, in application order.

Message sends are converted innermost first. Brackets that turn out not to be
sends (C subscripts, array literals) are parked behind sentinel characters so
the next search finds the enclosing send instead.
"""

from __future__ import annotations

import re

from jitphone.generators.rewrite import (
    RewriteContext,
    RewritePipeline,
    RewriteRule,
    implicit_self,
    masked,
    per_line,
    regex_rule,
    strip_types,
)
from jitphone.ir.objc_parser import selector_name
from jitphone.ir.scanner import find_closing, split_top_level

_OPEN = "\x01"
_CLOSE = "\x02"

_PRIMITIVES = r"(?:unsigned\s+|signed\s+|long\s+|short\s+)*(?:int|float|double|long|short|char|BOOL|bool|NSInteger|NSUInteger|CGFloat|size_t|uint\d+_t|int\d+_t)"


# --- Literals ---

_STRING_LITERALS = [(r"@(__JSLIT_\d+__)", r"\1")]

_BOXED_LITERALS = [
    (r"@\[", "["),
    (r"@\{", "{"),
    (r"@\(", "("),
    (r"@(YES|NO|true|false)\b", r"\1"),
    (r"@(-?\d+(?:\.\d+)?)[fFlLuU]*\b", r"\1"),
]


def block_literals(text: str, ctx: RewriteContext) -> str:
    """``^(int a) { ... }`` -> ``function (a) { ... }``."""
    text = re.sub(
        r"\^\s*(?:\w+\s*\**\s*)?\(([^()]*)\)\s*\{",
        lambda m: f"function ({strip_types(m.group(1))}) {{",
        text,
    )
    return re.sub(r"\^\s*\{", "function () {", text)


# --- Loops ---

_LOOPS = [
    (r"\bfor\s*\(\s*(?:__\w+\s+)?(?:id\s+|[A-Za-z_]\w*\s*\*+\s*|[A-Za-z_]\w*\s+)(\w+)\s+in\s+", r"for (const \1 of "),
    (rf"\bfor\s*\(\s*{_PRIMITIVES}\s+(\w+)\s*=", r"for (let \1 ="),
]


# --- Initializer chaining ---

_INIT_CHAIN = [
    (r"^\s*(?:self\s*=\s*)?\[\s*super\s+init\w*[^\]]*\]\s*;[ \t]*\n?", ""),
    (r"\(\s*\(?\s*self\s*=\s*\[\s*super\s+init\w*[^\]]*\]\s*\)?\s*\)", "(this)"),
]

_ALLOC_INIT = [
    (r"\[\s*\[\s*(\w+)\s+alloc\s*\]\s+init\s*\]", r"new \1()"),
    (r"\[\s*(\w+)\s+alloc\s*\]", r"(new \1())"),
    (r"\[\s*([A-Z]\w*)\s+new\s*\]", r"new \1()"),
]


# --- Message sends ---


def _array_literal(receiver: str, args: list[str]) -> str:
    items = [a for a in split_top_level(", ".join(args)) if a not in ("nil", "NULL")]
    return "[" + ", ".join(items) + "]"


def _format_call(receiver: str, args: list[str]) -> str:
    return f"String.format({', '.join(args)})"


# Selector -> builder(receiver, args); a builder returning None falls back to a plain call
_SPECIAL_SELECTORS = {
    "count": lambda r, a: f"{r}.length",
    "length": lambda r, a: f"{r}.length",
    "intValue": lambda r, a: f"parseInt({r}, 10)",
    "integerValue": lambda r, a: f"parseInt({r}, 10)",
    "floatValue": lambda r, a: f"parseFloat({r})",
    "doubleValue": lambda r, a: f"parseFloat({r})",
    "boolValue": lambda r, a: f"Boolean({r})",
    "stringValue": lambda r, a: f"String({r})",
    "description": lambda r, a: f"String({r})",
    "firstObject": lambda r, a: f"{r}[0]",
    "lastObject": lambda r, a: f"{r}[{r}.length - 1]",
    "uppercaseString": lambda r, a: f"{r}.toUpperCase()",
    "lowercaseString": lambda r, a: f"{r}.toLowerCase()",
    "allKeys": lambda r, a: f"Object.keys({r})",
    "allValues": lambda r, a: f"Object.values({r})",
    "removeLastObject": lambda r, a: f"{r}.pop()",
    "removeAllObjects": lambda r, a: f"{r}.splice(0)",
    "class": lambda r, a: r,
    "retain": lambda r, a: r,
    "autorelease": lambda r, a: r,
    "array": lambda r, a: "[]" if r.startswith("NS") else None,
    "dictionary": lambda r, a: "{}" if r.startswith("NS") else None,
    "string": lambda r, a: '""' if r.startswith("NS") else None,
    "objectAtIndex:": lambda r, a: f"{r}[{a[0]}]",
    "objectAtIndexedSubscript:": lambda r, a: f"{r}[{a[0]}]",
    "objectForKey:": lambda r, a: f"{r}[{a[0]}]",
    "objectForKeyedSubscript:": lambda r, a: f"{r}[{a[0]}]",
    "valueForKey:": lambda r, a: f"{r}[{a[0]}]",
    "setObject:forKey:": lambda r, a: f"{r}[{a[1]}] = {a[0]}",
    "setValue:forKey:": lambda r, a: f"{r}[{a[1]}] = {a[0]}",
    "removeObjectForKey:": lambda r, a: f"delete {r}[{a[0]}]",
    "addObject:": lambda r, a: f"{r}.push({a[0]})",
    "addObjectsFromArray:": lambda r, a: f"{r}.push(...{a[0]})",
    "insertObject:atIndex:": lambda r, a: f"{r}.splice({a[1]}, 0, {a[0]})",
    "removeObjectAtIndex:": lambda r, a: f"{r}.splice({a[0]}, 1)",
    "containsObject:": lambda r, a: f"{r}.includes({a[0]})",
    "indexOfObject:": lambda r, a: f"{r}.indexOf({a[0]})",
    "isEqual:": lambda r, a: f"({r} === {a[0]})",
    "isEqualToString:": lambda r, a: f"({r} === {a[0]})",
    "isEqualToNumber:": lambda r, a: f"({r} === {a[0]})",
    "stringByAppendingString:": lambda r, a: f"({r} + {a[0]})",
    "componentsSeparatedByString:": lambda r, a: f"{r}.split({a[0]})",
    "componentsJoinedByString:": lambda r, a: f"{r}.join({a[0]})",
    "hasPrefix:": lambda r, a: f"{r}.startsWith({a[0]})",
    "hasSuffix:": lambda r, a: f"{r}.endsWith({a[0]})",
    "substringFromIndex:": lambda r, a: f"{r}.substring({a[0]})",
    "substringToIndex:": lambda r, a: f"{r}.substring(0, {a[0]})",
    "characterAtIndex:": lambda r, a: f"{r}.charAt({a[0]})",
    "appendString:": lambda r, a: f"{r} += {a[0]}",
    "appendFormat:": lambda r, a: f"{r} += String.format({', '.join(a)})",
    "isKindOfClass:": lambda r, a: f"({r} instanceof {a[0]})",
    "isMemberOfClass:": lambda r, a: f"({r}.constructor === {a[0]})",
    "respondsToSelector:": lambda r, a: f'(typeof {r}[{a[0]}] === "function")',
    "enumerateObjectsUsingBlock:": lambda r, a: f"{r}.forEach({a[0]})",
    "stringWithFormat:": _format_call,
    "initWithFormat:": _format_call,
    "stringWithString:": lambda r, a: f"String({a[0]})",
    "arrayWithObjects:": _array_literal,
    "arrayWithArray:": lambda r, a: f"{a[0]}.slice()",
    "arrayWithCapacity:": lambda r, a: "[]",
    "dictionaryWithCapacity:": lambda r, a: "{}",
    "numberWithInt:": lambda r, a: a[0],
    "numberWithInteger:": lambda r, a: a[0],
    "numberWithUnsignedInteger:": lambda r, a: a[0],
    "numberWithLong:": lambda r, a: a[0],
    "numberWithFloat:": lambda r, a: a[0],
    "numberWithDouble:": lambda r, a: a[0],
    "numberWithBool:": lambda r, a: a[0],
}

_RECEIVER = re.compile(r"(?:new\s+)?[\w$][\w$.]*(?:[(\x01].*)?|\(.*\)", re.DOTALL)
_KEYWORD = re.compile(r"(?:^|(?<=\s))([A-Za-z_]\w*)\s*:(?!:)")


def _depths(text: str) -> list[int]:
    out = []
    depth = 0
    for ch in text:
        out.append(depth)
        if ch in "([{" + _OPEN:
            depth += 1
        elif ch in ")]}" + _CLOSE:
            depth -= 1
    return out


def parse_send(inner: str) -> tuple[str, list[str], list[str]] | None:
    """Split ``receiver sel:arg sel2:arg2`` into (receiver, labels, args).

    A unary send has one label and no args. Returns None when the bracket
    content is not a message send.
    """
    s = inner.strip()
    i = 4 if s.startswith("new ") else 0
    depth = 0
    while i < len(s):
        ch = s[i]
        if ch in "([{" + _OPEN:
            depth += 1
        elif ch in ")]}" + _CLOSE:
            depth -= 1
        elif ch.isspace() and depth == 0:
            break
        i += 1
    receiver, rest = s[:i], s[i:].strip()
    if not receiver or not rest or not _RECEIVER.fullmatch(receiver) or receiver[0].isdigit():
        return None
    if re.fullmatch(r"[A-Za-z_]\w*", rest):
        return receiver, [rest], []

    depths = _depths(rest)
    marks = []
    for m in _KEYWORD.finditer(rest):
        if depths[m.start()] != 0:
            continue
        pending = rest[marks[-1].end() : m.start()] if marks else ""
        if "?" in pending:
            continue
        marks.append(m)
    if not marks or marks[0].start() != 0:
        return None
    labels = [m.group(1) for m in marks]
    args = []
    for k, m in enumerate(marks):
        end = marks[k + 1].start() if k + 1 < len(marks) else len(rest)
        args.append(rest[m.end() : end].strip())
    if any(not a for a in args):
        return None
    return receiver, labels, args


def _send_to_js(receiver: str, labels: list[str], args: list[str], ctx: RewriteContext) -> str:
    selector = labels[0] if not args else "".join(f"{label}:" for label in labels)
    name = selector_name(labels)

    if not args and labels[0] == "new":
        return f"new {receiver}()"
    if not args and labels[0] == "init" and receiver.startswith("(new "):
        return receiver[1:-1]

    builder = _SPECIAL_SELECTORS.get(selector)
    if builder is not None and name not in ctx.methods:
        converted = builder(receiver, args)
        if converted is not None:
            return converted

    accessors = ctx.known_properties | ctx.properties
    if not args:
        if name in accessors and name not in ctx.methods:
            return f"{receiver}.{name}"
        return f"{receiver}.{name}()"
    setter = re.fullmatch(r"set([A-Z]\w*)", labels[0])
    if len(args) == 1 and setter:
        prop = setter.group(1)[0].lower() + setter.group(1)[1:]
        if prop in accessors:
            return f"{receiver}.{prop} = {args[0]}"
    return f"{receiver}.{name}({', '.join(args)})"


def message_sends(text: str, ctx: RewriteContext) -> str:
    innermost = re.compile(r"\[([^\[\]]*)\]")
    budget = text.count("[") * 3 + 10
    while budget > 0:
        budget -= 1
        m = innermost.search(text)
        if not m:
            break
        parsed = parse_send(m.group(1))
        if parsed is None:
            replacement = _OPEN + m.group(1) + _CLOSE
        else:
            replacement = _send_to_js(*parsed, ctx)
        text = text[: m.start()] + replacement + text[m.end() :]
    return text.replace(_OPEN, "[").replace(_CLOSE, "]")


# --- Casts and declarations ---


def casts(text: str, ctx: RewriteContext) -> str:
    text = re.sub(rf"\(\s*(?:const\s+)?(?:int|NSInteger|long|short)\s*\)\s*(?=\()", "Math.trunc", text)
    text = re.sub(rf"\(\s*(?:const\s+)?{_PRIMITIVES}\s*\)\s*(?=[\w$(\-])", "", text)
    text = re.sub(r"\(\s*(?:const\s+)?(?:[A-Z]\w*\s*\*+|id|void|instancetype)\s*\)\s*(?=[\w$(\[\-])", "", text)
    return text


def local_declarations(line: str, ctx: RewriteContext) -> str:
    m = re.match(
        rf"^(\s*)(?:(?:static|const|__block|__weak|__strong)\s+)*(?:{_PRIMITIVES}|id|[A-Z]\w*)\b(?:\s*\*+\s*|\s+)(?:const\s+)?(\w+)\s*(=(?!=)|;|,)",
        line,
    )
    if not m or m.group(2) in ("in", "return"):
        return line
    return f"{m.group(1)}let {m.group(2)}{' ' if m.group(3) == '=' else ''}{m.group(3)}{line[m.end():]}"


# --- Foundation ---


def _nslog(text: str) -> str:
    pattern = re.compile(r"(?<![\w$.])NSLog\(")
    pos = 0
    while True:
        m = pattern.search(text, pos)
        if not m:
            return text
        close = find_closing(text, m.end() - 1)
        if close == -1:
            return text
        inner = text[m.end() : close]
        replacement = f"console.log(String.format({inner}))"
        text = text[: m.start()] + replacement + text[close + 1 :]
        pos = m.start() + len(replacement)


def foundation(text: str, ctx: RewriteContext) -> str:
    text = re.sub(r"@selector\(\s*([\w:]+)\s*\)", lambda m: f'"{selector_name([p for p in m.group(1).split(":") if p])}"', text)
    for pattern, repl in (
        (r"\bYES\b", "true"),
        (r"\bNO\b", "false"),
        (r"\b(?:nil|Nil|NULL)\b", "null"),
        (r"\bNSNotFound\b", "-1"),
        (r"\bNSIntegerMax\b", "Number.MAX_SAFE_INTEGER"),
        (r"\bNSIntegerMin\b", "Number.MIN_SAFE_INTEGER"),
        (r"\bM_PI\b", "Math.PI"),
        (r"\bM_E\b", "Math.E"),
    ):
        text = re.sub(pattern, repl, text)
    return _nslog(text)


def self_and_ivars(text: str, ctx: RewriteContext) -> str:
    text = re.sub(r"\bself\b", "this", text)

    def _ivar(m: re.Match) -> str:
        name = m.group(1)
        if "_" + name in ctx.properties or name not in ctx.properties:
            return m.group(0)
        return f"this.{name}"

    return re.sub(r"(?<![\w$.])_([A-Za-z]\w*)\b", _ivar, text)


# --- Math ---


def _random_calls(text: str) -> str:
    pattern = re.compile(r"(?<![\w$.])arc4random_uniform\(")
    pos = 0
    while True:
        m = pattern.search(text, pos)
        if not m:
            break
        close = find_closing(text, m.end() - 1)
        if close == -1:
            break
        replacement = f"Math.floor(Math.random() * ({text[m.end():close]}))"
        text = text[: m.start()] + replacement + text[close + 1 :]
        pos = m.start() + len(replacement)
    return re.sub(r"(?<![\w$.])arc4random\(\)", "Math.floor(Math.random() * 4294967296)", text)


_MATH_NAMES = {
    "sqrt": "sqrt",
    "sqrtf": "sqrt",
    "pow": "pow",
    "powf": "pow",
    "fabs": "abs",
    "fabsf": "abs",
    "abs": "abs",
    "floor": "floor",
    "floorf": "floor",
    "ceil": "ceil",
    "ceilf": "ceil",
    "round": "round",
    "roundf": "round",
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "atan2": "atan2",
    "exp": "exp",
    "log": "log",
    "fmax": "max",
    "fmin": "min",
    "MAX": "max",
    "MIN": "min",
}


def math_functions(text: str, ctx: RewriteContext) -> str:
    text = _random_calls(text)
    names = "|".join(sorted(_MATH_NAMES, key=len, reverse=True))
    return re.sub(rf"(?<![\w$.])({names})\s*\(", lambda m: f"Math.{_MATH_NAMES[m.group(1)]}(", text)


OBJC_RULES = [
    regex_rule("string-literals", _STRING_LITERALS),
    regex_rule("boxed-literals", _BOXED_LITERALS),
    RewriteRule("block-literals", masked(block_literals)),
    regex_rule("loops", _LOOPS),
    regex_rule("init-chain", _INIT_CHAIN, flags=re.MULTILINE),
    regex_rule("alloc-init", _ALLOC_INIT),
    RewriteRule("message-sends", masked(message_sends)),
    RewriteRule("casts", masked(casts)),
    RewriteRule("local-declarations", masked(per_line(local_declarations))),
    RewriteRule("foundation", masked(foundation)),
    RewriteRule("self-ivars", masked(self_and_ivars)),
    RewriteRule("implicit-self", masked(implicit_self)),
    RewriteRule("math-functions", masked(math_functions)),
]


def objc_pipeline() -> RewritePipeline:
    return RewritePipeline(OBJC_RULES)
