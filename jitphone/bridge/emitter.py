"""Instruction IR to JavaScript.

The emitter is shared by every format. The first assignment to a name
declares it with ``var``; later ones assign. Unknown instructions become an
``// unsupported:`` comment carrying their source text.
"""

from __future__ import annotations

import re

from jitphone.ir.models import FunctionIR, Instruction, Opcode

_OPERATORS = {
    Opcode.ADD: "+",
    Opcode.SUB: "-",
    Opcode.MUL: "*",
    Opcode.DIV: "/",
}

_RESERVED = {
    "break", "case", "catch", "class", "const", "continue", "debugger", "default", "delete", "do",
    "else", "enum", "export", "extends", "false", "finally", "for", "function", "if", "import",
    "in", "instanceof", "new", "null", "return", "super", "switch", "this", "throw", "true", "try",
    "typeof", "var", "void", "while", "with", "yield", "let", "static",
}

UNSUPPORTED_PREFIX = "// unsupported:"


def js_identifier(name: str) -> str:
    """Make ``name`` usable as a JavaScript binding name."""
    name = re.sub(r"[^\w$]", "_", name) or "_"
    if name[0].isdigit():
        name = "_" + name
    if name in _RESERVED:
        name += "_"
    return name


class _Scope:
    def __init__(self, params: list[str]):
        self.declared = set(params) | {"this"}

    def assign(self, name: str, value: str) -> str:
        if "." in name or name in self.declared:
            return f"{name} = {value};"
        self.declared.add(name)
        return f"var {name} = {value};"


def emit_instruction(instruction: Instruction, scope: _Scope) -> str:
    op = instruction.opcode
    args = instruction.args
    if op in (Opcode.LOAD, Opcode.STORE) and len(args) == 2:
        return scope.assign(args[0], args[1])
    if op in _OPERATORS and len(args) == 3:
        return scope.assign(args[0], f"{args[1]} {_OPERATORS[op]} {args[2]}")
    if op == Opcode.CALL and args:
        call = f"{args[0]}({', '.join(args[1:])})"
        if instruction.result:
            return scope.assign(instruction.result, call)
        return call + ";"
    if op == Opcode.RETURN:
        return f"return {args[0]};" if args else "return;"
    if op == Opcode.BRANCH and len(args) == 2:
        if args[0] == "true":
            return f"/* jump {args[1]} */"
        return f"if ({args[0]}) {{ /* branch {args[1]} */ }}"
    if op == Opcode.LOOP and args:
        return f"for (var i = 0; i < {args[0]}; i++) {{ /* loop body */ }}"
    raw = instruction.raw or " ".join([op.value, *args])
    return f"{UNSUPPORTED_PREFIX} {' '.join(raw.split())}"


def emit_function(func: FunctionIR, indent: str = "  ") -> str:
    params = [js_identifier(p) for p in func.params]
    scope = _Scope(params)
    lines = [f"function {js_identifier(func.name)}({', '.join(params)}) {{"]
    for instruction in func.instructions:
        lines.append(indent + emit_instruction(instruction, scope))
    lines.append("}")
    if func.optimization_tags:
        lines.append(f"// Optimizations: {', '.join(func.optimization_tags)}")
    return "\n".join(lines)


def emit(functions: list[FunctionIR], source_format: str) -> str:
    """Render lowered functions as one script."""
    parts = [f"// Generated by jitphone from {source_format} instructions", "'use strict';", ""]
    if not functions:
        parts.append(f"// No functions lowered from {source_format}")
    for func in functions:
        parts.append(emit_function(func))
        parts.append("")
    return "\n".join(parts).rstrip("\n") + "\n"
