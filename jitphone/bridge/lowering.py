"""Per-format lowering of engine instruction listings to the instruction IR.

Each lowering function takes the listing as text and returns one
``FunctionIR`` per function it finds. Instructions outside the shared opcode
vocabulary become ``unknown`` instructions that keep their source text.
Nothing here raises on odd input; unrecognized lines degrade to unknowns.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from jitphone.ir.models import FunctionIR, Instruction, Opcode

logger = logging.getLogger(__name__)

_ARITHMETIC = {
    "add": Opcode.ADD,
    "sub": Opcode.SUB,
    "mul": Opcode.MUL,
    "div": Opcode.DIV,
}


def _unknown(raw: str) -> Instruction:
    return Instruction(Opcode.UNKNOWN, raw=raw.strip())


def _literal(token: str) -> str:
    """Normalize an integer literal (hex, signed) to decimal text."""
    token = token.strip()
    try:
        if re.fullmatch(r"-?0x[0-9a-fA-F]+", token):
            return str(int(token, 16))
        if re.fullmatch(r"-?\d+", token):
            return str(int(token))
    except ValueError:
        return token
    return token


class _TempNames:
    def __init__(self, prefix: str = "t"):
        self.prefix = prefix
        self.count = 0

    def next(self) -> str:
        name = f"{self.prefix}{self.count}"
        self.count += 1
        return name


# --- LLVM IR (ios-llvm) ---

_LLVM_DEFINE = re.compile(r"^define\b[^@]*@([\w.$]+)\s*\((.*?)\)(.*)$")
_LLVM_ARITH = re.compile(r"^%([\w.]+)\s*=\s*(f?add|f?sub|f?mul|[suf]?div)\b(?:\s+(?:nsw|nuw|exact|fast))*\s+\S+\s+(\S+),\s*(\S+)$")
_LLVM_ALLOCA = re.compile(r"^%([\w.]+)\s*=\s*alloca\b")
_LLVM_LOAD = re.compile(r"^%([\w.]+)\s*=\s*load\b.*,\s*\S+\s+(%[\w.]+)")
_LLVM_STORE = re.compile(r"^store\s+\S+\s+(\S+),\s*\S+\s+(%[\w.]+)")
_LLVM_CALL = re.compile(r"^(?:%([\w.]+)\s*=\s*)?(?:tail\s+)?call\b[^@]*@([\w.$]+)\s*\((.*)\)")
_LLVM_RET = re.compile(r"^ret\s+(\S+)(?:\s+(\S+))?")
_LLVM_BR_COND = re.compile(r"^br\s+i1\s+(\S+),\s*label\s+%([\w.]+),\s*label\s+%([\w.]+)")
_LLVM_BR = re.compile(r"^br\s+label\s+%([\w.]+)")

_LLVM_ATTRIBUTE_TAGS = {
    "inlinehint": "inline",
    "alwaysinline": "inline",
    "optsize": "size",
    "minsize": "minsize",
    "noinline": "noinline",
}


def _llvm_name(value: str) -> str:
    value = value.strip().rstrip(",")
    if value.startswith(("%", "@")):
        name = value[1:].replace(".", "_")
        return f"v{name}" if name[:1].isdigit() else name
    return value


def _llvm_params(signature: str) -> list[str]:
    params = []
    for part in signature.split(","):
        m = re.search(r"%([\w.]+)\s*$", part.strip())
        if m:
            params.append(_llvm_name("%" + m.group(1)))
    return params


def _llvm_call_args(text: str) -> list[str]:
    args = []
    for part in text.split(","):
        tokens = part.split()
        if tokens:
            args.append(_llvm_name(tokens[-1]))
    return args


def _llvm_instruction(line: str) -> Instruction:
    m = _LLVM_ARITH.match(line)
    if m:
        kind = m.group(2).lstrip("f")
        kind = "div" if kind.endswith("div") else kind
        return Instruction(_ARITHMETIC[kind], (_llvm_name("%" + m.group(1)), _llvm_name(m.group(3)), _llvm_name(m.group(4))))
    m = _LLVM_ALLOCA.match(line)
    if m:
        return Instruction(Opcode.LOAD, (_llvm_name("%" + m.group(1)), "undefined"))
    m = _LLVM_LOAD.match(line)
    if m:
        return Instruction(Opcode.LOAD, (_llvm_name("%" + m.group(1)), _llvm_name(m.group(2))))
    m = _LLVM_STORE.match(line)
    if m:
        return Instruction(Opcode.STORE, (_llvm_name(m.group(2)), _llvm_name(m.group(1))))
    m = _LLVM_CALL.match(line)
    if m:
        result = _llvm_name("%" + m.group(1)) if m.group(1) else ""
        return Instruction(Opcode.CALL, (m.group(2).replace(".", "_"), *_llvm_call_args(m.group(3))), result=result)
    m = _LLVM_RET.match(line)
    if m:
        if m.group(1) == "void" or not m.group(2):
            return Instruction(Opcode.RETURN)
        return Instruction(Opcode.RETURN, (_llvm_name(m.group(2)),))
    m = _LLVM_BR_COND.match(line)
    if m:
        return Instruction(Opcode.BRANCH, (_llvm_name(m.group(1)), m.group(2)))
    m = _LLVM_BR.match(line)
    if m:
        return Instruction(Opcode.BRANCH, ("true", m.group(1)))
    return _unknown(line)


def lower_llvm(text: str, options: dict | None = None) -> list[FunctionIR]:
    """Lower textual LLVM IR. Labels, metadata and declarations are skipped."""
    functions: list[FunctionIR] = []
    current: FunctionIR | None = None
    for raw in text.splitlines():
        line = raw.split(";", 1)[0].strip()
        if not line:
            continue
        m = _LLVM_DEFINE.match(line)
        if m:
            attributes = m.group(3)
            tags = [tag for attr, tag in _LLVM_ATTRIBUTE_TAGS.items() if re.search(rf"\b{attr}\b", attributes)]
            current = FunctionIR(
                name=m.group(1).replace(".", "_"),
                params=_llvm_params(m.group(2)),
                optimization_tags=sorted(set(tags)),
            )
            functions.append(current)
            continue
        if current is None:
            continue
        if line == "}":
            current = None
            continue
        if re.fullmatch(r"[\w.]+:", line):
            continue
        current.instructions.append(_llvm_instruction(line))
    return functions


# --- Dalvik / ART smali (android-art) ---

_SMALI_METHOD = re.compile(r"^\.method\s+((?:[\w-]+\s+)*)([\w$<>]+)\((.*?)\)(\S+)")
_SMALI_TYPE = re.compile(r"\[*(?:[ZBSCIJFD]|L[^;]+;)")
_SMALI_ARITH = re.compile(r"^(add|sub|mul|div)-(?:int|long|float|double)(/2addr|/lit8|/lit16)?\s+(.*)$")
_SMALI_CONST = re.compile(r"^const(?:/4|/16|/high16|-wide(?:/16|/32)?)?\s+(\w+),\s*(\S+)$")
_SMALI_CONST_STRING = re.compile(r'^const-string(?:/jumbo)?\s+(\w+),\s*(".*")$')
_SMALI_MOVE = re.compile(r"^move(?:-object|-wide)?(?:/from16|/16)?\s+(\w+),\s*(\w+)$")
_SMALI_MOVE_RESULT = re.compile(r"^move-result(?:-object|-wide)?\s+(\w+)$")
_SMALI_INVOKE = re.compile(r"^invoke-(virtual|static|direct|super|interface)(?:/range)?\s+\{(.*?)\},\s*(\S+?)->([\w$<>]+)\(")
_SMALI_RETURN = re.compile(r"^return(?:-object|-wide)?\s+(\w+)$")
_SMALI_IF = re.compile(r"^if-(eq|ne|lt|ge|gt|le)(z)?\s+(\w+),\s*(?:(\w+),\s*)?:(\w+)$")
_SMALI_GOTO = re.compile(r"^goto(?:/16|/32)?\s+:(\w+)$")

_COMPARISONS = {"eq": "===", "ne": "!==", "lt": "<", "ge": ">=", "gt": ">", "le": "<="}


def _smali_register_map(modifiers: str, descriptor: str) -> tuple[list[str], dict[str, str]]:
    static = "static" in modifiers.split()
    count = len(_SMALI_TYPE.findall(descriptor))
    names: dict[str, str] = {}
    params = []
    offset = 0
    if not static:
        names["p0"] = "this"
        offset = 1
    for index in range(count):
        register = f"p{index + offset}"
        params.append(register)
        names[register] = register
    return params, names


def _smali_instruction(line: str, names: dict[str, str]) -> Instruction:
    def reg(token: str) -> str:
        return names.get(token, token)

    m = _SMALI_ARITH.match(line)
    if m:
        operands = [t.strip() for t in m.group(3).split(",")]
        if m.group(2) == "/2addr" and len(operands) == 2:
            dest, lhs, rhs = operands[0], operands[0], operands[1]
        elif len(operands) == 3:
            dest, lhs, rhs = operands
        else:
            return _unknown(line)
        rhs_text = _literal(rhs) if m.group(2) in ("/lit8", "/lit16") else reg(rhs)
        return Instruction(_ARITHMETIC[m.group(1)], (reg(dest), reg(lhs), rhs_text))
    m = _SMALI_CONST_STRING.match(line)
    if m:
        return Instruction(Opcode.LOAD, (reg(m.group(1)), m.group(2)))
    m = _SMALI_CONST.match(line)
    if m:
        return Instruction(Opcode.LOAD, (reg(m.group(1)), _literal(m.group(2))))
    m = _SMALI_MOVE.match(line)
    if m:
        return Instruction(Opcode.STORE, (reg(m.group(1)), reg(m.group(2))))
    m = _SMALI_INVOKE.match(line)
    if m:
        kind, registers, method = m.group(1), m.group(2), m.group(4)
        args = [reg(r.strip()) for r in registers.split(",") if r.strip()]
        if kind != "static" and args:
            callee = f"{args[0]}.{method}"
            args = args[1:]
        else:
            callee = method
        return Instruction(Opcode.CALL, (callee, *args))
    m = _SMALI_RETURN.match(line)
    if m:
        return Instruction(Opcode.RETURN, (reg(m.group(1)),))
    if line == "return-void":
        return Instruction(Opcode.RETURN)
    m = _SMALI_IF.match(line)
    if m:
        op, zero, left, right, label = m.groups()
        other = "0" if zero else reg(right or "")
        return Instruction(Opcode.BRANCH, (f"{reg(left)} {_COMPARISONS[op]} {other}", label))
    m = _SMALI_GOTO.match(line)
    if m:
        return Instruction(Opcode.BRANCH, ("true", m.group(1)))
    return _unknown(line)


def lower_smali(text: str, options: dict | None = None) -> list[FunctionIR]:
    """Lower smali-style Dalvik/ART listings (``.method`` ... ``.end method``)."""
    functions: list[FunctionIR] = []
    current: FunctionIR | None = None
    names: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        m = _SMALI_METHOD.match(line)
        if m:
            modifiers = m.group(1)
            params, names = _smali_register_map(modifiers, m.group(3))
            tags = ["devirtualize"] if {"final", "private", "static"} & set(modifiers.split()) else []
            current = FunctionIR(name=m.group(2).strip("<>"), params=params, optimization_tags=tags)
            functions.append(current)
            continue
        if current is None:
            continue
        if line.startswith(".end method"):
            current = None
            continue
        if line.startswith((".", ":")):
            continue
        m = _SMALI_MOVE_RESULT.match(line)
        if m:
            previous = current.instructions[-1] if current.instructions else None
            if previous is not None and previous.opcode == Opcode.CALL and not previous.result:
                current.instructions[-1] = replace(previous, result=names.get(m.group(1), m.group(1)))
            else:
                current.instructions.append(_unknown(line))
            continue
        current.instructions.append(_smali_instruction(line, names))
    return functions


# --- WebAssembly text format (wasm) ---

_WAT_TOKEN = re.compile(r'\(|\)|"(?:\\.|[^"\\])*"|[^\s()"]+')


def _parse_sexpr(text: str) -> list:
    """Parse WAT text into nested lists of atoms. Unbalanced input is closed off."""
    text = re.sub(r";;[^\n]*", "", text)
    text = re.sub(r"\(;.*?;\)", "", text, flags=re.DOTALL)
    root: list = []
    stack = [root]
    for token in _WAT_TOKEN.findall(text):
        if token == "(":
            node: list = []
            stack[-1].append(node)
            stack.append(node)
        elif token == ")":
            if len(stack) > 1:
                stack.pop()
        else:
            stack[-1].append(token)
    return root


def _wat_name(token: str, fallback: str) -> str:
    if token.startswith("$"):
        return re.sub(r"[^\w$]", "_", token[1:])
    return fallback


_WAT_IMMEDIATE = re.compile(r'\$\S*|".*"|-?(?:0x[0-9a-fA-F]+|\d[\d._]*(?:[eE][+-]?\d+)?|inf|nan)|\w+=\S+')


def _flatten(items: list) -> list[list[str]]:
    """Folded instructions to a flat list of ``[op, *immediates]``."""
    flat: list[list[str]] = []
    i = 0
    while i < len(items):
        item = items[i]
        if isinstance(item, list):
            if not item:
                i += 1
                continue
            operands = [x for x in item[1:] if isinstance(x, list)]
            immediates = [x for x in item[1:] if not isinstance(x, list)]
            flat.extend(_flatten(operands))
            flat.append([item[0], *immediates])
            i += 1
            continue
        op = item
        immediates = []
        i += 1
        while i < len(items) and not isinstance(items[i], list) and _WAT_IMMEDIATE.fullmatch(items[i]):
            immediates.append(items[i])
            i += 1
        flat.append([op, *immediates])
    return flat


class _WatFunction:
    def __init__(self, node: list, index: int):
        self.name = f"func{index}"
        self.params: list[str] = []
        self.locals: dict[str, str] = {}  # wat name or index -> js name
        self.has_result = False
        self.body: list = []
        position = 0
        items = node[1:]
        if items and isinstance(items[0], str) and items[0].startswith("$"):
            self.name = _wat_name(items[0], self.name)
            items = items[1:]
        for item in items:
            if isinstance(item, list) and item and item[0] in ("param", "local"):
                entries = item[1:]
                if entries and entries[0].startswith("$"):
                    js = _wat_name(entries[0], f"l{position}")
                    self._declare(entries[0], js, position, item[0] == "param")
                    position += 1
                else:
                    for _ in entries:
                        prefix = "p" if item[0] == "param" else "l"
                        self._declare(None, f"{prefix}{position}", position, item[0] == "param")
                        position += 1
                continue
            if isinstance(item, list) and item and item[0] == "result":
                self.has_result = True
                continue
            if isinstance(item, list) and item and item[0] in ("export", "type", "import"):
                continue
            self.body.append(item)

    def _declare(self, wat: str | None, js: str, position: int, is_param: bool) -> None:
        if wat:
            self.locals[wat] = js
        self.locals[str(position)] = js
        if is_param:
            self.params.append(js)

    def local(self, token: str) -> str:
        return self.locals.get(token, re.sub(r"[^\w$]", "_", token.lstrip("$")))


_WAT_ARITH = re.compile(r"^[if](?:32|64)\.(add|sub|mul|div)(?:_[su])?$")


def _lower_wat_function(func: _WatFunction, signatures: dict[str, tuple[str, int, bool]]) -> FunctionIR:
    temps = _TempNames()
    stack: list[str] = []
    out: list[Instruction] = []

    def pop() -> str:
        return stack.pop() if stack else "undefined"

    for op, *immediates in _flatten(func.body):
        arith = _WAT_ARITH.match(op)
        if arith:
            rhs, lhs = pop(), pop()
            dest = temps.next()
            out.append(Instruction(_ARITHMETIC[arith.group(1)], (dest, lhs, rhs)))
            stack.append(dest)
        elif op.endswith(".const") and immediates:
            stack.append(_literal(immediates[0]))
        elif op == "local.get" and immediates:
            stack.append(func.local(immediates[0]))
        elif op in ("local.set", "local.tee") and immediates:
            value = pop()
            target = func.local(immediates[0])
            out.append(Instruction(Opcode.STORE, (target, value)))
            if op == "local.tee":
                stack.append(target)
        elif op == "call" and immediates:
            token = immediates[0]
            key = _wat_name(token, token)
            callee, arity, returns = signatures.get(key, (f"func{key}" if key.isdigit() else key, 0, False))
            args = [pop() for _ in range(arity)][::-1]
            result = temps.next() if returns else ""
            out.append(Instruction(Opcode.CALL, (callee, *args), result=result))
            if result:
                stack.append(result)
        elif op == "return":
            out.append(Instruction(Opcode.RETURN, (pop(),) if func.has_result else ()))
        elif op == "drop":
            pop()
        elif op == "nop":
            continue
        else:
            out.append(_unknown(" ".join([op, *immediates])))
    if func.has_result and stack:
        out.append(Instruction(Opcode.RETURN, (stack.pop(),)))
    return FunctionIR(name=func.name, params=func.params, instructions=out)


def lower_wasm(text: str, options: dict | None = None) -> list[FunctionIR]:
    """Lower WebAssembly text format, flat or folded, via a value stack."""
    tree = _parse_sexpr(text)
    nodes: list[list] = []

    def collect(items: list) -> None:
        for item in items:
            if isinstance(item, list) and item:
                if item[0] == "func":
                    nodes.append(item)
                elif item[0] == "module":
                    collect(item[1:])

    collect(tree)
    funcs = [_WatFunction(node, index) for index, node in enumerate(nodes)]
    # Calls name their target by $name or by index
    signatures: dict[str, tuple[str, int, bool]] = {}
    for index, f in enumerate(funcs):
        signatures[f.name] = (f.name, len(f.params), f.has_result)
        signatures.setdefault(str(index), (f.name, len(f.params), f.has_result))

    tags = []
    if "v128" in text:
        tags.append("wasm-simd")
    if re.search(r"\batomic|\bshared\b", text):
        tags.append("wasm-threads")

    functions = []
    for f in funcs:
        lowered = _lower_wat_function(f, signatures)
        lowered.optimization_tags = list(tags)
        functions.append(lowered)
    return functions


# --- JVM bytecode listings (java-hotspot) ---

_JAVAP_METHOD = re.compile(
    r"^((?:(?:public|private|protected|static|final|synchronized|native|abstract|strictfp)\s+)*)"
    r"[\w.$<>\[\]]+\s+([\w$]+)\((.*?)\)(?:\s+throws\s+[\w.$, ]+)?;$"
)
_JAVAP_INSTRUCTION = re.compile(r"^(\d+):\s+(\w+)\s*(.*?)\s*(?://\s*(.*))?$")
_JVM_DESCRIPTOR = re.compile(r"\((.*?)\)(\S+)")
_JVM_ARITH = re.compile(r"^[ilfd](add|sub|mul|div)$")
_JVM_LOAD = re.compile(r"^[ilfda]load(?:_(\d))?$")
_JVM_STORE = re.compile(r"^[ilfda]store(?:_(\d))?$")
_JVM_RETURN = re.compile(r"^[ilfda]return$")
_JVM_IF_CMP = re.compile(r"^if_[ia]cmp(eq|ne|lt|ge|gt|le)$")
_JVM_IF = re.compile(r"^if(eq|ne|lt|ge|gt|le)$")
_JVM_CONSTANTS = {"iconst_m1": "-1", "aconst_null": "null"}

_JVM_CALL_MAPPINGS = {
    "System.out.println": "console.log",
    "System.out.print": "console.log",
    "Math.sqrt": "Math.sqrt",
    "Math.abs": "Math.abs",
    "Math.max": "Math.max",
    "Math.min": "Math.min",
}


def _jvm_arity(descriptor: str) -> tuple[int, bool]:
    m = _JVM_DESCRIPTOR.search(descriptor)
    if not m:
        return 0, False
    return len(_SMALI_TYPE.findall(m.group(1))), m.group(2) != "V"


def _jvm_member(comment: str) -> tuple[str, str, str]:
    """``Method java/io/PrintStream.println:(I)V`` -> (owner, name, descriptor)."""
    m = re.search(r"(?:Method|Field|InterfaceMethod)\s+(?:([\w/$]+)\.)?([\w$<>\"]+):(\S+)", comment)
    if not m:
        return "", "", ""
    owner = (m.group(1) or "").split("/")[-1]
    return owner, m.group(2).strip('"'), m.group(3)


class _JvmMethod:
    def __init__(self, name: str, modifiers: str, param_types: str, owner: str = ""):
        self.name = name
        self.owner = owner
        self.static = "static" in modifiers.split()
        count = len([p for p in param_types.split(",") if p.strip()])
        offset = 0 if self.static else 1
        self.params = [f"arg{i}" for i in range(count)]
        self.slots = {str(i + offset): name for i, name in enumerate(self.params)}
        if not self.static:
            self.slots["0"] = "this"
        self.tags = ["devirtualize"] if {"final", "private", "static"} & set(modifiers.split()) else []
        if "synchronized" in modifiers.split():
            self.tags.append("synchronized")
        self.listing: list[tuple[str, str, str, str]] = []

    def slot(self, index: str) -> str:
        return self.slots.get(index, f"local{index}")


def _lower_jvm_method(method: _JvmMethod) -> FunctionIR:
    temps = _TempNames()
    stack: list[str] = []
    out: list[Instruction] = []

    def pop() -> str:
        return stack.pop() if stack else "undefined"

    for offset, op, operands, comment in method.listing:
        raw = f"{offset}: {op} {operands}".strip()
        arith = _JVM_ARITH.match(op)
        load = _JVM_LOAD.match(op)
        store = _JVM_STORE.match(op)
        if arith:
            rhs, lhs = pop(), pop()
            dest = temps.next()
            out.append(Instruction(_ARITHMETIC[arith.group(1)], (dest, lhs, rhs)))
            stack.append(dest)
        elif load:
            stack.append(method.slot(load.group(1) if load.group(1) is not None else operands.strip()))
        elif store:
            target = method.slot(store.group(1) if store.group(1) is not None else operands.strip())
            out.append(Instruction(Opcode.STORE, (target, pop())))
        elif op in _JVM_CONSTANTS:
            stack.append(_JVM_CONSTANTS[op])
        elif re.fullmatch(r"[ilfd]const_\d", op):
            stack.append(op.rsplit("_", 1)[1])
        elif op in ("bipush", "sipush"):
            stack.append(_literal(operands))
        elif op.startswith("ldc"):
            m = re.match(r"(int|long|float|double|String)\s+(.*)", comment or "")
            if not m:
                out.append(_unknown(raw))
                continue
            value = m.group(2).strip()
            stack.append(value.rstrip("lfdLFD") if m.group(1) != "String" else '"' + value.replace('"', '\\"') + '"')
        elif op == "iinc":
            parts = [p.strip() for p in operands.split(",")]
            if len(parts) == 2:
                local = method.slot(parts[0])
                out.append(Instruction(Opcode.ADD, (local, local, _literal(parts[1]))))
            else:
                out.append(_unknown(raw))
        elif op == "getstatic":
            owner, name, _ = _jvm_member(comment or "")
            stack.append(f"{owner}.{name}" if owner else name)
        elif op.startswith("invoke"):
            owner, name, descriptor = _jvm_member(comment or "")
            if not name:
                out.append(_unknown(raw))
                continue
            arity, returns = _jvm_arity(descriptor)
            args = [pop() for _ in range(arity)][::-1]
            if op == "invokestatic":
                callee = f"{owner}.{name}" if owner and owner != method.owner else name
            elif name == "<init>":
                out.append(_unknown(raw))
                continue
            else:
                callee = f"{pop()}.{name}"
            callee = _JVM_CALL_MAPPINGS.get(callee, callee)
            result = temps.next() if returns else ""
            out.append(Instruction(Opcode.CALL, (callee, *args), result=result))
            if result:
                stack.append(result)
        elif _JVM_RETURN.match(op):
            out.append(Instruction(Opcode.RETURN, (pop(),)))
        elif op == "return":
            out.append(Instruction(Opcode.RETURN))
        elif _JVM_IF_CMP.match(op):
            rhs, lhs = pop(), pop()
            cmp = _COMPARISONS[_JVM_IF_CMP.match(op).group(1)]
            out.append(Instruction(Opcode.BRANCH, (f"{lhs} {cmp} {rhs}", f"L{operands.strip()}")))
        elif _JVM_IF.match(op):
            cmp = _COMPARISONS[_JVM_IF.match(op).group(1)]
            out.append(Instruction(Opcode.BRANCH, (f"{pop()} {cmp} 0", f"L{operands.strip()}")))
        elif op in ("goto", "goto_w"):
            out.append(Instruction(Opcode.BRANCH, ("true", f"L{operands.strip()}")))
        elif op == "dup":
            if stack:
                stack.append(stack[-1])
        elif op == "pop":
            pop()
        else:
            out.append(_unknown(raw))
    return FunctionIR(name=method.name, params=method.params, instructions=out, optimization_tags=method.tags)


def lower_javap(text: str, options: dict | None = None) -> list[FunctionIR]:
    """Lower ``javap -c`` disassembly listings."""
    methods: list[_JvmMethod] = []
    current: _JvmMethod | None = None
    owner = ""
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        class_match = re.match(r"^(?:public\s+|final\s+|abstract\s+)*class\s+([\w.$]+)", line)
        if class_match:
            owner = class_match.group(1).split(".")[-1]
            continue
        m = _JAVAP_METHOD.match(line)
        if m:
            current = _JvmMethod(m.group(2), m.group(1), m.group(3), owner)
            methods.append(current)
            continue
        if line.startswith("static {}") or (line.endswith(";") and "(" in line and not _JAVAP_INSTRUCTION.match(line)):
            # Constructors and initializers are not lowered
            current = None
            continue
        if current is None or line == "Code:":
            continue
        m = _JAVAP_INSTRUCTION.match(line)
        if m:
            current.listing.append((m.group(1), m.group(2), m.group(3) or "", m.group(4) or ""))
    return [_lower_jvm_method(method) for method in methods]


# --- Registered stubs ---


def lower_stub(text: str, options: dict | None = None) -> list[FunctionIR]:
    """Registered format without a lowering yet: yields no functions."""
    logger.debug("Format has no lowering; %d chars ignored", len(text))
    return []
