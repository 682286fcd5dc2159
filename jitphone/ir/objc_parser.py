"""Objective-C style parser — builds an IRModule from source text.

``@interface``/``@implementation``/``@protocol`` sections are tracked on an
explicit context stack closed by ``@end``; method, function and type bodies
are captured with the brace-counting scanner. The parser never raises:
anything it cannot classify is kept as an ``UnknownDecl`` with a warning.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from jitphone.errors import ParseError
from jitphone.ir.models import (
    ClassDecl,
    Dialect,
    EnumCase,
    EnumDecl,
    ExtensionDecl,
    FunctionDecl,
    InitializerDecl,
    IRModule,
    MethodDecl,
    Parameter,
    PropertyDecl,
    ProtocolDecl,
    StructDecl,
    UnknownDecl,
    VariableDecl,
)
from jitphone.ir.scanner import SourceLine, brace_delta, capture_block, significant_lines, split_top_level

_IMPORT = re.compile(r'^#\s*(?:import|include)\s+[<"]([^>"]+)[>"]')
_PREPROCESSOR = re.compile(r"^#\s*\w+")
_FORWARD = re.compile(r"^@(?:class|protocol)\s+[\w\s,]+;$")
_PROTOCOL = re.compile(r"^@protocol\s+(\w+)\s*(?:<([^>]*)>)?\s*$")
_CATEGORY = re.compile(r"^@interface\s+(\w+)\s*\(\s*(\w*)\s*\)\s*(?:<([^>]*)>)?\s*(\{.*)?$")
_INTERFACE = re.compile(r"^@interface\s+(\w+)\s*(?:\(\s*\))?\s*(?::\s*(\w+))?\s*(?:<([^>]*)>)?\s*(\{.*)?$")
_IMPLEMENTATION = re.compile(r"^@implementation\s+(\w+)\s*(?:\(\s*(\w*)\s*\))?\s*(\{.*)?$")
_PROPERTY = re.compile(r"^@property\s*(?:\(([^)]*)\))?\s*(.+?)\s*(\**)\s*(\w+)\s*;$")
_METHOD = re.compile(r"^([-+])\s*\(([^)]*)\)\s*(.+?)\s*(;|\{.*)?$")
_SELECTOR_PART = re.compile(r"(\w+)\s*:\s*\(([^)]*)\)\s*(\w+)")
_NS_ENUM = re.compile(r"^typedef\s+NS_(?:ENUM|OPTIONS)\s*\(\s*(\w+)\s*,\s*(\w+)\s*\)\s*(\{.*)?$")
_TYPEDEF_BLOCK = re.compile(r"^typedef\s+(enum|struct)\s*(\w*)\s*(\{.*)?$")
_BLOCK_VAR = re.compile(
    r"^(?:static\s+)?([\w\s*]+?)\s*\(\s*\^\s*(\w+)\s*\)\s*\(([^)]*)\)\s*=\s*\^\s*(?:[\w\s*]+?)?\s*(?:\(([^)]*)\))?\s*\{"
)
_C_FUNCTION = re.compile(r"^(?:(?:static|inline|extern)\s+)*(\w+(?:\s*\*+)?)\s*(?<=[\s*])(\w+)\s*\(([^)]*)\)\s*(\{.*)?$")
_GLOBAL_VAR = re.compile(
    r"^(?:(?:static|extern|const|__block)\s+)*(\w+)\s*(\**)\s*(?:const\s+)?(\w+)\s*(?:=\s*(.+?))?\s*;$"
)
_IVAR = re.compile(r"^(?:@\w+\s+)?(?:__\w+\s+)?(\w+)\s*(\**)\s*(\w+)\s*;$")

_C_KEYWORDS = {"return", "if", "else", "while", "for", "switch", "do", "case", "goto", "sizeof", "typedef"}


@dataclass
class _Context:
    kind: str  # "interface" | "implementation" | "protocol"
    decl: object
    line: int


def selector_name(labels: list[str]) -> str:
    """Method name for a multi-part selector: ``setName:age:`` -> ``setNameAge``."""
    if not labels:
        return ""
    return labels[0] + "".join(label[:1].upper() + label[1:] for label in labels[1:])


def parse_objc_source(source: str) -> IRModule:
    """Parse Objective-C style source text into an IR module."""
    module = IRModule(dialect=Dialect.OBJC)
    lines = significant_lines(source)
    stack: list[_Context] = []

    idx = 0
    while idx < len(lines):
        idx = _parse_line(lines, idx, module, stack) + 1

    for ctx in reversed(stack):
        name = getattr(ctx.decl, "name", None) or getattr(ctx.decl, "extended_type", "")
        module.warn(ctx.line, f"missing @end for @{ctx.kind} {name}")
    return module


# --- Line dispatch ---


def _parse_line(lines: list[SourceLine], idx: int, module: IRModule, stack: list[_Context]) -> int:
    """Handle ``lines[idx]``; return the index of the last line consumed."""
    line = lines[idx]
    text = line.text
    ctx = stack[-1] if stack else None

    m = _IMPORT.match(text)
    if m:
        module.imports.append(m.group(1))
        return idx
    if _PREPROCESSOR.match(text):
        module.warn(line.number, "preprocessor directive ignored", text)
        return idx

    if text.startswith("@end"):
        if stack:
            stack.pop()
        else:
            module.warn(line.number, "@end without an open declaration", text)
        return idx
    if text in ("@optional", "@required") or text.startswith(("@synthesize", "@dynamic")) or _FORWARD.match(text):
        return idx

    m = _PROTOCOL.match(text)
    if m:
        decl = ProtocolDecl(name=m.group(1), inherited=_names(m.group(2)), line=line.number)
        module.protocols.append(decl)
        stack.append(_Context("protocol", decl, line.number))
        return idx

    m = _CATEGORY.match(text)
    if m and m.group(2):
        decl = _find_extension(module, m.group(1), m.group(2), line.number)
        decl.protocols.extend(p for p in _names(m.group(3)) if p not in decl.protocols)
        stack.append(_Context("interface", decl, line.number))
        return idx

    m = _INTERFACE.match(text)
    if m:
        decl = _find_class(module, m.group(1), line.number)
        decl.superclass = m.group(2) or decl.superclass
        decl.protocols.extend(p for p in _names(m.group(3)) if p not in decl.protocols)
        stack.append(_Context("interface", decl, line.number))
        return _parse_ivars(lines, idx, decl, module) if _opens_block(lines, idx) else idx

    m = _IMPLEMENTATION.match(text)
    if m:
        if m.group(2):
            decl = _find_extension(module, m.group(1), m.group(2), line.number)
        else:
            decl = _find_class(module, m.group(1), line.number)
        stack.append(_Context("implementation", decl, line.number))
        return _parse_ivars(lines, idx, decl, module) if _opens_block(lines, idx) else idx

    m = _PROPERTY.match(text)
    if m:
        if ctx is None:
            module.warn(line.number, "@property outside of an @interface or @protocol", text)
            return idx
        prop = PropertyDecl(
            name=m.group(4),
            type_name=m.group(2).strip(),
            attributes=[a.strip() for a in (m.group(1) or "").split(",") if a.strip()],
            line=line.number,
        )
        prop.is_constant = "readonly" in prop.attributes
        _add_property(ctx.decl, prop)
        return idx
    if text.startswith("@property"):
        module.warn(line.number, "unrecognized @property declaration", text)
        module.unknowns.append(UnknownDecl(text=text, line=line.number, reason="property"))
        return idx

    m = _METHOD.match(text)
    if m:
        return _parse_method(m, lines, idx, module, ctx)

    m = _NS_ENUM.match(text)
    if m:
        return _parse_enum(lines, idx, module, name=m.group(2), raw_type=m.group(1))

    m = _TYPEDEF_BLOCK.match(text)
    if m:
        if m.group(1) == "enum":
            return _parse_enum(lines, idx, module, name=m.group(2), raw_type="int")
        return _parse_struct(lines, idx, module, name=m.group(2))

    m = _BLOCK_VAR.match(text)
    if m:
        block = capture_block(lines, idx)
        params = _c_params(m.group(4) or "")
        module.functions.append(
            FunctionDecl(name=m.group(2), parameters=params, return_type=m.group(1).strip(), body=block.body, line=line.number)
        )
        if not block.closed:
            module.warn(line.number, f"unterminated block literal '{m.group(2)}'", text)
        return block.end

    m = _C_FUNCTION.match(text)
    if m and m.group(1).split()[0] not in _C_KEYWORDS and m.group(2) not in _C_KEYWORDS:
        if not _opens_block(lines, idx):
            # Prototype only
            return idx
        block = capture_block(lines, idx)
        module.functions.append(
            FunctionDecl(
                name=m.group(2),
                parameters=_c_params(m.group(3)),
                return_type=m.group(1).replace("*", "").strip(),
                body=block.body,
                line=line.number,
            )
        )
        if not block.closed:
            module.warn(line.number, f"unterminated function '{m.group(2)}'", text)
        return block.end

    m = _GLOBAL_VAR.match(text)
    if m and ctx is None and m.group(1) not in _C_KEYWORDS:
        module.variables.append(
            VariableDecl(
                name=m.group(3),
                type_name=m.group(1),
                initial_value=(m.group(4) or "").strip(),
                is_constant="const" in text.split("=")[0],
                line=line.number,
            )
        )
        return idx

    end = capture_block(lines, idx).end if brace_delta(text) > 0 else idx
    module.warn(line.number, "unrecognized declaration", text)
    module.unknowns.append(
        UnknownDecl(text="\n".join(l.text for l in lines[idx : end + 1]), line=line.number, reason="declaration")
    )
    return end


# --- Helpers ---


def _names(raw: str | None) -> list[str]:
    return [n.strip() for n in (raw or "").split(",") if n.strip()]


def _opens_block(lines: list[SourceLine], idx: int) -> bool:
    if "{" in lines[idx].text:
        return True
    return idx + 1 < len(lines) and lines[idx + 1].text.startswith("{")


def _find_class(module: IRModule, name: str, line: int) -> ClassDecl:
    decl = module.find_class(name)
    if decl is None:
        decl = ClassDecl(name=name, line=line)
        module.classes.append(decl)
    return decl


def _find_extension(module: IRModule, name: str, category: str, line: int) -> ExtensionDecl:
    for ext in module.extensions:
        if ext.extended_type == name and ext.category == category:
            return ext
    ext = ExtensionDecl(extended_type=name, category=category, line=line)
    module.extensions.append(ext)
    return ext


def _add_property(decl, prop: PropertyDecl) -> None:
    for existing in decl.properties:
        if existing.name == prop.name:
            return
    decl.properties.append(prop)


def _parse_ivars(lines: list[SourceLine], idx: int, decl, module: IRModule) -> int:
    block = capture_block(lines, idx)
    for raw in block.body.split("\n"):
        raw = raw.strip()
        if not raw or raw.startswith("@"):
            continue
        m = _IVAR.match(raw)
        if not m:
            module.warn(lines[idx].number, "unrecognized instance variable", raw)
            continue
        # Backing ivars (_name) belong to the property of the same name
        name = m.group(3).lstrip("_")
        _add_property(decl, PropertyDecl(name=name, type_name=m.group(1), line=lines[idx].number))
    if not block.closed:
        module.warn(lines[idx].number, "unterminated instance variable block", lines[idx].text)
    return block.end


def _c_params(raw: str) -> list[Parameter]:
    params = []
    raw = raw.strip()
    if not raw or raw == "void":
        return params
    for part in split_top_level(raw):
        m = re.match(r"^(.*?)(\w+)\s*$", part.strip())
        if not m or not m.group(1).strip():
            # Unnamed parameter (block type signature)
            params.append(Parameter(name=f"arg{len(params)}", type_name=part.strip()))
            continue
        params.append(Parameter(name=m.group(2), type_name=m.group(1).replace("*", "").strip()))
    return params


def _parse_selector(signature: str, line: int) -> tuple[str, list[Parameter]]:
    parts = _SELECTOR_PART.findall(signature)
    if parts:
        name = selector_name([p[0] for p in parts])
        params = [Parameter(name=p[2], type_name=p[1].replace("*", "").strip(), label=p[0]) for p in parts]
    else:
        name = signature.strip().rstrip(";{").strip()
        params = []
    if not re.fullmatch(r"\w+", name):
        raise ParseError("unrecognized method signature", line)
    return name, params


def _parse_method(m: re.Match, lines: list[SourceLine], idx: int, module: IRModule, ctx: _Context | None) -> int:
    line = lines[idx]
    is_static = m.group(1) == "+"
    return_type = m.group(2).replace("*", "").strip()
    signature = m.group(3)
    terminator = m.group(4) or ""

    try:
        name, params = _parse_selector(signature, line.number)
    except ParseError as exc:
        module.warn(exc.line, exc.message, line.text)
        end = capture_block(lines, idx).end if _opens_block(lines, idx) else idx
        module.unknowns.append(UnknownDecl(text=line.text, line=line.number, reason="method"))
        return end

    has_body = terminator.startswith("{") or (not terminator and _opens_block(lines, idx))
    body = ""
    end = idx
    if has_body:
        block = capture_block(lines, idx)
        body = block.body
        end = block.end
        if not block.closed:
            module.warn(line.number, f"unterminated body of method '{name}'", line.text)

    if ctx is None:
        module.warn(line.number, f"method '{name}' outside of @implementation", line.text)
        module.unknowns.append(UnknownDecl(text=line.text, line=line.number, reason="method"))
        return end

    decl = ctx.decl
    if isinstance(decl, ProtocolDecl):
        decl.requirements.append(
            MethodDecl(name=name, parameters=params, return_type=return_type, is_static=is_static, is_declaration=True, line=line.number)
        )
        return end

    is_init = not is_static and re.match(r"^init([A-Z]|$)", name) is not None
    if is_init and isinstance(decl, ClassDecl):
        if has_body:
            decl.initializers = [i for i in decl.initializers if i.name != name]
            decl.initializers.append(InitializerDecl(parameters=params, body=body, name=name, line=line.number))
        return end

    method = MethodDecl(
        name=name,
        parameters=params,
        return_type=return_type,
        body=body,
        is_static=is_static,
        is_declaration=not has_body,
        line=line.number,
    )
    existing = next((i for i, x in enumerate(decl.methods) if x.name == name and x.is_static == is_static), None)
    if existing is None:
        decl.methods.append(method)
    elif has_body or decl.methods[existing].is_declaration:
        decl.methods[existing] = method
    if not has_body and ctx.kind == "implementation":
        module.warn(line.number, f"method '{name}' has no body", line.text)
    return end


def _parse_enum(lines: list[SourceLine], idx: int, module: IRModule, name: str, raw_type: str) -> int:
    line = lines[idx]
    block = capture_block(lines, idx)
    decl = EnumDecl(name=name, raw_type="Int" if raw_type else "", line=line.number)
    for part in split_top_level(block.body.replace("\n", " ")):
        m = re.match(r"^(\w+)\s*(?:=\s*(.+))?$", part.strip())
        if not m:
            module.warn(line.number, f"unrecognized enum case '{part}'", line.text)
            continue
        decl.cases.append(EnumCase(name=m.group(1), raw_value=(m.group(2) or "").strip()))
    if not decl.name:
        # typedef enum { ... } Name;
        decl.name = block.trailing.rstrip(";").strip() or f"AnonymousEnum{line.number}"
    if not block.closed:
        module.warn(line.number, f"unterminated enum '{decl.name}'", line.text)
    module.enums.append(decl)
    return block.end


def _parse_struct(lines: list[SourceLine], idx: int, module: IRModule, name: str) -> int:
    line = lines[idx]
    block = capture_block(lines, idx)
    decl = StructDecl(name=block.trailing.rstrip(";").strip() or name, line=line.number)
    for raw in block.body.split("\n"):
        for field_text in (f.strip() for f in raw.split(";")):
            if not field_text:
                continue
            m = re.match(r"^(\w+)\s*(\**)\s*([\w\s,]+)$", field_text)
            if not m:
                module.warn(line.number, f"unrecognized struct field '{field_text}'", raw)
                continue
            for field_name in (n.strip() for n in m.group(3).split(",")):
                decl.properties.append(PropertyDecl(name=field_name, type_name=m.group(1), line=line.number))
    if not decl.name:
        decl.name = f"AnonymousStruct{line.number}"
    if not block.closed:
        module.warn(line.number, f"unterminated struct '{decl.name}'", line.text)
    module.structs.append(decl)
    return block.end
