"""Swift-style parser — builds an IRModule from source text.

Line oriented: each trimmed line is matched against declaration headers and
brace-delimited bodies are captured verbatim for the generator to rewrite.
Type bodies are parsed recursively. The parser never raises on malformed
input; unrecognized or unterminated constructs become warnings and
``UnknownDecl`` nodes.
"""

from __future__ import annotations

import re

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
from jitphone.ir.scanner import SourceLine, brace_delta, capture_block, find_closing, significant_lines, split_top_level

_MODIFIERS = (
    r"(?:(?:public|private|internal|fileprivate|open|final|override|required|"
    r"convenience|mutating|nonmutating|static|class|lazy|weak|unowned|indirect|"
    r"dynamic|@\w+(?:\([^)]*\))?)\s+)*"
)

_TYPE_HEADER = re.compile(
    r"^(?P<mods>" + _MODIFIERS + r")(?P<kind>class|struct|enum|protocol|extension)\s+"
    r"(?P<name>[\w.]+)\s*(?:<[^>]*>)?\s*(?::\s*(?P<inherits>[^{]+?))?\s*"
    r"(?:where\s+[^{]+?)?\s*(?P<brace>\{.*)?$"
)
_FUNC_HEADER = re.compile(r"^(?P<mods>" + _MODIFIERS + r")func\s+(?P<name>\w+|[^\s(]+)\s*(?:<[^>]*>)?\s*\(")
_INIT_HEADER = re.compile(r"^(?P<mods>" + _MODIFIERS + r")init[?!]?\s*\(")
_PROPERTY = re.compile(
    r"^(?P<mods>" + _MODIFIERS + r")(?P<keyword>let|var)\s+(?P<name>\w+)\s*"
    r"(?::\s*(?P<type>[^={]+?))?\s*(?:=\s*(?P<value>.+?))?\s*(?P<brace>\{.*)?$"
)
_CASE = re.compile(r"^(?:indirect\s+)?case\s+(?P<cases>.+)$")
_IMPORT = re.compile(r"^import\s+(?:\w+\s+)?([\w.]+)")
_PARAM = re.compile(r"^(?:(?P<label>\w+)\s+)?(?P<name>\w+)\s*:\s*(?P<type>.+?)(?:\s*=\s*(?P<default>.+))?$")
_ACCESSOR = re.compile(r"^(get|set|willSet|didSet)\s*(?:\((\w+)\))?\s*\{")

# Standard library protocols that never act as a superclass
_KNOWN_PROTOCOLS = {
    "Equatable",
    "Hashable",
    "Comparable",
    "Codable",
    "Encodable",
    "Decodable",
    "CustomStringConvertible",
    "CustomDebugStringConvertible",
    "Identifiable",
    "CaseIterable",
    "Error",
    "Sendable",
}


def parse_swift_source(source: str) -> IRModule:
    """Parse Swift-style source text into an IR module."""
    module = IRModule(dialect=Dialect.SWIFT)
    lines = significant_lines(source)
    _parse_top_level(lines, module)
    return module


# --- Top level ---


def _parse_top_level(lines: list[SourceLine], module: IRModule) -> None:
    idx = 0
    while idx < len(lines):
        line = lines[idx]
        text = line.text

        m = _IMPORT.match(text)
        if m:
            module.imports.append(m.group(1))
            idx += 1
            continue

        if _TYPE_HEADER.match(text):
            idx = _parse_type(lines, idx, module) + 1
            continue

        if _FUNC_HEADER.match(text):
            header, end = _join_header(lines, idx)
            method, idx = _parse_func(header, lines, idx, end, module)
            if method is not None:
                module.functions.append(
                    FunctionDecl(
                        name=method.name,
                        parameters=method.parameters,
                        return_type=method.return_type,
                        body=method.body,
                        throws=method.throws,
                        line=method.line,
                    )
                )
            idx += 1
            continue

        m = _PROPERTY.match(text)
        if m:
            prop, idx = _parse_property(m, lines, idx, module)
            if prop.is_computed:
                module.functions.append(
                    FunctionDecl(name=prop.name, return_type=prop.type_name, body=prop.getter, line=prop.line)
                )
                module.warn(line.number, f"top-level computed variable '{prop.name}' lowered to a function", text)
            else:
                module.variables.append(
                    VariableDecl(
                        name=prop.name,
                        type_name=prop.type_name,
                        initial_value=prop.initial_value,
                        is_constant=prop.is_constant,
                        line=prop.line,
                    )
                )
            idx += 1
            continue

        if text == "}":
            module.warn(line.number, "unbalanced closing brace", text)
            idx += 1
            continue

        end = _skip_statement(lines, idx)
        statement = "\n".join(l.text for l in lines[idx : end + 1])
        module.unknowns.append(UnknownDecl(text=statement, line=line.number, reason="top-level statement"))
        module.warn(line.number, "unrecognized top-level statement", text)
        idx = end + 1


# --- Types ---


def _split_inherits(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in split_top_level(raw) if part.strip()]


def _body_lines(lines: list[SourceLine], start: int, end: int, closed: bool) -> list[SourceLine]:
    """Member lines of the block opened on ``lines[start]`` and closed on ``lines[end]``."""
    header = lines[start]
    members: list[SourceLine] = []
    open_pos = header.text.find("{")
    if start == end and closed:
        inner = header.text[open_pos + 1 : header.text.rfind("}")].strip()
        for part in (p.strip() for p in re.split(r";", inner)):
            if part:
                members.append(SourceLine(number=header.number, text=part))
        return members
    if open_pos == -1 and start + 1 < len(lines):
        # Brace on its own line after the header
        start += 1
        open_pos = lines[start].text.find("{")
    after = lines[start].text[open_pos + 1 :].strip()
    if after:
        members.append(SourceLine(number=lines[start].number, text=after))
    stop = end if closed else end + 1
    members.extend(lines[start + 1 : stop])
    if closed:
        last = lines[end].text
        before = last[: last.rfind("}")].strip()
        if before:
            members.append(SourceLine(number=lines[end].number, text=before))
    return members


def _parse_type(lines: list[SourceLine], start: int, module: IRModule) -> int:
    """Parse the type declared on ``lines[start]``; return the index of its last line."""
    header = lines[start]
    m = _TYPE_HEADER.match(header.text)
    kind = m.group("kind")
    name = m.group("name")
    inherits = _split_inherits(m.group("inherits"))

    block = capture_block(lines, start)
    if not block.opened:
        module.warn(header.number, f"{kind} '{name}' has no body", header.text)
        module.unknowns.append(UnknownDecl(text=header.text, line=header.number, reason=f"{kind} without body"))
        return start
    if not block.closed:
        module.warn(header.number, f"unterminated {kind} '{name}'", header.text)

    members = _body_lines(lines, start, block.end, block.closed)

    if kind == "class":
        decl = ClassDecl(name=name, line=header.number)
        if inherits:
            # First inherited name is the superclass unless it is a known protocol
            known_protocols = _KNOWN_PROTOCOLS | {p.name for p in module.protocols}
            if inherits[0] not in known_protocols:
                decl.superclass = inherits[0]
                decl.protocols = inherits[1:]
            else:
                decl.protocols = inherits
        _parse_members(members, module, decl)
        module.classes.append(decl)
    elif kind == "struct":
        decl = StructDecl(name=name, protocols=inherits, line=header.number)
        _parse_members(members, module, decl)
        module.structs.append(decl)
    elif kind == "enum":
        raw_type = inherits[0] if inherits and inherits[0] in ("Int", "String", "Double", "Character", "UInt") else ""
        decl = EnumDecl(name=name, raw_type=raw_type, line=header.number)
        _parse_members(members, module, decl)
        module.enums.append(decl)
    elif kind == "protocol":
        decl = ProtocolDecl(name=name, inherited=inherits, line=header.number)
        _parse_members(members, module, decl)
        module.protocols.append(decl)
    else:
        decl = ExtensionDecl(extended_type=name, protocols=inherits, line=header.number)
        _parse_members(members, module, decl)
        module.extensions.append(decl)
    return block.end


def _parse_members(lines: list[SourceLine], module: IRModule, decl) -> None:
    is_protocol = isinstance(decl, ProtocolDecl)
    idx = 0
    while idx < len(lines):
        line = lines[idx]
        text = line.text

        if text in ("}", "{"):
            idx += 1
            continue

        m = _CASE.match(text)
        if m and isinstance(decl, EnumDecl):
            _parse_cases(m.group("cases"), line, decl, module)
            idx += 1
            continue

        if _TYPE_HEADER.match(text):
            idx = _parse_type(lines, idx, module) + 1
            continue

        if _FUNC_HEADER.match(text):
            header, end = _join_header(lines, idx)
            method, idx = _parse_func(header, lines, idx, end, module, allow_declaration=is_protocol)
            if method is not None:
                if is_protocol:
                    decl.requirements.append(method)
                else:
                    decl.methods.append(method)
            idx += 1
            continue

        if _INIT_HEADER.match(text):
            header, end = _join_header(lines, idx)
            init, idx = _parse_init(header, lines, idx, end, module, allow_declaration=is_protocol)
            if init is not None and hasattr(decl, "initializers"):
                decl.initializers.append(init)
            elif init is not None and not is_protocol:
                module.warn(line.number, "initializer outside a class or struct ignored", text)
            idx += 1
            continue

        if text.startswith(("deinit", "subscript")):
            end = _skip_statement(lines, idx)
            module.warn(line.number, f"'{text.split()[0].split('(')[0]}' is not supported and was skipped", text)
            idx = end + 1
            continue

        m = _PROPERTY.match(text)
        if m:
            prop, idx = _parse_property(m, lines, idx, module, requirement=is_protocol)
            if isinstance(decl, EnumDecl):
                if prop.is_computed:
                    decl.methods.append(MethodDecl(name=prop.name, return_type=prop.type_name, body=prop.getter, line=prop.line))
                else:
                    module.warn(line.number, f"stored property '{prop.name}' in enum ignored", text)
            else:
                decl.properties.append(prop)
            idx += 1
            continue

        end = _skip_statement(lines, idx)
        module.warn(line.number, "unrecognized member declaration", text)
        module.unknowns.append(UnknownDecl(text=text, line=line.number, reason="member"))
        idx = end + 1


def _parse_cases(raw: str, line: SourceLine, decl: EnumDecl, module: IRModule) -> None:
    for part in split_top_level(raw):
        case_match = re.match(r"^(\w+)\s*(\(.*\))?\s*(?:=\s*(.+))?$", part)
        if not case_match:
            module.warn(line.number, f"unrecognized enum case '{part}'", line.text)
            continue
        name, associated, raw_value = case_match.groups()
        if associated:
            module.warn(line.number, f"associated values of case '{name}' are dropped", line.text)
        decl.cases.append(EnumCase(name=name, raw_value=(raw_value or "").strip()))


# --- Functions, initializers, properties ---


def _join_header(lines: list[SourceLine], start: int) -> tuple[str, int]:
    """Join a declaration header whose parameter list spans several lines."""
    text = lines[start].text
    end = start
    depth = text.count("(") - text.count(")")
    while depth > 0 and end + 1 < len(lines):
        end += 1
        text = f"{text} {lines[end].text}"
        depth += lines[end].text.count("(") - lines[end].text.count(")")
    return text, end


def parse_parameters(raw: str) -> list[Parameter]:
    params = []
    for part in split_top_level(raw):
        part = re.sub(r"@\w+\s+|\binout\s+", "", part).strip()
        m = _PARAM.match(part)
        if not m:
            params.append(Parameter(name=re.sub(r"\W", "_", part) or "arg"))
            continue
        label = m.group("label") or m.group("name")
        params.append(
            Parameter(
                name=m.group("name"),
                type_name=m.group("type").strip(),
                label=label,
                default_value=(m.group("default") or "").strip(),
            )
        )
    return params


def _signature_tail(header: str, open_paren: int) -> tuple[str, str, str]:
    """Return (parameter text, text after the parameter list, problem)."""
    close = find_closing(header, open_paren)
    if close == -1:
        return header[open_paren + 1 :], "", "unterminated parameter list"
    return header[open_paren + 1 : close], header[close + 1 :].strip(), ""


def _parse_func(header, lines, start, end, module, allow_declaration=False):
    m = _FUNC_HEADER.match(header)
    name = m.group("name")
    mods = m.group("mods") or ""
    number = lines[start].number
    raw_params, tail, problem = _signature_tail(header, m.end() - 1)
    if problem:
        module.warn(number, f"func '{name}': {problem}", header)

    throws = bool(re.match(r"^(?:async\s+)?(throws|rethrows)\b", tail))
    ret = re.search(r"->\s*([^{]+?)\s*(?:\{|$)", tail)
    method = MethodDecl(
        name=name,
        parameters=parse_parameters(raw_params),
        return_type=ret.group(1).strip() if ret else "",
        is_static=bool(re.search(r"\b(static|class)\s", mods)),
        is_mutating="mutating" in mods,
        throws=throws,
        line=number,
    )

    if "{" not in tail and not (end + 1 < len(lines) and lines[end + 1].text.startswith("{")):
        method.is_declaration = True
        if not allow_declaration:
            module.warn(number, f"func '{name}' has no body", header)
        return method, end

    block = capture_block(lines, end)
    if "{" in tail and block.end == end and block.closed:
        # Entire body on the header line (possibly joined from several lines)
        brace = header.find("{", header.find(tail))
        method.body = header[brace + 1 : header.rfind("}")].strip()
    else:
        method.body = block.body
    if not block.closed:
        module.warn(number, f"unterminated body of func '{name}'", header)
    return method, block.end


def _parse_init(header, lines, start, end, module, allow_declaration=False):
    m = _INIT_HEADER.match(header)
    number = lines[start].number
    raw_params, tail, problem = _signature_tail(header, m.end() - 1)
    if problem:
        module.warn(number, f"init: {problem}", header)
    init = InitializerDecl(
        parameters=parse_parameters(raw_params),
        is_convenience="convenience" in (m.group("mods") or ""),
        line=number,
    )
    if "{" not in tail and not (end + 1 < len(lines) and lines[end + 1].text.startswith("{")):
        if not allow_declaration:
            module.warn(number, "initializer has no body", header)
        return init, end
    block = capture_block(lines, end)
    if block.end == end and block.closed:
        init.body = header[header.find("{", header.find(tail)) + 1 : header.rfind("}")].strip()
    else:
        init.body = block.body
    if not block.closed:
        module.warn(number, "unterminated initializer body", header)
    return init, block.end


def _parse_property(m: re.Match, lines, idx, module, requirement=False):
    line = lines[idx]
    mods = m.group("mods") or ""
    prop = PropertyDecl(
        name=m.group("name"),
        type_name=(m.group("type") or "").strip(),
        initial_value=(m.group("value") or "").strip(),
        is_constant=m.group("keyword") == "let",
        is_static=bool(re.search(r"\b(static|class)\s", mods)),
        attributes=[w for w in ("lazy", "weak", "unowned") if re.search(rf"\b{w}\s", mods)],
        line=line.number,
    )
    if not m.group("brace"):
        if prop.initial_value and brace_delta(prop.initial_value) > 0:
            # Multi-line closure or literal initializer
            block = capture_block(lines, idx)
            prop.initial_value = "\n".join(l.text for l in lines[idx : block.end + 1])
            prop.initial_value = prop.initial_value.split("=", 1)[1].strip()
            return prop, block.end
        return prop, idx

    block = capture_block(lines, idx)
    if not block.closed:
        module.warn(line.number, f"unterminated accessor block for '{prop.name}'", line.text)
    if requirement:
        # `var name: Type { get set }`
        return prop, block.end
    _split_accessors(block.body, prop, module, line)
    return prop, block.end


def _split_accessors(body: str, prop: PropertyDecl, module: IRModule, line: SourceLine) -> None:
    body_lines = significant_lines(body)
    if not body_lines or not _ACCESSOR.match(body_lines[0].text):
        prop.getter = body
        return
    idx = 0
    while idx < len(body_lines):
        m = _ACCESSOR.match(body_lines[idx].text)
        if not m:
            module.warn(line.number, f"unexpected text in accessors of '{prop.name}'", body_lines[idx].text)
            idx += 1
            continue
        block = capture_block(body_lines, idx)
        if m.group(1) == "get":
            prop.getter = block.body or "return undefined"
        elif m.group(1) == "set":
            prop.setter = block.body
            if m.group(2):
                prop.setter_param = m.group(2)
        else:
            module.warn(line.number, f"{m.group(1)} observer on '{prop.name}' is not supported", body_lines[idx].text)
        idx = block.end + 1


def _skip_statement(lines: list[SourceLine], idx: int) -> int:
    """Index of the last line of the statement starting at ``idx``."""
    if brace_delta(lines[idx].text) > 0:
        return capture_block(lines, idx).end
    return idx
