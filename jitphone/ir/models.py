"""IR data models — the normalized form between parsers and generators.

Two families live here:

* The declaration IR (``IRModule`` and its declarations) built by the dialect
  parsers and consumed by the code generator.
* The instruction IR (``FunctionIR``/``Instruction``) built by the format
  bridge from engine instruction streams.

Declarations own their children; nothing points back up the tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Dialect(Enum):
    OBJC = "objc"
    SWIFT = "swift"
    JAVASCRIPT = "javascript"


# --- Members ---


@dataclass
class Parameter:
    """A function or method parameter.

    ``label`` is the external argument label (Swift) or selector part
    (Objective-C); ``name`` is the name used inside the body.
    """

    name: str
    type_name: str = ""
    label: str = ""
    default_value: str = ""


@dataclass
class PropertyDecl:
    name: str
    type_name: str = ""
    initial_value: str = ""
    is_constant: bool = False
    is_static: bool = False
    attributes: list[str] = field(default_factory=list)
    getter: str = ""  # Body of a computed getter
    setter: str = ""  # Body of a computed setter
    setter_param: str = "newValue"
    line: int = 0

    @property
    def is_computed(self) -> bool:
        return bool(self.getter or self.setter)


@dataclass
class MethodDecl:
    name: str
    parameters: list[Parameter] = field(default_factory=list)
    return_type: str = ""
    body: str = ""
    is_static: bool = False
    is_declaration: bool = False  # Signature only, no body (protocols, interfaces)
    is_mutating: bool = False
    throws: bool = False
    line: int = 0

    @property
    def selector(self) -> str:
        """Objective-C style selector, e.g. ``setName:age:``."""
        if not self.parameters:
            return self.name
        return "".join(f"{p.label or self.name}:" for p in self.parameters)


@dataclass
class InitializerDecl:
    parameters: list[Parameter] = field(default_factory=list)
    body: str = ""
    name: str = "init"
    is_convenience: bool = False
    line: int = 0


@dataclass
class EnumCase:
    name: str
    raw_value: str = ""


# --- Declarations ---


@dataclass
class ClassDecl:
    name: str
    superclass: str = ""
    protocols: list[str] = field(default_factory=list)
    properties: list[PropertyDecl] = field(default_factory=list)
    methods: list[MethodDecl] = field(default_factory=list)
    initializers: list[InitializerDecl] = field(default_factory=list)
    line: int = 0

    def find_method(self, name: str) -> MethodDecl | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None


@dataclass
class StructDecl:
    name: str
    protocols: list[str] = field(default_factory=list)
    properties: list[PropertyDecl] = field(default_factory=list)
    methods: list[MethodDecl] = field(default_factory=list)
    initializers: list[InitializerDecl] = field(default_factory=list)
    line: int = 0

    @property
    def stored_properties(self) -> list[PropertyDecl]:
        return [p for p in self.properties if not p.is_computed and not p.is_static]


@dataclass
class EnumDecl:
    name: str
    raw_type: str = ""
    cases: list[EnumCase] = field(default_factory=list)
    methods: list[MethodDecl] = field(default_factory=list)
    line: int = 0


@dataclass
class ProtocolDecl:
    name: str
    inherited: list[str] = field(default_factory=list)
    requirements: list[MethodDecl] = field(default_factory=list)
    properties: list[PropertyDecl] = field(default_factory=list)
    line: int = 0


@dataclass
class ExtensionDecl:
    extended_type: str
    category: str = ""  # Objective-C category name
    protocols: list[str] = field(default_factory=list)
    properties: list[PropertyDecl] = field(default_factory=list)
    methods: list[MethodDecl] = field(default_factory=list)
    line: int = 0


@dataclass
class FunctionDecl:
    name: str
    parameters: list[Parameter] = field(default_factory=list)
    return_type: str = ""
    body: str = ""
    throws: bool = False
    line: int = 0


@dataclass
class VariableDecl:
    name: str
    type_name: str = ""
    initial_value: str = ""
    is_constant: bool = False
    line: int = 0


@dataclass
class UnknownDecl:
    """Source text the parser could not classify, kept for downstream policy."""

    text: str
    line: int = 0
    reason: str = ""


@dataclass
class ParseWarning:
    line: int
    message: str
    text: str = ""

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass
class IRModule:
    """All declarations recovered from one source unit."""

    dialect: Dialect
    imports: list[str] = field(default_factory=list)
    classes: list[ClassDecl] = field(default_factory=list)
    structs: list[StructDecl] = field(default_factory=list)
    enums: list[EnumDecl] = field(default_factory=list)
    protocols: list[ProtocolDecl] = field(default_factory=list)
    extensions: list[ExtensionDecl] = field(default_factory=list)
    functions: list[FunctionDecl] = field(default_factory=list)
    variables: list[VariableDecl] = field(default_factory=list)
    unknowns: list[UnknownDecl] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)

    @property
    def declaration_count(self) -> int:
        return (
            len(self.classes)
            + len(self.structs)
            + len(self.enums)
            + len(self.protocols)
            + len(self.extensions)
            + len(self.functions)
            + len(self.variables)
        )

    def find_class(self, name: str) -> ClassDecl | None:
        for cls in self.classes:
            if cls.name == name:
                return cls
        return None

    def type_names(self) -> set[str]:
        names = {c.name for c in self.classes}
        names.update(s.name for s in self.structs)
        names.update(e.name for e in self.enums)
        return names

    def warn(self, line: int, message: str, text: str = "") -> None:
        self.warnings.append(ParseWarning(line=line, message=message, text=text))

    def summary(self) -> dict[str, int]:
        return {
            "classes": len(self.classes),
            "structs": len(self.structs),
            "enums": len(self.enums),
            "protocols": len(self.protocols),
            "extensions": len(self.extensions),
            "functions": len(self.functions),
            "variables": len(self.variables),
            "unknowns": len(self.unknowns),
            "warnings": len(self.warnings),
        }


# --- Instruction IR ---


class Opcode(Enum):
    LOAD = "load"
    STORE = "store"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    CALL = "call"
    RETURN = "return"
    BRANCH = "branch"
    LOOP = "loop"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Instruction:
    """One lowered instruction.

    Argument layout by opcode:
      load/store:        (dest, source)
      add/sub/mul/div:   (dest, lhs, rhs)
      call:              (callee, *arguments); ``result`` names the destination
      return:            () or (value,)
      branch:            (condition, target label)
      loop:              (iteration count,)
      unknown:           (); ``raw`` holds the source text
    """

    opcode: Opcode
    args: tuple[str, ...] = ()
    result: str = ""
    raw: str = ""


@dataclass
class FunctionIR:
    name: str
    params: list[str] = field(default_factory=list)
    instructions: list[Instruction] = field(default_factory=list)
    optimization_tags: list[str] = field(default_factory=list)

    @property
    def unknown_count(self) -> int:
        return sum(1 for i in self.instructions if i.opcode == Opcode.UNKNOWN)
