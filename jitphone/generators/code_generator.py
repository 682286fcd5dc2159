"""Code generator — renders an IRModule as JavaScript.

Each declaration kind maps to one target construct:

* class      -> ``class X extends Y`` with property defaults in the constructor
* struct     -> class with a memberwise constructor and a ``copy()`` method
* enum       -> object literal of case values plus ``allCases``/``fromRawValue``
* protocol   -> marker object whose methods throw "not implemented"
* extension  -> assignments onto the extended type's prototype
* function   -> ``function``; variable -> ``const``/``let``

Member bodies are rewritten by the dialect's ordered rule pipeline
(``swift_rules`` / ``objc_rules``).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from jitphone.generators.objc_rules import objc_pipeline
from jitphone.generators.rewrite import RewriteContext, RewritePipeline
from jitphone.generators.swift_rules import swift_pipeline
from jitphone.ir.models import (
    ClassDecl,
    Dialect,
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
from jitphone.utils.jstext import mask

logger = logging.getLogger(__name__)

UNKNOWN_POLICIES = ("comment", "omit", "passthrough")

RUNTIME_PREAMBLE = r"""// jitphone runtime support
if (typeof String.format !== "function") {
  String.format = function (format) {
    var args = Array.prototype.slice.call(arguments, 1);
    var index = 0;
    return String(format).replace(/%(\.\d+)?(?:l{0,2}|z)?([@difsuxX%])/g, function (match, precision, spec) {
      if (spec === "%") {
        return "%";
      }
      var value = args[index++];
      if (spec === "f") {
        return Number(value).toFixed(precision ? Number(precision.slice(1)) : 6);
      }
      if (spec === "d" || spec === "i" || spec === "u") {
        return String(value < 0 ? Math.ceil(value) : Math.floor(value));
      }
      if (spec === "x" || spec === "X") {
        var hex = Number(value).toString(16);
        return spec === "X" ? hex.toUpperCase() : hex;
      }
      return String(value);
    });
  };
}"""

_NUMERIC_TYPES = {
    "Int", "UInt", "Int8", "Int16", "Int32", "Int64", "Double", "Float", "CGFloat",
    "int", "float", "double", "long", "short", "NSInteger", "NSUInteger", "NSTimeInterval", "size_t",
}
_BOOL_TYPES = {"Bool", "BOOL", "bool"}
_STRING_TYPES = {"String", "Character"}
_ARRAY_TYPES = {"NSArray", "NSMutableArray", "NSSet", "NSMutableSet"}
_DICT_TYPES = {"NSDictionary", "NSMutableDictionary"}

# Extended builtin types -> JavaScript constructors
_BUILTIN_TYPES = {
    "Int": "Number",
    "Double": "Number",
    "Float": "Number",
    "CGFloat": "Number",
    "String": "String",
    "NSString": "String",
    "NSMutableString": "String",
    "Bool": "Boolean",
    "Array": "Array",
    "NSArray": "Array",
    "NSMutableArray": "Array",
    "Dictionary": "Object",
    "NSDictionary": "Object",
    "NSMutableDictionary": "Object",
}

_STATEMENT_START = re.compile(
    r"^(return|let|var|const|if|for|while|switch|guard|throw|do|repeat|print|fatalError|precondition|assert)\b"
)


@dataclass
class GeneratorOptions:
    runtime_support: bool = False  # Always emit the runtime preamble (otherwise only when referenced)
    unknown_policy: str = "comment"
    indent: str = "  "

    def __post_init__(self):
        if self.unknown_policy not in UNKNOWN_POLICIES:
            raise ValueError(f"unknown_policy must be one of {', '.join(UNKNOWN_POLICIES)}")


@dataclass
class _TypeInfo:
    properties: set[str] = field(default_factory=set)
    methods: set[str] = field(default_factory=set)


def default_value(type_name: str, dialect: Dialect) -> str:
    """Zero value for a declared type (``nil`` for object references)."""
    t = type_name.strip()
    if not t or t.endswith(("?", "!")):
        return "null"
    base = t.replace("*", "").strip()
    if base in _NUMERIC_TYPES:
        return "0"
    if base in _BOOL_TYPES:
        return "false"
    if base in _STRING_TYPES:
        return '""'
    if dialect == Dialect.SWIFT and t.startswith("["):
        return "{}" if ":" in t else "[]"
    if dialect == Dialect.SWIFT and re.match(r"^(Array|Set)<", t):
        return "[]"
    if dialect == Dialect.SWIFT and t.startswith("Dictionary<"):
        return "{}"
    return "null"


def reindent(code: str, level: int, unit: str = "  ") -> str:
    """Indent ``code`` by brace depth, starting at ``level``."""
    out = []
    depth = 0
    for line in code.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        masked = mask(stripped).text
        d = depth - 1 if masked.startswith(("}", "]")) else depth
        out.append(unit * (level + max(d, 0)) + stripped)
        depth += masked.count("{") + masked.count("[") - masked.count("}") - masked.count("]")
        depth = max(depth, 0)
    return "\n".join(out)


def _implicit_return(body: str) -> str:
    """Single-expression Swift bodies return their expression."""
    lines = [l for l in body.split("\n") if l.strip()]
    if len(lines) != 1:
        return body
    line = lines[0].strip()
    if _STATEMENT_START.match(line) or re.search(r"(?<![=!<>+\-*/])=(?!=)", mask(line).text):
        return body
    return f"return {line}"


def _has_return_value(return_type: str) -> bool:
    return return_type.strip() not in ("", "Void", "()", "void", "IBAction")


class CodeGenerator:
    """Renders one IRModule. Create one per module; warnings accumulate on the instance."""

    def __init__(self, options: GeneratorOptions | None = None):
        self.options = options or GeneratorOptions()
        self.warnings: list[str] = []
        self._module: IRModule | None = None
        self._pipeline: RewritePipeline | None = None
        self._types: dict[str, _TypeInfo] = {}
        self._enum_cases: dict[str, str] = {}
        self._known_properties: set[str] = set()
        self._constructible: set[str] = set()

    # --- Entry point ---

    def generate(self, module: IRModule) -> str:
        self._prepare(module)
        sections: list[str] = []
        sections.extend(self._protocol(p) for p in module.protocols)
        sections.extend(self._enum(e) for e in module.enums)
        sections.extend(self._class(c) for c in _inheritance_order(module.classes))
        sections.extend(self._struct(s) for s in module.structs)
        sections.extend(self._extension(x) for x in module.extensions)
        sections.extend(self._function(f) for f in module.functions)

        tail: list[tuple[int, str]] = [(v.line, self._variable(v)) for v in module.variables]
        tail.extend((u.line, self._unknown(u)) for u in module.unknowns)
        tail.sort(key=lambda item: item[0])
        trailing = "\n".join(text for _, text in tail if text)
        if trailing:
            sections.append(trailing)

        code = "\n\n".join(s for s in sections if s)
        if self.options.runtime_support or "String.format(" in code:
            code = RUNTIME_PREAMBLE + "\n\n" + code
        logger.debug(
            "generated %d declarations (%d unknown) from %s source",
            module.declaration_count,
            len(module.unknowns),
            module.dialect.value,
        )
        return code + "\n" if code else ""

    def _prepare(self, module: IRModule) -> None:
        self._module = module
        self._pipeline = swift_pipeline() if module.dialect == Dialect.SWIFT else objc_pipeline()
        self._types = {}
        for decl in list(module.classes) + list(module.structs):
            info = self._types.setdefault(decl.name, _TypeInfo())
            info.properties.update(p.name for p in decl.properties if not p.is_static)
            info.methods.update(m.name for m in decl.methods if not m.is_static)
        for ext in module.extensions:
            info = self._types.setdefault(ext.extended_type, _TypeInfo())
            info.properties.update(p.name for p in ext.properties if not p.is_static)
            info.methods.update(m.name for m in ext.methods if not m.is_static)

        counts: dict[str, int] = {}
        owners: dict[str, str] = {}
        for enum in module.enums:
            for case in enum.cases:
                counts[case.name] = counts.get(case.name, 0) + 1
                owners[case.name] = enum.name
        self._enum_cases = {name: owners[name] for name, n in counts.items() if n == 1}
        self._known_properties = set()
        for info in self._types.values():
            self._known_properties.update(info.properties)
        self._constructible = {c.name for c in module.classes} | {s.name for s in module.structs}

    # --- Body rewriting ---

    def _context(self, type_name: str = "", params: list[Parameter] | None = None, is_static: bool = False,
                 in_initializer: bool = False, extra_params: tuple[str, ...] = ()) -> RewriteContext:
        info = self._types.get(type_name, _TypeInfo())
        return RewriteContext(
            properties=set(info.properties),
            methods=set(info.methods),
            parameters={p.name for p in params or []} | set(extra_params),
            enum_cases=dict(self._enum_cases),
            type_name=type_name,
            is_static=is_static,
            in_initializer=in_initializer,
            known_properties=set(self._known_properties),
            constructible=set(self._constructible),
        )

    def _body(self, body: str, ctx: RewriteContext, returns_value: bool = False) -> str:
        if not body.strip():
            return ""
        if returns_value and self._module.dialect == Dialect.SWIFT:
            body = _implicit_return(body)
        return self._pipeline.rewrite(body, ctx)

    def _expression(self, text: str, ctx: RewriteContext) -> str:
        if not text.strip():
            return ""
        return self._pipeline.rewrite(text.strip(), ctx).strip().rstrip(";")

    def _block(self, header: str, body: str, level: int) -> str:
        pad = self.options.indent * level
        if not body.strip():
            return f"{pad}{header} {{\n{pad}}}"
        return f"{pad}{header} {{\n{reindent(body, level + 1, self.options.indent)}\n{pad}}}"

    def _params(self, params: list[Parameter], ctx: RewriteContext) -> str:
        parts = []
        for p in params:
            if p.default_value:
                parts.append(f"{p.name} = {self._expression(p.default_value, ctx)}")
            else:
                parts.append(p.name)
        return ", ".join(parts)

    # --- Classes and structs ---

    def _superclass(self, cls: ClassDecl) -> str:
        if not cls.superclass or cls.superclass == "NSObject":
            return ""
        if cls.superclass not in self._module.type_names():
            self.warnings.append(
                f"superclass '{cls.superclass}' of '{cls.name}' is not defined in this unit; emitted without extends"
            )
            return ""
        return cls.superclass

    def _class(self, cls: ClassDecl) -> str:
        superclass = self._superclass(cls)
        header = f"class {cls.name}" + (f" extends {superclass}" if superclass else "")
        stored = [p for p in cls.properties if not p.is_computed and not p.is_static]
        constructor_init, extra_inits = self._split_initializers(cls.initializers)

        members = [self._constructor(cls.name, stored, constructor_init, bool(superclass))]
        members.extend(self._init_method(cls.name, init) for init in extra_inits)
        members.extend(self._members(cls.name, cls.properties, cls.methods))
        return self._type_text(header, members, cls.name, cls.properties)

    def _struct(self, struct: StructDecl) -> str:
        stored = struct.stored_properties
        constructor_init, extra_inits = self._split_initializers(struct.initializers)
        if constructor_init is None:
            members = [self._memberwise_constructor(struct.name, stored)]
        else:
            members = [self._constructor(struct.name, stored, constructor_init, False)]
        members.extend(self._init_method(struct.name, init) for init in extra_inits)
        members.extend(self._members(struct.name, struct.properties, struct.methods))
        members.append(self._block("copy()", f"return Object.assign(Object.create({struct.name}.prototype), this);", 1))
        return self._type_text(f"class {struct.name}", members, struct.name, struct.properties)

    def _split_initializers(self, inits: list[InitializerDecl]) -> tuple[InitializerDecl | None, list[InitializerDecl]]:
        if not inits:
            return None, []
        if self._module.dialect == Dialect.OBJC:
            # Only a parameterless `init` folds into the constructor
            primary = next((i for i in inits if i.name == "init" and not i.parameters), None)
        else:
            primary = next((i for i in inits if not i.is_convenience), inits[0])
        return primary, [i for i in inits if i is not primary]

    def _type_text(self, header: str, members: list[str], type_name: str, properties: list[PropertyDecl]) -> str:
        text = f"{header} {{\n" + "\n\n".join(m for m in members if m) + "\n}"
        statics = []
        for prop in properties:
            if prop.is_static and not prop.is_computed:
                ctx = self._context(type_name, is_static=True)
                value = self._expression(prop.initial_value, ctx) or default_value(prop.type_name, self._module.dialect)
                statics.append(f"{type_name}.{prop.name} = {value};")
        return text + ("\n" + "\n".join(statics) if statics else "")

    def _defaults(self, type_name: str, stored: list[PropertyDecl]) -> list[str]:
        ctx = self._context(type_name, in_initializer=True)
        lines = []
        for prop in stored:
            value = self._expression(prop.initial_value, ctx) or default_value(prop.type_name, self._module.dialect)
            lines.append(f"this.{prop.name} = {value};")
        return lines

    def _constructor(self, type_name: str, stored: list[PropertyDecl], init: InitializerDecl | None, derived: bool) -> str:
        params = init.parameters if init else []
        body = ""
        if init is not None:
            ctx = self._context(type_name, params, in_initializer=True)
            body = self._body(re.sub(r"\bsuper\.init\s*\(", "super(", init.body), ctx)
        # super() must run before any `this` access
        body_lines = body.split("\n")
        super_calls = [i for i, l in enumerate(body_lines) if re.match(r"^\s*super\s*\(", l)]
        lines = []
        if derived:
            lines.append(body_lines[super_calls[0]].strip() if super_calls else "super();")
        body = "\n".join(l for i, l in enumerate(body_lines) if i not in super_calls)
        lines.extend(self._defaults(type_name, stored))
        if body.strip():
            lines.append(body)
        ctx = self._context(type_name, params)
        return self._block(f"constructor({self._params(params, ctx)})", "\n".join(lines), 1)

    def _memberwise_constructor(self, type_name: str, stored: list[PropertyDecl]) -> str:
        ctx = self._context(type_name, in_initializer=True)
        params = []
        lines = []
        for prop in stored:
            value = self._expression(prop.initial_value, ctx)
            if prop.is_constant and value:
                lines.append(f"this.{prop.name} = {value};")
                continue
            params.append(prop.name)
            if value:
                lines.append(f"this.{prop.name} = {prop.name} === undefined ? {value} : {prop.name};")
            else:
                lines.append(f"this.{prop.name} = {prop.name};")
        return self._block(f"constructor({', '.join(params)})", "\n".join(lines), 1)

    def _init_method(self, type_name: str, init: InitializerDecl) -> str:
        if init.name != "init":
            name = init.name
        else:
            name = "init" + "".join((p.label or p.name)[:1].upper() + (p.label or p.name)[1:] for p in init.parameters)
        ctx = self._context(type_name, init.parameters, in_initializer=True)
        body = self._body(init.body, ctx)
        if not re.search(r"\breturn\s+this\s*;?\s*$", body.strip()):
            body = (body + "\n" if body else "") + "return this;"
        return self._block(f"{name}({self._params(init.parameters, ctx)})", body, 1)

    def _members(self, type_name: str, properties: list[PropertyDecl], methods: list[MethodDecl]) -> list[str]:
        out = []
        for prop in properties:
            if prop.is_computed:
                out.extend(self._accessors(type_name, prop))
        for method in methods:
            if method.is_declaration:
                continue
            ctx = self._context(type_name, method.parameters, is_static=method.is_static)
            body = self._body(method.body, ctx, _has_return_value(method.return_type))
            prefix = "static " if method.is_static else ""
            out.append(self._block(f"{prefix}{method.name}({self._params(method.parameters, ctx)})", body, 1))
        return out

    def _accessors(self, type_name: str, prop: PropertyDecl) -> list[str]:
        prefix = "static " if prop.is_static else ""
        out = []
        if prop.getter:
            ctx = self._context(type_name, is_static=prop.is_static)
            out.append(self._block(f"{prefix}get {prop.name}()", self._body(prop.getter, ctx, True), 1))
        if prop.setter:
            ctx = self._context(type_name, is_static=prop.is_static, extra_params=(prop.setter_param,))
            out.append(self._block(f"{prefix}set {prop.name}({prop.setter_param})", self._body(prop.setter, ctx), 1))
        return out

    # --- Enums, protocols, extensions ---

    def _enum(self, enum: EnumDecl) -> str:
        entries = []
        values = []
        next_int = 0
        for case in enum.cases:
            if case.raw_value:
                ctx = self._context(enum.name, is_static=True)
                value = self._expression(case.raw_value, ctx)
                if re.fullmatch(r"-?\d+", value):
                    next_int = int(value) + 1
            elif enum.raw_type in ("Int", "UInt"):
                value = str(next_int)
                next_int += 1
            else:
                value = json.dumps(case.name)
            entries.append(f"{case.name}: {value}")
            values.append(value)
        entries.append(f"allCases: [{', '.join(values)}]")
        body = ",\n".join(entries)
        methods = [self._block("fromRawValue(value)", "return this.allCases.indexOf(value) === -1 ? null : value;", 1)]
        for method in enum.methods:
            if method.is_declaration:
                continue
            # Case values carry no methods; instance methods take the value as a leading argument
            ctx = self._context(enum.name, method.parameters, is_static=True, extra_params=("value",))
            source = method.body if method.is_static else re.sub(r"\bself\b", "value", method.body)
            rewritten = self._body(source, ctx, _has_return_value(method.return_type))
            params = self._params(method.parameters, ctx)
            if not method.is_static:
                params = "value" + (f", {params}" if params else "")
            methods.append(self._block(f"{method.name}({params})", rewritten, 1))
        pad = self.options.indent
        return (
            f"const {enum.name} = {{\n"
            + "\n".join(f"{pad}{line}" for line in body.split("\n"))
            + ",\n"
            + ",\n".join(methods)
            + "\n};"
        )

    def _protocol(self, proto: ProtocolDecl) -> str:
        methods = [
            self._block(
                f"{req.name}()",
                f"throw new Error({json.dumps(f'{proto.name}.{req.name} is not implemented')});",
                1,
            )
            for req in proto.requirements
        ]
        if not methods:
            return f"const {proto.name}Protocol = {{}};"
        return f"const {proto.name}Protocol = {{\n" + ",\n".join(methods) + "\n};"

    def _extension(self, ext: ExtensionDecl) -> str:
        target = ext.extended_type
        if target not in self._module.type_names():
            builtin = _BUILTIN_TYPES.get(target)
            if builtin is None:
                self.warnings.append(f"extension target '{target}' is not defined in this unit")
            target = builtin or target
        out = []
        for method in ext.methods:
            if method.is_declaration:
                continue
            ctx = self._context(ext.extended_type, method.parameters, is_static=method.is_static)
            body = self._body(method.body, ctx, _has_return_value(method.return_type))
            owner = target if method.is_static else f"{target}.prototype"
            block = self._block(f"{owner}.{method.name} = function ({self._params(method.parameters, ctx)})", body, 0)
            out.append(block + ";")
        for prop in ext.properties:
            if prop.is_computed:
                out.append(self._defined_property(target, ext.extended_type, prop))
            elif prop.is_static:
                ctx = self._context(ext.extended_type, is_static=True)
                value = self._expression(prop.initial_value, ctx) or default_value(prop.type_name, self._module.dialect)
                out.append(f"{target}.{prop.name} = {value};")
            else:
                self.warnings.append(f"stored property '{prop.name}' in extension of '{ext.extended_type}' ignored")
        return "\n\n".join(out)

    def _defined_property(self, target: str, type_name: str, prop: PropertyDecl) -> str:
        owner = target if prop.is_static else f"{target}.prototype"
        parts = []
        if prop.getter:
            ctx = self._context(type_name, is_static=prop.is_static)
            parts.append(self._block("get: function ()", self._body(prop.getter, ctx, True), 1))
        if prop.setter:
            ctx = self._context(type_name, is_static=prop.is_static, extra_params=(prop.setter_param,))
            parts.append(self._block(f"set: function ({prop.setter_param})", self._body(prop.setter, ctx), 1))
        parts.append(f"{self.options.indent}configurable: true")
        return f"Object.defineProperty({owner}, {json.dumps(prop.name)}, {{\n" + ",\n".join(parts) + "\n});"

    # --- Free declarations ---

    def _function(self, fn: FunctionDecl) -> str:
        ctx = self._context(params=fn.parameters)
        body = self._body(fn.body, ctx, _has_return_value(fn.return_type))
        return self._block(f"function {fn.name}({self._params(fn.parameters, ctx)})", body, 0)

    def _variable(self, var: VariableDecl) -> str:
        value = self._expression(var.initial_value, self._context())
        if not value:
            return f"let {var.name};"
        keyword = "const" if var.is_constant else "let"
        return f"{keyword} {var.name} = {value};"

    def _unknown(self, unknown: UnknownDecl) -> str:
        policy = self.options.unknown_policy
        if policy == "omit":
            return ""
        if policy == "passthrough" and unknown.reason == "top-level statement":
            return reindent(self._pipeline.rewrite(unknown.text, self._context()), 0, self.options.indent)
        return "\n".join(f"// [unparsed] {line}" for line in unknown.text.split("\n"))


def _inheritance_order(classes: list[ClassDecl]) -> list[ClassDecl]:
    """Classes with in-unit superclasses after their parents; otherwise source order."""
    by_name = {c.name: c for c in classes}
    ordered: list[ClassDecl] = []
    seen: set[str] = set()

    def _visit(cls: ClassDecl, trail: set[str]) -> None:
        if cls.name in seen or cls.name in trail:
            return
        parent = by_name.get(cls.superclass)
        if parent is not None:
            _visit(parent, trail | {cls.name})
        seen.add(cls.name)
        ordered.append(cls)

    for cls in classes:
        _visit(cls, set())
    return ordered


def generate(module: IRModule, options: GeneratorOptions | None = None) -> str:
    """Render ``module`` as JavaScript."""
    return CodeGenerator(options).generate(module)
