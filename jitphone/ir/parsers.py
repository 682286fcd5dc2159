"""Dialect tag resolution and parser dispatch."""

from __future__ import annotations

from jitphone.ir.models import Dialect, IRModule
from jitphone.ir.objc_parser import parse_objc_source
from jitphone.ir.swift_parser import parse_swift_source

DIALECT_ALIASES = {
    "objc": Dialect.OBJC,
    "objectivec": Dialect.OBJC,
    "objective-c": Dialect.OBJC,
    "swift": Dialect.SWIFT,
    "javascript": Dialect.JAVASCRIPT,
    "js": Dialect.JAVASCRIPT,
}

_PARSERS = {
    Dialect.OBJC: parse_objc_source,
    Dialect.SWIFT: parse_swift_source,
}


def resolve_dialect(tag: str) -> Dialect | None:
    """Map a request tag (case-insensitive) to a dialect, or None."""
    return DIALECT_ALIASES.get(tag.strip().lower())


def parse_source(source: str, dialect: Dialect) -> IRModule:
    """Parse ``source`` with the parser registered for ``dialect``."""
    parser = _PARSERS.get(dialect)
    if parser is None:
        raise ValueError(f"No parser for dialect '{dialect.value}'")
    return parser(source)
