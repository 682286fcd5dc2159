"""Format registry for the instruction bridge.

Maps a format tag to its lowering function. Some tags are registered as
stubs: they are accepted and lower to no functions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from jitphone.bridge.emitter import emit
from jitphone.bridge.lowering import lower_javap, lower_llvm, lower_smali, lower_stub, lower_wasm
from jitphone.errors import UnsupportedFormatError
from jitphone.ir.models import FunctionIR

logger = logging.getLogger(__name__)

LoweringFunction = Callable[[str, dict], list[FunctionIR]]


@dataclass
class FormatInfo:
    tag: str
    description: str
    lower: LoweringFunction
    implemented: bool = True

    def to_dict(self) -> dict:
        return {"tag": self.tag, "description": self.description, "implemented": self.implemented}


class FormatRegistry:
    """Format tag -> lowering function."""

    def __init__(self):
        self._formats: dict[str, FormatInfo] = {}

    def register(self, tag: str, lower: LoweringFunction, description: str = "", implemented: bool = True) -> None:
        self._formats[tag] = FormatInfo(tag, description, lower, implemented)

    def get(self, tag: str) -> FormatInfo:
        if tag not in self._formats:
            raise UnsupportedFormatError(tag, list(self._formats))
        return self._formats[tag]

    def tags(self) -> list[str]:
        return list(self._formats)

    def formats(self) -> list[FormatInfo]:
        return list(self._formats.values())

    def __contains__(self, tag: str) -> bool:
        return tag in self._formats

    def lower(self, instructions: str, format_tag: str, options: dict | None = None) -> list[FunctionIR]:
        info = self.get(format_tag)
        functions = info.lower(instructions, options or {})
        logger.debug("Lowered %d functions from %s", len(functions), format_tag)
        return functions


def default_registry() -> FormatRegistry:
    registry = FormatRegistry()
    registry.register("ios-llvm", lower_llvm, "LLVM IR text (define/load/store/arith/call/br/ret)")
    registry.register("android-art", lower_smali, "Dalvik/ART smali listings (.method ... .end method)")
    registry.register("wasm", lower_wasm, "WebAssembly text format, flat or folded")
    registry.register("java-hotspot", lower_javap, "JVM bytecode as printed by javap -c")
    for tag, description in (
        ("dotnet-clr", ".NET CIL"),
        ("v8-bytecode", "V8 Ignition bytecode"),
        ("spidermonkey", "SpiderMonkey bytecode"),
        ("chakra", "Chakra bytecode"),
        ("assembly", "Native assembly"),
    ):
        registry.register(tag, lower_stub, description, implemented=False)
    return registry


_registry = default_registry()


def lower(instructions: str, format_tag: str, options: dict | None = None) -> list[FunctionIR]:
    """Lower ``instructions`` with the lowering registered for ``format_tag``."""
    return _registry.lower(instructions, format_tag, options)


def convert(instructions: str, format_tag: str, options: dict | None = None) -> str:
    """Lower and emit in one step."""
    return emit(lower(instructions, format_tag, options), format_tag)
