"""Format bridge: engine instruction listings -> instruction IR -> JavaScript."""

from jitphone.bridge.emitter import emit
from jitphone.bridge.registry import FormatRegistry, convert, default_registry, lower

__all__ = [
    "FormatRegistry",
    "convert",
    "default_registry",
    "emit",
    "lower",
]
