"""Code generation from the declaration IR.

The generator maps IR nodes to JavaScript constructs and runs member bodies
through the dialect's ordered rewrite pipeline.
"""

from jitphone.generators.code_generator import CodeGenerator, GeneratorOptions, generate

__all__ = [
    "CodeGenerator",
    "GeneratorOptions",
    "generate",
]
