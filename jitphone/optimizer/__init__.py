"""Simulated JIT: leveled, idempotent rewrite passes over generated code."""

from jitphone.optimizer.passes import HOT_LOOP_MARKER, PASSES, strip_hints
from jitphone.optimizer.pipeline import (
    OptimizationArtifact,
    OptimizationPipeline,
    optimize,
    passes_for_level,
    validate_syntax,
)

__all__ = [
    "HOT_LOOP_MARKER",
    "PASSES",
    "OptimizationArtifact",
    "OptimizationPipeline",
    "optimize",
    "passes_for_level",
    "strip_hints",
    "validate_syntax",
]
