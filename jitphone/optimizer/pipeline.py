"""Leveled optimization pipeline.

Levels are cumulative: level 1 enables inlining and constant folding, level 2
adds dead-code elimination and loop recognition, level 3 adds vectorization.
Input must parse as JavaScript before any pass runs. Rewritten code is not
checked for behavioural equivalence with the input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import esprima
from esprima.error_handler import Error as EsprimaError

from jitphone.cache import ContentCache, fingerprint, make_cache
from jitphone.errors import CodeSyntaxError
from jitphone.optimizer.passes import HOT_LOOP_MARKER, PASSES, OptimizationPass, loop_recognition, strip_hints

logger = logging.getLogger(__name__)

MAX_LEVEL = 3
MAX_ROUNDS = 8


@dataclass
class OptimizationArtifact:
    """Result of one optimization run."""

    code: str
    level: int
    applied_passes: list[str] = field(default_factory=list)  # Enabled at this level
    changed_passes: list[str] = field(default_factory=list)  # Actually modified the code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "level": self.level,
            "applied_passes": list(self.applied_passes),
            "changed_passes": list(self.changed_passes),
        }


def passes_for_level(level: int) -> list[OptimizationPass]:
    if not 0 <= level <= MAX_LEVEL:
        raise ValueError(f"Optimization level must be between 0 and {MAX_LEVEL}, got {level}")
    return [p for p in PASSES if p.level <= level]


def hints_header(level: int) -> str:
    return f"/* @jit:hints level={level} */\n"


def validate_syntax(code: str) -> None:
    """Raise :class:`CodeSyntaxError` unless ``code`` parses as a script."""
    try:
        esprima.parseScript(code)
    except EsprimaError as exc:
        line = getattr(exc, "lineNumber", 0) or 0
        column = getattr(exc, "column", 0) or 0
        description = getattr(exc, "description", None) or str(exc)
        raise CodeSyntaxError(f"Invalid JavaScript at line {line}: {description}", line, column) from exc


class OptimizationPipeline:
    """Runs the passes for a level, caching results by code fingerprint."""

    def __init__(self, cache: ContentCache | None = None):
        self.cache = cache or make_cache("optimize")

    def optimize(self, code: str, level: int) -> OptimizationArtifact:
        artifact, _ = self.optimize_with_status(code, level)
        return artifact

    def optimize_with_status(self, code: str, level: int) -> tuple[OptimizationArtifact, bool]:
        """Like :meth:`optimize` but also reports whether the cache answered."""
        passes = passes_for_level(level)
        key = fingerprint(code, {"stage": "optimize", "level": level})
        return self.cache.get_or_compute(key, lambda: self._run(code, level, passes))

    def _run(self, code: str, level: int, passes: list[OptimizationPass]) -> OptimizationArtifact:
        validate_syntax(code)
        names = [p.name for p in passes]
        if level == 0:
            return OptimizationArtifact(code=code, level=0)

        text = strip_hints(code)
        changed: set[str] = set()
        # Hot-loop markers go in last so no other pass ever sees them
        rewriting = [p for p in passes if p.apply is not loop_recognition]
        for _ in range(MAX_ROUNDS):
            before = text
            for p in rewriting:
                result = p.apply(text)
                if result != text:
                    changed.add(p.name)
                    text = result
            if text == before:
                break
        else:
            logger.warning("Optimization did not settle after %d rounds", MAX_ROUNDS)

        if any(p.apply is loop_recognition for p in passes):
            marked = loop_recognition(text)
            # Markers already present in the input are not a change
            if marked.count(HOT_LOOP_MARKER) > code.count(HOT_LOOP_MARKER):
                changed.add("loop-recognition")
            text = marked

        logger.debug("Optimized %d chars at level %d, changed: %s", len(code), level, sorted(changed))
        return OptimizationArtifact(
            code=hints_header(level) + text,
            level=level,
            applied_passes=names,
            changed_passes=[n for n in names if n in changed],
        )


_default_pipeline: OptimizationPipeline | None = None


def default_pipeline() -> OptimizationPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = OptimizationPipeline()
    return _default_pipeline


def optimize(code: str, level: int) -> OptimizationArtifact:
    """Optimize ``code`` with the process-wide pipeline and cache."""
    return default_pipeline().optimize(code, level)
