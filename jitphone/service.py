"""TransformationService -- request in, response out.

The service owns the caches and the stage objects, checks request limits
before any work starts, and turns stage outputs into response records. The
CLI and the HTTP app only talk to this class.
"""

from __future__ import annotations

import logging
import time

from jitphone.analysis.code_analysis import CodeAnalysis, analyze_code
from jitphone.bridge.emitter import emit
from jitphone.bridge.registry import FormatRegistry, default_registry as default_formats
from jitphone.cache import fingerprint, make_cache
from jitphone.config import Settings, load_settings
from jitphone.errors import SizeLimitError, UnsupportedFormatError
from jitphone.generators.code_generator import generate
from jitphone.ir.models import Dialect, FunctionIR, IRModule
from jitphone.ir.parsers import DIALECT_ALIASES, parse_source, resolve_dialect
from jitphone.models.records import (
    AnalyzeRequest,
    CompilationArtifact,
    CompileRequest,
    CompileResponse,
    ConvertRequest,
    ConvertResponse,
    ExecuteRequest,
)
from jitphone.optimizer.pipeline import MAX_LEVEL, OptimizationPipeline
from jitphone.platform.adapter import AdaptationOptions, PlatformAdapter
from jitphone.platform.profiles import Profile, ProfileRegistry, default_registry as default_profiles
from jitphone.sandbox.executor import ExecutionResult, SandboxExecutor

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


def _function_summary(func: FunctionIR) -> dict:
    return {
        "name": func.name,
        "params": list(func.params),
        "instructions": len(func.instructions),
        "unknown_instructions": func.unknown_count,
        "optimization_tags": list(func.optimization_tags),
    }


class TransformationService:
    """Orchestrates parse -> generate -> optimize -> adapt, plus the side operations."""

    def __init__(
        self,
        settings: Settings | None = None,
        profiles: ProfileRegistry | None = None,
        formats: FormatRegistry | None = None,
    ):
        self.settings = settings or load_settings()
        self.profiles = profiles or default_profiles()
        self.formats = formats or default_formats()

        s = self.settings
        self.compile_cache = make_cache("compile", s.cache_max_entries, s.cache_ttl_seconds)
        self.pipeline = OptimizationPipeline(make_cache("optimize", s.cache_max_entries, s.cache_ttl_seconds))
        self.adapter = PlatformAdapter(self.profiles, make_cache("adapt", s.cache_max_entries, s.cache_ttl_seconds))
        self.executor = SandboxExecutor(s.execution_timeout, s.max_execution_timeout, s.memory_limit_mb)

    # --- Validation ---

    def check_size(self, text: str) -> None:
        if len(text) > self.settings.max_input_size:
            raise SizeLimitError(len(text), self.settings.max_input_size)

    def _level(self, level: int) -> int:
        if not 0 <= level <= MAX_LEVEL:
            raise ValueError(f"optimization_level must be between 0 and {MAX_LEVEL}, got {level}")
        return level

    def profile(self, name: str = "") -> Profile:
        return self.profiles.get(name or self.settings.default_profile)

    def _supported_tags(self) -> list[str]:
        return sorted(DIALECT_ALIASES) + self.formats.tags()

    # --- Compile ---

    def parse(self, source: str, dialect: str) -> IRModule:
        """Parse source text into the IR module (no generation)."""
        self.check_size(source)
        resolved = resolve_dialect(dialect)
        if resolved is None or resolved == Dialect.JAVASCRIPT:
            raise UnsupportedFormatError(dialect, [t for t in DIALECT_ALIASES if DIALECT_ALIASES[t] != Dialect.JAVASCRIPT])
        return parse_source(source, resolved)

    def compile(self, request: CompileRequest) -> CompileResponse:
        self.check_size(request.source)
        self._level(request.optimization_level)
        profile = self.profile(request.target_profile)
        dialect = resolve_dialect(request.dialect)
        if dialect is None and request.dialect not in self.formats:
            raise UnsupportedFormatError(request.dialect, self._supported_tags())

        options = request.options()
        options["target_profile"] = profile.name
        key = fingerprint(request.source, options)
        artifact, hit = self.compile_cache.get_or_compute(
            key, lambda: self._compile(request, key, dialect, profile)
        )
        logger.info(
            "compile %s -> %s (%s, level %d)",
            request.dialect,
            profile.name,
            "cache hit" if hit else "compiled",
            request.optimization_level,
        )
        return CompileResponse(
            success=True,
            generated_code=artifact.generated_code,
            applied_optimizations=list(artifact.applied_optimizations),
            applied_adaptations=list(artifact.applied_adaptations),
            compatibility_verdict=dict(artifact.compatibility_verdict),
            metadata={
                "original_size": len(request.source),
                "generated_size": len(artifact.generated_code),
                "timings": dict(artifact.timings),
                "cache_hit": hit,
                "fingerprint": artifact.fingerprint,
                "dialect": request.dialect,
                "target_profile": profile.name,
                "optimization_level": request.optimization_level,
                **artifact.stats,
            },
            warnings=list(artifact.warnings),
        )

    def _compile(self, request: CompileRequest, key: str, dialect: Dialect | None, profile: Profile) -> CompilationArtifact:
        timings: dict[str, float] = {}
        warnings: list[str] = []
        stats: dict = {}

        start = time.perf_counter()
        if dialect is None:
            functions = self.formats.lower(request.source, request.dialect)
            code = emit(functions, request.dialect)
            stats["functions"] = [_function_summary(f) for f in functions]
            warnings.extend(self._lowering_warnings(request.dialect, functions))
            timings["lower"] = _elapsed_ms(start)
        elif dialect == Dialect.JAVASCRIPT:
            code = request.source
        else:
            module = parse_source(request.source, dialect)
            timings["parse"] = _elapsed_ms(start)
            warnings.extend(str(w) for w in module.warnings)
            stats["ir"] = module.summary()
            start = time.perf_counter()
            code = generate(module)
            timings["generate"] = _elapsed_ms(start)

        start = time.perf_counter()
        optimized = self.pipeline.optimize(code, request.optimization_level)
        timings["optimize"] = _elapsed_ms(start)

        start = time.perf_counter()
        adaptation = self.adapter.adapt(
            optimized.code,
            profile,
            AdaptationOptions(
                enable_polyfills=request.enable_polyfills,
                optimize_for_size=request.optimize_for_size,
                optimization_level=request.optimization_level,
            ),
        )
        timings["adapt"] = _elapsed_ms(start)
        warnings.extend(adaptation.warnings)

        stats.update(
            {
                "enabled_passes": list(optimized.applied_passes),
                "performance_impact": adaptation.performance_impact,
                "requirements": dict(adaptation.requirements),
                "truncated": adaptation.truncated,
            }
        )
        return CompilationArtifact(
            fingerprint=key,
            generated_code=adaptation.code,
            applied_optimizations=list(optimized.changed_passes),
            applied_adaptations=list(adaptation.applied_adaptations),
            compatibility_verdict=adaptation.verdict.to_dict(),
            warnings=warnings,
            timings=timings,
            stats=stats,
        )

    # --- Convert ---

    def _lowering_warnings(self, format_tag: str, functions: list[FunctionIR]) -> list[str]:
        warnings = []
        if not self.formats.get(format_tag).implemented:
            warnings.append(f"Format '{format_tag}' is registered but has no lowering; nothing was converted")
        for func in functions:
            if func.unknown_count:
                warnings.append(f"{func.name}: {func.unknown_count} unsupported instruction(s)")
        return warnings

    def lower(self, instructions: str, format_tag: str) -> list[FunctionIR]:
        self.check_size(instructions)
        return self.formats.lower(instructions, format_tag)

    def convert(self, request: ConvertRequest) -> ConvertResponse:
        self.check_size(request.instructions)
        self._level(request.optimization_level)
        timings: dict[str, float] = {}

        start = time.perf_counter()
        functions = self.formats.lower(request.instructions, request.source_format)
        code = emit(functions, request.source_format)
        timings["lower"] = _elapsed_ms(start)
        warnings = self._lowering_warnings(request.source_format, functions)
        metadata: dict = {"source_format": request.source_format, "original_size": len(request.instructions)}

        if request.optimization_level:
            start = time.perf_counter()
            optimized = self.pipeline.optimize(code, request.optimization_level)
            code = optimized.code
            metadata["applied_optimizations"] = list(optimized.changed_passes)
            timings["optimize"] = _elapsed_ms(start)

        if request.adapt:
            start = time.perf_counter()
            profile = self.profile(request.target_profile)
            adaptation = self.adapter.adapt(code, profile, AdaptationOptions(optimization_level=request.optimization_level))
            code = adaptation.code
            metadata["target_profile"] = profile.name
            metadata["applied_adaptations"] = list(adaptation.applied_adaptations)
            metadata["compatibility_verdict"] = adaptation.verdict.to_dict()
            warnings.extend(adaptation.warnings)
            timings["adapt"] = _elapsed_ms(start)

        metadata["generated_size"] = len(code)
        metadata["timings"] = timings
        logger.info("convert %s: %d function(s)", request.source_format, len(functions))
        return ConvertResponse(
            success=True,
            generated_code=code,
            functions=[_function_summary(f) for f in functions],
            metadata=metadata,
            warnings=warnings,
        )

    # --- Execute / analyze ---

    def execute(self, request: ExecuteRequest) -> ExecutionResult:
        self.check_size(request.code)
        return self.executor.execute(request.code, request.input, request.timeout, request.memory_limit_mb)

    def analyze(self, request: AnalyzeRequest) -> CodeAnalysis:
        self.check_size(request.code)
        return analyze_code(request.code, self.profile(request.target_profile), self.profiles)

    # --- Introspection ---

    def formats_info(self) -> dict:
        return {
            "dialects": sorted(DIALECT_ALIASES),
            "instruction_formats": [f.to_dict() for f in self.formats.formats()],
        }

    def profiles_info(self) -> list[dict]:
        return [p.to_dict() for p in self.profiles.all()]

    def stats(self) -> dict:
        return {
            "caches": [
                self.compile_cache.stats().to_dict(),
                self.pipeline.cache.stats().to_dict(),
                self.adapter.cache.stats().to_dict(),
            ],
            "settings": self.settings.to_dict(),
        }

    def clear_caches(self) -> None:
        self.compile_cache.clear()
        self.pipeline.cache.clear()
        self.adapter.cache.clear()
        logger.info("Cleared compile, optimize and adapt caches")
