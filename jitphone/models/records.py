"""Request and response records exchanged with the transformation service.

Requests are frozen: the service fingerprints them and caches the result, so
they must not change after submission.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CompileRequest:
    source: str
    dialect: str
    optimization_level: int = 2
    target_profile: str = ""
    enable_polyfills: bool = True
    optimize_for_size: bool = False
    preserve_semantics: bool = True  # Informational; nothing checks it

    def options(self) -> dict:
        """Everything except the source, for fingerprinting."""
        return {
            "dialect": self.dialect,
            "optimization_level": self.optimization_level,
            "target_profile": self.target_profile,
            "enable_polyfills": self.enable_polyfills,
            "optimize_for_size": self.optimize_for_size,
            "preserve_semantics": self.preserve_semantics,
        }


@dataclass
class CompilationArtifact:
    """Cached outcome of one compile, keyed by fingerprint."""

    fingerprint: str
    generated_code: str
    applied_optimizations: list[str] = field(default_factory=list)
    applied_adaptations: list[str] = field(default_factory=list)
    compatibility_verdict: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)
    stats: dict = field(default_factory=dict)


@dataclass
class CompileResponse:
    success: bool
    generated_code: str = ""
    applied_optimizations: list[str] = field(default_factory=list)
    applied_adaptations: list[str] = field(default_factory=list)
    compatibility_verdict: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def cache_hit(self) -> bool:
        return bool(self.metadata.get("cache_hit"))

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "generated_code": self.generated_code,
            "applied_optimizations": list(self.applied_optimizations),
            "applied_adaptations": list(self.applied_adaptations),
            "compatibility_verdict": dict(self.compatibility_verdict),
            "metadata": dict(self.metadata),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ConvertRequest:
    instructions: str
    source_format: str
    target_profile: str = ""
    optimization_level: int = 0
    adapt: bool = False


@dataclass
class ConvertResponse:
    success: bool
    generated_code: str = ""
    functions: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "generated_code": self.generated_code,
            "functions": list(self.functions),
            "metadata": dict(self.metadata),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ExecuteRequest:
    code: str
    input: object = None
    timeout: float | None = None
    memory_limit_mb: int | None = None


@dataclass(frozen=True)
class AnalyzeRequest:
    code: str
    target_profile: str = ""
