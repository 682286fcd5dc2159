"""Pydantic models for API request/response serialization.

These models mirror the jitphone records and provide JSON validation and
serialization for the FastAPI endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------------


class CompileRequestBody(BaseModel):
    """Mirrors jitphone.models.records.CompileRequest."""

    source: str
    dialect: str
    optimization_level: int = Field(default=2, ge=0, le=3)
    target_profile: str = ""
    enable_polyfills: bool = True
    optimize_for_size: bool = False
    preserve_semantics: bool = True


class CompatibilityVerdictResponse(BaseModel):
    compatible: bool
    issues: list[str] = Field(default_factory=list)
    confidence: float = 1.0
    unguarded_identifiers: list[str] = Field(default_factory=list)


class CompileResponseBody(BaseModel):
    """Mirrors jitphone.models.records.CompileResponse."""

    success: bool
    generated_code: str = ""
    applied_optimizations: list[str] = Field(default_factory=list)
    applied_adaptations: list[str] = Field(default_factory=list)
    compatibility_verdict: CompatibilityVerdictResponse
    metadata: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Convert
# ---------------------------------------------------------------------------


class ConvertRequestBody(BaseModel):
    """Mirrors jitphone.models.records.ConvertRequest."""

    instructions: str
    source_format: str
    target_profile: str = ""
    optimization_level: int = Field(default=0, ge=0, le=3)
    adapt: bool = False


class LoweredFunctionResponse(BaseModel):
    name: str
    params: list[str] = Field(default_factory=list)
    instructions: int = 0
    unknown_instructions: int = 0
    optimization_tags: list[str] = Field(default_factory=list)


class ConvertResponseBody(BaseModel):
    """Mirrors jitphone.models.records.ConvertResponse."""

    success: bool
    generated_code: str = ""
    functions: list[LoweredFunctionResponse] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Execute
# ---------------------------------------------------------------------------


class ExecuteRequestBody(BaseModel):
    code: str
    input: Any = None
    timeout: Optional[float] = Field(default=None, gt=0)
    memory_limit_mb: Optional[int] = Field(default=None, gt=0)


class ExecutionErrorResponse(BaseModel):
    kind: str
    message: str


class ExecuteResponseBody(BaseModel):
    """Mirrors jitphone.sandbox.executor.ExecutionResult."""

    success: bool
    result: Any = None
    error: Optional[ExecutionErrorResponse] = None
    logs: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0


# ---------------------------------------------------------------------------
# Analyze
# ---------------------------------------------------------------------------


class AnalyzeRequestBody(BaseModel):
    code: str
    target_profile: str = ""


class AnalyzeResponseBody(BaseModel):
    """Mirrors jitphone.analysis.code_analysis.CodeAnalysis."""

    complexity: dict[str, Any]
    compatibility: dict[str, Any]
    performance: dict[str, Any]
    security: dict[str, Any]
    suggestions: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class FormatResponse(BaseModel):
    tag: str
    description: str = ""
    implemented: bool = True


class FormatsResponse(BaseModel):
    dialects: list[str] = Field(default_factory=list)
    instruction_formats: list[FormatResponse] = Field(default_factory=list)


class ProfileResponse(BaseModel):
    """Mirrors jitphone.platform.profiles.Profile."""

    name: str
    harness: str
    bridge_api: str = ""
    description: str = ""
    aliases: list[str] = Field(default_factory=list)
    result_envelope: list[str] = Field(default_factory=list)
    disallowed_identifiers: list[str] = Field(default_factory=list)
    missing_features: list[str] = Field(default_factory=list)
    platform_overhead: float = 1.0
    max_payload_size: int = 0
    max_execution_time: float = 0.0
    requirements: dict[str, Any] = Field(default_factory=dict)


class CacheStatsResponse(BaseModel):
    name: str
    hits: int = 0
    misses: int = 0
    size: int = 0
    hit_rate: float = 0.0


class StatsResponse(BaseModel):
    caches: list[CacheStatsResponse] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    kind: str
    message: str
