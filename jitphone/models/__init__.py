"""Records passed between the service and its callers."""

from jitphone.models.records import (
    AnalyzeRequest,
    CompilationArtifact,
    CompileRequest,
    CompileResponse,
    ConvertRequest,
    ConvertResponse,
    ExecuteRequest,
)

__all__ = [
    "AnalyzeRequest",
    "CompilationArtifact",
    "CompileRequest",
    "CompileResponse",
    "ConvertRequest",
    "ConvertResponse",
    "ExecuteRequest",
]
