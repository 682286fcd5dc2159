"""Sandboxed execution and differential checks."""

from jitphone.sandbox.executor import ExecutionResult, SandboxExecutor, execute
from jitphone.sandbox.oracle import DifferentialOracle, OracleReport, values_match

__all__ = [
    "DifferentialOracle",
    "ExecutionResult",
    "OracleReport",
    "SandboxExecutor",
    "execute",
    "values_match",
]
