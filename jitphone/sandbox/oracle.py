"""Differential conformance checks for generated code.

The oracle runs generated code over sampled inputs and compares each result
with a reference: either a Python callable or another piece of JavaScript
evaluated the same way. Numbers match within a relative tolerance. The report
lists divergences; deciding whether they are acceptable is left to the caller.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from jitphone.errors import ExecutionError
from jitphone.sandbox.executor import SandboxExecutor

DEFAULT_TOLERANCE = 1e-9

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


def values_match(expected, actual, rel_tol: float = DEFAULT_TOLERANCE) -> bool:
    """Structural equality with tolerant float comparison."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return expected is actual
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return math.isclose(expected, actual, rel_tol=rel_tol, abs_tol=0.0) or expected == actual
    if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
        return len(expected) == len(actual) and all(
            values_match(e, a, rel_tol) for e, a in zip(expected, actual)
        )
    if isinstance(expected, dict) and isinstance(actual, dict):
        return expected.keys() == actual.keys() and all(
            values_match(expected[k], actual[k], rel_tol) for k in expected
        )
    return expected == actual


def probe_script(code: str, entry: str) -> str:
    """Append a call of ``entry`` to ``code``.

    ``entry`` is either a function name, called with the input list as its
    arguments, or an expression over ``input``.
    """
    if _IDENTIFIER.match(entry):
        call = f"return {entry}.apply(null, input);"
    else:
        call = f"return ({entry});"
    return f"{code}\n{call}"


@dataclass
class Divergence:
    input: list
    expected: object = None
    actual: object = None
    error: str = ""

    def to_dict(self) -> dict:
        return {"input": self.input, "expected": self.expected, "actual": self.actual, "error": self.error}


@dataclass
class OracleReport:
    entry: str
    total: int = 0
    matches: int = 0
    divergences: list[Divergence] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.divergences

    def summary(self) -> str:
        return f"{self.entry}: {self.matches}/{self.total} inputs agree"

    def to_dict(self) -> dict:
        return {
            "entry": self.entry,
            "total": self.total,
            "matches": self.matches,
            "consistent": self.consistent,
            "divergences": [d.to_dict() for d in self.divergences],
        }


class DifferentialOracle:
    def __init__(self, executor: SandboxExecutor | None = None, rel_tol: float = DEFAULT_TOLERANCE):
        self.executor = executor or SandboxExecutor()
        self.rel_tol = rel_tol

    def _reference_value(self, reference, entry: str, args: list):
        if callable(reference):
            return reference(*args)
        value, _ = self.executor.run(probe_script(reference, entry), list(args))
        return value

    def compare(self, code: str, entry: str, inputs, reference, timeout: float | None = None) -> OracleReport:
        """Run ``entry`` in ``code`` for each argument list in ``inputs``."""
        report = OracleReport(entry=entry)
        script = probe_script(code, entry)
        for args in inputs:
            args = list(args)
            report.total += 1
            try:
                expected = self._reference_value(reference, entry, args)
            except ExecutionError as exc:
                report.divergences.append(Divergence(args, error=f"reference: {exc.message}"))
                continue
            result = self.executor.execute(script, args, timeout=timeout)
            if not result.success:
                report.divergences.append(Divergence(args, expected, error=result.error["message"]))
            elif values_match(expected, result.result, self.rel_tol):
                report.matches += 1
            else:
                report.divergences.append(Divergence(args, expected, result.result))
        return report
