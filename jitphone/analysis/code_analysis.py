"""Static analysis of target-language code.

Produces a report with four sections (complexity, compatibility with a
profile, a rough performance estimate and security findings) plus
suggestions derived from them. All checks run on masked text, so string
contents and comments never count as code.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from jitphone.platform.adapter import find_disallowed
from jitphone.platform.profiles import Profile, default_registry
from jitphone.utils.jstext import find_block_end, mask

_FUNCTION = re.compile(r"\bfunction\s*\*?\s*([A-Za-z_$][\w$]*)\s*\(")
_METHOD = re.compile(r"^\s*(?:static\s+|async\s+)*([A-Za-z_$][\w$]*)\s*\([^()]*\)\s*\{", re.MULTILINE)
_LOOP = re.compile(r"\b(?:for|while)\s*\(|\bdo\s*\{")
_CONDITIONAL = re.compile(r"\b(?:if|switch)\s*\(|\?(?![.?])")
_LOGICAL = re.compile(r"&&|\|\|")
_CATCH = re.compile(r"\bcatch\b")

_NOT_METHODS = {"if", "for", "while", "switch", "catch", "function", "return", "with"}

_MODERN_SYNTAX = (
    (re.compile(r"=>"), "Arrow functions need downleveling for older runtimes"),
    (re.compile(r"\b(?:let|const)\s"), "let/const need downleveling for older runtimes"),
    (re.compile(r"\bclass\s+[A-Za-z_$]"), "Class syntax is not available on older runtimes"),
    (re.compile(r"`"), "Template literals need downleveling for older runtimes"),
    (re.compile(r"\basync\b|\bawait\b"), "async/await is not available on older runtimes"),
)

HIGH_COMPLEXITY = 10
SLOW_ESTIMATE_MS = 100.0


@dataclass
class Complexity:
    lines: int = 0
    functions: int = 0
    loops: int = 0
    conditionals: int = 0
    recursion: bool = False
    cyclomatic_complexity: int = 1
    maintainability_index: float = 171.0

    def to_dict(self) -> dict:
        return {
            "lines": self.lines,
            "functions": self.functions,
            "loops": self.loops,
            "conditionals": self.conditionals,
            "recursion": self.recursion,
            "cyclomatic_complexity": self.cyclomatic_complexity,
            "maintainability_index": self.maintainability_index,
        }


@dataclass
class Compatibility:
    profile: str
    compatible: bool = True
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    confidence: float = 1.0

    def to_dict(self) -> dict:
        return {
            "profile": self.profile,
            "compatible": self.compatible,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "confidence": self.confidence,
        }


@dataclass
class Hotspot:
    kind: str
    line: int
    impact: str
    detail: str = ""

    def to_dict(self) -> dict:
        return {"kind": self.kind, "line": self.line, "impact": self.impact, "detail": self.detail}


@dataclass
class PerformanceEstimate:
    estimated_time_ms: float = 0.0
    memory_bytes: int = 0
    jit_friendly: bool = True
    hotspots: list[Hotspot] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "estimated_time_ms": self.estimated_time_ms,
            "memory_bytes": self.memory_bytes,
            "jit_friendly": self.jit_friendly,
            "hotspots": [h.to_dict() for h in self.hotspots],
        }


@dataclass
class SecurityFinding:
    kind: str
    severity: str
    description: str
    line: int = 0

    def to_dict(self) -> dict:
        return {"kind": self.kind, "severity": self.severity, "description": self.description, "line": self.line}


@dataclass
class SecurityReport:
    vulnerabilities: list[SecurityFinding] = field(default_factory=list)
    warnings: list[SecurityFinding] = field(default_factory=list)

    @property
    def safe(self) -> bool:
        return not self.vulnerabilities

    @property
    def score(self) -> int:
        return max(0, 100 - 30 * len(self.vulnerabilities) - 10 * len(self.warnings))

    def to_dict(self) -> dict:
        return {
            "safe": self.safe,
            "score": self.score,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class Suggestion:
    kind: str
    message: str
    severity: str
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "severity": self.severity, "details": list(self.details)}


@dataclass
class CodeAnalysis:
    """Full analysis report for one piece of code."""

    complexity: Complexity
    compatibility: Compatibility
    performance: PerformanceEstimate
    security: SecurityReport
    suggestions: list[Suggestion] = field(default_factory=list)

    def summary(self) -> str:
        c = self.complexity
        lines = [
            f"Lines: {c.lines}, functions: {c.functions}, loops: {c.loops}, conditionals: {c.conditionals}",
            f"Cyclomatic complexity: {c.cyclomatic_complexity}, maintainability: {c.maintainability_index:.1f}",
            f"Compatible with {self.compatibility.profile}: {'yes' if self.compatibility.compatible else 'no'}",
            f"Security score: {self.security.score}",
        ]
        for s in self.suggestions:
            lines.append(f"  - [{s.severity}] {s.message}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "complexity": self.complexity.to_dict(),
            "compatibility": self.compatibility.to_dict(),
            "performance": self.performance.to_dict(),
            "security": self.security.to_dict(),
            "suggestions": [s.to_dict() for s in self.suggestions],
        }


# --- Helpers ---


def _line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _function_bodies(text: str) -> list[tuple[str, int, int]]:
    """``(name, body_start, body_end)`` for named functions and methods."""
    bodies = []
    candidates = [(m.group(1), m.end()) for m in _FUNCTION.finditer(text)]
    candidates += [(m.group(1), m.end() - 1) for m in _METHOD.finditer(text) if m.group(1) not in _NOT_METHODS]
    for name, pos in candidates:
        if text[pos] != "{":
            close_params = find_block_end(text, pos - 1)
            if close_params < 0:
                continue
            pos = text.find("{", close_params)
            if pos < 0:
                continue
        end = find_block_end(text, pos)
        if end > pos:
            bodies.append((name, pos, end))
    return bodies


def _recursive_functions(text: str, bodies) -> list[tuple[str, int]]:
    found = []
    for name, start, end in bodies:
        if re.search(rf"(?<![\w$]){re.escape(name)}\s*\(", text[start + 1:end]):
            found.append((name, _line_of(text, start)))
    return found


def _nested_loops(text: str) -> list[int]:
    lines = []
    for m in _LOOP.finditer(text):
        brace = text.find("{", m.end() - 1)
        if brace < 0:
            continue
        end = find_block_end(text, brace)
        if end > brace and _LOOP.search(text, brace + 1, end):
            lines.append(_line_of(text, m.start()))
    return lines


# --- Sections ---


def analyze_complexity(code: str, text: str | None = None) -> Complexity:
    text = mask(code).text if text is None else text
    lines = code.count("\n") + 1
    bodies = _function_bodies(text)
    functions = len({(name, start) for name, start, _ in bodies})
    loops = len(_LOOP.findall(text))
    conditionals = len(_CONDITIONAL.findall(text))
    decisions = loops + conditionals + len(_LOGICAL.findall(text)) + len(_CATCH.findall(text))
    cyclomatic = 1 + decisions
    maintainability = 171 - 5.2 * math.log(lines) - 0.23 * cyclomatic - 16.2 * math.log(functions or 1)
    return Complexity(
        lines=lines,
        functions=functions,
        loops=loops,
        conditionals=conditionals,
        recursion=bool(_recursive_functions(text, bodies)),
        cyclomatic_complexity=cyclomatic,
        maintainability_index=round(max(0.0, maintainability), 2),
    )


def analyze_compatibility(code: str, profile: Profile, text: str | None = None) -> Compatibility:
    text = mask(code).text if text is None else text
    issues = [f"Disallowed identifier: {name}" for name in find_disallowed(code, profile.disallowed_identifiers)]
    warnings = [message for pattern, message in _MODERN_SYNTAX if pattern.search(text)]
    if len(code) > profile.max_payload_size:
        issues.append(f"Payload size {len(code)} exceeds the {profile.max_payload_size} character limit")
    return Compatibility(
        profile=profile.name,
        compatible=not issues,
        issues=issues,
        warnings=warnings,
        confidence=round(max(0.0, 1.0 - 0.3 * len(issues) - 0.1 * len(warnings)), 4),
    )


def estimate_performance(code: str, complexity: Complexity, text: str | None = None) -> PerformanceEstimate:
    text = mask(code).text if text is None else text
    hotspots = [Hotspot("nested-loops", line, "high") for line in _nested_loops(text)]
    hotspots += [
        Hotspot("recursion", line, "medium", name)
        for name, line in _recursive_functions(text, _function_bodies(text))
    ]
    return PerformanceEstimate(
        estimated_time_ms=round(complexity.cyclomatic_complexity * 0.1 * (10 if hotspots else 1), 3),
        memory_bytes=len(code) * 2,
        jit_friendly=not re.search(r"\beval\b|\bwith\s*\(", text),
        hotspots=hotspots,
    )


def analyze_security(code: str, text: str | None = None) -> SecurityReport:
    text = mask(code).text if text is None else text
    report = SecurityReport()
    for m in re.finditer(r"(?<![\w$.])eval\s*\(", text):
        report.vulnerabilities.append(
            SecurityFinding("code-injection", "high", "eval() usage detected", _line_of(text, m.start()))
        )
    for m in re.finditer(r"\bnew\s+Function\s*\(", text):
        report.vulnerabilities.append(
            SecurityFinding("code-injection", "high", "Function constructor usage detected", _line_of(text, m.start()))
        )
    for m in re.finditer(r"\.(?:innerHTML|outerHTML)\s*=", text):
        report.warnings.append(SecurityFinding("xss", "medium", "innerHTML assignment detected", _line_of(text, m.start())))
    for m in re.finditer(r"\bdocument\.write\s*\(", text):
        report.warnings.append(SecurityFinding("xss", "medium", "document.write usage detected", _line_of(text, m.start())))
    return report


def _suggestions(analysis: CodeAnalysis) -> list[Suggestion]:
    suggestions = []
    if analysis.complexity.cyclomatic_complexity > HIGH_COMPLEXITY:
        suggestions.append(Suggestion("complexity", "Consider breaking down complex functions", "medium"))
    if analysis.compatibility.issues:
        suggestions.append(
            Suggestion("compatibility", "Compatibility issues detected", "high", list(analysis.compatibility.issues))
        )
    if analysis.compatibility.warnings:
        suggestions.append(
            Suggestion("syntax", "Enable adaptation to downlevel modern syntax", "low", list(analysis.compatibility.warnings))
        )
    if analysis.performance.estimated_time_ms > SLOW_ESTIMATE_MS or analysis.performance.hotspots:
        suggestions.append(
            Suggestion(
                "performance",
                "Consider optimizing hot paths",
                "medium",
                [f"{h.kind} at line {h.line}" for h in analysis.performance.hotspots],
            )
        )
    if not analysis.security.safe:
        suggestions.append(Suggestion("security", "Remove dynamic code evaluation", "high"))
    return suggestions


def analyze_code(code: str, profile: Profile | str | None = None, registry=None) -> CodeAnalysis:
    """Analyze ``code`` against ``profile`` (the first registered profile when omitted)."""
    registry = registry or default_registry()
    if profile is None:
        profile = registry.all()[0]
    elif isinstance(profile, str):
        profile = registry.get(profile)

    text = mask(code).text
    complexity = analyze_complexity(code, text)
    analysis = CodeAnalysis(
        complexity=complexity,
        compatibility=analyze_compatibility(code, profile, text),
        performance=estimate_performance(code, complexity, text),
        security=analyze_security(code, text),
    )
    analysis.suggestions = _suggestions(analysis)
    return analysis
