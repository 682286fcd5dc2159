"""Tests for static analysis of generated code."""

import pytest

from jitphone.analysis import analyze_code
from jitphone.analysis.code_analysis import analyze_complexity, analyze_security
from jitphone.errors import UnknownProfileError

FACTORIAL = """function fact(n) {
  if (n <= 1) { return 1; }
  return n * fact(n - 1);
}"""

NESTED = """for (var i = 0; i < n; i++) {
  for (var j = 0; j < n; j++) {
    total += i * j;
  }
}"""


# --- Complexity ---


def test_recursive_function():
    complexity = analyze_complexity(FACTORIAL)
    assert complexity.lines == 4
    assert complexity.functions == 1
    assert complexity.conditionals == 1
    assert complexity.recursion
    assert complexity.cyclomatic_complexity == 2


def test_trivial_code_maintainability():
    complexity = analyze_complexity("var x = 1;")
    assert complexity.cyclomatic_complexity == 1
    assert complexity.maintainability_index == 170.77


def test_strings_and_comments_do_not_count():
    complexity = analyze_complexity("var s = 'if (a) { for (;;) {} }'; // while (x)")
    assert complexity.loops == 0
    assert complexity.conditionals == 0


def test_class_methods_count_as_functions():
    code = "class A {\n  m() {\n    return 1;\n  }\n  static n(x) {\n    if (x) { return 2; }\n  }\n}"
    assert analyze_complexity(code).functions == 2


# --- Security ---


def test_eval_is_a_vulnerability():
    report = analyze_security("var a = 1;\nvar r = eval(input);")
    assert not report.safe
    assert report.score == 70
    assert report.vulnerabilities[0].line == 2
    assert report.vulnerabilities[0].kind == "code-injection"


def test_inner_html_is_a_warning():
    report = analyze_security("el.innerHTML = html;")
    assert report.safe
    assert report.score == 90
    assert report.warnings[0].kind == "xss"


def test_member_named_eval_is_ignored():
    assert analyze_security("obj.eval(1); var s = 'eval(x)';").score == 100


# --- Full report ---


def test_disallowed_identifier_makes_code_incompatible():
    analysis = analyze_code("var r = eval('1');")
    assert analysis.compatibility.profile == "embedded-automation-host"
    assert not analysis.compatibility.compatible
    assert analysis.compatibility.issues == ["Disallowed identifier: eval"]
    assert not analysis.performance.jit_friendly
    assert [s.kind for s in analysis.suggestions] == ["compatibility", "security"]
    assert "Security score: 70" in analysis.summary()


def test_modern_syntax_warnings():
    analysis = analyze_code("const f = () => 1;", "jsc")
    compatibility = analysis.compatibility
    assert compatibility.profile == "minimal-script-host"
    assert compatibility.compatible
    assert len(compatibility.warnings) == 2
    assert compatibility.confidence == 0.8
    assert analysis.suggestions[0].kind == "syntax"


def test_nested_loops_are_hotspots():
    analysis = analyze_code(NESTED)
    hotspots = analysis.performance.hotspots
    assert [(h.kind, h.line) for h in hotspots] == [("nested-loops", 1)]
    assert analysis.performance.estimated_time_ms == 3.0
    performance = [s for s in analysis.suggestions if s.kind == "performance"]
    assert performance[0].details == ["nested-loops at line 1"]


def test_recursion_hotspot():
    hotspots = analyze_code(FACTORIAL).performance.hotspots
    assert hotspots[0].to_dict() == {"kind": "recursion", "line": 1, "impact": "medium", "detail": "fact"}


def test_report_serializes():
    data = analyze_code(FACTORIAL, "webview").to_dict()
    assert set(data) == {"complexity", "compatibility", "performance", "security", "suggestions"}
    assert data["compatibility"]["profile"] == "web-rendering-host"
    assert data["security"]["safe"] is True


def test_unknown_profile():
    with pytest.raises(UnknownProfileError):
        analyze_code("var x = 1;", "nope")
