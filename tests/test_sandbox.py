"""Tests for the sandbox executor and the differential oracle."""

import math

import pytest

from jitphone.errors import ExecutionError, ExecutionTimeoutError
from jitphone.generators import generate
from jitphone.ir.swift_parser import parse_swift_source
from jitphone.sandbox import DifferentialOracle, SandboxExecutor, values_match
from jitphone.sandbox.oracle import probe_script

HYPOT_JS = "function hyp(a, b) { return Math.sqrt(a * a + b * b); }"


@pytest.fixture(scope="module")
def sandbox():
    return SandboxExecutor(default_timeout=5.0)


# --- Executor ---


def test_return_value_and_input(sandbox):
    assert sandbox.run("return 1 + 2;") == (3, [])
    value, _ = sandbox.run("return input.a + 1;", {"a": 2})
    assert value == 3
    value, _ = sandbox.run("var x = 1;")
    assert value is None


def test_console_is_recorded(sandbox):
    _, logs = sandbox.run('console.log("hi");\nconsole.warn("careful");\nconsole.log({a: 1}, 2);')
    assert logs == ["hi", "[warn] careful", '{"a":1} 2']


def test_globals_are_pruned(sandbox):
    value, _ = sandbox.run("return [typeof eval, typeof Set, typeof Symbol, typeof Math, typeof JSON];")
    assert value == ["undefined", "undefined", "undefined", "object", "object"]


def test_thrown_error(sandbox):
    with pytest.raises(ExecutionError) as excinfo:
        sandbox.run('console.log("before");\nthrow new Error("boom");')
    assert excinfo.value.kind == "execution"
    assert "boom" in excinfo.value.message
    assert excinfo.value.logs == ["before"]


def test_syntax_error_is_an_execution_error(sandbox):
    with pytest.raises(ExecutionError):
        sandbox.run("return (;")


def test_timeout(sandbox):
    with pytest.raises(ExecutionTimeoutError) as excinfo:
        sandbox.run("while (true) {}", timeout=0.5)
    assert excinfo.value.kind == "timeout"


def test_execute_returns_structured_results(sandbox):
    ok = sandbox.execute("return [1, 2];")
    assert ok.success
    assert ok.result == [1, 2]
    assert ok.duration_ms >= 0

    failed = sandbox.execute("null.x;")
    assert not failed.success
    assert failed.error["kind"] == "execution"
    assert failed.to_dict()["result"] is None


def test_rebinding_json_does_not_escape_the_sandbox(sandbox):
    rebound = sandbox.execute('JSON.stringify = function () { return "nope"; };\nreturn 1;')
    assert rebound.success
    assert rebound.result == 1

    tampered = sandbox.execute('stringify = function () { return "nope"; };\nreturn 1;')
    assert not tampered.success
    assert tampered.error["kind"] == "execution"
    assert tampered.error["message"].startswith("Execution produced an unreadable result")


def test_unserialisable_input(sandbox):
    with pytest.raises(ExecutionError, match="JSON"):
        sandbox.run("return 1;", input={"f": object()})


def test_timeout_budget():
    executor = SandboxExecutor(default_timeout=2.0, max_timeout=5.0)
    assert executor._budget(None) == 2.0
    assert executor._budget(0) == 2.0
    assert executor._budget(100) == 5.0
    assert executor._budget(1.5) == 1.5


# --- Oracle ---


def test_values_match():
    assert values_match(1, 1.0000000001)
    assert values_match(0.1 + 0.2, 0.3)
    assert not values_match(True, 1)
    assert values_match([1, [2, 3]], [1.0, [2, 3]])
    assert not values_match({"a": 1}, {"a": 1, "b": 2})
    assert not values_match(1, 1.1)
    assert values_match("a", "a")


def test_probe_script():
    assert probe_script("x", "hyp") == "x\nreturn hyp.apply(null, input);"
    assert probe_script("x", "input[0] * 2") == "x\nreturn (input[0] * 2);"


def test_oracle_against_python_reference(sandbox):
    oracle = DifferentialOracle(sandbox)
    report = oracle.compare(HYPOT_JS, "hyp", [(3, 4), (1, 1), (0.5, 2.25)], math.hypot)
    assert report.consistent
    assert report.summary() == "hyp: 3/3 inputs agree"


def test_oracle_reports_divergences(sandbox):
    report = DifferentialOracle(sandbox).compare(HYPOT_JS, "hyp", [(3, 4), (1, 1)], lambda a, b: a + b)
    assert not report.consistent
    assert report.matches == 0
    assert report.divergences[0].to_dict() == {"input": [3, 4], "expected": 7, "actual": 5, "error": ""}


def test_oracle_against_javascript_reference(sandbox):
    reference = "function hyp(a, b) { return Math.pow(a * a + b * b, 0.5); }"
    report = DifferentialOracle(sandbox).compare(HYPOT_JS, "hyp", [(5, 12)], reference)
    assert report.consistent


def test_oracle_records_execution_failures(sandbox):
    code = "function f() { throw new Error('nope'); }"
    report = DifferentialOracle(sandbox).compare(code, "f", [()], lambda: 1)
    assert report.divergences[0].error.endswith("nope")


def test_oracle_checks_generated_swift(sandbox):
    source = """
struct Point {
    var x: Double
    var y: Double

    func distance(to other: Point) -> Double {
        let dx = x - other.x
        let dy = y - other.y
        return sqrt(dx * dx + dy * dy)
    }
}
"""
    code = generate(parse_swift_source(source))
    entry = "new Point(input[0], input[1]).distance(new Point(0, 0))"
    report = DifferentialOracle(sandbox).compare(code, entry, [(3, 4), (1.5, 2), (-7, 24)], math.hypot)
    assert report.consistent
