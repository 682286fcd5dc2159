"""Tests for the optimization passes and the leveled pipeline."""

import pytest

from jitphone.errors import CodeSyntaxError
from jitphone.optimizer import HOT_LOOP_MARKER, OptimizationPipeline, passes_for_level, validate_syntax
from jitphone.optimizer.passes import (
    constant_folding,
    dead_code_elimination,
    inline_small_functions,
    loop_recognition,
    vectorization,
)
from jitphone.sandbox import SandboxExecutor

# --- Constant folding ---


def test_fold_whole_run():
    assert constant_folding("var x = 5 + 3 * 2;") == "var x = 11;"


def test_fold_only_complete_terms_next_to_tighter_operators():
    assert constant_folding("var y = x * 2 + 3 * 4;") == "var y = x * 2 + 12;"


def test_fold_parenthesized_groups():
    assert constant_folding("var a = (3 + 4) * 2;") == "var a = 14;"


def test_fold_leaves_strings_and_division_by_zero():
    assert constant_folding('var s = "1 + 2";') == 'var s = "1 + 2";'
    assert constant_folding("var z = 1 / 0;") == "var z = 1 / 0;"


# --- Inlining ---


def test_inline_single_return_function():
    code = "function double(x) { return x * 2; }\nvar y = double(4);"
    assert inline_small_functions(code) == "const double = (x) => x * 2;\nvar y = double(4);"


def test_inline_skips_hoisted_use_and_this():
    used_first = "var y = double(4);\nfunction double(x) { return x * 2; }"
    assert inline_small_functions(used_first) == used_first
    bound = "function getX() { return this.x; }"
    assert inline_small_functions(bound) == bound


# --- Dead code elimination ---


def test_dead_code_after_return_is_removed():
    code = "function f() {\n  return 1;\n  console.log('never');\n}"
    assert dead_code_elimination(code) == "function f() {\n  return 1;\n}"


def test_dead_code_keeps_hoisted_declarations():
    code = "function f() {\n  return g();\n  function g() { return 2; }\n}"
    assert dead_code_elimination(code) == code


# --- Loops ---


def test_loop_recognition_marks_counted_loops_once():
    code = "for (let i = 0; i < 10; i++) { total += i; }"
    marked = loop_recognition(code)
    assert marked == HOT_LOOP_MARKER + " " + code
    assert loop_recognition(marked) == marked


def test_vectorization_of_indexed_assignment():
    code = "for (let i = 0; i < a.length; i++) { b[i] = a[i] * 2; }"
    assert vectorization(code) == "b = a.map((item, i) => item * 2);"


def test_vectorization_skips_self_reference():
    code = "for (let i = 0; i < a.length; i++) { b[i] = b[i] + a[i]; }"
    assert vectorization(code) == code


# --- Pipeline ---


def test_passes_for_level_are_cumulative():
    assert [p.name for p in passes_for_level(1)] == ["inline-small-functions", "constant-folding"]
    assert len(passes_for_level(3)) == 5
    with pytest.raises(ValueError):
        passes_for_level(4)


def test_level_zero_is_identity():
    artifact = OptimizationPipeline().optimize("var x = 1 + 1;", 0)
    assert artifact.code == "var x = 1 + 1;"
    assert artifact.applied_passes == []
    assert artifact.changed_passes == []


def test_level_two_reports_changes_and_hints():
    artifact = OptimizationPipeline().optimize("5 + 3 * 2", 2)
    assert artifact.code == "/* @jit:hints level=2 */\n11"
    assert artifact.applied_passes == [
        "inline-small-functions",
        "constant-folding",
        "dead-code-elimination",
        "loop-recognition",
    ]
    assert artifact.changed_passes == ["constant-folding"]


def test_optimization_is_idempotent():
    pipeline = OptimizationPipeline()
    code = "function sq(x) { return x * x; }\nfor (let i = 0; i < 4; i++) { total += sq(i) * (2 + 3); }"
    once = pipeline.optimize(code, 2)
    twice = pipeline.optimize(once.code, 2)
    assert twice.code == once.code
    assert twice.changed_passes == []
    assert once.code.count(HOT_LOOP_MARKER) == 1


def test_pipeline_results_are_cached():
    pipeline = OptimizationPipeline()
    first, hit = pipeline.optimize_with_status("var x = 2 * 3;", 1)
    assert not hit
    second, hit = pipeline.optimize_with_status("var x = 2 * 3;", 1)
    assert hit
    assert second is first
    assert pipeline.cache.stats().hits == 1


def test_invalid_level_and_syntax():
    pipeline = OptimizationPipeline()
    with pytest.raises(ValueError):
        pipeline.optimize("var x = 1;", 5)
    with pytest.raises(CodeSyntaxError) as excinfo:
        pipeline.optimize("function (", 1)
    assert excinfo.value.line == 1
    assert excinfo.value.to_dict()["kind"] == "syntax"


def test_validate_syntax_accepts_modern_script():
    validate_syntax("const f = (a, b = 2) => `${a}${b}`;\nclass A { m() { return 1; } }")


def test_vectorized_code_still_runs():
    code = "var a = [1, 2, 3];\nvar b = [];\nfor (let i = 0; i < a.length; i++) { b[i] = a[i] * 2; }"
    artifact = OptimizationPipeline().optimize(code, 3)
    assert artifact.changed_passes == ["vectorization"]
    value, _ = SandboxExecutor(default_timeout=5.0).run(artifact.code + "\nreturn b;")
    assert value == [2, 4, 6]
