"""Tests for the transformation service that backs the CLI and the HTTP app."""

import dataclasses

import pytest

from jitphone.config import Settings
from jitphone.errors import SizeLimitError, UnknownProfileError, UnsupportedFormatError
from jitphone.models.records import AnalyzeRequest, CompileRequest, ConvertRequest, ExecuteRequest
from jitphone.platform import ProfileRegistry, get_profile
from jitphone.platform.adapter import TRUNCATION_MARKER
from jitphone.sandbox import SandboxExecutor
from jitphone.service import TransformationService

POINT_SWIFT = """
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

LLVM_ADD = """
define i32 @add(i32 %a, i32 %b) {
entry:
  %sum = add nsw i32 %a, %b
  ret i32 %sum
}
"""


@pytest.fixture
def service():
    return TransformationService(settings=Settings())


@pytest.fixture(scope="module")
def sandbox():
    return SandboxExecutor(default_timeout=5.0)


# --- Compile ---


def test_compile_swift(service, sandbox):
    response = service.compile(CompileRequest(POINT_SWIFT, "swift"))
    assert response.success
    assert response.compatibility_verdict["compatible"]
    assert response.applied_adaptations[-1] == "harness:automation"
    meta = response.metadata
    assert meta["dialect"] == "swift"
    assert meta["target_profile"] == "embedded-automation-host"
    assert meta["ir"]["structs"] == 1
    assert set(meta["timings"]) == {"parse", "generate", "optimize", "adapt"}
    assert not response.cache_hit

    value, _ = sandbox.run("return " + response.generated_code)
    assert value["success"] is True
    assert value["error"] is None


def test_compile_javascript_is_optimized_and_adapted(service, sandbox):
    response = service.compile(CompileRequest("result = 6 * 7;", "js"))
    assert response.applied_optimizations == ["constant-folding"]
    assert "strip-hints" in response.applied_adaptations
    value, _ = sandbox.run("return " + response.generated_code)
    assert value["result"] == 42


def test_compile_results_are_cached(service):
    request = CompileRequest("result = 1;", "js", target_profile="jsc")
    first = service.compile(request)
    second = service.compile(request)
    assert not first.cache_hit
    assert second.cache_hit
    assert second.generated_code == first.generated_code
    assert second.metadata["fingerprint"] == first.metadata["fingerprint"]


def test_compile_is_deterministic_across_services():
    request = CompileRequest(POINT_SWIFT, "swift", optimization_level=3)
    first = TransformationService(settings=Settings()).compile(request)
    second = TransformationService(settings=Settings()).compile(request)
    assert not second.cache_hit
    assert second.generated_code == first.generated_code
    assert second.metadata["fingerprint"] == first.metadata["fingerprint"]


def test_compile_instruction_format(service):
    response = service.compile(CompileRequest(LLVM_ADD, "ios-llvm", optimization_level=0))
    assert response.metadata["functions"][0]["name"] == "add"
    assert "lower" in response.metadata["timings"]
    assert "function add(a, b)" in response.generated_code


def test_compile_without_polyfills_reports_incompatibility(service):
    response = service.compile(CompileRequest("eval('1');", "js", enable_polyfills=False))
    assert response.success
    assert response.compatibility_verdict["compatible"] is False
    assert response.warnings == ["'eval' is not available on embedded-automation-host and polyfills are disabled"]


def test_compile_truncates_for_small_payloads():
    tiny = dataclasses.replace(get_profile("embedded-automation-host"), max_payload_size=200)
    service = TransformationService(settings=Settings(), profiles=ProfileRegistry([tiny]))
    response = service.compile(CompileRequest("result = 1;", "js", optimize_for_size=True))
    assert response.generated_code.endswith(TRUNCATION_MARKER)
    assert len(response.generated_code) <= 200
    assert response.metadata["truncated"] is True


def test_compile_rejections(service):
    with pytest.raises(SizeLimitError):
        TransformationService(settings=Settings(max_input_size=10)).compile(CompileRequest("x" * 11, "js"))
    with pytest.raises(UnsupportedFormatError) as excinfo:
        service.compile(CompileRequest("x", "cobol"))
    assert "swift" in excinfo.value.supported
    assert "ios-llvm" in excinfo.value.supported
    with pytest.raises(UnknownProfileError):
        service.compile(CompileRequest("x", "js", target_profile="nope"))
    with pytest.raises(ValueError):
        service.compile(CompileRequest("x", "js", optimization_level=5))


def test_parse(service):
    module = service.parse(POINT_SWIFT, "swift")
    assert module.declaration_count == 1
    with pytest.raises(UnsupportedFormatError):
        service.parse("var x = 1;", "js")


# --- Convert ---


def test_convert_with_optimization_and_adaptation(service):
    response = service.convert(ConvertRequest(LLVM_ADD, "ios-llvm", "jsc", optimization_level=1, adapt=True))
    assert response.functions[0]["params"] == ["a", "b"]
    meta = response.metadata
    assert meta["target_profile"] == "minimal-script-host"
    assert meta["applied_optimizations"] == []
    assert meta["compatibility_verdict"]["compatible"]
    assert meta["generated_size"] == len(response.generated_code)


def test_convert_stub_format_warns(service):
    response = service.convert(ConvertRequest("ldarg.0\nret", "dotnet-clr"))
    assert response.functions == []
    assert response.warnings == ["Format 'dotnet-clr' is registered but has no lowering; nothing was converted"]


def test_convert_counts_unsupported_instructions(service):
    smali = ".method public static f()V\n    iget v0, p0, LFoo;->x:I\n    return-void\n.end method\n"
    response = service.convert(ConvertRequest(smali, "android-art"))
    assert response.warnings == ["f: 1 unsupported instruction(s)"]
    assert response.functions[0]["unknown_instructions"] == 1


# --- Execute, analyze and introspection ---


def test_execute_and_analyze(service):
    result = service.execute(ExecuteRequest("return input.n * 2;", {"n": 21}))
    assert result.success
    assert result.result == 42

    analysis = service.analyze(AnalyzeRequest("eval(x);"))
    assert analysis.security.score == 70
    assert analysis.compatibility.profile == "embedded-automation-host"


def test_stats_and_clear(service):
    service.compile(CompileRequest("result = 1;", "js"))
    stats = service.stats()
    assert [c["name"] for c in stats["caches"]] == ["compile", "optimize", "adapt"]
    assert stats["caches"][0]["misses"] == 1
    assert stats["settings"]["max_input_size"] == 1024 * 1024

    service.clear_caches()
    assert all(c["size"] == 0 for c in service.stats()["caches"])


def test_formats_and_profiles_info(service):
    info = service.formats_info()
    assert "swift" in info["dialects"]
    assert len(info["instruction_formats"]) == 9
    assert [p["name"] for p in service.profiles_info()] == [
        "embedded-automation-host",
        "web-rendering-host",
        "minimal-script-host",
    ]
