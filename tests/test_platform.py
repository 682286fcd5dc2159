"""Tests for execution profiles, downleveling, harnesses and the platform adapter."""

import dataclasses

import pytest

from jitphone.errors import UnknownProfileError
from jitphone.platform import AdaptationOptions, PlatformAdapter, Profile, ProfileRegistry, get_profile, load_profiles
from jitphone.platform.adapter import (
    TRUNCATION_MARKER,
    compute_verdict,
    find_disallowed,
    guard_identifiers,
    performance_impact,
    shrink,
)
from jitphone.platform.downlevel import (
    downlevel,
    downlevel_arrows,
    downlevel_default_parameters,
    downlevel_destructuring,
    downlevel_templates,
)
from jitphone.platform.harness import polyfill_preamble, wrap
from jitphone.platform.profiles import default_registry
from jitphone.sandbox import SandboxExecutor
from jitphone.utils.jstext import mask


@pytest.fixture(scope="module")
def sandbox():
    return SandboxExecutor(default_timeout=5.0)


@pytest.fixture
def automation():
    return get_profile("embedded-automation-host")


# --- Profiles ---


def test_bundled_profiles_and_aliases():
    registry = default_registry()
    assert registry.names() == ["embedded-automation-host", "web-rendering-host", "minimal-script-host"]
    assert registry.get("shortcuts").name == "embedded-automation-host"
    assert registry.get("webview").harness == "webview"
    assert "jsc" in registry
    assert registry.get("minimal-script-host").max_payload_size == 524288


def test_unknown_profile_lists_names_and_aliases():
    with pytest.raises(UnknownProfileError) as excinfo:
        default_registry().get("nope")
    assert "shortcuts" in excinfo.value.available
    assert "web-rendering-host" in excinfo.value.available


def test_load_profiles_from_file(tmp_path):
    path = tmp_path / "profiles.yaml"
    path.write_text(
        "profiles:\n"
        "  - name: kiosk\n"
        "    harness: script\n"
        "    disallowed_identifiers: [eval]\n"
        "    max_payload_size: 1000\n"
    )
    registry = load_profiles(path)
    kiosk = registry.get("kiosk")
    assert kiosk.harness == "script"
    assert kiosk.disallowed_identifiers == ("eval",)
    assert kiosk.platform_overhead == 1.3
    assert kiosk.to_dict()["max_payload_size"] == 1000


# --- Downleveling ---


def test_templates_become_concatenation():
    assert downlevel_templates("var s = `Hi ${name}!`;") == 'var s = ("Hi " + (name) + "!");'
    assert downlevel_templates("var t = `plain`;") == 'var t = "plain";'
    assert downlevel_templates("tag`x${y}`") == "tag`x${y}`"


def test_templates_after_keywords_are_not_tagged():
    assert downlevel_templates("function f(n) { return `n=${n}`; }") == 'function f(n) { return ("n=" + (n)); }'
    assert downlevel_templates("typeof `x`") == 'typeof "x"'
    assert downlevel_templates('case `a`: throw `b`;') == 'case "a": throw "b";'
    assert downlevel_templates("f()`x`") == "f()`x`"


def test_arrows_become_functions():
    assert downlevel_arrows("const f = (a, b) => a + b;") == "const f = function (a, b) { return a + b; };"
    assert downlevel_arrows("xs.map(x => x * 2)") == "xs.map(function (x) { return x * 2; })"
    assert downlevel_arrows("var g = () => this.x;") == "var g = (function () { return this.x; }).bind(this);"


def test_default_parameters():
    assert downlevel_default_parameters("function f(a, b = 1) { return a + b; }") == (
        "function f(a, b) { if (b === undefined) { b = 1; } return a + b; }"
    )
    assert downlevel_default_parameters("if (a == 1) { b(); }") == "if (a == 1) { b(); }"


def test_destructuring_declarations():
    assert downlevel_destructuring("const [a, b] = pair;") == "const __ref0 = pair, a = __ref0[0], b = __ref0[1];"
    assert downlevel_destructuring("let {x, y: top} = point;") == "let __ref0 = point, x = __ref0.x, top = __ref0.y;"
    assert downlevel_destructuring("const [a, ...rest] = xs;") == "const [a, ...rest] = xs;"


def test_downlevel_reports_changed_passes():
    code, changed = downlevel("const f = (a, b) => a + b;")
    assert code == "var f = function (a, b) { return a + b; };"
    assert changed == ["arrow-functions", "block-scope"]
    assert downlevel("var x = 'let y = 1';") == ("var x = 'let y = 1';", [])


def test_downleveled_code_runs(sandbox):
    source = "const [a, b] = [2, 3];\nconst add = (x, y = 10) => x + y;\nreturn `${add(a)}-${add(a, b)}`;"
    code, _ = downlevel(source)
    assert "=>" not in code and "`" not in code
    value, _ = sandbox.run(code)
    assert value == "12-5"


# --- Identifier guarding and verdicts ---


def test_find_disallowed_ignores_strings_comments_and_members():
    assert find_disallowed("var s = 'eval'; // eval\nobj.eval();", ["eval"]) == []
    assert find_disallowed("eval('1'); fetch(u);", ["eval", "fetch", "WebSocket"]) == ["eval", "fetch"]


def test_guard_identifiers(automation):
    code, guarded = guard_identifiers("eval(x); setTimeout(f, 1);", automation.disallowed_identifiers)
    assert code == "__guarded_eval(x); __guarded_setTimeout(f, 1);"
    assert guarded == ["eval", "setTimeout"]


def test_compute_verdict(automation):
    verdict = compute_verdict("eval(1)", automation)
    assert not verdict.compatible
    assert verdict.issues == ["Disallowed identifier 'eval' is not guarded"]
    assert verdict.confidence == 0.8
    assert verdict.unguarded_identifiers == ["eval"]
    assert compute_verdict("var x = 1;", automation).compatible


def test_performance_impact(automation):
    assert performance_impact(2, automation, True) == pytest.approx(2.12)
    assert performance_impact(0, automation, False) == pytest.approx(0.3)


def test_shrink_collapses_then_truncates():
    assert shrink("// note\nvar x = 1;\n\n   var y = 2;", 100) == ("var x = 1;\nvar y = 2;", False)
    code, truncated = shrink("var x = 1;\n" * 50, 100)
    assert truncated
    assert len(code) == 100
    assert code.endswith(TRUNCATION_MARKER)


def test_regex_literals_are_not_comments_or_strings():
    assert mask("var r = /a\\//; // note").spans == ["/a\\//", "// note"]
    assert mask("var q = /[\"'/]/g, s = 'x';").spans == ["/[\"'/]/g", "'x'"]
    assert mask("var h = a / b / 2;").spans == []
    assert mask("return /x/.test(s);").spans == ["/x/"]
    assert shrink("var re = /a\\//; // slash\nvar y = 1;", 100) == ("var re = /a\\//;\nvar y = 1;", False)


def test_size_optimized_regex_code_runs(sandbox):
    code = 'var re = /a\\//;\nresult = "a/b".replace(re, "X");'
    adapted = PlatformAdapter().adapt(code, "jsc", AdaptationOptions(optimize_for_size=True))
    value, _ = sandbox.run("return " + adapted.code)
    assert value == {"ok": True, "value": "Xb", "error": None}


# --- Harnesses ---


def test_polyfill_preamble(automation):
    preamble = polyfill_preamble(automation, ["eval", "setTimeout"])
    assert preamble.startswith("/* jitphone polyfills */")
    assert "var __guarded_eval = function ()" in preamble
    assert "var __guarded_setTimeout = function (callback)" in preamble
    assert "Array.prototype.find = function (predicate)" in preamble


def test_promise_polyfill_defers_to_host_promise(sandbox):
    adapted = PlatformAdapter().adapt("result = Promise.all([]);", "shortcuts")
    host = "var Promise = function () {};\nPromise.all = function () { return 'host'; };\n"
    value, _ = sandbox.run(host + "return " + adapted.code)
    assert value["success"] is True
    assert value["result"] == "host"


def test_promise_polyfill_fills_in_when_missing(sandbox):
    code = "Promise.resolve(3).then(function (v) { result = v * 2; });"
    adapted = PlatformAdapter().adapt(code, "shortcuts")
    value, _ = sandbox.run("return " + adapted.code)
    assert value["success"] is True
    assert value["result"] == 6


def test_wrap_unknown_harness():
    with pytest.raises(ValueError, match="unknown harness"):
        wrap("result = 1;", Profile(name="odd", harness="nope"))


# --- Adapter ---


def test_adapt_automation_envelope(sandbox):
    result = PlatformAdapter().adapt("result = 6 * 7;", "shortcuts")
    assert result.profile == "embedded-automation-host"
    assert result.applied_adaptations == ["polyfills", "harness:automation"]
    assert result.verdict.compatible
    assert result.requirements["host_app"] == "automation"
    assert result.adapted_size == len(result.code)

    value, _ = sandbox.run("return " + result.code)
    assert value == {"success": True, "result": 42, "error": None, "target": "embedded-automation-host"}


def test_adapt_guards_and_downlevels(sandbox):
    code = "/* @jit:hints level=2 */\nconst f = (x) => eval(x);\nresult = f('1');"
    result = PlatformAdapter().adapt(code, "embedded-automation-host")
    assert result.applied_adaptations == [
        "strip-hints",
        "guard-identifiers",
        "polyfills",
        "downlevel:arrow-functions",
        "downlevel:block-scope",
        "harness:automation",
    ]
    assert result.verdict.compatible
    assert "@jit:" not in result.code

    value, _ = sandbox.run("return " + result.code)
    assert value["success"] is False
    assert value["error"]["message"] == "eval is not available on this host"


def test_adapt_without_polyfills_is_incompatible():
    options = AdaptationOptions(enable_polyfills=False)
    result = PlatformAdapter().adapt("eval('1');", "embedded-automation-host", options)
    assert not result.verdict.compatible
    assert result.applied_adaptations == ["harness:automation"]
    assert result.warnings == ["'eval' is not available on embedded-automation-host and polyfills are disabled"]
    assert result.performance_impact == pytest.approx(0.3)


def test_adapt_webview_and_script_harnesses(sandbox):
    adapter = PlatformAdapter()
    webview = adapter.adapt("result = [1, 2];", "webview")
    value, _ = sandbox.run("return " + webview.code)
    assert value["type"] == "execution_complete"
    assert value["success"] is True
    assert value["result"] == [1, 2]

    script = adapter.adapt("result = 'done';", "jsc")
    value, _ = sandbox.run("return " + script.code)
    assert value == {"ok": True, "value": "done", "error": None}


def test_adapt_truncates_to_payload_limit(automation):
    tiny = dataclasses.replace(automation, max_payload_size=200)
    adapter = PlatformAdapter(registry=ProfileRegistry([tiny]))
    result = adapter.adapt("result = 1;", tiny.name, AdaptationOptions(optimize_for_size=True))
    assert result.truncated
    assert len(result.code) <= 200
    assert result.code.endswith(TRUNCATION_MARKER)
    assert result.applied_adaptations[-2:] == ["size-optimization", "truncation"]
    assert result.warnings == ["Output truncated to 200 characters"]


def test_adapt_results_are_cached():
    adapter = PlatformAdapter()
    first, hit = adapter.adapt_with_status("result = 1;", "jsc")
    assert not hit
    second, hit = adapter.adapt_with_status("result = 1;", "minimal-script-host")
    assert hit
    assert second is first


def test_size_optimization_never_grows_output():
    code = "// totals\nvar total = 0;\n\nfor (var i = 0; i < 3; i++) {\n    total += i;   /* running */\n}\nresult = total;\n"
    adapter = PlatformAdapter()
    plain = adapter.adapt(code, "webview")
    small = adapter.adapt(code, "webview", AdaptationOptions(optimize_for_size=True))
    assert len(small.code) < len(plain.code)
    assert not small.truncated
