"""Tests for instruction lowering and JavaScript emission in the format bridge."""

import pytest

from jitphone.bridge import FormatRegistry, convert, default_registry, emit, lower
from jitphone.bridge.emitter import UNSUPPORTED_PREFIX, emit_function, js_identifier
from jitphone.bridge.lowering import lower_javap, lower_llvm, lower_smali, lower_stub, lower_wasm
from jitphone.errors import UnsupportedFormatError
from jitphone.ir.models import FunctionIR, Instruction, Opcode
from jitphone.sandbox import SandboxExecutor

LLVM_ADD = """
; ModuleID = 'calc'
define i32 @add(i32 %a, i32 %b) {
entry:
  %sum = add nsw i32 %a, %b
  ret i32 %sum
}
"""

LLVM_MAIN = """
define i32 @main() alwaysinline {
entry:
  %r = call i32 @add(i32 2, i32 3)
  br label %exit
exit:
  ret i32 %r
}
"""

SMALI_ADD = """
.method public static add(II)I
    .registers 3
    add-int v0, p0, p1
    return v0
.end method
"""

SMALI_GREET = """
.method public greet(Ljava/lang/String;)V
    .registers 4
    const-string v0, "hi"
    invoke-virtual {p0, v0}, Lcom/example/Foo;->say(Ljava/lang/String;)Ljava/lang/String;
    move-result-object v1
    iget v2, p0, Lcom/example/Foo;->x:I
    return-void
.end method
"""

WAT_MODULE = """
(module
  (func $add (param $a i32) (param $b i32) (result i32)
    local.get $a
    local.get $b
    i32.add)
  (func $three (result i32)
    (i32.add (i32.const 1) (i32.const 2)))
  (func $twice (export "twice") (param $x i32) (result i32)
    (call $add (local.get $x) (local.get $x))))
"""

JAVAP_CALC = """
public class Calc {
  public static int add(int, int);
    Code:
       0: iload_0
       1: iload_1
       2: iadd
       3: ireturn

  public static void hello();
    Code:
       0: getstatic     #2                  // Field java/lang/System.out:Ljava/io/PrintStream;
       3: ldc           #3                  // String hi
       5: invokevirtual #4                  // Method java/io/PrintStream.println:(Ljava/lang/String;)V
       8: return
}
"""


# --- Registry ---


def test_default_registry_tags():
    registry = default_registry()
    assert registry.tags()[:4] == ["ios-llvm", "android-art", "wasm", "java-hotspot"]
    assert "dotnet-clr" in registry
    assert not registry.get("dotnet-clr").implemented
    assert registry.get("wasm").to_dict()["implemented"] is True


def test_unknown_format_lists_supported():
    with pytest.raises(UnsupportedFormatError) as excinfo:
        lower("x", "cobol")
    assert "ios-llvm" in excinfo.value.supported
    assert excinfo.value.kind == "unsupported_format"


def test_custom_registration():
    registry = FormatRegistry()
    registry.register("toy", lambda text, options: [FunctionIR("toy")], "Toy format")
    assert registry.tags() == ["toy"]
    assert registry.lower("", "toy")[0].name == "toy"


# --- LLVM IR ---


def test_llvm_arithmetic_function():
    functions = lower_llvm(LLVM_ADD)
    assert len(functions) == 1
    assert functions[0].params == ["a", "b"]
    assert emit_function(functions[0]) == "function add(a, b) {\n  var sum = a + b;\n  return sum;\n}"


def test_llvm_calls_branches_and_attributes():
    main = lower_llvm(LLVM_MAIN)[0]
    assert main.optimization_tags == ["inline"]
    code = emit_function(main)
    assert "var r = add(2, 3);" in code
    assert "/* jump exit */" in code
    assert code.endswith("// Optimizations: inline")


def test_llvm_conversion_runs():
    code = convert(LLVM_ADD + LLVM_MAIN, "ios-llvm")
    value, _ = SandboxExecutor(default_timeout=5.0).run(code + "\nreturn main();")
    assert value == 5


# --- Smali ---


def test_smali_static_method():
    func = lower_smali(SMALI_ADD)[0]
    assert func.params == ["p0", "p1"]
    assert emit_function(func) == (
        "function add(p0, p1) {\n  var v0 = p0 + p1;\n  return v0;\n}\n// Optimizations: devirtualize"
    )


def test_smali_instance_method_and_unknowns():
    func = lower_smali(SMALI_GREET)[0]
    assert func.params == ["p1"]
    assert func.unknown_count == 1
    code = emit_function(func)
    assert 'var v0 = "hi";' in code
    assert "var v1 = this.say(v0);" in code
    assert f"{UNSUPPORTED_PREFIX} iget v2, p0, Lcom/example/Foo;->x:I" in code
    assert "return;" in code


# --- WebAssembly text ---


def test_wat_flat_folded_and_calls():
    add, three, twice = lower_wasm(WAT_MODULE)
    assert emit_function(add) == "function add(a, b) {\n  var t0 = a + b;\n  return t0;\n}"
    assert "var t0 = 1 + 2;" in emit_function(three)
    assert twice.params == ["x"]
    assert "var t0 = add(x, x);" in emit_function(twice)


def test_wat_conversion_runs():
    code = convert(WAT_MODULE, "wasm")
    value, _ = SandboxExecutor(default_timeout=5.0).run(code + "\nreturn [three(), twice(4)];")
    assert value == [3, 8]


def test_wat_feature_tags():
    functions = lower_wasm("(module (func $f (param v128)))")
    assert functions[0].optimization_tags == ["wasm-simd"]


# --- javap listings ---


def test_javap_static_method():
    add, hello = lower_javap(JAVAP_CALC)
    assert emit_function(add) == (
        "function add(arg0, arg1) {\n  var t0 = arg0 + arg1;\n  return t0;\n}\n// Optimizations: devirtualize"
    )
    assert 'console.log("hi");' in emit_function(hello)


# --- Stubs and emission ---


def test_stub_formats_lower_to_nothing():
    assert lower_stub("ldarg.0\nret") == []
    assert convert("ldarg.0", "dotnet-clr") == (
        "// Generated by jitphone from dotnet-clr instructions\n'use strict';\n\n// No functions lowered from dotnet-clr\n"
    )


def test_emit_header_and_declarations():
    func = FunctionIR(
        "class",
        params=["1st"],
        instructions=[
            Instruction(Opcode.LOAD, ("x", "1")),
            Instruction(Opcode.STORE, ("x", "2")),
            Instruction(Opcode.LOOP, ("3",)),
            Instruction(Opcode.UNKNOWN, raw="weird   op"),
        ],
    )
    code = emit([func], "toy")
    assert code.startswith("// Generated by jitphone from toy instructions\n'use strict';\n")
    assert "function class_(_1st) {" in code
    assert "  var x = 1;\n  x = 2;" in code
    assert "for (var i = 0; i < 3; i++) { /* loop body */ }" in code
    assert "// unsupported: weird op" in code


def test_js_identifier():
    assert js_identifier("a.b") == "a_b"
    assert js_identifier("new") == "new_"
    assert js_identifier("") == "_"
