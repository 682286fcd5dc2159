"""Tests for JavaScript generation from the declaration IR and the body rewrite rules."""

import pytest

from jitphone.generators import CodeGenerator, GeneratorOptions, generate
from jitphone.generators.code_generator import RUNTIME_PREAMBLE, default_value, reindent
from jitphone.generators.objc_rules import OBJC_RULES, objc_pipeline, parse_send
from jitphone.generators.rewrite import RewriteContext
from jitphone.generators.swift_rules import SWIFT_RULES, swift_pipeline
from jitphone.ir.models import Dialect
from jitphone.ir.objc_parser import parse_objc_source
from jitphone.ir.swift_parser import parse_swift_source
from jitphone.sandbox import SandboxExecutor

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

extension Point {
    func scaled(by factor: Double) -> Point {
        return Point(x: x * factor, y: y * factor)
    }
}
"""

ANIMALS_SWIFT = """
class Dog: Animal {
    override func speak() -> String {
        return "Woof"
    }
}

class Animal {
    var name: String

    init(name: String) {
        self.name = name
    }

    func speak() -> String {
        return "..."
    }
}
"""

PERSON_OBJC = """
@interface Person : NSObject
@property (nonatomic, strong) NSString *name;
@property (nonatomic) NSInteger age;
@end

@implementation Person
- (instancetype)initWithName:(NSString *)name age:(NSInteger)age {
    self = [super init];
    if (self) {
        _name = name;
        _age = age;
    }
    return self;
}

- (NSString *)greeting {
    return [NSString stringWithFormat:@"Hi %@", self.name];
}

+ (Person *)anonymous {
    return [[Person alloc] initWithName:@"anon" age:0];
}
@end
"""


@pytest.fixture(scope="module")
def sandbox():
    return SandboxExecutor(default_timeout=5.0)


def _swift(source, **options):
    return generate(parse_swift_source(source), GeneratorOptions(**options))


def _objc(source, **options):
    return generate(parse_objc_source(source), GeneratorOptions(**options))


# --- Rule ordering ---


def test_rule_pipelines_are_ordered():
    assert [r.name for r in SWIFT_RULES][:3] == ["closures", "string-interpolation", "range-loops"]
    assert [r.name for r in SWIFT_RULES][-1] == "statement-termination"
    assert swift_pipeline().rule_names.index("optionals") < swift_pipeline().rule_names.index("self-this")
    assert [r.name for r in OBJC_RULES][0] == "string-literals"
    assert objc_pipeline().rule_names.index("message-sends") < objc_pipeline().rule_names.index("self-ivars")


# --- Helpers ---


def test_default_values():
    assert default_value("Int", Dialect.SWIFT) == "0"
    assert default_value("String?", Dialect.SWIFT) == "null"
    assert default_value("[Int]", Dialect.SWIFT) == "[]"
    assert default_value("[String: Int]", Dialect.SWIFT) == "{}"
    assert default_value("NSString *", Dialect.OBJC) == "null"
    assert default_value("BOOL", Dialect.OBJC) == "false"


def test_reindent_by_brace_depth():
    assert reindent("if (a) {\nb();\n}", 0) == "if (a) {\n  b();\n}"
    assert reindent("x();", 2) == "    x();"


def test_invalid_unknown_policy():
    with pytest.raises(ValueError):
        GeneratorOptions(unknown_policy="bogus")


# --- Swift rewrite rules ---


def test_swift_range_loop_and_declarations():
    body = "var total = 0\nfor i in 0..<n {\ntotal += i\n}\nreturn total"
    assert swift_pipeline().rewrite(body) == (
        "let total = 0;\nfor (let i = 0; i < n; i++) {\ntotal += i;\n}\nreturn total;"
    )


def test_swift_string_interpolation():
    out = swift_pipeline().rewrite('let greeting = "Hello, \\(name)!"')
    assert out == "const greeting = `Hello, ${name}!`;"


def test_swift_nil_coalescing():
    assert swift_pipeline().rewrite("let n = value ?? 0") == "const n = (value != null ? value : 0);"


def test_swift_guard_let():
    out = swift_pipeline().rewrite("guard let v = maybe else { return 0 }")
    assert out == "const v = maybe;\nif (v == null) { return 0 }"


def test_swift_trailing_closure():
    out = swift_pipeline().rewrite("let doubled = values.map { $0 * 2 }")
    assert out == "const doubled = values.map(($0) => $0 * 2);"


def test_swift_do_catch():
    body = "do {\nlet v = try risky(x)\nreturn v\n} catch {\nreturn -1\n}"
    assert swift_pipeline().rewrite(body) == (
        "try {\nconst v = risky(x);\nreturn v;\n} catch (error) {\nreturn -1;\n}"
    )
    out = swift_pipeline().rewrite("do {\ntry save()\n} catch let failure {\nreport(failure)\n}")
    assert "} catch (failure) {" in out


def test_swift_do_without_catch_and_repeat_while():
    assert swift_pipeline().rewrite("do {\nwork()\n}") == "{\nwork();\n}"
    assert swift_pipeline().rewrite("repeat {\ni += 1\n} while i < 3") == "do {\ni += 1;\n} while (i < 3);"


def test_swift_control_parentheses():
    out = swift_pipeline().rewrite("if x > 0 {\nreturn x\n}")
    assert out.split("\n")[0] == "if (x > 0) {"


# --- Objective-C rewrite rules ---


def test_parse_send():
    assert parse_send("list addObject:item") == ("list", ["addObject"], ["item"])
    assert parse_send("name uppercaseString") == ("name", ["uppercaseString"], [])
    assert parse_send("1, 2") is None


def test_objc_message_sends():
    rewrite = objc_pipeline().rewrite
    assert rewrite("[list addObject:item];") == "list.push(item);"
    assert rewrite("NSString *s = [name uppercaseString];") == "let s = name.toUpperCase();"
    assert rewrite("Person *p = [[Person alloc] init];") == "let p = new Person();"


def test_objc_foundation_and_literals():
    rewrite = objc_pipeline().rewrite
    assert rewrite('NSLog(@"Count: %d", count);') == 'console.log(String.format("Count: %d", count));'
    assert rewrite("BOOL done = NO;") == "let done = false;"
    assert rewrite("double d = sqrt(x);") == "let d = Math.sqrt(x);"


def test_objc_loops():
    rewrite = objc_pipeline().rewrite
    assert rewrite("for (int i = 0; i < 3; i++) {") == "for (let i = 0; i < 3; i++) {"
    assert rewrite("for (NSString *s in names) {") == "for (const s of names) {"


def test_objc_self_ivars_use_properties():
    ctx = RewriteContext(properties={"name"})
    assert objc_pipeline().rewrite("_name = value;", ctx) == "this.name = value;"


# --- Swift generation ---


def test_struct_gets_memberwise_constructor_and_copy():
    code = _swift(POINT_SWIFT)
    assert "class Point {" in code
    assert "constructor(x, y) {" in code
    assert "this.x = x;" in code
    assert "copy() {" in code
    assert "distance(other) {" in code
    assert "const dx = this.x - other.x;" in code
    assert "return Math.sqrt(dx * dx + dy * dy);" in code
    assert RUNTIME_PREAMBLE not in code


def test_extension_methods_attach_to_prototype():
    code = _swift(POINT_SWIFT)
    assert "Point.prototype.scaled = function (factor) {" in code
    assert "return new Point(this.x * factor, this.y * factor);" in code


def test_generated_struct_runs(sandbox):
    code = _swift(POINT_SWIFT)
    value, _ = sandbox.run(code + "\nreturn new Point(3, 4).distance(new Point(0, 0));")
    assert value == 5
    scaled, _ = sandbox.run(code + "\nvar p = new Point(1, 2).scaled(3);\nreturn [p.x, p.y];")
    assert scaled == [3, 6]


VALIDATION_SWIFT = """
enum ValidationError: Error {
    case negative
    case tooLarge
    case unlucky
}

func check(_ n: Int) throws -> Int {
    if n < 0 {
        throw ValidationError.negative
    }
    if n > 100 {
        throw ValidationError.tooLarge
    }
    if n == 13 {
        throw ValidationError.unlucky
    }
    return n * 2
}

func describe(_ n: Int) -> String {
    do {
        let v = try check(n)
        return "ok"
    } catch ValidationError.negative {
        return "negative"
    } catch ValidationError.tooLarge {
        return "too large"
    } catch {
        return "other"
    }
}
"""


def test_multiple_catch_clauses_dispatch_on_error(sandbox):
    code = _swift(VALIDATION_SWIFT)
    assert "} catch (error) { if (error === ValidationError.negative) {" in code
    value, _ = sandbox.run(code + "\nreturn [describe(-1), describe(500), describe(13), describe(2)];")
    assert value == ["negative", "too large", "other", "ok"]


def test_superclass_is_emitted_first(sandbox):
    code = _swift(ANIMALS_SWIFT)
    assert code.index("class Animal {") < code.index("class Dog extends Animal {")
    value, _ = sandbox.run(code + '\nreturn [new Animal("Rex").name, new Dog().speak()];')
    assert value == ["Rex", "Woof"]


def test_undefined_superclass_warns():
    generator = CodeGenerator()
    code = generator.generate(parse_swift_source("class Cat: Pet {\n    var lives: Int = 9\n}"))
    assert "class Cat {" in code
    assert "this.lives = 9;" in code
    assert any("'Pet'" in w for w in generator.warnings)


def test_enum_values_and_raw_lookup(sandbox):
    source = "enum Direction: Int {\n    case north, south\n    case east = 10\n    case west\n}"
    code = _swift(source)
    assert "const Direction = {" in code
    for entry in ("north: 0", "south: 1", "east: 10", "west: 11", "allCases: [0, 1, 10, 11]"):
        assert entry in code
    value, _ = sandbox.run(code + "\nreturn [Direction.west, Direction.fromRawValue(10), Direction.fromRawValue(3)];")
    assert value == [11, 10, None]


def test_string_enum_uses_case_names():
    code = _swift("enum Suit {\n    case hearts, spades\n}")
    assert 'hearts: "hearts"' in code
    assert 'allCases: ["hearts", "spades"]' in code


def test_protocol_marker_object():
    code = _swift("protocol Shape {\n    func area() -> Double\n}")
    assert "const ShapeProtocol = {" in code
    assert 'throw new Error("Shape.area is not implemented");' in code


def test_unknown_policies():
    source = 'print("hi")\n'
    assert _swift(source).strip() == '// [unparsed] print("hi")'
    assert _swift(source, unknown_policy="omit") == ""
    assert _swift(source, unknown_policy="passthrough").strip() == 'console.log("hi");'


def test_runtime_support_forces_preamble():
    code = _swift("let limit = 10", runtime_support=True)
    assert code.startswith(RUNTIME_PREAMBLE)
    assert code.rstrip().endswith("const limit = 10;")


# --- Objective-C generation ---


def test_objc_class_generation(sandbox):
    code = _objc(PERSON_OBJC)
    assert "class Person {" in code
    assert "this.name = null;" in code
    assert "this.age = 0;" in code
    assert "initWithNameAge(name, age) {" in code
    assert "static anonymous() {" in code
    # stringWithFormat: pulls in the runtime preamble
    assert code.startswith(RUNTIME_PREAMBLE)

    value, _ = sandbox.run(code + "\nreturn Person.anonymous().greeting();")
    assert value == "Hi anon"
    value, _ = sandbox.run(code + '\nvar p = new Person().initWithNameAge("Ada", 36);\nreturn [p.name, p.age];')
    assert value == ["Ada", 36]


def test_objc_c_function(sandbox):
    code = _objc("static int square(int x) {\n    return x * x;\n}\n")
    assert "function square(x) {" in code
    value, _ = sandbox.run(code + "\nreturn square(7);")
    assert value == 49
