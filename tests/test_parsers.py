"""Tests for the line scanner and the Swift / Objective-C dialect parsers."""

from jitphone.ir.models import Dialect
from jitphone.ir.objc_parser import parse_objc_source, selector_name
from jitphone.ir.parsers import parse_source, resolve_dialect
from jitphone.ir.scanner import brace_delta, capture_block, significant_lines, split_top_level
from jitphone.ir.swift_parser import parse_swift_source

POINT_SWIFT = """
import Foundation

// A 2D point
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

ANIMALS_SWIFT = """
class Animal {
    var name: String

    init(name: String) {
        self.name = name
    }

    func speak() -> String {
        return "..."
    }
}

class Dog: Animal, Equatable {
    override func speak() -> String {
        return "Woof"
    }
}
"""

PERSON_OBJC = """
#import <Foundation/Foundation.h>

@interface Person : NSObject
@property (nonatomic, strong) NSString *name;
@property (nonatomic) NSInteger age;
- (instancetype)initWithName:(NSString *)name age:(NSInteger)age;
- (NSString *)greeting;
+ (Person *)anonymous;
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


# --- Scanner ---


def test_significant_lines_drop_comments_and_blanks():
    lines = significant_lines('let a = 1 // note\n\n/* block\n comment */\nlet b = "// kept"\n')
    assert [line.text for line in lines] == ["let a = 1", 'let b = "// kept"']
    assert [line.number for line in lines] == [1, 5]


def test_capture_block_spanning_lines():
    lines = significant_lines("func f() {\n    if x {\n        y()\n    }\n}\nlet after = 1")
    block = capture_block(lines, 0)
    assert block.closed
    assert block.end == 4
    assert block.body == "if x {\ny()\n}"


def test_capture_block_unterminated():
    lines = significant_lines("func f() {\n    y()\n")
    block = capture_block(lines, 0)
    assert not block.closed
    assert block.opened
    assert block.body == "y()"


def test_split_top_level_respects_nesting():
    assert split_top_level("a, (b, c), [d, e], f") == ["a", "(b, c)", "[d, e]", "f"]
    assert split_top_level('x, "y, z"') == ["x", '"y, z"']


def test_brace_delta_ignores_strings():
    assert brace_delta('if x { "}"') == 1
    assert brace_delta("}") == -1


# --- Dialect resolution ---


def test_resolve_dialect_aliases():
    assert resolve_dialect("Swift") == Dialect.SWIFT
    assert resolve_dialect("objective-c") == Dialect.OBJC
    assert resolve_dialect("js") == Dialect.JAVASCRIPT
    assert resolve_dialect("cobol") is None


def test_parse_source_dispatches_by_dialect():
    module = parse_source(POINT_SWIFT, Dialect.SWIFT)
    assert module.dialect == Dialect.SWIFT
    assert module.structs[0].name == "Point"


# --- Swift parser ---


def test_swift_struct_with_method():
    module = parse_swift_source(POINT_SWIFT)
    assert module.imports == ["Foundation"]
    assert len(module.structs) == 1

    point = module.structs[0]
    assert [p.name for p in point.stored_properties] == ["x", "y"]
    assert point.properties[0].type_name == "Double"

    method = point.methods[0]
    assert method.name == "distance"
    assert method.return_type == "Double"
    assert method.parameters[0].label == "to"
    assert method.parameters[0].name == "other"
    assert method.body.split("\n") == [
        "let dx = x - other.x",
        "let dy = y - other.y",
        "return sqrt(dx * dx + dy * dy)",
    ]
    assert module.warnings == []


def test_swift_class_inheritance_and_initializer():
    module = parse_swift_source(ANIMALS_SWIFT)
    animal = module.find_class("Animal")
    dog = module.find_class("Dog")

    assert animal.superclass == ""
    assert len(animal.initializers) == 1
    assert animal.initializers[0].parameters[0].name == "name"
    assert animal.initializers[0].body == "self.name = name"

    assert dog.superclass == "Animal"
    assert dog.protocols == ["Equatable"]
    assert dog.find_method("speak").body == 'return "Woof"'


def test_swift_known_protocol_is_not_a_superclass():
    module = parse_swift_source("class Token: Hashable {\n    var id: Int = 0\n}")
    token = module.classes[0]
    assert token.superclass == ""
    assert token.protocols == ["Hashable"]
    assert token.properties[0].initial_value == "0"


def test_swift_enum_cases_and_raw_values():
    source = """
enum Direction: Int {
    case north, south
    case east = 10
    case west
}
"""
    module = parse_swift_source(source)
    direction = module.enums[0]
    assert direction.raw_type == "Int"
    assert [c.name for c in direction.cases] == ["north", "south", "east", "west"]
    assert direction.cases[2].raw_value == "10"


def test_swift_associated_values_are_dropped_with_warning():
    module = parse_swift_source("enum Shape {\n    case circle(Double)\n    case square\n}")
    assert [c.name for c in module.enums[0].cases] == ["circle", "square"]
    assert any("associated values" in w.message for w in module.warnings)


def test_swift_protocol_and_extension():
    source = """
protocol Shape {
    func area() -> Double
    var name: String { get }
}

extension Point: Shape {
    var name: String {
        return "point"
    }

    func area() -> Double {
        return 0
    }
}
"""
    module = parse_swift_source(source)
    shape = module.protocols[0]
    assert [r.name for r in shape.requirements] == ["area"]
    assert shape.requirements[0].is_declaration
    assert [p.name for p in shape.properties] == ["name"]

    ext = module.extensions[0]
    assert ext.extended_type == "Point"
    assert ext.protocols == ["Shape"]
    assert ext.properties[0].is_computed
    assert ext.methods[0].name == "area"
    assert module.warnings == []


def test_swift_computed_property_with_accessors():
    source = """
struct Temperature {
    var celsius: Double
    var fahrenheit: Double {
        get {
            return celsius * 9 / 5 + 32
        }
        set(value) {
            celsius = (value - 32) * 5 / 9
        }
    }
}
"""
    module = parse_swift_source(source)
    prop = module.structs[0].properties[1]
    assert prop.is_computed
    assert prop.getter == "return celsius * 9 / 5 + 32"
    assert prop.setter == "celsius = (value - 32) * 5 / 9"
    assert prop.setter_param == "value"
    assert [p.name for p in module.structs[0].stored_properties] == ["celsius"]


def test_swift_top_level_function_and_variable():
    module = parse_swift_source("let limit = 10\n\nfunc double(_ n: Int) -> Int {\n    return n * 2\n}\n")
    assert module.variables[0].name == "limit"
    assert module.variables[0].is_constant
    assert module.functions[0].name == "double"
    assert module.functions[0].parameters[0].label == "_"


def test_swift_unterminated_struct_is_kept_with_warning():
    module = parse_swift_source("struct Broken {\n    var x: Int\n")
    assert module.structs[0].name == "Broken"
    assert [p.name for p in module.structs[0].properties] == ["x"]
    assert any("unterminated struct 'Broken'" in w.message for w in module.warnings)


def test_swift_unrecognized_statement_becomes_unknown():
    module = parse_swift_source('print("hi")\n')
    assert len(module.unknowns) == 1
    assert module.unknowns[0].text == 'print("hi")'
    assert module.warnings[0].line == 1
    assert "unrecognized top-level statement" in str(module.warnings[0])


def test_swift_parser_never_raises_on_garbage():
    module = parse_swift_source("}}} {{{ func ( class : struct")
    assert module.declaration_count == 0
    assert module.warnings
    assert module.unknowns[0].reason == "top-level statement"


# --- Objective-C parser ---


def test_selector_name():
    assert selector_name(["setName", "age"]) == "setNameAge"
    assert selector_name(["count"]) == "count"
    assert selector_name([]) == ""


def test_objc_interface_and_implementation_merge():
    module = parse_objc_source(PERSON_OBJC)
    assert module.imports == ["Foundation/Foundation.h"]
    assert len(module.classes) == 1

    person = module.classes[0]
    assert person.superclass == "NSObject"
    assert [p.name for p in person.properties] == ["name", "age"]
    assert person.properties[0].type_name == "NSString"
    assert "strong" in person.properties[0].attributes

    assert [i.name for i in person.initializers] == ["initWithNameAge"]
    assert [p.label for p in person.initializers[0].parameters] == ["initWithName", "age"]

    greeting = person.find_method("greeting")
    assert not greeting.is_declaration
    assert greeting.return_type == "NSString"
    anonymous = person.find_method("anonymous")
    assert anonymous.is_static
    assert module.warnings == []


def test_objc_ns_enum_and_c_function():
    source = """
typedef NS_ENUM(NSInteger, Color) {
    ColorRed,
    ColorGreen = 5,
    ColorBlue
};

static int square(int x) {
    return x * x;
}
"""
    module = parse_objc_source(source)
    color = module.enums[0]
    assert color.name == "Color"
    assert color.raw_type == "Int"
    assert [c.name for c in color.cases] == ["ColorRed", "ColorGreen", "ColorBlue"]
    assert color.cases[1].raw_value == "5"

    square = module.functions[0]
    assert square.name == "square"
    assert square.return_type == "int"
    assert [p.name for p in square.parameters] == ["x"]
    assert square.body == "return x * x;"


def test_objc_category_becomes_extension():
    source = """
@interface NSString (Shouting)
- (NSString *)shout;
@end

@implementation NSString (Shouting)
- (NSString *)shout {
    return [self uppercaseString];
}
@end
"""
    module = parse_objc_source(source)
    assert len(module.extensions) == 1
    ext = module.extensions[0]
    assert ext.extended_type == "NSString"
    assert ext.category == "Shouting"
    assert ext.methods[0].body == "return [self uppercaseString];"


def test_objc_missing_end_is_reported():
    module = parse_objc_source("@interface Loose : NSObject\n@property (nonatomic) int value;\n")
    assert module.classes[0].name == "Loose"
    assert any("missing @end" in w.message for w in module.warnings)


def test_objc_method_outside_implementation_is_unknown():
    module = parse_objc_source("- (void)orphan {\n    return;\n}\n")
    assert len(module.unknowns) == 1
    assert module.unknowns[0].reason == "method"
    assert any("outside of @implementation" in w.message for w in module.warnings)


def test_objc_malformed_selector_is_skipped_with_warning():
    source = "@implementation Widget\n- (void)do-thing {\n    return;\n}\n- (void)ok {\n}\n@end\n"
    module = parse_objc_source(source)
    assert [m.name for m in module.classes[0].methods] == ["ok"]
    assert module.unknowns[0].line == 2
    assert module.warnings[0].line == 2
    assert module.warnings[0].message == "unrecognized method signature"


def test_objc_parser_never_raises_on_truncated_input():
    module = parse_objc_source("@implementation Foo\n- (void)bar {\n    [self baz")
    assert module.classes[0].name == "Foo"
    assert any("unterminated body" in w.message for w in module.warnings)
    assert any("missing @end" in w.message for w in module.warnings)
