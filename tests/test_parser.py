"""Tests for the tree-sitter structural tier and the syntax visitor."""

import pytest

from droog.models import Parameter
from droog.parser import ParserUnavailableError, init_parser_engine, try_init_parser_engine
from droog.syntax import DIALECTS, NodeKind, SyntaxVisitor


def _by_name(symbols, name, kind=None):
    matches = [s for s in symbols if s.name == name and (kind is None or s.kind == kind)]
    assert matches, f"{name} not extracted"
    return matches


def _engine(language: str):
    pytest.importorskip("tree_sitter")
    module = {
        "java": "tree_sitter_java",
        "python": "tree_sitter_python",
        "javascript": "tree_sitter_javascript",
        "typescript": "tree_sitter_typescript",
        "go": "tree_sitter_go",
    }[language]
    pytest.importorskip(module)
    return init_parser_engine([language])


# ===================================================================
# Visitor contract
# ===================================================================

class _CountingVisitor(SyntaxVisitor):
    def __init__(self, dialect):
        super().__init__(dialect)
        self.seen = []

    def visit_class(self, node):
        self.seen.append(NodeKind.CLASS)

    def visit_method(self, node):
        self.seen.append(NodeKind.METHOD)

    def visit_constructor(self, node):
        self.seen.append(NodeKind.CONSTRUCTOR)

    def visit_function(self, node):
        self.seen.append(NodeKind.FUNCTION)

    def visit_call(self, node):
        self.seen.append(NodeKind.CALL)


def test_dispatch_table_covers_every_kind():
    visitor = _CountingVisitor(DIALECTS["java"])
    assert set(visitor._handlers) == set(NodeKind)


def test_visitor_missing_a_handler_cannot_be_built():
    class Incomplete(SyntaxVisitor):
        def visit_class(self, node): ...
        def visit_method(self, node): ...
        def visit_constructor(self, node): ...
        def visit_function(self, node): ...

    with pytest.raises(TypeError):
        Incomplete(DIALECTS["java"])


def test_dialects_registered():
    assert set(DIALECTS) == {"java", "python", "javascript", "typescript", "go"}


# ===================================================================
# Initialisation
# ===================================================================

def test_unknown_language_only_raises():
    with pytest.raises(ParserUnavailableError):
        init_parser_engine(["cobol"])


def test_try_init_reports_failure_as_value():
    result = try_init_parser_engine(["cobol"])
    assert not result.ok
    assert result.engine is None
    assert result.error


def test_try_init_success():
    engine = _engine("java")
    assert engine.languages == ["java"]
    assert engine.supports_language("java")
    assert not engine.supports_language("python")


# ===================================================================
# Java
# ===================================================================

class TestJavaStructural:
    def test_symbols(self, sample_java_code: str):
        engine = _engine("java")
        symbols, had_errors = engine.extract_symbols(sample_java_code, "src/Worker.java", "java")
        assert not had_errors

        worker = _by_name(symbols, "Worker", "class")[0]
        assert (worker.start_line, worker.end_line) == (3, 30)

        ctor = _by_name(symbols, "Worker", "constructor")[0]
        assert ctor.return_type is None
        assert ctor.visibility == "public"

        run = _by_name(symbols, "run")[0]
        assert run.kind == "method"
        assert run.return_type == "void"
        assert (run.start_line, run.end_line) == (11, 13)

        assert len(_by_name(symbols, "add")) == 2

        split = _by_name(symbols, "split")[0]
        assert split.is_static
        assert split.visibility == "package"
        assert split.parameters == (Parameter("value", "String"), Parameter("sep", "char"))
        assert split.signature == "String[] split(String value, char sep)"

    def test_interface_members_are_public(self):
        engine = _engine("java")
        symbols, _ = engine.extract_symbols(
            "interface Shape {\n    double area();\n}\n", "Shape.java", "java",
        )
        assert _by_name(symbols, "area")[0].visibility == "public"

    def test_calls(self, sample_java_code: str):
        engine = _engine("java")
        symbols, _ = engine.extract_symbols(sample_java_code, "src/Worker.java", "java")
        edges = engine.extract_calls(sample_java_code, symbols, "src/Worker.java", "java")
        assert [(e.caller, e.callee, e.line) for e in edges] == [("run", "otherMethod", 12)]

    def test_damaged_source_reports_errors(self):
        engine = _engine("java")
        _symbols, had_errors = engine.extract_symbols("public class {{ void (", "Bad.java", "java")
        assert had_errors


# ===================================================================
# Other languages
# ===================================================================

def test_python_structural(sample_python_code: str):
    engine = _engine("python")
    symbols, _ = engine.extract_symbols(sample_python_code, "app/greeter.py", "python")

    assert _by_name(symbols, "Greeter", "class")[0].end_line == 13
    init = _by_name(symbols, "__init__")[0]
    assert init.kind == "constructor"
    assert init.parameters == (Parameter("name", ""),)

    greet = _by_name(symbols, "greet")[0]
    assert greet.kind == "method"
    assert greet.return_type == "str"
    assert greet.parameters == (Parameter("punctuation", "str"),)

    assert _by_name(symbols, "helper")[0].is_static
    assert _by_name(symbols, "_format")[0].visibility == "private"
    assert _by_name(symbols, "main")[0].kind == "function"

    edges = engine.extract_calls(sample_python_code, symbols, "app/greeter.py", "python")
    assert {(e.caller, e.callee) for e in edges} == {("greet", "_format"), ("main", "greet")}


def test_javascript_structural(sample_repo_path):
    engine = _engine("javascript")
    source = (sample_repo_path / "web" / "cart.js").read_text()
    symbols, _ = engine.extract_symbols(source, "web/cart.js", "javascript")

    assert _by_name(symbols, "constructor")[0].kind == "constructor"
    assert _by_name(symbols, "empty")[0].is_static
    assert _by_name(symbols, "formatPrice")[0].parameters == (Parameter("value", ""),)
    double = _by_name(symbols, "double")[0]
    assert double.kind == "function"
    assert double.parameters == (Parameter("x", ""),)
    # Plain values are not functions
    assert not [s for s in symbols if s.name == "items"]


def test_typescript_structural():
    engine = _engine("typescript")
    source = (
        "export class Repo {\n"
        "  public async find(id: string): Promise<User> {\n"
        "    return this.load(id);\n"
        "  }\n"
        "  private load(id: string): User {\n"
        "    return null;\n"
        "  }\n"
        "}\n"
    )
    symbols, _ = engine.extract_symbols(source, "repo.ts", "typescript")
    find = _by_name(symbols, "find")[0]
    assert find.return_type == "Promise<User>"
    assert find.parameters == (Parameter("id", "string"),)
    assert _by_name(symbols, "load")[0].visibility == "private"


def test_go_structural():
    engine = _engine("go")
    source = (
        "package shapes\n"
        "\n"
        "type Rect struct {\n"
        "\tW, H float64\n"
        "}\n"
        "\n"
        "type Meters float64\n"
        "\n"
        "func (r *Rect) Area() float64 {\n"
        "\treturn r.W * r.H\n"
        "}\n"
        "\n"
        "func NewRect(w, h float64) *Rect {\n"
        "\treturn &Rect{W: w, H: h}\n"
        "}\n"
    )
    symbols, _ = engine.extract_symbols(source, "shapes/rect.go", "go")
    assert _by_name(symbols, "Rect", "class")
    assert not [s for s in symbols if s.name == "Meters"]
    area = _by_name(symbols, "Area")[0]
    assert area.kind == "method"
    assert area.return_type == "float64"
    new_rect = _by_name(symbols, "NewRect")[0]
    assert new_rect.parameters == (Parameter("w", "float64"), Parameter("h", "float64"))
    assert new_rect.return_type == "*Rect"
