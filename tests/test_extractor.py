"""Tests for the extraction facade and tier selection."""

import logging

import pytest

from droog import extractor as extractor_module
from droog.config_manager import save_config
from droog.extractor import Fallback, Structural, SymbolExtractor, default_strategy
from droog.parser import EngineInit


class _FakeEngine:
    """Stands in for a ParserEngine with scripted behaviour."""

    def __init__(self, symbols=None, had_errors=False, fail=False):
        self.symbols = symbols or []
        self.had_errors = had_errors
        self.fail = fail
        self.calls = 0

    def supports_language(self, language):
        return language == "java"

    def extract_symbols(self, source, file_path, language):
        self.calls += 1
        if self.fail:
            raise RuntimeError("grammar exploded")
        return list(self.symbols), self.had_errors

    def extract_calls(self, source, symbols, file_path, language):
        raise RuntimeError("grammar exploded")


# ===================================================================
# Strategy selection
# ===================================================================

def test_default_strategy_is_initialised_once(monkeypatch, caplog):
    attempts = []

    def failing_init():
        attempts.append(1)
        return EngineInit(error="no grammars today")

    monkeypatch.setattr(extractor_module, "try_init_parser_engine", failing_init)
    with caplog.at_level(logging.WARNING, logger="droog.extractor"):
        first = default_strategy()
        second = default_strategy()
        SymbolExtractor().extract("class A {}", "A.java")

    assert isinstance(first, Fallback)
    assert first is second
    assert first.reason == "no grammars today"
    assert len(attempts) == 1
    warnings = [r for r in caplog.records if "Structural parsing unavailable" in r.getMessage()]
    assert len(warnings) == 1


def test_structural_parsing_can_be_disabled(monkeypatch):
    save_config("parser", {"structural": False})
    monkeypatch.setattr(
        extractor_module, "try_init_parser_engine",
        lambda: pytest.fail("parser initialisation should be skipped"),
    )
    assert isinstance(default_strategy(), Fallback)


def test_successful_init_gives_structural(monkeypatch):
    engine = _FakeEngine()
    monkeypatch.setattr(extractor_module, "try_init_parser_engine", lambda: EngineInit(engine=engine))
    strategy = default_strategy()
    assert isinstance(strategy, Structural)
    assert SymbolExtractor().structural


# ===================================================================
# Extraction
# ===================================================================

def test_fallback_uses_regex_tier(regex_extractor, sample_java_code):
    parsed = regex_extractor.extract(sample_java_code, "src/Worker.java")
    assert parsed.strategy == "regex"
    assert parsed.language == "java"
    assert parsed.file_path == "src/Worker.java"
    assert {s.name for s in parsed.symbols} >= {"Worker", "run", "otherMethod", "add", "split"}


def test_engine_exception_falls_back_to_regex(sample_java_code):
    engine = _FakeEngine(fail=True)
    parsed = SymbolExtractor(Structural(engine)).extract(sample_java_code, "src/Worker.java")
    assert engine.calls == 1
    assert parsed.strategy == "regex"
    assert parsed.symbols


def test_damaged_tree_without_symbols_falls_back(sample_java_code):
    engine = _FakeEngine(symbols=[], had_errors=True)
    parsed = SymbolExtractor(Structural(engine)).extract(sample_java_code, "src/Worker.java")
    assert parsed.strategy == "regex"
    assert parsed.symbols


def test_clean_empty_tree_is_trusted():
    engine = _FakeEngine(symbols=[], had_errors=False)
    parsed = SymbolExtractor(Structural(engine)).extract("// nothing here\n", "Empty.java")
    assert parsed.strategy == "structural"
    assert parsed.symbols == []


def test_unsupported_language_goes_straight_to_regex(sample_python_code):
    engine = _FakeEngine()
    parsed = SymbolExtractor(Structural(engine)).extract(sample_python_code, "app/greeter.py")
    assert engine.calls == 0
    assert parsed.strategy == "regex"
    assert "Greeter" in {s.name for s in parsed.symbols}


def test_extract_regex_ignores_strategy(sample_java_code):
    engine = _FakeEngine()
    parsed = SymbolExtractor(Structural(engine)).extract_regex(sample_java_code, "src/Worker.java")
    assert engine.calls == 0
    assert parsed.strategy == "regex"


def test_bytes_and_none_are_accepted(regex_extractor):
    parsed = regex_extractor.extract(b"public class A {\n}\n", "A.java")
    assert [s.name for s in parsed.symbols] == ["A"]
    assert regex_extractor.extract(None, "A.java").symbols == []


@pytest.mark.parametrize("path", ["a.java", "a.py", "a.ts", "a.go", "a.rs", "a.unknown"])
@pytest.mark.parametrize("source", ["", "\x00\x01{{{", "class", "def (", "}" * 50, "fn f( -> {"])
def test_extract_never_raises(regex_extractor, path, source):
    parsed = regex_extractor.extract(source, path)
    for symbol in parsed.symbols:
        assert symbol.start_line <= symbol.end_line


# ===================================================================
# Calls
# ===================================================================

def test_calls_fall_back_when_engine_fails(sample_java_code, regex_extractor):
    symbols = regex_extractor.extract(sample_java_code, "src/Worker.java").symbols
    extractor = SymbolExtractor(Structural(_FakeEngine()))
    edges = extractor.extract_calls(sample_java_code, symbols, "src/Worker.java")
    assert [(e.caller, e.callee) for e in edges] == [("run", "otherMethod")]


def test_calls_without_symbols(regex_extractor):
    assert regex_extractor.extract_calls("foo();", []) == []


def test_calls_with_default_strategy(sample_java_code):
    parsed = SymbolExtractor().extract(sample_java_code, "src/Worker.java")
    edges = SymbolExtractor().extract_calls(sample_java_code, parsed.symbols, "src/Worker.java")
    assert len(edges) == 1
    assert (edges[0].caller, edges[0].callee) == ("run", "otherMethod")
