"""Tests for CodebaseIndexer."""

from droog.indexer import CodebaseIndexer
from droog.models import CodeIndex


PAYMENT_JAVA = '''public class Payment {
    public void charge() {
        validate();
        audit();
    }

    public void validate() {
    }

    public void audit() {
    }
}
'''


def test_index_file_populates_all_structures(regex_indexer: CodebaseIndexer, sample_java_code: str):
    parsed = regex_indexer.index_file("src/Worker.java", sample_java_code)
    index = regex_indexer.get_index()

    assert index.symbols == parsed.symbols
    assert index.file_map["src/Worker.java"] == parsed.symbols
    assert regex_indexer.find_symbol("run").name == "run"
    assert len(index.call_graph) == 1
    assert regex_indexer.stats() == {
        "files": 1,
        "symbols": len(parsed.symbols),
        "calls": 1,
        "names": len({s.name for s in parsed.symbols}),
    }


def test_symbol_map_keeps_most_recent(regex_indexer: CodebaseIndexer, sample_java_code: str):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    adds = regex_indexer.find_symbols("add")
    assert len(adds) == 2
    assert regex_indexer.find_symbol("add") is adds[-1]


def test_reindexing_is_append_only(regex_indexer: CodebaseIndexer, sample_java_code: str):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    calls_once = len(regex_indexer.get_index().call_graph)
    symbols_once = len(regex_indexer.get_index().symbols)

    regex_indexer.index_file("src/Worker.java", sample_java_code)

    assert len(regex_indexer.get_index().call_graph) == 2 * calls_once
    assert len(regex_indexer.get_index().symbols) == 2 * symbols_once
    assert len(regex_indexer.get_file_symbols("src/Worker.java")) == 2 * symbols_once


def test_reindex_file_replaces(regex_indexer: CodebaseIndexer, sample_java_code: str):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    regex_indexer.index_file("src/Payment.java", PAYMENT_JAVA)
    symbols_before = len(regex_indexer.get_index().symbols)

    regex_indexer.reindex_file("src/Worker.java", sample_java_code)
    regex_indexer.reindex_file("src/Worker.java", sample_java_code)

    index = regex_indexer.get_index()
    assert len(index.symbols) == symbols_before
    assert len([e for e in index.call_graph if e.file == "src/Worker.java"]) == 1
    assert regex_indexer.find_symbol("charge") is not None


def test_remove_file(regex_indexer: CodebaseIndexer, sample_java_code: str):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    regex_indexer.index_file("src/Payment.java", PAYMENT_JAVA)

    removed = regex_indexer.remove_file("src/Worker.java")

    assert removed > 0
    assert regex_indexer.get_file_symbols("src/Worker.java") == []
    assert regex_indexer.find_symbol("run") is None
    assert regex_indexer.find_symbol("charge") is not None
    assert all(e.file == "src/Payment.java" for e in regex_indexer.get_index().call_graph)
    assert regex_indexer.remove_file("src/Missing.java") == 0


def test_callers_and_callees(regex_indexer: CodebaseIndexer):
    regex_indexer.index_file("src/Payment.java", PAYMENT_JAVA)

    callees = regex_indexer.find_callees("charge")
    assert sorted(e.callee for e in callees) == ["audit", "validate"]
    assert [e.caller for e in regex_indexer.find_callers("validate")] == ["charge"]
    assert regex_indexer.find_callers("charge") == []
    assert regex_indexer.find_callers("nothing") == []


def test_index_files_parallel_keeps_order(regex_indexer: CodebaseIndexer, sample_java_code: str):
    files = [
        ("src/Worker.java", sample_java_code),
        ("src/Payment.java", PAYMENT_JAVA),
        ("app/empty.py", ""),
    ]
    parsed = regex_indexer.index_files(files, max_workers=4)

    assert [p.file_path for p in parsed] == ["src/Worker.java", "src/Payment.java", "app/empty.py"]
    sequential = CodebaseIndexer(regex_indexer.extractor)
    sequential.index_files(dict(files))
    assert [s.key for s in regex_indexer.get_index().symbols] == [
        s.key for s in sequential.get_index().symbols
    ]
    assert len(regex_indexer.get_index().call_graph) == 3


def test_clear(regex_indexer: CodebaseIndexer, sample_java_code: str):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    regex_indexer.clear()
    assert regex_indexer.get_index() == CodeIndex()
    assert regex_indexer.find_symbol("run") is None


def test_from_index_copies(regex_indexer: CodebaseIndexer, sample_java_code: str, regex_extractor):
    regex_indexer.index_file("src/Worker.java", sample_java_code)
    restored = CodebaseIndexer.from_index(regex_indexer.get_index(), regex_extractor)

    restored.index_file("src/Payment.java", PAYMENT_JAVA)

    assert restored.find_symbol("charge") is not None
    assert regex_indexer.find_symbol("charge") is None
