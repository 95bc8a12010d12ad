"""Pytest configuration and fixtures for Droog tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from droog.extractor import Fallback, SymbolExtractor, reset_default_strategy
from droog.indexer import CodebaseIndexer


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the config file at a temp location and forget the cached parser strategy.

    A developer's own ``~/.droog/config.toml`` must never change test outcomes.
    """
    monkeypatch.setattr("droog.config_manager.CONFIG_FILE", tmp_path / "droog-home" / "config.toml")
    reset_default_strategy()
    yield
    reset_default_strategy()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_repo_path() -> Path:
    """Get path to the sample repository."""
    return Path(__file__).parent / "fixtures" / "sample_repo"


@pytest.fixture
def regex_extractor() -> SymbolExtractor:
    """Extractor pinned to the regex tier, independent of installed grammars."""
    return SymbolExtractor(Fallback("tests"))


@pytest.fixture
def regex_indexer(regex_extractor: SymbolExtractor) -> CodebaseIndexer:
    return CodebaseIndexer(regex_extractor)


@pytest.fixture
def sample_java_code() -> str:
    """Java class with a constructor, an overload pair and an internal call."""
    return '''package com.example;

public class Worker {

    private int runs;

    public Worker() {
        this.runs = 0;
    }

    public void run() {
        otherMethod();
    }

    public void otherMethod() {
        System.out.println("hi");
    }

    public int add(int a, int b) {
        return a + b;
    }

    public int add(int a, int b, int c) {
        return a + b + c;
    }

    static String[] split(final String value, char sep) {
        return value.split(String.valueOf(sep));
    }
}
'''


@pytest.fixture
def duplicated_java_code() -> str:
    """Two methods whose bodies are identical apart from their names."""
    return '''public class DataProcessor {

    public String processData1(String input) {
        String trimmed = input.trim();
        return trimmed.toUpperCase();
    }

    public String processData2(String input) {
        String trimmed = input.trim();
        return trimmed.toUpperCase();
    }
}
'''


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing extraction."""
    return '''class Greeter:
    def __init__(self, name):
        self.name = name

    def greet(self, punctuation: str = "!") -> str:
        return self._format() + punctuation

    @staticmethod
    def helper(x):
        return x

    def _format(self):
        return "Hello " + self.name


def main():
    print(Greeter("x").greet())
'''
