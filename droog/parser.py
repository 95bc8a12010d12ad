"""Structural extraction tier built on Tree-sitter.

Tree-sitter produces a concrete syntax tree that survives minor syntax errors,
so declarations are read from grammar nodes instead of being guessed from
line patterns. Initialisation is an explicit step: :func:`init_parser_engine`
either returns a ready :class:`ParserEngine` or raises
:class:`ParserUnavailableError`.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import CALLABLE_KINDS, MODULE_CALLER, CallEdge, Symbol, render_signature
from .syntax import CALLABLE_NODE_KINDS, DIALECTS, Dialect, SyntaxVisitor

logger = logging.getLogger(__name__)


class ParserUnavailableError(RuntimeError):
    """Raised when no tree-sitter grammar could be loaded."""


# Map language name -> (module providing the grammar, language() accessor)
GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "java": ("tree_sitter_java", "language"),
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "go": ("tree_sitter_go", "language"),
}


# ===================================================================
# Visitors
# ===================================================================

class _SymbolCollector(SyntaxVisitor):
    def __init__(self, dialect: Dialect, file_path: str, lines: Sequence[str]) -> None:
        super().__init__(dialect)
        self.file_path = file_path
        self.lines = lines
        self.symbols: List[Symbol] = []
        self._class_stack: List[str] = []

    def visit_class(self, node: Any) -> None:
        name = self.dialect.name(node)
        if name:
            self.symbols.append(self._symbol(node, name, "class"))
        self._class_stack.append(name or "")
        self.generic_visit(node)
        self._class_stack.pop()

    def visit_method(self, node: Any) -> None:
        self._callable(node, "method")

    def visit_constructor(self, node: Any) -> None:
        self._callable(node, "constructor")

    def visit_function(self, node: Any) -> None:
        self._callable(node, "function")

    def visit_call(self, node: Any) -> None:
        self.generic_visit(node)

    def _callable(self, node: Any, kind: str) -> None:
        name = self.dialect.name(node)
        if name:
            if kind == "method" and self._class_stack and name == self._class_stack[-1]:
                kind = "constructor"
            self.symbols.append(self._symbol(node, name, kind))
        self.generic_visit(node)

    def _symbol(self, node: Any, name: str, kind: str) -> Symbol:
        start_line = node.start_point[0] + 1
        end_line = max(node.end_point[0] + 1, start_line)
        if kind == "class":
            parameters: Tuple = ()
            return_type = None
            signature = f"class {name}"
        else:
            parameters = tuple(self.dialect.parameters(node))
            return_type = None if kind == "constructor" else self.dialect.return_type(node)
            signature = render_signature(name, parameters, return_type)
        modifiers = self.dialect.modifiers(node)
        return Symbol(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            file=self.file_path,
            start_line=start_line,
            end_line=end_line,
            signature=signature,
            return_type=return_type,
            parameters=parameters,
            visibility=modifiers.visibility,  # type: ignore[arg-type]
            is_static=modifiers.is_static,
            raw_code="\n".join(self.lines[start_line - 1:end_line]),
        )


class _CallCollector(SyntaxVisitor):
    def __init__(self, dialect: Dialect, file_path: str, known: Iterable[str]) -> None:
        super().__init__(dialect)
        self.file_path = file_path
        self.known = set(known)
        self.edges: List[CallEdge] = []

    def visit_class(self, node: Any) -> None:
        self.generic_visit(node)

    def visit_method(self, node: Any) -> None:
        self.generic_visit(node)

    def visit_constructor(self, node: Any) -> None:
        self.generic_visit(node)

    def visit_function(self, node: Any) -> None:
        self.generic_visit(node)

    def visit_call(self, node: Any) -> None:
        callee = self.dialect.callee(node)
        if callee and callee in self.known:
            caller = self._enclosing_caller(node)
            if caller != callee:
                self.edges.append(CallEdge(
                    caller=caller,
                    callee=callee,
                    file=self.file_path,
                    line=node.start_point[0] + 1,
                ))
        # Arguments may contain further invocations
        self.generic_visit(node)

    def _enclosing_caller(self, node: Any) -> str:
        parent = node.parent
        while parent is not None:
            if self.dialect.classify(parent) in CALLABLE_NODE_KINDS:
                name = self.dialect.name(parent)
                if name:
                    return name
            parent = parent.parent
        return MODULE_CALLER


# ===================================================================
# Engine
# ===================================================================

class ParserEngine:
    """Loaded tree-sitter parsers keyed by language tag."""

    def __init__(self, parsers: Dict[str, Any]) -> None:
        self._parsers = parsers

    @property
    def languages(self) -> List[str]:
        return sorted(self._parsers)

    def supports_language(self, language: str) -> bool:
        return language in self._parsers and language in DIALECTS

    def parse(self, source: str, language: str) -> Any:
        return self._parsers[language].parse(source.encode("utf-8"))

    def extract_symbols(
        self,
        source: str,
        file_path: str,
        language: str,
    ) -> Tuple[List[Symbol], bool]:
        """Return ``(symbols, tree_has_errors)`` for *source*."""
        tree = self.parse(source, language)
        collector = _SymbolCollector(DIALECTS[language], file_path, source.splitlines())
        collector.visit(tree.root_node)
        return collector.symbols, bool(tree.root_node.has_error)

    def extract_calls(
        self,
        source: str,
        symbols: Sequence[Symbol],
        file_path: str,
        language: str,
    ) -> List[CallEdge]:
        known = (s.name for s in symbols if s.kind in CALLABLE_KINDS)
        tree = self.parse(source, language)
        collector = _CallCollector(DIALECTS[language], file_path, known)
        collector.visit(tree.root_node)
        return collector.edges


def init_parser_engine(languages: Optional[Iterable[str]] = None) -> ParserEngine:
    """Load tree-sitter grammars for *languages* (default: all supported).

    Raises:
        ParserUnavailableError: tree-sitter is missing or no grammar loaded.
    """
    try:
        from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
    except ImportError as exc:
        raise ParserUnavailableError(
            "tree-sitter is not installed. Install with: pip install tree-sitter"
        ) from exc

    parsers: Dict[str, Any] = {}
    for lang in languages or GRAMMAR_MODULES:
        entry = GRAMMAR_MODULES.get(lang)
        if entry is None:
            logger.warning("No grammar module mapped for language '%s'", lang)
            continue
        mod_name, accessor = entry
        try:
            mod = importlib.import_module(mod_name)
            parsers[lang] = TSParser(Language(getattr(mod, accessor)()))
            logger.debug("Loaded tree-sitter parser for %s", lang)
        except ImportError:
            logger.debug(
                "Grammar package '%s' not installed for language '%s'",
                mod_name, lang,
            )
        except Exception as exc:
            logger.warning("Could not load tree-sitter grammar for %s: %s", lang, exc)

    if not parsers:
        raise ParserUnavailableError("no tree-sitter grammar could be loaded")
    return ParserEngine(parsers)


@dataclass(frozen=True)
class EngineInit:
    """Outcome of a parser initialisation attempt."""

    engine: Optional[ParserEngine] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.engine is not None


def try_init_parser_engine(languages: Optional[Iterable[str]] = None) -> EngineInit:
    try:
        return EngineInit(engine=init_parser_engine(languages))
    except ParserUnavailableError as exc:
        return EngineInit(error=str(exc))
