"""Codebase indexer: symbols, call graph, file map and name map."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .extractor import SymbolExtractor
from .models import CallEdge, CodeIndex, ParsedFile, Symbol

logger = logging.getLogger(__name__)

FileBatch = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


class CodebaseIndexer:
    """Accumulates extraction results for many files.

    ``index_file`` only appends, so indexing the same file twice duplicates
    its entries; use ``reindex_file`` to replace them.
    """

    def __init__(self, extractor: Optional[SymbolExtractor] = None) -> None:
        self.extractor = extractor or SymbolExtractor()
        self._index = CodeIndex()
        self._lock = threading.Lock()

    @classmethod
    def from_index(cls, index: CodeIndex, extractor: Optional[SymbolExtractor] = None) -> "CodebaseIndexer":
        """Rebuild an indexer around a previously saved index."""
        indexer = cls(extractor)
        indexer._index = index.copy()
        return indexer

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _extract(self, file_path: str, source: str) -> Tuple[ParsedFile, List[CallEdge]]:
        parsed = self.extractor.extract(source, file_path)
        calls = self.extractor.extract_calls(source, parsed.symbols, file_path)
        return parsed, calls

    def _append(self, file_path: str, parsed: ParsedFile, calls: Sequence[CallEdge]) -> None:
        for symbol in parsed.symbols:
            self._index.symbols.append(symbol)
            self._index.symbol_map[symbol.name] = symbol
            self._index.file_map.setdefault(file_path, []).append(symbol)
        self._index.call_graph.extend(calls)

    def index_file(self, file_path: str, source: str) -> ParsedFile:
        """Extract *source* and append its symbols and calls to the index."""
        parsed, calls = self._extract(file_path, source)
        with self._lock:
            self._append(file_path, parsed, calls)
        logger.debug(
            "Indexed %s: %d symbols, %d calls (%s)",
            file_path, len(parsed.symbols), len(calls), parsed.strategy,
        )
        return parsed

    def reindex_file(self, file_path: str, source: str) -> ParsedFile:
        """Replace everything previously indexed for *file_path*."""
        parsed, calls = self._extract(file_path, source)
        with self._lock:
            self._evict(file_path)
            self._append(file_path, parsed, calls)
        return parsed

    def remove_file(self, file_path: str) -> int:
        """Drop a file's symbols and edges; returns the number of symbols removed."""
        with self._lock:
            return self._evict(file_path)

    def _evict(self, file_path: str) -> int:
        removed = self._index.file_map.pop(file_path, [])
        self._index.call_graph = [e for e in self._index.call_graph if e.file != file_path]
        if removed:
            self._index.symbols = [s for s in self._index.symbols if s.file != file_path]
            # Name map must point at the most recent surviving symbol of each name
            symbol_map: Dict[str, Symbol] = {}
            for symbol in self._index.symbols:
                symbol_map[symbol.name] = symbol
            self._index.symbol_map = symbol_map
        return len(removed)

    def index_files(self, files: FileBatch, max_workers: int = 1) -> List[ParsedFile]:
        """Index many ``(path, source)`` pairs.

        With ``max_workers > 1`` extraction runs on a thread pool; results are
        still appended in the order given.
        """
        items = list(files.items()) if isinstance(files, Mapping) else list(files)
        if max_workers <= 1 or len(items) < 2:
            return [self.index_file(path, source) for path, source in items]

        results: List[Optional[Tuple[ParsedFile, List[CallEdge]]]] = [None] * len(items)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(self._extract, path, source): i
                for i, (path, source) in enumerate(items)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()

        parsed_files: List[ParsedFile] = []
        with self._lock:
            for (path, _source), result in zip(items, results):
                parsed, calls = result  # type: ignore[misc]
                self._append(path, parsed, calls)
                parsed_files.append(parsed)
        return parsed_files

    def clear(self) -> None:
        with self._lock:
            self._index = CodeIndex()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_index(self) -> CodeIndex:
        return self._index

    def find_symbol(self, name: str) -> Optional[Symbol]:
        """The most recently indexed symbol called *name*."""
        return self._index.symbol_map.get(name)

    def find_symbols(self, name: str) -> List[Symbol]:
        """Every indexed symbol called *name* (overloads, same name in many files)."""
        return [s for s in self._index.symbols if s.name == name]

    def get_file_symbols(self, file_path: str) -> List[Symbol]:
        return list(self._index.file_map.get(file_path, []))

    def find_callers(self, name: str) -> List[CallEdge]:
        return [e for e in self._index.call_graph if e.callee == name]

    def find_callees(self, name: str) -> List[CallEdge]:
        return [e for e in self._index.call_graph if e.caller == name]

    def stats(self) -> Dict[str, int]:
        return {
            "files": len(self._index.file_map),
            "symbols": len(self._index.symbols),
            "calls": len(self._index.call_graph),
            "names": len(self._index.symbol_map),
        }
