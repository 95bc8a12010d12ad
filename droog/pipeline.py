"""Change-set review: extract, index and detect duplicates in one pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config_manager import DuplicateThresholds
from .diff import added_line_numbers, extract_added_code, symbols_touching_lines
from .duplicates import DuplicateDetector
from .embeddings import EmbeddingGenerator
from .extractor import SymbolExtractor
from .indexer import CodebaseIndexer
from .languages import is_source_file
from .models import DuplicateMatch, Symbol
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class ChangedFile:
    """A file touched by a change.

    ``content`` is the full new text; ``patch`` is a unified diff. With both,
    the whole file is parsed and only symbols overlapping added lines are
    kept. With only a patch, the added lines are parsed on their own.
    """

    path: str
    content: Optional[str] = None
    patch: Optional[str] = None


@dataclass
class ChangeReport:
    symbols: List[Symbol] = field(default_factory=list)
    within_change: List[DuplicateMatch] = field(default_factory=list)
    cross_repository: List[DuplicateMatch] = field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.within_change or self.cross_repository)


class ReviewPipeline:
    """Coordinates extraction, change indexing and duplicate detection."""

    def __init__(
        self,
        reference_indexer: Optional[CodebaseIndexer] = None,
        embedding_generator: Optional[EmbeddingGenerator] = None,
        vector_store: Optional[VectorIndex] = None,
        extractor: Optional[SymbolExtractor] = None,
        thresholds: Optional[DuplicateThresholds] = None,
    ) -> None:
        self.reference_indexer = reference_indexer
        self.embedding_generator = embedding_generator
        self.vector_store = vector_store
        self.extractor = extractor or SymbolExtractor()
        self.thresholds = thresholds

    def _symbols_for(self, change: ChangedFile, indexer: CodebaseIndexer) -> List[Symbol]:
        if change.patch is None:
            if change.content is None:
                return []
            return indexer.index_file(change.path, change.content).symbols

        if change.content is not None:
            parsed = indexer.index_file(change.path, change.content)
            return symbols_touching_lines(parsed.symbols, added_line_numbers(change.patch))

        added = extract_added_code(change.patch)
        if added is None:
            return []
        return indexer.index_file(change.path, added).symbols

    def collect_symbols(self, files: Sequence[ChangedFile], indexer: CodebaseIndexer) -> List[Symbol]:
        symbols: List[Symbol] = []
        for change in files:
            if not is_source_file(change.path):
                logger.debug("Skipping non-source file %s", change.path)
                continue
            symbols.extend(self._symbols_for(change, indexer))
        return symbols

    def review(self, files: Sequence[ChangedFile]) -> ChangeReport:
        """Extract symbols from *files* and report duplicates."""
        change_indexer = CodebaseIndexer(self.extractor)
        symbols = self.collect_symbols(files, change_indexer)
        logger.info("Extracted %d symbols from %d changed files", len(symbols), len(files))

        within = DuplicateDetector(
            change_indexer,
            embedding_generator=self.embedding_generator,
            thresholds=self.thresholds,
        ).detect_within_change(symbols)

        cross: List[DuplicateMatch] = []
        if self.reference_indexer is not None:
            cross = DuplicateDetector(
                self.reference_indexer,
                embedding_generator=self.embedding_generator,
                vector_store=self.vector_store,
                thresholds=self.thresholds,
            ).detect_cross_repository(symbols)

        return ChangeReport(symbols=symbols, within_change=within, cross_repository=cross)
