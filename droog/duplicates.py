"""Duplicate code detection.

Finds duplicate and near-duplicate symbols within a change set and against an
indexed reference codebase. Pairs are first filtered by cheap path and kind
checks, then scored. The score is the larger of the embedding similarity
(when a generator is configured) and a structural comparison of signatures
and normalised bodies. Near-perfect scores are checked for bodies that share
a shape but do opposite things, and those are capped below the exact
threshold.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from .config_manager import DuplicateThresholds, load_thresholds
from .embeddings import EmbeddingGenerator, cosine_similarity
from .indexer import CodebaseIndexer
from .languages import is_same_language, is_source_file, is_test_file, path_context
from .models import DuplicateMatch, Symbol
from .regex_extractors import find_block_end
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)

_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_HASH_COMMENT_RE = re.compile(r"#.*$", re.MULTILINE)
_SPACES_RE = re.compile(r"[ \t]+")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

SELF_NAME = "__self__"

# Keyword pairs whose presence on opposite sides means the bodies do opposite work
OPPOSITE_OPERATIONS: Tuple[Tuple[str, str], ...] = (
    ("toUpperCase", "toLowerCase"),
    ("upper", "lower"),
    ("add", "subtract"),
    ("push", "pop"),
    ("increment", "decrement"),
    ("encode", "decode"),
    ("encrypt", "decrypt"),
)


# ===================================================================
# Normalisation helpers
# ===================================================================

def _neutralise_name(text: str, name: str) -> str:
    if not name:
        return text
    return re.sub(rf"\b{re.escape(name)}\b", SELF_NAME, text)


def normalize_signature(symbol: Symbol) -> str:
    """Whitespace-collapsed, lower-cased signature; names are kept."""
    return " ".join(symbol.signature.split()).lower()


def normalize_code(symbol: Symbol) -> List[str]:
    """Non-empty body lines with comments removed and whitespace collapsed."""
    code = _BLOCK_COMMENT_RE.sub("", symbol.raw_code)
    code = _LINE_COMMENT_RE.sub("", code)
    if symbol.file.endswith(".py"):
        code = _HASH_COMMENT_RE.sub("", code)
    code = _neutralise_name(code, symbol.name)
    lines = (_SPACES_RE.sub(" ", line).strip() for line in code.split("\n"))
    return [line for line in lines if line]


def extract_body(symbol: Symbol) -> Optional[str]:
    """Text inside the outermost braces, or after the header for Python."""
    code = symbol.raw_code
    if not code:
        return None
    if symbol.file.endswith(".py"):
        _header, _, body = code.partition("\n")
        return body.strip() or None
    open_index = code.find("{")
    if open_index == -1:
        return None
    close = find_block_end(code, open_index)
    if close is None:
        return None
    return code[open_index + 1:close].strip()


def line_overlap(lines_a: Sequence[str], lines_b: Sequence[str]) -> float:
    """Multiset overlap of two line lists relative to the longer one."""
    if not lines_a or not lines_b:
        return 0.0
    common = sum((Counter(lines_a) & Counter(lines_b)).values())
    return common / max(len(lines_a), len(lines_b))


def token_jaccard(text_a: str, text_b: str) -> float:
    words_a = set(text_a.lower().split())
    words_b = set(text_b.lower().split())
    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def structural_similarity(s1: Symbol, s2: Symbol) -> float:
    """Signature and body comparison without embeddings.

    Identical signatures score 1.0. Otherwise the normalised body overlap is
    used, with a floor of 0.9 when the signatures match after normalisation.
    """
    if s1.kind != s2.kind:
        return 0.0
    if s1.signature and s1.signature == s2.signature:
        return 1.0
    overlap = line_overlap(normalize_code(s1), normalize_code(s2))
    if s1.signature and s2.signature and normalize_signature(s1) == normalize_signature(s2):
        return max(0.9, overlap)
    return overlap


def has_different_logic(s1: Symbol, s2: Symbol, min_overlap: float = 0.7) -> bool:
    """True when two same-shaped bodies do opposite or unrelated work."""
    body1, body2 = extract_body(s1), extract_body(s2)
    if not body1 or not body2:
        return False
    body1 = " ".join(_neutralise_name(body1, s1.name).split())
    body2 = " ".join(_neutralise_name(body2, s2.name).split())

    tokens1, tokens2 = set(_IDENT_RE.findall(body1)), set(_IDENT_RE.findall(body2))
    only1, only2 = tokens1 - tokens2, tokens2 - tokens1
    for op_a, op_b in OPPOSITE_OPERATIONS:
        if (op_a in only1 and op_b in only2) or (op_b in only1 and op_a in only2):
            return True
    return token_jaccard(body1, body2) < min_overlap


def different_method_context(s1: Symbol, s2: Symbol) -> bool:
    """A service or controller symbol paired with a test symbol."""
    contexts = {path_context(s1.file), path_context(s2.file)}
    return "test" in contexts and bool(contexts & {"service", "controller"})


def duplicate_reason(s1: Symbol, s2: Symbol) -> str:
    if s1.signature and s1.signature == s2.signature:
        return f"Exact duplicate: {s1.kind} with same signature"
    if s1.name == s2.name:
        return f"Duplicate {s1.kind} name: {s1.name}"
    return f"Similar {s1.kind} pattern"


# ===================================================================
# Detector
# ===================================================================

class DuplicateDetector:
    """Within-change and cross-repository duplicate search."""

    def __init__(
        self,
        indexer: CodebaseIndexer,
        embedding_generator: Optional[EmbeddingGenerator] = None,
        vector_store: Optional[VectorIndex] = None,
        thresholds: Optional[DuplicateThresholds] = None,
    ) -> None:
        self.indexer = indexer
        self.embedding_generator = embedding_generator
        self.vector_store = vector_store
        self.thresholds = thresholds or load_thresholds()
        self._vectors: Dict[Symbol, List[float]] = {}

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _excluded(self, s1: Symbol, s2: Symbol) -> bool:
        if not is_same_language(s1.file, s2.file):
            return True
        if s1.kind != s2.kind:
            return True
        if is_test_file(s1.file) != is_test_file(s2.file):
            return True
        return different_method_context(s1, s2)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _vector(self, symbol: Symbol) -> List[float]:
        vector = self._vectors.get(symbol)
        if vector is None:
            vector = self.embedding_generator.generate_embedding(symbol)  # type: ignore[union-attr]
            self._vectors[symbol] = vector
        return vector

    def similarity(self, s1: Symbol, s2: Symbol) -> float:
        """Symmetric similarity of two symbols in ``[0, 1]``."""
        structural = structural_similarity(s1, s2)
        if self.embedding_generator is None:
            return structural
        try:
            semantic = cosine_similarity(self._vector(s1), self._vector(s2))
        except Exception as exc:
            logger.debug("Embedding similarity failed for %s/%s: %s", s1.name, s2.name, exc)
            return structural
        return max(semantic, structural)

    def _classify(self, s1: Symbol, s2: Symbol, similarity: float, reason: str) -> DuplicateMatch:
        t = self.thresholds
        if similarity > t.exact and has_different_logic(s1, s2, t.body_overlap):
            return DuplicateMatch(
                symbol1=s1,
                symbol2=s2,
                similarity=min(similarity, t.logic_cap),
                type="similar",
                reason=f"Similar signature but different logic: {reason}",
            )
        return DuplicateMatch(
            symbol1=s1,
            symbol2=s2,
            similarity=similarity,
            type="exact" if similarity > t.exact else "similar",
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Within-change
    # ------------------------------------------------------------------

    def detect_within_change(self, symbols: Sequence[Symbol]) -> List[DuplicateMatch]:
        """All-pairs comparison over the symbols of one change set."""
        duplicates: List[DuplicateMatch] = []
        try:
            candidates = [s for s in symbols if is_source_file(s.file)]
            for i, s1 in enumerate(candidates):
                for s2 in candidates[i + 1:]:
                    if s1.file == s2.file and s1.name == s2.name and s1.signature == s2.signature:
                        continue
                    if self._excluded(s1, s2):
                        continue
                    try:
                        similarity = self.similarity(s1, s2)
                    except Exception as exc:
                        logger.debug("Skipping pair %s/%s: %s", s1.name, s2.name, exc)
                        continue
                    if similarity <= self.thresholds.report:
                        continue
                    duplicates.append(self._classify(s1, s2, similarity, duplicate_reason(s1, s2)))
        except Exception as exc:
            logger.warning("Within-change duplicate detection stopped early: %s", exc)
        finally:
            self._vectors.clear()
        return duplicates

    # ------------------------------------------------------------------
    # Cross-repository
    # ------------------------------------------------------------------

    def detect_cross_repository(self, symbols: Sequence[Symbol]) -> List[DuplicateMatch]:
        """Compare change symbols against the vector store and the index."""
        best: Dict[Tuple[str, str], Tuple[Symbol, Symbol, float]] = {}
        try:
            candidates = [s for s in symbols if is_source_file(s.file)]
            if self.embedding_generator is not None and self.vector_store is not None:
                self._search_vector_store(candidates, best)
            self._scan_index(candidates, best)
        except Exception as exc:
            logger.warning("Cross-repository duplicate detection stopped early: %s", exc)
        finally:
            self._vectors.clear()

        matches = []
        for s1, s2, similarity in best.values():
            reason = f"Similar to existing {s2.kind} in {s2.file}"
            matches.append(self._classify(s1, s2, similarity, reason))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches

    def _record(
        self,
        best: Dict[Tuple[str, str], Tuple[Symbol, Symbol, float]],
        s1: Symbol,
        s2: Symbol,
        similarity: float,
    ) -> None:
        key = (s1.key, s2.key)
        current = best.get(key)
        if current is None or similarity > current[2]:
            best[key] = (s1, s2, similarity)

    def _search_vector_store(
        self,
        candidates: Sequence[Symbol],
        best: Dict[Tuple[str, str], Tuple[Symbol, Symbol, float]],
    ) -> None:
        threshold = self.thresholds.cross_repo
        for symbol in candidates:
            try:
                hits = self.vector_store.find_similar_scored(  # type: ignore[union-attr]
                    self._vector(symbol), limit=10, threshold=threshold,
                )
            except Exception as exc:
                logger.warning("Vector store search failed for %s, using index scan: %s", symbol.name, exc)
                continue
            for embedding, score in hits:
                other = embedding.symbol
                if other.file == symbol.file or self._excluded(symbol, other):
                    continue
                similarity = max(score, structural_similarity(symbol, other))
                self._record(best, symbol, other, similarity)

    def _scan_index(
        self,
        candidates: Sequence[Symbol],
        best: Dict[Tuple[str, str], Tuple[Symbol, Symbol, float]],
    ) -> None:
        threshold = self.thresholds.cross_repo
        indexed = list(self.indexer.get_index().symbols)
        for symbol in candidates:
            for other in indexed:
                if other.file == symbol.file or self._excluded(symbol, other):
                    continue
                try:
                    similarity = self.similarity(symbol, other)
                except Exception as exc:
                    logger.debug("Skipping pair %s/%s: %s", symbol.name, other.name, exc)
                    continue
                if similarity >= threshold:
                    self._record(best, symbol, other, similarity)
