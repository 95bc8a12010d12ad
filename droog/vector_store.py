"""Vector stores for symbol embeddings.

Two backends share the :class:`VectorIndex` interface:

- :class:`FileVectorStore`: in-memory map with a linear cosine scan,
  optionally persisted to one JSON file after every write.
- :class:`LanceVectorStore`: embedded LanceDB table (cosine metric), for
  reference branches too large to scan linearly.

Entries are keyed by file, name, kind and start line, so storing the same
symbol twice overwrites.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .embeddings import cosine_similarity
from .models import Embedding, Symbol

logger = logging.getLogger(__name__)

try:
    import lancedb  # type: ignore[import-untyped]
    import pyarrow as pa  # type: ignore[import-untyped]
    LANCE_AVAILABLE = True
except ImportError:
    LANCE_AVAILABLE = False

ScoredEmbedding = Tuple[Embedding, float]


class VectorIndex(ABC):
    """Storage and similarity search over :class:`Embedding` records."""

    @abstractmethod
    def store(self, embedding: Embedding) -> None:
        ...

    @abstractmethod
    def store_batch(self, embeddings: Iterable[Embedding]) -> None:
        ...

    @abstractmethod
    def find_similar_scored(
        self,
        query: List[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[ScoredEmbedding]:
        """Entries with similarity >= *threshold*, best first."""
        ...

    def find_similar(
        self,
        query: List[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[Embedding]:
        return [embedding for embedding, _ in self.find_similar_scored(query, limit, threshold)]

    @abstractmethod
    def get(self, symbol: Symbol) -> Optional[Embedding]:
        ...

    def find_similar_to_symbol(
        self,
        symbol: Symbol,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[Embedding]:
        """Neighbours of *symbol*'s stored vector; empty when it was never stored."""
        stored = self.get(symbol)
        if stored is None:
            return []
        return self.find_similar(stored.vector, limit, threshold)

    @abstractmethod
    def get_by_file(self, file_path: str) -> List[Embedding]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


# ===================================================================
# File-backed store
# ===================================================================

class FileVectorStore(VectorIndex):
    """Linear-scan store persisted as JSON ``[[key, embedding], ...]``."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._embeddings: Dict[str, Embedding] = {}
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            self._embeddings = {key: Embedding.from_dict(item) for key, item in payload}
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to load embeddings from %s, starting fresh: %s", self.path, exc)
            self._embeddings = {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = [[key, emb.to_dict()] for key, emb in self._embeddings.items()]
            self.path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save embeddings to %s: %s", self.path, exc)

    def store(self, embedding: Embedding) -> None:
        self._embeddings[embedding.symbol.key] = embedding
        self._save()

    def store_batch(self, embeddings: Iterable[Embedding]) -> None:
        for embedding in embeddings:
            self._embeddings[embedding.symbol.key] = embedding
        self._save()

    def find_similar_scored(
        self,
        query: List[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[ScoredEmbedding]:
        scored = []
        for embedding in self._embeddings.values():
            similarity = cosine_similarity(query, embedding.vector)
            if similarity >= threshold:
                scored.append((embedding, similarity))
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def get(self, symbol: Symbol) -> Optional[Embedding]:
        return self._embeddings.get(symbol.key)

    def get_by_file(self, file_path: str) -> List[Embedding]:
        return [e for e in self._embeddings.values() if e.symbol.file == file_path]

    def all(self) -> List[Embedding]:
        return list(self._embeddings.values())

    def clear(self) -> None:
        self._embeddings.clear()
        self._save()

    def count(self) -> int:
        return len(self._embeddings)


# ===================================================================
# LanceDB store
# ===================================================================

class LanceVectorStore(VectorIndex):
    """LanceDB-backed store; one table per embedding model.

    Schema per row:

    ========== ============ ==============================
    Column     Type         Description
    ========== ============ ==============================
    id         utf8         Symbol key
    vector     float32[dim] Embedding vector
    file       utf8         Source file path
    name       utf8         Symbol name
    kind       utf8         Symbol kind
    symbol     utf8         JSON of the full symbol
    model_key  utf8         Embedding model that produced it
    ========== ============ ==============================
    """

    def __init__(self, directory: Union[str, Path], model_key: str = "char-hash") -> None:
        if not LANCE_AVAILABLE:
            raise ImportError(
                "lancedb is not installed. Install with: pip install lancedb pyarrow"
            )
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.model_key = model_key
        self._table_name = "symbols_" + model_key.replace("-", "_")
        self._db: Any = lancedb.connect(str(self.directory))
        self._table: Optional[Any] = None
        try:
            self._table = self._db.open_table(self._table_name)
        except Exception:
            self._table = None

    @staticmethod
    def _quote(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    @staticmethod
    def _row(embedding: Embedding) -> Dict[str, Any]:
        symbol = embedding.symbol
        return {
            "id": symbol.key,
            "vector": [float(v) for v in embedding.vector],
            "file": symbol.file,
            "name": symbol.name,
            "kind": symbol.kind,
            "symbol": json.dumps(symbol.to_dict()),
            "model_key": embedding.model_key,
        }

    @staticmethod
    def _embedding(row: Dict[str, Any]) -> Embedding:
        return Embedding(
            symbol=Symbol.from_dict(json.loads(row["symbol"])),
            vector=[float(v) for v in row["vector"]],
            model_key=row.get("model_key", ""),
        )

    def store(self, embedding: Embedding) -> None:
        self.store_batch([embedding])

    def store_batch(self, embeddings: Iterable[Embedding]) -> None:
        # Last write wins for repeated keys within one batch
        rows = list({row["id"]: row for row in map(self._row, embeddings)}.values())
        if not rows:
            return
        if self._table is None:
            dim = len(rows[0]["vector"])
            schema = pa.schema([
                pa.field("id", pa.utf8()),
                pa.field("vector", pa.list_(pa.float32(), dim)),
                pa.field("file", pa.utf8()),
                pa.field("name", pa.utf8()),
                pa.field("kind", pa.utf8()),
                pa.field("symbol", pa.utf8()),
                pa.field("model_key", pa.utf8()),
            ])
            self._table = self._db.create_table(
                self._table_name, data=rows, schema=schema, mode="overwrite",
            )
            return
        ids = ", ".join(self._quote(row["id"]) for row in rows)
        self._table.delete(f"id IN ({ids})")
        self._table.add(rows)

    def find_similar_scored(
        self,
        query: List[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[ScoredEmbedding]:
        if self._table is None:
            return []
        try:
            results = (
                self._table
                .search(query)
                .metric("cosine")
                .limit(limit)
                .to_list()
            )
        except Exception as exc:
            logger.warning("LanceDB search failed: %s", exc)
            return []

        scored: List[ScoredEmbedding] = []
        for row in results:
            # With cosine metric, _distance is 1 - cos_sim
            similarity = 1.0 - float(row.get("_distance", 1.0))
            if similarity >= threshold:
                scored.append((self._embedding(row), similarity))
        return scored

    def _rows(self, column: Optional[str] = None, value: Optional[str] = None) -> List[Dict[str, Any]]:
        if self._table is None:
            return []
        rows = self._table.to_arrow().to_pylist()
        if column is None:
            return rows
        return [row for row in rows if row.get(column) == value]

    def get(self, symbol: Symbol) -> Optional[Embedding]:
        rows = self._rows("id", symbol.key)
        return self._embedding(rows[0]) if rows else None

    def get_by_file(self, file_path: str) -> List[Embedding]:
        return [self._embedding(row) for row in self._rows("file", file_path)]

    def clear(self) -> None:
        try:
            self._db.drop_table(self._table_name)
        except Exception as exc:
            logger.debug("drop_table(%s) failed: %s", self._table_name, exc)
        self._table = None

    def count(self) -> int:
        if self._table is None:
            return 0
        return self._table.count_rows()
