"""Snapshot persistence: one JSON document holding an index and its embeddings."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from . import __version__
from .models import CallEdge, CodeIndex, Embedding, Symbol

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class SnapshotError(Exception):
    """Raised when a snapshot file cannot be read or has an unknown format."""


@dataclass
class IndexSnapshot:
    index: CodeIndex
    embeddings: List[Embedding] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    format_version: int = FORMAT_VERSION


def save_snapshot(
    path: Union[str, Path],
    index: CodeIndex,
    embeddings: Optional[Sequence[Embedding]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write *index* and *embeddings* to *path*; returns the path written."""
    path = Path(path)
    positions = {id(symbol): i for i, symbol in enumerate(index.symbols)}
    payload = {
        "format_version": FORMAT_VERSION,
        "droog_version": __version__,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "metadata": dict(metadata or {}),
        "symbols": [symbol.to_dict() for symbol in index.symbols],
        "call_graph": [edge.to_dict() for edge in index.call_graph],
        "file_map": {
            file_path: [positions[id(s)] for s in symbols if id(s) in positions]
            for file_path, symbols in index.file_map.items()
        },
        "symbol_map": {
            name: positions[id(s)]
            for name, s in index.symbol_map.items()
            if id(s) in positions
        },
        "embeddings": [embedding.to_dict() for embedding in embeddings or []],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.debug(
        "Saved snapshot %s: %d symbols, %d embeddings",
        path, len(index.symbols), len(payload["embeddings"]),
    )
    return path


def load_snapshot(path: Union[str, Path]) -> IndexSnapshot:
    """Read a snapshot written by :func:`save_snapshot`.

    Raises:
        SnapshotError: missing file, invalid JSON or unsupported format.
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SnapshotError(f"Cannot read snapshot {path}: {exc}") from exc

    version = payload.get("format_version") if isinstance(payload, dict) else None
    if version != FORMAT_VERSION:
        raise SnapshotError(f"Unsupported snapshot format in {path}: {version!r}")

    try:
        symbols = [Symbol.from_dict(item) for item in payload.get("symbols", [])]
        index = CodeIndex(
            symbols=symbols,
            call_graph=[CallEdge.from_dict(item) for item in payload.get("call_graph", [])],
            file_map={
                file_path: [symbols[i] for i in positions]
                for file_path, positions in payload.get("file_map", {}).items()
            },
            symbol_map={
                name: symbols[i] for name, i in payload.get("symbol_map", {}).items()
            },
        )
        embeddings = [Embedding.from_dict(item) for item in payload.get("embeddings", [])]
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise SnapshotError(f"Corrupt snapshot {path}: {exc}") from exc

    return IndexSnapshot(
        index=index,
        embeddings=embeddings,
        metadata=payload.get("metadata", {}),
        format_version=version,
    )
