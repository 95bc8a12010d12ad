"""Reference-branch indexing.

A :class:`RepositorySource` lists and reads the files of one revision. The
:class:`ReferenceIndexer` walks those files in batches, feeds them through a
:class:`CodebaseIndexer` and, when an embedding generator and vector store are
configured, stores one embedding per extracted symbol.
"""

from __future__ import annotations

import hashlib
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Tuple, Union

from .embeddings import EmbeddingGenerator
from .indexer import CodebaseIndexer
from .languages import is_source_file, should_skip_path
from .models import Embedding
from .vector_store import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass(frozen=True)
class TreeEntry:
    path: str
    sha: str = ""


class RepositorySource(Protocol):
    """Read access to the files of a repository revision."""

    def list_files(self, ref: Optional[str] = None) -> List[TreeEntry]:
        ...

    def read_file(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        ...


def is_code_file(path: str) -> bool:
    """Source files outside vendored and build directories."""
    return is_source_file(path) and not should_skip_path(path)


def _blob_sha(data: bytes) -> str:
    # Same object id git would assign to the blob
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


# ===================================================================
# Sources
# ===================================================================

class LocalRepositorySource:
    """Working-tree files under *root*; ``ref`` is ignored."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).resolve()

    def list_files(self, ref: Optional[str] = None) -> List[TreeEntry]:
        if ref:
            logger.debug("LocalRepositorySource ignores ref %s", ref)
        entries: List[TreeEntry] = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(self.root).as_posix()
            if should_skip_path(rel):
                continue
            try:
                sha = _blob_sha(path.read_bytes())
            except OSError as exc:
                logger.debug("Cannot hash %s: %s", rel, exc)
                sha = ""
            entries.append(TreeEntry(path=rel, sha=sha))
        return entries

    def read_file(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        try:
            return (self.root / path).read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", path, exc)
            return None


class GitRepositorySource:
    """Files of a committed revision, read through the ``git`` executable."""

    def __init__(self, root: Union[str, Path], timeout: float = 60.0) -> None:
        self.root = Path(root).resolve()
        self.timeout = timeout

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", "-C", str(self.root), *args],
            capture_output=True,
            timeout=self.timeout,
        )

    def list_files(self, ref: Optional[str] = None) -> List[TreeEntry]:
        result = self._git("ls-tree", "-r", "--full-tree", ref or "HEAD")
        if result.returncode != 0:
            message = result.stderr.decode("utf-8", errors="ignore").strip()
            raise RuntimeError(f"git ls-tree failed for {ref or 'HEAD'}: {message}")

        entries: List[TreeEntry] = []
        for line in result.stdout.decode("utf-8", errors="ignore").splitlines():
            # "<mode> <type> <sha>\t<path>"
            meta, _, path = line.partition("\t")
            parts = meta.split()
            if len(parts) != 3 or parts[1] != "blob":
                continue
            entries.append(TreeEntry(path=path, sha=parts[2]))
        return entries

    def read_file(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        result = self._git("show", f"{ref or 'HEAD'}:{path}")
        if result.returncode != 0:
            logger.debug("git show %s:%s failed", ref or "HEAD", path)
            return None
        return result.stdout.decode("utf-8", errors="ignore")


# ===================================================================
# Indexer
# ===================================================================

@dataclass
class IndexingProgress:
    total_files: int = 0
    processed_files: int = 0
    indexed_symbols: int = 0
    generated_embeddings: int = 0
    errors: int = 0


ProgressCallback = Callable[[IndexingProgress], None]


class ReferenceIndexer:
    """Indexes every code file of a reference revision."""

    def __init__(
        self,
        source: RepositorySource,
        indexer: Optional[CodebaseIndexer] = None,
        embedding_generator: Optional[EmbeddingGenerator] = None,
        vector_store: Optional[VectorIndex] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = 1,
    ) -> None:
        self.source = source
        self.indexer = indexer or CodebaseIndexer()
        self.embedding_generator = embedding_generator
        self.vector_store = vector_store
        self.batch_size = max(1, batch_size)
        self.max_workers = max_workers
        self.embeddings: List[Embedding] = []

    def index_ref(
        self,
        ref: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexingProgress:
        """Index *ref* and return the final counters.

        Listing failures propagate; per-file failures are counted in
        ``errors`` and logged.
        """
        entries = self.source.list_files(ref)
        progress = IndexingProgress(total_files=len(entries))
        code_entries = [entry for entry in entries if is_code_file(entry.path)]
        logger.info(
            "Indexing %d code files out of %d at %s",
            len(code_entries), len(entries), ref or "working tree",
        )

        for start in range(0, len(code_entries), self.batch_size):
            self._process_batch(code_entries[start:start + self.batch_size], ref, progress)
            if on_progress is not None:
                on_progress(progress)

        logger.info(
            "Indexed %d files, %d symbols, %d embeddings (%d errors)",
            progress.processed_files, progress.indexed_symbols,
            progress.generated_embeddings, progress.errors,
        )
        return progress

    def _read_batch(
        self,
        batch: Sequence[TreeEntry],
        ref: Optional[str],
        progress: IndexingProgress,
    ) -> List[Tuple[str, str]]:
        contents: List[Tuple[str, str]] = []
        for entry in batch:
            try:
                content = self.source.read_file(entry.path, ref)
            except Exception as exc:
                progress.errors += 1
                logger.warning("Failed to read %s: %s", entry.path, exc)
                continue
            if content:
                contents.append((entry.path, content))
        return contents

    def _process_batch(
        self,
        batch: Sequence[TreeEntry],
        ref: Optional[str],
        progress: IndexingProgress,
    ) -> None:
        contents = self._read_batch(batch, ref, progress)
        parsed_files = self.indexer.index_files(contents, max_workers=self.max_workers)

        symbols = []
        for parsed in parsed_files:
            if not parsed.symbols:
                continue
            progress.processed_files += 1
            progress.indexed_symbols += len(parsed.symbols)
            symbols.extend(parsed.symbols)

        if not symbols or self.embedding_generator is None:
            return
        embeddings = self.embedding_generator.generate_embeddings(symbols)
        if self.vector_store is not None:
            try:
                self.vector_store.store_batch(embeddings)
            except Exception as exc:
                progress.errors += 1
                logger.warning("Failed to store %d embeddings: %s", len(embeddings), exc)
                return
        self.embeddings.extend(embeddings)
        progress.generated_embeddings += len(embeddings)
