"""Tests for reference-branch sources and indexing."""

import hashlib
import subprocess
from pathlib import Path

import pytest

from droog.embeddings import CharHashEmbeddingModel, EmbeddingGenerator
from droog.reference import (
    GitRepositorySource,
    LocalRepositorySource,
    ReferenceIndexer,
    TreeEntry,
    is_code_file,
)
from droog.vector_store import FileVectorStore

CODE_FILES = [
    "app/greeter.py",
    "src/main/java/com/acme/OrderService.java",
    "src/main/java/com/acme/StringUtils.java",
    "src/test/java/com/acme/StringUtilsTest.java",
    "web/cart.js",
]


def test_is_code_file():
    assert is_code_file("src/A.java")
    assert not is_code_file("README.md")
    assert not is_code_file("node_modules/leftpad/index.js")
    assert not is_code_file("build/generated/A.java")


class TestLocalRepositorySource:
    def test_lists_files_outside_skipped_dirs(self, sample_repo_path: Path):
        paths = [e.path for e in LocalRepositorySource(sample_repo_path).list_files()]
        assert paths == sorted(paths)
        assert "README.md" in paths
        assert not any(p.startswith("node_modules/") for p in paths)
        assert [p for p in paths if is_code_file(p)] == CODE_FILES

    def test_sha_matches_git_blob_id(self, temp_dir: Path):
        (temp_dir / "a.py").write_bytes(b"x = 1\n")
        entry = LocalRepositorySource(temp_dir).list_files()[0]
        expected = hashlib.sha1(b"blob 6\0x = 1\n").hexdigest()
        assert entry == TreeEntry(path="a.py", sha=expected)

    def test_read_file(self, sample_repo_path: Path):
        source = LocalRepositorySource(sample_repo_path)
        assert "def main" in source.read_file("app/greeter.py", ref="ignored")
        assert source.read_file("missing.py") is None


class TestGitRepositorySource:
    def _fake_run(self, monkeypatch, returncode=0, stdout=b"", stderr=b""):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

        monkeypatch.setattr("droog.reference.subprocess.run", fake_run)
        return calls

    def test_list_files_parses_ls_tree(self, monkeypatch, temp_dir: Path):
        listing = (
            b"100644 blob aaa111\tsrc/A.java\n"
            b"040000 tree bbb222\tsrc\n"
            b"160000 commit ccc333\tvendor/sub\n"
            b"100644 blob ddd444\tREADME.md\n"
        )
        calls = self._fake_run(monkeypatch, stdout=listing)

        entries = GitRepositorySource(temp_dir).list_files("main")

        assert entries == [TreeEntry("src/A.java", "aaa111"), TreeEntry("README.md", "ddd444")]
        assert calls[0][-4:] == ["ls-tree", "-r", "--full-tree", "main"]

    def test_list_files_failure_raises(self, monkeypatch, temp_dir: Path):
        self._fake_run(monkeypatch, returncode=128, stderr=b"fatal: not a valid object name")
        with pytest.raises(RuntimeError, match="not a valid object"):
            GitRepositorySource(temp_dir).list_files("nope")

    def test_read_file(self, monkeypatch, temp_dir: Path):
        calls = self._fake_run(monkeypatch, stdout=b"class A {}\n")
        assert GitRepositorySource(temp_dir).read_file("src/A.java") == "class A {}\n"
        assert calls[0][-2:] == ["show", "HEAD:src/A.java"]

    def test_read_file_failure_is_none(self, monkeypatch, temp_dir: Path):
        self._fake_run(monkeypatch, returncode=128)
        assert GitRepositorySource(temp_dir).read_file("gone.java", "main") is None


class TestReferenceIndexer:
    def test_counts(self, sample_repo_path: Path, regex_indexer):
        reference = ReferenceIndexer(LocalRepositorySource(sample_repo_path), regex_indexer)

        progress = reference.index_ref()

        assert progress.total_files == len(CODE_FILES) + 1
        assert progress.processed_files == len(CODE_FILES)
        assert progress.indexed_symbols == len(regex_indexer.get_index().symbols)
        assert progress.generated_embeddings == 0
        assert progress.errors == 0
        assert regex_indexer.find_symbol("applyDiscount") is not None

    def test_progress_reported_per_batch(self, sample_repo_path: Path, regex_indexer):
        reference = ReferenceIndexer(LocalRepositorySource(sample_repo_path), regex_indexer, batch_size=2)
        seen = []

        reference.index_ref(on_progress=lambda p: seen.append(p.processed_files))

        assert seen == [2, 4, 5]

    def test_threaded_batches_match_sequential(self, sample_repo_path: Path, regex_extractor):
        from droog.indexer import CodebaseIndexer

        sequential = CodebaseIndexer(regex_extractor)
        threaded = CodebaseIndexer(regex_extractor)
        ReferenceIndexer(LocalRepositorySource(sample_repo_path), sequential).index_ref()
        ReferenceIndexer(LocalRepositorySource(sample_repo_path), threaded, max_workers=4).index_ref()

        assert threaded.get_index() == sequential.get_index()

    def test_read_errors_are_counted(self, sample_repo_path: Path, regex_indexer):
        class FlakySource(LocalRepositorySource):
            def read_file(self, path, ref=None):
                if path.endswith("cart.js"):
                    raise OSError("permission denied")
                return super().read_file(path, ref)

        progress = ReferenceIndexer(FlakySource(sample_repo_path), regex_indexer).index_ref()

        assert progress.errors == 1
        assert progress.processed_files == len(CODE_FILES) - 1
        assert regex_indexer.get_file_symbols("web/cart.js") == []

    def test_embeddings_are_stored(self, sample_repo_path: Path, regex_indexer):
        store = FileVectorStore()
        reference = ReferenceIndexer(
            LocalRepositorySource(sample_repo_path),
            regex_indexer,
            embedding_generator=EmbeddingGenerator(CharHashEmbeddingModel()),
            vector_store=store,
        )

        progress = reference.index_ref()

        assert progress.generated_embeddings == progress.indexed_symbols
        assert store.count() == progress.indexed_symbols
        assert len(reference.embeddings) == progress.indexed_symbols

    def test_store_failure_is_counted(self, sample_repo_path: Path, regex_indexer):
        class FullDisk(FileVectorStore):
            def store_batch(self, embeddings):
                raise OSError("no space left on device")

        reference = ReferenceIndexer(
            LocalRepositorySource(sample_repo_path),
            regex_indexer,
            embedding_generator=EmbeddingGenerator(CharHashEmbeddingModel()),
            vector_store=FullDisk(),
        )

        progress = reference.index_ref()

        assert progress.errors == 1
        assert progress.generated_embeddings == 0
        assert progress.indexed_symbols > 0

    def test_listing_failure_propagates(self, regex_indexer):
        class Broken:
            def list_files(self, ref=None):
                raise RuntimeError("bad ref")

            def read_file(self, path, ref=None):
                return None

        with pytest.raises(RuntimeError):
            ReferenceIndexer(Broken(), regex_indexer).index_ref("missing")
