"""Tests for the change review pipeline."""

from pathlib import Path

import pytest

from droog.embeddings import CharHashEmbeddingModel, EmbeddingGenerator
from droog.indexer import CodebaseIndexer
from droog.pipeline import ChangedFile, ChangeReport, ReviewPipeline
from droog.reference import LocalRepositorySource, ReferenceIndexer

ADD_SECOND_METHOD = """--- a/src/DataProcessor.java
+++ b/src/DataProcessor.java
@@ -6,2 +6,7 @@
     }
+
+    public String processData2(String input) {
+        String trimmed = input.trim();
+        return trimmed.toUpperCase();
+    }
 }
"""


def _class(name: str, body: str) -> str:
    return f"public class {name} {{\n\n{body}}}\n"


SHOUT = """    public String shout(String value) {
        String trimmed = value.trim();
        return prefix + trimmed.toUpperCase();
    }
"""


@pytest.fixture
def pipeline(regex_extractor) -> ReviewPipeline:
    return ReviewPipeline(extractor=regex_extractor)


@pytest.fixture
def reference(regex_extractor, sample_repo_path: Path) -> CodebaseIndexer:
    indexer = CodebaseIndexer(regex_extractor)
    ReferenceIndexer(LocalRepositorySource(sample_repo_path), indexer).index_ref()
    return indexer


class TestSymbolSelection:
    def test_content_only_keeps_every_symbol(self, pipeline, duplicated_java_code):
        report = pipeline.review([ChangedFile("src/DataProcessor.java", content=duplicated_java_code)])
        assert [s.name for s in report.symbols] == ["DataProcessor", "processData1", "processData2"]

    def test_patch_and_content_keep_touched_symbols(self, pipeline, duplicated_java_code):
        change = ChangedFile("src/DataProcessor.java", content=duplicated_java_code, patch=ADD_SECOND_METHOD)
        report = pipeline.review([change])
        assert [s.name for s in report.symbols] == ["DataProcessor", "processData2"]
        assert report.within_change == []

    def test_patch_only_parses_added_lines(self, pipeline):
        report = pipeline.review([ChangedFile("src/DataProcessor.java", patch=ADD_SECOND_METHOD)])
        assert [s.name for s in report.symbols] == ["processData2"]

    def test_removal_only_patch_yields_nothing(self, pipeline):
        patch = "--- a/src/A.java\n+++ b/src/A.java\n@@ -1,2 +1,1 @@\n-int x;\n }\n"
        assert pipeline.review([ChangedFile("src/A.java", patch=patch)]).symbols == []

    def test_non_source_and_empty_files_are_skipped(self, pipeline):
        report = pipeline.review([
            ChangedFile("README.md", content="# public class Nope {}"),
            ChangedFile("src/Empty.java"),
        ])
        assert report.symbols == []
        assert not report.has_duplicates


class TestReview:
    def test_within_change_duplicates(self, pipeline):
        report = pipeline.review([
            ChangedFile("src/a/TextUtils.java", content=_class("TextUtils", SHOUT)),
            ChangedFile("src/b/TextHelper.java", content=_class("TextHelper", SHOUT)),
        ])

        methods = [m for m in report.within_change if m.symbol1.kind == "method"]
        assert len(methods) == 1
        assert methods[0].type == "exact"
        assert {methods[0].symbol1.file, methods[0].symbol2.file} == {
            "src/a/TextUtils.java", "src/b/TextHelper.java",
        }
        assert report.cross_repository == []
        assert report.has_duplicates

    def test_cross_repository_duplicates(self, regex_extractor, reference):
        pipeline = ReviewPipeline(reference_indexer=reference, extractor=regex_extractor)

        report = pipeline.review([
            ChangedFile("src/main/java/com/acme/Formatter.java", content=_class("Formatter", SHOUT)),
        ])

        top = report.cross_repository[0]
        assert (top.symbol1.name, top.symbol2.name) == ("shout", "shout")
        assert top.symbol2.file == "src/main/java/com/acme/StringUtils.java"
        assert top.reason.startswith("Similar to existing method in")

    def test_with_embeddings(self, regex_extractor, reference):
        pipeline = ReviewPipeline(
            reference_indexer=reference,
            embedding_generator=EmbeddingGenerator(CharHashEmbeddingModel()),
            extractor=regex_extractor,
        )

        report = pipeline.review([
            ChangedFile("src/main/java/com/acme/Formatter.java", content=_class("Formatter", SHOUT)),
        ])

        assert isinstance(report, ChangeReport)
        assert report.cross_repository[0].symbol2.name == "shout"
