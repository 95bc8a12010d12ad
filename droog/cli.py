"""Typer-based CLI for Droog duplicate detection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import DEFAULT_INDEX_FILE
from .diff import split_patch
from .embeddings import EmbeddingGenerator, get_embedder
from .extractor import Fallback, SymbolExtractor
from .indexer import CodebaseIndexer
from .models import DuplicateMatch
from .pipeline import ChangedFile, ReviewPipeline
from .reference import GitRepositorySource, IndexingProgress, LocalRepositorySource, ReferenceIndexer
from .storage import SnapshotError, load_snapshot, save_snapshot
from .vector_store import FileVectorStore

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Droog: symbol extraction, indexing and duplicate code detection.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Droog v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Droog: find duplicated code in a change set and against a reference index."""
    _configure_logging(verbose)


def _load_snapshot_or_exit(path: Path):
    try:
        return load_snapshot(path)
    except SnapshotError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)


# ===================================================================
# index
# ===================================================================

@app.command("index")
def index_command(
    path: Path = typer.Argument(..., exists=True, file_okay=False, help="Repository or directory to index."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Snapshot file to write."),
    ref: Optional[str] = typer.Option(None, "--ref", help="Git revision to index instead of the working tree."),
    embed: bool = typer.Option(True, "--embed/--no-embed", help="Store symbol embeddings in the snapshot."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Embedding model key."),
    workers: int = typer.Option(1, "--workers", min=1, max=32, help="Extraction threads."),
):
    """Index a directory and write a snapshot."""
    source = GitRepositorySource(path) if ref else LocalRepositorySource(path)
    indexer = CodebaseIndexer()
    generator = EmbeddingGenerator(get_embedder(model)) if embed else None
    reference = ReferenceIndexer(source, indexer=indexer, embedding_generator=generator, max_workers=workers)

    with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True) as bar:
        task = bar.add_task("Indexing...", total=None)

        def on_progress(progress: IndexingProgress) -> None:
            bar.update(
                task,
                description=f"Indexing... {progress.processed_files} files, {progress.indexed_symbols} symbols",
            )

        try:
            progress = reference.index_ref(ref, on_progress=on_progress)
        except RuntimeError as exc:
            console.print(f"[red]✗[/red] {exc}")
            raise typer.Exit(code=1)

    output = output or Path.cwd() / DEFAULT_INDEX_FILE
    save_snapshot(
        output,
        indexer.get_index(),
        reference.embeddings,
        metadata={
            "source": str(path.resolve()),
            "ref": ref,
            "model": generator.model_key if generator else None,
            "structural": indexer.extractor.structural,
        },
    )

    table = Table(title="Index summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files listed", str(progress.total_files))
    table.add_row("Files indexed", str(progress.processed_files))
    table.add_row("Symbols", str(progress.indexed_symbols))
    table.add_row("Call edges", str(indexer.stats()["calls"]))
    table.add_row("Embeddings", str(progress.generated_embeddings))
    table.add_row("Errors", str(progress.errors))
    console.print(table)
    console.print(f"[green]✓[/green] Snapshot written to {output}")


# ===================================================================
# symbols
# ===================================================================

@app.command("symbols")
def symbols_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to inspect."),
    regex: bool = typer.Option(False, "--regex", help="Force the regex extraction tier."),
):
    """Show the symbols extracted from one file."""
    extractor = SymbolExtractor(Fallback("--regex requested")) if regex else SymbolExtractor()
    source = file.read_text(encoding="utf-8", errors="ignore")
    parsed = extractor.extract(source, str(file))

    if not parsed.symbols:
        console.print(f"No symbols found in {file} ({parsed.language}).")
        raise typer.Exit(code=0)

    table = Table(title=f"{file} ({parsed.language}, {parsed.strategy})", show_header=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Lines", justify="right")
    table.add_column("Visibility")
    table.add_column("Signature", min_width=30)
    for symbol in parsed.symbols:
        name = f"{symbol.name} (static)" if symbol.is_static else symbol.name
        table.add_row(
            symbol.kind,
            name,
            f"{symbol.start_line}-{symbol.end_line}",
            symbol.visibility,
            symbol.signature,
        )
    console.print(table)


# ===================================================================
# duplicates
# ===================================================================

def _match_table(title: str, matches: List[DuplicateMatch]) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Symbol")
    table.add_column("Duplicate of")
    table.add_column("Reason", min_width=24)
    for match in matches:
        color = "red" if match.type == "exact" else "yellow"
        table.add_row(
            f"[{color}]{match.type}[/{color}]",
            f"{match.similarity:.2f}",
            f"{match.symbol1.name} ({match.symbol1.file}:{match.symbol1.start_line})",
            f"{match.symbol2.name} ({match.symbol2.file}:{match.symbol2.start_line})",
            match.reason,
        )
    return table


def _changed_files(files: List[Path], patch: bool) -> List[ChangedFile]:
    changes: List[ChangedFile] = []
    for file in files:
        text = file.read_text(encoding="utf-8", errors="ignore")
        if patch:
            changes.extend(ChangedFile(path=p, patch=section) for p, section in split_patch(text).items())
        else:
            changes.append(ChangedFile(path=str(file), content=text))
    return changes


@app.command("duplicates")
def duplicates_command(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Changed files (or diffs with --patch)."),
    index: Optional[Path] = typer.Option(None, "--index", "-i", help="Reference snapshot for cross-repository search."),
    patch: bool = typer.Option(False, "--patch", help="Treat FILES as unified diffs and inspect added lines only."),
    embed: bool = typer.Option(True, "--embed/--no-embed", help="Use embedding similarity alongside structure."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Embedding model key."),
):
    """Report duplicated symbols within a change and against a reference index."""
    reference_indexer = None
    vector_store = None
    snapshot = _load_snapshot_or_exit(index) if index else None
    if snapshot is not None and model is None:
        model = snapshot.metadata.get("model")

    generator = EmbeddingGenerator(get_embedder(model)) if embed else None

    if snapshot is not None:
        reference_indexer = CodebaseIndexer.from_index(snapshot.index)
        usable = [e for e in snapshot.embeddings if generator and e.model_key == generator.model_key]
        if usable:
            vector_store = FileVectorStore()
            vector_store.store_batch(usable)
        elif snapshot.embeddings and generator:
            logger.warning(
                "Snapshot embeddings were built with another model; using index scan only.",
            )

    pipeline = ReviewPipeline(
        reference_indexer=reference_indexer,
        embedding_generator=generator,
        vector_store=vector_store,
    )
    report = pipeline.review(_changed_files(files, patch))

    console.print(f"Extracted {len(report.symbols)} symbols from {len(files)} file(s).")
    if not report.has_duplicates:
        console.print("[green]✓[/green] No duplicates found.")
        raise typer.Exit(code=0)

    if report.within_change:
        console.print(_match_table("Within change", report.within_change))
    if report.cross_repository:
        console.print(_match_table("Against reference", report.cross_repository))


# ===================================================================
# callers
# ===================================================================

@app.command("callers")
def callers_command(
    name: str = typer.Argument(..., help="Symbol name to look up."),
    index: Path = typer.Option(Path(DEFAULT_INDEX_FILE), "--index", "-i", help="Snapshot to query."),
):
    """Show who calls NAME and what NAME calls, from a snapshot."""
    snapshot = _load_snapshot_or_exit(index)
    indexer = CodebaseIndexer.from_index(snapshot.index, extractor=SymbolExtractor(Fallback("query only")))

    callers = indexer.find_callers(name)
    callees = indexer.find_callees(name)
    if indexer.find_symbol(name) is None and not callers and not callees:
        console.print(f"[red]✗[/red] Symbol '{name}' not found in {index}.")
        raise typer.Exit(code=1)

    for title, edges, column in (
        ("Callers", callers, "Caller"),
        ("Callees", callees, "Callee"),
    ):
        table = Table(title=f"{title} of {name}", show_header=True)
        table.add_column(column, style="cyan")
        table.add_column("Location")
        for edge in edges:
            other = edge.caller if column == "Caller" else edge.callee
            table.add_row(other, f"{edge.file}:{edge.line}")
        if not edges:
            table.add_row("[dim]none[/dim]", "")
        console.print(table)


if __name__ == "__main__":
    app()
