#!/usr/bin/env python3
"""
CLI Interface - Command-line tools for the retrieval core.

This module provides a terminal interface for working with study materials:
- Preview how a file will be chunked (chunk)
- Ingest a file into the vector store (ingest)
- Search a user's materials (search)
- Build a question-generation context block (context)
- Show database statistics (stats)
- Run the HTTP API (serve)

Run with:
    python -m mockify --help
    python -m mockify ingest notes.pdf --user u1 --topic Biology
    python -m mockify search "cell respiration" --user u1
"""

import argparse
import logging
import sys
import uuid
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mockify.config import (
    CHROMA_DB_DIR,
    CHUNK_STRATEGIES,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SIMILARITY_THRESHOLD,
)
from mockify.embeddings.embedder import BaseEmbedder, Embedder, OllamaEmbedder
from mockify.embeddings.vector_store import VectorStore
from mockify.exceptions import MockifyError
from mockify.ingestion.chunker import ChunkStrategy, TextChunker, estimate_chunks, sanitize_text
from mockify.ingestion.extractor import TextExtractor, guess_content_type
from mockify.ingestion.pipeline import IngestionPipeline
from mockify.logger import configure_logging
from mockify.models import Document
from mockify.rag.retriever import Retriever

# Rich console for beautiful output
console = Console()


# =============================================================================
# HELPERS
# =============================================================================


def _build_embedder(args: argparse.Namespace) -> BaseEmbedder:
    if args.backend == "ollama":
        return OllamaEmbedder(model_name=args.model)
    return Embedder(model_name=args.model)


def _build_store(args: argparse.Namespace, embedder: BaseEmbedder) -> VectorStore:
    return VectorStore(persist_directory=args.db_dir, dimension=embedder.dimension)


def _strategy(name: str | None) -> ChunkStrategy | None:
    return ChunkStrategy.named(name) if name else None


def _preview(text: str, length: int = 200) -> str:
    text = escape(text.replace("\n", " "))
    return text if len(text) <= length else text[:length] + "..."


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_chunk(args: argparse.Namespace) -> None:
    """Show how a file would be chunked, without embedding anything."""
    text = sanitize_text(TextExtractor().extract_file(args.file))
    chunker = TextChunker(_strategy(args.strategy))
    strategy = chunker.strategy_for(text)
    chunks = chunker.chunk_text(text)

    console.print(
        f"[green]{len(text):,} chars -> {len(chunks)} chunks[/green] "
        f"[dim](strategy {strategy.name}: size {strategy.size}, overlap {strategy.overlap}; "
        f"estimated {estimate_chunks(len(text), strategy)})[/dim]\n"
    )

    table = Table(title=f"Chunks of {Path(args.file).name}", show_header=True, header_style="bold cyan")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Span", style="dim")
    table.add_column("Chars", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Preview", style="white")

    for chunk in chunks[: args.limit]:
        table.add_row(
            str(chunk.chunk_index),
            f"{chunk.start_char}-{chunk.end_char}",
            str(chunk.char_count),
            str(chunk.word_count),
            _preview(chunk.text, 80),
        )
    console.print(table)

    if len(chunks) > args.limit:
        console.print(f"[dim]... {len(chunks) - args.limit} more chunks[/dim]")


def cmd_ingest(args: argparse.Namespace) -> None:
    """Extract, chunk, embed and index one file."""
    path = Path(args.file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    embedder = _build_embedder(args)
    pipeline = IngestionPipeline(embedder, _build_store(args, embedder))
    document = Document(
        id=args.document_id or str(uuid.uuid4()), user_id=args.user, topic=args.topic
    )

    with console.status(f"[bold green]Ingesting {path.name}...", spinner="dots"):
        result = pipeline.ingest(
            document, path.read_bytes(), guess_content_type(path), strategy=_strategy(args.strategy)
        )

    console.print(
        Panel.fit(
            f"Document: [cyan]{document.id}[/cyan]\n"
            f"Status: [green]{result.status.value}[/green]\n"
            f"Chunks indexed: {len(result.chunks)}\n"
            f"Chunks failed: {len(result.failed_chunks)}",
            title="Ingestion complete",
            border_style="green" if not result.is_partial else "yellow",
        )
    )
    for index, reason in sorted(result.failed_chunks.items()):
        console.print(f"[yellow]  chunk {index}: {reason}[/yellow]")


def cmd_search(args: argparse.Namespace) -> None:
    """Rank a user's documents for a query."""
    embedder = _build_embedder(args)
    retriever = Retriever(embedder, _build_store(args, embedder))

    results = retriever.search_relevant_content(
        args.user,
        args.query,
        threshold=args.threshold,
        max_results=args.limit,
        best_effort=args.best_effort,
    )

    if not results:
        console.print("[yellow]No relevant materials found[/yellow]")
        console.print("[dim]Try a lower --threshold or --best-effort[/dim]")
        return

    for rank, result in enumerate(results, 1):
        console.print(
            f"\n[bold]{rank}. {result.topic}[/bold] [dim]({result.document_id})[/dim] "
            f"[green]{result.similarity_percent}% match[/green], "
            f"{result.total_matched_chunks} matching chunks"
        )
        for matched in result.matched_chunks:
            console.print(
                f"   [cyan]#{matched.chunk_index}[/cyan] {matched.similarity_percent}% "
                f"[dim]{_preview(matched.text, 120)}[/dim]"
            )


def cmd_context(args: argparse.Namespace) -> None:
    """Print the context block question generation would receive."""
    embedder = _build_embedder(args)
    retriever = Retriever(embedder, _build_store(args, embedder))

    context = retriever.build_context(args.user, args.query)
    if not context:
        console.print("[yellow]No context found; generation would use generic content[/yellow]")
        return
    console.print(Panel(Text(context), title=f"Context for: {args.query}", border_style="blue"))


def cmd_stats(args: argparse.Namespace) -> None:
    """Show database statistics."""
    embedder = _build_embedder(args)
    stats = _build_store(args, embedder).get_stats()

    table = Table(title="Database Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="white")
    table.add_column("Value", style="green")

    table.add_row("Backend", stats["backend"])
    table.add_row("Collection Name", stats.get("collection_name", "-"))
    table.add_row("Total Chunks", str(stats["chunk_count"]))
    table.add_row("Documents", str(stats["document_count"]))
    table.add_row("Dimension", str(stats["dimension"]))
    table.add_row("Storage Location", str(stats.get("persist_directory") or "in-memory"))

    console.print(table)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from mockify.interfaces.web_app import create_app

    embedder = _build_embedder(args)
    app = create_app(IngestionPipeline(embedder, _build_store(args, embedder)))
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


# =============================================================================
# ARGUMENT PARSING
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mockify", description="Chunk, index and search study materials."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--backend", choices=("local", "ollama"), default="local", help="Embedding backend"
    )
    parser.add_argument("--model", default=None, help="Embedding model name")
    parser.add_argument("--db-dir", default=str(CHROMA_DB_DIR), help="ChromaDB directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    chunk = subparsers.add_parser("chunk", help="Preview chunking of a file")
    chunk.add_argument("file")
    chunk.add_argument("--strategy", choices=list(CHUNK_STRATEGIES), default=None)
    chunk.add_argument("--limit", type=int, default=20, help="Chunks to display")
    chunk.set_defaults(func=cmd_chunk)

    ingest = subparsers.add_parser("ingest", help="Ingest a PDF or text file")
    ingest.add_argument("file")
    ingest.add_argument("--user", required=True)
    ingest.add_argument("--topic", default="General")
    ingest.add_argument("--document-id", default=None)
    ingest.add_argument("--strategy", choices=list(CHUNK_STRATEGIES), default=None)
    ingest.set_defaults(func=cmd_ingest)

    search = subparsers.add_parser("search", help="Search a user's materials")
    search.add_argument("query")
    search.add_argument("--user", required=True)
    search.add_argument("--threshold", type=float, default=DEFAULT_SIMILARITY_THRESHOLD)
    search.add_argument("--limit", type=int, default=DEFAULT_MAX_RESULTS)
    search.add_argument("--best-effort", action="store_true")
    search.set_defaults(func=cmd_search)

    context = subparsers.add_parser("context", help="Show question-generation context")
    context.add_argument("query")
    context.add_argument("--user", required=True)
    context.set_defaults(func=cmd_context)

    stats = subparsers.add_parser("stats", help="Show database statistics")
    stats.set_defaults(func=cmd_stats)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        args.func(args)
    except MockifyError as e:
        console.print(f"[red]Error: {e.user_message}[/red]")
        console.print(f"[dim]{e}[/dim]")
        return 1
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
