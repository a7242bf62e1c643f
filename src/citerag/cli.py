"""CLI entry point for citerag."""

import argparse
import logging
import sys
import uuid
from dataclasses import replace
from typing import Literal, cast

from dotenv import load_dotenv

from citerag.config import Settings
from citerag.errors import CiteRagError, NotFoundError
from citerag.grounding import format_stats, summarize_queries
from citerag.pipeline import RagPipeline
from citerag.storage import SQLiteRepository
from citerag.utils import read_text_file

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def ingest(settings: Settings, path: str, document_id: str | None = None) -> None:
    """Chunk, embed and store a text file as a new document.

    Args:
        settings: Pipeline settings
        path: Path to a UTF-8 text or markdown file
        document_id: Identifier to use (default: a new UUID)
    """
    text, filename = read_text_file(path)
    document_id = document_id or str(uuid.uuid4())

    logger.info("Loading embedding model...")
    pipeline = RagPipeline.from_settings(settings)
    result = pipeline.process_document(document_id, text, filename)

    logger.info("")
    logger.info(f"Ingested {filename} -> {document_id} ({result['chunk_count']} chunks)")


def ask(settings: Settings, document_id: str, question: str, mode: str, top_k: int) -> None:
    """Answer a question against an ingested document."""
    pipeline = RagPipeline.from_settings(settings)
    result = pipeline.answer_query(document_id, question, prompt_mode=mode, top_k=top_k)

    print(result.answer)
    print("")
    if result.used_fallback:
        print("(generation unavailable: extractive fallback)")
    print(f"Citations:    {', '.join(result.citations) or '-'}")
    print(f"Faithfulness: {result.faithfulness_score:.2f}")
    print("Sources:")
    for rc in result.retrieved_chunks:
        text = rc.text[:100].replace("\n", " ")
        if len(rc.text) > 100:
            text += "..."
        print(f"  {rc.rank}. [{rc.score:.4f}] {rc.section_title}")
        print(f"     {text}")


def docs(settings: Settings) -> None:
    """List documents in the database."""
    store = SQLiteRepository(settings.db_path)
    store.initialize()

    documents = store.list_documents()
    if not documents:
        print(f"No documents in {settings.db_path}")
        return

    model = store.get_metadata("embedding_model")
    print(f"Database: {settings.db_path}")
    if model:
        print(f"  embedding_model: {model}")
    print("")
    for doc in documents:
        print(f"{doc.id}  {doc.status.value:<10} {doc.chunk_count:>5} chunks  {doc.filename}")


def history(settings: Settings, document_id: str) -> None:
    """Show questions asked against a document."""
    store = SQLiteRepository(settings.db_path)
    store.initialize()

    queries = store.list_queries(document_id)
    if not queries:
        print(f"No queries for {document_id}")
        return

    for q in queries:
        flag = " [fallback]" if q.used_fallback else ""
        print(f"{q.created_at}  {q.prompt_mode.value:<8} faithfulness={q.faithfulness_score:.2f}{flag}")
        print(f"  Q: {q.question}")
        answer = q.answer[:200].replace("\n", " ")
        print(f"  A: {answer}")
        print("")


def stats(settings: Settings, document_id: str) -> None:
    """Show grounding metrics over every question asked of a document."""
    store = SQLiteRepository(settings.db_path)
    store.initialize()

    if store.get_document(document_id) is None:
        raise NotFoundError(f"Document {document_id} not found")
    print(f"Document: {document_id}")
    print(format_stats(summarize_queries(store.list_queries(document_id))))


def serve(settings: Settings, transport: str = "stdio") -> None:
    """Start MCP server for a database.

    Args:
        settings: Pipeline settings (the database path comes from here)
        transport: Transport protocol (stdio or sse)
    """
    # Import here to avoid loading MCP unless needed
    from citerag.server import create_mcp_server

    logger.info(f"Serving {settings.db_path} via {transport}")
    mcp = create_mcp_server(settings)
    mcp.run(transport=cast(Literal["stdio", "sse", "streamable-http"], transport))


def deck(settings: Settings) -> None:
    """Launch the Flight Deck TUI for interactive pipeline testing."""
    from citerag.flight_deck import main as flight_deck_main

    flight_deck_main(settings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="citerag",
        description="citerag - grounded question answering over your documents",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: $CITERAG_DB_PATH or citerag.db)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Chunk, embed and store a text file",
    )
    ingest_parser.add_argument("file", help="Text or markdown file path")
    ingest_parser.add_argument("--id", dest="document_id", help="Document id (default: new UUID)")
    ingest_parser.add_argument(
        "--max-tokens",
        type=int,
        default=None,
        help="Token budget per chunk (default: 500)",
    )

    # ask command
    ask_parser = subparsers.add_parser(
        "ask",
        help="Ask a question about an ingested document",
    )
    ask_parser.add_argument("document_id", help="Document id")
    ask_parser.add_argument("question", help="Question text")
    ask_parser.add_argument(
        "--mode",
        choices=["basic", "advanced"],
        default=None,
        help="Prompt mode (default: advanced)",
    )
    ask_parser.add_argument("--top-k", type=int, default=None, help="Chunks to retrieve (default: 5)")

    # docs command
    subparsers.add_parser("docs", help="List documents")

    # history command
    history_parser = subparsers.add_parser("history", help="Show past questions for a document")
    history_parser.add_argument("document_id", help="Document id")

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show grounding metrics for a document")
    stats_parser.add_argument("document_id", help="Document id")

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start MCP server for the database",
    )
    serve_parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    # deck command
    subparsers.add_parser(
        "deck",
        help="Launch Flight Deck TUI for interactive testing",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        settings = Settings.from_env()
        overrides = {
            "db_path": args.db,
            "max_tokens": getattr(args, "max_tokens", None),
            "prompt_mode": getattr(args, "mode", None),
            "top_k": getattr(args, "top_k", None),
        }
        settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
        settings.validate()
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        sys.exit(2)

    try:
        if args.command == "ingest":
            ingest(settings, args.file, args.document_id)
        elif args.command == "ask":
            ask(settings, args.document_id, args.question, settings.prompt_mode, settings.top_k)
        elif args.command == "docs":
            docs(settings)
        elif args.command == "history":
            history(settings, args.document_id)
        elif args.command == "stats":
            stats(settings, args.document_id)
        elif args.command == "serve":
            serve(settings, args.transport)
        elif args.command == "deck":
            deck(settings)
    except CiteRagError as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
