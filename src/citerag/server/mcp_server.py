"""FastMCP server implementation for citerag."""

import uuid

from mcp.server.fastmcp import FastMCP

from citerag.config import Settings
from citerag.errors import CiteRagError
from citerag.grounding import format_stats, summarize_queries
from citerag.pipeline import RagPipeline
from citerag.protocols import Repository


def format_documents(repository: Repository) -> str:
    documents = repository.list_documents()
    if not documents:
        return "No documents ingested yet"
    return "\n".join(
        f"{d.id}  {d.status.value:<10} {d.chunk_count:>5} chunks  {d.filename}"
        for d in documents
    )


def format_chunks(repository: Repository, document_id: str, limit: int = 20) -> str:
    chunks = repository.get_chunks(document_id)
    if not chunks:
        return f"No chunks for document {document_id}"

    lines = []
    for c in chunks[:limit]:
        text = c.text[:200].replace("\n", " ")
        if len(c.text) > 200:
            text += "..."
        meta = c.metadata
        lines.append(
            f"#{c.chunk_index} [{meta.section_title} | level {meta.section_level} | "
            f"{meta.token_count} tokens]"
        )
        lines.append(f"   {text}")
        lines.append("")
    if len(chunks) > limit:
        lines.append(f"... {len(chunks) - limit} more")
    return "\n".join(lines)


def create_mcp_server(settings: Settings, pipeline: RagPipeline | None = None) -> FastMCP:
    """Create an MCP server for one citerag database.

    Design: 1 process = 1 database.

    Args:
        settings: Settings naming the database and models
        pipeline: Pre-built pipeline (default: built from settings)

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="citerag",
    )

    # Loaded once per server
    pipeline = pipeline or RagPipeline.from_settings(settings)
    repository = pipeline.repository

    @mcp.tool()
    def documents() -> str:
        """List ingested documents with their processing status.

        Returns:
            One line per document: id, status, chunk count, filename
        """
        return format_documents(repository)

    @mcp.tool()
    def ingest(text: str, filename: str = "", document_id: str = "") -> str:
        """Chunk, embed and store a document so questions can be asked about it.

        Args:
            text: Full document text (markdown headings are recognised)
            filename: Name used as the title of text before the first heading
            document_id: Optional identifier; a new one is generated if empty

        Returns:
            The document id and number of chunks created
        """
        doc_id = document_id or str(uuid.uuid4())
        try:
            result = pipeline.process_document(doc_id, text, filename)
        except CiteRagError as exc:
            return f"Error: {exc}"
        return f"Document {doc_id}: {result['chunk_count']} chunks"

    @mcp.tool()
    def ask(document_id: str, question: str, mode: str = "advanced", top_k: int = 5) -> str:
        """Answer a question from one document, citing sources as [SOURCE n].

        Args:
            document_id: Id of a completed document
            question: Natural language question
            mode: "advanced" (strict, cited) or "basic"
            top_k: Number of passages given to the model (default: 5)

        Returns:
            The answer, its citations, faithfulness score and the sources
        """
        try:
            result = pipeline.answer_query(document_id, question, prompt_mode=mode, top_k=top_k)
        except CiteRagError as exc:
            return f"Error: {exc}"

        lines = [result.answer, ""]
        if result.used_fallback:
            lines.append("(generation unavailable: extractive fallback)")
        lines.append(f"Citations: {', '.join(result.citations) or '-'}")
        lines.append(f"Faithfulness: {result.faithfulness_score:.2f}")
        lines.append("")
        for rc in result.retrieved_chunks:
            lines.append(f"[SOURCE {rc.rank}] ({rc.score:.4f}) {rc.section_title}")
        return "\n".join(lines)

    @mcp.tool()
    def chunks(document_id: str, limit: int = 20) -> str:
        """Show a document's chunks in order with their section metadata.

        Args:
            document_id: Document id
            limit: Maximum number of chunks to show (default: 20)
        """
        return format_chunks(repository, document_id, limit)

    @mcp.tool()
    def stats(document_id: str) -> str:
        """Grounding metrics over every question asked of a document.

        Args:
            document_id: Document id

        Returns:
            Average faithfulness, hallucination rate, advanced prompt share
            and citations per answer, each checked against its target
        """
        return format_stats(summarize_queries(repository.list_queries(document_id)))

    return mcp
