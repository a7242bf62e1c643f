"""Pipeline configuration settings.

This module defines the Settings dataclass that loads configuration
from environment variables.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Pipeline settings loaded from environment variables.

    Attributes:
        db_path: Path to the SQLite database.
        embed_model: sentence-transformers model name.
        gen_model: OpenAI chat model name.
        openai_api_key: OpenAI API key (optional, the SDK also reads
            OPENAI_API_KEY).
        max_tokens: Whitespace-token budget per chunk.
        top_k: Default number of chunks passed to generation.
        prompt_mode: Default prompt mode, basic or advanced.
        bm25_k1: BM25 term-frequency saturation.
        bm25_b: BM25 length normalisation.
        rrf_k: Reciprocal rank fusion damping constant.
        embed_workers: Concurrent embedding requests during ingestion.
        embed_batch_size: Chunks per embedding request.
        embed_timeout: Seconds allowed for one embedding request.
        generation_timeout: Seconds allowed for one generation request.
    """

    db_path: str = "citerag.db"
    embed_model: str = "all-MiniLM-L6-v2"
    gen_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None

    max_tokens: int = 500
    top_k: int = 5
    prompt_mode: str = "advanced"

    bm25_k1: float = 1.5
    bm25_b: float = 0.75
    rrf_k: int = 60

    embed_workers: int = 4
    embed_batch_size: int = 8
    embed_timeout: float = 60.0
    generation_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Returns:
            Settings instance with values loaded from environment.
        """
        settings = cls(
            db_path=os.getenv("CITERAG_DB_PATH", "citerag.db"),
            embed_model=os.getenv("CITERAG_EMBED_MODEL", "all-MiniLM-L6-v2"),
            gen_model=os.getenv("CITERAG_GEN_MODEL", "gpt-4o-mini"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            max_tokens=int(os.getenv("CITERAG_MAX_TOKENS", "500")),
            top_k=int(os.getenv("CITERAG_TOP_K", "5")),
            prompt_mode=os.getenv("CITERAG_PROMPT_MODE", "advanced"),
            bm25_k1=float(os.getenv("CITERAG_BM25_K1", "1.5")),
            bm25_b=float(os.getenv("CITERAG_BM25_B", "0.75")),
            rrf_k=int(os.getenv("CITERAG_RRF_K", "60")),
            embed_workers=int(os.getenv("CITERAG_EMBED_WORKERS", "4")),
            embed_batch_size=int(os.getenv("CITERAG_EMBED_BATCH_SIZE", "8")),
            embed_timeout=float(os.getenv("CITERAG_EMBED_TIMEOUT", "60")),
            generation_timeout=float(os.getenv("CITERAG_GENERATION_TIMEOUT", "30")),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ValueError if a setting is out of range."""
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if self.top_k < 1:
            raise ValueError("top_k must be >= 1")
        if self.prompt_mode not in {"basic", "advanced"}:
            raise ValueError(f"Unknown prompt_mode: {self.prompt_mode}")
        if self.bm25_k1 < 0 or not 0 <= self.bm25_b <= 1:
            raise ValueError("bm25_k1 must be >= 0 and bm25_b in [0, 1]")
        if self.rrf_k < 0:
            raise ValueError("rrf_k must be >= 0")
        if self.embed_workers < 1 or self.embed_batch_size < 1:
            raise ValueError("embed_workers and embed_batch_size must be >= 1")
        if self.embed_timeout <= 0 or self.generation_timeout <= 0:
            raise ValueError("timeouts must be positive")
