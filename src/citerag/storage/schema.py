"""Database schema for the citerag SQLite store."""

SCHEMA = """
-- Documents table: one row per submitted document
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    filename TEXT NOT NULL,
    text TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    chunk_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

-- Chunks table: immutable passages with their embeddings
CREATE TABLE IF NOT EXISTS chunks (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    text TEXT NOT NULL,
    section_title TEXT NOT NULL,
    section_level INTEGER NOT NULL,
    chunk_type TEXT NOT NULL DEFAULT 'text',
    token_count INTEGER NOT NULL,
    embedding BLOB,            -- float32 vector, NULL if never embedded
    UNIQUE (document_id, chunk_index),
    FOREIGN KEY (document_id) REFERENCES documents(id)
);

-- Queries table: answered questions, written once
CREATE TABLE IF NOT EXISTS queries (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    prompt_mode TEXT NOT NULL CHECK (prompt_mode IN ('basic', 'advanced')),
    retrieved_chunks TEXT NOT NULL,   -- JSON list of {id, chunk_index, score, rank}
    citations TEXT NOT NULL,          -- JSON list of labels
    faithfulness_score REAL NOT NULL,
    used_fallback INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    FOREIGN KEY (document_id) REFERENCES documents(id)
);

-- Metadata table: store-wide settings such as the embedding model
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT
);

-- Indexes for efficient queries
CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);
CREATE INDEX IF NOT EXISTS idx_queries_document ON queries(document_id);
"""
