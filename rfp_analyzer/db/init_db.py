#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Initialize the RFP analyzer database with all required tables.

Creates tables for:
  - Processed documents (extracted text + upload metadata)
  - Analyses (one per processed document)
  - Generated responses
  - TTL cache
  - AI telemetry (hashed prompts/responses, token counts per invocation)

Usage:
    python -m rfp_analyzer.db.init_db [--json]
"""

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = Path(os.environ.get(
    "RFP_ANALYZER_DB_PATH", str(BASE_DIR / "data" / "rfp_analyzer.db")
))


SCHEMA_SQL = """
-- ============================================================
-- DOCUMENTS
-- ============================================================

-- Text extracted from uploaded RFP documents
CREATE TABLE IF NOT EXISTS processed_documents (
    id TEXT PRIMARY KEY,
    original_file TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    extension TEXT,
    mime_type TEXT,
    size INTEGER DEFAULT 0,
    metadata TEXT,
    saved_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_processed_saved ON processed_documents(saved_at);

-- ============================================================
-- ANALYSIS & RESPONSES
-- ============================================================

CREATE TABLE IF NOT EXISTS analyses (
    content_id TEXT PRIMARY KEY,
    analysis TEXT NOT NULL,
    provider TEXT,
    model_id TEXT,
    saved_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS responses (
    id TEXT PRIMARY KEY,
    content_id TEXT NOT NULL,
    response TEXT NOT NULL,
    saved_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_responses_content ON responses(content_id);
CREATE INDEX IF NOT EXISTS idx_responses_saved ON responses(saved_at);

-- ============================================================
-- CACHE
-- ============================================================

CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    cached_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);

-- ============================================================
-- AI TELEMETRY
-- ============================================================

-- One row per LLM invocation; prompts and responses are hashed, not stored
CREATE TABLE IF NOT EXISTS ai_telemetry (
    id TEXT PRIMARY KEY,
    content_id TEXT,
    function TEXT,
    provider TEXT NOT NULL,
    model_id TEXT NOT NULL,
    attempted_providers TEXT,
    prompt_hash TEXT NOT NULL,
    response_hash TEXT,
    input_tokens INTEGER DEFAULT 0,
    output_tokens INTEGER DEFAULT 0,
    latency_ms REAL DEFAULT 0.0,
    logged_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_aitelemetry_content ON ai_telemetry(content_id);
CREATE INDEX IF NOT EXISTS idx_aitelemetry_provider ON ai_telemetry(provider);
CREATE INDEX IF NOT EXISTS idx_aitelemetry_time ON ai_telemetry(logged_at);
"""


def init_db(db_path=None):
    """Initialize the RFP analyzer database."""
    path = db_path or str(DB_PATH)
    db_dir = Path(path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")

    conn.executescript(SCHEMA_SQL)
    conn.commit()

    cursor = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table'"
    )
    table_count = cursor.fetchone()[0]

    cursor = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='index' "
        "AND name NOT LIKE 'sqlite_%'"
    )
    index_count = cursor.fetchone()[0]

    conn.close()

    return {
        "status": "initialized",
        "db_path": str(path),
        "tables": table_count,
        "indexes": index_count,
        "initialized_at": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize RFP analyzer database")
    parser.add_argument("--db-path", default=None)
    parser.add_argument("--json", action="store_true")
    args = parser.parse_args()

    result = init_db(args.db_path)
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"Database initialized: {result['db_path']} "
              f"({result['tables']} tables, {result['indexes']} indexes)")
