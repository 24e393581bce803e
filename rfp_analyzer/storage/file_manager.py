#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Record store: processed documents, analyses, responses, TTL cache.

Records are JSON payloads keyed by generated identifiers and kept in the
SQLite database created by rfp_analyzer.db.init_db. Missing records come
back as None; nothing here talks to an LLM.

Usage:
    python -m rfp_analyzer.storage.file_manager --stats
    python -m rfp_analyzer.storage.file_manager --cleanup --days 30
"""

import argparse
import json
import os
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from rfp_analyzer.db.init_db import init_db

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = Path(os.environ.get(
    "RFP_ANALYZER_DB_PATH", str(BASE_DIR / "data" / "rfp_analyzer.db")
))

CACHE_TTL_HOURS = 24


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _conn():
    path = Path(DB_PATH)
    if not path.exists():
        init_db(str(path))
    c = sqlite3.connect(str(path))
    c.row_factory = sqlite3.Row
    c.execute("PRAGMA journal_mode=WAL")
    return c


def initialize_storage() -> dict:
    """Create the database and tables if missing."""
    return init_db(str(DB_PATH))


# ── processed documents ────────────────────────────────────────────────────────

def save_processed_content(content_id: str, data: Dict[str, Any]) -> str:
    """Store extracted text plus upload metadata under ``content_id``."""
    metadata = data.get("metadata") or {}
    conn = _conn()
    try:
        conn.execute("""
            INSERT OR REPLACE INTO processed_documents
                (id, original_file, content, extension, mime_type, size,
                 metadata, saved_at)
            VALUES (?,?,?,?,?,?,?,?)
        """, (
            content_id,
            data.get("originalFile", ""),
            data.get("content", ""),
            metadata.get("extension"),
            metadata.get("mimeType"),
            int(metadata.get("size") or 0),
            json.dumps(metadata),
            _now().isoformat(),
        ))
        conn.commit()
    finally:
        conn.close()
    return content_id


def get_processed_content(content_id: str) -> Optional[Dict[str, Any]]:
    conn = _conn()
    try:
        row = conn.execute(
            "SELECT * FROM processed_documents WHERE id = ?", (content_id,)
        ).fetchone()
    finally:
        conn.close()
    if not row:
        return None
    return {
        "id": row["id"],
        "originalFile": row["original_file"],
        "content": row["content"],
        "metadata": json.loads(row["metadata"] or "{}"),
        "savedAt": row["saved_at"],
    }


# ── analyses ───────────────────────────────────────────────────────────────────

def save_analysis(content_id: str, analysis: Dict[str, Any]) -> str:
    meta = analysis.get("analysisMetadata") or {}
    conn = _conn()
    try:
        conn.execute("""
            INSERT OR REPLACE INTO analyses
                (content_id, analysis, provider, model_id, saved_at)
            VALUES (?,?,?,?,?)
        """, (
            content_id, json.dumps(analysis),
            meta.get("provider"), meta.get("model"),
            _now().isoformat(),
        ))
        conn.commit()
    finally:
        conn.close()
    return content_id


def get_analysis(content_id: str) -> Optional[Dict[str, Any]]:
    conn = _conn()
    try:
        row = conn.execute(
            "SELECT analysis FROM analyses WHERE content_id = ?", (content_id,)
        ).fetchone()
    finally:
        conn.close()
    return json.loads(row["analysis"]) if row else None


# ── responses ──────────────────────────────────────────────────────────────────

def save_response(content_id: str, response: Dict[str, Any]) -> str:
    """Store a generated response. Returns the new response id."""
    response_id = str(uuid.uuid4())
    conn = _conn()
    try:
        conn.execute("""
            INSERT INTO responses (id, content_id, response, saved_at)
            VALUES (?,?,?,?)
        """, (response_id, content_id, json.dumps(response), _now().isoformat()))
        conn.commit()
    finally:
        conn.close()
    return response_id


def get_response(response_id: str) -> Optional[Dict[str, Any]]:
    conn = _conn()
    try:
        row = conn.execute(
            "SELECT * FROM responses WHERE id = ?", (response_id,)
        ).fetchone()
    finally:
        conn.close()
    if not row:
        return None
    return {
        "id": row["id"],
        "contentId": row["content_id"],
        "savedAt": row["saved_at"],
        **json.loads(row["response"]),
    }


def get_responses_for_content(content_id: str) -> List[Dict[str, Any]]:
    """All responses generated for a document, newest first."""
    conn = _conn()
    try:
        rows = conn.execute(
            "SELECT * FROM responses WHERE content_id = ? ORDER BY saved_at DESC",
            (content_id,)
        ).fetchall()
    finally:
        conn.close()
    return [
        {"id": r["id"], "contentId": r["content_id"], "savedAt": r["saved_at"],
         **json.loads(r["response"])}
        for r in rows
    ]


# ── cache ──────────────────────────────────────────────────────────────────────

def save_to_cache(key: str, data: Any, ttl_hours: float = CACHE_TTL_HOURS) -> None:
    now = _now()
    conn = _conn()
    try:
        conn.execute("""
            INSERT OR REPLACE INTO cache_entries (key, data, expires_at, cached_at)
            VALUES (?,?,?,?)
        """, (key, json.dumps(data), (now + timedelta(hours=ttl_hours)).isoformat(),
              now.isoformat()))
        conn.commit()
    finally:
        conn.close()


def get_from_cache(key: str) -> Optional[Any]:
    """Return cached data if fresh; expired entries are deleted."""
    conn = _conn()
    try:
        row = conn.execute(
            "SELECT data, expires_at FROM cache_entries WHERE key = ?", (key,)
        ).fetchone()
        if not row:
            return None
        if datetime.fromisoformat(row["expires_at"]) <= _now():
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            conn.commit()
            return None
        return json.loads(row["data"])
    finally:
        conn.close()


def cleanup_cache() -> int:
    """Delete expired cache entries. Returns the number removed."""
    now = _now()
    conn = _conn()
    try:
        rows = conn.execute("SELECT key, expires_at FROM cache_entries").fetchall()
        expired = [r["key"] for r in rows
                   if datetime.fromisoformat(r["expires_at"]) <= now]
        conn.executemany("DELETE FROM cache_entries WHERE key = ?",
                         [(k,) for k in expired])
        conn.commit()
    finally:
        conn.close()
    return len(expired)


# ── telemetry ──────────────────────────────────────────────────────────────────

def record_telemetry(function: str, provider: str, model_id: str,
                     prompt_hash: str, response_hash: str,
                     input_tokens: int = 0, output_tokens: int = 0,
                     latency_ms: float = 0.0,
                     attempted_providers: Optional[List[str]] = None,
                     content_id: Optional[str] = None) -> str:
    """Write one ai_telemetry row. Returns its id."""
    row_id = str(uuid.uuid4())
    conn = _conn()
    try:
        conn.execute("""
            INSERT INTO ai_telemetry
                (id, content_id, function, provider, model_id, attempted_providers,
                 prompt_hash, response_hash, input_tokens, output_tokens,
                 latency_ms, logged_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
        """, (
            row_id, content_id, function, provider, model_id,
            json.dumps(attempted_providers or []),
            prompt_hash, response_hash, input_tokens, output_tokens,
            latency_ms, _now().isoformat(),
        ))
        conn.commit()
    finally:
        conn.close()
    return row_id


def list_telemetry(limit: int = 50) -> List[Dict[str, Any]]:
    conn = _conn()
    try:
        rows = conn.execute(
            "SELECT * FROM ai_telemetry ORDER BY logged_at DESC LIMIT ?", (limit,)
        ).fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]


# ── maintenance ────────────────────────────────────────────────────────────────

def get_system_stats() -> Dict[str, Any]:
    conn = _conn()
    try:
        doc_row = conn.execute(
            "SELECT COUNT(*) AS cnt, COALESCE(SUM(size), 0) AS total FROM processed_documents"
        ).fetchone()
        analyses = conn.execute("SELECT COUNT(*) FROM analyses").fetchone()[0]
        responses = conn.execute("SELECT COUNT(*) FROM responses").fetchone()[0]
        cache = conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0]
    finally:
        conn.close()
    return {
        "documents": {"processed": doc_row["cnt"], "totalSize": doc_row["total"]},
        "analyses": {"count": analyses},
        "responses": {"count": responses},
        "cache": {"entries": cache},
        "lastUpdated": _now().isoformat(),
    }


def cleanup_old_files(days_old: int = 30) -> Dict[str, int]:
    """Remove documents, analyses and responses older than ``days_old`` days."""
    cutoff = (_now() - timedelta(days=days_old)).isoformat()
    removed = {}
    conn = _conn()
    try:
        for table in ("processed_documents", "analyses", "responses"):
            cur = conn.execute(f"DELETE FROM {table} WHERE saved_at < ?", (cutoff,))
            removed[table] = cur.rowcount
        conn.commit()
    finally:
        conn.close()
    removed["cache_entries"] = cleanup_cache()
    return removed


def main():
    parser = argparse.ArgumentParser(description="RFP analyzer record store")
    parser.add_argument("--stats", action="store_true")
    parser.add_argument("--cleanup", action="store_true")
    parser.add_argument("--days", type=int, default=30)
    args = parser.parse_args()

    if args.cleanup:
        print(json.dumps(cleanup_old_files(args.days), indent=2))
    else:
        print(json.dumps(get_system_stats(), indent=2))


if __name__ == "__main__":
    main()
