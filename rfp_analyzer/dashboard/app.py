#!/usr/bin/env python3
# CUI // SP-PROPIN
"""RFP Analyzer API - Flask JSON endpoints over the analysis pipeline.

Endpoints:
    /api/health              - Liveness
    /api/config              - Probe the local backend, list providers
    /api/upload              - Upload and parse one document (multipart ``document``)
    /api/upload-multiple     - Upload up to 10 documents (multipart ``documents``)
    /api/analyze             - Comprehensive analysis of one document
    /api/analyze-multiple    - One analysis across several documents
    /api/ai-assistant        - Question about a document
    /api/generate-response   - Draft a proposal response from the stored analysis
    /api/enhance-response    - Rewrite a stored response per instructions
    /api/stats               - Record store statistics

LLM failures map to JSON errors: no provider -> 503, provider failure -> 502.

Usage:
    python -m rfp_analyzer.dashboard.app [--port 3001] [--debug]
"""

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)  # real env vars win

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("rfp_analyzer")

from rfp_analyzer.llm.provider import LLMError, NoProviderAvailable  # noqa: E402
from rfp_analyzer.llm.router import get_router  # noqa: E402
from rfp_analyzer.rfx import analyzer, response_generator  # noqa: E402
from rfp_analyzer.rfx.document_processor import (  # noqa: E402
    MAX_UPLOAD_BYTES, UPLOAD_DIR, allowed_file, process_file,
)
from rfp_analyzer.storage import file_manager  # noqa: E402

MAX_BATCH_FILES = 10

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES * MAX_BATCH_FILES


def _now():
    return datetime.now(timezone.utc).isoformat()


def _body() -> dict:
    return request.get_json(silent=True) or {}


# =========================================================================
# ERROR HANDLERS
# =========================================================================
@app.errorhandler(LLMError)
def llm_error(e):
    status = 503 if isinstance(e, NoProviderAvailable) else 502
    logger.error("LLM error (%s): %s", e.kind, e.message)
    return jsonify({"error": e.message, **e.to_dict()}), status


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    return jsonify({"error": "File too large. Maximum size is 50MB."}), 413


@app.errorhandler(404)
def not_found(e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def internal_server_error(e):
    logger.error("500 Internal Server Error: %s", e)
    return jsonify({"error": "Internal server error"}), 500


# =========================================================================
# ROUTES
# =========================================================================
@app.route("/api/health")
def api_health():
    return jsonify({"status": "OK", "timestamp": _now()})


@app.route("/api/config")
async def api_config():
    """Probe the local backend and report configured providers."""
    status = await get_router().initialize()
    return jsonify({
        "aiConfigured": status["total"] > 0,
        "aiProviders": status["available"],
        "allProviders": status["providers"],
        "recommendedProvider": status["recommended"],
        "priority": status["priority"],
        "serverTime": _now(),
    })


def _save_upload(storage) -> dict:
    """Stage one werkzeug FileStorage on disk and hand it to the processor."""
    if not allowed_file(storage.filename):
        raise ValueError(f"Unsupported file type: {Path(storage.filename or '').suffix}")
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    suffix = Path(secure_filename(storage.filename)).suffix
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix, dir=str(UPLOAD_DIR)) as tmp:
        storage.save(tmp)
        tmp_path = Path(tmp.name)
    size = tmp_path.stat().st_size
    if size > MAX_UPLOAD_BYTES:
        tmp_path.unlink()
        raise ValueError("File too large. Maximum size is 50MB.")
    return process_file(tmp_path, storage.filename, size, storage.mimetype or "")


@app.route("/api/upload", methods=["POST"])
def api_upload():
    f = request.files.get("document")
    if f is None or not f.filename:
        return jsonify({"error": "No file uploaded"}), 400
    try:
        return jsonify(_save_upload(f))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@app.route("/api/upload-multiple", methods=["POST"])
def api_upload_multiple():
    files = [f for f in request.files.getlist("documents") if f.filename]
    if not files:
        return jsonify({"error": "No files uploaded"}), 400
    if len(files) > MAX_BATCH_FILES:
        return jsonify({"error": f"At most {MAX_BATCH_FILES} files per upload"}), 400

    logger.info("Processing %d files", len(files))
    successful, failed = [], []
    for f in files:
        try:
            successful.append(_save_upload(f))
        except (ValueError, OSError) as e:
            failed.append({"file": f.filename, "error": str(e)})

    return jsonify({
        "success": True,
        "processed": len(successful),
        "failed": len(failed),
        "results": successful,
        "errors": failed,
        "message": f"Successfully processed {len(successful)} of {len(files)} files",
    })


@app.route("/api/analyze", methods=["POST"])
async def api_analyze():
    data = _body()
    content_id = data.get("contentId")
    if not content_id:
        return jsonify({"error": "Content ID is required"}), 400
    doc = file_manager.get_processed_content(content_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404

    logger.info("Starting analysis for %s", doc["originalFile"])
    analysis = await analyzer.analyze_rfp_comprehensive(
        doc["content"], data.get("provider"), data.get("model"), content_id=content_id,
    )
    file_manager.save_analysis(content_id, analysis)
    return jsonify({"success": True, "analysis": analysis})


@app.route("/api/analyze-multiple", methods=["POST"])
async def api_analyze_multiple():
    data = _body()
    content_ids = data.get("contentIds")
    if not content_ids or not isinstance(content_ids, list):
        return jsonify({"error": "Content IDs array is required"}), 400

    docs = []
    for cid in content_ids:
        doc = file_manager.get_processed_content(cid)
        if not doc:
            return jsonify({"error": f"Document with ID {cid} not found"}), 404
        docs.append({"contentId": cid, **doc})

    analysis = await analyzer.analyze_multiple(docs, data.get("provider"), data.get("model"))
    file_manager.save_analysis(content_ids[0], analysis)
    return jsonify({
        "success": True,
        "analysis": analysis,
        "documentsAnalyzed": len(docs),
        "primaryDocument": docs[0]["originalFile"],
    })


@app.route("/api/ai-assistant", methods=["POST"])
async def api_ai_assistant():
    data = _body()
    content_id, question = data.get("contentId"), data.get("question")
    if not content_id or not question:
        return jsonify({"error": "Content ID and question are required"}), 400
    doc = file_manager.get_processed_content(content_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404

    answer = await analyzer.answer_question(
        doc["content"], question, data.get("provider"), data.get("model"),
        content_id=content_id,
    )
    return jsonify({"success": True, **answer})


@app.route("/api/generate-response", methods=["POST"])
async def api_generate_response():
    data = _body()
    content_id = data.get("contentId")
    if not content_id:
        return jsonify({"error": "Content ID is required"}), 400
    doc = file_manager.get_processed_content(content_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    analysis = file_manager.get_analysis(content_id)
    if not analysis:
        return jsonify({"error": "Analysis not found. Analyze the document first."}), 404

    response = await response_generator.generate_response(
        analysis,
        data.get("selectedDocuments") or [],
        data.get("customInstructions"),
        data.get("provider"),
        data.get("model"),
        original_content=doc["content"],
        content_id=content_id,
    )
    response_id = file_manager.save_response(content_id, response)
    return jsonify({"success": True, "responseId": response_id, "response": response})


@app.route("/api/enhance-response", methods=["POST"])
async def api_enhance_response():
    data = _body()
    response_id, instructions = data.get("responseId"), data.get("instructions")
    if not response_id or not instructions:
        return jsonify({"error": "Response ID and instructions are required"}), 400
    original = file_manager.get_response(response_id)
    if not original:
        return jsonify({"error": "Response not found"}), 404

    enhanced = await response_generator.enhance_response(
        original, instructions, data.get("provider"), data.get("model"),
    )
    new_id = file_manager.save_response(original["contentId"], enhanced)
    return jsonify({"success": True, "responseId": new_id, "response": enhanced})


@app.route("/api/stats")
def api_stats():
    return jsonify(file_manager.get_system_stats())


# =========================================================================
# MAIN
# =========================================================================
if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="RFP Analyzer API")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 3001)))
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--host", default="127.0.0.1")
    args = parser.parse_args()

    file_manager.initialize_storage()
    print(f"RFP Analyzer API starting on http://{args.host}:{args.port}")
    print(f"Database: {file_manager.DB_PATH}")
    app.run(host=args.host, port=args.port, debug=args.debug)
