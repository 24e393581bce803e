#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Health Check - verifies RFP analyzer components are operational.

Checks the record store, the LLM configuration, provider credentials and
the upload directory. No network calls are made; run
``rfp_analyzer.scripts.check_providers --probe`` to test the local backend.

Usage:
    python -m rfp_analyzer.testing.health_check
    python -m rfp_analyzer.testing.health_check --json
"""

import argparse
import json
import sqlite3
import sys

from rfp_analyzer.llm.registry import DEFAULT_CONFIG_PATH, ProviderRegistry, load_config
from rfp_analyzer.rfx import document_processor
from rfp_analyzer.storage import file_manager


def _check_store() -> dict:
    db_path = file_manager.DB_PATH
    if not db_path.exists():
        return {"status": "missing", "path": str(db_path)}
    try:
        stats = file_manager.get_system_stats()
        recent = file_manager.list_telemetry(limit=1)
    except sqlite3.Error as e:
        return {"status": "error", "path": str(db_path), "error": str(e)}
    return {
        "status": "ok",
        "path": str(db_path),
        "documents": stats["documents"]["processed"],
        "analyses": stats["analyses"]["count"],
        "responses": stats["responses"]["count"],
        "last_invocation": recent[0]["logged_at"] if recent else None,
    }


def _check_providers() -> dict:
    # credentials only; the local backend counts as configured until probed
    registry = ProviderRegistry.from_config(load_config())
    with_keys = [d.key for d in registry.list_available()]
    local = registry.probed_keys()
    return {
        "status": "ok" if with_keys or local else "none",
        "configured": len(registry.list_all()),
        "with_credentials": with_keys,
        "local": local,
    }


def check_health() -> dict:
    """Run health checks on key system components."""
    upload_dir = document_processor.UPLOAD_DIR
    checks = {
        "database": _check_store(),
        "llm_config": {
            "status": "ok" if DEFAULT_CONFIG_PATH.exists() else "defaults",
            "path": str(DEFAULT_CONFIG_PATH),
        },
        "providers": _check_providers(),
        "uploads": {
            "status": "ok" if upload_dir.is_dir() else "missing",
            "path": str(upload_dir),
        },
    }
    healthy = all(c["status"] == "ok" for c in checks.values())
    return {"overall": "healthy" if healthy else "degraded", "checks": checks}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="RFP analyzer health check")
    parser.add_argument("--json", action="store_true", help="Emit JSON")
    args = parser.parse_args(argv)

    result = check_health()
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"RFP analyzer: {result['overall']}")
        for name, check in result["checks"].items():
            detail = check.get("path") or ", ".join(check.get("with_credentials", []))
            print(f"  [{check['status']:>8}] {name} {detail}")
    return 0 if result["overall"] == "healthy" else 1


if __name__ == "__main__":
    sys.exit(main())
