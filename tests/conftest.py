#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Shared test fixtures for the RFP analyzer test suite."""

import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add project root to path
BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR))

from rfp_analyzer.llm.provider import InvocationResult, LLMProvider, Usage  # noqa: E402
from rfp_analyzer.llm.registry import DEFAULT_PROVIDERS, ProviderRegistry  # noqa: E402
from rfp_analyzer.llm.router import LLMRouter, set_router  # noqa: E402


def _patch_db_path(db_path):
    """Patch DB_PATH in all modules that cache it at import time."""
    p = Path(db_path)
    modules_to_patch = [
        "rfp_analyzer.db.init_db",
        "rfp_analyzer.storage.file_manager",
    ]
    for mod_name in modules_to_patch:
        if mod_name in sys.modules:
            mod = sys.modules[mod_name]
            if hasattr(mod, "DB_PATH"):
                mod.DB_PATH = p


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary RFP analyzer database with full schema."""
    db_path = tmp_path / "test_rfp_analyzer.db"

    from rfp_analyzer.db import init_db as init_db_module
    from rfp_analyzer.storage import file_manager as file_manager_module  # noqa: F401
    original = init_db_module.DB_PATH
    init_db_module.init_db(str(db_path))

    os.environ["RFP_ANALYZER_DB_PATH"] = str(db_path)
    _patch_db_path(db_path)
    yield db_path
    if "RFP_ANALYZER_DB_PATH" in os.environ:
        del os.environ["RFP_ANALYZER_DB_PATH"]
    _patch_db_path(original)


@pytest.fixture
def db_conn(tmp_db):
    """Get a connection to the test database."""
    conn = sqlite3.connect(str(tmp_db))
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


# ── LLM layer doubles ──────────────────────────────────────────────────────────

def build_registry(*with_credentials, providers=None):
    """Registry over the default provider table with keys set for the named providers."""
    providers = providers if providers is not None else DEFAULT_PROVIDERS
    environ = {
        providers[k]["api_key_env"]: f"test-{k}"
        for k in with_credentials
        if providers[k].get("api_key_env")
    }
    return ProviderRegistry(providers, environ=environ)


class FakeAdapter(LLMProvider):
    """Adapter double that records every backend call.

    ``error`` is raised from the backend call when set; the base class turns
    it into an AdapterError exactly as for a real backend.
    """

    def __init__(self, descriptor, config=None, text="ok", error=None, usage=None):
        super().__init__(descriptor, config)
        self.text = text
        self.error = error
        self.usage = usage
        self.calls = []

    async def _call(self, prompt, model_id):
        self.calls.append((prompt, model_id))
        if self.error is not None:
            raise self.error
        return InvocationResult(
            text=self.text,
            provider=self.provider_name,
            model_id=model_id,
            usage=self.usage or Usage(),
        )


class FakeProber:
    """Prober double: flips the local provider without any network I/O."""

    def __init__(self, registry, reachable=False, local_key="ollama"):
        self.registry = registry
        self.reachable = reachable
        self.local_key = local_key
        self.probe_count = 0

    def enabled(self):
        return self.local_key in self.registry

    async def probe_local(self, timeout_ms=None):
        if not self.enabled():
            return False
        self.probe_count += 1
        self.registry.set_available(self.local_key, self.reachable)
        return self.reachable


def build_router(registry, behaviors=None, reachable=False, priority=None):
    """Router over ``registry`` with a FakeAdapter for every provider.

    ``behaviors`` maps provider key to FakeAdapter kwargs (text/error/usage).
    Returns (router, adapters, prober).
    """
    behaviors = behaviors or {}
    adapters = {
        d.key: FakeAdapter(d, registry.config_for(d.key), **behaviors.get(d.key, {}))
        for d in registry.list_all()
    }
    prober = FakeProber(registry, reachable=reachable)
    settings = {}
    if priority is not None:
        settings["priority"] = priority
    router = LLMRouter(config={"providers": {}, "settings": settings},
                       registry=registry, adapters=adapters, prober=prober)
    return router, adapters, prober


class ScriptedRouter:
    """Stands in for the process router in consumer and API tests."""

    def __init__(self, texts=("ok",), error=None, provider="anthropic",
                 model="claude-3-5-sonnet-20241022"):
        self.texts = list(texts)
        self.error = error
        self.provider = provider
        self.model = model
        self.requests = []

    async def invoke(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        text = self.texts.pop(0) if len(self.texts) > 1 else self.texts[0]
        return InvocationResult(
            text=text,
            provider=self.provider,
            model_id=self.model,
            usage=Usage(input_tokens=120, output_tokens=40),
            duration_ms=5,
            attempted_providers=[self.provider],
        )


@pytest.fixture
def install_router():
    """Install a router as the process-wide router for one test."""
    def _install(router):
        set_router(router)
        return router
    yield _install
    set_router(None)


@pytest.fixture
def sample_rfp_text():
    return (
        "REQUEST FOR PROPOSAL: Master Control Playout Upgrade\n"
        "The station requires replacement of its master control playout system.\n"
        "Budget: $2.5M over three years.\n"
        "Proposals are due within 30 days of issue. Delivery deadline is Q3.\n"
        "Systems must comply with SMPTE ST 2110 and EBU R128 loudness.\n"
        "The solution must support 24/7 operation with full redundancy.\n"
    )
