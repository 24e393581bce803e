#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Availability prober for the locally-hosted Ollama backend.

Hosted backends are gated on credentials; the local service may start or
stop at any time, so its availability is re-derived with a lightweight
``GET /api/version`` round-trip before any invocation that might use it.
"""

import logging
from typing import Optional

import httpx

from rfp_analyzer.llm.registry import ProviderRegistry

logger = logging.getLogger("rfp_analyzer.llm.prober")

DEFAULT_LOCAL_URL = "http://localhost:11434"
DEFAULT_PROBE_TIMEOUT_MS = 2000


class AvailabilityProber:
    """Refreshes the registry's ``available`` flag for probed backends."""

    def __init__(self, registry: ProviderRegistry, local_key: str = "ollama",
                 timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._registry = registry
        self._local_key = local_key
        self._timeout_ms = timeout_ms
        self._transport = transport
        self.probe_count = 0

    @property
    def local_key(self) -> str:
        return self._local_key

    def enabled(self) -> bool:
        """True when the local key names a registered backend gated on probes."""
        if self._local_key not in self._registry:
            return False
        return self._registry.get(self._local_key).requires_probe

    def _base_url(self) -> str:
        cfg = self._registry.config_for(self._local_key)
        return (cfg.get("base_url") or DEFAULT_LOCAL_URL).rstrip("/")

    async def probe_local(self, timeout_ms: Optional[int] = None) -> bool:
        """Return True when the local service answers. Never raises."""
        if not self.enabled():
            return False
        timeout = (timeout_ms or self._timeout_ms) / 1000.0
        self.probe_count += 1
        available = False
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout),
                                         transport=self._transport) as client:
                resp = await client.get(f"{self._base_url()}/api/version")
                resp.raise_for_status()
                available = bool(resp.json())
        except Exception as exc:
            logger.debug("Local provider probe failed: %s", exc)
            available = False
        self._registry.set_available(self._local_key, available)
        return available
