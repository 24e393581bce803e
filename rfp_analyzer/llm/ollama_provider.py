#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Ollama provider (local models, no API key).

Talks to the native ``/api/generate`` endpoint. Unlike the hosted
providers this one is gated on the availability prober: if the last probe
did not succeed the call fails fast without touching the network.

Input limit: document portion clamped to 3000 characters so small local
models stay inside their context window.
"""

import logging
from typing import Optional

import httpx

from rfp_analyzer.llm.provider import (
    AdapterError, InvocationResult, LLMProvider, ProviderDescriptor, Usage,
)

logger = logging.getLogger("rfp_analyzer.llm.ollama")


class OllamaProvider(LLMProvider):
    """Local Ollama generate API."""

    def __init__(self, descriptor: ProviderDescriptor, config: Optional[dict] = None,
                 registry=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(descriptor, config)
        config = config or {}
        self._base_url = (config.get("base_url") or "http://localhost:11434").rstrip("/")
        self._registry = registry
        self._transport = transport

    @classmethod
    def from_registry(cls, registry, key: str, config: Optional[dict] = None) -> "OllamaProvider":
        # availability is read from the registry the prober updates
        return cls(registry.get(key), config, registry=registry)

    def _is_available(self) -> bool:
        if self._registry is None:
            return False
        return self._registry.get(self.provider_name).available

    async def _call(self, prompt: str, model_id: str) -> InvocationResult:
        if not self._is_available():
            raise AdapterError(
                self.provider_name,
                "Ollama not available. Please install and run Ollama locally.",
            )

        body = {
            "model": model_id,
            "prompt": f"{self.system_prompt}\n\n{prompt}" if self.system_prompt else prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout),
                                     transport=self._transport) as client:
            resp = await client.post(f"{self._base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()

        if isinstance(data, dict) and data.get("error"):
            raise AdapterError(self.provider_name, data["error"])
        if not isinstance(data, dict) or "response" not in data:
            raise AdapterError(self.provider_name, "malformed response body")

        return InvocationResult(
            text=data.get("response") or "",
            provider=self.provider_name,
            model_id=model_id,
            usage=Usage(
                input_tokens=int(data.get("prompt_eval_count") or 0),
                output_tokens=int(data.get("eval_count") or 0),
            ),
        )
