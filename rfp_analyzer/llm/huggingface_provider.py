#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Hugging Face Inference API provider.

The hosted inference endpoint accepts very short inputs, so the document
portion is clamped to 1000 characters. The API reports no token usage;
results always carry a zeroed Usage.
"""

import logging
from typing import Optional

import httpx

from rfp_analyzer.llm.provider import (
    AdapterError, InvocationResult, LLMProvider, ProviderDescriptor, Usage,
)

logger = logging.getLogger("rfp_analyzer.llm.huggingface")


class HuggingFaceProvider(LLMProvider):
    """Text-generation models served by api-inference.huggingface.co."""

    def __init__(self, descriptor: ProviderDescriptor, config: Optional[dict] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(descriptor, config)
        config = config or {}
        self._api_key = config.get("api_key", "")
        self._base_url = (config.get("base_url")
                          or "https://api-inference.huggingface.co/models").rstrip("/")
        self._transport = transport

    async def _call(self, prompt: str, model_id: str) -> InvocationResult:
        if not self._api_key:
            raise AdapterError(self.provider_name, "Hugging Face API key not configured")

        body = {
            "inputs": prompt,
            "parameters": {
                "max_length": self.max_tokens,
                "temperature": self.temperature,
            },
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout),
                                     transport=self._transport) as client:
            resp = await client.post(f"{self._base_url}/{model_id}", json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()

        if isinstance(data, dict) and data.get("error"):
            raise AdapterError(self.provider_name, data["error"])
        if not isinstance(data, list):
            raise AdapterError(self.provider_name, "malformed response body")

        first = data[0] if data else None
        text = first.get("generated_text") if isinstance(first, dict) else None
        if not isinstance(text, str):
            raise AdapterError(self.provider_name, "malformed response body")

        return InvocationResult(
            text=text,
            provider=self.provider_name,
            model_id=model_id,
            usage=Usage(),
        )
