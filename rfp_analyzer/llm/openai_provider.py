#!/usr/bin/env python3
# CUI // SP-PROPIN
"""OpenAI-compatible LLM provider.

Supports any OpenAI-compatible chat completions API. Configured three ways
out of the box: OpenAI itself, xAI Grok (https://api.x.ai/v1) and Groq
(https://api.groq.com/openai/v1).

Input limit: the document portion is clamped to ``max_document_chars``
(40k for OpenAI, 100k for xAI, 20k for Groq's 8k-token llama3 window).
"""

import logging
from typing import Optional

from openai import AsyncOpenAI

from rfp_analyzer.llm.provider import (
    AdapterError, InvocationResult, LLMProvider, ProviderDescriptor, Usage,
)

logger = logging.getLogger("rfp_analyzer.llm.openai")


class OpenAICompatibleProvider(LLMProvider):
    """Provider for OpenAI-compatible REST APIs (OpenAI, xAI, Groq)."""

    def __init__(self, descriptor: ProviderDescriptor, config: Optional[dict] = None,
                 client=None):
        super().__init__(descriptor, config)
        config = config or {}
        self._api_key = config.get("api_key", "")
        self._base_url = (config.get("base_url") or "https://api.openai.com/v1").rstrip("/")
        # Without an injected client each call opens its own, so the adapter is
        # never bound to a previous request's event loop.
        self._client = client

    async def _call(self, prompt: str, model_id: str) -> InvocationResult:
        if self._client is not None:
            return await self._complete(self._client, prompt, model_id)
        if not self._api_key:
            raise AdapterError(self.provider_name, f"{self.provider_name} not configured")
        async with AsyncOpenAI(api_key=self._api_key, base_url=self._base_url,
                               timeout=self.timeout, max_retries=0) as client:
            return await self._complete(client, prompt, model_id)

    async def _complete(self, client, prompt: str, model_id: str) -> InvocationResult:
        messages = [{"role": "user", "content": prompt}]
        if self.system_prompt:
            messages = [{"role": "system", "content": self.system_prompt}] + messages

        resp = await client.chat.completions.create(
            model=model_id,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not resp.choices:
            raise AdapterError(self.provider_name, "response contained no choices")
        choice = resp.choices[0]
        if choice.finish_reason == "content_filter":
            raise AdapterError(self.provider_name, "response blocked by content policy")

        usage = getattr(resp, "usage", None)
        return InvocationResult(
            text=choice.message.content or "",
            provider=self.provider_name,
            model_id=model_id,
            usage=Usage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )
