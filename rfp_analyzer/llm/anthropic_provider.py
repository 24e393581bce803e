#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Anthropic Claude provider.

Input limit: document portion clamped to ``max_document_chars`` (400k
characters by default, comfortably inside Claude's 200k-token window).
"""

import logging
from typing import Optional

from anthropic import AsyncAnthropic

from rfp_analyzer.llm.provider import (
    AdapterError, InvocationResult, LLMProvider, ProviderDescriptor, Usage,
)

logger = logging.getLogger("rfp_analyzer.llm.anthropic")


class AnthropicLLMProvider(LLMProvider):
    """Anthropic Messages API provider."""

    def __init__(self, descriptor: ProviderDescriptor, config: Optional[dict] = None,
                 client=None):
        super().__init__(descriptor, config)
        config = config or {}
        self._api_key = config.get("api_key", "")
        self._client = client

    async def _call(self, prompt: str, model_id: str) -> InvocationResult:
        if self._client is not None:
            return await self._complete(self._client, prompt, model_id)
        if not self._api_key:
            raise AdapterError(self.provider_name, "Anthropic not configured")
        async with AsyncAnthropic(api_key=self._api_key, timeout=self.timeout,
                                  max_retries=0) as client:
            return await self._complete(client, prompt, model_id)

    async def _complete(self, client, prompt: str, model_id: str) -> InvocationResult:
        kwargs = {
            "model": model_id,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.system_prompt:
            kwargs["system"] = self.system_prompt

        message = await client.messages.create(**kwargs)

        content_text = ""
        for block in message.content or []:
            if getattr(block, "type", "") == "text":
                content_text += block.text
        if not content_text and getattr(message, "stop_reason", "") == "refusal":
            raise AdapterError(self.provider_name, "request refused by content policy")

        usage = getattr(message, "usage", None)
        return InvocationResult(
            text=content_text,
            provider=self.provider_name,
            model_id=model_id,
            usage=Usage(
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
        )
