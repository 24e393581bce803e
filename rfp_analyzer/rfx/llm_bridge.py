#!/usr/bin/env python3
# CUI // SP-PROPIN
"""LLM bridge: wraps the LLM router for the RFX analysis functions.

Every consumer call goes through ``invoke()``, which builds the canonical
request, runs it through the router (preference, priority, single fallback)
and writes an ai_telemetry row. Prompt and response text are SHA-256
hashed, never stored raw.
"""

import hashlib
import logging
from typing import Optional

from rfp_analyzer.llm.provider import InvocationRequest, InvocationResult
from rfp_analyzer.llm.router import get_router
from rfp_analyzer.storage import file_manager

logger = logging.getLogger("rfp_analyzer.rfx.llm_bridge")


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()


def _log_telemetry(function: str, prompt: str, result: InvocationResult,
                   content_id: Optional[str] = None) -> None:
    try:
        file_manager.record_telemetry(
            function=function,
            provider=result.provider,
            model_id=result.model_id,
            prompt_hash=_sha256(prompt),
            response_hash=_sha256(result.text),
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            latency_ms=result.duration_ms,
            attempted_providers=result.attempted_providers,
            content_id=content_id,
        )
    except Exception as exc:
        logger.warning("Telemetry write failed for %s: %s", function, exc)


async def invoke(document_text: str, instruction_text: str,
                 function: str = "analysis",
                 provider: Optional[str] = None,
                 model: Optional[str] = None,
                 content_id: Optional[str] = None) -> InvocationResult:
    """Run one invocation through the router. LLM errors propagate."""
    request = InvocationRequest(
        document_text=document_text or "",
        instruction_text=instruction_text,
        preferred_provider=provider or None,
        preferred_model=model or None,
        function=function,
    )
    result = await get_router().invoke(request)
    logger.info("%s completed using %s (%s)", function, result.provider, result.model_id)
    _log_telemetry(function, instruction_text + (document_text or ""), result, content_id)
    return result


def available_providers() -> list:
    return [d.to_dict() for d in get_router().registry.list_available()]
