#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Config-driven LLM router for the RFP analyzer.

Reads args/llm_config.yaml, builds the provider registry, and drives each
invocation through a two-step state machine:

    SELECT -> INVOKE -> SUCCESS
                     -> INVOKE_FAILED -> SELECT_FALLBACK -> INVOKE_FALLBACK
                                                          -> SUCCESS | FINAL_FAILURE

At most two providers are attempted per call, sequentially. When both fail
the caller sees the primary provider's error as the root cause.
"""

import logging
from typing import Dict, List, Optional, Type

from rfp_analyzer.llm.anthropic_provider import AnthropicLLMProvider
from rfp_analyzer.llm.huggingface_provider import HuggingFaceProvider
from rfp_analyzer.llm.ollama_provider import OllamaProvider
from rfp_analyzer.llm.openai_provider import OpenAICompatibleProvider
from rfp_analyzer.llm.prober import DEFAULT_PROBE_TIMEOUT_MS, AvailabilityProber
from rfp_analyzer.llm.provider import (
    AdapterError, AllProvidersFailed, InvocationRequest, InvocationResult, LLMProvider,
)
from rfp_analyzer.llm.registry import (
    DEFAULT_PRIORITY, SYSTEM_PROMPT, ProviderRegistry, load_config,
)
from rfp_analyzer.llm.selector import ProviderSelector

logger = logging.getLogger("rfp_analyzer.llm.router")

DEFAULT_TIMEOUT_SECONDS = 30.0

# Adding a backend kind means adding one entry here.
ADAPTER_TYPES: Dict[str, Type[LLMProvider]] = {
    "anthropic": AnthropicLLMProvider,
    "openai": OpenAICompatibleProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "ollama": OllamaProvider,
    "huggingface": HuggingFaceProvider,
}


class LLMRouter:
    """Routes invocations to providers with a single-hop fallback."""

    def __init__(self, config_path=None, config: Optional[dict] = None,
                 registry: Optional[ProviderRegistry] = None,
                 adapters: Optional[Dict[str, LLMProvider]] = None,
                 prober: Optional[AvailabilityProber] = None,
                 environ=None):
        self._config = config if config is not None else load_config(config_path)
        settings = self._config.get("settings", {}) or {}
        self._timeout = float(settings.get("request_timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
        self._system_prompt = settings.get("system_prompt", SYSTEM_PROMPT)
        self._probe_before_invoke = bool(settings.get("probe_before_invoke", True))
        self.registry = (registry if registry is not None
                         else ProviderRegistry.from_config(self._config, environ=environ))
        self.selector = ProviderSelector(self.registry, settings.get("priority", DEFAULT_PRIORITY))
        self.prober = prober if prober is not None else AvailabilityProber(
            self.registry,
            local_key=settings.get("local_provider", "ollama"),
            timeout_ms=int(settings.get("probe_timeout_ms", DEFAULT_PROBE_TIMEOUT_MS)),
        )
        self._providers: Dict[str, LLMProvider] = dict(adapters or {})

    def _get_provider(self, provider_name: str) -> LLMProvider:
        """Get or create the adapter for a provider key."""
        if provider_name in self._providers:
            return self._providers[provider_name]

        cfg = self.registry.config_for(provider_name)
        cfg.setdefault("timeout", self._timeout)
        cfg.setdefault("system_prompt", self._system_prompt)
        ptype = cfg.get("type", provider_name)
        adapter_cls = ADAPTER_TYPES.get(ptype)
        if adapter_cls is None:
            raise AdapterError(provider_name, f"unsupported provider type '{ptype}'")

        instance = adapter_cls.from_registry(self.registry, provider_name, cfg)
        self._providers[provider_name] = instance
        return instance

    async def initialize(self) -> dict:
        """Probe the local backend and report what is usable."""
        await self.prober.probe_local()
        return self.status()

    def status(self) -> dict:
        available = self.registry.list_available()
        return {
            "available": [d.to_dict() for d in available],
            "providers": [d.to_dict() for d in self.registry.list_all()],
            "recommended": self.selector.best(),
            "priority": self.selector.ordered_keys(),
            "total": len(available),
        }

    def _resolve_model(self, provider_key: str, request: InvocationRequest) -> Optional[str]:
        model = request.preferred_model
        if not model:
            return None
        if provider_key == request.preferred_provider:
            return model
        if model in self.registry.get(provider_key).models:
            return model
        return None

    async def _attempt(self, provider_key: str, request: InvocationRequest) -> InvocationResult:
        try:
            adapter = self._get_provider(provider_key)
            return await adapter.invoke(
                request.document_text,
                request.instruction_text,
                self._resolve_model(provider_key, request),
            )
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(provider_key, exc) from exc

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        """Resolve a provider and invoke it, falling back once on failure.

        Raises NoProviderAvailable, AdapterError (primary failed, no fallback
        candidate) or AllProvidersFailed (primary and fallback failed).
        """
        if self._probe_before_invoke and self.prober.enabled():
            await self.prober.probe_local()

        primary = self.selector.choose(request.preferred_provider)
        logger.info("Using AI provider %s for %s", primary, request.function)
        try:
            result = await self._attempt(primary, request)
            result.attempted_providers = [primary]
            return result
        except AdapterError as exc:
            primary_error = exc
            logger.warning("Provider %s failed for %s: %s", primary, request.function,
                           primary_error.message)

        candidates = self.selector.available_in_order(exclude=[primary])
        if not candidates:
            primary_error.attempted_providers = [primary]
            logger.error("No fallback provider for %s", request.function)
            raise primary_error

        fallback = candidates[0]
        attempted: List[str] = [primary, fallback]
        logger.info("Trying fallback provider %s for %s", fallback, request.function)
        try:
            result = await self._attempt(fallback, request)
        except AdapterError as fallback_error:
            logger.error("Fallback provider %s failed for %s: %s", fallback,
                         request.function, fallback_error.message)
            raise AllProvidersFailed(primary_error, attempted) from primary_error
        result.attempted_providers = attempted
        return result

    async def aclose(self) -> None:
        for adapter in self._providers.values():
            await adapter.aclose()


_router: Optional[LLMRouter] = None


def get_router() -> LLMRouter:
    """Process-wide router built from the default config."""
    global _router
    if _router is None:
        _router = LLMRouter()
    return _router


def set_router(router: Optional[LLMRouter]) -> None:
    global _router
    _router = router
