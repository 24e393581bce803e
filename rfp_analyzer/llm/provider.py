#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Vendor-agnostic LLM provider base classes and data types.

Defines the canonical request/result shapes shared by every adapter,
the static provider descriptor, and the error taxonomy surfaced to callers.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


DOCUMENT_SEPARATOR = "\n\nDocument content:\n"


class CostTier(str, Enum):
    """Cost classification of a backend."""
    PAID = "paid"
    PAID_PREMIUM = "paid_premium"
    FREE_TIER = "free_tier"
    FREE_LOCAL = "free_local"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static metadata about one backend.

    Descriptors are replaced wholesale (never mutated) when the prober
    refreshes the local backend's availability.
    """
    key: str
    name: str
    models: Tuple[str, ...]
    cost: CostTier
    available: bool = False
    requires_probe: bool = False

    @property
    def default_model(self) -> str:
        return self.models[0] if self.models else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "models": list(self.models),
            "cost": self.cost.value,
            "available": self.available,
            "requiresProbe": self.requires_probe,
        }


@dataclass
class InvocationRequest:
    """Canonical invocation request."""
    document_text: str = ""
    instruction_text: str = ""
    preferred_provider: Optional[str] = None
    preferred_model: Optional[str] = None
    function: str = "analysis"


@dataclass
class Usage:
    """Token accounting; zeroed when the backend reports nothing."""
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"tokensIn": self.input_tokens, "tokensOut": self.output_tokens}


@dataclass
class InvocationResult:
    """Canonical invocation result. ``provider`` and ``model_id`` are the
    backend that actually served the request."""
    text: str = ""
    provider: str = ""
    model_id: str = ""
    usage: Usage = field(default_factory=Usage)
    duration_ms: int = 0
    attempted_providers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "providerKey": self.provider,
            "modelId": self.model_id,
            "usage": self.usage.to_dict(),
        }


# ── errors ─────────────────────────────────────────────────────────────────────

class LLMError(RuntimeError):
    """Base class for errors surfaced by the LLM layer."""

    kind = "LLMError"

    def __init__(self, message: str, attempted_providers: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.attempted_providers = list(attempted_providers or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errorKind": self.kind,
            "message": self.message,
            "attemptedProviders": list(self.attempted_providers),
        }


class ProviderNotFound(LLMError):
    """Raised when a provider key is not registered."""

    kind = "ProviderNotFound"

    def __init__(self, key: str):
        super().__init__(f"Unknown provider: {key}")
        self.key = key


class NoProviderAvailable(LLMError):
    """No backend has credentials or is reachable. Fatal, never retried."""

    kind = "NoProviderAvailable"

    def __init__(self, message: str = ""):
        super().__init__(
            message or "No AI providers available. Configure at least one API key "
                       "(ANTHROPIC_API_KEY, XAI_API_KEY, OPENAI_API_KEY, GROQ_API_KEY, "
                       "HUGGINGFACE_API_KEY) or start Ollama locally."
        )


class AdapterError(LLMError):
    """A single backend call failed."""

    kind = "AdapterError"

    def __init__(self, provider_key: str, cause: Any):
        self.provider_key = provider_key
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"{provider_key} invocation failed: {detail}", [provider_key])


class AllProvidersFailed(LLMError):
    """Primary and fallback both failed. ``cause`` is the primary failure."""

    kind = "AllProvidersFailed"

    def __init__(self, cause: AdapterError, attempted_providers: List[str]):
        self.cause = cause
        super().__init__(
            f"All providers failed ({', '.join(attempted_providers)}). "
            f"Primary error: {cause.message}",
            attempted_providers,
        )


# ── adapter base ───────────────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract base class for provider adapters.

    Subclasses implement ``_call`` against their backend; ``invoke`` handles
    model defaulting and document truncation so the instruction text always
    reaches the backend intact.
    """

    def __init__(self, descriptor: ProviderDescriptor, config: Optional[dict] = None):
        config = config or {}
        self._key = descriptor.key
        self._models = tuple(descriptor.models)
        self.max_document_chars = int(config.get("max_document_chars", 0) or 0)
        self.max_tokens = int(config.get("max_tokens", 2000))
        self.temperature = float(config.get("temperature", 0.3))
        self.system_prompt = config.get("system_prompt", "")
        self.timeout = float(config.get("timeout", 30.0))

    @classmethod
    def from_registry(cls, registry, key: str, config: Optional[dict] = None) -> "LLMProvider":
        """Build the adapter for a registered provider key."""
        return cls(registry.get(key), config)

    @property
    def provider_name(self) -> str:
        return self._key

    def default_model(self) -> str:
        return self._models[0] if self._models else ""

    def truncate_document(self, document_text: str) -> str:
        if self.max_document_chars and len(document_text) > self.max_document_chars:
            return document_text[:self.max_document_chars]
        return document_text

    def build_prompt(self, document_text: str, instruction_text: str) -> str:
        document = self.truncate_document(document_text or "")
        if not document:
            return instruction_text
        return f"{instruction_text}{DOCUMENT_SEPARATOR}{document}"

    async def invoke(self, document_text: str, instruction_text: str,
                     model_id: Optional[str] = None) -> InvocationResult:
        """Invoke the backend. Raises AdapterError on any failure."""
        model = model_id or self.default_model()
        prompt = self.build_prompt(document_text, instruction_text)
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(self._call(prompt, model), timeout=self.timeout)
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(self._key, exc) from exc
        result.duration_ms = int((time.monotonic() - start) * 1000)
        return result

    @abstractmethod
    async def _call(self, prompt: str, model_id: str) -> InvocationResult:
        """Send the composed prompt to the backend."""

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
