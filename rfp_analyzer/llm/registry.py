#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Provider registry for the RFP analyzer.

Reads args/llm_config.yaml and builds one ProviderDescriptor per configured
backend. Hosted backends are available when their API key environment
variable is set; backends marked ``requires_probe`` (the local Ollama
service) start unavailable and are only flipped by the prober.

No network I/O happens here.
"""

import logging
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from rfp_analyzer.llm.provider import CostTier, ProviderDescriptor, ProviderNotFound

logger = logging.getLogger("rfp_analyzer.llm.registry")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = Path(os.environ.get(
    "RFP_ANALYZER_LLM_CONFIG", str(BASE_DIR / "args" / "llm_config.yaml")
))

SYSTEM_PROMPT = (
    "You are an expert RFP analyst specializing in broadcast and media "
    "industry projects. Always respond with valid JSON when asked for JSON."
)

DEFAULT_PRIORITY = ["anthropic", "xai", "ollama", "groq", "huggingface", "openai"]

DEFAULT_PROVIDERS: Dict[str, dict] = {
    "anthropic": {
        "name": "Anthropic Claude",
        "type": "anthropic",
        "api_key_env": "ANTHROPIC_API_KEY",
        "models": ["claude-3-5-sonnet-20241022", "claude-3-haiku-20240307",
                   "claude-3-opus-20240229"],
        "cost": "paid_premium",
        "max_document_chars": 400000,
        "max_tokens": 4000,
    },
    "xai": {
        "name": "xAI Grok",
        "type": "openai_compatible",
        "api_key_env": "XAI_API_KEY",
        "base_url": "https://api.x.ai/v1",
        "models": ["grok-beta", "grok-vision-beta"],
        "cost": "paid",
        "max_document_chars": 100000,
        "max_tokens": 2000,
    },
    "openai": {
        "name": "OpenAI",
        "type": "openai_compatible",
        "api_key_env": "OPENAI_API_KEY",
        "base_url": "https://api.openai.com/v1",
        "models": ["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo"],
        "cost": "paid",
        "max_document_chars": 40000,
        "max_tokens": 2000,
    },
    "groq": {
        "name": "Groq",
        "type": "openai_compatible",
        "api_key_env": "GROQ_API_KEY",
        "base_url": "https://api.groq.com/openai/v1",
        "models": ["llama3-8b-8192", "llama3-70b-8192", "mixtral-8x7b-32768",
                   "gemma-7b-it"],
        "cost": "free_tier",
        "max_document_chars": 20000,
        "max_tokens": 2000,
    },
    "ollama": {
        "name": "Ollama (Local)",
        "type": "ollama",
        "base_url": "${OLLAMA_BASE_URL:-http://localhost:11434}",
        "models": ["llama3", "mistral", "codellama", "phi3"],
        "cost": "free_local",
        "requires_probe": True,
        "max_document_chars": 3000,
        "max_tokens": 2000,
    },
    "huggingface": {
        "name": "Hugging Face",
        "type": "huggingface",
        "api_key_env": "HUGGINGFACE_API_KEY",
        "base_url": "https://api-inference.huggingface.co/models",
        "models": ["microsoft/DialoGPT-large", "facebook/blenderbot-400M-distill"],
        "cost": "free_tier",
        "max_document_chars": 1000,
        "max_tokens": 500,
    },
}


def _expand_env(value):
    """Expand ${VAR:-default} patterns in string values."""
    if not isinstance(value, str):
        return value
    pattern = r'\$\{([^}]+)\}'
    def replacer(match):
        expr = match.group(1)
        if ":-" in expr:
            var, default = expr.split(":-", 1)
            return os.environ.get(var) or default
        return os.environ.get(expr, "")
    return re.sub(pattern, replacer, value)


def load_config(config_path=None) -> dict:
    """Load llm_config.yaml, falling back to the built-in provider table."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.warning("LLM config not found at %s - using built-in defaults", path)
        return {"providers": DEFAULT_PROVIDERS, "settings": {"priority": DEFAULT_PRIORITY}}
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load LLM config %s: %s - using built-in defaults", path, exc)
        return {"providers": DEFAULT_PROVIDERS, "settings": {"priority": DEFAULT_PRIORITY}}
    config.setdefault("providers", DEFAULT_PROVIDERS)
    config.setdefault("settings", {})
    return config


class ProviderRegistry:
    """Known backends and their static capabilities.

    ``providers`` maps provider key to its config dict (the ``providers:``
    section of llm_config.yaml). ``environ`` defaults to os.environ and is
    consulted once, at construction.
    """

    def __init__(self, providers: Optional[Dict[str, dict]] = None, environ=None):
        environ = os.environ if environ is None else environ
        self._configs: Dict[str, dict] = {}
        self._descriptors: Dict[str, ProviderDescriptor] = {}
        for key, raw in (providers if providers is not None else DEFAULT_PROVIDERS).items():
            cfg = {k: _expand_env(v) for k, v in (raw or {}).items()}
            if cfg.get("enabled", True) is False:
                continue
            api_key_env = cfg.get("api_key_env", "")
            cfg["api_key"] = cfg.get("api_key") or (environ.get(api_key_env, "") if api_key_env else "")
            requires_probe = bool(cfg.get("requires_probe", False))
            self._configs[key] = cfg
            self._descriptors[key] = ProviderDescriptor(
                key=key,
                name=cfg.get("name", key),
                models=tuple(cfg.get("models", [])),
                cost=CostTier(cfg.get("cost", "paid")),
                available=False if requires_probe else bool(cfg["api_key"]),
                requires_probe=requires_probe,
            )

    @classmethod
    def from_config(cls, config: dict, environ=None) -> "ProviderRegistry":
        return cls(config.get("providers", {}), environ=environ)

    def list_all(self) -> List[ProviderDescriptor]:
        return list(self._descriptors.values())

    def list_available(self) -> List[ProviderDescriptor]:
        return [d for d in self._descriptors.values() if d.available]

    def get(self, key: str) -> ProviderDescriptor:
        try:
            return self._descriptors[key]
        except KeyError:
            raise ProviderNotFound(key) from None

    def __contains__(self, key) -> bool:
        return key in self._descriptors

    def config_for(self, key: str) -> dict:
        if key not in self._configs:
            raise ProviderNotFound(key)
        return dict(self._configs[key])

    def probed_keys(self) -> List[str]:
        return [d.key for d in self._descriptors.values() if d.requires_probe]

    def set_available(self, key: str, available: bool) -> None:
        """Swap in a refreshed descriptor for a probed backend."""
        current = self.get(key)
        if not current.requires_probe:
            raise ValueError(f"Provider '{key}' availability is static")
        if current.available != available:
            logger.info("Provider %s availability: %s", key, available)
        self._descriptors[key] = replace(current, available=available)
