# CUI // SP-PROPIN
"""Multi-provider LLM layer.

Modules:
    provider            - canonical request/result types, errors, adapter base
    registry            - provider descriptors from llm_config.yaml + env
    prober              - local Ollama availability probe
    openai_provider     - OpenAI / xAI / Groq (OpenAI-compatible) adapter
    anthropic_provider  - Anthropic Claude adapter
    ollama_provider     - local Ollama adapter
    huggingface_provider - Hugging Face Inference API adapter
    selector            - preference + priority provider choice
    router              - invocation orchestrator with single-hop fallback
"""
