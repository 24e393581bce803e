#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Provider adapter and prober tests.

HTTP backends (Ollama, Hugging Face, the prober) run against
httpx.MockTransport; SDK backends (OpenAI-compatible, Anthropic) get a
stub client whose create() is an AsyncMock.

Usage:
    pytest tests/test_adapters.py -v --tb=short
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import build_registry
from rfp_analyzer.llm.anthropic_provider import AnthropicLLMProvider
from rfp_analyzer.llm.huggingface_provider import HuggingFaceProvider
from rfp_analyzer.llm.ollama_provider import OllamaProvider
from rfp_analyzer.llm.openai_provider import OpenAICompatibleProvider
from rfp_analyzer.llm.prober import AvailabilityProber
from rfp_analyzer.llm.provider import AdapterError


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status=200, payload=None, exc=None):
        self.status = status
        self.payload = payload
        self.exc = exc
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status, json=self.payload)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def _ollama(registry, handler, **config):
    cfg = registry.config_for("ollama")
    cfg.update(config)
    return OllamaProvider(registry.get("ollama"), cfg, registry=registry,
                          transport=httpx.MockTransport(handler))


def _huggingface(registry, handler):
    return HuggingFaceProvider(registry.get("huggingface"),
                               registry.config_for("huggingface"),
                               transport=httpx.MockTransport(handler))


# =========================================================================
# OLLAMA
# =========================================================================
class TestOllamaProvider:
    """Local backend: gated on the prober, native /api/generate."""

    @pytest.mark.asyncio
    async def test_fails_fast_without_probe(self):
        reg = build_registry()
        handler = Recorder(payload={"response": "never"})
        with pytest.raises(AdapterError) as exc_info:
            await _ollama(reg, handler).invoke("doc", "task")
        assert "Ollama not available" in exc_info.value.message
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_generate_request_and_usage(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        handler = Recorder(payload={"response": "local answer",
                                    "prompt_eval_count": 12, "eval_count": 5})
        result = await _ollama(reg, handler).invoke("doc", "task")

        assert result.text == "local answer"
        assert result.provider == "ollama"
        assert result.model_id == "llama3"
        assert (result.usage.input_tokens, result.usage.output_tokens) == (12, 5)
        assert str(handler.requests[0].url) == "http://localhost:11434/api/generate"
        body = handler.last_json
        assert body["model"] == "llama3"
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.3, "num_predict": 2000}

    @pytest.mark.asyncio
    async def test_missing_usage_is_zero(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        result = await _ollama(reg, Recorder(payload={"response": "x"})).invoke("d", "t")
        assert (result.usage.input_tokens, result.usage.output_tokens) == (0, 0)

    @pytest.mark.asyncio
    async def test_outbound_document_is_clamped(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        handler = Recorder(payload={"response": "ok"})
        instruction = "Summarize the requirements and list every deadline."
        await _ollama(reg, handler).invoke("Z" * 10000, instruction)
        prompt = handler.last_json["prompt"]
        assert instruction in prompt
        assert prompt.count("Z") == 3000

    @pytest.mark.asyncio
    async def test_backend_error_body(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        handler = Recorder(payload={"error": "model 'llama3' not found"})
        with pytest.raises(AdapterError) as exc_info:
            await _ollama(reg, handler).invoke("doc", "task")
        assert "not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        with pytest.raises(AdapterError) as exc_info:
            await _ollama(reg, Recorder(payload={"done": True})).invoke("doc", "task")
        assert "malformed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        with pytest.raises(AdapterError):
            await _ollama(reg, Recorder(status=500, payload={})).invoke("doc", "task")

    @pytest.mark.asyncio
    async def test_requested_model(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        handler = Recorder(payload={"response": "ok"})
        result = await _ollama(reg, handler).invoke("doc", "task", "mistral")
        assert handler.last_json["model"] == "mistral"
        assert result.model_id == "mistral"


# =========================================================================
# HUGGING FACE
# =========================================================================
class TestHuggingFaceProvider:
    """Inference API: tiny input window, no usage reporting."""

    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        handler = Recorder(payload=[])
        with pytest.raises(AdapterError) as exc_info:
            await _huggingface(build_registry(), handler).invoke("doc", "task")
        assert "not configured" in exc_info.value.message
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_generated_text_and_zero_usage(self):
        handler = Recorder(payload=[{"generated_text": "hf answer"}])
        result = await _huggingface(build_registry("huggingface"), handler).invoke("doc", "task")
        assert result.text == "hf answer"
        assert result.model_id == "microsoft/DialoGPT-large"
        assert (result.usage.input_tokens, result.usage.output_tokens) == (0, 0)

        request = handler.requests[0]
        assert str(request.url) == ("https://api-inference.huggingface.co/models/"
                                    "microsoft/DialoGPT-large")
        assert request.headers["Authorization"] == "Bearer test-huggingface"
        assert handler.last_json["parameters"] == {"max_length": 500, "temperature": 0.3}

    @pytest.mark.asyncio
    async def test_input_clamped_to_1000_chars(self):
        handler = Recorder(payload=[{"generated_text": "ok"}])
        await _huggingface(build_registry("huggingface"), handler).invoke("Z" * 5000, "task")
        assert handler.last_json["inputs"].count("Z") == 1000

    @pytest.mark.asyncio
    async def test_error_body_is_rejection(self):
        handler = Recorder(payload={"error": "Model is currently loading"})
        with pytest.raises(AdapterError) as exc_info:
            await _huggingface(build_registry("huggingface"), handler).invoke("doc", "task")
        assert "currently loading" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        [],
        [{}],
        ["plain string"],
        [{"summary_text": "x"}],
        [{"generated_text": None}],
    ])
    async def test_malformed_body_is_adapter_error(self, payload):
        handler = Recorder(payload=payload)
        with pytest.raises(AdapterError) as exc_info:
            await _huggingface(build_registry("huggingface"), handler).invoke("doc", "task")
        assert "malformed response body" in exc_info.value.message
        assert exc_info.value.provider_key == "huggingface"

    @pytest.mark.asyncio
    async def test_empty_generated_text_is_a_reply(self):
        handler = Recorder(payload=[{"generated_text": ""}])
        result = await _huggingface(build_registry("huggingface"), handler).invoke("doc", "task")
        assert result.text == ""

    @pytest.mark.asyncio
    async def test_network_failure(self):
        handler = Recorder(exc=httpx.ConnectError("connection refused"))
        with pytest.raises(AdapterError) as exc_info:
            await _huggingface(build_registry("huggingface"), handler).invoke("doc", "task")
        assert exc_info.value.provider_key == "huggingface"


# =========================================================================
# OPENAI-COMPATIBLE
# =========================================================================
def _openai_client(content="answer", finish_reason="stop", usage=True, choices=True):
    resp = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content),
                                 finish_reason=finish_reason)] if choices else [],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=4) if usage else None,
    )
    create = AsyncMock(return_value=resp)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


def _openai(key, client=None, **config):
    reg = build_registry(key)
    cfg = reg.config_for(key)
    cfg.update(config)
    return OpenAICompatibleProvider(reg.get(key), cfg, client=client)


class TestOpenAICompatibleProvider:
    """OpenAI, xAI and Groq share one adapter."""

    @pytest.mark.asyncio
    async def test_chat_completion(self):
        client, create = _openai_client()
        adapter = _openai("openai", client, system_prompt="You are an RFP analyst.")
        result = await adapter.invoke("doc", "task")

        assert result.text == "answer"
        assert result.provider == "openai"
        assert result.model_id == "gpt-3.5-turbo"
        assert (result.usage.input_tokens, result.usage.output_tokens) == (10, 4)
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["max_tokens"] == 2000
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][0] == {"role": "system", "content": "You are an RFP analyst."}
        assert kwargs["messages"][1]["role"] == "user"

    @pytest.mark.asyncio
    async def test_groq_uses_its_own_models_and_limit(self):
        client, create = _openai_client()
        adapter = _openai("groq", client)
        await adapter.invoke("Z" * 50000, "task")
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "llama3-8b-8192"
        assert kwargs["messages"][-1]["content"].count("Z") == 20000

    @pytest.mark.asyncio
    async def test_content_filter_is_rejection(self):
        client, _ = _openai_client(content="", finish_reason="content_filter")
        with pytest.raises(AdapterError) as exc_info:
            await _openai("xai", client).invoke("doc", "task")
        assert "content policy" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_no_choices_is_malformed(self):
        client, _ = _openai_client(choices=False)
        with pytest.raises(AdapterError):
            await _openai("openai", client).invoke("doc", "task")

    @pytest.mark.asyncio
    async def test_missing_usage_is_zero(self):
        client, _ = _openai_client(usage=False)
        result = await _openai("openai", client).invoke("doc", "task")
        assert (result.usage.input_tokens, result.usage.output_tokens) == (0, 0)

    @pytest.mark.asyncio
    async def test_sdk_exception_is_wrapped(self):
        client, create = _openai_client()
        create.side_effect = RuntimeError("401 invalid api key")
        with pytest.raises(AdapterError) as exc_info:
            await _openai("openai", client).invoke("doc", "task")
        assert "invalid api key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        reg = build_registry()
        adapter = OpenAICompatibleProvider(reg.get("openai"), reg.config_for("openai"))
        with pytest.raises(AdapterError) as exc_info:
            await adapter.invoke("doc", "task")
        assert "not configured" in exc_info.value.message


# =========================================================================
# ANTHROPIC
# =========================================================================
def _anthropic_client(blocks=("Hello ", "world"), stop_reason="end_turn"):
    message = SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in blocks],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=30, output_tokens=8),
    )
    create = AsyncMock(return_value=message)
    return SimpleNamespace(messages=SimpleNamespace(create=create)), create


class TestAnthropicProvider:
    """Messages API with a separate system field."""

    @pytest.mark.asyncio
    async def test_messages_create(self):
        client, create = _anthropic_client()
        reg = build_registry("anthropic")
        cfg = dict(reg.config_for("anthropic"), system_prompt="RFP analyst")
        result = await AnthropicLLMProvider(reg.get("anthropic"), cfg,
                                            client=client).invoke("doc", "task")

        assert result.text == "Hello world"
        assert result.model_id == "claude-3-5-sonnet-20241022"
        assert (result.usage.input_tokens, result.usage.output_tokens) == (30, 8)
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "RFP analyst"
        assert kwargs["max_tokens"] == 4000
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [{"role": "user",
                                       "content": "task\n\nDocument content:\ndoc"}]

    @pytest.mark.asyncio
    async def test_refusal_is_rejection(self):
        client, _ = _anthropic_client(blocks=(), stop_reason="refusal")
        reg = build_registry("anthropic")
        adapter = AnthropicLLMProvider(reg.get("anthropic"), reg.config_for("anthropic"),
                                       client=client)
        with pytest.raises(AdapterError) as exc_info:
            await adapter.invoke("doc", "task")
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        reg = build_registry()
        adapter = AnthropicLLMProvider(reg.get("anthropic"), reg.config_for("anthropic"))
        with pytest.raises(AdapterError):
            await adapter.invoke("doc", "task")


# =========================================================================
# PROBER
# =========================================================================
class TestAvailabilityProber:
    """GET /api/version; never raises; flips the registry flag."""

    @pytest.mark.asyncio
    async def test_reachable(self):
        reg = build_registry()
        handler = Recorder(payload={"version": "0.1.32"})
        prober = AvailabilityProber(reg, transport=httpx.MockTransport(handler))
        assert await prober.probe_local() is True
        assert reg.get("ollama").available is True
        assert str(handler.requests[0].url) == "http://localhost:11434/api/version"
        assert prober.probe_count == 1

    @pytest.mark.asyncio
    async def test_unreachable_never_raises(self):
        reg = build_registry()
        reg.set_available("ollama", True)
        handler = Recorder(exc=httpx.ConnectError("connection refused"))
        prober = AvailabilityProber(reg, transport=httpx.MockTransport(handler))
        assert await prober.probe_local() is False
        assert reg.get("ollama").available is False

    @pytest.mark.asyncio
    async def test_timeout_never_raises(self):
        reg = build_registry()
        handler = Recorder(exc=httpx.ReadTimeout("timed out"))
        prober = AvailabilityProber(reg, transport=httpx.MockTransport(handler))
        assert await prober.probe_local(timeout_ms=10) is False

    @pytest.mark.asyncio
    async def test_error_status_is_unavailable(self):
        reg = build_registry()
        prober = AvailabilityProber(reg, transport=httpx.MockTransport(Recorder(status=503,
                                                                                 payload={})))
        assert await prober.probe_local() is False

    @pytest.mark.asyncio
    async def test_no_local_provider_configured(self):
        from rfp_analyzer.llm.registry import DEFAULT_PROVIDERS, ProviderRegistry
        hosted = {k: v for k, v in DEFAULT_PROVIDERS.items() if k != "ollama"}
        handler = Recorder(payload={"version": "x"})
        prober = AvailabilityProber(ProviderRegistry(hosted, environ={}),
                                    transport=httpx.MockTransport(handler))
        assert prober.enabled() is False
        assert await prober.probe_local() is False
        assert handler.requests == []
        assert prober.probe_count == 0

    @pytest.mark.asyncio
    async def test_static_provider_is_never_probed(self):
        reg = build_registry("anthropic")
        handler = Recorder(payload={"version": "x"})
        prober = AvailabilityProber(reg, local_key="anthropic",
                                    transport=httpx.MockTransport(handler))
        assert prober.enabled() is False
        assert await prober.probe_local() is False
        assert handler.requests == []
        assert reg.get("anthropic").available is True
