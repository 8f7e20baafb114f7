"""
Provider Adapter Tests
=======================

Request/response shapes and error mapping for every provider, without
a network: HTTP providers run over ``httpx.MockTransport`` and SDK
providers get fake clients.
"""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from verigate.errors import ConfigurationError, ProviderError
from verigate.providers import (
    AnthropicProvider,
    GeminiProvider,
    HuggingFaceProvider,
    OllamaProvider,
    OpenAIProvider,
    create_provider,
    get_provider_info,
)
from verigate.providers import gemini_provider, openai_provider
from verigate.schemas.provider import CallSettings
from verigate.verify.retry import is_retryable
from tests.conftest import make_config

CALL = CallSettings(model="test-model", temperature=0.3, max_tokens=256, timeout_s=5.0)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ────────────────────────────────────────────────────────────────
# HTTP providers
# ────────────────────────────────────────────────────────────────

class TestAnthropicProvider:

    @pytest.mark.asyncio
    async def test_request_and_response_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "model": "claude-3-haiku-20240307",
                "content": [{"type": "text", "text": '{"isValid": '}, {"type": "text", "text": "true}"}],
                "usage": {"input_tokens": 40, "output_tokens": 8},
            })

        provider = AnthropicProvider(api_key="sk-ant", client=mock_client(handler))
        raw = await provider.invoke("verify this", CALL)

        assert seen["url"] == "https://api.anthropic.com/v1/messages"
        assert seen["headers"]["x-api-key"] == "sk-ant"
        assert seen["headers"]["anthropic-version"] == "2023-06-01"
        assert seen["body"] == {
            "model": "test-model",
            "max_tokens": 256,
            "temperature": 0.3,
            "messages": [{"role": "user", "content": "verify this"}],
        }
        assert raw.text == '{"isValid": true}'
        assert raw.usage.total_tokens == 48
        assert raw.model == "claude-3-haiku-20240307"

    @pytest.mark.asyncio
    async def test_http_status_becomes_provider_error(self):
        provider = AnthropicProvider(
            api_key="sk-ant",
            client=mock_client(lambda r: httpx.Response(429, text="rate limited")),
        )
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert exc.value.status == 429
        assert exc.value.provider == "anthropic"
        assert is_retryable(exc.value)

    @pytest.mark.asyncio
    async def test_auth_failure_is_terminal(self):
        provider = AnthropicProvider(
            api_key="bad",
            client=mock_client(lambda r: httpx.Response(401, json={"error": "invalid x-api-key"})),
        )
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert exc.value.status == 401
        assert not is_retryable(exc.value)


class TestHTTPErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raised, code", [
        (httpx.ReadTimeout("slow"), "ETIMEDOUT"),
        (httpx.ConnectTimeout("slow connect"), "ETIMEDOUT"),
        (httpx.ConnectError("refused"), "ECONNREFUSED"),
        (httpx.RemoteProtocolError("peer closed"), "NETWORK_ERROR"),
    ])
    async def test_transport_failures(self, raised, code):
        def handler(request):
            raise raised

        provider = OllamaProvider(client=mock_client(handler))
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert exc.value.code == code
        assert is_retryable(exc.value)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        provider = OllamaProvider(client=mock_client(lambda r: httpx.Response(200, text="<html>oops</html>")))
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert exc.value.status == 200
        assert not is_retryable(exc.value)

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = mock_client(lambda r: httpx.Response(200, json={"response": "ok"}))
        provider = OllamaProvider(client=client)
        await provider.aclose()
        assert not client.is_closed
        await client.aclose()


class TestHuggingFaceProvider:

    @pytest.mark.asyncio
    async def test_request_and_response_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"generated_text": "Looks valid."}])

        provider = HuggingFaceProvider(api_key="hf_token", client=mock_client(handler))
        call = CallSettings(model="org/model", temperature=0.0, max_tokens=64, timeout_s=5.0)
        raw = await provider.invoke("prompt", call)

        assert seen["url"] == "https://api-inference.huggingface.co/models/org/model"
        assert seen["auth"] == "Bearer hf_token"
        assert seen["body"]["inputs"] == "prompt"
        assert seen["body"]["parameters"]["max_new_tokens"] == 64
        assert seen["body"]["parameters"]["return_full_text"] is False
        assert seen["body"]["parameters"]["temperature"] > 0
        assert raw.text == "Looks valid."
        assert raw.usage is None

    @pytest.mark.asyncio
    async def test_503_while_model_loads_is_retryable(self):
        provider = HuggingFaceProvider(
            api_key="hf",
            client=mock_client(lambda r: httpx.Response(503, json={"error": "Model is loading"})),
        )
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert is_retryable(exc.value)


class TestOllamaProvider:

    @pytest.mark.asyncio
    async def test_request_and_response_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "model": "llama3.1",
                "response": '{"isValid": true}',
                "prompt_eval_count": 30,
                "eval_count": 6,
            })

        provider = OllamaProvider(base_url="http://gpu-box:11434/", client=mock_client(handler))
        raw = await provider.invoke("prompt", CALL)

        assert seen["url"] == "http://gpu-box:11434/api/generate"
        assert seen["auth"] is None
        assert seen["body"] == {
            "model": "test-model",
            "prompt": "prompt",
            "stream": False,
            "options": {"temperature": 0.3, "num_predict": 256},
        }
        assert raw.text == '{"isValid": true}'
        assert (raw.usage.prompt_tokens, raw.usage.completion_tokens, raw.usage.total_tokens) == (30, 6, 36)


# ────────────────────────────────────────────────────────────────
# SDK providers
# ────────────────────────────────────────────────────────────────

def _openai_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


_OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestOpenAIProvider:

    @pytest.mark.asyncio
    async def test_request_and_response_shape(self):
        seen = {}

        async def create(**kwargs):
            seen.update(kwargs)
            return SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content='{"isValid": false}'))],
                usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3, total_tokens=15),
                model="gpt-4o-mini-2024-07-18",
            )

        provider = OpenAIProvider(api_key="sk", client=_openai_client(create))
        raw = await provider.invoke("verify this", CALL)

        assert seen["model"] == "test-model"
        assert seen["messages"][-1] == {"role": "user", "content": "verify this"}
        assert seen["temperature"] == 0.3
        assert seen["max_tokens"] == 256
        assert seen["timeout"] == 5.0
        assert raw.text == '{"isValid": false}'
        assert raw.usage.total_tokens == 15
        assert raw.model == "gpt-4o-mini-2024-07-18"

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        async def create(**kwargs):
            return SimpleNamespace(choices=[], usage=None, model=None)

        raw = await OpenAIProvider(client=_openai_client(create)).invoke("x", CALL)
        assert raw.text == ""
        assert raw.usage is None
        assert raw.model == "test-model"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, status, code", [
        (
            openai.RateLimitError(
                "slow down",
                response=httpx.Response(429, request=_OPENAI_REQUEST),
                body=None,
            ),
            429,
            None,
        ),
        (
            openai.AuthenticationError(
                "bad key",
                response=httpx.Response(401, request=_OPENAI_REQUEST),
                body=None,
            ),
            401,
            None,
        ),
        (openai.APITimeoutError(request=_OPENAI_REQUEST), None, "ETIMEDOUT"),
        (openai.APIConnectionError(request=_OPENAI_REQUEST), None, "NETWORK_ERROR"),
    ])
    async def test_error_mapping(self, error, status, code):
        async def create(**kwargs):
            raise error

        with pytest.raises(ProviderError) as exc:
            await OpenAIProvider(client=_openai_client(create)).invoke("x", CALL)
        assert exc.value.status == status
        assert exc.value.code == code
        assert exc.value.provider == "openai"


def _gemini_client(generate_content):
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_request_and_response_shape(self):
        seen = {}

        async def generate_content(**kwargs):
            seen.update(kwargs)
            return SimpleNamespace(
                text='{"isValid": true}',
                usage_metadata=SimpleNamespace(
                    prompt_token_count=20, candidates_token_count=4, total_token_count=24,
                ),
            )

        provider = GeminiProvider(api_key="g", client=_gemini_client(generate_content))
        raw = await provider.invoke("prompt", CALL)

        assert seen["model"] == "test-model"
        assert seen["contents"] == "prompt"
        assert seen["config"] == {"temperature": 0.3, "max_output_tokens": 256}
        assert raw.text == '{"isValid": true}'
        assert raw.usage.total_tokens == 24

    @pytest.mark.asyncio
    async def test_deadline_aborts_call_as_retryable_timeout(self):
        async def generate_content(**kwargs):
            await asyncio.sleep(10)

        provider = GeminiProvider(api_key="g", client=_gemini_client(generate_content))
        call = CallSettings(model="m", temperature=0.1, max_tokens=10, timeout_s=0.01)
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", call)
        assert exc.value.code == "ETIMEDOUT"
        assert is_retryable(exc.value)

    @pytest.mark.asyncio
    async def test_api_error_carries_status(self):
        async def generate_content(**kwargs):
            raise genai_errors.ClientError(
                429, {"error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}}
            )

        provider = GeminiProvider(api_key="g", client=_gemini_client(generate_content))
        with pytest.raises(ProviderError) as exc:
            await provider.invoke("x", CALL)
        assert exc.value.status == 429
        assert is_retryable(exc.value)


class TestClientOwnership:

    @pytest.mark.asyncio
    async def test_injected_openai_client_is_not_closed(self):
        closed = []

        async def close():
            closed.append(True)

        client = SimpleNamespace(close=close)
        await OpenAIProvider(client=client).aclose()
        assert closed == []

    @pytest.mark.asyncio
    async def test_owned_openai_client_is_closed(self, monkeypatch):
        closed = []

        class FakeAsyncOpenAI:
            def __init__(self, **kwargs):
                self.kwargs = kwargs

            async def close(self):
                closed.append(True)

        monkeypatch.setattr(openai_provider.openai, "AsyncOpenAI", FakeAsyncOpenAI)
        provider = OpenAIProvider(api_key="sk")
        assert provider._get_client().kwargs["max_retries"] == 0
        await provider.aclose()
        await provider.aclose()
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_injected_gemini_client_is_not_closed(self):
        closed = []

        async def aclose():
            closed.append(True)

        client = SimpleNamespace(aio=SimpleNamespace(aclose=aclose))
        await GeminiProvider(api_key="g", client=client).aclose()
        assert closed == []

    @pytest.mark.asyncio
    async def test_owned_gemini_client_is_closed(self, monkeypatch):
        closed = []

        async def aclose():
            closed.append(True)

        def fake_client(api_key=None):
            return SimpleNamespace(api_key=api_key, aio=SimpleNamespace(aclose=aclose))

        monkeypatch.setattr(gemini_provider.genai, "Client", fake_client)
        provider = GeminiProvider(api_key="g")
        assert provider._get_client().api_key == "g"
        await provider.aclose()
        await provider.aclose()
        assert closed == [True]


# ────────────────────────────────────────────────────────────────
# Registry
# ────────────────────────────────────────────────────────────────

class TestRegistry:

    @pytest.mark.parametrize("name, cls, key_field", [
        ("openai", OpenAIProvider, "openai_api_key"),
        ("gemini", GeminiProvider, "gemini_api_key"),
        ("anthropic", AnthropicProvider, "anthropic_api_key"),
        ("huggingface", HuggingFaceProvider, "huggingface_api_key"),
    ])
    def test_create_provider(self, name, cls, key_field):
        cfg = make_config(provider=name, **{key_field: "secret"})
        provider = create_provider(name, cfg)
        assert isinstance(provider, cls)
        assert provider.api_key == "secret"
        assert provider.name == name

    def test_ollama_needs_no_key(self):
        cfg = make_config(provider="ollama", openai_api_key=None, ollama_base_url="http://box:11434")
        provider = create_provider("ollama", cfg)
        assert isinstance(provider, OllamaProvider)
        assert provider.base_url == "http://box:11434"

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="VERIGATE_ANTHROPIC_API_KEY"):
            create_provider("anthropic", make_config())

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError, match="Unsupported provider"):
            create_provider("cohere", make_config())

    def test_provider_info(self):
        everything = get_provider_info()
        assert set(everything) == {"openai", "gemini", "anthropic", "huggingface", "ollama"}
        assert get_provider_info("ollama")["cost"] == "$0.0/1K input, $0.0/1K output"
        with pytest.raises(ConfigurationError):
            get_provider_info("nope")
