# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for the provider adapters (Ollama, OpenAI-compatible, Gemini)."""

import json

import httpx
import pytest

from cognitive.config.settings import Settings
from cognitive.core.errors import (
    ProviderApiError,
    ProviderAuthError,
    ProviderMalformedResponseError,
    ProviderRequestError,
)
from cognitive.providers.base import Message
from cognitive.providers.gemini import GeminiProvider
from cognitive.providers.ollama import OllamaProvider, normalize_ollama_url
from cognitive.providers.openai import OpenAIProvider
from cognitive.providers.registry import ProviderKind, ProviderRegistry, provider_kind_for_model

MESSAGES = [
    Message(role="system", content="You are helpful."),
    Message(role="user", content="Hi"),
]


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def collect(stream):
    return [text async for text in stream]


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    def test_normalize_url(self):
        assert normalize_ollama_url(None) == "http://127.0.0.1:11434"
        assert normalize_ollama_url("localhost:11434/") == "http://127.0.0.1:11434"
        assert normalize_ollama_url("https://ollama.example.com/") == "https://ollama.example.com"

    @pytest.mark.asyncio
    async def test_stream(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            body = (
                b'{"message": {"content": "Hel"}}\n'
                b'{"message": {"content": "lo"}}\n'
                b'{"message": {"content": ""}, "done": true}\n'
            )
            return httpx.Response(200, content=body)

        async with mock_client(handler) as client:
            provider = OllamaProvider("http://localhost:11434", client=client)
            chunks = await collect(provider.stream(MESSAGES, model="qwen2.5-coder:7b"))

        assert chunks == ["Hel", "lo"]
        assert seen["url"] == "http://127.0.0.1:11434/api/chat"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "qwen2.5-coder:7b"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert "options" not in seen["body"]

    @pytest.mark.asyncio
    async def test_options_sent_when_set(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": "ok"}})

        async with mock_client(handler) as client:
            provider = OllamaProvider(client=client)
            text = await provider.chat(MESSAGES, model="llama3", temperature=0.2, max_tokens=64)

        assert text == "ok"
        assert seen["body"]["options"] == {"temperature": 0.2, "num_predict": 64}
        assert seen["body"]["stream"] is False

    @pytest.mark.asyncio
    async def test_api_error_carries_status_and_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text='{"error": "model not found"}')

        async with mock_client(handler) as client:
            provider = OllamaProvider(client=client)
            with pytest.raises(ProviderApiError) as exc_info:
                await collect(provider.stream(MESSAGES, model="missing"))

        assert exc_info.value.status_code == 404
        assert "model not found" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with mock_client(handler) as client:
            provider = OllamaProvider(client=client)
            with pytest.raises(ProviderRequestError):
                await collect(provider.stream(MESSAGES, model="llama3"))

    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(
                200,
                json={"models": [{"name": "llama3:8b", "size": 123, "modified_at": "2024-01-01"}]},
            )

        async with mock_client(handler) as client:
            models = await OllamaProvider(client=client).list_models()

        assert [m.name for m in models] == ["llama3:8b"]
        assert models[0].size == 123


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    @pytest.mark.asyncio
    async def test_stream(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            events = [
                {"choices": [{"delta": {"role": "assistant"}}]},
                {"choices": [{"delta": {"content": "Hi"}}]},
                {"choices": [{"delta": {"content": "!"}}]},
            ]
            body = "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"
            return httpx.Response(200, content=body.encode())

        async with mock_client(handler) as client:
            provider = OpenAIProvider("sk-test", base_url="https://api.example.com/v1/", client=client)
            chunks = await collect(provider.stream(MESSAGES, model="gpt-4o"))

        assert chunks == ["Hi", "!"]
        assert seen["url"] == "https://api.example.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["stream"] is True

    @pytest.mark.asyncio
    async def test_missing_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            provider = OpenAIProvider(None, client=client)
            with pytest.raises(ProviderAuthError):
                await collect(provider.stream(MESSAGES, model="gpt-4o"))

    @pytest.mark.asyncio
    async def test_chat(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": [{"message": {"content": "Done."}}]})

        async with mock_client(handler) as client:
            text = await OpenAIProvider("k", client=client).chat(MESSAGES, model="gpt-4o")
        assert text == "Done."

    @pytest.mark.asyncio
    async def test_chat_malformed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        async with mock_client(handler) as client:
            with pytest.raises(ProviderMalformedResponseError):
                await OpenAIProvider("k", client=client).chat(MESSAGES, model="gpt-4o")


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    def test_payload_lifts_system_messages(self):
        provider = GeminiProvider("key")
        payload = provider._build_request_payload(
            MESSAGES + [Message(role="assistant", content="Hello")], temperature=0.5
        )
        assert payload["systemInstruction"] == {"parts": [{"text": "You are helpful."}]}
        assert [c["role"] for c in payload["contents"]] == ["user", "model"]
        assert payload["generationConfig"] == {"temperature": 0.5}

    @pytest.mark.asyncio
    async def test_stream_split_across_chunks(self):
        objects = [
            {"candidates": [{"content": {"parts": [{"text": "a { b"}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "} c"}]}}]},
        ]
        body = json.dumps(objects).encode()
        seen = {}

        async def chunks():
            for i in range(0, len(body), 7):
                yield body[i : i + 7]

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.url.params.get("key")
            return httpx.Response(200, content=chunks())

        async with mock_client(handler) as client:
            provider = GeminiProvider("g-key", client=client)
            texts = await collect(provider.stream(MESSAGES, model="gemini-1.5-pro"))

        assert texts == ["a { b", "} c"]
        assert seen["path"].endswith("/models/gemini-1.5-pro:streamGenerateContent")
        assert seen["key"] == "g-key"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        async with mock_client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ProviderAuthError):
                await collect(GeminiProvider("", client=client).stream(MESSAGES, model="gemini-pro"))


class TestProviderRegistry:
    """Tests for model-name routing."""

    @pytest.mark.parametrize(
        "model,kind",
        [
            ("gpt-4o", ProviderKind.OPENAI),
            ("GPT-4", ProviderKind.OPENAI),
            ("gemini-1.5-flash", ProviderKind.GEMINI),
            ("llama3:8b", ProviderKind.OLLAMA),
            ("qwen2.5-coder:7b", ProviderKind.OLLAMA),
        ],
    )
    def test_kind_for_model(self, model, kind):
        assert provider_kind_for_model(model) is kind

    @pytest.mark.asyncio
    async def test_get_caches_per_kind(self):
        registry = ProviderRegistry(Settings(openai_api_key="k"))
        try:
            first = registry.get("gpt-4o")
            assert registry.get("gpt-4o-mini") is first
            assert isinstance(first, OpenAIProvider)
            assert isinstance(registry.get("llama3"), OllamaProvider)
        finally:
            await registry.close()
