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

"""Ollama provider for local models."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from cognitive.config.timeouts import Timeouts
from cognitive.core.errors import ProviderMalformedResponseError
from cognitive.providers.base import BaseProvider, Message
from cognitive.providers.stream_decoders import NDJSONStreamDecoder

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"


def normalize_ollama_url(url: Optional[str]) -> str:
    """Normalize a user-supplied Ollama endpoint.

    Empty values fall back to the default, a missing scheme becomes
    ``http://``, ``localhost`` is pinned to ``127.0.0.1`` and trailing
    slashes are removed.
    """
    url = (url or "").strip()
    if not url:
        return DEFAULT_OLLAMA_URL
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    url = url.replace("://localhost", "://127.0.0.1")
    return url.rstrip("/")


class OllamaModel(BaseModel):
    """Model entry reported by ``/api/tags``."""

    name: str
    size: int = 0
    modified_at: str = ""
    digest: str = ""


class OllamaProvider(BaseProvider):
    """Provider for a local Ollama server (newline-delimited JSON stream)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Ollama server URL, normalized by ``normalize_ollama_url``
            timeout: Request timeout
            client: Pre-built HTTP client
        """
        # Local server: proxy settings from the environment must not apply
        super().__init__(
            base_url=normalize_ollama_url(base_url),
            timeout=timeout,
            client=client,
            trust_env=False,
        )

    @property
    def name(self) -> str:
        return "ollama"

    def _build_request_payload(
        self,
        messages: List[Message],
        model: str,
        stream: bool,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if options:
            payload["options"] = options
        return payload

    async def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        payload = self._build_request_payload(messages, model, True, temperature, max_tokens)
        logger.debug(f"Ollama stream request: model={model}, messages={len(messages)}")
        async for text in self._stream_request(
            f"{self.base_url}/api/chat", payload, NDJSONStreamDecoder()
        ):
            yield text

    async def chat(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        payload = self._build_request_payload(messages, model, False, temperature, max_tokens)
        data = await self._request_json("POST", f"{self.base_url}/api/chat", payload)
        try:
            content = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise ProviderMalformedResponseError(
                "Ollama response has no message content", provider=self.name, cause=e
            ) from e
        return content or ""

    async def list_models(self) -> List[OllamaModel]:
        """List models installed on the server."""
        data = await self._request_json(
            "GET", f"{self.base_url}/api/tags", timeout=Timeouts.quick()
        )
        try:
            return [OllamaModel.model_validate(m) for m in data.get("models", [])]
        except (AttributeError, ValidationError) as e:
            raise ProviderMalformedResponseError(
                f"Unexpected /api/tags response: {e}", provider=self.name, cause=e
            ) from e
