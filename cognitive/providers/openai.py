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

"""OpenAI-compatible provider (chat completions over server-sent events)."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from cognitive.core.errors import ProviderMalformedResponseError
from cognitive.providers.base import BaseProvider, Message
from cognitive.providers.stream_decoders import SSEStreamDecoder

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseProvider):
    """Provider for OpenAI and any server exposing ``/chat/completions``."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: Bearer token
            base_url: API base URL (defaults to the public OpenAI endpoint)
            timeout: Request timeout
            client: Pre-built HTTP client
        """
        super().__init__(
            base_url=base_url or DEFAULT_OPENAI_URL,
            api_key=api_key,
            timeout=timeout,
            client=client,
        )

    @property
    def name(self) -> str:
        return "openai"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._require_api_key()}",
            "Content-Type": "application/json",
        }

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
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    async def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        headers = self._headers()
        payload = self._build_request_payload(messages, model, True, temperature, max_tokens)
        logger.debug(f"OpenAI stream request: model={model}, messages={len(messages)}")
        async for text in self._stream_request(
            f"{self.base_url}/chat/completions", payload, SSEStreamDecoder(), headers=headers
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
        headers = self._headers()
        payload = self._build_request_payload(messages, model, False, temperature, max_tokens)
        data = await self._request_json(
            "POST", f"{self.base_url}/chat/completions", payload, headers=headers
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderMalformedResponseError(
                "OpenAI response has no message content", provider=self.name, cause=e
            ) from e
        return content or ""
