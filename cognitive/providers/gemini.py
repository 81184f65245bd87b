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

"""Google Gemini provider (``streamGenerateContent`` JSON array stream)."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from cognitive.providers.base import BaseProvider, Message
from cognitive.providers.stream_decoders import JSONArrayStreamDecoder, extract_gemini_text

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(BaseProvider):
    """Provider for Gemini models."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(
            base_url=base_url or DEFAULT_GEMINI_URL,
            api_key=api_key,
            timeout=timeout,
            client=client,
        )

    @property
    def name(self) -> str:
        return "gemini"

    def _build_request_payload(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Convert chat messages into a ``generateContent`` body.

        System messages are lifted into ``systemInstruction``; ``user`` keeps
        its role and every other role becomes ``model``.
        """
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = [
            {
                "role": "user" if m.role == "user" else "model",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]

        payload: Dict[str, Any] = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}

        generation_config: Dict[str, Any] = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_tokens is not None:
            generation_config["maxOutputTokens"] = max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    async def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        params = {"key": self._require_api_key()}
        payload = self._build_request_payload(messages, temperature, max_tokens)
        logger.debug(f"Gemini stream request: model={model}, messages={len(messages)}")
        async for text in self._stream_request(
            f"{self.base_url}/models/{model}:streamGenerateContent",
            payload,
            JSONArrayStreamDecoder(),
            params=params,
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
        params = {"key": self._require_api_key()}
        payload = self._build_request_payload(messages, temperature, max_tokens)
        data = await self._request_json(
            "POST",
            f"{self.base_url}/models/{model}:generateContent",
            payload,
            params=params,
        )
        return "".join(extract_gemini_text(data))
