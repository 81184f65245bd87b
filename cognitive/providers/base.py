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

"""Base provider interface shared by all language model backends.

A provider turns a message history into a lazy sequence of text fragments.
Wire-format decoding lives in ``stream_decoders``; this module owns the HTTP
plumbing and maps transport failures onto the ProviderError hierarchy.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel

from cognitive.config.timeouts import Timeouts
from cognitive.core.errors import (
    ProviderApiError,
    ProviderAuthError,
    ProviderMalformedResponseError,
    ProviderRequestError,
)
from cognitive.providers.stream_decoders import StreamDecoder

logger = logging.getLogger(__name__)


class Message(BaseModel):
    """A single conversation message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class BaseProvider(ABC):
    """Abstract base class for LLM providers.

    Providers never retry: any failure surfaces as a ProviderError and the
    caller decides what to do with the turn.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.AsyncClient] = None,
        trust_env: bool = True,
    ):
        """Initialize provider.

        Args:
            base_url: API base URL without a trailing slash
            api_key: API key for hosted providers
            timeout: Request timeout, defaults to the LLM API timeout
            client: Pre-built HTTP client (tests inject a mock transport)
            trust_env: Whether proxy environment variables are honored
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout or Timeouts.http(),
            trust_env=trust_env,
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""

    @abstractmethod
    def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream the assistant reply as text fragments.

        Args:
            messages: Conversation messages
            model: Model identifier
            temperature: Sampling temperature (provider default if None)
            max_tokens: Maximum tokens to generate (provider default if None)

        Yields:
            Text fragments in arrival order

        Raises:
            ProviderError: On transport, HTTP status or decoding failure
        """

    @abstractmethod
    async def chat(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the complete assistant reply without streaming."""

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ProviderAuthError(f"Missing API key for {self.name}", provider=self.name)
        return self.api_key

    async def _stream_request(
        self,
        url: str,
        payload: Dict[str, Any],
        decoder: StreamDecoder,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        """POST ``payload`` and feed the raw response bytes through ``decoder``."""
        try:
            async with self.client.stream(
                "POST", url, json=payload, headers=headers, params=params
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderApiError(response.status_code, body, provider=self.name)

                async for raw in response.aiter_bytes():
                    for text in decoder.feed(raw):
                        yield text
                for text in decoder.flush():
                    yield text
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"{self.name} request failed: {e}", provider=self.name, cause=e
            ) from e

    async def _request_json(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[httpx.Timeout] = None,
    ) -> Any:
        """Send a non-streaming request and return the decoded JSON body."""
        kwargs: Dict[str, Any] = {"json": payload, "headers": headers, "params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderRequestError(
                f"{self.name} request failed: {e}", provider=self.name, cause=e
            ) from e

        if not response.is_success:
            raise ProviderApiError(response.status_code, response.text, provider=self.name)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderMalformedResponseError(
                f"{self.name} returned invalid JSON: {e}", provider=self.name, cause=e
            ) from e

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "BaseProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
