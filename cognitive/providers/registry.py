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

"""Provider selection by model name.

Routing convention:
- model name contains ``gpt`` -> OpenAI-compatible endpoint
- model name contains ``gemini`` -> Gemini
- anything else -> local Ollama server
"""

import logging
from enum import Enum
from typing import Dict, Optional

import httpx

from cognitive.config.settings import Settings
from cognitive.providers.base import BaseProvider
from cognitive.providers.gemini import GeminiProvider
from cognitive.providers.ollama import OllamaProvider
from cognitive.providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"


def provider_kind_for_model(model: str) -> ProviderKind:
    """Pick the backend for ``model`` (case-insensitive substring match)."""
    lowered = model.lower()
    if "gpt" in lowered:
        return ProviderKind.OPENAI
    if "gemini" in lowered:
        return ProviderKind.GEMINI
    return ProviderKind.OLLAMA


class ProviderRegistry:
    """Creates providers on demand and caches one instance per backend.

    The registry is scoped to a single turn; ``close`` releases every HTTP
    client it created.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        """Initialize registry.

        Args:
            settings: Settings snapshot carrying keys and endpoints
            client: Shared HTTP client handed to every provider (tests)
        """
        self._settings = settings
        self._client = client
        self._providers: Dict[ProviderKind, BaseProvider] = {}

    def get(self, model: str) -> BaseProvider:
        kind = provider_kind_for_model(model)
        provider = self._providers.get(kind)
        if provider is None:
            provider = self._create(kind)
            self._providers[kind] = provider
            logger.debug(f"Created {kind.value} provider for model {model}")
        return provider

    def _create(self, kind: ProviderKind) -> BaseProvider:
        s = self._settings
        if kind is ProviderKind.OPENAI:
            return OpenAIProvider(s.openai_api_key, base_url=s.openai_base_url, client=self._client)
        if kind is ProviderKind.GEMINI:
            return GeminiProvider(s.gemini_api_key, base_url=s.gemini_base_url, client=self._client)
        return OllamaProvider(base_url=s.ollama_base_url, client=self._client)

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()
