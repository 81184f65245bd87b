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

"""
Cognitive - reasoning and retrieval core for an editor-embedded coding assistant.

Drives a multi-turn conversation with a language model, lets the model act on
a local workspace through a small allow-listed tool protocol, and backs that
protocol with an incrementally refreshed symbol index with fuzzy search.

Simple API:
    from cognitive import AgentService

    service = AgentService()
    await service.set_workspace("/path/to/project")
    result = await service.chat_stream(messages, event_sink=print_event, model="gpt-4o")

Package Structure:
    - cognitive.providers: OpenAI-compatible, Gemini and Ollama stream adapters
    - cognitive.agent: tool-call extraction, orchestration loop, events
    - cognitive.tools: tool executor, file-system collaborator, todo store
    - cognitive.codebase: symbol index, outline extraction, fuzzy matching
"""

__version__ = "0.4.0"
__author__ = "Vijaykumar Singh"
__email__ = "singhvjd@gmail.com"
__license__ = "Apache-2.0"

from cognitive.agent.service import AgentContext, AgentService
from cognitive.config.settings import Settings, load_settings

__all__ = [
    "AgentContext",
    "AgentService",
    "Settings",
    "load_settings",
    "__version__",
]
