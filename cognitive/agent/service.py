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

"""Agent service: the host-facing surface of the agent core.

The service owns the mutable state (configured credentials, open workspace,
shared symbol index). Every operation works from the current immutable
``AgentContext`` snapshot, which is replaced only by ``configure`` and
``set_workspace``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Set, Union

import httpx

from cognitive.agent.context import AgentContext
from cognitive.agent.events import EventSink
from cognitive.agent.orchestrator import AgentOrchestrator, TurnResult
from cognitive.agent.prompt_builder import SystemPromptContext, build_system_prompt
from cognitive.codebase.indexer import SymbolIndex
from cognitive.config.settings import Settings
from cognitive.core.errors import NoWorkspaceError
from cognitive.providers.base import Message
from cognitive.providers.ollama import OllamaModel, OllamaProvider
from cognitive.providers.registry import ProviderRegistry
from cognitive.tools.base import ToolCall
from cognitive.tools.executor import ToolExecutor
from cognitive.tools.filesystem import FileSystem

__all__ = ["AgentContext", "AgentService"]

logger = logging.getLogger(__name__)


class AgentService:
    """Entry point used by the CLI and embedding hosts.

    Example:
        service = AgentService(load_settings())
        await service.set_workspace("/path/to/repo")
        result = await service.chat_stream(messages, model="gpt-4o", event_sink=sink)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        symbol_index: Optional[SymbolIndex] = None,
        file_system: Optional[FileSystem] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize service.

        Args:
            settings: Base settings (loaded from the environment when omitted)
            symbol_index: Shared index (one is created when omitted)
            file_system: File-system collaborator for tools
            http_client: HTTP client shared by providers (tests inject a mock transport)
        """
        settings = settings or Settings()
        self._context = AgentContext(settings=settings)
        self.symbol_index = symbol_index or SymbolIndex(settings=settings)
        self.file_system = file_system
        self.http_client = http_client
        self._index_task: Optional["asyncio.Task[Any]"] = None
        # Unfinished passes, held here until done
        self._index_tasks: Set["asyncio.Task[Any]"] = set()

    @property
    def context(self) -> AgentContext:
        """Current immutable context snapshot."""
        return self._context

    @property
    def index_task(self) -> Optional["asyncio.Task[Any]"]:
        """Background indexing task started by the last ``set_workspace``."""
        return self._index_task

    @property
    def pending_index_tasks(self) -> FrozenSet["asyncio.Task[Any]"]:
        """Indexing tasks that have not finished, superseded ones included."""
        return frozenset(self._index_tasks)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        openai_api_key: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        ollama_base_url: Optional[str] = None,
    ) -> AgentContext:
        """Replace provider credentials and endpoints.

        Keys are replaced as given (``None`` clears a key). Endpoints keep
        their current value when ``None``.
        """
        updates: Dict[str, Any] = {
            "openai_api_key": openai_api_key,
            "gemini_api_key": gemini_api_key,
        }
        if base_url:
            updates["openai_base_url"] = base_url
        if ollama_base_url:
            updates["ollama_base_url"] = ollama_base_url
        self._context = self._context.with_settings(**updates)
        logger.info(
            f"Provider configuration updated (openai key: {'set' if openai_api_key else 'unset'}, "
            f"gemini key: {'set' if gemini_api_key else 'unset'})"
        )
        return self._context

    async def set_workspace(self, path: Optional[Union[str, Path]]) -> Optional["asyncio.Task[Any]"]:
        """Open (or close, with ``None``) a workspace.

        Opening starts ``load_or_index`` as a background task and returns it
        without waiting.
        """
        if path is None:
            self._context = self._context.with_workspace(None)
            logger.info("Workspace closed")
            return None

        workspace = Path(path).expanduser().resolve()
        self._context = self._context.with_workspace(workspace)
        logger.info(f"Workspace set to {workspace}")

        task = asyncio.create_task(self._background_index(workspace))
        self._index_tasks.add(task)
        task.add_done_callback(self._index_tasks.discard)
        self._index_task = task
        return task

    async def _background_index(self, workspace: Path) -> None:
        try:
            await self.symbol_index.load_or_index(workspace)
        except Exception as e:
            logger.error(f"Background indexing of {workspace} failed: {e}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _executor(self, context: AgentContext) -> ToolExecutor:
        return ToolExecutor(
            context.workspace,
            self.symbol_index,
            file_system=self.file_system,
            settings=context.settings,
        )

    async def chat_stream(
        self,
        messages: List[Message],
        event_sink: EventSink,
        model: Optional[str] = None,
    ) -> TurnResult:
        """Run one agent turn, streaming events to ``event_sink``."""
        context = self._context
        registry = ProviderRegistry(context.settings, client=self.http_client)
        orchestrator = AgentOrchestrator(
            context,
            event_sink,
            provider_factory=registry.get,
            executor=self._executor(context),
        )
        try:
            return await orchestrator.run_turn(messages, model=model)
        finally:
            await registry.close()

    async def chat_complete(self, messages: List[Message], model: Optional[str] = None) -> str:
        """Single non-streaming completion with no system prompt and no tools."""
        context = self._context
        model = model or context.settings.default_model
        registry = ProviderRegistry(context.settings, client=self.http_client)
        try:
            provider = registry.get(model)
            return await provider.chat(
                messages,
                model=model,
                temperature=context.settings.default_temperature,
                max_tokens=context.settings.default_max_tokens,
            )
        finally:
            await registry.close()

    async def execute_tool(self, name: str, parameters: Optional[Dict[str, Any]] = None) -> str:
        """Run one tool directly (outside a turn)."""
        return await self._executor(self._context).execute(
            ToolCall(name=name, parameters=parameters or {})
        )

    async def index_codebase(self) -> str:
        """Run a full incremental indexing pass on the open workspace."""
        workspace = self._context.workspace
        if workspace is None:
            raise NoWorkspaceError(tool_name="index_codebase")
        await self.symbol_index.index_workspace(workspace)
        return "Codebase indexed successfully"

    def get_system_prompt(self, user_query: Optional[str] = None) -> str:
        context = self._context
        return build_system_prompt(
            SystemPromptContext(
                user_os=context.os_name,
                workspace=str(context.workspace) if context.workspace else None,
                user_query=user_query,
                completion_marker=context.settings.completion_marker,
            )
        )

    async def list_ollama_models(self) -> List[OllamaModel]:
        async with OllamaProvider(
            base_url=self._context.settings.ollama_base_url, client=self.http_client
        ) as provider:
            return await provider.list_models()
