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

"""Workspace todo list persisted as ``.cognitive/todos.json``."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal

import aiofiles
from pydantic import BaseModel, Field

from cognitive.core.errors import NotFoundError, ToolIOError

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TodoItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    status: Literal["pending", "completed"] = "pending"
    created_at: str = Field(default_factory=_utc_now)


class TodoStore:
    """Reads and rewrites the whole todo document on every change."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def _load(self) -> List[Dict[str, Any]]:
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            data = await f.read()
        todos = json.loads(data)
        if not isinstance(todos, list):
            raise ValueError("todo document is not a JSON array")
        return todos

    async def _save(self, todos: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(todos, indent=2, ensure_ascii=False))

    async def add(self, content: str) -> str:
        todos: List[Dict[str, Any]] = []
        if self.path.exists():
            try:
                todos = await self._load()
            except ValueError as e:
                logger.warning(f"Discarding unreadable todo document {self.path}: {e}")
                todos = []
            except OSError as e:
                raise ToolIOError(f"Failed to read todos: {e}", tool_name="todo_add", path=str(self.path)) from e

        item = TodoItem(content=content)
        todos.append(item.model_dump())
        try:
            await self._save(todos)
        except (OSError, ValueError) as e:
            raise ToolIOError(f"Failed to write todos: {e}", tool_name="todo_add", path=str(self.path)) from e
        return f"Added todo: {content}"

    async def list(self) -> str:
        if not self.path.exists():
            return "[]"
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                return await f.read()
        except (OSError, ValueError) as e:
            raise ToolIOError(f"Failed to read todos: {e}", tool_name="todo_list", path=str(self.path)) from e

    async def complete(self, todo_id: str) -> str:
        if not self.path.exists():
            raise NotFoundError("No todos found", tool_name="todo_complete")

        try:
            todos = await self._load()
        except (OSError, ValueError) as e:
            raise ToolIOError(f"Failed to read todos: {e}", tool_name="todo_complete", path=str(self.path)) from e

        found = False
        for todo in todos:
            if isinstance(todo, dict) and todo.get("id") == todo_id:
                todo["status"] = "completed"
                found = True

        if not found:
            raise NotFoundError(f"Todo not found: {todo_id}", tool_name="todo_complete")

        try:
            await self._save(todos)
        except (OSError, ValueError) as e:
            raise ToolIOError(f"Failed to write todos: {e}", tool_name="todo_complete", path=str(self.path)) from e
        return f"Completed todo: {todo_id}"
