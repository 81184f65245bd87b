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

"""Conversation history for one agent turn."""

import logging
from typing import List, Optional

from cognitive.providers.base import Message

logger = logging.getLogger(__name__)


class ConversationManager:
    """Owns the message list of a turn.

    The system prompt is always the first message. History is append-only
    while the turn runs.
    """

    def __init__(self, system_prompt: str, history: Optional[List[Message]] = None):
        """Initialize conversation manager.

        Args:
            system_prompt: Prompt placed before the supplied history
            history: Prior messages (an existing system message is replaced)
        """
        self._messages: List[Message] = [Message(role="system", content=system_prompt)]
        for message in history or []:
            if message.role == "system":
                logger.debug("Dropping caller-supplied system message")
                continue
            self._messages.append(message)

    @property
    def messages(self) -> List[Message]:
        """Get all messages in conversation history."""
        return self._messages.copy()

    def add_user_message(self, content: str) -> Message:
        message = Message(role="user", content=content)
        self._messages.append(message)
        return message

    def add_assistant_message(self, content: str) -> Message:
        message = Message(role="assistant", content=content)
        self._messages.append(message)
        return message

    def message_count(self) -> int:
        return len(self._messages)


def last_user_content(messages: List[Message]) -> Optional[str]:
    """Content of the most recent user message in ``messages``."""
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return None
