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

"""Centralized error handling for Cognitive.

Every failure raised by the package derives from ``CognitiveError``. The
short correlation id on each instance lets one failure be followed across
log lines.

Failure policy:
- ProviderError and EventEmissionError end the current turn
- ToolError is reported back to the model and the turn continues
- SymbolIndexError is logged and stale index data is kept
- ToolCallParseError never leaves the tool-call extractor
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Coarse failure classes used in logs and ``to_dict`` output."""

    # Provider errors
    PROVIDER_CONNECTION = "provider_connection"
    PROVIDER_AUTH = "provider_auth"
    PROVIDER_API = "provider_api"
    PROVIDER_INVALID_RESPONSE = "provider_invalid_response"

    # Tool errors
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_VALIDATION = "tool_validation"
    TOOL_EXECUTION = "tool_execution"

    # Resource errors
    FILE_NOT_FOUND = "file_not_found"
    FILE_IO = "file_io"
    WORKSPACE_MISSING = "workspace_missing"

    # Index and protocol errors
    INDEX = "index"
    PARSE = "parse"
    EVENT_EMISSION = "event_emission"

    # Configuration
    CONFIG_INVALID = "config_invalid"

    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """How loudly a failure should be reported."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# =============================================================================
# Exception Types
# =============================================================================


class CognitiveError(Exception):
    """Root of the package exception tree.

    ``details`` holds structured context for logging; ``cause`` keeps the
    underlying exception when one was wrapped.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the error."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        result = f"[{self.correlation_id}] {self.message}"
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


# -----------------------------------------------------------------------------
# Provider errors (fatal to the turn, never retried)
# -----------------------------------------------------------------------------


class ProviderError(CognitiveError):
    """A model backend could not produce a reply."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.details["provider"] = provider
        self.details["model"] = model
        if status_code is not None:
            self.details["status_code"] = status_code


class ProviderRequestError(ProviderError):
    """Transport failure such as a refused connection or a timeout."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_CONNECTION,
            recovery_hint="Check that the endpoint URL is reachable and the model server is up.",
            **kwargs,
        )


class ProviderApiError(ProviderError):
    """The provider answered with a non-success HTTP status."""

    def __init__(
        self,
        status_code: int,
        body: str,
        provider: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            f"API error ({status_code}): {body}",
            provider=provider,
            status_code=status_code,
            category=ErrorCategory.PROVIDER_API,
            **kwargs,
        )
        self.body = body


class ProviderMalformedResponseError(ProviderError):
    """Provider returned a body that could not be decoded."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_INVALID_RESPONSE,
            recovery_hint="The endpoint may not speak the expected API; check the base URL and model name.",
            **kwargs,
        )


class ProviderAuthError(ProviderError):
    """Hosted provider called without credentials."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            provider=provider,
            category=ErrorCategory.PROVIDER_AUTH,
            recovery_hint="Configure the API key for this provider before sending a message.",
            **kwargs,
        )


# -----------------------------------------------------------------------------
# Tool errors (reported to the model, never fatal)
# -----------------------------------------------------------------------------


class ToolError(CognitiveError):
    """Errors related to tool execution.

    The plain message is what the model reads, so ``str()`` omits the
    correlation id.
    """

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.TOOL_EXECUTION)
        super().__init__(message, **kwargs)
        self.tool_name = tool_name
        self.details["tool_name"] = tool_name

    def __str__(self) -> str:
        return self.message


class MissingParameterError(ToolError):
    """A required tool parameter is absent or has the wrong type."""

    def __init__(self, parameter: str, tool_name: Optional[str] = None, **kwargs: Any):
        super().__init__(
            f"Missing {parameter}",
            tool_name=tool_name,
            category=ErrorCategory.TOOL_VALIDATION,
            **kwargs,
        )
        self.parameter = parameter
        self.details["parameter"] = parameter


class NotFoundError(ToolError):
    """A file or todo entry referenced by a tool does not exist."""

    def __init__(self, message: str, tool_name: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            tool_name=tool_name,
            category=ErrorCategory.FILE_NOT_FOUND,
            **kwargs,
        )


class ToolIOError(ToolError):
    """Underlying file-system operation failed."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            tool_name=tool_name,
            category=ErrorCategory.FILE_IO,
            **kwargs,
        )
        self.path = path
        self.details["path"] = path


class NoWorkspaceError(ToolError):
    """The tool needs an open workspace and none is set."""

    def __init__(self, tool_name: Optional[str] = None, **kwargs: Any):
        super().__init__(
            "No workspace open",
            tool_name=tool_name,
            category=ErrorCategory.WORKSPACE_MISSING,
            recovery_hint="Open a workspace folder first.",
            **kwargs,
        )


class UnknownToolError(ToolError):
    """Tool name is not part of the allow-list."""

    def __init__(self, tool_name: str, **kwargs: Any):
        super().__init__(
            f"Unknown tool: {tool_name}",
            tool_name=tool_name,
            category=ErrorCategory.TOOL_NOT_FOUND,
            **kwargs,
        )


# -----------------------------------------------------------------------------
# Index, parser and event errors
# -----------------------------------------------------------------------------


class SymbolIndexError(CognitiveError):
    """Outline extraction or snapshot I/O failure."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.INDEX,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.path = path
        self.details["path"] = path


class ToolCallParseError(CognitiveError):
    """Malformed tool-call fragment in model output."""

    def __init__(self, message: str, fragment: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.DEBUG,
            **kwargs,
        )
        self.fragment = fragment
        if fragment is not None:
            self.details["fragment"] = fragment[:200]


class EventEmissionError(CognitiveError):
    """The event sink failed to accept an event."""

    def __init__(self, event_type: str, **kwargs: Any):
        super().__init__(
            f"Failed to emit event: {event_type}",
            category=ErrorCategory.EVENT_EMISSION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs,
        )
        self.event_type = event_type
        self.details["event_type"] = event_type


class ConfigurationError(CognitiveError):
    """Invalid settings file or value."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.CONFIG_INVALID,
            **kwargs,
        )
        self.config_key = config_key
        self.details["config_key"] = config_key
