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

"""Configuration management for Cognitive."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cognitive.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# CENTRALIZED PATH CONFIGURATION
# =============================================================================
# Project-local state is stored in {workspace}/.cognitive/
# Global configuration is stored in ~/.cognitive/
# =============================================================================

COGNITIVE_DIR_NAME = os.getenv("COGNITIVE_DIR_NAME", ".cognitive")
GLOBAL_COGNITIVE_DIR = Path.home() / COGNITIVE_DIR_NAME

# Snapshot file name carries the format version
SYMBOL_SNAPSHOT_FILE = "symbols-v1.bin"
TODO_FILE = "todos.json"


class ProjectPaths:
    """Centralized path management for a workspace.

    Directory structure:
        {workspace}/.cognitive/
        ├── symbols-v1.bin       # Persisted symbol index snapshot
        └── todos.json           # Workspace todo list

        ~/.cognitive/
        └── settings.yaml        # Optional global settings overlay
    """

    def __init__(self, project_root: Optional[Path] = None, dir_name: str = COGNITIVE_DIR_NAME):
        """Initialize paths for a workspace.

        Args:
            project_root: Workspace root directory. Defaults to current working directory.
            dir_name: Name of the hidden state directory
        """
        self._project_root = Path(project_root) if project_root else Path.cwd()
        self._dir_name = dir_name

    @property
    def project_root(self) -> Path:
        """Get workspace root directory."""
        return self._project_root

    @property
    def state_dir(self) -> Path:
        """Get workspace-local hidden state directory."""
        return self._project_root / self._dir_name

    @property
    def symbol_snapshot(self) -> Path:
        """Get persisted symbol index path."""
        return self.state_dir / SYMBOL_SNAPSHOT_FILE

    @property
    def todo_file(self) -> Path:
        """Get workspace todo document path."""
        return self.state_dir / TODO_FILE

    @property
    def global_settings(self) -> Path:
        """Get global settings.yaml path."""
        return GLOBAL_COGNITIVE_DIR / "settings.yaml"


class Settings(BaseSettings):
    """Main application settings.

    Every field can be overridden with a ``COGNITIVE_``-prefixed environment
    variable, e.g. ``COGNITIVE_MAX_ITERATIONS=5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="COGNITIVE_",
        env_file=".env" if not os.getenv("COGNITIVE_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    default_model: str = "qwen2.5-coder:7b"
    default_temperature: float = 0.7
    default_max_tokens: int = 4096

    # API Keys
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Endpoints
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    ollama_base_url: str = "http://127.0.0.1:11434"

    # Conversation loop
    max_iterations: int = Field(default=10, ge=1)
    completion_marker: str = Field(default="## FINAL ANSWER", min_length=1)
    max_tool_result_chars: int = Field(default=100_000, ge=1)
    max_listed_symbols: int = Field(default=15, ge=1)

    # Symbol search
    search_result_limit: int = Field(default=50, ge=1)
    short_query_length: int = Field(default=3, ge=1)

    # Indexing (0 = let the executor choose)
    index_workers: int = Field(default=0, ge=0)

    # File-system search results cap
    max_search_results: int = Field(default=500, ge=1)

    state_dir_name: str = COGNITIVE_DIR_NAME

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level names."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    def project_paths(self, workspace: Optional[Union[str, Path]]) -> ProjectPaths:
        """Return state paths for ``workspace`` using the configured directory name."""
        return ProjectPaths(Path(workspace) if workspace else None, dir_name=self.state_dir_name)


def _load_yaml_overlay(path: Path) -> Dict[str, Any]:
    """Read a YAML settings overlay, returning an empty mapping if absent."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid settings file {path}: {e}", cause=e) from e

    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings overlay {path}: expected a mapping")
        return {}
    return data


def load_settings(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> Settings:
    """Load application settings.

    Precedence (highest first): explicit ``overrides``, environment
    variables, the YAML overlay, field defaults.

    Args:
        config_file: Optional YAML overlay. Defaults to ~/.cognitive/settings.yaml
        **overrides: Explicit field values

    Returns:
        Settings instance
    """
    path = Path(config_file) if config_file else ProjectPaths().global_settings
    overlay = _load_yaml_overlay(path)

    # Environment variables win over the overlay
    env_names = {
        key for key in Settings.model_fields if f"COGNITIVE_{key.upper()}" in os.environ
    }
    values = {k: v for k, v in overlay.items() if k not in env_names}
    values.update(overrides)
    return Settings(**values)
