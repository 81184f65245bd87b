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

"""Shared pytest fixtures and configuration."""

import pytest

from cognitive.config.settings import Settings


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from environment variables and .env files.

    Keeps real API keys and endpoint overrides from leaking into tests.
    """
    monkeypatch.setenv("COGNITIVE_SKIP_ENV_FILE", "1")

    for var in (
        "COGNITIVE_OPENAI_API_KEY",
        "COGNITIVE_GEMINI_API_KEY",
        "COGNITIVE_OPENAI_BASE_URL",
        "COGNITIVE_GEMINI_BASE_URL",
        "COGNITIVE_OLLAMA_BASE_URL",
        "COGNITIVE_DEFAULT_MODEL",
        "COGNITIVE_MAX_ITERATIONS",
        "COGNITIVE_LOG_LEVEL",
        "COGNITIVE_STATE_DIR_NAME",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def settings() -> Settings:
    """Default settings with a single indexing worker."""
    return Settings(index_workers=1)


@pytest.fixture
def workspace(tmp_path):
    """Small multi-language workspace."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "store.py").write_text(
        "class Store:\n"
        '    """Key value store."""\n'
        "\n"
        "    def save(self, key, value):\n"
        "        pass\n"
        "\n"
        "    def saveFile(self, path):\n"
        "        pass\n"
        "\n"
        "\n"
        "def autosave():\n"
        "    pass\n"
    )
    (root / "src" / "app.ts").write_text(
        "export class App {\n"
        "  start(): void {\n"
        "    run();\n"
        "  }\n"
        "}\n"
        "\n"
        "export function run() {\n"
        "  return 1;\n"
        "}\n"
    )
    (root / "README.md").write_text("# Project\n\nIntro.\n\n## Usage\n\nRun it.\n")
    (root / "notes.txt").write_text("not indexed\n")
    return root
