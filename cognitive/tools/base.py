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

"""Tool call model, allow-list and typed parameter shapes.

Model output is parsed into ``ToolCall`` objects carrying an open parameter
mapping. Before anything runs, ``parse_parameters`` validates that mapping
into one strongly typed model per tool. Unknown extra keys are ignored so
small drifts in model output do not break a call.

XML-sourced values are scalar-coerced for display (``"42"`` becomes ``42``)
but string-typed fields are always filled from the original text, so
``content="1.10"`` is written as ``1.10``. A JSON number or boolean in a
string-typed field is rejected.
"""

import json
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cognitive.core.errors import MissingParameterError, UnknownToolError


ALLOWED_TOOLS: FrozenSet[str] = frozenset(
    {
        "read_file",
        "write_file",
        "list_dir",
        "search_files",
        "find_by_name",
        "grep",
        "search",
        "search_codebase",
        "index_codebase",
        "todo_add",
        "todo_list",
        "todo_complete",
    }
)


def is_allowed_tool(name: Any) -> bool:
    return isinstance(name, str) and name in ALLOWED_TOOLS


class ToolCall(BaseModel):
    """A structured request to run one allow-listed tool."""

    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    # Trimmed source text of XML-sourced parameters, before scalar coercion
    raw_text: Dict[str, str] = Field(default_factory=dict)

    def dedup_key(self) -> Tuple[str, str]:
        """Identity used to suppress duplicates: name plus canonical parameters."""
        return self.name, json.dumps(self.parameters, sort_keys=True, default=str)


# =============================================================================
# Parameter models
# =============================================================================


class ToolParams(BaseModel):
    """Base for per-tool parameter models."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    @classmethod
    def text_keys(cls) -> List[str]:
        """Parameter keys (names and aliases) of string-typed fields."""
        keys: List[str] = []
        for name, field in cls.model_fields.items():
            if field.annotation in (str, Optional[str]):
                keys.append(name)
                if field.alias:
                    keys.append(field.alias)
        return keys


class ReadFileParams(ToolParams):
    path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None


class WriteFileParams(ToolParams):
    path: str
    content: str


class ListDirParams(ToolParams):
    path: str


class FindByNameParams(ToolParams):
    pattern: str


class SearchParams(ToolParams):
    query: str
    path: str = "."
    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    whole_word: bool = Field(default=False, alias="wholeWord")
    regex: bool = False
    include_pattern: Optional[str] = Field(default=None, alias="includePattern")
    exclude_pattern: Optional[str] = Field(default=None, alias="excludePattern")


class SearchCodebaseParams(ToolParams):
    query: str


class NoParams(ToolParams):
    pass


class TodoAddParams(ToolParams):
    content: str


class TodoCompleteParams(ToolParams):
    id: str


TOOL_PARAMETER_MODELS: Dict[str, Type[ToolParams]] = {
    "read_file": ReadFileParams,
    "write_file": WriteFileParams,
    "list_dir": ListDirParams,
    "search_files": FindByNameParams,
    "find_by_name": FindByNameParams,
    "grep": SearchParams,
    "search": SearchParams,
    "search_codebase": SearchCodebaseParams,
    "index_codebase": NoParams,
    "todo_add": TodoAddParams,
    "todo_list": NoParams,
    "todo_complete": TodoCompleteParams,
}


def _with_source_text(model: Type[ToolParams], call: ToolCall) -> Dict[str, Any]:
    data = dict(call.parameters)
    for key in model.text_keys():
        if key in call.raw_text:
            data[key] = call.raw_text[key]
    return data


def parse_parameters(call: ToolCall) -> ToolParams:
    """Validate ``call.parameters`` into the typed model for ``call.name``.

    Raises:
        UnknownToolError: If the name has no parameter model
        MissingParameterError: If a field is missing or has the wrong type
    """
    model = TOOL_PARAMETER_MODELS.get(call.name)
    if model is None:
        raise UnknownToolError(call.name)
    try:
        return model.model_validate(_with_source_text(model, call))
    except ValidationError as e:
        errors = e.errors()
        field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else "parameters"
        raise MissingParameterError(field, tool_name=call.name, cause=e) from e
