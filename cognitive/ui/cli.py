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

"""Command-line interface for Cognitive."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cognitive import __version__
from cognitive.agent.context import current_os_name
from cognitive.agent.debug_logger import configure_logging_levels
from cognitive.agent.events import (
    EVENT_CHUNK,
    EVENT_TOOL_ERROR,
    EVENT_TOOL_RESULT,
    EVENT_TOOL_START,
    AgentEvent,
)
from cognitive.agent.prompt_builder import SystemPromptContext, build_system_prompt
from cognitive.agent.service import AgentService
from cognitive.codebase.indexer import SymbolIndex
from cognitive.config.settings import Settings, load_settings
from cognitive.core.errors import CognitiveError
from cognitive.providers.base import Message

app = typer.Typer(
    name="cognitive",
    help="Reasoning and retrieval core for an editor-embedded coding assistant",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"Cognitive v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML settings overlay (default: ~/.cognitive/settings.yaml)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Cognitive - agent core with a local symbol index."""
    overrides: Dict[str, Any] = {}
    if log_level:
        overrides["log_level"] = log_level
    try:
        settings = load_settings(config, **overrides)
    except (CognitiveError, ValueError) as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    configure_logging_levels(settings.log_level)
    ctx.obj = settings


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else load_settings()


async def _open_service(settings: Settings, workspace: Optional[Path]) -> AgentService:
    service = AgentService(settings)
    if workspace is not None:
        task = await service.set_workspace(workspace)
        if task is not None:
            await task
    return service


class ConsoleEventSink:
    """Renders agent events on the console."""

    def __init__(self, out: Console):
        self.out = out

    def __call__(self, event: AgentEvent) -> None:
        if event.type == EVENT_CHUNK:
            self.out.print(event.payload, end="", markup=False, highlight=False, soft_wrap=True)
        elif event.type == EVENT_TOOL_START:
            params = json.dumps(event.payload["parameters"])
            self.out.print(f"\n[dim]> {event.payload['name']} {escape(params)}[/]")
        elif event.type == EVENT_TOOL_RESULT:
            self.out.print(f"[green]ok[/] {event.payload['name']} ({len(event.payload['result'])} chars)")
        elif event.type == EVENT_TOOL_ERROR:
            self.out.print(f"[red]error[/] {event.payload['name']}: {escape(event.payload['error'])}")


@app.command()
def chat(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Message to send to the agent"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", help="Workspace folder"),
) -> None:
    """Run one agent turn, streaming the reply and tool activity."""
    settings = _settings(ctx)

    async def run() -> None:
        service = await _open_service(settings, workspace)
        result = await service.chat_stream(
            [Message(role="user", content=message)],
            event_sink=ConsoleEventSink(console),
            model=model,
        )
        console.print()
        console.print(f"[dim]{result.iterations} iteration(s), stopped: {result.stop_reason}[/]")

    try:
        asyncio.run(run())
    except CognitiveError as e:
        console.print(f"\n[bold red]Error:[/] {escape(e.message)}")
        raise typer.Exit(1)


@app.command()
def index(
    ctx: typer.Context,
    workspace: Path = typer.Argument(Path("."), help="Workspace folder to index"),
) -> None:
    """Run an incremental indexing pass and print totals."""
    settings = _settings(ctx)
    symbol_index = SymbolIndex(settings=settings)

    async def run() -> None:
        await symbol_index.load_or_index(workspace)

    try:
        asyncio.run(run())
    except (CognitiveError, OSError) as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)

    stats = symbol_index.get_stats()
    console.print(
        f"Indexed [cyan]{stats['total_files']}[/] files, "
        f"[cyan]{stats['total_symbols']}[/] symbols in {stats['root']}"
    )


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Symbol query, optionally ending in ' in <path>'"),
    workspace: Path = typer.Option(Path("."), "--workspace", "-w", help="Workspace folder"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum results to show"),
) -> None:
    """Search the symbol index of a workspace."""
    settings = _settings(ctx)
    symbol_index = SymbolIndex(settings=settings)
    asyncio.run(symbol_index.load_or_index(workspace))

    results = symbol_index.search(query, limit=limit)
    if not results:
        console.print("[yellow]No symbols found[/]")
        return

    table = Table(title=f"Symbols matching '{query}'")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Location")
    for symbol in results:
        table.add_row(symbol.name, symbol.kind, f"{symbol.file_path}:{symbol.start_line}")
    console.print(table)


@app.command()
def tool(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Tool name, e.g. read_file"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool parameters as a JSON object"),
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", help="Workspace folder"),
) -> None:
    """Execute a single tool and print its result."""
    settings = _settings(ctx)
    try:
        parameters = json.loads(args)
    except ValueError as e:
        console.print(f"[bold red]Error:[/] invalid --args JSON: {escape(str(e))}")
        raise typer.Exit(1)
    if not isinstance(parameters, dict):
        console.print("[bold red]Error:[/] --args must be a JSON object")
        raise typer.Exit(1)

    async def run() -> str:
        service = await _open_service(settings, workspace)
        return await service.execute_tool(name, parameters)

    try:
        output = asyncio.run(run())
    except CognitiveError as e:
        console.print(f"[bold red]Error:[/] {escape(e.message)}")
        raise typer.Exit(1)
    console.print(output, markup=False, highlight=False, soft_wrap=True)


@app.command()
def prompt(
    ctx: typer.Context,
    workspace: Optional[Path] = typer.Option(None, "--workspace", "-w", help="Workspace folder"),
) -> None:
    """Print the system prompt the agent would use."""
    text = build_system_prompt(
        SystemPromptContext(
            user_os=current_os_name(),
            workspace=str(workspace.expanduser().resolve()) if workspace is not None else None,
            completion_marker=_settings(ctx).completion_marker,
        )
    )
    console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def models(ctx: typer.Context) -> None:
    """List models installed on the local Ollama server."""
    service = AgentService(_settings(ctx))
    try:
        installed = asyncio.run(service.list_ollama_models())
    except CognitiveError as e:
        console.print(f"[bold red]Error:[/] {escape(e.message)}")
        raise typer.Exit(1)

    if not installed:
        console.print("[yellow]No models installed[/]")
        return

    table = Table(title="Ollama models")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for model in installed:
        table.add_row(model.name, f"{model.size:,}", model.modified_at)
    console.print(table)


if __name__ == "__main__":
    app()
