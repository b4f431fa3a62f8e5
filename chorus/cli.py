"""CLI entry point for Chorus."""

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from chorus import __version__
from chorus.config import CONFIG_FILE, get_settings, load_settings
from chorus.conversation import ChatMessage, GroupState, InMemoryPersistence
from chorus.conversation.models import Group
from chorus.errors import ChorusError
from chorus.models import EchoBackend
from chorus.orchestrator import EventType, Orchestrator, consolidate_history
from chorus.utils.logging import setup_logging

app = typer.Typer(
    name="chorus",
    help="Multi-agent group chat orchestration",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]Chorus[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Chorus - orchestrate conversations between several AI agents."""
    try:
        settings = load_settings(config_path=config, force_reload=config is not None)
    except ChorusError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    setup_logging(settings.logging, verbose=verbose)


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"[bold]Chorus[/bold] version {__version__}")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))
    console.print(f"[dim]User config: {CONFIG_FILE}[/dim]")

    table = Table(title="Orchestration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    orch = settings.orchestration
    table.add_row("Supervisor timeout", f"{orch.supervisor_timeout}s")
    table.add_row("Agent timeout", f"{orch.agent_timeout}s")
    table.add_row("Supervisor temperature", str(orch.supervisor_temperature))
    table.add_row("Supervisor history", f"{orch.supervisor_history_limit} messages")
    table.add_row("Mention match", orch.mention_match)
    table.add_row("Mention case sensitive", "✓" if orch.mention_case_sensitive else "✗")
    for speed in ("fast", "medium", "slow"):
        band = settings.delay_band(speed)
        table.add_row(f"Delay ({speed})", f"{band.min_seconds}-{band.max_seconds}s")
    console.print(table)

    table = Table(title="Group Defaults")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for name, value in settings.group_defaults.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)

    console.print(f"\n[bold]Log level:[/bold] {settings.logging.level}")


def _load_group_file(path: Path) -> dict[str, Any]:
    """Load a group description (YAML or JSON).

    Expected keys: ``group`` (title, description, config), ``members`` and
    ``messages``. Keys may be snake_case or camelCase.
    """
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        console.print(f"[red]Could not parse {path}: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print(f"[red]{path} must contain a mapping[/red]")
        raise typer.Exit(1)
    return data


@app.command()
def transcript(
    file: Path = typer.Argument(..., help="Group file (YAML or JSON)"),
) -> None:
    """Print the consolidated transcript of a group's history."""
    data = _load_group_file(file)
    try:
        state = GroupState(Group(), data.get("members") or [])
        messages = [ChatMessage.model_validate(m) for m in data.get("messages") or []]
    except (ChorusError, ValueError) as e:
        console.print(f"[red]Invalid group file: {e}[/red]")
        raise typer.Exit(1)

    text = consolidate_history(messages, state.roster(), get_settings().orchestration.user_label)
    if not text:
        console.print("[dim]No messages.[/dim]")
        return
    console.print(text, markup=False, highlight=False)


@app.command()
def simulate(
    file: Path = typer.Argument(..., help="Group file (YAML or JSON)"),
    message: str = typer.Argument(..., help="User message to send"),
    mention: Optional[list[str]] = typer.Option(
        None,
        "--mention",
        "-m",
        help="Agent id that must respond (repeatable)",
    ),
    delay: float = typer.Option(0.0, "--delay", help="Seconds between streamed words"),
) -> None:
    """Run one round against the local echo backend."""
    data = _load_group_file(file)
    try:
        asyncio.run(_simulate(data, message, mention or [], delay))
    except ChorusError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


async def _simulate(data: dict[str, Any], message: str, mentions: list[str], delay: float) -> None:
    """Create the group, seed its history and stream one round."""
    settings = get_settings()
    persistence = InMemoryPersistence()
    orchestrator = Orchestrator(EchoBackend(chunk_delay=delay), settings, persistence)

    group = data.get("group") or {}
    snapshot = await orchestrator.create_group(
        title=group.get("title", ""),
        description=group.get("description", ""),
        config=group.get("config"),
        members=data.get("members") or [],
    )
    for raw in data.get("messages") or []:
        seeded = ChatMessage.model_validate(raw)
        await persistence.create_message(seeded.model_copy(update={"group_id": snapshot.group_id}))

    titles = {m.agent_id: m.display_name for m in snapshot.members}

    async for event in orchestrator.dispatch(snapshot.group_id, message, mentions=mentions or None):
        if event.type == EventType.SUPERVISOR_THINKING:
            console.print("[dim]Supervisor is thinking...[/dim]")
        elif event.type == EventType.SUPERVISOR_DECISION and event.decision:
            speakers = ", ".join(titles.get(a, a) for a in event.decision.next_speakers) or "nobody"
            console.print(f"[dim]Next: {speakers} ({event.decision.reason})[/dim]")
        elif event.type == EventType.RESPONSE_START:
            console.print(f"[bold cyan]{titles.get(event.agent_id, event.agent_id)}[/bold cyan]: ", end="")
        elif event.type == EventType.RESPONSE_CHUNK:
            console.print(event.content, end="", markup=False, highlight=False)
        elif event.type == EventType.RESPONSE_COMPLETE:
            console.print()
        elif event.type == EventType.ERROR:
            console.print(f"[red]Error: {event.error}[/red]")
        elif event.type == EventType.ROUND_COMPLETE:
            usage = f", {event.usage.total_tokens} tokens" if event.usage else ""
            console.print(f"[dim]Round complete: {len(event.messages)} message(s){usage}[/dim]")


if __name__ == "__main__":
    app()
