"""CLI commands for PaceBot."""

import asyncio
import time
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pacebot import __version__, __logo__

app = typer.Typer(
    name="pacebot",
    help=f"{__logo__} PaceBot - human-paced auto-replies",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} PaceBot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """PaceBot - human-paced auto-replies."""
    pass


def _load(config_path: Path | None):
    """Load config or exit with a readable error."""
    from pacebot.config.loader import load_config

    try:
        return load_config(config_path)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(1)


# ============================================================================
# Chat
# ============================================================================


@app.command()
def chat(
    conversation: str = typer.Option("console@c.us", "--as", help="Conversation id to chat as"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Chat with the full paced pipeline from the terminal."""
    from pacebot.channels.console import ConsoleTransport
    from pacebot.providers.litellm_provider import LiteLLMBackend
    from pacebot.runtime import PaceBotRuntime
    from pacebot.utils.logging import setup_logging

    config = _load(config_path)
    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.log_path,
        rotation=config.logging.rotation,
    )

    transport = ConsoleTransport(conversation_id=conversation, console=console)
    runtime = PaceBotRuntime(config, transport, LiteLLMBackend(config.provider))

    console.print(f"{__logo__} Chatting as [cyan]{conversation}[/cyan] with {config.provider.model}")
    console.print("[dim]Type messages, Ctrl-D to quit.[/dim]")

    try:
        asyncio.run(runtime.run())
    except KeyboardInterrupt:
        # asyncio.run already ran runtime.shutdown() via run()'s finally
        console.print("\nBye.")


# ============================================================================
# Snapshot maintenance
# ============================================================================


@app.command()
def status(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show snapshot and configuration status."""
    from pacebot.memory.store import MemoryStore
    from pacebot.quota.store import QuotaStore

    config = _load(config_path)

    memory = MemoryStore(max_turns=config.memory.max_memory_per_chat)
    memory.load(config.memory_path)
    quotas = QuotaStore()
    quotas.load(config.quota_path)

    table = Table(title=f"{__logo__} PaceBot Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    stats = memory.get_stats()
    table.add_row("Data dir", str(config.data_path))
    table.add_row("Model", config.provider.model)
    table.add_row("Conversations in memory", str(stats["conversations"]))
    table.add_row("Stored turns", str(stats["total_turns"]))
    table.add_row("Quota records", str(len(quotas)))
    table.add_row(
        "Cooldown",
        f"{config.limits.min_reply_delay:.0f}-{config.limits.max_reply_delay:.0f}s",
    )
    table.add_row(
        "Per conversation",
        f"{config.limits.max_messages_per_user_hourly}/h, "
        f"{config.limits.max_messages_per_user_daily}/day",
    )
    table.add_row(
        "Global",
        f"{config.limits.max_messages_per_minute}/min, {config.limits.max_messages_per_hour}/h",
    )
    table.add_row(
        "Operator",
        config.auto_reply.operator_id or "[yellow]not set[/yellow]",
    )

    console.print(table)


@app.command()
def sweep(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Remove quota records idle for more than 24 hours."""
    from pacebot.quota.store import QuotaStore

    config = _load(config_path)
    quotas = QuotaStore()
    quotas.load(config.quota_path)

    removed = quotas.sweep(time.time())
    if removed:
        quotas.flush(config.quota_path)
    console.print(f"[green]✓[/green] Removed {len(removed)} idle quota records")


@app.command()
def reset(
    conversation: str = typer.Argument(..., help="Conversation id to forget"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Forget a conversation's memory and quota record."""
    from pacebot.memory.store import MemoryStore
    from pacebot.quota.store import QuotaStore

    config = _load(config_path)

    if not yes and not typer.confirm(f"Forget everything about {conversation}?"):
        raise typer.Exit()

    memory = MemoryStore(max_turns=config.memory.max_memory_per_chat)
    memory.load(config.memory_path)
    quotas = QuotaStore()
    quotas.load(config.quota_path)

    cleared_memory = memory.clear(conversation)
    cleared_quota = quotas.remove(conversation)
    memory.flush(config.memory_path)
    quotas.flush(config.quota_path)

    if cleared_memory or cleared_quota:
        console.print(f"[green]✓[/green] Reset {conversation}")
    else:
        console.print(f"[yellow]Nothing stored for {conversation}[/yellow]")


if __name__ == "__main__":
    app()
