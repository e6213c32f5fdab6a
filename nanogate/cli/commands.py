"""
nanogate CLI: the `nanogate` command.

Commands:
  nanogate onboard                 Write default config and create the workspace
  nanogate gateway                 Serve the HTTP API and run the agent consumer
  nanogate agent [-m MESSAGE]      One-shot message or interactive REPL
  nanogate sessions list|show|clear
  nanogate providers               Registered LLM providers
"""

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from nanogate import __logo__, __version__
from nanogate.bus.events import Message
from nanogate.config.loader import get_config_path, load_config, save_config
from nanogate.config.schema import Config
from nanogate.providers.registry import ProviderRegistry
from nanogate.session.manager import SessionManager
from nanogate.utils.helpers import ensure_dir, setup_logging

console = Console()

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}


def _load(ctx: click.Context) -> Config:
    config = load_config(ctx.obj.get("config_path"))
    setup_logging(config.logging)
    return config


@click.group()
@click.version_option(__version__)
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Config file (default: $NANOGATE_CONFIG or ~/.nanogate/config.json)")
@click.pass_context
def app(ctx: click.Context, config_path: Path | None):
    """nanogate: personal AI assistant gateway."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@app.command()
@click.pass_context
def onboard(ctx: click.Context):
    """Write a default config and create the workspace."""
    path = ctx.obj.get("config_path") or get_config_path()
    if path.exists() and not click.confirm(f"Config already exists at {path}. Overwrite?", default=False):
        config = load_config(path)
    else:
        config = Config()
        save_config(config, path)
        console.print(f"[green]✓[/green] Created config at {path}")

    workspace = ensure_dir(config.workspace_path)
    ensure_dir(workspace / "sessions")
    console.print(f"[green]✓[/green] Workspace at {workspace}")
    console.print(f"\n{__logo__} nanogate is ready!")
    console.print(f"  1. Add an API key under [cyan]providers[/cyan] in {path}")
    console.print('  2. Chat: [cyan]nanogate agent -m "Hello!"[/cyan]')


@app.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", default=None, type=int, help="Port (default from config)")
@click.pass_context
def gateway(ctx: click.Context, host: str | None, port: int | None):
    """Serve the HTTP API; channels and the agent consumer run alongside."""
    import uvicorn

    from nanogate.api.app import create_app
    from nanogate.gateway import Gateway

    config = _load(ctx)
    host = host or config.gateway.host
    port = port or config.gateway.port

    console.print(f"{__logo__} Starting nanogate gateway on {host}:{port}...")
    runtime = Gateway(config)
    uvicorn.run(create_app(runtime), host=host, port=port, log_level=config.logging.level.lower())


@app.command()
@click.option("-m", "--message", default=None, help="Message to send (omit for interactive mode)")
@click.option("-u", "--user", "user_id", default="user", help="User ID (session is channel-type:user)")
@click.option("--channel-type", default="cli", help="Channel type recorded in the session ID")
@click.option("--markdown/--no-markdown", default=True, help="Render replies as Markdown")
@click.pass_context
def agent(ctx: click.Context, message: str | None, user_id: str, channel_type: str, markdown: bool):
    """Talk to the agent directly."""
    from nanogate.gateway import Gateway

    config = _load(ctx)
    runtime = Gateway(config)

    def _print_reply(content: str) -> None:
        console.print(f"\n[cyan]{__logo__} nanogate[/cyan]")
        console.print(Markdown(content) if markdown else content)
        console.print()

    async def _ask(text: str) -> str:
        envelope = Message.create(content=text, channel_type=channel_type, user_id=user_id)
        with console.status("[dim]thinking...[/dim]", spinner="dots"):
            return await runtime.agent.process(envelope)

    if message:
        _print_reply(asyncio.run(_ask(message)))
        return

    console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or Ctrl+C to quit)\n")

    async def _repl() -> None:
        while True:
            try:
                text = await asyncio.to_thread(console.input, "[bold blue]You:[/bold blue] ")
            except (EOFError, KeyboardInterrupt):
                break
            text = text.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break
            _print_reply(await _ask(text))

    try:
        asyncio.run(_repl())
    except KeyboardInterrupt:
        pass
    console.print("\nGoodbye!")


@app.group()
def sessions():
    """Session management."""


def _session_manager(ctx: click.Context) -> SessionManager:
    config = load_config(ctx.obj.get("config_path"))
    return SessionManager(config.workspace_path)


@sessions.command("list")
@click.pass_context
def sessions_list(ctx: click.Context):
    """List stored sessions."""
    manager = _session_manager(ctx)
    names = sorted(manager.list_sessions())
    if not names:
        console.print("No sessions yet.")
        return
    table = Table(title=f"Sessions ({len(names)} total)")
    table.add_column("Session", style="bold")
    table.add_column("File")
    for name in names:
        table.add_row(name, str(manager.sessions_dir / f"{name}.jsonl"))
    console.print(table)


@sessions.command("show")
@click.argument("session_id")
@click.option("-n", "--limit", default=20, type=int, help="Most recent turns to show")
@click.pass_context
def sessions_show(ctx: click.Context, session_id: str, limit: int):
    """Show the most recent turns of a session."""
    manager = _session_manager(ctx)
    history = manager.get_history(session_id, limit)
    if not history:
        console.print(f"[yellow]No history for {session_id}[/yellow]")
        return
    for turn in history:
        style = "bold blue" if turn.role.value == "user" else "cyan"
        console.print(f"[{style}]{turn.role.value}[/{style}]: {turn.content}")


@sessions.command("clear")
@click.argument("session_id")
@click.pass_context
def sessions_clear(ctx: click.Context, session_id: str):
    """Delete a session's history."""
    manager = _session_manager(ctx)
    if manager.clear_history(session_id):
        console.print(f"[green]Session {session_id} cleared.[/green]")
    else:
        console.print(f"[yellow]Session {session_id} not found.[/yellow]")


@app.command()
@click.pass_context
def providers(ctx: click.Context):
    """List registered LLM providers and whether a key is configured."""
    config = load_config(ctx.obj.get("config_path"))
    registry = ProviderRegistry()

    table = Table(title="Providers")
    table.add_column("Name", style="bold")
    table.add_column("Keywords")
    table.add_column("Env key")
    table.add_column("Gateway")
    table.add_column("Base URL")
    table.add_column("Key")
    for spec in registry.all_providers():
        provider_config = config.get_provider(spec.name)
        configured = bool(provider_config and provider_config.api_key) or registry.has_api_key(spec)
        table.add_row(
            spec.name,
            ", ".join(spec.keywords),
            spec.env_key,
            "yes" if spec.is_gateway else "",
            spec.base_url,
            "[green]✓[/green]" if configured else "[dim]-[/dim]",
        )
    console.print(table)
    default = registry.get_default_provider()
    if default:
        console.print(f"Default provider: [cyan]{default.name}[/cyan]; model [cyan]{config.agents.defaults.model}[/cyan]")


if __name__ == "__main__":
    app()
