"""CLI entry point for switchboard"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="switchboard",
    help="Route prompts across LLM providers with automatic fallback",
    add_completion=False,
)
fallback_app = typer.Typer(help="Show or edit the provider fallback order")
app.add_typer(fallback_app, name="fallback")

console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def _build_registry(directory: Path | None = None, tools: bool = True):
    from switchboard.config.config import Settings
    from switchboard.provider.registry import create_registry
    from switchboard.tool.registry import ToolRegistry

    settings = Settings.load()
    if directory is not None:
        settings.working_dir = directory
    executor = ToolRegistry(context={"cwd": settings.working_dir}) if tools else None
    return create_registry(settings, tools=executor), settings


@app.command()
def chat(
    message: str = typer.Argument(..., help="Message to send"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider key to start with"),
    system: str = typer.Option(None, "--system", "-s", help="System prompt"),
    directory: Path = typer.Option(None, "--dir", "-d", help="Working directory for tools"),
    effort: str = typer.Option("high", "--effort", help="low, medium, high or max"),
    session: str = typer.Option(None, "--resume", help="Agent session ID to resume"),
    no_tools: bool = typer.Option(False, "--no-tools", help="Disable local tools"),
):
    """Send a single message (non-interactive)"""
    from switchboard.provider.base import QueryOptions, Resumable, StatelessHistory

    if effort not in ("low", "medium", "high", "max"):
        console.print(f"[red]Invalid effort level: {effort}[/red]")
        raise typer.Exit(2)

    registry, settings = _build_registry(directory, tools=not no_tools)
    if provider and not registry.switch_to(provider):
        console.print(f"[red]Unknown provider: {provider}[/red]")
        raise typer.Exit(1)

    options = QueryOptions(
        prompt=message,
        system_prompt=system,
        continuation=Resumable(session) if session else StatelessHistory(),
        working_dir=settings.working_dir,
        effort=effort,
        cancel=asyncio.Event(),
    )

    async def run_chat() -> bool:
        ok = False
        async for chunk in registry.query_with_fallback(options):
            if chunk.type == "text":
                console.print(chunk.delta, end="", markup=False, highlight=False)
            elif chunk.type == "tool_use":
                console.print(f"\n[dim]> {chunk.tool_name} {chunk.tool_input}[/dim]")
            elif chunk.type == "fallback":
                console.print(
                    f"\n[yellow]{chunk.failed_provider} failed ({chunk.error}), "
                    f"switching to {chunk.provider_name}[/yellow]"
                )
            elif chunk.type == "done":
                console.print()
                if chunk.session_id:
                    console.print(f"[dim]session: {chunk.session_id}[/dim]")
                ok = True
            elif chunk.type == "error":
                console.print(f"\n[red]{chunk.error}[/red]")
        return ok

    if not asyncio.run(run_chat()):
        raise typer.Exit(1)


@app.command()
def providers():
    """List registered providers"""
    registry, _ = _build_registry(tools=False)

    table = Table(title="Providers")
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    table.add_column("Model", style="dim")
    table.add_column("Status")

    for listing in registry.list_all():
        key = f"* {listing.key}" if listing.active else listing.key
        table.add_row(key, listing.name, listing.model, listing.status)

    console.print(table)


@app.command()
def status():
    """Show the active model, providers and fallback chain"""
    registry, _ = _build_registry(tools=False)
    console.print(registry.status_report(), markup=False, highlight=False)
    console.print()
    console.print(f"[bold]Fallback chain:[/bold] {' -> '.join(registry.attempt_order())}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(4096, "--port", "-p"),
    directory: Path = typer.Option(None, "--dir", "-d"),
):
    """Start HTTP API server"""
    from switchboard.server.server import start_server

    registry, _ = _build_registry(directory)
    start_server(registry, host=host, port=port)


@app.command()
def login(
    family: str = typer.Argument(..., help="openai, google, nvidia, groq or openrouter"),
    api_key: str = typer.Option(..., "--key", prompt=True, hide_input=True),
):
    """Store an API key for a provider family"""
    from switchboard.auth.credentials import KNOWN_FAMILIES, CredentialStore

    if family not in KNOWN_FAMILIES:
        console.print(f"[red]Unknown provider family: {family}[/red]")
        raise typer.Exit(1)
    CredentialStore().set(family, {"api_key": api_key})
    console.print(f"[green]Saved API key for {family}[/green]")


@app.command()
def logout(family: str = typer.Argument(...)):
    """Remove a stored API key"""
    from switchboard.auth.credentials import CredentialStore

    CredentialStore().delete(family)
    console.print(f"[green]Removed credentials for {family}[/green]")


def _order_store(env_file: Path | None):
    from switchboard.config.fallback_order import FallbackOrderStore

    return FallbackOrderStore(env_file=env_file)


EnvFileOption = typer.Option(None, "--env-file", help="Also rewrite PRIMARY_PROVIDER/FALLBACK_PROVIDERS here")


def _print_order(store):
    console.print(store.format_order(), markup=False, highlight=False)


@fallback_app.command("show")
def fallback_show():
    """Print the current fallback order"""
    _print_order(_order_store(None))


@fallback_app.command("set")
def fallback_set(
    primary: str = typer.Argument(...),
    fallbacks: list[str] = typer.Argument(None),
    env_file: Path = EnvFileOption,
):
    """Replace the whole order"""
    store = _order_store(env_file)
    store.set(primary, fallbacks or [], updated_by="cli")
    _print_order(store)


@fallback_app.command("up")
def fallback_up(key: str = typer.Argument(...), env_file: Path = EnvFileOption):
    """Move a provider one place earlier"""
    store = _order_store(env_file)
    store.move_up(key, updated_by="cli")
    _print_order(store)


@fallback_app.command("down")
def fallback_down(key: str = typer.Argument(...), env_file: Path = EnvFileOption):
    """Move a provider one place later"""
    store = _order_store(env_file)
    store.move_down(key, updated_by="cli")
    _print_order(store)


@fallback_app.command("add")
def fallback_add(key: str = typer.Argument(...), env_file: Path = EnvFileOption):
    """Append a provider to the fallbacks"""
    store = _order_store(env_file)
    store.add(key, updated_by="cli")
    _print_order(store)


@fallback_app.command("remove")
def fallback_remove(key: str = typer.Argument(...), env_file: Path = EnvFileOption):
    """Drop a provider from the fallbacks"""
    store = _order_store(env_file)
    store.remove(key, updated_by="cli")
    _print_order(store)


def main():
    app()


if __name__ == "__main__":
    main()
