"""edurelay CLI: Typer + Rich terminal interface.

Commands: serve, chat, analyze, news, personas, config.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from edurelay import __version__
from edurelay.client.chat import GatewayClient
from edurelay.client.documents import build_analysis_content
from edurelay.errors import AuthenticationRequired, RelayError
from edurelay.personas import PERSONA_TITLES
from edurelay.repl import ChatREPL, describe_error
from edurelay.schemas.messages import Persona
from edurelay.settings import load_client_settings, load_keys_env, load_settings

# Load API keys from ~/.edurelay/keys.env and .env on startup
load_keys_env()

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="edurelay",
    help="Streaming AI tutor gateway and terminal client.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show gateway and client configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"edurelay {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """edurelay: streaming AI tutor gateway and terminal client."""


# ── Helpers ──────────────────────────────────────────────────────


def _load_gateway_settings(config: Path | None):
    """Load gateway settings, exit on error."""
    try:
        return load_settings(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _client_settings(url: str | None, token: str | None):
    settings = load_client_settings()
    updates: dict[str, str] = {}
    if url:
        updates["gateway_url"] = url.rstrip("/")
    if token:
        updates["access_token"] = token
    return settings.model_copy(update=updates) if updates else settings


def _parse_persona(value: str) -> Persona:
    try:
        return Persona(value)
    except ValueError:
        valid = ", ".join(p.value for p in Persona)
        console.print(f"[red]Unknown persona:[/red] '{value}'")
        console.print(f"[dim]Available: {valid}[/dim]")
        raise typer.Exit(1) from None


_NEWS_DETAIL_CHARS = 120


def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 1].rstrip() + "…"


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on"),
    config: Path = typer.Option(
        None, "--config", "-c", help="Path to gateway.toml",
    ),
    log_level: str = typer.Option("info", "--log-level", help="Uvicorn log level"),
) -> None:
    """Run the chat, analysis and news gateway."""
    import uvicorn

    from edurelay.gateway.app import create_app

    settings = _load_gateway_settings(config)
    console.print(Panel(
        f"[bold]edurelay gateway[/bold] on http://{host}:{port}\n"
        f"[dim]Model:[/dim] {settings.display_name} ({settings.model})",
        border_style="blue",
    ))
    uvicorn.run(create_app(settings), host=host, port=port, log_level=log_level)


@app.command()
def chat(
    persona: str = typer.Option(
        "tutor", "--persona", "-P",
        help="tutor, exam_prep, career_guidance or pyq_analysis",
    ),
    url: str = typer.Option(None, "--url", help="Gateway base URL"),
    token: str = typer.Option(None, "--token", help="Session bearer token"),
) -> None:
    """Start an interactive streaming chat."""
    selected = _parse_persona(persona)
    try:
        ChatREPL(_client_settings(url, token), persona=selected).run()
    except AuthenticationRequired:
        raise typer.Exit(1) from None


@app.command()
def analyze(
    files: list[Path] = typer.Argument(
        None, help="Question paper text files (.txt, .md, .csv, .json)",
    ),
    text: str = typer.Option("", "--text", "-t", help="Pasted question paper text"),
    url: str = typer.Option(None, "--url", help="Gateway base URL"),
    token: str = typer.Option(None, "--token", help="Session bearer token"),
) -> None:
    """Analyze one or more question papers."""
    settings = _client_settings(url, token)

    try:
        content = build_analysis_content(files or [], text)
    except RelayError as e:
        console.print(describe_error(e))
        raise typer.Exit(1) from None

    if not content.strip():
        console.print("[red]Please provide question paper files or --text.[/red]")
        raise typer.Exit(1)

    async def _run() -> str:
        async with GatewayClient.from_settings(settings) as client:
            return await client.analyze(content)

    try:
        with console.status("[bold blue]Analyzing question paper…"):
            analysis = asyncio.run(_run())
    except RelayError as e:
        console.print(describe_error(e))
        raise typer.Exit(1) from None

    console.print(Panel(
        Markdown(analysis),
        title="[bold]Question Paper Analysis[/bold]",
        border_style="green",
    ))


@app.command()
def news(
    interests: str = typer.Option(None, "--interests", "-i", help="Topics you care about"),
    url: str = typer.Option(None, "--url", help="Gateway base URL"),
    token: str = typer.Option(None, "--token", help="Session bearer token"),
) -> None:
    """Show career news recommended for your interests."""
    settings = _client_settings(url, token)

    async def _run() -> list[dict]:
        async with GatewayClient.from_settings(settings) as client:
            return await client.recommend_news(interests)

    try:
        items = asyncio.run(_run())
    except RelayError as e:
        console.print(describe_error(e))
        raise typer.Exit(1) from None

    if not items:
        console.print("[dim]No career news available yet.[/dim]")
        return

    table = Table(title="Recommended Career News", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold cyan")
    table.add_column("Category")
    table.add_column("Source", style="dim")
    table.add_column("Details")
    for i, item in enumerate(items, 1):
        table.add_row(
            str(i),
            str(item.get("title", "")),
            str(item.get("category", "")),
            str(item.get("source") or ""),
            _truncate(str(item.get("content") or ""), _NEWS_DETAIL_CHARS),
        )
    console.print(table)


@app.command()
def personas() -> None:
    """List the chat personas."""
    table = Table(title="Personas")
    table.add_column("Key", style="bold cyan")
    table.add_column("Title")
    for persona in Persona:
        table.add_row(persona.value, PERSONA_TITLES[persona])
    console.print(table)


# ── config sub-commands ──────────────────────────────────────────


@config_app.command("show")
def config_show(
    config: Path = typer.Option(
        None, "--config", "-c", help="Path to gateway.toml",
    ),
) -> None:
    """Show the resolved gateway and client settings."""
    settings = _load_gateway_settings(config)
    client = load_client_settings()

    table = Table(title="Gateway Configuration", show_header=False, show_lines=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Provider", settings.provider)
    table.add_row("Model", f"{settings.display_name} ({settings.model})")
    table.add_row("API Key Env", settings.api_key_env)
    if settings.api_base:
        table.add_row("API Base", settings.api_base)
    table.add_row("Timeout", f"{settings.timeout}s")
    table.add_row("Max Retries", str(settings.max_retries))
    table.add_row("Default Persona", settings.default_persona.value)
    table.add_row("Analysis Limit", f"{settings.max_analysis_chars:,} chars")
    table.add_row("News", f"top {settings.news_top_n} of {settings.news_limit}")
    table.add_row("Allowed Origins", ", ".join(settings.allowed_origins))
    table.add_row("Gateway URL", client.gateway_url)
    table.add_row("Access Token", "set" if client.access_token else "[red]not set[/red]")

    console.print(table)


if __name__ == "__main__":
    app()
