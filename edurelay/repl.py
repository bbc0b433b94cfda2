"""Interactive chat REPL against the edurelay gateway.

Each line the user types is sent as one turn; the reply is rendered with
a Rich Live panel that is redrawn after every streamed delta. Lines
starting with ``/`` are commands. Launch with ``edurelay chat``.
"""

from __future__ import annotations

import asyncio
import logging

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from edurelay.client.chat import GatewayClient
from edurelay.client.conversation import Conversation
from edurelay.errors import (
    AuthenticationRequired,
    CreditsExhausted,
    RateLimited,
    RelayError,
)
from edurelay.personas import PERSONA_TITLES
from edurelay.schemas.config import ClientSettings
from edurelay.schemas.messages import Persona, Role
from edurelay.schemas.streaming import StreamChunk

logger = logging.getLogger(__name__)

console = Console()

_COMMANDS = {
    "/help": "Show this help",
    "/persona": "Switch persona (starts a new chat): /persona exam_prep",
    "/clear": "Start a new chat with the same persona",
    "/history": "Print the conversation so far",
    "/exit": "Leave the chat",
}


def describe_error(error: RelayError) -> str:
    """Rich markup for a relay error, worded for students."""
    if isinstance(error, AuthenticationRequired):
        return (
            f"[bold red]Sign in required.[/bold red] {error.message}\n"
            "[dim]Set EDURELAY_ACCESS_TOKEN to your session token and try again.[/dim]"
        )
    if isinstance(error, RateLimited):
        return "[bold yellow]Rate limit reached.[/bold yellow] Please try again in a moment."
    if isinstance(error, CreditsExhausted):
        return "[bold yellow]AI credits exhausted.[/bold yellow] Please contact your administrator."
    return f"[bold red]Error:[/bold red] {error.message}"


def _reply_panel(content: str, title: str, *, streaming: bool) -> Panel:
    return Panel(
        Markdown(content or "…"),
        title=f"[bold cyan]{title}[/bold cyan]",
        subtitle="[dim]streaming…[/dim]" if streaming else None,
        border_style="cyan" if streaming else "green",
    )


class ChatREPL:
    """Interactive REPL loop for one chat view."""

    def __init__(self, settings: ClientSettings, persona: Persona = Persona.TUTOR) -> None:
        self._settings = settings
        self.conversation = Conversation(persona=persona)

    @property
    def title(self) -> str:
        persona = self.conversation.persona or Persona.TUTOR
        return PERSONA_TITLES.get(persona, str(persona))

    def run(self) -> None:
        """Main REPL loop.

        Raises:
            AuthenticationRequired: The session is missing or expired.
        """
        console.print(Panel(
            f"[bold]{self.title}[/bold]\n[dim]Type a question, or /help for commands.[/dim]",
            border_style="blue",
        ))

        while True:
            try:
                prompt_text = Text()
                prompt_text.append("\nyou", style="bold green")
                prompt_text.append(" ▸ ", style="green")
                user_input = console.input(prompt_text).strip()
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue
            if user_input.startswith("/"):
                if not self._dispatch(user_input):
                    break
                continue

            self.send(user_input)

    def send(self, text: str) -> StreamChunk | None:
        """Stream one turn, rendering after every delta.

        Returns the final chunk, or None if the turn failed. A missing or
        expired session is reported and re-raised.
        """
        try:
            return asyncio.run(self._send(text))
        except AuthenticationRequired as e:
            console.print(describe_error(e))
            raise
        except KeyboardInterrupt:
            console.print("[dim]Reply cancelled.[/dim]")
        except RelayError as e:
            console.print(describe_error(e))
        return None

    async def _send(self, text: str) -> StreamChunk:
        with Live(
            _reply_panel("", self.title, streaming=True),
            console=console,
            refresh_per_second=12,
            transient=False,
        ) as live:

            def render(chunk: StreamChunk) -> None:
                live.update(_reply_panel(
                    chunk.accumulated, self.title, streaming=not chunk.is_complete,
                ))

            async with GatewayClient.from_settings(self._settings) as client:
                return await client.stream_reply(self.conversation, text, on_chunk=render)

    def _dispatch(self, line: str) -> bool:
        """Handle a slash command. Returns False when the REPL should exit."""
        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command in ("/exit", "/quit"):
            console.print("[dim]Goodbye.[/dim]")
            return False
        if command == "/help":
            table = Table(show_header=False, box=None)
            for name, help_text in _COMMANDS.items():
                table.add_row(f"[bold]{name}[/bold]", help_text)
            console.print(table)
        elif command == "/persona":
            self._switch_persona(arg)
        elif command == "/clear":
            self.conversation.clear()
            console.print("[dim]Started a new chat.[/dim]")
        elif command == "/history":
            self._print_history()
        else:
            console.print(f"[red]Unknown command:[/red] {command} (try /help)")
        return True

    def _switch_persona(self, value: str) -> None:
        try:
            persona = Persona(value)
        except ValueError:
            valid = ", ".join(p.value for p in Persona)
            console.print(f"[red]Unknown persona:[/red] {value or '(none)'}. Choose from: {valid}")
            return
        self.conversation = Conversation(persona=persona)
        console.print(f"[dim]Now chatting with[/dim] [bold]{self.title}[/bold]")

    def _print_history(self) -> None:
        messages = self.conversation.messages
        if not messages:
            console.print("[dim]No messages yet.[/dim]")
            return
        for message in messages:
            style = "green" if message.role == Role.USER else "cyan"
            console.print(f"[bold {style}]{message.role}[/bold {style}]: {message.content}")
