"""
A terminal client for chatting with the Finch service.
"""
import json
from typing import Optional

import requests
import typer
from prompt_toolkit import prompt as ptk_prompt
from prompt_toolkit.formatted_text import FormattedText
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

# --- Configuration ---
DEFAULT_API_URL = "http://127.0.0.1:8080/api/v1"


# --- Rich Console Initialization ---
console = Console()
app = typer.Typer(
    name="finch-cli",
    help="A terminal client for chatting with the Finch service.",
    add_completion=False,
)


# --- API Interaction Functions ---

def check_service(api_url: str) -> None:
    """Exits with a hint when the service cannot be reached."""
    try:
        response = requests.get(f"{api_url}/healthz", timeout=5)
        response.raise_for_status()
    except requests.RequestException as e:
        console.print(f"[bold red]Error:[/bold red] Could not connect to the service at {api_url}.")
        console.print("Please ensure the Finch service is running: [bold]python -m finch_service.app[/bold]")
        console.print(f"Details: {e}")
        raise typer.Exit(1)


def get_history(api_url: str, user_id: str) -> list:
    try:
        response = requests.get(f"{api_url}/users/{user_id}/history", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        console.print(f"[bold red]Error fetching history for {user_id}:[/bold red] {e}")
        return []


def clear_history(api_url: str, user_id: str) -> None:
    try:
        response = requests.delete(f"{api_url}/users/{user_id}/history", timeout=10)
        response.raise_for_status()
        console.print(f"✅ History cleared for [yellow]{user_id}[/yellow]")
    except requests.RequestException as e:
        console.print(f"[bold red]Error clearing history:[/bold red] {e}")


def get_tools(api_url: str) -> list:
    try:
        response = requests.get(f"{api_url}/tools", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        console.print(f"[bold red]Error fetching tools:[/bold red] {e}")
        return []


def display_history(messages: list):
    """Renders the chat history as panels."""
    if not messages:
        console.print("[dim]No history yet.[/dim]")
        return

    console.print(Panel("Chat History", style="bold blue", expand=False))
    for msg in messages:
        role = msg.get("role", "unknown")
        content = msg.get("content", "")
        if role == "user":
            console.print(Panel(Text(content, style="cyan"), title="You", title_align="left", border_style="cyan"))
        else:
            console.print(Panel(Text(content, style="green"), title="Finch", title_align="left", border_style="green"))
    console.print()


def display_tools(tools: list):
    table = Table(title="Available Tools", border_style="blue")
    table.add_column("Tool", style="bold cyan")
    table.add_column("Description")
    table.add_column("Parameters", style="dim")
    for schema in tools:
        fn = schema.get("function", schema)
        props = fn.get("parameters", {}).get("properties", {})
        table.add_row(fn.get("name", "?"), fn.get("description", ""), ", ".join(props))
    console.print(table)


def stream_reply(api_url: str, user_id: str, message: str, debug: bool) -> None:
    """Posts one message to the streaming endpoint and renders its events."""
    with requests.post(
        f"{api_url}/chat/stream",
        json={"user_id": user_id, "message": message},
        stream=True,
        timeout=(5, None),
    ) as response:
        response.raise_for_status()

        text_started = False
        spinner_active = True

        # Start spinner while waiting for first response
        with Live(Spinner("dots", text="[dim]Waiting for response...[/dim]"), console=console, refresh_per_second=10) as live:
            for line in response.iter_lines():
                # Stop spinner on first event
                if spinner_active:
                    live.stop()
                    spinner_active = False

                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    if debug:
                        console.print(f"[red]Error parsing JSON: {line.decode('utf-8', errors='replace')}[/red]")
                    continue

                evt_type = event.get("type")
                evt_data = event.get("data", {})

                if debug:
                    console.print(f"[dim]Received event: {event}[/dim]")

                if evt_type == "text":
                    delta = evt_data.get("delta", "")
                    if not text_started:
                        console.print("\n[bold green]Finch:[/bold green]")
                        text_started = True
                    console.print(delta, end="", style="green")

                elif evt_type == "tool_started":
                    if text_started:
                        console.print()
                    tool_name = evt_data.get("tool_name")
                    console.print(Panel(f"Calling tool: [bold yellow]{tool_name}[/bold yellow]", expand=False, border_style="yellow"))

                elif evt_type == "final":
                    # Nothing was streamed when the reply came only from the final call
                    if not text_started:
                        console.print("\n[bold green]Finch:[/bold green]")
                        console.print(evt_data.get("content", ""), style="green")

                elif evt_type == "error":
                    if text_started:
                        console.print()
                    console.print(Panel(f"Error: {evt_data.get('message')}", title="Error", border_style="bold red"))

                elif evt_type == "done":
                    if text_started:
                        console.print()
                    if debug:
                        console.print("[dim][Turn complete][/dim]")


@app.command()
def main(
    user_id: str = typer.Option(
        "local",
        "--user",
        "-u",
        help="User id whose conversation and preferences to use.",
    ),
    api_url: str = typer.Option(
        DEFAULT_API_URL,
        "--url",
        help="Base URL of the Finch API.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode to show detailed event information.",
    ),
):
    """
    Main entry point for the Finch CLI.
    """
    api_url = api_url.rstrip("/")
    console.print(Panel.fit(
        "[bold blue]Welcome to Finch![/bold blue]\n"
        "Your assistant can read files, list directories and run shell commands.",
        style="bold blue"
    ))
    check_service(api_url)
    display_history(get_history(api_url, user_id))

    info_table = Table.grid(padding=1, expand=True)
    info_table.add_column()
    info_table.add_column(justify="right")
    info_table.add_row(
        f"User: [yellow]{user_id}[/yellow]",
        "Type [bold cyan]\\history[/bold cyan] or [bold cyan]\\clear[/bold cyan] to manage history"
    )
    info_table.add_row(
        f"Debug mode: {'[bold green]enabled[/bold green]' if debug else '[dim]disabled[/dim]'}",
        "Type [bold cyan]\\tools[/bold cyan] to list tools"
    )
    info_table.add_row(
        "",
        "Type [bold cyan]\\exit[/bold cyan] or [bold cyan]\\quit[/bold cyan] to end"
    )
    console.print(Panel(info_table, title="Chat Info", border_style="dim"))

    # --- Main chat loop ---
    while True:
        try:
            prompt_message = [
                ('bold cyan', 'You '),
                ('', '(Alt+Enter to send)\n')
            ]
            user_prompt = ptk_prompt(FormattedText(prompt_message), multiline=True)
        except (EOFError, KeyboardInterrupt):
            console.print("👋 Goodbye!")
            break

        command = user_prompt.strip().lower()
        if not command:
            continue
        if command in ["\\exit", "\\quit"]:
            console.print("👋 Goodbye!")
            break
        if command == "\\history":
            display_history(get_history(api_url, user_id))
            continue
        if command == "\\clear":
            clear_history(api_url, user_id)
            continue
        if command == "\\tools":
            display_tools(get_tools(api_url))
            continue

        try:
            stream_reply(api_url, user_id, user_prompt, debug)
        except requests.RequestException as e:
            console.print(f"\n[bold red]Error:[/bold red] Could not get response from server. {e}")
        finally:
            console.rule()


if __name__ == "__main__":
    app()
