"""Main CLI entry point using Typer."""

import sys

import anyio
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from termhost import __version__

app = typer.Typer(
    name="termhost",
    help="termhost - PTY session host for terminal front-ends",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]termhost[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    termhost - spawn PTY sessions and stream them to windows.
    """
    from termhost.core.config import get_settings
    from termhost.core.logging import configure_logging

    configure_logging(get_settings())


@app.command()
def serve(
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on"),
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind to"),
) -> None:
    """
    Start the session host server.

    Windows connect to the /ws WebSocket endpoint.

    Example:
        termhost serve
        termhost serve --port 9000
    """
    import uvicorn

    from termhost.api.main import app as api_app
    from termhost.core.config import get_settings

    settings = get_settings()
    bind_host = host or settings.host
    bind_port = port or settings.port

    console.print(
        Panel(
            f"[bold]WebSocket:[/bold] ws://{bind_host}:{bind_port}/ws\n"
            f"[bold]Health:[/bold]    http://{bind_host}:{bind_port}/health",
            title="[bold cyan]termhost[/bold cyan]",
            border_style="cyan",
        )
    )

    uvicorn.run(api_app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


@app.command()
def themes() -> None:
    """
    List the themes found in the themes directory.
    """
    from termhost.themes.provider import ConfigThemeProvider

    provider = ConfigThemeProvider()
    found = provider.get_themes()

    if not found:
        console.print(f"[yellow]No themes found in {provider.themes_dir}[/yellow]")
        return

    table = Table(title="Themes")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Description")

    for theme in found:
        table.add_row(theme.id, theme.name, theme.description or "-")

    console.print(table)


@app.command()
def config() -> None:
    """
    Show the effective configuration snapshot.
    """
    from termhost.themes.provider import ConfigThemeProvider

    snapshot = ConfigThemeProvider().get_full_config_snapshot()

    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in snapshot.model_dump().items():
        table.add_row(key, str(value))

    console.print(table)


@app.command()
def run(
    command: str = typer.Argument(..., help="Command to run in a PTY"),
    args: list[str] | None = typer.Argument(None, help="Arguments for the command"),
    columns: int = typer.Option(80, "--columns", "-c", help="Terminal width"),
    rows: int = typer.Option(24, "--rows", "-r", help="Terminal height"),
) -> None:
    """
    Run a command through the session manager and stream its output.

    Example:
        termhost run ls -- -la
    """
    from termhost.channel.messages import PtyClose, PtyOutput, parse_message
    from termhost.core.context import AppContext
    from termhost.core.exceptions import SpawnError

    async def execute() -> None:
        context = AppContext.create()
        finished = anyio.Event()

        async def write_to_console(text: str) -> None:
            message = parse_message(text)
            if isinstance(message, PtyOutput):
                sys.stdout.write(message.data)
                sys.stdout.flush()
            elif isinstance(message, PtyClose):
                finished.set()

        channel = context.router.open_window(write_to_console)
        try:
            await context.manager.create(channel.window_id, command, args or [], columns, rows)
        except SpawnError as e:
            console.print(f"[bold red]{e}[/bold red]")
            await context.shutdown()
            raise typer.Exit(code=1) from e

        await finished.wait()
        await channel.join()
        await context.shutdown()

    anyio.run(execute)


if __name__ == "__main__":
    app()
