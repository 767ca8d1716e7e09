"""
toolrelay CLI - Interactive chat with tool-calling over local providers.

Run `toolrelay <provider path or folder> [port]` to connect the providers,
start the HTTP façade and open an interactive session.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from toolrelay import __version__
from toolrelay.api.http import HttpServer, create_app
from toolrelay.backends.base import OllamaBackend
from toolrelay.core.conversation import ConversationEngine
from toolrelay.core.orchestrator import Orchestrator
from toolrelay.providers.registry import ConnectionManager, discover_provider_paths
from toolrelay.validation.config import Config, ConfigError, ToolRelayConfig

console = Console()
logger = logging.getLogger(__name__)

EXIT_KEYWORD = "quit"


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich so they interleave with console output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def build_orchestrator(settings: ToolRelayConfig, provider_paths: List[str]) -> Orchestrator:
    """Connect providers, create the model backend and prime the conversation."""
    manager = ConnectionManager(
        node_command=settings.providers.node_command,
        python_command=settings.providers.python_command,
        request_timeout=settings.providers.request_timeout,
        env=settings.providers.env,
    )
    manager.connect_all(provider_paths)

    backend = OllamaBackend(
        model=settings.model.model,
        base_url=settings.model.api_url,
        timeout=settings.model.timeout,
    )
    orchestrator = Orchestrator(manager, ConversationEngine(backend))
    orchestrator.prime()
    return orchestrator


class ToolRelayREPL:
    """
    Interactive line-reading loop.

    Typing the literal ``quit`` ends the session. Lines starting with ``/``
    are local commands; everything else is a query.
    """

    def __init__(self, orchestrator: Orchestrator, settings: ToolRelayConfig):
        self.orchestrator = orchestrator
        self.settings = settings
        self.running = True

    def _print_banner(self):
        console.print()
        console.print(Panel(
            f"[bold blue]toolrelay v{__version__}[/bold blue]\n"
            f"[dim]Model: {self.settings.model.model} @ {self.settings.model.api_url}[/dim]\n"
            f"[dim]Tools: {', '.join(c.name for c in self.orchestrator.capabilities) or 'none'}[/dim]\n"
            f"[dim]Type your queries or '{EXIT_KEYWORD}' to exit. /help for commands.[/dim]",
            border_style="blue",
            padding=(1, 2),
        ))

    def _print_help(self):
        help_text = """
[bold]Commands:[/bold]
  /help, /?     Show this help
  /tools        List connected tools
  /history      Show the conversation so far
  /reset        Start a fresh conversation
  quit          Exit toolrelay
"""
        console.print(Panel(help_text.strip(), title="toolrelay Help", border_style="blue"))

    def _print_tools(self):
        capabilities = self.orchestrator.capabilities
        if not capabilities:
            console.print("[dim]No tools connected[/dim]")
            return

        table = Table(show_header=True, header_style="bold", border_style="blue")
        table.add_column("Tool", style="bold cyan")
        table.add_column("Description", style="white")
        for capability in capabilities:
            table.add_row(capability.name, capability.description.split("\n")[0][:100])
        console.print(table)

    def _print_history(self):
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=4)
        table.add_column("Role", style="cyan", width=10)
        table.add_column("Content", style="white")
        for i, message in enumerate(self.orchestrator.conversation.history, 1):
            content = message.content.replace("\n", " ")
            table.add_row(str(i), message.role, content[:120])
        console.print(table)

    def _handle_command(self, command: str) -> None:
        name = command.strip().lower()
        if name in ("/help", "/?"):
            self._print_help()
        elif name == "/tools":
            self._print_tools()
        elif name == "/history":
            self._print_history()
        elif name == "/reset":
            self.orchestrator.reset_conversation()
            console.print("[green]Conversation reset[/green]")
        else:
            console.print(f"[yellow]Unknown command: {command}[/yellow] (try /help)")

    def _execute_query(self, query: str) -> None:
        with console.status("[bold blue]Thinking...[/bold blue]"):
            response = self.orchestrator.process_query(query)
        console.print()
        console.print(response)

    def run(self):
        """Run the interactive loop until quit or EOF."""
        self._print_banner()

        while self.running:
            try:
                console.print("\n[bold green]Query: [/bold green]", end="")
                user_input = input().strip()

                if not user_input:
                    continue
                if user_input.lower() == EXIT_KEYWORD:
                    break
                if user_input.startswith("/"):
                    self._handle_command(user_input)
                    continue

                self._execute_query(user_input)

            except (EOFError, KeyboardInterrupt):
                console.print()
                break


def _cli_overrides(
    port: Optional[int],
    model: Optional[str],
    api_url: Optional[str],
    no_http: bool,
) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if model:
        overrides.setdefault("model", {})["model"] = model
    if api_url:
        overrides.setdefault("model", {})["api_url"] = api_url
    if port is not None:
        overrides.setdefault("http", {})["port"] = port
    if no_http:
        overrides.setdefault("http", {})["enabled"] = False
    return overrides


@click.command()
@click.argument("provider_path", required=False)
@click.argument("port", required=False, type=int)
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Config file to use")
@click.option("--model", help="Model identifier (overrides OLLAMA_MODEL)")
@click.option("--api-url", help="Model backend base URL (overrides OLLAMA_API_URL)")
@click.option("--no-http", is_flag=True, help="Do not start the HTTP server")
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.option("--version", "-v", is_flag=True, help="Show version")
def cli(
    provider_path: Optional[str],
    port: Optional[int],
    config_path: Optional[Path],
    model: Optional[str],
    api_url: Optional[str],
    no_http: bool,
    verbose: bool,
    version: bool,
) -> None:
    """
    toolrelay - chat with a local model that can call tool providers.

    PROVIDER_PATH is a provider script (.js or .py) or a folder whose
    sub-directories hold provider bundles (e.g. packages/*/build/index.js).

    \b
    Examples:
        toolrelay packages/weather/build/index.js
        toolrelay packages 3000
        toolrelay packages --model llama3.1 --no-http
    """
    if version:
        console.print(f"toolrelay v{__version__}")
        return

    load_dotenv()
    configure_logging(verbose)

    try:
        settings = Config.load(config_path, _cli_overrides(port, model, api_url, no_http)).merged
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    targets = [provider_path] if provider_path else settings.providers.paths
    if not targets:
        console.print("Usage: toolrelay <path_to_server_script> [port]", markup=False)
        sys.exit(1)

    provider_paths: List[str] = []
    for target in targets:
        provider_paths.extend(discover_provider_paths(target, settings.providers.bundle_patterns))

    with console.status("[bold blue]Connecting to tool servers...[/bold blue]"):
        orchestrator = build_orchestrator(settings, provider_paths)

    console.print(
        f"[dim]Connected to server with tools: "
        f"{[c.name for c in orchestrator.capabilities]}[/dim]"
    )
    if not orchestrator.conversation.backend.validate_connection():
        console.print(
            f"[yellow]Model backend at {settings.model.api_url} is not answering; "
            f"queries will fail until it is up.[/yellow]"
        )

    orchestrator.subscribe(lambda response: logger.debug("[Event] Response updated"))

    server: Optional[HttpServer] = None
    if settings.http.enabled:
        server = HttpServer(
            create_app(orchestrator), host=settings.http.host, port=settings.http.port
        )
        server.start()
        base = f"http://{settings.http.host}:{settings.http.port}"
        console.print(f"[dim]Access the latest response at {base}/response[/dim]")
        console.print(f"[dim]Submit queries at {base}/query (POST)[/dim]")

    try:
        ToolRelayREPL(orchestrator, settings).run()
    finally:
        if server is not None:
            server.stop()
        orchestrator.close()


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
