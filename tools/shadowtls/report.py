"""Rich terminal output: menu, install summary, config and status display."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

console = Console()

MENU_OPTIONS = [
    ("1", "Install ShadowTLS"),
    ("2", "Uninstall ShadowTLS"),
    ("3", "View config"),
    ("4", "Back to previous menu"),
    ("0", "Exit"),
]


def show_menu() -> None:
    """Display the management menu."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="yellow")
    for key, label in MENU_OPTIONS:
        table.add_row(key, label)
    console.print()
    console.print(Panel(table, title="ShadowTLS Management", border_style="bright_cyan"))


def show_step(text: str) -> None:
    console.print(f"  [cyan]{text}[/cyan]")


def show_error(text: str) -> None:
    console.print(f"  [red]{text}[/red]")


def show_install_summary(summary) -> None:
    """Print server and client parameters after a successful install.

    Every value comes from the written ServiceConfig so the display
    matches what the service actually runs with.
    """
    config = summary.config

    server = Table(show_header=False, box=None)
    server.add_column(style="dim")
    server.add_column()
    server.add_row("Listen port", str(summary.listen_port))
    server.add_row("Snell backend port", str(summary.upstream_port))
    server.add_row("Release", summary.release.version_tag)

    client = Text()
    client.append(f"shadow-tls-password={config.password}\n", style="green")
    client.append(f"shadow-tls-sni={config.server_name}\n", style="green")
    client.append(f"shadow-tls-version={summary.version}", style="green")

    console.print()
    console.rule("[green]ShadowTLS installed[/green]")
    console.print(Panel(server, title="Server", border_style="yellow"))
    console.print(Panel(client, title="Surge/Stash parameters", border_style="yellow"))
    console.print(Panel(summary.client_line, title="Full config example", border_style="yellow"))
    console.print(f"  [green]Config saved to: {summary.config_path}[/green]")
    console.print("  [green]Service started and enabled at boot[/green]")


def show_config(raw: str, status: str) -> None:
    """Print the config file verbatim followed by systemctl status."""
    console.print()
    console.rule("[cyan]ShadowTLS config[/cyan]")
    console.print(Syntax(raw, "json", theme="ansi_dark", word_wrap=True))
    console.rule("[cyan]Service status[/cyan]")
    console.print(Text(status.rstrip() or "(no status output)"))


def show_uninstalled(removed: list[Path]) -> None:
    for path in removed:
        console.print(f"  [dim]removed {path}[/dim]")
    console.print("  [green]ShadowTLS uninstalled[/green]")
