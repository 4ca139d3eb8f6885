"""
bunbox-deploy CLI - UI Components
Standardized headers and panels
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

LOGO = "bunbox-deploy"

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"


def _prefix() -> str:
    return f" [bold color(214)]{LOGO}[/bold color(214)] [dim]›[/dim]"


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    target: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized command header.

    Args:
        title: Main title (e.g., "Deploy", "Rollback")
        subtitle: Optional subtitle line
        target: Deploy target name (if applicable)
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Deploy",
            target="production",
            details={"Host": "deploy@1.2.3.4", "Path": "/var/www/app"}
        )
    """
    if console is None:
        console = Console()

    console.print(f"{_prefix()} [bold white]{title}[/bold white]")

    if subtitle:
        console.print(f"{_prefix()} [dim]{subtitle}[/dim]")

    if target:
        console.print(f"{_prefix()} Target: [cyan]{target}[/cyan]")

    if details:
        for key, value in details.items():
            console.print(f"{_prefix()} {key}: [cyan]{value}[/cyan]")

    console.print()


def print_dns_instructions(console: Console, domain: str, ip: str) -> None:
    """Show the A record the user has to create for a new domain."""
    table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Type", style="yellow")
    table.add_column("Name", style="white")
    table.add_column("Value", style="green")
    table.add_row("A", domain, ip)

    console.print()
    console.print(
        Panel(
            table,
            title="[bold]DNS setup required[/bold]",
            subtitle="[dim]Caddy obtains the certificate once DNS resolves[/dim]",
            border_style=WARNING_COLOR,
            expand=False,
        )
    )
    console.print()


def print_deploy_summary(
    console: Console,
    release_id: str,
    url: str,
    duration: float,
    warnings: Optional[list] = None,
) -> None:
    """Final summary panel after a deploy."""
    lines = [
        f"[bold]Release:[/bold]  [cyan]{release_id}[/cyan]",
        f"[bold]URL:[/bold]      [cyan]{url}[/cyan]",
        f"[bold]Time:[/bold]     {duration:.1f}s",
    ]
    border = SUCCESS_COLOR
    if warnings:
        border = WARNING_COLOR
        lines.append("")
        lines.extend(f"[yellow]⚠[/yellow] {w}" for w in warnings)

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Deployed[/bold]",
            border_style=border,
            expand=False,
        )
    )
