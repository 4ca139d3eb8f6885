"""Status command - current release and process health"""

from dataclasses import asdict
from typing import Optional

import click
from rich.table import Table

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.services.process_manager import PM2Manager

RECENT_RELEASES = 5


class StatusCommand(TargetCommand):
    def __init__(
        self,
        target_name: Optional[str] = None,
        config_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(
            target_name, config_path=config_path, verbose=verbose, json_output=json_output
        )

    def execute(self) -> None:
        target = self.load_target()
        self.show_header(
            title="Status",
            target=self.target_name,
            details={"Host": target.host, "URL": target.url},
        )

        store = self.release_store()
        current = store.current_id()
        releases = store.list_releases()
        process = PM2Manager(self.ssh, target).status()

        if self.json_output:
            self.output_json(
                {
                    "target": self.target_name,
                    "current": current,
                    "releases": releases[:RECENT_RELEASES],
                    "process": asdict(process) if process else None,
                    "url": target.url,
                }
            )
            return

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")
        table.add_row("Release", current or "[yellow]none[/yellow]")

        if process:
            color = "green" if process.status == "online" else "red"
            table.add_row("Status", f"[{color}]{process.status}[/{color}]")
            table.add_row("Uptime", process.uptime)
            table.add_row("Memory", process.memory)
            table.add_row("CPU", process.cpu)
            table.add_row("Restarts", str(process.restarts))
        else:
            table.add_row("Status", "[yellow]not running[/yellow]")

        self.console.print(table)

        if releases:
            self.console.print("\n[bold]Recent releases[/bold]")
            for release in releases[:RECENT_RELEASES]:
                marker = "[green]→[/green]" if release == current else " "
                self.console.print(f" {marker} {release}")
        self.console.print()


@click.command(name="status")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def status(target, config_path, verbose, json_output):
    """
    Show the current release and app process

    \b
    Examples:
      bunbox-deploy status
      bunbox-deploy production:status --json
    """
    cmd = StatusCommand(
        target, config_path=config_path, verbose=verbose, json_output=json_output
    )
    cmd.run()
