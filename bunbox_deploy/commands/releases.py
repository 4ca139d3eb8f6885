"""Releases command - list releases on a target"""

from typing import Optional

import click
from rich.table import Table

from bunbox_deploy.base import TargetCommand


class ReleasesCommand(TargetCommand):
    """Show release history on the target, newest first."""

    def __init__(
        self,
        target_name: Optional[str] = None,
        config_path: Optional[str] = None,
        limit: Optional[int] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(
            target_name, config_path=config_path, verbose=verbose, json_output=json_output
        )
        self.limit = limit

    def execute(self) -> None:
        target = self.load_target()
        self.show_header(
            title="Releases",
            target=self.target_name,
            details={"Path": target.releases_dir},
        )

        store = self.release_store()
        releases = store.list_releases()
        current = store.current_id()
        pending = set(store.pending_releases())
        if self.limit:
            releases = releases[: self.limit]

        if self.json_output:
            self.output_json(
                {
                    "target": self.target_name,
                    "current": current,
                    "releases": [
                        {
                            "id": r,
                            "current": r == current,
                            "pending": r in pending,
                            "path": target.release_dir(r),
                        }
                        for r in releases
                    ],
                }
            )
            return

        if not releases:
            self.print_warning("No releases found")
            self.print_dim("Run 'bunbox-deploy deploy' to create the first one")
            return

        table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
        table.add_column("#", style="dim", justify="right")
        table.add_column("Release", style="white")
        table.add_column("Status")

        for idx, release in enumerate(releases, 1):
            if release == current:
                state = "[green]● current[/green]"
            elif release in pending:
                state = "[yellow]pending[/yellow]"
            else:
                state = "[dim]available[/dim]"
            table.add_row(str(idx), release, state)

        self.console.print(table)
        self.console.print(
            f"\n[dim]Keeping {target.keep_releases} release(s). "
            "Use 'bunbox-deploy rollback' to switch.[/dim]\n"
        )


@click.command(name="releases")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("-n", "--limit", type=int, help="Number of releases to show")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def releases(target, config_path, limit, verbose, json_output):
    """
    Show release history

    \b
    Examples:
      bunbox-deploy releases production
      bunbox-deploy production:releases --json

    \b
    Marks the current release and releases that never went live (pending).
    """
    cmd = ReleasesCommand(
        target,
        config_path=config_path,
        limit=limit,
        verbose=verbose,
        json_output=json_output,
    )
    cmd.run()
