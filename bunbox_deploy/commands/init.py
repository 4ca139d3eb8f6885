"""
Init command - write a starter deploy file
"""

import re

import click

from bunbox_deploy.base import BaseCommand
from bunbox_deploy.constants import DEFAULT_CONFIG_FILE
from bunbox_deploy.core.config_loader import generate_config_template


class InitCommand(BaseCommand):
    """Create bunbox.deploy.yml in the project root."""

    def __init__(
        self,
        app_name: str = None,
        force: bool = False,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        # PM2 names and paths only take a safe character set
        raw = app_name or self.project_root.name
        self.app_name = re.sub(r"[^A-Za-z0-9._-]+", "-", raw).strip("-") or "myapp"
        self.force = force

    def execute(self) -> None:
        config_path = self.project_root / DEFAULT_CONFIG_FILE

        if config_path.exists() and not self.force:
            if self.json_output:
                self.output_json(
                    {"error": f"{DEFAULT_CONFIG_FILE} already exists", "path": str(config_path)},
                    exit_code=1,
                )
            self.exit_with_error(
                f"{DEFAULT_CONFIG_FILE} already exists (use --force to overwrite)"
            )

        config_path.write_text(generate_config_template(self.app_name))

        if self.json_output:
            self.output_json({"created": str(config_path), "app": self.app_name})
            return

        self.print_success(f"Created {DEFAULT_CONFIG_FILE}")
        self.console.print("\n[bold]Next steps:[/bold]")
        self.console.print(f"  1. Edit [cyan]{DEFAULT_CONFIG_FILE}[/cyan] with your server details")
        self.console.print("  2. Run [cyan]bunbox-deploy setup[/cyan] to prepare the server")
        self.console.print("  3. Run [cyan]bunbox-deploy deploy[/cyan] to ship the first release\n")


@click.command(name="init")
@click.option("-n", "--name", "app_name", help="App name (default: directory name)")
@click.option("--force", is_flag=True, help="Overwrite an existing deploy file")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def init(app_name, force, json_output):
    """
    Create a bunbox.deploy.yml template

    \b
    Examples:
      bunbox-deploy init
      bunbox-deploy init --name api --force
    """
    cmd = InitCommand(app_name=app_name, force=force, json_output=json_output)
    cmd.run()
