"""Unlock command - clear a stale deploy lock"""

import click

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.services.deploy_lock import DeployLock


class UnlockCommand(TargetCommand):
    """Remove the deploy lock left behind by an interrupted run."""

    def __init__(self, target_name=None, config_path=None, yes=False, json_output=False):
        super().__init__(target_name, config_path=config_path, json_output=json_output)
        self.yes = yes

    def execute(self) -> None:
        target = self.load_target()
        lock = DeployLock(self.ensure_ssh(), target.deploy_path, operation="unlock")
        owner = lock.owner()

        if owner and not self.yes and not self.json_output:
            self.console.print(f"Lock held by: [cyan]{owner}[/cyan]")
            if not self.confirm("Remove it? Only do this if no deploy is running", default=False):
                self.print_warning("Lock kept")
                return

        removed = lock.force_release()

        if self.json_output:
            self.output_json({"target": self.target_name, "removed": removed, "owner": owner})
        elif removed:
            self.print_success("Deploy lock removed")
        else:
            self.print_dim("No deploy lock present")


@click.command(name="unlock")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def unlock(target, config_path, yes, json_output):
    """
    Remove a stale deploy lock

    \b
    Examples:
      bunbox-deploy unlock production
    """
    UnlockCommand(target, config_path=config_path, yes=yes, json_output=json_output).run()
