"""
Rollback command - point current at an older release
"""

from typing import Optional

import click

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.deployment import RollbackController
from bunbox_deploy.services.deploy_lock import DeployLock
from bunbox_deploy.services.process_manager import PM2Manager


class RollbackCommand(TargetCommand):
    """Move current back by a number of releases and reload the app."""

    def __init__(
        self,
        target_name: Optional[str] = None,
        config_path: Optional[str] = None,
        steps: int = 1,
        yes: bool = False,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(
            target_name, config_path=config_path, verbose=verbose, json_output=json_output
        )
        self.steps = steps
        self.yes = yes

    def execute(self) -> None:
        target = self.load_target()
        self.show_header(
            title="Rollback",
            target=self.target_name,
            details={"Host": target.host, "Steps": self.steps},
        )

        logger = self.init_logger(self.target_name, "rollback")
        ssh = self.ensure_ssh()

        controller = RollbackController(
            self.release_store(),
            supervisor=PM2Manager(ssh, target),
            lock=DeployLock(ssh, target.deploy_path, operation="rollback"),
        )

        plan = controller.plan(self.steps)
        if logger:
            logger.step("Planning rollback")
            logger.success(f"{plan.current} -> {plan.target}")

        if not self.yes and not self.json_output:
            if not self.confirm(f"Roll back to release [cyan]{plan.target}[/cyan]?", default=True):
                self.print_warning("Rollback cancelled")
                return

        if logger:
            logger.step("Activating release")
        plan = controller.rollback(self.steps)
        if logger:
            logger.success(f"Release {plan.target} is live")

        if self.json_output:
            self.output_json(
                {"target": self.target_name, "from": plan.current, "to": plan.target}
            )
            return

        self.console.print()
        self.print_success(f"Rolled back to {plan.target}")
        self._logs_hint()


@click.command(name="rollback")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("-s", "--steps", type=int, default=1, show_default=True, help="Releases to go back")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def rollback(target, config_path, steps, yes, verbose, json_output):
    """
    Roll back to a previous release

    \b
    Examples:
      bunbox-deploy rollback production
      bunbox-deploy production:rollback --steps 2 -y

    Only the current pointer moves; no files are transferred.
    """
    cmd = RollbackCommand(
        target,
        config_path=config_path,
        steps=steps,
        yes=yes,
        verbose=verbose,
        json_output=json_output,
    )
    cmd.run()
