"""
Deploy command - ship a new release to a target
"""

from typing import Optional

import click

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.deployment import (
    DeploymentPipeline,
    DeploymentResult,
    DeployOptions,
    PipelineListener,
)
from bunbox_deploy.exceptions import BunboxDeployError
from bunbox_deploy.logger import DeployLogger, console
from bunbox_deploy.services.transfer import effective_excludes
from bunbox_deploy.ui_components import print_deploy_summary, print_dns_instructions


class ConsoleReporter(PipelineListener):
    """Renders pipeline progress through the command logger."""

    def __init__(self, logger: DeployLogger):
        self.logger = logger

    def on_stage_start(self, stage: str, label: str) -> None:
        self.logger.step(label)

    def on_stage_success(self, stage: str, message: str) -> None:
        self.logger.success(message)

    def on_stage_skipped(self, stage: str, reason: str) -> None:
        self.logger.skipped(reason)

    def on_stage_warning(self, stage: str, warning: BunboxDeployError) -> None:
        self.logger.warning(warning.message)

    def on_stage_failure(self, stage: str, error: BunboxDeployError) -> None:
        self.logger.log_error(f"[{stage}] {error.message}", context=error.context)

    def on_info(self, message: str) -> None:
        self.logger.log(message)
        if not self.logger.verbose:
            console.print(f"[dim]{message}[/dim]\n")


class DeployCommand(TargetCommand):
    """Run the deployment pipeline against one target."""

    def __init__(
        self,
        target_name: Optional[str] = None,
        config_path: Optional[str] = None,
        options: Optional[DeployOptions] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(
            target_name, config_path=config_path, verbose=verbose, json_output=json_output
        )
        self.options = options or DeployOptions(verbose=verbose)

    def execute(self) -> None:
        target = self.load_target()

        transport = "git" if target.uses_git else "rsync"
        self.show_header(
            title="Deploy",
            subtitle="Dry run" if self.options.dry_run else None,
            target=self.target_name,
            details={
                "Host": f"{target.username}@{target.host}:{target.ssh_port}",
                "Path": target.deploy_path,
                "App": f"{target.name} (port {target.port})",
                "Transport": transport,
            },
        )

        logger = self.init_logger(self.target_name, "deploy")
        listeners = [ConsoleReporter(logger)] if logger else []

        pipeline = DeploymentPipeline(
            target,
            self.target_name,
            options=self.options,
            listeners=listeners,
            cwd=self.project_root,
            logger=logger,
        )
        self.ssh = pipeline.ssh

        if self.options.dry_run and not self.json_output:
            self._print_plan(pipeline)

        result = pipeline.run()
        self._report(result)

    def _print_plan(self, pipeline: DeploymentPipeline) -> None:
        target = pipeline.target
        self.print_dim(f"Release:  {pipeline.result.release_dir}")
        if not target.uses_git:
            self.print_dim(f"Excludes: {', '.join(effective_excludes(target.exclude))}")
        if target.shared_files:
            self.print_dim(f"Shared:   {', '.join(target.shared_files)}")
        if target.domain:
            self.print_dim(f"Domain:   {target.domain} -> localhost:{target.port}")
        self.console.print()

    def _report(self, result: DeploymentResult) -> None:
        if self.json_output:
            self.output_json(
                {
                    "target": self.target_name,
                    "release": result.release_id,
                    "release_dir": result.release_dir,
                    "dry_run": self.options.dry_run,
                    "completed": result.completed,
                    "skipped": result.skipped,
                    "warnings": result.warnings,
                    "pruned": result.pruned,
                    "workspace": result.workspace.app_path if result.workspace else None,
                    "url": self.target.url,
                    "duration_seconds": round(result.duration_seconds, 2),
                }
            )
            return

        if self.options.dry_run:
            self.console.print()
            self.print_success("Dry run complete, nothing was changed")
            return

        if result.dns_record:
            domain, ip = result.dns_record
            print_dns_instructions(self.console, domain, ip)

        print_deploy_summary(
            self.console,
            result.release_id,
            self.target.url,
            result.duration_seconds,
            warnings=result.warnings,
        )
        self.console.print()
        self._logs_hint()


@click.command(name="deploy")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("--no-build", is_flag=True, help="Skip the build step")
@click.option("--no-install", is_flag=True, help="Skip installing dependencies on the server")
@click.option("--no-restart", is_flag=True, help="Skip restarting the app with PM2")
@click.option("--dry-run", is_flag=True, help="Show what would happen without changing anything")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deploy(target, config_path, no_build, no_install, no_restart, dry_run, verbose, json_output):
    """
    Deploy the current project to a target

    \b
    Examples:
      bunbox-deploy deploy                    # Default target
      bunbox-deploy deploy staging --dry-run  # Preview
      bunbox-deploy production:deploy --no-build

    \b
    Stages:
    connect, pre-flight, build, prepare release, transfer, install,
    link shared files, activate, restart, health check, reverse proxy, cleanup
    """
    options = DeployOptions(
        build=not no_build,
        install=not no_install,
        restart=not no_restart,
        dry_run=dry_run,
        verbose=verbose,
    )
    cmd = DeployCommand(
        target,
        config_path=config_path,
        options=options,
        verbose=verbose,
        json_output=json_output,
    )
    cmd.run()
