"""
Setup commands - prepare a server for deployments

setup      installs Bun, PM2 and (with a domain) Caddy, then creates the
           deploy_path layout
setup-git  uploads the deploy key and checks the server can read the repo
"""

from typing import Optional

import click

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.exceptions import ConfigurationError, TransferError
from bunbox_deploy.services.git_sync import GitSync
from bunbox_deploy.services.process_manager import PM2Manager
from bunbox_deploy.services.proxy import CaddyProxy

BUN_INSTALL_COMMAND = "curl -fsSL https://bun.sh/install | bash"


class SetupCommand(TargetCommand):
    """Install the server-side toolchain. Safe to run repeatedly."""

    def execute(self) -> None:
        target = self.load_target()
        self.show_header(
            title="Server Setup",
            target=self.target_name,
            details={"Server": f"{target.username}@{target.host}"},
        )

        logger = self.init_logger(self.target_name, "setup")
        ssh = self.ensure_ssh()
        installed = []

        if logger:
            logger.step("Bun")
        if ssh.command_exists("bun"):
            version = ssh.exec("bun --version").stdout.strip()
            if logger:
                logger.success(f"Bun {version} installed")
        else:
            ssh.exec_check(BUN_INSTALL_COMMAND, message="Failed to install Bun")
            installed.append("bun")
            if logger:
                logger.success("Bun installed")

        if logger:
            logger.step("PM2")
        pm2 = PM2Manager(ssh, target)
        if pm2.is_installed():
            if logger:
                logger.success("PM2 installed")
        else:
            pm2.install()
            # Resurrect processes on boot; best effort
            ssh.exec("pm2 startup", elevate=True)
            installed.append("pm2")
            if logger:
                logger.success("PM2 installed")

        proxy = CaddyProxy(ssh, target)
        if target.domain:
            if logger:
                logger.step("Caddy")
            if proxy.is_installed():
                if logger:
                    logger.success("Caddy installed")
            else:
                proxy.install()
                installed.append("caddy")
                if logger:
                    logger.success("Caddy installed")

        if logger:
            logger.step("Deployment directory")
        self.release_store().ensure_layout()
        if logger:
            logger.success(f"{target.deploy_path} ready")

        if self.json_output:
            self.output_json(
                {
                    "target": self.target_name,
                    "installed": installed,
                    "deploy_path": target.deploy_path,
                }
            )
            return

        self.console.print()
        self.print_success("Server setup complete")
        self.console.print(
            f"\n[dim]Next:[/dim] [cyan]bunbox-deploy deploy {self.target_name}[/cyan]"
        )
        if target.domain:
            self.console.print(
                f"[dim]Point[/dim] [bold]{target.domain}[/bold] [dim]to[/dim] "
                f"[bold]{ssh.get_public_ip()}[/bold] [dim]before the first deploy[/dim]"
            )
        self.console.print()


class SetupGitCommand(TargetCommand):
    """Upload the deploy key and test repository access from the server."""

    def execute(self) -> None:
        target = self.load_target()
        if not target.uses_git:
            raise ConfigurationError(
                f"Target '{self.target_name}' has no git section",
                context="Add git.repo to the target to deploy from a repository",
            )

        self.show_header(
            title="Git Access",
            target=self.target_name,
            details={"Repo": target.git.repo, "Branch": target.git.branch},
        )
        logger = self.init_logger(self.target_name, "setup-git")
        git = GitSync(self.ensure_ssh(), target)

        if logger:
            logger.step("Checking git")
        if not git.is_installed():
            raise ConfigurationError(
                "Git is not installed on the server",
                context="Install git on the server or use rsync deployment",
            )
        if logger:
            logger.success("Git installed")

        if target.git.deploy_key:
            if logger:
                logger.step("Deploy key")
            uploaded = git.setup_deploy_key()
            if logger:
                logger.success("Deploy key uploaded" if uploaded else "Deploy key already on server")

        if logger:
            logger.step("Testing repository access")
        ok, error = git.test_access()
        if not ok:
            raise TransferError("Server cannot access the repository", context=error)
        if logger:
            logger.success("Repository is reachable")

        if self.json_output:
            self.output_json({"target": self.target_name, "repo": target.git.repo, "access": True})
            return
        self.console.print()
        self.print_success("Git deployment is ready")
        self.console.print()


def _target_options(func):
    func = click.option("--json", "json_output", is_flag=True, help="Output in JSON format")(func)
    func = click.option("--verbose", "-v", is_flag=True, help="Show all command output")(func)
    func = click.option("-c", "--config", "config_path", help="Path to the deploy file")(func)
    return click.argument("target", required=False)(func)


@click.command(name="setup")
@_target_options
def setup(target: Optional[str], config_path, verbose, json_output):
    """
    Install Bun, PM2 and Caddy on the server

    \b
    Examples:
      bunbox-deploy setup production
      bunbox-deploy production:setup

    Caddy is installed only when the target has a domain.
    """
    cmd = SetupCommand(
        target, config_path=config_path, verbose=verbose, json_output=json_output
    )
    cmd.run()


@click.command(name="setup-git")
@_target_options
def setup_git(target: Optional[str], config_path, verbose, json_output):
    """
    Upload the deploy key and test repository access

    \b
    Examples:
      bunbox-deploy setup-git production
    """
    cmd = SetupGitCommand(
        target, config_path=config_path, verbose=verbose, json_output=json_output
    )
    cmd.run()
