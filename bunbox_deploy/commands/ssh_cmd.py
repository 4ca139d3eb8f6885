"""SSH command - open a shell on the target"""

import shlex

import click

from bunbox_deploy.base import TargetCommand


class SSHCommand(TargetCommand):
    def __init__(self, target_name=None, config_path=None, command=None):
        super().__init__(target_name, config_path=config_path)
        self.command = command

    def execute(self) -> None:
        target = self.load_target()
        self.print_dim(f"Connecting to {target.username}@{target.host}...")
        ssh = self.ensure_ssh()

        # Open shells start in deploy_path
        command = self.command or (
            f"cd {shlex.quote(target.deploy_path)} 2>/dev/null; exec $SHELL -l"
        )
        code = ssh.interactive(command)
        if code != 0:
            raise SystemExit(code)


@click.command(name="ssh")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("-x", "--exec", "command", help="Run a command instead of a shell")
def ssh(target, config_path, command):
    """
    Open an SSH session to the server

    \b
    Examples:
      bunbox-deploy ssh production
      bunbox-deploy production:ssh -x "pm2 ls"
    """
    SSHCommand(target, config_path=config_path, command=command).run()
