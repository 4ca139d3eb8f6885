"""
Logs command - view application logs from PM2
"""

import click

from bunbox_deploy.base import TargetCommand
from bunbox_deploy.services.process_manager import PM2Manager


class LogsCommand(TargetCommand):
    def __init__(
        self,
        target_name=None,
        config_path=None,
        follow: bool = False,
        lines: int = 100,
        verbose: bool = False,
    ):
        super().__init__(target_name, config_path=config_path, verbose=verbose)
        self.follow = follow
        self.lines = lines

    def execute(self) -> None:
        target = self.load_target()
        pm2 = PM2Manager(self.ensure_ssh(), target)

        if not self.follow:
            self.console.print(pm2.logs(self.lines), markup=False, highlight=False)
            return

        self.print_dim(f"Streaming logs for {target.name}... (Ctrl+C to exit)\n")
        process = self.ssh.stream(pm2.follow_command(self.lines))
        try:
            for chunk in iter(lambda: process.stdout.read(4096), b""):
                click.echo(chunk.decode(errors="replace"), nl=False)
        except KeyboardInterrupt:
            pass
        finally:
            process.terminate()
            process.wait()


@click.command(name="logs")
@click.argument("target", required=False)
@click.option("-c", "--config", "config_path", help="Path to the deploy file")
@click.option("-f", "--follow", is_flag=True, help="Stream logs in real-time")
@click.option("-n", "--lines", type=int, default=100, show_default=True, help="Number of lines")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
def logs(target, config_path, follow, lines, verbose):
    """
    View application logs

    \b
    Examples:
      bunbox-deploy logs production
      bunbox-deploy production:logs -f
      bunbox-deploy logs -n 500
    """
    cmd = LogsCommand(
        target, config_path=config_path, follow=follow, lines=lines, verbose=verbose
    )
    cmd.run()
