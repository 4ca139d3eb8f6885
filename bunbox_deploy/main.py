#!/usr/bin/env python3
"""bunbox-deploy CLI - Main entry point"""

import functools
import os
import sys

from rich.console import Console

import rich_click as click

from bunbox_deploy import __version__

# Configure rich-click help output
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.MAX_WIDTH = 100

click.rich_click.STYLE_COMMAND = "bold cyan"
click.rich_click.STYLE_OPTION = "bold magenta"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_ARGUMENT = "bold yellow"
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_USAGE = "bold yellow"
click.rich_click.STYLE_USAGE_COMMAND = "bold cyan"
click.rich_click.STYLE_HELPTEXT_FIRST_LINE = "bold white"
click.rich_click.STYLE_HELPTEXT = ""
click.rich_click.STYLE_METAVAR = "bold yellow"
click.rich_click.STYLE_OPTION_DEFAULT = "dim cyan"
click.rich_click.STYLE_EPILOG_TEXT = "dim"
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "cyan"
click.rich_click.ALIGN_OPTIONS_PANEL = "left"
click.rich_click.ALIGN_ERRORS_PANEL = "left"
click.rich_click.ERRORS_EPILOGUE = ""

from bunbox_deploy.commands import (  # noqa: E402
    deploy,
    init,
    logs,
    releases,
    rollback,
    setup_server,
    ssh_cmd,
    status,
    unlock,
)

console = Console()

BANNER = """
[bold color(214)]bunbox-deploy[/bold color(214)] [dim]v{version}[/dim]
[dim]Deploy Bun apps to your own servers over SSH[/dim]
"""


def handle_cli_errors(func):
    """Decorator to handle CLI errors gracefully."""
    from click.exceptions import ClickException, UsageError

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UsageError as e:
            console.print(f"\n[bold red]✗ Error:[/bold red] {e.format_message()}\n")
            if e.ctx and e.ctx.command:
                console.print(
                    f"[dim]Run[/dim] [cyan]bunbox-deploy {e.ctx.command.name} --help[/cyan] "
                    "[dim]for usage information[/dim]\n"
                )
            sys.exit(1)
        except ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except KeyboardInterrupt:
            console.print("\n\n[yellow]⚠ Operation cancelled by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"\n[bold red]✗ Unexpected error:[/bold red] {e}\n")
            if os.environ.get("DEBUG") or os.environ.get("VERBOSE"):
                import traceback

                console.print("[dim]Traceback:[/dim]")
                traceback.print_exc()
            sys.exit(1)

    return wrapper


class NamespacedGroup(click.RichGroup):
    """Click group that accepts 'production:deploy' as 'deploy production'."""

    def get_command(self, ctx, cmd_name):
        if ":" not in cmd_name:
            return super().get_command(ctx, cmd_name)

        target, sub_cmd = cmd_name.split(":", 1)
        base_command = super().get_command(ctx, sub_cmd)
        if base_command is None:
            return None
        if not any(p.name == "target" for p in base_command.params):
            # Target-less commands (init) do not take a namespace
            return None

        wrapper = click.Command(
            name=cmd_name,
            callback=functools.partial(
                self._inject_target, base_command.callback, target
            ),
            params=[p for p in base_command.params if p.name != "target"],
            help=base_command.help,
        )
        return wrapper

    def _inject_target(self, original_callback, target_name, *args, **kwargs):
        kwargs["target"] = target_name
        return original_callback(*args, **kwargs)


@click.group(cls=NamespacedGroup, invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """
    bunbox-deploy - Deploy Bun apps to VPS servers via SSH.

    \b
    Quick Start:
      bunbox-deploy init                  # Create bunbox.deploy.yml
      bunbox-deploy setup production      # Install Bun, PM2, Caddy
      bunbox-deploy deploy production     # Deploy a new release

    \b
    Day to day:
      bunbox-deploy production:status     # Current release and process
      bunbox-deploy production:releases   # Release history
      bunbox-deploy production:rollback   # Go back one release
      bunbox-deploy production:logs -f    # Follow application logs

    \b
    The target may be given as an argument or as a namespace
    (bunbox-deploy staging:deploy). Without one, default_target
    or the first target in the deploy file is used.
    """
    if ctx.invoked_subcommand is None:
        console.print(BANNER.format(version=__version__))
        console.print("[yellow]Run 'bunbox-deploy --help' for usage[/yellow]\n")


cli.add_command(init.init)
cli.add_command(deploy.deploy)
cli.add_command(rollback.rollback)
cli.add_command(status.status)
cli.add_command(releases.releases)
cli.add_command(setup_server.setup)
cli.add_command(setup_server.setup_git)
cli.add_command(logs.logs)
cli.add_command(ssh_cmd.ssh)
cli.add_command(unlock.unlock)


@handle_cli_errors
def main():
    """Main entry point with error handling."""
    cli()


if __name__ == "__main__":
    main()
