"""
Base Command Class

Abstract base for all bunbox-deploy CLI commands.
Provides common functionality and structure.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from bunbox_deploy.constants import LOG_ROOT
from bunbox_deploy.exceptions import BunboxDeployError
from bunbox_deploy.logger import DeployLogger
from bunbox_deploy.ui_components import show_header
from bunbox_deploy.utils import get_project_root


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Header display
    - Error handling with exit codes
    - JSON output support
    """

    def __init__(self, verbose: bool = False, json_output: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        self.console = Console()
        self.project_root = get_project_root()
        self.logger: Optional[DeployLogger] = None

    def init_logger(
        self, target_name: str, command_name: str
    ) -> Optional[DeployLogger]:
        """
        Initialize command logger (skip in JSON mode).

        Args:
            target_name: Target name (use "global" for target-less commands)
            command_name: Command name

        Returns:
            DeployLogger instance or None if JSON mode
        """
        if self.json_output:
            return None
        self.logger = DeployLogger(
            target_name, command_name, verbose=self.verbose, log_root=self.log_root
        )
        return self.logger

    @property
    def log_root(self) -> Path:
        return self.project_root / LOG_ROOT

    def output_json(self, data: Dict[str, Any], exit_code: int = 0) -> None:
        """
        Output data as JSON and exit.

        Args:
            data: Data to output as JSON
            exit_code: Exit code (0 for success, non-zero for error)
        """
        print(json.dumps(data, indent=2))
        if exit_code != 0:
            raise SystemExit(exit_code)

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        target: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Show command header (skip in JSON or verbose mode)."""
        if not self.verbose and not self.json_output:
            show_header(
                title=title,
                subtitle=subtitle,
                target=target,
                details=details,
                console=self.console,
            )

    def print_success(self, message: str) -> None:
        """Print success message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[green]✓ {message}[/green]")

    def print_error(self, message: str) -> None:
        """Print error message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[red]✗ {message}[/red]")

    def print_warning(self, message: str) -> None:
        """Print warning message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_dim(self, message: str) -> None:
        """Print dim message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[dim]{message}[/dim]")

    def confirm(self, question: str, default: bool = False) -> bool:
        """
        Ask for user confirmation.

        Args:
            question: Question to ask
            default: Default answer

        Returns:
            True if confirmed
        """
        default_str = "y" if default else "n"
        self.console.print(
            f"{question} [bold bright_white]\\[y/n][/bold bright_white] [dim]({default_str})[/dim]: ",
            end="",
        )
        answer = input().strip().lower()

        if not answer:
            return default

        return answer in ["y", "yes"]

    def exit_with_error(self, message: str, code: int = 1) -> None:
        """Print error and exit."""
        self.print_error(message)
        raise SystemExit(code)

    def _logs_hint(self) -> None:
        if self.logger:
            self.console.print(f"[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def cleanup(self) -> None:
        """Release resources after execute (override in subclasses)."""
        if self.logger:
            self.logger.close()

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠ Operation cancelled by user[/yellow]")
            self._logs_hint()
            raise SystemExit(130)
        except SystemExit:
            raise
        except BunboxDeployError as e:
            if self.json_output:
                self.output_json(
                    {"error": e.message, "stage": e.stage, "details": e.context},
                    exit_code=1,
                )
            if self.logger:
                # Pipeline listeners already rendered stage failures
                if not e.stage:
                    self.logger.log_error(e.message, context=e.context)
            else:
                self.console.print(f"\n[bold red]✗ {e.message}[/bold red]", highlight=False)
                if e.context:
                    self.console.print(f"  [color(208)]{e.context}[/color(208)]", highlight=False)
            self.console.print()
            self._logs_hint()
            raise SystemExit(1)
        except FileNotFoundError as e:
            self.console.print(f"\n[bold red]✗ File not found:[/bold red] {e}\n")
            if self.logger:
                self.logger.log_error(f"File not found: {e}")
            self._logs_hint()
            raise SystemExit(1)
        except PermissionError as e:
            self.console.print(f"\n[bold red]✗ Permission denied:[/bold red] {e}\n")
            if self.logger:
                self.logger.log_error(f"Permission error: {e}")
            self._logs_hint()
            raise SystemExit(1)
        except Exception as e:
            error_type = type(e).__name__
            self.console.print(f"\n[bold red]✗ {error_type}:[/bold red] {e}\n")
            if self.logger:
                self.logger.log_error(f"{error_type}: {e}")
            self._logs_hint()
            raise SystemExit(1)
        finally:
            self.cleanup()
