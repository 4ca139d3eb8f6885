"""
Logging system for bunbox-deploy
Writes every operation to a log file and keeps the console output clean
"""

import re
import shlex
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO, Union

from rich.console import Console
from rich.live import Live
from rich.padding import Padding
from rich.spinner import Spinner
from rich.text import Text

from bunbox_deploy.constants import LOG_DATE_FORMAT, LOG_ROOT, LOG_TIME_FORMAT

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class DeployLogger:
    """
    Manages logging for one CLI operation against one target
    - Writes all output to a log file in real-time
    - Shows clean step/success/warning lines in console (unless verbose)
    - Captures errors with context
    """

    def __init__(
        self,
        target_name: str,
        operation: str,
        verbose: bool = False,
        log_root: Optional[Path] = None,
    ):
        """
        Initialize logger

        Args:
            target_name: Deploy target name (or 'global')
            operation: Operation name (e.g., 'deploy', 'rollback')
            verbose: If True, show all output in console
            log_root: Base directory for logs (default: ./.bunbox-deploy/logs)
        """
        self.target_name = target_name
        self.operation = operation
        self.verbose = verbose
        self.log_file: Optional[TextIO] = None
        self.current_step = ""
        self.has_errors = False

        # Structure: <log_root>/{target}/{date}/{time}_{operation}.log
        if log_root is None:
            from bunbox_deploy.utils import get_project_root

            log_root = get_project_root() / LOG_ROOT

        now = datetime.now()
        target_logs_dir = Path(log_root) / target_name / now.strftime(LOG_DATE_FORMAT)
        target_logs_dir.mkdir(parents=True, exist_ok=True)

        self.log_path: Path = (
            target_logs_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"
        )

        # Line buffered for real-time tailing
        self.log_file = open(self.log_path, "w", buffering=1)

        self._write_log_header()

    def _write_log_header(self):
        header = f"""
{"=" * 80}
bunbox-deploy Log
{"=" * 80}
Target: {self.target_name}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        timestamp = datetime.now().strftime("%H:%M:%S")

        if self.log_file:
            self.log_file.write(f"[{timestamp}] [{level}] {message}\n")
            self.log_file.flush()

        if self.verbose:
            if level == "ERROR":
                console.print(f"[red]{message}[/red]")
            elif level == "WARNING":
                console.print(f"[yellow]{message}[/yellow]")
            elif level == "DEBUG":
                console.print(f"[dim]{message}[/dim]")
            else:
                console.print(message)

    def log_command(self, command: str):
        """Log a command being executed"""
        self.log(f"Executing: {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file; shown in console only when verbose.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        clean_output = ANSI_ESCAPE.sub("", output)

        if self.log_file:
            for line in clean_output.splitlines():
                self.log_file.write(f"  [{stream}] {line}\n")
            self.log_file.flush()

        if self.verbose:
            console.print(output, markup=False, highlight=False)

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., stderr of the failed command)
        """
        self.has_errors = True

        error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
        if context:
            error_block += f"\nContext: {context}\n"
        error_block += f"{'!' * 80}\n\n"

        if self.log_file:
            self.log_file.write(error_block)
            self.log_file.flush()

        if not self.verbose:
            console.print()

        console.print(f"[bold red]✗ {error}[/bold red]", highlight=False)
        if context:
            console.print(f"  [color(208)]{context}[/color(208)]", highlight=False)

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step and not self.verbose:
            console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")

        if not self.verbose:
            console.print(f"[color(214)]▶[/color(214)] [white]{step_name}[/white]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")

        if not self.verbose:
            console.print(f"  [dim]✓ {message}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")

        if not self.verbose:
            console.print(f"  [yellow]⚠[/yellow] [dim]{message}[/dim]")

    def skipped(self, message: str):
        """Log a skipped step"""
        self.log(f"Skipped: {message}", "INFO")

        if not self.verbose:
            console.print(f"  [dim]- {message} (skipped)[/dim]")

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self.log_file.write(footer)
            self.log_file.close()
            self.log_file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        if exc_type is not None and exc_type is not SystemExit:
            self.log_error(
                str(exc_val) if exc_val else "Operation failed",
                context=exc_type.__name__,
            )
        self.close()
        return False


def run_with_progress(
    logger: DeployLogger,
    command: Union[str, List[str]],
    description: str,
    cwd: Optional[Path] = None,
) -> tuple[int, str, str]:
    """
    Run a local command with progress indicator

    Args:
        logger: DeployLogger instance
        command: Shell string or argument list
        description: Description for progress indicator
        cwd: Working directory

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    shell = isinstance(command, str)
    logger.log_command(command if shell else shlex.join(command))

    if logger.verbose:
        # Stream stdout live, collect stderr at the end
        process = subprocess.Popen(
            command,
            shell=shell,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )

        stdout_lines = []
        if process.stdout:
            for line in process.stdout:
                line_stripped = line.rstrip()
                stdout_lines.append(line_stripped)
                logger.log_output(line_stripped, "stdout")

        process.wait()
        stderr_content = process.stderr.read() if process.stderr else ""
        if stderr_content:
            logger.log_output(stderr_content, "stderr")

        return process.returncode, "\n".join(stdout_lines), stderr_content

    spinner = Spinner("dots", text=f"[cyan]{description}...[/cyan]")

    with Live(
        Padding(spinner, (0, 0, 0, 2)),
        console=console,
        refresh_per_second=10,
    ) as live:
        result = subprocess.run(
            command, shell=shell, cwd=cwd, capture_output=True, text=True
        )

        if result.stdout:
            logger.log_output(result.stdout, "stdout")
        if result.stderr:
            logger.log_output(result.stderr, "stderr")

        if result.returncode == 0:
            mark = Text("  ✓ ", style="dim")
        else:
            mark = Text("  ✗ ", style="red")
        mark.append(description, style="dim")
        live.update(mark)

    return result.returncode, result.stdout, result.stderr
