"""Local command execution (build, rsync)."""

import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from bunbox_deploy.logger import DeployLogger, run_with_progress
from bunbox_deploy.models.results import ExecutionResult


def run_local(
    command: Union[str, List[str]],
    cwd: Optional[Path] = None,
    logger: Optional[DeployLogger] = None,
    description: str = "Running",
) -> ExecutionResult:
    """
    Run a local command, through the logger's spinner when there is one.

    Args:
        command: Shell string or argument list
        cwd: Working directory
        logger: Logger that records output
        description: Spinner text

    Returns:
        ExecutionResult
    """
    display = command if isinstance(command, str) else shlex.join(command)

    if logger is not None:
        returncode, stdout, stderr = run_with_progress(
            logger, command, description, cwd=cwd
        )
    else:
        result = subprocess.run(
            command,
            shell=isinstance(command, str),
            cwd=cwd,
            capture_output=True,
            text=True,
        )
        returncode, stdout, stderr = result.returncode, result.stdout, result.stderr

    return ExecutionResult(
        returncode=returncode, stdout=stdout, stderr=stderr, command=display
    )


def which(name: str) -> bool:
    """Check if a command is on the local PATH."""
    return shutil.which(name) is not None
