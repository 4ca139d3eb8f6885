"""
Result Models

Dataclass models for command execution results.
"""

from dataclasses import dataclass


@dataclass
class ExecutionResult:
    """Result of a local command execution (build, rsync)."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: str = ""

    @property
    def is_success(self) -> bool:
        """Check if execution succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if execution failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"ExecutionResult(returncode={self.returncode}, command='{self.command[:50]}...')"


@dataclass
class SSHResult:
    """Result of an SSH command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    host: str = ""
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if SSH command succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if SSH command failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"SSHResult(host={self.host}, returncode={self.returncode}, duration={self.duration_seconds:.2f}s)"
