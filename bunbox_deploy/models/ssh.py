"""
SSH Configuration Models

Dataclass models for SSH operations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bunbox_deploy.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_SSH_PORT


@dataclass
class SSHConfig:
    """SSH configuration for connecting to a deploy target."""

    host: str
    user: str
    key_path: str
    port: int = DEFAULT_SSH_PORT
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    command_timeout: Optional[float] = None

    @property
    def key_path_expanded(self) -> Path:
        """Get expanded key path (resolves ~)."""
        return Path(self.key_path).expanduser()

    @property
    def key_exists(self) -> bool:
        """Check if private key file exists."""
        return self.key_path_expanded.exists()

    @property
    def destination(self) -> str:
        """Get SSH connection string (user@host)."""
        return f"{self.user}@{self.host}"

    def ssh_options(self, control_path: Optional[str] = None) -> list[str]:
        """Get ssh options shared by every invocation."""
        options = [
            "-i",
            str(self.key_path_expanded),
            "-p",
            str(self.port),
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
            "-o",
            "LogLevel=QUIET",
        ]
        if control_path:
            options.extend(["-o", f"ControlPath={control_path}"])
        return options

    def rsync_transport(self) -> str:
        """Get the remote shell string for rsync -e."""
        return (
            f"ssh -i {self.key_path_expanded} -p {self.port} "
            f"-o StrictHostKeyChecking=accept-new "
            f"-o ConnectTimeout={self.connect_timeout}"
        )

    def __repr__(self) -> str:
        return f"SSHConfig(user={self.user}, host={self.host}, key={self.key_path})"
