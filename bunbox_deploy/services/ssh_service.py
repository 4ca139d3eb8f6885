"""SSH service for executing commands on the deploy target."""

import shlex
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Type

from bunbox_deploy.constants import REMOTE_PATH_EXTEND, SSH_CONTROL_PERSIST
from bunbox_deploy.exceptions import (
    RemoteCommandError,
    SSHConnectionError,
    SSHError,
)
from bunbox_deploy.models.results import SSHResult
from bunbox_deploy.models.ssh import SSHConfig


class SSHService:
    """
    One multiplexed OpenSSH session to a target.

    connect() opens a ControlMaster socket; every exec() reuses it, so a
    deploy pays for the handshake once.
    """

    def __init__(self, config: SSHConfig):
        """
        Initialize SSH service.

        Args:
            config: SSH configuration
        """
        self.config = config
        self._control_dir: Optional[str] = None
        self.connected = False

    @property
    def control_path(self) -> Optional[str]:
        if self._control_dir is None:
            return None
        return str(Path(self._control_dir) / "master.sock")

    def _ssh_base(self) -> List[str]:
        return ["ssh", *self.config.ssh_options(self.control_path)]

    def connect(self) -> None:
        """
        Open the master connection.

        Raises:
            SSHConnectionError: If the key is missing or the host rejects us
        """
        if self.connected:
            return

        if not self.config.key_exists:
            raise SSHConnectionError(
                f"SSH key not found: {self.config.key_path}",
                context=f"Host: {self.config.destination}",
            )

        self._control_dir = tempfile.mkdtemp(prefix="bunbox-ssh-")
        cmd = [
            *self._ssh_base(),
            "-o",
            "ControlMaster=auto",
            "-o",
            f"ControlPersist={SSH_CONTROL_PERSIST}",
            "-o",
            "BatchMode=yes",
            self.config.destination,
            "true",
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.config.connect_timeout + 5,
            )
        except subprocess.TimeoutExpired:
            self._cleanup_control_dir()
            raise SSHConnectionError(
                f"Timed out connecting to {self.config.destination}",
                context=f"Port: {self.config.port}",
            )

        if result.returncode != 0:
            self._cleanup_control_dir()
            raise SSHConnectionError(
                f"SSH connection failed: {self.config.destination}:{self.config.port}",
                context=result.stderr.strip() or None,
            )

        self.connected = True

    def disconnect(self) -> None:
        """Close the master connection."""
        if self.connected and self.control_path:
            subprocess.run(
                [*self._ssh_base(), "-O", "exit", self.config.destination],
                capture_output=True,
                text=True,
                check=False,
            )
        self.connected = False
        self._cleanup_control_dir()

    def _cleanup_control_dir(self) -> None:
        if self._control_dir:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    @staticmethod
    def wrap_command(
        command: str, elevate: bool = False, skip_path_extend: bool = False
    ) -> str:
        """Build the remote shell line for a command."""
        script = command if skip_path_extend else REMOTE_PATH_EXTEND + command
        wrapped = f"bash -c {shlex.quote(script)}"
        return f"sudo {wrapped}" if elevate else wrapped

    def exec(
        self,
        command: str,
        elevate: bool = False,
        skip_path_extend: bool = False,
        timeout: Optional[float] = None,
    ) -> SSHResult:
        """
        Execute command on the target.

        Args:
            command: Shell command
            elevate: Run through sudo
            skip_path_extend: Do not prepend the PATH extension
            timeout: Override the target's command_timeout

        Returns:
            SSHResult with execution details

        Raises:
            RemoteCommandError: If the command times out
        """
        if not self.connected:
            raise SSHError("Not connected", context=f"Host: {self.config.destination}")

        remote = self.wrap_command(command, elevate, skip_path_extend)
        timeout = self.config.command_timeout if timeout is None else timeout

        start_time = time.time()
        try:
            result = subprocess.run(
                [*self._ssh_base(), self.config.destination, remote],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise RemoteCommandError(
                f"Remote command timed out after {timeout}s",
                command=command,
                context=f"Host: {self.config.destination}, Command: {command}",
            )

        return SSHResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            host=self.config.host,
            command=command,
            duration_seconds=time.time() - start_time,
        )

    def exec_check(
        self,
        command: str,
        message: str = "Remote command failed",
        elevate: bool = False,
        error_cls: Type[SSHError] = RemoteCommandError,
    ) -> SSHResult:
        """
        Execute command and raise if it exits non-zero.

        The remote stderr is carried verbatim as the error context.
        """
        result = self.exec(command, elevate=elevate)
        if result.is_failure:
            detail = result.stderr.strip() or result.stdout.strip() or None
            if error_cls is RemoteCommandError:
                raise RemoteCommandError(
                    message,
                    command=command,
                    returncode=result.returncode,
                    stderr=detail or "",
                )
            raise error_cls(message, context=detail)
        return result

    def command_exists(self, name: str) -> bool:
        """Check if a command is on the remote PATH."""
        return self.exec(f"which {shlex.quote(name)}").is_success

    def path_exists(self, path: str) -> bool:
        """Check if a remote path exists."""
        return self.exec(f"test -e {shlex.quote(path)}").is_success

    def read_file(self, path: str, elevate: bool = False) -> Optional[str]:
        """Read a remote file, or None if it cannot be read."""
        result = self.exec(f"cat {shlex.quote(path)}", elevate=elevate)
        return result.stdout if result.is_success else None

    def write_file(self, path: str, content: str, elevate: bool = False) -> None:
        """Write content to a remote file (replacing it)."""
        self.exec_check(
            f"printf '%s' {shlex.quote(content)} > {shlex.quote(path)}",
            message=f"Could not write {path}",
            elevate=elevate,
        )

    def get_public_ip(self) -> str:
        """Public IP of the target as seen from the internet."""
        result = self.exec("curl -s --max-time 5 ifconfig.me")
        ip = result.stdout.strip()
        return ip if result.is_success and ip else self.config.host

    def interactive(self, command: Optional[str] = None) -> int:
        """Attach the local terminal to a remote shell or command."""
        cmd = ["ssh", *self.config.ssh_options(), "-t", self.config.destination]
        if command:
            cmd.append(self.wrap_command(command))
        return subprocess.run(cmd).returncode

    def stream(self, command: str) -> subprocess.Popen:
        """Start a long-running remote command with stdout piped (e.g. log tail)."""
        return subprocess.Popen(
            [
                "ssh",
                *self.config.ssh_options(),
                self.config.destination,
                self.wrap_command(command),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            bufsize=0,
        )

    def rsync_transport(self) -> str:
        """Remote shell for rsync -e, reusing the master connection."""
        transport = self.config.rsync_transport()
        if self.control_path:
            transport += f" -o ControlPath={self.control_path}"
        return transport
