"""Git-based transfer: clone the repository on the server."""

import shlex
from pathlib import Path
from typing import Optional, Tuple

from bunbox_deploy.constants import DEPLOY_KEY_DIR, DEPLOY_KEY_HOSTS
from bunbox_deploy.exceptions import ConfigurationError, TransferError
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.services.ssh_service import SSHService
from bunbox_deploy.utils import redact


class GitSync:
    """Clones target.git into a release directory."""

    def __init__(self, ssh: SSHService, target: ResolvedTarget):
        if target.git is None:
            raise ConfigurationError("Git transport is not configured for this target")
        self.ssh = ssh
        self.target = target
        self.git = target.git

    @property
    def key_dir(self) -> str:
        return f"{self.target.deploy_path}/{DEPLOY_KEY_DIR}"

    @property
    def remote_key_path(self) -> str:
        return f"{self.key_dir}/deploy_key"

    def is_installed(self) -> bool:
        return self.ssh.command_exists("git")

    def setup_deploy_key(self) -> bool:
        """
        Upload the deploy key once.

        Returns:
            True if the key was uploaded, False if it was already there
        """
        if not self.git.deploy_key:
            return False
        if self.ssh.path_exists(self.remote_key_path):
            return False

        local_key = Path(self.git.deploy_key)
        if not local_key.is_file():
            raise ConfigurationError(f"Deploy key not found: {self.git.deploy_key}")

        self.ssh.exec_check(
            f"mkdir -p {shlex.quote(self.key_dir)} && chmod 700 {shlex.quote(self.key_dir)}",
            message="Could not create deploy key directory",
        )
        self.ssh.write_file(self.remote_key_path, local_key.read_text())
        self.ssh.exec_check(
            f"chmod 600 {shlex.quote(self.remote_key_path)}",
            message="Could not protect deploy key",
        )

        ssh_config = "".join(
            f"Host {host}\n"
            f"  IdentityFile {self.remote_key_path}\n"
            f"  StrictHostKeyChecking accept-new\n\n"
            for host in DEPLOY_KEY_HOSTS
        )
        config_path = f"{self.key_dir}/config"
        self.ssh.write_file(config_path, ssh_config)
        self.ssh.exec(f"chmod 600 {shlex.quote(config_path)}")
        return True

    def authenticated_url(self) -> str:
        """Repository URL with the token injected for HTTPS remotes."""
        repo = self.git.repo
        if self.git.token and repo.startswith("https://"):
            return repo.replace("https://", f"https://{self.git.token}@", 1)
        return repo

    def _git_env(self) -> str:
        if not self.git.deploy_key:
            return ""
        ssh_command = (
            f"ssh -i {self.remote_key_path} -o StrictHostKeyChecking=accept-new"
        )
        return f"GIT_SSH_COMMAND={shlex.quote(ssh_command)} "

    def _redact(self, text: str) -> str:
        return redact(text, [self.git.token])

    def clone(self, release_dir: str) -> None:
        """
        Shallow clone into release_dir and drop the .git directory.

        Raises:
            TransferError: With the token redacted from git's output
        """
        command = (
            f"{self._git_env()}git clone --depth 1 --branch {shlex.quote(self.git.branch)} "
            f"{shlex.quote(self.authenticated_url())} {shlex.quote(release_dir)}"
        )
        # The release directory exists but is empty; git accepts that
        result = self.ssh.exec(command)
        if result.is_failure:
            raise TransferError(
                "Git clone failed",
                context=self._redact(result.stderr.strip()) or None,
            )

        self.ssh.exec(f"rm -rf {shlex.quote(release_dir + '/.git')}")

    def test_access(self) -> Tuple[bool, Optional[str]]:
        """Check that the server can read the repository."""
        result = self.ssh.exec(
            f"{self._git_env()}git ls-remote --exit-code "
            f"{shlex.quote(self.authenticated_url())} HEAD"
        )
        if result.is_failure:
            return False, self._redact(result.stderr.strip())
        return True, None
