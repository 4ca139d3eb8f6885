"""
Target Command Base Class

Base class for commands that act on one deploy target.
Loads the deploy file, resolves the target and owns the SSH session.
"""

from typing import Optional

from bunbox_deploy.core.config_loader import (
    load_config,
    placeholder_environment,
    resolve_target,
)
from bunbox_deploy.exceptions import ConfigurationError
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.services.release_store import ReleaseStore
from bunbox_deploy.services.ssh_service import SSHService

from .base_command import BaseCommand


class TargetCommand(BaseCommand):
    """
    Base class for target-specific commands.

    Provides:
    - Config loading and target resolution (call load_target() first in execute)
    - A lazily connected SSHService, closed after execute
    - ReleaseStore access
    """

    def __init__(
        self,
        target_name: Optional[str] = None,
        config_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.requested_target = target_name
        self.config_path = config_path
        self.target_name: str = target_name or ""
        self.target: Optional[ResolvedTarget] = None
        self.ssh: Optional[SSHService] = None

    def load_target(self) -> ResolvedTarget:
        """
        Resolve the requested target.

        Raises:
            ConfigurationError: If there is no deploy file or it is invalid
        """
        config = load_config(self.config_path, cwd=self.project_root)
        if config is None:
            raise ConfigurationError(
                "No deploy config found",
                context="Run 'bunbox-deploy init' to create bunbox.deploy.yml",
            )
        self.target_name, self.target = resolve_target(
            config,
            self.requested_target,
            variables=placeholder_environment(self.project_root),
        )
        return self.target

    def ensure_ssh(self) -> SSHService:
        """Connect to the target (once)."""
        if self.target is None:
            self.load_target()
        if self.ssh is None:
            self.ssh = SSHService(self.target.ssh_config())
        self.ssh.connect()
        return self.ssh

    def release_store(self) -> ReleaseStore:
        return ReleaseStore(self.ensure_ssh(), self.target.deploy_path)

    def cleanup(self) -> None:
        if self.ssh is not None:
            self.ssh.disconnect()
        super().cleanup()

