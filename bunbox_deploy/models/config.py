"""
Deploy Configuration Models

Pydantic models for the user-authored deploy file (DeployConfig / DeployTarget)
and for the fully resolved target handed to the pipeline (ResolvedTarget).
"""

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bunbox_deploy.constants import (
    CURRENT_LINK,
    LOGS_DIR,
    RELEASES_DIR,
    SHARED_DIR,
)
from bunbox_deploy.models.ssh import SSHConfig

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _check_deploy_path(value: str) -> str:
    if not value.startswith("/"):
        raise ValueError("must be an absolute path")
    value = value.rstrip("/")
    if not value:
        raise ValueError("must not be the filesystem root")
    return value


class GitConfig(BaseModel):
    """Git transport settings (clone on the server instead of rsync)."""

    model_config = ConfigDict(extra="forbid")

    repo: str = Field(min_length=1)
    branch: Optional[str] = None
    deploy_key: Optional[str] = None
    token: Optional[str] = None


class MonorepoConfig(BaseModel):
    """Overrides for workspace auto-detection."""

    model_config = ConfigDict(extra="forbid")

    disabled: bool = False
    include: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)


class DeployTarget(BaseModel):
    """One deploy target as written in the config file."""

    model_config = ConfigDict(extra="forbid")

    # SSH connection
    host: str = Field(min_length=1)
    ssh_port: Optional[int] = Field(default=None, ge=1, le=65535)
    username: str = Field(min_length=1)
    private_key: str = Field(min_length=1)

    # Remote paths
    deploy_path: str = Field(min_length=1)

    # Application settings
    name: str = Field(min_length=1)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    env: Dict[str, str] = Field(default_factory=dict)
    script: Optional[str] = None
    domain: Optional[str] = None

    # Deployment options
    keep_releases: Optional[int] = Field(default=None, ge=1)
    exclude: Optional[List[str]] = None
    shared_files: Optional[List[str]] = None
    build_command: Optional[str] = None
    install_command: Optional[str] = None
    build_on_server: bool = False
    health_path: Optional[str] = None
    health_check_delay: Optional[float] = Field(default=None, ge=0)
    connect_timeout: Optional[int] = Field(default=None, ge=1)
    command_timeout: Optional[float] = Field(default=None, gt=0)

    git: Optional[GitConfig] = None
    monorepo: Optional[MonorepoConfig] = None

    @field_validator("deploy_path")
    @classmethod
    def validate_deploy_path(cls, value: str) -> str:
        return _check_deploy_path(value)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise ValueError(
                "may only contain letters, digits, '.', '_' and '-'"
            )
        return value

    @field_validator("env", mode="before")
    @classmethod
    def stringify_env(cls, value):
        # YAML turns `PORT: 8080` into an int; env values are strings
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


class DeployConfig(BaseModel):
    """Top-level deploy file."""

    model_config = ConfigDict(extra="forbid")

    default_target: Optional[str] = None
    targets: Dict[str, DeployTarget]

    @model_validator(mode="after")
    def check_targets(self) -> "DeployConfig":
        if not self.targets:
            raise ValueError("'targets' must define at least one target")
        if self.default_target and self.default_target not in self.targets:
            raise ValueError(
                f"default_target '{self.default_target}' is not one of the targets"
            )
        return self


class ResolvedGitConfig(BaseModel):
    """Git settings with defaults applied and the token expanded."""

    model_config = ConfigDict(frozen=True)

    repo: str
    branch: str
    deploy_key: Optional[str] = None
    token: Optional[str] = None


class ResolvedTarget(BaseModel):
    """
    A DeployTarget with every default applied and placeholders expanded.

    Downstream code reads these fields as-is and never re-applies defaults.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    ssh_port: int
    username: str
    private_key: str
    deploy_path: str
    name: str
    port: int
    env: Dict[str, str]
    script: str
    domain: Optional[str]
    keep_releases: int
    exclude: List[str]
    shared_files: List[str]
    build_command: str
    install_command: str
    build_on_server: bool
    health_path: str
    health_check_delay: float
    connect_timeout: int
    command_timeout: Optional[float]
    git: Optional[ResolvedGitConfig]
    monorepo: MonorepoConfig

    @property
    def releases_dir(self) -> str:
        return f"{self.deploy_path}/{RELEASES_DIR}"

    @property
    def current_link(self) -> str:
        return f"{self.deploy_path}/{CURRENT_LINK}"

    @property
    def shared_dir(self) -> str:
        return f"{self.deploy_path}/{SHARED_DIR}"

    @property
    def logs_dir(self) -> str:
        return f"{self.deploy_path}/{LOGS_DIR}"

    def release_dir(self, release_id: str) -> str:
        return f"{self.releases_dir}/{release_id}"

    @property
    def uses_git(self) -> bool:
        return self.git is not None

    @property
    def url(self) -> str:
        """Public URL of the app."""
        if self.domain:
            return f"https://{self.domain}"
        return f"http://{self.host}:{self.port}"

    def ssh_config(self) -> SSHConfig:
        return SSHConfig(
            host=self.host,
            user=self.username,
            key_path=self.private_key,
            port=self.ssh_port,
            connect_timeout=self.connect_timeout,
            command_timeout=self.command_timeout,
        )
