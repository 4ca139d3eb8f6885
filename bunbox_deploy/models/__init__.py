"""
bunbox-deploy Domain Models

Dataclass models for results and SSH, pydantic models for configuration.
"""

from .results import (
    ExecutionResult,
    SSHResult,
)
from .ssh import SSHConfig
from .config import (
    DeployConfig,
    DeployTarget,
    GitConfig,
    MonorepoConfig,
    ResolvedGitConfig,
    ResolvedTarget,
)

__all__ = [
    # Results
    "ExecutionResult",
    "SSHResult",
    # SSH
    "SSHConfig",
    # Config
    "DeployConfig",
    "DeployTarget",
    "GitConfig",
    "MonorepoConfig",
    "ResolvedGitConfig",
    "ResolvedTarget",
]
