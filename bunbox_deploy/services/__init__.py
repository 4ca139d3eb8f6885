"""
bunbox-deploy Services Layer

Remote and local operations used by the deployment pipeline and commands.
"""

from .ssh_service import SSHService
from .release_store import ReleaseStore, generate_release_id
from .deploy_lock import DeployLock
from .transfer import FileTransfer, TransferResult, build_rsync_args, effective_excludes
from .git_sync import GitSync
from .process_manager import PM2Manager
from .proxy import CaddyProxy, ProxyResult
from .health import HealthChecker

__all__ = [
    "SSHService",
    "ReleaseStore",
    "generate_release_id",
    "DeployLock",
    "FileTransfer",
    "TransferResult",
    "build_rsync_args",
    "effective_excludes",
    "GitSync",
    "PM2Manager",
    "CaddyProxy",
    "ProxyResult",
    "HealthChecker",
]
