"""File transfer to a release directory using rsync over SSH"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from bunbox_deploy.constants import (
    DEFAULT_EXCLUDES,
    MANIFEST_FILE,
    WORKSPACE_LOCKFILES,
)
from bunbox_deploy.core.workspace import WorkspaceInfo, WorkspaceResolver
from bunbox_deploy.exceptions import TransferError
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.models.results import ExecutionResult
from bunbox_deploy.services.local_runner import run_local, which


def effective_excludes(user_excludes: Optional[Sequence[str]] = None) -> List[str]:
    """Baseline excludes followed by user excludes, without duplicates."""
    merged: List[str] = []
    for pattern in [*DEFAULT_EXCLUDES, *(user_excludes or [])]:
        if pattern not in merged:
            merged.append(pattern)
    return merged


def _subtree(path: str) -> List[str]:
    path = path.strip("/")
    return [path, f"{path}/**"]


def build_rsync_args(
    target: ResolvedTarget,
    release_dir: str,
    transport: str,
    workspace: Optional[WorkspaceInfo] = None,
) -> List[str]:
    """
    Build the rsync command line.

    rsync applies the first matching rule, so excludes come before the
    workspace includes and always win.
    """
    args = ["rsync", "-avz", "--delete", "-e", transport]
    excludes = effective_excludes(target.exclude)

    if workspace is not None:
        # Root manifest and lockfiles only; unanchored names match at any depth
        includes = [f"/{name}" for name in (MANIFEST_FILE, *WORKSPACE_LOCKFILES)]
        includes += _subtree(workspace.app_path)
        for package in workspace.required_packages:
            includes += _subtree(package)
        for package in target.monorepo.include:
            includes += _subtree(package)

        for package in target.monorepo.exclude:
            args += [f"--exclude={p}" for p in _subtree(package)]
        args += [f"--exclude={e}" for e in excludes]
        # Traverse every directory; only the includes below pull in files
        args.append("--include=*/")
        args += [f"--include={i}" for i in includes]
        args += ["--exclude=*", "--prune-empty-dirs"]
    else:
        args += [f"--exclude={e}" for e in excludes]

    args += ["./", f"{target.username}@{target.host}:{release_dir}/"]
    return args


@dataclass
class TransferResult:
    """Outcome of a transfer."""

    workspace: Optional[WorkspaceInfo]
    result: ExecutionResult


class FileTransfer:
    """Synchronizes the local project into a remote release directory."""

    def __init__(
        self,
        target: ResolvedTarget,
        transport: str,
        cwd: Optional[Path] = None,
        resolver: Optional[WorkspaceResolver] = None,
        runner: Callable[..., ExecutionResult] = run_local,
    ):
        self.target = target
        self.transport = transport
        self.cwd = Path(cwd or Path.cwd())
        self.resolver = resolver or WorkspaceResolver()
        self.runner = runner

    def detect_workspace(self) -> Optional[WorkspaceInfo]:
        if self.target.monorepo.disabled:
            return None
        return self.resolver.resolve(self.cwd)

    def transfer(self, release_dir: str, logger=None) -> TransferResult:
        """
        Mirror the transfer set into release_dir.

        Raises:
            TransferError: If there is no manifest or rsync fails
        """
        if not (self.cwd / MANIFEST_FILE).is_file():
            raise TransferError(
                f"No {MANIFEST_FILE} found in {self.cwd}",
                context="Run bunbox-deploy from the app directory",
            )

        workspace = self.detect_workspace()
        source_dir = workspace.root if workspace else self.cwd
        args = build_rsync_args(self.target, release_dir, self.transport, workspace)

        if logger and workspace:
            logger.log(f"Monorepo root: {workspace.root}")
            logger.log(f"App path: {workspace.app_path}")
            logger.log(
                "Required packages: "
                + (", ".join(workspace.required_packages) or "(none)")
            )

        result = self.runner(
            args, cwd=source_dir, logger=logger, description="Transferring files"
        )
        if result.is_failure:
            raise TransferError(
                "File transfer failed", context=result.stderr.strip() or None
            )
        return TransferResult(workspace=workspace, result=result)


def check_rsync() -> bool:
    """Check if rsync is available locally."""
    return which("rsync")
