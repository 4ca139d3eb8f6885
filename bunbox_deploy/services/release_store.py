"""
Release Store

Owns the remote release layout of one target:

    <deploy_path>/
      current -> releases/<id>     # relative symlink, the only live pointer
      releases/<id>/               # one directory per deploy
      releases/.pending/<id>       # marker for releases never activated
      shared/                      # files that survive across releases
      logs/
"""

import re
import shlex
from datetime import datetime
from typing import List, Optional

from bunbox_deploy.constants import (
    CURRENT_LINK,
    LOGS_DIR,
    PENDING_DIR,
    RELEASE_ID_FORMAT,
    RELEASE_ID_PATTERN,
    RELEASES_DIR,
    SHARED_DIR,
)
from bunbox_deploy.exceptions import ActivationError
from bunbox_deploy.services.ssh_service import SSHService

RELEASE_ID = re.compile(RELEASE_ID_PATTERN)


def generate_release_id(now: Optional[datetime] = None) -> str:
    """Timestamp release id (YYYYMMDD_HHMMSS); sorts in creation order."""
    return (now or datetime.now()).strftime(RELEASE_ID_FORMAT)


def is_release_id(name: str) -> bool:
    return bool(RELEASE_ID.match(name))


class ReleaseStore:
    """Release directories and the current pointer on the remote host."""

    def __init__(self, ssh: SSHService, deploy_path: str):
        self.ssh = ssh
        self.deploy_path = deploy_path.rstrip("/")

    @property
    def releases_dir(self) -> str:
        return f"{self.deploy_path}/{RELEASES_DIR}"

    @property
    def pending_dir(self) -> str:
        return f"{self.releases_dir}/{PENDING_DIR}"

    @property
    def current_link(self) -> str:
        return f"{self.deploy_path}/{CURRENT_LINK}"

    def release_dir(self, release_id: str) -> str:
        return f"{self.releases_dir}/{release_id}"

    def _q(self, path: str) -> str:
        return shlex.quote(path)

    def ensure_layout(self) -> None:
        """Create releases/, shared/ and logs/ if missing."""
        dirs = " ".join(
            self._q(f"{self.deploy_path}/{d}")
            for d in (RELEASES_DIR, f"{RELEASES_DIR}/{PENDING_DIR}", SHARED_DIR, LOGS_DIR)
        )
        self.ssh.exec_check(
            f"mkdir -p {dirs}", message=f"Could not create {self.deploy_path}"
        )

    def create_release(self, release_id: str) -> str:
        """
        Create an empty release directory marked as pending.

        Returns:
            Absolute path of the release directory
        """
        self.ensure_layout()
        release_dir = self.release_dir(release_id)
        self.ssh.exec_check(
            f"mkdir -p {self._q(release_dir)} && "
            f"touch {self._q(f'{self.pending_dir}/{release_id}')}",
            message=f"Could not create release {release_id}",
        )
        return release_dir

    def activate(self, release_id: str) -> None:
        """
        Point current at a release.

        The new link is created beside current and renamed over it, so
        current never goes missing.

        Raises:
            ActivationError: If the release does not exist or the swap fails
        """
        release_dir = self.release_dir(release_id)
        if not self.ssh.path_exists(release_dir):
            raise ActivationError(
                f"Release {release_id} does not exist", context=release_dir
            )

        result = self.ssh.exec(
            f"cd {self._q(self.deploy_path)} && "
            f"ln -sfn {self._q(f'{RELEASES_DIR}/{release_id}')} .{CURRENT_LINK}.tmp && "
            f"mv -Tf .{CURRENT_LINK}.tmp {CURRENT_LINK} && "
            f"rm -f {self._q(f'{self.pending_dir}/{release_id}')}"
        )
        if result.is_failure:
            raise ActivationError(
                f"Could not activate release {release_id}",
                context=result.stderr.strip() or None,
            )

    def list_releases(self) -> List[str]:
        """Release ids, newest first."""
        result = self.ssh.exec(f"ls -1 {self._q(self.releases_dir)} 2>/dev/null")
        if result.is_failure:
            return []
        ids = [line.strip() for line in result.stdout.splitlines()]
        return sorted((i for i in ids if is_release_id(i)), reverse=True)

    def pending_releases(self) -> List[str]:
        """Ids of releases that were created but never activated."""
        result = self.ssh.exec(f"ls -1 {self._q(self.pending_dir)} 2>/dev/null")
        if result.is_failure:
            return []
        ids = [line.strip() for line in result.stdout.splitlines()]
        return sorted((i for i in ids if is_release_id(i)), reverse=True)

    def is_pending(self, release_id: str) -> bool:
        return self.ssh.path_exists(f"{self.pending_dir}/{release_id}")

    def current_id(self) -> Optional[str]:
        """Release id that current points at, or None."""
        result = self.ssh.exec(f"readlink {self._q(self.current_link)}")
        if result.is_failure:
            return None
        target = result.stdout.strip().rstrip("/")
        if not target:
            return None
        return target.rsplit("/", 1)[-1]

    def remove_release(self, release_id: str) -> None:
        if not is_release_id(release_id):
            raise ValueError(f"Refusing to remove {release_id!r}")
        self.ssh.exec_check(
            f"rm -rf {self._q(self.release_dir(release_id))} "
            f"{self._q(f'{self.pending_dir}/{release_id}')}",
            message=f"Could not remove release {release_id}",
        )

    def prune(self, keep: int) -> List[str]:
        """
        Delete old releases.

        Removes every release beyond the `keep` newest plus every pending
        release older than current. The current release is never removed.

        Returns:
            Removed release ids, oldest first
        """
        if keep < 1:
            raise ValueError("keep must be at least 1")

        releases = self.list_releases()
        current = self.current_id()

        doomed = set(releases[keep:])
        if current:
            doomed.update(p for p in self.pending_releases() if p < current)
            doomed.discard(current)

        removed = sorted(r for r in doomed if r in releases)
        for release_id in removed:
            self.remove_release(release_id)
        return removed
