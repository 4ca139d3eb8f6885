"""Advisory deploy lock held on the remote host."""

import shlex
from typing import Optional

from bunbox_deploy.constants import LOCK_DIR
from bunbox_deploy.exceptions import LockError
from bunbox_deploy.services.ssh_service import SSHService
from bunbox_deploy.utils import describe_invocation


class DeployLock:
    """
    `<deploy_path>/.deploy.lock/` created with mkdir, which either succeeds or
    fails atomically. The owner file says who holds it.
    """

    def __init__(self, ssh: SSHService, deploy_path: str, operation: str = "deploy"):
        self.ssh = ssh
        self.lock_dir = f"{deploy_path.rstrip('/')}/{LOCK_DIR}"
        self.operation = operation
        self.held = False

    @property
    def owner_file(self) -> str:
        return f"{self.lock_dir}/owner"

    def acquire(self) -> None:
        """
        Take the lock or fail fast.

        Raises:
            LockError: If another invocation holds it
        """
        if self.held:
            return

        parent = self.lock_dir.rsplit("/", 1)[0]
        owner = describe_invocation(self.operation)
        result = self.ssh.exec(
            f"mkdir -p {shlex.quote(parent)} && mkdir {shlex.quote(self.lock_dir)} && "
            f"printf '%s\\n' {shlex.quote(owner)} > {shlex.quote(self.owner_file)}"
        )
        if result.is_failure:
            holder = self.owner()
            if holder is None and not self.ssh.path_exists(self.lock_dir):
                raise LockError(
                    "Could not create deploy lock",
                    context=result.stderr.strip() or None,
                )
            raise LockError(
                "Another deployment is in progress on this target",
                context=(
                    f"Held by: {holder or 'unknown'}\n"
                    "If it is stale, run: bunbox-deploy unlock"
                ),
            )
        self.held = True

    def release(self) -> None:
        """Drop the lock if we hold it."""
        if not self.held:
            return
        self.ssh.exec(f"rm -rf {shlex.quote(self.lock_dir)}")
        self.held = False

    def owner(self) -> Optional[str]:
        """Contents of the owner file, or None when unlocked."""
        content = self.ssh.read_file(self.owner_file)
        return content.strip() if content else None

    def force_release(self) -> bool:
        """Remove a lock regardless of owner. Returns whether one existed."""
        existed = self.ssh.path_exists(self.lock_dir)
        if existed:
            self.ssh.exec_check(
                f"rm -rf {shlex.quote(self.lock_dir)}",
                message="Could not remove deploy lock",
            )
        self.held = False
        return existed

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
