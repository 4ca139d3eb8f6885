"""Rollback: re-point current at an older release."""

from dataclasses import dataclass
from typing import List, Optional

from bunbox_deploy.exceptions import RollbackError
from bunbox_deploy.services.deploy_lock import DeployLock
from bunbox_deploy.services.process_manager import PM2Manager
from bunbox_deploy.services.release_store import ReleaseStore


@dataclass
class RollbackPlan:
    """Where a rollback would move current."""

    current: str
    target: str
    releases: List[str]


class RollbackController:
    """
    Moves current `steps` releases back in history.

    Only the pointer changes; no files are transferred. Releases that were
    never activated are not rollback targets.
    """

    def __init__(
        self,
        store: ReleaseStore,
        supervisor: Optional[PM2Manager] = None,
        lock: Optional[DeployLock] = None,
    ):
        self.store = store
        self.supervisor = supervisor
        self.lock = lock

    def plan(self, steps: int = 1) -> RollbackPlan:
        """
        Work out the rollback target without changing anything.

        Raises:
            RollbackError: If current is unknown or history is too short
        """
        if steps < 1:
            raise RollbackError("Steps must be at least 1")

        current = self.store.current_id()
        pending = set(self.store.pending_releases())
        releases = [
            r for r in self.store.list_releases() if r not in pending or r == current
        ]

        if not current or current not in releases:
            raise RollbackError(
                "Could not determine current release",
                context=f"current -> {current or '(missing)'}",
            )

        current_idx = releases.index(current)
        target_idx = current_idx + steps
        if target_idx >= len(releases):
            available = len(releases) - current_idx - 1
            raise RollbackError(
                f"Cannot rollback {steps} version(s). "
                f"Only {available} older release(s) available."
            )

        return RollbackPlan(current=current, target=releases[target_idx], releases=releases)

    def rollback(self, steps: int = 1) -> RollbackPlan:
        """
        Activate the release `steps` before current and reload the app.

        Returns:
            The executed RollbackPlan
        """
        if self.lock is not None:
            self.lock.acquire()
        try:
            plan = self.plan(steps)
            self.store.activate(plan.target)
        finally:
            if self.lock is not None:
                self.lock.release()

        if self.supervisor is not None:
            self.supervisor.reload_or_start()
        return plan
