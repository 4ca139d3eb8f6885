"""Tests for rollback planning and execution."""

import pytest

from bunbox_deploy.deployment import RollbackController
from bunbox_deploy.exceptions import LockError, RollbackError
from bunbox_deploy.services.deploy_lock import DeployLock
from bunbox_deploy.services.process_manager import PM2Manager
from bunbox_deploy.services.release_store import ReleaseStore

IDS = ["20240101_120000", "20240102_120000", "20240103_120000"]


@pytest.fixture
def store(shell, deploy_path):
    store = ReleaseStore(shell, deploy_path)
    for release_id in IDS:
        store.create_release(release_id)
        store.activate(release_id)
    return store


def test_rollback_one_step(store, shell, target):
    controller = RollbackController(
        store,
        supervisor=PM2Manager(shell, target),
        lock=DeployLock(shell, target.deploy_path, operation="rollback"),
    )
    plan = controller.rollback()

    assert (plan.current, plan.target) == (IDS[2], IDS[1])
    assert store.current_id() == IDS[1]
    # Not running yet, so the supervisor starts it from the ecosystem file
    assert any(line.startswith("start") for line in shell.tool_log("pm2"))


def test_rollback_reloads_running_app(store, shell, target):
    shell.state_file("pm2_running").touch()
    RollbackController(store, supervisor=PM2Manager(shell, target)).rollback()
    assert "reload app --update-env" in shell.tool_log("pm2")


def test_rollback_bounds(store):
    controller = RollbackController(store)
    assert controller.plan(2).target == IDS[0]

    with pytest.raises(RollbackError) as exc:
        controller.plan(3)
    assert exc.value.message == (
        "Cannot rollback 3 version(s). Only 2 older release(s) available."
    )
    assert store.current_id() == IDS[2]


def test_rollback_from_older_release(store):
    store.activate(IDS[1])
    controller = RollbackController(store)
    with pytest.raises(RollbackError) as exc:
        controller.plan(2)
    assert "Only 1 older release(s)" in exc.value.message


def test_rollback_skips_pending_releases(store):
    store.create_release("20240102_000000")
    assert RollbackController(store).plan(1).target == IDS[1]
    assert RollbackController(store).plan(2).target == IDS[0]


def test_rollback_without_current(shell, deploy_path):
    store = ReleaseStore(shell, deploy_path)
    store.create_release(IDS[0])
    with pytest.raises(RollbackError) as exc:
        RollbackController(store).plan()
    assert exc.value.message == "Could not determine current release"


def test_invalid_steps(store):
    with pytest.raises(RollbackError):
        RollbackController(store).plan(0)


def test_rollback_respects_lock(store, shell, deploy_path):
    DeployLock(shell, deploy_path, operation="deploy").acquire()
    controller = RollbackController(store, lock=DeployLock(shell, deploy_path, operation="rollback"))

    with pytest.raises(LockError):
        controller.rollback()
    assert store.current_id() == IDS[2]
