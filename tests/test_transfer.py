"""Tests for the rsync transfer set."""

import pytest

from bunbox_deploy.constants import DEFAULT_EXCLUDES
from bunbox_deploy.core.workspace import WorkspaceInfo
from bunbox_deploy.exceptions import TransferError
from bunbox_deploy.models.results import ExecutionResult
from bunbox_deploy.services.transfer import (
    FileTransfer,
    build_rsync_args,
    effective_excludes,
)


def flag_values(args, flag):
    prefix = f"--{flag}="
    return [a[len(prefix):] for a in args if a.startswith(prefix)]


def test_effective_excludes_is_superset_of_defaults():
    excludes = effective_excludes(["tmp", "node_modules"])
    assert excludes[: len(DEFAULT_EXCLUDES)] == DEFAULT_EXCLUDES
    assert excludes.count("node_modules") == 1
    assert excludes[-1] == "tmp"


def test_single_package_args(target_factory):
    target = target_factory(exclude=["secrets"])
    args = build_rsync_args(target, "/srv/app/releases/20240101_120000", "ssh -p 22")

    assert args[:5] == ["rsync", "-avz", "--delete", "-e", "ssh -p 22"]
    assert set(DEFAULT_EXCLUDES) <= set(flag_values(args, "exclude"))
    assert "secrets" in flag_values(args, "exclude")
    assert flag_values(args, "include") == []
    assert args[-2:] == ["./", "deploy@203.0.113.10:/srv/app/releases/20240101_120000/"]


def test_workspace_args_exclude_before_include(target_factory, tmp_path):
    """Every exclude precedes the includes, so excludes always win."""
    target = target_factory(monorepo={"include": ["tools/scripts"], "exclude": ["packages/big"]})
    workspace = WorkspaceInfo(
        root=tmp_path, app_path="apps/web", required_packages=("packages/ui",)
    )
    args = build_rsync_args(target, "/srv/r", "ssh", workspace)

    includes = flag_values(args, "include")
    assert includes[0] == "*/"
    assert includes[1:4] == ["/package.json", "/bun.lock", "/bun.lockb"]
    assert "package.json" not in includes
    for path in ("apps/web", "packages/ui", "tools/scripts"):
        assert path in includes
        assert f"{path}/**" in includes
    assert "packages/big/**" in flag_values(args, "exclude")

    first_include = args.index("--include=*/")
    user_and_default = [
        i for i, a in enumerate(args) if a.startswith("--exclude=") and a != "--exclude=*"
    ]
    assert max(user_and_default) < first_include
    assert args.index("--exclude=*") > args.index("--include=apps/web/**")
    assert "--prune-empty-dirs" in args


def test_transfer_requires_manifest(target, tmp_path):
    transfer = FileTransfer(target, transport="ssh", cwd=tmp_path)
    with pytest.raises(TransferError):
        transfer.transfer("/srv/r")


def test_transfer_runs_from_workspace_root(target, monorepo):
    calls = []

    def record(command, cwd=None, logger=None, description=""):
        calls.append((command, cwd))
        return ExecutionResult(returncode=0)

    transfer = FileTransfer(
        target, transport="ssh", cwd=monorepo / "apps" / "web", runner=record
    )
    outcome = transfer.transfer("/srv/app/releases/x")

    assert outcome.workspace.app_path == "apps/web"
    command, cwd = calls[0]
    assert cwd == monorepo.resolve()
    assert "--include=packages/utils/**" in command
    assert "--include=packages/unused/**" not in command


def test_monorepo_detection_can_be_disabled(target_factory, monorepo):
    target = target_factory(monorepo={"disabled": True})
    transfer = FileTransfer(target, transport="ssh", cwd=monorepo / "apps" / "web")
    assert transfer.detect_workspace() is None


def test_rsync_failure_raises(target, project):
    def failing(command, cwd=None, logger=None, description=""):
        return ExecutionResult(returncode=23, stderr="rsync: connection unexpectedly closed")

    transfer = FileTransfer(target, transport="ssh", cwd=project, runner=failing)
    with pytest.raises(TransferError) as exc:
        transfer.transfer("/srv/r")
    assert "connection unexpectedly closed" in exc.value.context


def test_workspace_transfer_set(target, monorepo, runner, tmp_path):
    """Only the root manifest, the app and its workspace dependencies arrive."""
    (monorepo / "bun.lock").write_text("{}")
    (monorepo / "apps" / "web" / ".env").write_text("SECRET=1\n")
    (monorepo / "apps" / "web" / "node_modules" / "react").mkdir(parents=True)
    (monorepo / "apps" / "web" / "node_modules" / "react" / "index.js").write_text("")
    (monorepo / "packages" / "unused" / "index.ts").write_text("export {}\n")
    (monorepo / "packages" / "ui" / "debug.log").write_text("noise\n")
    dest = tmp_path / "release"
    dest.mkdir()

    transfer = FileTransfer(
        target, transport="ssh", cwd=monorepo / "apps" / "web", runner=runner
    )
    transfer.transfer(str(dest))

    [(args, _)] = runner.rsync_calls
    assert "--delete" in args
    sent = sorted(
        str(p.relative_to(dest)) for p in dest.rglob("*") if p.is_file()
    )
    assert sent == [
        "apps/web/index.ts",
        "apps/web/package.json",
        "bun.lock",
        "package.json",
        "packages/ui/package.json",
        "packages/utils/package.json",
    ]
    # Unneeded members leave no trace, not even an empty directory
    assert not (dest / "apps" / "admin").exists()
    assert not (dest / "packages" / "unused").exists()
