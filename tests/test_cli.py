"""CLI tests using click's CliRunner."""

import json
import os

import pytest
import yaml
from click.testing import CliRunner

from bunbox_deploy.deployment import STAGES
from bunbox_deploy.main import cli
from bunbox_deploy.services.deploy_lock import DeployLock
from bunbox_deploy.services.release_store import ReleaseStore

IDS = ["20240101_120000", "20240102_120000", "20240103_120000"]


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch, deploy_path):
    """Project directory with a two-target deploy file."""
    root = tmp_path / "work"
    root.mkdir()
    (root / "package.json").write_text('{"name": "app"}')
    target = {
        "host": "203.0.113.10",
        "username": "deploy",
        "private_key": str(tmp_path / "id_ed25519"),
        "deploy_path": deploy_path,
        "name": "app",
    }
    config = {
        "default_target": "production",
        "targets": {
            "production": target,
            "staging": {**target, "name": "app-staging"},
        },
    }
    (root / "bunbox.deploy.yml").write_text(yaml.safe_dump(config))
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def remote(shell, monkeypatch):
    """Route every command's SSH session to the local fake."""
    monkeypatch.setattr(
        "bunbox_deploy.base.target_command.SSHService", lambda config: shell
    )
    return shell


def test_help_lists_commands(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for name in ("init", "deploy", "rollback", "status", "releases", "setup", "logs", "unlock"):
        assert name in result.output


def test_init_writes_template(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = cli_runner.invoke(cli, ["init", "--name", "shop"])
    assert result.exit_code == 0
    config = yaml.safe_load((tmp_path / "bunbox.deploy.yml").read_text())
    assert config["targets"]["production"]["name"] == "shop"

    again = cli_runner.invoke(cli, ["init"])
    assert again.exit_code == 1
    assert "already exists" in again.output

    forced = cli_runner.invoke(cli, ["init", "--force", "--name", "shop 2"])
    assert forced.exit_code == 0
    assert "name: shop-2" in (tmp_path / "bunbox.deploy.yml").read_text()


def test_deploy_dry_run_json(cli_runner, workdir):
    result = cli_runner.invoke(cli, ["deploy", "--dry-run", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["target"] == "production"
    assert data["dry_run"] is True
    assert data["skipped"] == [name for name, _ in STAGES]
    assert data["url"] == "http://203.0.113.10:3000"


def test_namespaced_target(cli_runner, workdir):
    result = cli_runner.invoke(cli, ["staging:deploy", "--dry-run", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["target"] == "staging"


def test_dry_run_writes_log_file(cli_runner, workdir):
    result = cli_runner.invoke(cli, ["deploy", "production", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "Dry run complete" in result.output

    logs = list((workdir / ".bunbox-deploy" / "logs" / "production").rglob("*_deploy.log"))
    assert len(logs) == 1
    assert "Skipped: dry run" in logs[0].read_text()


def test_unknown_target(cli_runner, workdir):
    result = cli_runner.invoke(cli, ["deploy", "qa", "--dry-run"])
    assert result.exit_code == 1
    assert "Unknown target: qa" in result.output


def test_missing_config(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = cli_runner.invoke(cli, ["deploy", "--json"])
    assert result.exit_code == 1
    assert json.loads(result.output)["error"] == "No deploy config found"


def test_init_has_no_namespace(cli_runner):
    result = cli_runner.invoke(cli, ["production:init"])
    assert result.exit_code == 2


def test_releases_json(cli_runner, workdir, remote, deploy_path):
    store = ReleaseStore(remote, deploy_path)
    for release_id in IDS[:2]:
        store.create_release(release_id)
        store.activate(release_id)
    store.create_release(IDS[2])

    result = cli_runner.invoke(cli, ["production:releases", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["current"] == IDS[1]
    assert [r["id"] for r in data["releases"]] == [IDS[2], IDS[1], IDS[0]]
    assert data["releases"][0]["pending"] is True
    assert data["releases"][1]["current"] is True
    assert not remote.connected


def test_rollback_command(cli_runner, workdir, remote, deploy_path):
    store = ReleaseStore(remote, deploy_path)
    for release_id in IDS:
        store.create_release(release_id)
        store.activate(release_id)

    result = cli_runner.invoke(cli, ["rollback", "production", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"target": "production", "from": IDS[2], "to": IDS[1]}
    assert os.readlink(os.path.join(deploy_path, "current")) == f"releases/{IDS[1]}"


def test_rollback_without_history(cli_runner, workdir, remote, deploy_path):
    store = ReleaseStore(remote, deploy_path)
    store.create_release(IDS[0])
    store.activate(IDS[0])

    result = cli_runner.invoke(cli, ["rollback", "--json"])

    assert result.exit_code == 1
    assert "Only 0 older release(s)" in json.loads(result.output)["error"]


def test_status_json(cli_runner, workdir, remote, deploy_path):
    store = ReleaseStore(remote, deploy_path)
    store.create_release(IDS[0])
    store.activate(IDS[0])
    remote.set_pm2_processes(
        [{"name": "app", "pm2_env": {"status": "online", "restart_time": 0}, "monit": {}}]
    )

    result = cli_runner.invoke(cli, ["status", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["current"] == IDS[0]
    assert data["process"]["status"] == "online"


def test_unlock_command(cli_runner, workdir, remote, deploy_path):
    DeployLock(remote, deploy_path).acquire()

    result = cli_runner.invoke(cli, ["unlock", "-y", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["removed"] is True
    assert "operation=deploy" in data["owner"]
    assert not os.path.exists(os.path.join(deploy_path, ".deploy.lock"))


def test_setup_installs_missing_tools(cli_runner, workdir, remote, deploy_path):
    remote.installed.discard("pm2")

    result = cli_runner.invoke(cli, ["setup", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["installed"] == ["pm2"]
    assert os.path.isdir(os.path.join(deploy_path, "releases"))
    assert os.path.isdir(os.path.join(deploy_path, "shared"))
    assert remote.tool_log("npm") == ["install -g pm2"]
