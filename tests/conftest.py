"""
Shared fixtures.

The deploy target is a directory under tmp_path. LocalShell stands in for
SSHService and runs each remote command with local bash, with small fake
pm2/caddy/systemctl/curl/git/npm executables first on PATH.
"""

import fnmatch
import json
import os
import re
import shutil
import stat
import subprocess
from pathlib import Path

import pytest

from bunbox_deploy.core.config_loader import parse_config, resolve_target
from bunbox_deploy.exceptions import SSHError
from bunbox_deploy.models.results import ExecutionResult, SSHResult
from bunbox_deploy.models.ssh import SSHConfig
from bunbox_deploy.services.ssh_service import SSHService

PUBLIC_IP = "203.0.113.10"

FAKE_TOOLS = {
    "pm2": r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_STATE/pm2.log"
case "$1" in
  describe) [ -f "$FAKE_STATE/pm2_running" ] ;;
  start) touch "$FAKE_STATE/pm2_running" ;;
  jlist) cat "$FAKE_STATE/pm2_jlist" 2>/dev/null || echo "[]" ;;
  logs) cat "$FAKE_STATE/pm2_logs" 2>/dev/null ;;
  *) exit 0 ;;
esac
""",
    "curl": r"""#!/usr/bin/env bash
for arg in "$@"; do
  case "$arg" in *ifconfig.me*) printf '%s' "203.0.113.10"; exit 0 ;; esac
done
url="${@: -1}"
path="/${url#http://*/}"
key=$(printf '%s' "$path" | tr '/' '_')
echo "$path" >> "$FAKE_STATE/curl.log"
if [ -f "$FAKE_STATE/http$key" ]; then
  cat "$FAKE_STATE/http$key"
elif [ -f "$FAKE_STATE/http_default" ]; then
  cat "$FAKE_STATE/http_default"
else
  printf '200'
fi
""",
    "caddy": r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_STATE/caddy.log"
if [ "$1" = "validate" ] && [ -f "$FAKE_STATE/caddy_invalid" ]; then
  echo "Error: adapting config using caddyfile: unrecognized directive" >&2
  exit 1
fi
exit 0
""",
    "systemctl": r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_STATE/systemctl.log"
exit 0
""",
    "npm": r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_STATE/npm.log"
exit 0
""",
    "git": r"""#!/usr/bin/env bash
echo "$*" >> "$FAKE_STATE/git.log"
args=("$@")
case "$1" in
  clone)
    url="${args[-2]}"
    dir="${args[-1]}"
    if [ -f "$FAKE_STATE/git_fail" ]; then
      echo "fatal: unable to access '$url': The requested URL returned error: 403" >&2
      exit 128
    fi
    mkdir -p "$dir/.git"
    echo '{"name": "cloned-app"}' > "$dir/package.json"
    ;;
  ls-remote)
    if [ -f "$FAKE_STATE/git_fail" ]; then
      echo "fatal: could not read from '${args[-2]}'" >&2
      exit 128
    fi
    echo "abc123	HEAD"
    ;;
esac
""",
}


class LocalShell(SSHService):
    """SSHService that runs commands on this machine instead of a server."""

    def __init__(self, state_dir: Path, bin_dir: Path, installed=("bun", "pm2", "caddy", "git")):
        super().__init__(
            SSHConfig(host=PUBLIC_IP, user="deploy", key_path=str(state_dir / "id_ed25519"))
        )
        self.state_dir = state_dir
        self.installed = set(installed)
        self.commands = []
        # substring -> (returncode, stderr); forces matching commands to fail
        self.fail_on = {}
        self.env = {
            **os.environ,
            "FAKE_STATE": str(state_dir),
            "PATH": f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}",
        }

    def connect(self) -> None:
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    def rsync_transport(self) -> str:
        return "ssh -p 22"

    def exec(self, command, elevate=False, skip_path_extend=False, timeout=None):
        if not self.connected:
            raise SSHError("Not connected")
        self.commands.append(command)

        for needle, (code, stderr) in self.fail_on.items():
            if needle in command:
                return SSHResult(returncode=code, stderr=stderr, host=PUBLIC_IP, command=command)

        match = re.fullmatch(r"which (\S+)", command)
        if match:
            code = 0 if match.group(1) in self.installed else 1
            return SSHResult(returncode=code, host=PUBLIC_IP, command=command)

        result = subprocess.run(
            ["bash", "-c", command],
            capture_output=True,
            text=True,
            env=self.env,
            timeout=60,
        )
        return SSHResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            host=PUBLIC_IP,
            command=command,
        )

    # Helpers for assertions

    def state_file(self, name: str) -> Path:
        return self.state_dir / name

    def tool_log(self, tool: str) -> list:
        path = self.state_dir / f"{tool}.log"
        if not path.exists():
            return []
        return path.read_text().splitlines()

    def set_http_status(self, path: str, status: int) -> None:
        key = path.replace("/", "_")
        (self.state_dir / f"http{key}").write_text(str(status))

    def set_pm2_processes(self, processes: list) -> None:
        (self.state_dir / "pm2_jlist").write_text(json.dumps(processes))


@pytest.fixture
def fake_bin(tmp_path):
    bin_dir = tmp_path / "fakebin"
    bin_dir.mkdir()
    for name, script in FAKE_TOOLS.items():
        tool = bin_dir / name
        tool.write_text(script)
        tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return bin_dir


@pytest.fixture
def shell(tmp_path, fake_bin):
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    ssh = LocalShell(state_dir, fake_bin)
    ssh.connect()
    return ssh


@pytest.fixture
def deploy_path(tmp_path):
    return str(tmp_path / "srv" / "app")


@pytest.fixture
def target_factory(tmp_path, deploy_path):
    """Build a ResolvedTarget from overrides on a minimal target."""

    def factory(variables=None, **overrides):
        raw = {
            "host": PUBLIC_IP,
            "username": "deploy",
            "private_key": str(tmp_path / "state" / "id_ed25519"),
            "deploy_path": deploy_path,
            "name": "app",
            "health_check_delay": 0,
            "install_command": "touch installed.marker",
            "build_command": "echo built > build.marker",
        }
        raw.update(overrides)
        config = parse_config({"targets": {"production": raw}})
        return resolve_target(config, "production", variables=variables or {})[1]

    return factory


@pytest.fixture
def target(target_factory):
    return target_factory()


def write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


@pytest.fixture
def project(tmp_path):
    """A single-package Bun app."""
    root = tmp_path / "project"
    write_json(root / "package.json", {"name": "app", "scripts": {"start": "bun index.ts"}})
    (root / "index.ts").write_text("console.log('hi')\n")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("")
    return root


@pytest.fixture
def monorepo(tmp_path):
    """
    Workspace with apps/web -> packages/ui -> packages/utils, plus an unused
    packages/unused and a second app.
    """
    root = tmp_path / "mono"
    write_json(root / "package.json", {"name": "mono", "workspaces": ["apps/*", "packages/*"]})
    write_json(
        root / "apps" / "web" / "package.json",
        {"name": "web", "dependencies": {"@acme/ui": "workspace:*", "react": "^18.0.0"}},
    )
    write_json(
        root / "apps" / "admin" / "package.json",
        {"name": "admin", "dependencies": {"@acme/ui": "workspace:*"}},
    )
    write_json(
        root / "packages" / "ui" / "package.json",
        {"name": "@acme/ui", "dependencies": {"@acme/utils": "workspace:^"}},
    )
    write_json(root / "packages" / "utils" / "package.json", {"name": "@acme/utils"})
    write_json(root / "packages" / "unused" / "package.json", {"name": "@acme/unused"})
    (root / "apps" / "web" / "index.ts").write_text("export {}\n")
    return root


def rsync_rules(args):
    """(pattern, included) pairs in command-line order."""
    rules = []
    for arg in args:
        for flag, included in (("--include=", True), ("--exclude=", False)):
            if arg.startswith(flag):
                rules.append((arg[len(flag):], included))
    return rules


def rule_matches(pattern, rel_path, is_dir):
    """rsync pattern semantics for the subset build_rsync_args emits."""
    if pattern.endswith("/"):
        if not is_dir:
            return False
        pattern = pattern[:-1]
    if pattern.startswith("/"):
        return fnmatch.fnmatchcase(rel_path, pattern[1:])
    if "/" in pattern:
        return fnmatch.fnmatchcase(rel_path, pattern)
    return fnmatch.fnmatchcase(rel_path.rsplit("/", 1)[-1], pattern)


def is_transferred(rules, rel_path, is_dir):
    # First matching rule wins; unmatched paths are sent
    for pattern, included in rules:
        if rule_matches(pattern, rel_path, is_dir):
            return included
    return True


def mirror(source, dest, args):
    """Copy source into dest the way rsync would with these filter args."""
    rules = rsync_rules(args)
    prune_empty = "--prune-empty-dirs" in args
    for root, dirs, files in os.walk(source):
        rel_root = os.path.relpath(root, source)
        prefix = "" if rel_root == "." else f"{rel_root}/"
        dirs[:] = [d for d in dirs if is_transferred(rules, prefix + d, True)]
        if not prune_empty:
            for d in dirs:
                os.makedirs(os.path.join(dest, prefix + d), exist_ok=True)
        for name in files:
            rel_path = prefix + name
            if is_transferred(rules, rel_path, False):
                copy_to = os.path.join(dest, rel_path)
                os.makedirs(os.path.dirname(copy_to), exist_ok=True)
                shutil.copy2(os.path.join(root, name), copy_to)


class RecordingRunner:
    """
    Local runner for pipeline tests: shell strings run for real, rsync
    argument lists are emulated by copying into the release directory with
    the include/exclude rules applied.
    """

    def __init__(self):
        self.calls = []

    def __call__(self, command, cwd=None, logger=None, description=""):
        self.calls.append((command, Path(cwd) if cwd else None))
        if isinstance(command, list) and command[0] == "rsync":
            dest = command[-1].split(":", 1)[1]
            mirror(cwd, dest, command)
            return ExecutionResult(returncode=0, command="rsync")

        result = subprocess.run(command, shell=True, cwd=cwd, capture_output=True, text=True)
        return ExecutionResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            command=command,
        )

    @property
    def rsync_calls(self):
        return [c for c in self.calls if isinstance(c[0], list)]


@pytest.fixture
def runner():
    return RecordingRunner()
