"""PM2 process management on the deploy target."""

import json
import shlex
import time
from dataclasses import dataclass
from typing import Optional

from bunbox_deploy.constants import CURRENT_LINK, ECOSYSTEM_FILE
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.services.ssh_service import SSHService
from bunbox_deploy.utils import format_bytes, format_uptime, render_stub


@dataclass
class ProcessStatus:
    """One PM2 process as reported by `pm2 jlist`."""

    name: str
    status: str
    uptime: str
    memory: str
    cpu: str
    restarts: int = 0


class PM2Manager:
    """Supervises the app process with PM2."""

    def __init__(self, ssh: SSHService, target: ResolvedTarget):
        self.ssh = ssh
        self.target = target

    @property
    def ecosystem_path(self) -> str:
        return f"{self.target.deploy_path}/{ECOSYSTEM_FILE}"

    def render_ecosystem(self, app_path: Optional[str] = None) -> str:
        """
        Render ecosystem.config.js.

        Args:
            app_path: App directory inside a monorepo release (cwd for PM2)
        """
        cwd = f"{self.target.deploy_path}/{CURRENT_LINK}"
        if app_path:
            cwd = f"{cwd}/{app_path}"
        return render_stub(
            "ecosystem.config.js.j2",
            name=self.target.name,
            script=self.target.script,
            cwd=cwd,
            port=self.target.port,
            env=self.target.env,
            logs_dir=self.target.logs_dir,
        )

    def write_ecosystem(self, app_path: Optional[str] = None) -> None:
        self.ssh.exec_check(
            f"mkdir -p {shlex.quote(self.target.logs_dir)}",
            message="Could not create logs directory",
        )
        self.ssh.write_file(self.ecosystem_path, self.render_ecosystem(app_path))

    def is_installed(self) -> bool:
        return self.ssh.command_exists("pm2")

    def install(self) -> None:
        self.ssh.exec_check("npm install -g pm2", message="Failed to install PM2")

    def is_running(self) -> bool:
        """Whether PM2 knows a process with the target's name."""
        return self.ssh.exec(f"pm2 describe {shlex.quote(self.target.name)}").is_success

    def start_or_reload(self, app_path: Optional[str] = None) -> str:
        """
        Reload the process if it exists (zero downtime), else start it.

        Returns:
            "reloaded" or "started"
        """
        self.write_ecosystem(app_path)
        return self.reload_or_start()

    def reload_or_start(self) -> str:
        """Reload or start using the ecosystem file already on the server."""
        if self.is_running():
            self.ssh.exec_check(
                f"pm2 reload {shlex.quote(self.target.name)} --update-env",
                message="Failed to reload app",
            )
            return "reloaded"

        self.ssh.exec_check(
            f"cd {shlex.quote(self.target.deploy_path)} && pm2 start {ECOSYSTEM_FILE}",
            message="Failed to start app",
        )
        # Persist the process list so PM2 resurrects it after reboot
        self.ssh.exec("pm2 save")
        return "started"

    def status(self) -> Optional[ProcessStatus]:
        """Status of the app process, or None if PM2 does not know it."""
        result = self.ssh.exec("pm2 jlist")
        if result.is_failure:
            return None

        try:
            processes = json.loads(result.stdout)
        except ValueError:
            return None

        for proc in processes:
            if proc.get("name") != self.target.name:
                continue
            env = proc.get("pm2_env") or {}
            monit = proc.get("monit") or {}
            return ProcessStatus(
                name=self.target.name,
                status=env.get("status", "unknown"),
                uptime=format_uptime(env.get("pm_uptime", 0), time.time() * 1000),
                memory=format_bytes(monit.get("memory", 0)),
                cpu=f"{monit.get('cpu', 0)}%",
                restarts=env.get("restart_time", 0),
            )
        return None

    def logs(self, lines: int = 100) -> str:
        result = self.ssh.exec(
            f"pm2 logs {shlex.quote(self.target.name)} --nostream --lines {int(lines)} 2>&1"
        )
        return result.stdout or result.stderr

    def follow_command(self, lines: int = 100) -> str:
        return f"pm2 logs {shlex.quote(self.target.name)} --lines {int(lines)}"
