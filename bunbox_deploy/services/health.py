"""HTTP health probe against the app on the target."""

import shlex
from typing import Optional

from bunbox_deploy.constants import HEALTH_LOG_LINES
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.services.ssh_service import SSHService


class HealthChecker:
    """Probes localhost:<port> from the server itself."""

    def __init__(self, ssh: SSHService, target: ResolvedTarget):
        self.ssh = ssh
        self.target = target

    def _status_code(self, path: str) -> Optional[int]:
        url = f"http://localhost:{self.target.port}{path}"
        result = self.ssh.exec(
            f"curl -s -o /dev/null -w '%{{http_code}}' {shlex.quote(url)} 2>/dev/null"
        )
        try:
            return int(result.stdout.strip())
        except ValueError:
            return None

    def probe(self) -> bool:
        """
        Healthy when the health path (or / if that is missing) answers 2xx/3xx.
        """
        status = self._status_code(self.target.health_path)
        if status is None or status == 404:
            status = self._status_code("/")
        return status is not None and 200 <= status < 400

    def diagnose(self) -> str:
        """Explain a failed probe from the recent PM2 log."""
        result = self.ssh.exec(
            f"pm2 logs {shlex.quote(self.target.name)} --nostream "
            f"--lines {HEALTH_LOG_LINES} 2>&1"
        )
        logs = result.stdout or ""

        if "0 routes" in logs:
            return (
                "Health check failed - app started with 0 routes. "
                "Check that source files were transferred correctly."
            )
        if "error" in logs.lower():
            return "Health check failed - check PM2 logs for errors"
        return "Health check failed - app may still be starting"
