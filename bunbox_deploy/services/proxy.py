"""Caddy reverse proxy configuration."""

import json
import re
import shlex
from dataclasses import dataclass
from typing import Optional

from bunbox_deploy.constants import CADDY_SITES_DIR, CADDYFILE_PATH, META_FILE
from bunbox_deploy.exceptions import RemoteCommandError
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.services.ssh_service import SSHService
from bunbox_deploy.utils import render_stub


@dataclass
class ProxyResult:
    """Outcome of configure()."""

    changed: bool
    first_deploy: bool


class CaddyProxy:
    """
    One site file per app under the sites directory, imported once by the
    main Caddyfile. A metadata file in deploy_path remembers the last
    registration so renames clean up after themselves.
    """

    def __init__(
        self,
        ssh: SSHService,
        target: ResolvedTarget,
        sites_dir: str = CADDY_SITES_DIR,
        caddyfile: str = CADDYFILE_PATH,
    ):
        self.ssh = ssh
        self.target = target
        self.sites_dir = sites_dir
        self.caddyfile = caddyfile

    @property
    def import_line(self) -> str:
        return f"import {self.sites_dir}/*.caddy"

    @property
    def meta_path(self) -> str:
        return f"{self.target.deploy_path}/{META_FILE}"

    def site_path(self, name: Optional[str] = None) -> str:
        return f"{self.sites_dir}/{name or self.target.name}.caddy"

    def render_site(self) -> str:
        if not self.target.domain:
            raise ValueError("No domain configured for Caddy")
        return render_stub(
            "site.caddy.j2",
            name=self.target.name,
            domain=self.target.domain,
            port=self.target.port,
        )

    def is_installed(self) -> bool:
        return self.ssh.command_exists("caddy")

    def check_port_conflict(self) -> Optional[str]:
        """Name of another app whose site proxies our port, if any."""
        pattern = shlex.quote(f"localhost:{self.target.port}([^0-9]|$)")
        result = self.ssh.exec(
            f"grep -lE {pattern} {shlex.quote(self.sites_dir)}/*.caddy 2>/dev/null"
        )
        if result.is_failure:
            return None

        for line in result.stdout.splitlines():
            match = re.search(r"([^/]+)\.caddy$", line.strip())
            if match and match.group(1) != self.target.name:
                return match.group(1)
        return None

    def read_metadata(self) -> Optional[dict]:
        content = self.ssh.read_file(self.meta_path)
        if content is None:
            return None
        try:
            meta = json.loads(content)
        except ValueError:
            return {}
        return meta if isinstance(meta, dict) else {}

    def write_metadata(self) -> None:
        meta = {
            "appName": self.target.name,
            "domain": self.target.domain,
            "port": self.target.port,
        }
        self.ssh.write_file(self.meta_path, json.dumps(meta))

    def is_registered(self) -> bool:
        """Whether our site file is in place and imported with current settings."""
        existing = self.ssh.read_file(self.site_path(), elevate=True)
        if existing is None or existing.strip() != self.render_site().strip():
            return False
        return self._has_import()

    def _has_import(self) -> bool:
        return self.ssh.exec(
            f"grep -qxF {shlex.quote(self.import_line)} {shlex.quote(self.caddyfile)}",
            elevate=True,
        ).is_success

    def _ensure_import(self) -> bool:
        if self._has_import():
            return False
        quoted = shlex.quote(self.caddyfile)
        self.ssh.exec_check(
            f"{{ printf '%s\\n' {shlex.quote(self.import_line)}; cat {quoted} 2>/dev/null; }}"
            f" > {quoted}.tmp && mv {quoted}.tmp {quoted}",
            message="Could not update Caddyfile",
            elevate=True,
        )
        return True

    def configure(self) -> ProxyResult:
        """
        Register the domain. Safe to call repeatedly.

        Raises:
            RemoteCommandError: If Caddy rejects the configuration
        """
        if not self.target.domain:
            return ProxyResult(changed=False, first_deploy=False)

        self.ssh.exec_check(
            f"mkdir -p {shlex.quote(self.sites_dir)}",
            message="Could not create Caddy sites directory",
            elevate=True,
        )

        meta = self.read_metadata()
        first_deploy = meta is None

        old_name = (meta or {}).get("appName")
        if old_name and old_name != self.target.name:
            self.ssh.exec(f"rm -f {shlex.quote(self.site_path(old_name))}", elevate=True)

        import_added = self._ensure_import()

        site = self.render_site()
        existing = self.ssh.read_file(self.site_path(), elevate=True)
        site_changed = existing is None or existing.strip() != site.strip()
        if site_changed:
            self.ssh.write_file(self.site_path(), site, elevate=True)

        changed = import_added or site_changed
        if changed:
            result = self.ssh.exec(
                f"caddy validate --config {shlex.quote(self.caddyfile)}", elevate=True
            )
            if result.is_failure:
                raise RemoteCommandError(
                    "Invalid Caddy config",
                    command="caddy validate",
                    returncode=result.returncode,
                    stderr=result.stderr.strip(),
                )
            self.ssh.exec_check(
                "systemctl reload caddy",
                message="Could not reload Caddy",
                elevate=True,
            )

        self.write_metadata()
        return ProxyResult(changed=changed, first_deploy=first_deploy)

    def install(self) -> None:
        """Install Caddy from the official Debian/Ubuntu repository."""
        commands = [
            "apt-get update",
            "apt-get install -y debian-keyring debian-archive-keyring apt-transport-https curl",
            "curl -1sLf 'https://dl.cloudsmith.io/public/caddy/stable/gpg.key'"
            " | gpg --batch --yes --dearmor -o /usr/share/keyrings/caddy-stable-archive-keyring.gpg",
            "curl -1sLf 'https://dl.cloudsmith.io/public/caddy/stable/debian.deb.txt'"
            " > /etc/apt/sources.list.d/caddy-stable.list",
            "apt-get update",
            "apt-get install -y caddy",
            "systemctl enable caddy",
            "systemctl start caddy",
        ]
        for command in commands:
            self.ssh.exec_check(command, message="Failed to install Caddy", elevate=True)
