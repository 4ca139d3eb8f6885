"""
Deployment Pipeline

Runs the twelve deploy stages in order against one target. Each stage either
completes or raises a BunboxDeployError tagged with the stage name; nothing
after a failed stage runs. Progress is reported to listeners, which observe
but never steer the run.
"""

import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from bunbox_deploy.core.workspace import WorkspaceInfo, WorkspaceResolver
from bunbox_deploy.exceptions import (
    BunboxDeployError,
    BuildError,
    HealthCheckWarning,
    PreflightError,
    RemoteCommandError,
)
from bunbox_deploy.models.config import ResolvedTarget
from bunbox_deploy.models.results import ExecutionResult
from bunbox_deploy.services.deploy_lock import DeployLock
from bunbox_deploy.services.git_sync import GitSync
from bunbox_deploy.services.health import HealthChecker
from bunbox_deploy.services.local_runner import run_local
from bunbox_deploy.services.process_manager import PM2Manager
from bunbox_deploy.services.proxy import CaddyProxy
from bunbox_deploy.services.release_store import ReleaseStore, generate_release_id
from bunbox_deploy.services.ssh_service import SSHService
from bunbox_deploy.services.transfer import FileTransfer, check_rsync
from bunbox_deploy.utils import redact

# (name, label) in execution order
STAGES: List[Tuple[str, str]] = [
    ("connect", "Connect"),
    ("preflight", "Pre-flight checks"),
    ("build", "Build"),
    ("prepare_release", "Prepare release"),
    ("transfer", "Transfer files"),
    ("install", "Install dependencies"),
    ("link_shared", "Link shared files"),
    ("activate", "Activate release"),
    ("supervise", "Restart application"),
    ("health_check", "Health check"),
    ("reverse_proxy", "Reverse proxy"),
    ("prune", "Clean up old releases"),
]

STAGE_LABELS = dict(STAGES)


@dataclass
class DeployOptions:
    """Switches for a single deploy run."""

    build: bool = True
    install: bool = True
    restart: bool = True
    dry_run: bool = False
    verbose: bool = False


@dataclass
class DeploymentResult:
    """What a deploy run did."""

    release_id: str
    release_dir: str
    workspace: Optional[WorkspaceInfo] = None
    warnings: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)
    dns_record: Optional[Tuple[str, str]] = None
    duration_seconds: float = 0.0


class PipelineListener:
    """Receives stage progress. Subclasses override what they need."""

    def on_stage_start(self, stage: str, label: str) -> None:
        pass

    def on_stage_success(self, stage: str, message: str) -> None:
        pass

    def on_stage_skipped(self, stage: str, reason: str) -> None:
        pass

    def on_stage_warning(self, stage: str, warning: BunboxDeployError) -> None:
        pass

    def on_stage_failure(self, stage: str, error: BunboxDeployError) -> None:
        pass

    def on_info(self, message: str) -> None:
        pass


class _Skip(Exception):
    """Raised inside a stage body to report it as skipped."""


class DeploymentPipeline:
    """Deploys the project in cwd to one target."""

    def __init__(
        self,
        target: ResolvedTarget,
        target_name: str,
        options: Optional[DeployOptions] = None,
        ssh: Optional[SSHService] = None,
        listeners: Sequence[PipelineListener] = (),
        resolver: Optional[WorkspaceResolver] = None,
        runner: Callable[..., ExecutionResult] = run_local,
        cwd: Optional[Path] = None,
        release_id: Optional[str] = None,
        logger=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.target = target
        self.target_name = target_name
        self.options = options or DeployOptions()
        self.ssh = ssh or SSHService(target.ssh_config())
        self.listeners = list(listeners)
        self.resolver = resolver or WorkspaceResolver()
        self.runner = runner
        self.cwd = Path(cwd or Path.cwd())
        self.logger = logger
        self.sleep = sleep

        self.release_id = release_id or generate_release_id()
        self.store = ReleaseStore(self.ssh, target.deploy_path)
        self.lock = DeployLock(self.ssh, target.deploy_path, operation="deploy")
        self.pm2 = PM2Manager(self.ssh, target)
        self.proxy = CaddyProxy(self.ssh, target)
        self.health = HealthChecker(self.ssh, target)
        self.git = GitSync(self.ssh, target) if target.uses_git else None

        self.result = DeploymentResult(
            release_id=self.release_id,
            release_dir=target.release_dir(self.release_id),
        )

    # Listener fan-out

    def _emit(self, hook: str, *args) -> None:
        for listener in self.listeners:
            getattr(listener, hook)(*args)

    def _info(self, message: str) -> None:
        self._emit("on_info", message)

    def _warn(self, stage: str, warning: BunboxDeployError) -> None:
        warning.stage = stage
        self.result.warnings.append(warning.message)
        self._emit("on_stage_warning", stage, warning)

    @property
    def app_dir(self) -> str:
        """Directory of the app inside the new release."""
        if self.result.workspace:
            return f"{self.result.release_dir}/{self.result.workspace.app_path}"
        return self.result.release_dir

    @property
    def builds_remotely(self) -> bool:
        return self.target.build_on_server or self.target.uses_git

    def _redact(self, text: str) -> str:
        return redact(text, [self.target.git.token if self.target.git else None])

    def _stage(self, stage: str, body: Callable[[], Optional[str]]) -> None:
        self._emit("on_stage_start", stage, STAGE_LABELS[stage])
        try:
            message = body()
        except _Skip as skip:
            self.result.skipped.append(stage)
            self._emit("on_stage_skipped", stage, str(skip))
            return
        except BunboxDeployError as e:
            e.stage = e.stage or stage
            e.message = self._redact(e.message)
            if e.context:
                e.context = self._redact(e.context)
            self._emit("on_stage_failure", stage, e)
            raise
        self.result.completed.append(stage)
        self._emit("on_stage_success", stage, message or STAGE_LABELS[stage])

    def run(self) -> DeploymentResult:
        """
        Execute every stage.

        Returns:
            DeploymentResult

        Raises:
            BunboxDeployError: From the first failing stage (stage set)
        """
        started = time.time()

        if self.options.dry_run:
            self._info("Dry run - no changes will be made")
            for stage, label in STAGES:
                self._emit("on_stage_start", stage, label)
                self.result.skipped.append(stage)
                self._emit("on_stage_skipped", stage, "dry run")
            self.result.duration_seconds = time.time() - started
            return self.result

        try:
            self._stage("connect", self._connect)
            self._stage("preflight", self._preflight)
            self._stage("build", self._build)

            try:
                self._stage("prepare_release", self._prepare_release)
                self._stage("transfer", self._transfer)
                self._stage("install", self._install)
                self._stage("link_shared", self._link_shared)
                self._stage("activate", self._activate)
            finally:
                if self.ssh.connected:
                    self.lock.release()

            self._stage("supervise", self._supervise)
            self._stage("health_check", self._health_check)
            self._stage("reverse_proxy", self._reverse_proxy)
            self._stage("prune", self._prune)
        finally:
            self.ssh.disconnect()

        self.result.duration_seconds = time.time() - started
        return self.result

    # Stages

    def _connect(self) -> str:
        self.ssh.connect()
        return f"Connected to {self.target.host}"

    def _preflight(self) -> str:
        if not self.ssh.command_exists("bun"):
            raise PreflightError(
                "Bun is not installed on the server",
                context="Run 'bunbox-deploy setup' first",
            )
        if not self.pm2.is_installed():
            raise PreflightError(
                "PM2 is not installed on the server",
                context="Run 'bunbox-deploy setup' first",
            )

        if self.target.domain:
            if not self.proxy.is_installed():
                raise PreflightError(
                    f"Caddy is required for domain {self.target.domain} but is not installed",
                    context="Run 'bunbox-deploy setup' first",
                )
            conflict = self.proxy.check_port_conflict()
            if conflict:
                raise PreflightError(
                    f'Port {self.target.port} is already used by "{conflict}"',
                    context=f"Set a different port in the deploy file, e.g. port: {self.target.port + 1}",
                )

        if self.git is not None:
            if not self.git.is_installed():
                raise PreflightError(
                    "Git is not installed on the server",
                    context="Install git or use rsync deployment",
                )
        elif not check_rsync():
            raise PreflightError("rsync is not installed locally")

        return "Pre-flight checks passed"

    def _build(self) -> str:
        if not self.options.build:
            raise _Skip("--no-build")
        if self.builds_remotely:
            raise _Skip("builds on server")

        result = self.runner(
            self.target.build_command,
            cwd=self.cwd,
            logger=self.logger,
            description="Building application",
        )
        if result.is_failure:
            raise BuildError(
                f"Build failed: {self.target.build_command}",
                context=result.stderr.strip() or result.stdout.strip() or None,
            )
        return "Build complete"

    def _prepare_release(self) -> str:
        self.lock.acquire()
        self.store.create_release(self.release_id)
        return f"Release {self.release_id} created"

    def _transfer(self) -> str:
        if self.git is not None:
            self.git.setup_deploy_key()
            self.git.clone(self.result.release_dir)
            return f"Cloned {self.target.git.branch} branch"

        transfer = FileTransfer(
            self.target,
            transport=self.ssh.rsync_transport(),
            cwd=self.cwd,
            resolver=self.resolver,
            runner=self.runner,
        )
        outcome = transfer.transfer(self.result.release_dir, logger=self.logger)
        self.result.workspace = outcome.workspace
        if outcome.workspace:
            return f"Files transferred (monorepo: {outcome.workspace.app_path})"
        return "Files transferred"

    def _install(self) -> str:
        if not self.options.install:
            raise _Skip("--no-install")

        # Workspaces install at the release root so sibling packages resolve
        self.ssh.exec_check(
            f"cd {shlex.quote(self.result.release_dir)} && {self.target.install_command}",
            message="Failed to install dependencies",
        )

        if self.builds_remotely and self.options.build:
            self.ssh.exec_check(
                f"cd {shlex.quote(self.app_dir)} && {self.target.build_command}",
                message="Failed to build application on server",
            )
            return "Dependencies installed and application built"
        return "Dependencies installed"

    def _link_shared(self) -> str:
        linked = []
        for name in self.target.shared_files:
            source = f"{self.target.shared_dir}/{name}"
            if not self.ssh.path_exists(source):
                continue
            dest = f"{self.app_dir}/{name}"
            parent = dest.rsplit("/", 1)[0]
            self.ssh.exec_check(
                f"mkdir -p {shlex.quote(parent)} && "
                f"ln -sfn {shlex.quote(source)} {shlex.quote(dest)}",
                message=f"Could not link shared file {name}",
            )
            linked.append(name)

        if not linked:
            return "No shared files to link"
        return f"Linked {', '.join(linked)}"

    def _activate(self) -> str:
        self.store.activate(self.release_id)
        return f"Release {self.release_id} is live"

    def _supervise(self) -> str:
        if not self.options.restart:
            raise _Skip("--no-restart")
        app_path = self.result.workspace.app_path if self.result.workspace else None
        action = self.pm2.start_or_reload(app_path)
        return f"Application {action}"

    def _health_check(self) -> str:
        if not self.options.restart:
            raise _Skip("application not restarted")

        self.sleep(self.target.health_check_delay)
        if self.health.probe():
            return "Health check passed"

        self._warn("health_check", HealthCheckWarning(self.health.diagnose()))
        return "Health check failed (release stays active)"

    def _reverse_proxy(self) -> str:
        if not self.target.domain:
            raise _Skip("no domain configured")

        if self.proxy.is_registered():
            self.proxy.write_metadata()
            return f"{self.target.domain} already registered"

        outcome = self.proxy.configure()
        if outcome.first_deploy:
            self.result.dns_record = (self.target.domain, self.ssh.get_public_ip())
        return "Caddy configured" if outcome.changed else "Caddy unchanged"

    def _prune(self) -> str:
        try:
            removed = self.store.prune(self.target.keep_releases)
        except RemoteCommandError as e:
            self._warn("prune", e)
            return "Cleanup incomplete"
        self.result.pruned = removed
        if removed:
            return f"Removed {len(removed)} old release(s)"
        return "Nothing to clean up"
