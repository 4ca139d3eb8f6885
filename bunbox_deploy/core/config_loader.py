"""Configuration loading, validation, and target resolution"""

import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from bunbox_deploy.constants import (
    CONFIG_FILES,
    DEFAULT_APP_PORT,
    DEFAULT_BUILD_COMMAND,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_GIT_BRANCH,
    DEFAULT_HEALTH_CHECK_DELAY,
    DEFAULT_HEALTH_PATH,
    DEFAULT_INSTALL_COMMAND,
    DEFAULT_KEEP_RELEASES,
    DEFAULT_SCRIPT,
    DEFAULT_SHARED_FILES,
    DEFAULT_SSH_PORT,
)
from bunbox_deploy.exceptions import ConfigurationError, TargetNotFoundError
from bunbox_deploy.models.config import (
    DeployConfig,
    DeployTarget,
    MonorepoConfig,
    ResolvedGitConfig,
    ResolvedTarget,
)
from bunbox_deploy.utils import render_stub

PLACEHOLDER = re.compile(r"\$\{(\w+)\}")


def find_config_file(cwd: Path, config_path: Optional[str] = None) -> Optional[Path]:
    """
    Locate the deploy file.

    Args:
        cwd: Directory to search
        config_path: Explicit path (relative to cwd), if given

    Returns:
        Path to the config file, or None if no default file exists

    Raises:
        ConfigurationError: If an explicit path does not exist
    """
    if config_path:
        full_path = (cwd / config_path).resolve()
        if not full_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        return full_path

    for filename in CONFIG_FILES:
        full_path = cwd / filename
        if full_path.exists():
            return full_path

    return None


def parse_config(raw: object, source: str = "config") -> DeployConfig:
    """
    Validate a raw config mapping.

    Raises:
        ConfigurationError: With one line per invalid field
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Invalid config in {source}: must be a mapping")

    try:
        return DeployConfig.model_validate(raw)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "(root)"
            problems.append(f"{location}: {error['msg']}")
        raise ConfigurationError(
            f"Invalid config in {source}",
            context="\n".join(problems),
        )


def load_config(
    config_path: Optional[str] = None, cwd: Optional[Path] = None
) -> Optional[DeployConfig]:
    """
    Load and validate the deploy file.

    Returns:
        DeployConfig, or None when no config file exists
    """
    cwd = Path(cwd or os.getcwd())
    path = find_config_file(cwd, config_path)
    if path is None:
        return None

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path.name}", context=str(e))

    return parse_config(raw or {}, source=path.name)


def placeholder_environment(
    cwd: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    Variables available to ${VAR} placeholders.

    The process environment wins over a local .env file.
    """
    values: Dict[str, str] = {}
    dotenv_path = Path(cwd or os.getcwd()) / ".env"
    if dotenv_path.is_file():
        values.update(
            {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        )
    values.update(os.environ if environ is None else environ)
    return values


def expand_placeholders(value: str, variables: Mapping[str, str]) -> str:
    """Replace ${VAR} with its value (missing variables become empty).

    Single pass: text produced by a substitution is never expanded again.
    """
    return PLACEHOLDER.sub(lambda m: variables.get(m.group(1), ""), value)


def resolve_target(
    config: DeployConfig,
    target_name: Optional[str] = None,
    variables: Optional[Mapping[str, str]] = None,
) -> Tuple[str, ResolvedTarget]:
    """
    Resolve a target by name with defaults applied.

    Args:
        config: Validated deploy config
        target_name: Target to resolve (default target, then first target)
        variables: Placeholder variables (see placeholder_environment)

    Returns:
        Tuple of (target name, ResolvedTarget)
    """
    name = target_name or config.default_target or next(iter(config.targets), None)
    if not name:
        raise ConfigurationError("No target specified and no default target configured")

    target = config.targets.get(name)
    if target is None:
        raise TargetNotFoundError(name, list(config.targets))

    if variables is None:
        variables = placeholder_environment()

    return name, _resolve(target, variables)


def _resolve(target: DeployTarget, variables: Mapping[str, str]) -> ResolvedTarget:
    git = None
    if target.git:
        token = target.git.token
        if token:
            token = expand_placeholders(token, variables)
        git = ResolvedGitConfig(
            repo=target.git.repo,
            branch=target.git.branch or DEFAULT_GIT_BRANCH,
            deploy_key=(
                os.path.expanduser(target.git.deploy_key)
                if target.git.deploy_key
                else None
            ),
            token=token or None,
        )

    return ResolvedTarget(
        host=target.host,
        ssh_port=target.ssh_port or DEFAULT_SSH_PORT,
        username=target.username,
        private_key=os.path.expanduser(target.private_key),
        deploy_path=target.deploy_path,
        name=target.name,
        port=target.port or DEFAULT_APP_PORT,
        env={k: expand_placeholders(v, variables) for k, v in target.env.items()},
        script=target.script or DEFAULT_SCRIPT,
        domain=target.domain or None,
        keep_releases=target.keep_releases or DEFAULT_KEEP_RELEASES,
        exclude=list(target.exclude or []),
        shared_files=list(
            DEFAULT_SHARED_FILES if target.shared_files is None else target.shared_files
        ),
        build_command=target.build_command or DEFAULT_BUILD_COMMAND,
        install_command=target.install_command or DEFAULT_INSTALL_COMMAND,
        build_on_server=target.build_on_server,
        health_path=target.health_path or DEFAULT_HEALTH_PATH,
        health_check_delay=(
            DEFAULT_HEALTH_CHECK_DELAY
            if target.health_check_delay is None
            else target.health_check_delay
        ),
        connect_timeout=target.connect_timeout or DEFAULT_CONNECT_TIMEOUT,
        command_timeout=target.command_timeout,
        git=git,
        monorepo=target.monorepo or MonorepoConfig(),
    )


def generate_config_template(app_name: str = "myapp") -> str:
    """Sample deploy file written by `bunbox-deploy init`."""
    return render_stub("bunbox.deploy.yml.j2", app_name=app_name)
