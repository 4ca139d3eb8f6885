"""Core configuration and workspace components"""

from .config_loader import (
    expand_placeholders,
    find_config_file,
    generate_config_template,
    load_config,
    parse_config,
    placeholder_environment,
    resolve_target,
)
from .workspace import WorkspaceInfo, WorkspaceResolver, detect_workspace

__all__ = [
    "expand_placeholders",
    "find_config_file",
    "generate_config_template",
    "load_config",
    "parse_config",
    "placeholder_environment",
    "resolve_target",
    "WorkspaceInfo",
    "WorkspaceResolver",
    "detect_workspace",
]
