"""
CLI Utilities

Small helpers shared by services and commands.
"""

import getpass
import os
import socket
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Template

from bunbox_deploy.constants import REDACTED

STUBS_DIR = Path(__file__).parent / "stubs"


def get_project_root(cwd: Optional[Path] = None) -> Path:
    """
    Get the directory the CLI operates on.

    Returns:
        Path to the current working directory (where the deploy file lives)
    """
    return Path(cwd or os.getcwd()).resolve()


def redact(text: str, secrets: Iterable[Optional[str]]) -> str:
    """Replace every occurrence of each non-empty secret with a marker."""
    if not text:
        return text
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def describe_invocation(operation: str) -> str:
    """Describe who is running what, for lock owner files."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return (
        f"operation={operation} user={user} host={socket.gethostname()} "
        f"pid={os.getpid()} started={datetime.now().isoformat(timespec='seconds')}"
    )


def format_uptime(started_ms: float, now_ms: float) -> str:
    """Format a PM2 start timestamp (epoch ms) as a short uptime string."""
    seconds = max(int((now_ms - started_ms) / 1000), 0)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_bytes(size: float) -> str:
    """Format a byte count with a binary unit."""
    units = ["B", "KB", "MB", "GB"]
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    return f"{size:.1f}{units[i]}"


def render_stub(stub: str, **context) -> str:
    """
    Render a Jinja2 template from the stubs directory.

    Raises:
        FileNotFoundError: If the stub does not exist
    """
    stub_file = STUBS_DIR / stub
    if not stub_file.exists():
        raise FileNotFoundError(f"Template stub not found: {stub_file}")
    template = Template(stub_file.read_text(encoding="utf-8"), keep_trailing_newline=True)
    return template.render(**context)
