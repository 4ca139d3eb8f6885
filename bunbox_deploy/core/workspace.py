"""
Monorepo workspace detection and dependency resolution

Finds the workspace root above an app directory and the set of workspace
packages the app transitively depends on, so transfer can ship only those.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from bunbox_deploy.constants import MANIFEST_FILE, WORKSPACE_PROTOCOL


@dataclass(frozen=True)
class WorkspaceInfo:
    """An app inside a monorepo."""

    root: Path
    app_path: str
    required_packages: Tuple[str, ...] = ()


def _read_manifest(directory: Path) -> Optional[dict]:
    """Parse directory/package.json, or None if missing or not valid JSON."""
    manifest = directory / MANIFEST_FILE
    if not manifest.is_file():
        return None
    try:
        with open(manifest) as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def is_workspace_reference(version: object) -> bool:
    """True for dependency versions that point at a sibling workspace package."""
    return isinstance(version, str) and (
        version.startswith(WORKSPACE_PROTOCOL) or version == "*"
    )


class WorkspaceResolver:
    """Resolves the workspace layout around an app directory."""

    def resolve(self, start_dir: Path) -> Optional[WorkspaceInfo]:
        """
        Detect whether start_dir is a package inside a workspace.

        Returns:
            WorkspaceInfo, or None when there is no workspace root above
            start_dir or start_dir is the root itself
        """
        start = Path(start_dir).resolve()
        root = self.find_root(start)
        if root is None or root == start:
            return None

        app_path = start.relative_to(root).as_posix()
        required = self.required_packages(root, start)
        return WorkspaceInfo(root=root, app_path=app_path, required_packages=required)

    def find_root(self, start_dir: Path) -> Optional[Path]:
        """Walk upward to the first manifest declaring `workspaces`."""
        current = Path(start_dir).resolve()
        while True:
            manifest = _read_manifest(current)
            if manifest is not None and manifest.get("workspaces"):
                return current
            if current.parent == current:
                return None
            current = current.parent

    def workspace_patterns(self, root: Path) -> List[str]:
        """Membership patterns in list form or `{packages: [...]}` form."""
        manifest = _read_manifest(root) or {}
        workspaces = manifest.get("workspaces")
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages")
        if not isinstance(workspaces, list):
            return []
        return [p for p in workspaces if isinstance(p, str)]

    def package_map(self, root: Path) -> Dict[str, str]:
        """
        Map package name to its path relative to root.

        A trailing `*` scans one directory level; anything else is an exact
        path. Negated patterns and candidates outside root are ignored.
        """
        root = Path(root).resolve()
        packages: Dict[str, str] = {}

        for pattern in self.workspace_patterns(root):
            if pattern.startswith("!"):
                continue

            if pattern.endswith("*"):
                base = root / pattern.rstrip("*").rstrip("/")
                if not base.is_dir():
                    continue
                candidates = sorted(p for p in base.iterdir() if p.is_dir())
            else:
                candidates = [root / pattern]

            for candidate in candidates:
                candidate = candidate.resolve()
                if candidate != root and root not in candidate.parents:
                    continue
                manifest = _read_manifest(candidate)
                if manifest is None:
                    continue
                name = manifest.get("name")
                if isinstance(name, str) and name:
                    packages[name] = candidate.relative_to(root).as_posix()

        return packages

    def required_packages(self, root: Path, app_dir: Path) -> Tuple[str, ...]:
        """
        Transitive closure of workspace dependencies of app_dir.

        Depth-first over dependencies and devDependencies. The visited set is
        keyed by absolute directory so cycles terminate.
        """
        root = Path(root).resolve()
        app_dir = Path(app_dir).resolve()
        app_path = app_dir.relative_to(root).as_posix()
        packages = self.package_map(root)

        required: List[str] = []
        visited = set()

        def collect(directory: Path) -> None:
            key = os.path.normcase(str(directory))
            if key in visited:
                return
            visited.add(key)

            manifest = _read_manifest(directory)
            if manifest is None:
                return

            deps: Dict[str, object] = {}
            for field in ("dependencies", "devDependencies"):
                section = manifest.get(field)
                if isinstance(section, dict):
                    deps.update(section)

            for name, version in deps.items():
                if not is_workspace_reference(version):
                    continue
                package_path = packages.get(name)
                if package_path is None:
                    continue
                if package_path != app_path and package_path not in required:
                    required.append(package_path)
                collect((root / package_path).resolve())

        collect(app_dir)
        return tuple(required)


def detect_workspace(cwd: Optional[Path] = None) -> Optional[WorkspaceInfo]:
    """Detect the workspace around cwd (default: current directory)."""
    return WorkspaceResolver().resolve(Path(cwd or os.getcwd()))
