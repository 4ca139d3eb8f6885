"""
bunbox-deploy Constants

Centralized constants for defaults, remote layout, and magic values.
"""

# Config file names, searched in order
CONFIG_FILES = [
    "bunbox.deploy.yml",
    "bunbox.deploy.yaml",
    "deploy.config.yml",
    "deploy.config.yaml",
]
DEFAULT_CONFIG_FILE = "bunbox.deploy.yml"

# Target defaults
DEFAULT_SSH_PORT = 22
DEFAULT_APP_PORT = 3000
DEFAULT_SCRIPT = "start"
DEFAULT_KEEP_RELEASES = 5
DEFAULT_GIT_BRANCH = "main"
DEFAULT_SHARED_FILES = [".env"]

# Commands
DEFAULT_BUILD_COMMAND = "bun run build"
DEFAULT_INSTALL_COMMAND = "bun install --production --frozen-lockfile"

# Timeouts (seconds)
DEFAULT_CONNECT_TIMEOUT = 10
SSH_CONTROL_PERSIST = 300

# Health check
DEFAULT_HEALTH_PATH = "/api/health"
DEFAULT_HEALTH_CHECK_DELAY = 2.0
HEALTH_LOG_LINES = 15

# Remote layout (relative to deploy_path)
RELEASES_DIR = "releases"
CURRENT_LINK = "current"
SHARED_DIR = "shared"
LOGS_DIR = "logs"
PENDING_DIR = ".pending"
LOCK_DIR = ".deploy.lock"
META_FILE = ".bunbox-meta.json"
ECOSYSTEM_FILE = "ecosystem.config.js"
DEPLOY_KEY_DIR = ".ssh"

# Release ids
RELEASE_ID_FORMAT = "%Y%m%d_%H%M%S"
RELEASE_ID_PATTERN = r"^\d{8}_\d{6}$"

# Remote shells skip .bashrc for non-interactive sessions, so extend PATH
REMOTE_PATH_EXTEND = (
    'export PATH="$HOME/.bun/bin:$HOME/.local/bin:/usr/local/bin:$PATH"; '
)

# Caddy
CADDY_SITES_DIR = "/etc/caddy/sites"
CADDYFILE_PATH = "/etc/caddy/Caddyfile"

# Workspace manifests
MANIFEST_FILE = "package.json"
WORKSPACE_LOCKFILES = ["bun.lock", "bun.lockb"]
WORKSPACE_PROTOCOL = "workspace:"

# Always excluded from transfer; user excludes are added on top
DEFAULT_EXCLUDES = [
    "node_modules",
    ".git",
    ".env",
    ".env.*",
    ".DS_Store",
    "*.log",
    ".turbo",
    ".cache",
    "coverage",
    ".nyc_output",
    ".vscode",
    ".idea",
    "*.local",
]

# Local log files
LOG_ROOT = ".bunbox-deploy/logs"
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"

# Redaction
REDACTED = "[REDACTED]"

# Git hosts that get the uploaded deploy key
DEPLOY_KEY_HOSTS = ["github.com", "gitlab.com", "bitbucket.org"]
