"""
bunbox-deploy Exception Hierarchy

Clean exception hierarchy for consistent error handling across the CLI.
Pipeline stages tag the errors they raise with the stage name.
"""

from typing import Optional


class BunboxDeployError(Exception):
    """Base exception for all bunbox-deploy errors."""

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        stage: Optional[str] = None,
    ):
        self.message = message
        self.context = context
        self.stage = stage
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional stage and context."""
        message = self.message
        if self.stage:
            message = f"[{self.stage}] {message}"
        if self.context:
            return f"{message}\nContext: {self.context}"
        return message

    def __str__(self) -> str:
        return self.format_message()


class ConfigurationError(BunboxDeployError):
    """Raised when configuration is invalid or missing."""

    pass


class SSHError(BunboxDeployError):
    """Raised when SSH operations fail."""

    pass


class SSHConnectionError(SSHError):
    """Raised when a session to the target host cannot be established."""

    pass


class RemoteCommandError(SSHError):
    """Raised when a remote command exits non-zero or times out."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: Optional[int] = None,
        stderr: str = "",
        context: Optional[str] = None,
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        if stderr and not context:
            context = stderr
        super().__init__(message, context=context)


class PreflightError(BunboxDeployError):
    """Raised when a required remote prerequisite is missing."""

    pass


class BuildError(BunboxDeployError):
    """Raised when the local build exits non-zero."""

    pass


class TransferError(BunboxDeployError):
    """Raised when file synchronization or clone fails."""

    pass


class ActivationError(BunboxDeployError):
    """Raised when the current pointer cannot be redirected."""

    pass


class LockError(BunboxDeployError):
    """Raised when another invocation holds the deploy lock."""

    pass


class RollbackError(BunboxDeployError):
    """Raised when there is not enough release history to roll back."""

    pass


class HealthCheckWarning(BunboxDeployError):
    """Non-fatal: the release is active but did not answer the probe."""

    pass


class TargetNotFoundError(ConfigurationError):
    """Raised when a target does not exist in the config."""

    def __init__(self, target_name: str, available_targets: list[str]):
        self.target_name = target_name
        self.available_targets = available_targets
        message = f"Unknown target: {target_name}"
        context = f"Available: {', '.join(available_targets)}"
        super().__init__(message, context)
