"""Error taxonomy for chart release actions.

Every error raised by the release engine derives from ReleaseError and is
fatal: the CLI reports it and exits with status 1. Nothing is retried
except the kind host readiness poll, which never surfaces an error.
"""

from __future__ import annotations

from ..shell_commands.types import CommandResult


class ReleaseError(Exception):
    """Raised when a release action cannot complete."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(ReleaseError):
    """A required parameter is missing or invalid."""


class UnsupportedActionError(ConfigurationError):
    """The requested action is not one of the known actions."""

    def __init__(self, action: str | None, accepted: list[str]):
        self.action = action
        self.accepted = accepted
        super().__init__(
            f"Action '{action or ''}' is not supported",
            details="Please use one of the action parameter values: "
            + ", ".join(f"'{a}'" for a in accepted),
        )


class CredentialError(ReleaseError):
    """Base class for problems with injected credentials."""


class CredentialsNotProvidedError(CredentialError):
    """No credential set was injected into the extension."""


class CredentialNotFoundError(CredentialError):
    """The injected credential set has no entry with the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Credential with name {name} does not exist")


class MalformedCredentialError(CredentialError):
    """A credential record or its key file cannot be interpreted."""


class CollaboratorExecutionError(ReleaseError):
    """An external command exited with a non-zero status."""

    def __init__(self, description: str, result: CommandResult):
        self.result = result
        details = f"Command: {result.command_line}\nExit status: {result.returncode}"
        if result.stderr.strip():
            details += f"\n\n{result.stderr.strip()}"
        super().__init__(f"{description} failed", details=details)


class ReleaseFailedError(ReleaseError):
    """An upgrade/install failed; diagnostics were gathered before raising."""


def ensure_success(result: CommandResult, description: str) -> CommandResult:
    """Return the result unchanged, or raise if the command failed.

    Raises:
        CollaboratorExecutionError: If the command exited non-zero
    """
    if not result.success:
        raise CollaboratorExecutionError(description, result)
    return result
