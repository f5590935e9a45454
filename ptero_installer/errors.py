from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ptero_installer.commands import CommandResult


class InstallerError(Exception):
    """Base exception for installer errors."""

    exit_code: int = 1


class PreconditionError(InstallerError):
    """Raised before any side effect when the host or input is unusable."""

    pass


class UnsupportedOSError(PreconditionError):
    """Raised when the detected distribution has no platform profile."""

    pass


class DownloadError(InstallerError):
    """Raised when a remote artifact cannot be fetched or unpacked."""

    pass


class CommandError(InstallerError):
    """Raised when an external command exits non-zero."""

    def __init__(self, result: "CommandResult") -> None:
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip()
        message = f"Command failed with exit code {result.returncode}: {result.display}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.result.returncode if self.result.returncode > 0 else 1
