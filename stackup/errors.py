"""
Exceptions raised by installation steps.

Every step raises a subclass of StackupError for a fatal condition; the CLI
prints the message and exits non-zero. Warnings are printed and never raised.
"""


class StackupError(Exception):
    """Base exception for all fatal provisioning errors."""
    pass


class CommandError(StackupError):
    """Raised when a required external command fails."""

    def __init__(self, cmd: list[str], returncode: int, output: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        msg = f"Command failed ({returncode}): {' '.join(cmd)}"
        if output.strip():
            msg += f"\n{output.strip()}"
        super().__init__(msg)


class ConfigError(StackupError):
    """Raised when required configuration is missing or unusable."""
    pass


class ReadinessTimeout(StackupError):
    """Raised when an external resource does not become ready in time."""
    pass


class StackStartError(StackupError):
    """Raised when the expected container is not running after start."""
    pass


class TunnelError(StackupError):
    """Raised when tunnel creation or lookup fails."""
    pass


class CredentialsNotFoundError(TunnelError):
    """Raised when no local credentials file exists for a tunnel ID."""
    pass


class ServiceStartError(StackupError):
    """Raised when the cloudflared system service does not become active."""
    pass


class ArchiveError(StackupError):
    """Raised when a backup archive is missing, malformed, or empty."""
    pass
