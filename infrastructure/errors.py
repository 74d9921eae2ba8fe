"""Errors raised by helm chart operations"""
from typing import Optional, Sequence


class HelmError(Exception):
    """Base exception for helm chart operations"""


class SerializationError(HelmError):
    """Raised when a values payload cannot be rendered as YAML"""


class ExternalProcessError(HelmError):
    """Raised when the external tool cannot be started or exits non-zero"""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr

        if returncode is None:
            message = f"failed to run {' '.join(self.command)}"
        else:
            message = f"{' '.join(self.command)} exited with code {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class CancellationError(HelmError):
    """Raised when the deadline expires while the external tool is running"""


class DeletionError(HelmError):
    """Raised when a helm installation could not be deleted"""
