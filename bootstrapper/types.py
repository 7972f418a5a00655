# types.py
"""Shared type aliases, enums and the exception hierarchy for the bootstrapper."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, Union

# Type definitions
PathLike = Union[str, os.PathLike, Path]
HashType = Literal["sha256", "sha512", "md5"]


class FailureKind(Enum):
    """Failure categories a step can abort with."""
    NETWORK = "network"
    INTEGRITY = "integrity"
    APPLICATION = "application"
    CANCELLED = "cancelled"
    CONFIGURATION = "configuration"
    ENVIRONMENT = "environment"
    UNEXPECTED = "unexpected"


# Exception classes for better error handling
class UpdaterError(Exception):
    """Base exception class for all updater errors."""
    pass


class InstallationError(UpdaterError):
    """Exception raised when extraction or self-replacement fails."""
    pass


class OperationCancelled(UpdaterError):
    """Exception raised when the user requested cancellation."""
    pass


class ConfigurationCorruption(UpdaterError):
    """Exception raised when the catalog references a version it does not contain."""
    pass


class ConfigError(UpdaterError):
    """Exception raised when the runner configuration is invalid."""
    pass


class CatalogDecodeError(UpdaterError):
    """
    Exception raised when a catalog document is structurally invalid.

    Attributes:
        field: Dotted path of the first invalid field (e.g. ``branches.main.currentVersion``).
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)
