# __init__.py
"""
Bootstrapper

Installs, updates, repairs and uninstalls a single application distributed
from a remotely hosted, versioned release catalog. The same program is both
the installer and the updater: it replaces its own executable when a release
ships a new copy of it.

Features:
- Strict catalog decoding and deterministic encoding (catalog.json)
- Fresh install, upgrade, or integrity verification with repair
- Streamed archive downloads with progress and cancellation
- Self-replacing archive application that never leaves the program missing
- Step pipeline with Continue / Stop / Abort outcomes
- Release publisher that builds archives and updates the catalog
"""

from .app import Bootstrapper, create_bootstrapper, run_bootstrapper
from .catalog import BranchInfo, Catalog, CatalogFile, VersionInfo
from .client import UpdateClient
from .codec import decode_catalog, encode_catalog
from .context import CancellationToken, InstallContext
from .integrity import verify_file_integrity
from .models import BootstrapperConfig, DialogOptions, InstallOptions, load_config
from .orchestrator import Orchestrator, RunOutcome, RunState
from .packaging import ZipPackageApplier, cleanup_stale_binary
from .publisher import publish_release
from .resolution import ActionKind, ResolvedAction, resolve_action
from .results import Abort, AbortReason, Continue, StepResult, Stop
from .types import (
    CatalogDecodeError,
    ConfigError,
    ConfigurationCorruption,
    FailureKind,
    InstallationError,
    OperationCancelled,
    UpdaterError,
)
from .utils import SemVer, calculate_file_hash, compare_versions, parse_version

__version__ = "1.0.0"

__all__ = [
    # Pipelines
    "Bootstrapper",
    "Orchestrator",
    "RunOutcome",
    "RunState",
    "create_bootstrapper",
    "run_bootstrapper",
    # Catalog
    "Catalog",
    "BranchInfo",
    "VersionInfo",
    "CatalogFile",
    "decode_catalog",
    "encode_catalog",
    # Components
    "UpdateClient",
    "ZipPackageApplier",
    "cleanup_stale_binary",
    "verify_file_integrity",
    "resolve_action",
    "ActionKind",
    "ResolvedAction",
    "publish_release",
    # Configuration and state
    "BootstrapperConfig",
    "InstallOptions",
    "DialogOptions",
    "load_config",
    "InstallContext",
    "CancellationToken",
    # Step results
    "StepResult",
    "Continue",
    "Stop",
    "Abort",
    "AbortReason",
    "FailureKind",
    # Exceptions
    "UpdaterError",
    "InstallationError",
    "OperationCancelled",
    "ConfigurationCorruption",
    "ConfigError",
    "CatalogDecodeError",
    # Utility functions
    "SemVer",
    "parse_version",
    "compare_versions",
    "calculate_file_hash",
]
