# resolution.py
"""Decides whether a run installs, upgrades or verifies."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .catalog import BranchInfo, VersionInfo
from .utils import SemVer


class ActionKind(Enum):
    FRESH_INSTALL = "fresh_install"
    UPGRADE = "upgrade"
    VERIFY = "verify"


@dataclass(frozen=True)
class ResolvedAction:
    """
    The action chosen for a branch.

    Attributes:
        kind: What to do.
        version: The version to download (fresh install, upgrade) or to verify.
        info: Catalog entry for ``version``; None when the installed version
            was never published on this branch.
    """
    kind: ActionKind
    version: str
    info: Optional[VersionInfo]

    @property
    def needs_download(self) -> bool:
        return self.kind is not ActionKind.VERIFY


def resolve_action(installed: Optional[SemVer], branch: BranchInfo) -> ResolvedAction:
    """
    Compare the installed version with the branch's current version.

    Args:
        installed: Installed version, or None when nothing is installed.
        branch: Branch the installation follows.

    Returns:
        ResolvedAction: FRESH_INSTALL or UPGRADE of ``current_version``, or
        VERIFY of the installed version when it is not older.

    Raises:
        ConfigurationCorruption: If a download is needed and ``current_version``
            is missing from the branch's versions.
    """
    if installed is None:
        return ResolvedAction(
            ActionKind.FRESH_INSTALL, branch.current_version, branch.get_current_version_info()
        )

    current = SemVer.parse(branch.current_version)
    if current <= installed:
        version = str(installed)
        return ResolvedAction(ActionKind.VERIFY, version, branch.get_version_info(version))

    return ResolvedAction(ActionKind.UPGRADE, branch.current_version, branch.get_current_version_info())
