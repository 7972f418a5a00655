# context.py
"""Per-run state shared by the steps of one install or uninstall run."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .types import OperationCancelled
from .utils import SemVer

if TYPE_CHECKING:
    from .catalog import Catalog
    from .client import UpdateClient
    from .models import BootstrapperConfig
    from .shortcuts import ShortcutCreator
    from .store import KeyValueStore


class CancellationToken:
    """
    Cooperative cancellation signal threaded through every suspension point.

    Backed by a ``threading.Event`` so it can be set from a signal handler or a
    UI thread and observed from worker threads doing extraction.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelled`` if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled by the user")


@dataclass
class InstallContext:
    """
    Values determined by earlier steps and consumed by later ones.

    Only the step currently running writes to the context. Fields start unset
    and are filled in pipeline order:

    * ``collect_system_information``: ``install_dir``, ``branch``,
      ``installed_version``, ``is_installed``
    * ``fetch_catalog``: ``catalog``
    * ``resolve_update``: ``update_package``, ``update_version``
    * ``perform_file_installation``: ``performed_install``
    """
    config: "BootstrapperConfig"
    client: Optional["UpdateClient"] = None
    store: Optional["KeyValueStore"] = None
    shortcuts: Optional["ShortcutCreator"] = None

    install_dir: Optional[Path] = None
    branch: Optional[str] = None
    installed_version: Optional[SemVer] = None
    is_installed: bool = False
    catalog: Optional["Catalog"] = None
    update_package: Optional[Path] = None
    update_version: Optional[str] = None
    performed_install: bool = False
    executable_path: Optional[Path] = None
    operation: str = "Installation"

    def require_install_dir(self) -> Path:
        if self.install_dir is None:
            raise RuntimeError("install_dir has not been determined yet")
        return self.install_dir
