# system.py
"""Host system queries used by the install and uninstall steps."""

import os
import platform
import sys
import tempfile
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import psutil
from loguru import logger

from .types import PathLike

if TYPE_CHECKING:
    from .models import BootstrapperConfig

MOVEFILE_DELAY_UNTIL_REBOOT = 0x4


def is_windows() -> bool:
    return sys.platform == "win32"


def current_executable() -> Path:
    """
    Path of the program that is running right now.

    A frozen build is the interpreter binary itself; otherwise the entry
    script named on the command line.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    return Path(sys.argv[0]).resolve()


def program_files_path(config: Optional["BootstrapperConfig"] = None) -> Path:
    """Root directory applications are installed under."""
    if config is not None and config.install_root is not None:
        return Path(config.install_root)
    if is_windows():
        return Path(os.environ.get("ProgramFiles", r"C:\Program Files"))
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def app_data_dir() -> Path:
    """Per-user application data directory."""
    if is_windows():
        return Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def windows_build_number() -> Optional[int]:
    """Windows build number (e.g. 19045), or None on other systems."""
    if not is_windows():
        return None
    version = sys.getwindowsversion()
    return version.build


def is_supported_windows(minimum_build: int) -> bool:
    """True unless this is a Windows host older than ``minimum_build``."""
    build = windows_build_number()
    if build is None:
        return True
    logger.debug(f"Detected {platform.platform()} (build {build})")
    return build >= minimum_build


def is_process_running(executable_name: str) -> bool:
    """
    Check whether another process runs ``executable_name``.

    The current process is never counted, so a bootstrapper that shares the
    application's name does not detect itself.
    """
    wanted = executable_name.lower()
    own_pid = os.getpid()
    for proc in psutil.process_iter(attrs=["pid", "name", "exe"]):
        info = proc.info
        if info.get("pid") == own_pid:
            continue
        name = (info.get("name") or "").lower()
        exe = info.get("exe") or ""
        if name == wanted or (exe and Path(exe).name.lower() == wanted):
            logger.debug(f"Found running instance of {executable_name} (pid {info.get('pid')})")
            return True
    return False


def temp_file_name(suffix: str = "") -> Path:
    """A unique, not yet existing path in the system temp directory."""
    return Path(tempfile.gettempdir()) / f"{uuid.uuid4().hex}{suffix}"


def directory_is_empty(path: PathLike) -> bool:
    """True if ``path`` is missing or contains no entries."""
    directory = Path(path)
    if not directory.is_dir():
        return True
    return next(directory.iterdir(), None) is None


def schedule_delete_on_reboot(path: PathLike) -> bool:
    """
    Ask Windows to delete ``path`` at the next reboot.

    Returns:
        bool: True if the request was registered; always False elsewhere.
    """
    if not is_windows():
        return False
    import ctypes

    result = ctypes.windll.kernel32.MoveFileExW(str(path), None, MOVEFILE_DELAY_UNTIL_REBOOT)
    if not result:
        logger.warning(f"Could not schedule {path} for deletion on reboot")
        return False
    logger.debug(f"Scheduled {path} for deletion on reboot")
    return True
