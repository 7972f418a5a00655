# shortcuts.py
"""Start-menu shortcuts and desktop entries for the installed application."""

import os
import subprocess
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from loguru import logger

from .system import app_data_dir, is_windows
from .types import InstallationError, PathLike


@runtime_checkable
class ShortcutCreator(Protocol):
    """Creates and removes menu entries."""

    def create(
        self,
        target: PathLike,
        location: PathLike,
        icon: Optional[PathLike] = None,
        description: str = "",
        working_dir: Optional[PathLike] = None,
    ) -> None: ...

    def remove(self, location: PathLike) -> bool: ...


def _ps_quote(value: PathLike) -> str:
    return "'" + str(value).replace("'", "''") + "'"


class WindowsShortcutCreator:
    """Writes ``.lnk`` files through the ``WScript.Shell`` COM object."""

    def __init__(self, powershell: str = "powershell.exe", timeout: float = 30):
        self.powershell = powershell
        self.timeout = timeout

    def create(
        self,
        target: PathLike,
        location: PathLike,
        icon: Optional[PathLike] = None,
        description: str = "",
        working_dir: Optional[PathLike] = None,
    ) -> None:
        location = Path(location)
        location.parent.mkdir(parents=True, exist_ok=True)
        lines = [
            "$shell = New-Object -ComObject WScript.Shell",
            f"$link = $shell.CreateShortcut({_ps_quote(location)})",
            f"$link.TargetPath = {_ps_quote(target)}",
            f"$link.Description = {_ps_quote(description)}",
        ]
        if working_dir:
            lines.append(f"$link.WorkingDirectory = {_ps_quote(working_dir)}")
        if icon and Path(icon).exists():
            lines.append(f"$link.IconLocation = {_ps_quote(f'{icon},0')}")
        lines.append("$link.Save()")

        try:
            subprocess.run(
                [self.powershell, "-NoProfile", "-NonInteractive", "-Command", "; ".join(lines)],
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise InstallationError(f"Failed to create shortcut {location}: {e.stderr.strip()}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise InstallationError(f"Failed to create shortcut {location}: {e}") from e
        logger.info(f"Shortcut created at {location}")

    def remove(self, location: PathLike) -> bool:
        path = Path(location)
        if not path.exists():
            return False
        path.unlink()
        return True


class DesktopEntryCreator:
    """Writes freedesktop.org ``.desktop`` entries."""

    def create(
        self,
        target: PathLike,
        location: PathLike,
        icon: Optional[PathLike] = None,
        description: str = "",
        working_dir: Optional[PathLike] = None,
    ) -> None:
        location = Path(location)
        entry = [
            "[Desktop Entry]",
            "Type=Application",
            f"Name={location.stem}",
            f"Comment={description}",
            f'Exec="{target}"',
        ]
        if working_dir:
            entry.append(f"Path={working_dir}")
        if icon and Path(icon).exists():
            entry.append(f"Icon={icon}")
        entry.append("Terminal=false")

        try:
            location.parent.mkdir(parents=True, exist_ok=True)
            location.write_text("\n".join(entry) + "\n", encoding="utf-8")
            os.chmod(location, 0o755)
        except OSError as e:
            raise InstallationError(f"Failed to create desktop entry {location}: {e}") from e
        logger.info(f"Desktop entry created at {location}")

    def remove(self, location: PathLike) -> bool:
        path = Path(location)
        if not path.exists():
            return False
        path.unlink()
        return True


def default_shortcut_location(app_name: str) -> Path:
    """Where the application's menu entry lives on this host."""
    if is_windows():
        return app_data_dir() / "Microsoft" / "Windows" / "Start Menu" / "Programs" / f"{app_name}.lnk"
    return app_data_dir() / "applications" / f"{app_name}.desktop"


def default_shortcut_creator() -> ShortcutCreator:
    return WindowsShortcutCreator() if is_windows() else DesktopEntryCreator()
