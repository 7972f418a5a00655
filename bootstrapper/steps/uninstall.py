# uninstall.py
"""Steps of the uninstall pipeline that are not shared with installation."""

import asyncio
import os
from pathlib import Path

from loguru import logger

from ..context import CancellationToken, InstallContext
from ..progress import ProgressSink
from ..results import Abort, Continue, StepResult, Stop
from ..system import current_executable, directory_is_empty, is_windows, schedule_delete_on_reboot
from ..types import FailureKind, InstallationError
from .install import shortcut_location


def _same_file(a: Path, b: Path) -> bool:
    return os.path.normcase(str(a.resolve())) == os.path.normcase(str(b.resolve()))


def remove_installed_files(install_dir: Path, uninstaller: Path) -> str:
    """
    Delete the installation while the uninstaller may still be running from it.

    Everything except the uninstaller is deleted now. On Windows the running
    uninstaller and the directory are scheduled for deletion at the next
    reboot; elsewhere both are removed immediately.

    Returns:
        Status line describing what is left behind.

    Raises:
        OSError: If a file cannot be deleted or the reboot deletion cannot be scheduled.
    """
    inside = uninstaller.resolve().is_relative_to(install_dir.resolve())

    directories = []
    for dirpath, dirnames, filenames in os.walk(install_dir, topdown=False):
        current = Path(dirpath)
        for filename in filenames:
            path = current / filename
            if not _same_file(path, uninstaller):
                path.unlink()
        directories.extend(current / d for d in dirnames)

    for directory in directories:
        if inside and _same_file(directory, uninstaller.parent):
            continue
        try:
            directory.rmdir()
        except OSError:
            logger.debug(f"Directory not empty, kept: {directory}")

    if is_windows():
        if inside and not schedule_delete_on_reboot(uninstaller):
            raise OSError(f"Could not schedule {uninstaller} for deletion on reboot")
        if not schedule_delete_on_reboot(install_dir):
            raise OSError(f"Could not schedule {install_dir} for deletion on reboot")
        return "Remaining files and directory will be removed on next system restart."

    if inside:
        uninstaller.unlink(missing_ok=True)
    if directory_is_empty(install_dir):
        install_dir.rmdir()
    return "All files were removed."


async def confirm_uninstall(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    if context.config.quiet:
        return Continue()

    app_name = context.config.install.app_name
    progress.line1 = f"Uninstall {app_name}"
    progress.line2 = "Are you sure you want to uninstall?"
    progress.line3 = "This will remove all files and settings."

    confirmed = await asyncio.to_thread(progress.confirm, f"Are you sure you want to uninstall {app_name}?")
    if not confirmed:
        logger.info("Uninstall declined by the user")
        return Stop("Uninstall declined")
    return Continue()


async def remove_files(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    app_name = context.config.install.app_name
    install_dir = context.require_install_dir()
    uninstaller = context.executable_path or current_executable()
    progress.line1 = f"Uninstalling {app_name}"
    progress.line2 = "Removing files..."

    try:
        status = "Nothing to remove."
        if install_dir.is_dir():
            status = await asyncio.to_thread(remove_installed_files, install_dir, uninstaller)
    except OSError as e:
        logger.error(f"Error removing files during uninstall: {e}")
        progress.set_lines("Uninstall Error", "Failed to remove some files.", f"Error details: {e}")
        return Abort.because(FailureKind.APPLICATION, f"File removal failed: {e}", e)

    context.performed_install = True
    progress.line2 = "Files removed successfully."
    progress.line3 = status
    return Continue()


async def remove_registration(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    options = context.config.install
    progress.line1 = f"Uninstalling {options.app_name}"
    progress.line2 = "Removing registry entries..."

    try:
        context.store.delete_tree(options.uninstall_registry_path)
        context.store.delete_tree(options.app_registry_path)
    except OSError as e:
        logger.error(f"Error removing registry entries during uninstall: {e}")
        progress.set_lines("Uninstall Error", "Failed to remove some registry entries.", f"Error details: {e}")
        return Abort.because(FailureKind.APPLICATION, f"Registry cleanup failed: {e}", e)

    progress.line2 = "Registry entries removed successfully."
    progress.line3 = "Uninstall process complete."
    return Continue()


async def remove_shortcut(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    progress.line1 = f"Uninstalling {context.config.install.app_name}"
    progress.line2 = "Removing shortcut..."

    try:
        removed = context.shortcuts.remove(shortcut_location(context))
        progress.line2 = "Shortcut removed successfully." if removed else "Shortcut not found."
    except (InstallationError, OSError) as e:
        # Not critical: the application itself is already gone.
        logger.error(f"Failed to remove shortcut: {e}")
        progress.line2 = "Failed to remove shortcut."
        progress.line3 = f"Error details: {e}"
    return Continue()
