# install.py
"""Steps of the install pipeline, in execution order."""

import asyncio
from pathlib import Path, PureWindowsPath

from loguru import logger

from ..catalog import VersionInfo
from ..context import CancellationToken, InstallContext
from ..integrity import verify_file_integrity
from ..packaging import ZipPackageApplier
from ..progress import ProgressSink
from ..resolution import ActionKind, resolve_action
from ..results import Abort, Continue, StepResult, Stop
from ..shortcuts import default_shortcut_location
from ..system import (
    directory_is_empty,
    is_process_running,
    is_supported_windows,
    program_files_path,
    temp_file_name,
)
from ..types import ConfigurationCorruption, FailureKind, InstallationError, OperationCancelled
from ..utils import SemVer

DEFAULT_BRANCH = "main"


def icon_path(context: InstallContext) -> Path:
    """Absolute path of the configured display icon inside the install directory."""
    return context.require_install_dir().joinpath(*PureWindowsPath(context.config.install.display_icon).parts)


def shortcut_location(context: InstallContext) -> Path:
    return context.config.shortcut_path or default_shortcut_location(context.config.install.app_name)


async def check_running_instance(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    app_name = context.config.install.app_name
    progress.line1 = f"Preparing for {context.operation}"
    progress.line2 = f"Checking if {app_name} is currently running..."

    if await asyncio.to_thread(is_process_running, context.config.install.main_executable):
        logger.warning(f"{app_name} is running; nothing will be changed")
        progress.set_lines(
            f"{app_name} is running",
            f"Please exit {app_name} before continuing.",
            "No changes were made to your system.",
        )
        return Stop(f"{app_name} is running")

    progress.line2 = f"{app_name} is not currently running."
    progress.line3 = f"Proceeding with {context.operation.lower()}..."
    return Continue()


async def check_system_requirements(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    progress.line1 = "Checking System Requirements"
    progress.line2 = "Verifying Windows version..."

    if not is_supported_windows(context.config.minimum_windows_build):
        progress.set_lines(
            "System Requirements Not Met",
            "Your Windows version is not supported.",
            f"{context.config.install.app_name} requires Windows 10 (version 1803) or later.",
        )
        return Abort.because(FailureKind.ENVIRONMENT, "Windows build below the supported minimum")
    return Continue()


async def collect_system_information(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    options = context.config.install
    progress.line1 = "Collecting System Information"
    progress.line2 = "Checking installation directory..."

    program_files = program_files_path(context.config)
    if not program_files.is_dir():
        progress.set_lines(
            "System Error",
            "Program Files directory is missing or invalid.",
            "Please ensure your Windows installation is not corrupted.",
        )
        return Abort.because(FailureKind.ENVIRONMENT, f"Missing program files directory {program_files}")

    progress.line2 = "Checking branch information..."
    context.install_dir = program_files / options.app_name

    branch = context.store.get(options.app_registry_path, "Branch", DEFAULT_BRANCH)
    if not branch or not isinstance(branch, str):
        progress.set_lines(
            "Configuration Error",
            "Branch information not found in the registry.",
            f"Try reinstalling {options.app_name} or contact support.",
        )
        return Abort.because(FailureKind.CONFIGURATION, "Empty branch name in the configuration store")
    context.branch = branch

    raw_version = context.store.get(options.uninstall_registry_path, "DisplayVersion")
    context.installed_version = SemVer.try_parse(raw_version) if isinstance(raw_version, str) else None
    if raw_version and context.installed_version is None:
        logger.warning(f"Ignoring installed version '{raw_version}': not a semantic version")

    context.is_installed = (
        context.installed_version is not None and not directory_is_empty(context.install_dir)
    )
    logger.info(
        f"Install directory: {context.install_dir}, branch: {branch}, "
        f"installed version: {context.installed_version}, installed: {context.is_installed}"
    )
    return Continue()


async def fetch_catalog(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    progress.line1 = "Fetching Update Catalog"
    progress.line2 = "Connecting to update server..."

    catalog = await context.client.fetch_catalog(cancel)
    cancel.raise_if_cancelled()
    if catalog is None:
        if not context.is_installed:
            progress.set_lines(
                "Network Error",
                "Unable to fetch update catalog.",
                "Check your internet connection and try again.",
            )
            logger.info("Aborting due to unavailable catalog")
            return Abort.because(FailureKind.NETWORK, "Update catalog unavailable")
        return Stop("Update catalog unavailable; keeping the existing installation")

    context.catalog = catalog
    return Continue()


async def resolve_update(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    app_name = context.config.install.app_name
    progress.line1 = "Preparing Update/Install"
    progress.line2 = "Analyzing current installation..."

    branch_info = context.catalog.get_branch(context.branch)
    if branch_info is None:
        progress.line2 = "Unable to find branch information."
        if context.is_installed:
            return Stop(f"Branch '{context.branch}' is not in the catalog")
        progress.set_lines(
            "Catalog Error",
            "Unable to fetch update catalog.",
            "Please check your internet connection and try again.",
        )
        return Abort.because(FailureKind.CONFIGURATION, f"Branch '{context.branch}' is not in the catalog")

    installed = context.installed_version if context.is_installed else None
    try:
        action = resolve_action(installed, branch_info)
    except ConfigurationCorruption as e:
        logger.error(str(e))
        progress.set_lines("Catalog Error", "The update catalog is inconsistent.", "Please try again later.")
        return Abort.because(FailureKind.CONFIGURATION, str(e), e)

    logger.info(f"Resolved action {action.kind.value} for version {action.version}")
    if action.kind is ActionKind.FRESH_INSTALL:
        progress.line1 = f"Installing {app_name}"
        progress.line2 = f"Downloading {app_name} v{action.version}..."
        return await download_release(progress, context, action.info, action.version, cancel)

    if action.kind is ActionKind.UPGRADE:
        progress.line2 = "Update available. Preparing for download..."
        return await download_release(progress, context, action.info, action.version, cancel)

    progress.line1 = f"Updating {app_name}"
    progress.line2 = "Verifying installation..."
    if action.info is None:
        logger.info(f"Installed version {action.version} is not in the catalog; skipping verification")
        return Stop()

    intact = await verify_file_integrity(progress, context.require_install_dir(), action.info.files, cancel)
    cancel.raise_if_cancelled()
    if intact:
        return Stop()

    # A failed repair keeps the existing installation in place.
    logger.warning(f"Installation of {action.version} is damaged; downloading it again")
    return await download_release(progress, context, action.info, action.version, cancel, stop_on_failure=True)


async def download_release(
    progress: ProgressSink,
    context: InstallContext,
    release: VersionInfo,
    version: str,
    cancel: CancellationToken,
    stop_on_failure: bool = False,
) -> StepResult:
    """Download and check a release archive, recording it in the context for installation."""
    package = temp_file_name(".zip")
    succeeded = await context.client.download_archive(release.release_path, package, progress, cancel)
    kind = FailureKind.NETWORK
    if succeeded and not await context.client.verify_archive(package, release.release_hash):
        package.unlink(missing_ok=True)
        kind = FailureKind.INTEGRITY
        succeeded = False

    if not succeeded:
        cancel.raise_if_cancelled()
        progress.line3 = "Failed to download update"
        progress.set_marquee(False)
        if stop_on_failure:
            return Stop(f"Repair download of {version} failed")
        return Abort.because(kind, f"Download of {version} failed")

    if cancel.cancelled:
        package.unlink(missing_ok=True)
        cancel.raise_if_cancelled()

    context.update_package = package
    context.update_version = version
    progress.set_marquee(True)
    return Continue()


async def perform_file_installation(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    app_name = context.config.install.app_name
    installed = context.is_installed
    package = context.update_package
    install_dir = context.require_install_dir()

    progress.line1 = f"Updating {app_name}" if installed else f"Installing {app_name}"
    progress.line2 = "Preparing for installation..."

    if package is None or not package.is_file():
        progress.set_lines(
            "Installation Error",
            "Update package not found or invalid.",
            "Try restarting the installer or contact support.",
        )
        return Stop() if installed else Abort.because(FailureKind.APPLICATION, "Update package missing")

    progress.line2 = f"Installing version {context.update_version}..."
    progress.set_marquee(False)

    try:
        install_dir.mkdir(parents=True, exist_ok=True)
        applier = ZipPackageApplier(context.executable_path)
        await applier.apply_async(package, install_dir, progress.set_percent, cancel)

        context.performed_install = True
        progress.line2 = "Update completed successfully." if installed else "Installation completed successfully."
        progress.line3 = "Finalizing..."
        return Continue()
    except OperationCancelled:
        progress.set_lines(
            "Operation Cancelled",
            "Installation was cancelled by the user.",
            "Run the installer again to complete the installation.",
        )
        return Abort.cancelled()
    except (InstallationError, OSError) as e:
        logger.error(f"Error during installation/update: {e}")
        progress.set_lines(
            "Installation Error",
            "An unexpected error occurred during installation.",
            f"Error details: {e}",
        )
        if installed:
            return Stop(str(e))
        return Abort.because(FailureKind.APPLICATION, str(e), e)
    finally:
        package.unlink(missing_ok=True)
        context.update_package = None


async def update_registration(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    options = context.config.install
    install_dir = context.require_install_dir()
    progress.line1 = "Finalizing Installation"
    progress.line2 = "Updating Windows Registry..."

    if not context.update_version:
        return Abort.because(FailureKind.CONFIGURATION, "No installed version to register")

    values = {
        "DisplayName": options.app_name,
        "DisplayVersion": context.update_version,
        "DisplayIcon": str(icon_path(context)),
        "InstallLocation": str(install_dir),
        "Publisher": options.publisher,
        "UninstallString": f'"{install_dir / options.bootstrapper_name}" --uninstall',
        "NoModify": 1,
        "NoRepair": 1,
    }
    if options.help_link:
        values["HelpLink"] = options.help_link
    if options.url_info_about:
        values["URLInfoAbout"] = options.url_info_about

    try:
        for key, value in values.items():
            context.store.set(options.uninstall_registry_path, key, value)
        context.store.set(options.app_registry_path, "Branch", context.branch or DEFAULT_BRANCH)
        context.store.set(options.app_registry_path, "InstallPath", str(install_dir))
    except OSError as e:
        logger.error(f"Failed to update registry: {e}")
        progress.set_lines(
            "Registry Error",
            "Failed to update Windows registry.",
            f"Error details: {e}",
        )
        return Abort.because(FailureKind.APPLICATION, f"Registry update failed: {e}", e)

    progress.line2 = "Registry updated successfully."
    progress.line3 = "Installation process complete."
    return Continue()


async def create_shortcut(
    progress: ProgressSink, context: InstallContext, cancel: CancellationToken
) -> StepResult:
    options = context.config.install
    install_dir = context.require_install_dir()
    progress.line1 = "Finalizing Installation"
    progress.line2 = "Creating shortcut..."

    location = shortcut_location(context)
    try:
        await asyncio.to_thread(
            context.shortcuts.create,
            install_dir / options.bootstrapper_name,
            location,
            icon_path(context),
            f"{options.app_name} Application",
            install_dir,
        )
    except (InstallationError, OSError) as e:
        logger.error(f"Failed to create shortcut: {e}")
        progress.line2 = "Failed to create shortcut."
        progress.line3 = f"Error details: {e}"
        return Abort.because(FailureKind.APPLICATION, f"Shortcut creation failed: {e}", e)

    progress.line2 = "Shortcut created successfully."
    return Continue()
