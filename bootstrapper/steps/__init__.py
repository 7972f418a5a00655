# __init__.py
"""Install and uninstall pipelines."""

from .install import (
    check_running_instance,
    check_system_requirements,
    collect_system_information,
    create_shortcut,
    download_release,
    fetch_catalog,
    perform_file_installation,
    resolve_update,
    update_registration,
)
from .uninstall import (
    confirm_uninstall,
    remove_files,
    remove_registration,
    remove_shortcut,
)

INSTALL_STEPS = (
    check_running_instance,
    check_system_requirements,
    collect_system_information,
    fetch_catalog,
    resolve_update,
    perform_file_installation,
    update_registration,
    create_shortcut,
)

UNINSTALL_STEPS = (
    collect_system_information,
    check_running_instance,
    confirm_uninstall,
    remove_files,
    remove_registration,
    remove_shortcut,
)

__all__ = [
    "INSTALL_STEPS",
    "UNINSTALL_STEPS",
    "check_running_instance",
    "check_system_requirements",
    "collect_system_information",
    "confirm_uninstall",
    "create_shortcut",
    "download_release",
    "fetch_catalog",
    "perform_file_installation",
    "remove_files",
    "remove_registration",
    "remove_shortcut",
    "resolve_update",
    "update_registration",
]
