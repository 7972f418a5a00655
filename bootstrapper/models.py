# models.py
"""Runner configuration models, validated with Pydantic v2."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .types import ConfigError, PathLike

DEFAULT_BASE_URL = "https://cdn.dolus.app/"
DEFAULT_UNINSTALL_GUID = "8c6c9e4e-5b0a-4a0f-9d3e-2f6a7d2b1c11"


class InstallOptions(BaseModel):
    """Identity of the installed application and its uninstall registration."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    app_name: str = Field(default="Dolus", min_length=1, description="Application name")
    publisher: str = Field(default="Dolus", min_length=1, description="Publisher shown in Apps & features")
    uninstall_guid: uuid.UUID = Field(
        default=uuid.UUID(DEFAULT_UNINSTALL_GUID),
        description="Fixed identifier of the uninstall registration",
    )
    display_icon: str = Field(default="Assets\\dolus.ico", description="Icon path relative to the install directory")
    help_link: Optional[str] = Field(default="https://dolus.app/")
    url_info_about: Optional[str] = Field(default="https://dolus.app/about")
    executable_name: Optional[str] = Field(
        default=None, description="Main executable; defaults to '<app_name>.exe'"
    )
    bootstrapper_name: str = Field(default="dboot.exe", min_length=1, description="Installed copy of this program")

    @property
    def main_executable(self) -> str:
        return self.executable_name or f"{self.app_name}.exe"

    @property
    def formatted_uninstall_guid(self) -> str:
        return "{" + str(self.uninstall_guid).upper() + "}"

    @property
    def uninstall_registry_path(self) -> str:
        return f"SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\{self.formatted_uninstall_guid}"

    @property
    def app_registry_path(self) -> str:
        return f"SOFTWARE\\{self.app_name}"


class DialogOptions(BaseModel):
    """Appearance of the progress surface."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    auto_close: bool = False


class BootstrapperConfig(BaseModel):
    """
    Complete configuration of one bootstrapper run.

    Every field has a default so the program runs without a configuration
    file; a JSON file may override any subset of them.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    base_url: str = Field(default=DEFAULT_BASE_URL, min_length=1, description="Update server root")
    install: InstallOptions = Field(default_factory=InstallOptions)
    dialog: DialogOptions = Field(default_factory=DialogOptions)
    install_root: Optional[Path] = Field(default=None, description="Overrides the program files directory")
    store_path: Optional[Path] = Field(default=None, description="JSON store used when no registry exists")
    shortcut_path: Optional[Path] = Field(default=None, description="Overrides the menu entry location")
    log_name: str = Field(default="dboot.log", description="Log file name; empty disables file logging")
    quiet: bool = False
    debug: bool = False
    minimum_windows_build: int = Field(default=17134, ge=0)
    launch_after_install: bool = True
    post_uninstall_url: Optional[str] = Field(default="https://dolus.app/?uninstalled=true")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v

    @property
    def dialog_title(self) -> str:
        return self.dialog.title or self.install.app_name


def load_config(path: PathLike) -> BootstrapperConfig:
    """
    Load a configuration file.

    Args:
        path: JSON file whose keys mirror ``BootstrapperConfig`` fields.

    Raises:
        ConfigError: If the file is missing, not JSON or fails validation.
    """
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read configuration file {config_path}: {e}") from e

    try:
        config = BootstrapperConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    logger.debug(f"Loaded configuration from {config_path}")
    return config
