# app.py
"""Wires the configuration, collaborators and step lists into runnable pipelines."""

import asyncio
import os
import subprocess
import webbrowser
from pathlib import Path
from typing import Optional, Sequence

import aiohttp
from loguru import logger

from .client import UpdateClient
from .context import CancellationToken, InstallContext
from .logger import LoggingTelemetry, TelemetryCollector
from .models import BootstrapperConfig
from .orchestrator import Orchestrator, RunOutcome, Step, SuccessCallback
from .progress import ConsoleProgress, NullProgress, ProgressSink
from .shortcuts import ShortcutCreator, default_shortcut_creator
from .steps import INSTALL_STEPS, UNINSTALL_STEPS
from .store import KeyValueStore, open_default_store
from .system import is_windows
from .types import PathLike


async def launch_application(context: InstallContext) -> None:
    """Start the installed application after a successful install run."""
    if not context.config.launch_after_install or context.install_dir is None:
        return
    main_file = context.install_dir / context.config.install.main_executable
    if not main_file.is_file():
        logger.warning(f"Installed application not found at {main_file}")
        return
    logger.info(f"Launching {main_file}")
    if is_windows():
        os.startfile(main_file)
    else:
        subprocess.Popen([str(main_file)], cwd=context.install_dir, start_new_session=True)


async def open_uninstall_page(context: InstallContext) -> None:
    """Open the farewell page after a successful uninstall run."""
    url = context.config.post_uninstall_url
    if url and not context.config.quiet:
        await asyncio.to_thread(webbrowser.open, url)


class Bootstrapper:
    """
    Installs, updates, repairs or uninstalls one application.

    Collaborators default to the host's implementations and can be replaced,
    which is how the tests run whole pipelines against temporary directories.
    """

    def __init__(
        self,
        config: BootstrapperConfig,
        store: Optional[KeyValueStore] = None,
        shortcuts: Optional[ShortcutCreator] = None,
        progress: Optional[ProgressSink] = None,
        telemetry: Optional[TelemetryCollector] = None,
        executable_path: Optional[PathLike] = None,
        session: Optional[aiohttp.ClientSession] = None,
        install_steps: Sequence[Step] = INSTALL_STEPS,
        uninstall_steps: Sequence[Step] = UNINSTALL_STEPS,
        post_install: Optional[SuccessCallback] = launch_application,
        post_uninstall: Optional[SuccessCallback] = open_uninstall_page,
    ):
        self.config = config
        self.store = store or open_default_store(config.store_path)
        self.shortcuts = shortcuts or default_shortcut_creator()
        self.telemetry = telemetry or LoggingTelemetry()
        self.executable_path = Path(executable_path) if executable_path else None
        self.install_steps = list(install_steps)
        self.uninstall_steps = list(uninstall_steps)
        self.post_install = post_install
        self.post_uninstall = post_uninstall
        self._progress = progress
        self._session = session

    def _make_progress(self) -> ProgressSink:
        if self._progress is not None:
            return self._progress
        if self.config.quiet:
            return NullProgress()
        return ConsoleProgress(title=self.config.dialog_title)

    async def install(self, cancel: Optional[CancellationToken] = None) -> RunOutcome:
        """Run the install pipeline: fresh install, upgrade or verification and repair."""
        return await self._run(self.install_steps, "Installation", self.post_install, cancel)

    async def uninstall(self, cancel: Optional[CancellationToken] = None) -> RunOutcome:
        """Run the uninstall pipeline."""
        return await self._run(self.uninstall_steps, "Uninstallation", self.post_uninstall, cancel)

    async def _run(
        self,
        steps: Sequence[Step],
        operation: str,
        on_success: Optional[SuccessCallback],
        cancel: Optional[CancellationToken],
    ) -> RunOutcome:
        async with UpdateClient(self.config.base_url, session=self._session) as client:
            context = InstallContext(
                config=self.config,
                client=client,
                store=self.store,
                shortcuts=self.shortcuts,
                executable_path=self.executable_path,
                operation=operation,
            )
            orchestrator = Orchestrator(
                steps,
                context,
                self._make_progress(),
                operation=operation,
                quiet=self.config.quiet,
                auto_close=self.config.dialog.auto_close,
                telemetry=self.telemetry,
                cancel=cancel,
                on_success=on_success,
            )
            outcome = await orchestrator.run()

        logger.info(f"{operation} finished: {outcome.state.value}")
        return outcome


def create_bootstrapper(config: Optional[BootstrapperConfig] = None, **kwargs) -> Bootstrapper:
    """
    Create a Bootstrapper with the host's default collaborators.

    Args:
        config: Runner configuration; built-in defaults when omitted.
        **kwargs: Collaborator overrides passed to ``Bootstrapper``.
    """
    return Bootstrapper(config or BootstrapperConfig(), **kwargs)


def run_bootstrapper(config: BootstrapperConfig, uninstall: bool = False) -> bool:
    """
    Run one pipeline to completion on a fresh event loop.

    Returns:
        bool: True if the run succeeded.
    """
    bootstrapper = create_bootstrapper(config)
    runner = bootstrapper.uninstall if uninstall else bootstrapper.install
    return asyncio.run(runner()).succeeded
