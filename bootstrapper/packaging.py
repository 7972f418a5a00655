# packaging.py
"""Applies release archives over an install directory, including self-replacement."""

import asyncio
import os
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .context import CancellationToken
from .system import current_executable
from .types import InstallationError, OperationCancelled, PathLike

ProgressCallback = Callable[[int], None]


def stale_binary_path(executable: Path) -> Path:
    """The ``<binary>.old`` sibling left behind by a self-update."""
    return executable.with_name(executable.name + ".old")


def cleanup_stale_binary(executable_path: Optional[PathLike] = None) -> bool:
    """
    Delete the ``.old`` binary left by the previous self-update, if any.

    Returns:
        bool: True if nothing is left behind.
    """
    executable = Path(executable_path) if executable_path else current_executable()
    stale = stale_binary_path(executable)
    if not stale.exists():
        return True
    try:
        stale.unlink()
        logger.info(f"Removed stale binary {stale}")
        return True
    except OSError as e:
        logger.warning(f"Could not remove stale binary {stale}: {e}")
        return False


class ZipPackageApplier:
    """
    Extracts a ZIP release over an install directory.

    The currently running program is never deleted: the purge skips it and
    its archive entry is swapped in through two renames, so at every instant
    a usable executable exists at its path.
    """

    def __init__(self, executable_path: Optional[PathLike] = None):
        self._executable_path = Path(executable_path) if executable_path else None

    @property
    def executable_path(self) -> Path:
        if self._executable_path is None:
            self._executable_path = current_executable()
        return self._executable_path.resolve()

    def apply(
        self,
        archive_path: PathLike,
        install_dir: PathLike,
        progress_cb: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """
        Purge ``install_dir`` and extract ``archive_path`` into it.

        Args:
            archive_path: The release archive.
            install_dir: Target directory; must exist.
            progress_cb: Called with the integer percentage after each entry.
            cancel: Checked before every entry and before the self-replace swap.

        Raises:
            OperationCancelled: If cancellation was requested.
            InstallationError: For an unreadable archive, an unsafe entry or an I/O failure.
        """
        root = Path(install_dir).resolve()
        executable = self.executable_path
        logger.info(f"Applying {archive_path} to {root}")

        try:
            with zipfile.ZipFile(archive_path, "r") as zf:
                entries = zf.infolist()
                self._purge(root, executable)

                total = len(entries)
                for processed, info in enumerate(entries, start=1):
                    if cancel is not None:
                        cancel.raise_if_cancelled()

                    target = self._target_path(root, info.filename)
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                    elif target == executable:
                        self._replace_running_binary(zf, info, target, cancel)
                    else:
                        target.parent.mkdir(parents=True, exist_ok=True)
                        with zf.open(info) as src, open(target, "wb") as dst:
                            shutil.copyfileobj(src, dst)

                    if progress_cb is not None:
                        progress_cb(int(processed / total * 100))
        except (OperationCancelled, InstallationError):
            raise
        except zipfile.BadZipFile as e:
            raise InstallationError(f"Invalid ZIP file: {e}") from e
        except (OSError, zlib.error) as e:
            raise InstallationError(f"Failed to extract archive: {e}") from e

        logger.info(f"Extracted {total} entries into {root}")

    async def apply_async(
        self,
        archive_path: PathLike,
        install_dir: PathLike,
        progress_cb: Optional[ProgressCallback] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """
        Run ``apply`` in a worker thread.

        If the awaiting task is cancelled, the token is set and the worker is
        allowed to stop at its next entry before ``CancelledError`` propagates.
        """
        token = cancel or CancellationToken()
        worker = asyncio.ensure_future(
            asyncio.to_thread(self.apply, archive_path, install_dir, progress_cb, token)
        )
        try:
            await asyncio.shield(worker)
        except asyncio.CancelledError:
            token.cancel()
            await asyncio.wait({worker})
            if worker.exception() is not None:
                logger.debug(f"Extraction stopped after cancellation: {worker.exception()}")
            raise

    @staticmethod
    def _target_path(root: Path, name: str) -> Path:
        target = (root / name).resolve()
        if target != root and not target.is_relative_to(root):
            raise InstallationError(f"Archive entry escapes the install directory: {name}")
        return target

    @staticmethod
    def _purge(root: Path, executable: Path) -> None:
        """Delete every file except the running binary, then prune empty directories."""
        keep = {executable, stale_binary_path(executable)}
        directories = []
        for dirpath, dirnames, filenames in os.walk(root, topdown=False):
            current = Path(dirpath)
            for filename in filenames:
                path = current / filename
                if path.resolve() in keep:
                    continue
                try:
                    path.unlink()
                except OSError as e:
                    logger.warning(f"Failed to delete {path}: {e}")
            directories.extend(current / d for d in dirnames)

        # os.walk(topdown=False) lists children before their parents.
        for directory in directories:
            try:
                directory.rmdir()
            except OSError:
                logger.debug(f"Directory not empty, kept: {directory}")

    @staticmethod
    def _replace_running_binary(
        zf: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        target: Path,
        cancel: Optional[CancellationToken],
    ) -> None:
        temp_path = target.with_name(f".{target.name}.new")
        old_path = stale_binary_path(target)
        logger.info(f"Replacing running executable {target}")
        try:
            with zf.open(info) as src, open(temp_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            if target.exists():
                shutil.copymode(target, temp_path)

            if cancel is not None:
                cancel.raise_if_cancelled()

            old_path.unlink(missing_ok=True)
            if target.exists():
                os.replace(target, old_path)
            try:
                os.replace(temp_path, target)
            except OSError:
                if old_path.exists():
                    os.replace(old_path, target)
                raise
        finally:
            temp_path.unlink(missing_ok=True)
