# integrity.py
"""Verification of an installed tree against the file list of a catalog version."""

import asyncio
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from .catalog import CatalogFile
from .context import CancellationToken
from .progress import ProgressSink
from .types import PathLike
from .utils import calculate_file_hash, hashes_match


async def verify_file_integrity(
    progress: ProgressSink,
    install_dir: PathLike,
    files: Sequence[CatalogFile],
    cancel: Optional[CancellationToken] = None,
) -> bool:
    """
    Check that every catalog file exists under ``install_dir`` with the recorded hash.

    Stops at the first missing or mismatching file. The filesystem is only
    read, so the check can be repeated freely.

    Args:
        progress: Progress surface receiving status lines and percentage.
        install_dir: Root of the installation.
        files: Files recorded for the installed version.
        cancel: Optional cancellation token, observed before each file.

    Returns:
        bool: True only if the list is non-empty and every file is intact.
    """
    progress.line2 = "Verifying installation..."
    progress.set_marquee(False)

    if not files:
        logger.error("No files found in the catalog for integrity verification.")
        return False

    root = Path(install_dir)
    total_files = len(files)

    for processed, file in enumerate(files, start=1):
        if cancel is not None and cancel.cancelled:
            logger.info("Integrity verification cancelled")
            return False

        full_path = root / file.path
        if not full_path.is_file():
            logger.warning(f"File not found: {full_path}")
            progress.line3 = f"Missing file: {file.path}"
            return False

        calculated_hash = await asyncio.to_thread(calculate_file_hash, full_path)
        if not hashes_match(calculated_hash, file.hash):
            logger.error(f"Hash mismatch for file: {full_path}")
            progress.line3 = f"Integrity check failed: {file.path}"
            return False

        progress.set_percent(int(processed / total_files * 100))
        progress.line3 = f"Verified {processed}/{total_files} files"

    progress.line2 = "Installation verified successfully."
    progress.line3 = f"All {total_files} files are intact."
    logger.info(f"Verified {total_files} files in {root}")
    return True
