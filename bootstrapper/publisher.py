# publisher.py
"""
Release publishing: packs a build directory into a release archive and
records it as the current version of a branch in ``catalog.json``.

Output layout::

    <output>/catalog.json
    <output>/releases/<branch>/v<version>.zip
"""

import os
import tempfile
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

from loguru import logger

from .catalog import BranchInfo, Catalog, CatalogFile, VersionInfo
from .codec import load_catalog_file, save_catalog_file
from .client import CATALOG_NAME
from .types import CatalogDecodeError, PathLike
from .utils import SemVer, calculate_file_hash


@dataclass(frozen=True)
class PublishResult:
    """What a publish run produced (or would produce, for a dry run)."""
    branch: str
    version: str
    version_info: VersionInfo
    catalog: Catalog
    catalog_path: Path
    archive_path: Path
    dry_run: bool

    @property
    def file_count(self) -> int:
        return len(self.version_info.files)


def load_or_create_catalog(catalog_path: Path) -> Catalog:
    """Load an existing catalog; a missing or unreadable one starts over empty."""
    if not catalog_path.exists():
        logger.info(f"Creating new catalog at {catalog_path}")
        return Catalog.empty()
    try:
        catalog = load_catalog_file(catalog_path)
        logger.info(f"Existing catalog loaded from {catalog_path}")
        return catalog
    except (CatalogDecodeError, OSError) as e:
        logger.warning(f"Failed to load existing catalog, creating a new one: {e}")
        return Catalog.empty()


def hash_release_files(input_dir: Path) -> List[CatalogFile]:
    """Hash every file below ``input_dir``; paths are relative, ``/``-separated and sorted."""
    files = []
    for path in sorted(p for p in input_dir.rglob("*") if p.is_file()):
        relative = path.relative_to(input_dir).as_posix()
        files.append(CatalogFile(path=relative, hash=calculate_file_hash(path)))
    return sorted(files, key=lambda f: f.path)


def create_release_archive(input_dir: Path, archive_path: Path) -> None:
    """Zip ``input_dir`` with entries relative to it, directory entries included."""
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for dirpath, dirnames, filenames in os.walk(input_dir):
            dirnames.sort()
            current = Path(dirpath)
            if current != input_dir:
                zf.write(current, current.relative_to(input_dir).as_posix() + "/")
            for filename in sorted(filenames):
                path = current / filename
                zf.write(path, path.relative_to(input_dir).as_posix())


def publish_release(
    input_dir: PathLike,
    branch: str,
    version: str,
    output_dir: PathLike,
    dry_run: bool = False,
) -> PublishResult:
    """
    Publish ``input_dir`` as ``version`` of ``branch``.

    Args:
        input_dir: Directory holding the release files.
        branch: Branch name (e.g. "main", "beta").
        version: Strict semantic version of the release.
        output_dir: Root of the update server content.
        dry_run: Compute the result without writing into ``output_dir``.

    Returns:
        PublishResult: The new version entry and the updated catalog.

    Raises:
        FileNotFoundError: If ``input_dir`` does not exist.
        ValueError: For an invalid branch or version, or a version that was already published.
    """
    source = Path(input_dir)
    output = Path(output_dir)
    if not source.is_dir():
        raise FileNotFoundError(f"Input directory not found: {source}")
    if not branch or "/" in branch or "\\" in branch:
        raise ValueError(f"Invalid branch name: '{branch}'")
    SemVer.parse(version)

    catalog_path = output / CATALOG_NAME
    catalog = load_or_create_catalog(catalog_path)
    branch_info = catalog.get_branch(branch) or BranchInfo(
        name=branch, current_version=version, versions={}
    )
    if branch_info.get_version_info(version) is not None:
        raise ValueError(
            f"Version {version} already exists for branch {branch}. Cannot overwrite existing version."
        )

    archive_path = output / "releases" / branch / f"v{version}.zip"
    release_path = f"/releases/{branch}/v{version}.zip"

    if dry_run:
        with tempfile.TemporaryDirectory() as scratch:
            scratch_archive = Path(scratch) / archive_path.name
            create_release_archive(source, scratch_archive)
            release_hash = calculate_file_hash(scratch_archive)
        logger.info(f"Dry run: would create {archive_path}")
    else:
        if archive_path.exists():
            raise ValueError(f"Release archive already exists: {archive_path}")
        create_release_archive(source, archive_path)
        release_hash = calculate_file_hash(archive_path)
        logger.info(f"Created release archive {archive_path}")

    files = hash_release_files(source)
    version_info = VersionInfo(
        release_path=release_path,
        release_hash=release_hash,
        files=tuple(files),
        timestamp=str(int(time.time())),
    )
    branch_info = branch_info.with_version(version, version_info).mark_current(version)
    catalog = catalog.with_branch(branch_info)

    if dry_run:
        logger.info(f"Dry run: would write {catalog_path}")
    else:
        try:
            save_catalog_file(catalog_path, catalog)
        except OSError:
            archive_path.unlink(missing_ok=True)
            raise
        logger.info(f"Published {branch} v{version} with {len(files)} files")

    return PublishResult(
        branch=branch,
        version=version,
        version_info=version_info,
        catalog=catalog,
        catalog_path=catalog_path,
        archive_path=archive_path,
        dry_run=dry_run,
    )
