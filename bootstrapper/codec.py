# codec.py
"""
Deterministic JSON encoding and strict decoding of the release catalog.

Decoding fails closed: an unknown property, a missing property, a value of the
wrong JSON type or an invalid semantic version raises ``CatalogDecodeError``
naming the first offending field. Encoding always produces the same bytes for
equal catalogs: branches sorted by name, versions newest first.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from loguru import logger
from pydantic import ValidationError

from .catalog import BranchInfo, Catalog, VersionInfo
from .types import CatalogDecodeError, PathLike


def _format_location(loc) -> str:
    return ".".join(str(part) for part in loc)


def _check_structure(raw: Any) -> None:
    """Checks Pydantic cannot express with field paths: the root shape and stray branch names."""
    if not isinstance(raw, dict):
        raise CatalogDecodeError("Expected a JSON object at the document root")
    for key in raw:
        if key != "branches":
            raise CatalogDecodeError(f"Expected 'branches' property, but found '{key}'", field=key)
    if "branches" not in raw:
        raise CatalogDecodeError("Field required", field="branches")
    branches = raw["branches"]
    if not isinstance(branches, dict):
        raise CatalogDecodeError("Expected an object of branches", field="branches")
    for name, branch in branches.items():
        if not name:
            raise CatalogDecodeError("Branch name is empty", field="branches")
        if isinstance(branch, dict) and "name" in branch:
            raise CatalogDecodeError(
                "Unexpected property 'name' in branch info object",
                field=f"branches.{name}.name",
            )
        if isinstance(branch, dict) and isinstance(branch.get("versions"), dict):
            for version in branch["versions"]:
                if not version:
                    raise CatalogDecodeError(
                        "Version key is empty", field=f"branches.{name}.versions"
                    )


def decode_catalog(data: Union[bytes, str]) -> Catalog:
    """
    Decode a catalog document.

    Args:
        data: Raw JSON bytes or text.

    Returns:
        The validated catalog.

    Raises:
        CatalogDecodeError: If the document is not valid JSON or violates the schema.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CatalogDecodeError(f"Catalog is not valid JSON: {e}") from e

    _check_structure(raw)

    try:
        return Catalog.model_validate(raw, by_alias=True, by_name=False)
    except ValidationError as e:
        first = e.errors()[0]
        field = _format_location(first["loc"]) or None
        raise CatalogDecodeError(first["msg"], field=field) from e


def _version_to_dict(info: VersionInfo) -> Dict[str, Any]:
    document: Dict[str, Any] = {
        "releasePath": info.release_path,
        "releaseHash": info.release_hash,
        "files": [{"path": f.path, "hash": f.hash} for f in info.files],
    }
    if info.timestamp is not None:
        document["timestamp"] = info.timestamp
    return document


def _branch_to_dict(branch: BranchInfo) -> Dict[str, Any]:
    return {
        "currentVersion": branch.current_version,
        "versions": {
            version: _version_to_dict(branch.versions[version])
            for version in branch.sorted_versions()
        },
    }


def catalog_to_dict(catalog: Catalog) -> Dict[str, Any]:
    """Plain-dict form of the catalog with deterministic key order."""
    return {
        "branches": {
            name: _branch_to_dict(catalog.branches[name])
            for name in sorted(catalog.branches)
        }
    }


def encode_catalog(catalog: Catalog) -> bytes:
    """
    Encode a catalog as UTF-8 JSON.

    Args:
        catalog: The catalog to encode.

    Returns:
        Indented JSON bytes; equal catalogs always encode identically.
    """
    return json.dumps(catalog_to_dict(catalog), indent=2, ensure_ascii=False).encode("utf-8")


def load_catalog_file(path: PathLike) -> Catalog:
    """
    Read and decode a catalog file.

    Raises:
        FileNotFoundError: If the file does not exist.
        CatalogDecodeError: If the content is invalid.
    """
    return decode_catalog(Path(path).read_bytes())


def save_catalog_file(path: PathLike, catalog: Catalog) -> None:
    """Encode ``catalog`` and atomically replace the file at ``path``."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(encode_catalog(catalog))
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug(f"Saved catalog to {target}")
