# catalog.py
"""
Immutable description of the release catalog: branches, their versions and
the files each version ships.

The models are validated by Pydantic v2. JSON field names are camelCase
(``currentVersion``, ``releasePath``...) while the Python attributes stay
snake_case. Every model is frozen; "mutating" helpers return new instances.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .types import ConfigurationCorruption
from .utils import SemVer


class _CatalogModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
    )


class CatalogFile(_CatalogModel):
    """A single file of a release with its content hash."""

    path: str = Field(min_length=1, description="Path relative to the install directory")
    hash: str = Field(min_length=1, description="Lowercase hex SHA-256 of the file")


class VersionInfo(_CatalogModel):
    """One published version of a branch."""

    release_path: str = Field(min_length=1, description="Server-relative archive location")
    release_hash: str = Field(min_length=1, description="SHA-256 of the archive itself")
    files: Tuple[CatalogFile, ...] = Field(description="Files contained in the release")
    timestamp: Optional[str] = Field(default=None, description="Publish time (unix seconds)")


class BranchInfo(_CatalogModel):
    """A release channel with its current version and every published version."""

    name: str = Field(min_length=1)
    current_version: str = Field(min_length=1)
    versions: Dict[str, VersionInfo] = Field(default_factory=dict)

    @field_validator("current_version")
    @classmethod
    def _validate_current_version(cls, value: str) -> str:
        SemVer.parse(value)
        return value

    @field_validator("versions")
    @classmethod
    def _validate_version_keys(cls, value: Dict[str, VersionInfo]) -> Dict[str, VersionInfo]:
        for key in value:
            SemVer.parse(key)
        return value

    def get_current_version_info(self) -> VersionInfo:
        """
        Return the release marked as current.

        Raises:
            ConfigurationCorruption: If ``current_version`` is not a published version.
        """
        info = self.versions.get(self.current_version)
        if info is None:
            raise ConfigurationCorruption(
                f"Branch '{self.name}' marks {self.current_version} as current "
                f"but the version is not in the catalog"
            )
        return info

    def get_version_info(self, version: str) -> Optional[VersionInfo]:
        """Return the release for ``version`` or None if it was never published."""
        info = self.versions.get(version)
        if info is not None:
            return info
        # Fall back to precedence equality so "1.0.0+build" finds "1.0.0".
        wanted = SemVer.try_parse(version)
        if wanted is None:
            return None
        for key, candidate in self.versions.items():
            if SemVer.parse(key) == wanted:
                return candidate
        return None

    def sorted_versions(self) -> List[str]:
        """Version keys in descending semantic-version order."""
        return sorted(self.versions, key=SemVer.parse, reverse=True)

    def with_version(self, version: str, info: VersionInfo) -> "BranchInfo":
        """
        Return a copy of the branch with ``version`` published.

        Raises:
            ValueError: If the version already exists; published versions are immutable.
        """
        SemVer.parse(version)
        if version in self.versions:
            raise ValueError(
                f"Version {version} already exists for branch {self.name}. "
                f"Cannot overwrite existing version."
            )
        versions = dict(self.versions)
        versions[version] = info
        return self.model_copy(update={"versions": versions})

    def mark_current(self, version: str) -> "BranchInfo":
        """
        Return a copy of the branch with ``version`` as the current version.

        Raises:
            ConfigurationCorruption: If the version has not been published.
        """
        if version not in self.versions:
            raise ConfigurationCorruption(
                f"Cannot mark {version} as current for branch '{self.name}': version not published"
            )
        return self.model_copy(update={"current_version": version})


class Catalog(_CatalogModel):
    """Root document listing every branch."""

    branches: Dict[str, BranchInfo] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _inject_branch_names(cls, data: Any) -> Any:
        # The branch name is the map key; the JSON object itself never carries it.
        if not isinstance(data, dict) or not isinstance(data.get("branches"), dict):
            return data
        branches = {}
        for name, branch in data["branches"].items():
            if isinstance(branch, dict):
                if "name" in branch:
                    raise ValueError(f"Unexpected property 'name' in branch '{name}'")
                branch = {"name": name, **branch}
            branches[name] = branch
        return {**data, "branches": branches}

    @model_validator(mode="after")
    def _check_branch_keys(self) -> "Catalog":
        for key, branch in self.branches.items():
            if branch.name != key:
                raise ValueError(f"Branch '{branch.name}' is stored under key '{key}'")
        return self

    @classmethod
    def empty(cls) -> "Catalog":
        return cls(branches={})

    def get_branch(self, branch: str) -> Optional[BranchInfo]:
        """Return the branch called ``branch`` or None."""
        return self.branches.get(branch)

    def with_branch(self, branch: BranchInfo) -> "Catalog":
        """Return a copy of the catalog with ``branch`` added or replaced."""
        branches = dict(self.branches)
        branches[branch.name] = branch
        return self.model_copy(update={"branches": branches})
