# utils.py
import functools
import hashlib
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from .types import HashType

_SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$",
    re.ASCII,
)

HASH_CHUNK_SIZE = 64 * 1024


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class SemVer:
    """
    A strict Semantic Versioning 2.0.0 version.

    Ordering follows the standard precedence rules: numeric core first, a
    pre-release sorts before the matching release, pre-release identifiers are
    compared left to right. Build metadata is kept for display but never
    influences ordering or equality.

    Example:
        >>> SemVer.parse("1.0.0-alpha") < SemVer.parse("1.0.0")
        True
    """
    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def parse(cls, version_str: str) -> "SemVer":
        """
        Parse a version string.

        Args:
            version_str: Version string (e.g., "1.2.3-beta.1+build.5")

        Returns:
            The parsed version.

        Raises:
            ValueError: If the string is not a valid semantic version.
        """
        if not isinstance(version_str, str):
            raise ValueError(f"Version must be a string, got {type(version_str).__name__}")
        match = _SEMVER_PATTERN.fullmatch(version_str)
        if not match:
            raise ValueError(f"Invalid semantic version: '{version_str}'")
        prerelease = match.group("prerelease")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=tuple(prerelease.split(".")) if prerelease else (),
            build=tuple(build.split(".")) if build else (),
        )

    @classmethod
    def try_parse(cls, version_str: Optional[str]) -> Optional["SemVer"]:
        """Parse a version string, returning None instead of raising."""
        if not version_str:
            return None
        try:
            return cls.parse(version_str)
        except ValueError:
            return None

    def _precedence_key(self):
        # A release outranks any of its pre-releases.
        if not self.prerelease:
            return (self.major, self.minor, self.patch, 1, ())
        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease
        )
        return (self.major, self.minor, self.patch, 0, identifiers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() == other._precedence_key()

    def __lt__(self, other: "SemVer") -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._precedence_key() < other._precedence_key()

    def __hash__(self) -> int:
        return hash(self._precedence_key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def parse_version(version_str: str) -> SemVer:
    """
    Parse a version string into a comparable SemVer.

    Args:
        version_str: Version string (e.g., "1.2.3")

    Returns:
        The parsed SemVer.
    """
    return SemVer.parse(version_str)


def is_valid_version(version_str: str) -> bool:
    """Return True if the string is a strict semantic version."""
    return SemVer.try_parse(version_str) is not None


def compare_versions(current: Union[str, SemVer], latest: Union[str, SemVer]) -> int:
    """
    Compare two versions by semantic-version precedence.

    Args:
        current: Current version
        latest: Latest version

    Returns:
        -1 if current < latest, 0 if equal, 1 if current > latest
    """
    current_version = current if isinstance(current, SemVer) else SemVer.parse(current)
    latest_version = latest if isinstance(latest, SemVer) else SemVer.parse(latest)

    if current_version < latest_version:
        return -1
    elif current_version > latest_version:
        return 1
    else:
        return 0


def calculate_file_hash(file_path: Path, algorithm: HashType = "sha256") -> str:
    """
    Calculate the hash of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm to use

    Returns:
        Lowercase hexadecimal hash string
    """
    hash_func = hashlib.new(algorithm)

    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hash_func.update(chunk)

    return hash_func.hexdigest().lower()


def hashes_match(calculated: str, expected: str) -> bool:
    """Case-insensitive comparison of two hex digests."""
    return calculated.lower() == expected.strip().lower()
