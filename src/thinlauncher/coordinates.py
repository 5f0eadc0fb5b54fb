"""Artifact coordinates and dependency declarations."""
from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field, replace
from typing import Container, FrozenSet, Optional, Tuple

from thinlauncher.constants import Constants
from thinlauncher.exceptions import ConfigurationError

SNAPSHOT_SUFFIX = "-SNAPSHOT"

# Versionless identity used for conflict resolution and dependency management.
ArtifactKey = Tuple[str, str, str, str]


@dataclass(frozen=True)
class Coordinate:
    """Five-part artifact identifier."""

    group: str
    name: str
    version: str = ""
    extension: str = Constants.DEFAULT_EXTENSION
    classifier: str = ""

    @classmethod
    def parse(cls, text: str) -> "Coordinate":
        """Parse ``group:name[:extension[:classifier]]:version``.

        A two-part ``group:name`` is accepted with an empty version, for
        dependencies whose version comes from dependency management.
        """
        parts = [p.strip() for p in text.strip().split(":")]
        if len(parts) < 2 or any(not p for p in parts):
            raise ConfigurationError(f"Invalid coordinates '{text}'")
        if len(parts) == 2:
            return cls(parts[0], parts[1])
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2])
        if len(parts) == 4:
            return cls(parts[0], parts[1], parts[3], extension=parts[2])
        if len(parts) == 5:
            return cls(parts[0], parts[1], parts[4], extension=parts[2], classifier=parts[3])
        raise ConfigurationError(f"Invalid coordinates '{text}'")

    @property
    def key(self) -> ArtifactKey:
        return (self.group, self.name, self.extension, self.classifier)

    @property
    def is_snapshot(self) -> bool:
        return self.version.endswith(SNAPSHOT_SUFFIX)

    @property
    def is_range(self) -> bool:
        return self.version[:1] in ("[", "(")

    def with_version(self, version: str) -> "Coordinate":
        return replace(self, version=version)

    def pom(self) -> "Coordinate":
        """The POM artifact describing this coordinate."""
        return Coordinate(self.group, self.name, self.version, extension="pom")

    def manifest_form(self) -> str:
        """Coordinates as written into a dependency manifest.

        The extension is omitted for plain jars without a classifier so that
        ``group:web:1.0`` stays ``group:web:1.0``.
        """
        text = f"{self.group}:{self.name}"
        if self.extension and (self.extension != Constants.DEFAULT_EXTENSION or self.classifier):
            text += f":{self.extension}"
        if self.classifier:
            text += f":{self.classifier}"
        if self.version:
            text += f":{self.version}"
        return text

    def failure_form(self) -> str:
        """``group:name:extension[:classifier]:version`` used in error messages."""
        text = f"{self.group}:{self.name}:{self.extension}"
        if self.classifier:
            text += f":{self.classifier}"
        return f"{text}:{self.version}"

    def directory(self, version: Optional[str] = None) -> str:
        """Repository-relative directory holding this version."""
        return f"{self.group.replace('.', '/')}/{self.name}/{version or self.version}"

    def file_name(self, file_version: Optional[str] = None) -> str:
        """File name in the Maven 2 layout.

        Args:
            file_version: Version used in the file name; differs from the
                directory version for timestamped snapshot builds.
        """
        suffix = f"-{self.classifier}" if self.classifier else ""
        return f"{self.name}-{file_version or self.version}{suffix}.{self.extension}"

    def path(self, file_version: Optional[str] = None) -> str:
        return f"{self.directory()}/{self.file_name(file_version)}"

    def __str__(self) -> str:
        return self.failure_form()


def manifest_key(coordinate: Coordinate, taken: Container[str]) -> str:
    """Logical key for a dependency manifest entry.

    The artifact name, then ``.<classifier>`` when present; a key that is
    already taken gets ``.1``, ``.2``, ... appended until it is unique.
    """
    base = coordinate.name
    if coordinate.classifier:
        base = f"{base}.{coordinate.classifier}"
    key = base
    counter = 1
    while key in taken:
        key = f"{base}.{counter}"
        counter += 1
    return key


@dataclass(frozen=True)
class Exclusion:
    """A ``group:name`` pattern; ``*`` matches anything."""

    group: str
    name: str

    @classmethod
    def parse(cls, text: str) -> "Exclusion":
        parts = [p.strip() for p in text.strip().split(":")]
        if len(parts) == 1 and parts[0]:
            return cls(parts[0], "*")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ConfigurationError(f"Invalid exclusion '{text}'")
        return cls(parts[0], parts[1])

    def matches(self, coordinate: Coordinate) -> bool:
        return fnmatch.fnmatchcase(coordinate.group, self.group) and fnmatch.fnmatchcase(
            coordinate.name, self.name
        )


@dataclass(frozen=True)
class Dependency:
    """A coordinate plus scope, optional flag and exclusions."""

    coordinate: Coordinate
    scope: str = "compile"
    optional: bool = False
    exclusions: FrozenSet[Exclusion] = field(default_factory=frozenset)

    @property
    def on_runtime_classpath(self) -> bool:
        return self.scope in Constants.RUNTIME_SCOPES and not self.optional

    def excludes(self, coordinate: Coordinate) -> bool:
        return any(exclusion.matches(coordinate) for exclusion in self.exclusions)
