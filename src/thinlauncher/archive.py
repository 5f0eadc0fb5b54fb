"""Coordinate Store: reads the declared dependencies of a thin archive.

An archive is an exploded directory or a zip/jar file. Its declarations come
from an embedded POM and from the ``dependencies.*`` family of keys in the
effective configuration (which already layers the archive's own properties
under the root override directory and the command line).
"""
from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from thinlauncher import properties as props
from thinlauncher.constants import Constants
from thinlauncher.coordinates import Coordinate, Dependency, Exclusion, manifest_key
from thinlauncher.exceptions import ConfigurationError
from thinlauncher.models import RepositoryDescriptor
from thinlauncher.pom import RawPom, parse_pom

logger = logging.getLogger(__name__)

# Configuration sources that outrank the archive's own declarations.
OVERRIDE_ORIGINS = ("root", "environment", "command-line")


def strip_file_prefix(location: str) -> str:
    """Turn ``file:foo`` / ``file://foo`` into a plain path."""
    if location.startswith("file:"):
        location = location[len("file:"):]
        if location.startswith("//"):
            location = location[2:]
    return location


def properties_file_names(name: str, profiles: Sequence[str]) -> List[str]:
    """``<name>.properties`` then one ``<name>-<profile>.properties`` per profile."""
    return [f"{name}.properties"] + [f"{name}-{p}.properties" for p in profiles if p]


def parse_manifest(text: str) -> Dict[str, str]:
    """Parse a jar manifest's main section (continuation lines start with a space)."""
    attributes: Dict[str, str] = {}
    last: Optional[str] = None
    for line in text.splitlines():
        if not line.strip():
            break
        if line.startswith(" ") and last is not None:
            attributes[last] += line[1:]
            continue
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        last = key.strip()
        attributes[last] = value.strip()
    return attributes


class Archive:
    """Read-only view over an exploded or zipped application archive."""

    def __init__(self, location: Path) -> None:
        self.location = Path(strip_file_prefix(str(location)))

    @property
    def is_directory(self) -> bool:
        return self.location.is_dir()

    def _zip_names(self) -> List[str]:
        if not self.location.is_file() or not zipfile.is_zipfile(self.location):
            return []
        with zipfile.ZipFile(self.location) as zf:
            return [info.filename for info in zf.infolist() if not info.is_dir()]

    def read_bytes(self, entry: str) -> Optional[bytes]:
        """Raw entry contents, or None when the entry (or the archive) is missing."""
        if self.is_directory:
            path = self.location / entry
            if path.is_file():
                return path.read_bytes()
            return None
        if not self.location.is_file() or not zipfile.is_zipfile(self.location):
            return None
        with zipfile.ZipFile(self.location) as zf:
            try:
                return zf.read(entry)
            except KeyError:
                return None

    def read_text(self, entry: str) -> Optional[str]:
        """Entry contents decoded as UTF-8, falling back to Latin-1."""
        raw = self.read_bytes(entry)
        if raw is None:
            return None
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.decode("latin-1")

    def manifest(self) -> Dict[str, str]:
        text = self.read_text(Constants.MANIFEST_PATH)
        return parse_manifest(text) if text else {}

    def main_class(self) -> Optional[str]:
        """``Start-Class`` from the manifest, falling back to ``Main-Class``."""
        manifest = self.manifest()
        return manifest.get(Constants.START_CLASS_ATTRIBUTE) or manifest.get(
            Constants.MAIN_CLASS_ATTRIBUTE
        )

    def pom_bytes(self) -> Optional[bytes]:
        """The embedded POM: first ``META-INF/maven/**/pom.xml``, else ``pom.xml``.

        Returned undecoded so the XML declaration picks the encoding.
        """
        if self.is_directory:
            candidates = sorted(
                path.relative_to(self.location).as_posix()
                for path in self.location.glob(f"{Constants.MAVEN_META_INF}**/{Constants.POM_XML_FILE}")
                if path.is_file()
            )
        else:
            candidates = [
                name
                for name in self._zip_names()
                if name.startswith(Constants.MAVEN_META_INF) and name.endswith("/" + Constants.POM_XML_FILE)
            ]
        if candidates:
            return self.read_bytes(candidates[0])
        return self.read_bytes(Constants.POM_XML_FILE)

    def properties(self, name: str, profiles: Sequence[str]) -> Dict[str, str]:
        """Layered ``META-INF/<name>[-<profile>].properties``; missing files are skipped."""
        merged: Dict[str, str] = {}
        for file_name in properties_file_names(name, profiles):
            entry = f"{Constants.META_INF}/{file_name}"
            text = self.read_text(entry)
            if text is None:
                continue
            logger.debug("Loaded %s from archive %s", entry, self.location)
            merged.update(props.loads(text, f"{self.location}!/{entry}"))
        return merged


def directory_properties(directory: Path, name: str, profiles: Sequence[str]) -> Dict[str, str]:
    """Layered ``<name>[-<profile>].properties`` from a plain directory."""
    merged: Dict[str, str] = {}
    if not directory.is_dir():
        return merged
    for file_name in properties_file_names(name, profiles):
        path = directory / file_name
        if path.is_file():
            logger.debug("Loaded %s", path)
            merged.update(props.load(path))
    return merged


def _entries(config: Mapping[str, str], prefix: str) -> Dict[str, str]:
    return {key[len(prefix):]: value for key, value in config.items() if key.startswith(prefix)}


class CoordinateStore:
    """Declared dependencies and repositories for one unit of deployment."""

    def __init__(
        self,
        config: Mapping[str, str],
        pom: Optional[RawPom] = None,
        main_class: Optional[str] = None,
        pom_from_root: bool = False,
    ) -> None:
        self.config = config
        self.pom = pom
        self.main_class = main_class
        self.pom_from_root = pom_from_root

    @classmethod
    def load(
        cls, archive: Archive, config: Mapping[str, str], root: Optional[Path] = None
    ) -> "CoordinateStore":
        """Build the store; a ``pom.xml`` in the root directory replaces the archive's POM."""
        from_root = root is not None and (root / Constants.POM_XML_FILE).is_file()
        if from_root:
            source = str(root / Constants.POM_XML_FILE)
            pom_source = (root / Constants.POM_XML_FILE).read_bytes()
        else:
            pom_source = archive.pom_bytes()
            source = f"{archive.location}!/pom.xml"
        pom = parse_pom(pom_source, source) if pom_source else None
        return cls(config, pom, archive.main_class(), pom_from_root=from_root)

    @property
    def computed(self) -> bool:
        """True when the properties list is already the full transitive closure."""
        return str(self.config.get(Constants.COMPUTED_KEY, "false")).lower() == "true"

    def property_dependencies(self) -> Dict[str, str]:
        return _entries(self.config, Constants.DEPENDENCIES_PREFIX)

    def declarations(self, pom_dependencies: Sequence[Dependency] = ()) -> List[Dependency]:
        """Ordered declared dependencies.

        Args:
            pom_dependencies: Direct dependencies of the (effective) POM;
                ignored when the list is ``computed``.

        POM entries come first, keyed like manifest entries; a properties
        entry with the same key replaces the POM entry in place and an empty
        value removes it.

        Raises:
            ConfigurationError: If a ``dependencies.*`` value is malformed.
        """
        keyed: Dict[str, Optional[Dependency]] = {}
        if not self.computed:
            for dependency in pom_dependencies:
                if dependency.scope not in Constants.RUNTIME_SCOPES:
                    continue
                keyed[manifest_key(dependency.coordinate, keyed)] = dependency
        for key, value in self.property_dependencies().items():
            if not value.strip():
                keyed[key] = None
                continue
            keyed[key] = Dependency(Coordinate.parse(value))
        return [dependency for dependency in keyed.values() if dependency is not None]

    def exclusions(self) -> List[Exclusion]:
        return [Exclusion.parse(v) for v in _entries(self.config, Constants.EXCLUSIONS_PREFIX).values() if v.strip()]

    def boms(self) -> List[Coordinate]:
        result = []
        for value in _entries(self.config, Constants.BOMS_PREFIX).values():
            if not value.strip():
                continue
            bom = Coordinate.parse(value)
            if not bom.version:
                raise ConfigurationError(f"BOM '{value}' has no version")
            result.append(bom.pom())
        return result

    def _origin(self, key: str) -> Optional[str]:
        origin = getattr(self.config, "origin", None)
        return origin(key) if origin is not None else None

    def root_repositories(self) -> List[RepositoryDescriptor]:
        """Repositories declared above the archive: root directory, environment
        or command line properties, then a root-supplied POM."""
        result = [
            RepositoryDescriptor(id=repo_id, url=url)
            for repo_id, url in _entries(self.config, Constants.REPOSITORIES_PREFIX).items()
            if url.strip() and self._origin(Constants.REPOSITORIES_PREFIX + repo_id) in OVERRIDE_ORIGINS
        ]
        if self.pom is not None and self.pom_from_root:
            result.extend(self.pom.repositories)
        return result

    def archive_repositories(self) -> List[RepositoryDescriptor]:
        """Repositories declared by the archive's own properties and POM."""
        result = [
            RepositoryDescriptor(id=repo_id, url=url)
            for repo_id, url in _entries(self.config, Constants.REPOSITORIES_PREFIX).items()
            if url.strip() and self._origin(Constants.REPOSITORIES_PREFIX + repo_id) not in OVERRIDE_ORIGINS
        ]
        if self.pom is not None and not self.pom_from_root and not self.computed:
            result.extend(self.pom.repositories)
        return result

    def repositories(self) -> List[RepositoryDescriptor]:
        """Root-level declarations followed by the archive's own."""
        return self.root_repositories() + self.archive_repositories()
